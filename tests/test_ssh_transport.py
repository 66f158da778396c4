"""Tests for the SSH transport helper."""

from __future__ import annotations

import unittest
from unittest import mock

import paramiko

from treesync.ssh import transport

from fakes import FakeSSHClient


class TestRunSSHCommand(unittest.TestCase):
    def test_captures_output_and_exit_code(self):
        client = FakeSSHClient(responder=lambda command: (0, "ok\n", ""))
        result = transport.run_ssh_command(client, "echo ok", timeout=5)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.stdout, "ok\n")
        self.assertEqual(client.commands, ["echo ok"])

    def test_channel_errors_raise_command_error(self):
        client = mock.Mock()
        client.exec_command.side_effect = paramiko.SSHException("channel closed")
        with self.assertRaises(transport.SSHCommandError):
            transport.run_ssh_command(client, "true")


class TestOpenClient(unittest.TestCase):
    def _settings(self, **overrides):
        values = {"host": "example.com", "username": "deploy"}
        values.update(overrides)
        return transport.ConnectionSettings(**values)

    def test_secure_connection_rejects_unknown_hosts(self):
        with mock.patch("treesync.ssh.transport.paramiko.SSHClient") as client_cls:
            client = client_cls.return_value
            transport.open_client(self._settings())
        policy = client.set_missing_host_key_policy.call_args[0][0]
        self.assertIsInstance(policy, paramiko.RejectPolicy)
        kwargs = client.connect.call_args.kwargs
        self.assertEqual(kwargs["hostname"], "example.com")
        self.assertEqual(kwargs["port"], 22)
        self.assertEqual(kwargs["timeout"], transport.DEFAULT_CONNECT_TIMEOUT)

    def test_insecure_connection_auto_adds_hosts(self):
        with mock.patch("treesync.ssh.transport.paramiko.SSHClient") as client_cls:
            client = client_cls.return_value
            transport.open_client(self._settings(secure=False, password="pw"))
        policy = client.set_missing_host_key_policy.call_args[0][0]
        self.assertIsInstance(policy, paramiko.AutoAddPolicy)
        self.assertEqual(client.connect.call_args.kwargs["password"], "pw")

    def test_authentication_failure_is_wrapped(self):
        with mock.patch("treesync.ssh.transport.paramiko.SSHClient") as client_cls:
            client = client_cls.return_value
            client.connect.side_effect = paramiko.AuthenticationException("bad key")
            with self.assertRaises(transport.SSHConnectionError) as ctx:
                transport.open_client(self._settings())
        self.assertIn("Authentication failed", str(ctx.exception))
        client.close.assert_called_once()

    def test_network_failure_is_wrapped(self):
        with mock.patch("treesync.ssh.transport.paramiko.SSHClient") as client_cls:
            client_cls.return_value.connect.side_effect = OSError("Connection refused")
            with self.assertRaises(transport.SSHConnectionError):
                transport.open_client(self._settings())

    def test_describe(self):
        self.assertEqual(self._settings(port=2222).describe(), "deploy@example.com:2222")


if __name__ == "__main__":
    unittest.main()
