"""Command-line interface for treesync."""

from __future__ import annotations

import argparse
import logging
import os
import signal
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

try:
    import argcomplete
    ARGCOMPLETE_AVAILABLE = True
except ImportError:
    ARGCOMPLETE_AVAILABLE = False

from . import __version__, cancellation, config, types
from .engine import executor
from .engine.service import SyncService
from .logging import configure_logging

# Import completers if argcomplete is available
if ARGCOMPLETE_AVAILABLE:
    from . import completion

Handler = Callable[[argparse.Namespace], int]
logger = logging.getLogger(__name__)

PATHS_PER_CATEGORY = 10
EXIT_CANCELLED = 130

RECOMMENDATION_TEXT = {
    types.Recommendation.UNKNOWN: "Unknown",
    types.Recommendation.IN_SYNC: "Files are in sync",
    types.Recommendation.SYNC_TO_REMOTE: "Local files are newer: sync to remote (treesync sync PROFILE --direction to-remote)",
    types.Recommendation.SYNC_TO_LOCAL: "Remote files are newer: sync to local (treesync sync PROFILE --direction to-local)",
}


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser with all supported subcommands."""
    parser = argparse.ArgumentParser(
        prog="treesync",
        description="Compare a local tree with a remote SSH tree and mirror it in either direction.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config-dir",
        help="Override the configuration directory (defaults to ~/.config/treesync).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (can be repeated).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease logging verbosity (can be repeated).",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Compare both trees and recommend a sync direction.",
    )
    analyze_profile_arg = analyze_parser.add_argument("profile", help="Name of the profile to analyze.")
    mode_arg = analyze_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in types.AnalysisMode],
        help="Analysis mode; defaults to the profile's [analysis] mode.",
    )
    if ARGCOMPLETE_AVAILABLE:
        analyze_profile_arg.completer = completion.profile_completer
        mode_arg.completer = completion.mode_completer
    analyze_parser.set_defaults(func=_handle_analyze)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Mirror one tree onto the other.",
    )
    sync_profile_arg = sync_parser.add_argument("profile", help="Name of the profile to synchronize.")
    direction_arg = sync_parser.add_argument(
        "--direction",
        required=True,
        choices=[direction.value for direction in types.Direction],
        help="to-remote mirrors local onto remote; to-local mirrors remote onto local.",
    )
    if ARGCOMPLETE_AVAILABLE:
        sync_profile_arg.completer = completion.profile_completer
        direction_arg.completer = completion.direction_completer
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan actions without touching either tree.",
    )
    sync_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before deleting or overwriting files.",
    )
    sync_parser.set_defaults(func=_handle_sync)

    profiles_parser = subparsers.add_parser(
        "profiles",
        help="List configured profiles.",
    )
    profiles_parser.add_argument(
        "--details",
        action="store_true",
        help="Show extended profile information (includes file paths).",
    )
    profiles_parser.set_defaults(func=_handle_profiles)

    init_parser = subparsers.add_parser(
        "init",
        help="Create a new profile via interactive prompts.",
    )
    init_parser.add_argument(
        "profile",
        nargs="?",
        help="Optional name for the new profile.",
    )
    init_parser.set_defaults(func=_handle_init)

    return parser


def _handle_analyze(args: argparse.Namespace) -> int:
    try:
        profile_cfg = config.load_profile(args.profile, _config_base(args))
    except config.ConfigError as exc:
        logger.error("%s", exc)
        return 1
    token = cancellation.CancelToken()
    service = SyncService(profile_cfg, status=_status_printer(args), cancel=token)
    mode = types.AnalysisMode(args.mode) if args.mode else None
    try:
        with _cancel_on_interrupt(token):
            result = service.analyze(mode)
    except cancellation.OperationCancelled:
        print("Canceled.")
        return EXIT_CANCELLED
    print(render_report(result, profile_name=profile_cfg.profile.name))
    return 1 if result.error else 0


def _handle_sync(args: argparse.Namespace) -> int:
    try:
        profile_cfg = config.load_profile(args.profile, _config_base(args))
    except config.ConfigError as exc:
        logger.error("%s", exc)
        return 1
    direction = types.Direction(args.direction)
    token = cancellation.CancelToken()
    service = SyncService(profile_cfg, status=_status_printer(args), cancel=token)
    try:
        with _cancel_on_interrupt(token):
            sync_plan = service.plan_sync(direction)
            print(render_plan(sync_plan))
            if sync_plan.is_empty:
                return 0
            if not args.dry_run and not args.yes and not _confirm(_confirm_message(sync_plan, profile_cfg)):
                print("Aborted; nothing was changed.")
                return 1
            report = service.execute(sync_plan, dry_run=args.dry_run)
    except cancellation.OperationCancelled:
        print("Canceled.")
        return EXIT_CANCELLED
    except (executor.ExecutionError, RuntimeError) as exc:
        logger.error("%s", exc)
        return 1
    print(render_execution(report))
    return 0 if report.ok else 1


def _handle_profiles(args: argparse.Namespace) -> int:
    try:
        summaries = _gather_profile_summaries(args.config_dir)
    except config.ConfigError as exc:
        logger.error("%s", exc)
        return 1
    if not summaries:
        print("No profiles found.")
        return 0
    _print_profile_table(summaries, show_details=args.details)
    return 0


def _handle_init(args: argparse.Namespace) -> int:
    wizard = InitWizard(config_dir=args.config_dir)
    try:
        profile_path = wizard.run(args.profile)
    except config.ConfigError as exc:
        logger.error("%s", exc)
        return 1
    logger.info("Profile created at %s.", profile_path)
    return 0


def render_report(result: types.ComparisonResult, *, profile_name: str = "") -> str:
    """Human-readable analysis report."""
    lines: List[str] = []
    title = f"Analysis of '{profile_name}'" if profile_name else "Analysis"
    lines.append(title)
    lines.append("=" * len(title))
    if result.error:
        lines.append(f"Error: {result.error}")
        return "\n".join(lines)

    if result.local_commit and result.remote_commit:
        lines.append(f"Local commit:  {result.local_commit.short_hash}")
        lines.append(f"Remote commit: {result.remote_commit.short_hash}")

    prefix = "at least " if result.early_decision else ""
    for heading, paths in (
        ("Newer locally", result.newer_local),
        ("Newer remotely", result.newer_remote),
        ("Only local", result.local_only),
        ("Only remote", result.remote_only),
    ):
        lines.append("")
        lines.append(f"{heading}: {prefix}{len(paths)}")
        if not paths:
            lines.append("  (No files)")
            continue
        for path in paths[:PATHS_PER_CATEGORY]:
            lines.append(f"  - {path}")
        if len(paths) > PATHS_PER_CATEGORY:
            lines.append(f"  ... and {len(paths) - PATHS_PER_CATEGORY} more")

    if result.local_example or result.remote_example:
        lines.append("")
        if result.local_example:
            lines.append(f"Example (local): {result.local_example}")
        if result.remote_example:
            lines.append(f"Example (remote): {result.remote_example}")
    if result.early_decision:
        lines.append("")
        lines.append("Quick mode stopped early; counts are lower bounds.")

    lines.append("")
    recommendation = RECOMMENDATION_TEXT[result.recommendation]
    if profile_name:
        recommendation = recommendation.replace("PROFILE", profile_name)
    lines.append(f"Recommendation: {recommendation}")
    return "\n".join(lines)


def render_plan(sync_plan: types.SyncPlan) -> str:
    if sync_plan.is_empty:
        return f"Nothing to do: destination already mirrors the source ({sync_plan.direction.value})."
    lines = [
        f"Plan ({sync_plan.direction.value}): {len(sync_plan.transfers)} to copy, {len(sync_plan.to_delete)} to delete"
    ]
    for heading, paths in (("Copy", sync_plan.to_transfer), ("Delete", sync_plan.to_delete)):
        for path in paths[:PATHS_PER_CATEGORY]:
            lines.append(f"  {heading}: {path}")
        if len(paths) > PATHS_PER_CATEGORY:
            lines.append(f"  ... and {len(paths) - PATHS_PER_CATEGORY} more to {heading.lower()}")
    return "\n".join(lines)


def render_execution(report: executor.ExecutionReport) -> str:
    verb = "Would copy" if report.dry_run else "Copied"
    removed = "would delete" if report.dry_run else "deleted"
    lines = [f"{verb} {len(report.transferred)} file(s), {removed} {len(report.deleted)} file(s)."]
    if report.failed:
        lines.append(f"{len(report.failed)} file(s) failed:")
        for path, reason in report.failed:
            lines.append(f"  - {path}: {reason}")
    return "\n".join(lines)


def _confirm_message(sync_plan: types.SyncPlan, profile_cfg: config.ProfileConfig) -> str:
    target = profile_cfg.paths.remote if sync_plan.direction == types.Direction.TO_REMOTE else profile_cfg.paths.local
    return (
        f"Mirror onto {target}: copy {len(sync_plan.transfers)} and delete {len(sync_plan.to_delete)} file(s). Continue?"
    )


def _confirm(message: str, input_func: Callable[[str], str] | None = None) -> bool:
    try:
        response = (input_func or input)(f"{message} (y/N): ").strip().lower()
    except EOFError:
        return False
    return response in {"y", "yes"}


def _status_printer(args: argparse.Namespace) -> Optional[Callable[[str], None]]:
    if args.quiet > args.verbose:
        return None
    return lambda message: logger.info("%s", message)


@contextmanager
def _cancel_on_interrupt(token: cancellation.CancelToken) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation request for the running operation."""

    def _handler(signum, frame) -> None:
        logger.warning("Cancel requested; stopping after the current step.")
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not on the main thread; leave the default handler in place.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _config_base(args: argparse.Namespace) -> Optional[Path]:
    return Path(args.config_dir).expanduser() if args.config_dir else None


class InitWizard:
    """Interactive profile creation."""

    def __init__(self, *, config_dir: Optional[str] = None, input_func: Callable[[str], str] | None = None):
        self._config_dir = Path(config_dir).expanduser() if config_dir else None
        self._input = input_func or input

    def run(self, provided_name: Optional[str]) -> Path:
        base = config.ensure_config_structure(self._config_dir)
        name = provided_name or self._prompt("Profile name", default="new-profile")
        profile_cfg = config.build_profile_template(name)
        profile_cfg.profile.description = self._prompt("Description", default=profile_cfg.profile.description)
        profile_cfg.connection = config.ConnectionBlock(
            host=self._prompt("SSH host"),
            port=self._prompt_int("SSH port", default=profile_cfg.connection.port),
            username=self._prompt("SSH username", default=os.environ.get("USER") or "root"),
            key_file=self._prompt("Private key file (blank for agent/default keys)", default="") or None,
        )
        local = self._prompt("Local path", default=profile_cfg.paths.local)
        profile_cfg.paths = config.PathsBlock(
            local=str(Path(local).expanduser().resolve()),
            remote=self._prompt_remote_path(default=profile_cfg.paths.remote),
        )
        profile_cfg.analysis = config.AnalysisBlock(mode=self._prompt_mode(default=profile_cfg.analysis.mode))
        profile_cfg.connection.secure = self._confirm("Verify the host key against known_hosts?", default=True)

        toml_text = config.profile_to_toml(profile_cfg)
        target = config.profile_path_for(name, base)
        if target.exists():
            if not self._confirm(f"Profile '{name}' already exists. Overwrite?", default=False):
                raise config.ConfigError(f"Refused to overwrite existing profile '{name}'.")
        target.write_text(toml_text)
        return target

    def _prompt_remote_path(self, *, default: str) -> str:
        while True:
            value = self._prompt("Remote path", default=default)
            if value.startswith("/"):
                return value
            logger.warning("Remote path must be absolute.")

    def _prompt_mode(self, *, default: types.AnalysisMode) -> types.AnalysisMode:
        allowed = "/".join(mode.value for mode in types.AnalysisMode)
        while True:
            value = self._prompt(f"Analysis mode [{allowed}]", default=default.value).lower()
            try:
                return types.AnalysisMode(value)
            except ValueError:
                logger.warning("Please enter one of %s.", allowed)

    def _prompt_int(self, message: str, *, default: int) -> int:
        while True:
            value = self._prompt(message, default=str(default))
            if value.isdigit() and 0 < int(value) < 65536:
                return int(value)
            logger.warning("Please enter a port number.")

    def _prompt(self, message: str, *, default: Optional[str] = None) -> str:
        prompt_text = f"{message}"
        if default:
            prompt_text += f" [{default}]"
        prompt_text += ": "
        while True:
            response = self._input(prompt_text).strip()
            if response:
                return response
            if default is not None:
                return default
            logger.warning("This field is required.")

    def _confirm(self, message: str, *, default: bool) -> bool:
        suffix = "Y/n" if default else "y/N"
        prompt_text = f"{message} ({suffix}): "
        while True:
            response = self._input(prompt_text).strip().lower()
            if not response:
                return default
            if response in {"y", "yes"}:
                return True
            if response in {"n", "no"}:
                return False
            logger.warning("Please answer yes or no.")


@dataclass
class ProfileSummary:
    """Short summary of an on-disk profile."""

    name: str
    description: str
    host: str
    mode: str
    path: Path


def _gather_profile_summaries(config_dir_arg: Optional[str]) -> List[ProfileSummary]:
    base = config.ensure_config_structure(Path(config_dir_arg).expanduser() if config_dir_arg else None)
    summaries: List[ProfileSummary] = []
    for name in config.list_profiles(base):
        path = config.profile_path_for(name, base)
        try:
            profile = config.load_profile_from_path(path)
        except config.ConfigError as exc:
            logger.error("Skipping %s: %s", path.name, exc)
            continue
        summaries.append(
            ProfileSummary(
                name=profile.profile.name,
                description=profile.profile.description,
                host=profile.to_connection_settings().describe(),
                mode=profile.analysis.mode.value,
                path=path,
            )
        )
    return summaries


def _print_profile_table(summaries: List[ProfileSummary], *, show_details: bool) -> None:
    headers = ["Name", "Description", "Host", "Mode"]
    if show_details:
        headers.append("File")
    rows: List[List[str]] = []
    for entry in summaries:
        row = [entry.name, entry.description, entry.host, entry.mode]
        if show_details:
            row.append(str(entry.path))
        rows.append(row)
    widths = [len(header) for header in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))
    header_line = "  ".join(header.ljust(widths[idx]) for idx, header in enumerate(headers))
    print(header_line)
    print("  ".join("-" * width for width in widths))
    for row in rows:
        print("  ".join(row[idx].ljust(widths[idx]) for idx in range(len(headers))))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for console_scripts."""
    parser = build_parser()

    # Enable argcomplete if available
    if ARGCOMPLETE_AVAILABLE:
        argcomplete.autocomplete(parser)

    args = parser.parse_args(list(argv) if argv is not None else None)
    log_file = None
    if args.command in {"analyze", "sync"}:
        log_file = config.log_path_for(args.profile, config.ensure_config_structure(_config_base(args)))
    configure_logging(verbose=args.verbose, quiet=args.quiet, log_file=log_file)
    handler: Handler = getattr(args, "func")
    return handler(args)


if __name__ == "__main__":  # pragma: no cover - manual execution guard
    raise SystemExit(main())
