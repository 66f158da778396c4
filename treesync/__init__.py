"""Compare a local folder with a remote SFTP folder and mirror one onto the other."""

__version__ = "0.1.0"
