"""gitvend — vendor exact files and line ranges from remote repositories."""

__version__ = "0.4.0"
