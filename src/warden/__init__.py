"""Warden: supervisor for long-running AI coding-agent subprocesses."""

__version__ = "0.1.0"
