"""CLI module for pushx.

This module provides the command-line interface. Generic options fall back
to PUSHX_* environment variables; driver options are generated from the
settings each bundled driver declares.
"""

from .main import build_request, cli, initialize_sentry, main

__all__ = [
    "cli",
    "main",
    "build_request",
    "initialize_sentry",
]
