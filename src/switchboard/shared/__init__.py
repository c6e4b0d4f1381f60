"""Shared infrastructure: paths and logging."""

from .logging import configure_logging
from .paths import SWITCHBOARD_DIR, ensure_dirs, get_log_file

__all__ = [
    "SWITCHBOARD_DIR",
    "configure_logging",
    "ensure_dirs",
    "get_log_file",
]
