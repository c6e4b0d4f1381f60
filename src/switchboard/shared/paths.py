"""Path management for switchboard.

Manages the ~/.switchboard/ directory used for config and logs.
"""

from pathlib import Path

# Base directory for all switchboard data
SWITCHBOARD_DIR = Path.home() / ".switchboard"

# Log directory (same as base for simplicity)
LOG_DIR = SWITCHBOARD_DIR


def ensure_dirs() -> None:
    """Create ~/.switchboard/ (mode 0o700) if missing."""
    SWITCHBOARD_DIR.mkdir(mode=0o700, exist_ok=True)


def get_log_file(name: str = "bridge") -> Path:
    """Get path to a log file.

    Args:
        name: Log file name (without extension)

    Returns:
        Path to the log file
    """
    return LOG_DIR / f"{name}.log"
