"""Switchboard - bridge many MCP endpoints behind one interface."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mcp-switchboard")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main  # noqa: E402

__all__ = ["main", "__version__"]
