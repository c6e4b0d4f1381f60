"""Unit tests for switchboard.shared.paths module."""

from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

import pytest


@pytest.mark.cli_unit
class TestPaths:
    """Tests for path constants and functions."""

    def test_switchboard_dir_is_in_home(self):
        """Test SWITCHBOARD_DIR is in user's home directory."""
        from switchboard.shared.paths import SWITCHBOARD_DIR

        assert SWITCHBOARD_DIR == Path.home() / ".switchboard"

    def test_default_config_lives_in_switchboard_dir(self):
        from switchboard.config import get_config_path
        from switchboard.shared.paths import SWITCHBOARD_DIR

        assert get_config_path() == SWITCHBOARD_DIR / "config.yaml"

    def test_get_log_file(self):
        """Test get_log_file returns correct path."""
        from switchboard.shared.paths import LOG_DIR, get_log_file

        assert get_log_file() == LOG_DIR / "bridge.log"
        assert get_log_file("custom") == LOG_DIR / "custom.log"


@pytest.mark.cli_unit
class TestEnsureDirs:
    """Tests for ensure_dirs function."""

    def test_creates_private_directory(self):
        with TemporaryDirectory() as tmpdir:
            test_dir = Path(tmpdir) / ".switchboard"

            with patch("switchboard.shared.paths.SWITCHBOARD_DIR", test_dir):
                from switchboard.shared.paths import ensure_dirs

                assert not test_dir.exists()
                ensure_dirs()

                assert test_dir.is_dir()
                # 0o700 = owner read/write/execute only
                assert (test_dir.stat().st_mode & 0o777) == 0o700

    def test_idempotent(self):
        with TemporaryDirectory() as tmpdir:
            test_dir = Path(tmpdir) / ".switchboard"

            with patch("switchboard.shared.paths.SWITCHBOARD_DIR", test_dir):
                from switchboard.shared.paths import ensure_dirs

                ensure_dirs()
                ensure_dirs()

                assert test_dir.exists()
