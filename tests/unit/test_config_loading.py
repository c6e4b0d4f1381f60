"""Unit tests for configuration loading."""

import pytest

from switchboard import config as config_module
from switchboard.bridge.registry import DEFAULT_ENDPOINTS, EndpointMode
from switchboard.config import ENV_VARS, BridgeConfig, ConfigError, load_config


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Point the default config path at an empty dir and clear env overrides."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setattr(config_module, "get_config_path", lambda: tmp_path / "config.yaml")
    return tmp_path


def write(path, text):
    path.write_text(text)
    return path


class TestDefaults:
    def test_no_file_uses_defaults(self):
        config = load_config()
        assert config.heartbeat_interval == 30.0
        assert config.stats_interval == 10.0
        assert config.auto_reconnect is True
        assert config.status_host == "127.0.0.1"
        assert config.get_source("heartbeat_interval") == "default"

    def test_demo_endpoints_when_none_configured(self):
        endpoints = BridgeConfig().build_endpoints()
        assert [e.id for e in endpoints] == list(DEFAULT_ENDPOINTS)
        assert all(e.mode is EndpointMode.SIMULATED for e in endpoints)


class TestFile:
    def test_default_path_is_read(self, isolated):
        write(isolated / "config.yaml", "heartbeat_interval: 5\nauto_reconnect: false\n")
        config = load_config()
        assert config.heartbeat_interval == 5.0
        assert config.auto_reconnect is False
        assert config.get_source("heartbeat_interval") == "config file"

    def test_explicit_path(self, tmp_path):
        path = write(
            tmp_path / "custom.yaml",
            "endpoints:\n"
            "  search:\n"
            "    name: Search\n"
            "    url: https://search.example.com/mcp\n"
            "    capabilities: [tools]\n"
            "    tools: [query]\n",
        )
        config = load_config(path)
        [endpoint] = config.build_endpoints()
        assert endpoint.id == "search"
        assert endpoint.mode is EndpointMode.LIVE
        assert endpoint.tools[0].name == "query"
        assert config.get_source("endpoints") == "config file"

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write(tmp_path / "bad.yaml", "heartbeat_interval: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = write(tmp_path / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    @pytest.mark.parametrize(
        "text",
        [
            "heartbeat_interval: -1\n",
            "call_timeout: soon\n",
            "status_port: 70000\n",
            "event_queue_size: 0\n",
            "auto_reconnect: maybe\n",
            "stats_interval: true\n",
        ],
    )
    def test_invalid_values(self, tmp_path, text):
        path = write(tmp_path / "c.yaml", text)
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_endpoint_fails_load(self, tmp_path):
        path = write(tmp_path / "c.yaml", "endpoints:\n  broken:\n    url: ftp://x/y\n")
        with pytest.raises(ConfigError, match="broken"):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = write(tmp_path / "empty.yaml", "")
        assert load_config(path).call_timeout == 30.0


class TestEnvironment:
    def test_env_overrides_file(self, isolated, monkeypatch):
        write(isolated / "config.yaml", "call_timeout: 12\nstatus_port: 9000\n")
        monkeypatch.setenv("SWITCHBOARD_CALL_TIMEOUT", "3.5")
        monkeypatch.setenv("SWITCHBOARD_AUTO_RECONNECT", "off")

        config = load_config()

        assert config.call_timeout == 3.5
        assert config.get_source("call_timeout") == "environment"
        assert config.auto_reconnect is False
        assert config.status_port == 9000
        assert config.get_source("status_port") == "config file"

    def test_invalid_env_value_is_ignored(self, monkeypatch):
        monkeypatch.setenv("SWITCHBOARD_HEARTBEAT_INTERVAL", "often")
        config = load_config()
        assert config.heartbeat_interval == 30.0
        assert config.get_source("heartbeat_interval") == "default"


class TestToDict:
    def test_to_dict_includes_endpoints_not_sources(self):
        data = BridgeConfig(call_timeout=2.0).to_dict()
        assert data["call_timeout"] == 2.0
        assert "_sources" not in data
        assert set(data["endpoints"]) == set(DEFAULT_ENDPOINTS)
