"""Unit tests for endpoints and the endpoint registry."""

import threading

import pytest

from switchboard.bridge.errors import (
    DuplicateEndpointError,
    EndpointConfigError,
    UnknownEndpointError,
)
from switchboard.bridge.registry import (
    DEFAULT_ENDPOINTS,
    Endpoint,
    EndpointMode,
    EndpointRegistry,
    ToolInfo,
    endpoints_from_config,
)

pytestmark = [pytest.mark.bridge, pytest.mark.bridge_unit]


class TestEndpointFromDict:
    def test_full_entry(self):
        endpoint = Endpoint.from_dict(
            "demo-server",
            {
                "name": "Demo Server",
                "url": "ws://localhost:3001/mcp",
                "mode": "simulated",
                "capabilities": ["tools", "resources"],
                "tools": [{"name": "calculate", "description": "Perform calculations"}, "weather"],
                "synthetic_activity": True,
            },
        )
        assert endpoint.id == "demo-server"
        assert endpoint.mode is EndpointMode.SIMULATED
        assert endpoint.is_simulated
        assert endpoint.capabilities == ("tools", "resources")
        assert endpoint.tools == (
            ToolInfo("calculate", "Perform calculations"),
            ToolInfo("weather", ""),
        )
        assert endpoint.synthetic_activity is True

    def test_defaults_to_live_mode_and_id_as_name(self):
        endpoint = Endpoint.from_dict("remote", {"url": "https://mcp.example.com/rpc"})
        assert endpoint.mode is EndpointMode.LIVE
        assert endpoint.name == "remote"
        assert endpoint.scheme == "https"

    def test_legacy_status_key_selects_mode(self):
        endpoint = Endpoint.from_dict("old", {"url": "ws://localhost:1/mcp", "status": "simulated"})
        assert endpoint.is_simulated

    def test_synthetic_activity_ignored_for_live_endpoints(self):
        endpoint = Endpoint.from_dict(
            "remote", {"url": "ws://localhost:1/mcp", "synthetic_activity": True}
        )
        assert endpoint.synthetic_activity is False

    def test_metadata_is_kept_but_not_compared(self):
        a = Endpoint.from_dict("a", {"url": "ws://h:1/", "metadata": {"headers": {"X": "1"}}})
        b = Endpoint.from_dict("a", {"url": "ws://h:1/"})
        assert a.metadata == {"headers": {"X": "1"}}
        assert a == b

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"url": "ftp://example.com/mcp"},
            {"url": "not a url"},
            {"url": "ws://h:1/", "mode": "bogus"},
            {"url": "ws://h:1/", "tools": [42]},
            "ws://h:1/",
        ],
    )
    def test_malformed_entries_are_rejected(self, data):
        with pytest.raises(EndpointConfigError):
            Endpoint.from_dict("bad", data)

    def test_simulated_endpoints_accept_any_url(self):
        endpoint = Endpoint.from_dict("demo", {"url": "demo://nowhere", "mode": "simulated"})
        assert endpoint.url == "demo://nowhere"

    def test_endpoints_are_immutable(self):
        endpoint = Endpoint.from_dict("a", {"url": "ws://h:1/"})
        with pytest.raises(AttributeError):
            endpoint.url = "ws://other:1/"

    def test_to_dict(self):
        endpoint = Endpoint.from_dict(
            "a", {"url": "ws://h:1/", "capabilities": ["tools"], "tools": ["t"]}
        )
        assert endpoint.to_dict() == {
            "id": "a",
            "name": "a",
            "url": "ws://h:1/",
            "mode": "live",
            "capabilities": ["tools"],
            "tools": [{"name": "t", "description": ""}],
            "synthetic_activity": False,
        }


class TestEndpointsFromConfig:
    def test_preserves_order(self):
        endpoints = endpoints_from_config(DEFAULT_ENDPOINTS)
        assert [e.id for e in endpoints] == ["demo-server", "ai-assistant", "file-manager"]
        assert all(e.is_simulated for e in endpoints)

    def test_rejects_non_mapping(self):
        with pytest.raises(EndpointConfigError):
            endpoints_from_config(["demo-server"])


class TestEndpointRegistry:
    def test_register_and_get(self, simulated_endpoint):
        registry = EndpointRegistry()
        registry.register(simulated_endpoint)
        assert registry.get("demo-server") is simulated_endpoint
        assert "demo-server" in registry
        assert len(registry) == 1

    def test_duplicate_id_is_rejected(self, endpoint_factory):
        registry = EndpointRegistry([endpoint_factory("a")])
        with pytest.raises(DuplicateEndpointError) as exc_info:
            registry.register(endpoint_factory("a", name="Other"))
        assert exc_info.value.endpoint_id == "a"
        assert registry.get("a").name == "A"

    def test_unknown_id(self):
        with pytest.raises(UnknownEndpointError):
            EndpointRegistry().get("missing-id")

    def test_list_is_in_registration_order(self, endpoint_factory):
        registry = EndpointRegistry()
        for endpoint_id in ("c", "a", "b"):
            registry.register(endpoint_factory(endpoint_id))
        assert [e.id for e in registry.list()] == ["c", "a", "b"]

    def test_list_is_a_copy(self, endpoint_factory):
        registry = EndpointRegistry([endpoint_factory("a")])
        registry.list().clear()
        assert len(registry) == 1

    def test_concurrent_registration_from_threads(self, endpoint_factory):
        registry = EndpointRegistry()
        errors = []

        def register(start: int) -> None:
            for i in range(start, start + 50):
                try:
                    registry.register(endpoint_factory(f"ep-{i}"))
                except DuplicateEndpointError as e:
                    errors.append(e)
                registry.list()

        threads = [threading.Thread(target=register, args=(n * 25,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Ranges overlap by 25, so exactly the overlapping ids are rejected
        assert len(registry) == 125
        assert len(errors) == 75
