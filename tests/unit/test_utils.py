"""Unit tests for CLI utilities."""

import json

import pytest

from switchboard.utils import parse_params


class TestParseParams:
    def test_empty(self):
        assert parse_params((), None) == {}

    def test_flags(self):
        params = parse_params(("name=calculate", "count=3", 'arguments={"x": 1}'), None)
        assert params == {"name": "calculate", "count": 3, "arguments": {"x": 1}}

    def test_value_may_contain_equals(self):
        assert parse_params(("expr=a=b",), None) == {"expr": "a=b"}

    @pytest.mark.parametrize("flag", ["novalue", "=value"])
    def test_invalid_flags(self, flag):
        with pytest.raises(ValueError, match="Invalid param format"):
            parse_params((flag,), None)

    def test_json_file(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"name": "weather", "arguments": {"city": "Oslo"}}))
        assert parse_params((), str(path))["arguments"] == {"city": "Oslo"}

    def test_yaml_file_with_flag_override(self, tmp_path):
        path = tmp_path / "params.yaml"
        path.write_text("name: weather\nunits: metric\n")
        params = parse_params(("units=imperial",), str(path))
        assert params == {"name": "weather", "units": "imperial"}

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "params.txt"
        path.write_text("name=x")
        with pytest.raises(ValueError, match="Unsupported"):
            parse_params((), str(path))

    def test_file_must_hold_mapping(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError, match="mapping"):
            parse_params((), str(path))

    def test_malformed_yaml_file(self, tmp_path):
        path = tmp_path / "params.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            parse_params((), str(path))
