"""CLI utility functions."""

import json
from pathlib import Path
from typing import Any

import yaml


def parse_params(
    param_flags: tuple[str, ...],
    params_file: str | None,
) -> dict[str, Any]:
    """Parse call parameters from flags and file.

    Args:
        param_flags: Tuple of KEY=VALUE strings
        params_file: Path to JSON/YAML file with parameters

    Returns:
        Dictionary of parameters

    Raises:
        ValueError: On a malformed flag, an unsupported file type, unparsable
            file content, or a file that does not hold a mapping
    """
    params: dict[str, Any] = {}

    # Parse params file first (if provided)
    if params_file:
        file_path = Path(params_file)
        with file_path.open() as f:
            if file_path.suffix in [".yaml", ".yml"]:
                try:
                    params = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ValueError(f"Invalid YAML in params file {params_file}: {e}") from e
            elif file_path.suffix == ".json":
                params = json.load(f)
            else:
                raise ValueError(f"Unsupported params file format: {file_path.suffix}")
        if not isinstance(params, dict):
            raise ValueError(f"Params file must contain a mapping: {params_file}")

    # Flags override file values
    for param_str in param_flags:
        if "=" not in param_str:
            raise ValueError(f"Invalid param format: {param_str}. Expected KEY=VALUE")

        key, value = param_str.split("=", 1)
        if not key:
            raise ValueError(f"Invalid param format: {param_str}. Key is empty")

        # Structured values (numbers, lists, objects) may be given as JSON
        try:
            params[key] = json.loads(value)
        except json.JSONDecodeError:
            params[key] = value

    return params
