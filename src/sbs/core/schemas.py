"""JSON Schema validation for persisted documents.

Schemas are bundled as YAML under ``sbs.data/schemas`` (JSON Schema
expressed in YAML) and validated with ``jsonschema``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from sbs.core.utils.io import read_yaml
from sbs.data import get_data_path


@lru_cache(maxsize=8)
def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a bundled schema by file name (``.yaml`` appended if missing).

    Raises:
        FileNotFoundError: If the schema is not bundled.
        ValueError: If the file is not a YAML mapping.
    """
    if not schema_name.endswith((".yaml", ".yml")):
        schema_name = f"{schema_name}.yaml"
    schema = read_yaml(get_data_path("schemas", schema_name), default=None, raise_on_error=True)
    if not isinstance(schema, dict):
        raise ValueError(f"Schema must be a YAML mapping, got {type(schema).__name__}")
    return schema


def validate_payload_safe(payload: Any, schema_name: str) -> List[str]:
    """Validate ``payload`` and return readable error messages (empty if valid)."""
    validator = Draft202012Validator(load_schema(schema_name))
    errors: List[str] = []
    for error in sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path]):
        if error.path:
            path_str = ".".join(str(p) for p in error.path)
            errors.append(f"{path_str}: {error.message}")
        else:
            errors.append(error.message)
    return errors


__all__ = ["load_schema", "validate_payload_safe"]
