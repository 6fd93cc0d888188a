from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import yaml
from jsonschema import Draft202012Validator

from approval_runtime.config import Settings

_SCHEMA_PATH = Path(__file__).resolve().parent / "config_schema.json"


def load_config_schema() -> Dict[str, Any]:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def validate_admin_config(payload: Dict[str, Any]) -> None:
    validator = Draft202012Validator(load_config_schema())
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        joined = "; ".join(e.message for e in errors)
        raise ValueError(f"admin config validation failed: {joined}")


def load_admin_config(path: str | Path) -> Dict[str, Any]:
    """
    Read admin overrides from a YAML file. An empty file means no overrides.
    The signing secret is never read from here, only from the environment.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("admin config must be a mapping")
    validate_admin_config(data)
    return data


def apply_admin_config(base: Settings, overrides: Dict[str, Any]) -> Settings:
    if not overrides:
        return base
    return base.model_copy(update=overrides)
