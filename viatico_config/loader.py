"""
Configuration loader (``viatico_config.loader``).

Reads a YAML configuration set and turns it into a validated
``ViaticoSettings``.  Internal tooling: runtime callers go through
``viatico_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from viatico_config.schema import ViaticoSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(path: Path) -> tuple[ViaticoSettings, str]:
    """Parse ``path`` into settings; returns them with the source checksum."""
    data = load_yaml_file(path)
    return ViaticoSettings.from_dict(data), compute_checksum(data)
