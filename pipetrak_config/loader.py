"""
Configuration Loader (``pipetrak_config.loader``).

Responsibility
--------------
Loads the YAML files of a configuration set and parses them into typed
``pipetrak_config.schema`` dataclass instances.  Runtime callers use
``pipetrak_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  YAML data for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from pipetrak_config.schema import (
    MilestoneDef,
    ReportConfigurationSet,
    ReportSettingsDef,
    SortPreferenceDef,
    TemplateDef,
)

ROOT_FILE = "root.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_milestone(data: dict[str, Any]) -> MilestoneDef:
    return MilestoneDef(
        name=data["name"],
        weight=data["weight"],
        order=data["order"],
        is_partial=bool(data.get("is_partial", False)),
        requires_welder=bool(data.get("requires_welder", False)),
        category=data.get("category"),
    )


def parse_template(data: dict[str, Any]) -> TemplateDef:
    """
    Parse a ``TemplateDef`` from a dict.

    Raises:
        KeyError: if component_type, version or milestones is missing.
    """
    return TemplateDef(
        component_type=data["component_type"],
        version=data["version"],
        workflow_type=data.get("workflow_type", "discrete"),
        milestones=tuple(parse_milestone(m) for m in data["milestones"]),
    )


def parse_sort_preference(data: dict[str, Any]) -> SortPreferenceDef:
    return SortPreferenceDef(
        column=data["column"],
        direction=data.get("direction", "asc"),
    )


def parse_report_settings(data: dict[str, Any]) -> ReportSettingsDef:
    default_sort = data.get("default_sort")
    return ReportSettingsDef(
        default_sort=(
            parse_sort_preference(default_sort)
            if default_sort
            else SortPreferenceDef("name")
        ),
        sort_preferences={
            report_type: parse_sort_preference(pref)
            for report_type, pref in (data.get("sort_preferences") or {}).items()
        },
        category_labels=dict(data.get("category_labels") or {}),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialisation of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_configuration_set(directory: Path) -> ReportConfigurationSet:
    """
    Load ``root.yaml`` and its fragments from ``directory``.

    Postconditions:
        - ``checksum`` covers the root and every fragment.

    Raises:
        FileNotFoundError: if root.yaml or a listed fragment is missing.
        yaml.YAMLError: on malformed YAML.
        KeyError: on missing required keys.
    """
    root = load_yaml_file(directory / ROOT_FILE)
    merged: dict[str, Any] = {}
    for fragment in root.get("fragments", []):
        merged.update(load_yaml_file(directory / fragment))

    return ReportConfigurationSet(
        config_id=root["config_id"],
        version=root.get("version", 1),
        description=root.get("description", ""),
        templates=tuple(parse_template(t) for t in merged.get("templates", [])),
        reports=parse_report_settings(merged),
        checksum=compute_checksum({"root": root, "fragments": merged}),
    )
