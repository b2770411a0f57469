"""
Configuration Schema (``pipetrak_config.schema``).

Frozen dataclasses describing a parsed configuration set.  These are
plain data; validation lives in ``validator.py`` and conversion into
engine objects lives in ``bridges.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MilestoneDef:
    name: str
    weight: int
    order: int
    is_partial: bool = False
    requires_welder: bool = False
    category: str | None = None


@dataclass(frozen=True)
class TemplateDef:
    """One milestone template as written in templates.yaml."""

    component_type: str
    version: int
    workflow_type: str
    milestones: tuple[MilestoneDef, ...]

    @property
    def key(self) -> tuple[str, int]:
        return (self.component_type, self.version)


@dataclass(frozen=True)
class SortPreferenceDef:
    column: str
    direction: str = "asc"


@dataclass(frozen=True)
class ReportSettingsDef:
    default_sort: SortPreferenceDef = SortPreferenceDef("name")
    sort_preferences: dict[str, SortPreferenceDef] = field(default_factory=dict)
    category_labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportConfigurationSet:
    """Everything loaded from one ``sets/<name>/`` directory."""

    config_id: str
    version: int
    templates: tuple[TemplateDef, ...]
    reports: ReportSettingsDef
    description: str = ""
    checksum: str = ""
