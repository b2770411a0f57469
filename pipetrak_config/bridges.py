"""
Config -> Engine Bridges.

Functions that convert a validated ``ReportConfigurationSet`` into the
objects the report engines consume.  These live in pipetrak_config (the
producer) because the engines must NEVER import pipetrak_config.

Usage:
    from pipetrak_config import get_active_config

    config = get_active_config()
    template = config.templates.active("pipe")
    spec = config.sort_preferences.get("manhour_progress")
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from pipetrak_config.schema import ReportConfigurationSet, SortPreferenceDef, TemplateDef
from pipetrak_engines.milestones import (
    MilestoneDefinition,
    MilestoneTemplate,
    ReportCategory,
    TemplateRegistry,
)
from pipetrak_engines.sorting import SortPreferences, SortSpec


def build_template(template: TemplateDef) -> MilestoneTemplate:
    """Build one engine template; construction re-checks its invariants."""
    return MilestoneTemplate(
        component_type=template.component_type,
        version=template.version,
        workflow_type=template.workflow_type,
        milestones=tuple(
            MilestoneDefinition(
                name=m.name,
                weight=m.weight,
                order=m.order,
                is_partial=m.is_partial,
                requires_welder=m.requires_welder,
                category=m.category,
            )
            for m in template.milestones
        ),
    )


def build_template_registry(config: ReportConfigurationSet) -> TemplateRegistry:
    return TemplateRegistry(build_template(t) for t in config.templates)


def _sort_spec(pref: SortPreferenceDef) -> SortSpec:
    return SortSpec(column=pref.column, direction=pref.direction)


def build_sort_preferences(config: ReportConfigurationSet) -> SortPreferences:
    reports = config.reports
    return SortPreferences(
        by_report={
            report_type: _sort_spec(pref)
            for report_type, pref in reports.sort_preferences.items()
        },
        default=_sort_spec(reports.default_sort),
    )


@dataclass(frozen=True)
class ReportConfiguration:
    """
    Runtime configuration artifact returned by ``get_active_config``.

    Contract:
        Built only from a configuration set that passed validation.
    """

    config_id: str
    config_version: int
    checksum: str
    templates: TemplateRegistry
    sort_preferences: SortPreferences
    category_labels: Mapping[ReportCategory, str] = field(default_factory=dict)

    def label_for(self, category: ReportCategory) -> str:
        return self.category_labels.get(category, category.value.title())


def build_report_configuration(config: ReportConfigurationSet) -> ReportConfiguration:
    return ReportConfiguration(
        config_id=config.config_id,
        config_version=config.version,
        checksum=config.checksum,
        templates=build_template_registry(config),
        sort_preferences=build_sort_preferences(config),
        category_labels={
            ReportCategory(key): label
            for key, label in config.reports.category_labels.items()
            if key in ReportCategory._value2member_map_
        },
    )
