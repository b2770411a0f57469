"""
Configuration Validator (``pipetrak_config.validator``).

Responsibility
--------------
Validates a ``ReportConfigurationSet`` before it is turned into engine
objects, collecting every problem rather than stopping at the first.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``pipetrak_config.get_active_config`` after loading and before the
bridges build the template registry.

Invariants enforced
-------------------
* Template identity -- duplicate ``(component_type, version)`` pairs are
  errors.
* Weight sum -- every template's milestone weights sum to exactly 100.
* Milestone uniqueness -- orders and names are unique within a template.
* Category coverage -- every milestone maps to a known report category,
  either explicitly or through its name.
* Enum values -- workflow types and sort directions are recognised.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be used.
* Validation warnings (``ConfigValidationResult.warnings``)  ->
  configuration is usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pipetrak_config.schema import ReportConfigurationSet, TemplateDef
from pipetrak_engines.milestones import ReportCategory, WorkflowType, category_for
from pipetrak_engines.sorting import SortDirection

_WORKFLOW_TYPES = {w.value for w in WorkflowType}
_DIRECTIONS = {d.value for d in SortDirection}
_CATEGORIES = {c.value for c in ReportCategory}


class ConfigValidationError(ValueError):
    """Raised when a configuration set fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: ReportConfigurationSet) -> ConfigValidationResult:
    """
    Validate a configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises for content
          problems.
    """
    result = ConfigValidationResult()

    if not config.templates:
        result.add_warning("Configuration defines no milestone templates")

    seen: set[tuple[str, int]] = set()
    for template in config.templates:
        if template.key in seen:
            result.add_error(
                f"Duplicate template: {template.component_type} v{template.version}"
            )
        seen.add(template.key)
        _validate_template(template, result)

    _validate_reports(config, result)
    return result


def _validate_template(template: TemplateDef, result: ConfigValidationResult) -> None:
    label = f"{template.component_type} v{template.version}"

    if template.workflow_type not in _WORKFLOW_TYPES:
        result.add_error(f"{label}: unknown workflow_type '{template.workflow_type}'")
    if not template.milestones:
        result.add_error(f"{label}: template has no milestones")
        return

    orders: set[int] = set()
    names: set[str] = set()
    for m in template.milestones:
        if m.order in orders:
            result.add_error(f"{label}: duplicate milestone order {m.order}")
        orders.add(m.order)
        if m.name in names:
            result.add_error(f"{label}: duplicate milestone name '{m.name}'")
        names.add(m.name)

        if not isinstance(m.weight, int) or isinstance(m.weight, bool):
            result.add_error(f"{label}: milestone '{m.name}' weight must be an integer")
        elif not 0 <= m.weight <= 100:
            result.add_error(
                f"{label}: milestone '{m.name}' weight {m.weight} out of range"
            )

        if m.category is not None:
            if m.category not in _CATEGORIES:
                result.add_error(
                    f"{label}: milestone '{m.name}' has unknown category "
                    f"'{m.category}'"
                )
        elif category_for(m.name) is None:
            result.add_error(
                f"{label}: milestone '{m.name}' does not map to a report category"
            )

        if m.requires_welder and template.workflow_type == WorkflowType.QUANTITY.value:
            result.add_warning(
                f"{label}: milestone '{m.name}' requires a welder on a "
                "quantity workflow"
            )

    total = sum(m.weight for m in template.milestones if isinstance(m.weight, int))
    if total != 100:
        result.add_error(f"{label}: milestone weights sum to {total}, expected 100")


def _validate_reports(
    config: ReportConfigurationSet, result: ConfigValidationResult
) -> None:
    reports = config.reports
    prefs = {"default_sort": reports.default_sort, **reports.sort_preferences}
    for report_type, pref in prefs.items():
        if pref.direction not in _DIRECTIONS:
            result.add_error(
                f"Sort preference '{report_type}': unknown direction "
                f"'{pref.direction}'"
            )
        if not pref.column:
            result.add_error(f"Sort preference '{report_type}': empty column")

    for key in reports.category_labels:
        if key not in _CATEGORIES:
            result.add_warning(f"Category label for unknown category '{key}'")
    for category in sorted(_CATEGORIES - set(reports.category_labels)):
        result.add_warning(f"No display label for category '{category}'")
