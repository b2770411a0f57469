"""
pipetrak_engines.milestones -- Milestone templates and earned-value resolution.

Responsibility:
    Model ordered, weighted milestone templates per component type and
    version, map every milestone to a report category, and resolve one
    entity's raw milestone values plus manhour budget into per-category
    budget / earned totals and an overall percent complete.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Leaf of the engine dependency order; consumed by aggregation, delta
    and field_welds.

Invariants enforced:
    - TEMPLATE_WEIGHT_SUM: weights sum to exactly 100, checked when a
      MilestoneTemplate is constructed.  Never renormalised.
    - Milestone order and name are unique within a template.
    - 0 <= percent_complete <= 100 for every resolved entity.
    - ZERO_BUDGET_UNDEFINED: category percent over a zero budget is the
      undefined Percent.

Failure modes:
    - InvalidTemplateError subclasses at template construction.
    - InvalidMilestoneValueError for a value a milestone cannot hold.
    - InvalidBudgetError for a negative manhour budget.
    - TemplateNotFoundError from TemplateRegistry.active().

Audit relevance:
    Earned manhours feed every progress report; the per-category split is
    the basis for receive / install / punch / test / restore columns.

Usage:
    from pipetrak_engines.milestones import MilestoneResolver

    progress = MilestoneResolver().resolve(template, {"Receive": True}, "40")
    progress.percent_complete          # Decimal
    progress.categories[ReportCategory.RECEIVE].percent
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from pipetrak_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    Percent,
    clamp,
    safe_percent,
    to_decimal,
)
from pipetrak_kernel.exceptions import (
    DuplicateMilestoneNameError,
    DuplicateMilestoneOrderError,
    InvalidBudgetError,
    InvalidMilestoneValueError,
    InvalidTemplateError,
    TemplateNotFoundError,
    TemplateWeightSumError,
    UnknownMilestoneCategoryError,
)
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.milestones")


class ReportCategory(str, Enum):
    """Report column a milestone's earned value rolls into."""

    RECEIVE = "receive"
    INSTALL = "install"
    PUNCH = "punch"
    TEST = "test"
    RESTORE = "restore"


class WorkflowType(str, Enum):
    DISCRETE = "discrete"
    QUANTITY = "quantity"
    HYBRID = "hybrid"


# Keys are lower-cased milestone names.
CATEGORY_BY_MILESTONE: dict[str, ReportCategory] = {
    "receive": ReportCategory.RECEIVE,
    "erect": ReportCategory.INSTALL,
    "connect": ReportCategory.INSTALL,
    "install": ReportCategory.INSTALL,
    "fit-up": ReportCategory.INSTALL,
    "weld made": ReportCategory.INSTALL,
    "weld complete": ReportCategory.INSTALL,
    "fabricate": ReportCategory.INSTALL,
    "support": ReportCategory.INSTALL,
    "punch": ReportCategory.PUNCH,
    "punch complete": ReportCategory.PUNCH,
    "accepted": ReportCategory.PUNCH,
    "test": ReportCategory.TEST,
    "hydrotest": ReportCategory.TEST,
    "restore": ReportCategory.RESTORE,
    "insulate": ReportCategory.RESTORE,
}


def category_for(milestone_name: str) -> ReportCategory | None:
    """Standard category for a milestone name, or None if unmapped."""
    return CATEGORY_BY_MILESTONE.get(milestone_name.strip().lower())


@dataclass(frozen=True)
class MilestoneDefinition:
    """
    One weighted checkpoint in a template.

    ``category`` defaults to the standard mapping of ``name``; it stays
    None when the name is unmapped, which the owning template rejects.
    """

    name: str
    weight: int
    order: int
    is_partial: bool = False
    requires_welder: bool = False
    category: ReportCategory | None = None

    def __post_init__(self) -> None:
        if self.category is None:
            object.__setattr__(self, "category", category_for(self.name))
        elif not isinstance(self.category, ReportCategory):
            object.__setattr__(self, "category", ReportCategory(self.category))


@dataclass(frozen=True)
class MilestoneTemplate:
    """
    Ordered, weighted milestone list for one component type and version.

    Contract:
        Construction validates the template; an instance that exists is
        valid.  Milestones are stored sorted by ``order``.

    Guarantees:
        - Weights sum to exactly 100.
        - Orders and names are unique.
        - Every milestone has a ReportCategory.

    Non-goals:
        - Choosing which version is active for a component (external).
    """

    component_type: str
    version: int
    milestones: tuple[MilestoneDefinition, ...]
    workflow_type: WorkflowType = WorkflowType.DISCRETE

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.milestones, key=lambda m: m.order))
        object.__setattr__(self, "milestones", ordered)
        if not isinstance(self.workflow_type, WorkflowType):
            object.__setattr__(
                self, "workflow_type", WorkflowType(self.workflow_type)
            )
        self._validate()

    def _validate(self) -> None:
        ct, ver = self.component_type, self.version
        if not self.milestones:
            raise InvalidTemplateError(ct, ver, "template has no milestones")

        seen_orders: set[int] = set()
        seen_names: set[str] = set()
        for m in self.milestones:
            if not 0 <= m.weight <= 100:
                raise InvalidTemplateError(
                    ct, ver, f"milestone '{m.name}' weight {m.weight} out of range"
                )
            if m.order < 1:
                raise InvalidTemplateError(
                    ct, ver, f"milestone '{m.name}' order must be >= 1"
                )
            if m.order in seen_orders:
                raise DuplicateMilestoneOrderError(ct, ver, m.order)
            seen_orders.add(m.order)
            if m.name in seen_names:
                raise DuplicateMilestoneNameError(ct, ver, m.name)
            seen_names.add(m.name)
            if m.category is None:
                raise UnknownMilestoneCategoryError(ct, ver, m.name)

        total = self.total_weight
        if total != 100:
            raise TemplateWeightSumError(ct, ver, total)

    @property
    def total_weight(self) -> int:
        return sum(m.weight for m in self.milestones)

    @property
    def milestone_names(self) -> tuple[str, ...]:
        return tuple(m.name for m in self.milestones)

    def milestone(self, name: str) -> MilestoneDefinition | None:
        for m in self.milestones:
            if m.name == name:
                return m
        return None

    def category_weights(self) -> dict[ReportCategory, int]:
        """Summed weight per category, zero for unused categories."""
        weights = {category: 0 for category in ReportCategory}
        for m in self.milestones:
            weights[m.category] += m.weight
        return weights


class TemplateRegistry:
    """All known template versions keyed by component type."""

    def __init__(self, templates: Iterable[MilestoneTemplate] = ()):
        self._templates: dict[str, dict[int, MilestoneTemplate]] = {}
        for template in templates:
            self.register(template)

    def register(self, template: MilestoneTemplate) -> None:
        versions = self._templates.setdefault(template.component_type, {})
        versions[template.version] = template

    def versions(self, component_type: str) -> tuple[int, ...]:
        return tuple(sorted(self._templates.get(component_type, {})))

    def component_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._templates))

    def active(
        self, component_type: str, version: int | None = None
    ) -> MilestoneTemplate:
        """Template for ``component_type`` at ``version`` (latest if None).

        Raises:
            TemplateNotFoundError: If no such template is registered.
        """
        versions = self._templates.get(component_type)
        if not versions:
            raise TemplateNotFoundError(component_type, version)
        if version is None:
            return versions[max(versions)]
        try:
            return versions[version]
        except KeyError:
            raise TemplateNotFoundError(component_type, version) from None

    def __contains__(self, component_type: object) -> bool:
        return component_type in self._templates

    def __len__(self) -> int:
        return sum(len(v) for v in self._templates.values())


@dataclass(frozen=True)
class CategoryTotals:
    """Budget and earned manhours for one category (or unit counts)."""

    budget: Decimal = ZERO
    earned: Decimal = ZERO

    @property
    def percent(self) -> Percent:
        return safe_percent(self.earned, self.budget)

    def __add__(self, other: CategoryTotals) -> CategoryTotals:
        return CategoryTotals(
            budget=self.budget + other.budget,
            earned=self.earned + other.earned,
        )


def empty_categories() -> dict[ReportCategory, CategoryTotals]:
    return {category: CategoryTotals() for category in ReportCategory}


def sum_categories(
    items: Iterable[Mapping[ReportCategory, CategoryTotals]],
) -> dict[ReportCategory, CategoryTotals]:
    """Category-wise sum of raw budget and earned values."""
    totals = empty_categories()
    for item in items:
        for category, value in item.items():
            totals[category] = totals[category] + value
    return totals


@dataclass(frozen=True)
class ResolvedProgress:
    """Earned-value breakdown for one entity."""

    entity_id: str | None
    percent_complete: Decimal
    categories: dict[ReportCategory, CategoryTotals] = field(
        default_factory=empty_categories
    )

    @property
    def total_budget(self) -> Decimal:
        return sum((c.budget for c in self.categories.values()), ZERO)

    @property
    def total_earned(self) -> Decimal:
        return sum((c.earned for c in self.categories.values()), ZERO)

    @property
    def mh_percent_complete(self) -> Percent:
        return safe_percent(self.total_earned, self.total_budget)


def completion_fraction(milestone: MilestoneDefinition, value: Any) -> Decimal:
    """Normalise a raw milestone value to a completion fraction in [0, 1].

    Partial milestones take 0-100 and are clamped.  Discrete milestones
    accept True/1/100 as complete (100 is the legacy percent scale) and
    False/0/None as incomplete.

    Raises:
        InvalidMilestoneValueError: If the value is not allowed.
    """
    if value is None:
        return ZERO
    if milestone.is_partial:
        if isinstance(value, bool):
            raise InvalidMilestoneValueError(milestone.name, value, True)
        try:
            amount = to_decimal(value)
        except (TypeError, ValueError):
            raise InvalidMilestoneValueError(milestone.name, value, True) from None
        return clamp(amount, ZERO, HUNDRED) / HUNDRED

    if isinstance(value, bool):
        return ONE if value else ZERO
    try:
        amount = to_decimal(value)
    except (TypeError, ValueError):
        raise InvalidMilestoneValueError(milestone.name, value, False) from None
    if amount == ZERO:
        return ZERO
    if amount == ONE or amount == HUNDRED:
        return ONE
    raise InvalidMilestoneValueError(milestone.name, value, False)


class MilestoneResolver:
    """
    Resolve raw milestone values into earned value.

    Contract:
        Pure function of (template, values, budget).  Values for names the
        template does not define are ignored.

    Guarantees:
        - ``percent_complete == sum(fraction * weight)`` exactly.
        - Every ReportCategory is present in ``categories``.
        - Per category ``earned <= budget``.
        - With a positive budget, ``mh_percent_complete`` equals
          ``percent_complete`` up to Decimal precision.
    """

    def resolve(
        self,
        template: MilestoneTemplate,
        values: Mapping[str, Any] | None,
        mh_budget: Any = ONE,
        entity_id: str | None = None,
    ) -> ResolvedProgress:
        """
        Preconditions:
            template is a constructed (hence valid) MilestoneTemplate.

        Postconditions:
            0 <= percent_complete <= 100.

        A missing (None) ``mh_budget`` is a zero budget.

        Raises:
            InvalidBudgetError: If mh_budget is negative.
            InvalidMilestoneValueError: If a value is not allowed.
        """
        budget = ZERO if mh_budget is None else to_decimal(mh_budget)
        if budget < ZERO:
            raise InvalidBudgetError(str(budget))
        values = values or {}

        unknown = [name for name in values if template.milestone(name) is None]
        if unknown:
            logger.debug(
                "milestone_values_ignored",
                extra={
                    "entity_id": entity_id,
                    "component_type": template.component_type,
                    "ignored": sorted(unknown),
                },
            )

        percent = ZERO
        categories = empty_categories()
        for m in template.milestones:
            fraction = completion_fraction(m, values.get(m.name))
            weight = Decimal(m.weight)
            percent += fraction * weight
            category_budget = budget * weight / HUNDRED
            categories[m.category] = categories[m.category] + CategoryTotals(
                budget=category_budget,
                earned=category_budget * fraction,
            )

        return ResolvedProgress(
            entity_id=entity_id,
            percent_complete=percent,
            categories=categories,
        )
