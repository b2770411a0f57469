"""
pipetrak_engines.grouping -- Grouping dimensions and key dispatch.

Responsibility:
    Define the grouping dimensions, the entity record the report engines
    consume, and the enum-keyed tables of key-extraction functions used
    to bucket entities into report rows.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Shared by aggregation, delta and field_welds.

Invariants enforced:
    - Entities without a key are never bucketed under a placeholder
      group; they are excluded and counted (or rejected in strict mode).

Failure modes:
    - InvalidDimensionError when a dimension has no extractor for the
      report kind (``welder`` on a component report).
    - MissingGroupKeyError for a keyless entity when ``strict=True``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from pipetrak_engines.milestones import MilestoneTemplate
from pipetrak_kernel.domain.values import ZERO
from pipetrak_kernel.exceptions import InvalidDimensionError, MissingGroupKeyError
from pipetrak_kernel.logging_config import get_logger

logger = get_logger("engines.grouping")

GRAND_TOTAL_NAME = "Grand Total"


class GroupingDimension(str, Enum):
    AREA = "area"
    SYSTEM = "system"
    TEST_PACKAGE = "test_package"
    WELDER = "welder"


class ReportState(str, Enum):
    """Whether a report has rows to show, and if not, why."""

    READY = "ready"
    EMPTY = "empty"
    NO_ACTIVITY = "no_activity"


class ReportBasis(str, Enum):
    """Unit of the budget column: entity counts or manhours."""

    COUNT = "count"
    MANHOUR = "manhour"


@dataclass(frozen=True)
class ComponentEntity:
    """A tracked component with its current milestone values and budget.

    ``mh_budget`` of None (never budgeted) counts as zero.
    """

    entity_id: str
    template: MilestoneTemplate
    milestone_values: Mapping[str, Any] = field(default_factory=dict)
    mh_budget: Decimal | None = ZERO
    area: str | None = None
    system: str | None = None
    test_package: str | None = None


KeyExtractor = Callable[[Any], str | None]

COMPONENT_KEY_EXTRACTORS: dict[GroupingDimension, KeyExtractor] = {
    GroupingDimension.AREA: lambda e: e.area,
    GroupingDimension.SYSTEM: lambda e: e.system,
    GroupingDimension.TEST_PACKAGE: lambda e: e.test_package,
}

FIELD_WELD_KEY_EXTRACTORS: dict[GroupingDimension, KeyExtractor] = {
    **COMPONENT_KEY_EXTRACTORS,
    GroupingDimension.WELDER: lambda e: e.welder,
}

E = TypeVar("E")


def key_extractor(
    dimension: GroupingDimension | str,
    extractors: Mapping[GroupingDimension, KeyExtractor],
    report_kind: str,
) -> KeyExtractor:
    """Look up the extractor for ``dimension``.

    Raises:
        InvalidDimensionError: If the dimension is unknown or not offered
            for this report kind.
    """
    try:
        dim = GroupingDimension(dimension)
    except ValueError:
        raise InvalidDimensionError(str(dimension), report_kind) from None
    try:
        return extractors[dim]
    except KeyError:
        raise InvalidDimensionError(dim.value, report_kind) from None


@dataclass(frozen=True)
class Grouping:
    """Entities bucketed by key, in first-seen key order."""

    groups: dict[str, list]
    excluded: tuple

    @property
    def excluded_count(self) -> int:
        return len(self.excluded)

    @property
    def included(self) -> list:
        return [e for members in self.groups.values() for e in members]


def group_entities(
    entities: Iterable[E],
    dimension: GroupingDimension,
    extract: KeyExtractor,
    *,
    entity_id: Callable[[E], str] = lambda e: e.entity_id,
    strict: bool = False,
) -> Grouping:
    """Bucket entities by key; keyless entities are excluded.

    Raises:
        MissingGroupKeyError: For the first keyless entity when strict.
    """
    groups: dict[str, list] = {}
    excluded: list = []
    for entity in entities:
        key = extract(entity)
        if key is None or (isinstance(key, str) and not key.strip()):
            if strict:
                logger.error(
                    "group_key_missing",
                    extra={
                        "entity_id": entity_id(entity),
                        "dimension": dimension.value,
                    },
                )
                raise MissingGroupKeyError(entity_id(entity), dimension.value)
            excluded.append(entity)
            continue
        groups.setdefault(key, []).append(entity)

    if excluded:
        logger.warning(
            "entities_excluded_missing_key",
            extra={
                "dimension": dimension.value,
                "excluded_count": len(excluded),
                "sample_ids": [entity_id(e) for e in excluded[:5]],
            },
        )
    return Grouping(groups=groups, excluded=tuple(excluded))
