"""
Record Grouper/Sorter

Partitions a selection of inspection records into report groups and
assigns the sequence numbers shown on both the summary table and each
record's own detail page:
- Filtering by explicit record ids, reporting quarter and branch
- Partitioning by branch (one group per branch when only a quarter is given)
- Chronological ordering with ties kept in input order
- 1-based numbering, per group or across the whole selection

The numbering computed here is the only numbering used downstream. Summary
rows and detail pages both read it from the returned ``GroupedSelection``,
so a record always shows the same number on every page of a report run.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Project, ProjectRecords, Record


logger = logging.getLogger(__name__)


UNASSIGNED_BRANCH_LABEL = "Unassigned"


# =============================================================================
# Exceptions
# =============================================================================


class EmptySelectionError(ValueError):
    """Raised when a report request selects no records."""

    def __init__(self, message: str = "No inspection records match the selection."):
        super().__init__(message)


# =============================================================================
# Grouping Keys
# =============================================================================

_QUARTER_PATTERN = re.compile(r"^\s*(\d{4})\s*-?\s*Q([1-4])\s*$", re.IGNORECASE)


@dataclass(frozen=True, order=True)
class Quarter:
    """A calendar quarter, written ``2025Q3``."""

    year: int
    number: int

    def __post_init__(self):
        if self.number not in (1, 2, 3, 4):
            raise ValueError(f"Quarter number must be 1-4, got {self.number}")

    @classmethod
    def parse(cls, text: str) -> "Quarter":
        """Parse ``2025Q3`` (also ``2025-Q3``, case-insensitive)."""
        match = _QUARTER_PATTERN.match(text or "")
        if not match:
            raise ValueError(f"Invalid quarter {text!r}; expected e.g. 2025Q3")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, value: date) -> "Quarter":
        """The quarter a date falls in."""
        return cls(value.year, (value.month - 1) // 3 + 1)

    @property
    def label(self) -> str:
        return f"Q{self.number}"

    @property
    def code(self) -> str:
        return f"{self.year}Q{self.number}"

    def contains(self, value: date) -> bool:
        return Quarter.of(value) == self

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class GroupingContext:
    """Optional grouping keys for a report request."""

    branch_name: Optional[str] = None
    quarter: Optional[Quarter] = None

    @property
    def is_empty(self) -> bool:
        return self.branch_name is None and self.quarter is None


class NumberingScope(Enum):
    """Which records share one run of sequence numbers."""

    GROUP = "group"  # restart at 1 in every group
    SELECTION = "selection"  # one run across the whole filtered selection


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class GroupEntry:
    """A record paired with its project, as it appears in a group."""

    record: Record
    project: Project


@dataclass(frozen=True)
class RecordGroup:
    """A (branch, quarter) pairing and its chronologically ordered records."""

    branch_name: Optional[str]
    quarter: Optional[Quarter]
    entries: Tuple[GroupEntry, ...]

    @property
    def branch_label(self) -> str:
        return self.branch_name or UNASSIGNED_BRANCH_LABEL

    @property
    def records(self) -> Tuple[Record, ...]:
        return tuple(e.record for e in self.entries)

    @property
    def risk_factor_total(self) -> int:
        return sum(e.record.risk_factor_count for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class GroupedSelection:
    """
    The outcome of grouping: ordered groups plus one numbering.

    ``sequence_number`` is the single source of record numbers for every
    page of the report.
    """

    groups: Tuple[RecordGroup, ...]
    scope: NumberingScope
    context: GroupingContext
    numbers: Dict[str, int]

    def sequence_number(self, record_id: str) -> int:
        try:
            return self.numbers[record_id]
        except KeyError:
            raise KeyError(f"Record {record_id} is not part of this selection") from None

    @property
    def record_count(self) -> int:
        return sum(len(g) for g in self.groups)

    def entries(self) -> Iterable[GroupEntry]:
        for group in self.groups:
            yield from group.entries

    def first_entry(self) -> GroupEntry:
        """The chronologically earliest record of the selection."""
        return min(
            enumerate(self.entries()),
            key=lambda pair: (pair[1].record.inspection_date, pair[0]),
        )[1]


# =============================================================================
# Grouping
# =============================================================================


def chronological(entries: Sequence[GroupEntry]) -> List[GroupEntry]:
    """Sort by inspection date; ``sorted`` is stable so ties keep input order."""
    return sorted(entries, key=lambda e: e.record.inspection_date)


def _select(
    project_records: Sequence[ProjectRecords],
    record_ids: Optional[Iterable[str]],
    context: GroupingContext,
) -> List[GroupEntry]:
    """Flatten the input and apply the id, quarter and branch filters."""
    wanted = set(record_ids) if record_ids else None
    selected: List[GroupEntry] = []

    for pr in project_records:
        if context.branch_name is not None and pr.project.branch_name != context.branch_name:
            continue
        for record in pr.records:
            if wanted is not None and record.record_id not in wanted:
                continue
            if context.quarter is not None and not context.quarter.contains(record.inspection_date):
                continue
            selected.append(GroupEntry(record=record, project=pr.project))

    return selected


def _partition(entries: List[GroupEntry], context: GroupingContext) -> List[RecordGroup]:
    if context.branch_name is not None or context.quarter is None:
        return [RecordGroup(context.branch_name, context.quarter, tuple(chronological(entries)))]

    by_branch: Dict[Optional[str], List[GroupEntry]] = {}
    for entry in entries:
        by_branch.setdefault(entry.project.branch_name, []).append(entry)

    ordered_keys = sorted(by_branch, key=lambda b: (b is None, b or ""))
    return [
        RecordGroup(branch, context.quarter, tuple(chronological(by_branch[branch])))
        for branch in ordered_keys
    ]


def _number(groups: List[RecordGroup], scope: NumberingScope) -> Dict[str, int]:
    numbers: Dict[str, int] = {}
    if scope is NumberingScope.GROUP:
        for group in groups:
            for index, entry in enumerate(group.entries, start=1):
                numbers[entry.record.record_id] = index
        return numbers

    flat = [e for g in groups for e in g.entries]
    for index, entry in enumerate(chronological(flat), start=1):
        numbers[entry.record.record_id] = index
    return numbers


def group_records(
    project_records: Sequence[ProjectRecords],
    record_ids: Optional[Iterable[str]] = None,
    context: Optional[GroupingContext] = None,
    scope: NumberingScope = NumberingScope.GROUP,
) -> GroupedSelection:
    """
    Group and number a selection of inspection records.

    Args:
        project_records: (project, records) pairs from the data layer
        record_ids: Explicit subset of record ids; None or empty keeps all
        context: Optional branch and/or quarter keys
        scope: Numbering scope to expose to every page of the report

    Returns:
        GroupedSelection with ordered groups and sequence numbers

    Raises:
        EmptySelectionError: If no records are supplied or none survive
            filtering
    """
    context = context or GroupingContext()

    if not any(pr.records for pr in project_records):
        raise EmptySelectionError("No inspection records were supplied.")

    entries = _select(project_records, record_ids, context)
    if not entries:
        raise EmptySelectionError()

    seen: Dict[str, int] = {}
    for entry in entries:
        seen[entry.record.record_id] = seen.get(entry.record.record_id, 0) + 1
    duplicates = sorted(rid for rid, count in seen.items() if count > 1)
    if duplicates:
        raise ValueError(f"Duplicate record ids in selection: {', '.join(duplicates)}")

    groups = _partition(entries, context)
    numbers = _number(groups, scope)

    logger.debug(
        "Grouped %d records into %d group(s) (scope=%s)",
        len(entries),
        len(groups),
        scope.value,
    )

    return GroupedSelection(
        groups=tuple(groups),
        scope=scope,
        context=context,
        numbers=numbers,
    )
