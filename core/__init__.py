"""
Inspection Report Engine - Core Domain Logic

This module provides the read-only data model and the record grouping
that every report page is built from:
1. Models (Project, Record, RiskFactor)
2. Grouping (filter, partition, chronological order, sequence numbers)
"""

from .models import (
    InvalidRecordError,
    Project,
    ProjectRecords,
    Record,
    RiskFactor,
    parse_inspection_date,
)
from .grouping import (
    UNASSIGNED_BRANCH_LABEL,
    EmptySelectionError,
    GroupedSelection,
    GroupEntry,
    GroupingContext,
    NumberingScope,
    Quarter,
    RecordGroup,
    group_records,
)

__all__ = [
    # Models
    "InvalidRecordError",
    "Project",
    "ProjectRecords",
    "Record",
    "RiskFactor",
    "parse_inspection_date",
    # Grouping
    "UNASSIGNED_BRANCH_LABEL",
    "EmptySelectionError",
    "GroupedSelection",
    "GroupEntry",
    "GroupingContext",
    "NumberingScope",
    "Quarter",
    "RecordGroup",
    "group_records",
]
