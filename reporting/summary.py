"""
Summary Table Paginator

Turns one group of inspection records into summary pages: a header row, a
totals row for the whole group, up to ``summary_rows_per_page`` data rows,
and blank filler rows so short groups still fill most of the page.
"""

import re
from typing import List, Optional, Sequence

from core.grouping import GroupedSelection, RecordGroup
from utils.config import LayoutConfig
from utils.formatting import format_short_date

from .schemas import SummaryPage, SummaryRow, SummaryTotals


DEFAULT_DISTRICT_TOKENS = ("district", "지구")


def extract_district(project_name: str, tokens: Sequence[str] = DEFAULT_DISTRICT_TOKENS) -> str:
    """
    Derive the district label from a project name.

    - If the name contains a district token preceded by some text, the label
      runs up to and including the first such token.
    - Otherwise it is everything before the first space.
    - Otherwise (no space) it is the whole name.

    Token matching is case-insensitive; the label keeps the original casing.
    """
    if not project_name:
        return "-"

    earliest: Optional[int] = None
    for token in tokens:
        if not token:
            continue
        match = re.search(rf"^.+?{re.escape(token)}", project_name, flags=re.IGNORECASE)
        if match and (earliest is None or match.end() < earliest):
            earliest = match.end()
    if earliest is not None:
        return project_name[:earliest]

    space = project_name.find(" ")
    if space > 0:
        return project_name[:space]
    return project_name


def summary_rows(group: RecordGroup, selection: GroupedSelection, config: LayoutConfig) -> List[SummaryRow]:
    """Build the data rows of a group, numbered from the selection."""
    rows = []
    for entry in group.entries:
        record, project = entry.record, entry.project
        rows.append(SummaryRow(
            sequence_number=selection.sequence_number(record.record_id),
            record_id=record.record_id,
            inspection_date=record.inspection_date,
            date_label=format_short_date(record.inspection_date),
            project_name=project.display_name,
            district=extract_district(project.name, config.district_tokens),
            risk_factor_count=record.risk_factor_count,
            note=config.extended_program_note if project.extended_program_member else "",
        ))
    return rows


def blank_row_count(data_rows: int, config: LayoutConfig) -> int:
    """Filler rows for a page holding ``data_rows`` records."""
    return max(0, min(config.summary_blank_row_cap, config.summary_rows_per_page - data_rows))


def paginate_summary(
    group: RecordGroup,
    selection: GroupedSelection,
    config: Optional[LayoutConfig] = None,
) -> List[SummaryPage]:
    """
    Split a group's summary table into pages.

    Rows keep their order across pages, so numbering on page 2 continues
    where page 1 stopped. The totals always cover the whole group. An empty
    group still yields one page of blank rows.

    Args:
        group: Group to summarise
        selection: The grouping result that owns the numbering
        config: Layout parameters

    Returns:
        Summary pages in order
    """
    config = config or LayoutConfig()
    rows = summary_rows(group, selection, config)
    capacity = config.summary_rows_per_page

    chunks = [rows[i:i + capacity] for i in range(0, len(rows), capacity)] or [[]]
    totals = SummaryTotals(
        record_count=len(rows),
        risk_factor_count=sum(r.risk_factor_count for r in rows),
    )

    pages = []
    for index, chunk in enumerate(chunks):
        show_totals = config.summary_totals_every_page or index == 0
        pages.append(SummaryPage(
            branch_name=group.branch_name,
            quarter=group.quarter,
            page_number=index + 1,
            page_count=len(chunks),
            rows=tuple(chunk),
            blank_rows=blank_row_count(len(chunk), config),
            totals=totals if show_totals else None,
        ))
    return pages
