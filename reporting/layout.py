"""
Page layout descriptions.

A ``PageModel`` is what the fit trimmer adjusts and the rendering backend
draws: a fixed paper size, an ordered list of content blocks, the anchor
block whose bottom edge must stay on the page, and the tables whose blank
rows may be removed. Models are immutable; every adjustment produces a new
model via ``dataclasses.replace``.

All lengths are millimetres measured from the top edge of the page.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from core.grouping import UNASSIGNED_BRANCH_LABEL
from utils.config import LayoutConfig
from utils.formatting import format_signoff_date

from .schemas import DetailPage, ExtendedDetail, RiskRow, StandardDetail, SummaryPage


class PageKind(Enum):
    SUMMARY = "summary"
    DETAIL = "detail"


class RowKind(Enum):
    """Whether a table row holds record content or is filler."""
    DATA = "data"
    BLANK = "blank"


# =============================================================================
# Blocks
# =============================================================================


@dataclass(frozen=True)
class BannerBlock:
    """Tag + boxed caption strip at the top of a summary page."""
    block_id: str
    tag: str
    caption: str
    space_before: float = 0.0


@dataclass(frozen=True)
class TitleBlock:
    """
    Page title. The space below it is the page's ``title_margin`` so the
    trimmer can shrink it.
    """
    block_id: str
    text: str
    subtitle: str = ""
    underline: bool = True
    space_before: float = 0.0


@dataclass(frozen=True)
class InfoGridBlock:
    """Label/value grid; each row is a flat sequence of (label, value) pairs."""
    block_id: str
    rows: Tuple[Tuple[Tuple[str, str], ...], ...]
    space_before: float = 0.0


@dataclass(frozen=True)
class PhotoBlock:
    """Side-by-side photo slots; ``source`` None renders the label as placeholder."""
    block_id: str
    slots: Tuple[Tuple[str, Optional[str]], ...]
    height: float
    space_before: float = 0.0


@dataclass(frozen=True)
class TableRow:
    cells: Tuple[str, ...]
    kind: RowKind = RowKind.DATA

    @property
    def is_blank(self) -> bool:
        return self.kind is RowKind.BLANK


@dataclass(frozen=True)
class TableBlock:
    """
    A table with a header row, an optional pinned totals row and body rows.

    Column widths are fractions of the usable page width.
    """
    block_id: str
    header: Tuple[str, ...]
    col_widths: Tuple[float, ...]
    rows: Tuple[TableRow, ...]
    row_height: float
    heading: str = ""
    heading_note: str = ""
    totals: Optional[Tuple[str, ...]] = None
    space_before: float = 0.0

    @property
    def blank_count(self) -> int:
        return sum(1 for r in self.rows if r.is_blank)

    @property
    def data_count(self) -> int:
        return sum(1 for r in self.rows if not r.is_blank)

    def without_last_blank(self) -> Optional["TableBlock"]:
        """This table minus its last blank row, or None if it has none."""
        for index in range(len(self.rows) - 1, -1, -1):
            if self.rows[index].is_blank:
                return replace(self, rows=self.rows[:index] + self.rows[index + 1:])
        return None


@dataclass(frozen=True)
class SignOffBlock:
    """Right-aligned date, inspector name and optional signature image."""
    block_id: str
    date_text: str
    inspector_name: str
    signature: Optional[str] = None
    space_before: float = 0.0


Block = Union[BannerBlock, TitleBlock, InfoGridBlock, PhotoBlock, TableBlock, SignOffBlock]


# =============================================================================
# Page Model
# =============================================================================


@dataclass(frozen=True)
class PageModel:
    """Layout description of one physical page."""
    kind: PageKind
    label: str
    width: float
    height: float
    top_padding: float
    side_padding: float
    title_margin: float
    usable_height: float
    blocks: Tuple[Block, ...]
    anchor_id: str
    primary_table_id: Optional[str] = None
    secondary_table_id: Optional[str] = None

    def block(self, block_id: str) -> Block:
        for block in self.blocks:
            if block.block_id == block_id:
                return block
        raise KeyError(f"Page {self.label} has no block {block_id!r}")

    def table(self, block_id: Optional[str]) -> Optional[TableBlock]:
        if block_id is None:
            return None
        block = self.block(block_id)
        return block if isinstance(block, TableBlock) else None

    def with_block(self, new_block: Block) -> "PageModel":
        """Copy of this page with the block of the same id replaced."""
        blocks = tuple(new_block if b.block_id == new_block.block_id else b for b in self.blocks)
        return replace(self, blocks=blocks)

    def tables(self) -> Tuple[TableBlock, ...]:
        return tuple(b for b in self.blocks if isinstance(b, TableBlock))

    @property
    def data_row_count(self) -> int:
        return sum(t.data_count for t in self.tables())

    @property
    def blank_row_count(self) -> int:
        return sum(t.blank_count for t in self.tables())

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.side_padding

    def image_sources(self) -> Tuple[str, ...]:
        """Every image the page references, in block order."""
        sources = []
        for block in self.blocks:
            if isinstance(block, PhotoBlock):
                sources.extend(src for _, src in block.slots if src)
            elif isinstance(block, SignOffBlock) and block.signature:
                sources.append(block.signature)
        return tuple(sources)


# =============================================================================
# Builders
# =============================================================================

SUMMARY_HEADER = ("No.", "Date", "Project", "District", "Risk factors\n(count)", "Note")
SUMMARY_COL_WIDTHS = (0.08, 0.12, 0.28, 0.24, 0.18, 0.10)

RISK_HEADER = ("Task", "Hazard", "Mitigation measures", "Implemented", "Remarks")
EXTENDED_RISK_HEADER = ("Task", "Hazard", "Preventive measures", "Implemented", "Remarks")
RISK_COL_WIDTHS = (0.15, 0.20, 0.35, 0.15, 0.15)

RISK_HEADING = "Key hazards and risk reduction measures (medium and high risk only)"
EXTENDED_RISK_HEADING = "Key hazards and preventive measures from the technical guidance report"
RISK_HEADING_NOTE = "Mandatory for work related to struck-by, collision and fall accidents"


def _summary_title(page: SummaryPage) -> Tuple[str, str]:
    branch = page.branch_name or (UNASSIGNED_BRANCH_LABEL if page.quarter else "")
    quarter = f" {page.quarter.label}" if page.quarter else ""
    caption = f"{branch} Daily Inspection Checklist".strip()
    title = f"{branch}{quarter} Daily Inspection Summary".strip()
    return caption, title


def build_summary_page(page: SummaryPage, config: LayoutConfig) -> PageModel:
    """Layout description for one summary page."""
    caption, title = _summary_title(page)

    rows = [
        TableRow(cells=(
            str(row.sequence_number),
            row.date_label,
            row.project_name,
            row.district,
            str(row.risk_factor_count),
            row.note,
        ))
        for row in page.rows
    ]
    rows.extend(TableRow(cells=("",) * len(SUMMARY_HEADER), kind=RowKind.BLANK) for _ in range(page.blank_rows))

    totals = None
    if page.totals is not None:
        totals = ("Total", "", f"{page.totals.record_count} inspections", "", str(page.totals.risk_factor_count), "")

    suffix = f" ({page.page_number}/{page.page_count})" if page.page_count > 1 else ""
    table = TableBlock(
        block_id="summary-table",
        header=SUMMARY_HEADER,
        col_widths=SUMMARY_COL_WIDTHS,
        rows=tuple(rows),
        row_height=config.summary_row_height,
        totals=totals,
        space_before=3.0,
    )

    return PageModel(
        kind=PageKind.SUMMARY,
        label=f"summary {caption}{suffix}",
        width=config.page_width,
        height=config.page_height,
        top_padding=config.summary_top_padding,
        side_padding=config.summary_side_padding,
        title_margin=config.title_margin,
        usable_height=config.summary_usable_height,
        blocks=(
            BannerBlock(block_id="banner", tag="Attachment", caption=caption),
            TitleBlock(block_id="title", text=title + suffix, space_before=3.0),
            table,
        ),
        anchor_id=table.block_id,
        primary_table_id=table.block_id,
    )


def _risk_table(block_id: str, rows: Sequence[RiskRow], header, heading: str, config: LayoutConfig) -> TableBlock:
    table_rows = tuple(
        TableRow(cells=("",) * len(header), kind=RowKind.BLANK)
        if row.blank
        else TableRow(cells=(row.task, row.hazard, row.mitigation, row.implemented_label, row.remark))
        for row in rows
    )
    return TableBlock(
        block_id=block_id,
        header=tuple(header),
        col_widths=RISK_COL_WIDTHS,
        rows=table_rows,
        row_height=config.risk_row_height,
        heading=heading,
        heading_note=RISK_HEADING_NOTE,
    )


def build_detail_page(detail: DetailPage, config: LayoutConfig) -> PageModel:
    """Layout description for one record's detail page."""
    info = detail.info
    grid = InfoGridBlock(
        block_id="info",
        rows=(
            (("No.", str(info.sequence_number)), ("Branch", info.branch_name), ("Project", info.project_name)),
            (("Supervisor", info.supervisor), ("Contractor", info.contractor)),
        ),
    )
    photos = PhotoBlock(
        block_id="photos",
        slots=tuple((slot.label, slot.source) for slot in detail.photos),
        height=config.photo_height,
    )
    primary = _risk_table("risk-table", detail.risk_rows, RISK_HEADER, RISK_HEADING, config)

    blocks = [TitleBlock(block_id="title", text=detail.title), grid, photos, primary]
    secondary_id = None
    if isinstance(detail, ExtendedDetail):
        secondary = _risk_table(
            "extended-risk-table", detail.extended_risk_rows, EXTENDED_RISK_HEADER, EXTENDED_RISK_HEADING, config
        )
        blocks.append(secondary)
        secondary_id = secondary.block_id
        blocks[0] = replace(blocks[0], subtitle="Site under technical disaster-prevention guidance")

    sign_off = SignOffBlock(
        block_id="sign-off",
        date_text=format_signoff_date(detail.sign_off.inspection_date),
        inspector_name=detail.sign_off.inspector_name,
        signature=detail.sign_off.signature,
        space_before=10.0,
    )
    blocks.append(sign_off)

    return PageModel(
        kind=PageKind.DETAIL,
        label=f"detail {detail.record_id} (#{detail.sequence_number})",
        width=config.page_width,
        height=config.page_height,
        top_padding=config.detail_top_padding,
        side_padding=config.side_padding,
        title_margin=config.title_margin,
        usable_height=config.detail_usable_height,
        blocks=tuple(blocks),
        anchor_id=sign_off.block_id,
        primary_table_id=primary.block_id,
        secondary_table_id=secondary_id,
    )


def build_page(view: Union[SummaryPage, StandardDetail, ExtendedDetail], config: LayoutConfig) -> PageModel:
    if isinstance(view, SummaryPage):
        return build_summary_page(view, config)
    return build_detail_page(view, config)
