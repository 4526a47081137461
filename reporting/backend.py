"""
Rendering backend for inspection report pages.

The assembler talks to the backend through three small protocols:

- ``RenderBackend``: build a measurable render context for a page, wait one
  settle tick, and turn a context into a finished page
- ``RenderContext``: the single-owner staging area for one page; lays the
  page out, measures blocks and is closed before the next page starts
- ``DocumentWriter``: appends finished pages and saves the document

The ReportLab implementation lays pages out with platypus flowables, which
report their real size through ``wrap``. Pages are drawn as vectors on a
single A4 canvas rather than as bitmaps.
"""

import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple, Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Flowable, Paragraph, Table, TableStyle

from utils.config import LayoutConfig

from .layout import (
    BannerBlock,
    Block,
    InfoGridBlock,
    PageModel,
    PhotoBlock,
    SignOffBlock,
    TableBlock,
    TitleBlock,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Protocols
# =============================================================================


@dataclass(frozen=True)
class BoundingBox:
    """A block's box in millimetres, relative to the page's top-left corner."""
    left: float
    top: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclass(frozen=True)
class Placement:
    """A wrapped flowable and where it is drawn, in points from the bottom-left."""
    flowable: Flowable
    x: float
    y: float


@dataclass(frozen=True)
class RenderedPage:
    """A finished page, ready to be appended to the document."""
    label: str
    width: float  # points
    height: float  # points
    placements: Tuple[Placement, ...]

    def draw(self, canv: canvas.Canvas) -> None:
        for placement in self.placements:
            placement.flowable.drawOn(canv, placement.x, placement.y)


class RenderContext(Protocol):
    page: PageModel

    def relayout(self, page: PageModel) -> None: ...

    def measure(self, block_id: str) -> BoundingBox: ...

    def anchor_bottom(self, page: PageModel) -> float: ...

    def close(self) -> None: ...


class RenderBackend(Protocol):
    async def build(self, page: PageModel) -> RenderContext: ...

    async def settle(self) -> None: ...

    async def rasterize(self, context: RenderContext) -> RenderedPage: ...


class DocumentWriter(Protocol):
    @property
    def page_count(self) -> int: ...

    def add_page(self, rendered: RenderedPage, first: bool = False) -> None: ...

    def save(self, path: Union[str, Path]) -> Path: ...


# =============================================================================
# Color Palette & Styles
# =============================================================================


class Palette:
    """Print-friendly palette for inspection forms."""
    BLACK = colors.Color(0.1, 0.1, 0.1)
    CHARCOAL = colors.Color(0.2, 0.2, 0.22)
    SLATE = colors.Color(0.35, 0.38, 0.42)
    GRAY = colors.Color(0.5, 0.5, 0.5)
    LIGHT_GRAY = colors.Color(0.85, 0.85, 0.85)
    PALE_GRAY = colors.Color(0.95, 0.95, 0.95)
    WHITE = colors.white

    # Header cells
    HEADER = colors.Color(0.92, 0.94, 0.97)
    TOTALS = colors.Color(0.98, 0.96, 0.9)


_registered_fonts: Dict[str, Tuple[str, str]] = {}


def register_report_font(font_path: Optional[str]) -> Tuple[str, str]:
    """
    Register a TrueType font for report text.

    Project names and remarks are often Korean, which the built-in
    Helvetica cannot draw. Without a font path, or when the font cannot
    be loaded, Helvetica is used.

    Returns:
        (regular font name, bold font name)
    """
    if not font_path:
        return "Helvetica", "Helvetica-Bold"
    if font_path in _registered_fonts:
        return _registered_fonts[font_path]

    from reportlab.pdfbase import pdfmetrics
    from reportlab.pdfbase.ttfonts import TTFError, TTFont

    try:
        pdfmetrics.registerFont(TTFont("ReportFont", font_path))
    except (OSError, TTFError) as exc:
        logger.warning("Could not load report font %s, using Helvetica: %s", font_path, exc)
        return "Helvetica", "Helvetica-Bold"

    # One face only; bold text uses the same font
    _registered_fonts[font_path] = ("ReportFont", "ReportFont")
    return _registered_fonts[font_path]


def get_report_styles(base_font: str = "Helvetica", bold_font: str = "Helvetica-Bold") -> dict:
    """
    Create paragraph styles for inspection pages.
    Returns a StyleSheet with one style per page element.
    """
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='PageTitle',
        parent=styles['Normal'],
        fontSize=16,
        leading=20,
        textColor=Palette.BLACK,
        alignment=TA_CENTER,
        fontName=bold_font,
    ))

    styles.add(ParagraphStyle(
        name='PageSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        leading=13,
        textColor=Palette.SLATE,
        alignment=TA_CENTER,
        fontName=base_font,
        spaceBefore=2,
    ))

    styles.add(ParagraphStyle(
        name='BannerTag',
        parent=styles['Normal'],
        fontSize=10,
        leading=13,
        textColor=Palette.CHARCOAL,
        fontName=bold_font,
    ))

    styles.add(ParagraphStyle(
        name='BannerCaption',
        parent=styles['Normal'],
        fontSize=10,
        leading=13,
        textColor=Palette.CHARCOAL,
        alignment=TA_CENTER,
        fontName=base_font,
    ))

    styles.add(ParagraphStyle(
        name='TableHeading',
        parent=styles['Normal'],
        fontSize=10,
        leading=13,
        textColor=Palette.CHARCOAL,
        fontName=bold_font,
    ))

    styles.add(ParagraphStyle(
        name='TableNote',
        parent=styles['Normal'],
        fontSize=7.5,
        leading=10,
        textColor=Palette.GRAY,
        fontName=base_font,
        spaceAfter=3,
    ))

    styles.add(ParagraphStyle(
        name='HeaderCell',
        parent=styles['Normal'],
        fontSize=8.5,
        leading=11,
        textColor=Palette.CHARCOAL,
        alignment=TA_CENTER,
        fontName=bold_font,
    ))

    styles.add(ParagraphStyle(
        name='Cell',
        parent=styles['Normal'],
        fontSize=8.5,
        leading=11,
        textColor=Palette.CHARCOAL,
        alignment=TA_CENTER,
        fontName=base_font,
    ))

    styles.add(ParagraphStyle(
        name='SignOff',
        parent=styles['Normal'],
        fontSize=11,
        leading=15,
        textColor=Palette.BLACK,
        alignment=TA_RIGHT,
        fontName=base_font,
    ))

    return styles


def _para(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text or "").replace("\n", "<br/>"), style)


# =============================================================================
# Image Flowables
# =============================================================================


class PhotoCell(Flowable):
    """A fixed-size photo frame; draws a placeholder when there is no image."""

    def __init__(self, image: Optional[ImageReader], width: float, height: float, placeholder: str, font: str):
        super().__init__()
        self.image = image
        self._w, self._h = width, height
        self.placeholder = placeholder
        self.font = font

    def wrap(self, availW, availH):
        return self._w, self._h

    def draw(self):
        canv = self.canv
        if self.image is not None:
            canv.drawImage(self.image, 0, 0, width=self._w, height=self._h,
                           preserveAspectRatio=True, anchor='c', mask='auto')
            return
        canv.saveState()
        canv.setStrokeColor(Palette.LIGHT_GRAY)
        canv.setFillColor(Palette.PALE_GRAY)
        canv.rect(0, 0, self._w, self._h, fill=1)
        canv.setFillColor(Palette.GRAY)
        canv.setFont(self.font, 9)
        canv.drawCentredString(self._w / 2, self._h / 2 - 3, self.placeholder)
        canv.restoreState()


class SignatureCell(Flowable):
    """The '(signature)' mark with the signature image drawn over it."""

    def __init__(self, image: Optional[ImageReader], font: str, width: float = 28 * mm, height: float = 14 * mm):
        super().__init__()
        self.image = image
        self.font = font
        self._w, self._h = width, height

    def wrap(self, availW, availH):
        return self._w, self._h

    def draw(self):
        canv = self.canv
        canv.saveState()
        canv.setFont(self.font, 11)
        canv.setFillColor(Palette.SLATE)
        canv.drawCentredString(self._w / 2, self._h / 2 - 4, "(signature)")
        canv.restoreState()
        if self.image is not None:
            canv.drawImage(self.image, 0, 0, width=self._w, height=self._h,
                           preserveAspectRatio=True, anchor='c', mask='auto')


# =============================================================================
# Render Context
# =============================================================================

# Vertical gap between consecutive blocks, mm
BLOCK_GAP = 4.0
CELL_PADDING = 1.5 * mm


class ReportLabRenderContext:
    """
    Staging area for a single page.

    Holds the loaded images and the current layout of the page. Every
    ``relayout`` rebuilds the flowables from the page model and re-wraps
    them, so measurements always reflect the latest shrink step.
    """

    def __init__(self, page: PageModel, styles: dict, images: Dict[str, Optional[ImageReader]], fonts: Tuple[str, str]):
        self.page = page
        self._styles = styles
        self._images = images
        self._base_font, self._bold_font = fonts
        self._placements: List[Placement] = []
        self._boxes: Dict[str, BoundingBox] = {}
        self.closed = False
        self.relayout(page)

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    def relayout(self, page: PageModel) -> None:
        if self.closed:
            raise RuntimeError(f"Render context for {self.page.label} is closed")

        self.page = page
        self._placements = []
        self._boxes = {}

        page_height = page.height * mm
        width = page.content_width * mm
        left = page.side_padding * mm
        cursor = page.top_padding  # mm

        for index, block in enumerate(page.blocks):
            if index > 0 and not isinstance(page.blocks[index - 1], TitleBlock):
                cursor += BLOCK_GAP
            cursor += block.space_before

            top = cursor
            for flowable in self._flowables(block, width):
                flowable_width, height = flowable.wrap(width, page_height)
                x = left
                if getattr(flowable, 'hAlign', 'LEFT') == 'RIGHT':
                    x = left + width - flowable_width
                self._placements.append(Placement(flowable, x, page_height - cursor * mm - height))
                cursor += height / mm

            self._boxes[block.block_id] = BoundingBox(page.side_padding, top, page.content_width, cursor - top)
            if isinstance(block, TitleBlock):
                cursor += page.title_margin

    def measure(self, block_id: str) -> BoundingBox:
        try:
            return self._boxes[block_id]
        except KeyError:
            raise KeyError(f"Block {block_id!r} is not laid out on {self.page.label}") from None

    def anchor_bottom(self, page: PageModel) -> float:
        """Lay out ``page`` and return its anchor block's bottom edge in mm."""
        self.relayout(page)
        return self.measure(page.anchor_id).bottom

    def snapshot(self) -> RenderedPage:
        return RenderedPage(
            label=self.page.label,
            width=self.page.width * mm,
            height=self.page.height * mm,
            placements=tuple(self._placements),
        )

    def close(self) -> None:
        self._placements = []
        self._boxes = {}
        self._images = {}
        self.closed = True

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _flowables(self, block: Block, width: float) -> List[Flowable]:
        if isinstance(block, BannerBlock):
            return [self._banner(block, width)]
        if isinstance(block, TitleBlock):
            return self._title(block)
        if isinstance(block, InfoGridBlock):
            return [self._info_grid(block, width)]
        if isinstance(block, PhotoBlock):
            return [self._photos(block, width)]
        if isinstance(block, TableBlock):
            return self._table(block, width)
        if isinstance(block, SignOffBlock):
            return self._sign_off(block)
        raise TypeError(f"Unsupported block type: {type(block).__name__}")

    def _banner(self, block: BannerBlock, width: float) -> Table:
        table = Table(
            [[_para(block.tag, self._styles['BannerTag']), _para(block.caption, self._styles['BannerCaption'])]],
            colWidths=[30 * mm, width - 30 * mm],
        )
        table.setStyle(TableStyle([
            ('BOX', (1, 0), (1, 0), 0.8, Palette.CHARCOAL),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 2 * mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2 * mm),
        ]))
        return table

    def _title(self, block: TitleBlock) -> List[Flowable]:
        text = escape(block.text)
        if block.underline:
            text = f"<u>{text}</u>"
        flowables: List[Flowable] = [Paragraph(text, self._styles['PageTitle'])]
        if block.subtitle:
            flowables.append(_para(block.subtitle, self._styles['PageSubtitle']))
        return flowables

    def _info_grid(self, block: InfoGridBlock, width: float) -> Table:
        columns = max(len(row) for row in block.rows) * 2
        data = []
        spans = []
        for r, row in enumerate(block.rows):
            cells = []
            for label, value in row:
                cells.append(_para(label, self._styles['HeaderCell']))
                cells.append(_para(value, self._styles['Cell']))
            if len(cells) < columns:
                spans.append(('SPAN', (len(cells) - 1, r), (columns - 1, r)))
                cells.extend([""] * (columns - len(cells)))
            data.append(cells)

        label_w = 20 * mm
        value_w = (width - label_w * (columns // 2)) / (columns // 2)
        table = Table(data, colWidths=[label_w if c % 2 == 0 else value_w for c in range(columns)])
        style = [
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.CHARCOAL),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 2 * mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2 * mm),
        ]
        style.extend(('BACKGROUND', (c, 0), (c, -1), Palette.HEADER) for c in range(0, columns, 2))
        style.extend(spans)
        table.setStyle(TableStyle(style))
        return table

    def _photos(self, block: PhotoBlock, width: float) -> Table:
        col_w = width / len(block.slots)
        inner_w = col_w - 2 * CELL_PADDING
        labels = [_para(label, self._styles['HeaderCell']) for label, _ in block.slots]
        cells = [
            PhotoCell(self._images.get(source) if source else None, inner_w, block.height * mm,
                      "No photo" if not source else "Image unavailable", self._base_font)
            for _, source in block.slots
        ]
        table = Table([labels, cells], colWidths=[col_w] * len(block.slots))
        table.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.CHARCOAL),
            ('BACKGROUND', (0, 0), (-1, 0), Palette.HEADER),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LEFTPADDING', (0, 0), (-1, -1), CELL_PADDING),
            ('RIGHTPADDING', (0, 0), (-1, -1), CELL_PADDING),
        ]))
        return table

    def _table(self, block: TableBlock, width: float) -> List[Flowable]:
        flowables: List[Flowable] = []
        if block.heading:
            flowables.append(_para(block.heading, self._styles['TableHeading']))
        if block.heading_note:
            flowables.append(_para(block.heading_note, self._styles['TableNote']))

        col_widths = [width * fraction for fraction in block.col_widths]
        rows = [[_para(text, self._styles['HeaderCell']) for text in block.header]]
        totals_index = None
        if block.totals is not None:
            totals_index = len(rows)
            rows.append([_para(text, self._styles['HeaderCell']) for text in block.totals])
        rows.extend([_para(text, self._styles['Cell']) for text in row.cells] for row in block.rows)

        # Rows never shrink below the configured height; longer content grows them
        min_height = block.row_height * mm
        heights = []
        for row in rows:
            content = max(
                cell.wrap(w - 2 * CELL_PADDING, 1000 * mm)[1] for cell, w in zip(row, col_widths)
            )
            heights.append(max(min_height, content + 2 * CELL_PADDING))

        table = Table(rows, colWidths=col_widths, rowHeights=heights)
        style = [
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.CHARCOAL),
            ('BACKGROUND', (0, 0), (-1, 0), Palette.HEADER),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), CELL_PADDING),
            ('BOTTOMPADDING', (0, 0), (-1, -1), CELL_PADDING),
            ('LEFTPADDING', (0, 0), (-1, -1), CELL_PADDING),
            ('RIGHTPADDING', (0, 0), (-1, -1), CELL_PADDING),
        ]
        if totals_index is not None:
            style.append(('BACKGROUND', (0, totals_index), (-1, totals_index), Palette.TOTALS))
        table.setStyle(TableStyle(style))
        flowables.append(table)
        return flowables

    def _sign_off(self, block: SignOffBlock) -> List[Flowable]:
        signature = self._images.get(block.signature) if block.signature else None
        table = Table(
            [
                [_para(block.date_text, self._styles['SignOff']), ""],
                [_para(f"Inspector  {block.inspector_name}", self._styles['SignOff']),
                 SignatureCell(signature, self._base_font)],
            ],
            colWidths=[70 * mm, 32 * mm],
            hAlign='RIGHT',
        )
        table.setStyle(TableStyle([
            ('SPAN', (0, 0), (1, 0)),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 1 * mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 1 * mm),
        ]))
        return [table]


# =============================================================================
# Backend
# =============================================================================


def _describe_source(source: str) -> str:
    return source[:40] + "..." if source.startswith("data:") else source


class ReportLabBackend:
    """
    ReportLab implementation of ``RenderBackend``.

    Usage:
        backend = ReportLabBackend(config)
        context = await backend.build(page)
        await backend.settle()
        rendered = await backend.rasterize(context)
        context.close()
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self.fonts = register_report_font(self.config.font_path)
        self.styles = get_report_styles(*self.fonts)

    async def load_image(self, source: str) -> Optional[ImageReader]:
        """
        Load one image off the event loop.

        A load that does not finish within the configured timeout is drawn
        as a placeholder. Unreadable images raise.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(ImageReader, source),
                timeout=self.config.image_load_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Image load timed out after %.1fs, using placeholder: %s",
                self.config.image_load_timeout,
                _describe_source(source),
            )
            return None

    async def build(self, page: PageModel) -> ReportLabRenderContext:
        images: Dict[str, Optional[ImageReader]] = {}
        for source in page.image_sources():
            if source not in images:
                images[source] = await self.load_image(source)
        return ReportLabRenderContext(page, self.styles, images, self.fonts)

    async def settle(self) -> None:
        await asyncio.sleep(self.config.settle_delay)

    async def rasterize(self, context: ReportLabRenderContext) -> RenderedPage:
        return context.snapshot()


# =============================================================================
# Document Writer
# =============================================================================


class PdfDocumentWriter:
    """Appends rendered pages to one PDF canvas held in memory."""

    def __init__(self, title: str = "Daily Inspection Report", author: str = ""):
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer)
        self._canvas.setTitle(title)
        if author:
            self._canvas.setAuthor(author)
        self._page_count = 0
        self._saved = False

    @property
    def page_count(self) -> int:
        return self._page_count

    def add_page(self, rendered: RenderedPage, first: bool = False) -> None:
        """Append ``rendered`` as the next page (``first`` asserts it is page one)."""
        if self._saved:
            raise RuntimeError("Document has already been saved")
        if first and self._page_count:
            raise ValueError("Document already has pages")
        self._canvas.setPageSize((rendered.width, rendered.height))
        rendered.draw(self._canvas)
        self._canvas.showPage()
        self._page_count += 1

    def to_bytes(self) -> bytes:
        if not self._saved:
            self._canvas.save()
            self._saved = True
        return self._buffer.getvalue()

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_bytes())
        return path
