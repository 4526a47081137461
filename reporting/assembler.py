"""
Document Assembler

Renders an ordered list of page jobs one at a time and appends each
finished page to a single PDF:
- Pages are built, settled, fitted, rendered and torn down strictly in order
- Cancellation is polled before every page; a cancelled run writes no file
- Progress is reported after every detail page
- Any backend failure aborts the whole run; nothing is saved
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from core.grouping import GroupedSelection, GroupingContext
from utils.config import LayoutConfig
from utils.formatting import format_compact_date, safe_filename

from .backend import DocumentWriter, PdfDocumentWriter, RenderBackend, RenderedPage
from .layout import PageModel
from .trimmer import FitResult, ShrinkAction, build_shrink_actions, fit_page


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[int, int], None]


# =============================================================================
# Cancellation
# =============================================================================


class ReportCancelledError(Exception):
    """Raised when a report run is cancelled between pages."""

    def __init__(self, completed_pages: int = 0):
        self.completed_pages = completed_pages
        super().__init__(f"Report generation cancelled after {completed_pages} page(s)")


class CancellationToken:
    """
    Cooperative cancellation flag.

    ``cancel`` may be called from any thread (e.g. a signal handler); the
    assembler checks the flag at page boundaries.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, completed_pages: int = 0) -> None:
        if self._event.is_set():
            raise ReportCancelledError(completed_pages)


# =============================================================================
# Jobs & Results
# =============================================================================


class PageJobKind(Enum):
    SUMMARY = "summary"
    DETAIL = "detail"


@dataclass(frozen=True)
class PageJob:
    """One page to render, in final document order."""
    kind: PageJobKind
    page: PageModel
    record_id: Optional[str] = None


@dataclass(frozen=True)
class AssembledDocument:
    """A saved report document."""
    path: Path
    page_count: int
    summary_pages: int
    detail_pages: int
    overflowing_pages: Tuple[str, ...] = ()


# =============================================================================
# File Naming
# =============================================================================


def derive_file_name(
    context: GroupingContext,
    selection: GroupedSelection,
    explicit: Optional[str] = None,
) -> str:
    """
    Output file name for a report run.

    An explicit name wins (sanitised, ``.pdf`` appended). Otherwise:
    - branch and quarter: ``{branch}_daily_inspections_{2025Q3}.pdf``
    - quarter only: ``daily_inspections_{2025Q3}.pdf``
    - branch only: ``{branch}_daily_inspections.pdf``
    - one project: ``daily_inspection_{project}_{YYYYMMDD}.pdf``
    - several projects: ``daily_inspections_{YYYYMMDD}_{n}records.pdf``

    Dates are the earliest inspection in the selection, so the same
    request always yields the same name.
    """
    if explicit and explicit.strip():
        stem = explicit.strip()
        if stem.lower().endswith(".pdf"):
            stem = stem[:-4]
        return f"{safe_filename(stem)}.pdf"

    if context.branch_name and context.quarter:
        return f"{safe_filename(context.branch_name)}_daily_inspections_{context.quarter.code}.pdf"
    if context.quarter:
        return f"daily_inspections_{context.quarter.code}.pdf"
    if context.branch_name:
        return f"{safe_filename(context.branch_name)}_daily_inspections.pdf"

    first = selection.first_entry()
    first_date = format_compact_date(first.record.inspection_date)
    project_ids = {entry.project.project_id for entry in selection.entries()}
    if len(project_ids) == 1:
        return f"daily_inspection_{safe_filename(first.project.name)}_{first_date}.pdf"
    return f"daily_inspections_{first_date}_{selection.record_count}records.pdf"


# =============================================================================
# Assembler
# =============================================================================


class DocumentAssembler:
    """
    Renders page jobs sequentially into one document.

    One assembler renders one run at a time; concurrent ``assemble`` calls
    on the same instance wait their turn.

    Usage:
        assembler = DocumentAssembler(ReportLabBackend(config), config)
        document = await assembler.assemble(jobs, Path("reports/out.pdf"))
    """

    def __init__(
        self,
        backend: RenderBackend,
        config: Optional[LayoutConfig] = None,
        writer_factory: Callable[[], DocumentWriter] = PdfDocumentWriter,
        actions: Optional[Sequence[ShrinkAction]] = None,
    ):
        self.backend = backend
        self.config = config or LayoutConfig()
        self.writer_factory = writer_factory
        self.actions = tuple(actions) if actions is not None else build_shrink_actions(self.config)
        self._lock = asyncio.Lock()

    async def render_page(self, job: PageJob) -> Tuple[RenderedPage, FitResult]:
        """Build, settle, fit and render one page, then tear its context down."""
        context = await self.backend.build(job.page)
        try:
            await self.backend.settle()
            fit = fit_page(
                job.page,
                context.anchor_bottom,
                job.page.usable_height,
                self.actions,
                self.config.max_fit_iterations,
            )
            if context.page is not fit.page:
                context.relayout(fit.page)
            rendered = await self.backend.rasterize(context)
        finally:
            context.close()
        return rendered, fit

    async def assemble(
        self,
        jobs: Sequence[PageJob],
        output_path: Union[str, Path],
        cancellation: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AssembledDocument:
        """
        Render ``jobs`` in order and save them as one PDF.

        Args:
            jobs: Pages in final document order
            output_path: Where to write the document
            cancellation: Token polled before every page
            on_progress: Called with (completed, total) detail pages

        Returns:
            AssembledDocument describing the saved file

        Raises:
            ReportCancelledError: If cancelled; no file is written
        """
        if not jobs:
            raise ValueError("No pages to assemble")

        cancellation = cancellation or CancellationToken()
        total_details = sum(1 for job in jobs if job.kind is PageJobKind.DETAIL)

        async with self._lock:
            writer = self.writer_factory()
            details_done = 0
            summaries_done = 0
            overflowing: List[str] = []

            for index, job in enumerate(jobs):
                cancellation.raise_if_cancelled(index)

                rendered, fit = await self.render_page(job)
                writer.add_page(rendered, first=index == 0)
                if not fit.fits:
                    overflowing.append(job.page.label)

                if job.kind is PageJobKind.DETAIL:
                    details_done += 1
                    if on_progress is not None:
                        on_progress(details_done, total_details)
                else:
                    summaries_done += 1

                # Page boundary: let other tasks run
                await asyncio.sleep(0)

            cancellation.raise_if_cancelled(len(jobs))
            path = writer.save(output_path)

        if overflowing:
            logger.debug("%d page(s) still overflow after trimming", len(overflowing))

        return AssembledDocument(
            path=path,
            page_count=writer.page_count,
            summary_pages=summaries_done,
            detail_pages=details_done,
            overflowing_pages=tuple(overflowing),
        )
