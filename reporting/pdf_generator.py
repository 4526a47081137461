"""
Daily Inspection Report generator.

Produces one PDF per request from (project, records) pairs:
1. Group and number the selected records
2. For each group: its summary pages, then one detail page per record
3. Fit every page to A4 and append it to the document, in that order

Library Choice: ReportLab
- Pure Python, no browser or rendering engine required
- Deterministic output (same input = same PDF)
- Flowables report their real size, which the fit trimmer relies on
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from core.grouping import (
    GroupedSelection,
    GroupingContext,
    NumberingScope,
    group_records,
)
from core.models import ProjectRecords
from utils.config import Config

from .assembler import (
    CancellationToken,
    DocumentAssembler,
    PageJob,
    PageJobKind,
    ProgressCallback,
    ReportCancelledError,
    derive_file_name,
)
from .backend import DocumentWriter, PdfDocumentWriter, RenderBackend, ReportLabBackend
from .layout import build_detail_page, build_summary_page
from .summary import paginate_summary
from .templates import select_template


logger = logging.getLogger(__name__)


# =============================================================================
# Report Generation Result Types
# =============================================================================

@dataclass
class ReportSuccess:
    """Returned when PDF generation succeeds."""
    path: Path
    file_name: str
    page_count: int
    summary_pages: int
    detail_pages: int
    overflowing_pages: Tuple[str, ...] = ()


@dataclass
class ReportCancelled:
    """Returned when the caller cancelled the run; no file was written."""
    completed_pages: int = 0
    message: str = "Report generation was cancelled."


# Type alias for generate return value
ReportResult = Union[ReportSuccess, ReportCancelled]


@dataclass
class ReportRequest:
    """Everything needed to produce one report document."""
    project_records: Sequence[ProjectRecords]
    record_ids: Optional[Sequence[str]] = None
    context: GroupingContext = field(default_factory=GroupingContext)
    file_name: Optional[str] = None
    scope: NumberingScope = NumberingScope.GROUP
    include_summary: bool = True


# =============================================================================
# Report Generator Class
# =============================================================================

class ReportGenerator:
    """
    Generates Daily Inspection Report PDFs.

    Usage:
        generator = ReportGenerator()
        result = await generator.generate(ReportRequest(project_records))

    Pages are rendered one at a time. The same request always produces
    the same pages in the same order under the same file name.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        backend: Optional[RenderBackend] = None,
        writer_factory: Callable[[], DocumentWriter] = PdfDocumentWriter,
    ):
        """Initialize the generator with its rendering backend."""
        self.config = config or Config.load()
        self.layout = self.config.layout
        self.output_dir = Path(self.config.output_dir)
        self.backend = backend or ReportLabBackend(self.layout)
        self.assembler = DocumentAssembler(self.backend, self.layout, writer_factory)

    def plan(self, selection: GroupedSelection, include_summary: bool = True) -> List[PageJob]:
        """
        Lay out every page of the report in document order.

        For each group: its summary pages, then one detail page per record
        in the group's chronological order.
        """
        jobs: List[PageJob] = []
        for group in selection.groups:
            if include_summary:
                for summary_page in paginate_summary(group, selection, self.layout):
                    jobs.append(PageJob(PageJobKind.SUMMARY, build_summary_page(summary_page, self.layout)))

            for entry in group.entries:
                record_id = entry.record.record_id
                detail = select_template(
                    entry.record,
                    entry.project,
                    selection.sequence_number(record_id),
                    self.layout,
                )
                jobs.append(PageJob(PageJobKind.DETAIL, build_detail_page(detail, self.layout), record_id))
        return jobs

    async def generate(
        self,
        request: ReportRequest,
        cancellation: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ) -> ReportResult:
        """
        Generate a Daily Inspection Report PDF.

        Args:
            request: Records, filters and naming for the report
            cancellation: Token checked between pages
            on_progress: Called with (completed, total) detail pages
            output_dir: Directory for this run (defaults to the configured one)

        Returns:
            ReportSuccess with path if the PDF was written
            ReportCancelled if the run was cancelled

        Raises:
            EmptySelectionError: If no records are selected (before any rendering)
        """
        selection = group_records(
            request.project_records,
            record_ids=request.record_ids,
            context=request.context,
            scope=request.scope,
        )
        file_name = derive_file_name(request.context, selection, request.file_name)
        jobs = self.plan(selection, request.include_summary)
        output_path = (Path(output_dir) if output_dir else self.output_dir) / file_name

        logger.info(
            "Generating %s: %d record(s) in %d group(s), %d page(s)",
            file_name,
            selection.record_count,
            len(selection.groups),
            len(jobs),
        )

        try:
            document = await self.assembler.assemble(jobs, output_path, cancellation, on_progress)
        except ReportCancelledError as exc:
            logger.info("Report %s cancelled after %d page(s)", file_name, exc.completed_pages)
            return ReportCancelled(completed_pages=exc.completed_pages)

        logger.info("Report written to %s (%d pages)", document.path, document.page_count)

        return ReportSuccess(
            path=document.path,
            file_name=file_name,
            page_count=document.page_count,
            summary_pages=document.summary_pages,
            detail_pages=document.detail_pages,
            overflowing_pages=document.overflowing_pages,
        )

    def generate_sync(
        self,
        request: ReportRequest,
        cancellation: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ) -> ReportResult:
        """Run ``generate`` to completion from synchronous code."""
        return asyncio.run(self.generate(request, cancellation, on_progress, output_dir))


# =============================================================================
# Convenience Function
# =============================================================================

def generate_report(
    project_records: Sequence[ProjectRecords],
    record_ids: Optional[Sequence[str]] = None,
    context: Optional[GroupingContext] = None,
    file_name: Optional[str] = None,
    scope: NumberingScope = NumberingScope.GROUP,
    include_summary: bool = True,
    config: Optional[Config] = None,
) -> ReportResult:
    """
    Generate a Daily Inspection Report PDF.

    Synchronous entry point; runs the async generator to completion.

    Args:
        project_records: (project, records) pairs
        record_ids: Optional explicit subset of records
        context: Optional branch and/or quarter
        file_name: Optional output name (derived when omitted)
        scope: Sequence numbering scope
        include_summary: Whether to emit summary pages
        config: Application configuration

    Returns:
        ReportSuccess: If the PDF was written (contains path and page counts)
        ReportCancelled: If the run was cancelled

    Example:
        from reporting import generate_report
        from reporting.schemas import create_sample_selection

        result = generate_report(create_sample_selection())

        if isinstance(result, ReportSuccess):
            print(f"Report generated: {result.path}")
    """
    request = ReportRequest(
        project_records=project_records,
        record_ids=record_ids,
        context=context or GroupingContext(),
        file_name=file_name,
        scope=scope,
        include_summary=include_summary,
    )
    return ReportGenerator(config).generate_sync(request)
