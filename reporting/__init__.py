"""
Reporting module for the Inspection Report Engine.

Generates paginated Daily Inspection Report PDFs: per group, summary
pages followed by one detail page per record.

Usage:
    from reporting import generate_report
    from reporting.schemas import create_sample_selection

    result = generate_report(create_sample_selection())

Async, with progress and cancellation:
    from reporting import CancellationToken, ReportGenerator, ReportRequest

    token = CancellationToken()
    result = await ReportGenerator().generate(
        ReportRequest(project_records), token, on_progress=print
    )
"""

from .pdf_generator import (
    ReportCancelled,
    ReportGenerator,
    ReportRequest,
    ReportResult,
    ReportSuccess,
    generate_report,
)
from .assembler import (
    AssembledDocument,
    CancellationToken,
    DocumentAssembler,
    PageJob,
    PageJobKind,
    ReportCancelledError,
    derive_file_name,
)
from .backend import PdfDocumentWriter, ReportLabBackend
from .layout import PageModel, build_detail_page, build_summary_page
from .schemas import (
    DetailPage,
    ExtendedDetail,
    StandardDetail,
    SummaryPage,
    TemplateKind,
    create_sample_selection,
)
from .summary import extract_district, paginate_summary
from .templates import quarter_label, select_template
from .trimmer import FitResult, build_shrink_actions, fit_page

__all__ = [
    # Generator
    "ReportGenerator",
    "ReportRequest",
    "ReportResult",
    "ReportSuccess",
    "ReportCancelled",
    "generate_report",
    # Assembly
    "AssembledDocument",
    "CancellationToken",
    "DocumentAssembler",
    "PageJob",
    "PageJobKind",
    "ReportCancelledError",
    "derive_file_name",
    "PdfDocumentWriter",
    "ReportLabBackend",
    # Pages
    "PageModel",
    "build_detail_page",
    "build_summary_page",
    "DetailPage",
    "ExtendedDetail",
    "StandardDetail",
    "SummaryPage",
    "TemplateKind",
    "create_sample_selection",
    "extract_district",
    "paginate_summary",
    "quarter_label",
    "select_template",
    # Fitting
    "FitResult",
    "build_shrink_actions",
    "fit_page",
]
