"""
FastAPI application for the inspection report service.

Production deployment configuration via environment variables.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from core.grouping import EmptySelectionError, GroupingContext, NumberingScope, Quarter
from core.models import ProjectRecords
from reporting.pdf_generator import ReportCancelled, ReportGenerator, ReportRequest, ReportSuccess
from utils.config import Config


logger = logging.getLogger(__name__)


# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]


# =============================================================================
# Request Models
# =============================================================================


class RiskFactorInput(BaseModel):
    """One risk assessment row."""
    task: str = ""
    hazard: str = ""
    mitigation: str = ""
    implemented: bool = False
    remark: str = ""


class ProjectInput(BaseModel):
    """Project fields shown on report pages."""
    project_id: str
    name: str = ""
    branch_name: Optional[str] = None
    division_name: Optional[str] = None
    company_name: Optional[str] = None
    extended_program_member: bool = False


class RecordInput(BaseModel):
    """One inspection; photos and signature are data URIs, photo-root paths or allow-listed URLs."""
    record_id: str
    inspection_date: str
    inspector_name: str = ""
    risk_factors: List[RiskFactorInput] = []
    photos: List[str] = []
    risk_assessment_photo: Optional[str] = None
    signature: Optional[str] = None
    extended_photo: Optional[str] = None
    extended_risk_factors: List[RiskFactorInput] = []
    supervisor: Optional[str] = None
    contractor: Optional[str] = None


class ProjectRecordsInput(BaseModel):
    project: ProjectInput
    records: List[RecordInput] = []


class ReportRequestInput(BaseModel):
    """Request body for report generation."""
    projects: List[ProjectRecordsInput]
    record_ids: Optional[List[str]] = None
    branch: Optional[str] = None
    quarter: Optional[str] = None
    file_name: Optional[str] = None
    scope: NumberingScope = NumberingScope.GROUP
    include_summary: bool = True


IMAGE_FIELDS = ("risk_assessment_photo", "signature", "extended_photo")


def check_image_source(source: str, config: Config) -> str:
    """
    Accept an image reference only if the server may load it for a client.

    Data URIs are always accepted. URLs must name a host in
    ``config.image_hosts`` and local paths must resolve inside
    ``config.photo_root``; relative paths are taken from that root.

    Returns:
        The source to hand to the renderer

    Raises:
        ValueError: If the source is outside those locations
    """
    if source.startswith("data:image/"):
        return source

    parsed = urlparse(source)
    if parsed.scheme in ("http", "https"):
        if (parsed.hostname or "").lower() in config.image_hosts:
            return source
        raise ValueError(f"Image host not allowed: {parsed.hostname}")

    # Single-letter schemes are Windows drive prefixes
    if len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported image source scheme: {parsed.scheme}")

    if config.photo_root:
        root = Path(config.photo_root).resolve()
        path = (root / source).resolve()
        if root in path.parents:
            return str(path)

    raise ValueError("Image paths must be inside the photo root")


def _check_record_images(record: dict, config: Config) -> None:
    try:
        record["photos"] = [check_image_source(source, config) for source in record["photos"]]
        for key in IMAGE_FIELDS:
            if record[key]:
                record[key] = check_image_source(record[key], config)
    except ValueError as e:
        raise ValueError(f"Record {record['record_id']}: {e}") from e


def to_report_request(body: ReportRequestInput, config: Config) -> ReportRequest:
    """
    Convert the HTTP body into a report request.

    Raises:
        InvalidRecordError: If a record cannot be parsed
        ValueError: If the quarter is malformed or an image source is not allowed
    """
    entries = [entry.model_dump() for entry in body.projects]
    for entry in entries:
        for record in entry["records"]:
            _check_record_images(record, config)

    project_records = [ProjectRecords.from_dict(entry) for entry in entries]
    context = GroupingContext(
        branch_name=body.branch or None,
        quarter=Quarter.parse(body.quarter) if body.quarter else None,
    )
    return ReportRequest(
        project_records=project_records,
        record_ids=body.record_ids,
        context=context,
        file_name=body.file_name,
        scope=body.scope,
        include_summary=body.include_summary,
    )


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()

    app = FastAPI(
        title="Inspection Report Engine",
        description="Paginated daily inspection reports",
        version="0.1.0",
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )

    @app.get("/health", include_in_schema=False)
    def health():
        """Health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    # CORS middleware - locked down for production
    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    generator = ReportGenerator(config)
    # One report renders at a time, in a worker thread
    render_lock = threading.Lock()

    def render(request: ReportRequest, workdir: str) -> ReportSuccess:
        with render_lock:
            try:
                result = generator.generate_sync(request, output_dir=workdir)
            except EmptySelectionError as e:
                raise HTTPException(status_code=422, detail=str(e))
            except ValueError as e:
                # Duplicate record ids
                raise HTTPException(status_code=400, detail=str(e))

        if isinstance(result, ReportCancelled):
            raise HTTPException(status_code=409, detail=result.message)
        return result

    @app.post("/api/reports")
    async def generate_report_endpoint(body: ReportRequestInput):
        """
        Generate a Daily Inspection Report PDF.

        Each request writes into its own temporary directory, removed once
        the response has been sent.

        Returns:
            - the PDF as a download
            - 400 if a record, an image source or the quarter is malformed
            - 422 if the selection contains no records
        """
        try:
            request = to_report_request(body, config)
        except ValueError as e:
            # InvalidRecordError, a rejected image or a malformed quarter
            raise HTTPException(status_code=400, detail=str(e))

        workdir = tempfile.mkdtemp(prefix="inspection-report-")
        try:
            result = await asyncio.to_thread(render, request, workdir)
        except Exception:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        logger.info("Serving %s (%d pages)", result.file_name, result.page_count)
        return FileResponse(
            path=result.path,
            filename=result.file_name,
            media_type="application/pdf",
            background=BackgroundTask(shutil.rmtree, workdir, ignore_errors=True),
        )

    return app


# Create app instance for uvicorn
app = create_app()
