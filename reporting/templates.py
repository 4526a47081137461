"""
Detail Page Template Selector

Chooses the detail page template for one record and fills it:
- STANDARD: two photos, one risk table
- EXTENDED: adds the extended-program photo and a second risk table

The choice is made once, here. Later stages dispatch on the returned
variant instead of re-checking optional record fields.
"""

from datetime import date
from typing import Optional, Sequence, Tuple

from core.grouping import Quarter
from core.models import Project, Record, RiskFactor
from utils.config import LayoutConfig

from .schemas import (
    BasicInfo,
    DetailPage,
    ExtendedDetail,
    PhotoSlot,
    RiskRow,
    SignOff,
    StandardDetail,
)


SITE_PHOTO_LABEL = "Inspection photo"
RISK_ASSESSMENT_PHOTO_LABEL = "Risk assessment photo"
EXTENDED_PHOTO_LABEL = "Technical guidance report"


def quarter_label(value: date) -> str:
    """Q1 for January-March through Q4 for October-December."""
    return Quarter.of(value).label


def risk_rows(factors: Sequence[RiskFactor], minimum: int) -> Tuple[RiskRow, ...]:
    """
    Table rows for a list of risk factors.

    Every factor becomes a data row; blank filler rows pad the table up to
    ``minimum``. Factors beyond the minimum are kept, never cut.
    """
    rows = [RiskRow.from_factor(f) for f in factors]
    rows.extend(RiskRow.filler() for _ in range(max(0, minimum - len(rows))))
    return tuple(rows)


def detail_title(project: Project, record: Record) -> str:
    return f"{project.name or 'Unnamed project'} {quarter_label(record.inspection_date)} Daily Inspection"


def _basic_info(record: Record, project: Project, sequence_number: int) -> BasicInfo:
    return BasicInfo(
        sequence_number=sequence_number,
        branch_name=project.branch_name or "",
        project_name=project.name,
        supervisor=record.supervisor or record.inspector_name,
        contractor=project.company_name or record.contractor or "",
    )


def select_template(
    record: Record,
    project: Project,
    sequence_number: int,
    config: Optional[LayoutConfig] = None,
) -> DetailPage:
    """
    Build the detail page view for one record.

    Args:
        record: Inspection record
        project: The record's project
        sequence_number: Number taken from the grouping result
        config: Layout parameters (table minimums)

    Returns:
        ExtendedDetail if the record has an extended photo, else StandardDetail
    """
    config = config or LayoutConfig()
    info = _basic_info(record, project, sequence_number)
    sign_off = SignOff(
        inspection_date=record.inspection_date,
        inspector_name=record.inspector_name,
        signature=record.signature,
    )
    site = PhotoSlot(SITE_PHOTO_LABEL, record.site_photo)
    assessment = PhotoSlot(RISK_ASSESSMENT_PHOTO_LABEL, record.risk_assessment_photo)

    if record.has_extended_content:
        return ExtendedDetail(
            record_id=record.record_id,
            title=detail_title(project, record),
            quarter_label=quarter_label(record.inspection_date),
            info=info,
            photos=(site, assessment, PhotoSlot(EXTENDED_PHOTO_LABEL, record.extended_photo)),
            risk_rows=risk_rows(record.risk_factors, config.extended_primary_risk_rows),
            extended_risk_rows=risk_rows(record.extended_risk_factors, config.extended_risk_rows),
            sign_off=sign_off,
        )

    return StandardDetail(
        record_id=record.record_id,
        title=detail_title(project, record),
        quarter_label=quarter_label(record.inspection_date),
        info=info,
        photos=(site, assessment),
        risk_rows=risk_rows(record.risk_factors, config.standard_risk_rows),
        sign_off=sign_off,
    )
