"""
View schemas for inspection report pages.

These schemas hold what a page shows, derived from the read-only project
and record models. Summary pages and the two detail templates are built
from them before any layout or rendering happens.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple, Union

from core.grouping import Quarter
from core.models import Project, ProjectRecords, Record, RiskFactor


# =============================================================================
# Summary Pages
# =============================================================================


@dataclass(frozen=True)
class SummaryRow:
    """One record's line on a summary page."""
    sequence_number: int
    record_id: str
    inspection_date: date
    date_label: str
    project_name: str
    district: str
    risk_factor_count: int
    note: str = ""


@dataclass(frozen=True)
class SummaryTotals:
    """Totals for a whole group, independent of how many pages it spans."""
    record_count: int
    risk_factor_count: int


@dataclass(frozen=True)
class SummaryPage:
    """
    One physical summary page of a group.

    ``blank_rows`` is the number of filler rows padded below the data rows;
    the fit trimmer may later remove some of them.
    """
    branch_name: Optional[str]
    quarter: Optional[Quarter]
    page_number: int  # 1-based within the group
    page_count: int
    rows: Tuple[SummaryRow, ...]
    blank_rows: int
    totals: Optional[SummaryTotals]

    @property
    def show_totals(self) -> bool:
        return self.totals is not None


# =============================================================================
# Detail Pages
# =============================================================================


class TemplateKind(Enum):
    """Detail page templates."""
    STANDARD = "standard"
    EXTENDED = "extended"


@dataclass(frozen=True)
class RiskRow:
    """
    A risk table row.

    ``blank`` marks filler rows; only those may be removed to fit a page.
    """
    task: str = ""
    hazard: str = ""
    mitigation: str = ""
    implemented: Optional[bool] = None
    remark: str = ""
    blank: bool = False

    @classmethod
    def from_factor(cls, factor: RiskFactor) -> "RiskRow":
        return cls(
            task=factor.task,
            hazard=factor.hazard,
            mitigation=factor.mitigation,
            implemented=factor.implemented,
            remark=factor.remark,
        )

    @classmethod
    def filler(cls) -> "RiskRow":
        return cls(blank=True)

    @property
    def implemented_label(self) -> str:
        if self.blank or self.implemented is None:
            return ""
        return "Yes" if self.implemented else "No"


@dataclass(frozen=True)
class PhotoSlot:
    """A labelled photo cell; ``source`` is None when no photo was taken."""
    label: str
    source: Optional[str] = None


@dataclass(frozen=True)
class BasicInfo:
    """The basic-info block at the top of a detail page."""
    sequence_number: int
    branch_name: str
    project_name: str
    supervisor: str
    contractor: str


@dataclass(frozen=True)
class SignOff:
    """Sign-off block: date, inspector and optional signature image."""
    inspection_date: date
    inspector_name: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class StandardDetail:
    """Detail page for a record without extended-program content."""
    record_id: str
    title: str
    quarter_label: str
    info: BasicInfo
    photos: Tuple[PhotoSlot, PhotoSlot]
    risk_rows: Tuple[RiskRow, ...]
    sign_off: SignOff

    kind = TemplateKind.STANDARD

    @property
    def sequence_number(self) -> int:
        return self.info.sequence_number


@dataclass(frozen=True)
class ExtendedDetail:
    """Detail page with the extended-program photo and second risk table."""
    record_id: str
    title: str
    quarter_label: str
    info: BasicInfo
    photos: Tuple[PhotoSlot, PhotoSlot, PhotoSlot]
    risk_rows: Tuple[RiskRow, ...]
    extended_risk_rows: Tuple[RiskRow, ...]
    sign_off: SignOff

    kind = TemplateKind.EXTENDED

    @property
    def sequence_number(self) -> int:
        return self.info.sequence_number


DetailPage = Union[StandardDetail, ExtendedDetail]


# =============================================================================
# Sample Data
# =============================================================================


# 1x1 grey PNG, stands in for uploaded photos in the sample report
SAMPLE_PHOTO = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def create_sample_selection() -> List[ProjectRecords]:
    """
    Create a sample selection for testing and demonstration.

    Two branches, three projects; one project belongs to the extended
    program and one of its inspections carries the extended photo.
    """
    riverside = Project(
        project_id="P-001",
        name="Riverside District Flood Barrier Upgrade",
        branch_name="North Branch",
        division_name="Capital Region",
        company_name="Hanbit Construction",
        extended_program_member=True,
    )
    hillcrest = Project(
        project_id="P-002",
        name="Hillcrest Reservoir Spillway Repair",
        branch_name="North Branch",
        division_name="Capital Region",
        company_name="Daeil Engineering",
    )
    harbour = Project(
        project_id="P-003",
        name="Harbour Pumping Station",
        branch_name="South Branch",
        division_name="Coastal Region",
        company_name="Seaside Works",
    )

    scaffold = RiskFactor(
        task="Scaffold erection",
        hazard="Fall from height",
        mitigation="Guard rails and harness anchorage checked before shift",
        implemented=True,
    )
    lifting = RiskFactor(
        task="Crane lifting",
        hazard="Struck by suspended load",
        mitigation="Exclusion zone with banksman",
        implemented=True,
        remark="Signal person assigned",
    )
    excavation = RiskFactor(
        task="Trench excavation",
        hazard="Collapse of trench wall",
        mitigation="Shoring installed beyond 1.5 m depth",
        implemented=False,
        remark="Follow-up next visit",
    )

    return [
        ProjectRecords(
            project=riverside,
            records=(
                Record(
                    record_id="R-1001",
                    project_id="P-001",
                    inspection_date="2025-07-14",
                    inspector_name="Kim Minjun",
                    risk_factors=(scaffold, lifting),
                    extended_photo=None,
                ),
                Record(
                    record_id="R-1002",
                    project_id="P-001",
                    inspection_date="2025-07-02",
                    inspector_name="Kim Minjun",
                    risk_factors=(scaffold, lifting, excavation),
                    extended_risk_factors=(excavation,),
                    extended_photo=SAMPLE_PHOTO,
                    photos=(SAMPLE_PHOTO,),
                ),
            ),
        ),
        ProjectRecords(
            project=hillcrest,
            records=(
                Record(
                    record_id="R-2001",
                    project_id="P-002",
                    inspection_date="2025-08-21",
                    inspector_name="Lee Seoyeon",
                    risk_factors=(excavation,),
                    supervisor="Park Jihoon",
                ),
            ),
        ),
        ProjectRecords(
            project=harbour,
            records=(
                Record(
                    record_id="R-3001",
                    project_id="P-003",
                    inspection_date="2025-09-03",
                    inspector_name="Choi Yuna",
                    risk_factors=(lifting, scaffold),
                ),
            ),
        ),
    ]
