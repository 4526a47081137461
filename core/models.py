"""
Data models for inspection reporting.

Projects and inspection records are supplied by the data layer and are
read-only here: the report engine derives view data from them and never
writes back. The ``from_dict`` constructors accept the loose JSON shape the
data layer returns, including the field names of older records.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple, Union


# =============================================================================
# Exceptions
# =============================================================================


class InvalidRecordError(ValueError):
    """Raised when a project or record cannot be interpreted."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        self.record_id = record_id
        prefix = f"Record {record_id}: " if record_id else ""
        super().__init__(f"{prefix}{message}")


# =============================================================================
# Date Parsing
# =============================================================================

_DOTTED_DATE = re.compile(r"^\s*(\d{2}|\d{4})\s*\.\s*(\d{1,2})\s*\.\s*(\d{1,2})\s*\.?\s*$")

DateInput = Union[date, datetime, str]


def parse_inspection_date(value: DateInput) -> date:
    """
    Parse an inspection date from any representation the data layer uses.

    Accepts ``date``/``datetime`` objects, ISO-8601 strings (date only, or
    with a time and optional ``Z``/offset) and dotted strings such as
    ``25.01.02`` or ``2025.01.02``. Two-digit years are 2000-based.

    Args:
        value: Raw date value

    Returns:
        The calendar date (time of day and zone are dropped)

    Raises:
        InvalidRecordError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidRecordError(f"Unrecognised inspection date: {value!r}")

    text = value.strip()

    dotted = _DOTTED_DATE.match(text)
    if dotted:
        year = int(dotted.group(1))
        if year < 100:
            year += 2000
        try:
            return date(year, int(dotted.group(2)), int(dotted.group(3)))
        except ValueError as e:
            raise InvalidRecordError(f"Invalid inspection date {value!r}: {e}") from e

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso_text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise InvalidRecordError(f"Unrecognised inspection date: {value!r}") from e


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


# =============================================================================
# Models
# =============================================================================


@dataclass(frozen=True)
class RiskFactor:
    """One row of an inspection's risk assessment."""

    task: str = ""
    hazard: str = ""
    mitigation: str = ""
    implemented: bool = False
    remark: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RiskFactor":
        """Build from data-layer JSON, accepting legacy field names."""
        mitigation = data.get("mitigation")
        if mitigation is None:
            mitigation = data.get("details")
        if mitigation is None:
            mitigation = data.get("reduction_measure")

        implemented = data.get("implemented")
        if implemented is None:
            implemented = data.get("implementation") == "yes" or data.get("implementation_yes") is True

        return cls(
            task=_text(data.get("task", data.get("detail_work"))),
            hazard=_text(data.get("hazard", data.get("risk_factor"))),
            mitigation=_text(mitigation),
            implemented=bool(implemented),
            remark=_text(data.get("remark", data.get("remarks"))),
        )


@dataclass(frozen=True)
class Project:
    """A construction project as supplied by the data layer."""

    project_id: str
    name: str = ""
    branch_name: Optional[str] = None
    division_name: Optional[str] = None
    company_name: Optional[str] = None
    extended_program_member: bool = False

    @property
    def display_name(self) -> str:
        return self.name or "Unnamed project"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        """Build from data-layer JSON."""
        project_id = _text(data.get("project_id", data.get("id")))
        if not project_id:
            raise InvalidRecordError("Project is missing an id")

        company = data.get("company_name")
        if company is None and isinstance(data.get("user_profiles"), Mapping):
            company = data["user_profiles"].get("company_name")

        extended = data.get("extended_program_member")
        if extended is None:
            extended = data.get("disaster_prevention_target")

        return cls(
            project_id=project_id,
            name=_text(data.get("name", data.get("project_name"))),
            branch_name=_optional_text(data.get("branch_name", data.get("managing_branch"))),
            division_name=_optional_text(data.get("division_name", data.get("managing_hq"))),
            company_name=_optional_text(company),
            extended_program_member=bool(extended),
        )


@dataclass(frozen=True)
class Record:
    """
    One inspection event.

    ``inspection_date`` may be given in any form ``parse_inspection_date``
    understands; it is normalised to a ``date`` on construction.
    """

    record_id: str
    project_id: str
    inspection_date: date
    inspector_name: str = ""
    risk_factors: Tuple[RiskFactor, ...] = ()
    photos: Tuple[str, ...] = ()
    risk_assessment_photo: Optional[str] = None
    signature: Optional[str] = None
    extended_photo: Optional[str] = None
    extended_risk_factors: Tuple[RiskFactor, ...] = ()
    supervisor: Optional[str] = None
    contractor: Optional[str] = None

    def __post_init__(self):
        """Normalise the date and sequence fields after initialization."""
        if not self.record_id:
            raise InvalidRecordError("Record is missing an id")
        try:
            parsed = parse_inspection_date(self.inspection_date)
        except InvalidRecordError as e:
            raise InvalidRecordError(str(e), record_id=self.record_id) from e
        object.__setattr__(self, "inspection_date", parsed)
        object.__setattr__(self, "risk_factors", tuple(self.risk_factors))
        object.__setattr__(self, "extended_risk_factors", tuple(self.extended_risk_factors))
        object.__setattr__(self, "photos", tuple(p for p in self.photos if p))

    @property
    def has_extended_content(self) -> bool:
        """True when the record carries the optional extended-program photo."""
        return bool(self.extended_photo)

    @property
    def risk_factor_count(self) -> int:
        return len(self.risk_factors)

    @property
    def site_photo(self) -> Optional[str]:
        return self.photos[0] if self.photos else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], project_id: Optional[str] = None) -> "Record":
        """
        Build from data-layer JSON.

        Top-level fields win over the nested ``form_data`` copy kept by
        older records.

        Args:
            data: Raw record mapping
            project_id: Owning project, used when the mapping has none

        Returns:
            Record instance
        """
        record_id = _text(data.get("record_id", data.get("id")))
        form = data.get("form_data") if isinstance(data.get("form_data"), Mapping) else {}

        factors_raw = data.get("risk_factors")
        if factors_raw is None:
            factors_raw = data.get("risk_factors_json")
        if factors_raw is None:
            factors_raw = form.get("risk_items")

        extended_raw = data.get("extended_risk_factors")
        if extended_raw is None:
            extended_raw = data.get("disaster_prevention_risk_factors_json")

        photos = list(data.get("photos") or [])
        if data.get("inspection_photo"):
            photos.insert(0, data["inspection_photo"])
        if not photos:
            photos = list(form.get("inspection_photos") or [])

        risk_photo = data.get("risk_assessment_photo")
        if not risk_photo and form.get("risk_assessment_photos"):
            risk_photo = form["risk_assessment_photos"][0]

        owner = _text(data.get("project_id")) or _text(project_id)
        if not owner:
            raise InvalidRecordError("Record is missing a project reference", record_id=record_id or None)

        date_value = data.get("inspection_date")
        if date_value is None:
            raise InvalidRecordError("Record is missing an inspection date", record_id=record_id or None)

        try:
            return cls(
                record_id=record_id,
                project_id=owner,
                inspection_date=date_value,
                inspector_name=_text(data.get("inspector_name")),
                risk_factors=tuple(RiskFactor.from_dict(f) for f in (factors_raw or []) if isinstance(f, Mapping)),
                photos=tuple(str(p) for p in photos if p),
                risk_assessment_photo=_optional_text(risk_photo),
                signature=_optional_text(data.get("signature") or form.get("signature")),
                extended_photo=_optional_text(
                    data.get("extended_photo") or data.get("disaster_prevention_report_photo")
                ),
                extended_risk_factors=tuple(
                    RiskFactor.from_dict(f) for f in (extended_raw or []) if isinstance(f, Mapping)
                ),
                supervisor=_optional_text(
                    data.get("supervisor") or data.get("construction_supervisor") or form.get("supervisor")
                ),
                contractor=_optional_text(data.get("contractor") or form.get("contractor")),
            )
        except TypeError as e:
            raise InvalidRecordError(f"Malformed record: {e}", record_id=record_id or None) from e


@dataclass(frozen=True)
class ProjectRecords:
    """A project together with the inspection records filed against it."""

    project: Project
    records: Tuple[Record, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "records", tuple(self.records))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectRecords":
        """Build from ``{"project": {...}, "records": [...]}``."""
        project_data = data.get("project")
        if not isinstance(project_data, Mapping):
            raise InvalidRecordError("Entry is missing a project object")
        project = Project.from_dict(project_data)
        records = tuple(
            Record.from_dict(r, project_id=project.project_id)
            for r in (data.get("records") or data.get("inspections") or [])
        )
        return cls(project=project, records=records)
