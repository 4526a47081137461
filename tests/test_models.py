"""
Tests for the inspection data model.

Tests covering:
1. Inspection date parsing across the formats the data layer emits
2. Record / project construction from data-layer JSON, including legacy keys
3. Rejection of malformed records
"""

import pytest
from datetime import date, datetime

from core.models import (
    InvalidRecordError,
    Project,
    ProjectRecords,
    Record,
    RiskFactor,
    parse_inspection_date,
)


# =============================================================================
# Test: Date Parsing
# =============================================================================


class TestParseInspectionDate:
    """Tests for parse_inspection_date."""

    def test_iso_date(self):
        assert parse_inspection_date("2025-01-02") == date(2025, 1, 2)

    def test_iso_timestamp_with_zulu(self):
        assert parse_inspection_date("2025-01-02T23:30:00Z") == date(2025, 1, 2)

    def test_iso_timestamp_with_offset(self):
        assert parse_inspection_date("2025-03-31T08:00:00+09:00") == date(2025, 3, 31)

    def test_dotted_short_year(self):
        assert parse_inspection_date("25.01.02") == date(2025, 1, 2)

    def test_dotted_long_year_with_trailing_dot(self):
        assert parse_inspection_date("2025. 1. 2.") == date(2025, 1, 2)

    def test_datetime_object(self):
        assert parse_inspection_date(datetime(2025, 6, 30, 17, 45)) == date(2025, 6, 30)

    def test_date_object_passthrough(self):
        value = date(2024, 12, 31)
        assert parse_inspection_date(value) is value

    @pytest.mark.parametrize("value", ["", "yesterday", "2025-13-01", "25.02.30", None, 20250102])
    def test_unparseable_values_raise(self, value):
        with pytest.raises(InvalidRecordError):
            parse_inspection_date(value)


# =============================================================================
# Test: Risk Factors
# =============================================================================


class TestRiskFactor:
    """Tests for RiskFactor.from_dict."""

    def test_current_keys(self):
        factor = RiskFactor.from_dict({
            "task": "Scaffold erection",
            "hazard": "Fall from height",
            "mitigation": "Guard rails",
            "implemented": True,
            "remark": "Checked",
        })

        assert factor == RiskFactor("Scaffold erection", "Fall from height", "Guard rails", True, "Checked")

    def test_legacy_keys(self):
        factor = RiskFactor.from_dict({
            "detail_work": "Excavation",
            "risk_factor": "Collapse",
            "details": "Shoring",
            "implementation": "yes",
            "remarks": "Follow up",
        })

        assert factor.task == "Excavation"
        assert factor.hazard == "Collapse"
        assert factor.mitigation == "Shoring"
        assert factor.implemented is True
        assert factor.remark == "Follow up"

    def test_reduction_measure_and_flag(self):
        factor = RiskFactor.from_dict({"reduction_measure": "Barrier", "implementation_yes": True})

        assert factor.mitigation == "Barrier"
        assert factor.implemented is True

    def test_defaults_to_not_implemented(self):
        assert RiskFactor.from_dict({"task": "Welding"}).implemented is False


# =============================================================================
# Test: Projects
# =============================================================================


class TestProject:
    """Tests for Project.from_dict."""

    def test_data_layer_keys(self):
        project = Project.from_dict({
            "id": "P-9",
            "project_name": "Songdo District Drainage",
            "managing_branch": "West Branch",
            "managing_hq": "Capital Region",
            "user_profiles": {"company_name": "Mirae Construction"},
            "disaster_prevention_target": True,
        })

        assert project.project_id == "P-9"
        assert project.name == "Songdo District Drainage"
        assert project.branch_name == "West Branch"
        assert project.division_name == "Capital Region"
        assert project.company_name == "Mirae Construction"
        assert project.extended_program_member is True

    def test_missing_branch_is_none(self):
        project = Project.from_dict({"project_id": "P-1", "name": "Quay Wall", "branch_name": "  "})

        assert project.branch_name is None
        assert project.extended_program_member is False

    def test_missing_id_raises(self):
        with pytest.raises(InvalidRecordError):
            Project.from_dict({"name": "Nameless"})

    def test_display_name_fallback(self):
        assert Project(project_id="P-1").display_name == "Unnamed project"


# =============================================================================
# Test: Records
# =============================================================================


class TestRecord:
    """Tests for Record construction."""

    def test_constructor_normalises_date_and_sequences(self):
        record = Record(
            record_id="R-1",
            project_id="P-1",
            inspection_date="2025-07-14",
            photos=["site.png", "", None],
            risk_factors=[RiskFactor(task="Lifting")],
        )

        assert record.inspection_date == date(2025, 7, 14)
        assert record.photos == ("site.png",)
        assert isinstance(record.risk_factors, tuple)
        assert record.risk_factor_count == 1
        assert record.site_photo == "site.png"

    def test_extended_content_depends_on_photo(self):
        plain = Record(record_id="R-1", project_id="P-1", inspection_date="2025-07-14")
        extended = Record(record_id="R-2", project_id="P-1", inspection_date="2025-07-14", extended_photo="x.png")

        assert plain.has_extended_content is False
        assert extended.has_extended_content is True

    def test_from_dict_with_legacy_fields(self):
        record = Record.from_dict(
            {
                "id": "R-7",
                "inspection_date": "2025-03-01T09:00:00Z",
                "inspector_name": "Kim Minjun",
                "risk_factors_json": [
                    {"detail_work": "Dig", "risk_factor": "Collapse", "details": "Shore", "implementation": "yes"},
                ],
                "inspection_photo": "site.png",
                "disaster_prevention_report_photo": "report.png",
                "disaster_prevention_risk_factors_json": [{"detail_work": "Pour", "risk_factor": "Burns"}],
                "construction_supervisor": "Park Jihoon",
            },
            project_id="P-1",
        )

        assert record.record_id == "R-7"
        assert record.project_id == "P-1"
        assert record.inspection_date == date(2025, 3, 1)
        assert record.risk_factors[0].mitigation == "Shore"
        assert record.site_photo == "site.png"
        assert record.extended_photo == "report.png"
        assert record.extended_risk_factors[0].hazard == "Burns"
        assert record.supervisor == "Park Jihoon"
        assert record.has_extended_content is True

    def test_from_dict_reads_form_data(self):
        record = Record.from_dict({
            "record_id": "R-8",
            "project_id": "P-2",
            "inspection_date": "25.08.21",
            "form_data": {
                "risk_items": [{"task": "Crane lifting"}, {"task": "Rebar"}],
                "inspection_photos": ["a.png", "b.png"],
                "risk_assessment_photos": ["risk.png"],
                "signature": "sig.png",
                "supervisor": "Lee Seoyeon",
                "contractor": "Daeil Engineering",
            },
        })

        assert record.risk_factor_count == 2
        assert record.photos == ("a.png", "b.png")
        assert record.risk_assessment_photo == "risk.png"
        assert record.signature == "sig.png"
        assert record.supervisor == "Lee Seoyeon"
        assert record.contractor == "Daeil Engineering"

    def test_missing_date_names_record(self):
        with pytest.raises(InvalidRecordError) as exc_info:
            Record.from_dict({"record_id": "R-9", "project_id": "P-1"})

        assert exc_info.value.record_id == "R-9"
        assert "R-9" in str(exc_info.value)

    def test_bad_date_names_record(self):
        with pytest.raises(InvalidRecordError) as exc_info:
            Record.from_dict({"record_id": "R-10", "project_id": "P-1", "inspection_date": "soon"})

        assert exc_info.value.record_id == "R-10"

    def test_missing_project_reference_raises(self):
        with pytest.raises(InvalidRecordError):
            Record.from_dict({"record_id": "R-11", "inspection_date": "2025-01-01"})

    def test_missing_id_raises(self):
        with pytest.raises(InvalidRecordError):
            Record(record_id="", project_id="P-1", inspection_date="2025-01-01")


class TestProjectRecords:
    """Tests for ProjectRecords.from_dict."""

    def test_records_inherit_project_id(self):
        entry = ProjectRecords.from_dict({
            "project": {"project_id": "P-3", "name": "Harbour Pumping Station"},
            "records": [
                {"record_id": "R-1", "inspection_date": "2025-09-03"},
                {"record_id": "R-2", "inspection_date": "2025-09-04"},
            ],
        })

        assert entry.project.project_id == "P-3"
        assert [r.project_id for r in entry.records] == ["P-3", "P-3"]

    def test_inspections_key_is_accepted(self):
        entry = ProjectRecords.from_dict({
            "project": {"project_id": "P-3"},
            "inspections": [{"record_id": "R-1", "inspection_date": "2025-09-03"}],
        })

        assert len(entry.records) == 1

    def test_missing_project_raises(self):
        with pytest.raises(InvalidRecordError):
            ProjectRecords.from_dict({"records": []})
