"""
Tests for the report CLI.

Tests covering:
1. Parsing selection files (list and object forms)
2. Exit codes for missing, invalid and empty input
3. Report generation from a selection file
"""

import json
import pytest

from reporting.cli import EXIT_INPUT_ERROR, main, parse_selection_from_json


# =============================================================================
# Fixtures
# =============================================================================


ENTRIES = [
    {
        "project": {"project_id": "P-1", "name": "Harbour Pumping Station", "branch_name": "South Branch"},
        "records": [
            {"record_id": "R-1", "inspection_date": "2025-09-03", "inspector_name": "Choi Yuna"},
            {"record_id": "R-2", "inspection_date": "2025-09-10", "inspector_name": "Choi Yuna"},
        ],
    }
]


@pytest.fixture(autouse=True)
def output_dir(tmp_path, monkeypatch):
    out = tmp_path / "reports"
    monkeypatch.setenv("REPORT_OUTPUT_DIR", str(out))
    monkeypatch.setenv("REPORT_SETTLE_DELAY", "0")
    return out


@pytest.fixture
def selection_file(tmp_path):
    path = tmp_path / "inspections.json"
    path.write_text(json.dumps(ENTRIES), encoding="utf-8")
    return path


# =============================================================================
# Test: Parsing
# =============================================================================


class TestParseSelection:

    def test_list_form(self):
        project_records, defaults = parse_selection_from_json(ENTRIES)

        assert len(project_records) == 1
        assert [r.record_id for r in project_records[0].records] == ["R-1", "R-2"]
        assert defaults == {}

    def test_object_form_with_defaults(self):
        data = {"projects": ENTRIES, "branch": "South Branch", "quarter": "2025Q3", "record_ids": ["R-2"]}

        project_records, defaults = parse_selection_from_json(data)

        assert len(project_records) == 1
        assert defaults == {"branch": "South Branch", "quarter": "2025Q3", "record_ids": ["R-2"]}

    def test_rejects_non_list(self):
        with pytest.raises(ValueError):
            parse_selection_from_json({"projects": "P-1"})


# =============================================================================
# Test: Commands
# =============================================================================


class TestGenerateCommand:
    """Tests for the generate subcommand."""

    def test_missing_file(self, tmp_path):
        assert main(["generate", str(tmp_path / "missing.json")]) == EXIT_INPUT_ERROR

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        assert main(["generate", str(path)]) == EXIT_INPUT_ERROR

    def test_invalid_record(self, tmp_path):
        path = tmp_path / "bad.json"
        bad = [{"project": {"project_id": "P-1"}, "records": [{"record_id": "R-1", "inspection_date": "soon"}]}]
        path.write_text(json.dumps(bad), encoding="utf-8")

        assert main(["generate", str(path)]) == EXIT_INPUT_ERROR

    def test_invalid_quarter(self, selection_file):
        assert main(["generate", str(selection_file), "--quarter", "Q3"]) == EXIT_INPUT_ERROR

    def test_empty_selection(self, selection_file, output_dir):
        assert main(["generate", str(selection_file), "--records", "R-404"]) == EXIT_INPUT_ERROR
        assert not output_dir.exists()

    def test_generates_report(self, selection_file, output_dir, capsys):
        code = main(["generate", str(selection_file), "--branch", "South Branch", "--quarter", "2025Q3"])

        assert code == 0
        assert (output_dir / "South_Branch_daily_inspections_2025Q3.pdf").exists()
        out = capsys.readouterr().out
        assert "detail page 2/2" in out
        assert "3 (1 summary, 2 detail)" in out

    def test_output_name_and_detail_only(self, selection_file, output_dir):
        code = main(["generate", str(selection_file), "--output", "harbour", "--no-summary", "--records", "R-2"])

        assert code == 0
        assert (output_dir / "harbour.pdf").exists()


class TestSampleCommand:

    def test_sample(self, output_dir):
        assert main(["sample"]) == 0
        assert (output_dir / "daily_inspections_2025Q3.pdf").exists()
