"""
Tests for the Daily Inspection Report generator.

Renders real PDFs with ReportLab into a temporary directory.

Tests covering:
1. End-to-end generation of the sample selection
2. Record numbers agree between summary rows and detail pages
3. Detail-only reports
4. Empty selections fail before anything is written
5. Per-run output directories
"""

import asyncio
import re
import pytest
from dataclasses import replace

from core.grouping import EmptySelectionError, GroupingContext, NumberingScope, Quarter, group_records
from reporting.assembler import PageJobKind
from reporting.backend import PdfDocumentWriter, ReportLabBackend
from reporting.pdf_generator import ReportGenerator, ReportRequest, ReportSuccess, generate_report
from reporting.schemas import create_sample_selection
from utils.config import Config, LayoutConfig


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path):
    return Config(output_dir=str(tmp_path), layout=LayoutConfig(settle_delay=0.0))


@pytest.fixture
def generator(config):
    return ReportGenerator(config)


@pytest.fixture
def q3_request():
    return ReportRequest(
        project_records=create_sample_selection(),
        context=GroupingContext(quarter=Quarter(2025, 3)),
    )


# =============================================================================
# Test: End-to-End
# =============================================================================


class TestGenerateReport:
    """End-to-end PDF generation."""

    def test_sample_quarter_report(self, generator, q3_request, tmp_path):
        result = generator.generate_sync(q3_request)

        assert isinstance(result, ReportSuccess)
        assert result.file_name == "daily_inspections_2025Q3.pdf"
        assert result.path == tmp_path / "daily_inspections_2025Q3.pdf"
        assert result.page_count == 6
        assert result.summary_pages == 2
        assert result.detail_pages == 4
        assert result.path.read_bytes().startswith(b"%PDF")

    def test_sample_pages_fit(self, generator, q3_request):
        result = generator.generate_sync(q3_request)

        assert result.overflowing_pages == ()

    def test_detail_only_report(self, generator, tmp_path):
        request = ReportRequest(
            project_records=create_sample_selection(),
            record_ids=["R-2001"],
            include_summary=False,
        )

        result = generator.generate_sync(request)

        assert result.page_count == 1
        assert result.summary_pages == 0
        assert result.file_name == "daily_inspection_Hillcrest_Reservoir_Spillway_Repair_20250821.pdf"
        assert (tmp_path / result.file_name).exists()

    def test_explicit_file_name(self, generator, tmp_path):
        request = ReportRequest(project_records=create_sample_selection(), file_name="weekly pack")

        result = generator.generate_sync(request)

        assert result.path == tmp_path / "weekly_pack.pdf"

    def test_output_dir_per_run(self, generator, q3_request, tmp_path):
        first = generator.generate_sync(q3_request, output_dir=tmp_path / "first")
        second_request = replace(q3_request, record_ids=["R-2001"])
        second = generator.generate_sync(second_request, output_dir=tmp_path / "second")

        assert first.file_name == second.file_name
        assert first.path != second.path
        assert first.path.parent == tmp_path / "first"
        # The first document is untouched by the second run
        assert len(re.findall(rb"/Type /Page\b", first.path.read_bytes())) == first.page_count == 6
        assert second.page_count == 2
        assert not (tmp_path / first.file_name).exists()

    def test_convenience_function(self, config):
        result = generate_report(create_sample_selection(), record_ids=["R-3001"], config=config)

        assert isinstance(result, ReportSuccess)
        assert result.page_count == 2

    def test_empty_selection_raises_before_rendering(self, generator, tmp_path):
        request = ReportRequest(project_records=create_sample_selection(), record_ids=["R-404"])

        with pytest.raises(EmptySelectionError):
            generator.generate_sync(request)

        assert list(tmp_path.iterdir()) == []


# =============================================================================
# Test: Planning
# =============================================================================


class TestPlan:
    """Tests for the page plan."""

    def test_summary_and_detail_numbers_agree(self, generator):
        selection = group_records(
            create_sample_selection(),
            context=GroupingContext(quarter=Quarter(2025, 3)),
        )

        jobs = generator.plan(selection)

        summary_numbers = [
            row.cells[0]
            for job in jobs if job.kind is PageJobKind.SUMMARY
            for row in job.page.table("summary-table").rows if not row.is_blank
        ]
        detail_numbers = [
            job.page.block("info").rows[0][0][1]
            for job in jobs if job.kind is PageJobKind.DETAIL
        ]

        # Both follow each group's chronological order
        assert summary_numbers == detail_numbers == ["1", "2", "3", "1"]

    @pytest.mark.parametrize("scope", list(NumberingScope))
    def test_detail_numbers_follow_scope(self, generator, scope):
        selection = group_records(
            create_sample_selection(),
            context=GroupingContext(quarter=Quarter(2025, 3)),
            scope=scope,
        )

        jobs = generator.plan(selection)
        numbers = [job.page.block("info").rows[0][0][1] for job in jobs if job.kind is PageJobKind.DETAIL]

        expected = ["1", "2", "3", "1"] if scope is NumberingScope.GROUP else ["1", "2", "3", "4"]
        assert numbers == expected

    def test_extended_record_gets_extended_page(self, generator):
        selection = group_records(create_sample_selection(), record_ids=["R-1002"])

        summary, detail = generator.plan(selection)

        assert summary.kind is PageJobKind.SUMMARY
        assert detail.page.secondary_table_id == "extended-risk-table"


# =============================================================================
# Test: Backend
# =============================================================================


class TestReportLabBackend:
    """Layout measurements from the ReportLab backend."""

    @pytest.fixture
    def page(self, generator):
        selection = group_records(create_sample_selection(), record_ids=["R-1001"])
        return generator.plan(selection, include_summary=False)[0].page

    def test_blocks_stack_downwards(self, page):
        backend = ReportLabBackend(LayoutConfig(settle_delay=0.0))
        context = asyncio.run(backend.build(page))
        try:
            boxes = [context.measure(block.block_id) for block in page.blocks]
        finally:
            context.close()

        assert boxes[0].top == page.top_padding
        for upper, lower in zip(boxes, boxes[1:]):
            assert lower.top >= upper.bottom

    def test_smaller_padding_raises_anchor(self, page):
        backend = ReportLabBackend(LayoutConfig(settle_delay=0.0))
        context = asyncio.run(backend.build(page))
        try:
            before = context.anchor_bottom(page)
            after = context.anchor_bottom(replace(page, top_padding=page.top_padding - 5))
        finally:
            context.close()

        assert after == pytest.approx(before - 5)

    def test_closed_context_rejects_layout(self, page):
        context = asyncio.run(ReportLabBackend(LayoutConfig(settle_delay=0.0)).build(page))
        context.close()

        with pytest.raises(RuntimeError):
            context.relayout(page)

    def test_writer_rejects_second_first_page(self, page):
        context = asyncio.run(ReportLabBackend(LayoutConfig(settle_delay=0.0)).build(page))
        rendered = context.snapshot()
        context.close()
        writer = PdfDocumentWriter()
        writer.add_page(rendered, first=True)

        with pytest.raises(ValueError):
            writer.add_page(rendered, first=True)
        assert writer.page_count == 1
        assert writer.to_bytes().startswith(b"%PDF")
