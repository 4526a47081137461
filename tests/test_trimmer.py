"""
Tests for the Content-Fit Trimmer.

The fit loop is exercised against a fake measure so the expected shrink
sequence can be worked out by hand: every table row is 10mm tall and the
anchor bottom is top padding + title margin + rows.

Tests covering:
1. Shrink action priority order
2. Floors on margins and padding
3. Real rows are never removed
4. Iteration ceiling and best-effort overflow
"""

import pytest
from dataclasses import replace

from core.models import Project, Record, RiskFactor
from reporting.layout import build_detail_page, build_summary_page
from reporting.schemas import SummaryPage, SummaryRow, SummaryTotals
from reporting.templates import select_template
from reporting.trimmer import (
    build_shrink_actions,
    drop_primary_blank_row,
    drop_secondary_blank_row,
    fit_page,
    shrink_title_margin,
    shrink_top_padding,
)
from utils.config import LayoutConfig


# =============================================================================
# Fixtures
# =============================================================================


ROW_HEIGHT = 10.0


def fake_measure(page):
    rows = sum(len(t.rows) for t in page.tables())
    return page.top_padding + page.title_margin + rows * ROW_HEIGHT


@pytest.fixture
def layout():
    return LayoutConfig()


@pytest.fixture
def extended_page(layout):
    """Extended page: 5 primary rows (3 blank) and 5 extended rows (4 blank)."""
    project = Project(project_id="P-1", name="Riverside District Flood Barrier", branch_name="North Branch")
    record = Record(
        record_id="R-1",
        project_id="P-1",
        inspection_date="2025-07-02",
        risk_factors=(RiskFactor(task="Scaffold"), RiskFactor(task="Lifting")),
        extended_risk_factors=(RiskFactor(task="Excavation"),),
        extended_photo="guidance.png",
    )
    return build_detail_page(select_template(record, project, 1, layout), layout)


@pytest.fixture
def summary_page(layout):
    page = SummaryPage(
        branch_name="North Branch",
        quarter=None,
        page_number=1,
        page_count=1,
        rows=(SummaryRow(1, "R-1", None, "25.07.02", "Riverside", "Riverside", 2),),
        blank_rows=3,
        totals=SummaryTotals(record_count=1, risk_factor_count=2),
    )
    return build_summary_page(page, layout)


# =============================================================================
# Test: Shrink Actions
# =============================================================================


class TestShrinkActions:
    """Tests for the individual shrink actions."""

    def test_priority_order(self, layout):
        names = [action.__name__ for action in build_shrink_actions(layout)]

        assert names == [
            "drop_secondary_blank_row",
            "drop_primary_blank_row",
            "shrink_title_margin",
            "shrink_top_padding",
        ]

    def test_drop_secondary_removes_last_blank(self, extended_page):
        shrunk = drop_secondary_blank_row(extended_page)

        assert shrunk.table("extended-risk-table").blank_count == 3
        assert shrunk.table("risk-table").blank_count == 3
        assert extended_page.table("extended-risk-table").blank_count == 4

    def test_drop_secondary_without_secondary_table(self, summary_page):
        assert drop_secondary_blank_row(summary_page) is None

    def test_drop_primary_exhausts(self, summary_page):
        page = summary_page
        for _ in range(3):
            page = drop_primary_blank_row(page)

        assert page.table("summary-table").blank_count == 0
        assert drop_primary_blank_row(page) is None

    def test_title_margin_respects_floor(self, extended_page):
        action = shrink_title_margin(step=5.0, floor=1.5)

        page = action(extended_page)
        assert page.title_margin == 3.0
        page = action(page)
        assert page.title_margin == 1.5
        assert action(page) is None

    def test_top_padding_respects_floor(self, extended_page):
        action = shrink_top_padding(step=2.0, floor=19.0)

        page = action(extended_page)

        assert page.top_padding == 19.0
        assert action(page) is None


# =============================================================================
# Test: Fit Loop
# =============================================================================


class TestFitPage:
    """Tests for fit_page."""

    def test_starting_height(self, extended_page):
        assert fake_measure(extended_page) == 128.0

    def test_already_fits(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 200.0, build_shrink_actions(layout))

        assert result.fits
        assert result.iterations == 0
        assert result.applied == ()
        assert result.page is extended_page

    def test_secondary_blanks_go_first(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 100.0, build_shrink_actions(layout))

        assert result.fits
        assert result.applied == ("drop_secondary_blank_row",) * 3
        assert result.anchor_bottom == 98.0
        assert result.page.table("risk-table").blank_count == 3

    def test_full_priority_sequence(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 40.0, build_shrink_actions(layout))

        assert result.fits
        assert result.applied == (
            ("drop_secondary_blank_row",) * 4
            + ("drop_primary_blank_row",) * 3
            + ("shrink_title_margin",) * 5
            + ("shrink_top_padding",) * 6
        )
        assert result.page.title_margin == 1.5
        assert result.page.top_padding == 8.0
        assert result.anchor_bottom == 39.5
        assert result.iterations == 18

    def test_best_effort_overflow(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 10.0, build_shrink_actions(layout))

        assert not result.fits
        assert result.iterations == 20
        assert result.anchor_bottom == 36.5
        assert result.page.blank_row_count == 0
        assert result.page.data_row_count == 3

    def test_real_rows_survive_every_step(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 10.0, build_shrink_actions(layout))

        primary = [r.cells[0] for r in result.page.table("risk-table").rows]
        extended = [r.cells[0] for r in result.page.table("extended-risk-table").rows]
        assert primary == ["Scaffold", "Lifting"]
        assert extended == ["Excavation"]

    def test_iteration_ceiling(self, extended_page, layout):
        result = fit_page(extended_page, fake_measure, 10.0, build_shrink_actions(layout), max_iterations=3)

        assert not result.fits
        assert result.iterations == 3
        assert result.anchor_bottom == 98.0

    def test_default_limit_is_page_usable_height(self, extended_page):
        page = replace(extended_page, usable_height=100.0)

        result = fit_page(page, fake_measure)

        assert result.fits
        assert result.iterations == 3

    def test_overflow_amount(self, extended_page):
        page = replace(extended_page, usable_height=10.0)

        result = fit_page(page, fake_measure)

        assert result.overflow == pytest.approx(26.5)

    def test_summary_page_trims_main_table(self, summary_page, layout):
        start = fake_measure(summary_page)

        result = fit_page(summary_page, fake_measure, start - 25.0, build_shrink_actions(layout))

        assert result.fits
        assert result.applied == ("drop_primary_blank_row",) * 3
        assert result.page.table("summary-table").data_count == 1
