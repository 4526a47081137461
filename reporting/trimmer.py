"""
Content-Fit Trimmer

Shrinks a page until its anchor block ends above the usable height:
Measure -> (fits? done : apply next shrink action) -> Measure -> ...

Shrink actions are pure functions ``(PageModel) -> PageModel | None`` tried
in a fixed priority order; None means the action has nothing left to give.
Only blank filler rows, the title margin and the top padding are ever
reduced. Rows holding record content are never removed.

Fitting is best effort. When the iteration ceiling is hit or every action
is exhausted the page is returned as-is and reported as overflowing.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from utils.config import LayoutConfig

from .layout import PageModel


logger = logging.getLogger(__name__)


ShrinkAction = Callable[[PageModel], Optional[PageModel]]
Measure = Callable[[PageModel], float]


# =============================================================================
# Shrink Actions
# =============================================================================


def _drop_blank_row(page: PageModel, table_id: Optional[str]) -> Optional[PageModel]:
    table = page.table(table_id)
    if table is None:
        return None
    trimmed = table.without_last_blank()
    if trimmed is None:
        return None
    return page.with_block(trimmed)


def drop_secondary_blank_row(page: PageModel) -> Optional[PageModel]:
    """Remove the last blank row of the extended risk table."""
    return _drop_blank_row(page, page.secondary_table_id)


def drop_primary_blank_row(page: PageModel) -> Optional[PageModel]:
    """Remove the last blank row of the main table."""
    return _drop_blank_row(page, page.primary_table_id)


def shrink_title_margin(step: float, floor: float) -> ShrinkAction:
    """Reduce the space under the title by ``step``, never below ``floor``."""
    def action(page: PageModel) -> Optional[PageModel]:
        if page.title_margin <= floor:
            return None
        return replace(page, title_margin=max(floor, page.title_margin - step))

    action.__name__ = "shrink_title_margin"
    return action


def shrink_top_padding(step: float, floor: float) -> ShrinkAction:
    """Reduce the page's top padding by ``step``, never below ``floor``."""
    def action(page: PageModel) -> Optional[PageModel]:
        if page.top_padding <= floor:
            return None
        return replace(page, top_padding=max(floor, page.top_padding - step))

    action.__name__ = "shrink_top_padding"
    return action


def build_shrink_actions(config: Optional[LayoutConfig] = None) -> Tuple[ShrinkAction, ...]:
    """The shrink actions in priority order, cheapest first."""
    config = config or LayoutConfig()
    return (
        drop_secondary_blank_row,
        drop_primary_blank_row,
        shrink_title_margin(config.title_margin_step, config.title_margin_floor),
        shrink_top_padding(config.top_padding_step, config.top_padding_floor),
    )


# =============================================================================
# Fit Loop
# =============================================================================


@dataclass(frozen=True)
class FitResult:
    """Outcome of fitting one page."""
    page: PageModel
    fits: bool
    anchor_bottom: float
    iterations: int
    applied: Tuple[str, ...]

    @property
    def overflow(self) -> float:
        """How far the anchor still extends past the usable height."""
        return max(0.0, self.anchor_bottom - self.page.usable_height)


def _next_shrink(page: PageModel, actions: Sequence[ShrinkAction]) -> Tuple[Optional[PageModel], Optional[str]]:
    for action in actions:
        shrunk = action(page)
        if shrunk is not None:
            return shrunk, getattr(action, "__name__", repr(action))
    return None, None


def fit_page(
    page: PageModel,
    measure: Measure,
    usable_height: Optional[float] = None,
    actions: Optional[Sequence[ShrinkAction]] = None,
    max_iterations: int = 100,
) -> FitResult:
    """
    Shrink ``page`` until its anchor bottom is at or above ``usable_height``.

    Args:
        page: Page after its first layout pass
        measure: Returns the anchor bottom (mm from the page top) for a page
        usable_height: Fit limit; defaults to the page's own usable height
        actions: Shrink actions in priority order
        max_iterations: Ceiling on shrink steps

    Returns:
        FitResult with the final page and whether it fits
    """
    limit = page.usable_height if usable_height is None else usable_height
    actions = build_shrink_actions() if actions is None else actions
    applied: List[str] = []

    bottom = measure(page)
    iterations = 0
    while bottom > limit and iterations < max_iterations:
        shrunk, name = _next_shrink(page, actions)
        if shrunk is None:
            break
        page = shrunk
        applied.append(name)
        iterations += 1
        bottom = measure(page)

    fits = bottom <= limit
    if not fits:
        logger.debug(
            "Page %s overflows by %.1fmm after %d shrink step(s)",
            page.label,
            bottom - limit,
            iterations,
        )
    elif applied:
        logger.debug("Page %s fitted after %d shrink step(s)", page.label, iterations)

    return FitResult(
        page=page,
        fits=fits,
        anchor_bottom=bottom,
        iterations=iterations,
        applied=tuple(applied),
    )
