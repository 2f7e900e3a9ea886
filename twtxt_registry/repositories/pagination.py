"""
Row-numbered pagination windows.

Every paginated query numbers its result set with ROW_NUMBER() over an
explicit total ordering and then keeps the rows whose number falls inside
``(floor, ceil]``. Concatenating pages 1..N therefore yields the full,
ordered result set with no gaps and no duplicates.
"""
from dataclasses import dataclass

from sqlalchemy import func, select

from twtxt_registry.constants import PER_PAGE_MAX_FLOOR, PER_PAGE_MIN_FLOOR

# Largest value SQLite stores as INTEGER; window bounds must not exceed it
MAX_ROW_NUMBER = 2**63 - 1


@dataclass(frozen=True)
class PageWindow:
    page: int
    per_page: int

    @property
    def floor(self):
        return (self.page - 1) * self.per_page

    @property
    def ceil(self):
        return self.floor + self.per_page

    @classmethod
    def normalize(cls, page, per_page, min_per_page, max_per_page):
        """
        Pages below 1 become page 1, per_page is clamped to [min, max].

        Pages are capped so the window bounds stay within SQLite's INTEGER
        range. Any page that large is past the last row, so it is empty.
        """
        try:
            page = int(page or 1)
        except (TypeError, ValueError):
            page = 1
        try:
            per_page = int(per_page or min_per_page)
        except (TypeError, ValueError):
            per_page = min_per_page

        if page < 1:
            page = 1
        per_page = max(min_per_page, min(per_page, max_per_page))
        page = min(page, MAX_ROW_NUMBER // max(per_page, 1))
        return cls(page=page, per_page=per_page)


def page_bounds(min_per_page, max_per_page):
    """Apply the hard floors to configured per-page bounds"""
    min_per_page = max(int(min_per_page or 0), PER_PAGE_MIN_FLOOR)
    max_per_page = max(int(max_per_page or 0), PER_PAGE_MAX_FLOOR)
    if min_per_page > max_per_page:
        min_per_page = max_per_page
    return min_per_page, max_per_page


def numbered(id_column, order_by, *criteria):
    """Subquery of (id, set_id) pairs for the filtered, ordered result set"""
    stmt = select(
        id_column.label("id"),
        func.row_number().over(order_by=order_by).label("set_id"),
    )
    if criteria:
        stmt = stmt.where(*criteria)
    return stmt.subquery("numbered")


def windowed(model, numbered_ids, window):
    """Select the ``model`` rows whose row number falls inside the window, in order"""
    return (
        select(model)
        .join(numbered_ids, model.id == numbered_ids.c.id)
        .where(numbered_ids.c.set_id > window.floor, numbered_ids.c.set_id <= window.ceil)
        .order_by(numbered_ids.c.set_id)
    )
