"""Vertical page-break bookkeeping for canvas documents."""

from __future__ import annotations

from collections.abc import Callable


class PageCursor:
    """Tracks the write position on the current page.

    ``cursor_y`` moves downward from ``top`` towards ``bottom`` in canvas
    coordinates. When a row does not fit, a new page is started, the
    ``on_page_break`` hook runs (page header drawing) and the row is placed at
    the top of the new page.
    """

    def __init__(
        self,
        *,
        top: float,
        bottom: float,
        on_page_break: Callable[[], None] | None = None,
    ) -> None:
        if top <= bottom:
            raise ValueError("top must be above bottom.")
        self.top = top
        self.bottom = bottom
        self.cursor_y = top
        self.page_count = 1
        self.on_page_break = on_page_break

    @property
    def remaining(self) -> float:
        return self.cursor_y - self.bottom

    def fits(self, height: float) -> bool:
        return height <= self.remaining

    def break_page(self) -> None:
        self.page_count += 1
        self.cursor_y = self.top
        if self.on_page_break is not None:
            self.on_page_break()

    def ensure(self, height: float) -> bool:
        """Start a new page unless ``height`` fits; return whether it broke."""

        if height > self.top - self.bottom:
            raise ValueError(f"Row height {height:.1f} exceeds the printable page height.")
        if self.fits(height):
            return False
        self.break_page()
        return True

    def advance(self, row_height: float) -> bool:
        """Reserve ``row_height`` and return whether a page break happened first.

        After the call the reserved row spans ``cursor_y`` to
        ``cursor_y + row_height``.
        """

        broke = self.ensure(row_height)
        self.cursor_y -= row_height
        return broke

    def skip(self, gap: float) -> None:
        """Add vertical whitespace, dropped at a page boundary."""

        self.cursor_y = max(self.bottom, self.cursor_y - gap)
