"""Per-viewer browsing state.

A `BrowserSession` owns one viewer's in-memory character list, filter criteria,
view state (page, page size, sort order), the currently open detail and the
empty-result alert. Upstream calls are injected so the session can be driven
without a network in tests.
"""

from __future__ import annotations

import enum
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from . import browse, metrics, upstream
from .schemas import (
    PAGE_SIZES,
    Character,
    CharacterDetail,
    CharactersView,
    FilterCriteria,
    SortOrder,
    ViewState,
)

log = logging.getLogger(__name__)

EMPTY_ALERT_MESSAGE = "No characters found matching the filters!"

FetchAll = Callable[[], Awaitable[List[Character]]]
FetchEpisodes = Callable[[List[str]], Awaitable[Tuple[str, str]]]


class EmptyAlert(enum.Enum):
    """Fires once per run of empty results; any non-empty view re-arms it."""

    IDLE = "idle"
    FIRED = "fired"


class UnknownCharacter(LookupError):
    pass


class BrowserSession:
    def __init__(
        self,
        fetch_all: Optional[FetchAll] = None,
        fetch_episodes: Optional[FetchEpisodes] = None,
    ) -> None:
        self._fetch_all = fetch_all
        self._fetch_episodes = fetch_episodes
        self.characters: List[Character] = []
        self.filters = FilterCriteria()
        self.view = ViewState()
        self.empty_alert = EmptyAlert.IDLE
        self.detail: Optional[CharacterDetail] = None
        # Notice raised by the last change, consumed by the next render
        self._pending_alert: Optional[str] = None

    # -----------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------

    async def load(self) -> int:
        """Run fetch-all and replace the list; keep the old list on failure.

        Returns:
            Number of characters held after the call.
        """
        try:
            fetched = await (self._fetch_all or upstream.fetch_all_characters)()
        except upstream.UpstreamError as exc:
            log.error("session.load failed kept=%d error=%r", len(self.characters), exc)
            return len(self.characters)

        self.characters = list(fetched)
        self.view.page = 0
        log.info("session.load count=%d", len(self.characters))
        return len(self.characters)

    # -----------------------------------------------------------------
    # Derived view
    # -----------------------------------------------------------------

    def visible(self) -> List[Character]:
        """The filtered-sorted view the current page is sliced from."""
        return browse.filtered_sorted(self.characters, self.filters, self.view.sort)

    def total_pages(self) -> int:
        return browse.total_pages(len(self.visible()), self.view.page_size)

    def render(self) -> CharactersView:
        items = self.visible()
        pages = browse.total_pages(len(items), self.view.page_size)
        last = browse.last_page_index(len(items), self.view.page_size)
        page = self.view.page
        alert, self._pending_alert = self._pending_alert, None
        return CharactersView(
            page=page,
            page_number=page + 1,
            page_size=self.view.page_size,
            sort=self.view.sort,
            filters=self.filters.model_copy(),
            total_count=len(items),
            total_pages=pages,
            has_prev=page > 0,
            has_next=page < last,
            loaded_count=len(self.characters),
            alert=alert,
            results=browse.paginate(items, page, self.view.page_size),
        )

    # -----------------------------------------------------------------
    # Changes that reset the page
    # -----------------------------------------------------------------

    async def set_filters(self, criteria: FilterCriteria) -> None:
        self.filters = criteria.model_copy()
        await self._reconcile()

    async def set_page_size(self, page_size: int) -> None:
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}")
        self.view.page_size = page_size
        await self._reconcile()

    async def set_sort(self, order: SortOrder) -> None:
        self.view.sort = SortOrder(order)
        await self._reconcile()

    async def _reconcile(self) -> None:
        """Reset to page 0 and apply the empty-result rule.

        An active filter set that matches nothing fires the alert (only from IDLE),
        clears every filter and reloads; a non-empty view re-arms the alert.
        """
        self.view.page = 0
        count = len(self.visible())

        if count > 0:
            self.empty_alert = EmptyAlert.IDLE
            return

        if not self.filters.is_active() or self.empty_alert is EmptyAlert.FIRED:
            return

        log.info("session.empty_alert filters=%s", self.filters.model_dump())
        metrics.record_empty_alert()
        self.empty_alert = EmptyAlert.FIRED
        self._pending_alert = EMPTY_ALERT_MESSAGE
        self.filters = FilterCriteria()
        await self.load()
        # Filters are now empty, so this cannot fire again; it only re-arms.
        await self._reconcile()

    # -----------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------

    def _last_index(self) -> int:
        return browse.last_page_index(len(self.visible()), self.view.page_size)

    def first_page(self) -> None:
        self.view.page = 0

    def previous_page(self) -> None:
        if self.view.page > 0:
            self.view.page -= 1

    def next_page(self) -> None:
        if self.view.page < self._last_index():
            self.view.page += 1

    def last_page(self) -> None:
        self.view.page = self._last_index()

    def select_page(self, number: int) -> None:
        """Jump to a 1-based page number."""
        index = number - 1
        if index < 0 or index > self._last_index():
            raise IndexError(f"page {number} out of range 1..{self._last_index() + 1}")
        self.view.page = index

    # -----------------------------------------------------------------
    # Detail
    # -----------------------------------------------------------------

    def _find(self, character_id: int) -> Character:
        for ch in self.characters:
            if ch.id == character_id:
                return ch
        raise UnknownCharacter(character_id)

    async def open_detail(self, character_id: int) -> CharacterDetail:
        """Build the detail for a loaded character, resolving seen-in episodes.

        Episode lookup failures are logged and leave both names as "-".
        """
        ch = self._find(character_id)
        detail = CharacterDetail(
            **ch.model_dump(exclude={"location"}), location=ch.location.name
        )
        if ch.episode:
            try:
                fetch = self._fetch_episodes or upstream.fetch_seen_episodes
                first, last = await fetch(list(ch.episode))
            except upstream.UpstreamError as exc:
                log.error("session.detail episodes_failed id=%d error=%r", ch.id, exc)
            else:
                detail.first_seen_episode = first
                detail.last_seen_episode = last

        self.detail = detail
        return detail

    def close_detail(self) -> None:
        self.detail = None
