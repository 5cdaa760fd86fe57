"""Serial, rate-limited pagination over Discogs collection pages."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable

from ..config import Settings
from ..models import CatalogItem, CollectionBatch
from .discogs import CollectionPage, DiscogsError, Sleep

logger = logging.getLogger(__name__)

PageReader = Callable[[int, int], Awaitable[CollectionPage]]

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 5
DEFAULT_PAGE_DELAY = 0.1


@dataclass(slots=True, frozen=True)
class PagePolicy:
    """How many pages to read and how long to wait between them.

    Pages are read one at a time: Discogs rate limits per account, so parallel
    paging would only trigger throttling.
    """

    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES
    delay_seconds: float = DEFAULT_PAGE_DELAY
    sleep: Sleep = field(default=asyncio.sleep, compare=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings, *, sleep: Sleep = asyncio.sleep) -> "PagePolicy":
        return cls(
            page_size=settings.collection_page_size,
            max_pages=settings.collection_max_pages,
            delay_seconds=settings.page_delay_seconds,
            sleep=sleep,
        )

    async def pause(self) -> None:
        if self.delay_seconds > 0:
            await self.sleep(self.delay_seconds)


@dataclass(slots=True, frozen=True)
class PageCursor:
    """Position of a pagination run after the first page has been read."""

    next_page: int
    pages_to_fetch: int
    total_reported: int

    @classmethod
    def start(cls, total_reported: int, policy: PagePolicy) -> "PageCursor":
        pages = math.ceil(max(total_reported, 0) / policy.page_size)
        return cls(
            next_page=2,
            pages_to_fetch=min(pages, policy.max_pages),
            total_reported=total_reported,
        )

    @property
    def done(self) -> bool:
        return self.next_page > self.pages_to_fetch

    def advance(self) -> "PageCursor":
        return replace(self, next_page=self.next_page + 1)


def _cancelled(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


async def fetch_all(
    read_page: PageReader,
    policy: PagePolicy,
    *,
    cancel: asyncio.Event | None = None,
    label: str = "collection",
) -> CollectionBatch:
    """Read up to ``policy.max_pages`` pages and accumulate their items.

    The first page must succeed; its failure propagates because it carries the
    reported total. Any later failure stops paging and the batch is returned
    incomplete, which callers detect through ``fetched < total``.
    """

    first = await read_page(1, policy.page_size)
    cursor = PageCursor.start(first.total, policy)
    items: list[CatalogItem] = list(first.items)
    complete = True

    while not cursor.done:
        # Cancellation can land during the delay, so check after it too.
        if not _cancelled(cancel):
            await policy.pause()
        if _cancelled(cancel):
            logger.info(
                "Stopped paging %s at page %s: request cancelled",
                label,
                cursor.next_page,
            )
            complete = False
            break
        try:
            page = await read_page(cursor.next_page, policy.page_size)
        except DiscogsError as exc:
            logger.warning(
                "Failed to fetch %s page %s of %s: %s",
                label,
                cursor.next_page,
                cursor.pages_to_fetch,
                exc,
            )
            complete = False
            break
        items.extend(page.items)
        cursor = cursor.advance()

    return CollectionBatch(
        releases=tuple(items),
        total=cursor.total_reported,
        complete=complete,
    )
