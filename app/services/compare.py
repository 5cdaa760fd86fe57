"""Collection overlap and trade matching between two Discogs users."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from ..models import CatalogItem, ComparisonResult, TradeMatches, TradeOpportunity
from ..utils import round_half_up
from .discogs import OAuthCredentials

logger = logging.getLogger(__name__)


class WantlistClient(Protocol):
    async def get_wantlist(
        self,
        username: str,
        *,
        credentials: OAuthCredentials | None = None,
    ) -> list[CatalogItem]: ...


def _master_keys(items: Sequence[CatalogItem]) -> set[int]:
    return {item.master_key for item in items if item.master_key is not None}


def compare_collections(
    mine: Sequence[CatalogItem], theirs: Sequence[CatalogItem]
) -> ComparisonResult:
    """Partition two collections by shared master releases.

    Pressings without a master id cannot be joined and are left out of every
    partition. The score is the Jaccard similarity of distinct masters, so
    several pressings of one master count once.
    """

    my_ids = _master_keys(mine)
    their_ids = _master_keys(theirs)
    overlap_ids = my_ids & their_ids
    union_size = len(my_ids | their_ids)

    overlap = tuple(item for item in mine if item.master_key in overlap_ids)
    only_mine = tuple(
        item
        for item in mine
        if item.master_key is not None and item.master_key not in overlap_ids
    )
    only_theirs = tuple(
        item
        for item in theirs
        if item.master_key is not None and item.master_key not in overlap_ids
    )
    score = round_half_up(100 * len(overlap_ids) / union_size) if union_size else 0

    return ComparisonResult(
        overlap=overlap,
        only_mine=only_mine,
        only_theirs=only_theirs,
        overlap_master_ids=tuple(sorted(overlap_ids)),
        compatibility_score=score,
    )


def _offers(
    holdings: Sequence[CatalogItem], wantlist: Sequence[CatalogItem]
) -> tuple[TradeOpportunity, ...]:
    first_want: dict[int, CatalogItem] = {}
    for want in wantlist:
        if want.master_key is not None:
            first_want.setdefault(want.master_key, want)

    return tuple(
        TradeOpportunity(release=item, matched_want=first_want[item.master_key])
        for item in holdings
        if item.master_key is not None and item.master_key in first_want
    )


def match_trades(
    my_collection: Sequence[CatalogItem],
    their_collection: Sequence[CatalogItem],
    my_wantlist: Sequence[CatalogItem],
    their_wantlist: Sequence[CatalogItem],
) -> TradeMatches:
    """Find what each side holds that the other side wants."""

    return TradeMatches(
        i_offer=_offers(my_collection, their_wantlist),
        they_offer=_offers(their_collection, my_wantlist),
    )


@dataclass(slots=True)
class TradeReport:
    matches: TradeMatches
    my_wantlist_loaded: bool = True
    their_wantlist_loaded: bool = True


class TradeMatcher:
    """Fetches both wantlists concurrently and correlates them with the collections."""

    def __init__(self, client: WantlistClient) -> None:
        self._client = client

    async def find_trades(
        self,
        my_username: str,
        their_username: str,
        my_collection: Sequence[CatalogItem],
        their_collection: Sequence[CatalogItem],
        *,
        credentials: OAuthCredentials | None = None,
    ) -> TradeReport:
        my_wants, their_wants = await asyncio.gather(
            self._client.get_wantlist(my_username, credentials=credentials),
            self._client.get_wantlist(their_username, credentials=credentials),
            return_exceptions=True,
        )

        my_loaded = not isinstance(my_wants, BaseException)
        their_loaded = not isinstance(their_wants, BaseException)
        if not my_loaded:
            logger.warning("Failed to fetch wantlist for %s: %s", my_username, my_wants)
            my_wants = []
        if not their_loaded:
            logger.warning(
                "Failed to fetch wantlist for %s: %s", their_username, their_wants
            )
            their_wants = []

        return TradeReport(
            matches=match_trades(my_collection, their_collection, my_wants, their_wants),
            my_wantlist_loaded=my_loaded,
            their_wantlist_loaded=their_loaded,
        )
