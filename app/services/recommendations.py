"""Genre-driven release recommendations backed by Discogs search."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Collection, Iterable, Protocol, Sequence

from ..models import CatalogItem, RecommendationBucket
from .discogs import OAuthCredentials

logger = logging.getLogger(__name__)

MAX_CANDIDATES_PER_GENRE = 8


class SearchClient(Protocol):
    async def search(
        self,
        query: str,
        *,
        search_type: str = "master",
        credentials: OAuthCredentials | None = None,
    ) -> list[dict[str, Any]]: ...


def recommendation_reason(genre: str, *, is_gap: bool) -> str:
    if is_gap:
        return f"Expand your horizons - you have few {genre} releases"
    return f"More of what you love - {genre}"


def select_candidates(
    results: Iterable[dict[str, Any]],
    owned_master_ids: Collection[int],
    *,
    limit: int = MAX_CANDIDATES_PER_GENRE,
) -> list[CatalogItem]:
    """Parse search hits and drop anything the user already owns."""

    candidates: list[CatalogItem] = []
    for result in results:
        item = CatalogItem.from_search_result(result)
        key = item.dedupe_key
        if key is None or key in owned_master_ids:
            continue
        # The master id falls back to the raw id for owned-set comparisons.
        if item.master_key is None:
            item = item.model_copy(update={"master_id": key})
        candidates.append(item)
        if len(candidates) >= limit:
            break
    return candidates


class RecommendationEngine:
    """Turns a genre selection into ranked suggestions, one bucket per genre."""

    def __init__(self, client: SearchClient) -> None:
        self._client = client

    async def recommend(
        self,
        selection: Sequence[str],
        gaps: Collection[str],
        owned_master_ids: Collection[int],
        *,
        credentials: OAuthCredentials | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[RecommendationBucket]:
        """Search every selected genre concurrently.

        A failed search only drops that genre's bucket. Buckets come back in
        selection order whatever order the searches finish in.
        """

        if not selection:
            return []
        if cancel is not None and cancel.is_set():
            logger.info("Recommendation request cancelled before searching")
            return []

        owned = set(owned_master_ids)
        tasks = [
            asyncio.create_task(
                self._client.search(genre, search_type="master", credentials=credentials)
            )
            for genre in selection
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        buckets: list[RecommendationBucket] = []
        for genre, result in zip(selection, results):
            if isinstance(result, BaseException):
                logger.warning("Search failed for genre %s: %s", genre, result)
                continue
            candidates = select_candidates(result, owned)
            if not candidates:
                continue
            is_gap = genre in gaps
            buckets.append(
                RecommendationBucket(
                    genre=genre,
                    reason=recommendation_reason(genre, is_gap=is_gap),
                    is_gap=is_gap,
                    releases=tuple(candidates),
                )
            )
        return buckets
