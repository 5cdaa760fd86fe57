"""Per-request composition of collection retrieval and analytics."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Iterable, Sequence

from ..config import Settings
from ..models import (
    CatalogItem,
    CollectionBatch,
    CountryCount,
    CountryDistribution,
    FriendComparison,
    GenreCount,
    RecommendationResponse,
    ReleaseDetails,
)
from ..utils import normalize_country
from .compare import TradeMatcher, compare_collections
from .discogs import (
    CollectionPage,
    CredentialsNotConfigured,
    DiscogsAuthError,
    DiscogsClient,
    DiscogsError,
    OAuthCredentials,
    Sleep,
)
from .genres import analyze_genres, compare_genres, tally_genres
from .pagination import PagePolicy, fetch_all
from .recommendations import RecommendationEngine

logger = logging.getLogger(__name__)


class EmptyCollectionError(ValueError):
    """The other collection came back empty, usually because it is private."""


class CollectionAnalyticsService:
    """Coordinates Discogs retrieval with the genre, comparison and trade analytics."""

    def __init__(
        self,
        settings: Settings,
        client: DiscogsClient,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = client
        self._policy = PagePolicy.from_settings(settings, sleep=sleep)
        self._recommender = RecommendationEngine(client)
        self._trades = TradeMatcher(client)

    def ensure_configured(self) -> None:
        """Fail fast when the server has no Discogs consumer key/secret."""

        if not self._settings.has_consumer_credentials:
            raise CredentialsNotConfigured("Discogs credentials not configured")

    async def fetch_collection(
        self,
        username: str,
        *,
        credentials: OAuthCredentials | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CollectionBatch:
        """Fetch up to the configured page cap of a user's collection.

        With session credentials the private collection view is used; without
        them the public view, which Discogs serves with the consumer key alone.
        """

        async def read_page(page: int, per_page: int) -> CollectionPage:
            if credentials is not None:
                return await self._client.get_collection(
                    username,
                    folder=0,
                    page=page,
                    per_page=per_page,
                    credentials=credentials,
                )
            return await self._client.get_public_collection(
                username, page=page, per_page=per_page
            )

        batch = await fetch_all(
            read_page,
            self._policy,
            cancel=cancel,
            label=f"collection of {username}",
        )
        if batch.fetched < batch.total:
            logger.info(
                "Fetched %s of %s releases for %s", batch.fetched, batch.total, username
            )
        return batch

    async def fetch_wantlist(
        self,
        username: str,
        *,
        credentials: OAuthCredentials | None = None,
    ) -> list[CatalogItem]:
        return await self._client.get_wantlist(username, credentials=credentials)

    async def analyze_recommendations(
        self,
        genres: Sequence[GenreCount],
        owned_master_ids: Iterable[int],
        *,
        credentials: OAuthCredentials,
        username: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> RecommendationResponse:
        """Pick gap and favourite genres and search Discogs for each of them.

        Without a genre tally the signed-in user's collection is fetched and
        tallied instead, and its masters count as owned.
        """

        owned = set(owned_master_ids)
        if not genres and username:
            batch = await self.fetch_collection(
                username, credentials=credentials, cancel=cancel
            )
            genres = tally_genres(batch.releases)
            owned.update(
                item.master_key for item in batch.releases if item.master_key is not None
            )

        analysis = analyze_genres(genres)
        buckets = await self._recommender.recommend(
            analysis.selection,
            set(analysis.gaps),
            owned,
            credentials=credentials,
            cancel=cancel,
        )
        return RecommendationResponse(
            recommendations=tuple(buckets),
            analyzed_genres=tuple(analysis.selection),
            gaps=tuple(analysis.gaps),
        )

    async def compare_with_friend(
        self,
        username: str,
        friend_username: str,
        *,
        credentials: OAuthCredentials | None = None,
        cancel: asyncio.Event | None = None,
    ) -> FriendComparison:
        """Compare two collections and look for trades in both directions."""

        username = username.strip()
        friend_username = friend_username.strip()
        if not friend_username:
            raise ValueError("Friend username is required")
        if friend_username.casefold() == username.casefold():
            raise ValueError("You can't compare with yourself!")

        # One account's rate limit covers both collections, so fetch them in turn.
        mine = await self.fetch_collection(username, credentials=credentials, cancel=cancel)
        try:
            theirs = await self.fetch_collection(
                friend_username, credentials=credentials, cancel=cancel
            )
        except DiscogsError as exc:
            if exc.status_code in (403, 404):
                raise EmptyCollectionError("Friend's collection is empty or private") from exc
            raise
        if not theirs.releases:
            raise EmptyCollectionError("Friend's collection is empty or private")

        comparison = compare_collections(mine.releases, theirs.releases)
        report = await self._trades.find_trades(
            username,
            friend_username,
            mine.releases,
            theirs.releases,
            credentials=credentials,
        )
        return FriendComparison(
            friend_username=friend_username,
            friend_collection=theirs,
            comparison=comparison,
            genre_overlap=tuple(compare_genres(mine.releases, theirs.releases)),
            you_can_offer=report.matches.i_offer,
            they_can_offer=report.matches.they_offer,
            my_wantlist_loaded=report.my_wantlist_loaded,
            their_wantlist_loaded=report.their_wantlist_loaded,
        )

    async def release_details(
        self,
        release_id: int,
        *,
        credentials: OAuthCredentials,
    ) -> ReleaseDetails:
        return await self._client.get_release(release_id, credentials=credentials)

    async def country_distribution(
        self,
        release_ids: Sequence[int],
        *,
        credentials: OAuthCredentials,
        cancel: asyncio.Event | None = None,
    ) -> CountryDistribution:
        """Look up release countries one at a time, up to the configured limit.

        Individual lookups fail softly; ``remaining`` tells the caller how many
        ids were left for a follow-up request.
        """

        unique_ids = list(dict.fromkeys(rid for rid in release_ids if rid > 0))
        batch = unique_ids[: self._settings.country_lookup_limit]
        counts: Counter[str] = Counter()
        resolved = 0

        for index, release_id in enumerate(batch):
            if cancel is not None and cancel.is_set():
                break
            if index:
                await self._policy.pause()
            try:
                details = await self._client.get_release(release_id, credentials=credentials)
            except DiscogsAuthError:
                raise
            except DiscogsError as exc:
                logger.warning("Failed to fetch release %s: %s", release_id, exc)
                continue
            resolved += 1
            country = normalize_country(details.country)
            if country:
                counts[country] += 1

        ranked = sorted(counts.items(), key=lambda entry: entry[1], reverse=True)
        return CountryDistribution(
            countries=tuple(
                CountryCount(country=country, count=count) for country, count in ranked
            ),
            requested=len(batch),
            resolved=resolved,
            remaining=len(unique_ids) - len(batch),
        )
