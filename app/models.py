"""Pydantic models describing collection and analytics payloads."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .utils import as_int, parse_year, split_artist_title


class ApiModel(BaseModel):
    """Base model serialising to the camelCase shape the dashboard expects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CatalogItem(ApiModel):
    """A single pressing as returned by Discogs."""

    id: int
    master_id: int = 0
    title: str = "Unknown"
    artist: str = "Unknown Artist"
    year: int = 0
    thumbnail_url: str = Field(default="", alias="thumb")
    genres: tuple[str, ...] = ()
    styles: tuple[str, ...] = ()
    have: int = Field(default=0, ge=0)
    want: int = Field(default=0, ge=0)

    @property
    def master_key(self) -> int | None:
        """Return the join key for cross-collection matching.

        Zero or negative master ids mean the pressing is not grouped under a
        master and can never be joined.
        """

        return self.master_id if self.master_id > 0 else None

    @property
    def dedupe_key(self) -> int | None:
        """Return the key used to spot already-owned recommendation candidates."""

        if self.master_id > 0:
            return self.master_id
        return self.id if self.id > 0 else None

    @classmethod
    def from_collection_entry(cls, entry: Mapping[str, Any]) -> "CatalogItem":
        """Build an item from a collection or wantlist entry."""

        info = entry.get("basic_information")
        if not isinstance(info, Mapping):
            info = {}
        artists = info.get("artists") or []
        names = [
            str(artist["name"]).strip()
            for artist in artists
            if isinstance(artist, Mapping) and artist.get("name")
        ]
        community = entry.get("community")
        if not isinstance(community, Mapping):
            community = {}
        return cls(
            id=as_int(info.get("id") or entry.get("id")),
            master_id=as_int(info.get("master_id")),
            title=str(info.get("title") or "Unknown"),
            artist=", ".join(names) or "Unknown Artist",
            year=parse_year(info.get("year")),
            thumbnail_url=str(info.get("thumb") or ""),
            genres=_string_tuple(info.get("genres")),
            styles=_string_tuple(info.get("styles")),
            have=max(as_int(community.get("have")), 0),
            want=max(as_int(community.get("want")), 0),
        )

    @classmethod
    def from_search_result(cls, result: Mapping[str, Any]) -> "CatalogItem":
        """Build an item from a database search hit labelled ``"Artist - Title"``."""

        artist, title = split_artist_title(result.get("title"))
        community = result.get("community")
        if not isinstance(community, Mapping):
            community = {}
        return cls(
            id=as_int(result.get("id")),
            master_id=as_int(result.get("master_id")),
            title=title,
            artist=artist,
            year=parse_year(result.get("year")),
            thumbnail_url=str(result.get("thumb") or ""),
            genres=_string_tuple(result.get("genre")),
            styles=_string_tuple(result.get("style")),
            have=max(as_int(community.get("have")), 0),
            want=max(as_int(community.get("want")), 0),
        )


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(entry) for entry in value if isinstance(entry, str) and entry)


class GenreCount(ApiModel):
    """One entry of a genre tally."""

    name: str
    count: int = Field(ge=0)


class GenreOverlap(ApiModel):
    genre: str
    my_count: int = 0
    their_count: int = 0


class CollectionBatch(ApiModel):
    """Releases accumulated for one collection request.

    ``total`` is what Discogs reports; ``fetched`` may be lower when the page
    cap was reached or a later page failed.
    """

    releases: tuple[CatalogItem, ...] = ()
    total: int = 0
    complete: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fetched(self) -> int:
        return len(self.releases)


class RecommendationBucket(ApiModel):
    genre: str
    reason: str
    is_gap: bool = False
    releases: tuple[CatalogItem, ...] = ()


class ComparisonResult(ApiModel):
    """Partition of two collections by shared master releases."""

    overlap: tuple[CatalogItem, ...] = ()
    only_mine: tuple[CatalogItem, ...] = ()
    only_theirs: tuple[CatalogItem, ...] = ()
    overlap_master_ids: tuple[int, ...] = ()
    compatibility_score: int = Field(default=0, ge=0, le=100)


class TradeOpportunity(ApiModel):
    """A held release paired with the wantlist entry it would satisfy."""

    release: CatalogItem
    matched_want: CatalogItem


class TradeMatches(ApiModel):
    i_offer: tuple[TradeOpportunity, ...] = ()
    they_offer: tuple[TradeOpportunity, ...] = ()


class FriendComparison(ApiModel):
    """Everything the compare view needs for one friend."""

    friend_username: str
    friend_collection: CollectionBatch
    comparison: ComparisonResult
    genre_overlap: tuple[GenreOverlap, ...] = ()
    you_can_offer: tuple[TradeOpportunity, ...] = ()
    they_can_offer: tuple[TradeOpportunity, ...] = ()
    my_wantlist_loaded: bool = True
    their_wantlist_loaded: bool = True


class ReleaseDetails(ApiModel):
    id: int
    country: str | None = None
    year: int | None = None


class CountryCount(ApiModel):
    country: str
    count: int


class CountryDistribution(ApiModel):
    """Country breakdown for the releases looked up in one request."""

    countries: tuple[CountryCount, ...] = ()
    requested: int = 0
    resolved: int = 0
    remaining: int = 0


class RecommendationRequest(ApiModel):
    genres: list[GenreCount] = Field(default_factory=list)
    owned_master_ids: list[int] = Field(default_factory=list)


class RecommendationResponse(ApiModel):
    recommendations: tuple[RecommendationBucket, ...] = ()
    analyzed_genres: tuple[str, ...] = ()
    gaps: tuple[str, ...] = ()


class CompareRequest(ApiModel):
    friend_username: str = Field(min_length=1)
    username: str | None = None


class CountryRequest(ApiModel):
    release_ids: list[int] = Field(default_factory=list)
