"""Genre distribution, gap detection and side-by-side genre comparison."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..models import CatalogItem, GenreCount, GenreOverlap

# Discogs top-level genres considered for recommendations, in priority order.
MAJOR_GENRES: tuple[str, ...] = (
    "Electronic",
    "Rock",
    "Jazz",
    "Hip Hop",
    "Classical",
    "Folk, World, & Country",
    "Funk / Soul",
    "Pop",
    "Reggae",
    "Blues",
    "Latin",
    "Stage & Screen",
)

GAP_THRESHOLD_PERCENT = 10.0
MAX_GAPS = 3
MAX_TOP_GENRES = 2
MAX_SEARCH_GENRES = 4
GENRE_OVERLAP_LIMIT = 8


@dataclass(slots=True)
class GenreAnalysis:
    """Outcome of analysing a genre tally."""

    total: int = 0
    percentages: dict[str, float] = field(default_factory=dict)
    gaps: list[str] = field(default_factory=list)
    top_genres: list[str] = field(default_factory=list)
    selection: list[str] = field(default_factory=list)


def analyze_genres(tally: Sequence[GenreCount]) -> GenreAnalysis:
    """Find underrepresented major genres and the favourites to reinforce.

    Gaps are the first major genres, in reference order, that are missing from
    the tally or hold less than 10% of it. Top genres keep the tally's own
    order rather than being re-sorted by count.
    """

    total = sum(entry.count for entry in tally)
    if total <= 0:
        return GenreAnalysis()

    percentages: dict[str, float] = {}
    for entry in tally:
        percentages.setdefault(entry.name, 100 * entry.count / total)

    gaps = [
        genre
        for genre in MAJOR_GENRES
        if percentages.get(genre, 0.0) < GAP_THRESHOLD_PERCENT
    ][:MAX_GAPS]

    top_genres = [entry.name for entry in tally if entry.name in MAJOR_GENRES][
        :MAX_TOP_GENRES
    ]

    selection: list[str] = []
    for genre in [*gaps, *top_genres]:
        if genre not in selection:
            selection.append(genre)

    return GenreAnalysis(
        total=total,
        percentages=percentages,
        gaps=gaps,
        top_genres=top_genres,
        selection=selection[:MAX_SEARCH_GENRES],
    )


def tally_genres(items: Iterable[CatalogItem]) -> list[GenreCount]:
    """Count genre occurrences across a collection in first-seen order."""

    counts: Counter[str] = Counter()
    for item in items:
        counts.update(item.genres)
    return [GenreCount(name=name, count=count) for name, count in counts.items()]


def compare_genres(
    mine: Iterable[CatalogItem],
    theirs: Iterable[CatalogItem],
    *,
    limit: int = GENRE_OVERLAP_LIMIT,
) -> list[GenreOverlap]:
    """Return the most common genres across both collections with per-side counts."""

    my_counts: Counter[str] = Counter()
    their_counts: Counter[str] = Counter()
    for item in mine:
        my_counts.update(item.genres)
    for item in theirs:
        their_counts.update(item.genres)

    genres = list(my_counts)
    genres.extend(genre for genre in their_counts if genre not in my_counts)
    genres.sort(key=lambda genre: my_counts[genre] + their_counts[genre], reverse=True)
    return [
        GenreOverlap(
            genre=genre,
            my_count=my_counts[genre],
            their_count=their_counts[genre],
        )
        for genre in genres[:limit]
    ]
