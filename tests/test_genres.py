from app.models import CatalogItem, GenreCount
from app.services.genres import (
    MAJOR_GENRES,
    analyze_genres,
    compare_genres,
    tally_genres,
)


def _tally(*entries: tuple[str, int]) -> list[GenreCount]:
    return [GenreCount(name=name, count=count) for name, count in entries]


def test_major_genre_reference_list_is_fixed():
    assert len(MAJOR_GENRES) == 12
    assert MAJOR_GENRES[:3] == ("Electronic", "Rock", "Jazz")
    assert MAJOR_GENRES[-1] == "Stage & Screen"


def test_empty_tally_yields_no_gaps():
    """A collection with no genre data cannot be analysed without dividing by zero."""

    for tally in ([], _tally(("Rock", 0), ("Jazz", 0))):
        analysis = analyze_genres(tally)
        assert analysis.total == 0
        assert analysis.gaps == []
        assert analysis.top_genres == []
        assert analysis.selection == []


def test_single_genre_collection_scans_reference_order():
    analysis = analyze_genres(_tally(("Rock", 100)))

    assert analysis.percentages == {"Rock": 100.0}
    assert analysis.gaps == ["Electronic", "Jazz", "Hip Hop"]
    assert analysis.top_genres == ["Rock"]
    assert analysis.selection == ["Electronic", "Jazz", "Hip Hop", "Rock"]


def test_low_share_genre_is_a_gap_in_reference_position():
    """Jazz at 5% is a gap and keeps its reference slot ahead of Hip Hop."""

    analysis = analyze_genres(_tally(("Jazz", 5), ("Rock", 95)))

    assert analysis.percentages["Jazz"] == 5.0
    assert analysis.gaps == ["Electronic", "Jazz", "Hip Hop"]
    assert analysis.top_genres == ["Jazz", "Rock"]
    assert analysis.selection == ["Electronic", "Jazz", "Hip Hop", "Rock"]


def test_exactly_ten_percent_is_not_a_gap():
    analysis = analyze_genres(_tally(("Jazz", 10), ("Rock", 90)))

    assert analysis.gaps == ["Electronic", "Hip Hop", "Classical"]


def test_top_genres_keep_tally_order_and_skip_non_major_genres():
    analysis = analyze_genres(
        _tally(("Non-Music", 50), ("Pop", 10), ("Rock", 30), ("Jazz", 10))
    )

    assert analysis.top_genres == ["Pop", "Rock"]


def test_selection_is_truncated_to_four_with_gaps_first():
    analysis = analyze_genres(_tally(("Electronic", 40), ("Rock", 30), ("Jazz", 30)))

    assert analysis.gaps == ["Hip Hop", "Classical", "Folk, World, & Country"]
    assert analysis.top_genres == ["Electronic", "Rock"]
    assert analysis.selection == [
        "Hip Hop",
        "Classical",
        "Folk, World, & Country",
        "Electronic",
    ]


def test_gap_count_never_exceeds_three():
    tally = _tally(*((genre, 1) for genre in MAJOR_GENRES))

    analysis = analyze_genres(tally)

    assert analysis.gaps == ["Electronic", "Rock", "Jazz"]
    assert len(analysis.selection) <= 4


def test_tally_genres_counts_in_first_seen_order():
    items = [
        CatalogItem(id=1, genres=("Jazz", "Funk / Soul")),
        CatalogItem(id=2, genres=("Rock",)),
        CatalogItem(id=3, genres=("Jazz",)),
    ]

    assert tally_genres(items) == _tally(("Jazz", 2), ("Funk / Soul", 1), ("Rock", 1))


def test_compare_genres_ranks_by_combined_count():
    mine = [
        CatalogItem(id=1, genres=("Jazz",)),
        CatalogItem(id=2, genres=("Jazz", "Rock")),
    ]
    theirs = [
        CatalogItem(id=3, genres=("Rock",)),
        CatalogItem(id=4, genres=("Rock", "Reggae")),
        CatalogItem(id=5, genres=("Electronic",)),
    ]

    overlap = compare_genres(mine, theirs)

    assert [(g.genre, g.my_count, g.their_count) for g in overlap] == [
        ("Rock", 1, 2),
        ("Jazz", 2, 0),
        ("Reggae", 0, 1),
        ("Electronic", 0, 1),
    ]


def test_compare_genres_honours_limit():
    mine = [CatalogItem(id=n, genres=(f"Genre {n}",)) for n in range(1, 12)]

    assert len(compare_genres(mine, [], limit=8)) == 8
