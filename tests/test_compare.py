"""Tests for collection comparison and trade matching."""

from __future__ import annotations

import pytest

from app.models import CatalogItem
from app.services.compare import TradeMatcher, compare_collections, match_trades
from app.services.discogs import DiscogsError, OAuthCredentials


def _item(release_id: int, master_id: int = 0, title: str = "") -> CatalogItem:
    return CatalogItem(id=release_id, master_id=master_id, title=title or f"Release {release_id}")


def _collection(*master_ids: int, offset: int = 0) -> list[CatalogItem]:
    return [_item(offset + index, master_id) for index, master_id in enumerate(master_ids, 1)]


def test_overlap_and_score_for_partially_shared_collections():
    mine = _collection(1, 2, 3)
    theirs = _collection(2, 3, 4, offset=100)

    result = compare_collections(mine, theirs)

    assert result.overlap_master_ids == (2, 3)
    assert [item.master_id for item in result.overlap] == [2, 3]
    assert [item.master_id for item in result.only_mine] == [1]
    assert [item.master_id for item in result.only_theirs] == [4]
    assert result.compatibility_score == 50


def test_items_without_master_are_excluded_from_every_partition():
    mine = [_item(1, 10), _item(2, 0), _item(3, 20)]
    theirs = [_item(4, 10), _item(5, 0)]

    result = compare_collections(mine, theirs)

    partitioned_ids = {item.id for item in (*result.overlap, *result.only_mine, *result.only_theirs)}
    assert 2 not in partitioned_ids
    assert 5 not in partitioned_ids
    assert [item.id for item in result.overlap] == [1]
    assert [item.id for item in result.only_mine] == [3]
    assert result.only_theirs == ()
    # Unjoinable pressings do not count towards the union either.
    assert result.compatibility_score == 50


@pytest.mark.parametrize(
    ("mine", "theirs"),
    [
        ((1, 2, 3), (2, 3, 4)),
        ((1, 1, 5, 0), (5, 6, 0, 7)),
        ((9,), ()),
        ((), ()),
        ((1, 2, 3, 4, 5, 6, 7), (7, 8)),
    ],
)
def test_partitions_are_disjoint_and_score_is_symmetric(mine, theirs):
    a = _collection(*mine)
    b = _collection(*theirs, offset=100)

    forward = compare_collections(a, b)
    backward = compare_collections(b, a)

    assert forward.compatibility_score == backward.compatibility_score
    overlap_ids = {item.id for item in forward.overlap}
    assert overlap_ids.isdisjoint(item.id for item in forward.only_mine)
    assert overlap_ids.isdisjoint(item.id for item in forward.only_theirs)
    for item in a:
        if item.master_key is None:
            continue
        hits = (item in forward.overlap) + (item in forward.only_mine)
        assert hits == 1
    for item in b:
        if item.master_key is None:
            continue
        assert (item in forward.only_theirs) != (item.master_key in forward.overlap_master_ids)


def test_comparing_a_collection_with_itself_scores_100():
    collection = _collection(1, 2, 0, 3)

    assert compare_collections(collection, collection).compatibility_score == 100


def test_several_pressings_of_one_master_count_once():
    mine = [_item(1, 10), _item(2, 10)]
    theirs = [_item(3, 10)]

    result = compare_collections(mine, theirs)

    assert result.compatibility_score == 100
    assert len(result.overlap) == 2


def test_empty_union_scores_zero():
    assert compare_collections([], []).compatibility_score == 0
    assert compare_collections([_item(1)], [_item(2)]).compatibility_score == 0


def test_score_rounds_halves_up():
    mine = _collection(1, 2, 3, 4, 5)
    theirs = _collection(5, 6, 7, 8, offset=100)

    # 1 shared master out of 8 distinct = 12.5%
    assert compare_collections(mine, theirs).compatibility_score == 13


def test_match_trades_pairs_items_with_first_matching_want():
    my_collection = [_item(1, 10), _item(2, 20), _item(3, 0)]
    their_collection = [_item(4, 30), _item(5, 40)]
    my_wantlist = [_item(90, 40, "Wanted 40"), _item(91, 99)]
    their_wantlist = [
        _item(80, 20, "First want 20"),
        _item(81, 20, "Second want 20"),
        _item(82, 0),
    ]

    trades = match_trades(my_collection, their_collection, my_wantlist, their_wantlist)

    assert [(t.release.id, t.matched_want.title) for t in trades.i_offer] == [
        (2, "First want 20")
    ]
    assert [(t.release.id, t.matched_want.title) for t in trades.they_offer] == [
        (5, "Wanted 40")
    ]


def test_match_trades_is_independent_of_wantlist_order():
    my_collection = [_item(1, 10), _item(2, 20)]
    wants = [_item(80, 20), _item(81, 10)]

    forward = match_trades(my_collection, [], [], wants)
    backward = match_trades(my_collection, [], [], list(reversed(wants)))

    assert [t.release.id for t in forward.i_offer] == [1, 2]
    assert [t.release.id for t in backward.i_offer] == [1, 2]


class FakeWantlistClient:
    def __init__(self, wantlists: dict[str, list[CatalogItem]], failing: set[str]) -> None:
        self.wantlists = wantlists
        self.failing = failing
        self.requested: list[tuple[str, OAuthCredentials | None]] = []

    async def get_wantlist(
        self, username: str, *, credentials: OAuthCredentials | None = None
    ) -> list[CatalogItem]:
        self.requested.append((username, credentials))
        if username in self.failing:
            raise DiscogsError("wantlist unavailable", status_code=503)
        return self.wantlists.get(username, [])


@pytest.mark.anyio("asyncio")
async def test_failed_wantlist_only_empties_its_own_direction():
    client = FakeWantlistClient(
        {"me": [_item(90, 40)], "friend": [_item(80, 10)]},
        failing={"friend"},
    )
    matcher = TradeMatcher(client)

    report = await matcher.find_trades(
        "me",
        "friend",
        [_item(1, 10)],
        [_item(4, 40)],
    )

    assert report.their_wantlist_loaded is False
    assert report.my_wantlist_loaded is True
    assert report.matches.i_offer == ()
    assert [t.release.id for t in report.matches.they_offer] == [4]
    assert {username for username, _ in client.requested} == {"me", "friend"}


@pytest.mark.anyio("asyncio")
async def test_both_wantlists_loaded_produce_both_directions():
    credentials = OAuthCredentials("token", "secret")
    client = FakeWantlistClient(
        {"me": [_item(90, 40)], "friend": [_item(80, 10)]},
        failing=set(),
    )

    report = await TradeMatcher(client).find_trades(
        "me", "friend", [_item(1, 10)], [_item(4, 40)], credentials=credentials
    )

    assert [t.release.id for t in report.matches.i_offer] == [1]
    assert [t.release.id for t in report.matches.they_offer] == [4]
    assert all(creds is credentials for _, creds in client.requested)
