import pytest

from league_engine.exceptions import DataIntegrityError, ValidationError
from league_engine.models import MATCH_COMPLETED, MATCH_SCHEDULED
from league_engine.services.result_store import MatchRecord
from league_engine.services.standings import (
    SetsGames,
    aggregate_stats,
    league_standings,
    points,
    sets_games,
)


def record(mid="m1", p1="a", p2="b", winner="a", sets=(), walkover=False, **kw):
    kw.setdefault("status", MATCH_COMPLETED if winner else MATCH_SCHEDULED)
    return MatchRecord(
        id=mid,
        league_id=kw.pop("league", "L1"),
        season=kw.pop("season", "S1"),
        round=kw.pop("round", 1),
        player1_id=p1,
        player2_id=p2,
        winner_id=winner,
        sets=tuple(sets),
        walkover=walkover,
        **kw,
    )


@pytest.mark.parametrize(
    "sets, winner, expected_a, expected_b",
    [
        ([(6, 3), (6, 2)], "a", 3, 0),
        ([(6, 3), (4, 6), (10, 8)], "a", 2, 1),
        ([(3, 6), (6, 4), (8, 10)], "b", 1, 2),
        ([(2, 6), (3, 6)], "b", 0, 3),
    ],
    ids=["win-2-0", "win-2-1", "loss-1-2", "loss-0-2"],
)
def test_points_table(sets, winner, expected_a, expected_b) -> None:
    match = record(sets=sets, winner=winner)
    assert points(match, "a") == expected_a
    assert points(match, "b") == expected_b


def test_walkover_points_and_sets() -> None:
    match = record(winner="b", walkover=True)
    assert points(match, "b") == 2
    assert points(match, "a") == 0
    assert sets_games(match, "b") == SetsGames(sets_won=2)
    assert sets_games(match, "a") == SetsGames(sets_lost=2)


def test_three_set_match_from_both_sides() -> None:
    match = record(sets=[(6, 3), (4, 6), (10, 8)], winner="a")
    assert points(match, "a") == 2
    assert points(match, "b") == 1
    assert sets_games(match, "a") == SetsGames(2, 1, 20, 17)
    assert sets_games(match, "b") == SetsGames(1, 2, 17, 20)


def test_incomplete_match_scores_nothing() -> None:
    match = record(winner=None)
    assert points(match, "a") == 0
    assert sets_games(match, "a") == SetsGames()


@pytest.mark.parametrize(
    "sets, winner",
    [
        ([], "a"),
        ([(6, 6), (6, 2)], "a"),
        ([(6, 3)], "a"),
        ([(6, 3), (6, 2), (6, 1)], "a"),
        ([(6, 3), (6, 2)], "b"),
        ([(6, None), (6, 2)], "a"),
    ],
    ids=["no-sets", "tied-set", "one-set", "three-nil", "winner-mismatch", "incomplete-set"],
)
def test_malformed_completed_score_raises(sets, winner) -> None:
    with pytest.raises(ValidationError):
        points(record(sets=sets, winner=winner), "a")


def test_outsider_is_a_data_integrity_error() -> None:
    with pytest.raises(DataIntegrityError):
        points(record(sets=[(6, 1), (6, 1)]), "z")


def test_aggregate_stats_counts_matches_and_walkovers() -> None:
    matches = [
        record("m1", sets=[(6, 3), (6, 2)], winner="a"),
        record("m2", p1="c", p2="a", winner="c", walkover=True),
        record("m3", p1="a", p2="c", winner=None),
        record("m4", p1="b", p2="c", sets=[(6, 0), (6, 0)], winner="b"),
    ]
    stats = aggregate_stats(matches, "a")
    assert stats == {
        "matchesPlayed": 2,
        "matchesWon": 1,
        "matchesLost": 1,
        "setsWon": 2,
        "setsLost": 2,
        "gamesWon": 12,
        "gamesLost": 5,
        "totalPoints": 3,
        "walkovers": 1,
    }


def test_league_standings_order() -> None:
    matches = [
        record("m1", p1="a", p2="b", sets=[(6, 3), (6, 2)], winner="a"),
        record("m2", p1="c", p2="d", sets=[(6, 3), (3, 6), (7, 5)], winner="c"),
    ]
    rows = league_standings(
        [("a", "Ann"), ("b", "Bob"), ("c", "Cat"), ("d", "Dan"), ("e", "Eve")],
        matches,
    )
    assert [r["playerId"] for r in rows] == ["a", "c", "d", "b", "e"]
    assert [r["position"] for r in rows] == [1, 2, 3, 4, 5]
    assert rows[-1]["stats"]["matchesPlayed"] == 0
