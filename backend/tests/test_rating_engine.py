from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from conftest import at, make_match, make_player, new_session
from league_engine.models import Match, Player, Registration
from league_engine.services.rating import (
    expected_score,
    rating_delta,
    recompute,
    recompute_ratings,
    replay_order,
    seed_for_level,
)
from league_engine.services.result_store import MatchRecord


def rec(mid, p1, p2, winner, day, *, walkover=False, league="L1", season="S1"):
    return MatchRecord(
        id=mid,
        league_id=league,
        season=season,
        round=1,
        player1_id=p1,
        player2_id=p2,
        status="completed",
        winner_id=winner,
        sets=() if walkover else ((6, 3), (6, 4)) if winner == p1 else ((3, 6), (4, 6)),
        walkover=walkover,
        played_at=datetime(2024, 10, day, tzinfo=timezone.utc),
    )


def test_seeds_follow_level() -> None:
    assert seed_for_level("beginner") == 1100
    assert seed_for_level("intermediate") == 1200
    assert seed_for_level("Advanced") == 1300
    assert seed_for_level("unknown") == 1200
    assert seed_for_level(None) == 1200


def test_equal_ratings_move_sixteen_points() -> None:
    assert expected_score(1200, 1200) == pytest.approx(0.5)
    assert rating_delta(1200, 1200, True) == 16
    assert rating_delta(1200, 1200, False) == -16


def test_underdog_win_gains_more() -> None:
    assert rating_delta(1100, 1300, True) > rating_delta(1300, 1100, True)


def test_replay_order_breaks_ties_by_id() -> None:
    matches = [rec("m2", "a", "b", "a", 3), rec("m1", "a", "b", "b", 3), rec("m0", "a", "b", "a", 5)]
    assert [m.id for m in replay_order(matches)] == ["m1", "m2", "m0"]


def test_fold_is_idempotent_and_zero_sum() -> None:
    matches = [
        rec("m1", "a", "b", "a", 1),
        rec("m2", "b", "a", "b", 2),
        rec("m3", "a", "b", "a", 3),
    ]
    seeds = {"a": 1200, "b": 1300}
    first = recompute(matches, seeds)
    second = recompute(list(reversed(matches)), seeds)
    assert first.ratings == second.ratings
    assert first.highest == second.highest
    assert first.lowest == second.lowest
    assert sum(first.ratings.values()) == sum(seeds.values())
    for change in first.match_changes.values():
        assert change.player1.change == -change.player2.change


def test_watermarks_include_seed() -> None:
    state = recompute([rec("m1", "a", "b", "b", 1)], {"a": 1200, "b": 1200})
    assert state.ratings == {"a": 1184, "b": 1216}
    assert state.highest["a"] == 1200
    assert state.lowest["a"] == 1184
    assert state.highest["b"] == 1216
    assert state.lowest["b"] == 1200


def test_walkover_records_snapshot_without_change() -> None:
    state = recompute([rec("m1", "a", "b", "a", 1, walkover=True)], {"a": 1200, "b": 1100})
    assert state.ratings == {"a": 1200, "b": 1100}
    change = state.match_changes["m1"]
    assert change.as_dict() == {
        "player1": {"before": 1200, "after": 1200, "change": 0},
        "player2": {"before": 1100, "after": 1100, "change": 0},
    }
    assert state.matches_processed == 1


def test_missing_seed_skips_match_with_warning() -> None:
    state = recompute(
        [rec("m1", "a", "ghost", "a", 1), rec("m2", "a", "b", "a", 2)],
        {"a": 1200, "b": 1200},
    )
    assert state.skipped == ["m1"]
    assert "ghost" in state.warnings[0]
    assert state.matches_processed == 1
    assert "ghost" not in state.ratings


def test_registration_snapshot_tracks_last_match_in_group() -> None:
    matches = [
        rec("m1", "a", "b", "a", 1, league="L1"),
        rec("m2", "a", "b", "a", 2, league="L2"),
    ]
    state = recompute(matches, {"a": 1200, "b": 1200})
    after_first = state.match_changes["m1"].player1.after
    assert state.registration_rating("a", "L1", "S1") == after_first
    assert state.registration_rating("a", "L2", "S1") == state.ratings["a"]
    assert state.registration_rating("a", "L3", "S1") == 1200


@pytest.mark.anyio
async def test_recompute_ratings_persists_caches() -> None:
    async with new_session() as session:
        session.add_all(make_player("a", level="advanced") + make_player("b", level="beginner"))
        await session.flush()
        session.add(make_match("m1", "a", "b", winner="b", sets=[(3, 6), (4, 6)], played=at(2)))
        await session.commit()

        report = await recompute_ratings(session)
        assert report.as_dict()["matchesProcessed"] == 1

    async with new_session() as session:
        players = {p.id: p for p in (await session.execute(select(Player))).scalars()}
        assert players["a"].rating < 1300
        assert players["a"].highest_rating == 1300
        assert players["b"].rating > 1100
        assert players["b"].lowest_rating == 1100
        assert players["a"].rating + players["b"].rating == 2400

        match = await session.get(Match, "m1")
        assert match.elo_changes["player1"]["before"] == 1300
        assert match.elo_changes["player2"]["change"] == -match.elo_changes["player1"]["change"]

        reg = (
            await session.execute(select(Registration).where(Registration.player_id == "b"))
        ).scalar_one()
        assert reg.rating == players["b"].rating


@pytest.mark.anyio
async def test_recompute_ratings_dry_run_writes_nothing() -> None:
    async with new_session() as session:
        session.add_all(make_player("a") + make_player("b"))
        await session.flush()
        session.add(make_match("m1", "a", "b", winner="a", sets=[(6, 3), (6, 4)], played=at(2)))
        await session.commit()

        report = await recompute_ratings(session, dry_run=True)
        assert report.dry_run is True

    async with new_session() as session:
        assert (await session.get(Player, "a")).rating is None
        assert (await session.get(Match, "m1")).elo_changes is None


@pytest.mark.anyio
async def test_seed_comes_from_earliest_registration() -> None:
    async with new_session() as session:
        session.add_all(
            make_player("a", level="advanced", season="S2", registered=at(5))
            + [
                Registration(
                    id="reg-a-early",
                    player_id="a",
                    league_id="L1",
                    season="S1",
                    level="beginner",
                    status="active",
                    registered_at=at(1),
                )
            ]
        )
        await session.commit()
        report = await recompute_ratings(session)
        assert report.players == 1

    async with new_session() as session:
        assert (await session.get(Player, "a")).rating == 1100
