import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import K_FACTOR
from ..exceptions import PersistenceError
from ..models import Match, Player, Registration
from .result_store import MatchRecord, load_completed_matches, load_first_levels

logger = logging.getLogger(__name__)

DEFAULT_RATING = 1200
LEVEL_SEEDS = {
    "beginner": 1100,
    "intermediate": 1200,
    "advanced": 1300,
}

_NEVER = datetime.max.replace(tzinfo=timezone.utc)


def seed_for_level(level: str | None) -> int:
    return LEVEL_SEEDS.get((level or "").strip().lower(), DEFAULT_RATING)


def seeds_from_levels(levels: Mapping[str, str]) -> dict[str, int]:
    return {pid: seed_for_level(level) for pid, level in levels.items()}


def expected_score(rating_a: float, rating_b: float) -> float:
    """Probability that A beats B under the Elo logistic curve."""

    return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))


def rating_delta(rating_a: int, rating_b: int, a_won: bool, k: int = K_FACTOR) -> int:
    """Rating change for A; B's change is the negation.

    Halves round up, so the result never depends on banker's rounding.
    """

    actual = 1.0 if a_won else 0.0
    return math.floor(k * (actual - expected_score(rating_a, rating_b)) + 0.5)


def replay_order(matches: Iterable[MatchRecord]) -> list[MatchRecord]:
    """Sort by ``played_at`` (``created_at`` when missing), then match id."""

    return sorted(
        matches,
        key=lambda m: (m.played_at or m.created_at or _NEVER, m.id),
    )


@dataclass(frozen=True)
class RatingSnapshot:
    before: int
    after: int
    change: int

    def as_dict(self) -> dict[str, int]:
        return {"before": self.before, "after": self.after, "change": self.change}


@dataclass(frozen=True)
class MatchRatingChange:
    player1_id: str
    player2_id: str
    player1: RatingSnapshot
    player2: RatingSnapshot

    def for_player(self, player_id: str) -> RatingSnapshot | None:
        if player_id == self.player1_id:
            return self.player1
        if player_id == self.player2_id:
            return self.player2
        return None

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {"player1": self.player1.as_dict(), "player2": self.player2.as_dict()}


@dataclass
class RatingState:
    """Everything one replay of the result log derives."""

    seeds: dict[str, int]
    ratings: dict[str, int] = field(default_factory=dict)
    highest: dict[str, int] = field(default_factory=dict)
    lowest: dict[str, int] = field(default_factory=dict)
    match_changes: dict[str, MatchRatingChange] = field(default_factory=dict)
    registration_ratings: dict[tuple[str, str, str], int] = field(default_factory=dict)
    matches_processed: int = 0
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def rating_for(self, player_id: str) -> int:
        return self.ratings.get(player_id, self.seeds.get(player_id, DEFAULT_RATING))

    def registration_rating(self, player_id: str, league_id: str, season: str) -> int | None:
        key = (player_id, league_id, season)
        if key in self.registration_ratings:
            return self.registration_ratings[key]
        return self.seeds.get(player_id)


def recompute(
    matches: Sequence[MatchRecord],
    seeds: Mapping[str, int],
    *,
    k: int = K_FACTOR,
) -> RatingState:
    """Replay completed matches in time order over the seed ratings."""

    state = RatingState(seeds=dict(seeds))
    state.ratings = dict(seeds)
    state.highest = dict(seeds)
    state.lowest = dict(seeds)

    for match in replay_order(m for m in matches if m.is_completed):
        p1, p2 = match.player1_id, match.player2_id
        missing = [pid for pid in (p1, p2) if pid not in state.ratings]
        if missing:
            message = (
                f"match {match.id} skipped: no registration seed for "
                + ", ".join(missing)
            )
            logger.warning("Rating replay: %s", message)
            state.skipped.append(match.id)
            state.warnings.append(message)
            continue
        if match.winner_id not in (p1, p2):
            message = f"match {match.id} skipped: winner {match.winner_id} is not a participant"
            logger.warning("Rating replay: %s", message)
            state.skipped.append(match.id)
            state.warnings.append(message)
            continue

        before1, before2 = state.ratings[p1], state.ratings[p2]
        if match.walkover:
            delta = 0
        else:
            delta = rating_delta(before1, before2, match.winner_id == p1, k)
        after1, after2 = before1 + delta, before2 - delta

        for pid, after in ((p1, after1), (p2, after2)):
            state.ratings[pid] = after
            state.highest[pid] = max(state.highest[pid], after)
            state.lowest[pid] = min(state.lowest[pid], after)
            state.registration_ratings[(pid, match.league_id, match.season)] = after

        state.match_changes[match.id] = MatchRatingChange(
            player1_id=p1,
            player2_id=p2,
            player1=RatingSnapshot(before1, after1, delta),
            player2=RatingSnapshot(before2, after2, -delta),
        )
        state.matches_processed += 1

    return state


async def replay_result_log(session: AsyncSession) -> tuple[list[MatchRecord], RatingState]:
    """Load the whole completed log and its seeds, and replay it."""

    matches = await load_completed_matches(session)
    seeds = seeds_from_levels(await load_first_levels(session))
    return matches, recompute(matches, seeds)


@dataclass
class RatingReport:
    players: int
    matches_processed: int
    skipped: list[str]
    warnings: list[str]
    dry_run: bool

    def as_dict(self) -> dict:
        return {
            "players": self.players,
            "matchesProcessed": self.matches_processed,
            "skipped": list(self.skipped),
            "warnings": list(self.warnings),
            "dryRun": self.dry_run,
        }


async def write_match_changes(
    session: AsyncSession, state: RatingState, match_ids: Iterable[str]
) -> None:
    for match_id in match_ids:
        change = state.match_changes.get(match_id)
        await session.execute(
            update(Match)
            .where(Match.id == match_id)
            .values(elo_changes=change.as_dict() if change else None)
        )


def apply_player_rating(player: Player, state: RatingState) -> None:
    if player.id not in state.ratings:
        return
    player.rating = state.ratings[player.id]
    player.highest_rating = state.highest[player.id]
    player.lowest_rating = state.lowest[player.id]


async def recompute_ratings(session: AsyncSession, *, dry_run: bool = False) -> RatingReport:
    """Rebuild every cached rating from the result log."""

    matches, state = await replay_result_log(session)
    report = RatingReport(
        players=len(state.ratings),
        matches_processed=state.matches_processed,
        skipped=list(state.skipped),
        warnings=list(state.warnings),
        dry_run=dry_run,
    )
    if dry_run:
        logger.info(
            "Rating dry run: %d players, %d matches, %d skipped",
            report.players,
            report.matches_processed,
            len(report.skipped),
        )
        return report

    try:
        players = (await session.execute(select(Player))).scalars().all()
        for player in players:
            apply_player_rating(player, state)

        registrations = (await session.execute(select(Registration))).scalars().all()
        for reg in registrations:
            reg.rating = state.registration_rating(reg.player_id, reg.league_id, reg.season)

        await write_match_changes(session, state, [m.id for m in matches])
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Rating recompute failed", exc_info=True)
        raise PersistenceError("could not store recomputed ratings") from exc

    logger.info(
        "Recomputed ratings: %d players, %d matches, %d skipped",
        report.players,
        report.matches_processed,
        len(report.skipped),
    )
    return report
