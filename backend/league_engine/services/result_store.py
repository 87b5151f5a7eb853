"""Read/write access to the match log and the player directory.

Every other service reads matches through this module. ORM rows are turned
into immutable :class:`MatchRecord` values so the standings, rating and
history calculators stay pure and never trigger lazy loads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import MatchNotFound, PersistenceError, ValidationError
from ..models import (
    MATCH_COMPLETED,
    MATCH_SCHEDULED,
    PARTICIPATING_STATUSES,
    Match,
    Player,
    Registration,
)
from ..time_utils import coerce_utc, to_naive_utc, utcnow
from .validation import validate_result_submission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchRecord:
    """Immutable view of one row of the match log."""

    id: str
    league_id: str
    season: str
    round: int
    player1_id: str
    player2_id: str | None
    status: str
    winner_id: str | None = None
    sets: tuple[tuple[int | None, int | None], ...] = ()
    walkover: bool = False
    played_at: datetime | None = None
    created_at: datetime | None = None
    is_bye: bool = False

    @property
    def is_completed(self) -> bool:
        return (
            self.status == MATCH_COMPLETED
            and not self.is_bye
            and self.player2_id is not None
            and self.winner_id is not None
        )

    @property
    def group(self) -> tuple[str, str]:
        return self.league_id, self.season

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str | None:
        if player_id == self.player1_id:
            return self.player2_id
        if player_id == self.player2_id:
            return self.player1_id
        return None


def _to_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _parse_sets(score: Any) -> tuple[tuple[int | None, int | None], ...]:
    if not isinstance(score, dict):
        return ()
    raw_sets = score.get("sets")
    if not isinstance(raw_sets, list):
        return ()
    parsed = []
    for entry in raw_sets:
        entry = entry if isinstance(entry, dict) else {}
        parsed.append((_to_int(entry.get("player1")), _to_int(entry.get("player2"))))
    return tuple(parsed)


def match_record(match: Match) -> MatchRecord:
    score = match.score if isinstance(match.score, dict) else {}
    return MatchRecord(
        id=match.id,
        league_id=match.league_id,
        season=match.season,
        round=match.round,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        status=match.status,
        winner_id=match.winner_id,
        sets=_parse_sets(score),
        walkover=bool(score.get("walkover")),
        played_at=coerce_utc(match.played_at),
        created_at=coerce_utc(match.created_at),
        is_bye=bool(match.is_bye),
    )


async def load_completed_matches(
    session: AsyncSession,
    *,
    league_id: str | None = None,
    season: str | None = None,
) -> list[MatchRecord]:
    """Return every completed, non-bye match with a recorded winner."""

    stmt = select(Match).where(
        Match.status == MATCH_COMPLETED,
        Match.is_bye.is_(False),
        Match.winner_id.is_not(None),
        Match.player2_id.is_not(None),
    )
    if league_id is not None:
        stmt = stmt.where(Match.league_id == league_id)
    if season is not None:
        stmt = stmt.where(Match.season == season)
    rows = (await session.execute(stmt.order_by(Match.id))).scalars().all()
    return [match_record(m) for m in rows]


async def load_league_matches(
    session: AsyncSession, league_id: str, season: str
) -> list[MatchRecord]:
    """Return all matches of a league season, byes and scheduled ones included."""

    rows = (
        await session.execute(
            select(Match)
            .where(Match.league_id == league_id, Match.season == season)
            .order_by(Match.round, Match.id)
        )
    ).scalars().all()
    return [match_record(m) for m in rows]


async def load_first_levels(session: AsyncSession) -> dict[str, str]:
    """Map each player to the skill level of their earliest registration."""

    rows = (
        await session.execute(
            select(Registration.player_id, Registration.level).order_by(
                Registration.registered_at, Registration.id
            )
        )
    ).all()
    levels: dict[str, str] = {}
    for player_id, level in rows:
        levels.setdefault(player_id, level)
    return levels


async def load_participants(
    session: AsyncSession, league_id: str, season: str
) -> list[tuple[Registration, Player]]:
    """Return registrations (with their player) eligible for round generation."""

    rows = (
        await session.execute(
            select(Registration, Player)
            .join(Player, Player.id == Registration.player_id)
            .where(
                Registration.league_id == league_id,
                Registration.season == season,
                Registration.status.in_(PARTICIPATING_STATUSES),
                Player.deleted_at.is_(None),
            )
            .order_by(Player.id)
        )
    ).all()
    return [(row.Registration, row.Player) for row in rows]


async def record_result(
    session: AsyncSession,
    match_id: str,
    *,
    winner_id: str,
    sets: Sequence[dict[str, Any]],
    walkover: bool = False,
    played_at: datetime | None = None,
) -> Match:
    """Complete a scheduled match with its final score.

    Completion is terminal: recording a result for a match that is already
    completed (or a bye) raises ``ValidationError``.
    """

    match = await session.get(Match, match_id)
    if match is None:
        raise MatchNotFound(match_id)
    if match.is_bye:
        raise ValidationError(f"match '{match_id}' is a bye and cannot take a result")
    if match.status != MATCH_SCHEDULED:
        raise ValidationError(f"match '{match_id}' is already {match.status}")

    normalized_sets = validate_result_submission(
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        winner_id=winner_id,
        sets=sets,
        walkover=walkover,
    )

    match.status = MATCH_COMPLETED
    match.winner_id = winner_id
    match.score = {"sets": normalized_sets, "walkover": bool(walkover)}
    match.played_at = to_naive_utc(played_at) or match.played_at or utcnow()
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Failed to record result for match %s", match_id, exc_info=True)
        raise PersistenceError(f"could not record result for match '{match_id}'") from exc

    logger.info("Recorded result for match %s (winner=%s)", match_id, winner_id)
    return match
