"""Round planning, commit and bookkeeping for a league season."""

import logging
import uuid
from collections import Counter, defaultdict
from typing import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import is_unique_violation
from ..exceptions import PersistenceError, ValidationError
from ..models import MATCH_COMPLETED, MATCH_SCHEDULED, Match, Round
from ..time_utils import utcnow
from .pairing import Candidate, PairingPlan, build_plan, validate_pairings
from .rating import replay_result_log
from .result_store import MatchRecord, load_league_matches, load_participants
from .standings import aggregate_stats

logger = logging.getLogger(__name__)


def _round_exists_error(league: str, season: str, number: int) -> ValidationError:
    return ValidationError(
        f"round {number} already exists for league {league} season {season}"
    )


async def _round_exists(session: AsyncSession, league: str, season: str, number: int) -> bool:
    guard = (
        await session.execute(
            select(Round.id).where(
                Round.league_id == league, Round.season == season, Round.number == number
            )
        )
    ).first()
    if guard is not None:
        return True
    match = (
        await session.execute(
            select(Match.id)
            .where(Match.league_id == league, Match.season == season, Match.round == number)
            .limit(1)
        )
    ).first()
    return match is not None


def season_opponents(matches: Sequence[MatchRecord]) -> dict[str, set[str]]:
    """Who has already been drawn against whom, scheduled matches included."""

    opponents: dict[str, set[str]] = defaultdict(set)
    for m in matches:
        if m.is_bye or m.player2_id is None:
            continue
        opponents[m.player1_id].add(m.player2_id)
        opponents[m.player2_id].add(m.player1_id)
    return opponents


def season_byes(matches: Sequence[MatchRecord]) -> Counter:
    return Counter(m.player1_id for m in matches if m.is_bye)


async def plan_round(
    session: AsyncSession, league: str, season: str, round_number: int
) -> PairingPlan:
    """Work out the pairings for a round without writing anything."""

    if round_number < 1:
        raise ValidationError("round must be a positive integer")
    if await _round_exists(session, league, season, round_number):
        raise _round_exists_error(league, season, round_number)

    participants = await load_participants(session, league, season)
    if not participants:
        raise ValidationError(f"no active players for season {season}")

    all_completed, state = await replay_result_log(session)
    season_matches = await load_league_matches(session, league, season)
    completed = [
        m for m in all_completed if m.league_id == league and m.season == season
    ]
    byes = season_byes(season_matches)

    candidates = []
    for _reg, player in participants:
        stats = aggregate_stats(completed, player.id)
        candidates.append(
            Candidate(
                player_id=player.id,
                name=player.name,
                points=stats["totalPoints"],
                rating=state.rating_for(player.id),
                wins=stats["matchesWon"],
                byes=byes.get(player.id, 0),
            )
        )

    plan = build_plan(league, season, round_number, candidates, season_opponents(season_matches))
    logger.info(
        "Planned round %d for %s/%s: %d matches, %d rematches, bye=%s",
        round_number,
        league,
        season,
        plan.total_matches,
        plan.rematches,
        plan.bye_player,
    )
    return plan


async def apply_plan(session: AsyncSession, plan: PairingPlan) -> list[Match]:
    """Persist a plan as one round: all of its matches or none of them."""

    problems = validate_pairings(plan.pairings)
    if problems:
        raise ValidationError(" ".join(problems))

    now = utcnow()
    session.add(
        Round(
            id=uuid.uuid4().hex,
            league_id=plan.league,
            season=plan.season,
            number=plan.round,
            created_at=now,
        )
    )
    created: list[Match] = []
    for pairing in plan.pairings:
        created.append(
            Match(
                id=uuid.uuid4().hex,
                league_id=plan.league,
                season=plan.season,
                round=plan.round,
                player1_id=pairing.player1,
                player2_id=pairing.player2,
                is_bye=False,
                status=MATCH_SCHEDULED,
                created_at=now,
            )
        )
    if plan.bye_player is not None:
        created.append(
            Match(
                id=uuid.uuid4().hex,
                league_id=plan.league,
                season=plan.season,
                round=plan.round,
                player1_id=plan.bye_player,
                player2_id=None,
                is_bye=True,
                status=MATCH_COMPLETED,
                winner_id=plan.bye_player,
                played_at=now,
                created_at=now,
            )
        )
    session.add_all(created)

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc, Round.__tablename__):
            raise _round_exists_error(plan.league, plan.season, plan.round) from exc
        logger.error("Committing round %d failed", plan.round, exc_info=True)
        raise PersistenceError(f"could not store round {plan.round}") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Committing round %d failed", plan.round, exc_info=True)
        raise PersistenceError(f"could not store round {plan.round}") from exc

    logger.info(
        "Committed round %d for %s/%s with %d matches",
        plan.round,
        plan.league,
        plan.season,
        len(created),
    )
    return created


async def commit_round(
    session: AsyncSession, league: str, season: str, round_number: int
) -> list[Match]:
    plan = await plan_round(session, league, season, round_number)
    return await apply_plan(session, plan)


async def round_status(session: AsyncSession, league: str, season: str) -> dict:
    """Per-round match counts plus the next round to generate."""

    matches = await load_league_matches(session, league, season)
    guard_numbers = (
        await session.execute(
            select(Round.number).where(Round.league_id == league, Round.season == season)
        )
    ).scalars().all()

    rounds: dict[int, dict] = {}
    for number in guard_numbers:
        rounds.setdefault(number, _empty_round(number))
    for m in matches:
        summary = rounds.setdefault(m.round, _empty_round(m.round))
        if m.is_bye:
            summary["byes"] += 1
            continue
        summary["totalMatches"] += 1
        if m.status == MATCH_COMPLETED:
            summary["completedMatches"] += 1
        else:
            summary["scheduledMatches"] += 1

    active_players = len(await load_participants(session, league, season))
    current = max(rounds) if rounds else 0
    return {
        "league": league,
        "season": season,
        "rounds": [rounds[n] for n in sorted(rounds)],
        "totalRounds": len(rounds),
        "currentRound": current,
        "nextRound": current + 1,
        "activePlayers": active_players,
    }


def _empty_round(number: int) -> dict:
    return {
        "round": number,
        "totalMatches": 0,
        "completedMatches": 0,
        "scheduledMatches": 0,
        "byes": 0,
    }


async def delete_round(session: AsyncSession, league: str, season: str, round_number: int) -> int:
    """Remove a round's matches and its guard row; returns the match count."""

    count = (
        await session.execute(
            select(func.count(Match.id)).where(
                Match.league_id == league,
                Match.season == season,
                Match.round == round_number,
            )
        )
    ).scalar_one()
    try:
        await session.execute(
            delete(Match).where(
                Match.league_id == league,
                Match.season == season,
                Match.round == round_number,
            )
        )
        await session.execute(
            delete(Round).where(
                Round.league_id == league,
                Round.season == season,
                Round.number == round_number,
            )
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Deleting round %d failed", round_number, exc_info=True)
        raise PersistenceError(f"could not delete round {round_number}") from exc

    logger.info("Deleted round %d for %s/%s (%d matches)", round_number, league, season, count)
    return count
