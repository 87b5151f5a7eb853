"""Rebuilds the per-registration ``stats`` and ``match_history`` caches.

The caches are a materialized view over the completed result log. A rebuild
replays the log once through the rating engine, recomputes every targeted
player's caches and writes only the players whose caches actually changed.
"""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import DataIntegrityError, PlayerNotFound, ValidationError
from ..models import Match, Player, Registration
from ..time_utils import isoformat_utc
from .rating import (
    RatingState,
    apply_player_rating,
    replay_order,
    replay_result_log,
    write_match_changes,
)
from .result_store import MatchRecord
from .standings import aggregate_stats

logger = logging.getLogger(__name__)

WALKOVER_LABEL = "Walkover"


def score_string(match: MatchRecord, player_id: str) -> str:
    """Set scores from ``player_id``'s side, e.g. ``"6-3, 4-6"``."""

    if match.walkover:
        return WALKOVER_LABEL
    is_p1 = player_id == match.player1_id
    parts = []
    for p1, p2 in match.sets:
        mine, theirs = (p1, p2) if is_p1 else (p2, p1)
        parts.append(f"{mine}-{theirs}")
    return ", ".join(parts)


def history_entry(match: MatchRecord, player_id: str, state: RatingState) -> dict[str, Any]:
    change = state.match_changes.get(match.id)
    snapshot = change.for_player(player_id) if change else None
    return {
        "match": match.id,
        "opponent": match.opponent_of(player_id),
        "result": "won" if match.winner_id == player_id else "lost",
        "scoreString": score_string(match, player_id),
        "eloChange": snapshot.change if snapshot else 0,
        "eloAfter": snapshot.after if snapshot else None,
        "round": match.round,
        "date": isoformat_utc(match.played_at or match.created_at),
    }


def build_match_history(
    matches: Sequence[MatchRecord], player_id: str, state: RatingState
) -> list[dict[str, Any]]:
    """History entries, most recent first."""

    entries = [
        history_entry(m, player_id, state)
        for m in replay_order(matches)
        if m.is_completed and m.involves(player_id)
    ]
    entries.reverse()
    return entries


@dataclass(frozen=True)
class RegistrationCache:
    stats: dict[str, int]
    match_history: list[dict[str, Any]]
    rating: Optional[int]

    def as_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats,
            "matchHistory": self.match_history,
            "rating": self.rating,
        }


def build_registration_cache(
    matches: Sequence[MatchRecord],
    player_id: str,
    league_id: str,
    season: str,
    state: RatingState,
) -> RegistrationCache:
    group = [m for m in matches if m.group == (league_id, season)]
    return RegistrationCache(
        stats=aggregate_stats(group, player_id),
        match_history=build_match_history(group, player_id, state),
        rating=state.registration_rating(player_id, league_id, season),
    )


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


@dataclass
class RebuildReport:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0
    dry_run: bool = False
    errors: list[dict[str, str]] = field(default_factory=list)

    def record_error(self, player_id: str, exc: Exception) -> None:
        self.errored += 1
        self.errors.append({"playerId": player_id, "error": str(exc)})

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "skipped": self.skipped,
            "errored": self.errored,
            "dryRun": self.dry_run,
            "errors": list(self.errors),
        }


async def _target_players(session: AsyncSession, player_id: Optional[str]) -> list[str]:
    if player_id is not None:
        if await session.get(Player, player_id) is None:
            raise PlayerNotFound(player_id)
        return [player_id]
    return list(
        (
            await session.execute(
                select(Registration.player_id).distinct().order_by(Registration.player_id)
            )
        ).scalars().all()
    )


def _player_snapshot(player: Player) -> dict[str, Optional[int]]:
    return {
        "rating": player.rating,
        "highest": player.highest_rating,
        "lowest": player.lowest_rating,
    }


def _expected_player_snapshot(player_id: str, state: RatingState, current: dict) -> dict:
    if player_id not in state.ratings:
        return current
    return {
        "rating": state.ratings[player_id],
        "highest": state.highest[player_id],
        "lowest": state.lowest[player_id],
    }


async def _rebuild_player(
    session: AsyncSession,
    player_id: str,
    matches: Sequence[MatchRecord],
    state: RatingState,
    *,
    dry_run: bool,
) -> bool:
    """Rebuild one player's caches; returns whether anything changed."""

    player = await session.get(Player, player_id)
    if player is None:
        raise PlayerNotFound(player_id)
    registrations = (
        await session.execute(
            select(Registration)
            .where(Registration.player_id == player_id)
            .order_by(Registration.registered_at, Registration.id)
        )
    ).scalars().all()

    registered_groups = {(r.league_id, r.season) for r in registrations}
    by_group: dict[tuple[str, str], list[MatchRecord]] = defaultdict(list)
    for m in matches:
        by_group[m.group].append(m)
    for group in sorted(by_group):
        if group not in registered_groups:
            league_id, season = group
            raise DataIntegrityError(
                f"player '{player_id}' has completed matches in league {league_id} "
                f"season {season} without a registration",
                player_id=player_id,
            )

    caches = {
        reg.id: build_registration_cache(
            matches, player_id, reg.league_id, reg.season, state
        )
        for reg in registrations
    }
    match_ids = [m.id for m in matches]
    stored_changes = {}
    if match_ids:
        stored_changes = dict(
            (
                await session.execute(
                    select(Match.id, Match.elo_changes).where(Match.id.in_(match_ids))
                )
            ).all()
        )

    current_player = _player_snapshot(player)
    before = {
        "player": current_player,
        "registrations": {
            reg.id: {
                "stats": reg.stats,
                "matchHistory": reg.match_history,
                "rating": reg.rating,
            }
            for reg in registrations
        },
        "eloChanges": stored_changes,
    }
    after = {
        "player": _expected_player_snapshot(player_id, state, current_player),
        "registrations": {reg_id: cache.as_dict() for reg_id, cache in caches.items()},
        "eloChanges": {
            mid: state.match_changes[mid].as_dict() if mid in state.match_changes else None
            for mid in match_ids
        },
    }
    if _canonical(before) == _canonical(after):
        return False
    if dry_run:
        return True

    apply_player_rating(player, state)
    for reg in registrations:
        cache = caches[reg.id]
        reg.stats = cache.stats
        reg.match_history = cache.match_history
        reg.rating = cache.rating
    await write_match_changes(session, state, match_ids)
    await session.commit()
    return True


async def rebuild_history(
    session: AsyncSession,
    player_id: Optional[str] = None,
    *,
    dry_run: bool = False,
) -> RebuildReport:
    """Rebuild caches for one player, or for every registered player."""

    targets = await _target_players(session, player_id)
    all_matches, state = await replay_result_log(session)

    per_player: dict[str, list[MatchRecord]] = defaultdict(list)
    for m in all_matches:
        per_player[m.player1_id].append(m)
        if m.player2_id is not None:
            per_player[m.player2_id].append(m)

    report = RebuildReport(dry_run=dry_run)
    for pid in targets:
        report.processed += 1
        try:
            changed = await _rebuild_player(
                session, pid, per_player.get(pid, []), state, dry_run=dry_run
            )
        except (DataIntegrityError, ValidationError) as exc:
            logger.warning("Skipping history rebuild for player %s: %s", pid, exc)
            report.record_error(pid, exc)
            continue
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("Failed to store history for player %s", pid, exc_info=True)
            report.record_error(pid, exc)
            continue

        if changed:
            report.updated += 1
        else:
            report.skipped += 1

    logger.info(
        "History rebuild%s: processed=%d updated=%d skipped=%d errored=%d",
        " (dry run)" if dry_run else "",
        report.processed,
        report.updated,
        report.skipped,
        report.errored,
    )
    return report
