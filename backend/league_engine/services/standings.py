"""Points, sets and games for completed league matches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ..exceptions import DataIntegrityError, ValidationError
from .result_store import MatchRecord

WALKOVER_WIN_POINTS = 2
WALKOVER_LOSS_POINTS = 0

# (sets won, sets lost) -> standings points
SET_TALLY_POINTS = {
    (2, 0): 3,
    (2, 1): 2,
    (1, 2): 1,
    (0, 2): 0,
}


@dataclass(frozen=True)
class SetsGames:
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0


EMPTY_TALLY = SetsGames()


def _is_player1(match: MatchRecord, player_id: str) -> bool:
    if player_id == match.player1_id:
        return True
    if player_id == match.player2_id:
        return False
    raise DataIntegrityError(
        f"player '{player_id}' did not play match '{match.id}'",
        player_id=player_id,
    )


def _set_scores(match: MatchRecord) -> list[tuple[int, int]]:
    if not match.sets:
        raise ValidationError(f"match '{match.id}' is completed without set scores")
    scores = []
    for i, (p1, p2) in enumerate(match.sets, start=1):
        if p1 is None or p2 is None:
            raise ValidationError(f"match '{match.id}': set #{i} is incomplete")
        if p1 == p2:
            raise ValidationError(f"match '{match.id}': set #{i} is a tie")
        scores.append((p1, p2))
    return scores


def _checked_tally(match: MatchRecord) -> tuple[list[tuple[int, int]], int, int]:
    scores = _set_scores(match)
    p1_sets = sum(1 for p1, p2 in scores if p1 > p2)
    p2_sets = len(scores) - p1_sets
    if (p1_sets, p2_sets) not in SET_TALLY_POINTS:
        raise ValidationError(
            f"match '{match.id}' has an impossible set tally {p1_sets}-{p2_sets}"
        )
    set_winner = match.player1_id if p1_sets > p2_sets else match.player2_id
    if set_winner != match.winner_id:
        raise ValidationError(
            f"match '{match.id}': recorded winner disagrees with the set scores"
        )
    return scores, p1_sets, p2_sets


def sets_games(match: MatchRecord, player_id: str) -> SetsGames:
    """Sets and games from ``player_id``'s side of a completed match."""

    if not match.is_completed:
        return EMPTY_TALLY
    is_p1 = _is_player1(match, player_id)

    if match.walkover:
        if match.winner_id == player_id:
            return SetsGames(sets_won=2)
        return SetsGames(sets_lost=2)

    scores, p1_sets, p2_sets = _checked_tally(match)
    p1_games = sum(p1 for p1, _ in scores)
    p2_games = sum(p2 for _, p2 in scores)
    if is_p1:
        return SetsGames(p1_sets, p2_sets, p1_games, p2_games)
    return SetsGames(p2_sets, p1_sets, p2_games, p1_games)


def points(match: MatchRecord, player_id: str) -> int:
    """Standings points earned by ``player_id`` in ``match``."""

    if not match.is_completed:
        return 0
    _is_player1(match, player_id)

    if match.walkover:
        return WALKOVER_WIN_POINTS if match.winner_id == player_id else WALKOVER_LOSS_POINTS

    tally = sets_games(match, player_id)
    return SET_TALLY_POINTS[(tally.sets_won, tally.sets_lost)]


def empty_stats() -> dict[str, int]:
    return {
        "matchesPlayed": 0,
        "matchesWon": 0,
        "matchesLost": 0,
        "setsWon": 0,
        "setsLost": 0,
        "gamesWon": 0,
        "gamesLost": 0,
        "totalPoints": 0,
        "walkovers": 0,
    }


def aggregate_stats(matches: Iterable[MatchRecord], player_id: str) -> dict[str, int]:
    """Fold a player's completed matches into a ``stats`` record."""

    stats = empty_stats()
    for match in matches:
        if not match.is_completed or not match.involves(player_id):
            continue
        tally = sets_games(match, player_id)
        stats["matchesPlayed"] += 1
        if match.winner_id == player_id:
            stats["matchesWon"] += 1
        else:
            stats["matchesLost"] += 1
        stats["setsWon"] += tally.sets_won
        stats["setsLost"] += tally.sets_lost
        stats["gamesWon"] += tally.games_won
        stats["gamesLost"] += tally.games_lost
        stats["totalPoints"] += points(match, player_id)
        if match.walkover:
            stats["walkovers"] += 1
    return stats


def _standing_key(row: dict[str, Any]):
    stats = row["stats"]
    return (
        stats["matchesPlayed"] == 0,
        -stats["totalPoints"],
        -(stats["setsWon"] - stats["setsLost"]),
        -(stats["gamesWon"] - stats["gamesLost"]),
        row["name"],
        row["playerId"],
    )


def sort_standings(rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order standings rows and number them from 1."""

    ordered = sorted(rows, key=_standing_key)
    return [{**row, "position": index} for index, row in enumerate(ordered, start=1)]


def league_standings(
    players: Iterable[tuple[str, str]], matches: Sequence[MatchRecord]
) -> list[dict[str, Any]]:
    """Standings for ``(player_id, name)`` pairs over a season's matches."""

    rows = [
        {"playerId": pid, "name": name, "stats": aggregate_stats(matches, pid)}
        for pid, name in players
    ]
    return sort_standings(rows)
