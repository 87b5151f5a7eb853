"""Swiss-system pairing for one league round.

Everything here is pure: the caller supplies ranked candidates and the
season's opponent history, and gets back an immutable :class:`PairingPlan`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from ..config import PAIRING_SEARCH_BUDGET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    player_id: str
    name: str
    points: int = 0
    rating: int = 0
    wins: int = 0
    byes: int = 0

    def snapshot(self) -> "PlayerSnapshot":
        return PlayerSnapshot(rating=self.rating, wins=self.wins, points=self.points)


@dataclass(frozen=True)
class PlayerSnapshot:
    rating: int
    wins: int
    points: int

    def as_dict(self) -> dict[str, int]:
        return {"rating": self.rating, "wins": self.wins, "points": self.points}


@dataclass(frozen=True)
class Pairing:
    player1: str
    player2: str
    player1_name: str
    player2_name: str
    is_rematch: bool
    player1_snapshot: PlayerSnapshot
    player2_snapshot: PlayerSnapshot

    def as_dict(self) -> dict:
        return {
            "player1": self.player1,
            "player2": self.player2,
            "player1Name": self.player1_name,
            "player2Name": self.player2_name,
            "isRematch": self.is_rematch,
            "player1Snapshot": self.player1_snapshot.as_dict(),
            "player2Snapshot": self.player2_snapshot.as_dict(),
        }


@dataclass(frozen=True)
class PairingPlan:
    league: str
    season: str
    round: int
    total_players: int
    pairings: tuple[Pairing, ...]
    bye_player: Optional[str] = None

    @property
    def total_matches(self) -> int:
        return len(self.pairings)

    @property
    def rematches(self) -> int:
        return sum(1 for p in self.pairings if p.is_rematch)

    def as_dict(self) -> dict:
        return {
            "league": self.league,
            "season": self.season,
            "round": self.round,
            "totalMatches": self.total_matches,
            "totalPlayers": self.total_players,
            "rematches": self.rematches,
            "byePlayer": self.bye_player,
            "pairings": [p.as_dict() for p in self.pairings],
        }


def rank_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Points desc, rating desc, then name and id for a total order."""

    return sorted(candidates, key=lambda c: (-c.points, -c.rating, c.name, c.player_id))


def select_bye(ranked: Sequence[Candidate]) -> Optional[Candidate]:
    """Fewest prior byes wins the bye; ties go to the lowest-ranked player."""

    if len(ranked) % 2 == 0:
        return None
    return min(reversed(ranked), key=lambda c: c.byes)


class _BudgetExhausted(Exception):
    pass


def _met(opponents: Mapping[str, set[str]], a: str, b: str) -> bool:
    return b in opponents.get(a, ())


def maximum_matching(adjacency: Sequence[Sequence[int]]) -> list[int]:
    """Edmonds' blossom algorithm on a general graph.

    ``adjacency[v]`` lists the neighbours of vertex ``v``. Returns ``mate``
    where ``mate[v]`` is the vertex matched to ``v``, or ``-1``.
    """

    n = len(adjacency)
    mate = [-1] * n
    for v in range(n):
        if mate[v] == -1:
            for to in adjacency[v]:
                if mate[to] == -1:
                    mate[v], mate[to] = to, v
                    break

    def augmenting_path(root: int) -> tuple[int, list[int]]:
        used = [False] * n
        parent = [-1] * n
        base = list(range(n))

        def common_base(a: int, b: int) -> int:
            seen = [False] * n
            while True:
                a = base[a]
                seen[a] = True
                if mate[a] == -1:
                    break
                a = parent[mate[a]]
            while True:
                b = base[b]
                if seen[b]:
                    return b
                b = parent[mate[b]]

        def mark_path(v: int, b: int, child: int, blossom: list[bool]) -> None:
            while base[v] != b:
                blossom[base[v]] = blossom[base[mate[v]]] = True
                parent[v] = child
                child = mate[v]
                v = parent[mate[v]]

        used[root] = True
        queue = [root]
        head = 0
        while head < len(queue):
            v = queue[head]
            head += 1
            for to in adjacency[v]:
                if base[v] == base[to] or mate[v] == to:
                    continue
                if to == root or (mate[to] != -1 and parent[mate[to]] != -1):
                    # odd cycle: contract the blossom onto its base
                    cur = common_base(v, to)
                    blossom = [False] * n
                    mark_path(v, cur, to, blossom)
                    mark_path(to, cur, v, blossom)
                    for i in range(n):
                        if blossom[base[i]]:
                            base[i] = cur
                            if not used[i]:
                                used[i] = True
                                queue.append(i)
                elif parent[to] == -1:
                    parent[to] = v
                    if mate[to] == -1:
                        return to, parent
                    used[mate[to]] = True
                    queue.append(mate[to])
        return -1, parent

    for root in range(n):
        if mate[root] != -1:
            continue
        v, parent = augmenting_path(root)
        while v != -1:
            pv = parent[v]
            nxt = mate[pv]
            mate[v], mate[pv] = pv, v
            v = nxt
    return mate


def _forced_rematches(players: Sequence[int], fresh: Sequence[set[int]]) -> int:
    """Fewest rematches any pairing of ``players`` needs.

    Every pair may rematch, so a maximum matching on the not-yet-met graph
    decides it: each unmatched pair of players costs exactly one rematch.
    """

    local = {p: k for k, p in enumerate(players)}
    adjacency = [[local[q] for q in fresh[p] if q in local] for p in players]
    matched = sum(1 for m in maximum_matching(adjacency) if m != -1)
    return (len(players) - matched) // 2


def _fold_search(
    ranked: Sequence[Candidate],
    opponents: Mapping[str, set[str]],
    budget: int,
) -> Optional[list[tuple[int, int]]]:
    """Fold pairing with the fewest possible rematches.

    The best-ranked open player takes the best-ranked partner, fresh opponents
    before rematches, that still lets the rest of the field finish at the
    minimal rematch count. The count is exact, so no choice is ever undone.
    ``budget`` caps the matching computations; ``None`` means it ran out.
    """

    n = len(ranked)
    ids = [c.player_id for c in ranked]
    fresh = [
        {j for j in range(n) if j != i and not _met(opponents, ids[i], ids[j])}
        for i in range(n)
    ]
    steps = 0

    def forced(players: Sequence[int]) -> int:
        nonlocal steps
        steps += 1
        if steps > budget:
            raise _BudgetExhausted()
        return _forced_rematches(players, fresh)

    try:
        target = forced(range(n))
        open_ = list(range(n))
        cost = 0
        result: list[tuple[int, int]] = []
        while open_:
            first, rest = open_[0], open_[1:]
            ordered = [(j, 0) for j in rest if j in fresh[first]]
            ordered += [(j, 1) for j in rest if j not in fresh[first]]
            for j, extra in ordered:
                remaining = [k for k in rest if k != j]
                if cost + extra + forced(remaining) == target:
                    break
            result.append((first, j))
            cost += extra
            open_ = remaining
    except _BudgetExhausted:
        return None
    return result


def _greedy_fold(
    ranked: Sequence[Candidate], opponents: Mapping[str, set[str]]
) -> list[tuple[int, int]]:
    n = len(ranked)
    paired = [False] * n
    result = []
    for i in range(n):
        if paired[i]:
            continue
        open_ = [j for j in range(i + 1, n) if not paired[j]]
        fresh = [j for j in open_ if not _met(opponents, ranked[i].player_id, ranked[j].player_id)]
        j = (fresh or open_)[0]
        paired[i] = paired[j] = True
        result.append((i, j))
    return result


def pair_players(
    ranked: Sequence[Candidate],
    opponents: Mapping[str, set[str]],
    *,
    budget: int = PAIRING_SEARCH_BUDGET,
) -> list[Pairing]:
    """Pair an even-sized ranked list, higher-ranked player first in each pair."""

    if len(ranked) % 2:
        raise ValueError("pair_players needs an even number of players")
    if not ranked:
        return []

    assignment = _fold_search(ranked, opponents, budget)
    if assignment is None:
        logger.warning(
            "Pairing search budget of %d steps exhausted for %d players; "
            "falling back to greedy fold",
            budget,
            len(ranked),
        )
        assignment = _greedy_fold(ranked, opponents)

    pairings = []
    for i, j in assignment:
        a, b = ranked[i], ranked[j]
        pairings.append(
            Pairing(
                player1=a.player_id,
                player2=b.player_id,
                player1_name=a.name,
                player2_name=b.name,
                is_rematch=_met(opponents, a.player_id, b.player_id),
                player1_snapshot=a.snapshot(),
                player2_snapshot=b.snapshot(),
            )
        )
    return pairings


def validate_pairings(pairings: Sequence[Pairing]) -> list[str]:
    """Return problems that make a set of pairings unusable."""

    errors = []
    seen: set[str] = set()
    for index, pairing in enumerate(pairings, start=1):
        if pairing.player1 == pairing.player2:
            errors.append(f"Pairing #{index} pairs {pairing.player1} with themselves.")
        for pid in (pairing.player1, pairing.player2):
            if pid in seen:
                errors.append(f"Player {pid} appears in more than one pairing.")
            seen.add(pid)
    return errors


def build_plan(
    league: str,
    season: str,
    round_number: int,
    candidates: Iterable[Candidate],
    opponents: Mapping[str, set[str]],
    *,
    budget: int = PAIRING_SEARCH_BUDGET,
) -> PairingPlan:
    ranked = rank_candidates(candidates)
    bye = select_bye(ranked)
    pool = [c for c in ranked if bye is None or c.player_id != bye.player_id]
    pairings = pair_players(pool, opponents, budget=budget)
    return PairingPlan(
        league=league,
        season=season,
        round=round_number,
        total_players=len(ranked),
        pairings=tuple(pairings),
        bye_player=bye.player_id if bye else None,
    )
