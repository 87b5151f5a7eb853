from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import ValidationError

# Best-of-three: at most three sets are ever recorded.
MAX_SETS = 3


def validate_set_scores(
    sets: Sequence[Dict[str, Any]],
    *,
    max_sets: Optional[int] = MAX_SETS,
    max_games_per_side: Optional[int] = 99,
) -> List[Dict[str, int]]:
    """Validate and normalize a list of set score dictionaries.

    Rules:
    - At least one set is required
    - Number of sets must be <= ``max_sets`` (if provided)
    - Each set must be an object ``{player1, player2}``
    - Both scores must be integers >= 0 (booleans are rejected)
    - Ties are not allowed (``player1`` != ``player2``)
    """

    if not isinstance(sets, (list, tuple)) or len(sets) == 0:
        raise ValidationError("At least one set is required.")
    if max_sets is not None and len(sets) > max_sets:
        raise ValidationError(f"Too many sets. Max allowed is {max_sets}.")

    normalized: List[Dict[str, int]] = []
    for i, s in enumerate(sets, start=1):
        if not isinstance(s, dict):
            raise ValidationError(
                f"Set #{i} must be an object with fields player1 and player2."
            )
        if "player1" not in s or "player2" not in s:
            raise ValidationError(f"Set #{i} must include both player1 and player2.")

        v1, v2 = s["player1"], s["player2"]

        # bool is a subclass of int
        if isinstance(v1, bool) or isinstance(v2, bool):
            raise ValidationError(f"Set #{i} scores must be integers (not booleans).")

        try:
            p1 = int(v1)
            p2 = int(v2)
        except (TypeError, ValueError):
            raise ValidationError(f"Set #{i} scores must be integers.")

        if p1 < 0 or p2 < 0:
            raise ValidationError(f"Set #{i} scores must be >= 0.")
        if p1 == p2:
            raise ValidationError(f"Set #{i} cannot be a tie.")
        if max_games_per_side is not None and (
            p1 > max_games_per_side or p2 > max_games_per_side
        ):
            raise ValidationError(
                f"Set #{i} scores must be <= {max_games_per_side}."
            )
        normalized.append({"player1": p1, "player2": p2})

    return normalized


def set_tally(sets: Sequence[Dict[str, int]]) -> tuple[int, int]:
    p1 = sum(1 for s in sets if s["player1"] > s["player2"])
    return p1, len(sets) - p1


def validate_result_submission(
    *,
    player1_id: str,
    player2_id: Optional[str],
    winner_id: str,
    sets: Sequence[Dict[str, Any]],
    walkover: bool = False,
) -> List[Dict[str, int]]:
    """Check a submitted result against the match it completes.

    Returns the normalized set list; walkovers carry no sets.
    """

    if player2_id is None:
        raise ValidationError("A bye cannot take a result.")
    if winner_id not in (player1_id, player2_id):
        raise ValidationError(
            f"Winner '{winner_id}' did not play in this match."
        )

    if walkover:
        if sets:
            raise ValidationError("A walkover cannot include set scores.")
        return []

    normalized = validate_set_scores(sets)
    p1_sets, p2_sets = set_tally(normalized)
    if max(p1_sets, p2_sets) != 2:
        raise ValidationError(
            f"A completed match needs a 2-0 or 2-1 set tally (got {p1_sets}-{p2_sets})."
        )
    expected_winner = player1_id if p1_sets > p2_sets else player2_id
    if winner_id != expected_winner:
        raise ValidationError("Winner does not match the set scores.")
    return normalized
