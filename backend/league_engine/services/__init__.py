"""League services: the pure calculators and the async jobs built on them."""

from .validation import validate_set_scores, validate_result_submission
from .result_store import MatchRecord, match_record, record_result
from .standings import SetsGames, aggregate_stats, league_standings, points, sets_games
from .rating import RatingState, recompute, recompute_ratings
from .pairing import PairingPlan, build_plan, validate_pairings
from .rounds import apply_plan, commit_round, delete_round, plan_round, round_status
from .history import RebuildReport, build_match_history, rebuild_history, score_string

__all__ = [
    "validate_set_scores",
    "validate_result_submission",
    "MatchRecord",
    "match_record",
    "record_result",
    "SetsGames",
    "aggregate_stats",
    "league_standings",
    "points",
    "sets_games",
    "RatingState",
    "recompute",
    "recompute_ratings",
    "PairingPlan",
    "build_plan",
    "validate_pairings",
    "apply_plan",
    "commit_round",
    "delete_round",
    "plan_round",
    "round_status",
    "RebuildReport",
    "build_match_history",
    "rebuild_history",
    "score_string",
]
