from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .time_utils import require_utc


def _trimmed(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} must not be empty")
    return trimmed


class RoundRequest(BaseModel):
    league: str = Field(..., min_length=1, max_length=100)
    season: str = Field(..., min_length=1, max_length=100)
    round: int = Field(..., ge=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("league", "season", mode="before")
    @classmethod
    def _strip(cls, value: Any, info) -> str:
        return _trimmed(value, info.field_name)


class PlayerSnapshotOut(BaseModel):
    rating: int
    wins: int
    points: int


class PairingOut(BaseModel):
    player1: str
    player2: str
    player1Name: Optional[str] = None
    player2Name: Optional[str] = None
    isRematch: bool
    player1Snapshot: PlayerSnapshotOut
    player2Snapshot: PlayerSnapshotOut


class PairingPlanOut(BaseModel):
    league: str
    season: str
    round: int
    totalMatches: int
    totalPlayers: int
    rematches: int
    byePlayer: Optional[str] = None
    pairings: List[PairingOut]


class SetScoreIn(BaseModel):
    player1: int = Field(..., ge=0)
    player2: int = Field(..., ge=0)


class MatchOut(BaseModel):
    id: str
    league: str
    season: str
    round: int
    player1: str
    player2: Optional[str] = None
    isBye: bool
    status: str
    winner: Optional[str] = None
    score: Optional[Dict[str, Any]] = None
    playedAt: Optional[datetime] = None
    eloChanges: Optional[Dict[str, Any]] = None


class CommitRoundOut(BaseModel):
    round: int
    matches: List[MatchOut]


class RoundSummaryOut(BaseModel):
    round: int
    totalMatches: int
    completedMatches: int
    scheduledMatches: int
    byes: int


class RoundStatusOut(BaseModel):
    league: str
    season: str
    rounds: List[RoundSummaryOut]
    totalRounds: int
    currentRound: int
    nextRound: int
    activePlayers: int


class DeleteRoundOut(BaseModel):
    league: str
    season: str
    round: int
    deleted: int


class MatchResultIn(BaseModel):
    winner: str = Field(..., min_length=1)
    sets: List[SetScoreIn] = Field(default_factory=list)
    walkover: bool = False
    playedAt: Optional[datetime] = None

    @field_validator("winner", mode="before")
    @classmethod
    def _strip_winner(cls, value: Any) -> str:
        return _trimmed(value, "winner")

    @field_validator("playedAt")
    def _normalize_played_at(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="playedAt")


class RebuildRequest(BaseModel):
    playerId: Optional[str] = None
    dryRun: bool = False

    @field_validator("playerId", mode="before")
    @classmethod
    def _strip_player_id(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return _trimmed(value, "playerId")


class RebuildErrorOut(BaseModel):
    playerId: str
    error: str


class RebuildReportOut(BaseModel):
    processed: int
    updated: int
    skipped: int
    errored: int
    dryRun: bool
    errors: List[RebuildErrorOut] = Field(default_factory=list)


class RecomputeRatingsRequest(BaseModel):
    dryRun: bool = False


class RatingReportOut(BaseModel):
    players: int
    matchesProcessed: int
    skipped: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    dryRun: bool


class StandingStatsOut(BaseModel):
    matchesPlayed: int
    matchesWon: int
    matchesLost: int
    setsWon: int
    setsLost: int
    gamesWon: int
    gamesLost: int
    totalPoints: int
    walkovers: int


class StandingOut(BaseModel):
    position: int
    playerId: str
    name: str
    stats: StandingStatsOut


class StandingsOut(BaseModel):
    league: str
    season: str
    standings: List[StandingOut]
