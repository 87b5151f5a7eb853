from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base
from .time_utils import utcnow


SKILL_LEVELS = ("beginner", "intermediate", "advanced")
REGISTRATION_STATUSES = ("pending", "confirmed", "active", "inactive")
# Registrations in these states take part in round generation.
PARTICIPATING_STATUSES = ("active", "confirmed")

MATCH_SCHEDULED = "scheduled"
MATCH_COMPLETED = "completed"


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    # Global rating cache, rewritten by the rating engine.
    rating = Column(Integer, nullable=True)
    highest_rating = Column(Integer, nullable=True)
    lowest_rating = Column(Integer, nullable=True)


class Registration(Base):
    """A player's participation in one league season plus its derived caches."""

    __tablename__ = "registration"
    id = Column(String, primary_key=True)
    player_id = Column(String, ForeignKey("player.id", ondelete="CASCADE"), nullable=False)
    league_id = Column(String, nullable=False)
    season = Column(String, nullable=False)
    level = Column(String, nullable=False, default="intermediate")
    status = Column(String, nullable=False, default="pending")
    registered_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    stats = Column(JSON, nullable=True)
    match_history = Column(JSON, nullable=True)
    rating = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_id",
            "league_id",
            "season",
            name="uq_registration_player_league_season",
        ),
        Index("ix_registration_league_season", "league_id", "season"),
    )


class Round(Base):
    """Marker row guarding (league, season, number) against double generation."""

    __tablename__ = "league_round"
    id = Column(String, primary_key=True)
    league_id = Column(String, nullable=False)
    season = Column(String, nullable=False)
    number = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "league_id",
            "season",
            "number",
            name="uq_league_round_league_season_number",
        ),
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    league_id = Column(String, nullable=False)
    season = Column(String, nullable=False)
    round = Column(Integer, nullable=False)
    player1_id = Column(String, ForeignKey("player.id"), nullable=False)
    player2_id = Column(String, ForeignKey("player.id"), nullable=True)
    is_bye = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default=MATCH_SCHEDULED)
    winner_id = Column(String, ForeignKey("player.id"), nullable=True)
    score = Column(JSON, nullable=True)
    played_at = Column(DateTime, nullable=True)
    elo_changes = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("ix_match_league_season_round", "league_id", "season", "round"),
        Index("ix_match_status", "status"),
    )
