"""
Database models for the sports tracker.

Two tables:
- games: current-state snapshot per game (the read model)
- game_events: append-only, per-game versioned change log (the source of truth)
"""
from sqlalchemy import (
    Column, String, Integer, DateTime, JSON, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class GameSnapshot(Base):
    """
    Current state of one tracked game.

    ``version`` equals the version of the last event appended for the game
    once a sync cycle completes. Team names and sport are set on creation.
    """
    __tablename__ = "games"

    game_id = Column(String(100), primary_key=True)
    sport = Column(String(16), nullable=False, index=True)  # SOCCER, TENNIS, HOCKEY

    team1 = Column(String(200), nullable=False)
    team2 = Column(String(200), nullable=False)

    score1 = Column(Integer, nullable=False, default=0)
    score2 = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, index=True)  # PENDING, ACTIVE, CONCLUDED
    # "current_time" is an SQL keyword, hence the column name
    current_time = Column("progress_marker", String(100), nullable=False, default="")

    version = Column(Integer, nullable=False, default=0)
    last_event_id = Column(String(36), nullable=True)

    last_updated = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("score1 >= 0", name="ck_games_score1_non_negative"),
        CheckConstraint("score2 >= 0", name="ck_games_score2_non_negative"),
        CheckConstraint("version >= 0", name="ck_games_version_non_negative"),
        Index("ix_games_sport_status", "sport", "status"),
        Index("ix_games_status_updated", "status", "last_updated"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameSnapshot {self.game_id} {self.sport} {self.team1} {self.score1}-{self.score2} "
            f"{self.team2} {self.status} v{self.version}>"
        )


class GameEvent(Base):
    """
    One immutable, versioned change to a game.

    Rows are only ever inserted. (game_id, version) is unique, which is the
    optimistic concurrency guard for writers racing on the same game.
    """
    __tablename__ = "game_events"

    event_id = Column(String(36), primary_key=True)
    game_id = Column(String(100), nullable=False, index=True)  # not a FK: events outlive snapshots
    event_type = Column(String(32), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    occurred_at = Column(DateTime, nullable=False)  # observed upstream
    recorded_at = Column(DateTime, nullable=False)  # set by the store

    payload = Column(JSON, nullable=False)
    source_api = Column(String(32), nullable=True)  # soccer-api, tennis-api, hockey-api

    __table_args__ = (
        UniqueConstraint("game_id", "version", name="uq_game_events_game_version"),
        CheckConstraint("version >= 1", name="ck_game_events_version_positive"),
        Index("ix_game_events_game_occurred", "game_id", "occurred_at"),
        Index("ix_game_events_type_occurred", "event_type", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<GameEvent {self.game_id} v{self.version} {self.event_type}>"
