"""
SQLAlchemy models for the SQLite chunk store.

One row per (learner, chunk). Timestamps are stored as naive UTC.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from seedling.domain.constants import INITIAL_CONFIDENCE


class Base(DeclarativeBase):
    pass


class ChunkRow(Base):
    """Persisted scheduling state for one learner's chunk."""

    __tablename__ = "user_chunks"

    learner_id: Mapped[str] = mapped_column(String, primary_key=True)
    chunk_id: Mapped[str] = mapped_column(String, primary_key=True)
    topic_id: Mapped[str | None] = mapped_column(String)

    # Scheduling
    status: Mapped[str] = mapped_column(String, nullable=False)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False)
    interval: Mapped[int] = mapped_column(Integer, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False)
    last_reviewed: Mapped[datetime | None] = mapped_column(DateTime)
    next_due: Mapped[datetime | None] = mapped_column(DateTime)

    # Encounter history
    total_encounters: Mapped[int] = mapped_column(Integer, default=0)
    correct_first_try: Mapped[int] = mapped_column(Integer, default=0)
    wrong_attempts: Mapped[int] = mapped_column(Integer, default=0)
    help_used_count: Mapped[int] = mapped_column(Integer, default=0)
    confidence_score: Mapped[float] = mapped_column(Float, default=INITIAL_CONFIDENCE)

    # Optimistic-concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_user_chunks_topic", "learner_id", "topic_id"),
        Index("idx_user_chunks_due", "learner_id", "status", "next_due"),
    )

    def __repr__(self) -> str:
        return f"<ChunkRow learner={self.learner_id} chunk={self.chunk_id} status={self.status}>"
