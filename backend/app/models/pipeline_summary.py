"""
SQLAlchemy model for the pipeline_summaries table.

One row per finished argumentation run. Only the summary is stored here;
the full PipelineResult lives in the in-memory result cache.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class PipelineSummary(Base):
    """A persisted summary of one argumentation pipeline run."""

    __tablename__ = "pipeline_summaries"

    # Primary key - auto-incrementing integer
    id: Mapped[int] = mapped_column(primary_key=True)

    # Who ran it, and which run it was (e.g., "pipeline-result-0-1700000000000")
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    run_id: Mapped[str] = mapped_column(String(200), unique=True, index=True)

    # Summary payload
    summary_type: Mapped[str] = mapped_column(String(50))
    question: Mapped[str] = mapped_column(Text)
    answer_id: Mapped[str] = mapped_column(String(200))
    quality: Mapped[float] = mapped_column(Float)

    # Run completion time (unix seconds, as reported by the pipeline)
    run_timestamp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<PipelineSummary run_id={self.run_id} quality={self.quality:.2f}>"
