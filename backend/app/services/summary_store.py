"""
Summary Store — Persists finished pipeline runs to PostgreSQL.

WHAT THIS DOES:
Implements the SummaryStore collaborator the ArgumentationPipeline calls
after every successful run. One row per run in `pipeline_summaries`.

WHY THIS EXISTS:
- Keeps database operations out of the reasoning pipeline
- Opens its own session per call, so it works outside a request scope
- Testable: construct it with any async session factory
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.pipeline_summary import PipelineSummary
from app.services.argumentation.protocols import SummaryStore

logger = logging.getLogger(__name__)


class SqlSummaryStore(SummaryStore):
    """
    SummaryStore backed by SQLAlchemy.

    Handles:
    - Saving a run summary (replacing an existing row for the same run id)
    - Reading a summary back by run id
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def persist_summary(
        self,
        user_id: str,
        run_id: str,
        summary: Mapping[str, Any],
    ) -> str:
        """
        Save a run summary.

        Args:
            user_id: Owner of the run
            run_id: Pipeline run identifier
            summary: Dict with keys:
                - type (required)
                - question (required)
                - answer_id (required)
                - quality (required)
                - timestamp (optional)

        Returns:
            The run id the summary was stored under
        """
        async with self.session_factory() as session:
            existing = await session.execute(
                select(PipelineSummary).where(PipelineSummary.run_id == run_id)
            )
            row = existing.scalar_one_or_none()
            if row is None:
                row = PipelineSummary(user_id=user_id, run_id=run_id)
                session.add(row)

            row.user_id = user_id
            row.summary_type = summary["type"]
            row.question = summary["question"]
            row.answer_id = summary["answer_id"]
            row.quality = float(summary["quality"])
            row.run_timestamp = summary.get("timestamp")

            await session.commit()

        logger.info(f"Persisted summary for {run_id}")
        return run_id

    async def get_summary(self, run_id: str) -> Optional[PipelineSummary]:
        """Get a stored summary by run id, or None."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PipelineSummary).where(PipelineSummary.run_id == run_id)
            )
            return result.scalar_one_or_none()
