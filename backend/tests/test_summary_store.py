"""
Tests for the SQLAlchemy-backed summary store.

Uses an in-memory stand-in for the async session, so no database is needed.
Run with: pytest tests/test_summary_store.py -v
"""

import pytest

from app.models.pipeline_summary import PipelineSummary
from app.services.summary_store import SqlSummaryStore

from conftest import RENEWABLES_HISTORY, RENEWABLES_QUESTION, build_test_pipeline


class FakeResult:
    def __init__(self, row):
        self._row = row

    def scalar_one_or_none(self):
        return self._row


class FakeSession:
    """Just enough of AsyncSession for select-by-run_id, add and commit."""

    def __init__(self):
        self.rows: dict[str, PipelineSummary] = {}
        self.added: list[PipelineSummary] = []
        self.commits = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, statement):
        params = statement.compile().params
        run_id = next(iter(params.values()))
        return FakeResult(self.rows.get(run_id))

    def add(self, row):
        self.added.append(row)
        self.rows[row.run_id] = row

    async def commit(self):
        self.commits += 1


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store(session) -> SqlSummaryStore:
    return SqlSummaryStore(lambda: session)


SUMMARY = {
    "type": "argumentation-pipeline",
    "question": RENEWABLES_QUESTION,
    "answer_id": "synthesis-0-abcd1234",
    "quality": 0.42,
    "timestamp": 1700000000.0,
}


@pytest.mark.asyncio
async def test_persist_summary_adds_row(store, session):
    stored_id = await store.persist_summary("system", "pipeline-result-0-1", SUMMARY)

    assert stored_id == "pipeline-result-0-1"
    assert session.commits == 1
    assert len(session.added) == 1

    row = session.added[0]
    assert row.user_id == "system"
    assert row.summary_type == "argumentation-pipeline"
    assert row.question == RENEWABLES_QUESTION
    assert row.answer_id == "synthesis-0-abcd1234"
    assert row.quality == pytest.approx(0.42)
    assert row.run_timestamp == 1700000000.0


@pytest.mark.asyncio
async def test_persisting_same_run_updates_in_place(store, session):
    await store.persist_summary("system", "pipeline-result-0-1", SUMMARY)
    await store.persist_summary("system", "pipeline-result-0-1", {**SUMMARY, "quality": 0.9})

    assert len(session.added) == 1
    assert session.rows["pipeline-result-0-1"].quality == pytest.approx(0.9)


@pytest.mark.asyncio
async def test_get_summary(store):
    await store.persist_summary("system", "pipeline-result-0-1", SUMMARY)

    found = await store.get_summary("pipeline-result-0-1")
    assert found is not None
    assert found.answer_id == "synthesis-0-abcd1234"
    assert await store.get_summary("pipeline-unknown") is None


@pytest.mark.asyncio
async def test_pipeline_persists_through_store(store, session):
    pipeline = build_test_pipeline(summary_store=store)

    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    row = session.rows[f"pipeline-{result.id}"]
    assert row.answer_id == result.synthesized_answer.id
    assert row.quality == pytest.approx(result.quality.overall_quality)
