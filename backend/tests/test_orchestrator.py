"""
Tests for the argumentation pipeline orchestrator.

Covers the end-to-end scenarios, progress reporting, caching, metrics,
persistence and every failure path.
Run with: pytest tests/test_orchestrator.py -v
"""

import time

import pytest

from app.services.argumentation import PipelineStage, PipelineTimeoutError
from app.services.argumentation.orchestrator import extract_topic
from app.services.argumentation.result_cache import ResultCache

from conftest import (
    RENEWABLES_HISTORY,
    RENEWABLES_QUESTION,
    TECHNOLOGY_HISTORY,
    TECHNOLOGY_QUESTION,
    FailingAnalyzer,
    FailingSummaryStore,
    HangingSummaryStore,
    SelectiveFailingStrongManner,
    SlowAnalyzer,
    build_test_pipeline,
)


def _stage_sequence(progress_log) -> list[PipelineStage]:
    """Collapse consecutive repeats: routing, analysis, strong-manning x N, ..."""
    stages = []
    for record in progress_log:
        if not stages or stages[-1] != record.stage:
            stages.append(record.stage)
    return stages


EXPECTED_STAGES = [
    PipelineStage.ROUTING,
    PipelineStage.VIEWPOINT_ANALYSIS,
    PipelineStage.STRONG_MANNING,
    PipelineStage.SYNTHESIS,
    PipelineStage.COMPLETE,
]


# =============================================================================
# END-TO-END SCENARIOS
# =============================================================================

@pytest.mark.asyncio
async def test_renewables_conversation_gets_multiple_perspectives(pipeline):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    opposing = result.viewpoint_analysis.opposing_viewpoints
    assert len(opposing) >= 1
    assert len(result.synthesized_answer.perspectives) >= 2
    assert len(result.strong_manned_analyses) == 1 + len(opposing)
    assert result.missing_viewpoint_ids == []
    assert result.viewpoint_analysis.topic == "renewable energy be prioritized"


@pytest.mark.asyncio
async def test_dismissive_user_does_not_get_echoed(pipeline):
    result = await pipeline.execute_pipeline(TECHNOLOGY_QUESTION, TECHNOLOGY_HISTORY)

    assert result.synthesized_answer.representativeness > 0.4
    assert result.viewpoint_analysis.opposing_viewpoints


@pytest.mark.asyncio
async def test_progress_reports_stages_in_order(pipeline):
    events = []
    result = await pipeline.execute_pipeline(
        RENEWABLES_QUESTION, RENEWABLES_HISTORY, on_progress=events.append
    )

    assert _stage_sequence(events) == EXPECTED_STAGES
    assert events == result.progress_log

    elapsed = [e.elapsed_ms for e in events]
    assert elapsed == sorted(elapsed)
    progress = [e.progress for e in events]
    assert progress == sorted(progress)
    assert events[-1].progress == 1.0

    strong_manning = [e for e in events if e.stage == PipelineStage.STRONG_MANNING]
    assert len(strong_manning) == len(result.viewpoint_analysis.all_viewpoints)
    assert strong_manning[0].progress == pytest.approx(0.1)
    assert strong_manning[1].progress == pytest.approx(0.1 + 1 / 4 * 0.8)


@pytest.mark.asyncio
async def test_repeated_runs_populate_metrics(pipeline):
    first = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)
    second = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert first.id != second.id
    metrics = pipeline.get_metrics()
    assert metrics.total_pipelines >= 2
    assert metrics.avg_total_time_ms > 0
    assert 0.0 < metrics.avg_quality <= 0.95
    assert metrics.most_common_stage in EXPECTED_STAGES[:4]


@pytest.mark.asyncio
async def test_metrics_before_any_run(pipeline):
    metrics = pipeline.get_metrics()
    assert metrics.total_pipelines == 0
    assert metrics.avg_total_time_ms == 0.0
    assert metrics.most_common_stage == PipelineStage.ROUTING


# =============================================================================
# BOUNDARIES
# =============================================================================

@pytest.mark.asyncio
async def test_empty_history_completes(pipeline):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, [])

    assert result.synthesized_answer.direct_answer
    assert result.viewpoint_analysis.opposing_viewpoints == []
    assert len(result.strong_manned_analyses) == 1


@pytest.mark.asyncio
async def test_empty_question_and_history_complete(pipeline):
    result = await pipeline.execute_pipeline("", [])

    assert result.synthesized_answer.direct_answer
    assert result.routing_decision.complexity.score == pytest.approx(0.1)
    assert result.quality.overall_quality <= 0.95


# =============================================================================
# QUALITY + TIMING
# =============================================================================

@pytest.mark.asyncio
async def test_quality_formula(pipeline):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)
    quality = result.quality
    answer = result.synthesized_answer

    weighted = (
        quality.routing_confidence * 0.2
        + quality.analysis_confidence * 0.35
        + quality.synthesis_quality * 0.45
    )
    assert quality.overall_quality == pytest.approx(min(0.95, weighted) * answer.representativeness)
    assert quality.overall_quality <= 0.95
    assert quality.routing_confidence == result.routing_decision.complexity.confidence


@pytest.mark.asyncio
async def test_timing_is_derived_from_progress_log(pipeline):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)
    timing = result.timing

    stage_sum = timing.routing_ms + timing.analysis_ms + timing.strong_manning_ms + timing.synthesis_ms
    assert timing.total_ms == result.progress_log[-1].elapsed_ms
    assert timing.total_ms > 0
    assert stage_sum <= timing.total_ms + 1e-6
    assert min(timing.routing_ms, timing.analysis_ms, timing.strong_manning_ms, timing.synthesis_ms) >= 0


# =============================================================================
# CACHE + PERSISTENCE
# =============================================================================

@pytest.mark.asyncio
async def test_results_are_cached_by_id(pipeline):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert pipeline.get_result(result.id) is result
    assert pipeline.get_result("result-does-not-exist") is None


@pytest.mark.asyncio
async def test_cache_evicts_oldest_and_bounds_metrics_window():
    pipeline = build_test_pipeline(cache=ResultCache(max_results=1, metrics_window=2))

    first = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)
    await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)
    last = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert pipeline.get_result(first.id) is None, "Oldest result should be evicted"
    assert pipeline.get_result(last.id) is last
    assert len(pipeline.cache) == 1
    assert pipeline.get_metrics().total_pipelines == 2


@pytest.mark.asyncio
async def test_summary_is_persisted(pipeline, summary_store):
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert len(summary_store.calls) == 1
    user_id, run_id, summary = summary_store.calls[0]
    assert user_id == "system"
    assert run_id == f"pipeline-{result.id}"
    assert summary["type"] == "argumentation-pipeline"
    assert summary["question"] == RENEWABLES_QUESTION
    assert summary["answer_id"] == result.synthesized_answer.id
    assert summary["quality"] == result.quality.overall_quality


@pytest.mark.asyncio
async def test_persistence_failure_is_swallowed():
    pipeline = build_test_pipeline(summary_store=FailingSummaryStore())

    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert pipeline.get_result(result.id) is result


@pytest.mark.asyncio
async def test_slow_persistence_does_not_hold_up_the_run():
    pipeline = build_test_pipeline(summary_store=HangingSummaryStore(), persist_timeout=0.05)

    started = time.perf_counter()
    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    assert time.perf_counter() - started < 2, "Summary write should be abandoned after its timeout"
    assert pipeline.get_result(result.id) is result


# =============================================================================
# FAILURES
# =============================================================================

@pytest.mark.asyncio
async def test_strong_manning_failure_skips_viewpoint():
    pipeline = build_test_pipeline(strong_manner=SelectiveFailingStrongManner("ethical/values"))

    result = await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY)

    opposing = result.viewpoint_analysis.opposing_viewpoints
    skipped = next(v for v in opposing if v.domain == "ethical/values")
    assert len(result.strong_manned_analyses) == len(opposing)  # 1 + N - 1
    assert result.missing_viewpoint_ids == [skipped.id]
    assert len(result.synthesized_answer.perspectives) == 1 + len(opposing)


@pytest.mark.asyncio
async def test_stage_failure_reports_and_reraises():
    pipeline = build_test_pipeline(analyzer=FailingAnalyzer())
    events = []

    with pytest.raises(RuntimeError, match="analyzer exploded"):
        await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY, on_progress=events.append)

    assert [e.stage for e in events] == [
        PipelineStage.ROUTING,
        PipelineStage.VIEWPOINT_ANALYSIS,
        PipelineStage.COMPLETE,
    ]
    assert events[-1].progress == 0.0
    assert "analyzer exploded" in events[-1].status_message
    assert pipeline.get_metrics().total_pipelines == 0
    assert len(pipeline.cache) == 0


@pytest.mark.asyncio
async def test_timeout_fails_the_run():
    pipeline = build_test_pipeline(analyzer=SlowAnalyzer())
    events = []

    with pytest.raises(PipelineTimeoutError):
        await pipeline.execute_pipeline(
            RENEWABLES_QUESTION, RENEWABLES_HISTORY, on_progress=events.append, timeout=0.05
        )

    assert events[-1].stage == PipelineStage.COMPLETE
    assert events[-1].progress == 0.0
    assert len(pipeline.cache) == 0


@pytest.mark.asyncio
async def test_progress_callback_errors_do_not_abort_the_run(pipeline):
    def broken_callback(progress):
        raise RuntimeError("UI went away")

    result = await pipeline.execute_pipeline(
        RENEWABLES_QUESTION, RENEWABLES_HISTORY, on_progress=broken_callback
    )

    assert result.progress_log[-1].stage == PipelineStage.COMPLETE
    assert result.progress_log[-1].progress == 1.0


@pytest.mark.asyncio
async def test_progress_callback_is_released_after_run(pipeline):
    await pipeline.execute_pipeline(RENEWABLES_QUESTION, RENEWABLES_HISTORY, on_progress=lambda p: None)
    assert pipeline._progress_callbacks == {}


# =============================================================================
# TOPIC EXTRACTION
# =============================================================================

def test_extract_topic_strips_question_word():
    assert extract_topic("Should renewable energy be prioritized?") == "renewable energy be prioritized"
    assert extract_topic("Remote work productivity") == "Remote work productivity"
    assert extract_topic("") == ""
    assert len(extract_topic("What " + "x" * 300)) == 100
