"""
API Routes — Thin HTTP surface over the argumentation pipeline.

ENDPOINTS:
- POST /api/argumentation/run               → question + history → PipelineResult
- GET  /api/argumentation/results/{id}      → cached result of an earlier run
- GET  /api/argumentation/metrics           → aggregate metrics over recent runs
- GET  /api/argumentation/summaries/{run_id} → persisted run summary

The pipeline and the summary store are built once in app.main and handed
to the routes through dependencies, so tests can override them.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.models.schemas import (
    ArgumentationRequest,
    MetricsResponse,
    PipelineResultResponse,
    SummaryResponse,
)
from app.services.argumentation import ArgumentationPipeline
from app.services.summary_store import SqlSummaryStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/argumentation", tags=["argumentation"])


def get_pipeline(request: Request) -> ArgumentationPipeline:
    """Dependency that returns the application's pipeline."""
    return request.app.state.pipeline


def get_summary_store(request: Request) -> SqlSummaryStore:
    """Dependency that returns the application's summary store."""
    return request.app.state.summary_store


# =============================================================================
# PIPELINE
# =============================================================================

@router.post("/run", response_model=PipelineResultResponse)
async def run_pipeline(
    request: ArgumentationRequest,
    pipeline: ArgumentationPipeline = Depends(get_pipeline),
) -> PipelineResultResponse:
    """
    Run the full argumentation pipeline.

    Example:
        POST /api/argumentation/run
        {
            "question": "Should renewable energy be prioritized?",
            "conversation_history": [
                {"role": "user", "content": "Solar is now cheaper than coal."}
            ]
        }

        Returns the synthesized answer, every intermediate analysis,
        quality scores, per-stage timing and the progress log
    """
    history = [turn.model_dump() for turn in request.conversation_history]
    logger.info(f"Running pipeline: '{request.question[:80]}' ({len(history)} turns)")

    try:
        result = await pipeline.execute_pipeline(
            request.question,
            history,
            timeout=request.timeout_seconds,
        )
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        raise HTTPException(status_code=500, detail=f"Pipeline failed: {e}")

    return PipelineResultResponse.from_result(result)


@router.get("/results/{result_id}", response_model=PipelineResultResponse)
async def get_result(
    result_id: str,
    pipeline: ArgumentationPipeline = Depends(get_pipeline),
) -> PipelineResultResponse:
    """Get a cached result by run id."""
    result = pipeline.get_result(result_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found")
    return PipelineResultResponse.from_result(result)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    pipeline: ArgumentationPipeline = Depends(get_pipeline),
) -> MetricsResponse:
    """Aggregate metrics over the most recent runs."""
    return MetricsResponse.from_metrics(pipeline.get_metrics())


# =============================================================================
# PERSISTED SUMMARIES
# =============================================================================

@router.get("/summaries/{run_id}", response_model=SummaryResponse)
async def get_summary(
    run_id: str,
    store: SqlSummaryStore = Depends(get_summary_store),
) -> SummaryResponse:
    """
    Get the persisted summary of a run.

    Persisted run ids are the result id prefixed with 'pipeline-'.
    """
    summary = await store.get_summary(run_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Summary {run_id} not found")
    return SummaryResponse.model_validate(summary)
