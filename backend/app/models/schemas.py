"""
Pydantic schemas for API request/response validation.

These define the shape of data that goes in and out of the API.
The pipeline's own records are dataclasses; pydantic validates and
serializes them directly, so the response models reuse them as field types.

FLOW OVERVIEW:
==============
1. Client sends ArgumentationRequest to /api/argumentation/run
2. ArgumentationPipeline runs routing → analysis → strong-manning → synthesis
3. PipelineResultResponse carries the answer, scores, timing and progress log
4. The result can be fetched again from /api/argumentation/results/{id}
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.services.argumentation.models import (
    PipelineMetrics,
    PipelineProgress,
    PipelineQuality,
    PipelineResult,
    PipelineStage,
    PipelineTiming,
    RoutingDecision,
    StrongMannedAnalysis,
    SynthesizedAnswer,
    ViewpointAnalysis,
)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ConversationTurn(BaseModel):
    """One message of the conversation so far."""
    role: str = Field(description="Who wrote the message ('user' or 'assistant')")
    content: str = Field(default="", description="Message text")


class ArgumentationRequest(BaseModel):
    """
    Request body for the argumentation pipeline.

    USED BY: POST /api/argumentation/run
    An empty question is accepted; the pipeline degrades to low-confidence output.
    """
    question: str = Field(
        default="",
        max_length=2000,
        description="The question to answer",
    )
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        description="Conversation so far, oldest first",
    )
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Whole-run deadline; defaults to the server setting",
    )


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class PipelineResultResponse(BaseModel):
    """
    A finished pipeline run.

    USED BY: POST /api/argumentation/run, GET /api/argumentation/results/{id}
    """
    id: str = Field(description="Run id, usable with GET /results/{id}")
    question: str
    direct_answer: str = Field(description="Short answer, same as synthesized_answer.direct_answer")

    synthesized_answer: SynthesizedAnswer
    routing_decision: RoutingDecision
    viewpoint_analysis: ViewpointAnalysis
    strong_manned_analyses: dict[str, StrongMannedAnalysis] = Field(
        description="Strong-man analysis per viewpoint id"
    )
    missing_viewpoint_ids: list[str] = Field(
        default_factory=list,
        description="Viewpoints left out because strong-manning them failed",
    )

    quality: PipelineQuality
    timing: PipelineTiming
    progress_log: list[PipelineProgress]
    timestamp: float

    @classmethod
    def from_result(cls, result: PipelineResult) -> "PipelineResultResponse":
        return cls(
            id=result.id,
            question=result.question,
            direct_answer=result.synthesized_answer.direct_answer,
            synthesized_answer=result.synthesized_answer,
            routing_decision=result.routing_decision,
            viewpoint_analysis=result.viewpoint_analysis,
            strong_manned_analyses=result.strong_manned_analyses,
            missing_viewpoint_ids=result.missing_viewpoint_ids,
            quality=result.quality,
            timing=result.timing,
            progress_log=result.progress_log,
            timestamp=result.timestamp,
        )


class MetricsResponse(BaseModel):
    """
    Aggregate metrics over recent runs.

    USED BY: GET /api/argumentation/metrics
    """
    total_pipelines: int
    avg_quality: float
    avg_total_time_ms: float
    most_common_stage: PipelineStage = Field(
        description="Stage that was most often the slowest"
    )

    @classmethod
    def from_metrics(cls, metrics: PipelineMetrics) -> "MetricsResponse":
        return cls(
            total_pipelines=metrics.total_pipelines,
            avg_quality=metrics.avg_quality,
            avg_total_time_ms=metrics.avg_total_time_ms,
            most_common_stage=metrics.most_common_stage,
        )


class SummaryResponse(BaseModel):
    """
    A persisted run summary.

    USED BY: GET /api/argumentation/summaries/{run_id}
    """
    run_id: str
    user_id: str
    summary_type: str
    question: str
    answer_id: str
    quality: float
    run_timestamp: float | None = None
    created_at: datetime

    class Config:
        from_attributes = True  # Allows creating from SQLAlchemy model
