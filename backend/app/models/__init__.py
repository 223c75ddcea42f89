# Database models and API schemas
from app.models.pipeline_summary import PipelineSummary
from app.models.schemas import (
    ArgumentationRequest,
    ConversationTurn,
    MetricsResponse,
    PipelineResultResponse,
    SummaryResponse,
)

__all__ = [
    "PipelineSummary",
    "ArgumentationRequest",
    "ConversationTurn",
    "MetricsResponse",
    "PipelineResultResponse",
    "SummaryResponse",
]
