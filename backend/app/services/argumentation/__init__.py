"""
Argumentation Module — Multi-perspective reasoning pipeline.

Turns a question plus conversation history into one synthesized answer
that represents every side of a contested topic fairly. Stages run in
strict sequence: routing → viewpoint analysis → strong-manning → synthesis.

COMPONENTS:
- ArgumentationPipeline: Main entry point, sequences the stages
- QueryRouter: Scores query complexity, recommends an adapter
- ViewpointAnalyzer: Extracts the user's position, builds opposing ones
- StrongManningEngine: Strongest fair challenge to each viewpoint
- ArgumentSynthesizer: Merges everything into a SynthesizedAnswer
- ResultCache: Bounded store of finished runs + metrics window

USAGE:
    from app.services.argumentation import build_pipeline

    pipeline = build_pipeline()
    result = await pipeline.execute_pipeline(
        question="Should renewable energy be prioritized?",
        conversation_history=history,
    )

    print(result.synthesized_answer.direct_answer)
    print(result.quality.overall_quality)
"""

# Main entry points
from app.services.argumentation.orchestrator import (
    ArgumentationPipeline,
    PipelineTimeoutError,
    build_pipeline,
    run_argumentation,
)

# Data models
from app.services.argumentation.models import (
    PipelineMetrics,
    PipelineProgress,
    PipelineResult,
    PipelineStage,
    StrongMannedAnalysis,
    SynthesizedAnswer,
    ViewpointAnalysis,
)

# Components (for advanced usage)
from app.services.argumentation.result_cache import ResultCache
from app.services.argumentation.routing import QueryRouter
from app.services.argumentation.strong_manning import StrongManningEngine
from app.services.argumentation.synthesizer import ArgumentSynthesizer
from app.services.argumentation.viewpoint_analyzer import ViewpointAnalyzer

# Protocols (for extensibility)
from app.services.argumentation.protocols import (
    BaseQueryRouter,
    BaseStrongManner,
    BaseSynthesizer,
    BaseViewpointAnalyzer,
    SummaryStore,
)

__all__ = [
    # Main entry points
    "ArgumentationPipeline",
    "PipelineTimeoutError",
    "build_pipeline",
    "run_argumentation",
    # Data models
    "PipelineMetrics",
    "PipelineProgress",
    "PipelineResult",
    "PipelineStage",
    "StrongMannedAnalysis",
    "SynthesizedAnswer",
    "ViewpointAnalysis",
    # Components
    "ResultCache",
    "QueryRouter",
    "StrongManningEngine",
    "ArgumentSynthesizer",
    "ViewpointAnalyzer",
    # Abstract bases
    "BaseQueryRouter",
    "BaseStrongManner",
    "BaseSynthesizer",
    "BaseViewpointAnalyzer",
    "SummaryStore",
]
