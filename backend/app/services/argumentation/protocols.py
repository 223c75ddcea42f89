"""
Argumentation Protocols — Abstract base classes for the pipeline stages.

WHAT THIS IS:
The interfaces the ArgumentationPipeline depends on. Each stage is built
once at the application root and passed into the orchestrator, so any stage
can be swapped (or faked in tests) without touching orchestration.

WHY ABSTRACT CLASSES:
- Orchestration only knows the contract, never a concrete stage
- Tests construct isolated pipelines with fakes, no global reset needed
- Persistence is an explicit side channel, not a hidden call

USAGE:
    class MySummaryStore(SummaryStore):
        async def persist_summary(self, user_id, run_id, summary) -> str:
            ...

    pipeline = ArgumentationPipeline(summary_store=MySummaryStore())
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence

from app.services.argumentation.models import (
    QueryComplexity,
    RoutingDecision,
    RoutingRecommendation,
    StrongMannedAnalysis,
    SynthesizedAnswer,
    Viewpoint,
    ViewpointAnalysis,
)


class BaseQueryRouter(ABC):
    """Scores a query and picks an execution adapter."""

    @abstractmethod
    async def analyze_query_complexity(
        self,
        question: str,
        context: Sequence[str] = (),
    ) -> QueryComplexity:
        pass

    @abstractmethod
    async def route_query(
        self,
        question: str,
        context: Sequence[str] = (),
        prefer_cost: bool = False,
        prefer_quality: bool = False,
        user_preference: Optional[RoutingRecommendation] = None,
    ) -> RoutingDecision:
        pass


class BaseViewpointAnalyzer(ABC):
    """Extracts the user's position and builds the opposing ones."""

    @abstractmethod
    async def analyze_conversation(
        self,
        conversation_history: Sequence[Mapping[str, str]],
        topic: str,
    ) -> ViewpointAnalysis:
        pass


class BaseStrongManner(ABC):
    """Builds the strongest fair challenge to a single viewpoint."""

    @abstractmethod
    async def strong_man_viewpoint(self, viewpoint: Viewpoint) -> StrongMannedAnalysis:
        pass


class BaseSynthesizer(ABC):
    """Merges all analyses into one structured answer."""

    @abstractmethod
    async def synthesize_answer(
        self,
        question: str,
        viewpoint_analysis: ViewpointAnalysis,
        strong_manned_analyses: Mapping[str, StrongMannedAnalysis],
    ) -> SynthesizedAnswer:
        pass


class SummaryStore(ABC):
    """
    Persistence collaborator for finished runs.

    Best-effort: the orchestrator logs and swallows any exception raised
    here, so implementations may simply let errors propagate.
    """

    @abstractmethod
    async def persist_summary(
        self,
        user_id: str,
        run_id: str,
        summary: Mapping[str, Any],
    ) -> str:
        """
        Store a run summary.

        Args:
            user_id: Owner of the run
            run_id: Pipeline run identifier (e.g. 'pipeline-result-0-...')
            summary: {type, question, answer_id, quality, timestamp}

        Returns:
            Identifier of the stored record
        """
        pass
