"""
Argumentation Pipeline — Orchestrates the full argumentation flow.

WHAT THIS DOES:
Turns a question plus conversation history into one PipelineResult:
routing → viewpoint analysis → strong-manning (once per viewpoint) →
synthesis → complete. Reports progress along the way, scores the run,
caches the result and persists a summary.

WHY THIS EXISTS:
- Keeps API routes thin and focused on HTTP concerns
- Each stage is injected, so the pipeline is testable in isolation
- Single place to understand stage ordering and failure handling

FAILURE HANDLING:
- A strong-manning failure for one viewpoint is logged and that viewpoint
  is skipped; the run continues
- Any other stage failure (or the deadline expiring) emits a terminal
  'complete' progress event with progress 0, then re-raises. Nothing is cached
- Persistence is best-effort: failures are logged and swallowed

USAGE:
    pipeline = build_pipeline()
    result = await pipeline.execute_pipeline(
        question="Should renewable energy be prioritized?",
        conversation_history=[{"role": "user", "content": "Solar is cheaper now."}],
        on_progress=lambda p: print(p.stage, p.progress),
    )
    print(result.synthesized_answer.direct_answer)
"""

import asyncio
import itertools
import logging
import random
import re
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

from app.config import get_settings
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
from app.services.argumentation.protocols import (
    BaseQueryRouter,
    BaseStrongManner,
    BaseSynthesizer,
    BaseViewpointAnalyzer,
    SummaryStore,
)
from app.services.argumentation.result_cache import ResultCache
from app.services.argumentation.routing import QueryRouter
from app.services.argumentation.strong_manning import StrongManningEngine
from app.services.argumentation.synthesizer import ArgumentSynthesizer
from app.services.argumentation.viewpoint_analyzer import ViewpointAnalyzer

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[PipelineProgress], None]

QUESTION_WORD = re.compile(
    r"^(what|how|why|when|where|who|is|are|do|does|should|can|will)\s+", re.I
)
MAX_TOPIC_LENGTH = 100

SUMMARY_TYPE = "argumentation-pipeline"


class PipelineTimeoutError(Exception):
    """Raised when a run does not finish before its deadline."""


@dataclass
class _RunState:
    """Mutable state of one run. Never shared between runs."""

    id: str
    started: float
    deadline: Optional[float]
    timeout: Optional[float]
    progress_log: list[PipelineProgress] = field(default_factory=list)


class ArgumentationPipeline:
    """
    Sequences the four reasoning stages for one question at a time.

    Shared state is limited to the result cache and the progress-callback
    registry, both keyed by run id.
    """

    def __init__(
        self,
        router: Optional[BaseQueryRouter] = None,
        analyzer: Optional[BaseViewpointAnalyzer] = None,
        strong_manner: Optional[BaseStrongManner] = None,
        synthesizer: Optional[BaseSynthesizer] = None,
        summary_store: Optional[SummaryStore] = None,
        cache: Optional[ResultCache] = None,
        timeout: Optional[float] = None,
        prefer_cost: Optional[bool] = None,
        context_chars: Optional[int] = None,
        persist_user_id: Optional[str] = None,
        persist_timeout: Optional[float] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            router, analyzer, strong_manner, synthesizer: Stage implementations.
                Default to the heuristic implementations.
            summary_store: Persistence collaborator (None = don't persist)
            cache: Result cache. Defaults to one sized from config.
            timeout: Default whole-run deadline in seconds (None = config value)
            prefer_cost: Routing cost bias. Defaults to config value.
            context_chars: Conversation characters passed to routing.
                Defaults to config value.
            persist_user_id: User id recorded on persisted summaries.
                Defaults to config value.
            persist_timeout: Seconds to wait on the summary store before
                giving up. Defaults to config value.
        """
        settings = get_settings()
        self.router = router or QueryRouter()
        self.analyzer = analyzer or ViewpointAnalyzer()
        self.strong_manner = strong_manner or StrongManningEngine()
        self.synthesizer = synthesizer or ArgumentSynthesizer()
        self.summary_store = summary_store
        if cache is None:
            cache = ResultCache(settings.result_cache_size, settings.metrics_window)
        self.cache = cache
        self.timeout = timeout if timeout is not None else settings.pipeline_timeout_seconds
        self.prefer_cost = prefer_cost if prefer_cost is not None else settings.routing_prefer_cost
        self.context_chars = context_chars if context_chars is not None else settings.routing_context_chars
        self.persist_user_id = persist_user_id or settings.persist_user_id
        self.persist_timeout = (
            persist_timeout if persist_timeout is not None else settings.persist_timeout_seconds
        )

        self._progress_callbacks: dict[str, ProgressCallback] = {}
        self._run_ids = itertools.count()

    async def execute_pipeline(
        self,
        question: str,
        conversation_history: Sequence[Mapping[str, str]],
        on_progress: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None,
    ) -> PipelineResult:
        """
        Run all stages and return the finished result.

        Args:
            question: The question to answer (empty is accepted)
            conversation_history: [{role, content}, ...] in chronological order
            on_progress: Called synchronously with every PipelineProgress
            timeout: Whole-run deadline in seconds, overriding the default

        Returns:
            PipelineResult (also stored in the result cache)

        Raises:
            PipelineTimeoutError: The deadline expired
            Exception: Whatever a routing, analysis or synthesis stage raised
        """
        question = question or ""
        history = [dict(turn) for turn in conversation_history]
        timeout = timeout if timeout is not None else self.timeout

        started = time.perf_counter()
        run = _RunState(
            id=f"result-{next(self._run_ids)}-{int(time.time() * 1000)}",
            started=started,
            deadline=started + timeout if timeout else None,
            timeout=timeout,
        )
        if on_progress is not None:
            self._progress_callbacks[run.id] = on_progress

        logger.info(f"Pipeline {run.id} starting: '{question[:80]}' ({len(history)} turns)")

        try:
            routing_decision = await self._stage_routing(run, question, history)
            viewpoint_analysis = await self._stage_viewpoint_analysis(run, question, history)
            strong_manned = await self._stage_strong_manning(run, viewpoint_analysis)
            synthesized_answer = await self._stage_synthesis(
                run, question, viewpoint_analysis, strong_manned
            )
            quality = self._calculate_quality(routing_decision, viewpoint_analysis, synthesized_answer)
            self._emit(run, PipelineStage.COMPLETE, 1.0, "Pipeline complete")
        except Exception as e:
            logger.error(f"Pipeline {run.id} failed: {e}")
            self._emit(run, PipelineStage.COMPLETE, 0.0, f"Pipeline failed: {e}")
            raise
        finally:
            # Terminal events above are delivered before the sink is dropped
            self._progress_callbacks.pop(run.id, None)

        result = PipelineResult(
            id=run.id,
            question=question,
            conversation_history=history,
            routing_decision=routing_decision,
            viewpoint_analysis=viewpoint_analysis,
            strong_manned_analyses=strong_manned,
            synthesized_answer=synthesized_answer,
            progress_log=list(run.progress_log),
            quality=quality,
            timing=self._calculate_timing(run.progress_log),
            timestamp=time.time(),
        )

        self.cache.store(result)
        await self._persist_summary(result)

        logger.info(
            f"Pipeline {run.id} complete: quality {quality.overall_quality:.2f}, "
            f"{result.timing.total_ms:.1f}ms"
        )
        return result

    def get_result(self, result_id: str) -> Optional[PipelineResult]:
        """Cached result by id, or None when unknown or evicted."""
        return self.cache.get(result_id)

    def get_metrics(self) -> PipelineMetrics:
        return self.cache.metrics()

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _stage_routing(
        self,
        run: _RunState,
        question: str,
        history: list[dict[str, str]],
    ) -> RoutingDecision:
        self._emit(run, PipelineStage.ROUTING, 0.0, "Analyzing query complexity...")
        decision = await self._await_stage(
            run,
            self.router.route_query(
                question,
                self._routing_context(history),
                prefer_cost=self.prefer_cost,
            ),
        )
        logger.info(f"Routing: {decision.adapter_id.value} ({decision.complexity.recommendation.value})")
        return decision

    async def _stage_viewpoint_analysis(
        self,
        run: _RunState,
        question: str,
        history: list[dict[str, str]],
    ) -> ViewpointAnalysis:
        self._emit(run, PipelineStage.VIEWPOINT_ANALYSIS, 0.05, "Extracting viewpoints from the conversation...")
        analysis = await self._await_stage(
            run,
            self.analyzer.analyze_conversation(history, extract_topic(question)),
        )
        logger.info(f"Viewpoint analysis: {len(analysis.opposing_viewpoints)} opposing viewpoints")
        return analysis

    async def _stage_strong_manning(
        self,
        run: _RunState,
        analysis: ViewpointAnalysis,
    ) -> dict[str, StrongMannedAnalysis]:
        viewpoints = analysis.all_viewpoints
        total = len(viewpoints)
        strong_manned: dict[str, StrongMannedAnalysis] = {}

        for i, viewpoint in enumerate(viewpoints):
            self._emit(
                run,
                PipelineStage.STRONG_MANNING,
                0.1 + i / total * 0.8,
                f"Strong-manning viewpoint {i + 1} of {total}...",
            )
            try:
                strong_manned[viewpoint.id] = await self._await_stage(
                    run, self.strong_manner.strong_man_viewpoint(viewpoint)
                )
            except PipelineTimeoutError:
                raise
            except Exception as e:
                logger.warning(f"Strong-manning failed for {viewpoint.id}, skipping: {e}")

        logger.info(f"Strong-manning: {len(strong_manned)}/{total} viewpoints analyzed")
        return strong_manned

    async def _stage_synthesis(
        self,
        run: _RunState,
        question: str,
        analysis: ViewpointAnalysis,
        strong_manned: dict[str, StrongMannedAnalysis],
    ) -> SynthesizedAnswer:
        self._emit(run, PipelineStage.SYNTHESIS, 0.9, "Synthesizing a balanced answer...")
        answer = await self._await_stage(
            run,
            self.synthesizer.synthesize_answer(question, analysis, strong_manned),
        )
        logger.info(f"Synthesis: {len(answer.perspectives)} perspectives")
        return answer

    # =========================================================================
    # PROGRESS + DEADLINE
    # =========================================================================

    def _emit(self, run: _RunState, stage: PipelineStage, progress: float, message: str) -> None:
        record = PipelineProgress(
            stage=stage,
            progress=progress,
            status_message=message,
            timestamp=time.time(),
            elapsed_ms=(time.perf_counter() - run.started) * 1000,
        )
        run.progress_log.append(record)

        callback = self._progress_callbacks.get(run.id)
        if callback is not None:
            self._deliver(callback, record)

    def _deliver(self, callback: ProgressCallback, record: PipelineProgress) -> None:
        try:
            callback(record)
        except Exception as e:
            logger.warning(f"Progress callback raised on {record.stage.value}: {e}")

    async def _await_stage(self, run: _RunState, awaitable: Awaitable[T]) -> T:
        if run.deadline is None:
            return await awaitable

        remaining = run.deadline - time.perf_counter()
        if remaining <= 0:
            # Never started, so close it to avoid a "never awaited" warning
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise PipelineTimeoutError(f"Pipeline {run.id} exceeded its {run.timeout}s deadline")

        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            raise PipelineTimeoutError(
                f"Pipeline {run.id} exceeded its {run.timeout}s deadline"
            ) from None

    # =========================================================================
    # SCORING
    # =========================================================================

    def _calculate_quality(
        self,
        routing_decision: RoutingDecision,
        analysis: ViewpointAnalysis,
        answer: SynthesizedAnswer,
    ) -> PipelineQuality:
        routing_confidence = routing_decision.complexity.confidence
        weighted = (
            routing_confidence * 0.2
            + analysis.analysis_confidence * 0.35
            + answer.synthesis_quality * 0.45
        )
        return PipelineQuality(
            routing_confidence=routing_confidence,
            analysis_confidence=analysis.analysis_confidence,
            synthesis_quality=answer.synthesis_quality,
            overall_quality=min(0.95, weighted) * answer.representativeness,
        )

    def _calculate_timing(self, progress_log: list[PipelineProgress]) -> PipelineTiming:
        """Attribute each gap between log entries to the earlier entry's stage."""
        durations: dict[PipelineStage, float] = defaultdict(float)
        for previous, current in zip(progress_log, progress_log[1:]):
            durations[previous.stage] += current.elapsed_ms - previous.elapsed_ms

        return PipelineTiming(
            total_ms=progress_log[-1].elapsed_ms if progress_log else 0.0,
            routing_ms=durations[PipelineStage.ROUTING],
            analysis_ms=durations[PipelineStage.VIEWPOINT_ANALYSIS],
            strong_manning_ms=durations[PipelineStage.STRONG_MANNING],
            synthesis_ms=durations[PipelineStage.SYNTHESIS],
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _routing_context(self, history: list[dict[str, str]]) -> list[str]:
        """Most recent `context_chars` of the conversation, split back into turns."""
        text = "\n".join(turn.get("content", "") for turn in history)
        if self.context_chars > 0:
            text = text[-self.context_chars:]
        return [line for line in text.split("\n") if line.strip()]

    async def _persist_summary(self, result: PipelineResult) -> None:
        if self.summary_store is None:
            return

        summary: dict[str, Any] = {
            "type": SUMMARY_TYPE,
            "question": result.question,
            "answer_id": result.synthesized_answer.id,
            "quality": result.quality.overall_quality,
            "timestamp": result.timestamp,
        }
        try:
            await asyncio.wait_for(
                self.summary_store.persist_summary(
                    self.persist_user_id, f"pipeline-{result.id}", summary
                ),
                timeout=self.persist_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Persisting summary for {result.id} timed out after {self.persist_timeout}s"
            )
        except Exception as e:
            logger.warning(f"Failed to persist summary for {result.id}: {e}")


def extract_topic(question: str) -> str:
    """
    Derive a short topic from a question.

    Example:
        extract_topic("Should renewable energy be prioritized?")
        -> "renewable energy be prioritized"
    """
    stripped = question.strip()
    topic = QUESTION_WORD.sub("", stripped).rstrip("?").strip()
    return (topic or stripped)[:MAX_TOPIC_LENGTH]


def build_pipeline(summary_store: Optional[SummaryStore] = None) -> ArgumentationPipeline:
    """
    Construct a pipeline and its stages from config.

    Called once at the application root. The stages share a single random
    source so a configured seed reproduces a whole run.
    """
    settings = get_settings()
    rng = random.Random(settings.random_seed)

    return ArgumentationPipeline(
        router=QueryRouter(),
        analyzer=ViewpointAnalyzer(rng=rng),
        strong_manner=StrongManningEngine(rng=rng),
        synthesizer=ArgumentSynthesizer(),
        summary_store=summary_store,
    )


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def run_argumentation(
    question: str,
    conversation_history: Sequence[Mapping[str, str]] = (),
    on_progress: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """
    Convenience function to run the pipeline once without persistence.

    Example:
        result = await run_argumentation(
            "Is remote work better?",
            [{"role": "user", "content": "Remote work saves commuting time."}],
        )
    """
    pipeline = build_pipeline()
    return await pipeline.execute_pipeline(question, conversation_history, on_progress)
