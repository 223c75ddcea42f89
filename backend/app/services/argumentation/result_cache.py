"""
Result Cache — Bounded in-memory store of finished pipeline runs.

Owned by one ArgumentationPipeline instance. Keeps the most recent
`max_results` results for get_result() and a separate window of the most
recent `metrics_window` runs for get_metrics(), so the metrics survive
result eviction without growing without bound.
"""

import logging
from collections import Counter, OrderedDict, deque
from typing import Optional

from app.services.argumentation.models import (
    PipelineMetrics,
    PipelineResult,
    PipelineStage,
    PipelineTiming,
)

logger = logging.getLogger(__name__)


class ResultCache:
    """Insertion-ordered result store with oldest-first eviction."""

    def __init__(self, max_results: int = 100, metrics_window: int = 500):
        self.max_results = max(1, max_results)
        self._results: OrderedDict[str, PipelineResult] = OrderedDict()
        # (overall_quality, timing) per completed run
        self._runs: deque[tuple[float, PipelineTiming]] = deque(maxlen=max(1, metrics_window))

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, result_id: str) -> bool:
        return result_id in self._results

    def store(self, result: PipelineResult) -> None:
        self._results[result.id] = result
        self._results.move_to_end(result.id)
        self._runs.append((result.quality.overall_quality, result.timing))

        while len(self._results) > self.max_results:
            evicted_id, _ = self._results.popitem(last=False)
            logger.debug(f"Evicted cached result {evicted_id}")

    def get(self, result_id: str) -> Optional[PipelineResult]:
        return self._results.get(result_id)

    def metrics(self) -> PipelineMetrics:
        """Aggregate the metrics window. Zeroed when nothing has run yet."""
        if not self._runs:
            return PipelineMetrics(
                total_pipelines=0,
                avg_quality=0.0,
                avg_total_time_ms=0.0,
                most_common_stage=PipelineStage.ROUTING,
            )

        total = len(self._runs)
        slowest = Counter(timing.slowest_stage() for _, timing in self._runs)
        return PipelineMetrics(
            total_pipelines=total,
            avg_quality=sum(quality for quality, _ in self._runs) / total,
            avg_total_time_ms=sum(timing.total_ms for _, timing in self._runs) / total,
            most_common_stage=slowest.most_common(1)[0][0],
        )

    def clear(self) -> None:
        self._results.clear()
        self._runs.clear()
