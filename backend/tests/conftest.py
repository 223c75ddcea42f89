"""
Shared fixtures and fakes for the argumentation tests.

Every test builds its own pipeline from explicit components, so no test
depends on state left behind by another.
"""

import asyncio
import random

import pytest

from app.services.argumentation import (
    ArgumentationPipeline,
    ArgumentSynthesizer,
    BaseStrongManner,
    BaseViewpointAnalyzer,
    QueryRouter,
    ResultCache,
    StrongManningEngine,
    SummaryStore,
    ViewpointAnalyzer,
)
from app.services.argumentation.models import Argument, Stance, Viewpoint


# =============================================================================
# CONVERSATIONS
# =============================================================================

RENEWABLES_QUESTION = "Should renewable energy be prioritized?"

RENEWABLES_HISTORY = [
    {
        "role": "user",
        "content": "Renewable energy should be prioritized because solar power is now cheaper than coal in most markets.",
    },
    {"role": "assistant", "content": "That is an interesting point. What else makes you think so?"},
    {"role": "user", "content": "Wind and solar create jobs and cut emissions."},
    {"role": "assistant", "content": "Those are common arguments in favor."},
    {
        "role": "user",
        "content": "Studies show that 80 percent of new capacity added last year was renewable.",
    },
]

TECHNOLOGY_QUESTION = "Is technology the solution to all problems?"

TECHNOLOGY_HISTORY = [
    {
        "role": "user",
        "content": "Technology is the answer to every problem we face. Nuance is just a waste of time, because innovation always wins.",
    },
]


def make_viewpoint(
    position: str,
    statements: list[str] = (),
    stance: Stance = Stance.USER,
    domain: str | None = None,
    viewpoint_id: str = "viewpoint-test",
    strength: float = 0.7,
) -> Viewpoint:
    """Build a viewpoint with one argument per statement."""
    return Viewpoint(
        id=viewpoint_id,
        position=position,
        stance=stance,
        arguments=[
            Argument(id=f"arg-{i}", statement=s, strength=strength)
            for i, s in enumerate(statements)
        ],
        confidence=0.6,
        domain=domain,
    )


# =============================================================================
# FAKES
# =============================================================================

class RecordingSummaryStore(SummaryStore):
    """Keeps every persisted summary in memory."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []

    async def persist_summary(self, user_id, run_id, summary) -> str:
        self.calls.append((user_id, run_id, dict(summary)))
        return run_id


class FailingSummaryStore(SummaryStore):
    async def persist_summary(self, user_id, run_id, summary) -> str:
        raise ConnectionError("database unavailable")


class HangingSummaryStore(SummaryStore):
    async def persist_summary(self, user_id, run_id, summary) -> str:
        await asyncio.sleep(5)
        return run_id


class FailingAnalyzer(BaseViewpointAnalyzer):
    async def analyze_conversation(self, conversation_history, topic):
        raise RuntimeError("analyzer exploded")


class SlowAnalyzer(BaseViewpointAnalyzer):
    async def analyze_conversation(self, conversation_history, topic):
        await asyncio.sleep(5)
        raise AssertionError("should have timed out")


class SelectiveFailingStrongManner(BaseStrongManner):
    """Delegates to the real engine but fails for one domain."""

    def __init__(self, failing_domain: str):
        self.failing_domain = failing_domain
        self.engine = StrongManningEngine(rng=random.Random(0))

    async def strong_man_viewpoint(self, viewpoint):
        if viewpoint.domain == self.failing_domain:
            raise ValueError(f"cannot strong-man {viewpoint.domain}")
        return await self.engine.strong_man_viewpoint(viewpoint)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def summary_store() -> RecordingSummaryStore:
    return RecordingSummaryStore()


def build_test_pipeline(summary_store=None, rng=None, **overrides) -> ArgumentationPipeline:
    rng = rng or random.Random(42)
    components = {
        "router": QueryRouter(),
        "analyzer": ViewpointAnalyzer(max_opposing_viewpoints=3, score_jitter=0.0, rng=rng),
        "strong_manner": StrongManningEngine(min_fairness=0.7, rng=rng),
        "synthesizer": ArgumentSynthesizer(),
        "cache": ResultCache(max_results=100, metrics_window=500),
        "prefer_cost": True,
        "context_chars": 2000,
        "persist_user_id": "system",
    }
    components.update(overrides)
    return ArgumentationPipeline(summary_store=summary_store, **components)


@pytest.fixture
def pipeline(summary_store, rng) -> ArgumentationPipeline:
    return build_test_pipeline(summary_store=summary_store, rng=rng)
