"""
Tests for the argument synthesizer.

The synthesizer is fed real analyzer and strong-manning output, so these
tests also cover the stages working together.
Run with: pytest tests/test_synthesizer.py -v
"""

import random

import pytest

from app.services.argumentation.models import TensionNature
from app.services.argumentation.strong_manning import StrongManningEngine
from app.services.argumentation.synthesizer import ArgumentSynthesizer, synthesize_answer
from app.services.argumentation.viewpoint_analyzer import ViewpointAnalyzer

from conftest import RENEWABLES_HISTORY, RENEWABLES_QUESTION


async def _analyze(history, topic="renewable energy", skip_domains=()):
    analyzer = ViewpointAnalyzer(max_opposing_viewpoints=3, score_jitter=0.0, rng=random.Random(5))
    engine = StrongManningEngine(min_fairness=0.7, rng=random.Random(5))

    analysis = await analyzer.analyze_conversation(history, topic)
    strong_manned = {}
    for viewpoint in analysis.all_viewpoints:
        if viewpoint.domain in skip_domains:
            continue
        strong_manned[viewpoint.id] = await engine.strong_man_viewpoint(viewpoint)
    return analysis, strong_manned


# =============================================================================
# STRUCTURE
# =============================================================================

@pytest.mark.asyncio
async def test_one_perspective_per_viewpoint():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    assert [p.viewpoint_id for p in answer.perspectives] == [v.id for v in analysis.all_viewpoints]
    assert answer.perspectives[0].title == "Your position"
    assert answer.perspectives[1].title == "The practical/cost perspective"
    assert answer.original_question == RENEWABLES_QUESTION

    for perspective in answer.perspectives[1:]:
        assert perspective.strengths, "Opposing perspectives carry their strong arguments"
        assert perspective.applicable_when.startswith("When ")


@pytest.mark.asyncio
async def test_direct_answer_and_explanation():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    assert answer.direct_answer
    assert "Renewable energy should be prioritized" in answer.direct_answer
    assert any(t.topic.lower() in answer.nuanced_explanation for t in analysis.key_tensions)


@pytest.mark.asyncio
async def test_trade_offs_map_one_to_one_from_tensions():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    expected = [
        t.id for t in analysis.key_tensions
        if t.nature in (TensionNature.PRIORITIZATION, TensionNature.INCOMPATIBLE)
    ]
    assert [t.tension_id for t in answer.trade_offs] == expected
    assert not any(t.mutually_exclusive for t in answer.trade_offs)


@pytest.mark.asyncio
async def test_incompatible_tensions_are_mutually_exclusive():
    history = [{"role": "user", "content": "Cars should always be banned from every city center."}]
    analysis, strong_manned = await _analyze(history, topic="cars")
    answer = await ArgumentSynthesizer().synthesize_answer("Should cars be banned?", analysis, strong_manned)

    exclusive = [t for t in answer.trade_offs if t.mutually_exclusive]
    incompatible = [t for t in analysis.key_tensions if t.nature == TensionNature.INCOMPATIBLE]
    assert len(exclusive) == len(incompatible) > 0


@pytest.mark.asyncio
async def test_value_and_contradictory_tensions_stay_unresolved():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    # One contradictory (should vs should not) and one value tension
    assert len(answer.unresolvable_disagreements) == 2
    assert any(d.startswith("Course of action") for d in answer.unresolvable_disagreements)


@pytest.mark.asyncio
async def test_recommended_approach_draws_on_strong_manning():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)
    approach = answer.recommended_approach

    assert approach.primary
    assert len(approach.alternatives) == len(analysis.opposing_viewpoints)
    assert "The problem being addressed is correctly framed" in approach.assumptions

    failing = {
        e.scenario for sm in strong_manned.values() for e in sm.failing_critical_edge_cases
    }
    assert {c.split(":")[0] for c in approach.caveats} == failing
    assert len(answer.contextual_recommendations) == 1 + len(analysis.opposing_viewpoints)


# =============================================================================
# SCORES
# =============================================================================

@pytest.mark.asyncio
async def test_scores_in_range():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    assert 0.0 <= answer.synthesis_quality <= 0.95
    assert 0.4 < answer.representativeness <= 0.95


@pytest.mark.asyncio
async def test_empty_history_still_answers():
    analysis, strong_manned = await _analyze([], topic="remote work")
    answer = await ArgumentSynthesizer().synthesize_answer("", analysis, strong_manned)

    assert answer.direct_answer
    assert len(answer.perspectives) == 1
    assert answer.trade_offs == []
    assert answer.representativeness == pytest.approx(0.25)


@pytest.mark.asyncio
async def test_missing_strong_man_analysis_still_gets_perspective():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY, skip_domains=("ethical/values",))
    answer = await ArgumentSynthesizer().synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)

    assert len(answer.perspectives) == len(analysis.all_viewpoints)
    skipped = next(p for p in answer.perspectives if p.title == "The ethical/values perspective")
    assert skipped.weaknesses == []
    assert skipped.strengths


@pytest.mark.asyncio
async def test_convenience_function():
    analysis, strong_manned = await _analyze(RENEWABLES_HISTORY)
    answer = await synthesize_answer(RENEWABLES_QUESTION, analysis, strong_manned)
    assert answer.perspectives
