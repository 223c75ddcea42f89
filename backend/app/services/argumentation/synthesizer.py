"""
Argument Synthesizer — Merges every analysis into one structured answer.

WHAT THIS DOES:
Takes the viewpoint analysis and the strong-man analysis of each viewpoint
and produces an answer that represents all sides fairly:
- A direct answer, qualified by how well the user's position held up
- A nuanced explanation built around the key tensions
- One perspective per viewpoint, with its strengths AND weaknesses
- Trade-offs, contextual recommendations and a recommended approach
- The disagreements that no synthesis can remove (value conflicts)

REPRESENTATIVENESS:
The score that keeps the answer from quietly siding with the user. It
compares the depth of the user's perspective with the average depth of the
opposing ones, and rewards strong-manning every viewpoint.

USAGE:
    synthesizer = ArgumentSynthesizer()
    answer = await synthesizer.synthesize_answer(question, analysis, strong_manned)
"""

import itertools
import logging
import time
import uuid
from typing import Mapping, Optional

from app.services.argumentation.models import (
    ContextualRecommendation,
    KeyTension,
    Perspective,
    RecommendedApproach,
    StrongMannedAnalysis,
    SynthesizedAnswer,
    TensionNature,
    TradeOff,
    TradeOffDimension,
    Viewpoint,
    ViewpointAnalysis,
)
from app.services.argumentation.protocols import BaseSynthesizer

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 0.6
WEAKNESS_THRESHOLD = 0.7
IMPORTANT_ASSUMPTION = 0.75

USER_POSITION_PREFIX = "The user's position is that: "

# Situations in which each opposing framing deserves more weight
DOMAIN_CONTEXTS = {
    "practical/cost": "implementation capacity, budgets or timelines are tight",
    "ethical/values": "the people affected disagree about what matters most",
    "economic/opportunity-cost": "resources are scarce and competing priorities are strong",
}

TRADE_OFF_NATURES = (TensionNature.PRIORITIZATION, TensionNature.INCOMPATIBLE)
UNRESOLVABLE_NATURES = (TensionNature.VALUE, TensionNature.CONTRADICTORY)


class ArgumentSynthesizer(BaseSynthesizer):
    """
    Builds a SynthesizedAnswer from the earlier stages.

    Pipeline position:
    QueryRouter → ViewpointAnalyzer → StrongManningEngine → [ArgumentSynthesizer]
    """

    def __init__(self):
        self._answer_ids = itertools.count()

    async def synthesize_answer(
        self,
        question: str,
        viewpoint_analysis: ViewpointAnalysis,
        strong_manned_analyses: Mapping[str, StrongMannedAnalysis],
    ) -> SynthesizedAnswer:
        """
        Synthesize one answer covering every viewpoint.

        Args:
            question: The original question (may be empty)
            viewpoint_analysis: Output of the viewpoint analyzer
            strong_manned_analyses: Strong-man analysis per viewpoint id;
                viewpoints missing here still get a perspective

        Returns:
            SynthesizedAnswer with quality and representativeness scores
        """
        viewpoints = viewpoint_analysis.all_viewpoints
        perspectives = [
            self._build_perspective(v, strong_manned_analyses.get(v.id))
            for v in viewpoints
        ]

        user_analysis = strong_manned_analyses.get(viewpoint_analysis.user_position.id)

        answer = SynthesizedAnswer(
            id=f"synthesis-{next(self._answer_ids)}-{uuid.uuid4().hex[:8]}",
            original_question=question,
            direct_answer=self._direct_answer(question, viewpoint_analysis, user_analysis),
            nuanced_explanation=self._nuanced_explanation(viewpoint_analysis),
            trade_offs=self._build_trade_offs(viewpoint_analysis),
            perspectives=perspectives,
            common_ground=[cg.statement for cg in viewpoint_analysis.common_ground],
            contextual_recommendations=self._contextual_recommendations(viewpoint_analysis, perspectives),
            recommended_approach=self._recommended_approach(
                viewpoint_analysis, strong_manned_analyses, user_analysis
            ),
            unresolvable_disagreements=self._unresolvable_disagreements(viewpoint_analysis.key_tensions),
            synthesis_quality=self._synthesis_quality(viewpoint_analysis, perspectives),
            representativeness=self._representativeness(viewpoints, perspectives, strong_manned_analyses),
            timestamp=time.time(),
        )

        logger.info(
            f"Synthesized answer {answer.id}: {len(perspectives)} perspectives, "
            f"{len(answer.trade_offs)} trade-offs, quality {answer.synthesis_quality:.2f}, "
            f"representativeness {answer.representativeness:.2f}"
        )
        return answer

    # =========================================================================
    # ANSWER TEXT
    # =========================================================================

    def _direct_answer(
        self,
        question: str,
        analysis: ViewpointAnalysis,
        user_analysis: Optional[StrongMannedAnalysis],
    ) -> str:
        subject = question.strip() or analysis.topic or "this question"

        if not analysis.opposing_viewpoints:
            return (
                f"There is not yet a stated position to weigh on {subject}; "
                "it deserves a look at several perspectives before drawing a conclusion."
            )

        core = _core_position(analysis.user_position)
        confidence = analysis.user_position.confidence
        challenge = user_analysis.overall_challenge_strength if user_analysis else 0.5

        if confidence >= 0.7 and challenge < 0.6:
            lead = "Your position has solid support"
        elif confidence >= 0.5:
            lead = "Your position has merit, with important caveats"
        else:
            lead = "The answer is genuinely contested"

        count = len(analysis.opposing_viewpoints)
        noun = "perspective raises" if count == 1 else "perspectives raise"
        return (
            f"{lead}: {core}. However, {count} alternative {noun} considerations "
            "that change the answer depending on context."
        )

    def _nuanced_explanation(self, analysis: ViewpointAnalysis) -> str:
        viewpoint_count = len(analysis.all_viewpoints)
        parts = [
            f"The question of {analysis.topic or 'this topic'} involves "
            f"{viewpoint_count} perspective{'s' if viewpoint_count != 1 else ''}."
        ]

        if analysis.key_tensions:
            for tension in analysis.key_tensions[:2]:
                parts.append(f"A key tension concerns {tension.topic.lower()}: {tension.explanation}.")
        else:
            parts.append("No direct tensions were detected between the perspectives.")

        shared = [cg for cg in analysis.common_ground if len(cg.agreement) > 1]
        if shared:
            parts.append(f"Even so, the perspectives agree that {_lower_first(shared[0].statement)}.")

        parts.append(analysis.topic_clarities.core_disagreement + ".")
        return " ".join(parts)

    # =========================================================================
    # PERSPECTIVES
    # =========================================================================

    def _build_perspective(
        self,
        viewpoint: Viewpoint,
        strong_manned: Optional[StrongMannedAnalysis],
    ) -> Perspective:
        strengths = [a.statement for a in viewpoint.arguments if a.strength >= STRENGTH_THRESHOLD]
        if not strengths and viewpoint.arguments:
            strengths = [max(viewpoint.arguments, key=lambda a: a.strength).statement]

        weaknesses: list[str] = []
        implications: list[str] = []
        if strong_manned is not None:
            weaknesses = list(dict.fromkeys(
                c.statement for c in strong_manned.counter_arguments
                if c.strength >= WEAKNESS_THRESHOLD
            ))
            weaknesses += [
                f"May not hold under {e.scenario.lower()}: {e.reasoning}"
                for e in strong_manned.failing_critical_edge_cases
            ]
            implications = [q.question for q in strong_manned.probing_questions if q.reveals_problem][:2]

        return Perspective(
            viewpoint_id=viewpoint.id,
            title=_title(viewpoint),
            description=_core_position(viewpoint),
            applicable_when=self._applicable_when(viewpoint, strong_manned),
            strengths=strengths,
            weaknesses=weaknesses,
            implications=implications,
        )

    def _applicable_when(
        self,
        viewpoint: Viewpoint,
        strong_manned: Optional[StrongMannedAnalysis],
    ) -> str:
        if viewpoint.domain in DOMAIN_CONTEXTS:
            return f"When {DOMAIN_CONTEXTS[viewpoint.domain]}"
        if viewpoint.domain:
            return f"When {viewpoint.domain} considerations dominate"
        if strong_manned is not None and strong_manned.unexamined_assumptions:
            return f"When {_lower_first(strong_manned.unexamined_assumptions[0].assumption)}"
        return "When the premises of this position hold"

    # =========================================================================
    # TRADE-OFFS + RECOMMENDATIONS
    # =========================================================================

    def _build_trade_offs(self, analysis: ViewpointAnalysis) -> list[TradeOff]:
        by_id = {v.id: v for v in analysis.all_viewpoints}
        trade_offs = []

        for tension in analysis.key_tensions:
            if tension.nature not in TRADE_OFF_NATURES:
                continue

            first = by_id.get(tension.position1.viewpoint_id)
            second = by_id.get(tension.position2.viewpoint_id)
            dimension1 = _dimension(tension.position1.viewpoint_id, tension.position1.stance, first)
            dimension2 = _dimension(tension.position2.viewpoint_id, tension.position2.stance, second)
            exclusive = tension.nature == TensionNature.INCOMPATIBLE

            if exclusive:
                context = "Both cannot be fully satisfied at once; the situation decides which gives way"
            else:
                context = "Which matters more depends on how costs and benefits fall in the specific situation"

            if dimension1.priority > dimension2.priority + 0.1:
                recommendation = f"Lean towards {dimension1.name}, while accounting for {dimension2.name}"
            elif dimension2.priority > dimension1.priority + 0.1:
                recommendation = f"Lean towards {dimension2.name}, while accounting for {dimension1.name}"
            else:
                recommendation = "Balance both dimensions based on the specific context"

            trade_offs.append(TradeOff(
                id=f"tradeoff-{len(trade_offs)}",
                tension_id=tension.id,
                dimension1=dimension1,
                dimension2=dimension2,
                mutually_exclusive=exclusive,
                context_that_matters=context,
                recommendation=recommendation,
            ))

        return trade_offs

    def _contextual_recommendations(
        self,
        analysis: ViewpointAnalysis,
        perspectives: list[Perspective],
    ) -> list[ContextualRecommendation]:
        by_id = {p.viewpoint_id: p for p in perspectives}
        recommendations = []

        user_perspective = by_id.get(analysis.user_position.id)
        if analysis.user_position.arguments and user_perspective is not None:
            recommendations.append(ContextualRecommendation(
                context="When the assumptions behind your position hold",
                recommendation="Proceed with your position while monitoring its caveats",
                reasoning=user_perspective.strengths[0] if user_perspective.strengths else user_perspective.description,
            ))

        for viewpoint in analysis.opposing_viewpoints:
            perspective = by_id[viewpoint.id]
            recommendations.append(ContextualRecommendation(
                context=perspective.applicable_when,
                recommendation=f"Give more weight to the {viewpoint.domain or 'alternative'} perspective",
                reasoning=perspective.strengths[0] if perspective.strengths else perspective.description,
            ))

        return recommendations

    def _recommended_approach(
        self,
        analysis: ViewpointAnalysis,
        strong_manned_analyses: Mapping[str, StrongMannedAnalysis],
        user_analysis: Optional[StrongMannedAnalysis],
    ) -> RecommendedApproach:
        opposing = analysis.opposing_viewpoints
        if opposing:
            primary = (
                "Keep the core of your position while addressing the "
                f"{opposing[0].domain or 'strongest opposing'} concerns before committing"
            )
        else:
            primary = "Clarify your position and the considerations behind it before deciding"

        alternatives = [
            f"Prioritize the {v.domain or 'alternative'} perspective: "
            f"{v.arguments[0].statement if v.arguments else _core_position(v)}"
            for v in opposing
        ]

        caveats = list(dict.fromkeys(
            f"{edge.scenario}: {edge.reasoning}"
            for sm in strong_manned_analyses.values()
            for edge in sm.failing_critical_edge_cases
        ))

        source = [user_analysis] if user_analysis is not None else list(strong_manned_analyses.values())
        assumptions = list(dict.fromkeys(
            a.assumption
            for sm in source
            for a in sm.unexamined_assumptions
            if a.importance > IMPORTANT_ASSUMPTION
        ))

        return RecommendedApproach(
            primary=primary,
            alternatives=alternatives,
            caveats=caveats,
            assumptions=assumptions,
        )

    def _unresolvable_disagreements(self, tensions: list[KeyTension]) -> list[str]:
        return list(dict.fromkeys(
            f"{t.topic}: {t.explanation}"
            for t in tensions
            if t.nature in UNRESOLVABLE_NATURES
        ))

    # =========================================================================
    # SCORES
    # =========================================================================

    def _synthesis_quality(
        self,
        analysis: ViewpointAnalysis,
        perspectives: list[Perspective],
    ) -> float:
        coverage = sum(1 for p in perspectives if p.depth > 0) / len(perspectives)
        quality = 0.35
        quality += 0.3 * coverage
        quality += min(0.1, 0.05 * len(analysis.key_tensions))
        quality += min(0.1, 0.05 * len(analysis.common_ground))
        quality += 0.1 * analysis.analysis_confidence
        return max(0.0, min(0.95, quality))

    def _representativeness(
        self,
        viewpoints: list[Viewpoint],
        perspectives: list[Perspective],
        strong_manned_analyses: Mapping[str, StrongMannedAnalysis],
    ) -> float:
        """Balance of depth between the user's perspective and the opposing ones."""
        if len(perspectives) < 2:
            return 0.25

        user_depth = perspectives[0].depth
        opposing_depths = [p.depth for p in perspectives[1:]]
        avg_opposing = sum(opposing_depths) / len(opposing_depths)

        deepest = max(user_depth, avg_opposing)
        balance = min(user_depth, avg_opposing) / deepest if deepest else 1.0
        coverage = sum(1 for v in viewpoints if v.id in strong_manned_analyses) / len(viewpoints)

        return max(0.0, min(0.95, 0.3 + 0.4 * balance + 0.25 * coverage))


# =============================================================================
# HELPERS
# =============================================================================

def _core_position(viewpoint: Viewpoint) -> str:
    position = viewpoint.position
    if position.startswith(USER_POSITION_PREFIX):
        position = position[len(USER_POSITION_PREFIX):]
    return position.rstrip(".")


def _title(viewpoint: Viewpoint) -> str:
    if viewpoint.domain:
        return f"The {viewpoint.domain} perspective"
    return "Your position"


def _lower_first(text: str) -> str:
    return text[:1].lower() + text[1:]


def _dimension(viewpoint_id: str, stance: str, viewpoint: Optional[Viewpoint]) -> TradeOffDimension:
    name = viewpoint.domain if viewpoint is not None and viewpoint.domain else "your position"
    return TradeOffDimension(
        name=name,
        description=stance,
        viewpoint_ids=[viewpoint_id],
        priority=viewpoint.confidence if viewpoint is not None else 0.5,
    )


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def synthesize_answer(
    question: str,
    viewpoint_analysis: ViewpointAnalysis,
    strong_manned_analyses: Mapping[str, StrongMannedAnalysis],
) -> SynthesizedAnswer:
    """
    Convenience function to synthesize an answer.

    Example:
        answer = await synthesize_answer(question, analysis, strong_manned)
        print(answer.direct_answer)
    """
    synthesizer = ArgumentSynthesizer()
    return await synthesizer.synthesize_answer(question, viewpoint_analysis, strong_manned_analyses)
