"""
Strong-Manning Engine — Builds the strongest fair challenge to a viewpoint.

WHAT THIS DOES:
The opposite of strawmanning. For one viewpoint, finds the objections a
thoughtful opponent would actually raise, the assumptions the viewpoint
quietly depends on, the scenarios where it breaks, and the questions that
expose those weak points.

HOW IT WORKS:
1. Counterarguments: three independent detectors per argument
   - logical-fallacy: authority, false binary, circular, composition
   - empirical-challenge: numbers / study language
   - value-conflict: normative keywords
   Each counter carries the statement it targets and a potential response.
   Counters below min_fairness are dropped as strawmen.
2. Unexamined assumptions: three universal ones + per-argument patterns
3. Edge cases: five stress scenarios checked against failure vocabulary
4. Probing questions: from the top assumptions and failing edge cases,
   plus two meta-questions
5. Scores: overall challenge strength and fairness, both capped at 0.95

WHY FIXED FAIRNESS PER TYPE:
Each detector produces a known kind of objection. Fairness reflects how
charitable that kind of objection is, not the wording of a specific argument.

USAGE:
    engine = StrongManningEngine()
    analysis = await engine.strong_man_viewpoint(viewpoint)
"""

import itertools
import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Optional

from app.config import get_settings
from app.services.argumentation.models import (
    Argument,
    CounterArgument,
    CounterType,
    EdgeCase,
    ProbingQuestion,
    Severity,
    StrongMannedAnalysis,
    UnexaminedAssumption,
    Viewpoint,
)
from app.services.argumentation.protocols import BaseStrongManner

logger = logging.getLogger(__name__)

# Fairness is a property of the objection type
FAIRNESS_BY_TYPE = {
    CounterType.LOGICAL_FALLACY: 0.8,
    CounterType.EMPIRICAL_CHALLENGE: 0.85,
    CounterType.VALUE_CONFLICT: 0.75,
}

POTENTIAL_RESPONSES = {
    CounterType.LOGICAL_FALLACY: (
        "The argument could be restated without that inference pattern, "
        "resting the conclusion on independent grounds"
    ),
    CounterType.EMPIRICAL_CHALLENGE: (
        "Additional or replicated evidence from comparable contexts would "
        "strengthen the empirical basis"
    ),
    CounterType.VALUE_CONFLICT: (
        "The value priority can be defended by showing why it should take "
        "precedence in this particular context"
    ),
}

# First matching detector wins
FALLACY_DETECTORS = [
    (
        re.compile(r"\b(expert|authority|scientist)|research.*found|study.*showed|according to|evidence shows|proven", re.I),
        "Appeals to authority can mislead: experts disagree, and a claim stands "
        "on the quality of its evidence rather than the status of its source",
        0.75,
    ),
    (
        re.compile(r"\beither\b.*\bor\b|\bonly\b.*\bor\b|must choose|one or the other", re.I),
        "This presents a false dichotomy; intermediate or combined options may "
        "avoid the downsides of both extremes",
        0.7,
    ),
    (
        re.compile(r"is what it is|obviously|clearly|self-evident|naturally|of course", re.I),
        "This treats the conclusion as self-evident instead of arguing for it; "
        "what seems obvious may depend on unexamined premises",
        0.65,
    ),
    (
        re.compile(r"\b(each|every|individually)\b|\ball\b.*\bindividuals\b", re.I),
        "What holds for each part individually may not hold for the whole "
        "(fallacy of composition)",
        0.68,
    ),
]

EMPIRICAL_TRIGGER = re.compile(r"\d+|percent|\b(study|studies|research|data|evidence|shown|found)\b", re.I)

EMPIRICAL_CHALLENGES = [
    (
        "The cited findings may not generalize: the sample, context and time "
        "period all affect whether the result applies here",
        0.72,
    ),
    (
        "Correlation in the data does not establish causation; confounding "
        "factors may explain the observed pattern",
        0.68,
    ),
    (
        "Other studies may point the other way, and a single result is weaker "
        "than the overall weight of evidence",
        0.7,
    ),
]

VALUE_KEYWORDS = re.compile(
    r"\b(important|should|must|must not|valuable|worth|better|best|right|wrong|good|bad|prefer)\b",
    re.I,
)
VALUE_CHALLENGE = (
    "Someone who weighs the priorities differently could reasonably reject "
    "this; what counts as important here is itself contested",
    0.72,
)

UNIVERSAL_ASSUMPTIONS = [
    UnexaminedAssumption(
        assumption="The problem being addressed is correctly framed",
        why_assumed="Arguments start from a framing of the problem and rarely question it",
        challenge_statement="Could the problem be framed differently, leading to different solutions?",
        is_explicit=False,
        importance=0.9,
    ),
    UnexaminedAssumption(
        assumption="The values prioritized are the right ones to prioritize",
        why_assumed="Value priorities feel natural to those who hold them",
        challenge_statement="Would someone with different priorities reach a different conclusion?",
        is_explicit=False,
        importance=0.85,
    ),
    UnexaminedAssumption(
        assumption="The future will resemble the past in relevant ways",
        why_assumed="Reasoning from experience presumes that conditions stay stable",
        challenge_statement="What if circumstances change in ways that undermine this reasoning?",
        is_explicit=False,
        importance=0.7,
    ),
]

CAUSAL_LANGUAGE = re.compile(r"\b(because|therefore|thus|so|causes?|leads? to)\b", re.I)
UNIVERSAL_LANGUAGE = re.compile(r"\b(all|always|every|never|everyone|nothing)\b", re.I)
NECESSITY_LANGUAGE = re.compile(r"\b(must|required|necessary|need to|have to)\b", re.I)


@dataclass(frozen=True)
class EdgeScenario:
    name: str
    description: str
    failure_indicators: re.Pattern
    severity: Severity


EDGE_SCENARIOS = [
    EdgeScenario(
        name="Extreme scaling",
        description="What happens when this is applied at a much larger or smaller scale than envisioned?",
        failure_indicators=re.compile(r"\b(small|limited|few|particular)\b", re.I),
        severity=Severity.SIGNIFICANT,
    ),
    EdgeScenario(
        name="Temporal edge case",
        description="Does the position still hold over a much longer or much shorter time horizon?",
        failure_indicators=re.compile(r"short term|\b(recent|recently|current|currently|now|quick|quickly)\b", re.I),
        severity=Severity.SIGNIFICANT,
    ),
    EdgeScenario(
        name="Adversarial conditions",
        description="What if the people involved act in bad faith or try to exploit the arrangement?",
        failure_indicators=re.compile(r"trust|assum|honest|\bgood\b|cooperat", re.I),
        severity=Severity.CRITICAL,
    ),
    EdgeScenario(
        name="Resource constraints",
        description="What if the resources the position relies on become scarce?",
        failure_indicators=re.compile(r"\b(abundant|unlimited|available|plenty)\b", re.I),
        severity=Severity.SIGNIFICANT,
    ),
    EdgeScenario(
        name="Value conflicts",
        description="What if the people affected rank the relevant values differently?",
        failure_indicators=re.compile(r"\b(efficient|optimal|best|always)\b", re.I),
        severity=Severity.CRITICAL,
    ),
]

STRONG_COUNTER_THRESHOLD = 0.7
IMPORTANT_ASSUMPTION_THRESHOLD = 0.75


class StrongManningEngine(BaseStrongManner):
    """
    Produces a StrongMannedAnalysis for one viewpoint.

    Pipeline position:
    QueryRouter → ViewpointAnalyzer → [StrongManningEngine] → ArgumentSynthesizer
    """

    def __init__(
        self,
        min_fairness: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the engine.

        Args:
            min_fairness: Counters scoring below this are discarded.
                Defaults to config value.
            rng: Random source used to pick empirical challenge templates.
                Defaults to a generator seeded from config.
        """
        settings = get_settings()
        self.min_fairness = min_fairness if min_fairness is not None else settings.min_fairness
        self._rng = rng or random.Random(settings.random_seed)
        self._analysis_ids = itertools.count()

    async def strong_man_viewpoint(self, viewpoint: Viewpoint) -> StrongMannedAnalysis:
        """
        Build the strongest fair challenge to a viewpoint.

        Args:
            viewpoint: The viewpoint to challenge (may have no arguments)

        Returns:
            StrongMannedAnalysis with counters, assumptions, edge cases,
            probing questions and scores
        """
        counter_arguments = self._generate_counter_arguments(viewpoint)
        assumptions = self._identify_assumptions(viewpoint)
        edge_cases = self._explore_edge_cases(viewpoint)
        probing_questions = self._generate_probing_questions(assumptions, edge_cases)

        analysis = StrongMannedAnalysis(
            id=f"strongman-{next(self._analysis_ids)}-{viewpoint.id}",
            target_viewpoint=viewpoint,
            counter_arguments=counter_arguments,
            unexamined_assumptions=assumptions,
            edge_cases=edge_cases,
            probing_questions=probing_questions,
            overall_challenge_strength=self._challenge_strength(counter_arguments, assumptions, edge_cases),
            fairness_score=self._fairness(counter_arguments),
            timestamp=time.time(),
        )

        logger.info(
            f"Strong-manned {viewpoint.id}: {len(counter_arguments)} counters, "
            f"{len(assumptions)} assumptions, "
            f"{len(analysis.failing_critical_edge_cases)} critical failures"
        )
        return analysis

    # =========================================================================
    # COUNTERARGUMENTS
    # =========================================================================

    def _generate_counter_arguments(self, viewpoint: Viewpoint) -> list[CounterArgument]:
        candidates: list[tuple[Argument, CounterType, str, float]] = []

        for argument in viewpoint.arguments:
            statement = argument.statement

            for pattern, text, strength in FALLACY_DETECTORS:
                if pattern.search(statement):
                    candidates.append((argument, CounterType.LOGICAL_FALLACY, text, strength))
                    break

            if EMPIRICAL_TRIGGER.search(statement):
                text, strength = self._rng.choice(EMPIRICAL_CHALLENGES)
                candidates.append((argument, CounterType.EMPIRICAL_CHALLENGE, text, strength))

            if VALUE_KEYWORDS.search(statement):
                text, strength = VALUE_CHALLENGE
                candidates.append((argument, CounterType.VALUE_CONFLICT, text, strength))

        counters = []
        for argument, counter_type, text, strength in candidates:
            fairness = FAIRNESS_BY_TYPE[counter_type]
            if fairness < self.min_fairness:
                continue
            counters.append(CounterArgument(
                id=f"counter-{len(counters)}",
                statement=text,
                strength=strength,
                evidence=[],
                logical_form=argument.logical_form,
                target_statement=argument.statement,
                counter_type=counter_type,
                fairness_score=fairness,
                potential_response=POTENTIAL_RESPONSES[counter_type],
            ))

        dropped = len(candidates) - len(counters)
        if dropped:
            logger.debug(f"Dropped {dropped} counters below fairness {self.min_fairness}")
        return counters

    # =========================================================================
    # ASSUMPTIONS
    # =========================================================================

    def _identify_assumptions(self, viewpoint: Viewpoint) -> list[UnexaminedAssumption]:
        assumptions = list(UNIVERSAL_ASSUMPTIONS)

        for argument in viewpoint.arguments:
            statement = argument.statement
            if CAUSAL_LANGUAGE.search(statement):
                assumptions.append(UnexaminedAssumption(
                    assumption=f'The causal link in "{statement}" holds',
                    why_assumed="Causal reasoning takes the connection between cause and effect for granted",
                    challenge_statement="Is the relationship truly causal, or could other factors explain it?",
                    is_explicit=False,
                    importance=0.8,
                ))
            if UNIVERSAL_LANGUAGE.search(statement):
                assumptions.append(UnexaminedAssumption(
                    assumption=f'"{statement}" holds without exception',
                    why_assumed="Universal language generalizes from typical cases",
                    challenge_statement="Are there cases where this does not apply?",
                    is_explicit=True,
                    importance=0.75,
                ))
            if NECESSITY_LANGUAGE.search(statement):
                assumptions.append(UnexaminedAssumption(
                    assumption=f'There is no viable alternative to what "{statement}" requires',
                    why_assumed="Necessity claims close off alternatives without examining them",
                    challenge_statement="Are there other ways to reach the same goal?",
                    is_explicit=True,
                    importance=0.8,
                ))

        return sorted(assumptions, key=lambda a: a.importance, reverse=True)

    # =========================================================================
    # EDGE CASES
    # =========================================================================

    def _explore_edge_cases(self, viewpoint: Viewpoint) -> list[EdgeCase]:
        text = " ".join([viewpoint.position, *(a.statement for a in viewpoint.arguments)])
        edge_cases = []

        for scenario in EDGE_SCENARIOS:
            match = scenario.failure_indicators.search(text)
            holds = match is None
            if holds:
                reasoning = "Nothing in the position depends on the conditions this scenario removes"
            else:
                reasoning = (
                    f'The position relies on "{match.group(0)}", '
                    f"which does not survive {scenario.name.lower()}"
                )
            edge_cases.append(EdgeCase(
                scenario=scenario.name,
                description=scenario.description,
                would_original_position_hold=holds,
                reasoning=reasoning,
                severity=scenario.severity,
            ))

        return edge_cases

    # =========================================================================
    # PROBING QUESTIONS
    # =========================================================================

    def _generate_probing_questions(
        self,
        assumptions: list[UnexaminedAssumption],
        edge_cases: list[EdgeCase],
    ) -> list[ProbingQuestion]:
        questions = []

        for assumption in assumptions[:3]:
            questions.append(ProbingQuestion(
                question=f'What changes if "{assumption.assumption}" turns out to be false?',
                reasoning=assumption.challenge_statement,
                reveals_problem=assumption.importance > 0.7,
                difficulty=0.7,
            ))

        for edge_case in edge_cases:
            if edge_case.would_original_position_hold:
                continue
            questions.append(ProbingQuestion(
                question=f"How would the position handle this? {edge_case.description}",
                reasoning=edge_case.reasoning,
                reveals_problem=edge_case.severity == Severity.CRITICAL,
                difficulty=0.75,
            ))

        questions.append(ProbingQuestion(
            question="What evidence would change your mind about this position?",
            reasoning="A position that no evidence could overturn is not open to testing",
            reveals_problem=False,
            difficulty=0.85,
        ))
        questions.append(ProbingQuestion(
            question="What is the strongest case for the opposing view, stated in terms its supporters would accept?",
            reasoning="Engaging the best version of the opposition tests whether the position survives it",
            reveals_problem=False,
            difficulty=0.8,
        ))

        return questions

    # =========================================================================
    # SCORES
    # =========================================================================

    def _challenge_strength(
        self,
        counters: list[CounterArgument],
        assumptions: list[UnexaminedAssumption],
        edge_cases: list[EdgeCase],
    ) -> float:
        strong = sum(1 for c in counters if c.strength > STRONG_COUNTER_THRESHOLD)
        important = sum(1 for a in assumptions if a.importance > IMPORTANT_ASSUMPTION_THRESHOLD)
        critical_failing = sum(
            1 for e in edge_cases
            if e.severity == Severity.CRITICAL and not e.would_original_position_hold
        )

        strength = 0.3
        strength += min(0.3, strong / 5 * 0.3)
        strength += min(0.25, important / 4 * 0.25)
        strength += min(0.15, critical_failing / 2 * 0.15)
        return min(0.95, strength)

    def _fairness(self, counters: list[CounterArgument]) -> float:
        avg_fairness = sum(c.fairness_score for c in counters) / max(1, len(counters))
        has_response = any(c.potential_response for c in counters)
        return min(0.95, avg_fairness * 0.7 + 0.25 + (0.1 if has_response else 0.0))


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def strong_man_viewpoint(viewpoint: Viewpoint) -> StrongMannedAnalysis:
    """
    Convenience function to strong-man a single viewpoint.

    Example:
        analysis = await strong_man_viewpoint(viewpoint)
        for counter in analysis.counter_arguments:
            print(counter.counter_type, counter.statement)
    """
    engine = StrongManningEngine()
    return await engine.strong_man_viewpoint(viewpoint)
