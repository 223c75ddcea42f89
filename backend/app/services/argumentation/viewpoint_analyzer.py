"""
Viewpoint Analyzer — Extracts the user's position and builds the opposing ones.

WHAT THIS DOES:
Reads the conversation, works out what the user is arguing, and constructs
the strongest plausible alternative framings of the same topic. Then maps
where those viewpoints agree (common ground) and where they collide
(key tensions).

HOW IT WORKS:
1. User position: user-authored sentences that read like claims become
   Arguments (logical form, strength, surface evidence tags)
2. Opposing viewpoints: up to N domain templates (practical/cost,
   ethical/values, economic/opportunity-cost), each with its own arguments.
   Templates reframe the topic; they never just negate the user's sentence
3. Common ground: overlapping statements plus implicit shared premises
4. Key tensions: per opposing viewpoint, tagged contradictory / factual /
   value / incompatible / prioritization
5. Topic clarity: is the topic well-defined, what is the core disagreement

EXAMPLE:
    User: "Renewable energy should be prioritized because solar is now cheaper."

    user_position.arguments[0].logical_form -> "causal"
    opposing_viewpoints -> practical/cost, ethical/values, economic/opportunity-cost
    key_tensions[0].nature -> "contradictory" (should vs should not)

USAGE:
    analyzer = ViewpointAnalyzer()
    analysis = await analyzer.analyze_conversation(history, "renewable energy")
"""

import itertools
import logging
import random
import re
import time
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from app.config import get_settings
from app.services.argumentation.models import (
    Argument,
    CommonGround,
    KeyTension,
    Stance,
    TensionNature,
    TensionPosition,
    TopicClarity,
    Viewpoint,
    ViewpointAnalysis,
)
from app.services.argumentation.protocols import BaseViewpointAnalyzer

logger = logging.getLogger(__name__)

SENTENCE_BOUNDARY = re.compile(r"[.!?\n]+")

ARGUMENT_INDICATORS = re.compile(
    r"\b(is|are|was|were|should|must|can|could|will|would|need|needs|because|"
    r"therefore|thus|as|if|when|makes?|causes?|better|worse)\b",
    re.I,
)
CONCRETE_LANGUAGE = re.compile(r"\d+|percent|specific|example|evidence", re.I)
ABSOLUTE_LANGUAGE = re.compile(r"\b(always|never|impossible|certainly|all|every|everything|nothing|only)\b", re.I)
LOGICAL_CONNECTORS = re.compile(r"\b(because|therefore|thus|consequently)\b", re.I)
EMPIRICAL_MARKERS = re.compile(r"\d+|percent|\b(study|studies|research|data|evidence|statistics)\b", re.I)

AFFIRMATIVE_NORMATIVE = re.compile(r"\b(should|must|ought to|need to|has to|have to)\b(?!\s+not)", re.I)
NEGATED_NORMATIVE = re.compile(r"\b(should not|shouldn't|must not|mustn't|ought not|need not|needn't)\b", re.I)

# Contradiction pairs checked across the two position texts
FACTUAL_PAIRS = [("true", "false"), ("yes", "no")]

TENSION_PRIORITY = {
    TensionNature.CONTRADICTORY: 4,
    TensionNature.FACTUAL: 3,
    TensionNature.INCOMPATIBLE: 2,
    TensionNature.PRIORITIZATION: 1,
    TensionNature.VALUE: 1,
}

SHARED_ASSUMPTIONS = [
    "All parties are seeking a constructive outcome",
    "The topic is worth discussing",
]


@dataclass(frozen=True)
class OpposingTemplate:
    """A domain framing used to construct one opposing viewpoint."""

    domain: str
    position: str
    arguments: tuple[tuple[str, float], ...]
    values_based: bool = False


# Ordered: the first N are used when max_opposing_viewpoints < len(...)
OPPOSING_TEMPLATES = (
    OpposingTemplate(
        domain="practical/cost",
        position=(
            'From a practical standpoint on "{topic}", the costs of implementation, '
            "the time a transition takes and the people who bear those costs may "
            "outweigh the benefits expected, so commitments should follow what "
            "can realistically be delivered."
        ),
        arguments=(
            ("Transition costs are often underestimated because plans assume ideal conditions", 0.72),
            ("A gradual approach can deliver most of the benefit with less disruption to those affected", 0.66),
            ("Implementation capacity is limited, so every commitment must be weighed against what can be delivered", 0.7),
        ),
    ),
    OpposingTemplate(
        domain="ethical/values",
        position=(
            'From an ethical perspective on "{topic}", values such as fairness, '
            "autonomy and who carries the burden may matter more than the outcome "
            "being prioritized, and the goal should not be pursued at any cost."
        ),
        arguments=(
            ("Decisions like this affect people who had no voice in making them, and that should count against imposing them", 0.7),
            ("Reasonable people weigh liberty, fairness and security differently, so no single ranking is beyond dispute", 0.64),
            ("Costs and benefits are rarely shared evenly, which makes the fairness of their distribution an important question in its own right", 0.71),
        ),
        values_based=True,
    ),
    OpposingTemplate(
        domain="economic/opportunity-cost",
        position=(
            'From an economic standpoint on "{topic}", the same resources could '
            "create more value elsewhere, so the opportunity cost of this priority "
            "has to be justified against the alternatives."
        ),
        arguments=(
            ("Every resource committed here is unavailable for competing priorities that have their own strong case", 0.7),
            ("Evidence from large public programs shows that cost overruns are common and often substantial", 0.74),
            ("If returns are uncertain, spreading investment across several options reduces the risk of a costly mistake", 0.66),
        ),
    ),
)


class ViewpointAnalyzer(BaseViewpointAnalyzer):
    """
    Builds a ViewpointAnalysis from conversation history.

    Pipeline position:
    QueryRouter → [ViewpointAnalyzer] → StrongManningEngine → ArgumentSynthesizer
    """

    def __init__(
        self,
        max_opposing_viewpoints: Optional[int] = None,
        score_jitter: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            max_opposing_viewpoints: Upper bound on generated opposing views.
                Defaults to config value.
            score_jitter: +/- range added to generated argument strengths.
                Defaults to config value (0.0 = deterministic).
            rng: Random source for the jitter. Defaults to a generator seeded
                from config.
        """
        settings = get_settings()
        limit = (
            max_opposing_viewpoints
            if max_opposing_viewpoints is not None
            else settings.max_opposing_viewpoints
        )
        self.max_opposing_viewpoints = max(0, min(limit, len(OPPOSING_TEMPLATES)))
        self.score_jitter = score_jitter if score_jitter is not None else settings.score_jitter
        self._rng = rng or random.Random(settings.random_seed)
        self._viewpoint_ids = itertools.count()
        self._analysis_ids = itertools.count()

    async def analyze_conversation(
        self,
        conversation_history: Sequence[Mapping[str, str]],
        topic: str,
    ) -> ViewpointAnalysis:
        """
        Analyze a conversation into viewpoints, common ground and tensions.

        Args:
            conversation_history: [{role, content}, ...] in chronological order
            topic: Short description of what is being discussed

        Returns:
            ViewpointAnalysis (never raises on empty history)
        """
        user_turns = [
            turn.get("content", "") for turn in conversation_history
            if turn.get("role") == "user" and turn.get("content", "").strip()
        ]

        user_position = self._extract_user_position(conversation_history, user_turns, topic)

        # Nothing to oppose without a stated position
        opposing = self._generate_opposing_viewpoints(topic) if user_turns else []

        common_ground = self._find_common_ground(user_position, opposing)
        key_tensions = self._detect_key_tensions(user_position, opposing)
        topic_clarities = self._analyze_topic_clarity(topic, user_position, opposing, key_tensions)
        analysis_confidence = self._analysis_confidence(
            user_position, opposing, common_ground, key_tensions, has_user_turns=bool(user_turns)
        )

        analysis = ViewpointAnalysis(
            id=f"analysis-{next(self._analysis_ids)}-{uuid.uuid4().hex[:8]}",
            topic=topic,
            conversation_turns=len(conversation_history),
            user_position=user_position,
            opposing_viewpoints=opposing,
            common_ground=common_ground,
            key_tensions=key_tensions,
            topic_clarities=topic_clarities,
            analysis_confidence=analysis_confidence,
            timestamp=time.time(),
        )

        logger.info(
            f"Viewpoint analysis {analysis.id}: {len(user_position.arguments)} user arguments, "
            f"{len(opposing)} opposing viewpoints, {len(key_tensions)} tensions, "
            f"confidence {analysis_confidence:.2f}"
        )
        return analysis

    # =========================================================================
    # USER POSITION
    # =========================================================================

    def _extract_user_position(
        self,
        conversation_history: Sequence[Mapping[str, str]],
        user_turns: list[str],
        topic: str,
    ) -> Viewpoint:
        viewpoint_id = self._next_viewpoint_id()

        if not user_turns:
            return Viewpoint(
                id=viewpoint_id,
                position=f"Exploring the topic of {topic}" if topic else "Exploring an open question",
                stance=Stance.USER,
                arguments=[],
                confidence=0.3,
            )

        text = "\n".join(user_turns)
        arguments = self._extract_arguments(text)
        confidence = min(0.95, 0.5 + len(arguments) * 0.1 + (len(user_turns) - 1) * 0.05)

        return Viewpoint(
            id=viewpoint_id,
            position=self._synthesize_position(text, topic),
            stance=Stance.USER,
            arguments=arguments,
            confidence=confidence,
            sources=[
                f"turn-{i}" for i, turn in enumerate(conversation_history)
                if turn.get("role") == "user"
            ],
        )

    def _extract_arguments(self, text: str) -> list[Argument]:
        arguments = []
        for sentence in _split_sentences(text, min_length=10):
            if not ARGUMENT_INDICATORS.search(sentence):
                continue
            arguments.append(Argument(
                id=f"arg-{len(arguments)}",
                statement=sentence,
                strength=_score_argument_strength(sentence),
                evidence=_extract_evidence(sentence),
                logical_form=_logical_form(sentence),
            ))
        return arguments

    def _synthesize_position(self, text: str, topic: str) -> str:
        sentences = _split_sentences(text, min_length=15)[:3]
        if not sentences:
            return f"User's perspective on {topic}"
        main_point = max(sentences, key=len)
        return f"The user's position is that: {main_point}"

    # =========================================================================
    # OPPOSING VIEWPOINTS
    # =========================================================================

    def _generate_opposing_viewpoints(self, topic: str) -> list[Viewpoint]:
        viewpoints = []
        for template in OPPOSING_TEMPLATES[:self.max_opposing_viewpoints]:
            position = template.position.format(topic=topic or "this question")
            arguments = [
                Argument(
                    id=f"arg-{i}",
                    statement=statement,
                    strength=self._jitter(strength),
                    evidence=_extract_evidence(statement),
                    logical_form=_logical_form(statement),
                )
                for i, (statement, strength) in enumerate(template.arguments)
            ]
            strong = sum(1 for a in arguments if a.strength > 0.6)
            viewpoints.append(Viewpoint(
                id=self._next_viewpoint_id(),
                position=position,
                stance=Stance.OPPOSING,
                arguments=arguments,
                confidence=min(0.9, 0.4 + strong * 0.15),
                domain=template.domain,
                sources=[template.domain],
            ))
        return viewpoints

    def _jitter(self, strength: float) -> float:
        if self.score_jitter <= 0:
            return strength
        value = strength + self._rng.uniform(-self.score_jitter, self.score_jitter)
        return max(0.0, min(1.0, value))

    # =========================================================================
    # COMMON GROUND
    # =========================================================================

    def _find_common_ground(
        self,
        user_position: Viewpoint,
        opposing: list[Viewpoint],
    ) -> list[CommonGround]:
        if not opposing:
            return []

        user_statements = [a.statement.lower() for a in user_position.arguments]
        found: dict[str, CommonGround] = {}

        for viewpoint in opposing:
            for argument in viewpoint.arguments:
                key = argument.statement.lower()
                if not _is_similar(key, user_statements):
                    continue
                existing = found.get(key)
                if existing is None:
                    found[key] = CommonGround(
                        statement=argument.statement,
                        agreement=[user_position.id, viewpoint.id],
                        strength=min(argument.strength, 0.85),
                    )
                elif viewpoint.id not in existing.agreement:
                    existing.agreement.append(viewpoint.id)

        everyone = [user_position.id, *(v.id for v in opposing)]
        common = list(found.values()) + [
            CommonGround(
                statement="The topic is significant and deserves careful consideration",
                agreement=list(everyone),
                strength=0.8,
            ),
            CommonGround(
                statement="Multiple valid perspectives exist on this issue",
                agreement=list(everyone),
                strength=0.7,
            ),
        ]
        return sorted(common, key=lambda cg: cg.strength, reverse=True)

    # =========================================================================
    # KEY TENSIONS
    # =========================================================================

    def _detect_key_tensions(
        self,
        user_position: Viewpoint,
        opposing: list[Viewpoint],
    ) -> list[KeyTension]:
        tensions = []
        user_text = " ".join([user_position.position, *(a.statement for a in user_position.arguments)])
        user_is_empirical = bool(EMPIRICAL_MARKERS.search(user_text))
        user_is_absolute = bool(ABSOLUTE_LANGUAGE.search(user_text))

        for viewpoint in opposing:
            opposing_text = " ".join([viewpoint.position, *(a.statement for a in viewpoint.arguments)])
            template = _template_for(viewpoint.domain)
            found: list[tuple[str, TensionNature, str]] = []

            if _normative_clash(user_position.position, viewpoint.position):
                found.append((
                    "Course of action",
                    TensionNature.CONTRADICTORY,
                    "The viewpoints take opposite positions on what should be done",
                ))

            if _factual_clash(user_position.position, viewpoint.position) or (
                user_is_empirical and EMPIRICAL_MARKERS.search(opposing_text)
            ):
                found.append((
                    "What the evidence shows",
                    TensionNature.FACTUAL,
                    "The viewpoints read the available evidence differently; better data could narrow this gap",
                ))

            if template is not None and template.values_based:
                found.append((
                    "Which values should take precedence",
                    TensionNature.VALUE,
                    "The viewpoints rest on different values, and evidence alone cannot settle which should win",
                ))

            if user_is_absolute:
                found.append((
                    f"Absolute claims versus {viewpoint.domain} exceptions",
                    TensionNature.INCOMPATIBLE,
                    "The user's position admits no exceptions, while this view depends on weighing them case by case",
                ))

            if user_position.arguments and viewpoint.arguments:
                found.append((
                    f"Different priorities between {viewpoint.domain} and "
                    f"{user_position.domain or 'the user'}'s considerations",
                    TensionNature.PRIORITIZATION,
                    "Different domains prioritize different values and constraints",
                ))

            for topic, nature, explanation in found:
                tensions.append(KeyTension(
                    id=f"tension-{len(tensions)}",
                    topic=topic,
                    position1=TensionPosition(user_position.id, user_position.position),
                    position2=TensionPosition(viewpoint.id, viewpoint.position),
                    nature=nature,
                    explanation=explanation,
                ))

        # Stable sort keeps per-viewpoint order within the same priority
        return sorted(tensions, key=lambda t: TENSION_PRIORITY[t.nature], reverse=True)

    # =========================================================================
    # CLARITY + CONFIDENCE
    # =========================================================================

    def _analyze_topic_clarity(
        self,
        topic: str,
        user_position: Viewpoint,
        opposing: list[Viewpoint],
        key_tensions: list[KeyTension],
    ) -> TopicClarity:
        well_defined = bool(user_position.arguments) and all(v.arguments for v in opposing)
        core_disagreement = (
            f"Core disagreement: {key_tensions[0].topic}" if key_tensions else f"Topic: {topic}"
        )

        shared = list(SHARED_ASSUMPTIONS)
        if any(a.evidence for a in user_position.arguments):
            shared.append("Evidence is relevant to settling the factual parts of the question")

        return TopicClarity(
            well_defined=well_defined,
            core_disagreement=core_disagreement,
            shared_assumptions=shared,
        )

    def _analysis_confidence(
        self,
        user_position: Viewpoint,
        opposing: list[Viewpoint],
        common_ground: list[CommonGround],
        key_tensions: list[KeyTension],
        has_user_turns: bool,
    ) -> float:
        confidence = 0.6 if has_user_turns else 0.3
        confidence += min(0.1, user_position.confidence * 0.1)
        confident_opposing = sum(1 for v in opposing if v.confidence > 0.5)
        confidence += min(0.15, confident_opposing / 3 * 0.15)
        confidence += min(0.1, len(common_ground) / 5 * 0.1)
        contradictions = sum(1 for t in key_tensions if t.nature == TensionNature.CONTRADICTORY)
        confidence += min(0.1, contradictions / 3 * 0.1)
        return min(0.95, confidence)

    def _next_viewpoint_id(self) -> str:
        return f"viewpoint-{next(self._viewpoint_ids)}"


# =============================================================================
# TEXT HELPERS
# =============================================================================

def _split_sentences(text: str, min_length: int) -> list[str]:
    return [
        s.strip() for s in SENTENCE_BOUNDARY.split(text)
        if len(s.strip()) > min_length
    ]


def _score_argument_strength(statement: str) -> float:
    strength = 0.5
    if CONCRETE_LANGUAGE.search(statement):
        strength += 0.2
    if ABSOLUTE_LANGUAGE.search(statement):
        strength -= 0.15
    if LOGICAL_CONNECTORS.search(statement):
        strength += 0.1
    return max(0.2, min(1.0, strength))


def _logical_form(statement: str) -> str:
    lower = statement.lower()
    if re.search(r"\bif\b", lower):
        return "conditional"
    if re.search(r"\b(because|therefore|so that|hence)\b", lower):
        return "causal"
    if re.search(r"\b(either|or)\b", lower):
        return "disjunctive"
    return "categorical"


def _extract_evidence(statement: str) -> list[str]:
    evidence = []
    number = re.search(r"\d+", statement)
    if number:
        evidence.append(f"numerical: {number.group(0)}")
    if re.search(r"\b(study|studies|research|found|showed|shows|demonstrated|evidence)\b", statement, re.I):
        evidence.append("empirical")
    if re.search(r"\b(expert|experts|authority|source|according)\b", statement, re.I):
        evidence.append("authority-based")
    return evidence


def _is_similar(target: str, candidates: list[str]) -> bool:
    """Substring match or more than half of the candidate's words shared."""
    target_words = set(target.split())
    for candidate in candidates:
        if target in candidate or candidate in target:
            return True
        candidate_words = candidate.split()
        if not candidate_words:
            continue
        matches = sum(1 for w in candidate_words if w in target_words)
        if matches / len(candidate_words) > 0.5:
            return True
    return False


def _normative_clash(first: str, second: str) -> bool:
    first_affirms = bool(AFFIRMATIVE_NORMATIVE.search(first))
    first_negates = bool(NEGATED_NORMATIVE.search(first))
    second_affirms = bool(AFFIRMATIVE_NORMATIVE.search(second))
    second_negates = bool(NEGATED_NORMATIVE.search(second))
    return (first_affirms and second_negates) or (first_negates and second_affirms)


def _factual_clash(first: str, second: str) -> bool:
    first, second = first.lower(), second.lower()
    for a, b in FACTUAL_PAIRS:
        a_pattern, b_pattern = rf"\b{a}\b", rf"\b{b}\b"
        if (re.search(a_pattern, first) and re.search(b_pattern, second)) or (
            re.search(b_pattern, first) and re.search(a_pattern, second)
        ):
            return True
    return False


def _template_for(domain: Optional[str]) -> Optional[OpposingTemplate]:
    for template in OPPOSING_TEMPLATES:
        if template.domain == domain:
            return template
    return None


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def analyze_conversation(
    conversation_history: Sequence[Mapping[str, str]],
    topic: str,
) -> ViewpointAnalysis:
    """
    Convenience function to analyze a conversation.

    Example:
        analysis = await analyze_conversation(history, "remote work")
    """
    analyzer = ViewpointAnalyzer()
    return await analyzer.analyze_conversation(conversation_history, topic)
