"""
Query Router — Scores query complexity and picks an execution adapter.

WHAT THIS DOES:
Before any analysis runs, estimates how hard a question is and recommends
where it should be answered (local model, hybrid, or cloud).

HOW IT WORKS:
1. Score five factors from surface patterns (0-1 each)
2. Combine them with a static weighting table
3. Map the score to a recommendation (local < 0.4 <= hybrid < 0.7 <= cloud)
4. Apply caller preferences, pick adapter + fallback, estimate latency/cost

WHY A HEURISTIC:
Routing must never block the pipeline. It is a pure function of its inputs:
no model calls, no shared state, and empty input degrades to a neutral
low-complexity score instead of an error.

USAGE:
    router = QueryRouter()
    decision = await router.route_query(
        "Should renewable energy be prioritized?",
        context=["Solar is cheaper now", "Grid storage is improving"],
        prefer_cost=True,
    )
    # decision.adapter_id -> AdapterId.LOCAL
"""

import hashlib
import logging
import math
import re
from typing import Optional, Sequence

from app.services.argumentation.models import (
    AdapterId,
    ComplexityFactors,
    QueryComplexity,
    RoutingDecision,
    RoutingRecommendation,
)
from app.services.argumentation.protocols import BaseQueryRouter

logger = logging.getLogger(__name__)

FACTOR_WEIGHTS = {
    "semantic_depth": 0.2,
    "reasoning_steps": 0.3,
    "knowledge_breadth": 0.2,
    "ambiguity": 0.15,
    "context_dependency": 0.15,
}

LOCAL_MAX = 0.4
HYBRID_MAX = 0.7

# Returned for empty input so routing never blocks the pipeline
NEUTRAL_SCORE = 0.1

ABSTRACT_TERMS = [
    "concept", "theory", "philosophy", "meaning", "essence", "abstract",
    "algorithm", "architecture", "pattern", "principle",
]
TECHNICAL_TERMS = [
    "quantum", "neural", "algorithm", "api", "framework", "architecture",
    "protocol", "schema", "entropy", "regression",
]
VAGUE_TERMS = [
    "somehow", "something", "what do you think", "help me",
    "sort of", "kind of", "in some way",
]
QUESTION_WORDS = ["what", "when", "where", "why", "how", "who", "which"]

KNOWLEDGE_DOMAINS = {
    "technology": ["ai", "computer", "software", "algorithm", "data", "system", "code", "programming"],
    "science": ["quantum", "physics", "biology", "chemistry", "neuroscience", "psychology", "energy", "climate"],
    "philosophy": ["ethics", "morality", "meaning", "consciousness", "free will", "epistemology"],
    "business": ["market", "economy", "profit", "business", "strategy", "management", "cost"],
    "law": ["legal", "law", "rights", "justice", "regulation", "statute"],
    "history": ["history", "historical", "past", "century", "era", "period"],
    "politics": ["political", "government", "policy", "election", "party", "democracy"],
}

# (pattern, increment) pairs for multi-step reasoning
REASONING_PATTERNS = [
    (re.compile(r"\b(first|then|next|finally|after|before)\b", re.I), 0.15),
    (re.compile(r"\b(if|given|assuming|suppose)\b", re.I), 0.15),
    (re.compile(r"\b(versus|vs|compare|contrast|difference between|advantages?|disadvantages?)\b", re.I), 0.2),
    (re.compile(r"\b(why|cause|effect|because|result|consequence|lead to)\b", re.I), 0.15),
    (re.compile(r"\b(evaluate|assess|judge|criticize|analy[sz]e|determine|prioriti[sz]e)", re.I), 0.15),
]

BASE_LATENCY_MS = {
    AdapterId.LOCAL: 200,
    AdapterId.CLAUDE: 1500,
    AdapterId.GPT4: 2000,
    AdapterId.GEMINI: 1800,
    AdapterId.COHERE: 1600,
}

# API credits per 1000 characters of query
COST_PER_1K_CHARS = {
    AdapterId.LOCAL: 0.0,
    AdapterId.CLAUDE: 0.5,
    AdapterId.GPT4: 0.75,
    AdapterId.GEMINI: 0.3,
    AdapterId.COHERE: 0.2,
}

FALLBACKS = {
    AdapterId.LOCAL: AdapterId.CLAUDE,
    AdapterId.CLAUDE: AdapterId.GPT4,
    AdapterId.GPT4: AdapterId.LOCAL,
}


def _contains_term(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text) is not None


class QueryRouter(BaseQueryRouter):
    """
    Complexity-based router.

    Pipeline position:
    [QueryRouter] → ViewpointAnalyzer → StrongManningEngine → ArgumentSynthesizer
    """

    async def analyze_query_complexity(
        self,
        question: str,
        context: Sequence[str] = (),
    ) -> QueryComplexity:
        """
        Score a question's complexity.

        Args:
            question: The user's question
            context: Prior conversation turns (most recent last)

        Returns:
            QueryComplexity with score, factor breakdown and recommendation
        """
        question = (question or "").strip()
        context = [c for c in context if c and c.strip()]

        if not question and not context:
            return self._neutral_complexity()

        factors = ComplexityFactors(
            semantic_depth=self._semantic_depth(question),
            reasoning_steps=self._reasoning_steps(question),
            knowledge_breadth=self._knowledge_breadth(question),
            ambiguity=self._ambiguity(question),
            context_dependency=min(len(context) * 0.1, 1.0),
        )

        score = min(1.0, sum(
            getattr(factors, name) * weight for name, weight in FACTOR_WEIGHTS.items()
        ))
        recommendation = self._recommend(score)

        return QueryComplexity(
            score=score,
            factors=factors,
            recommendation=recommendation,
            confidence=self._confidence(factors),
            reasoning=self._complexity_reasoning(factors, recommendation),
            estimated_tokens=math.ceil(len(question) / 4),
        )

    async def route_query(
        self,
        question: str,
        context: Sequence[str] = (),
        prefer_cost: bool = False,
        prefer_quality: bool = False,
        user_preference: Optional[RoutingRecommendation] = None,
    ) -> RoutingDecision:
        """
        Decide which adapter should answer the question.

        Preferences are applied in order: explicit user preference,
        then cost focus (local below 0.6), then quality focus (cloud above 0.3).
        """
        complexity = await self.analyze_query_complexity(question, context)

        final = complexity.recommendation
        if user_preference is not None:
            final = user_preference
        elif prefer_cost:
            if complexity.score < 0.6:
                final = RoutingRecommendation.LOCAL
        elif prefer_quality:
            if complexity.score > 0.3:
                final = RoutingRecommendation.CLOUD

        adapter_id = self._select_adapter(final)
        question_length = len(question or "")

        decision = RoutingDecision(
            query_id=self._query_id(question, context),
            adapter_id=adapter_id,
            complexity=complexity,
            estimated_latency_ms=BASE_LATENCY_MS[adapter_id] + complexity.score * 2000,
            estimated_cost=(question_length / 1000) * COST_PER_1K_CHARS[adapter_id],
            fallback_adapter_id=FALLBACKS.get(adapter_id, AdapterId.CLAUDE),
            routing_reason=self._routing_reason(
                complexity, adapter_id, prefer_cost, prefer_quality, user_preference
            ),
            user_preference=user_preference,
        )

        logger.info(
            f"Routed query {decision.query_id} to {adapter_id.value} "
            f"(complexity {complexity.score:.2f}, {complexity.recommendation.value})"
        )
        return decision

    # =========================================================================
    # FACTORS
    # =========================================================================

    def _semantic_depth(self, question: str) -> float:
        lower = question.lower()
        depth = 0.0
        if any(_contains_term(lower, t) for t in ABSTRACT_TERMS):
            depth += 0.3
        # Longer questions tend to carry more nuance
        depth += min(len(question) / 500, 0.4)
        if any(_contains_term(lower, t) for t in TECHNICAL_TERMS):
            depth += 0.3
        return min(depth, 1.0)

    def _reasoning_steps(self, question: str) -> float:
        steps = 0.1
        for pattern, increment in REASONING_PATTERNS:
            if pattern.search(question):
                steps += increment
        return min(steps, 1.0)

    def _knowledge_breadth(self, question: str) -> float:
        lower = question.lower()
        domains_found = sum(
            1 for terms in KNOWLEDGE_DOMAINS.values()
            if any(_contains_term(lower, t) for t in terms)
        )
        return min(0.1 + min(domains_found * 0.15, 0.8), 1.0)

    def _ambiguity(self, question: str) -> float:
        lower = question.lower()
        ambiguity = 0.0
        if any(t in lower for t in VAGUE_TERMS):
            ambiguity += 0.3
        # Yes/no questions without a question word are open to interpretation
        if lower.endswith("?") and not any(lower.startswith(w) for w in QUESTION_WORDS):
            ambiguity += 0.2
        if question.count("?") > 1:
            ambiguity += 0.2
        if len(re.findall(r"\b(it|they|this|that)\b", lower)) > 2:
            ambiguity += 0.1
        return min(ambiguity, 1.0)

    # =========================================================================
    # DECISION HELPERS
    # =========================================================================

    def _recommend(self, score: float) -> RoutingRecommendation:
        if score < LOCAL_MAX:
            return RoutingRecommendation.LOCAL
        if score < HYBRID_MAX:
            return RoutingRecommendation.HYBRID
        return RoutingRecommendation.CLOUD

    def _confidence(self, factors: ComplexityFactors) -> float:
        """Higher when the factors agree with each other (low spread)."""
        values = factors.values()
        mean = sum(values) / len(values)
        std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
        return max(0.7 - std_dev * 0.5, 0.5)

    def _select_adapter(self, recommendation: RoutingRecommendation) -> AdapterId:
        # Hybrid starts locally and escalates through the fallback
        if recommendation == RoutingRecommendation.CLOUD:
            return AdapterId.CLAUDE
        return AdapterId.LOCAL

    def _neutral_complexity(self) -> QueryComplexity:
        factors = ComplexityFactors(
            semantic_depth=0.0,
            reasoning_steps=NEUTRAL_SCORE,
            knowledge_breadth=NEUTRAL_SCORE,
            ambiguity=0.0,
            context_dependency=0.0,
        )
        return QueryComplexity(
            score=NEUTRAL_SCORE,
            factors=factors,
            recommendation=RoutingRecommendation.LOCAL,
            confidence=0.5,
            reasoning="Routing to local due to: empty query",
            estimated_tokens=0,
        )

    def _query_id(self, question: str, context: Sequence[str]) -> str:
        digest = hashlib.sha1(
            "\x1f".join([question or "", *context]).encode("utf-8")
        ).hexdigest()
        return f"query-{digest[:12]}"

    def _complexity_reasoning(
        self,
        factors: ComplexityFactors,
        recommendation: RoutingRecommendation,
    ) -> str:
        reasons = []
        if factors.semantic_depth > 0.6:
            reasons.append("high semantic depth")
        if factors.reasoning_steps > 0.6:
            reasons.append("multiple reasoning steps required")
        if factors.knowledge_breadth > 0.6:
            reasons.append("cross-domain knowledge needed")
        if factors.ambiguity > 0.5:
            reasons.append("query contains ambiguity")
        if factors.context_dependency > 0.5:
            reasons.append("depends on conversation context")
        if not reasons:
            reasons.append("straightforward query")
        return f"Routing to {recommendation.value} due to: {', '.join(reasons)}"

    def _routing_reason(
        self,
        complexity: QueryComplexity,
        adapter_id: AdapterId,
        prefer_cost: bool,
        prefer_quality: bool,
        user_preference: Optional[RoutingRecommendation],
    ) -> str:
        reason = f"Complexity score: {complexity.score * 100:.1f}%. "
        if user_preference is not None:
            reason += f"User preference: {user_preference.value}. "
        if prefer_cost:
            reason += "Cost optimization enabled. "
        if prefer_quality:
            reason += "Quality preference enabled. "
        return reason + f"Routing to: {adapter_id.value}"


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def route_query(
    question: str,
    context: Sequence[str] = (),
    prefer_cost: bool = False,
) -> RoutingDecision:
    """
    Convenience function to route a single query.

    Example:
        decision = await route_query("What is the capital of France?")
    """
    router = QueryRouter()
    return await router.route_query(question, context, prefer_cost=prefer_cost)
