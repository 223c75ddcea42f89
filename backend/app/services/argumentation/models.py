"""
Argumentation Models — Data structures for the argumentation pipeline.

These dataclasses define the contract between pipeline stages:
- Routing:            ComplexityFactors, QueryComplexity, RoutingDecision
- Viewpoint Analyzer: Argument, Viewpoint, CommonGround, KeyTension, ViewpointAnalysis
- Strong-Manning:     CounterArgument, UnexaminedAssumption, EdgeCase,
                      ProbingQuestion, StrongMannedAnalysis
- Synthesizer:        TradeOff, Perspective, RecommendedApproach, SynthesizedAnswer
- Orchestrator:       PipelineProgress, PipelineQuality, PipelineTiming,
                      PipelineResult, PipelineMetrics

Records produced by one stage are read-only for the stages after it, so the
ones that cross stage boundaries are frozen.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# =============================================================================
# ENUMS
# =============================================================================

class Stance(str, Enum):
    USER = "user"
    OPPOSING = "opposing"


class TensionNature(str, Enum):
    CONTRADICTORY = "contradictory"
    FACTUAL = "factual"
    VALUE = "value"
    INCOMPATIBLE = "incompatible"
    PRIORITIZATION = "prioritization"


class CounterType(str, Enum):
    LOGICAL_FALLACY = "logical-fallacy"
    EMPIRICAL_CHALLENGE = "empirical-challenge"
    VALUE_CONFLICT = "value-conflict"
    ASSUMPTION_CHALLENGE = "assumption-challenge"
    EDGE_CASE = "edge-case"
    PRACTICAL_PROBLEM = "practical-problem"


class Severity(str, Enum):
    CRITICAL = "critical"
    SIGNIFICANT = "significant"
    MINOR = "minor"


class RoutingRecommendation(str, Enum):
    LOCAL = "local"
    HYBRID = "hybrid"
    CLOUD = "cloud"


class AdapterId(str, Enum):
    LOCAL = "local"
    CLAUDE = "claude"
    GPT4 = "gpt4"
    GEMINI = "gemini"
    COHERE = "cohere"


class PipelineStage(str, Enum):
    ROUTING = "routing"
    VIEWPOINT_ANALYSIS = "viewpoint-analysis"
    STRONG_MANNING = "strong-manning"
    SYNTHESIS = "synthesis"
    COMPLETE = "complete"


# =============================================================================
# ROUTING
# =============================================================================

@dataclass(frozen=True)
class ComplexityFactors:
    """Individual complexity signals, each in [0, 1]."""

    semantic_depth: float
    reasoning_steps: float
    knowledge_breadth: float
    ambiguity: float
    context_dependency: float

    def values(self) -> list[float]:
        return [
            self.semantic_depth,
            self.reasoning_steps,
            self.knowledge_breadth,
            self.ambiguity,
            self.context_dependency,
        ]


@dataclass(frozen=True)
class QueryComplexity:
    score: float
    """Overall weighted complexity (0.0 to 1.0)"""

    factors: ComplexityFactors
    recommendation: RoutingRecommendation

    confidence: float
    """Confidence in the recommendation (higher when factors agree)"""

    reasoning: str
    estimated_tokens: int = 0


@dataclass(frozen=True)
class RoutingDecision:
    query_id: str
    adapter_id: AdapterId
    complexity: QueryComplexity
    estimated_latency_ms: float
    estimated_cost: float
    fallback_adapter_id: AdapterId
    routing_reason: str
    user_preference: Optional[RoutingRecommendation] = None


# =============================================================================
# VIEWPOINT ANALYSIS
# =============================================================================

@dataclass(frozen=True, kw_only=True)
class Argument:
    """An atomic claim supporting a viewpoint."""

    id: str
    statement: str

    strength: float
    """Logical rigor of the claim (0.0 to 1.0)"""

    evidence: list[str] = field(default_factory=list)
    logical_form: Optional[str] = None


@dataclass(frozen=True)
class Viewpoint:
    """One distinct stance on the topic, with its supporting arguments."""

    id: str
    position: str
    stance: Stance
    arguments: list[Argument]

    confidence: float
    """How well-supported this viewpoint is (0.0 to 1.0)"""

    domain: Optional[str] = None
    """Framing the viewpoint argues from (e.g. 'practical/cost')"""

    sources: list[str] = field(default_factory=list)
    """Conversation turns or templates the viewpoint was built from"""


@dataclass(frozen=True)
class CommonGround:
    statement: str
    agreement: list[str]
    """Viewpoint ids that endorse the statement"""

    strength: float


@dataclass(frozen=True)
class TensionPosition:
    viewpoint_id: str
    stance: str


@dataclass(frozen=True)
class KeyTension:
    id: str
    topic: str
    position1: TensionPosition
    position2: TensionPosition
    nature: TensionNature
    explanation: str


@dataclass(frozen=True)
class TopicClarity:
    well_defined: bool
    core_disagreement: str
    shared_assumptions: list[str]


@dataclass(frozen=True)
class ViewpointAnalysis:
    id: str
    topic: str
    conversation_turns: int
    user_position: Viewpoint
    opposing_viewpoints: list[Viewpoint]
    common_ground: list[CommonGround]
    key_tensions: list[KeyTension]
    topic_clarities: TopicClarity
    analysis_confidence: float
    timestamp: float

    @property
    def all_viewpoints(self) -> list[Viewpoint]:
        """User position first, then every opposing viewpoint."""
        return [self.user_position, *self.opposing_viewpoints]


# =============================================================================
# STRONG-MANNING
# =============================================================================

@dataclass(frozen=True, kw_only=True)
class CounterArgument(Argument):
    """
    The strongest fair objection to one argument.

    Always carries the statement it challenges and, when available, the
    rebuttal the original arguer could make.
    """

    target_statement: str
    counter_type: CounterType
    fairness_score: float
    potential_response: Optional[str] = None


@dataclass(frozen=True)
class UnexaminedAssumption:
    assumption: str
    why_assumed: str
    challenge_statement: str
    is_explicit: bool
    importance: float


@dataclass(frozen=True)
class EdgeCase:
    scenario: str
    description: str
    would_original_position_hold: bool
    reasoning: str
    severity: Severity


@dataclass(frozen=True)
class ProbingQuestion:
    question: str
    reasoning: str
    reveals_problem: bool
    difficulty: float


@dataclass(frozen=True)
class StrongMannedAnalysis:
    id: str
    target_viewpoint: Viewpoint
    counter_arguments: list[CounterArgument]
    unexamined_assumptions: list[UnexaminedAssumption]
    edge_cases: list[EdgeCase]
    probing_questions: list[ProbingQuestion]

    overall_challenge_strength: float
    """Combined strength of the challenge (0.0 to 0.95)"""

    fairness_score: float
    """How charitably the opposition was represented (0.0 to 0.95)"""

    timestamp: float

    @property
    def failing_critical_edge_cases(self) -> list[EdgeCase]:
        return [
            e for e in self.edge_cases
            if e.severity == Severity.CRITICAL and not e.would_original_position_hold
        ]


# =============================================================================
# SYNTHESIS
# =============================================================================

@dataclass(frozen=True)
class TradeOffDimension:
    name: str
    description: str
    viewpoint_ids: list[str]
    priority: float


@dataclass(frozen=True)
class TradeOff:
    id: str
    tension_id: str
    dimension1: TradeOffDimension
    dimension2: TradeOffDimension
    mutually_exclusive: bool
    context_that_matters: str
    recommendation: str


@dataclass(frozen=True)
class Perspective:
    viewpoint_id: str
    title: str
    description: str
    applicable_when: str
    strengths: list[str]
    weaknesses: list[str]
    implications: list[str] = field(default_factory=list)

    @property
    def depth(self) -> int:
        """How much substance this perspective carries."""
        return len(self.strengths) + len(self.weaknesses)


@dataclass(frozen=True)
class ContextualRecommendation:
    context: str
    recommendation: str
    reasoning: str


@dataclass(frozen=True)
class RecommendedApproach:
    primary: str
    alternatives: list[str]
    caveats: list[str]
    assumptions: list[str]


@dataclass(frozen=True)
class SynthesizedAnswer:
    id: str
    original_question: str
    direct_answer: str
    nuanced_explanation: str
    trade_offs: list[TradeOff]
    perspectives: list[Perspective]
    common_ground: list[str]
    contextual_recommendations: list[ContextualRecommendation]
    recommended_approach: RecommendedApproach
    unresolvable_disagreements: list[str]

    synthesis_quality: float
    """How well all viewpoints were integrated (0.0 to 0.95)"""

    representativeness: float
    """How evenly the user and opposing views were treated (0.0 to 0.95)"""

    timestamp: float


# =============================================================================
# ORCHESTRATION
# =============================================================================

@dataclass(frozen=True)
class PipelineProgress:
    stage: PipelineStage
    progress: float
    status_message: str
    timestamp: float
    elapsed_ms: float


@dataclass(frozen=True)
class PipelineQuality:
    routing_confidence: float
    analysis_confidence: float
    synthesis_quality: float
    overall_quality: float


@dataclass(frozen=True)
class PipelineTiming:
    total_ms: float
    routing_ms: float
    analysis_ms: float
    strong_manning_ms: float
    synthesis_ms: float

    def slowest_stage(self) -> PipelineStage:
        durations = {
            PipelineStage.ROUTING: self.routing_ms,
            PipelineStage.VIEWPOINT_ANALYSIS: self.analysis_ms,
            PipelineStage.STRONG_MANNING: self.strong_manning_ms,
            PipelineStage.SYNTHESIS: self.synthesis_ms,
        }
        return max(durations, key=durations.get)


@dataclass(frozen=True)
class PipelineResult:
    """
    Final result of one pipeline run.

    Contains the synthesized answer plus every intermediate analysis
    and the full progress log.
    """

    id: str
    question: str
    conversation_history: list[dict[str, str]]
    routing_decision: RoutingDecision
    viewpoint_analysis: ViewpointAnalysis

    strong_manned_analyses: dict[str, StrongMannedAnalysis]
    """Strong-man analysis per viewpoint id"""

    synthesized_answer: SynthesizedAnswer
    progress_log: list[PipelineProgress]
    quality: PipelineQuality
    timing: PipelineTiming
    timestamp: float

    @property
    def missing_viewpoint_ids(self) -> list[str]:
        """Viewpoints whose strong-manning failed and were left out."""
        return [
            v.id for v in self.viewpoint_analysis.all_viewpoints
            if v.id not in self.strong_manned_analyses
        ]


@dataclass(frozen=True)
class PipelineMetrics:
    total_pipelines: int
    avg_quality: float
    avg_total_time_ms: float
    most_common_stage: PipelineStage
