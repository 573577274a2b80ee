"""Core data models for AgentAssay."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

TASK_STATUSES = ("pending", "running", "completed", "failed", "cancelled")
DATASET_TYPES = ("accuracy", "robustness", "tool_calling", "performance", "security", "rag")
CASE_TYPES = ("single_turn", "multi_turn", "tool_call", "rag_query")
DIMENSIONS = (
    "accuracy", "consistency", "robustness", "tool_calling",
    "performance", "security", "rag",
)


@dataclass
class Project:
    """An owning project (tenant)."""
    id: int
    name: str
    description: str = ""
    baseline_agent_id: Optional[int] = None


@dataclass
class ModelPricing:
    """Per-model token pricing, in minor currency units per million tokens."""
    id: int
    project_id: int
    model_id: str
    model_name: str
    input_price_per_million: int
    output_price_per_million: int
    currency: str = "CNY"


@dataclass
class Agent:
    """A registered agent reachable through a platform adapter."""
    id: int
    project_id: int
    name: str
    type: str
    version: str = "1"
    api_endpoint: str = ""
    encrypted_api_key: Optional[str] = None
    model_params: Dict[str, Any] = field(default_factory=dict)
    config_snapshot: Dict[str, Any] = field(default_factory=dict)
    is_baseline: bool = False
    status: str = "active"

    @property
    def model_id(self) -> Optional[str]:
        return self.model_params.get("model_id") if self.model_params else None


@dataclass
class Dataset:
    """A versioned collection of test cases."""
    id: int
    project_id: int
    name: str
    type: str
    version: str = "1"
    description: str = ""
    case_count: int = 0


@dataclass
class TestCase:
    """A single immutable evaluation input."""
    __test__ = False

    id: int
    dataset_id: int
    input: str
    expected_output: Optional[str] = None
    context: Optional[List[Dict[str, str]]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    case_type: str = "single_turn"


@dataclass
class BaselineComparisonConfig:
    enabled: bool = False
    baseline_task_id: Optional[int] = None
    alert_threshold: Optional[float] = 2.0
    baseline_agent_id: Optional[int] = None


@dataclass
class CostCalculationConfig:
    enabled: bool = False
    profit_margin: float = 0.3


@dataclass
class EvalConfig:
    """Per-task evaluation configuration."""
    dimensions: List[str] = field(default_factory=lambda: ["accuracy"])
    concurrency: int = 1
    timeout: float = 120.0
    save_trace: bool = True
    baseline_comparison: Optional[BaselineComparisonConfig] = None
    cost_calculation: Optional[CostCalculationConfig] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EvalConfig":
        data = dict(data or {})
        unknown = [d for d in data.get("dimensions", []) if d not in DIMENSIONS]
        if unknown:
            raise ValueError(
                f"Unknown dimension(s): {unknown!r}. Valid: {', '.join(DIMENSIONS)}"
            )
        baseline = data.pop("baseline_comparison", None)
        cost = data.pop("cost_calculation", None)
        config = cls(**data)
        if baseline is not None:
            config.baseline_comparison = BaselineComparisonConfig(**baseline)
        if cost is not None:
            config.cost_calculation = CostCalculationConfig(**cost)
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EvalTask:
    """One evaluation run over a set of agents and datasets."""
    id: int
    project_id: int
    name: str
    agent_ids: List[int]
    dataset_ids: List[int]
    config: EvalConfig = field(default_factory=EvalConfig)
    status: str = "pending"
    progress: int = 0
    description: str = ""
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


# ── Adapter wire types ──────────────────────────────────────────────────


@dataclass
class AgentRequest:
    input: str
    context: Optional[List[Dict[str, str]]] = None
    stream: bool = False


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ToolCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None
    latency_ms: Optional[int] = None


@dataclass
class RetrievalResult:
    content: str
    score: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IntermediateStep:
    type: str
    content: str
    timestamp: float = 0


@dataclass
class AgentResponse:
    """Uniform response returned by every platform adapter."""
    output: str
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: int = 0
    tool_calls: Optional[List[ToolCall]] = None
    retrieval_results: Optional[List[RetrievalResult]] = None
    intermediate_steps: Optional[List[IntermediateStep]] = None
    raw_response: Any = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, latency_ms: int = 0, raw_response: Any = None) -> "AgentResponse":
        """Response for an upstream failure: empty output, zero usage."""
        return cls(output="", latency_ms=latency_ms, error=error, raw_response=raw_response)


# ── Evaluation records ──────────────────────────────────────────────────


@dataclass
class EvalScores:
    """Per-dimension scores for one case, each in [0, 100]."""
    passed: bool = False
    accuracy: int = 0
    consistency: int = 0
    robustness: int = 0
    tool_calling_accuracy: int = 0
    tool_calling_efficiency: int = 0
    security_score: int = 100
    faithfulness: int = 0
    answer_relevancy: int = 0
    context_recall: int = 0
    context_precision: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EvalResult:
    """Outcome of one (task, agent, dataset, case) execution."""
    id: int
    task_id: int
    agent_id: int
    dataset_id: int
    test_case_id: int
    actual_output: str
    passed: bool
    scores: EvalScores
    latency_ms: int
    token_usage: TokenUsage
    cost_cents: int
    error_message: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Trace:
    """Full execution record for one result."""
    id: int
    result_id: int
    trace_data: Dict[str, Any]
    input: str = ""
    context: Optional[List[Dict[str, str]]] = None
    retrieval_results: Optional[List[Dict[str, Any]]] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None
    model_output: str = ""
    intermediate_steps: Optional[List[Dict[str, Any]]] = None
    error_stack: Optional[str] = None
    retry_count: int = 0


@dataclass
class EvalMetric:
    """Aggregated statistics for one agent within one task."""
    id: int
    task_id: int
    agent_id: int
    accuracy: int = 0
    consistency: int = 0
    robustness: int = 0
    tool_calling_accuracy: int = 0
    tool_calling_efficiency: int = 0
    latency_p50: int = 0
    latency_p95: int = 0
    throughput: int = 0
    avg_token_cost: int = 0
    security_score: int = 0
    faithfulness: int = 0
    answer_relevancy: int = 0
    context_recall: int = 0
    context_precision: int = 0
    overall_score: int = 0
    baseline_diff: float = 0.0
    has_alert: bool = False
    alert_message: str = ""


@dataclass
class CostStat:
    """Per-agent cost totals for one task."""
    id: int
    task_id: int
    agent_id: int
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_cents: int = 0
    avg_cost_per_call: int = 0
    suggested_price: int = 0
