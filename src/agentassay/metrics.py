"""Per-agent metric aggregation.

A ``MetricsAccumulator`` is owned by one agent's sequential case loop inside a
single task. It is never shared across tasks and never persisted; only its
summary is.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence

from agentassay.models import AgentResponse, EvalResult, EvalScores

SCORE_FIELDS = (
    "accuracy", "consistency", "robustness", "tool_calling_accuracy",
    "tool_calling_efficiency", "security_score", "faithfulness",
    "answer_relevancy", "context_recall", "context_precision",
)

OVERALL_WEIGHTS: Dict[str, float] = {
    "accuracy": 0.30,
    "security_score": 0.20,
    "tool_calling_accuracy": 0.15,
    "faithfulness": 0.15,
    "answer_relevancy": 0.10,
    "robustness": 0.10,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: ``sorted[ceil(p/100 * n) - 1]``.

    Returns 0 for an empty sequence.
    """
    if not values:
        return 0
    ordered = sorted(values)
    index = max(0, math.ceil(p / 100 * len(ordered)) - 1)
    return ordered[index]


def calculate_accuracy(results: Sequence[EvalResult]) -> float:
    """Percentage of passed results; 0 for no results."""
    if not results:
        return 0.0
    passed = sum(1 for r in results if r.passed)
    return passed / len(results) * 100


@dataclass
class MetricsSummary:
    """Aggregated statistics over one agent's accumulated cases."""
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


@dataclass
class CostStats:
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_cents: int = 0
    avg_cost_per_call: int = 0


class MetricsAccumulator:
    """Streaming aggregator of per-case scores, latency, tokens and cost."""

    def __init__(self) -> None:
        self.scores: List[EvalScores] = []
        self.latencies: List[int] = []
        self.token_counts: List[int] = []
        self.costs: List[int] = []
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    def __len__(self) -> int:
        return len(self.scores)

    def add(self, scores: EvalScores, response: AgentResponse, cost_cents: int) -> None:
        usage = response.token_usage
        self.scores.append(scores)
        self.latencies.append(response.latency_ms)
        self.token_counts.append(usage.total_tokens)
        self.costs.append(cost_cents)
        self.total_input_tokens += usage.input_tokens
        self.total_output_tokens += usage.output_tokens

    def _mean(self, field_name: str) -> float:
        return sum(getattr(s, field_name) for s in self.scores) / len(self.scores)

    def overall_score(self) -> int:
        """Weighted composite of the per-dimension means.

        Equivalent to averaging the per-case weighted sums, since the weight
        set is fixed.
        """
        if not self.scores:
            return 0
        weighted = sum(w * self._mean(name) for name, w in OVERALL_WEIGHTS.items())
        return round_half_up(weighted / sum(OVERALL_WEIGHTS.values()))

    def summarize(self) -> MetricsSummary:
        if not self.scores:
            return MetricsSummary()

        means = {name: round_half_up(self._mean(name)) for name in SCORE_FIELDS}
        mean_latency = round_half_up(sum(self.latencies) / len(self.latencies))
        return MetricsSummary(
            latency_p50=int(percentile(self.latencies, 50)),
            latency_p95=int(percentile(self.latencies, 95)),
            throughput=round_half_up(60000 / max(1, mean_latency)),
            avg_token_cost=round_half_up(sum(self.token_counts) / len(self.token_counts)),
            overall_score=self.overall_score(),
            **means,
        )

    def cost_stats(self) -> CostStats:
        total = sum(self.costs)
        return CostStats(
            total_calls=len(self.scores),
            total_input_tokens=self.total_input_tokens,
            total_output_tokens=self.total_output_tokens,
            total_cost_cents=total,
            avg_cost_per_call=round_half_up(total / len(self.costs)) if self.costs else 0,
        )
