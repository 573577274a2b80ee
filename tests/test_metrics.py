"""Tests for metric aggregation."""

from __future__ import annotations

import pytest

from agentassay.metrics import (
    MetricsAccumulator,
    MetricsSummary,
    calculate_accuracy,
    percentile,
    round_half_up,
)
from agentassay.models import AgentResponse, EvalResult, EvalScores, TokenUsage


def _response(latency_ms=100, input_tokens=10, output_tokens=5):
    return AgentResponse(
        output="x",
        latency_ms=latency_ms,
        token_usage=TokenUsage(input_tokens, output_tokens, input_tokens + output_tokens),
    )


def _result(passed):
    return EvalResult(
        id=0, task_id=1, agent_id=1, dataset_id=1, test_case_id=1, actual_output="",
        passed=passed, scores=EvalScores(passed=passed), latency_ms=0,
        token_usage=TokenUsage(), cost_cents=0,
    )


class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4999) == 2
        assert round_half_up(7) == 7

    def test_percentile_nearest_rank(self):
        values = [400, 100, 300, 200]
        assert percentile(values, 50) == 200
        assert percentile(values, 95) == 400
        assert percentile(values, 0) == 100

    def test_percentile_empty(self):
        assert percentile([], 95) == 0

    def test_percentile_single(self):
        assert percentile([42], 50) == 42

    def test_calculate_accuracy(self):
        assert calculate_accuracy([]) == 0.0
        results = [_result(True), _result(True), _result(False), _result(True)]
        assert calculate_accuracy(results) == 75.0


class TestMetricsAccumulator:
    def test_empty_summary_is_zero(self):
        acc = MetricsAccumulator()
        assert len(acc) == 0
        assert acc.summarize() == MetricsSummary()
        assert acc.overall_score() == 0
        assert acc.cost_stats().avg_cost_per_call == 0

    def test_latency_and_throughput(self):
        acc = MetricsAccumulator()
        for latency in (100, 200, 300, 400):
            acc.add(EvalScores(), _response(latency_ms=latency), 0)
        summary = acc.summarize()
        assert summary.latency_p50 == 200
        assert summary.latency_p95 == 400
        # mean latency 250ms -> 240 calls per minute
        assert summary.throughput == 240

    def test_zero_latency_throughput_capped(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(), _response(latency_ms=0), 0)
        assert acc.summarize().throughput == 60000

    def test_dimension_means_rounded(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(accuracy=80), _response(), 0)
        acc.add(EvalScores(accuracy=85), _response(), 0)
        assert acc.summarize().accuracy == 83

    def test_overall_score(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(accuracy=100, security_score=100, tool_calling_accuracy=100,
                           faithfulness=100, answer_relevancy=100, robustness=100),
                _response(), 0)
        assert acc.overall_score() == 100

        acc = MetricsAccumulator()
        acc.add(EvalScores(accuracy=80, security_score=100), _response(), 0)
        acc.add(EvalScores(accuracy=60, security_score=100), _response(), 0)
        # 0.3 * 70 + 0.2 * 100
        assert acc.overall_score() == 41
        assert acc.summarize().overall_score == 41

    def test_summarize_is_idempotent(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(accuracy=90), _response(latency_ms=120), 5)
        acc.add(EvalScores(accuracy=40), _response(latency_ms=80), 7)
        assert acc.summarize() == acc.summarize()
        assert acc.cost_stats() == acc.cost_stats()

    def test_avg_token_cost(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(), _response(input_tokens=100, output_tokens=50), 0)
        acc.add(EvalScores(), _response(input_tokens=10, output_tokens=5), 0)
        assert acc.summarize().avg_token_cost == 83

    def test_cost_stats(self):
        acc = MetricsAccumulator()
        acc.add(EvalScores(), _response(input_tokens=100, output_tokens=50), 25)
        acc.add(EvalScores(), _response(input_tokens=200, output_tokens=20), 10)
        stats = acc.cost_stats()
        assert stats.total_calls == 2
        assert stats.total_input_tokens == 300
        assert stats.total_output_tokens == 70
        assert stats.total_cost_cents == 35
        assert stats.avg_cost_per_call == 18

    @pytest.mark.parametrize("scores", [
        EvalScores(accuracy=100, security_score=0),
        EvalScores(accuracy=0, faithfulness=100, answer_relevancy=100),
    ])
    def test_scores_stay_in_range(self, scores):
        acc = MetricsAccumulator()
        acc.add(scores, _response(), 0)
        summary = acc.summarize()
        assert 0 <= summary.overall_score <= 100
        assert 0 <= summary.accuracy <= 100
