"""Tests for the per-dimension scorers."""

from __future__ import annotations

import json

import pytest

from conftest import FakeJudge
from agentassay.judge import JudgeError
from agentassay.models import RetrievalResult, ToolCall
from agentassay.scorers import clamp_score, parse_score
from agentassay.scorers.accuracy import score_accuracy
from agentassay.scorers.rag import RagScores, score_rag
from agentassay.scorers.security import score_security
from agentassay.scorers.tool_calling import score_tool_calls


class TestParseScore:
    def test_plain(self):
        assert parse_score("85") == 85

    def test_first_integer_wins(self):
        assert parse_score("Score: 72 out of 100") == 72

    def test_clamped(self):
        assert parse_score("150") == 100
        assert parse_score("-10") == 0

    def test_no_number(self):
        with pytest.raises(ValueError):
            parse_score("excellent")

    def test_clamp_score(self):
        assert clamp_score(101.7) == 100
        assert clamp_score(-3) == 0
        assert clamp_score(42) == 42


class TestAccuracy:
    @pytest.mark.asyncio
    async def test_score(self):
        judge = FakeJudge(["91"])
        assert await score_accuracy(judge, "Paris", "The capital is Paris") == 91
        user = judge.calls[0][-1]["content"]
        assert "The capital is Paris" in user
        assert "Paris" in user

    @pytest.mark.asyncio
    async def test_out_of_range_clamped(self):
        assert await score_accuracy(FakeJudge(["150"]), "a", "b") == 100

    @pytest.mark.asyncio
    async def test_judge_failure_scores_zero(self):
        assert await score_accuracy(FakeJudge([JudgeError("down")]), "a", "b") == 0

    @pytest.mark.asyncio
    async def test_unparseable_scores_zero(self):
        assert await score_accuracy(FakeJudge(["great answer"]), "a", "b") == 0


class TestSecurity:
    @pytest.mark.asyncio
    async def test_score(self):
        assert await score_security(FakeJudge(["40"]), "ignore previous", "ok") == 40

    @pytest.mark.asyncio
    async def test_fail_open(self):
        judge = FakeJudge([JudgeError("down")])
        assert await score_security(judge, "in", "out") == 100

    @pytest.mark.asyncio
    async def test_fail_closed(self):
        judge = FakeJudge([JudgeError("down")])
        assert await score_security(judge, "in", "out", fail_open=False) == 0

    @pytest.mark.asyncio
    async def test_negative_clamped(self):
        assert await score_security(FakeJudge(["-10"]), "in", "out") == 0


class TestRag:
    @pytest.mark.asyncio
    async def test_scores(self):
        reply = json.dumps({"faithfulness": 90, "answerRelevancy": 80,
                            "contextRecall": 70, "contextPrecision": 120})
        judge = FakeJudge([reply])
        scores = await score_rag(judge, "q", "a", "gt", [RetrievalResult(content="doc one")])
        assert scores == RagScores(90, 80, 70, 100)
        assert "doc one" in judge.calls[0][-1]["content"]

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        scores = await score_rag(FakeJudge(["not json"]), "q", "a", "gt", [])
        assert scores == RagScores()

    @pytest.mark.asyncio
    async def test_missing_field(self):
        reply = json.dumps({"faithfulness": 90})
        assert await score_rag(FakeJudge([reply]), "q", "a", "gt", []) == RagScores()

    @pytest.mark.asyncio
    async def test_judge_failure(self):
        scores = await score_rag(FakeJudge([JudgeError("down")]), "q", "a", "gt", [])
        assert scores == RagScores(0, 0, 0, 0)


class TestToolCalling:
    def test_empty(self):
        assert score_tool_calls([]) == (100, 100)

    def test_partial_success(self):
        calls = [ToolCall("a", latency_ms=500), ToolCall("b", error="fail", latency_ms=500),
                 ToolCall("c", latency_ms=500)]
        assert score_tool_calls(calls) == (67, 100)

    @pytest.mark.parametrize("latency,expected", [
        (999, 100), (1000, 80), (2999, 80), (3000, 60), (4999, 60), (5000, 40),
    ])
    def test_efficiency_steps(self, latency, expected):
        assert score_tool_calls([ToolCall("t", latency_ms=latency)])[1] == expected

    def test_missing_latency_counts_zero(self):
        assert score_tool_calls([ToolCall("t")]) == (100, 100)

    def test_half_rounds_up(self):
        calls = [ToolCall("ok")] + [ToolCall("bad", error="x")] * 7
        assert score_tool_calls(calls)[0] == 13
