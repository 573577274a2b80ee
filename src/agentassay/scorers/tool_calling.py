"""Tool-calling scorer, computed locally from the reported tool calls."""

from __future__ import annotations

from typing import List, Tuple

from agentassay.metrics import round_half_up
from agentassay.models import ToolCall


def _efficiency(avg_latency_ms: float) -> int:
    if avg_latency_ms < 1000:
        return 100
    if avg_latency_ms < 3000:
        return 80
    if avg_latency_ms < 5000:
        return 60
    return 40


def score_tool_calls(tool_calls: List[ToolCall]) -> Tuple[int, int]:
    """Return ``(accuracy, efficiency)`` for a list of tool calls.

    Calls without an error count as successful. An empty list scores
    ``(100, 100)``.
    """
    if not tool_calls:
        return 100, 100

    successful = sum(1 for tc in tool_calls if not tc.error)
    accuracy = round_half_up(successful / len(tool_calls) * 100)
    avg_latency = sum(tc.latency_ms or 0 for tc in tool_calls) / len(tool_calls)
    return accuracy, _efficiency(avg_latency)
