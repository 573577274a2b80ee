"""Shared fixtures: a temporary store plus scripted judge and adapter fakes."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest

from agentassay.adapters import BaseAdapter
from agentassay.judge import JudgeError
from agentassay.models import AgentRequest, AgentResponse, TokenUsage
from agentassay.store import EvalStore


class FakeJudge:
    """Judge that answers from a queue; a ``JudgeError`` entry is raised."""

    def __init__(self, replies=None, default: str = "80") -> None:
        self.replies = list(replies or [])
        self.default = default
        self.calls: List[List[Dict[str, str]]] = []

    async def invoke(self, messages, response_format=None) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAdapter(BaseAdapter):
    """Adapter that answers from a mapping of input -> response."""

    def __init__(self, responses: Optional[Dict[str, AgentResponse]] = None, delay: float = 0) -> None:
        self.responses = responses or {}
        self.delay = delay
        self.requests: List[AgentRequest] = []

    async def invoke(self, request: AgentRequest) -> AgentResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if request.input in self.responses:
            return self.responses[request.input]
        return AgentResponse(
            output=f"answer to {request.input}",
            token_usage=TokenUsage(input_tokens=100, output_tokens=50, total_tokens=150),
            latency_ms=200,
        )

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def store(tmp_path):
    s = EvalStore(tmp_path / "test.db")
    yield s
    s.close()


@pytest.fixture
def fake_judge():
    return FakeJudge()


@pytest.fixture
def failing_judge():
    return FakeJudge(default=JudgeError("judge down"))  # type: ignore[arg-type]


@pytest.fixture
def make_adapter():
    return FakeAdapter
