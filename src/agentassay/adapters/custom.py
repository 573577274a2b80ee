"""Custom adapter: generic JSON endpoint speaking the AgentAssay shape."""

from __future__ import annotations

from typing import Any, Dict

from agentassay.adapters import HttpAdapter, parse_tool_calls
from agentassay.models import (
    AgentRequest,
    AgentResponse,
    IntermediateStep,
    RetrievalResult,
    TokenUsage,
)


class CustomAdapter(HttpAdapter):
    """Posts ``{input, context, params}`` and reads a loosely shaped reply."""

    def build_body(self, request: AgentRequest) -> Dict[str, Any]:
        return {
            "input": request.input,
            "context": request.context,
            "params": self.config.model_params,
        }

    def parse_response(self, data: Any, latency_ms: int) -> AgentResponse:
        usage = data.get("tokenUsage") or data.get("token_usage") or {}
        openai_usage = data.get("usage") or {}
        return AgentResponse(
            output=data.get("output") or data.get("result") or data.get("answer") or "",
            token_usage=TokenUsage(
                input_tokens=usage.get("input_tokens") or openai_usage.get("prompt_tokens", 0),
                output_tokens=usage.get("output_tokens") or openai_usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens") or openai_usage.get("total_tokens", 0),
            ),
            latency_ms=latency_ms,
            tool_calls=parse_tool_calls(data.get("toolCalls") or data.get("tool_calls")),
            retrieval_results=[
                RetrievalResult(
                    content=r.get("content", ""),
                    score=r.get("score") or 0.0,
                    metadata=r.get("metadata") or {},
                )
                for r in data.get("retrievalResults") or data.get("retrieval_results") or []
            ],
            intermediate_steps=[
                IntermediateStep(
                    type=s.get("type", "step"),
                    content=s.get("content", ""),
                    timestamp=s.get("timestamp", 0),
                )
                for s in data.get("intermediateSteps") or data.get("intermediate_steps") or []
            ],
            raw_response=data,
        )
