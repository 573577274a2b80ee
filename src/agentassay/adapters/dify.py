"""Dify adapter: chat-messages API in blocking mode."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx

from agentassay.adapters import HttpAdapter, parse_arguments
from agentassay.models import (
    AgentRequest,
    AgentResponse,
    IntermediateStep,
    RetrievalResult,
    TokenUsage,
    ToolCall,
)

logger = logging.getLogger(__name__)


class DifyAdapter(HttpAdapter):
    """Adapter for Dify applications."""

    user = "agentassay"

    def invoke_url(self) -> str:
        return f"{self.config.api_endpoint.rstrip('/')}/chat-messages"

    def build_body(self, request: AgentRequest) -> Dict[str, Any]:
        inputs: Dict[str, Any] = {}
        if request.context:
            inputs["context"] = "\n".join(f"{c['role']}: {c['content']}" for c in request.context)
        return {
            "inputs": inputs,
            "query": request.input,
            "response_mode": "blocking",
            "conversation_id": "",
            "user": self.user,
        }

    def parse_response(self, data: Any, latency_ms: int) -> AgentResponse:
        metadata = data.get("metadata") or {}
        usage = metadata.get("usage") or {}
        thoughts = metadata.get("agent_thoughts") or []
        return AgentResponse(
            output=data.get("answer") or "",
            token_usage=TokenUsage(
                input_tokens=usage.get("prompt_tokens", 0),
                output_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            latency_ms=latency_ms,
            retrieval_results=[
                RetrievalResult(
                    content=r.get("content", ""),
                    score=r.get("score") or 0.0,
                    metadata={"document_name": r.get("document_name")},
                )
                for r in metadata.get("retriever_resources") or []
            ],
            tool_calls=self._parse_tool_calls(thoughts),
            intermediate_steps=[
                IntermediateStep(
                    type="thought",
                    content=t.get("thought", ""),
                    timestamp=t.get("created_at", 0),
                )
                for t in thoughts
            ],
            raw_response=data,
        )

    def _parse_tool_calls(self, thoughts: List[Dict[str, Any]]) -> List[ToolCall]:
        return [
            ToolCall(
                name=t["tool"],
                arguments=parse_arguments(t.get("tool_input")),
                result=t.get("observation"),
            )
            for t in thoughts
            if t.get("tool")
        ]

    async def health_check(self) -> bool:
        url = f"{self.config.api_endpoint.rstrip('/')}/parameters"
        try:
            async with httpx.AsyncClient(timeout=self.config.health_check_timeout) as client:
                resp = await client.get(url, headers=self.headers())
        except httpx.HTTPError as exc:
            logger.info("Dify health check failed: %s", exc)
            return False
        return resp.status_code == 200
