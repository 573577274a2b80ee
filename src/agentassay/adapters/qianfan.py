"""Qianfan adapter: chat-completion style endpoint."""

from __future__ import annotations

from typing import Any, Dict, List

from agentassay.adapters import HttpAdapter, parse_arguments
from agentassay.models import AgentRequest, AgentResponse, TokenUsage, ToolCall


class QianfanAdapter(HttpAdapter):
    """Adapter for Baidu Qianfan chat endpoints."""

    def build_body(self, request: AgentRequest) -> Dict[str, Any]:
        messages = list(request.context or [])
        messages.append({"role": "user", "content": request.input})
        return {"messages": messages, **self.config.model_params}

    def parse_response(self, data: Any, latency_ms: int) -> AgentResponse:
        usage = data.get("usage") or {}
        choices = data.get("choices") or [{}]
        output = data.get("result") or ((choices[0] or {}).get("message") or {}).get("content") or ""
        return AgentResponse(
            output=output,
            token_usage=TokenUsage(
                input_tokens=usage.get("prompt_tokens", 0),
                output_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            latency_ms=latency_ms,
            tool_calls=self._parse_tool_calls(data),
            raw_response=data,
        )

    def _parse_tool_calls(self, data: Dict[str, Any]) -> List[ToolCall]:
        call = data.get("function_call")
        if not call or not call.get("name"):
            return []
        return [ToolCall(name=call["name"], arguments=parse_arguments(call.get("arguments")))]

    async def health_check(self) -> bool:
        response = await self.invoke(AgentRequest(input="ping"))
        return not response.error
