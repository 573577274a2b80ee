"""n8n adapter: workflow webhook."""

from __future__ import annotations

import json
from typing import Any, Dict

from agentassay.adapters import HttpAdapter
from agentassay.models import AgentRequest, AgentResponse, TokenUsage


class N8nAdapter(HttpAdapter):
    """Adapter for n8n webhook-triggered workflows."""

    expects_object = False

    def build_body(self, request: AgentRequest) -> Dict[str, Any]:
        return {"input": request.input, "context": request.context}

    def parse_response(self, data: Any, latency_ms: int) -> AgentResponse:
        if not isinstance(data, dict):
            return AgentResponse(output=json.dumps(data), latency_ms=latency_ms, raw_response=data)
        usage = data.get("tokenUsage") or {}
        return AgentResponse(
            output=data.get("output") or data.get("result") or json.dumps(data),
            token_usage=TokenUsage(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            latency_ms=latency_ms,
            raw_response=data,
        )
