"""Adapter protocol and platform registry for AgentAssay.

An adapter turns a uniform ``AgentRequest`` into one platform's HTTP protocol
and back into an ``AgentResponse``. New platforms are added with
``register_adapter``; the engine only ever calls ``create_adapter_for_agent``.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from agentassay.config import Settings
from agentassay.crypto import SecretError, SecretProvider
from agentassay.models import Agent, AgentRequest, AgentResponse, ToolCall

logger = logging.getLogger(__name__)


@dataclass
class AdapterConfig:
    """Everything an adapter needs; the API key is already decrypted."""
    platform: str
    api_endpoint: str
    api_key: str = ""
    model_params: Dict[str, Any] = field(default_factory=dict)
    config_snapshot: Dict[str, Any] = field(default_factory=dict)
    timeout: float = 120.0
    health_check_timeout: float = 10.0


class BaseAdapter(ABC):
    """Abstract base class that all adapters must implement."""

    @abstractmethod
    async def invoke(self, request: AgentRequest) -> AgentResponse: ...

    @abstractmethod
    async def health_check(self) -> bool: ...


class HttpAdapter(BaseAdapter):
    """Base for JSON-over-HTTP platforms.

    Subclasses build the request body and parse the reply. Transport and HTTP
    status failures become an ``AgentResponse`` with ``error`` set.
    """

    expects_object = True

    def __init__(self, config: AdapterConfig) -> None:
        self.config = config

    def invoke_url(self) -> str:
        return self.config.api_endpoint

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    @abstractmethod
    def build_body(self, request: AgentRequest) -> Dict[str, Any]: ...

    @abstractmethod
    def parse_response(self, data: Any, latency_ms: int) -> AgentResponse: ...

    async def invoke(self, request: AgentRequest) -> AgentResponse:
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                resp = await client.post(
                    self.invoke_url(), json=self.build_body(request), headers=self.headers(),
                )
                resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            return AgentResponse.failure(
                str(exc), _elapsed_ms(start), raw_response=exc.response.text,
            )
        except httpx.HTTPError as exc:
            return AgentResponse.failure(str(exc) or type(exc).__name__, _elapsed_ms(start))
        except ValueError as exc:
            return AgentResponse.failure(f"Invalid JSON response: {exc}", _elapsed_ms(start))
        if self.expects_object and not isinstance(data, dict):
            return AgentResponse.failure(
                f"Unexpected response payload: {type(data).__name__}",
                _elapsed_ms(start), raw_response=data,
            )
        return self.parse_response(data, _elapsed_ms(start))

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.config.health_check_timeout) as client:
                resp = await client.get(self.config.api_endpoint, headers=self.headers())
        except httpx.HTTPError as exc:
            logger.info("Health check for %s failed: %s", self.config.api_endpoint, exc)
            return False
        return resp.status_code == 200


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def parse_arguments(raw: Any) -> Dict[str, Any]:
    """Decode tool-call arguments that may arrive as a JSON string."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {"raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def parse_tool_calls(items: Optional[List[Dict[str, Any]]]) -> List[ToolCall]:
    """Build ``ToolCall`` records from generic ``{name, arguments, ...}`` dicts."""
    calls = []
    for item in items or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        calls.append(ToolCall(
            name=item["name"],
            arguments=parse_arguments(item.get("arguments")),
            result=item.get("result"),
            error=item.get("error"),
            latency_ms=item.get("latency_ms", item.get("latencyMs")),
        ))
    return calls


AdapterFactory = Callable[[AdapterConfig], BaseAdapter]

_ADAPTER_REGISTRY: Dict[str, AdapterFactory] = {}


def _ensure_registry() -> None:
    if _ADAPTER_REGISTRY:
        return
    from agentassay.adapters.custom import CustomAdapter
    from agentassay.adapters.dify import DifyAdapter
    from agentassay.adapters.n8n import N8nAdapter
    from agentassay.adapters.qianfan import QianfanAdapter

    _ADAPTER_REGISTRY.update({
        "qianfan": QianfanAdapter,
        "dify": DifyAdapter,
        "n8n": N8nAdapter,
        "custom": CustomAdapter,
    })


def register_adapter(platform: str, factory: AdapterFactory) -> None:
    """Register (or replace) the factory for a platform identifier."""
    _ensure_registry()
    _ADAPTER_REGISTRY[platform] = factory


def available_platforms() -> List[str]:
    _ensure_registry()
    return sorted(_ADAPTER_REGISTRY)


def get_adapter(platform: str, config: AdapterConfig) -> BaseAdapter:
    """Get an adapter instance by platform identifier."""
    _ensure_registry()
    if platform not in _ADAPTER_REGISTRY:
        raise ValueError(
            f"Unknown adapter: {platform!r}. Available: {sorted(_ADAPTER_REGISTRY)}"
        )
    return _ADAPTER_REGISTRY[platform](config)


def create_adapter_for_agent(
    agent: Agent,
    settings: Settings,
    secrets: Optional[SecretProvider] = None,
    timeout: Optional[float] = None,
) -> BaseAdapter:
    """Build the adapter for a stored agent, decrypting its API key."""
    api_key = ""
    if agent.encrypted_api_key:
        if secrets is None:
            raise SecretError(f"Agent {agent.id} has an API key but no secret provider is set")
        api_key = secrets.decrypt(agent.encrypted_api_key)
    config = AdapterConfig(
        platform=agent.type,
        api_endpoint=agent.api_endpoint,
        api_key=api_key,
        model_params=dict(agent.model_params or {}),
        config_snapshot=dict(agent.config_snapshot or {}),
        timeout=timeout if timeout is not None else settings.adapter_timeout,
        health_check_timeout=settings.health_check_timeout,
    )
    return get_adapter(agent.type, config)
