"""Judge client: an OpenAI-compatible chat model used as a scoring oracle."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from agentassay.config import Settings

logger = logging.getLogger(__name__)


class JudgeError(Exception):
    """Raised when the judge model cannot produce a reply."""


class JudgeClient:
    """Send role-tagged messages to a judge model and return its reply text."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.judge_base_url.rstrip("/")
        self.api_key = settings.judge_api_key
        self.model = settings.judge_model
        self.timeout = settings.judge_timeout

    async def invoke(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        if not self.api_key:
            raise JudgeError("No judge API key configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0,
        }
        if response_format is not None:
            payload["response_format"] = response_format

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                    timeout=self.timeout,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Judge request failed: %s", exc)
            raise JudgeError(f"Judge request failed: {exc}") from exc

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise JudgeError(f"Malformed judge response: {exc}") from exc
        if not isinstance(content, str):
            raise JudgeError(f"Judge returned non-text content: {content!r}")
        return content
