"""Process-level settings, read once at startup and passed explicitly."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# (attribute, AGENTASSAY_ suffix, unprefixed fallback, converter)
_ENV_FIELDS = [
    ("judge_base_url", "JUDGE_BASE_URL", "LLM_BASE_URL", str),
    ("judge_api_key", "JUDGE_API_KEY", "LLM_API_KEY", str),
    ("judge_model", "JUDGE_MODEL", "LLM_MODEL", str),
    ("judge_timeout", "JUDGE_TIMEOUT", None, float),
    ("encryption_key", "ENCRYPTION_KEY", "ENCRYPTION_KEY", str),
    ("security_fail_open", "SECURITY_FAIL_OPEN", None, _flag),
    ("adapter_timeout", "ADAPTER_TIMEOUT", None, float),
]


@dataclass
class Settings:
    """Judge endpoint, secrets and policy switches for one engine instance."""

    judge_base_url: str = "https://api.openai.com/v1"
    judge_api_key: str = ""
    judge_model: str = "gpt-4o"
    judge_timeout: float = 120.0
    encryption_key: str = ""
    security_fail_open: bool = True
    adapter_timeout: float = 120.0
    health_check_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``AGENTASSAY_*`` variables.

        The unprefixed ``LLM_BASE_URL``, ``LLM_API_KEY``, ``LLM_MODEL`` and
        ``ENCRYPTION_KEY`` variables are honoured as fallbacks.
        """
        env = os.environ if environ is None else environ
        settings = cls()
        for attr, name, fallback, convert in _ENV_FIELDS:
            value = env.get(f"AGENTASSAY_{name}")
            if value is None and fallback:
                value = env.get(fallback)
            if value is not None:
                setattr(settings, attr, convert(value))
        return settings
