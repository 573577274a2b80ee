"""Per-dimension scorers used by the response evaluator."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Protocol

_INT_RE = re.compile(r"-?\d+")


class Judge(Protocol):
    """Protocol the scoring oracle must satisfy."""

    async def invoke(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str: ...


def clamp_score(value: float) -> int:
    """Clamp a score into [0, 100] and return it as an int."""
    return int(min(100, max(0, value)))


def parse_score(text: str) -> int:
    """Parse the first integer in a judge reply and clamp it.

    Raises:
        ValueError: If the reply contains no integer.
    """
    match = _INT_RE.search(text)
    if match is None:
        raise ValueError(f"No score in judge reply: {text[:200]!r}")
    return clamp_score(int(match.group()))
