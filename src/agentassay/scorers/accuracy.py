"""Accuracy scorer: judge-rated semantic agreement with the expected output."""

from __future__ import annotations

import logging

from agentassay.judge import JudgeError
from agentassay.scorers import Judge, parse_score

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are an evaluation expert. Compare the semantic similarity of the actual output with the expected output and give a score from 0 to 100.
Reply with a single number and nothing else.
Scoring guide:
- 90-100: semantically identical or nearly so
- 70-89: same main meaning, minor differences in detail
- 50-69: partially correct, with clear omissions or errors
- 30-49: right direction but mostly inaccurate
- 0-29: unrelated or wrong"""


async def score_accuracy(judge: Judge, actual: str, expected: str) -> int:
    """Return a 0-100 accuracy score, or 0 when the judge cannot answer."""
    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": f"Expected output: {expected}\n\nActual output: {actual}"},
    ]
    try:
        return parse_score(await judge.invoke(messages))
    except (JudgeError, ValueError) as exc:
        logger.warning("Accuracy scoring failed, defaulting to 0: %s", exc)
        return 0
