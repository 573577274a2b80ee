"""RAG scorer: four retrieval-quality sub-scores from a single judge call."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List

import jsonschema

from agentassay.judge import JudgeError
from agentassay.models import RetrievalResult
from agentassay.scorers import Judge, clamp_score

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are an expert evaluator of RAG systems. Score each metric below from 0 to 100.
Return JSON: {"faithfulness": score, "answerRelevancy": score, "contextRecall": score, "contextPrecision": score}

Criteria:
- faithfulness: the answer is fully grounded in the retrieved context, with nothing invented
- answerRelevancy: the answer directly addresses the user's question
- contextRecall: the retrieved context contains everything needed to answer the question
- contextPrecision: how much of the retrieved context is relevant to the question"""

RAG_SCORES_SCHEMA = {
    "type": "object",
    "properties": {
        "faithfulness": {"type": "integer"},
        "answerRelevancy": {"type": "integer"},
        "contextRecall": {"type": "integer"},
        "contextPrecision": {"type": "integer"},
    },
    "required": ["faithfulness", "answerRelevancy", "contextRecall", "contextPrecision"],
    "additionalProperties": False,
}

_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {"name": "rag_scores", "strict": True, "schema": RAG_SCORES_SCHEMA},
}


@dataclass
class RagScores:
    faithfulness: int = 0
    answer_relevancy: int = 0
    context_recall: int = 0
    context_precision: int = 0


async def score_rag(
    judge: Judge,
    question: str,
    answer: str,
    ground_truth: str,
    retrieval_results: List[RetrievalResult],
) -> RagScores:
    """Score a RAG answer. All four scores are 0 when the judge fails."""
    context = "\n\n".join(r.content for r in retrieval_results)
    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Question: {question}\n\nRetrieved context: {context}\n\n"
                f"Generated answer: {answer}\n\nReference answer: {ground_truth}"
            ),
        },
    ]
    try:
        content = await judge.invoke(messages, response_format=_RESPONSE_FORMAT)
        data = json.loads(content)
        jsonschema.validate(data, RAG_SCORES_SCHEMA)
    except (JudgeError, json.JSONDecodeError) as exc:
        logger.warning("RAG scoring failed, defaulting to 0: %s", exc)
        return RagScores()
    except jsonschema.ValidationError as exc:
        logger.warning("RAG judge reply did not match schema: %s", exc.message)
        return RagScores()

    return RagScores(
        faithfulness=clamp_score(data["faithfulness"]),
        answer_relevancy=clamp_score(data["answerRelevancy"]),
        context_recall=clamp_score(data["contextRecall"]),
        context_precision=clamp_score(data["contextPrecision"]),
    )
