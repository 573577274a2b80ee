"""Baseline comparison for regression alerts.

Compares an agent's aggregated accuracy in the current task against the
persisted metric of the same agent in a baseline task.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from agentassay.metrics import MetricsSummary
from agentassay.models import EvalMetric
from agentassay.store import EvalStore

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 2.0


@dataclass
class BaselineComparison:
    """Result of a baseline check. ``diff`` is in percentage points."""
    has_alert: bool = False
    alert_message: str = ""
    diff: float = 0.0


def check_regression(
    current_accuracy: float,
    baseline_accuracy: float,
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD,
) -> BaselineComparison:
    """Alert when accuracy dropped by more than ``alert_threshold`` points."""
    diff = current_accuracy - baseline_accuracy
    if diff < -alert_threshold:
        return BaselineComparison(
            has_alert=True,
            alert_message=(
                f"Accuracy dropped {abs(diff):.1f} points "
                f"(baseline {baseline_accuracy:g}, current {current_accuracy:g}), "
                f"exceeding the {alert_threshold:g} point threshold"
            ),
            diff=diff,
        )
    return BaselineComparison(diff=diff)


class BaselineComparator:
    """Look up baseline metrics in the store and check for regressions."""

    def __init__(self, store: EvalStore) -> None:
        self.store = store

    def compare(
        self,
        baseline_task_id: int,
        agent_id: int,
        current: Union[MetricsSummary, EvalMetric],
        alert_threshold: float = DEFAULT_ALERT_THRESHOLD,
    ) -> BaselineComparison:
        baseline = self.store.get_metric(baseline_task_id, agent_id)
        if baseline is None:
            logger.info(
                "No baseline metric for agent %s in task %s; skipping comparison",
                agent_id, baseline_task_id,
            )
            return BaselineComparison()
        return check_regression(current.accuracy, baseline.accuracy, alert_threshold)
