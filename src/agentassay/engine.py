"""Evaluation engine: drives one evaluation task end to end.

For every agent of the task, every case of every dataset is run through the
case pipeline (invoke, score, price, persist, accumulate). When an agent's
cases are done its metrics are summarized, compared with the baseline and
persisted. Cases run sequentially; the task status is checked before each
case so an external cancellation stops new work.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Tuple

from agentassay.adapters import BaseAdapter, create_adapter_for_agent
from agentassay.baselines import DEFAULT_ALERT_THRESHOLD, BaselineComparator, BaselineComparison
from agentassay.config import Settings
from agentassay.cost import CostCalculator, suggested_price
from agentassay.crypto import AesSecretProvider, SecretProvider
from agentassay.evaluator import ResponseEvaluator
from agentassay.judge import JudgeClient
from agentassay.metrics import MetricsAccumulator, round_half_up
from agentassay.models import (
    Agent,
    AgentRequest,
    AgentResponse,
    CostStat,
    Dataset,
    EvalConfig,
    EvalMetric,
    EvalTask,
    TestCase,
)
from agentassay.scorers import Judge
from agentassay.store import EvalStore

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., BaseAdapter]

_background_tasks: Set["asyncio.Task[EvalProgress]"] = set()


class TaskStateError(Exception):
    """Raised when a task cannot be started (missing or not pending)."""


@dataclass
class EvalProgress:
    """Counters for one running task."""
    task_id: int
    total: int = 0
    completed: int = 0
    failed: int = 0
    progress: int = 0
    cancelled: bool = False


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EvaluationEngine:
    """Run evaluation tasks stored in an ``EvalStore``."""

    def __init__(
        self,
        store: EvalStore,
        settings: Optional[Settings] = None,
        *,
        judge: Optional[Judge] = None,
        secrets: Optional[SecretProvider] = None,
        adapter_factory: Optional[AdapterFactory] = None,
        on_progress: Optional[Callable[[EvalProgress], None]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.judge = judge or JudgeClient(self.settings)
        if secrets is None and self.settings.encryption_key:
            secrets = AesSecretProvider(self.settings.encryption_key)
        self.secrets = secrets
        self.adapter_factory = adapter_factory or create_adapter_for_agent
        self.on_progress = on_progress
        self.costs = CostCalculator(store)
        self.baselines = BaselineComparator(store)

    def load_pending_task(self, task_id: int) -> EvalTask:
        """Return the task if it exists and is pending, else raise ``TaskStateError``."""
        task = self.store.get_task(task_id)
        if task is None:
            raise TaskStateError(f"Task {task_id} not found")
        if task.status != "pending":
            raise TaskStateError(
                f"Task {task_id} is {task.status!r}; only pending tasks can be started"
            )
        return task

    async def run(self, task_id: int, config: Optional[EvalConfig] = None) -> EvalProgress:
        """Run a pending task to completion.

        Per-case failures are counted and logged. Any other exception marks
        the task ``failed`` and is re-raised.
        """
        task = self.load_pending_task(task_id)
        config = config or task.config
        if config.concurrency > 1:
            logger.debug("Task %s requests concurrency %d; cases run sequentially",
                         task_id, config.concurrency)

        if not self.store.transition_task(task_id, ("pending",), status="running", started_at=_now()):
            raise TaskStateError(f"Task {task_id} is no longer pending")
        progress = EvalProgress(task_id=task_id)
        logger.info("Starting evaluation task %s (%d agents, %d datasets)",
                    task_id, len(task.agent_ids), len(task.dataset_ids))

        try:
            await self._run_agents(task, config, progress)
        except Exception:
            logger.exception("Evaluation task %s failed", task_id)
            self._mark_failed(task_id)
            raise

        if progress.cancelled or self._is_cancelled(task_id):
            progress.cancelled = True
            logger.info("Evaluation task %s was cancelled after %d cases",
                        task_id, progress.completed + progress.failed)
            return progress

        if not self.store.transition_task(
            task_id, ("running",), status="completed", progress=100, completed_at=_now(),
        ):
            progress.cancelled = self._is_cancelled(task_id)
            logger.info("Evaluation task %s changed state while finishing; not marking completed",
                        task_id)
            return progress
        progress.progress = 100
        logger.info("Evaluation task %s completed: %d ok, %d failed",
                    task_id, progress.completed, progress.failed)
        return progress

    def _is_cancelled(self, task_id: int) -> bool:
        task = self.store.get_task(task_id)
        return task is not None and task.status == "cancelled"

    def _mark_failed(self, task_id: int) -> None:
        try:
            self.store.transition_task(
                task_id, ("pending", "running"), status="failed", completed_at=_now(),
            )
        except Exception:
            logger.exception("Could not mark task %s as failed", task_id)

    def _load_datasets(self, task: EvalTask) -> List[Tuple[Dataset, List[TestCase]]]:
        datasets = []
        for dataset_id in task.dataset_ids:
            dataset = self.store.get_dataset(dataset_id)
            if dataset is None:
                logger.warning("Dataset %s not found; skipping", dataset_id)
                continue
            datasets.append((dataset, self.store.get_test_cases(dataset_id)))
        return datasets

    async def _run_agents(self, task: EvalTask, config: EvalConfig, progress: EvalProgress) -> None:
        datasets = self._load_datasets(task)
        progress.total = sum(len(cases) for _, cases in datasets) * len(set(task.agent_ids))
        evaluator = ResponseEvaluator(
            self.judge, config.dimensions, self.settings.security_fail_open,
        )

        for agent_id in dict.fromkeys(task.agent_ids):
            agent = self.store.get_agent(agent_id)
            if agent is None:
                logger.warning("Agent %s not found; skipping", agent_id)
                continue

            adapter = self.adapter_factory(agent, self.settings, self.secrets, config.timeout)
            accumulator = MetricsAccumulator()

            for dataset, cases in datasets:
                for case in cases:
                    if self._is_cancelled(task.id):
                        progress.cancelled = True
                        return
                    try:
                        await self._run_case(
                            task, config, agent, adapter, evaluator, dataset, case, accumulator,
                        )
                        progress.completed += 1
                    except Exception:
                        progress.failed += 1
                        logger.exception(
                            "Evaluation failed for agent %s, case %s", agent_id, case.id,
                        )
                    self._update_progress(progress)

            self._finalize_agent(task, config, agent_id, accumulator)

    def _update_progress(self, progress: EvalProgress) -> None:
        done = progress.completed + progress.failed
        if progress.total:
            progress.progress = min(100, round_half_up(done / progress.total * 100))
        self.store.update_task(progress.task_id, progress=progress.progress)
        if self.on_progress is not None:
            self.on_progress(progress)

    async def _invoke(self, adapter: BaseAdapter, request: AgentRequest, timeout: float) -> AgentResponse:
        if not timeout or timeout <= 0:
            return await adapter.invoke(request)
        try:
            return await asyncio.wait_for(adapter.invoke(request), timeout=timeout)
        except asyncio.TimeoutError:
            return AgentResponse.failure("Agent call timed out", latency_ms=int(timeout * 1000))

    async def _run_case(
        self,
        task: EvalTask,
        config: EvalConfig,
        agent: Agent,
        adapter: BaseAdapter,
        evaluator: ResponseEvaluator,
        dataset: Dataset,
        case: TestCase,
        accumulator: MetricsAccumulator,
    ) -> None:
        """Invoke, score, price, persist and accumulate one case."""
        request = AgentRequest(input=case.input, context=case.context)
        response = await self._invoke(adapter, request, config.timeout)
        if response.error:
            logger.info("Agent %s reported an error on case %s: %s",
                        agent.id, case.id, response.error)

        scores = await evaluator.evaluate(case, response, dataset.type)
        cost_cents = self.costs.cost_for(task.project_id, agent.model_id, response.token_usage)

        result = self.store.create_result(
            task_id=task.id,
            agent_id=agent.id,
            dataset_id=dataset.id,
            test_case_id=case.id,
            actual_output=response.output,
            scores=scores,
            latency_ms=response.latency_ms,
            token_usage=response.token_usage,
            cost_cents=cost_cents,
            error_message=response.error,
        )

        if config.save_trace:
            response_data = asdict(response)
            self.store.create_trace(
                result_id=result.id,
                trace_data={
                    "request": {"input": case.input, "context": case.context},
                    "response": response_data,
                    "scores": scores.to_dict(),
                },
                input=case.input,
                context=case.context,
                retrieval_results=response_data["retrieval_results"],
                tool_calls=response_data["tool_calls"],
                model_output=response.output,
                intermediate_steps=response_data["intermediate_steps"],
                error_stack=response.error,
                retry_count=0,
            )

        accumulator.add(scores, response, cost_cents)

    def _finalize_agent(
        self, task: EvalTask, config: EvalConfig, agent_id: int, accumulator: MetricsAccumulator,
    ) -> EvalMetric:
        summary = accumulator.summarize()

        comparison = BaselineComparison()
        baseline = config.baseline_comparison
        if baseline is not None and baseline.enabled and baseline.baseline_task_id is not None:
            threshold = baseline.alert_threshold
            if threshold is None:
                threshold = DEFAULT_ALERT_THRESHOLD
            comparison = self.baselines.compare(
                baseline.baseline_task_id,
                baseline.baseline_agent_id or agent_id,
                summary,
                threshold,
            )
            if comparison.has_alert:
                logger.warning("Agent %s in task %s: %s", agent_id, task.id, comparison.alert_message)

        metric = self.store.create_metric(EvalMetric(
            id=0,
            task_id=task.id,
            agent_id=agent_id,
            baseline_diff=comparison.diff,
            has_alert=comparison.has_alert,
            alert_message=comparison.alert_message,
            **asdict(summary),
        ))

        cost_config = config.cost_calculation
        if cost_config is not None and cost_config.enabled:
            stats = accumulator.cost_stats()
            self.store.create_cost_stat(CostStat(
                id=0,
                task_id=task.id,
                agent_id=agent_id,
                suggested_price=suggested_price(stats.total_cost_cents, cost_config.profit_margin),
                **asdict(stats),
            ))
        return metric


def cancel_task(store: EvalStore, task_id: int) -> EvalTask:
    """Mark a pending or running task cancelled.

    A running engine notices before its next case and stops.
    """
    task = store.get_task(task_id)
    if task is None:
        raise TaskStateError(f"Task {task_id} not found")
    if not store.transition_task(task_id, ("pending", "running"), status="cancelled"):
        current = store.get_task(task_id) or task
        raise TaskStateError(f"Task {task_id} is already {current.status}")
    task.status = "cancelled"
    logger.info("Cancelled task %s", task_id)
    return task


def _log_outcome(task:"asyncio.Task[EvalProgress]") -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background evaluation failed: %s", exc,
                     exc_info=(type(exc), exc, exc.__traceback__))


async def start_evaluation(
    engine: EvaluationEngine,
    task_id: int,
    config: Optional[EvalConfig] = None,
) -> "asyncio.Task[EvalProgress]":
    """Validate a task and schedule its run in the background.

    Raises ``TaskStateError`` immediately for a missing or non-pending task.
    The returned ``asyncio.Task`` need not be awaited; callers poll the
    task's status and progress through the store.
    """
    engine.load_pending_task(task_id)
    background = asyncio.get_running_loop().create_task(engine.run(task_id, config))
    _background_tasks.add(background)
    background.add_done_callback(_log_outcome)
    return background
