"""SQLite store for AgentAssay projects, agents, datasets and evaluation records."""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from agentassay.models import (
    Agent,
    CostStat,
    Dataset,
    EvalConfig,
    EvalMetric,
    EvalResult,
    EvalScores,
    EvalTask,
    ModelPricing,
    Project,
    TestCase,
    TokenUsage,
    Trace,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    baseline_agent_id INTEGER
);

CREATE TABLE IF NOT EXISTS model_pricing (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    model_id TEXT NOT NULL,
    model_name TEXT NOT NULL,
    input_price_per_million INTEGER NOT NULL,
    output_price_per_million INTEGER NOT NULL,
    currency TEXT NOT NULL DEFAULT 'CNY',
    UNIQUE (project_id, model_id)
);

CREATE TABLE IF NOT EXISTS agents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    version TEXT NOT NULL DEFAULT '1',
    api_endpoint TEXT NOT NULL DEFAULT '',
    encrypted_api_key TEXT,
    model_params TEXT NOT NULL DEFAULT '{}',
    config_snapshot TEXT NOT NULL DEFAULT '{}',
    is_baseline INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS datasets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    version TEXT NOT NULL DEFAULT '1',
    description TEXT NOT NULL DEFAULT '',
    case_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS test_cases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    dataset_id INTEGER NOT NULL REFERENCES datasets(id),
    input TEXT NOT NULL,
    expected_output TEXT,
    context TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    case_type TEXT NOT NULL DEFAULT 'single_turn'
);

CREATE TABLE IF NOT EXISTS eval_tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    agent_ids TEXT NOT NULL,
    dataset_ids TEXT NOT NULL,
    config TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'pending',
    progress INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS eval_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id INTEGER NOT NULL REFERENCES eval_tasks(id),
    agent_id INTEGER NOT NULL,
    dataset_id INTEGER NOT NULL,
    test_case_id INTEGER NOT NULL,
    actual_output TEXT NOT NULL DEFAULT '',
    passed INTEGER NOT NULL,
    scores TEXT NOT NULL DEFAULT '{}',
    latency_ms INTEGER NOT NULL DEFAULT 0,
    token_usage TEXT NOT NULL DEFAULT '{}',
    cost_cents INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (task_id, agent_id, dataset_id, test_case_id)
);

CREATE TABLE IF NOT EXISTS traces (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    result_id INTEGER NOT NULL UNIQUE REFERENCES eval_results(id),
    trace_data TEXT NOT NULL,
    input TEXT NOT NULL DEFAULT '',
    context TEXT,
    retrieval_results TEXT,
    tool_calls TEXT,
    model_output TEXT NOT NULL DEFAULT '',
    intermediate_steps TEXT,
    error_stack TEXT,
    retry_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS eval_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id INTEGER NOT NULL REFERENCES eval_tasks(id),
    agent_id INTEGER NOT NULL,
    accuracy INTEGER NOT NULL DEFAULT 0,
    consistency INTEGER NOT NULL DEFAULT 0,
    robustness INTEGER NOT NULL DEFAULT 0,
    tool_calling_accuracy INTEGER NOT NULL DEFAULT 0,
    tool_calling_efficiency INTEGER NOT NULL DEFAULT 0,
    latency_p50 INTEGER NOT NULL DEFAULT 0,
    latency_p95 INTEGER NOT NULL DEFAULT 0,
    throughput INTEGER NOT NULL DEFAULT 0,
    avg_token_cost INTEGER NOT NULL DEFAULT 0,
    security_score INTEGER NOT NULL DEFAULT 0,
    faithfulness INTEGER NOT NULL DEFAULT 0,
    answer_relevancy INTEGER NOT NULL DEFAULT 0,
    context_recall INTEGER NOT NULL DEFAULT 0,
    context_precision INTEGER NOT NULL DEFAULT 0,
    overall_score INTEGER NOT NULL DEFAULT 0,
    baseline_diff REAL NOT NULL DEFAULT 0,
    has_alert INTEGER NOT NULL DEFAULT 0,
    alert_message TEXT NOT NULL DEFAULT '',
    UNIQUE (task_id, agent_id)
);

CREATE TABLE IF NOT EXISTS cost_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id INTEGER NOT NULL REFERENCES eval_tasks(id),
    agent_id INTEGER NOT NULL,
    total_calls INTEGER NOT NULL DEFAULT 0,
    total_input_tokens INTEGER NOT NULL DEFAULT 0,
    total_output_tokens INTEGER NOT NULL DEFAULT 0,
    total_cost_cents INTEGER NOT NULL DEFAULT 0,
    avg_cost_per_call INTEGER NOT NULL DEFAULT 0,
    suggested_price INTEGER NOT NULL DEFAULT 0,
    UNIQUE (task_id, agent_id)
);

CREATE INDEX IF NOT EXISTS idx_test_cases_dataset ON test_cases(dataset_id);
CREATE INDEX IF NOT EXISTS idx_results_task ON eval_results(task_id);
CREATE INDEX IF NOT EXISTS idx_metrics_task ON eval_metrics(task_id);
"""

_TASK_COLUMNS = {
    "name", "description", "agent_ids", "dataset_ids", "config",
    "status", "progress", "started_at", "completed_at",
}
_JSON_TASK_COLUMNS = {"agent_ids", "dataset_ids"}

_METRIC_FIELDS = [
    "accuracy", "consistency", "robustness", "tool_calling_accuracy",
    "tool_calling_efficiency", "latency_p50", "latency_p95", "throughput",
    "avg_token_cost", "security_score", "faithfulness", "answer_relevancy",
    "context_recall", "context_precision", "overall_score", "baseline_diff",
    "has_alert", "alert_message",
]

_COST_FIELDS = [
    "total_calls", "total_input_tokens", "total_output_tokens",
    "total_cost_cents", "avg_cost_per_call", "suggested_price",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dumps(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value)


def _loads(value: Optional[str]) -> Any:
    return None if value is None else json.loads(value)


class EvalStore:
    """SQLite-backed store implementing the CRUD contract the engine consumes.

    Writes are serialized through a lock so several evaluation tasks may share
    one store instance.
    """

    def __init__(self, db_path: str | Path = "agentassay.db") -> None:
        self._db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        return self._conn

    def _insert(self, sql: str, params: tuple) -> int:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.lastrowid  # type: ignore[return-value]

    def _fetchone(self, sql: str, params: tuple) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._get_conn().execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._get_conn().execute(sql, params).fetchall()

    # ── Projects & pricing ─────────────────────────────────────────────

    def create_project(
        self, name: str, description: str = "", baseline_agent_id: Optional[int] = None,
    ) -> Project:
        project_id = self._insert(
            "INSERT INTO projects (name, description, baseline_agent_id) VALUES (?, ?, ?)",
            (name, description, baseline_agent_id),
        )
        return Project(id=project_id, name=name, description=description,
                       baseline_agent_id=baseline_agent_id)

    def get_project(self, project_id: int) -> Optional[Project]:
        row = self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        if row is None:
            return None
        return Project(id=row["id"], name=row["name"], description=row["description"],
                       baseline_agent_id=row["baseline_agent_id"])

    def create_pricing(
        self,
        project_id: int,
        model_id: str,
        input_price_per_million: int,
        output_price_per_million: int,
        model_name: str = "",
        currency: str = "CNY",
    ) -> ModelPricing:
        pricing_id = self._insert(
            "INSERT INTO model_pricing (project_id, model_id, model_name, "
            "input_price_per_million, output_price_per_million, currency) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (project_id, model_id, model_name or model_id,
             input_price_per_million, output_price_per_million, currency),
        )
        return ModelPricing(
            id=pricing_id, project_id=project_id, model_id=model_id,
            model_name=model_name or model_id,
            input_price_per_million=input_price_per_million,
            output_price_per_million=output_price_per_million, currency=currency,
        )

    def get_pricing(self, project_id: int, model_id: str) -> Optional[ModelPricing]:
        row = self._fetchone(
            "SELECT * FROM model_pricing WHERE project_id = ? AND model_id = ?",
            (project_id, model_id),
        )
        if row is None:
            return None
        return ModelPricing(
            id=row["id"], project_id=row["project_id"], model_id=row["model_id"],
            model_name=row["model_name"],
            input_price_per_million=row["input_price_per_million"],
            output_price_per_million=row["output_price_per_million"],
            currency=row["currency"],
        )

    # ── Agents ─────────────────────────────────────────────────────────

    def create_agent(
        self,
        project_id: int,
        name: str,
        type: str,
        *,
        version: str = "1",
        api_endpoint: str = "",
        encrypted_api_key: Optional[str] = None,
        model_params: Optional[Dict[str, Any]] = None,
        config_snapshot: Optional[Dict[str, Any]] = None,
        is_baseline: bool = False,
    ) -> Agent:
        """Create an agent. ``encrypted_api_key`` must already be encrypted."""
        agent_id = self._insert(
            "INSERT INTO agents (project_id, name, type, version, api_endpoint, "
            "encrypted_api_key, model_params, config_snapshot, is_baseline) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (project_id, name, type, version, api_endpoint, encrypted_api_key,
             json.dumps(model_params or {}), json.dumps(config_snapshot or {}),
             int(is_baseline)),
        )
        return self.get_agent(agent_id)  # type: ignore[return-value]

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        row = self._fetchone("SELECT * FROM agents WHERE id = ?", (agent_id,))
        if row is None:
            return None
        return Agent(
            id=row["id"], project_id=row["project_id"], name=row["name"],
            type=row["type"], version=row["version"],
            api_endpoint=row["api_endpoint"],
            encrypted_api_key=row["encrypted_api_key"],
            model_params=json.loads(row["model_params"]),
            config_snapshot=json.loads(row["config_snapshot"]),
            is_baseline=bool(row["is_baseline"]), status=row["status"],
        )

    # ── Datasets & cases ───────────────────────────────────────────────

    def create_dataset(
        self, project_id: int, name: str, type: str,
        version: str = "1", description: str = "",
    ) -> Dataset:
        dataset_id = self._insert(
            "INSERT INTO datasets (project_id, name, type, version, description) "
            "VALUES (?, ?, ?, ?, ?)",
            (project_id, name, type, version, description),
        )
        return Dataset(id=dataset_id, project_id=project_id, name=name, type=type,
                       version=version, description=description)

    def get_dataset(self, dataset_id: int) -> Optional[Dataset]:
        row = self._fetchone("SELECT * FROM datasets WHERE id = ?", (dataset_id,))
        if row is None:
            return None
        return Dataset(
            id=row["id"], project_id=row["project_id"], name=row["name"],
            type=row["type"], version=row["version"],
            description=row["description"], case_count=row["case_count"],
        )

    def create_test_case(
        self,
        dataset_id: int,
        input: str,
        expected_output: Optional[str] = None,
        context: Optional[List[Dict[str, str]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        case_type: str = "single_turn",
    ) -> TestCase:
        with self._lock:
            case_id = self._insert(
                "INSERT INTO test_cases (dataset_id, input, expected_output, "
                "context, metadata, case_type) VALUES (?, ?, ?, ?, ?, ?)",
                (dataset_id, input, expected_output, _dumps(context),
                 json.dumps(metadata or {}), case_type),
            )
            conn = self._get_conn()
            conn.execute(
                "UPDATE datasets SET case_count = "
                "(SELECT COUNT(*) FROM test_cases WHERE dataset_id = ?) WHERE id = ?",
                (dataset_id, dataset_id),
            )
            conn.commit()
        return TestCase(id=case_id, dataset_id=dataset_id, input=input,
                        expected_output=expected_output, context=context,
                        metadata=metadata or {}, case_type=case_type)

    def get_test_cases(self, dataset_id: int) -> List[TestCase]:
        rows = self._fetchall(
            "SELECT * FROM test_cases WHERE dataset_id = ? ORDER BY id", (dataset_id,)
        )
        return [
            TestCase(
                id=r["id"], dataset_id=r["dataset_id"], input=r["input"],
                expected_output=r["expected_output"], context=_loads(r["context"]),
                metadata=json.loads(r["metadata"]), case_type=r["case_type"],
            )
            for r in rows
        ]

    # ── Tasks ──────────────────────────────────────────────────────────

    def create_task(
        self,
        project_id: int,
        name: str,
        agent_ids: List[int],
        dataset_ids: List[int],
        config: Optional[EvalConfig] = None,
        description: str = "",
    ) -> EvalTask:
        config = config or EvalConfig()
        task_id = self._insert(
            "INSERT INTO eval_tasks (project_id, name, description, agent_ids, "
            "dataset_ids, config, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (project_id, name, description, json.dumps(agent_ids),
             json.dumps(dataset_ids), json.dumps(config.to_dict()), _now()),
        )
        return self.get_task(task_id)  # type: ignore[return-value]

    def get_task(self, task_id: int) -> Optional[EvalTask]:
        row = self._fetchone("SELECT * FROM eval_tasks WHERE id = ?", (task_id,))
        if row is None:
            return None
        return EvalTask(
            id=row["id"], project_id=row["project_id"], name=row["name"],
            description=row["description"],
            agent_ids=json.loads(row["agent_ids"]),
            dataset_ids=json.loads(row["dataset_ids"]),
            config=EvalConfig.from_dict(json.loads(row["config"])),
            status=row["status"], progress=row["progress"],
            started_at=row["started_at"], completed_at=row["completed_at"],
        )

    def update_task(self, task_id: int, **fields: Any) -> None:
        """Merge the given fields into a task row."""
        if fields:
            self._update_task_where(task_id, (), fields)

    def transition_task(self, task_id: int, from_statuses: Tuple[str, ...], **fields: Any) -> bool:
        """Update a task only while its status is one of ``from_statuses``.

        The status check and the write happen in one statement, so a change
        made by another process in between is never overwritten.

        Returns:
            True if the row was updated.
        """
        if not from_statuses or not fields:
            raise ValueError("transition_task needs statuses and fields")
        return self._update_task_where(task_id, from_statuses, fields) > 0

    def _update_task_where(
        self, task_id: int, from_statuses: Tuple[str, ...], fields: Dict[str, Any],
    ) -> int:
        unknown = set(fields) - _TASK_COLUMNS
        if unknown:
            raise ValueError(f"Unknown task field(s): {sorted(unknown)}")
        values = []
        for key, value in fields.items():
            if key in _JSON_TASK_COLUMNS:
                value = json.dumps(value)
            elif key == "config":
                value = json.dumps(value.to_dict() if isinstance(value, EvalConfig) else value)
            values.append(value)
        assignments = ", ".join(f"{key} = ?" for key in fields)
        sql = f"UPDATE eval_tasks SET {assignments} WHERE id = ?"
        if from_statuses:
            sql += f" AND status IN ({', '.join('?' for _ in from_statuses)})"
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(sql, (*values, task_id, *from_statuses))
            conn.commit()
            return cursor.rowcount

    # ── Results & traces ───────────────────────────────────────────────

    def create_result(
        self,
        task_id: int,
        agent_id: int,
        dataset_id: int,
        test_case_id: int,
        actual_output: str,
        scores: EvalScores,
        latency_ms: int,
        token_usage: TokenUsage,
        cost_cents: int,
        error_message: Optional[str] = None,
    ) -> EvalResult:
        created_at = _now()
        result_id = self._insert(
            "INSERT INTO eval_results (task_id, agent_id, dataset_id, test_case_id, "
            "actual_output, passed, scores, latency_ms, token_usage, cost_cents, "
            "error_message, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (task_id, agent_id, dataset_id, test_case_id, actual_output,
             int(scores.passed), json.dumps(scores.to_dict()), latency_ms,
             json.dumps(asdict(token_usage)), cost_cents, error_message, created_at),
        )
        return EvalResult(
            id=result_id, task_id=task_id, agent_id=agent_id, dataset_id=dataset_id,
            test_case_id=test_case_id, actual_output=actual_output,
            passed=scores.passed, scores=scores, latency_ms=latency_ms,
            token_usage=token_usage, cost_cents=cost_cents,
            error_message=error_message, created_at=created_at,
        )

    def list_results(self, task_id: int, agent_id: Optional[int] = None) -> List[EvalResult]:
        if agent_id is None:
            rows = self._fetchall(
                "SELECT * FROM eval_results WHERE task_id = ? ORDER BY id", (task_id,)
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM eval_results WHERE task_id = ? AND agent_id = ? ORDER BY id",
                (task_id, agent_id),
            )
        return [
            EvalResult(
                id=r["id"], task_id=r["task_id"], agent_id=r["agent_id"],
                dataset_id=r["dataset_id"], test_case_id=r["test_case_id"],
                actual_output=r["actual_output"], passed=bool(r["passed"]),
                scores=EvalScores(**json.loads(r["scores"])),
                latency_ms=r["latency_ms"],
                token_usage=TokenUsage(**json.loads(r["token_usage"])),
                cost_cents=r["cost_cents"], error_message=r["error_message"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def create_trace(
        self,
        result_id: int,
        trace_data: Dict[str, Any],
        input: str = "",
        context: Optional[List[Dict[str, str]]] = None,
        retrieval_results: Optional[List[Dict[str, Any]]] = None,
        tool_calls: Optional[List[Dict[str, Any]]] = None,
        model_output: str = "",
        intermediate_steps: Optional[List[Dict[str, Any]]] = None,
        error_stack: Optional[str] = None,
        retry_count: int = 0,
    ) -> Trace:
        trace_id = self._insert(
            "INSERT INTO traces (result_id, trace_data, input, context, "
            "retrieval_results, tool_calls, model_output, intermediate_steps, "
            "error_stack, retry_count) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (result_id, json.dumps(trace_data, default=str), input, _dumps(context),
             _dumps(retrieval_results), _dumps(tool_calls), model_output,
             _dumps(intermediate_steps), error_stack, retry_count),
        )
        return Trace(
            id=trace_id, result_id=result_id, trace_data=trace_data, input=input,
            context=context, retrieval_results=retrieval_results,
            tool_calls=tool_calls, model_output=model_output,
            intermediate_steps=intermediate_steps, error_stack=error_stack,
            retry_count=retry_count,
        )

    def get_trace(self, result_id: int) -> Optional[Trace]:
        row = self._fetchone("SELECT * FROM traces WHERE result_id = ?", (result_id,))
        if row is None:
            return None
        return Trace(
            id=row["id"], result_id=row["result_id"],
            trace_data=json.loads(row["trace_data"]), input=row["input"],
            context=_loads(row["context"]),
            retrieval_results=_loads(row["retrieval_results"]),
            tool_calls=_loads(row["tool_calls"]), model_output=row["model_output"],
            intermediate_steps=_loads(row["intermediate_steps"]),
            error_stack=row["error_stack"], retry_count=row["retry_count"],
        )

    # ── Metrics & cost stats ───────────────────────────────────────────

    def create_metric(self, metric: EvalMetric) -> EvalMetric:
        """Persist an aggregated metric. The ``id`` of the argument is ignored."""
        values = [getattr(metric, name) for name in _METRIC_FIELDS]
        values[_METRIC_FIELDS.index("has_alert")] = int(metric.has_alert)
        metric_id = self._insert(
            f"INSERT INTO eval_metrics (task_id, agent_id, {', '.join(_METRIC_FIELDS)}) "
            f"VALUES ({', '.join('?' * (len(_METRIC_FIELDS) + 2))})",
            (metric.task_id, metric.agent_id, *values),
        )
        metric.id = metric_id
        return metric

    def _row_to_metric(self, row: sqlite3.Row) -> EvalMetric:
        data = {name: row[name] for name in _METRIC_FIELDS}
        data["has_alert"] = bool(data["has_alert"])
        return EvalMetric(id=row["id"], task_id=row["task_id"], agent_id=row["agent_id"], **data)

    def get_metric(self, task_id: int, agent_id: int) -> Optional[EvalMetric]:
        row = self._fetchone(
            "SELECT * FROM eval_metrics WHERE task_id = ? AND agent_id = ?",
            (task_id, agent_id),
        )
        return None if row is None else self._row_to_metric(row)

    def list_metrics(self, task_id: int) -> List[EvalMetric]:
        rows = self._fetchall(
            "SELECT * FROM eval_metrics WHERE task_id = ? ORDER BY id", (task_id,)
        )
        return [self._row_to_metric(r) for r in rows]

    def leaderboard(self, project_id: int, limit: int = 20) -> List[EvalMetric]:
        """Metrics across a project's tasks, best overall score first."""
        rows = self._fetchall(
            "SELECT m.* FROM eval_metrics m JOIN eval_tasks t ON t.id = m.task_id "
            "WHERE t.project_id = ? ORDER BY m.overall_score DESC, m.id LIMIT ?",
            (project_id, limit),
        )
        return [self._row_to_metric(r) for r in rows]

    def create_cost_stat(self, stat: CostStat) -> CostStat:
        stat_id = self._insert(
            f"INSERT INTO cost_stats (task_id, agent_id, {', '.join(_COST_FIELDS)}) "
            f"VALUES ({', '.join('?' * (len(_COST_FIELDS) + 2))})",
            (stat.task_id, stat.agent_id, *(getattr(stat, name) for name in _COST_FIELDS)),
        )
        stat.id = stat_id
        return stat

    def list_cost_stats(self, task_id: int) -> List[CostStat]:
        rows = self._fetchall(
            "SELECT * FROM cost_stats WHERE task_id = ? ORDER BY id", (task_id,)
        )
        return [
            CostStat(id=r["id"], task_id=r["task_id"], agent_id=r["agent_id"],
                     **{name: r[name] for name in _COST_FIELDS})
            for r in rows
        ]

    def __enter__(self) -> "EvalStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
