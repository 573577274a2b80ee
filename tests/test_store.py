"""Tests for the SQLite evaluation store."""

import sqlite3

import pytest

from agentassay.models import CostStat, EvalConfig, EvalMetric, EvalScores, TokenUsage


def _seed(store):
    project = store.create_project("proj")
    agent = store.create_agent(project.id, "bot", "custom", api_endpoint="http://bot",
                               model_params={"model_id": "m1"})
    dataset = store.create_dataset(project.id, "faq", "accuracy")
    case = store.create_test_case(dataset.id, "hi", expected_output="hello")
    task = store.create_task(project.id, "t", [agent.id], [dataset.id])
    return project, agent, dataset, case, task


def _result(store, task, agent, dataset, case, **kw):
    defaults = dict(
        task_id=task.id, agent_id=agent.id, dataset_id=dataset.id, test_case_id=case.id,
        actual_output="hello", scores=EvalScores(passed=True, accuracy=90),
        latency_ms=100, token_usage=TokenUsage(10, 5, 15), cost_cents=3,
    )
    defaults.update(kw)
    return store.create_result(**defaults)


class TestProjectsAndAgents:
    def test_project_round_trip(self, store):
        project = store.create_project("proj", description="d")
        loaded = store.get_project(project.id)
        assert loaded.name == "proj"
        assert loaded.description == "d"
        assert store.get_project(999) is None

    def test_agent_round_trip(self, store):
        project = store.create_project("proj")
        agent = store.create_agent(
            project.id, "bot", "dify", api_endpoint="http://dify",
            encrypted_api_key="aa:bb", model_params={"model_id": "m1", "temperature": 0.1},
            is_baseline=True,
        )
        loaded = store.get_agent(agent.id)
        assert loaded.type == "dify"
        assert loaded.encrypted_api_key == "aa:bb"
        assert loaded.model_params["temperature"] == 0.1
        assert loaded.model_id == "m1"
        assert loaded.is_baseline is True
        assert store.get_agent(999) is None

    def test_pricing_lookup(self, store):
        project = store.create_project("proj")
        store.create_pricing(project.id, "m1", 1000, 2000)
        pricing = store.get_pricing(project.id, "m1")
        assert pricing.input_price_per_million == 1000
        assert pricing.model_name == "m1"
        assert store.get_pricing(project.id, "other") is None

    def test_pricing_unique_per_model(self, store):
        project = store.create_project("proj")
        store.create_pricing(project.id, "m1", 1000, 2000)
        with pytest.raises(sqlite3.IntegrityError):
            store.create_pricing(project.id, "m1", 1, 1)


class TestDatasets:
    def test_cases_in_insertion_order(self, store):
        project = store.create_project("proj")
        dataset = store.create_dataset(project.id, "faq", "rag")
        for text in ("a", "b", "c"):
            store.create_test_case(dataset.id, text,
                                   context=[{"role": "system", "content": "x"}])
        cases = store.get_test_cases(dataset.id)
        assert [c.input for c in cases] == ["a", "b", "c"]
        assert cases[0].context == [{"role": "system", "content": "x"}]
        assert store.get_dataset(dataset.id).case_count == 3


class TestTasks:
    def test_create_defaults(self, store):
        _, agent, dataset, _, task = _seed(store)
        assert task.status == "pending"
        assert task.progress == 0
        assert task.agent_ids == [agent.id]
        assert task.dataset_ids == [dataset.id]
        assert task.config == EvalConfig()

    def test_update_task(self, store):
        *_, task = _seed(store)
        store.update_task(task.id, status="running", progress=40, started_at="2026-01-01")
        loaded = store.get_task(task.id)
        assert loaded.status == "running"
        assert loaded.progress == 40
        assert loaded.started_at == "2026-01-01"

    def test_update_unknown_field(self, store):
        *_, task = _seed(store)
        with pytest.raises(ValueError, match="Unknown task field"):
            store.update_task(task.id, colour="red")

    def test_transition_task(self, store):
        *_, task = _seed(store)
        assert store.transition_task(task.id, ("pending",), status="running") is True
        assert store.transition_task(task.id, ("pending",), status="failed") is False
        assert store.get_task(task.id).status == "running"

    def test_transition_does_not_overwrite_cancel(self, store):
        *_, task = _seed(store)
        store.update_task(task.id, status="cancelled")
        done = store.transition_task(task.id, ("running",), status="completed", progress=100)
        assert done is False
        loaded = store.get_task(task.id)
        assert loaded.status == "cancelled"
        assert loaded.progress == 0

    def test_transition_requires_statuses(self, store):
        *_, task = _seed(store)
        with pytest.raises(ValueError):
            store.transition_task(task.id, (), status="running")

    def test_get_missing(self, store):
        assert store.get_task(42) is None


class TestResults:
    def test_result_round_trip(self, store):
        _, agent, dataset, case, task = _seed(store)
        created = _result(store, task, agent, dataset, case)
        results = store.list_results(task.id)
        assert len(results) == 1
        r = results[0]
        assert r.id == created.id
        assert r.passed is True
        assert r.scores.accuracy == 90
        assert r.token_usage.total_tokens == 15
        assert r.cost_cents == 3

    def test_result_unique_per_case(self, store):
        _, agent, dataset, case, task = _seed(store)
        _result(store, task, agent, dataset, case)
        with pytest.raises(sqlite3.IntegrityError):
            _result(store, task, agent, dataset, case)

    def test_filter_by_agent(self, store):
        _, agent, dataset, case, task = _seed(store)
        _result(store, task, agent, dataset, case)
        assert store.list_results(task.id, agent_id=agent.id)
        assert store.list_results(task.id, agent_id=agent.id + 1) == []

    def test_trace_round_trip(self, store):
        _, agent, dataset, case, task = _seed(store)
        result = _result(store, task, agent, dataset, case)
        store.create_trace(result.id, {"k": "v"}, input="hi", model_output="hello",
                           tool_calls=[{"name": "search"}])
        trace = store.get_trace(result.id)
        assert trace.trace_data == {"k": "v"}
        assert trace.tool_calls == [{"name": "search"}]
        assert trace.retry_count == 0
        assert store.get_trace(999) is None


class TestMetrics:
    def test_metric_round_trip(self, store):
        _, agent, _, _, task = _seed(store)
        store.create_metric(EvalMetric(id=0, task_id=task.id, agent_id=agent.id,
                                       accuracy=80, overall_score=75, baseline_diff=-5.0,
                                       has_alert=True, alert_message="drop"))
        metric = store.get_metric(task.id, agent.id)
        assert metric.accuracy == 80
        assert metric.baseline_diff == -5.0
        assert metric.has_alert is True
        assert store.list_metrics(task.id) == [metric]

    def test_one_metric_per_agent(self, store):
        _, agent, _, _, task = _seed(store)
        store.create_metric(EvalMetric(id=0, task_id=task.id, agent_id=agent.id))
        with pytest.raises(sqlite3.IntegrityError):
            store.create_metric(EvalMetric(id=0, task_id=task.id, agent_id=agent.id))

    def test_leaderboard_order(self, store):
        project, agent, dataset, _, task = _seed(store)
        other = store.create_agent(project.id, "bot2", "custom")
        store.create_metric(EvalMetric(id=0, task_id=task.id, agent_id=agent.id, overall_score=60))
        store.create_metric(EvalMetric(id=0, task_id=task.id, agent_id=other.id, overall_score=90))
        board = store.leaderboard(project.id)
        assert [m.agent_id for m in board] == [other.id, agent.id]
        assert store.leaderboard(project.id, limit=1)[0].overall_score == 90

    def test_cost_stat_round_trip(self, store):
        _, agent, _, _, task = _seed(store)
        store.create_cost_stat(CostStat(id=0, task_id=task.id, agent_id=agent.id,
                                        total_calls=2, total_cost_cents=1000,
                                        suggested_price=1300))
        stats = store.list_cost_stats(task.id)
        assert stats[0].total_calls == 2
        assert stats[0].suggested_price == 1300


class TestLifecycle:
    def test_context_manager(self, tmp_path):
        from agentassay.store import EvalStore

        with EvalStore(tmp_path / "x.db") as s:
            s.create_project("p")
        assert s._conn is None
