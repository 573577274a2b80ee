"""CLI entry point for AgentAssay."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

import click

from agentassay import __version__
from agentassay.adapters import create_adapter_for_agent
from agentassay.config import Settings
from agentassay.crypto import AesSecretProvider, SecretError, SecretProvider
from agentassay.engine import EvaluationEngine, TaskStateError, cancel_task
from agentassay.loader import LoadError, load_workspace
from agentassay.models import EvalMetric
from agentassay.progress import ProgressReporter
from agentassay.store import EvalStore

DB_OPTION = click.option(
    "--db", default="agentassay.db", show_default=True, help="SQLite database path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="agentassay")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """AgentAssay: evaluation engine for AI agents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _secrets(settings: Settings) -> Optional[SecretProvider]:
    if not settings.encryption_key:
        return None
    return AesSecretProvider(settings.encryption_key)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@cli.command()
@click.argument("workspace", type=click.Path(exists=True, dir_okay=False))
@DB_OPTION
def load(workspace: str, db: str) -> None:
    """Import a YAML workspace (project, agents, datasets, tasks)."""
    settings = Settings.from_env()
    with EvalStore(db) as store:
        try:
            loaded = load_workspace(workspace, store, _secrets(settings))
        except LoadError as e:
            _fail(f"loading workspace: {e}")
            return

    click.echo(f"Project {loaded.project.id}: {loaded.project.name}")
    for label, ids in (("Agents", loaded.agents), ("Datasets", loaded.datasets),
                       ("Tasks", loaded.tasks)):
        if ids:
            click.echo(f"{label}: " + ", ".join(f"{name}={i}" for name, i in ids.items()))


@cli.command()
@click.argument("task_id", type=int)
@DB_OPTION
@click.option("--progress/--no-progress", "show_progress", default=True, show_default=True,
              help="Show a progress bar.")
def run(task_id: int, db: str, show_progress: bool) -> None:
    """Run a pending evaluation task and wait for it to finish."""
    settings = Settings.from_env()
    reporter = ProgressReporter()

    with EvalStore(db) as store:
        engine = EvaluationEngine(
            store, settings, secrets=_secrets(settings), on_progress=reporter.update,
        )
        if show_progress:
            reporter.start(f"Task {task_id}")
        try:
            outcome = asyncio.run(engine.run(task_id))
        except TaskStateError as e:
            _fail(str(e))
            return
        except (SecretError, ValueError) as e:
            _fail(f"task {task_id} failed: {e}")
            return
        finally:
            reporter.finish()

        if outcome.cancelled:
            click.echo(f"Task {task_id} was cancelled.")
            return
        click.echo(f"Task {task_id} completed: {outcome.completed} cases evaluated, "
                   f"{outcome.failed} failed.")
        _print_metrics(store.list_metrics(task_id))


@cli.command()
@click.argument("task_id", type=int)
@DB_OPTION
def status(task_id: int, db: str) -> None:
    """Show a task's status and progress."""
    with EvalStore(db) as store:
        task = store.get_task(task_id)
    if task is None:
        _fail(f"Task {task_id} not found.")
        return
    click.echo(f"Task {task.id}: {task.name}")
    click.echo(f"Status: {task.status}  Progress: {task.progress}%")
    if task.started_at:
        click.echo(f"Started: {task.started_at[:19]}")
    if task.completed_at:
        click.echo(f"Completed: {task.completed_at[:19]}")


@cli.command()
@click.argument("task_id", type=int)
@DB_OPTION
def cancel(task_id: int, db: str) -> None:
    """Cancel a pending or running task."""
    with EvalStore(db) as store:
        try:
            cancel_task(store, task_id)
        except TaskStateError as e:
            _fail(str(e))
            return
    click.echo(f"Task {task_id} cancelled.")


@cli.command()
@click.argument("task_id", type=int)
@DB_OPTION
@click.option("--agent", "agent_id", type=int, default=None, help="Only show one agent.")
@click.option("--verbose", "-v", is_flag=True, help="Show outputs and errors.")
def results(task_id: int, db: str, agent_id: Optional[int], verbose: bool) -> None:
    """List per-case results of a task."""
    with EvalStore(db) as store:
        rows = store.list_results(task_id, agent_id)

    if not rows:
        click.echo("No results found.")
        return

    click.echo(f"\n{'Case':<8} {'Agent':<8} {'Status':<8} {'Acc':>5} {'Sec':>5} "
               f"{'Latency':>9} {'Cost':>6}")
    click.echo("-" * 56)
    for r in rows:
        label = click.style("PASS", fg="green") if r.passed else click.style("FAIL", fg="red")
        click.echo(
            f"{r.test_case_id:<8} {r.agent_id:<8} {label}     {r.scores.accuracy:>5} "
            f"{r.scores.security_score:>5} {r.latency_ms:>7}ms {r.cost_cents:>6}"
        )
        if verbose:
            if r.error_message:
                click.echo(f"         error: {r.error_message}")
            else:
                click.echo(f"         output: {r.actual_output[:120]}")
    passed = sum(1 for r in rows if r.passed)
    click.echo(f"\nTotal: {len(rows)}  Passed: {passed}  Failed: {len(rows) - passed}")
    click.echo()


def _print_metrics(metrics: List[EvalMetric]) -> None:
    if not metrics:
        click.echo("No metrics found.")
        return
    click.echo(f"\n{'Agent':<8} {'Overall':>8} {'Acc':>5} {'Sec':>5} {'Tools':>6} "
               f"{'P50':>7} {'P95':>7} {'RPM':>6} {'Baseline':>9}")
    click.echo("-" * 68)
    for m in metrics:
        click.echo(
            f"{m.agent_id:<8} {m.overall_score:>8} {m.accuracy:>5} {m.security_score:>5} "
            f"{m.tool_calling_accuracy:>6} {m.latency_p50:>5}ms {m.latency_p95:>5}ms "
            f"{m.throughput:>6} {m.baseline_diff:>+9.1f}"
        )
    for m in metrics:
        if m.has_alert:
            click.echo(click.style(f"\n⚠ Agent {m.agent_id}: {m.alert_message}", fg="red", bold=True))
    click.echo()


@cli.command()
@click.argument("task_id", type=int)
@DB_OPTION
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table",
              show_default=True, help="Output format.")
def metrics(task_id: int, db: str, fmt: str) -> None:
    """Show aggregated per-agent metrics and cost stats of a task."""
    with EvalStore(db) as store:
        task_metrics = store.list_metrics(task_id)
        cost_stats = store.list_cost_stats(task_id)

    if fmt == "json":
        click.echo(json.dumps({
            "metrics": [asdict(m) for m in task_metrics],
            "cost_stats": [asdict(c) for c in cost_stats],
        }, indent=2))
        return

    _print_metrics(task_metrics)
    if cost_stats:
        click.echo(f"{'Agent':<8} {'Calls':>6} {'In tok':>9} {'Out tok':>9} "
                   f"{'Cost':>8} {'Avg':>6} {'Price':>8}")
        click.echo("-" * 60)
        for c in cost_stats:
            click.echo(
                f"{c.agent_id:<8} {c.total_calls:>6} {c.total_input_tokens:>9} "
                f"{c.total_output_tokens:>9} {c.total_cost_cents:>8} "
                f"{c.avg_cost_per_call:>6} {c.suggested_price:>8}"
            )
        click.echo()


@cli.command()
@click.argument("project_id", type=int)
@DB_OPTION
@click.option("--limit", default=20, show_default=True, help="Max number of entries.")
def leaderboard(project_id: int, db: str, limit: int) -> None:
    """Rank agents of a project by overall score."""
    if limit <= 0:
        _fail("--limit must be positive.")
        return

    with EvalStore(db) as store:
        entries = store.leaderboard(project_id, limit)
        names = {}
        for m in entries:
            if m.agent_id not in names:
                agent = store.get_agent(m.agent_id)
                names[m.agent_id] = agent.name if agent else str(m.agent_id)

    if not entries:
        click.echo("No metrics found.")
        return

    click.echo(f"\n{'#':<4} {'Agent':<24} {'Task':<6} {'Overall':>8} {'Acc':>5}")
    click.echo("-" * 52)
    for rank, m in enumerate(entries, 1):
        click.echo(f"{rank:<4} {names[m.agent_id]:<24} {m.task_id:<6} "
                   f"{m.overall_score:>8} {m.accuracy:>5}")
    click.echo()


@cli.command()
@click.argument("agent_id", type=int)
@DB_OPTION
def health(agent_id: int, db: str) -> None:
    """Check that an agent's platform endpoint is reachable."""
    settings = Settings.from_env()
    with EvalStore(db) as store:
        agent = store.get_agent(agent_id)
    if agent is None:
        _fail(f"Agent {agent_id} not found.")
        return

    try:
        adapter = create_adapter_for_agent(agent, settings, _secrets(settings))
    except (SecretError, ValueError) as e:
        _fail(str(e))
        return

    if asyncio.run(adapter.health_check()):
        click.echo(click.style(f"Agent {agent.name} ({agent.type}) is healthy.", fg="green"))
    else:
        click.echo(click.style(f"Agent {agent.name} ({agent.type}) is unreachable.", fg="red"))
        sys.exit(1)


@cli.command("encrypt-key")
@click.option("--api-key", prompt=True, hide_input=True, help="Plain API key to encrypt.")
def encrypt_key(api_key: str) -> None:
    """Encrypt an API key with the configured encryption key."""
    settings = Settings.from_env()
    try:
        provider = AesSecretProvider(settings.encryption_key)
    except SecretError as e:
        _fail(str(e))
        return
    click.echo(provider.encrypt(api_key))
