"""YAML workspace loader for AgentAssay.

A workspace file declares one project together with its model pricing,
agents, datasets (with their cases) and evaluation tasks. Agents, datasets
and tasks reference each other by ``name``; the loader maps names to the ids
the store assigns.

Example::

    project:
      name: support-bot
    pricing:
      - model_id: ernie-4.0
        input_price_per_million: 12000
        output_price_per_million: 12000
    agents:
      - name: bot-v1
        type: dify
        api_endpoint: https://dify.example.com/v1
        api_key: app-xxxx
        model_params: {model_id: ernie-4.0}
        baseline: true
    datasets:
      - name: faq
        type: accuracy
        cases:
          - input: How do I reset my password?
            expected_output: Use the reset link on the login page.
    tasks:
      - name: nightly
        agents: [bot-v1]
        datasets: [faq]
        config:
          dimensions: [accuracy, security]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from agentassay.crypto import SecretProvider
from agentassay.models import CASE_TYPES, DATASET_TYPES, EvalConfig, Project
from agentassay.store import EvalStore

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """Raised when a workspace file cannot be loaded or is invalid."""


@dataclass
class Workspace:
    """Ids created by ``load_workspace``, keyed by the names in the file."""
    project: Project
    agents: Dict[str, int] = field(default_factory=dict)
    datasets: Dict[str, int] = field(default_factory=dict)
    tasks: Dict[str, int] = field(default_factory=dict)


def _read_yaml(path: str) -> Dict[str, Any]:
    filepath = Path(path)
    if not filepath.exists():
        raise LoadError(f"Workspace file not found: {path}")

    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(f"Workspace file must contain a YAML mapping, got {type(data).__name__}")
    return data


def _require(item: Dict[str, Any], key: str, where: str) -> Any:
    if key not in item:
        raise LoadError(f"{where} missing required field: '{key}'")
    return item[key]


def _mapping_list(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = data.get(key) or []
    if not isinstance(items, list):
        raise LoadError(f"'{key}' must be a list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise LoadError(f"{key}[{i}] must be a mapping")
    return items


def _resolve(names: Any, known: Dict[str, int], kind: str, where: str) -> List[int]:
    if not isinstance(names, list) or not names:
        raise LoadError(f"{where} '{kind}s' must be a non-empty list")
    ids = []
    seen = set()
    for name in names:
        if name not in known:
            raise LoadError(f"{where} references unknown {kind} '{name}'")
        if name in seen:
            raise LoadError(f"{where} lists {kind} '{name}' more than once")
        seen.add(name)
        ids.append(known[name])
    return ids


def _price_row(row: Dict[str, Any], index: int) -> Tuple[str, int, int]:
    model_id = _require(row, "model_id", f"Pricing {index}")
    prices = []
    for key in ("input_price_per_million", "output_price_per_million"):
        try:
            price = int(row.get(key, 0))
        except (TypeError, ValueError) as e:
            raise LoadError(
                f"Pricing '{model_id}' has non-numeric {key}: {row.get(key)!r}"
            ) from e
        if price < 0:
            raise LoadError(f"Pricing '{model_id}' has negative {key}")
        prices.append(price)
    return model_id, prices[0], prices[1]


def load_workspace(
    path: str,
    store: EvalStore,
    secrets: Optional[SecretProvider] = None,
) -> Workspace:
    """Import a workspace YAML file into the store.

    Args:
        path: Path to the YAML file.
        store: Destination store.
        secrets: Used to encrypt agent ``api_key`` values before storage.

    Returns:
        The created project and name-to-id maps.

    Raises:
        LoadError: If the file is missing, invalid YAML, or fails validation.
    """
    data = _read_yaml(path)

    project_data = _require(data, "project", "Workspace")
    if not isinstance(project_data, dict):
        raise LoadError("'project' must be a mapping")
    pricing_rows = _mapping_list(data, "pricing")
    agents = _mapping_list(data, "agents")
    datasets = _mapping_list(data, "datasets")
    tasks = _mapping_list(data, "tasks")

    # Validate everything before the first write.
    prices = [_price_row(row, i) for i, row in enumerate(pricing_rows)]
    model_ids = [model_id for model_id, _, _ in prices]
    for model_id in model_ids:
        if model_ids.count(model_id) > 1:
            raise LoadError(f"Pricing for model '{model_id}' is declared more than once")
    for i, agent in enumerate(agents):
        _require(agent, "name", f"Agent {i}")
        _require(agent, "type", f"Agent {i}")
        if agent.get("api_key") and secrets is None:
            raise LoadError(
                f"Agent '{agent['name']}' has an api_key but no encryption key is configured"
            )
    for i, ds in enumerate(datasets):
        _require(ds, "name", f"Dataset {i}")
        ds_type = _require(ds, "type", f"Dataset {i}")
        if ds_type not in DATASET_TYPES:
            raise LoadError(
                f"Dataset '{ds['name']}' has invalid type '{ds_type}'. "
                f"Valid types: {', '.join(DATASET_TYPES)}"
            )
        cases = ds.get("cases") or []
        if not isinstance(cases, list):
            raise LoadError(f"Dataset '{ds['name']}' 'cases' must be a list")
        for j, case in enumerate(cases):
            if not isinstance(case, dict):
                raise LoadError(f"Dataset '{ds['name']}' case {j} must be a mapping")
            _require(case, "input", f"Dataset '{ds['name']}' case {j}")
            case_type = case.get("case_type", "single_turn")
            if case_type not in CASE_TYPES:
                raise LoadError(
                    f"Dataset '{ds['name']}' case {j} has invalid case_type '{case_type}'"
                )
    agent_names = {agent["name"]: 0 for agent in agents}
    dataset_names = {ds["name"]: 0 for ds in datasets}
    task_configs = []
    for i, task in enumerate(tasks):
        _require(task, "name", f"Task {i}")
        where = f"Task '{task['name']}'"
        _resolve(task.get("agents"), agent_names, "agent", where)
        _resolve(task.get("datasets"), dataset_names, "dataset", where)
        try:
            task_configs.append(EvalConfig.from_dict(task.get("config")))
        except (TypeError, ValueError) as e:
            raise LoadError(f"Task '{task['name']}' has invalid config: {e}") from e

    project = store.create_project(
        name=_require(project_data, "name", "Project"),
        description=project_data.get("description", ""),
    )
    workspace = Workspace(project=project)

    for pricing, (model_id, input_price, output_price) in zip(pricing_rows, prices):
        store.create_pricing(
            project.id,
            model_id,
            input_price,
            output_price,
            model_name=pricing.get("model_name", ""),
            currency=pricing.get("currency", "CNY"),
        )

    for agent in agents:
        api_key = agent.get("api_key")
        created = store.create_agent(
            project.id,
            agent["name"],
            agent["type"],
            version=str(agent.get("version", "1")),
            api_endpoint=agent.get("api_endpoint", ""),
            encrypted_api_key=secrets.encrypt(api_key) if api_key and secrets else None,
            model_params=agent.get("model_params") or {},
            config_snapshot=agent.get("config") or {},
            is_baseline=bool(agent.get("baseline", False)),
        )
        workspace.agents[agent["name"]] = created.id

    for ds in datasets:
        created = store.create_dataset(
            project.id, ds["name"], ds["type"],
            version=str(ds.get("version", "1")),
            description=ds.get("description", ""),
        )
        for case in ds.get("cases") or []:
            store.create_test_case(
                created.id,
                case["input"],
                expected_output=case.get("expected_output"),
                context=case.get("context"),
                metadata=case.get("metadata"),
                case_type=case.get("case_type", "single_turn"),
            )
        workspace.datasets[ds["name"]] = created.id

    for task, config in zip(tasks, task_configs):
        where = f"Task '{task['name']}'"
        created = store.create_task(
            project.id,
            task["name"],
            _resolve(task.get("agents"), workspace.agents, "agent", where),
            _resolve(task.get("datasets"), workspace.datasets, "dataset", where),
            config=config,
            description=task.get("description", ""),
        )
        workspace.tasks[task["name"]] = created.id

    logger.info(
        "Loaded workspace %s: project %s, %d agents, %d datasets, %d tasks",
        path, project.id, len(workspace.agents), len(workspace.datasets), len(workspace.tasks),
    )
    return workspace
