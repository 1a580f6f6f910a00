"""
Test fixtures and utilities for wflint tests.

Provides workflow document builders, a clean project on disk, and isolation
from WFLINT_* environment variables and the cached lint.yaml.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
import yaml

from wflint.config.runtime_config import reset_config
from wflint.validator.registry import CheckRegistry

BASE_URL = "{{ORGSECRET_N8N_BASE_URL_TERCESORG}}"
VALID_SETTINGS = {
    "errorWorkflow": "{{ORGSECRET_ERROR_WORKFLOW_ID_TERCESORG}}",
    "executionOrder": "v1",
}

WEBHOOK = "n8n-nodes-base.webhook"
SCHEDULE = "n8n-nodes-base.scheduleTrigger"
SUBWORKFLOW_TRIGGER = "n8n-nodes-base.executeWorkflowTrigger"
CODIKA = "n8n-nodes-codika.codika"
HTTP_REQUEST = "n8n-nodes-base.httpRequest"
SET_NODE = "n8n-nodes-base.set"


# ============================================================================
# Workflow builders
# ============================================================================


def make_node(name: str, node_type: str, params: Optional[Dict[str, Any]] = None, **extra) -> Dict[str, Any]:
    """Build a raw workflow node; id defaults to a slug of the name."""
    node = {
        "id": extra.pop("id", name.lower().replace(" ", "-")),
        "name": name,
        "type": node_type,
        "typeVersion": 1,
        "position": [0, 0],
        "parameters": params or {},
    }
    node.update(extra)
    return node


def webhook_node(name: str = "Webhook", path: str = "demo/main", **extra) -> Dict[str, Any]:
    extra.setdefault("webhookId", name.lower().replace(" ", "-"))
    return make_node(name, WEBHOOK, {"path": path, "httpMethod": "POST"}, **extra)


def codika_node(name: str, operation: str, **extra) -> Dict[str, Any]:
    return make_node(name, CODIKA, {"operation": operation}, **extra)


def connect(*links: Tuple[str, str], error_links: Tuple[Tuple[str, str], ...] = ()) -> Dict[str, Any]:
    """Build an n8n connections mapping.

    ``links`` go to output 0 of the source; ``error_links`` to output 1.
    """
    connections: Dict[str, Any] = {}
    for source, target in links:
        outputs = connections.setdefault(source, {}).setdefault("main", [[]])
        outputs[0].append({"node": target, "type": "main", "index": 0})
    for source, target in error_links:
        outputs = connections.setdefault(source, {}).setdefault("main", [[]])
        while len(outputs) < 2:
            outputs.append([])
        outputs[1].append({"node": target, "type": "main", "index": 0})
    return connections


def make_workflow(
    nodes: List[Dict[str, Any]],
    connections: Optional[Dict[str, Any]] = None,
    name: str = "Demo",
    settings: Optional[Dict[str, Any]] = None,
    **top_level,
) -> Dict[str, Any]:
    workflow = {
        "name": name,
        "nodes": nodes,
        "connections": connections or {},
        "settings": dict(VALID_SETTINGS) if settings is None else settings,
    }
    workflow.update(top_level)
    return workflow


def clean_workflow(path: str = "demo/main") -> Dict[str, Any]:
    """Webhook -> Init -> Submit Result: passes every built-in workflow check."""
    return make_workflow(
        [
            webhook_node(path=path),
            codika_node("Init", "initWorkflow"),
            codika_node("Submit", "submitResult"),
        ],
        connect(("Webhook", "Init"), ("Init", "Submit")),
    )


def subworkflow(inputs: int = 1) -> Dict[str, Any]:
    """Execute Workflow Trigger -> Set, with ``inputs`` declared parameters."""
    values = [{"name": f"input{i}", "type": "string"} for i in range(inputs)]
    return make_workflow(
        [
            make_node("Start", SUBWORKFLOW_TRIGGER, {"workflowInputs": {"values": values}}),
            make_node("Shape", SET_NODE),
        ],
        connect(("Start", "Shape")),
    )


def write_workflow(path: Path, workflow: Dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(workflow, indent=2) + "\n", encoding="utf-8")
    return path


def write_config(folder: Path, config: Dict[str, Any]) -> Path:
    path = folder / "config.yaml"
    path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return path


def http_trigger(template_id: str, path: str) -> Dict[str, Any]:
    return {
        "trigger_id": f"{template_id}-http",
        "type": "http",
        "url": f"{BASE_URL}/webhook/{path}",
    }


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Ignore WFLINT_* variables from the caller's environment."""
    for var in ("WFLINT_CONFIG_FILE", "WFLINT_WORKFLOWS_DIR", "WFLINT_WORKFLOW_SUFFIX", "WFLINT_STRICT"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    CheckRegistry.reset_instance()
    yield
    reset_config()
    CheckRegistry.reset_instance()


@pytest.fixture
def workflow_file(tmp_path):
    """Factory writing a workflow dict to tmp_path/<name>.json."""
    def _write(workflow: Dict[str, Any], name: str = "workflow.json") -> Path:
        return write_workflow(tmp_path / name, workflow)
    return _write


@pytest.fixture
def project(tmp_path) -> Path:
    """A clean project: one http-triggered workflow, consistent config."""
    folder = tmp_path / "demo"
    write_workflow(folder / "workflows" / "main.json", clean_workflow("demo/main"))
    write_config(
        folder,
        {
            "project_id": "demo",
            "workflow_files": ["workflows/main.json"],
            "workflows": [
                {
                    "workflow_template_id": "main",
                    "workflow_name": "Main",
                    "triggers": [http_trigger("main", "demo/main")],
                }
            ],
        },
    )
    return folder
