"""
parser.py - Turn a workflow JSON document into a Graph.

Layout understood (n8n export format):

    {
      "name": "...",
      "nodes": [{"id": "...", "name": "...", "type": "...", "parameters": {...}}],
      "connections": {
        "<source node name>": {
          "main": [[{"node": "<target name>", "type": "main", "index": 0}], [...]]
        }
      }
    }

Malformed input raises WorkflowParseError; nothing else escapes.
"""

from __future__ import annotations

import json
import logging
import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional

from .types import BRANCH_ERROR, BRANCH_MAIN, Edge, Graph, Node

logger = logging.getLogger(__name__)

# onError value that turns a node's second main output into an error output
ERROR_OUTPUT_MODE = "continueErrorOutput"


class WorkflowParseError(ValueError):
    """Raised when a workflow document cannot be turned into a Graph."""

    def __init__(self, reason: str, line: Optional[int] = None):
        self.reason = reason
        self.line = line
        msg = reason if line is None else f"{reason} (line {line})"
        super().__init__(msg)


def locate_node_lines(text: str, nodes: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Map node ids to the 1-based line of their ``"id"`` (or ``"name"``) key."""
    lines: Dict[str, int] = {}
    for raw in nodes:
        node_id = str(raw.get("id") or raw.get("name") or "")
        if not node_id:
            continue
        for key in ("id", "name"):
            value = raw.get(key)
            if not isinstance(value, str):
                continue
            pattern = re.compile(r'"%s"\s*:\s*%s' % (key, re.escape(json.dumps(value, ensure_ascii=False))))
            match = pattern.search(text)
            if match:
                lines[node_id] = text.count("\n", 0, match.start()) + 1
                break
    return lines


def _parse_node(raw: Any, position: int, lines: Dict[str, int]) -> Node:
    if not isinstance(raw, dict):
        raise WorkflowParseError(f"Node #{position} is not an object")
    node_type = raw.get("type")
    if not isinstance(node_type, str) or not node_type:
        raise WorkflowParseError(f"Node #{position} has no type")
    name = raw.get("name") if isinstance(raw.get("name"), str) else ""
    node_id = raw.get("id") if isinstance(raw.get("id"), str) and raw.get("id") else name
    if not node_id:
        raise WorkflowParseError(f"Node #{position} has neither id nor name")
    params = raw.get("parameters") or {}
    if not isinstance(params, dict):
        raise WorkflowParseError(f"Node '{node_id}' parameters must be an object")
    on_error = raw.get("onError") if isinstance(raw.get("onError"), str) else None
    return Node(
        id=node_id,
        type=node_type,
        name=name,
        params=MappingProxyType(dict(params)),
        line=lines.get(node_id),
        on_error=on_error,
    )


def _parse_edges(connections: Any, nodes_by_name: Dict[str, Node]) -> List[Edge]:
    if connections is None:
        return []
    if not isinstance(connections, dict):
        raise WorkflowParseError("'connections' must be an object")

    edges: List[Edge] = []
    for source_name, by_type in connections.items():
        source = nodes_by_name.get(source_name)
        if source is None:
            raise WorkflowParseError(f"Connection from unknown node '{source_name}'")
        if not isinstance(by_type, dict):
            raise WorkflowParseError(f"Connections of '{source_name}' must be an object")

        for conn_type, outputs in by_type.items():
            if not isinstance(outputs, list):
                raise WorkflowParseError(
                    f"Connections '{conn_type}' of '{source_name}' must be a list"
                )
            for index, targets in enumerate(outputs):
                if targets is None:
                    continue
                if not isinstance(targets, list):
                    raise WorkflowParseError(
                        f"Output {index} of '{source_name}' must be a list of targets"
                    )
                for target in targets:
                    if not isinstance(target, dict) or not isinstance(target.get("node"), str):
                        raise WorkflowParseError(
                            f"Malformed connection target from '{source_name}'"
                        )
                    target_node = nodes_by_name.get(target["node"])
                    if target_node is None:
                        raise WorkflowParseError(
                            f"Connection from '{source_name}' to unknown node '{target['node']}'"
                        )
                    branch = conn_type or BRANCH_MAIN
                    if (
                        conn_type == BRANCH_MAIN
                        and source.on_error == ERROR_OUTPUT_MODE
                        and index == 1
                    ):
                        branch = BRANCH_ERROR
                    edges.append(Edge(source.id, target_node.id, branch, index))
    return edges


def parse_workflow(text: str) -> Graph:
    """Parse workflow JSON text into a Graph.

    Raises:
        WorkflowParseError: If the text is not valid JSON or not a workflow.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise WorkflowParseError(f"Invalid JSON: {e.msg}", line=e.lineno)
    except RecursionError:
        raise WorkflowParseError("Invalid JSON: document is nested too deeply")

    if not isinstance(data, dict):
        raise WorkflowParseError("Workflow document must be a JSON object")
    raw_nodes = data.get("nodes")
    if not isinstance(raw_nodes, list):
        raise WorkflowParseError("Workflow document has no 'nodes' list")

    lines = locate_node_lines(text, [n for n in raw_nodes if isinstance(n, dict)])
    nodes = [_parse_node(raw, i, lines) for i, raw in enumerate(raw_nodes)]

    nodes_by_name: Dict[str, Node] = {}
    for node in nodes:
        if node.name:
            nodes_by_name.setdefault(node.name, node)

    edges = _parse_edges(data.get("connections"), nodes_by_name)
    name = data.get("name") if isinstance(data.get("name"), str) else None

    logger.debug("Parsed workflow %r: %d nodes, %d edges", name, len(nodes), len(edges))
    return Graph(nodes=tuple(nodes), edges=tuple(edges), name=name)
