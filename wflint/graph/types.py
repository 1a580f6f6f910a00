"""
types.py - Read-only node/edge graph of a workflow document.

Checks receive a Graph and must never mutate it; every type here is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Branch discriminators
BRANCH_MAIN = "main"
BRANCH_ERROR = "error"


@dataclass(frozen=True)
class Node:
    """A typed workflow node."""
    id: str
    type: str
    name: str
    params: Mapping[str, Any] = field(default_factory=dict)
    line: Optional[int] = None
    on_error: Optional[str] = None

    @property
    def label(self) -> str:
        """Name if present, otherwise type (used in messages)."""
        return self.name or self.type

    @property
    def type_lower(self) -> str:
        return self.type.lower()


@dataclass(frozen=True)
class Edge:
    """A directed connection between two nodes.

    ``branch`` is ``"error"`` for a node's error output, otherwise the
    connection type (``"main"``, ``"ai_languageModel"``, ...).
    """
    source: str
    target: str
    branch: str = BRANCH_MAIN
    output_index: int = 0

    @property
    def is_error(self) -> bool:
        return self.branch == BRANCH_ERROR


@dataclass(frozen=True)
class Graph:
    """Parsed workflow graph."""
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    name: Optional[str] = None

    def node_by_id(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_by_name(self, name: str) -> Optional[Node]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def outgoing(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def successors(self, node_id: str) -> List[Node]:
        """Distinct downstream nodes, in edge order."""
        seen: List[str] = []
        for edge in self.outgoing(node_id):
            if edge.target not in seen:
                seen.append(edge.target)
        return [n for n in (self.node_by_id(i) for i in seen) if n is not None]

    def roots(self) -> List[Node]:
        """Nodes with no incoming edges."""
        targets = {e.target for e in self.edges}
        return [n for n in self.nodes if n.id not in targets]

    def terminals(self) -> List[Node]:
        """Nodes with no outgoing edges, excluding sticky notes."""
        sources = {e.source for e in self.edges}
        return [
            n for n in self.nodes
            if n.id not in sources and "stickynote" not in n.type_lower
        ]

    def node_lines(self) -> Dict[str, int]:
        return {n.id: n.line for n in self.nodes if n.line is not None}
