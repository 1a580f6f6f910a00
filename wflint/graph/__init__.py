# wflint/graph package
# Workflow graph model and the JSON parser that produces it.

from .parser import WorkflowParseError, locate_node_lines, parse_workflow
from .types import BRANCH_ERROR, BRANCH_MAIN, Edge, Graph, Node

__all__ = [
    "BRANCH_ERROR",
    "BRANCH_MAIN",
    "Edge",
    "Graph",
    "Node",
    "WorkflowParseError",
    "locate_node_lines",
    "parse_workflow",
]
