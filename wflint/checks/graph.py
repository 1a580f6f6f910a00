"""
graph.py - Built-in checks over the parsed workflow graph.

Each check is a GraphCheck: func(graph, context) -> list of Finding.
Order of GRAPH_CHECKS is execution order.
"""

from __future__ import annotations

import re
from typing import List, Optional

from wflint.graph import Graph, Node
from wflint.validator.findings import Finding
from wflint.validator.registry import CheckContext, graph_check

from .common import (
    GUIDE_SCHEDULE_WEBHOOK,
    GUIDE_SUBWORKFLOW_PARAMS,
    is_sticky_note,
    is_subworkflow_trigger,
    is_trigger_type,
)

INIT_OPERATIONS = ("initWorkflow", "initDataIngestion")
RESULT_OPERATIONS = ("submitResult", "reportError")


def _operation(node: Node) -> str:
    value = node.params.get("operation")
    return value if isinstance(value, str) else ""


def _is_codika(node: Node) -> bool:
    return "codika" in node.type_lower


def find_trigger_node(graph: Graph) -> Optional[Node]:
    """The node that starts the workflow.

    Among nodes with no incoming edges, prefer a trigger-typed node, then
    fall back to the first one that is not a sticky note.
    """
    candidates = graph.roots()
    for node in candidates:
        if is_trigger_type(node.type):
            return node
    for node in candidates:
        if not is_sticky_note(node.type):
            return node
    return None


def _quoted_labels(nodes: List[Node]) -> str:
    return ", ".join(f'"{n.label}"' for n in nodes)


# =============================================================================
# INIT-REQUIRED
# =============================================================================


@graph_check(
    "INIT-REQUIRED",
    name="init_required",
    severity="must",
    description="Parent workflows must have an init node directly after the trigger",
    details="Add a Codika node with operation initWorkflow or initDataIngestion right after the trigger",
    category="codika",
)
def check_init_required(graph: Graph, context: CheckContext) -> List[Finding]:
    trigger = find_trigger_node(graph)
    if trigger is None or is_subworkflow_trigger(trigger.type):
        return []

    second = graph.successors(trigger.id)
    if not second:
        return []
    if any(_is_codika(n) and _operation(n) in INIT_OPERATIONS for n in second):
        return []

    return [
        Finding(
            rule="INIT-REQUIRED",
            severity="must",
            path=context.path,
            message=f"Workflow must have Codika Init as the second node. Found: {_quoted_labels(second)}",
            detail=(
                f"Add a Codika Init node (operation: initWorkflow or initDataIngestion) "
                f'immediately after the trigger "{trigger.label}". Execution tracking '
                f"starts at this node."
            ),
            node_id=trigger.id,
            line=context.line_of(trigger.id),
        )
    ]


# =============================================================================
# SUBMIT-RESULT
# =============================================================================


@graph_check(
    "SUBMIT-RESULT",
    name="submit_result",
    severity="must",
    description="Parent workflows must end every path with Submit Result or Report Error",
    details="Success paths end in operation submitResult, error paths in operation reportError",
    category="codika",
)
def check_submit_result(graph: Graph, context: CheckContext) -> List[Finding]:
    trigger = find_trigger_node(graph)
    if trigger is None or is_subworkflow_trigger(trigger.type):
        return []

    offending = [
        node for node in graph.terminals()
        if node.id != trigger.id
        and not (_is_codika(node) and _operation(node) in RESULT_OPERATIONS)
    ]
    if not offending:
        return []

    first = offending[0]
    return [
        Finding(
            rule="SUBMIT-RESULT",
            severity="must",
            path=context.path,
            message=(
                "Workflow paths end without Codika Submit Result or Report Error: "
                f"{_quoted_labels(offending)}"
            ),
            detail=(
                "Add a Codika node with operation submitResult at the end of success "
                "paths and one with operation reportError at the end of error paths."
            ),
            node_id=first.id,
            line=context.line_of(first.id),
        )
    ]


# =============================================================================
# SUBWKFL-MIN-PARAMS
# =============================================================================


def count_input_params(node: Node) -> int:
    """Number of declared inputs on an Execute Workflow Trigger node."""
    params = node.params
    workflow_inputs = params.get("workflowInputs")
    if isinstance(workflow_inputs, dict) and isinstance(workflow_inputs.get("values"), list):
        return len(workflow_inputs["values"])

    if params.get("inputSource") == "defineBelow":
        schema = params.get("schema")
        if isinstance(schema, dict) and isinstance(schema.get("values"), list):
            return len(schema["values"])
    return 0


@graph_check(
    "SUBWKFL-MIN-PARAMS",
    name="subworkflow_min_params",
    severity="must",
    description="Sub-workflows must have at least 1 input parameter",
    details="n8n enforces minRequiredFields: 1 on the Execute Workflow Trigger node",
    category="subworkflow",
    guide_ref=GUIDE_SUBWORKFLOW_PARAMS,
)
def check_subworkflow_min_params(graph: Graph, context: CheckContext) -> List[Finding]:
    trigger = next((n for n in graph.nodes if is_subworkflow_trigger(n.type)), None)
    if trigger is None:
        return []

    count = count_input_params(trigger)
    if count >= 1:
        return []
    return [
        Finding(
            rule="SUBWKFL-MIN-PARAMS",
            severity="must",
            path=context.path,
            message=f"Sub-workflow must have at least 1 input parameter, found {count}",
            detail=(
                "Add at least one entry to workflowInputs.values on the Execute Workflow "
                'Trigger node. Without it n8n fails with "At least 1 field is required."'
            ),
            node_id=trigger.id,
            line=context.line_of(trigger.id),
            guide_ref=GUIDE_SUBWORKFLOW_PARAMS,
        )
    ]


# =============================================================================
# SCHEDULE-WEBHOOK-CONVERGENCE
# =============================================================================


def _target_ids(graph: Graph, node_id: str) -> List[str]:
    return [edge.target for edge in graph.outgoing(node_id)]


def _target_labels(graph: Graph, node_id: str) -> List[str]:
    return [n.label for n in graph.successors(node_id)]


@graph_check(
    "SCHEDULE-WEBHOOK-CONVERGENCE",
    name="schedule_webhook_convergence",
    severity="must",
    description="Scheduled workflows need a webhook that connects to the same downstream node",
    details="Add a webhook node for manual runs and connect it where the schedule trigger connects",
    category="triggers",
    guide_ref=GUIDE_SCHEDULE_WEBHOOK,
)
def check_schedule_webhook_convergence(graph: Graph, context: CheckContext) -> List[Finding]:
    schedules = [n for n in graph.nodes if "scheduletrigger" in n.type_lower]
    if not schedules:
        return []

    guide = GUIDE_SCHEDULE_WEBHOOK.format()
    webhooks = [n for n in graph.nodes if "webhook" in n.type_lower]
    findings: List[Finding] = []

    if not webhooks:
        for schedule in schedules:
            findings.append(
                Finding(
                    rule="SCHEDULE-WEBHOOK-CONVERGENCE",
                    severity="must",
                    path=context.path,
                    message=f'Schedule trigger "{schedule.name}" requires a webhook node for manual execution',
                    detail=(
                        "Add a webhook node and connect it to the same downstream node as "
                        f"the schedule trigger.\n\nSee documentation: {guide}"
                    ),
                    node_id=schedule.id,
                    line=context.line_of(schedule.id),
                    guide_ref=GUIDE_SCHEDULE_WEBHOOK,
                )
            )
        return findings

    for schedule in schedules:
        downstream = set(_target_ids(graph, schedule.id))
        if not downstream:
            continue
        if any(downstream.intersection(_target_ids(graph, w.id)) for w in webhooks):
            continue

        webhook_info = ", ".join(
            f'"{w.name}" -> [{", ".join(_target_labels(graph, w.id)) or "no connections"}]'
            for w in webhooks
        )
        findings.append(
            Finding(
                rule="SCHEDULE-WEBHOOK-CONVERGENCE",
                severity="must",
                path=context.path,
                message=(
                    f'Schedule trigger "{schedule.name}" and webhook(s) do not connect '
                    "to the same downstream node"
                ),
                detail=(
                    f'Schedule trigger "{schedule.name}" connects to: '
                    f"[{', '.join(_target_labels(graph, schedule.id))}]\n"
                    f"Webhook connections: {webhook_info}\n\n"
                    f"Connect both triggers to the same downstream node.\n\n"
                    f"See documentation: {guide}"
                ),
                node_id=schedule.id,
                line=context.line_of(schedule.id),
                guide_ref=GUIDE_SCHEDULE_WEBHOOK,
            )
        )
    return findings


# =============================================================================
# ERROR-BRANCH-REQUIRED
# =============================================================================

API_PATTERN = re.compile(r"http|request|google|facebook|ads", re.IGNORECASE)
MUTATION_PATTERN = re.compile(
    r"write|insert|update|delete|post|put|patch|database|mongo|supabase|sheet", re.IGNORECASE
)
EXEC_PATTERN = re.compile(r"execute|workflow|function", re.IGNORECASE)

# LangChain sub-nodes run inside their parent chain and have no error output
LANGCHAIN_SUBNODE_PATTERN = re.compile(
    r"langchain\.(lmChat|outputParser|memory|embeddings|document|vectorStore|toolCode|toolWorkflow)",
    re.IGNORECASE,
)
ERROR_HANDLER_PATTERN = re.compile(r"stopanderror|errorhandler|raiseerror", re.IGNORECASE)


def is_error_prone(node: Node) -> bool:
    if is_trigger_type(node.type) or LANGCHAIN_SUBNODE_PATTERN.search(node.type):
        return False
    return bool(
        API_PATTERN.search(node.type)
        or MUTATION_PATTERN.search(node.type)
        or EXEC_PATTERN.search(node.type)
    )


def is_error_handler(node: Node) -> bool:
    name = node.name.lower()
    return bool(
        ERROR_HANDLER_PATTERN.search(node.type)
        or "stop and error" in name
        or "error handler" in name
    )


def _has_error_path(graph: Graph, node: Node) -> bool:
    for edge in graph.outgoing(node.id):
        if edge.is_error:
            return True
        target = graph.node_by_id(edge.target)
        if target is not None and is_error_handler(target):
            return True
    return False


@graph_check(
    "ERROR-BRANCH-REQUIRED",
    name="error_branch_required",
    severity="must",
    description="Error-prone nodes must have an error branch for failure handling",
    details=(
        'Set onError: "continueErrorOutput" on the node and connect its second output '
        "to an error handler"
    ),
    category="reliability",
)
def check_error_branch_required(graph: Graph, context: CheckContext) -> List[Finding]:
    findings: List[Finding] = []
    for node in graph.nodes:
        if not is_error_prone(node) or _has_error_path(graph, node):
            continue
        findings.append(
            Finding(
                rule="ERROR-BRANCH-REQUIRED",
                severity="must",
                path=context.path,
                message=f"Node {node.label} has no error branch (add a red connector to handler)",
                detail=(
                    f'Add error handling for "{node.label}" (type: {node.type}).\n\n'
                    'Option 1: Set onError: "continueErrorOutput" on the node and connect '
                    "the second output (index 1) to an error handler.\n"
                    "Option 2: Connect the node to a Stop And Error node."
                ),
                node_id=node.id,
                line=context.line_of(node.id),
            )
        )
    return findings


GRAPH_CHECKS = [
    check_init_required,
    check_submit_result,
    check_subworkflow_min_params,
    check_schedule_webhook_convergence,
    check_error_branch_required,
]
