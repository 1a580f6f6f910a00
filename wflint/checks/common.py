"""
common.py - Helpers shared by the built-in checks.

Node-type predicates, JSON document helpers and the JSON-rewriting fix
command used by content checks.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from wflint.validator.findings import FixDescriptor, GuideRef

# =============================================================================
# Node types
# =============================================================================

WEBHOOK_NODE = "n8n-nodes-base.webhook"
SCHEDULE_NODE = "n8n-nodes-base.scheduleTrigger"
SUBWORKFLOW_TRIGGER = "executeworkflowtrigger"

CATEGORY_WEBHOOK = "webhook"
CATEGORY_SCHEDULE = "schedule"
CATEGORY_SUBWORKFLOW = "subworkflow"
CATEGORY_SERVICE = "service_trigger"

# Placeholder base URL and webhook segment expected in configured trigger URLs
BASE_URL_PLACEHOLDER = "{{ORGSECRET_N8N_BASE_URL_TERCESORG}}"
WEBHOOK_PREFIX = "/webhook/"

SUBWKFL_PATTERN = re.compile(r"\{\{SUBWKFL_([a-zA-Z0-9_-]+)_LFKWBUS\}\}")


def is_trigger_type(node_type: str) -> bool:
    lowered = node_type.lower()
    return "trigger" in lowered or "webhook" in lowered or lowered.endswith(".start")


def is_subworkflow_trigger(node_type: str) -> bool:
    return SUBWORKFLOW_TRIGGER in node_type.lower()


def is_sticky_note(node_type: str) -> bool:
    return "stickynote" in node_type.lower()


def trigger_category(node_type: str) -> Optional[str]:
    """Classify a node type as a trigger category, or None if it is not a trigger."""
    if node_type == WEBHOOK_NODE:
        return CATEGORY_WEBHOOK
    if node_type == SCHEDULE_NODE:
        return CATEGORY_SCHEDULE
    if is_subworkflow_trigger(node_type):
        return CATEGORY_SUBWORKFLOW
    if "trigger" in node_type.lower():
        return CATEGORY_SERVICE
    return None


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to single hyphens, trim hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


# =============================================================================
# Text and JSON helpers
# =============================================================================


def line_at(text: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


def load_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse text as a JSON object, or None if it is not one."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def iter_node_dicts(data: Dict[str, Any]):
    nodes = data.get("nodes")
    if not isinstance(nodes, list):
        return
    for node in nodes:
        if isinstance(node, dict):
            yield node


@dataclass(frozen=True)
class JsonEditFix(FixDescriptor):
    """Fix that edits the parsed workflow document in place and re-serializes it.

    ``edit`` mutates the document dict. Text that is not a JSON object, or a
    document the edit leaves unchanged, is returned as-is.
    """
    edit: Optional[Callable[[Dict[str, Any]], None]] = field(default=None, compare=False, repr=False)

    def apply(self, text: str) -> str:
        data = load_json_object(text)
        if data is None or self.edit is None:
            return text
        before = copy.deepcopy(data)
        self.edit(data)
        if data == before:
            return text
        return dump_json(data)


# =============================================================================
# Documentation pointers
# =============================================================================

GUIDE_SCHEDULE_WEBHOOK = GuideRef("specific/schedule-triggers.md", "Manual Trigger Webhook")
GUIDE_SCHEDULE_PATH = GuideRef("specific/schedule-triggers.md", "Important: Path Must Match")
GUIDE_SUBWORKFLOW_PARAMS = GuideRef("specific/sub-workflows.md", "Input Parameter Requirements")
GUIDE_CALLED_BY = GuideRef("specific/sub-workflows.md", "calledBy Array")
GUIDE_SUBWKFL_PLACEHOLDER = GuideRef(
    "specific/placeholder-patterns.md", "Sub-Workflow References (SUBWKFL)"
)
GUIDE_TRIGGERS = GuideRef(
    "specific/third-party-triggers.md", "Configuring Third-Party Triggered Workflows"
)
GUIDE_HTTP_PATH = GuideRef("specific/http-triggers.md", "URL Path Pattern")
