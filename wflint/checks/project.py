"""
project.py - Built-in checks over a whole project folder.

These checks read the project configuration file and every workflow in the
workflows folder to verify cross-file consistency. Only CONFIG-SCHEMA reports
configuration problems; the other checks skip silently when the configuration
cannot be loaded.

By convention a workflow file's stem is its workflow_template_id.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from wflint.config.project_config import (
    ProjectConfig,
    ProjectConfigNotFoundError,
    ProjectConfigValidationError,
    get_config_path,
    load_project_config,
    read_project_config,
)
from wflint.config.runtime_config import get_config_file_name, get_workflows_dir
from wflint.validator.findings import Finding, FixDescriptor
from wflint.validator.registry import project_check
from wflint.validator.runner import list_workflow_files

from .common import (
    BASE_URL_PLACEHOLDER,
    CATEGORY_SCHEDULE,
    CATEGORY_SERVICE,
    CATEGORY_SUBWORKFLOW,
    CATEGORY_WEBHOOK,
    GUIDE_CALLED_BY,
    GUIDE_HTTP_PATH,
    GUIDE_SCHEDULE_PATH,
    GUIDE_SUBWKFL_PLACEHOLDER,
    GUIDE_TRIGGERS,
    SUBWKFL_PATTERN,
    WEBHOOK_NODE,
    WEBHOOK_PREFIX,
    iter_node_dicts,
    line_at,
    load_json_object,
    trigger_category,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowDocument:
    """One readable workflow file in the project."""
    path: str
    template_id: str
    text: str
    data: Optional[Dict[str, Any]]


def load_workflow_documents(folder: str) -> List[WorkflowDocument]:
    """Read every workflow file; unreadable files are skipped."""
    documents = []
    for path in list_workflow_files(folder):
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable workflow %s: %s", path, e)
            continue
        documents.append(
            WorkflowDocument(
                path=path,
                template_id=Path(path).stem,
                text=text,
                data=load_json_object(text),
            )
        )
    return documents


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Levenshtein edit distance between two strings.

    Used to suggest configured template ids for misspelled SUBWKFL references.
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)
    if len(s2) == 0:
        return len(s1)

    previous_row: List[int] = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row: List[int] = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def suggest_template_ids(name: str, candidates: List[str], max_dist: int = 2) -> List[str]:
    """Up to 3 candidates within ``max_dist`` edits, closest first."""
    scored = [
        (levenshtein_distance(name.lower(), c.lower()), c)
        for c in candidates
    ]
    scored = sorted(s for s in scored if s[0] <= max_dist)
    return [c for _, c in scored[:3]]


# =============================================================================
# CONFIG-SCHEMA
# =============================================================================


@project_check(
    "CONFIG-SCHEMA",
    name="config_schema",
    severity="must",
    description="The project configuration file must exist, parse and match the schema",
    details="Requires project_id, workflow_files and a workflows list with one entry per template",
    category="config",
)
def check_config_schema(folder: str) -> List[Finding]:
    config_path = str(get_config_path(folder))
    name = get_config_file_name()

    try:
        config = load_project_config(folder)
    except ProjectConfigNotFoundError as e:
        if e.reason is None:
            return [
                Finding(
                    rule="CONFIG-SCHEMA",
                    severity="must",
                    path=folder,
                    message=f"Missing {name} file",
                    detail=f"Create {name} with project_id, workflow_files and workflows",
                )
            ]
        return [
            Finding(
                rule="CONFIG-SCHEMA",
                severity="must",
                path=config_path,
                message=f"Cannot read {name}: {e.reason}",
            )
        ]
    except ProjectConfigValidationError as e:
        return [
            Finding(
                rule="CONFIG-SCHEMA",
                severity="must",
                path=config_path,
                message=f"Invalid {name}: {error}",
                line=e.line,
            )
            for error in e.errors
        ]

    findings = []
    seen = set()
    for template_id in config.template_ids:
        if template_id in seen:
            findings.append(
                Finding(
                    rule="CONFIG-SCHEMA",
                    severity="must",
                    path=config_path,
                    message=f'Duplicate workflow_template_id "{template_id}"',
                    detail="Each workflow must have a unique workflow_template_id",
                )
            )
        seen.add(template_id)
    return findings


# =============================================================================
# CONFIG-WORKFLOWS / JSON-VALID
# =============================================================================


@project_check(
    "CONFIG-WORKFLOWS",
    name="workflow_imports",
    severity="must",
    description="Every workflow file must be listed in workflow_files and exist on disk",
    details="Keep workflow_files in sync with the workflows folder; workflow files must be valid JSON",
    category="config",
)
def check_workflow_imports(folder: str) -> List[Finding]:
    workflows_dir = os.path.join(folder, get_workflows_dir())
    if not os.path.isdir(workflows_dir):
        return [
            Finding(
                rule="CONFIG-WORKFLOWS",
                severity="must",
                path=folder,
                message=f"Missing {get_workflows_dir()}/ folder",
                detail=f"Create a {get_workflows_dir()}/ folder and add your workflow JSON files",
            )
        ]

    findings: List[Finding] = []
    actual_files = list_workflow_files(folder)
    for path in actual_files:
        file_name = os.path.basename(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                json.loads(f.read())
        except json.JSONDecodeError as e:
            findings.append(
                Finding(
                    rule="JSON-VALID",
                    severity="must",
                    path=path,
                    message=f"Invalid JSON in {file_name}: {e.msg}",
                    detail="Fix the JSON syntax errors in this file",
                    line=e.lineno,
                )
            )
        except (OSError, UnicodeDecodeError) as e:
            findings.append(
                Finding(
                    rule="JSON-VALID",
                    severity="must",
                    path=path,
                    message=f"Cannot read {file_name}: {e}",
                )
            )

    config = read_project_config(folder)
    if config is None:
        return findings

    config_path = str(get_config_path(folder))
    declared = {os.path.basename(f) for f in config.workflow_files}
    for declared_file in config.workflow_files:
        file_name = os.path.basename(declared_file)
        if not os.path.isfile(os.path.join(workflows_dir, file_name)):
            findings.append(
                Finding(
                    rule="CONFIG-WORKFLOWS",
                    severity="must",
                    path=config_path,
                    message=f"workflow_files references non-existent file: {declared_file}",
                    detail=f"Either create {file_name} in {get_workflows_dir()}/ or remove it from workflow_files",
                )
            )

    for path in actual_files:
        file_name = os.path.basename(path)
        if file_name not in declared:
            findings.append(
                Finding(
                    rule="CONFIG-WORKFLOWS",
                    severity="should",
                    path=path,
                    message=f"Workflow file not listed in workflow_files: {file_name}",
                    detail=f"Add this file to workflow_files or remove it from {get_workflows_dir()}/",
                )
            )
    return findings


# =============================================================================
# SUBWKFL-REFERENCES
# =============================================================================


@project_check(
    "SUBWKFL-REFERENCES",
    name="subworkflow_references",
    severity="must",
    description="SUBWKFL placeholders must reference existing workflow template ids",
    details="Each {{SUBWKFL_<TEMPLATE_ID>_LFKWBUS}} must name a configured workflow_template_id",
    category="references",
    guide_ref=GUIDE_SUBWKFL_PLACEHOLDER,
)
def check_subworkflow_references(folder: str) -> List[Finding]:
    config = read_project_config(folder)
    if config is None:
        return []

    template_ids = config.template_ids
    findings = []
    for doc in load_workflow_documents(folder):
        for match in SUBWKFL_PATTERN.finditer(doc.text):
            ref = match.group(1)
            if ref in template_ids:
                continue
            suggestions = suggest_template_ids(ref, template_ids)
            message = f'SUBWKFL placeholder references unknown template ID: "{ref}"'
            if suggestions:
                message += f"; did you mean: {', '.join(suggestions)}?"
            findings.append(
                Finding(
                    rule="SUBWKFL-REFERENCES",
                    severity="must",
                    path=doc.path,
                    message=message,
                    detail=(
                        f"The placeholder {match.group(0)} references a template ID that is not "
                        f"declared in {get_config_file_name()}. Available template IDs: "
                        f"{', '.join(template_ids) or '(none)'}"
                    ),
                    line=line_at(doc.text, match.start()),
                    guide_ref=GUIDE_SUBWKFL_PLACEHOLDER,
                )
            )
    return findings


# =============================================================================
# CALLEDBY-CONSISTENCY
# =============================================================================


def find_callers(documents: List[WorkflowDocument]) -> Dict[str, List[str]]:
    """Map sub-workflow template id -> caller template ids, in discovery order."""
    callers: Dict[str, List[str]] = {}
    for doc in documents:
        for match in SUBWKFL_PATTERN.finditer(doc.text):
            entry = callers.setdefault(match.group(1), [])
            if doc.template_id not in entry:
                entry.append(doc.template_id)
    return callers


def _subworkflow_trigger(raw_workflow: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw_workflow, dict):
        return None
    triggers = raw_workflow.get("triggers")
    if not isinstance(triggers, list):
        return None
    for trigger in triggers:
        if isinstance(trigger, dict) and trigger.get("type") == "subworkflow":
            return trigger
    return None


@dataclass(frozen=True)
class AddCallerFix(FixDescriptor):
    """Add a caller to a sub-workflow trigger's called_by list in the config YAML.

    The file is re-dumped with yaml.safe_dump, so comments are not preserved.
    """
    subworkflow_id: str = ""
    caller_id: str = ""

    def apply(self, text: str) -> str:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError:
            return text
        if not isinstance(data, dict) or not isinstance(data.get("workflows"), list):
            return text

        for workflow in data["workflows"]:
            if not isinstance(workflow, dict):
                continue
            if workflow.get("workflow_template_id") != self.subworkflow_id:
                continue
            trigger = _subworkflow_trigger(workflow)
            if trigger is None:
                return text
            called_by = trigger.get("called_by")
            if not isinstance(called_by, list):
                called_by = []
            if self.caller_id in called_by:
                return text
            trigger["called_by"] = [*called_by, self.caller_id]
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return text


@project_check(
    "CALLEDBY-CONSISTENCY",
    name="calledby_consistency",
    severity="should",
    description="Sub-workflow called_by lists must include every actual caller",
    details="When workflow A calls sub-workflow B, B's subworkflow trigger must list A in called_by",
    fixable=True,
    category="references",
    guide_ref=GUIDE_CALLED_BY,
)
def check_calledby_consistency(folder: str) -> List[Finding]:
    config = read_project_config(folder)
    if config is None:
        return []

    config_path = str(get_config_path(folder))
    name = get_config_file_name()
    findings = []
    for subworkflow_id, callers in find_callers(load_workflow_documents(folder)).items():
        workflow = config.get_workflow(subworkflow_id)
        if workflow is None or not workflow.triggers:
            continue
        trigger = next((t for t in workflow.triggers if t.type == "subworkflow"), None)
        if trigger is None:
            continue

        listed = trigger.called_by or []
        for caller_id in callers:
            if caller_id in listed:
                continue
            if trigger.called_by is not None:
                message = (
                    f'Subworkflow "{subworkflow_id}" is called by "{caller_id}" but '
                    f'"{caller_id}" is not listed in its called_by array'
                )
                detail = (
                    f"Add '{caller_id}' to called_by for subworkflow '{subworkflow_id}' in {name}. "
                    f"Current called_by: [{', '.join(repr(c) for c in listed)}]"
                )
                description = f"Add '{caller_id}' to called_by for '{subworkflow_id}'"
            else:
                message = f'Subworkflow "{subworkflow_id}" is called by "{caller_id}" but has no called_by field'
                detail = f"Add called_by: ['{caller_id}'] to the subworkflow trigger of '{subworkflow_id}' in {name}"
                description = f"Add called_by field with '{caller_id}' for '{subworkflow_id}'"
            findings.append(
                Finding(
                    rule="CALLEDBY-CONSISTENCY",
                    severity="should",
                    path=config_path,
                    message=message,
                    detail=detail,
                    fixable=True,
                    fix=AddCallerFix(
                        description=description,
                        subworkflow_id=subworkflow_id,
                        caller_id=caller_id,
                    ),
                    guide_ref=GUIDE_CALLED_BY,
                )
            )
    return findings


# =============================================================================
# TRIGGERS-REQUIRED
# =============================================================================


@project_check(
    "TRIGGERS-REQUIRED",
    name="triggers_required",
    severity="must",
    description="Every workflow must have at least one trigger defined",
    details="Use type service_event for third-party service triggers (Gmail, Slack, ...)",
    category="triggers",
    guide_ref=GUIDE_TRIGGERS,
)
def check_triggers_required(folder: str) -> List[Finding]:
    config = read_project_config(folder)
    if config is None:
        return []

    config_path = str(get_config_path(folder))
    findings = []
    for workflow in config.workflows:
        if workflow.triggers:
            continue
        state = "missing" if workflow.triggers is None else "empty"
        findings.append(
            Finding(
                rule="TRIGGERS-REQUIRED",
                severity="must",
                path=config_path,
                message=(
                    f'Workflow "{workflow.workflow_template_id}" has no triggers defined. '
                    "Every workflow must have at least one trigger."
                ),
                detail=(
                    f'The triggers list for workflow "{workflow.workflow_template_id}" is {state}.\n\n'
                    "Trigger types:\n"
                    "- http: webhook-triggered workflows\n"
                    "- schedule: cron/scheduled workflows\n"
                    "- service_event: third-party service triggers\n"
                    "- subworkflow: workflows called by other workflows\n\n"
                    f"See documentation: {GUIDE_TRIGGERS.format()}"
                ),
                guide_ref=GUIDE_TRIGGERS,
            )
        )
    return findings


# =============================================================================
# TRIGGER-TYPE-CONSISTENCY
# =============================================================================

SUGGESTED_CONFIG_TYPE = {
    CATEGORY_WEBHOOK: "http",
    CATEGORY_SCHEDULE: "schedule",
    CATEGORY_SUBWORKFLOW: "subworkflow",
    CATEGORY_SERVICE: "service_event",
}


@dataclass(frozen=True)
class TriggerNodeInfo:
    node_type: str
    node_name: str
    category: str


def workflow_trigger_nodes(data: Optional[Dict[str, Any]]) -> List[TriggerNodeInfo]:
    if data is None:
        return []
    triggers = []
    for node in iter_node_dicts(data):
        node_type = node.get("type")
        if not isinstance(node_type, str):
            continue
        category = trigger_category(node_type)
        if category is not None:
            triggers.append(TriggerNodeInfo(node_type, node.get("name") or node_type, category))
    return triggers


def primary_trigger(triggers: List[TriggerNodeInfo]) -> Optional[TriggerNodeInfo]:
    """Non-webhook triggers take precedence over webhooks."""
    if not triggers:
        return None
    for trigger in triggers:
        if trigger.category != CATEGORY_WEBHOOK:
            return trigger
    return triggers[0]


def trigger_type_mismatch(config_type: str, primary: TriggerNodeInfo) -> Optional[str]:
    """Error text if a configured trigger type does not fit the primary trigger node."""
    expected = {
        "http": CATEGORY_WEBHOOK,
        "schedule": CATEGORY_SCHEDULE,
        "subworkflow": CATEGORY_SUBWORKFLOW,
    }
    if config_type in expected:
        compatible = primary.category == expected[config_type]
    elif config_type == "service_event":
        compatible = primary.category == CATEGORY_SERVICE
    else:
        return None
    if compatible:
        return None
    return (
        f"Config declares type '{config_type}' but the workflow's primary trigger is a "
        f"{primary.category} node ({primary.node_type}). "
        f"Use type: '{SUGGESTED_CONFIG_TYPE[primary.category]}' instead."
    )


@project_check(
    "TRIGGER-TYPE-CONSISTENCY",
    name="trigger_type_consistency",
    severity="must",
    description="Configured trigger types must match the trigger node in the workflow",
    details="http needs a webhook node, schedule a schedule trigger, subworkflow an Execute Workflow Trigger",
    category="triggers",
    guide_ref=GUIDE_TRIGGERS,
)
def check_trigger_type_consistency(folder: str) -> List[Finding]:
    config = read_project_config(folder)
    if config is None:
        return []

    config_path = str(get_config_path(folder))
    documents = {doc.template_id: doc for doc in load_workflow_documents(folder)}
    findings = []
    for workflow in config.workflows:
        doc = documents.get(workflow.workflow_template_id)
        if doc is None or not workflow.triggers:
            continue
        primary = primary_trigger(workflow_trigger_nodes(doc.data))
        if primary is None:
            continue
        for trigger in workflow.triggers:
            error = trigger_type_mismatch(trigger.type, primary)
            if error is None:
                continue
            findings.append(
                Finding(
                    rule="TRIGGER-TYPE-CONSISTENCY",
                    severity="must",
                    path=config_path,
                    message=f'Trigger type mismatch in workflow "{workflow.workflow_template_id}": {error}',
                    detail=(
                        f"Workflow trigger node: {primary.node_type} ({primary.node_name})\n"
                        f"Detected category: {primary.category}\n"
                        f"Config trigger type: {trigger.type}\n\n"
                        f"See documentation: {GUIDE_TRIGGERS.format()}"
                    ),
                    guide_ref=GUIDE_TRIGGERS,
                )
            )
    return findings


# =============================================================================
# WEBHOOK-PATH-CONSISTENCY
# =============================================================================


def url_structure_error(url: str) -> Optional[str]:
    if not url.startswith(BASE_URL_PLACEHOLDER):
        return f"URL must start with {BASE_URL_PLACEHOLDER}"
    if not url[len(BASE_URL_PLACEHOLDER):].startswith(WEBHOOK_PREFIX):
        return f"URL must include {WEBHOOK_PREFIX} after the base URL"
    return None


def webhook_paths(data: Dict[str, Any]) -> List[str]:
    paths = []
    for node in iter_node_dicts(data):
        if node.get("type") != WEBHOOK_NODE:
            continue
        params = node.get("parameters")
        if isinstance(params, dict) and isinstance(params.get("path"), str) and params["path"]:
            paths.append(params["path"])
    return paths


def configured_trigger_urls(config: ProjectConfig) -> List[Tuple[str, str, str, bool]]:
    """(template id, trigger label, url, is manual trigger url) per configured URL."""
    urls = []
    for workflow in config.workflows:
        for trigger in workflow.triggers or []:
            if trigger.type == "http" and trigger.url:
                urls.append((workflow.workflow_template_id, trigger.label, trigger.url, False))
            elif trigger.type == "schedule" and trigger.manual_trigger_url:
                urls.append(
                    (workflow.workflow_template_id, trigger.label, trigger.manual_trigger_url, True)
                )
    return urls


@project_check(
    "WEBHOOK-PATH-CONSISTENCY",
    name="webhook_path_consistency",
    severity="must",
    description="Trigger URLs must have the expected structure and match webhook node paths",
    details=(
        f"URLs must start with {BASE_URL_PLACEHOLDER}{WEBHOOK_PREFIX} and the rest must equal "
        "the workflow's webhook node path"
    ),
    category="references",
    guide_ref=GUIDE_HTTP_PATH,
)
def check_webhook_path_consistency(folder: str) -> List[Finding]:
    config = read_project_config(folder)
    if config is None:
        return []
    trigger_urls = configured_trigger_urls(config)
    if not trigger_urls:
        return []

    config_path = str(get_config_path(folder))
    findings: List[Finding] = []

    if not os.path.isdir(os.path.join(folder, get_workflows_dir())):
        for template_id, label, _url, manual in trigger_urls:
            findings.append(
                Finding(
                    rule="WEBHOOK-PATH-CONSISTENCY",
                    severity="must",
                    path=config_path,
                    message=(
                        f'Trigger "{label}" in workflow "{template_id}" has URL but no '
                        f"{get_workflows_dir()} folder exists"
                    ),
                    detail="Create the workflows folder with the corresponding workflow JSON file",
                    guide_ref=GUIDE_SCHEDULE_PATH if manual else GUIDE_HTTP_PATH,
                )
            )
        return findings

    documents = {doc.template_id: doc for doc in load_workflow_documents(folder)}

    for template_id, label, url, manual in trigger_urls:
        guide = GUIDE_SCHEDULE_PATH if manual else GUIDE_HTTP_PATH
        field_name = "manual_trigger_url" if manual else "url"

        structure_error = url_structure_error(url)
        if structure_error:
            findings.append(
                Finding(
                    rule="WEBHOOK-PATH-CONSISTENCY",
                    severity="must",
                    path=config_path,
                    message=(
                        f'Invalid {field_name} structure in trigger "{label}" of workflow '
                        f'"{template_id}": {structure_error}'
                    ),
                    detail=(
                        f"The {field_name} must follow the pattern: "
                        f"{BASE_URL_PLACEHOLDER}{WEBHOOK_PREFIX}<path>\n\n"
                        f"Current value: {url}\n\nSee documentation: {guide.format()}"
                    ),
                    guide_ref=guide,
                )
            )
            continue

        expected_path = url[len(BASE_URL_PLACEHOLDER) + len(WEBHOOK_PREFIX):]
        if not expected_path:
            continue

        doc = documents.get(template_id)
        if doc is None:
            findings.append(
                Finding(
                    rule="WEBHOOK-PATH-CONSISTENCY",
                    severity="must",
                    path=config_path,
                    message=f'Cannot find workflow file for "{template_id}" to validate webhook path',
                    detail=(
                        f'The trigger "{label}" references workflow "{template_id}" but no matching '
                        f"workflow file was found in the {get_workflows_dir()} folder."
                    ),
                    guide_ref=guide,
                )
            )
            continue
        if doc.data is None:
            continue

        paths = webhook_paths(doc.data)
        if not paths:
            findings.append(
                Finding(
                    rule="WEBHOOK-PATH-CONSISTENCY",
                    severity="must",
                    path=doc.path,
                    message=(
                        f'Workflow "{template_id}" has no webhook node but trigger "{label}" '
                        "expects one"
                    ),
                    detail=(
                        f"Expected webhook path: {expected_path}\n\n"
                        f"Add a webhook node with the matching path, or remove the {field_name} "
                        f"from {get_config_file_name()}.\n\nSee documentation: {guide.format()}"
                    ),
                    guide_ref=guide,
                )
            )
        elif expected_path not in paths:
            actual = ", ".join(f'"{p}"' for p in paths)
            findings.append(
                Finding(
                    rule="WEBHOOK-PATH-CONSISTENCY",
                    severity="must",
                    path=doc.path,
                    message=(
                        f'Webhook path mismatch in "{template_id}": config expects '
                        f'"{expected_path}" but workflow has {actual}'
                    ),
                    detail=(
                        f"Config {field_name} path: {expected_path}\n"
                        f"Workflow webhook path(s): {actual}\n\n"
                        f"See documentation: {guide.format()}"
                    ),
                    guide_ref=guide,
                )
            )
    return findings


PROJECT_CHECKS = [
    check_config_schema,
    check_workflow_imports,
    check_subworkflow_references,
    check_calledby_consistency,
    check_triggers_required,
    check_trigger_type_consistency,
    check_webhook_path_consistency,
]
