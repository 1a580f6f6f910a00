"""
content.py - Built-in checks over the raw workflow text.

Content checks see the file exactly as written, so they can catch placeholder
formatting a JSON parser would normalize away. Scanners are generators over
re.finditer and hold no state between calls.

Most checks here are fixable. JSON-level fixes re-serialize the document with
two-space indentation; text-level fixes replace every occurrence of the
offending token so applying a fix twice changes nothing.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from wflint.validator.findings import Finding, FixDescriptor
from wflint.validator.registry import content_check

from .common import (
    WEBHOOK_NODE,
    JsonEditFix,
    iter_node_dicts,
    line_at,
    load_json_object,
    slugify,
)


def _replace_all(old: str, new: str):
    def transform(text: str) -> str:
        return text.replace(old, new)
    return transform


def _node_line(text: str, node: Dict[str, Any]) -> Optional[int]:
    for key in ("id", "name"):
        value = node.get(key)
        if not isinstance(value, str) or not value:
            continue
        match = re.search(r'"%s"\s*:\s*%s' % (key, re.escape(json.dumps(value, ensure_ascii=False))), text)
        if match:
            return line_at(text, match.start())
    return None


# =============================================================================
# INSTPARM-QUOTE
# =============================================================================

# A quote (or JSON-escaped double quote) on both sides of an INSTPARM placeholder
QUOTED_INSTPARM = re.compile(r"""(\\"|')(\{\{INSTPARM_[A-Z0-9_]+_MRAPTSNI\}\})\1""")


def scan_quoted_instparm(text: str) -> Iterator[re.Match[str]]:
    yield from QUOTED_INSTPARM.finditer(text)


@content_check(
    "INSTPARM-QUOTE",
    name="instparm_quoting",
    severity="must",
    description="INSTPARM placeholders must not be wrapped in quotes",
    details="Quoted placeholders become string literals instead of the substituted value",
    fixable=True,
    category="placeholder",
)
def check_instparm_quoting(text: str, path: str) -> List[Finding]:
    findings = []
    for match in scan_quoted_instparm(text):
        quoted, placeholder = match.group(0), match.group(2)
        quote = match.group(1).replace("\\", "")
        findings.append(
            Finding(
                rule="INSTPARM-QUOTE",
                severity="must",
                path=path,
                message=f"INSTPARM placeholder should not be quoted: {quoted}",
                detail=(
                    f"Remove the {quote} quotes around {placeholder}. Quoted placeholders "
                    "become string literals instead of being replaced with values."
                ),
                line=line_at(text, match.start()),
                fixable=True,
                fix=FixDescriptor(
                    description=f"Remove quotes around {placeholder}",
                    transform=_replace_all(quoted, placeholder),
                ),
            )
        )
    return findings


# =============================================================================
# PLACEHOLDER-SYNTAX
# =============================================================================

PLACEHOLDER_SUFFIXES = {
    "ORGSECRET": "TERCESORG",
    "PROCDATA": "ATADCORP",
    "USERDATA": "ATADRESU",
    "MEMSECRT": "TRCESMEM",
    "FLEXCRED": "DERCXELF",
    "USERCRED": "DERCRESU",
    "ORGCRED": "DERCGRO",
    "SUBWKFL": "LFKWBUS",
    "INSTPARM": "MRAPTSNI",
}

PLACEHOLDER = re.compile(
    r"\{\{(%s)_([A-Z0-9_]+)_([A-Z]+)\}\}" % "|".join(PLACEHOLDER_SUFFIXES)
)


def scan_misspelled_placeholders(text: str) -> Iterator[Tuple[re.Match[str], str]]:
    """Yield (match, corrected placeholder) for every placeholder with a wrong suffix."""
    for match in PLACEHOLDER.finditer(text):
        prefix, name, suffix = match.groups()
        expected = PLACEHOLDER_SUFFIXES[prefix]
        if suffix != expected:
            yield match, f"{{{{{prefix}_{name}_{expected}}}}}"


@content_check(
    "PLACEHOLDER-SYNTAX",
    name="placeholder_syntax",
    severity="must",
    description="Placeholders must use the suffix that matches their prefix",
    details="Each placeholder prefix has one required suffix (the prefix reversed)",
    fixable=True,
    category="placeholder",
)
def check_placeholder_syntax(text: str, path: str) -> List[Finding]:
    findings = []
    for match, corrected in scan_misspelled_placeholders(text):
        wrong = match.group(0)
        expected = PLACEHOLDER_SUFFIXES[match.group(1)]
        findings.append(
            Finding(
                rule="PLACEHOLDER-SYNTAX",
                severity="must",
                path=path,
                message=f"Invalid placeholder suffix: {wrong} should end with _{expected}",
                detail=f"Replace {wrong} with {corrected}",
                line=line_at(text, match.start()),
                fixable=True,
                fix=FixDescriptor(
                    description=f"Fix suffix: {wrong} -> {corrected}",
                    transform=_replace_all(wrong, corrected),
                ),
            )
        )
    return findings


# =============================================================================
# CRED-PLACEHOLDER
# =============================================================================

CREDENTIAL_PLACEHOLDER = re.compile(
    r"\{\{(FLEXCRED_[A-Z0-9_]+_DERCXELF|USERCRED_[A-Z0-9_]+_DERCRESU|ORGCRED_[A-Z0-9_]+_DERCGRO)\}\}"
)
HARDCODED_ID_PATTERNS = (
    re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE),
    re.compile(r"^\d+$"),
    re.compile(r"^[A-Za-z0-9]{20,}$"),
)


def looks_hardcoded(value: str) -> bool:
    if CREDENTIAL_PLACEHOLDER.search(value):
        return False
    return any(p.match(value) for p in HARDCODED_ID_PATTERNS)


@content_check(
    "CRED-PLACEHOLDER",
    name="credential_placeholders",
    severity="should",
    description="Credential references should use FLEXCRED, USERCRED or ORGCRED placeholders",
    details="Hardcoded credential ids differ between environments",
    category="credentials",
)
def check_credential_placeholders(text: str, path: str) -> List[Finding]:
    data = load_json_object(text)
    if data is None:
        return []

    findings = []
    for node in iter_node_dicts(data):
        credentials = node.get("credentials")
        if not isinstance(credentials, dict):
            continue
        for cred_type, cred in credentials.items():
            cred_id = cred.get("id") if isinstance(cred, dict) else None
            if not isinstance(cred_id, str) or not looks_hardcoded(cred_id):
                continue
            label = node.get("name") or node.get("id")
            findings.append(
                Finding(
                    rule="CRED-PLACEHOLDER",
                    severity="should",
                    path=path,
                    message=f'Node "{label}" has hardcoded credential ID for "{cred_type}"',
                    detail=(
                        f'Replace the hardcoded credential ID "{cred_id}" with a placeholder '
                        f"like {{{{FLEXCRED_{cred_type.upper()}_DERCXELF}}}}."
                    ),
                    line=_node_line(text, node),
                    node_id=node.get("id") if isinstance(node.get("id"), str) else None,
                )
            )
    return findings


# =============================================================================
# WORKFLOW-SETTINGS
# =============================================================================

REQUIRED_SETTINGS = {
    "errorWorkflow": "{{ORGSECRET_ERROR_WORKFLOW_ID_TERCESORG}}",
    "executionOrder": "v1",
}


def _set_setting(key: str, value: str):
    def edit(data: Dict[str, Any]) -> None:
        if not isinstance(data.get("settings"), dict):
            data["settings"] = {}
        data["settings"][key] = value
    return edit


@content_check(
    "WORKFLOW-SETTINGS",
    name="workflow_settings",
    severity="must",
    description="Workflows must set settings.errorWorkflow and settings.executionOrder",
    details="errorWorkflow routes failures to the shared error workflow; executionOrder must be v1",
    fixable=True,
    category="settings",
)
def check_workflow_settings(text: str, path: str) -> List[Finding]:
    data = load_json_object(text)
    if data is None:
        return []

    settings = data.get("settings")
    if not isinstance(settings, dict):
        settings = {}

    findings = []
    for key, required in REQUIRED_SETTINGS.items():
        actual = settings.get(key)
        if not actual:
            message = f"Missing required setting: {key}"
            detail = f'Add "{key}": "{required}" to the settings object'
            description = f"Add {key} setting"
        elif actual != required:
            message = f'Setting {key} has wrong value: "{actual}"'
            detail = f'Change to: "{required}"'
            description = f"Fix {key} setting"
        else:
            continue
        findings.append(
            Finding(
                rule="WORKFLOW-SETTINGS",
                severity="must",
                path=path,
                message=message,
                detail=detail,
                fixable=True,
                fix=JsonEditFix(description=description, edit=_set_setting(key, required)),
            )
        )
    return findings


# =============================================================================
# WORKFLOW-SANITIZATION
# =============================================================================

FORBIDDEN_PROPERTIES = {
    "id": "n8n assigns this when the workflow is saved and it varies per environment",
    "versionId": "n8n updates this on every save",
    "meta": "n8n metadata such as instanceId varies per environment",
    "active": "workflows are activated through deployment",
    "tags": "n8n tags are environment-specific",
    "pinData": "pinned execution data is development data only",
}


def _drop_property(key: str):
    def edit(data: Dict[str, Any]) -> None:
        data.pop(key, None)
    return edit


@content_check(
    "WORKFLOW-SANITIZATION",
    name="workflow_sanitization",
    severity="must",
    description="Workflows must not contain n8n-generated properties",
    details="Remove id, versionId, meta, active, tags and pinData before committing",
    fixable=True,
    category="sanitization",
)
def check_workflow_sanitization(text: str, path: str) -> List[Finding]:
    data = load_json_object(text)
    if data is None:
        return []

    return [
        Finding(
            rule="WORKFLOW-SANITIZATION",
            severity="must",
            path=path,
            message=f'Workflow contains forbidden n8n property: "{key}"',
            detail=f'Remove the "{key}" property: {reason}.',
            fixable=True,
            fix=JsonEditFix(description=f'Remove "{key}" property', edit=_drop_property(key)),
        )
        for key, reason in FORBIDDEN_PROPERTIES.items()
        if key in data
    ]


# =============================================================================
# WEBHOOK-ID
# =============================================================================


def _missing_webhook_id(node: Dict[str, Any]) -> bool:
    value = node.get("webhookId")
    return not isinstance(value, str) or not value


def _add_webhook_id(name: Any):
    def edit(data: Dict[str, Any]) -> None:
        for node in iter_node_dicts(data):
            if node.get("type") == WEBHOOK_NODE and node.get("name") == name and _missing_webhook_id(node):
                node["webhookId"] = slugify(name if isinstance(name, str) and name else "webhook")
    return edit


@content_check(
    "WEBHOOK-ID",
    name="webhook_id",
    severity="must",
    description="Webhook nodes must have a webhookId property",
    details="Without webhookId the webhook path is never registered in production",
    fixable=True,
    category="webhook",
)
def check_webhook_id(text: str, path: str) -> List[Finding]:
    data = load_json_object(text)
    if data is None:
        return []

    findings = []
    for node in iter_node_dicts(data):
        if node.get("type") != WEBHOOK_NODE or not _missing_webhook_id(node):
            continue
        name = node.get("name")
        generated = slugify(name if isinstance(name, str) and name else "webhook")
        findings.append(
            Finding(
                rule="WEBHOOK-ID",
                severity="must",
                path=path,
                message=f'Webhook node "{name}" is missing webhookId property',
                detail=f'Add "webhookId": "{generated}" to the node object (sibling to name/type/parameters)',
                line=_node_line(text, node),
                node_id=node.get("id") if isinstance(node.get("id"), str) else None,
                fixable=True,
                fix=JsonEditFix(
                    description=f'Add webhookId "{generated}" to webhook node "{name}"',
                    edit=_add_webhook_id(name),
                ),
            )
        )
    return findings


CONTENT_CHECKS = [
    check_instparm_quoting,
    check_placeholder_syntax,
    check_credential_placeholders,
    check_workflow_settings,
    check_workflow_sanitization,
    check_webhook_id,
]
