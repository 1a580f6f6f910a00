"""
runner.py - Single-file and project validation.

validate_workflow(path) runs every graph check against the parsed workflow and
every content check against its raw text. validate_project(folder) runs the
project checks and then validates each workflow file in the project's
workflows folder, merging everything into one result.

Each check runs in isolation: a check that raises is recorded as a nit
finding and the run continues.

Usage:
    from wflint.validator.runner import validate_project
    from wflint.validator.findings import ValidationOptions

    result = validate_project("my-project", ValidationOptions(strict=True))
    if not result.valid:
        for finding in result.findings:
            print(finding.severity.value, finding.rule, finding.message)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Union

from wflint.config.runtime_config import get_workflow_suffix, get_workflows_dir
from wflint.graph import WorkflowParseError, parse_workflow

from .findings import Finding, Severity, ValidationOptions, ValidationResult
from .fixer import apply_fixes, group_findings_by_file
from .registry import (
    CheckContext,
    CheckKind,
    CheckRegistry,
    default_registry,
    failure_finding,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Fatal-to-file / fatal-to-run rule ids
FILE_NOT_FOUND = "FILE-NOT-FOUND"
FILE_UNREADABLE = "FILE-UNREADABLE"
WORKFLOW_PARSE = "WORKFLOW-PARSE"
PROJECT_NOT_FOUND = "PROJECT-NOT-FOUND"
PROJECT_UNREADABLE = "PROJECT-UNREADABLE"


# =============================================================================
# Post-processing
# =============================================================================


def filter_findings(
    findings: Iterable[Finding],
    rules: Sequence[str] = (),
    exclude_rules: Sequence[str] = (),
) -> List[Finding]:
    """Keep findings selected by ``rules`` and not named in ``exclude_rules``.

    Rule ids compare case-insensitively. An empty ``rules`` selects everything.
    """
    include = {r.upper() for r in rules}
    exclude = {r.upper() for r in exclude_rules}
    kept = []
    for finding in findings:
        rule = finding.rule.upper()
        if include and rule not in include:
            continue
        if rule in exclude:
            continue
        kept.append(finding)
    return kept


def escalate_findings(findings: Iterable[Finding], strict: bool) -> List[Finding]:
    """Strict mode: promote should to must. Nit findings are left alone."""
    if not strict:
        return list(findings)
    return [
        f.with_severity(Severity.MUST) if f.severity is Severity.SHOULD else f
        for f in findings
    ]


def _drop_fixed(findings: Sequence[Finding], fixed_rules: Set[str]) -> List[Finding]:
    return [f for f in findings if not (f.fixable and f.rule in fixed_rules)]


def _fatal(rule: str, path: str, message: str, detail: Optional[str] = None,
           line: Optional[int] = None) -> Finding:
    return Finding(
        rule=rule,
        severity=Severity.MUST,
        path=path,
        message=message,
        detail=detail,
        line=line,
    )


# =============================================================================
# Single-file validation
# =============================================================================


def _read_workflow(path: Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def validate_workflow(
    path: PathLike,
    options: Optional[ValidationOptions] = None,
    registry: Optional[CheckRegistry] = None,
) -> ValidationResult:
    """Validate one workflow file.

    Args:
        path: Workflow file to validate.
        options: Strict/filter/fix options. Defaults to ValidationOptions().
        registry: Checks to run. Defaults to the built-in registry.

    Returns:
        ValidationResult for exactly this file.
    """
    options = options or ValidationOptions()
    if registry is None:
        registry = default_registry()
    abs_path = os.path.abspath(str(path))
    files = (abs_path,)

    if not os.path.isfile(abs_path):
        return ValidationResult.build(
            [_fatal(FILE_NOT_FOUND, abs_path, f"Workflow file not found: {abs_path}")],
            files,
        )

    try:
        text = _read_workflow(Path(abs_path))
    except (OSError, UnicodeDecodeError) as e:
        return ValidationResult.build(
            [_fatal(FILE_UNREADABLE, abs_path, f"Cannot read workflow file: {e}")],
            files,
        )

    try:
        graph = parse_workflow(text)
    except WorkflowParseError as e:
        return ValidationResult.build(
            [_fatal(WORKFLOW_PARSE, abs_path, f"Failed to parse workflow: {e}", line=e.line)],
            files,
        )

    context = CheckContext(path=abs_path, node_lines=graph.node_lines())
    findings: List[Finding] = []

    for check in registry.graph_checks:
        logger.debug("Running graph check %s on %s", check.id, abs_path)
        try:
            findings.extend(check.run(graph, context))
        except Exception as e:
            logger.warning("Graph check %s failed on %s: %s", check.id, abs_path, e)
            findings.append(failure_finding(CheckKind.GRAPH, check, abs_path, e))

    for check in registry.content_checks:
        logger.debug("Running content check %s on %s", check.id, abs_path)
        try:
            findings.extend(check.run(text, abs_path))
        except Exception as e:
            logger.warning("Content check %s failed on %s: %s", check.id, abs_path, e)
            findings.append(failure_finding(CheckKind.CONTENT, check, abs_path, e))

    findings = filter_findings(findings, options.rules, options.exclude_rules)
    findings = escalate_findings(findings, options.strict)

    if options.wants_fixes:
        fix_result = apply_fixes(abs_path, findings, dry_run=options.dry_run)
        if fix_result.applied > 0 and not options.dry_run:
            fixed_rules = {f.rule for f in findings if f.fixable}
            findings = _drop_fixed(findings, fixed_rules)

    return ValidationResult.build(findings, files)


# =============================================================================
# Project validation
# =============================================================================


def list_workflow_files(folder: PathLike) -> List[str]:
    """Absolute paths of workflow files in the project's workflows folder.

    Regular files with the configured suffix, in directory listing order.
    Returns [] when the workflows folder does not exist.
    """
    workflows_dir = os.path.join(os.path.abspath(str(folder)), get_workflows_dir())
    suffix = get_workflow_suffix()
    if not os.path.isdir(workflows_dir):
        return []

    files = []
    with os.scandir(workflows_dir) as entries:
        for entry in entries:
            if entry.is_file() and entry.name.endswith(suffix):
                files.append(os.path.abspath(entry.path))
    logger.debug("Found %d workflow file(s) in %s", len(files), workflows_dir)
    return files


def _apply_project_fixes(findings: List[Finding], dry_run: bool) -> List[Finding]:
    fixed_rules: Set[str] = set()
    for file_path, file_findings in group_findings_by_file(findings).items():
        fix_result = apply_fixes(file_path, file_findings, dry_run=dry_run)
        if fix_result.applied > 0 and not dry_run:
            fixed_rules.update(f.rule for f in file_findings if f.fixable)
    return _drop_fixed(findings, fixed_rules) if fixed_rules else findings


def validate_project(
    folder: PathLike,
    options: Optional[ValidationOptions] = None,
    registry: Optional[CheckRegistry] = None,
) -> ValidationResult:
    """Validate a project folder and, unless skipped, every workflow in it.

    Child findings keep their path, rule, severity and location; their
    message is prefixed with the workflow's file name.
    """
    options = options or ValidationOptions()
    if registry is None:
        registry = default_registry()
    abs_folder = os.path.abspath(str(folder))

    if not os.path.isdir(abs_folder):
        return ValidationResult.build(
            [_fatal(PROJECT_NOT_FOUND, abs_folder, f"Project folder not found: {abs_folder}")],
            (abs_folder,),
        )

    project_findings: List[Finding] = []
    for check in registry.project_checks:
        logger.debug("Running project check %s on %s", check.id, abs_folder)
        try:
            project_findings.extend(check.run(abs_folder))
        except Exception as e:
            logger.warning("Project check %s failed on %s: %s", check.id, abs_folder, e)
            project_findings.append(failure_finding(CheckKind.PROJECT, check, abs_folder, e))

    project_findings = filter_findings(project_findings, options.rules, options.exclude_rules)
    project_findings = escalate_findings(project_findings, options.strict)
    if options.wants_fixes:
        project_findings = _apply_project_fixes(project_findings, options.dry_run)

    files_validated = [abs_folder]
    child_findings: List[Finding] = []
    fatal: List[Finding] = []

    if not options.skip_workflows:
        child_options = options.for_child()
        try:
            workflow_paths = list_workflow_files(abs_folder)
        except OSError as e:
            logger.warning("Cannot list workflows in %s: %s", abs_folder, e)
            workflow_paths = []
            fatal.append(
                _fatal(PROJECT_UNREADABLE, abs_folder, f"Cannot list workflow files: {e}")
            )
        for workflow_path in workflow_paths:
            result = validate_workflow(workflow_path, child_options, registry)
            prefix = f"[{os.path.basename(workflow_path)}] "
            child_findings.extend(f.with_message_prefix(prefix) for f in result.findings)
            files_validated.extend(result.files_validated)

    findings = filter_findings(
        [*project_findings, *child_findings], options.rules, options.exclude_rules
    )
    findings = escalate_findings(findings, options.strict)
    findings.extend(fatal)

    logger.info(
        "Validated project %s: %d finding(s) across %d file(s)",
        abs_folder, len(findings), len(files_validated),
    )
    return ValidationResult.build(findings, files_validated)
