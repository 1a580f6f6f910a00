# wflint/validator package
# Finding model, check registry, auto-fixer and the single-file / project runners.

from .findings import (
    Finding,
    FindingSummary,
    FixDescriptor,
    FixPreview,
    FixPreviewEntry,
    FixResult,
    GuideRef,
    Severity,
    ValidationOptions,
    ValidationResult,
)
from .fixer import apply_fixes, apply_fixes_to_files, group_findings_by_file, preview_fixes
from .registry import (
    CheckContext,
    CheckKind,
    CheckMeta,
    CheckRegistry,
    ContentCheck,
    GraphCheck,
    ProjectCheck,
    content_check,
    default_registry,
    graph_check,
    project_check,
)
from .runner import (
    escalate_findings,
    filter_findings,
    list_workflow_files,
    validate_project,
    validate_workflow,
)

__all__ = [
    "CheckContext",
    "CheckKind",
    "CheckMeta",
    "CheckRegistry",
    "ContentCheck",
    "Finding",
    "FindingSummary",
    "FixDescriptor",
    "FixPreview",
    "FixPreviewEntry",
    "FixResult",
    "GraphCheck",
    "GuideRef",
    "ProjectCheck",
    "Severity",
    "ValidationOptions",
    "ValidationResult",
    "apply_fixes",
    "apply_fixes_to_files",
    "content_check",
    "default_registry",
    "escalate_findings",
    "filter_findings",
    "graph_check",
    "group_findings_by_file",
    "list_workflow_files",
    "preview_fixes",
    "project_check",
    "validate_project",
    "validate_workflow",
]
