"""
report.py - Machine- and human-readable reports for a ValidationResult.

build_report_json() returns a JSON-serializable dict; build_report_markdown()
returns a plain markdown document. Neither prints nor colours anything.

Usage:
    import json
    from wflint.report import build_report_json
    from wflint.validator import validate_project

    result = validate_project("my-project")
    print(json.dumps(build_report_json(result), indent=2))
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from wflint.validator.findings import Finding, Severity, ValidationResult
from wflint.validator.registry import CheckRegistry, default_registry

REPORT_VERSION = "1.0"

# Severities in display order
SEVERITY_ORDER = sorted(Severity, key=lambda s: s.rank, reverse=True)


def _status(result: ValidationResult) -> str:
    return "PASS" if result.valid else "FAIL"


def _group_by_severity(result: ValidationResult) -> Dict[Severity, List[Finding]]:
    grouped: Dict[Severity, List[Finding]] = {s: [] for s in SEVERITY_ORDER}
    for finding in result.findings:
        grouped[finding.severity].append(finding)
    return grouped


def build_report_json(result: ValidationResult, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the JSON report.

    Findings are grouped by severity, most severe first, each group keeping
    the result's finding order.
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    grouped = _group_by_severity(result)
    return {
        "version": REPORT_VERSION,
        "timestamp": timestamp.isoformat(timespec="seconds"),
        "status": _status(result),
        "valid": result.valid,
        "summary": result.summary.to_dict(),
        "files_validated": list(result.files_validated),
        "findings": {
            severity.value: [f.to_dict() for f in grouped[severity]]
            for severity in SEVERITY_ORDER
        },
    }


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("|", "\\|").replace("\n", " ")


def build_report_markdown(result: ValidationResult, timestamp: Optional[datetime] = None) -> str:
    """Build the markdown report: status, summary counts, one table per severity."""
    timestamp = timestamp or datetime.now(timezone.utc)
    summary = result.summary
    lines: List[str] = []

    lines.append("# Workflow Validation Report")
    lines.append("")
    lines.append(f"**Timestamp**: {timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    lines.append(f"**Status**: {_status(result)}")
    lines.append(f"**Files validated**: {len(result.files_validated)}")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| must | should | nit | fixable |")
    lines.append("|------|--------|-----|---------|")
    lines.append(f"| {summary.must} | {summary.should} | {summary.nit} | {summary.fixable} |")
    lines.append("")

    grouped = _group_by_severity(result)
    for severity in SEVERITY_ORDER:
        findings = grouped[severity]
        lines.append(f"## {severity.value} ({len(findings)})")
        lines.append("")
        if not findings:
            lines.append("_None._")
            lines.append("")
            continue
        lines.append("| Rule | Location | Message | Fix |")
        lines.append("|------|----------|---------|-----|")
        for finding in findings:
            location = finding.path if finding.line is None else f"{finding.path}:{finding.line}"
            fix = finding.fix.description if finding.fix is not None else ""
            lines.append(
                f"| {_cell(finding.rule)} | {_cell(location)} | {_cell(finding.message)} | {_cell(fix)} |"
            )
        lines.append("")

    return "\n".join(lines)


def build_rules_markdown(registry: Optional[CheckRegistry] = None) -> str:
    """Markdown table of every registered check, in execution order."""
    if registry is None:
        registry = default_registry()
    lines = [
        "| Rule | Kind | Severity | Fixable | Description |",
        "|------|------|----------|---------|-------------|",
    ]
    for row in registry.describe():
        lines.append(
            f"| {_cell(row['id'])} | {row['kind']} | {row['severity']} | "
            f"{'yes' if row['fixable'] else 'no'} | {_cell(row['description'])} |"
        )
    return "\n".join(lines)
