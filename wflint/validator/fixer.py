"""
fixer.py - Auto-fix orchestrator.

Applies the fix descriptors carried by fixable findings to a file's text:

- Dry-run: never reads or writes; reports which findings would be fixed.
- Apply: reads once, folds every fix over the text in finding order, counts
  only fixes that changed the text, and writes back once if anything changed.

A fix that raises is skipped and logged. A failed write reports applied=0 and
returns the original text, so the caller's report never reflects a partial
write. Overlapping fixes are not arbitrated.
"""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Union

from .findings import Finding, FixPreview, FixPreviewEntry, FixResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def fixable_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Findings that are marked fixable and carry a fix."""
    return [f for f in findings if f.fixable and f.fix is not None]


def _read_text(path: Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def apply_fixes(
    file_path: PathLike,
    findings: Sequence[Finding],
    dry_run: bool = False,
) -> FixResult:
    """Apply all available fixes to one file.

    Args:
        file_path: File the findings refer to.
        findings: Findings currently believed to apply to the file.
        dry_run: If True, describe what would be fixed without touching storage.

    Returns:
        FixResult with the number of fixes that actually changed the text.
    """
    path = Path(file_path)
    candidates = fixable_findings(findings)

    if not candidates:
        return FixResult(
            file_path=str(path),
            applied=0,
            content="",
            would_fix=() if dry_run else None,
        )

    if dry_run:
        return FixResult(
            file_path=str(path),
            applied=0,
            content="",
            would_fix=tuple(candidates),
        )

    try:
        original = _read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read %s for fixing: %s", path, e)
        return FixResult(file_path=str(path), applied=0, content="")

    content = original
    applied = 0
    for finding in candidates:
        try:
            updated = finding.fix.apply(content)
        except Exception as e:
            logger.warning("Fix for %s on %s failed: %s", finding.rule, path, e)
            continue
        if not isinstance(updated, str):
            logger.warning("Fix for %s on %s returned %s, skipping", finding.rule, path, type(updated).__name__)
            continue
        if updated != content:
            content = updated
            applied += 1
            logger.debug("Applied fix %s: %s", finding.rule, finding.fix.description)

    if applied > 0 and content != original:
        try:
            _write_text(path, content)
        except OSError as e:
            logger.warning("Failed to write fixes to %s: %s", path, e)
            return FixResult(file_path=str(path), applied=0, content=original)
        logger.info("Applied %d fix(es) to %s", applied, path)

    return FixResult(file_path=str(path), applied=applied, content=content)


def apply_fixes_to_files(
    file_findings: Mapping[str, Sequence[Finding]],
    dry_run: bool = False,
) -> List[FixResult]:
    """Apply fixes file by file, in mapping order."""
    return [
        apply_fixes(file_path, findings, dry_run=dry_run)
        for file_path, findings in file_findings.items()
    ]


def group_findings_by_file(findings: Iterable[Finding]) -> Dict[str, List[Finding]]:
    """Group a flat finding list by path, preserving first-seen order."""
    grouped: Dict[str, List[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.path, []).append(finding)
    return grouped


def _diff_excerpt(before: str, after: str, path: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"{path} (before)",
            tofile=f"{path} (after)",
            n=1,
        )
    )


def preview_fixes(file_path: PathLike, findings: Sequence[Finding]) -> FixPreview:
    """Report, per fixable finding, whether its fix would change the file.

    Each fix is tried independently against the current text. Nothing is
    written.
    """
    path = Path(file_path)
    candidates = fixable_findings(findings)

    try:
        content = _read_text(path)
    except (OSError, UnicodeDecodeError):
        return FixPreview(
            file_path=str(path),
            fixes=tuple(
                FixPreviewEntry(rule=f.rule, description=f.fix.description, changes=False)
                for f in candidates
            ),
        )

    entries: List[FixPreviewEntry] = []
    for finding in candidates:
        try:
            updated = finding.fix.apply(content)
        except Exception as e:
            logger.debug("Preview of fix %s failed: %s", finding.rule, e)
            continue
        changes = isinstance(updated, str) and updated != content
        entries.append(
            FixPreviewEntry(
                rule=finding.rule,
                description=finding.fix.description,
                changes=changes,
                diff=_diff_excerpt(content, updated, str(path)) if changes else "",
            )
        )

    return FixPreview(file_path=str(path), fixes=tuple(entries))
