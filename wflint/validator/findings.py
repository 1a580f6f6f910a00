# wflint/validator/findings.py
"""Finding, severity and result model shared by every check."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union


class Severity(str, Enum):
    """Policy tier of a finding."""
    MUST = "must"
    SHOULD = "should"
    NIT = "nit"

    @property
    def rank(self) -> int:
        """Display rank (higher is more severe)."""
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: Union[str, "Severity"]) -> "Severity":
        """Coerce a string (case-insensitive) or Severity to Severity."""
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().lower())


_SEVERITY_RANK = {Severity.MUST: 2, Severity.SHOULD: 1, Severity.NIT: 0}


@dataclass(frozen=True)
class GuideRef:
    """Pointer to the documentation section explaining a rule."""
    path: str
    section: Optional[str] = None

    def format(self) -> str:
        if self.section:
            return f'.guides/{self.path} > "{self.section}"'
        return f".guides/{self.path}"


@dataclass(frozen=True)
class FixDescriptor:
    """A pure text-to-text transformation attached to a fixable finding.

    ``apply`` receives the file's full current text and returns the file's
    full new text. It never touches storage. Subclasses may override
    ``apply`` instead of passing ``transform``.
    """
    description: str
    transform: Optional[Callable[[str], str]] = field(default=None, compare=False, repr=False)

    def apply(self, text: str) -> str:
        if self.transform is None:
            return text
        return self.transform(text)


@dataclass(frozen=True)
class Finding:
    """One reported violation.

    Attributes:
        rule: Stable identifier of the check that produced the finding.
        severity: Policy tier.
        path: Absolute path of the file (or folder) the finding is attached to.
        message: Human summary.
        detail: Optional long-form explanation / manual fix instructions.
        line: Optional 1-based line number.
        node_id: Optional workflow node identifier.
        fixable: True iff ``fix`` is present.
        fix: Optional auto-fix.
        guide_ref: Optional documentation pointer.
    """
    rule: str
    severity: Severity
    path: str
    message: str
    detail: Optional[str] = None
    line: Optional[int] = None
    node_id: Optional[str] = None
    fixable: bool = False
    fix: Optional[FixDescriptor] = field(default=None, compare=False)
    guide_ref: Optional[GuideRef] = None

    def __post_init__(self) -> None:
        if not isinstance(self.severity, Severity):
            object.__setattr__(self, "severity", Severity.parse(self.severity))
        if self.fixable != (self.fix is not None):
            raise ValueError(
                f"Finding {self.rule}: fixable={self.fixable} but fix is "
                f"{'present' if self.fix is not None else 'missing'}"
            )

    def with_severity(self, severity: Severity) -> "Finding":
        """Return an equivalent finding with a different severity."""
        return replace(self, severity=severity)

    def with_message_prefix(self, prefix: str) -> "Finding":
        """Return an equivalent finding whose message starts with ``prefix``."""
        return replace(self, message=f"{prefix}{self.message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the serializable finding shape."""
        result: Dict[str, Any] = {
            "rule": self.rule,
            "severity": self.severity.value,
            "path": self.path,
            "message": self.message,
            "fixable": self.fixable,
        }
        if self.detail:
            result["detail"] = self.detail
        if self.line is not None:
            result["line"] = self.line
        if self.node_id is not None:
            result["nodeId"] = self.node_id
        if self.fix is not None:
            result["fix"] = self.fix.description
        if self.guide_ref is not None:
            result["guideRef"] = {"path": self.guide_ref.path, "section": self.guide_ref.section}
        return result


@dataclass(frozen=True)
class FindingSummary:
    """Counts per severity plus the fixable count.

    Always derived from a finding set via ``from_findings``.
    """
    must: int = 0
    should: int = 0
    nit: int = 0
    fixable: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> "FindingSummary":
        counts = {Severity.MUST: 0, Severity.SHOULD: 0, Severity.NIT: 0}
        fixable = 0
        for finding in findings:
            counts[finding.severity] += 1
            if finding.fixable:
                fixable += 1
        return cls(
            must=counts[Severity.MUST],
            should=counts[Severity.SHOULD],
            nit=counts[Severity.NIT],
            fixable=fixable,
        )

    @property
    def total(self) -> int:
        return self.must + self.should + self.nit

    def to_dict(self) -> Dict[str, int]:
        return {"must": self.must, "should": self.should, "nit": self.nit, "fixable": self.fixable}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one workflow file or one project."""
    valid: bool
    findings: Tuple[Finding, ...]
    summary: FindingSummary
    files_validated: Tuple[str, ...]

    @classmethod
    def build(cls, findings: Sequence[Finding], files_validated: Sequence[str]) -> "ValidationResult":
        """Derive summary and validity from the final finding list."""
        summary = FindingSummary.from_findings(findings)
        return cls(
            valid=summary.must == 0,
            findings=tuple(findings),
            summary=summary,
            files_validated=tuple(files_validated),
        )

    def has_errors(self) -> bool:
        return not self.valid

    def findings_for_rule(self, rule: str) -> List[Finding]:
        wanted = rule.upper()
        return [f for f in self.findings if f.rule.upper() == wanted]

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for JSON serialization."""
        return {
            "valid": self.valid,
            "findings": [f.to_dict() for f in self.findings],
            "summary": self.summary.to_dict(),
            "filesValidated": list(self.files_validated),
        }


@dataclass(frozen=True)
class FixResult:
    """Outcome of running the auto-fix orchestrator against one file."""
    file_path: str
    applied: int
    content: str
    would_fix: Optional[Tuple[Finding, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "filePath": self.file_path,
            "applied": self.applied,
        }
        if self.would_fix is not None:
            result["wouldFix"] = [f.to_dict() for f in self.would_fix]
        return result


@dataclass(frozen=True)
class FixPreviewEntry:
    rule: str
    description: str
    changes: bool
    diff: str = ""


@dataclass(frozen=True)
class FixPreview:
    """What each fixable finding would do to a file, without writing."""
    file_path: str
    fixes: Tuple[FixPreviewEntry, ...] = ()

    @property
    def changing(self) -> List[FixPreviewEntry]:
        return [entry for entry in self.fixes if entry.changes]


@dataclass(frozen=True)
class ValidationOptions:
    """Options shared by the single-file and project validators.

    ``skip_workflows`` is only meaningful at the project level.
    """
    strict: bool = False
    rules: Tuple[str, ...] = ()
    exclude_rules: Tuple[str, ...] = ()
    fix: bool = False
    dry_run: bool = False
    skip_workflows: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules or ()))
        object.__setattr__(self, "exclude_rules", tuple(self.exclude_rules or ()))

    def for_child(self) -> "ValidationOptions":
        """Options forwarded to per-file validation from a project run."""
        return replace(self, skip_workflows=False)

    @property
    def wants_fixes(self) -> bool:
        return self.fix or self.dry_run
