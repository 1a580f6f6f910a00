"""
registry.py - Pluggable check registry.

Three check kinds, each a small class wrapping a plain function:

- GraphCheck:   func(graph, context) -> findings   (parsed workflow graph)
- ContentCheck: func(text, path) -> findings       (raw workflow text)
- ProjectCheck: func(folder) -> findings           (whole project folder)

The registry keeps one ordered, append-only list per kind. Registration order
is execution order, which is also the order findings appear in the report.

Usage:
    from wflint.validator.registry import content_check, default_registry

    @content_check("MY-RULE", name="my_rule", severity="should",
                   description="...")
    def check_my_rule(text, path):
        return []

    default_registry().register(check_my_rule)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from wflint.graph import Graph

from .findings import Finding, GuideRef, Severity

logger = logging.getLogger(__name__)

# Sentinel rule ids for checks that raised instead of returning findings
GRAPH_CHECK_ERROR = "GRAPH-CHECK-ERR"
CONTENT_CHECK_ERROR = "CONTENT-CHECK-ERR"
PROJECT_CHECK_ERROR = "PROJECT-CHECK-ERR"


class CheckKind(Enum):
    """The closed set of check kinds."""
    GRAPH = "graph"
    CONTENT = "content"
    PROJECT = "project"


@dataclass(frozen=True)
class CheckMeta:
    """Rule metadata used for documentation and filtering."""
    id: str
    name: str
    severity: Severity
    description: str
    details: str = ""
    fixable: bool = False
    category: Optional[str] = None
    guide_ref: Optional[GuideRef] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.value,
            "description": self.description,
            "details": self.details,
            "fixable": self.fixable,
            "category": self.category,
        }


@dataclass(frozen=True)
class CheckContext:
    """Context handed to graph checks alongside the graph."""
    path: str
    node_lines: Mapping[str, int] = field(default_factory=dict)

    def line_of(self, node_id: Optional[str]) -> Optional[int]:
        if node_id is None:
            return None
        return self.node_lines.get(node_id)


GraphCheckFunc = Callable[[Graph, CheckContext], Sequence[Finding]]
ContentCheckFunc = Callable[[str, str], Sequence[Finding]]
ProjectCheckFunc = Callable[[str], Sequence[Finding]]


@dataclass(frozen=True)
class GraphCheck:
    meta: CheckMeta
    func: GraphCheckFunc = field(compare=False)
    kind = CheckKind.GRAPH

    @property
    def id(self) -> str:
        return self.meta.id

    def run(self, graph: Graph, context: CheckContext) -> List[Finding]:
        return list(self.func(graph, context))

    def __call__(self, graph: Graph, context: CheckContext) -> List[Finding]:
        return self.run(graph, context)


@dataclass(frozen=True)
class ContentCheck:
    meta: CheckMeta
    func: ContentCheckFunc = field(compare=False)
    kind = CheckKind.CONTENT

    @property
    def id(self) -> str:
        return self.meta.id

    def run(self, text: str, path: str) -> List[Finding]:
        return list(self.func(text, path))

    def __call__(self, text: str, path: str) -> List[Finding]:
        return self.run(text, path)


@dataclass(frozen=True)
class ProjectCheck:
    meta: CheckMeta
    func: ProjectCheckFunc = field(compare=False)
    kind = CheckKind.PROJECT

    @property
    def id(self) -> str:
        return self.meta.id

    def run(self, folder: str) -> List[Finding]:
        return list(self.func(folder))

    def __call__(self, folder: str) -> List[Finding]:
        return self.run(folder)


Check = Union[GraphCheck, ContentCheck, ProjectCheck]


def _meta(
    rule_id: str,
    name: str,
    severity: Union[str, Severity],
    description: str,
    details: str = "",
    fixable: bool = False,
    category: Optional[str] = None,
    guide_ref: Optional[GuideRef] = None,
) -> CheckMeta:
    return CheckMeta(
        id=rule_id,
        name=name,
        severity=Severity.parse(severity),
        description=description,
        details=details,
        fixable=fixable,
        category=category,
        guide_ref=guide_ref,
    )


def graph_check(rule_id: str, **meta_kwargs) -> Callable[[GraphCheckFunc], GraphCheck]:
    """Decorator wrapping a function into a GraphCheck (does not register it)."""
    def wrap(func: GraphCheckFunc) -> GraphCheck:
        return GraphCheck(_meta(rule_id, **meta_kwargs), func)
    return wrap


def content_check(rule_id: str, **meta_kwargs) -> Callable[[ContentCheckFunc], ContentCheck]:
    """Decorator wrapping a function into a ContentCheck (does not register it)."""
    def wrap(func: ContentCheckFunc) -> ContentCheck:
        return ContentCheck(_meta(rule_id, **meta_kwargs), func)
    return wrap


def project_check(rule_id: str, **meta_kwargs) -> Callable[[ProjectCheckFunc], ProjectCheck]:
    """Decorator wrapping a function into a ProjectCheck (does not register it)."""
    def wrap(func: ProjectCheckFunc) -> ProjectCheck:
        return ProjectCheck(_meta(rule_id, **meta_kwargs), func)
    return wrap


class CheckRegistry:
    """Ordered, append-only collections of graph, content and project checks."""

    _instance: Optional["CheckRegistry"] = None

    def __init__(self, checks: Sequence[Check] = ()):
        self._graph: List[GraphCheck] = []
        self._content: List[ContentCheck] = []
        self._project: List[ProjectCheck] = []
        for check in checks:
            self.register(check)

    def register(self, check: Check) -> None:
        """Append a check to the list for its kind.

        Raises:
            TypeError: If ``check`` is not a GraphCheck, ContentCheck or ProjectCheck.
        """
        if isinstance(check, GraphCheck):
            self._graph.append(check)
        elif isinstance(check, ContentCheck):
            self._content.append(check)
        elif isinstance(check, ProjectCheck):
            self._project.append(check)
        else:
            raise TypeError(f"Not a check: {check!r}")
        logger.debug("Registered %s check %s", check.kind.value, check.id)

    @property
    def graph_checks(self) -> Tuple[GraphCheck, ...]:
        return tuple(self._graph)

    @property
    def content_checks(self) -> Tuple[ContentCheck, ...]:
        return tuple(self._content)

    @property
    def project_checks(self) -> Tuple[ProjectCheck, ...]:
        return tuple(self._project)

    def all_checks(self) -> List[Check]:
        return [*self._graph, *self._content, *self._project]

    def get(self, rule_id: str) -> Optional[Check]:
        """Case-insensitive lookup by rule id."""
        wanted = rule_id.upper()
        for check in self.all_checks():
            if check.id.upper() == wanted:
                return check
        return None

    def describe(self) -> List[Dict[str, object]]:
        """Metadata for every registered check, in execution order."""
        rows = []
        for check in self.all_checks():
            row = check.meta.to_dict()
            row["kind"] = check.kind.value
            rows.append(row)
        return rows

    def __len__(self) -> int:
        return len(self._graph) + len(self._content) + len(self._project)

    @classmethod
    def get_instance(cls) -> "CheckRegistry":
        """Registry populated with the built-in checks (built once)."""
        if cls._instance is None:
            from wflint.checks import builtin_checks

            cls._instance = cls(builtin_checks())
            logger.debug("Built default check registry with %d checks", len(cls._instance))
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the cached default registry (for testing)."""
        cls._instance = None


def default_registry() -> CheckRegistry:
    return CheckRegistry.get_instance()


def failure_finding(kind: CheckKind, check: Check, path: Union[str, Path], error: Exception) -> Finding:
    """Sentinel finding recorded when a check raises."""
    rule = {
        CheckKind.GRAPH: GRAPH_CHECK_ERROR,
        CheckKind.CONTENT: CONTENT_CHECK_ERROR,
        CheckKind.PROJECT: PROJECT_CHECK_ERROR,
    }[kind]
    return Finding(
        rule=rule,
        severity=Severity.NIT,
        path=str(path),
        message=f"{kind.value.capitalize()} check {check.id} failed: {error}",
        detail=f"{type(error).__name__}: {error}",
    )
