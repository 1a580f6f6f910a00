"""Tests for the check registry."""

import pytest

from wflint.validator.findings import Severity
from wflint.validator.registry import (
    CheckKind,
    CheckRegistry,
    ContentCheck,
    GraphCheck,
    ProjectCheck,
    content_check,
    default_registry,
    failure_finding,
    graph_check,
    project_check,
)


@graph_check("G-1", name="g", severity="must", description="graph")
def _graph(graph, context):
    return []


@content_check("C-1", name="c", severity="SHOULD", description="content", fixable=True)
def _content(text, path):
    return []


@project_check("P-1", name="p", severity="nit", description="project")
def _project(folder):
    return []


class TestDecorators:
    """Decorators wrap functions into check objects."""

    def test_kinds(self):
        """Each decorator produces its own check class."""
        assert isinstance(_graph, GraphCheck) and _graph.kind is CheckKind.GRAPH
        assert isinstance(_content, ContentCheck) and _content.kind is CheckKind.CONTENT
        assert isinstance(_project, ProjectCheck) and _project.kind is CheckKind.PROJECT

    def test_meta_severity_is_parsed(self):
        """Severity strings are normalized."""
        assert _content.meta.severity is Severity.SHOULD
        assert _content.meta.fixable is True

    def test_checks_are_callable(self):
        """Check objects call through to the wrapped function."""
        assert _content("text", "/p") == []
        assert _project.run("/folder") == []


class TestCheckRegistry:
    """Registration order and lookup."""

    def test_register_dispatches_by_kind(self):
        """Checks land in the list for their kind."""
        registry = CheckRegistry([_project, _content, _graph])
        assert registry.graph_checks == (_graph,)
        assert registry.content_checks == (_content,)
        assert registry.project_checks == (_project,)
        assert len(registry) == 3

    def test_registration_order_is_preserved(self):
        """Later registrations run later."""
        second = graph_check("G-2", name="g2", severity="must", description="")(lambda g, c: [])
        registry = CheckRegistry([_graph, second])
        assert [c.id for c in registry.graph_checks] == ["G-1", "G-2"]

    def test_register_rejects_non_checks(self):
        """Plain functions must be wrapped first."""
        with pytest.raises(TypeError):
            CheckRegistry().register(lambda text, path: [])

    def test_get_is_case_insensitive(self):
        """Lookup ignores case."""
        registry = CheckRegistry([_graph, _content])
        assert registry.get("c-1") is _content
        assert registry.get("missing") is None

    def test_describe(self):
        """describe lists metadata with kind, in execution order."""
        rows = CheckRegistry([_content, _graph]).describe()
        assert [r["id"] for r in rows] == ["G-1", "C-1"]
        assert rows[1]["kind"] == "content"
        assert rows[1]["severity"] == "should"


class TestDefaultRegistry:
    """The built-in registry."""

    def test_builtin_order(self):
        """Built-in checks are registered in their documented order."""
        registry = default_registry()
        assert [c.id for c in registry.graph_checks] == [
            "INIT-REQUIRED",
            "SUBMIT-RESULT",
            "SUBWKFL-MIN-PARAMS",
            "SCHEDULE-WEBHOOK-CONVERGENCE",
            "ERROR-BRANCH-REQUIRED",
        ]
        assert [c.id for c in registry.content_checks] == [
            "INSTPARM-QUOTE",
            "PLACEHOLDER-SYNTAX",
            "CRED-PLACEHOLDER",
            "WORKFLOW-SETTINGS",
            "WORKFLOW-SANITIZATION",
            "WEBHOOK-ID",
        ]
        assert [c.id for c in registry.project_checks] == [
            "CONFIG-SCHEMA",
            "CONFIG-WORKFLOWS",
            "SUBWKFL-REFERENCES",
            "CALLEDBY-CONSISTENCY",
            "TRIGGERS-REQUIRED",
            "TRIGGER-TYPE-CONSISTENCY",
            "WEBHOOK-PATH-CONSISTENCY",
        ]

    def test_default_registry_is_cached(self):
        """The default registry is built once until reset."""
        first = default_registry()
        assert default_registry() is first
        CheckRegistry.reset_instance()
        assert default_registry() is not first


class TestFailureFinding:
    """Sentinel findings for checks that raise."""

    @pytest.mark.parametrize(
        "kind,check,rule",
        [
            (CheckKind.GRAPH, _graph, "GRAPH-CHECK-ERR"),
            (CheckKind.CONTENT, _content, "CONTENT-CHECK-ERR"),
            (CheckKind.PROJECT, _project, "PROJECT-CHECK-ERR"),
        ],
    )
    def test_sentinel_rule_per_kind(self, kind, check, rule):
        """Each kind has its own sentinel id; severity is nit."""
        finding = failure_finding(kind, check, "/p", RuntimeError("boom"))
        assert finding.rule == rule
        assert finding.severity is Severity.NIT
        assert check.id in finding.message
        assert "boom" in finding.message
