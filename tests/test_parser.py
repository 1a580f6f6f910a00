"""Tests for the workflow graph parser."""

import json

import pytest

from wflint.graph import BRANCH_ERROR, BRANCH_MAIN, WorkflowParseError, parse_workflow

from conftest import HTTP_REQUEST, clean_workflow, connect, make_node, make_workflow


def _parse(workflow):
    return parse_workflow(json.dumps(workflow, indent=2))


class TestParseWorkflow:
    """Graph construction from n8n JSON."""

    def test_nodes_and_edges(self):
        """Nodes keep their ids; edges resolve names to ids."""
        graph = _parse(clean_workflow())
        assert [n.id for n in graph.nodes] == ["webhook", "init", "submit"]
        assert [(e.source, e.target) for e in graph.edges] == [("webhook", "init"), ("init", "submit")]
        assert graph.name == "Demo"

    def test_node_id_falls_back_to_name(self):
        """A node without id is identified by its name."""
        node = make_node("Lonely", "n8n-nodes-base.set")
        del node["id"]
        graph = _parse(make_workflow([node]))
        assert graph.nodes[0].id == "Lonely"

    def test_error_output_becomes_error_branch(self):
        """Output 1 of a continueErrorOutput node is an error edge."""
        workflow = make_workflow(
            [
                make_node("Call", HTTP_REQUEST, onError="continueErrorOutput"),
                make_node("Ok", "n8n-nodes-base.set"),
                make_node("Fail", "n8n-nodes-base.set"),
            ],
            connect(("Call", "Ok"), error_links=(("Call", "Fail"),)),
        )
        graph = _parse(workflow)
        branches = {e.target: e.branch for e in graph.edges}
        assert branches == {"ok": BRANCH_MAIN, "fail": BRANCH_ERROR}

    def test_second_output_without_on_error_stays_main(self):
        """Without onError the second output is an ordinary branch (e.g. an If node)."""
        workflow = make_workflow(
            [make_node("If", "n8n-nodes-base.if"), make_node("A", "n8n-nodes-base.set"),
             make_node("B", "n8n-nodes-base.set")],
            connect(("If", "A"), error_links=(("If", "B"),)),
        )
        assert all(e.branch == BRANCH_MAIN for e in _parse(workflow).edges)

    def test_node_lines_are_located(self):
        """Each node is mapped to the line of its id key."""
        text = json.dumps(clean_workflow(), indent=2)
        graph = parse_workflow(text)
        lines = text.splitlines()
        for node in graph.nodes:
            assert f'"id": "{node.id}"' in lines[node.line - 1]

    def test_roots_and_terminals(self):
        """Roots have no incoming edges, terminals no outgoing ones."""
        graph = _parse(clean_workflow())
        assert [n.id for n in graph.roots()] == ["webhook"]
        assert [n.id for n in graph.terminals()] == ["submit"]

    def test_params_are_read_only(self):
        """Checks cannot mutate node parameters."""
        graph = _parse(clean_workflow())
        with pytest.raises(TypeError):
            graph.nodes[0].params["path"] = "changed"


class TestParseErrors:
    """Malformed documents raise WorkflowParseError."""

    def test_invalid_json_reports_line(self):
        """Syntax errors carry the offending line."""
        with pytest.raises(WorkflowParseError) as exc:
            parse_workflow('{\n  "nodes": [\n}')
        assert exc.value.line is not None

    @pytest.mark.parametrize("text", ["[]", '{"name": "x"}', '{"nodes": {}}'])
    def test_not_a_workflow(self, text):
        """Non-objects and documents without a nodes list are rejected."""
        with pytest.raises(WorkflowParseError):
            parse_workflow(text)

    def test_node_without_type(self):
        """Every node needs a type."""
        with pytest.raises(WorkflowParseError):
            parse_workflow('{"nodes": [{"id": "a", "name": "A"}]}')

    @pytest.mark.parametrize("slot", [5, "Next", {"node": "A"}])
    def test_output_slot_must_be_a_list(self, slot):
        """Each output of a connection is a list of targets."""
        text = json.dumps(
            {
                "nodes": [{"id": "a", "name": "A", "type": "n8n-nodes-base.set"}],
                "connections": {"A": {"main": [slot]}},
            }
        )
        with pytest.raises(WorkflowParseError, match="must be a list of targets"):
            parse_workflow(text)

    def test_empty_output_slot_is_skipped(self):
        """A null output slot has no targets."""
        text = json.dumps(
            {
                "nodes": [{"id": "a", "name": "A", "type": "n8n-nodes-base.set"}],
                "connections": {"A": {"main": [None]}},
            }
        )
        assert parse_workflow(text).edges == ()

    def test_deeply_nested_document(self):
        """Nesting beyond the interpreter limit is a parse error."""
        with pytest.raises(WorkflowParseError, match="nested too deeply"):
            parse_workflow("[" * 200000 + "]" * 200000)

    def test_connection_to_unknown_node(self):
        """Connections must name existing nodes."""
        workflow = make_workflow([make_node("A", "n8n-nodes-base.set")], connect(("A", "Ghost")))
        with pytest.raises(WorkflowParseError, match="Ghost"):
            _parse(workflow)

    def test_parse_error_is_value_error(self):
        """Callers can catch it as ValueError."""
        assert issubclass(WorkflowParseError, ValueError)
