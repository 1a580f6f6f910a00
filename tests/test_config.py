"""Tests for linter defaults and project configuration loading."""

import pytest

from wflint.config import runtime_config
from wflint.config.project_config import (
    ProjectConfigNotFoundError,
    ProjectConfigValidationError,
    TriggerConfig,
    load_project_config,
    read_project_config,
)
from wflint.config.runtime_config import (
    default_options,
    get_config_file_name,
    get_workflow_suffix,
    get_workflows_dir,
    is_strict_by_default,
    reset_config,
)


class TestRuntimeConfig:
    """lint.yaml defaults and environment overrides."""

    def test_shipped_defaults(self):
        """Defaults come from the packaged lint.yaml."""
        assert get_config_file_name() == "config.yaml"
        assert get_workflows_dir() == "workflows"
        assert get_workflow_suffix() == ".json"
        assert is_strict_by_default() is False

    def test_environment_takes_precedence(self, monkeypatch):
        """WFLINT_* variables override lint.yaml."""
        monkeypatch.setenv("WFLINT_CONFIG_FILE", "project.yml")
        monkeypatch.setenv("WFLINT_WORKFLOWS_DIR", "flows")
        monkeypatch.setenv("WFLINT_WORKFLOW_SUFFIX", "n8n.json")
        assert get_config_file_name() == "project.yml"
        assert get_workflows_dir() == "flows"
        assert get_workflow_suffix() == ".n8n.json"

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("", False)])
    def test_strict_from_environment(self, monkeypatch, value, expected):
        """WFLINT_STRICT accepts the usual truthy spellings."""
        monkeypatch.setenv("WFLINT_STRICT", value)
        assert is_strict_by_default() is expected

    def test_missing_lint_yaml_uses_builtin_defaults(self, monkeypatch, tmp_path):
        """Without lint.yaml the built-in defaults apply."""
        monkeypatch.setattr(runtime_config, "_CONFIG_PATH", tmp_path / "absent.yaml")
        reset_config()
        assert get_workflows_dir() == "workflows"

    def test_custom_lint_yaml(self, monkeypatch, tmp_path):
        """Values in lint.yaml are honoured."""
        custom = tmp_path / "lint.yaml"
        custom.write_text("project:\n  workflows_dir: n8n\ndefaults:\n  strict: true\n", encoding="utf-8")
        monkeypatch.setattr(runtime_config, "_CONFIG_PATH", custom)
        reset_config()
        assert get_workflows_dir() == "n8n"
        assert get_config_file_name() == "config.yaml"
        assert is_strict_by_default() is True

    def test_default_options(self, monkeypatch):
        """default_options applies configured strictness unless overridden."""
        monkeypatch.setenv("WFLINT_STRICT", "yes")
        assert default_options().strict is True
        options = default_options(strict=False, rules=["A"])
        assert options.strict is False
        assert options.rules == ("A",)


class TestProjectConfig:
    """config.yaml loading."""

    def test_load(self, project):
        """The fixture's config loads into models."""
        config = load_project_config(project)
        assert config.project_id == "demo"
        assert config.template_ids == ["main"]
        assert config.get_workflow("main").triggers[0].type == "http"
        assert config.get_workflow("missing") is None

    def test_missing_file(self, tmp_path):
        """A missing file raises the not-found error without a reason."""
        with pytest.raises(ProjectConfigNotFoundError) as exc:
            load_project_config(tmp_path)
        assert exc.value.reason is None
        assert read_project_config(tmp_path) is None

    def test_validation_errors_are_listed(self, project):
        """Schema errors are collected as 'location: message'."""
        (project / "config.yaml").write_text("project_id: ''\nworkflow_files: []\n", encoding="utf-8")
        with pytest.raises(ProjectConfigValidationError) as exc:
            load_project_config(project)
        assert exc.value.errors[0].startswith("project_id:")

    def test_extra_keys_are_allowed(self, project):
        """Unknown keys do not fail validation."""
        (project / "config.yaml").write_text(
            "project_id: demo\nworkflow_files: []\ndescription: extra\n", encoding="utf-8"
        )
        assert load_project_config(project).workflows == []

    def test_triggers_absent_vs_empty(self, project):
        """Absent triggers load as None, an empty list stays empty."""
        (project / "config.yaml").write_text(
            "project_id: demo\nworkflow_files: []\nworkflows:\n"
            "  - workflow_template_id: a\n"
            "  - workflow_template_id: b\n    triggers: []\n",
            encoding="utf-8",
        )
        config = load_project_config(project)
        assert config.get_workflow("a").triggers is None
        assert config.get_workflow("b").triggers == []

    def test_trigger_label(self):
        """Triggers are labelled by id, falling back to type."""
        assert TriggerConfig(type="http", trigger_id="t1").label == "t1"
        assert TriggerConfig(type="schedule").label == "schedule"

    def test_unknown_trigger_type(self):
        """Trigger types are validated."""
        with pytest.raises(ValueError):
            TriggerConfig(type="email")
