"""
project_config.py - Schema and loader for a project's configuration file.

A project folder looks like:

    my-project/
      config.yaml
      workflows/
        main.json
        helper.json

config.yaml:

    project_id: my-project
    workflow_files:
      - workflows/main.json
      - workflows/helper.json
    workflows:
      - workflow_template_id: main
        workflow_name: Main Workflow
        triggers:
          - trigger_id: http-trigger
            type: http
            url: "{{ORGSECRET_N8N_BASE_URL_TERCESORG}}/webhook/my-project/main"
      - workflow_template_id: helper
        triggers:
          - type: subworkflow
            called_by: [main]
            input_schema:
              - name: payload
                type: string

By convention a workflow file's stem is its workflow_template_id.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .runtime_config import get_config_file_name

logger = logging.getLogger(__name__)

TRIGGER_TYPES = ("http", "schedule", "subworkflow", "service_event")


# =============================================================================
# Error Types
# =============================================================================


class ProjectConfigError(Exception):
    """Base exception for project configuration errors."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(message)


class ProjectConfigNotFoundError(ProjectConfigError):
    """Raised when the configuration file does not exist or cannot be read."""

    def __init__(self, path: Path, reason: Optional[str] = None):
        self.reason = reason
        msg = f"Project configuration not found: {path}"
        if reason:
            msg = f"Cannot read project configuration {path}: {reason}"
        super().__init__(path, msg)


class ProjectConfigValidationError(ProjectConfigError):
    """Raised when the configuration file is not valid YAML or fails the schema."""

    def __init__(self, path: Path, errors: List[str], line: Optional[int] = None):
        self.errors = errors
        self.line = line
        super().__init__(path, f"Invalid project configuration {path}: {'; '.join(errors)}")


# =============================================================================
# Schema
# =============================================================================


class TriggerConfig(BaseModel):
    """One trigger of a configured workflow."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="http, schedule, subworkflow or service_event")
    trigger_id: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None, description="Webhook URL for http triggers")
    manual_trigger_url: Optional[str] = Field(
        default=None,
        description="Webhook URL used to run a scheduled workflow by hand",
    )
    called_by: Optional[List[str]] = Field(
        default=None,
        description="Template ids of workflows calling this sub-workflow",
    )
    input_schema: Optional[List[Any]] = Field(default=None)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate that type is a known trigger type."""
        if v not in TRIGGER_TYPES:
            raise ValueError(f"type must be one of {TRIGGER_TYPES}, got '{v}'")
        return v

    @property
    def label(self) -> str:
        return self.trigger_id or self.type


class WorkflowConfig(BaseModel):
    """One workflow declared in the project configuration."""

    model_config = ConfigDict(extra="allow")

    workflow_template_id: str
    workflow_name: Optional[str] = None
    triggers: Optional[List[TriggerConfig]] = Field(
        default=None,
        description="None when the key is absent, [] when declared empty",
    )


class ProjectConfig(BaseModel):
    """Root of config.yaml."""

    model_config = ConfigDict(extra="allow")

    project_id: str = Field(min_length=1)
    workflow_files: List[str]
    workflows: List[WorkflowConfig] = Field(default_factory=list)

    @property
    def template_ids(self) -> List[str]:
        return [w.workflow_template_id for w in self.workflows]

    def get_workflow(self, template_id: str) -> Optional[WorkflowConfig]:
        for workflow in self.workflows:
            if workflow.workflow_template_id == template_id:
                return workflow
        return None


# =============================================================================
# Loading
# =============================================================================


def get_config_path(folder: Union[str, Path]) -> Path:
    return Path(folder) / get_config_file_name()


def _format_pydantic_errors(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "(root)"
        messages.append(f"{location}: {item.get('msg', 'invalid value')}")
    return messages


def load_config_data(folder: Union[str, Path]) -> Dict[str, Any]:
    """Read and YAML-parse the configuration file without schema validation.

    Raises:
        ProjectConfigNotFoundError: File missing or unreadable.
        ProjectConfigValidationError: YAML syntax error or non-mapping document.
    """
    path = get_config_path(folder)
    if not path.is_file():
        raise ProjectConfigNotFoundError(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ProjectConfigNotFoundError(path, str(e))

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise ProjectConfigValidationError(path, [f"Invalid YAML: {e}"], line=line)

    if not isinstance(data, dict):
        raise ProjectConfigValidationError(path, ["Configuration must be a mapping"])
    return data


def load_project_config(folder: Union[str, Path]) -> ProjectConfig:
    """Load and validate a project's configuration file.

    Raises:
        ProjectConfigNotFoundError: File missing or unreadable.
        ProjectConfigValidationError: Invalid YAML or schema violations.
    """
    data = load_config_data(folder)
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ProjectConfigValidationError(get_config_path(folder), _format_pydantic_errors(e))


def read_project_config(folder: Union[str, Path]) -> Optional[ProjectConfig]:
    """Like load_project_config, but returns None on any configuration error.

    Cross-file checks use this and leave reporting to the schema check.
    """
    try:
        return load_project_config(folder)
    except ProjectConfigError as e:
        logger.debug("Skipping project configuration: %s", e)
        return None
