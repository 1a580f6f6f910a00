# wflint/config package
# Linter defaults (lint.yaml + environment) and the project configuration schema.

from .project_config import (
    ProjectConfig,
    ProjectConfigError,
    ProjectConfigNotFoundError,
    ProjectConfigValidationError,
    TriggerConfig,
    WorkflowConfig,
    get_config_path,
    load_config_data,
    load_project_config,
    read_project_config,
)
from .runtime_config import (
    default_options,
    get_config_file_name,
    get_workflow_suffix,
    get_workflows_dir,
    is_strict_by_default,
    reset_config,
)

__all__ = [
    "ProjectConfig",
    "ProjectConfigError",
    "ProjectConfigNotFoundError",
    "ProjectConfigValidationError",
    "TriggerConfig",
    "WorkflowConfig",
    "default_options",
    "get_config_file_name",
    "get_config_path",
    "get_workflow_suffix",
    "get_workflows_dir",
    "is_strict_by_default",
    "load_config_data",
    "load_project_config",
    "read_project_config",
    "reset_config",
]
