"""Runtime configuration for the linter.

Provides the project layout conventions (config file name, workflow folder,
workflow file suffix) and default validation options. Environment variables
take precedence over lint.yaml.

Usage:
    from wflint.config.runtime_config import get_workflows_dir, default_options

    workflows = Path(project) / get_workflows_dir()
    options = default_options(fix=True)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import yaml

if TYPE_CHECKING:
    from wflint.validator.findings import ValidationOptions

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "lint.yaml"
_cached_config: Optional[Dict[str, Any]] = None

_TRUTHY = ("1", "true", "yes", "on")


def _load_config() -> Dict[str, Any]:
    """Load lint.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or _default_config()
    else:
        _cached_config = _default_config()

    return _cached_config


def _default_config() -> Dict[str, Any]:
    """Return default configuration if lint.yaml doesn't exist."""
    return {
        "version": "1.0",
        "project": {
            "config_file": "config.yaml",
            "workflows_dir": "workflows",
            "workflow_suffix": ".json",
        },
        "defaults": {
            "strict": False,
        },
    }


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def _project_setting(key: str, env_var: str) -> str:
    env_value = os.environ.get(env_var)
    if env_value:
        return env_value
    value = _load_config().get("project", {}).get(key)
    if value:
        return str(value)
    return str(_default_config()["project"][key])


def get_config_file_name() -> str:
    """Project configuration file name (WFLINT_CONFIG_FILE > lint.yaml)."""
    return _project_setting("config_file", "WFLINT_CONFIG_FILE")


def get_workflows_dir() -> str:
    """Workflow subfolder name (WFLINT_WORKFLOWS_DIR > lint.yaml)."""
    return _project_setting("workflows_dir", "WFLINT_WORKFLOWS_DIR")


def get_workflow_suffix() -> str:
    """Workflow file suffix (WFLINT_WORKFLOW_SUFFIX > lint.yaml)."""
    suffix = _project_setting("workflow_suffix", "WFLINT_WORKFLOW_SUFFIX")
    return suffix if suffix.startswith(".") else f".{suffix}"


def is_strict_by_default() -> bool:
    """Whether strict mode is on when the caller does not say.

    Precedence: WFLINT_STRICT > lint.yaml defaults.strict > False.
    """
    env_value = os.environ.get("WFLINT_STRICT")
    if env_value is not None:
        return env_value.strip().lower() in _TRUTHY
    return bool(_load_config().get("defaults", {}).get("strict", False))


def default_options(**overrides: Any) -> "ValidationOptions":
    """Build ValidationOptions from configured defaults plus explicit overrides."""
    from wflint.validator.findings import ValidationOptions

    values: Dict[str, Any] = {"strict": is_strict_by_default()}
    values.update(overrides)
    return ValidationOptions(**values)
