# wflint/checks package
# Built-in graph, content and project checks.

from typing import List

from .content import CONTENT_CHECKS
from .graph import GRAPH_CHECKS
from .project import PROJECT_CHECKS


def builtin_checks() -> List:
    """Every built-in check in execution order: graph, content, then project."""
    return [*GRAPH_CHECKS, *CONTENT_CHECKS, *PROJECT_CHECKS]


__all__ = ["CONTENT_CHECKS", "GRAPH_CHECKS", "PROJECT_CHECKS", "builtin_checks"]
