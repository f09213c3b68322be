"""External tool invocation and lookup."""

from .service import ToolLocator, ToolPaths, ToolRunner, run_tool

__all__ = ["ToolLocator", "ToolPaths", "ToolRunner", "run_tool"]
