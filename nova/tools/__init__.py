"""Tool catalog and argument validation."""

from nova.tools.catalog import ALL_TOOLS, ToolCatalog

__all__ = ["ALL_TOOLS", "ToolCatalog"]
