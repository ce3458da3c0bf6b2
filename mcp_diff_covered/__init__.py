"""
MCP adapter for diff-covered.

Exposes the diff_covered.check tool for MCP hosts.
"""

from mcp_diff_covered.tool import handle

__all__ = ["handle"]
__version__ = "0.1.0"
