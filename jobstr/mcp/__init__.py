# SPDX-License-Identifier: Apache-2.0
"""
MCP surface for jobstr.

- `create_mcp_server(tools)` builds a FastMCP instance with all tools registered.
- `JobTools` holds the tool implementations (always returning dicts).
"""

from __future__ import annotations

from .server import create_mcp_server
from .tools import JobTools, register_job_tools

__all__ = ["create_mcp_server", "JobTools", "register_job_tools"]
