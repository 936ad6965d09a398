# SPDX-License-Identifier: Apache-2.0
"""
jobstr: Nostr job listings (kind 9993) indexed live and served to LLM agents over MCP.

- relay: websocket links to Nostr relays and a deduplicating pool
- index: listing parser, replace-by-revision store, statistics
- query / mcp: agent-facing operations (search_jobs, get_job_details, get_stats)
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__ = _pkg_version("jobstr")
except PackageNotFoundError:  # source checkout
    __version__ = "0.0.0+local"

__all__ = ["__version__"]
