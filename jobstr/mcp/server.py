# jobstr/mcp/server.py
# SPDX-License-Identifier: Apache-2.0
"""
FastMCP server for Nostr job listings.

- Registers the job tools (search_jobs, get_job_details, get_stats, list_relays).
- Resources: jobs://latest, jobs://stats.
- Prompts: job_search_assistant, analyze_job_market.
- The relay runtime is started/stopped through the server lifespan.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from .tools import JobTools, register_job_tools

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Nostr Jobs MCP Server - decentralized job listings (kind 9993) aggregated from Nostr relays.\n\n"
    "Tools:\n"
    "• search_jobs - listings for a skill, optionally filtered by company or employment type\n"
    "• get_job_details - full listing by id\n"
    "• get_stats - skill co-occurrence and counts\n"
    "• list_relays - relay status\n\n"
    "Resources:\n"
    "• jobs://latest - latest job listings\n"
    "• jobs://stats - job market statistics"
)


def job_search_prompt(query: str, skills: Optional[List[str]] = None) -> str:
    skills_text = f"Required skills: {', '.join(skills)}\n" if skills else ""
    return (
        "You are a Nostr job search assistant with access to decentralized job listings.\n\n"
        f"Search Query: {query}\n{skills_text}\n"
        "Use search_jobs for each relevant skill, open promising listings with get_job_details, "
        "and recommend the best matches with a short reason for each."
    )


def market_prompt() -> str:
    return (
        "Analyze the job listings available on Nostr. Use get_stats to find trending skills and "
        "skills that are commonly requested together, which companies are hiring, and which "
        "employment types dominate. Where listings state salaries, summarize the ranges."
    )


def create_mcp_server(tools: JobTools, lifespan=None) -> FastMCP:
    """Create and configure the MCP server with all job tools."""
    mcp = FastMCP("nostr-jobs", instructions=INSTRUCTIONS, lifespan=lifespan)

    register_job_tools(mcp, tools)

    # Health check
    @mcp.tool()
    async def ping() -> Dict[str, Any]:
        """Lightweight health check."""
        return {"status": "ok", "service": "nostr-jobs"}

    @mcp.resource("jobs://latest")
    async def latest_jobs() -> Dict[str, Any]:
        """Latest job listings."""
        return tools.latest()

    @mcp.resource("jobs://stats")
    async def job_stats() -> Dict[str, Any]:
        """Job market statistics."""
        return tools.get_stats()

    @mcp.prompt()
    def job_search_assistant(query: str, skills: Optional[List[str]] = None) -> str:
        """Help searching for jobs matching a query and skills."""
        return job_search_prompt(query, skills)

    @mcp.prompt()
    def analyze_job_market() -> str:
        """Analyze current job market trends on Nostr."""
        return market_prompt()

    return mcp
