# jobstr/mcp/tools.py
# SPDX-License-Identifier: Apache-2.0
"""
Job tools exposed over MCP.

JobTools holds the plain implementations (QueryService + relay/ingest
introspection) and always returns a dict, either a result or an error payload
from error_handler. register_job_tools binds them to a FastMCP instance.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastmcp import FastMCP

from jobstr.query import QueryService

from .error_handler import handle_tool_error

logger = logging.getLogger(__name__)


class JobTools:
    def __init__(self, query: QueryService, pool=None, ingestor=None):
        self.query = query
        self.pool = pool
        self.ingestor = ingestor

    @classmethod
    def from_runtime(cls, runtime) -> "JobTools":
        return cls(runtime.query, runtime.pool, runtime.ingestor)

    def search_jobs(
        self,
        skill: str,
        company: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        try:
            return self.query.search_jobs(skill, company=company, job_type=job_type, limit=limit)
        except Exception as e:
            return handle_tool_error(e, "search_jobs")

    def get_job_details(self, job_id: str) -> Dict[str, Any]:
        try:
            return self.query.get_job_details(job_id)
        except Exception as e:
            return handle_tool_error(e, "get_job_details")

    def get_stats(self, skill: Optional[str] = None, top: Optional[int] = None) -> Dict[str, Any]:
        try:
            return self.query.get_stats(skill, top=top)
        except Exception as e:
            return handle_tool_error(e, "get_stats")

    def latest(self, limit: Optional[int] = None) -> Dict[str, Any]:
        try:
            return self.query.latest(limit)
        except Exception as e:
            return handle_tool_error(e, "latest")

    def list_relays(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.pool.describe() if self.pool is not None else {"relays": []}
        if self.ingestor is not None:
            data["ingest"] = self.ingestor.describe()
        return data


def register_job_tools(mcp: FastMCP, tools: JobTools) -> None:
    """
    Register all job-related tools with the MCP server.
    """

    @mcp.tool()
    async def search_jobs(
        skill: str,
        company: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Search current Nostr job listings by skill, newest first.

        Args:
            skill (str): Skill token, case-insensitive (e.g., "python", "Rust").
            company (str, optional): Case-insensitive substring filter on company.
            job_type (str, optional): Case-insensitive substring filter on employment type.
            limit (int, optional): Maximum listings to return (1-100); server default when omitted.

        Returns:
            Dict[str, Any]: {skill, total, listings: [{id, title, company, location, skills, salaryMin?, salaryMax?, currency?}]}
        """
        return tools.search_jobs(skill, company=company, job_type=job_type, limit=limit)

    @mcp.tool()
    async def get_job_details(job_id: str) -> Dict[str, Any]:
        """
        Get the full listing for an event id, a job id (the d / job-id tag), or
        '<author pubkey>:<slot>'.

        Returns the listing with description and raw tags, or an error payload
        with error='not_found'.
        """
        return tools.get_job_details(job_id)

    @mcp.tool()
    async def get_stats(skill: Optional[str] = None, top: Optional[int] = None) -> Dict[str, Any]:
        """
        Skill co-occurrence statistics over current listings.

        With `skill`, pairs are the skills that appear together with it, most
        frequent first. Also reports total listings and per-skill, per-company
        and per-employment-type counts.
        """
        return tools.get_stats(skill, top=top)

    @mcp.tool()
    async def list_relays() -> Dict[str, Any]:
        """Relay connection status and ingest counters."""
        return tools.list_relays()
