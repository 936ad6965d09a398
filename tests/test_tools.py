import json

import pytest
from fastmcp import Client, FastMCP

from jobstr.index import JobIndex, ListingParser
from jobstr.ingest import Ingestor
from jobstr.mcp import JobTools, create_mcp_server
from jobstr.mcp.error_handler import convert_exception_to_response
from jobstr.query import QueryService
from jobstr.relay import RelayPool, listing_filters

from conftest import build_listing_event


@pytest.fixture
def tools():
    index = JobIndex()
    index.upsert(ListingParser().parse(build_listing_event("a", title="Dev", skills=["python", "rust"])))
    pool = RelayPool([])
    ingestor = Ingestor(pool, index, listing_filters(9993, 10))
    return JobTools(QueryService(index), pool, ingestor)


def test_search_tool(tools):
    out = tools.search_jobs("rust")
    assert out["total"] == 1 and out["listings"][0]["title"] == "Dev"


def test_not_found_payload(tools):
    out = tools.get_job_details("0" * 64)
    assert out["error"] == "not_found"
    assert out["job_id"] == "0" * 64
    assert out["context"] == "get_job_details"


def test_invalid_argument_payload(tools):
    assert tools.search_jobs("  ")["error"] == "invalid_argument"
    assert tools.get_stats(top=0)["error"] == "invalid_argument"


def test_unexpected_error_payload():
    out = convert_exception_to_response(RuntimeError("boom"), "get_stats")
    assert out["error"] == "unknown_error"
    assert "boom" in out["message"]


def test_list_relays(tools):
    out = tools.list_relays()
    assert out["relays"] == []
    assert out["ingest"]["listings"] == 1
    assert out["ingest"]["ready"] is False


def test_create_server(tools):
    assert isinstance(create_mcp_server(tools), FastMCP)


@pytest.mark.asyncio
async def test_search_tool_uses_configured_limit():
    index = JobIndex()
    for slot in ("a", "b", "c"):
        index.upsert(ListingParser().parse(build_listing_event(slot, title="Dev", skills=["go"])))
    mcp = create_mcp_server(JobTools(QueryService(index, search_limit=2)))
    async with Client(mcp) as client:
        result = await client.call_tool_mcp("search_jobs", {"skill": "go"})
    out = json.loads(result.content[0].text)
    assert out["total"] == 3
    assert len(out["listings"]) == 2
