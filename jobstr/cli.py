# jobstr/cli.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import asyncio
import dataclasses
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from jobstr.exceptions import ConfigurationError
from jobstr.mcp import JobTools, create_mcp_server
from jobstr.runtime import Runtime
from jobstr.settings import SETTINGS, _Settings
from jobstr.utils.logging import setup_logger

app = typer.Typer(add_completion=False, help="Nostr job listings for LLM agents over MCP.")

logger = logging.getLogger(__name__)

JOBSTR_THEME = Theme({
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
    "banner": "bold magenta",
    "table.title": "bold magenta",
    "table.header": "green",
})
# stdout belongs to the stdio transport
console = Console(theme=JOBSTR_THEME, stderr=True)


def _settings(
    relays: Optional[List[str]] = None,
    snapshot: Optional[Path] = None,
    **changes,
) -> _Settings:
    """SETTINGS with CLI overrides applied (re-validated)."""
    changes = {k: v for k, v in changes.items() if v is not None}
    if relays:
        changes["relays"] = list(relays)
    if snapshot is not None:
        changes["snapshot_path"] = str(snapshot)
    try:
        return dataclasses.replace(SETTINGS, **changes)
    except ConfigurationError as e:
        console.print(f"[error]Configuration error: {e}[/error]")
        raise typer.Exit(code=2)


def _banner(settings: _Settings) -> None:
    console.print(
        Panel(
            f"[banner]Nostr Jobs MCP Server[/banner]\n"
            f"transport: {settings.transport}"
            + (f" ({settings.host}:{settings.port})" if settings.transport != "stdio" else "")
            + f"\nrelays: {len(settings.relays)}",
            border_style="magenta",
            padding=(0, 2),
        )
    )


@app.command()
def serve(
    transport: Optional[str] = typer.Option(None, help="MCP transport: stdio, sse, http"),
    host: Optional[str] = typer.Option(None, help="Bind host for sse/http"),
    port: Optional[int] = typer.Option(None, help="Bind port for sse/http"),
    relay: Optional[List[str]] = typer.Option(None, "--relay", "-r", help="Relay URL (repeatable)"),
    snapshot: Optional[Path] = typer.Option(None, help="Snapshot file to load at start and save periodically"),
):
    """Run the MCP server while indexing job listings from the relays."""
    settings = _settings(relay, snapshot, transport=transport, host=host, port=port)
    setup_logger(settings.log_level, settings.log_json)
    _banner(settings)

    runtime = Runtime(settings)

    @asynccontextmanager
    async def lifespan(_server):
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    mcp = create_mcp_server(JobTools.from_runtime(runtime), lifespan=lifespan)
    try:
        if settings.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport=settings.transport, host=settings.host, port=settings.port)
    except KeyboardInterrupt:
        console.print("\n[warning]Server stopped by user[/warning]")


def _render_stats(report: dict, top: int) -> None:
    console.print(f"[success]{report['totalListings']} listing(s) indexed[/success]")

    skills = Table(title="Top Skills", title_style="table.title", header_style="table.header")
    skills.add_column("Skill", style="bold")
    skills.add_column("Listings", justify="right")
    for name, count in list(report["skillCounts"].items())[:top]:
        skills.add_row(name, str(count))
    console.print(skills)

    pairs = Table(title="Skills Requested Together", title_style="table.title", header_style="table.header")
    pairs.add_column("Pair", style="bold")
    pairs.add_column("Listings", justify="right")
    for row in report["pairs"][:top]:
        pairs.add_row(" + ".join(row["skills"]), str(row["count"]))
    console.print(pairs)

    companies = Table(title="Top Companies", title_style="table.title", header_style="table.header")
    companies.add_column("Company", style="bold")
    companies.add_column("Listings", justify="right")
    for name, count in list(report["companyCounts"].items())[:top]:
        companies.add_row(name, str(count))
    console.print(companies)


async def _sync(settings: _Settings, timeout: float) -> dict:
    runtime = Runtime(settings)
    await runtime.start()
    try:
        with console.status(f"Fetching listings from {len(settings.relays)} relay(s)..."):
            caught_up = await runtime.wait_caught_up(timeout)
        if not caught_up:
            console.print(f"[warning]Not every relay finished within {timeout:.0f}s; showing partial results.[/warning]")
    finally:
        await runtime.stop()
    return runtime.query.get_stats()


@app.command()
def sync(
    timeout: float = typer.Option(30.0, help="Seconds to wait for every relay to catch up"),
    relay: Optional[List[str]] = typer.Option(None, "--relay", "-r", help="Relay URL (repeatable)"),
    out: Optional[Path] = typer.Option(None, help="Write a snapshot file after syncing"),
    top: int = typer.Option(10, help="Rows per table"),
):
    """Fetch the current listings once, print market stats, optionally save a snapshot."""
    settings = _settings(relay, out)
    setup_logger(settings.log_level, settings.log_json)
    report = asyncio.run(_sync(settings, timeout))
    _render_stats(report, top)
    if out is not None:
        console.print(f"Snapshot: {out}")


if __name__ == "__main__":
    app()
