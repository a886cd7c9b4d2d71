"""CLI entry point for toolbridge.

Provides the ``toolbridge`` command with subcommands for running the
gateway and managing configuration.

Typical usage::

    toolbridge serve --port 3000
    toolbridge config show
    toolbridge config init
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
import httpx
from rich.console import Console

from toolbridge import __version__
from toolbridge.backend import BackendClient
from toolbridge.config import Config, config_path, load_config, write_config
from toolbridge.display import render_config_show, render_config_test
from toolbridge.errors import ConfigurationError
from toolbridge.models import BackendReply
from toolbridge.router import ModelRouter
from toolbridge.types import RoutingEntry

console = Console(stderr=True)

LOG_LEVELS = ["debug", "info", "warning", "error"]
PROBE_PROMPT = "Say OK"


def _load_or_exit() -> Config:
    """Load configuration, exiting with a message on errors."""
    try:
        return load_config()
    except ConfigurationError as exc:
        console.print(f"[red bold]Configuration error:[/red bold] {exc}")
        sys.exit(1)


def _router_or_exit(cfg: Config) -> ModelRouter:
    try:
        return cfg.build_router()
    except ConfigurationError as exc:
        console.print(f"[red bold]Configuration error:[/red bold] {exc}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="toolbridge")
def main() -> None:
    """Emulated tool calling gateway.

    Accepts Anthropic-style /v1/messages requests with tools and serves
    them from OpenAI-style chat completions backends that have no native
    tool calling.
    """


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: config or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="Port to bind to (default: config or 3000).")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    help="Logging level (default: info).",
)
def serve(host: str | None, port: int | None, log_level: str) -> None:
    """Start the gateway HTTP server."""
    import uvicorn

    from toolbridge.server import create_app

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = _load_or_exit()
    try:
        app = create_app(cfg)
    except ConfigurationError as exc:
        console.print(f"[red bold]Configuration error:[/red bold] {exc}")
        sys.exit(1)

    bind_host = host or cfg.host
    bind_port = port or cfg.port
    console.print(f"[dim]Server listening on http://{bind_host}:{bind_port}[/dim]")
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=log_level.lower())


@main.group()
def config() -> None:
    """Manage configuration."""


@config.command()
def path() -> None:
    """Print the configuration file path."""
    click.echo(config_path())


@config.command("show")
def config_show() -> None:
    """Display effective configuration (keys masked)."""
    cfg = _load_or_exit()
    router = _router_or_exit(cfg)
    render_config_show(cfg, router.entries, router.default_model)


@config.command()
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file.")
def init(force: bool) -> None:
    """Write a starter configuration file.

    Values currently set through environment variables are left out.
    """
    target = config_path()
    if target.exists() and not force:
        console.print(
            f"[red bold]Error:[/red bold] {target} already exists. Use --force to overwrite."
        )
        sys.exit(1)
    cfg = _load_or_exit()
    if not cfg.models and "models" not in cfg.env_fields:
        cfg.models = ["gpt-4o"]
        cfg.base_urls = ["https://api.openai.com"]
        cfg.keys = ["sk-..."]
    written = write_config(cfg, target)
    console.print(f"[dim]Configuration written to {written}[/dim]")


async def _run_config_test(
    entries: list[RoutingEntry],
    timeout: float | None,
) -> list[tuple[RoutingEntry, BackendReply | str]]:
    """Send a probe prompt to every routed backend in parallel.

    Args:
        entries: Routing entries to probe.
        timeout: Backend request timeout in seconds.

    Returns:
        ``(entry, outcome)`` pairs; outcome is the reply or a transport
        error message.
    """
    async with BackendClient(timeout=timeout) as backend:

        async def probe(entry: RoutingEntry) -> BackendReply | str:
            try:
                return await backend.send(entry, entry.model_id, PROBE_PROMPT)
            except httpx.HTTPError as exc:
                return f"{type(exc).__name__}: {exc}"

        outcomes = await asyncio.gather(*(probe(entry) for entry in entries))
    return list(zip(entries, outcomes, strict=True))


@config.command()
@click.option("--timeout", default=30.0, type=float, help="Per-backend timeout in seconds.")
def test(timeout: float) -> None:
    """Test backend configuration.

    Sends a minimal prompt to every routed backend and reports latency
    and errors.
    """
    cfg = _load_or_exit()
    router = _router_or_exit(cfg)

    console.print(f"[dim]Testing {len(router.entries)} backend(s)...[/dim]")
    results = asyncio.run(_run_config_test(router.entries, timeout))
    render_config_test(results)

    if any(isinstance(outcome, str) or not outcome.ok for _, outcome in results):
        sys.exit(1)


if __name__ == "__main__":
    main()
