"""Rich tables for CLI output.

Renders the effective configuration and backend probe results as
tables.

Typical usage::

    from toolbridge.display import render_config_show

    render_config_show(config)
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from toolbridge.config import Config
from toolbridge.models import BackendReply
from toolbridge.types import RoutingEntry

console = Console()

MAX_ERROR_WIDTH = 80


def render_config_show(config: Config, entries: list[RoutingEntry], default_model: str) -> None:
    """Render the effective configuration.

    Args:
        config: Loaded configuration.
        entries: Routing entries built from it.
        default_model: Model id used for unknown models and JSON repair.
    """
    table = Table(show_header=True, padding=(0, 1), title="Routes")
    table.add_column("Model", style="bold")
    table.add_column("Base URL")
    table.add_column("Key", style="dim")
    for entry in entries:
        data = entry.to_dict()
        model = data["model_id"]
        if model == default_model:
            model = f"[green]{model}[/green] (default)"
        table.add_row(model, data["base_url"], data["credential"])

    settings = Table(show_header=False, padding=(0, 1), title="Settings")
    settings.add_column("Setting", style="bold")
    settings.add_column("Value")
    settings.add_row("Listen", f"{config.host}:{config.port}")
    settings.add_row("Debug dumps", str(config.debug_dir) if config.debug else "off")
    settings.add_row("Templates", str(config.prompts_dir) if config.prompts_dir else "bundled")
    settings.add_row(
        "Cache",
        f"LRU {config.cache_max_entries}" if config.cache_max_entries else "unbounded",
    )
    settings.add_row("Cache TTL", f"{config.cache_ttl:g}s" if config.cache_ttl else "none")
    settings.add_row("Message format", config.message_format.value)
    settings.add_row("Normalize artifacts", "yes" if config.normalize_artifacts else "no")
    settings.add_row("Token encoding", config.token_encoding)
    settings.add_row(
        "Backend timeout", f"{config.backend_timeout:g}s" if config.backend_timeout else "none"
    )

    console.print()
    console.print(table)
    console.print(settings)
    console.print()


def render_config_test(results: list[tuple[RoutingEntry, BackendReply | str]]) -> None:
    """Render backend probe results as a Rich table.

    Args:
        results: ``(entry, outcome)`` pairs, where outcome is the
            backend reply or a transport error message.
    """
    table = Table(show_header=True, padding=(0, 1))
    table.add_column("Model", style="bold")
    table.add_column("Base URL", style="dim")
    table.add_column("Latency", justify="right")
    table.add_column("Status")

    for entry, outcome in results:
        if isinstance(outcome, str):
            latency_str = "—"
            status_str = f"[red]✗ {outcome[:MAX_ERROR_WIDTH]}[/red]"
        elif not outcome.ok:
            latency_str = "—"
            detail = (outcome.error or "")[:MAX_ERROR_WIDTH]
            status_str = f"[red]✗ HTTP {outcome.status_code}: {detail}[/red]"
        else:
            if outcome.latency_ms is not None:
                latency_str = f"{outcome.latency_ms / 1000:.1f}s"
            else:
                latency_str = "—"
            status_str = "[green]✓[/green]"
        table.add_row(entry.model_id, entry.base_url, latency_str, status_str)

    console.print()
    console.print(table)
    console.print()
