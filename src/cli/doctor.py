"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.divisions.cache import DivisionIndexCache
from adapters.http_client import build_async_client
from core.config import AppSettings, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc) or exc.__class__.__name__


def _check_divisions(settings: AppSettings) -> tuple[bool, str]:
    """Load the municipality table through the same path quotes use."""

    try:
        index = DivisionIndexCache.from_settings(settings).get()
    except Exception as exc:
        return False, str(exc)
    if not len(index):
        return False, "Municipality table is empty"
    source = settings.divisions_url or str(settings.divisions_path or "bundled/default dataset")
    return True, f"{len(index)} municipalities ({source})"


@app.command()
def run(
    skip_network: bool = typer.Option(False, "--skip-network", help="Skip the connectivity check."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="Envios Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    if settings.envia_api_key:
        table.add_row("Envia API key", "OK", "Configured")
    else:
        table.add_row("Envia API key", "FAIL", "Missing -> quotes return a 500 configuration error")
    table.add_row("Envia base_url", "OK", settings.envia_base_url)
    table.add_row("Carriers", "OK", ", ".join(settings.carriers))
    table.add_row(
        "Origin",
        "OK",
        f"{settings.origin.city} ({settings.origin.state}, {settings.origin.country})",
    )
    table.add_row("Timeout", "OK", f"{settings.http_timeout_seconds:g}s per carrier call")

    ok_div, detail_div = _check_divisions(settings)
    table.add_row("Municipality table", "OK" if ok_div else "FAIL", detail_div)

    # Connectivity (best-effort)
    if not skip_network:
        ok_http, detail_http = asyncio.run(_check_http(settings.envia_base_url, settings))
        table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)

    if not settings.envia_api_key:
        _console.print("\n[yellow]Note:[/yellow] run `envios doctor setup-envia` to store the API key.")


@app.command(name="setup-envia")
def setup_envia() -> None:
    """Interactive Envia.com setup (stores config in the user config .env)."""

    base_url = typer.prompt("Envia base URL", default="https://api.envia.com", show_default=True).strip()
    api_key = typer.prompt("Envia API key", hide_input=True, confirmation_prompt=False).strip()

    if not base_url or not api_key:
        raise typer.BadParameter("base_url and api key are required")

    env_path = write_user_env_vars(
        {
            "ENVIOS_ENVIA_BASE_URL": base_url,
            "ENVIOS_ENVIA_API_KEY": api_key,
        }
    )

    _console.print(f"[green]Saved Envia config to:[/green] {env_path}")
