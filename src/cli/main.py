"""CLI de cotización (Typer + Rich).

Comandos:
- `quote`: cotiza un destino contra todas las transportadoras.
- `resolve`: solo la resolución ciudad/departamento -> DANE/estado.
- `divisions`: consulta y refresco de la tabla de municipios.
- `doctor`: diagnóstico de entorno.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import export_quote_json
from cli import doctor
from cli.ui_components import (
    build_divisions_table,
    build_match_panel,
    build_quotes_table,
    print_banner,
)
from core.config import AppSettings
from core.domain.models import QuoteResponse, ResolvedDestination
from core.services.city_resolver import FuzzyCityResolver
from core.services.department_mapper import DepartmentCodeMapper
from core.services.quote_pipeline import handle_quote_request, shared_division_cache

app = typer.Typer(no_args_is_help=True, help="Cotización de envíos multi-transportadora (Envia.com).")
divisions_app = typer.Typer(no_args_is_help=True, help="Tabla de municipios DANE.")
app.add_typer(divisions_app, name="divisions")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx loguea cada request en INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs detallados (DEBUG)."),
) -> None:
    configure_logging(verbose)


@app.command()
def quote(
    city: str = typer.Argument(..., help="Ciudad de destino (texto libre)."),
    department: str = typer.Argument(..., help="Departamento o código de provincia (p.ej. ANT)."),
    weight: float | None = typer.Option(None, "--weight", "-w", help="Peso en kg."),
    declared_value: float | None = typer.Option(None, "--declared-value", help="Valor declarado (COP)."),
    postal_code: str | None = typer.Option(None, "--postal-code", help="Código postal de destino."),
    as_json: bool = typer.Option(False, "--json", help="Imprime el payload JSON en lugar de tablas."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Guarda el payload JSON en un archivo."),
) -> None:
    """Cotiza un envío hacia CITY/DEPARTMENT."""

    payload: dict[str, object] = {
        "destination_city": city,
        "destination_department": department,
    }
    if postal_code:
        payload["destination_postal_code"] = postal_code
    if weight is not None:
        payload["package_weight"] = weight
    if declared_value is not None:
        payload["declared_value"] = declared_value

    status, body = asyncio.run(handle_quote_request(payload, settings=AppSettings()))

    if output:
        export_quote_json(payload=body, output_path=output)

    if as_json:
        typer.echo(json.dumps(body, ensure_ascii=False, indent=2))
        if status != 200:
            raise typer.Exit(code=1)
        return

    if status != 200:
        _console.print(f"[red]Error ({status}):[/red] {body.get('error')}")
        raise typer.Exit(code=1)

    response = QuoteResponse.model_validate(body)
    print_banner(_console)
    _console.print(build_match_panel(response.match_info, response.destination))
    if not response.quotes:
        _console.print("[yellow]No hay tarifas terrestres disponibles para este destino.[/yellow]")
        return
    _console.print(build_quotes_table(response.domicilio, title="Entrega a domicilio"))
    _console.print(build_quotes_table(response.oficina, title="Recoger en oficina"))
    if output:
        _console.print(f"[green]JSON guardado en:[/green] {output}")


@app.command()
def resolve(
    city: str = typer.Argument(..., help="Ciudad en texto libre."),
    department: str | None = typer.Option(None, "--department", "-d", help="Departamento sugerido."),
    as_json: bool = typer.Option(False, "--json", help="Imprime el diagnóstico en JSON."),
) -> None:
    """Resuelve una ciudad (y departamento) sin cotizar."""

    settings = AppSettings()
    resolver = FuzzyCityResolver(
        shared_division_cache(settings).get(),
        threshold=settings.fuzzy_threshold,
        max_suggestions=settings.max_suggestions,
        fallback_code=settings.default_division_code,
    )
    code, match = resolver.resolve(city, department)
    state_code = DepartmentCodeMapper(default_code=settings.default_state_code).map_to_state_code(
        department or match.matched_department
    )
    destination = ResolvedDestination(
        city=match.matched_municipality or city,
        department=match.matched_department or department or "",
        state_code=state_code,
        dane_code=code,
    )

    if as_json:
        typer.echo(
            json.dumps(
                {
                    "destination": destination.model_dump(mode="json"),
                    "matchInfo": match.model_dump(mode="json", by_alias=True),
                },
                ensure_ascii=False,
                indent=2,
            )
        )
        return
    _console.print(build_match_panel(match, destination))


@divisions_app.command("search")
def divisions_search(
    text: str = typer.Argument(..., help="Prefijo o fragmento del municipio."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=500),
) -> None:
    """Busca municipios por prefijo y luego por fragmento."""

    index = shared_division_cache(AppSettings()).get()
    matches = index.search(text, limit=limit)
    if not matches:
        _console.print(f"[yellow]Sin resultados para {text!r}.[/yellow]")
        raise typer.Exit(code=1)
    _console.print(build_divisions_table(matches))


@divisions_app.command("refresh")
def divisions_refresh() -> None:
    """Recarga la tabla de municipios desde su fuente configurada."""

    index = shared_division_cache(AppSettings()).refresh()
    _console.print(f"[green]Municipios cargados:[/green] {len(index)}")


def run() -> None:
    app()
