"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en `quote` y `resolve`.
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import AdminDivisionEntry, CarrierQuote, CityMatchResult, MatchType, ResolvedDestination

_MATCH_STYLES = {
    MatchType.EXACT: "green",
    MatchType.FUZZY: "yellow",
    MatchType.NOT_FOUND: "red",
}


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (se omite en modo `--json`)."""

    title = Text("ENVIOS", style="bold cyan")
    subtitle = Text("Cotización multi-transportadora • Colombia", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def format_cop(value: float) -> str:
    return "$" + f"{value:,.0f}".replace(",", ".")


def build_quotes_table(quotes: Iterable[CarrierQuote], *, title: str = "Tarifas") -> Table:
    table = Table(title=title)
    table.add_column("Transportadora", style="cyan", no_wrap=True)
    table.add_column("Servicio", style="white")
    table.add_column("Entrega", style="magenta")
    table.add_column("Precio", style="green", justify="right")
    table.add_column("Días", justify="right")
    table.add_column("Estimado", style="dim")
    for q in quotes:
        table.add_row(
            q.carrier,
            q.service_display_name,
            q.delivery_type_label,
            f"{format_cop(q.price)} {q.currency}",
            str(q.estimated_days or "-"),
            q.delivery_estimate or "",
        )
    return table


def build_match_panel(match: CityMatchResult, destination: ResolvedDestination | None = None) -> Panel:
    """Panel con el diagnóstico de la resolución de ciudad."""

    style = _MATCH_STYLES.get(match.match_type, "white")
    body = Text()
    body.append(f"Entrada: {match.input_city!r}\n")
    body.append("Resultado: ")
    body.append(match.match_type.value, style=f"bold {style}")
    body.append(f"  (confianza {match.confidence:.2f})\n")
    if match.matched_municipality:
        body.append(f"Municipio: {match.matched_municipality}, {match.matched_department}\n")
    if destination:
        body.append(f"Estado: {destination.state_code}  DANE: {destination.dane_code}\n")
    if match.suggestions:
        body.append("Sugerencias:\n", style="bold")
        for s in match.suggestions:
            body.append(f"- {s.municipality} ({s.department}) {s.similarity:.2f}\n")

    return Panel(body, title=Text("Destino", style="bold"), border_style=style)


def build_divisions_table(entries: Iterable[AdminDivisionEntry]) -> Table:
    table = Table(title="Municipios")
    table.add_column("DANE", style="cyan", no_wrap=True)
    table.add_column("Municipio", style="white")
    table.add_column("Departamento", style="magenta")
    for e in entries:
        table.add_row(e.canonical_code, e.municipality_name, e.department_name)
    return table
