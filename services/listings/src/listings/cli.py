"""Operator CLI for the read-only parts of the edit-session core."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from common.config import settings
from common.http import http_client
from common.logging import configure_logging
from common.schemas import LabelledOption

from .cascade import DependentSelectionCascade
from .geo import extract_coordinates, is_short_link
from .stores.api import ApiClient, ApiTaxonomyStore
from .stores.provinces import ProvincesGeoStore
from .taxonomy import TaxonomyTree

load_dotenv()

console = Console()
app = typer.Typer(help="Brokerage console edit-session tools.")


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level")) -> None:
    configure_logging(log_level, force=True)


@app.command()
def coords(url: str = typer.Argument(..., help="Pasted map link")) -> None:
    """Extract latitude/longitude from a map link."""

    result = extract_coordinates(url)
    if result is None:
        hint = " (short links do not embed coordinates)" if is_short_link(url) else ""
        console.print(f"[red]No coordinates found in link{hint}[/red]")
        raise typer.Exit(code=1)
    console.print(f"{result.latitude},{result.longitude}")


def _options_table(title: str, options: List[LabelledOption]) -> Table:
    table = Table(title=title)
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    for option in options:
        table.add_row(option.code, option.label)
    return table


@app.command()
def regions(
    province: Optional[str] = typer.Option(None, "--province", "-p", help="Province code"),
    district: Optional[str] = typer.Option(None, "--district", "-d", help="District code"),
) -> None:
    """List provinces, or the districts / wards under a selection."""

    async def _run() -> None:
        async with http_client(settings.provinces_api_base_url, timeout=settings.http_timeout_seconds) as client:
            cascade = DependentSelectionCascade.for_geo_store(ProvincesGeoStore(client=client))
            warnings = [await cascade.load_root()]
            if province:
                warnings.append(await cascade.select_level(0, province))
            if province and district:
                warnings.append(await cascade.select_level(1, district))

        for warning in filter(None, warnings):
            console.print(f"[yellow]Could not load {warning.level_name}s: {warning.message}[/yellow]")

        deepest = 0
        for index, level in enumerate(cascade.levels):
            if level.options:
                deepest = index
        level = cascade.levels[deepest]
        console.print(_options_table(level.name.title() + "s", level.options))

    asyncio.run(_run())


@app.command()
def amenities(project_id: str = typer.Argument(..., help="Project id")) -> None:
    """Show a project's amenities grouped by category."""

    async def _run() -> None:
        api = ApiClient()
        try:
            tree = TaxonomyTree(ApiTaxonomyStore(api), project_id)
            await tree.load_all()
        finally:
            await api.close()

        table = Table(title=f"Amenities for {project_id}")
        table.add_column("Category", style="cyan")
        table.add_column("Items")
        for category, items in tree.grouped_items().items():
            table.add_row(category or "(uncategorised)", ", ".join(item.name for item in items))
        console.print(table)

    asyncio.run(_run())


if __name__ == "__main__":
    app()
