"""CLI entry point for ict-lookup."""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel as RichPanel
from rich.table import Table
from rich.text import Text

import ict_lookup
from ict_lookup.core.errors import IctLookupError
from ict_lookup.core.models import BoardResult, ScanResult

app = typer.Typer(
    name="ict-lookup",
    help="Look up ICT test history for a whole panel from one scanned DMC.",
    no_args_is_help=True,
)
console = Console()

_RESULT_STYLES = {
    BoardResult.PASSED: "green",
    BoardResult.FAILED: "red",
    BoardResult.UNKNOWN: "yellow",
}


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
) -> None:
    """Look up ICT test history for a whole panel from one scanned DMC."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _open_settings():
    from ict_lookup.data.settings import SettingsStore

    return SettingsStore()


def _build_orchestrator(
    db: Optional[str], products: Optional[str], workers: Optional[int]
):
    from ict_lookup.core.catalog import ProductCatalog
    from ict_lookup.core.orchestrator import QueryOrchestrator
    from ict_lookup.data.results import ResultsDatabase

    settings = _open_settings()
    try:
        db_path = settings.require("results_db", db)
        products_file = settings.resolve("products_file", products)
        max_workers = settings.resolve_workers(workers)
    finally:
        settings.close()

    catalog = ProductCatalog.from_file(products_file)
    results = ResultsDatabase(db_path)
    return QueryOrchestrator(results, catalog, max_workers=max_workers), results


def _result_cells(results: list[BoardResult], selected: int) -> Text:
    text = Text()
    for i, result in enumerate(results):
        style = _RESULT_STYLES[result]
        if i == selected:
            text.append("[■]", style=f"bold {style}")
        else:
            text.append(" ■ ", style=style)
    return text


def render_scan(scan: ScanResult, show_logs: bool = False) -> None:
    """Print the product header and the attempt table of a finished scan."""
    panel = scan.panel
    if panel is None or panel.is_empty():
        console.print("[yellow]No panel data to show.[/]")
        return

    console.print(
        RichPanel(
            f"[bold]DMC:[/] {scan.identifier}\n"
            f"[bold]Product:[/] {panel.product_name}\n"
            f"[bold]Boards on panel:[/] {panel.panel_size}\n"
            f"[bold]Scanned position:[/] {panel.selected_position + 1}",
            title="Panel",
            border_style="blue",
        )
    )

    table = Table(show_lines=False, row_styles=["", "dim"])
    table.add_column("#", justify="right")
    table.add_column("Results")
    table.add_column("Station")
    table.add_column("Time")
    if show_logs:
        table.add_column("Logs")

    for n, attempt in enumerate(panel.attempts, 1):
        row = [
            str(n),
            _result_cells(attempt.results, panel.selected_position),
            attempt.station,
            attempt.timestamp.strftime("%Y-%m-%d %H:%M"),
        ]
        if show_logs:
            row.append(
                "\n".join(
                    f"{pos + 1}: {ref}"
                    for pos, ref in enumerate(attempt.log_references)
                    if ref
                )
            )
        table.add_row(*row)

    console.print(table)

    for position, reason in sorted(scan.skipped.items()):
        console.print(
            f"[yellow]Position {position + 1} ({panel.serials[position]}) "
            f"skipped: {reason}[/]"
        )


@app.command()
def lookup(
    dmc: str = typer.Argument(..., help="Scanned DMC of one board"),
    db: Optional[str] = typer.Option(
        None, "--db", help="Results database path"
    ),
    products: Optional[str] = typer.Option(
        None, "--products", "-p", help="Product catalog file"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Parallel sibling lookups"
    ),
    logs: bool = typer.Option(
        False, "--logs", help="Show log file names per board"
    ),
) -> None:
    """Show the test history of the panel a DMC belongs to."""
    try:
        orchestrator, results = _build_orchestrator(db, products, workers)
    except IctLookupError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    try:
        scan = orchestrator.scan(dmc)
    except IctLookupError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    finally:
        results.close()

    render_scan(scan, show_logs=logs)


@app.command()
def watch(
    db: Optional[str] = typer.Option(
        None, "--db", help="Results database path"
    ),
    products: Optional[str] = typer.Option(
        None, "--products", "-p", help="Product catalog file"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Parallel sibling lookups"
    ),
    logs: bool = typer.Option(
        False, "--logs", help="Show log file names per board"
    ),
) -> None:
    """Scan DMCs one after another. Empty input exits."""
    from rich.prompt import Prompt

    try:
        orchestrator, results = _build_orchestrator(db, products, workers)
    except IctLookupError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    try:
        while True:
            try:
                dmc = Prompt.ask("DMC", console=console, default="", show_default=False)
            except EOFError:
                break
            dmc = dmc.strip()
            if not dmc:
                break
            try:
                scan = orchestrator.scan(dmc)
            except IctLookupError as e:
                console.print(f"[red]Error: {e}[/]")
                continue
            render_scan(scan, show_logs=logs)
    finally:
        results.close()


@app.command("products")
def list_products(
    products: Optional[str] = typer.Option(
        None, "--products", "-p", help="Product catalog file"
    ),
) -> None:
    """List the product catalog."""
    from ict_lookup.core.catalog import ProductCatalog

    settings = _open_settings()
    try:
        products_file = settings.resolve("products_file", products)
    finally:
        settings.close()

    try:
        catalog = ProductCatalog.from_file(products_file)
    except IctLookupError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    if not len(catalog):
        console.print(f"[yellow]No products loaded from {products_file}.[/]")
        raise typer.Exit(0)

    table = Table(title="Products")
    table.add_column("Name", style="green")
    table.add_column("Product code", style="cyan")
    table.add_column("Boards", justify="right")
    for product in catalog:
        table.add_row(product.name, product.product_code, str(product.panel_size))
    console.print(table)


@app.command("view-log")
def view_log(
    reference: str = typer.Argument(..., help="Log file name as recorded"),
    viewer: Optional[str] = typer.Option(
        None, "--viewer", help="Log viewer command"
    ),
    log_root: Optional[str] = typer.Option(
        None, "--log-root", help="Directory relative log names live under"
    ),
) -> None:
    """Open a test log in the external viewer."""
    from ict_lookup.core.log_viewer import launch_viewer

    settings = _open_settings()
    try:
        viewer_cmd = settings.resolve("log_viewer", viewer)
        root = settings.resolve("log_root", log_root) or None
    finally:
        settings.close()

    try:
        launch_viewer(reference, viewer_cmd, root)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Could not start {viewer_cmd}: {e}[/]")
        raise typer.Exit(1)


@app.command()
def config(
    action: str = typer.Argument(
        "get", help="Action: get or set"
    ),
    key: Optional[str] = typer.Argument(
        None, help="Config key (results_db, products_file, log_viewer, log_root, workers)"
    ),
    value: Optional[str] = typer.Argument(
        None, help="Value to set"
    ),
) -> None:
    """View or modify configuration."""
    from ict_lookup.data.settings import DEFAULTS

    store = _open_settings()

    try:
        if action == "get":
            if key:
                val = store.get_config(key)
                if val is not None:
                    console.print(f"{key} = {val}")
                else:
                    console.print(f"[yellow]{key} is not set[/]")
            else:
                for k in DEFAULTS:
                    val = store.get_config(k)
                    console.print(f"{k} = {val or '(not set)'}")
        elif action == "set":
            if not key or value is None:
                console.print("[red]Usage: ict-lookup config set <key> <value>[/]")
                raise typer.Exit(1)
            try:
                store.set_config(key, value)
            except IctLookupError as e:
                console.print(f"[red]{e}[/]")
                raise typer.Exit(1)
            console.print(f"[green]Set {key} = {value}[/]")
        else:
            console.print("[red]Unknown action. Use 'get' or 'set'.[/]")
            raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"ict-lookup {ict_lookup.__version__}")


if __name__ == "__main__":
    app()
