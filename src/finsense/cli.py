"""Command-line entry points for the FinSense dashboard."""

import asyncio
import json
import random
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import BaseModel
from rich import print as rprint
from rich.table import Table

from .catalog import load_catalog
from .config import Settings, get_settings
from .controller import Outcome
from .dashboard import Dashboard
from .errors import CatalogError
from .logs import configure_logging
from .models import ScoredArticle
from .store import FileSavedStore

app = typer.Typer(
    help="Score financial headlines, chart daily sentiment, and keep a saved list."
)

_SENTIMENT_STYLE = {"positive": "green", "negative": "red", "neutral": "yellow"}


def _to_plain(value: Any) -> Any:
    """Convert models, dates, and containers into JSON-serializable primitives."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item) for item in value]
    return value


def _print_json(value: Any) -> None:
    typer.echo(json.dumps(_to_plain(value), ensure_ascii=False, indent=2))


def _load_scored(settings: Settings, catalog: Optional[Path]) -> List[ScoredArticle]:
    rng = random.Random(settings.seed) if settings.seed is not None else None
    try:
        return load_catalog(catalog or settings.catalog_path, rng=rng)
    except CatalogError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _open_dashboard(
    settings: Settings, catalog: Optional[Path], user: Optional[str]
) -> Dashboard:
    store = FileSavedStore(settings.data_dir, namespace=settings.app_id)
    dashboard = Dashboard(
        store=store,
        user_id=user or settings.user_id,
        catalog=_load_scored(settings, catalog),
    )
    dashboard.start()
    return dashboard


_CATALOG_OPTION = typer.Option(
    None, "--catalog", help="JSON catalog file; defaults to the built-in sample headlines."
)
_USER_OPTION = typer.Option(
    None, "--user", "-u", help="Opaque user id; defaults to FINSENSE_USER_ID."
)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override FINSENSE_LOG_LEVEL for this run."
    ),
):
    configure_logging(log_level or get_settings().log_level)


@app.command("headlines")
def headlines_command(
    sentiment: str = typer.Option(
        "all", "--sentiment", "-s", help="all, positive, negative, or neutral."
    ),
    search: str = typer.Option("", "--search", "-q", help="Match title or source."),
    catalog: Optional[Path] = _CATALOG_OPTION,
    user: Optional[str] = _USER_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
):
    """List scored headlines, optionally filtered by sentiment and search term."""
    settings = get_settings()
    with _open_dashboard(settings, catalog, user) as dashboard:
        try:
            view = dashboard.view(sentiment.lower(), search)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    if as_json:
        _print_json(view.articles)
        return
    if not view.articles:
        rprint("[yellow]No articles match the current filters.[/yellow]")
        return

    table = Table(title="Headlines")
    for column in ("ID", "Date", "Source", "Title", "Sentiment", "Score", "Saved"):
        table.add_column(column)
    for article in view.articles:
        style = _SENTIMENT_STYLE[article.sentiment]
        table.add_row(
            article.id,
            article.date,
            article.source,
            article.title,
            f"[{style}]{article.sentiment}[/{style}]",
            f"{article.score:.3f}",
            "yes" if article.is_saved else "",
        )
    rprint(table)


@app.command("trend")
def trend_command(
    catalog: Optional[Path] = _CATALOG_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
):
    """Show the average sentiment score per day across the whole catalog."""
    settings = get_settings()
    view = Dashboard(catalog=_load_scored(settings, catalog)).view()

    if as_json:
        _print_json(view.trend)
        return
    table = Table(title="Market Sentiment Trend (Avg. Daily Score)")
    table.add_column("Date")
    table.add_column("Avg. sentiment", justify="right")
    for point in view.trend:
        table.add_row(point.date, f"{point.avg_sentiment:.2f}")
    rprint(table)


def _report(
    outcome: Optional[Outcome], dashboard: Dashboard, skipped_message: str
) -> None:
    if outcome is None:
        rprint(f"[yellow]{skipped_message}[/yellow]")
        return
    if not outcome.ok:
        rprint(f"[red]{dashboard.status.current.message}[/red]")
        raise typer.Exit(code=1)
    rprint(f"[green]{dashboard.status.current.message}[/green]")


@app.command("save")
def save_command(
    article_id: str = typer.Argument(..., help="Catalog id of the article to save."),
    catalog: Optional[Path] = _CATALOG_OPTION,
    user: Optional[str] = _USER_OPTION,
):
    """Save an article for the given user (re-saving overwrites)."""
    settings = get_settings()
    with _open_dashboard(settings, catalog, user) as dashboard:
        try:
            outcome = asyncio.run(dashboard.save(article_id))
        except KeyError as exc:
            raise typer.BadParameter(f"Unknown article id: {article_id}") from exc
        _report(outcome, dashboard, "No user id available; nothing was saved.")


@app.command("remove")
def remove_command(
    article_id: str = typer.Argument(..., help="Id of the saved article to remove."),
    user: Optional[str] = _USER_OPTION,
):
    """Remove a saved article for the given user."""
    settings = get_settings()
    with _open_dashboard(settings, None, user) as dashboard:
        outcome = asyncio.run(dashboard.remove(article_id))
        _report(outcome, dashboard, "No user id available; nothing was removed.")


@app.command("saved")
def saved_command(
    user: Optional[str] = _USER_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
):
    """List the user's saved articles, most recently saved first."""
    settings = get_settings()
    if not (user or settings.user_id):
        raise typer.BadParameter("Provide --user or set FINSENSE_USER_ID.")
    with _open_dashboard(settings, None, user) as dashboard:
        records = dashboard.saved_articles()

    if as_json:
        _print_json(records)
        return
    if not records:
        rprint("[yellow]No saved articles.[/yellow]")
        return
    table = Table(title=f"Saved articles for {user or settings.user_id}")
    for column in ("ID", "Date", "Source", "Title", "Sentiment", "Score", "Saved at"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.id,
            record.date,
            record.source,
            record.title,
            record.sentiment,
            f"{record.sentiment_score:.3f}",
            record.saved_at.isoformat() if record.saved_at else "",
        )
    rprint(table)


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("finsense.server:app", host=host, port=port, reload=reload)


def main():
    app()


if __name__ == "__main__":
    main()
