"""Command line interface for marketsearch."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from marketsearch.catalog.categories import text_fields_of
from marketsearch.config import AppConfig
from marketsearch.models import SearchRequest
from marketsearch.service import DatasetService
from marketsearch.web.app import app as web_app


console = Console()
app = typer.Typer(help="marketsearch - faceted dataset catalog search")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(es_url: Optional[str], db: Optional[Path]) -> AppConfig:
    config = AppConfig.from_env()
    if es_url:
        config.es_url = es_url
    if db is not None:
        config.db_path = db
    return config


def _open_service(config: AppConfig) -> DatasetService:
    return DatasetService.from_config(config, base_dir=Path.cwd())


def _parse_filters(filters: List[str]) -> Dict[str, Any]:
    """Turn ``key=value`` pairs into facet params; repeated keys become lists."""
    params: Dict[str, Any] = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}")
        if key in params:
            existing = params[key]
            params[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            params[key] = value
    return params


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON in {path}: {exc}") from exc


ES_OPTION = typer.Option(None, "--es-url", help="Elasticsearch URL")
DB_OPTION = typer.Option(None, "--db", help="Relationship store SQLite path")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def search(
    index: str = typer.Argument(..., help="Partition to search"),
    term: Optional[str] = typer.Option(None, "--term", "-t", help="Free-text search term"),
    scope: Optional[str] = typer.Option(None, "--scope", help="Secondary search term"),
    category_path: Optional[str] = typer.Option(None, "--category-path", help="Category scope, e.g. 0.1"),
    filters: List[str] = typer.Option([], "--filter", "-f", help="Facet selection key=value (repeatable)"),
    offset: int = typer.Option(0, "--from", help="Result offset"),
    size: int = typer.Option(10, "--size", help="Number of results"),
    es_url: Optional[str] = ES_OPTION,
    db: Optional[Path] = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Search datasets of a partition."""
    _setup_logging(verbose)
    params = _parse_filters(filters)
    params.update({"searchTerm": term, "searchScope": scope, "category-path": category_path})
    request = SearchRequest.from_params(params)
    request.offset = offset
    request.limit = size

    service = _open_service(_build_config(es_url, db))
    try:
        envelope = service.search_datasets(index, request)
    finally:
        service.close()

    if not envelope.data:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Tags")
    table.add_column("Rating")
    for dataset in envelope.data:
        rating = dataset.get("avgRating")
        table.add_row(
            str(dataset.get("id")),
            str(dataset.get("title", "")),
            ", ".join(str(tag) for tag in dataset.get("tags") or []),
            f"{rating:.2f}" if rating is not None else "-",
        )
    console.print(table)
    console.print(f"Total: {envelope.total_items}")
    for facet, values in envelope.filters.items():
        console.print(f"[bold]{facet}[/bold]: {', '.join(str(value) for value in values)}")


@app.command()
def show(
    index: str = typer.Argument(..., help="Partition holding the dataset"),
    dataset_id: str = typer.Argument(..., help="Dataset id"),
    user_id: Optional[str] = typer.Option(None, "--user", help="Report whether this user subscribes"),
    es_url: Optional[str] = ES_OPTION,
    db: Optional[Path] = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Show a dataset with its subscribers and related datasets."""
    _setup_logging(verbose)
    service = _open_service(_build_config(es_url, db))
    try:
        dataset = service.get_dataset(index, dataset_id, user_id=user_id)
    finally:
        service.close()
    console.print_json(data=dataset)


@app.command()
def load(
    index: str = typer.Argument(..., help="Partition to load into"),
    payload: Path = typer.Argument(..., help="JSON file with 'datasets' (and optional 'categories')"),
    es_url: Optional[str] = ES_OPTION,
    db: Optional[Path] = DB_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Bulk load datasets from a JSON file."""
    _setup_logging(verbose)
    data = _read_json(payload)
    if not isinstance(data, dict) or not data.get("datasets"):
        raise typer.BadParameter("Payload must be an object with a non-empty 'datasets' list")

    service = _open_service(_build_config(es_url, db))
    try:
        categories = data.get("categories") or []
        service.index.ensure_index(index, text_fields=text_fields_of(categories))
        for category in categories:
            service.index.put_category(index, category)
        indexed = service.create_datasets_bulk(index, data)
    finally:
        service.close()

    if indexed:
        console.print(f"Loaded {len(data['datasets'])} datasets into [bold]{index}[/bold].")
    else:
        console.print("[yellow]Bulk load was still running after the wait bound; see the log for its outcome.[/yellow]")


@app.command()
def create(
    index: str = typer.Argument(..., help="Partition to write into"),
    document: Path = typer.Argument(..., help="JSON file with one dataset"),
    es_url: Optional[str] = ES_OPTION,
    db: Optional[Path] = DB_OPTION,
) -> None:
    """Create a single dataset."""
    data = _read_json(document)
    service = _open_service(_build_config(es_url, db))
    try:
        created_id = service.create_dataset(index, data)
    finally:
        service.close()
    console.print(f"Created dataset {created_id}")


@app.command()
def delete(
    index: str = typer.Argument(..., help="Partition holding the dataset"),
    dataset_id: str = typer.Argument(..., help="Dataset id"),
    es_url: Optional[str] = ES_OPTION,
    db: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a dataset."""
    service = _open_service(_build_config(es_url, db))
    try:
        service.delete_dataset(index, dataset_id)
    finally:
        service.close()
    console.print(f"Deleted dataset {dataset_id}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    console.print(f"Starting API on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    app()
