"""Command line interface for MongoDB schema analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import httpx
import rich.traceback
import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from . import analyzer as analyzer_module
from . import query as query_module
from .analyzer import AnalysisError, SchemaAnalyzer
from .config import ConfigurationError, Settings, load_settings
from .enrich import FieldEnricher
from .io import JSONCollection
from .llm import LLMClient, LLMResponseError
from .models import DatabaseSchema
from .store import ArtifactStore
from .strategies import SamplingStrategy

rich.traceback.install(show_locals=False)

app = typer.Typer(help="Infer MongoDB collection schemas and query them in plain language.")
console = Console()

_FAILURES = (AnalysisError, ConfigurationError, LLMResponseError, httpx.HTTPError)


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging for every command."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _resolve_path(path: Path | str) -> Path:
    """Resolve a string or path to an absolute Path."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise typer.BadParameter(f"Path does not exist: {resolved}")
    return resolved


def _settings(config: Optional[Path]) -> Settings:
    path = _resolve_path(config) if config is not None else None
    try:
        return load_settings(path)
    except (ValueError, TypeError, yaml.YAMLError) as error:
        _fail(error)


def _database_name(settings: Settings, database: Optional[str]) -> str:
    name = database or settings.database_name
    if not name:
        raise typer.BadParameter("Database name is required (--database or MONGOLENS_DATABASE)")
    return name


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]{type(error).__name__}:[/red] {error}")
    raise typer.Exit(code=1)


@app.command()
def analyze(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file."),
    uri: Optional[str] = typer.Option(None, help="MongoDB connection string (overrides settings)."),
    database: Optional[str] = typer.Option(None, help="Database name (defaults to the URI's database)."),
    collection: Optional[list[str]] = typer.Option(
        None, "--collection", help="Collection to analyse; repeat for several. Defaults to all."
    ),
    sample_size: Optional[int] = typer.Option(None, min=1, help="Documents sampled per collection."),
    enrich: bool = typer.Option(
        True,
        "--enrich/--no-enrich",
        help="Annotate fields with semantic meaning using the language model.",
    ),
    cache_dir: Optional[Path] = typer.Option(None, help="Optional cache directory for model responses."),
) -> None:
    """Analyse a database and save the schema analysis artifact."""

    settings = _settings(config)
    if uri:
        settings.mongodb_uri = uri
    if database:
        settings.database_name = database
    if collection:
        settings.collections = list(collection)
    if sample_size is not None:
        settings.sample_size = sample_size

    llm_client: Optional[LLMClient] = None
    if enrich:
        llm_client = LLMClient(config=settings.llm, cache_dir=cache_dir or settings.cache_dir)

    try:
        with console.status("Analyzing collections"):
            result = analyzer_module.analyze_database(
                settings,
                enricher=FieldEnricher(llm_client) if llm_client is not None else None,
            )
    except _FAILURES as error:
        _fail(error)
    finally:
        if llm_client is not None:
            llm_client.close()

    store = ArtifactStore(settings.artifact_dir)
    output_path = store.save(result.database_name, result.to_dict())
    console.print(
        f"Analysed {len(result.collections)} collection(s); schema written to [green]{output_path}[/green]"
    )


@app.command("analyze-file")
def analyze_file(
    source: Path = typer.Argument(..., help="JSON, JSON array or JSONL export of one collection."),
    name: Optional[str] = typer.Option(None, help="Collection name (defaults to the file stem)."),
    sample_size: int = typer.Option(100, min=1, help="Documents sampled from the export."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the schema JSON here."),
) -> None:
    """Infer the schema of an exported collection without a database."""

    collection = JSONCollection(_resolve_path(source), name=name)
    schema_analyzer = SchemaAnalyzer(strategies=[SamplingStrategy(sample_size)])
    try:
        schema = schema_analyzer.analyze_collection(collection, collection.name)
    except AnalysisError as error:
        _fail(error)

    if output is None:
        console.print_json(data=schema.to_dict())
        return
    output = output.expanduser().resolve()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(schema.to_dict(), indent=2))
    console.print(f"Schema written to [green]{output}[/green]")


@app.command()
def context(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file."),
    database: Optional[str] = typer.Option(None, help="Database whose saved analysis to use."),
    cache_dir: Optional[Path] = typer.Option(None, help="Optional cache directory for model responses."),
) -> None:
    """Generate and save a prose context for a previously analysed database."""

    settings = _settings(config)
    database_name = _database_name(settings, database)
    store = ArtifactStore(settings.artifact_dir)
    analysis = store.load(database_name)
    if analysis is None:
        console.print(f"[red]No schema analysis saved for {database_name}; run analyze first.[/red]")
        raise typer.Exit(code=1)

    with LLMClient(config=settings.llm, cache_dir=cache_dir or settings.cache_dir) as llm_client:
        try:
            generated = query_module.generate_context(DatabaseSchema.from_dict(analysis), llm_client)
        except _FAILURES as error:
            _fail(error)

    output_path = store.save(f"{database_name}-context", generated)
    console.print(f"Context written to [green]{output_path}[/green]")


@app.command()
def query(
    question: str = typer.Argument(..., help="What you want to find, in plain language."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file."),
    database: Optional[str] = typer.Option(None, help="Database whose saved analysis to use."),
    cache_dir: Optional[Path] = typer.Option(None, help="Optional cache directory for model responses."),
) -> None:
    """Generate a MongoDB query string for a natural-language request."""

    settings = _settings(config)
    database_name = _database_name(settings, database)
    store = ArtifactStore(settings.artifact_dir)
    analysis = store.load(database_name)
    if analysis is None:
        console.print(f"[red]No schema analysis saved for {database_name}; run analyze first.[/red]")
        raise typer.Exit(code=1)

    with LLMClient(config=settings.llm, cache_dir=cache_dir or settings.cache_dir) as llm_client:
        try:
            result = query_module.generate_query(
                question,
                DatabaseSchema.from_dict(analysis),
                llm_client,
                context=store.load(f"{database_name}-context"),
            )
        except (ValueError, *_FAILURES) as error:
            _fail(error)

    console.print_json(data=result.to_dict())


def main() -> None:
    """Entrypoint for the `mongolens` console script."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
