"""
Command-line interface for Story Weaver.

Uses Typer to provide commands for serving the HTTP API, printing the
kid-safe feed, refreshing the article store and generating a single story.
Supports loading .env files for API key configuration.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .config import AppConfig, load_config
from .core.types import CATEGORIES, DEFAULT_READING_LEVEL, READING_LEVELS
from .errors import ContentRefusedError, StoryValidationError
from .feeds.parser import FeedParser
from .feeds.service import build_feed, refresh_feeds
from .llm.tracing import flush, setup_langfuse
from .storage import create_store
from .story.pipeline import build_generator
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="Kid-safe news feed and story generator.")
console = Console()


def _prepare(
    config: Path | None,
    log_level: str | None = None,
    api_key: str | None = None,
) -> AppConfig:
    # Load environment variables from .env if available
    load_dotenv()

    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    if api_key:
        cfg.provider.api_key = api_key

    setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse)
    return cfg


def _parser_from(cfg: AppConfig) -> FeedParser:
    return FeedParser(
        timeout=cfg.feed.timeout_seconds,
        user_agent=cfg.feed.user_agent,
        trust_env=cfg.feed.trust_env,
    )


def _split_categories(raw: str | None) -> list[str]:
    if not raw:
        return []
    categories = [c.strip().lower() for c in raw.split(",") if c.strip()]
    invalid = [c for c in categories if c not in CATEGORIES]
    if invalid:
        raise typer.BadParameter(
            f"Invalid categories: {', '.join(invalid)}. Must be one of: {', '.join(CATEGORIES)}"
        )
    return categories


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    host: str | None = typer.Option(None, "--host", help="Bind address."),
    port: int | None = typer.Option(None, "--port", help="Bind port."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from .api import create_app

    cfg = _prepare(config, log_level)
    try:
        uvicorn.run(
            create_app(cfg),
            host=host or cfg.api.host,
            port=port or cfg.api.port,
            log_level=cfg.logging.level.lower(),
        )
    finally:
        flush()


@app.command()
def feed(
    categories: str | None = typer.Option(
        None, "--categories", help=f"Comma-separated subset of: {', '.join(CATEGORIES)}."
    ),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=50),
    as_json: bool = typer.Option(False, "--json", help="Print the raw feed payload as JSON."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Print the safety-screened, diversified feed."""
    cfg = _prepare(config, log_level)
    snapshot = asyncio.run(
        build_feed(
            _split_categories(categories),
            limit,
            parser=_parser_from(cfg),
            feeds=cfg.feed.feeds,
            diversity_cfg=cfg.diversity,
        )
    )

    if as_json:
        typer.echo(json.dumps(snapshot.to_payload(), indent=2))
        return

    table = Table(title=f"Feed ({len(snapshot.articles)} articles)")
    table.add_column("Category", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Published")
    table.add_column("Title")
    for article in snapshot.articles:
        published = article.published_at.strftime("%Y-%m-%d %H:%M") if article.published_at else "-"
        table.add_row(article.category, article.source, published, article.title)
    console.print(table)
    console.print(
        f"Filtered for safety: {snapshot.safety_filtered}  |  Feed errors: {len(snapshot.errors)}"
    )


@app.command()
def refresh(
    category: str = typer.Option("all", "--category", help="Category to refresh, or 'all'."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=50),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Fetch fresh articles into the configured store."""
    cfg = _prepare(config, log_level)
    categories = None if category == "all" else _split_categories(category)
    store = create_store(cfg.storage)
    try:
        result = asyncio.run(
            refresh_feeds(
                store,
                categories=categories,
                limit=limit,
                parser=_parser_from(cfg),
                feeds=cfg.feed.feeds,
                max_per_source=cfg.diversity.max_per_source,
                ttl_hours=cfg.cache.refresh_ttl_hours,
            )
        )
    finally:
        store.close()
    typer.echo(json.dumps(result.to_dict(), indent=2))


@app.command()
def story(
    input: Path = typer.Argument(Path("-"), help="Article text file, or '-' for stdin."),
    reading_level: str = typer.Option(
        DEFAULT_READING_LEVEL, "--reading-level", "-r", help=f"One of: {', '.join(READING_LEVELS)}."
    ),
    style_hints: str | None = typer.Option(None, "--style", help="Optional style hints."),
    as_json: bool = typer.Option(False, "--json", help="Print the story payload as JSON."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        envvar="OPENAI_API_KEY",
        help="Override provider API key (or set OPENAI_API_KEY / .env).",
    ),
):
    """Generate a children's story from one news article."""
    if reading_level not in READING_LEVELS:
        raise typer.BadParameter(f"Reading level must be one of: {', '.join(READING_LEVELS)}")

    cfg = _prepare(config, log_level, api_key)
    text = sys.stdin.read() if str(input) == "-" else input.read_text(encoding="utf-8")
    generator = build_generator(cfg)

    try:
        outcome = asyncio.run(generator.generate(text, reading_level, style_hints))
    except ContentRefusedError as exc:
        console.print(f"[red]Refused:[/red] {exc.reason}")
        raise typer.Exit(code=2) from exc
    except StoryValidationError as exc:
        console.print(f"[red]Story failed validation after retry:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        # Flush Langfuse traces before exit
        flush()

    if as_json:
        typer.echo(json.dumps(outcome.result.to_dict(), indent=2))
        return

    console.print(outcome.result.story)
    console.print()
    for idx, question in enumerate(outcome.result.questions, start=1):
        console.print(f"[bold]{idx}.[/bold] {question}")
    console.print(
        f"\n[dim]{outcome.result.word_count} words · {reading_level} · model {outcome.model}[/dim]"
    )


if __name__ == "__main__":
    app()
