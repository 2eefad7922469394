"""CLI for the event extraction pipeline."""

import asyncio
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from event_pipeline.enrichers.llm import close_http_client, get_openai_token
from event_pipeline.extractors.event_store import EventStore
from event_pipeline.extractors.fetch import RenderFailure
from event_pipeline.extractors.pipeline import extract_events_from_url
from event_pipeline.jobs import JobCoordinator, QueueSink, resolve_settings
from event_pipeline.models import Event, ExtractionSettings
from event_pipeline.validators.scoring import consensus_scores

# Load environment variables (override=True to beat shell env vars)
load_dotenv(override=True)

app = typer.Typer(
    name="event-pipeline",
    help="Extract events from web pages with an LLM",
    add_completion=False,
)
console = Console()


def require_token() -> None:
    try:
        get_openai_token()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Make sure to set OPENAI_API_KEY in .env[/dim]")
        raise typer.Exit(1)


def build_overrides(
    min_length: Optional[int],
    max_length: Optional[int],
    max_combined: Optional[int],
    model: Optional[str],
    prompt: Optional[str],
    categories: Optional[str],
    include_linkless: Optional[bool],
    iframes: Optional[bool],
) -> dict:
    """Map CLI flags onto settings overrides; unset flags are left out."""
    overrides = {
        "minTextLength": min_length,
        "maxTextLength": max_length,
        "maxCombinedSize": max_combined,
        "gptModel": model,
        "customPrompt": prompt,
        "categorySet": categories,
        "showEventsWithoutLinks": include_linkless,
        "iterateIframes": iframes,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def print_events_table(events: list, title: str, limit: int = 30) -> None:
    """Print events as a table."""
    table = Table(title=title)
    table.add_column("Date", style="red")
    table.add_column("Title", style="cyan", max_width=45)
    table.add_column("Category", style="blue")
    table.add_column("URL", style="green", max_width=50)

    for event in events[:limit]:
        if isinstance(event, dict):
            event = Event.model_validate(event)
        table.add_row(event.date or "?", event.title[:45], event.category or "-", event.url or "-")

    console.print(table)
    if len(events) > limit:
        console.print(f"[dim]... and {len(events) - limit} more[/dim]")


def print_settings(url: str, settings: ExtractionSettings) -> None:
    console.print(f"\n[bold]Settings for {url}[/bold]")
    for key, value in settings.to_record().items():
        if key == "categorySet":
            value = f"{len(str(value).split(','))} categories"
        console.print(f"  {key}: {value}")


@app.command()
def extract(
    url: str = typer.Option(..., "--url", "-u", help="Source page URL"),
    merge_fallback: bool = typer.Option(
        True, "--merge-fallback/--no-merge-fallback",
        help="Retry with unmerged chunks when the merged pass finds nothing",
    ),
    min_length: Optional[int] = typer.Option(None, "--min-length", help="Minimum chunk text length"),
    max_length: Optional[int] = typer.Option(None, "--max-length", help="Maximum chunk text length"),
    max_combined: Optional[int] = typer.Option(None, "--max-combined", help="Maximum combined chunk size"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Chat model name"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Custom summary prompt"),
    categories: Optional[str] = typer.Option(None, "--categories", help="Comma-separated category set"),
    include_linkless: Optional[bool] = typer.Option(
        None, "--include-linkless/--links-only", help="Keep text blocks without links",
    ),
    iframes: Optional[bool] = typer.Option(None, "--iframes/--no-iframes", help="Append iframe content"),
):
    """Extract events from a single URL in the foreground and store them.

    Stored settings for the URL win over the flags; for a new URL the flags
    are merged with the defaults and saved.
    """
    require_token()
    store = EventStore()
    overrides = build_overrides(
        min_length, max_length, max_combined, model, prompt, categories, include_linkless, iframes,
    )
    settings = resolve_settings(store, url, overrides)

    async def run():
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(f"Extracting {url[:60]}", total=None)
                return await extract_events_from_url(
                    url, settings, store=store, allow_fallback=merge_fallback,
                )
        finally:
            await close_http_client()

    try:
        result = asyncio.run(run())
    except RenderFailure as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    created, updated = store.upsert_events(result.events, url)

    print_events_table(result.events, f"Extracted events ({len(result.events)})")
    console.print(f"\n[bold]Chunks:[/bold] {result.chunk_count}"
                  f"{' (unmerged fallback)' if result.used_fallback else ''}")
    console.print(f"[bold]Categories:[/bold] {', '.join(result.categories) or '-'}")
    console.print(f"[bold]Stored:[/bold] [green]{created} new[/green], [cyan]{updated} updated[/cyan]")
    if result.score:
        s = result.score
        console.print(
            f"[bold]Score:[/bold] {s.score:.2f} "
            f"(accuracy {s.accuracy:.2f}, completeness {s.completeness:.2f}, "
            f"{s.scraped}/{s.expected})"
        )


@app.command()
def watch(
    url: str = typer.Option(..., "--url", "-u", help="Source page URL"),
    timeout: float = typer.Option(600, "--timeout", "-t", help="Seconds to wait for the job"),
):
    """Request a background extraction and wait for its live update."""
    require_token()
    store = EventStore()

    async def run():
        coordinator = JobCoordinator(store)
        sink = QueueSink()
        try:
            ticket = await coordinator.request_extraction(url)
            # Job is claimed but not started yet, so the snapshot is "cached"
            await coordinator.subscribe(url, sink)
            console.print(f"[cyan]Job {ticket.job_id}: {len(ticket.data)} cached events[/cyan]")
            if ticket.data:
                print_events_table(ticket.data, f"Cached events ({len(ticket.data)})")

            while True:
                update = await sink.receive(timeout=timeout)
                if update["status"] != "cached":
                    return update
        finally:
            sink.close()
            coordinator.unsubscribe(url, sink)
            await close_http_client()

    try:
        update = asyncio.run(run())
    except asyncio.TimeoutError:
        console.print(f"[red]No update within {timeout:.0f}s[/red]")
        raise typer.Exit(1)

    if update["status"] == "error":
        console.print(f"[red]Job failed: {update['error']}[/red]")
        raise typer.Exit(1)

    print_events_table(update["data"], f"Fetched events ({len(update['data'])})")


@app.command()
def scores(
    url: str = typer.Option(..., "--url", "-u", help="Source page URL"),
):
    """Show known and consensus scores for a source."""
    store = EventStore()

    known = store.get_scores(url, "known")
    if known:
        table = Table(title=f"Known scores ({len(known)})")
        table.add_column("Score", style="green")
        table.add_column("Accuracy")
        table.add_column("Completeness")
        table.add_column("Scraped/Expected", style="cyan")
        for record in known[-20:]:
            data = record["score_data"]
            table.add_row(
                f"{data['score']:.2f}",
                f"{data['accuracy']:.2f}",
                f"{data['completeness']:.2f}",
                f"{data['scraped']}/{data['expected']}",
            )
        console.print(table)
    else:
        console.print("[dim]No known scores (set --expected with the settings command)[/dim]")

    consensus = consensus_scores(store.get_scraping_attempts(url))
    if not consensus["scores"]:
        console.print("[yellow]No scraping attempts logged[/yellow]")
        return

    table = Table(title=f"Consensus scores (median {consensus['median']})")
    table.add_column("Attempt", style="dim")
    table.add_column("Events", style="cyan")
    table.add_column("Consensus", style="green")
    table.add_column("Model")
    for entry in consensus["scores"]:
        table.add_row(
            str(entry["id"]),
            str(entry["event_count"]),
            f"{entry['consensus']:.2f}",
            str(entry["settings"].get("gptModel", "?")),
        )
    console.print(table)


@app.command()
def settings(
    url: str = typer.Option(..., "--url", "-u", help="Source page URL"),
    expected: Optional[int] = typer.Option(None, "--expected", "-e", help="Expected event count (0 clears)"),
):
    """Show stored settings for a source, optionally setting the expected count."""
    store = EventStore()

    if expected is not None:
        current = store.set_expected_events(url, expected)
        console.print(f"[green]Expected events for {url[:60]}: {current.expected_events or 'unset'}[/green]")

    current = store.get_settings(url)
    if current is None:
        console.print(f"[yellow]No stored settings for {url}[/yellow]")
        raise typer.Exit(0)
    print_settings(url, current)


@app.command()
def stats():
    """Show event store statistics."""
    data = EventStore().stats()

    console.print("\n[bold]Event Store Statistics[/bold]")
    console.print(f"  Events: {data['events']}")
    console.print(f"  Sources with events: {data['sources']}")
    console.print(f"  Configured sources: {data['configured_sources']}")
    console.print(f"  Scraping attempts: {data['attempts']}")
    console.print(f"  Scores: {data['scores']}")

    if data["by_source"]:
        console.print("\n[bold]By Source:[/bold]")
        for source, count in sorted(data["by_source"].items(), key=lambda x: -x[1]):
            console.print(f"  {source}: {count}")


if __name__ == "__main__":
    app()
