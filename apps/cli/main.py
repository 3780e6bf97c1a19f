"""CLI application for wp-advisories-upgrader."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from wpadvisories.config import load_settings
from wpadvisories.constraints import build_constraint
from wpadvisories.errors import AdvisoriesError
from wpadvisories.feed import FEED_URLS, AffectedVersionRange, FileFeedSource, WordfenceFeedSource
from wpadvisories.gateway import GithubGateway
from wpadvisories.keys import resolve_vulnerability_key
from wpadvisories.models import EntryState, RunReport
from wpadvisories.orchestrator import ChangeOrchestrator

console = Console()
logger = logging.getLogger("wpadvisories")

STATE_STYLES = {
    EntryState.DONE: "green",
    EntryState.CHANGED: "cyan",
    EntryState.FAILED: "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Route package logs through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def format_report_table(report: RunReport) -> Table:
    """Render published, dry-run and failed entries; unchanged ones are only counted."""
    table = Table(title="Conflict section changes")
    table.add_column("Entry")
    table.add_column("State")
    table.add_column("Constraint")
    table.add_column("Details")

    for entry in report.entries:
        if entry.state == EntryState.NOOP:
            continue
        style = STATE_STYLES.get(entry.state, "")
        table.add_row(
            entry.entry_id,
            f"[{style}]{entry.state.value}[/{style}]" if style else entry.state.value,
            entry.constraint,
            entry.error or entry.title,
        )
    return table


app = typer.Typer(
    name="wp-advisories",
    help="Keep a composer.json conflict section in sync with the Wordfence vulnerability feed",
    add_completion=False,
)


@app.command()
def upgrade(
    feed: str = typer.Option("production", "--feed", help=f"Wordfence feed to use: {', '.join(FEED_URLS)}"),
    feed_file: str | None = typer.Option(None, "--feed-file", help="Read the feed from a local JSON file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Evaluate entries without touching the repository"),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Process at most this many entries"),
    pause: float | None = typer.Option(None, "--pause", min=0, help="Seconds to wait after each entry"),
    env_file: str = typer.Option(".env", "--env-file", help="Optional dotenv file with settings"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open one pull request per new vulnerability found in the feed."""
    setup_logging(verbose)

    try:
        settings = load_settings(env_file)
        if not settings.enabled:
            logger.warning("Disabled by IS_ENABLED=0; nothing to do")
            raise typer.Exit(0)

        if feed_file:
            feed_source = FileFeedSource(feed_file)
        else:
            feed_source = WordfenceFeedSource(feed=feed, timeout=settings.timeout)

        orchestrator = ChangeOrchestrator(
            gateway=GithubGateway.from_settings(settings),
            feed_source=feed_source,
            composer_json_path=settings.composer_json_path,
            default_branch=settings.default_branch,
            pause=settings.pause_seconds if pause is None else pause,
            dry_run=dry_run,
            limit=limit,
        )
        report = asyncio.run(orchestrator.run())

    except typer.Exit:
        raise
    except (AdvisoriesError, ValueError) as e:
        logger.error("%s", e)
        raise typer.Exit(1)

    console.print(format_report_table(report))
    console.print(
        f"{report.published} published, {report.count(EntryState.CHANGED)} pending (dry run), "
        f"{report.unchanged} unchanged, {report.failed} failed"
    )


@app.command()
def constraint(
    from_version: str = typer.Argument(help="Lowest affected version, or '*' for all versions below TO"),
    to_version: str = typer.Argument(help="Highest affected version"),
    from_inclusive: bool = typer.Option(False, "--from-inclusive", help="FROM itself is affected"),
    to_inclusive: bool = typer.Option(False, "--to-inclusive", help="TO itself is affected"),
) -> None:
    """Print the conflict constraint for an affected-version range."""
    affected = AffectedVersionRange(
        from_version=from_version,
        from_inclusive=from_inclusive,
        to_version=to_version,
        to_inclusive=to_inclusive,
    )
    result = build_constraint(affected)
    if result is None:
        console.print(f"Error: Unable to build a constraint for {from_version} - {to_version}", style="red")
        raise typer.Exit(1)
    console.print(result, markup=False, highlight=False, soft_wrap=True)


@app.command()
def key(
    software_type: str = typer.Argument(help="Software type: plugin, theme or core"),
    slug: str = typer.Argument(help="WordPress.org slug"),
) -> None:
    """Print the composer package name for a piece of WordPress software."""
    package = resolve_vulnerability_key(software_type, slug)
    if package is None:
        console.print(f"Error: No composer package for {software_type} {slug}", style="red")
        raise typer.Exit(1)
    console.print(package, markup=False, highlight=False, soft_wrap=True)


if __name__ == "__main__":
    app()
