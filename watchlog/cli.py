"""CLI for watchlog."""

import os
import threading
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from watchlog import __version__
from watchlog.config import COUNTRIES, Config, ConfigError, configure_logging
from watchlog.models import MediaType, StatusKind, WatchStatus
from watchlog.providers import WatchProviderLookup
from watchlog.seasons import SeasonEpisodeLoader
from watchlog.stats import format_watch_time, library_stats
from watchlog.storage import ItemNotFoundError, LibraryStore, StorageError
from watchlog.tmdb_client import TmdbClient, TmdbError, titles_only
from watchlog.tracker import MAX_RATING, WatchProgressTracker

console = Console()

KIND = click.Choice([MediaType.MOVIE.value, MediaType.TV.value])
STATUS = click.Choice([kind.value for kind in StatusKind])


def get_data_dir() -> Path:
    """Get data directory from env or default."""
    env_dir = os.environ.get("WATCHLOG_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.cwd() / "data"


def load_config() -> Config:
    config = Config(data_dir=get_data_dir())
    try:
        config.load_or_default()
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise SystemExit(1)
    return config


def get_client(config: Config) -> TmdbClient:
    api_key = config.tmdb_api_key
    if not api_key:
        console.print("[red]No TMDB API key configured.[/red]")
        console.print("Run [bold]watchlog setup[/bold] or set TMDB_API_KEY.")
        raise SystemExit(1)
    return TmdbClient(api_key=api_key, language=config.language)


def get_tracker(config: Config, client=None) -> WatchProgressTracker:
    return WatchProgressTracker(LibraryStore(data_dir=config.data_dir), catalog=client)


def require_item(tracker: WatchProgressTracker, kind: str, tmdb_id: int):
    try:
        return tracker.store.require_item(kind, tmdb_id)
    except ItemNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(f"Run [bold]watchlog add {kind} {tmdb_id}[/bold] first.")
        raise SystemExit(1)
    except StorageError as e:
        fail_read(e)


def fail_catalog(e: TmdbError) -> None:
    console.print(f"[red]Catalog request failed:[/red] {e}")
    raise SystemExit(2)


def fail_storage(e: StorageError) -> None:
    console.print(f"[red]Could not save library:[/red] {e}")
    raise SystemExit(3)


def fail_read(e: StorageError) -> None:
    console.print(f"[red]Could not read library:[/red] {e}")
    raise SystemExit(3)


def stars(rating: int) -> str:
    return "★" * rating + "☆" * (MAX_RATING - rating)


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Write debug details to the log file")
def cli(debug):
    """watchlog - Track the movies and TV shows you watch."""
    configure_logging(get_data_dir() / "watchlog.log", debug=debug)


@cli.command()
def setup():
    """Interactive setup wizard to configure TMDB access."""
    config = Config(data_dir=get_data_dir())

    # Warn if config exists
    if config.exists():
        console.print(
            "[yellow]Configuration already exists at:[/yellow] "
            f"{config.config_path}"
        )
        if not click.confirm("Overwrite existing configuration?"):
            console.print("[dim]Setup cancelled.[/dim]")
            return

    console.print("\n[bold]watchlog Setup[/bold]\n")

    api_key = click.prompt("TMDB API key", hide_input=True, type=str)
    region = click.prompt("Provider region", default=config.region, type=str)

    try:
        config.set_api_key(api_key)
        config.set_region(region)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print("\n[dim]Checking API key with TMDB...[/dim]")
    if not TmdbClient(api_key=config.api_key).test_connection():
        console.print("[red]TMDB rejected the API key or is unreachable.[/red]")
        raise SystemExit(2)

    config.save()

    console.print("\n[green]✓ Setup complete![/green]")
    console.print(f"  Config saved to: {config.config_path}")
    console.print("\nRun [bold]watchlog trending[/bold] to find something to watch.")


@cli.command()
def validate():
    """Validate configuration and test the TMDB connection."""
    config = Config(data_dir=get_data_dir())

    if not config.exists():
        console.print("[red]Configuration not found.[/red]")
        console.print("Run [bold]watchlog setup[/bold] to configure.")
        raise SystemExit(1)

    config = load_config()
    console.print(f"[dim]Region:[/dim] {config.region}")

    console.print("\n[dim]Testing connection...[/dim]")
    if get_client(config).test_connection():
        console.print("[green]✓ Connection valid![/green]")
    else:
        console.print("[red]✗ Connection failed.[/red]")
        raise SystemExit(2)


def print_summaries(title: str, results) -> None:
    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Type")
    table.add_column("Title", style="bold")
    table.add_column("Date", style="dim")
    table.add_column("Score", justify="right")
    for result in results:
        score = f"{result.vote_average:.1f}" if result.vote_average is not None else "-"
        table.add_row(
            str(result.tmdb_id),
            result.media_type.value,
            result.title,
            result.display_date,
            score,
        )
    console.print(table)


@cli.command()
@click.option("--kind", type=KIND, default="movie", help="Movies or TV shows")
def trending(kind):
    """Show this week's trending titles."""
    client = get_client(load_config())
    try:
        results = client.fetch_trending(kind)
    except TmdbError as e:
        fail_catalog(e)

    if not results:
        console.print("[yellow]Nothing trending right now.[/yellow]")
        return
    label = "Movies" if kind == "movie" else "TV Shows"
    print_summaries(f"Trending {label}", results)


@cli.command()
@click.argument("query")
def search(query):
    """Search the catalog for movies and TV shows."""
    client = get_client(load_config())
    try:
        results = titles_only(client.search(query))
    except TmdbError as e:
        fail_catalog(e)

    if not results:
        console.print(f"[yellow]No results for[/yellow] {query!r}")
        return
    print_summaries(f"Results for {query!r}", results)


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
def add(kind, tmdb_id):
    """Add a movie or show to the library."""
    config = load_config()
    client = get_client(config)
    tracker = get_tracker(config)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fetching details...", total=None)
            detail = client.fetch_detail(kind, tmdb_id)
            progress.update(task, description="Saving")
            item = tracker.add_to_library(detail)
    except TmdbError as e:
        fail_catalog(e)
    except StorageError as e:
        fail_storage(e)

    console.print(f"[green]✓ Added[/green] {item.title}")


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
def remove(kind, tmdb_id):
    """Remove a movie or show (and its episodes) from the library."""
    tracker = get_tracker(load_config())
    try:
        removed = tracker.remove_from_library(kind, tmdb_id)
    except StorageError as e:
        fail_storage(e)

    if not removed:
        console.print(f"[yellow]No {kind} with id {tmdb_id} in library.[/yellow]")
        raise SystemExit(1)
    console.print(f"[green]✓ Removed[/green] {kind} {tmdb_id}")


@cli.command("list")
@click.option("--kind", type=KIND, help="Only movies or only TV shows")
@click.option("--status", "status_filter", type=STATUS, help="Only items with this status")
def list_items(kind, status_filter):
    """List the library."""
    store = LibraryStore(data_dir=load_config().data_dir)
    predicate = None
    if status_filter:
        wanted = StatusKind(status_filter)
        predicate = lambda item: item.status.kind == wanted  # noqa: E731

    try:
        items = store.query(predicate, media_type=kind)
    except StorageError as e:
        fail_read(e)
    if not items:
        console.print("[yellow]Library is empty.[/yellow]")
        console.print("Run [bold]watchlog search[/bold] to find titles to add.")
        return

    table = Table(title="Library")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Type")
    table.add_column("Title", style="bold")
    table.add_column("Status", style="green")
    table.add_column("Rating", style="yellow")
    for item in items:
        table.add_row(
            str(item.tmdb_id),
            item.media_type.value,
            item.title,
            str(item.status),
            stars(item.rating),
        )
    console.print(table)


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
def show(kind, tmdb_id):
    """Show a library item with its streaming providers."""
    config = load_config()
    tracker = get_tracker(config)
    item = require_item(tracker, kind, tmdb_id)

    console.print(f"\n[bold]{item.title}[/bold]")
    if item.release_date:
        console.print(f"[dim]{item.release_date.year}[/dim]")
    if item.is_show:
        console.print(
            f"[dim]{item.number_of_seasons} Seasons • {item.number_of_episodes} Episodes[/dim]"
        )
        if item.show_status:
            console.print(f"[dim]{item.show_status}[/dim]")
    elif item.runtime:
        console.print(f"[dim]{item.runtime} min[/dim]")
    if item.genres:
        console.print(f"[dim]{', '.join(item.genres)}[/dim]")
    console.print(f"Status: [green]{item.status}[/green]")
    console.print(f"Rating: [yellow]{stars(item.rating)}[/yellow]")
    console.print(f"\n{item.overview or '[italic]No overview available[/italic]'}")

    if config.tmdb_api_key:
        print_providers(WatchProviderLookup(get_client(config), config.region), kind, tmdb_id)


def print_providers(lookup: WatchProviderLookup, kind: str, tmdb_id: int) -> None:
    try:
        providers = lookup.load(kind, tmdb_id)
    except TmdbError as e:
        console.print(f"[red]Could not load providers:[/red] {e}")
        return

    country = COUNTRIES.get(lookup.region, lookup.region)
    if not providers:
        console.print(f"\n[dim]No streaming options in {country}.[/dim]")
        return
    console.print(f"\n[bold]Where to watch ({country})[/bold]")
    for provider in providers:
        console.print(f"  • {provider.provider_name}")


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
@click.option("--region", help="Country code to use instead of the configured one")
def providers(kind, tmdb_id, region):
    """Show where a title can be streamed, rented or bought."""
    config = load_config()
    lookup = WatchProviderLookup(get_client(config), config.region)
    if region:
        try:
            lookup.set_region(region)
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
    print_providers(lookup, kind, tmdb_id)


@cli.command()
@click.argument("code", required=False)
def region(code):
    """Show or change the provider region."""
    config = load_config()
    if not code:
        country = COUNTRIES.get(config.region, config.region)
        console.print(f"Region: [bold]{config.region}[/bold] ({country})")
        return

    try:
        config.set_region(code)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(f"Known regions: {', '.join(sorted(COUNTRIES))}")
        raise SystemExit(1)
    config.save()
    console.print(f"[green]✓ Region set to[/green] {config.region}")


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
@click.argument("new_status", metavar="STATUS", type=STATUS)
@click.option("--progress", type=click.FloatRange(0.0, 1.0), default=0.0,
              help="Fraction watched, for 'watching' movies")
def status(kind, tmdb_id, new_status, progress):
    """Set the watch status of a library item."""
    tracker = get_tracker(load_config())
    item = require_item(tracker, kind, tmdb_id)

    try:
        item = tracker.set_status(item, WatchStatus(StatusKind(new_status), progress))
    except StorageError as e:
        fail_storage(e)

    console.print(f"[green]✓[/green] {item.title}: {item.status}")


@cli.command()
@click.argument("show_id", type=int)
@click.argument("season", type=int)
def episodes(show_id, season):
    """List the episodes of a season with watched flags."""
    config = load_config()
    client = get_client(config)
    tracker = get_tracker(config, client)
    item = require_item(tracker, "tv", show_id)

    done = threading.Event()
    failures = []

    def loaded(_season, fetched):
        done.set()

    def failed(_season, error):
        failures.append(error)
        done.set()

    loader = SeasonEpisodeLoader(client, on_loaded=loaded, on_error=failed)
    try:
        with console.status("Loading episodes..."):
            loader.select(show_id, season)
            done.wait()
    finally:
        loader.close()

    if failures:
        console.print("[red]Failed to load episodes. Please try again.[/red]")
        raise SystemExit(2)
    if not loader.episodes:
        console.print("[yellow]No episodes available for this season.[/yellow]")
        return

    try:
        tracker.materialize_episodes(item, loader.episodes)
    except StorageError as e:
        fail_storage(e)

    table = Table(title=f"{item.title} - Season {season}")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Air date", style="dim")
    table.add_column("Watched")
    table.add_column("Rating", style="yellow")
    for stored in tracker.store.episodes_for(show_id, season):
        table.add_row(
            str(stored.episode_number),
            stored.name,
            stored.air_date.isoformat() if stored.air_date else "",
            "[green]✓[/green]" if stored.is_watched else "",
            stars(stored.rating),
        )
    console.print(table)


@cli.command()
@click.argument("show_id", type=int)
@click.argument("season", type=int)
@click.argument("episode_number", metavar="EPISODE", type=int)
@click.option("--unwatched", is_flag=True, help="Clear the watched flag instead")
def episode(show_id, season, episode_number, unwatched):
    """Mark an episode as watched (or unwatched)."""
    config = load_config()
    client = get_client(config) if config.tmdb_api_key else None
    tracker = get_tracker(config, client)
    item = require_item(tracker, "tv", show_id)

    try:
        item = tracker.record_episode_watched(
            item, season, episode_number, watched=not unwatched
        )
    except TmdbError as e:
        fail_catalog(e)
    except StorageError as e:
        fail_storage(e)

    state = "unwatched" if unwatched else "watched"
    console.print(
        f"[green]✓[/green] S{season:02d}E{episode_number:02d} {state}. "
        f"{item.title}: {item.status}"
    )


@cli.command()
@click.argument("kind", type=KIND)
@click.argument("tmdb_id", type=int)
@click.argument("rating", type=click.IntRange(0, MAX_RATING))
@click.option("--season", type=int, help="Rate an episode of this season")
@click.option("--episode", "episode_number", type=int, help="Rate this episode")
def rate(kind, tmdb_id, rating, season, episode_number):
    """Rate a title (or one of its episodes) from 0 to 5 stars."""
    if (season is None) != (episode_number is None):
        raise click.UsageError("--season and --episode must be given together")
    if season is not None and kind != "tv":
        raise click.UsageError("Only TV shows have episodes")

    config = load_config()
    client = get_client(config) if config.tmdb_api_key else None
    tracker = get_tracker(config, client)
    item = require_item(tracker, kind, tmdb_id)

    try:
        if season is None:
            tracker.rate(item, rating)
            target = item.title
        else:
            tracker.rate_episode(item, season, episode_number, rating)
            target = f"{item.title} S{season:02d}E{episode_number:02d}"
    except TmdbError as e:
        fail_catalog(e)
    except StorageError as e:
        fail_storage(e)

    console.print(f"[green]✓[/green] {target}: [yellow]{stars(rating)}[/yellow]")


@cli.command("next")
@click.argument("show_id", type=int)
def next_up(show_id):
    """Show the next unwatched episode of a show."""
    tracker = get_tracker(load_config())
    item = require_item(tracker, "tv", show_id)

    try:
        upcoming = tracker.next_episode(item)
    except StorageError as e:
        fail_read(e)
    if upcoming is None:
        console.print(f"[green]Nothing left to watch in {item.title}.[/green]")
        return
    name = f": {upcoming.name}" if upcoming.name else ""
    console.print(
        f"Up next in [bold]{item.title}[/bold]: "
        f"S{upcoming.season_number:02d}E{upcoming.episode_number:02d}{name}"
    )


@cli.command()
def stats():
    """Show library statistics."""
    store = LibraryStore(data_dir=load_config().data_dir)
    try:
        summary = library_stats(store)
    except StorageError as e:
        fail_read(e)

    table = Table(title="Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total Movies", str(summary.total_movies))
    table.add_row("Watched Movies", str(summary.watched_movies))
    table.add_row("Average Movie Rating", f"{summary.average_movie_rating:.1f}")
    table.add_row("Total Shows", str(summary.total_shows))
    table.add_row("Watching", str(summary.watching_shows))
    table.add_row("Completed", str(summary.completed_shows))
    table.add_row("On Hold", str(summary.on_hold_shows))
    table.add_row("Dropped", str(summary.dropped_shows))
    table.add_row("Average Show Rating", f"{summary.average_show_rating:.1f}")
    table.add_row("Total Movie Time", format_watch_time(summary.movie_minutes))
    table.add_row("Total TV Time", format_watch_time(summary.tv_minutes))

    console.print(table)


if __name__ == "__main__":
    cli()
