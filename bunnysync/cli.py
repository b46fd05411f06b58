"""CLI interface for bunnysync."""

import logging
from typing import Any, Optional

import click

from . import __version__
from .api import BunnyStorageClient
from .config import REGION_CHOICES, config
from .exceptions import ConfigError, LocalDirectoryError, RemoteUnavailable
from .output import OutputFormatter
from .sync import ExecutionResult, SyncEngine, SyncPair
from .utils import CONFIG_FILE_NAME

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def _configure_logging(verbose: bool) -> None:
    """Configure logging based on the verbose flag."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        # Enable debug logging for bunnysync modules
        logging.getLogger("bunnysync").setLevel(logging.DEBUG)
        # httpx logs every request URL at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


def _split_patterns(values: tuple[str, ...]) -> list[str]:
    """Flatten repeated and comma-separated --exclude values.

    Examples:
        >>> _split_patterns(("*.log,*.tmp", "cache"))
        ['*.log', '*.tmp', 'cache']
    """
    patterns: list[str] = []
    for value in values:
        patterns.extend(part.strip() for part in value.split(",") if part.strip())
    return patterns


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("source")
@click.argument("destination")
@click.option(
    "--api-key",
    "-k",
    envvar="BUNNYSYNC_API_KEY",
    help="Storage zone password. Use of the env variable strongly recommended",
)
@click.option(
    "--region",
    "-r",
    envvar="BUNNYSYNC_REGION",
    type=click.Choice(REGION_CHOICES, case_sensitive=False),
    default=None,
    help="Storage region of the zone (default: de)",
)
@click.option(
    "--dry-run",
    "--dryrun",
    "dry_run",
    is_flag=True,
    help="Show what would be uploaded and deleted without changing the zone",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Exclude files matching a pattern (* wildcard, comma separated, repeatable)",
)
@click.option(
    "--exclude-dot-files",
    is_flag=True,
    help="Skip files and folders whose name starts with a dot",
)
@click.option(
    "--follow-symlinks",
    is_flag=True,
    help="Follow symbolic links instead of skipping them",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of parallel uploads/deletes (default: 4)",
)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retry attempts for transient failures (default: 3)",
)
@click.option(
    "--retry-delay",
    type=click.FloatRange(min=0),
    default=None,
    help="Initial backoff between retries in seconds (default: 1.0)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Timeout per request in seconds (default: 30)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="bunnysync")
@click.pass_context
def main(
    ctx: Any,
    source: str,
    destination: str,
    api_key: Optional[str],
    region: Optional[str],
    dry_run: bool,
    exclude: tuple[str, ...],
    exclude_dot_files: bool,
    follow_symlinks: bool,
    workers: Optional[int],
    retries: Optional[int],
    retry_delay: Optional[float],
    timeout: Optional[float],
    quiet: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Mirror a local directory onto a bunny.net storage zone.

    SOURCE: Local directory to mirror

    DESTINATION: Storage zone, optionally with a folder: zone://<zone>[/<path>]

    New and changed files are uploaded, files missing locally are deleted
    from the zone. Settings can also be stored in a .bunnysync TOML file in
    the current directory (api_key, region, exclude, workers, ...).

    Examples:
        bunnysync ./public zone://my-zone
        bunnysync ./public zone://my-zone/www --dry-run
        bunnysync ./site zone://my-zone -r ny --exclude "*.map,drafts"
    """
    out = OutputFormatter(json_output=json_output, quiet=quiet)
    _configure_logging(verbose)

    try:
        config.load()
    except ConfigError as e:
        out.error(f"Configuration error: {e}")
        ctx.exit(1)

    api_key = api_key or config.api_key
    if not api_key:
        out.error(
            "Please provide an API key (--api-key, BUNNYSYNC_API_KEY "
            f"or api_key in {CONFIG_FILE_NAME})"
        )
        ctx.exit(1)

    try:
        pair = SyncPair.from_locations(
            source,
            destination,
            exclude=config.exclude + _split_patterns(exclude),
            exclude_dot_files=exclude_dot_files or config.exclude_dot_files,
            follow_symlinks=follow_symlinks,
        )
    except ValueError as e:
        out.error(f"Invalid source and destination: {e}")
        ctx.exit(1)
        return  # Unreachable, but helps type checker

    try:
        client = BunnyStorageClient(
            api_key=api_key,
            zone=pair.zone,
            region=region or config.region,
            max_retries=config.max_retries if retries is None else retries,
            retry_delay=config.retry_delay if retry_delay is None else retry_delay,
            timeout=timeout or config.timeout,
        )
    except ConfigError as e:
        out.error(f"Configuration error: {e}")
        ctx.exit(1)
        return

    engine = SyncEngine(client, out, max_workers=workers or config.workers)

    try:
        result = engine.sync_pair(pair, dry_run=dry_run)
    except (LocalDirectoryError, RemoteUnavailable) as e:
        # Fatal before any action: report empty counts
        out.error(f"Error: {e}")
        result = ExecutionResult(dry_run=dry_run)
        engine.print_counts(result)
        if out.json_output:
            out.output_json({**result.to_dict(), "success": False, "error": str(e)})
        ctx.exit(1)
        return
    finally:
        client.close()

    if out.json_output:
        out.output_json(result.to_dict())

    if result.interrupted:
        ctx.exit(EXIT_INTERRUPTED)
    if not result.success:
        ctx.exit(1)


if __name__ == "__main__":
    main()
