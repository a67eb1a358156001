"""CLI interface for pygcsync."""

import asyncio
import logging
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import GcsClient
from .config import config
from .exceptions import ConfigError, GcsSyncError
from .output import OutputFormatter
from .sync import RemoteEndpoint, SyncConfig, SyncEngine, parse_endpoint
from .sync.paths import normalize_prefix

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--credentials",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="GOOGLE_APPLICATION_CREDENTIALS",
    help="Service account JSON key file",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    credentials: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pygcsync - rsync-like one-way sync between local files and GCS buckets."""
    ctx.ensure_object(dict)
    ctx.obj["credentials"] = credentials
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pygcsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


async def _run_sync(
    credentials: Optional[Path], source: str, destination: str, sync_config: SyncConfig
) -> int:
    async with GcsClient(credentials_path=credentials) as client:
        engine = SyncEngine(client, sync_config)
        return await engine.sync(parse_endpoint(source), parse_endpoint(destination))


@main.command()
@click.argument("source")
@click.argument("destination")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Skip size and checksum comparison, overwrite everything",
)
@click.option(
    "--concurrency",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum parallel transfers per directory (default: from config)",
)
@click.option(
    "--strict-metadata",
    is_flag=True,
    help="Fail when a destination object cannot be read instead of re-uploading",
)
@click.pass_context
def sync(
    ctx: Any,
    source: str,
    destination: str,
    force: bool,
    concurrency: Optional[int],
    strict_metadata: bool,
) -> None:
    """Sync SOURCE into DESTINATION.

    Either side is a local path or gs://bucket/prefix. Local to local is
    not supported.

    \b
    Examples:
        pygcsync sync ./photos gs://my-bucket/photos
        pygcsync sync gs://my-bucket/photos ./restore
        pygcsync sync gs://my-bucket/photos gs://other-bucket/photos
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        sync_config = SyncConfig(
            force_overwrite=force,
            concurrency=concurrency or config.concurrency,
            strict_metadata=strict_metadata,
        )
        status = (
            nullcontext()
            if out.quiet or out.json_output
            else out.console.status(f"Syncing {source} -> {destination}...")
        )
        with status:
            count = asyncio.run(
                _run_sync(ctx.obj["credentials"], source, destination, sync_config)
            )
    except GcsSyncError as e:
        out.error(str(e))
        sys.exit(1)

    if out.json_output:
        out.output_json(
            {"source": source, "destination": destination, "transferred": count}
        )
    else:
        out.success(f"Transferred {count} item(s)")


async def _list_objects(
    credentials: Optional[Path], bucket: str, prefix: str
) -> list[list[str]]:
    rows = []
    async with GcsClient(credentials_path=credentials) as client:
        async for page in client.list_objects(bucket, prefix):
            for entry in page:
                rows.append([entry.name, str(entry.size)])
    return rows


@main.command()
@click.argument("uri")
@click.pass_context
def ls(ctx: Any, uri: str) -> None:
    """List objects under gs://bucket/prefix."""
    out: OutputFormatter = ctx.obj["out"]

    endpoint = parse_endpoint(uri)
    if not isinstance(endpoint, RemoteEndpoint):
        out.error(f"Not a gs:// URI: {uri}")
        sys.exit(1)

    try:
        rows = asyncio.run(
            _list_objects(
                ctx.obj["credentials"],
                endpoint.bucket,
                normalize_prefix(endpoint.prefix),
            )
        )
    except GcsSyncError as e:
        out.error(str(e))
        sys.exit(1)

    if not rows and not out.json_output:
        out.info("No objects found")
        return
    if not out.json_output:
        rows = [[name, out.format_size(int(size))] for name, size in rows]
    out.output_table(["Name", "Size"], rows)


@main.group(name="config")
def config_group() -> None:
    """Show or change stored settings."""


@config_group.command(name="show")
@click.pass_context
def config_show(ctx: Any) -> None:
    """Show the effective configuration."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        settings = config.as_dict()
    except ConfigError as e:
        out.error(str(e))
        sys.exit(1)
    out.print_summary("Configuration", settings)


@config_group.command(name="set")
@click.option("--credentials-path", type=click.Path(dir_okay=False), default=None)
@click.option("--api-url", default=None)
@click.option("--concurrency", type=click.IntRange(min=1), default=None)
@click.option("--signed-url-ttl", type=click.IntRange(min=1), default=None)
@click.pass_context
def config_set(
    ctx: Any,
    credentials_path: Optional[str],
    api_url: Optional[str],
    concurrency: Optional[int],
    signed_url_ttl: Optional[int],
) -> None:
    """Store settings in the config file."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        config.save(
            credentials_path=credentials_path,
            api_url=api_url,
            concurrency=concurrency,
            signed_url_ttl=signed_url_ttl,
        )
    except (ConfigError, OSError) as e:
        out.error(f"Failed to save config: {e}")
        sys.exit(1)
    out.success(f"Saved configuration to {config.config_file}")


if __name__ == "__main__":
    main()
