"""Command-line interface for Treasury.

Commands:
- export: run the export pipeline and write artifacts
- exporters: list the available exporters (names usable with --only)
- split: split a generated assets.json into per-type files
"""

from __future__ import annotations

import contextlib
import signal
import threading
from collections.abc import Iterator
from pathlib import Path

import click

from treasury import __version__
from treasury.artifacts.split import ImageMode, split_assets_file
from treasury.assets.provisioning import KeyFileProvisioning, NoopProvisioning, ProvisioningService
from treasury.assets.source import JsonDumpAssetSource
from treasury.config import ExportConfig, load_config
from treasury.constants import DEFAULT_CONFIG_FILE, EXIT_FATAL
from treasury.export.cancellation import CancellationToken
from treasury.export.exporters import exporter_names
from treasury.export.pipeline import RunStatus, run_pipeline
from treasury.types.errors import ArtifactError, ConfigurationError
from treasury.utils.logger import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="Treasury", message="%(prog)s v%(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write a debug log to this file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: str | None) -> None:
    """Treasury - Game Content Export Pipeline.

    Extracts items, recipes and stat tables from decoded game assets and
    writes them as consolidated JSON artifacts.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose=verbose, log_file=log_file)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load_export_config(config_path: str | None) -> ExportConfig:
    if config_path is not None:
        return load_config(config_path)
    if Path(DEFAULT_CONFIG_FILE).is_file():
        return load_config(DEFAULT_CONFIG_FILE)
    return ExportConfig()


def _provisioning_for(config: ExportConfig) -> ProvisioningService:
    if config.provisioning.key_file:
        return KeyFileProvisioning(config.provisioning.key_file, config.provisioning.mappings_file)
    return NoopProvisioning()


@contextlib.contextmanager
def cancel_on_signals(token: CancellationToken) -> Iterator[None]:
    """Cancel ``token`` on SIGINT/SIGTERM for the duration of the block."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        token.cancel(f"Received {signal.Signals(signum).name}")

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Config file (default: ./{DEFAULT_CONFIG_FILE} if present)",
)
@click.option("--source", type=click.Path(file_okay=False), default=None, help="Directory of asset dumps")
@click.option("--output", type=click.Path(file_okay=False), default=None, help="Output directory")
@click.option("--only", default=None, help="Comma-separated exporter names to run")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Max assets per exporter")
@click.option("--merge/--no-merge", default=None, help="Merge into existing artifacts")
@click.option("--parallelism", type=click.IntRange(min=1), default=None, help="Workers per exporter")
@click.option("--no-images", is_flag=True, help="Skip writing image files")
@click.pass_context
def export(
    ctx: click.Context,
    config_path: str | None,
    source: str | None,
    output: str | None,
    only: str | None,
    limit: int | None,
    merge: bool | None,
    parallelism: int | None,
    no_images: bool,
) -> None:
    """Export game content to JSON artifacts."""
    try:
        config = _load_export_config(config_path).with_overrides(
            source_directory=source,
            output_directory=output,
            only=only,
            limit=limit,
            merge=merge,
            max_parallelism=parallelism,
            images_enabled=False if no_images else None,
        )
        if not config.game_files.source_directory:
            raise ConfigurationError(
                "No source directory configured",
                user_message="No source directory: pass --source or set game_files.source_directory.",
            )
    except ConfigurationError as exc:
        click.echo(exc.get_formatted_message(), err=True)
        ctx.exit(EXIT_FATAL)

    unknown = set(n.casefold() for n in config.scope.selected_names) - {
        n.casefold() for n in exporter_names()
    }
    if unknown:
        click.echo(f"Warning: unknown exporters ignored: {', '.join(sorted(unknown))}", err=True)

    token = CancellationToken()
    with cancel_on_signals(token):
        result = run_pipeline(
            config,
            source=JsonDumpAssetSource(
                config.game_files.source_directory, language=config.game_files.language
            ),
            provisioning=_provisioning_for(config),
            cancellation=token,
        )

    if result.status is RunStatus.SUCCESS:
        click.echo(f"Exported {len(result.exported.named_items)} items")
        for path in result.artifacts:
            click.echo(f"  wrote {path}")
        if result.failed_assets:
            click.echo(f"{len(result.failed_assets)} assets failed (see log)")
    elif result.status is RunStatus.CANCELLED:
        click.echo("Export cancelled; no artifacts written", err=True)
    else:
        click.echo(result.error.get_formatted_message(), err=True)

    ctx.exit(result.exit_code)


@cli.command()
def exporters() -> None:
    """List available exporters."""
    for name in exporter_names():
        click.echo(name)


@cli.command()
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("dest_dir", type=click.Path(file_okay=False))
@click.option(
    "--images",
    type=click.Choice([m.value for m in ImageMode], case_sensitive=False),
    default=ImageMode.IGNORE.value,
    show_default=True,
    help="What to do with ExportedImages",
)
@click.pass_context
def split(ctx: click.Context, source_dir: str, dest_dir: str, images: str) -> None:
    """Split assets.json into per-type files."""
    try:
        result = split_assets_file(source_dir, dest_dir, ImageMode(images.lower()))
    except ArtifactError as exc:
        click.echo(exc.get_formatted_message(), err=True)
        ctx.exit(EXIT_FATAL)
    click.echo(f"Wrote {len(result.files)} files")
    if result.images:
        click.echo(f"Transferred {result.images} images")
    for name in result.skipped:
        click.echo(f"Skipped {name}")


if __name__ == "__main__":
    cli()
