"""Main CLI entry point for picam-streamer.

This module defines the Typer application and its commands:
``upgrade``, ``version`` and ``start``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import structlog
import typer
from rich.console import Console

from selfupdate.config import DEFAULT_REPOSITORY, ConfigManager, resolve_config_dir
from selfupdate.errors import SelfUpdateError
from selfupdate.models import UpgradeState
from selfupdate.orchestrator import UpdateOrchestrator
from selfupdate.version import current_version_info
from streamer.camera import DEFAULT_FRAME_INTERVAL, DirectoryCamera
from streamer.server import DEFAULT_ADDRESS, DEFAULT_PORT, StreamServer

from .log import configure_logging

if TYPE_CHECKING:
    from selfupdate.config import UpdaterConfig
    from selfupdate.models import UpgradeResult, VersionInfo

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="picam-streamer",
    help="Camera MJPEG streamer with self-upgrade from its release page.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


@app.callback()
def main() -> None:
    """picam-streamer: stream a camera over HTTP and keep the binary up to date."""


def _load_config() -> UpdaterConfig:
    """Resolve the configuration directory and load the configuration.

    Raises:
        ConfigError: If the directory or the YAML overrides are unusable.
    """
    config_dir = resolve_config_dir()
    return ConfigManager(config_dir).load()


def _print_upgrade_result(result: UpgradeResult, version_info: VersionInfo) -> None:
    """Print a one-line summary of an upgrade attempt."""
    current = result.current_version
    target = result.target_version

    if result.state is UpgradeState.THROTTLED:
        console.print("[yellow]release catalog unavailable (throttled or unreachable)[/yellow]")
    elif result.state is UpgradeState.UP_TO_DATE:
        if target is None:
            console.print("no release found : skipping upgrade")
        elif version_info.is_development_build:
            console.print(
                f'development build, latest release is "{target}" : skipping upgrade '
                "(use --force to install it)"
            )
        else:
            console.print(f'binary with version "{current}" is up to date : skipping upgrade')
    elif result.state is UpgradeState.DRY_RUN:
        console.print(
            f'upgrade would replace binary from "{current}" to "{target}" '
            f"at its current location {result.target_path}"
        )
    elif result.state is UpgradeState.DONE:
        if not result.checksum_verified:
            console.print("[yellow]no checksum published, archive not verified[/yellow]")
        console.print(f'[green]upgrade done.[/green] "{current}" -> "{target}"')


@app.command()
def upgrade(
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Does not replace the binary."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", help="Force the replacement of the binary."),
    ] = False,
    allow_prerelease: Annotated[
        bool,
        typer.Option(
            "--allow-prerelease",
            help="Allow the installation of pre-release binary versions.",
        ),
    ] = False,
    non_blocking: Annotated[
        bool,
        typer.Option(
            "--non-blocking",
            help="An issue during the upgrade does not return a command error.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Output processing information."),
    ] = False,
) -> None:
    """Upgrade the binary to the latest release."""
    configure_logging("debug" if debug else "warning")

    try:
        config = _load_config()
        version_info = current_version_info(config.repository)
        orchestrator = UpdateOrchestrator(config, version_info)
        target = orchestrator.binary_location()
        console.print(f"current binary location {target}")

        result = asyncio.run(
            orchestrator.upgrade(
                dry_run=dry_run,
                force=force,
                allow_prerelease=allow_prerelease,
                target_path=target,
            )
        )
    except (SelfUpdateError, OSError) as e:
        logger.debug("upgrade_command_failed", error=str(e), error_type=type(e).__name__)
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(0 if non_blocking else 1) from e

    _print_upgrade_result(result, version_info)


@app.command()
def version(
    semver: Annotated[
        bool,
        typer.Option("--semver", help="Print only the semver string."),
    ] = False,
    commit: Annotated[
        bool,
        typer.Option("--commit", help="Print only the commit hash."),
    ] = False,
    separator: Annotated[
        str,
        typer.Option("--separator", "-s", help="Replace the point in the semver notation."),
    ] = "",
) -> None:
    """Output the version of the binary."""
    info = current_version_info(DEFAULT_REPOSITORY)

    if semver:
        typer.echo(info.semver)
    elif commit:
        typer.echo(info.commit)
    elif separator:
        typer.echo(info.semver_with_separator(separator))
    else:
        typer.echo(info.information())


@app.command()
def start(
    frames_dir: Annotated[
        Path,
        typer.Option(
            "--frames-dir",
            "-f",
            help="Directory of JPEG frames replayed as the camera feed.",
        ),
    ],
    address: Annotated[
        str,
        typer.Option("--address", "-a", help="Server listener address."),
    ] = DEFAULT_ADDRESS,
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Server listener port."),
    ] = DEFAULT_PORT,
    frame_interval: Annotated[
        float,
        typer.Option("--frame-interval", help="Seconds between two frames."),
    ] = DEFAULT_FRAME_INTERVAL,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Output processing information."),
    ] = False,
) -> None:
    """Start the MJPEG streaming server."""
    configure_logging("debug" if debug else "info")

    if not frames_dir.is_dir():
        err_console.print(f"[red]Error:[/red] frame directory not found: {frames_dir}")
        raise typer.Exit(1)

    camera = DirectoryCamera(frames_dir, interval=frame_interval)
    server = StreamServer(camera, address=address, port=port)
    console.print(f"Serving images: [bold]http://{address}:{port}/stream[/bold]")

    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    except OSError as e:
        err_console.print(f"[red]Error:[/red] failed to start server: {e}")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
