"""
spcplay - SPC Player Command-Line Interface
===========================================

This module implements the command-line interface for playing SPC
snapshots on the spcduino.

Usage Examples
--------------
List available serial ports:
    $ spcplay ports

Show what is inside an SPC file and where the boot stub would go:
    $ spcplay info song.spc

Write the finalized memory image without a device:
    $ spcplay compose song.spc -o song.bin

Play a file:
    $ spcplay play song.spc
    $ spcplay --port /dev/ttyACM0 --baud 115200 play song.spc

Configuration
-------------
Defaults come from SPCDUINO_* environment variables (see
spcduino.config); command-line options override them.

Exit Codes
----------
0 - Success
1 - Snapshot, composition or device error
2 - Invalid arguments or configuration error
3 - Internal error
"""

import logging
from pathlib import Path
from typing import Optional

import click

from spcduino import __version__
from spcduino.cli.errors import ExitCode, handle_cli_exception
from spcduino.comms import (
    VALID_BAUD_RATES,
    SpcduinoLink,
    SpcPlayer,
    close_serial_port,
    create_serial_port,
    find_spcduino_port,
    format_port_list,
    list_serial_ports,
)
from spcduino.config import PlayerConfig
from spcduino.errors import SpcduinoError
from spcduino.spc import BOOT_STUB_TEMPLATE, compose, locate_injection_site, parse_spc_file

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Holds the PlayerConfig built from the environment and global options.
    """

    def __init__(self) -> None:
        self.config = PlayerConfig.from_env()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.INFO
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def progress_bar(current: int, total: int) -> None:
    """Simple text progress bar for the image upload."""
    if total == 0:
        return
    percent = current * 100 // total
    filled = percent // 2
    bar = "=" * filled + "-" * (50 - filled)
    click.echo(f"\r[{bar}] {percent:3d}% ({current}/{total} bytes)", nl=False)
    if current >= total:
        click.echo()


def load_snapshot(spc_file: Path, verbose: bool):
    """Parse an SPC file, exiting with a CLI error on failure."""
    try:
        return parse_spc_file(spc_file)
    except (SpcduinoError, OSError) as e:
        handle_cli_exception(e, verbose, "SPC")


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-p", "--port",
    type=str,
    default=None,
    help="Serial port device (auto-detect if not specified)",
)
@click.option(
    "-b", "--baud",
    type=click.Choice([str(b) for b in VALID_BAUD_RATES]),
    default=None,
    help="Baud rate (default: 115200 or $SPCDUINO_BAUD)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for the device to report READY (default: 10)",
)
@click.version_option(version=__version__, prog_name="spcplay")
@pass_context
def main(
    ctx: Context,
    port: Optional[str],
    baud: Optional[str],
    verbose: bool,
    timeout: Optional[float],
) -> None:
    """
    Play SPC snapshots on real SNES sound hardware via the spcduino.

    Use 'spcplay ports' to list available serial ports.
    """
    if port is not None:
        ctx.config.port = port
    if baud is not None:
        ctx.config.baud_rate = int(baud)
    if timeout is not None:
        ctx.config.ready_timeout = timeout
    ctx.verbose = verbose
    ctx.setup_logging()


# =============================================================================
# Ports Command
# =============================================================================

@main.command()
@click.option(
    "--detailed", "-d",
    is_flag=True,
    help="Show detailed port information",
)
def ports(detailed: bool) -> None:
    """
    List available serial ports.

    Example:
        spcplay ports
        spcplay ports --detailed
    """
    port_list = list_serial_ports()

    if not port_list:
        click.echo("No serial ports found.")
        click.echo("\nTips:")
        click.echo("  - Connect the spcduino over USB")
        click.echo("  - On Linux, ensure you have permission (dialout group)")
        return

    click.echo("Available serial ports:")
    click.echo(format_port_list(port_list, verbose=detailed))

    auto_port = find_spcduino_port()
    if auto_port:
        click.echo(f"\nSuggested port for spcduino: {auto_port}")
    else:
        click.echo("\nNo USB-serial device auto-detected.")


# =============================================================================
# Info Command
# =============================================================================

@main.command()
@click.argument("spc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_context
def info(ctx: Context, spc_file: Path) -> None:
    """
    Show the contents of an SPC file.

    Prints the ID666 tag, the CPU registers, the echo buffer and where the
    boot stub would be injected.
    """
    snapshot = load_snapshot(spc_file, ctx.verbose)

    click.echo(f"File: {spc_file.name}")
    if snapshot.tag:
        click.echo(f"  Song:     {snapshot.tag.song_title}")
        click.echo(f"  Game:     {snapshot.tag.game_title}")
        click.echo(f"  Dumper:   {snapshot.tag.dumper}")
        click.echo(f"  Comments: {snapshot.tag.comments}")
    else:
        click.echo("  (no ID666 tag)")

    click.echo(
        f"Registers: PC={snapshot.pc:04X} A={snapshot.a:02X} X={snapshot.x:02X} "
        f"Y={snapshot.y:02X} PSW={snapshot.psw:02X} SP={snapshot.sp:02X}"
    )
    click.echo(
        f"Echo buffer: 0x{snapshot.echo_address:04X} "
        f"({snapshot.echo_size} bytes)"
    )

    site = locate_injection_site(
        snapshot.program_memory,
        len(BOOT_STUB_TEMPLATE),
        snapshot.echo_address,
        snapshot.echo_size,
    )
    if site is None:
        click.echo("Boot stub: no free space found")
    else:
        click.echo(f"Boot stub: 0x{site:04X}")


# =============================================================================
# Compose Command
# =============================================================================

@main.command("compose")
@click.argument("spc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output file for the finalized 64KB image",
)
@click.option(
    "--mute/--no-mute",
    default=None,
    help="Silence voices until the program resumes (default: on)",
)
@pass_context
def compose_image(ctx: Context, spc_file: Path, output: Path, mute: Optional[bool]) -> None:
    """
    Write the finalized memory image for an SPC file.

    The image is exactly what 'spcplay play' would upload.
    """
    snapshot = load_snapshot(spc_file, ctx.verbose)
    mute_voices = ctx.config.mute_voices if mute is None else mute

    try:
        composition = compose(snapshot, mute_voices=mute_voices)
        output.write_bytes(composition.image)
    except (SpcduinoError, OSError) as e:
        handle_cli_exception(e, ctx.verbose, "Compose")

    click.echo(
        f"Wrote {output} (boot stub at 0x{composition.boot_address:04X}, "
        f"SP=0x{composition.stack_pointer:02X})"
    )


# =============================================================================
# Play Command
# =============================================================================

@main.command()
@click.argument("spc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mute/--no-mute",
    default=None,
    help="Silence voices until the program resumes (default: on)",
)
@pass_context
def play(ctx: Context, spc_file: Path, mute: Optional[bool]) -> None:
    """
    Play an SPC file on the spcduino.

    Example:
        spcplay play song.spc
        spcplay --port /dev/ttyACM0 play song.spc --no-mute
    """
    config = ctx.config
    if mute is not None:
        config.mute_voices = mute

    snapshot = load_snapshot(spc_file, ctx.verbose)

    port_device = config.port or find_spcduino_port()
    if not port_device:
        click.echo("Error: No serial port specified and auto-detect failed.", err=True)
        click.echo("Use --port option or 'spcplay ports' to find available ports.", err=True)
        raise SystemExit(ExitCode.INVALID_ARGS)

    serial_port = None
    try:
        serial_port = create_serial_port(port_device, baud_rate=config.baud_rate)
        link = SpcduinoLink(serial_port, ack_timeout=config.ack_timeout)

        click.echo(f"Connecting to spcduino on {port_device}...")
        link.open(timeout=config.ready_timeout)

        if snapshot.tag and snapshot.tag.song_title:
            click.echo(f"Playing: {snapshot.tag.song_title}")

        composition = SpcPlayer(link, mute_voices=config.mute_voices).play(
            snapshot, progress=progress_bar
        )
        click.echo(f"Started at 0x{composition.boot_address:04X}")

    except (SpcduinoError, ValueError) as e:
        handle_cli_exception(e, ctx.verbose, "Playback")
    finally:
        close_serial_port(serial_port)


if __name__ == "__main__":
    main()
