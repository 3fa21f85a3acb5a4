import asyncio
import sys
import time
from importlib import metadata

import click
from rich.console import Console
from rich.markup import escape

from safecopy.config.logging_config import configure_logging, get_logger
from safecopy.copier import copy
from safecopy.errors import CopyError
from safecopy.types import CopyReport

console = Console()
err_console = Console(stderr=True)

log = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def _get_version() -> str:
    try:
        return metadata.version("safecopy")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.command()
@click.version_option(_get_version(), prog_name="safecopy", message="%(prog)s version %(version)s")
@click.argument("source", type=click.Path(dir_okay=False))
@click.argument("destination", type=click.Path(dir_okay=False))
@click.option(
    "--buffer-size",
    type=click.IntRange(min=1),
    default=None,
    help="Transfer buffer size in bytes (default: SAFECOPY_BUFFER_SIZE or 10240).",
)
@click.option("--json", "as_json", is_flag=True, help="Print a JSON report instead of the byte count.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the log level.",
)
def cli(source: str, destination: str, buffer_size: int | None, as_json: bool, log_level: str | None):
    """Copy SOURCE to DESTINATION, closing both files even on failure."""
    if log_level:
        configure_logging(log_level)

    started = time.monotonic()
    try:
        count = asyncio.run(copy(source, destination, buffer_size=buffer_size))
    except CopyError as e:
        err_console.print(f"[red]Error:[/red] {escape(e.message)}", highlight=False, soft_wrap=True)
        sys.exit(EXIT_FAILURE)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        err_console.print("[yellow]Cancelled[/yellow]")
        sys.exit(EXIT_CANCELLED)

    if as_json:
        report = CopyReport(
            source=source,
            destination=destination,
            bytes_copied=count,
            duration_s=time.monotonic() - started,
        )
        click.echo(report.model_dump_json(indent=2))
    else:
        console.print(f"Count: {count}", highlight=False, soft_wrap=True)


if __name__ == "__main__":
    cli()
