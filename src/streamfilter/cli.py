"""streamfilter CLI for piping data through built-in transforms - Tyro implementation."""

import logging
import sys
from pathlib import Path
from typing import Annotated, Any, BinaryIO

import attrs
import tyro
import yaml
from rich import print
from rich.console import Console
from rich.table import Table

from streamfilter.api import append
from streamfilter.chain.adapter import Direction
from streamfilter.chain.lifecycle import FailureEvent
from streamfilter.config import (
    CONFIG_FILENAME,
    FilterEntry,
    StreamFilterConfig,
    configure_logging,
    get_config,
    set_config_instance,
)
from streamfilter.exceptions import UnknownTransformError
from streamfilter.stream import FilterableStream
from streamfilter.transforms import fun, get_registry


# Subcommand definitions using attrs
@attrs.define
class Pipe:
    """Copy input to output through a chain of built-in transforms."""

    filter: Annotated[list[str] | None, tyro.conf.arg(aliases=["-f"])] = None
    """Transform to append, as NAME or NAME:key=value,key=value. Repeatable.
    Defaults to the 'filters' list from streamfilter.yaml."""

    input: Annotated[Path | None, tyro.conf.arg(aliases=["-i"])] = None
    """File to read (default: stdin)."""

    output: Annotated[Path | None, tyro.conf.arg(aliases=["-o"])] = None
    """File to write (default: stdout)."""


@attrs.define
class Filters:
    """List the built-in transforms."""


# Type alias for all subcommands
Command = Annotated[Pipe, tyro.conf.subcommand(name="pipe")] | Annotated[Filters, tyro.conf.subcommand(name="filters")]


def setup_logging() -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_filter_spec(spec: str) -> FilterEntry:
    """Parse NAME or NAME:key=value,key=value into a FilterEntry.

    Values are parsed as YAML scalars, so ``level=9`` gives an int.

    Raises:
        ValueError: If a parameter is not key=value
    """
    name, _, raw_params = spec.partition(":")
    params: dict[str, Any] = {}
    for part in raw_params.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid filter parameter '{part}' in '{spec}', expected key=value")
        params[key.strip()] = yaml.safe_load(value)
    return FilterEntry(name=name.strip(), params=params)


def run_pipe(config: StreamFilterConfig, cmd: Pipe) -> int:
    """Run the pipe subcommand.

    Returns:
        Exit code: 0 on success, 1 on bad arguments or reported failures
    """
    try:
        entries = [parse_filter_spec(s) for s in cmd.filter] if cmd.filter else config.filter_entries()
        transforms = [fun(entry.name, **entry.params) for entry in entries]
    except (ValueError, TypeError, UnknownTransformError) as e:
        print(f"[red]Error: {e}[/red]", file=sys.stderr)
        return 1

    failures: list[FailureEvent] = []
    source: BinaryIO = cmd.input.open("rb") if cmd.input else sys.stdin.buffer
    sink: BinaryIO = cmd.output.open("wb") if cmd.output else sys.stdout.buffer

    try:
        stream = FilterableStream(
            sink,
            name=str(cmd.output) if cmd.output else "<stdout>",
            close_raw=cmd.output is not None,
        )
        stream.on_failure(failures.append)
        for transform in transforms:
            append(stream, transform, Direction.WRITE)

        with stream:
            while block := source.read(config.read_block_size):
                stream.write(block)
    finally:
        if cmd.input:
            source.close()

    if failures:
        for event in failures:
            print(f"[red]{event}[/red]", file=sys.stderr)
        return 1
    return 0


def show_filters() -> None:
    """Print a table of built-in transforms."""
    console = Console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    for name, spec in get_registry().get_all_specs().items():
        table.add_row(name, spec.description or "-")

    console.print(table)


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """streamfilter - chunk transforms for byte streams."""
    if config_dir is not None:
        config = StreamFilterConfig.from_yaml(config_dir / CONFIG_FILENAME)
        set_config_instance(config)
    else:
        config = get_config()

    setup_logging()
    configure_logging(config)

    if isinstance(cmd, Pipe):
        sys.exit(run_pipe(config, cmd))

    elif isinstance(cmd, Filters):
        show_filters()


def entry_point() -> None:
    """Entry point for the streamfilter command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
