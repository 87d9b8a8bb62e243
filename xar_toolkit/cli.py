"""XAR Toolkit CLI."""

import io
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .errors import XARError
from .logging_config import setup_logging


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", count=True, help="Sets the level of verbosity")
def main(verbose: int):
    """XAR Toolkit - Inspect XAR archives.

    \b
    Reads the header and table of contents of a XAR archive and
    looks up entries by path. File payloads are never extracted.
    """
    if verbose >= 2:
        setup_logging("DEBUG")
    elif verbose == 1:
        setup_logging("INFO")
    elif os.getenv("XAR_LOG_LEVEL"):
        setup_logging()


@main.command("dump-header")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Export header as JSON.")
def dump_header(file: Path, as_json: bool):
    """Print the header of a XAR archive.

    The header is decoded but not validated, so a wrong magic or
    version is still shown.
    """
    from .xar import decode_header

    try:
        with open(file, "rb") as f:
            header = decode_header(f)

        if as_json:
            click.echo(json.dumps(header.to_dict()))
        else:
            click.echo(str(header))

    except (XARError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("dump-toc")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-c", "--compact", is_flag=True, help="Don't pretty-print the TOC.")
def dump_toc(file: Path, compact: bool):
    """Dump the table of contents on stdout."""
    from .xar import Archive

    try:
        archive = Archive.from_file(file)
        buffer = io.StringIO()
        archive.toc.write(buffer, pretty=not compact)
        click.echo(buffer.getvalue(), nl=False)

    except (XARError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("dump-file")
@click.argument("archive_path", metavar="ARCHIVE", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Export as JSON.")
def dump_file(archive_path: Path, path: str, as_json: bool):
    """Dump all metadata of the entry at PATH."""
    from .xar import Archive

    try:
        archive = Archive.from_file(archive_path)
        entry = archive.find(path)
        if entry is None:
            click.echo(f"Error: File '{path}' doesn't exist in archive '{archive_path}'.", err=True)
            sys.exit(1)

        info = entry.to_dict()
        if as_json:
            click.echo(json.dumps(info))
            return

        for key, value in info.items():
            if key == "data" and value:
                for data_key, data_value in value.items():
                    click.echo(f"{'data.' + data_key:25}: {_display(data_value)}")
            else:
                click.echo(f"{key:25}: {_display(value)}")

    except (XARError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("list")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("path", required=False)
@click.option("-l", "--long", "long_format", is_flag=True, help="Show verbose output.")
@click.option("-a", "--all", "recursive", is_flag=True, help="Recurse into directories.")
def list_command(file: Path, path: Optional[str], long_format: bool, recursive: bool):
    """List the files in a XAR archive.

    Lists the top level, or the directory at PATH. Use --all to
    include everything below it.
    """
    from .xar import XARReader

    try:
        with XARReader(file) as reader:
            if path and reader.get_entry_by_name(path) is None:
                click.echo(f"Error: File '{path}' doesn't exist in archive '{file}'.", err=True)
                sys.exit(1)

            if recursive:
                rows = list(reader.walk(path))
            else:
                level = reader.get_entry_by_name(path).files if path else reader.files
                rows = [(entry.name, entry) for entry in level]

            for entry_path, entry in rows:
                if not entry_path:
                    continue
                if long_format:
                    click.echo(_long_line(entry_path, entry))
                else:
                    click.echo(entry_path)

    except (XARError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(file: Path):
    """Decode and validate a XAR archive."""
    from .xar import Archive

    try:
        archive = Archive.from_file(file)
        entry_count = sum(1 for _ in archive.toc.walk())
        click.echo(f"OK: {entry_count} entries, checksum {archive.toc.checksum_type}")

    except (XARError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _display(value) -> str:
    return "-" if value is None else str(value)


def _long_line(path: str, entry) -> str:
    """One `ls -l` style row."""
    return "{:<18} {:>5} {:<8} {:<8} {:>10}  {}".format(
        entry.type_text or "?",
        _display(entry.mode),
        _display(entry.user),
        _display(entry.group),
        _display(entry.size),
        path,
    )


if __name__ == "__main__":
    main()
