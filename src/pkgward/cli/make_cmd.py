"""``pkgward make`` and ``pkgward index``: package building helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from pkgward import GENERIC_ERR
from pkgward.archive.build import build_package
from pkgward.cli.output import console, print_error
from pkgward.exceptions import PkgwardError
from pkgward.sources.directory import DirectorySource


@click.command("make")
@click.argument("srcdir", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--output", "-o",
    type=click.Path(file_okay=False),
    default=".",
    help="Directory to write the package to (default: current directory).",
)
def make_command(srcdir: str, output: str) -> None:
    """Build a package from SRCDIR, which must contain pkg.yml."""
    try:
        path = build_package(Path(srcdir), Path(output))
    except PkgwardError as exc:
        print_error(exc)
        sys.exit(GENERIC_ERR)
    console.print(f"Package written to: {path}")


@click.command("index")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
def index_command(directory: str) -> None:
    """Write the metadata.yml index for a directory of packages."""
    path = DirectorySource(Path(directory)).write_index()
    console.print(f"Index written to: {path}")
