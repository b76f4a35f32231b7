"""pkgward CLI: install, upgrade and remove tar-based packages.

Entry point for the ``pkgward`` command-line tool. Global options build
one ``TransactionConfig`` that every subcommand receives through the
click context.

Commands:
    install   Install packages and their dependencies.
    upgrade   Upgrade (or ``--downgrade``) packages.
    remove    Remove packages, optionally with dependents or prerequisites.
    list      List installed packages.
    history   Show the change log.
    files     List files installed by packages.
    owner     Show which package owns a file.
    verify    Check installed files against recorded checksums.
    make      Build a package from a source directory.
    index     Write a repository index for a package directory.

Usage::

    pkgward --source ./repo install foo
    pkgward --source https://pkgs.example.com/ upgrade
    pkgward remove --remove-all-dep foo
    pkgward make ./foo-src -o ./repo
    pkgward verify foo
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from pkgward import __version__
from pkgward.cli.install_cmd import install_command, remove_command, upgrade_command
from pkgward.cli.make_cmd import index_command, make_command
from pkgward.cli.output import err_console
from pkgward.cli.query_cmd import (
    files_command,
    history_command,
    list_command,
    owner_command,
    verify_command,
)
from pkgward.config import DEFAULT_BASE, TransactionConfig


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=debug)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--root", envvar="PKGWARD_ROOT", default="/", show_default=True,
              type=click.Path(file_okay=False), help="File system root for absolute package paths.")
@click.option("--base", envvar="PKGWARD_BASE", default=DEFAULT_BASE, show_default=True,
              help="Base directory for relocatable files and pkgward state.")
@click.option("--source", "-s", "sources", multiple=True,
              help="Package directory or repository URL (repeatable).")
@click.option("--force", is_flag=True, help="Treat hook and external failures as warnings.")
@click.option("--force-replace", is_flag=True, help="Replace conflicting packages and files.")
@click.option("--lock-force", is_flag=True, help="Remove an existing repository lock.")
@click.option("--no-prompt", is_flag=True, help="Never ask for confirmation.")
@click.option("--report-server", default=None, help="URL to report changes to.")
@click.option("--debug", is_flag=True, help="Show resolver and matcher decisions.")
@click.pass_context
def cli(
    ctx: click.Context,
    root: str,
    base: str,
    sources: tuple[str, ...],
    force: bool,
    force_replace: bool,
    lock_force: bool,
    no_prompt: bool,
    report_server: str | None,
    debug: bool,
) -> None:
    """pkgward: a dependency-resolving package manager for tar-based packages."""
    _configure_logging(debug)
    ctx.obj = TransactionConfig(
        file_system_root=Path(root),
        base=Path(base),
        sources=sources,
        force=force,
        force_replace=force_replace,
        lock_force=lock_force,
        prompt=not no_prompt,
        report_server=report_server,
    )


# Register all subcommands
cli.add_command(install_command)
cli.add_command(upgrade_command)
cli.add_command(remove_command)
cli.add_command(list_command)
cli.add_command(history_command)
cli.add_command(files_command)
cli.add_command(owner_command)
cli.add_command(verify_command)
cli.add_command(make_command)
cli.add_command(index_command)
