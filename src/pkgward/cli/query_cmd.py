"""Read-only queries: ``list``, ``history``, ``files``, ``owner`` and ``verify``."""

from __future__ import annotations

import sys

import click

from pkgward import GENERIC_ERR
from pkgward.cli.common import build_manager
from pkgward.cli.output import (
    print_files,
    print_history,
    print_installed,
    print_owners,
    print_verification,
)


@click.command("list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List installed packages."""
    print_installed(build_manager(ctx).installed())


@click.command("history")
@click.pass_context
def history_command(ctx: click.Context) -> None:
    """Show the install and remove history."""
    print_history(build_manager(ctx).history())


@click.command("files")
@click.argument("packages", nargs=-1)
@click.pass_context
def files_command(ctx: click.Context, packages: tuple[str, ...]) -> None:
    """List files installed by PACKAGES (all packages when none given)."""
    print_files(build_manager(ctx).files(packages))


@click.command("owner")
@click.argument("path", type=click.Path())
@click.pass_context
def owner_command(ctx: click.Context, path: str) -> None:
    """Show which installed package owns PATH.

    Exits with code 1 if no installed package lists PATH.
    """
    owners = build_manager(ctx).owner(path)
    print_owners(path, owners)
    if not owners:
        sys.exit(GENERIC_ERR)


@click.command("verify")
@click.argument("packages", nargs=-1)
@click.pass_context
def verify_command(ctx: click.Context, packages: tuple[str, ...]) -> None:
    """Check installed files against their recorded checksums.

    Exits with code 1 if any file is missing or modified.
    """
    results = build_manager(ctx).verify(packages)
    print_verification(results)
    if any(results.values()):
        sys.exit(GENERIC_ERR)
