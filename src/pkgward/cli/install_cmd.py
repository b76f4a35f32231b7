"""``pkgward install``, ``pkgward upgrade`` and ``pkgward remove``.

Exit Codes:
    0: Success.
    1: Planning failed (unsatisfiable request, conflict, lock held) or
        the user declined.
    2: A postinstall hook failed.
    3: A postremove hook failed.
    4: An init script could not be linked.
"""

from __future__ import annotations

import click

from pkgward.cli.common import build_manager, run_operation


@click.command("install")
@click.argument("requests", nargs=-1, required=True)
@click.pass_context
def install_command(ctx: click.Context, requests: tuple[str, ...]) -> None:
    """Install packages and their dependencies.

    Each REQUEST is a package name with optional version constraints
    (``foo``, ``foo>=1.0``, ``foo=1.0=2``), a package filename, a path to
    a package file, or a URL.
    """
    manager = build_manager(ctx)
    run_operation(lambda: manager.install(list(requests)), "Install")


@click.command("upgrade")
@click.argument("requests", nargs=-1)
@click.option("--downgrade", is_flag=True, help="Allow moving to a lower version.")
@click.pass_context
def upgrade_command(ctx: click.Context, requests: tuple[str, ...], downgrade: bool) -> None:
    """Upgrade the requested packages, or every installed package."""
    manager = build_manager(ctx)
    run_operation(lambda: manager.upgrade(list(requests) or None, downgrade=downgrade), "Upgrade")


@click.command("remove")
@click.argument("requests", nargs=-1)
@click.option("--remove-all-dep", is_flag=True, help="Also remove packages depending on these.")
@click.option(
    "--remove-all-prereq",
    is_flag=True,
    help="Also remove prerequisites no other installed package needs.",
)
@click.option("--all", "remove_all", is_flag=True, help="Remove every installed package.")
@click.pass_context
def remove_command(
    ctx: click.Context,
    requests: tuple[str, ...],
    remove_all_dep: bool,
    remove_all_prereq: bool,
    remove_all: bool,
) -> None:
    """Remove installed packages by name or filename."""
    if not requests and not remove_all:
        raise click.UsageError("Name packages to remove, or pass --all")
    manager = build_manager(ctx)
    run_operation(
        lambda: manager.remove(
            list(requests) or None,
            remove_all_dep=remove_all_dep,
            remove_all_prereq=remove_all_prereq,
        ),
        "Remove",
    )
