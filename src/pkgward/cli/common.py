"""Shared plumbing for pkgward subcommands."""

from __future__ import annotations

import sys
from typing import Callable

import click

from pkgward import GENERIC_ERR
from pkgward.cli.output import print_error, print_status
from pkgward.config import TransactionConfig
from pkgward.exceptions import PkgwardError
from pkgward.transaction.manager import TransactionManager


def build_manager(ctx: click.Context) -> TransactionManager:
    """Create a manager from the group-level configuration."""
    config: TransactionConfig = ctx.obj
    return TransactionManager(config, confirm=lambda q: click.confirm(q, default=True))


def run_operation(operation: Callable[[], int], verb: str) -> None:
    """Run *operation* and exit with its status; pkgward errors exit 1."""
    try:
        status = operation()
    except PkgwardError as exc:
        print_error(exc)
        sys.exit(GENERIC_ERR)
    print_status(status, verb)
    sys.exit(status)
