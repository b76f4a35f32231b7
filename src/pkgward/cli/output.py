"""Rich output formatting helpers for the pkgward CLI."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pkgward.core.dependency.models import Candidate
from pkgward.exceptions import PkgwardError
from pkgward.store.installed import FileProblem, ManifestEntry

console = Console()
err_console = Console(stderr=True)


def print_installed(candidates: list[Candidate]) -> None:
    """Print a table of installed packages."""
    if not candidates:
        console.print("[dim]No packages installed.[/dim]")
        return

    table = Table(title="Installed Packages", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Package Version", justify="right")
    table.add_column("Filename", style="dim")

    for candidate in sorted(candidates, key=lambda c: (c.name, c.filename)):
        meta = candidate.metadata
        table.add_row(meta.name, meta.version, meta.package_version or "-", meta.filename)

    console.print(table)


def print_history(lines: list[str]) -> None:
    if not lines:
        console.print("[dim]No changes recorded.[/dim]")
        return
    for line in lines:
        style = "green" if " was installed by " in line else "yellow"
        console.print(Text(line, style=style))


def print_files(files: dict[str, list[ManifestEntry]]) -> None:
    if not files:
        console.print("[dim]No packages installed.[/dim]")
        return
    for filename, entries in files.items():
        console.print(f"[bold]{filename}[/bold]")
        if not entries:
            console.print("  [dim]no files recorded[/dim]")
        for entry in sorted(entries, key=lambda e: e.path):
            suffix = "/" if entry.directory else ""
            style = "cyan" if entry.config else ""
            console.print(Text(f"  {entry.path}{suffix}", style=style), soft_wrap=True)


def print_owners(path: str, owners: list[str]) -> None:
    if not owners:
        console.print(f"[yellow]No installed package owns {path}[/yellow]", soft_wrap=True)
        return
    for owner in owners:
        console.print(f"{path} is owned by [bold]{owner}[/bold]", soft_wrap=True)


def print_verification(results: dict[str, list[FileProblem]]) -> None:
    """Print a table of missing or modified files, or a success line."""
    problems = [(filename, p) for filename, ps in results.items() for p in ps]
    if not problems:
        console.print(f"[bold green]Verified {len(results)} package(s), no problems found.[/bold green]")
        return

    table = Table(title="Verification Problems", show_header=True, header_style="bold")
    table.add_column("Package", style="bold")
    table.add_column("Path")
    table.add_column("Problem", style="red")

    for filename, problem in problems:
        table.add_row(filename, problem.path, problem.problem)

    console.print(table)


def print_error(exc: PkgwardError) -> None:
    """Print a pkgward error, listing every aggregated problem."""
    problems = getattr(exc, "problems", None)
    if problems:
        body = Text(exc.summary, style="bold")
        for problem in problems:
            body.append(f"\n  {problem}", style="")
    else:
        body = Text(str(exc), style="bold")
    err_console.print(Panel(body, title=type(exc).__name__, border_style="red"))


def print_status(status: int, verb: str) -> None:
    if status == 0:
        console.print(f"[bold green]{verb} complete.[/bold green]")
    else:
        console.print(f"[yellow]{verb} finished with status {status}; see warnings above.[/yellow]")
