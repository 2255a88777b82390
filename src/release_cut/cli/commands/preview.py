"""Implementation of the 'next-version' and 'notes' commands.

Both are read-only and print plain text to stdout so they can be used in
scripts, e.g. ``VERSION=$(release-cut next-version)``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from release_cut.cli.commands.release import (
    EXIT_OK,
    build_orchestrator,
    exit_code_for,
    report_failure,
)
from release_cut.core.orchestrator import ReleaseState

if TYPE_CHECKING:
    from rich.console import Console


def run_next_version(path: str | None, console: Console, err_console: Console) -> int:
    """Print the next version, or nothing when there is nothing to release."""
    project_path = Path(path) if path else Path.cwd()
    result = build_orchestrator(project_path, None, err_console).run(dry_run=True)

    if result.state is ReleaseState.FAILED:
        report_failure(result, err_console)
        return exit_code_for(result)
    if result.state is ReleaseState.NOOP or result.decision is None:
        return EXIT_OK

    console.print(str(result.decision.next), markup=False, highlight=False)
    return EXIT_OK


def run_notes(path: str | None, console: Console, err_console: Console) -> int:
    """Print the release notes the next release would get."""
    project_path = Path(path) if path else Path.cwd()
    result = build_orchestrator(project_path, None, err_console).run(dry_run=True)

    if result.state is ReleaseState.FAILED:
        report_failure(result, err_console)
        return exit_code_for(result)
    if result.state is ReleaseState.NOOP:
        err_console.print("[yellow]No releasable changes since the last release.[/]")
        return EXIT_OK

    console.print(result.rendered_notes, markup=False, highlight=False, end="")
    return EXIT_OK
