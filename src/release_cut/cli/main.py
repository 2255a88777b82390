"""Command line interface for release-cut."""

from __future__ import annotations

import typer
from rich.console import Console

from release_cut import __version__
from release_cut.cli.commands.preview import run_next_version, run_notes
from release_cut.cli.commands.release import run_release, run_resume
from release_cut.logging import configure_logging

app = typer.Typer(
    name="release-cut",
    help="Cut releases from conventional commits.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)

PathOption = typer.Option(None, "--path", "-p", help="Project directory (default: cwd).")
BuildDirOption = typer.Option(
    None, "--build-dir", help="Build output directory (overrides build_dir in config)."
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors."),
    json_log: bool = typer.Option(False, "--json-log", help="Log JSON lines to stderr."),
) -> None:
    configure_logging(verbose=verbose, quiet=quiet, json_log=json_log)


@app.command()
def release(
    path: str | None = PathOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the next release only."),
    publish: bool = typer.Option(
        True, "--publish/--no-publish", help="Publish to the release host after tagging."
    ),
    build_dir: str | None = BuildDirOption,
) -> None:
    """Bump the version, update the changelog, tag and publish."""
    code = run_release(path, dry_run, publish, build_dir, console, err_console)
    raise typer.Exit(code=code)


@app.command()
def resume(
    path: str | None = PathOption,
    tag: str | None = typer.Option(None, "--tag", help="Release tag (default: latest)."),
    build_dir: str | None = BuildDirOption,
) -> None:
    """Retry publishing an already tagged release."""
    code = run_resume(path, tag, build_dir, console, err_console)
    raise typer.Exit(code=code)


@app.command("next-version")
def next_version(path: str | None = PathOption) -> None:
    """Print the version the next release would get."""
    raise typer.Exit(code=run_next_version(path, console, err_console))


@app.command()
def notes(path: str | None = PathOption) -> None:
    """Print the release notes of the next release."""
    raise typer.Exit(code=run_notes(path, console, err_console))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
