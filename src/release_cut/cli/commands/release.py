"""Implementation of the 'release' and 'resume' commands.

``release`` cuts a new release: it classifies the commits since the last
tag, bumps the version, commits, tags and publishes. ``resume`` retries the
publishing step for a release that is already tagged.

Exit codes:
    0  release cut, or nothing to release
    1  failed before the tag was created, nothing was changed
    2  failed after the tag was created, publishing is incomplete
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.panel import Panel

from release_cut.config import load_config
from release_cut.core.orchestrator import ReleaseOrchestrator, ReleaseResult, ReleaseState
from release_cut.exceptions import ReleaseCutError
from release_cut.forge.github import GitHubClient
from release_cut.vcs import GitRepository, parse_github_remote

if TYPE_CHECKING:
    from rich.console import Console

    from release_cut.config.models import ReleaseCutConfig

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


def build_orchestrator(
    project_path: Path,
    build_dir: str | None,
    err_console: Console,
) -> ReleaseOrchestrator:
    """Load config and wire the orchestrator for ``project_path``.

    Raises:
        SystemExit: If the configuration or repository cannot be loaded
    """
    try:
        config = load_config(project_path)
    except ReleaseCutError as e:
        err_console.print(f"[red]Error loading config:[/] {e}")
        raise SystemExit(EXIT_FAILED) from e

    try:
        repo = GitRepository(project_path)
    except ReleaseCutError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(EXIT_FAILED) from e

    owner, name = _github_repository(repo, config)
    repository_url = None
    host_factory = None
    if owner and name:
        github = config.github

        def host_factory() -> GitHubClient:
            return GitHubClient(
                owner,
                name,
                token=github.token,
                api_url=github.api_url,
                uploads_url=github.uploads_url,
                timeout=github.timeout,
            )

        if github.api_url == "https://api.github.com":
            repository_url = f"https://github.com/{owner}/{name}"

    return ReleaseOrchestrator(
        repo,
        config,
        host_factory=host_factory,
        build_dir=Path(build_dir) if build_dir else None,
        repository_url=repository_url,
    )


def _github_repository(
    repo: GitRepository, config: ReleaseCutConfig
) -> tuple[str | None, str | None]:
    owner, name = config.github.owner, config.github.repo
    if owner and name:
        return owner, name
    url = repo.remote_url(config.git.remote)
    detected = parse_github_remote(url) if url else None
    if detected is None:
        return owner, name
    return owner or detected[0], name or detected[1]


def exit_code_for(result: ReleaseResult) -> int:
    if result.succeeded:
        return EXIT_OK
    if result.tagged:
        return EXIT_PARTIAL
    return EXIT_FAILED


def report_failure(result: ReleaseResult, err_console: Console) -> None:
    stage = result.failed_stage or result.state
    err_console.print(f"[red]Release failed during {stage}:[/] {result.error}")
    if result.tagged:
        err_console.print(
            Panel(
                f"Version was bumped and tagged [cyan]{result.tag}[/], "
                "but publishing is incomplete.\n\n"
                f"Fix the problem, then run [cyan]release-cut resume --tag {result.tag}[/]",
                title="[yellow]Partial Release[/]",
                border_style="yellow",
            )
        )
    else:
        err_console.print("[dim]No files, commits or tags were changed.[/]")


def run_release(
    path: str | None,
    dry_run: bool,
    publish: bool,
    build_dir: str | None,
    console: Console,
    err_console: Console,
) -> int:
    """Run the release command.

    Args:
        path: Optional path to the project directory
        dry_run: Only show what would be released
        publish: Publish to the release host after tagging
        build_dir: Build output directory overriding the config
        console: Console for standard output
        err_console: Console for error output

    Returns:
        Process exit code
    """
    project_path = Path(path) if path else Path.cwd()
    orchestrator = build_orchestrator(project_path, build_dir, err_console)
    result = orchestrator.run(dry_run=dry_run, publish=publish)

    if result.state is ReleaseState.FAILED:
        report_failure(result, err_console)
        return exit_code_for(result)

    if result.state is ReleaseState.NOOP:
        console.print("[yellow]No releasable changes since the last release. Nothing to do.[/]")
        return EXIT_OK

    decision = result.decision
    if decision is None:
        err_console.print(f"[red]Release ended in {result.state} without a version decision[/]")
        return EXIT_FAILED

    if result.dry_run:
        first = " (first release)" if decision.is_first_release else ""
        console.print(
            f"\n[yellow]DRY-RUN[/] - Next version [green]{decision.next}[/]"
            f" ({decision.bump_kind} bump from [cyan]{decision.previous}[/]){first}\n"
        )
        console.print(
            Panel(
                result.rendered_notes.strip() or "[dim]No visible changes[/]",
                title="[yellow]Release Notes Preview[/]",
                border_style="yellow",
            )
        )
        console.print("\n[dim]Run without [cyan]--dry-run[/] to cut the release.[/]")
        return EXIT_OK

    lines = [f"[green]Released {result.tag}[/] ({decision.previous} -> {decision.next})"]
    if result.publish is not None:
        if result.publish.release_url:
            lines.append(f"Release: [cyan]{result.publish.release_url}[/]")
        if result.publish.uploaded:
            lines.append(f"Uploaded: {', '.join(result.publish.uploaded)}")
    elif not publish:
        lines.append("[dim]Publishing skipped; run [cyan]release-cut resume[/] to publish.[/]")

    console.print(Panel("\n".join(lines), title="[green]Release Complete[/]", border_style="green"))
    return EXIT_OK


def run_resume(
    path: str | None,
    tag: str | None,
    build_dir: str | None,
    console: Console,
    err_console: Console,
) -> int:
    """Run the resume command.

    Args:
        path: Optional path to the project directory
        tag: Release tag to publish, the latest release tag by default
        build_dir: Build output directory overriding the config
        console: Console for standard output
        err_console: Console for error output

    Returns:
        Process exit code
    """
    project_path = Path(path) if path else Path.cwd()
    orchestrator = build_orchestrator(project_path, build_dir, err_console)
    result = orchestrator.resume(tag)

    if result.state is ReleaseState.FAILED:
        report_failure(result, err_console)
        return exit_code_for(result)

    uploaded = result.publish.uploaded if result.publish else []
    console.print(
        Panel(
            f"[green]Published {result.tag}[/]\n"
            f"Uploaded: {', '.join(uploaded) if uploaded else 'nothing new'}",
            title="[green]Resume Complete[/]",
            border_style="green",
        )
    )
    return EXIT_OK
