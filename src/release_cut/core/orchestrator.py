"""Release orchestration.

One run walks through a fixed set of states::

    IDLE -> CLASSIFYING -> RESOLVING -> NOOP
                                     -> WRITING -> PUBLISHING -> DONE
    (WRITING | PUBLISHING) -> FAILED

A run with no releasable commits ends in ``NOOP`` without touching
anything, so running twice in a row is always safe. A failure in
``WRITING`` leaves the repository exactly as it was. A failure in
``PUBLISHING`` leaves the release commit and tag in place; :meth:`resume`
picks the release up again at ``PUBLISHING`` without re-tagging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from release_cut.core.changelog import (
    ReleaseNotes,
    build_release_notes,
    extract_release_notes,
    render_release_notes,
)
from release_cut.core.commits import filter_skip_release_commits, parse_commits
from release_cut.core.publisher import ArtifactPublisher, PublishResult, resolve_artifacts
from release_cut.core.version import SemVer, VersionDecision, resolve_version
from release_cut.core.writer import ReleaseWriter
from release_cut.exceptions import (
    GitError,
    PublishError,
    PublishTransportError,
    ReleaseCutError,
)
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from release_cut.config.models import ReleaseCutConfig
    from release_cut.core.commits import ChangeRecord
    from release_cut.core.publisher import ReleaseHost
    from release_cut.vcs.git import GitRepository

log = get_logger(__name__)


class ReleaseState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    RESOLVING = "resolving"
    NOOP = "noop"
    WRITING = "writing"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


_TRANSITIONS: dict[ReleaseState, frozenset[ReleaseState]] = {
    ReleaseState.IDLE: frozenset({ReleaseState.CLASSIFYING, ReleaseState.PUBLISHING}),
    ReleaseState.CLASSIFYING: frozenset({ReleaseState.RESOLVING, ReleaseState.FAILED}),
    ReleaseState.RESOLVING: frozenset({ReleaseState.NOOP, ReleaseState.WRITING}),
    ReleaseState.WRITING: frozenset(
        {ReleaseState.PUBLISHING, ReleaseState.FAILED, ReleaseState.DONE}
    ),
    ReleaseState.PUBLISHING: frozenset({ReleaseState.DONE, ReleaseState.FAILED}),
    ReleaseState.NOOP: frozenset(),
    ReleaseState.DONE: frozenset(),
    ReleaseState.FAILED: frozenset(),
}


@dataclass(slots=True)
class ReleaseResult:
    """Outcome of one orchestration run.

    Attributes:
        state: Terminal state of the run
        history: Every state the run went through, in order
        decision: Version decision, None when the run failed before it
        records: Classified changes since the previous release
        notes: Grouped release notes
        rendered_notes: Markdown body of the release
        tag: Release tag, set once it exists
        publish: Hosted release URL and uploaded asset names
        failed_stage: State the run was in when it failed
        error: The error that ended the run
        dry_run: Whether the run stopped after resolving on purpose
    """

    state: ReleaseState = ReleaseState.IDLE
    history: list[ReleaseState] = field(default_factory=lambda: [ReleaseState.IDLE])
    decision: VersionDecision | None = None
    records: list[ChangeRecord] = field(default_factory=list)
    notes: ReleaseNotes | None = None
    rendered_notes: str = ""
    tag: str | None = None
    publish: PublishResult | None = None
    failed_stage: ReleaseState | None = None
    error: ReleaseCutError | None = None
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        if self.dry_run:
            return self.state is ReleaseState.RESOLVING
        return self.state in (ReleaseState.NOOP, ReleaseState.DONE)

    @property
    def tagged(self) -> bool:
        """Whether the release tag exists (the version was bumped)."""
        return self.tag is not None

    def _enter(self, state: ReleaseState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid release state transition {self.state} -> {state}")
        log.debug("release_state", old=str(self.state), new=str(state))
        self.state = state
        self.history.append(state)

    def _fail(self, error: ReleaseCutError) -> None:
        self.failed_stage = self.state
        self.error = error
        self._enter(ReleaseState.FAILED)
        log.error("release_failed", stage=str(self.failed_stage), error=str(error))


class ReleaseOrchestrator:
    """Cuts a release from the commits since the last tag.

    Args:
        repo: Repository to release
        config: Release configuration
        host_factory: Builds the release host client; only called when
            publishing
        build_dir: Directory holding build outputs, defaults to
            ``config.build_dir`` under the repository root
        repository_url: Web URL of the repository, used to link versions
            and commits in the release notes
    """

    def __init__(
        self,
        repo: GitRepository,
        config: ReleaseCutConfig,
        *,
        host_factory: Callable[[], ReleaseHost] | None = None,
        build_dir: Path | None = None,
        repository_url: str | None = None,
    ) -> None:
        self.repo = repo
        self.config = config
        self.host_factory = host_factory
        self.build_dir = build_dir or repo.path / config.build_dir
        self.repository_url = repository_url.rstrip("/") if repository_url else None
        self.writer = ReleaseWriter(repo, config)

    def _preflight(self) -> None:
        """Refuse to release from the wrong branch or a dirty working tree."""
        branch = self.repo.current_branch()
        if branch != self.config.branch:
            raise ReleaseCutError(
                f"Releases are cut from '{self.config.branch}', current branch is '{branch}'",
                stage=str(ReleaseState.CLASSIFYING),
            )
        if not self.config.allow_dirty and self.repo.is_dirty():
            raise ReleaseCutError(
                "Repository has uncommitted changes; commit or stash them, "
                "or set allow_dirty = true",
                stage=str(ReleaseState.CLASSIFYING),
            )

    def _compare_url(self, previous_tag: str | None, tag: str) -> str | None:
        if not self.repository_url or previous_tag is None:
            return None
        return f"{self.repository_url}/compare/{previous_tag}...{tag}"

    def _previous(self) -> tuple[str | None, SemVer | None]:
        tag = self.repo.get_latest_tag(self.config.tag_format)
        if tag is None:
            return None, None
        return tag, SemVer.from_tag(tag, self.config.tag_format)

    def run(self, *, dry_run: bool = False, publish: bool = True) -> ReleaseResult:
        """Run a full release.

        Args:
            dry_run: Stop in ``RESOLVING`` with the decision and notes;
                nothing is written
            publish: Publish to the release host after tagging; when False
                the run ends in ``DONE`` right after ``WRITING``

        Returns:
            The run's result; stage failures are reported in it, not raised
        """
        result = ReleaseResult()
        result._enter(ReleaseState.CLASSIFYING)
        try:
            if not dry_run:
                self._preflight()
            previous_tag, previous = self._previous()
            commits = self.repo.get_commits_since_tag(previous_tag)
        except ReleaseCutError as e:
            result._fail(e)
            return result

        commits = filter_skip_release_commits(commits, self.config.commits.skip_release_patterns)
        result.records = parse_commits(commits, self.config.commits)
        log.info("commits_classified", previous_tag=previous_tag, count=len(result.records))

        result._enter(ReleaseState.RESOLVING)
        initial = SemVer.parse(self.config.version.initial_version)
        decision = resolve_version(result.records, previous, initial_version=initial)
        result.decision = decision

        if not decision.is_release:
            log.info("no_release", previous=str(decision.previous))
            result._enter(ReleaseState.NOOP)
            return result

        tag = self.config.tag_for(decision.next)
        result.notes = build_release_notes(result.records, self.config.changelog.sections)
        result.rendered_notes = render_release_notes(
            result.notes,
            decision.next,
            compare_url=self._compare_url(previous_tag, tag),
            commit_url=f"{self.repository_url}/commit" if self.repository_url else None,
            include_sha=self.config.changelog.include_sha,
        )
        log.info(
            "version_resolved",
            previous=str(decision.previous),
            next=str(decision.next),
            bump=str(decision.bump_kind),
        )

        if dry_run:
            result.dry_run = True
            return result

        result._enter(ReleaseState.WRITING)
        try:
            written = self.writer.write(decision, result.rendered_notes)
        except ReleaseCutError as e:
            result._fail(e)
            return result
        result.tag = written.tag

        if not publish:
            result._enter(ReleaseState.DONE)
            return result

        result._enter(ReleaseState.PUBLISHING)
        self._publish(result, written.tag, result.rendered_notes)
        return result

    def resume(self, tag: str | None = None) -> ReleaseResult:
        """Retry publishing for an already tagged release.

        Args:
            tag: Release tag, the latest release tag by default

        Returns:
            The run's result, starting directly at ``PUBLISHING``
        """
        result = ReleaseResult()
        tag = tag or self.repo.get_latest_tag(self.config.tag_format)
        result._enter(ReleaseState.PUBLISHING)

        version = SemVer.from_tag(tag, self.config.tag_format) if tag else None
        if tag is None or version is None or not self.repo.tag_exists(tag):
            result._fail(
                PublishError(f"No release tag to resume from ({tag or 'no tags found'})")
            )
            return result

        result.tag = tag
        result.rendered_notes = self._notes_for(version)
        self._publish(result, tag, result.rendered_notes)
        return result

    def _notes_for(self, version: SemVer) -> str:
        path = self.repo.path / self.config.changelog.path
        if not path.is_file():
            return ""
        notes = extract_release_notes(path.read_text(encoding="utf-8"), version)
        return notes or ""

    def _publish(self, result: ReleaseResult, tag: str, notes: str) -> None:
        host = None
        try:
            if self.config.git.push:
                self._push(tag)
            if self.host_factory is None:
                raise PublishTransportError("No release host configured")
            artifacts = resolve_artifacts(self.config.artifacts, self.build_dir)
            host = self.host_factory()
            publisher = ArtifactPublisher(
                host,
                draft=self.config.github.draft,
                max_workers=self.config.github.max_workers,
            )
            body = _strip_heading(notes)
            result.publish = publisher.publish(tag, body, artifacts, name=tag)
        except PublishError as e:
            e.tag = e.tag or tag
            result._fail(e)
            return
        except GitError as e:
            error = PublishTransportError(f"Pushing the release failed: {e}", tag=tag)
            error.__cause__ = e
            result._fail(error)
            return
        except Exception as e:
            log.exception("publish_unexpected_error", tag=tag)
            error = PublishTransportError(f"Publishing failed: {e}", tag=tag)
            error.__cause__ = e
            result._fail(error)
            return
        finally:
            if host is not None and hasattr(host, "close"):
                host.close()

        log.info("release_published", tag=tag, uploaded=len(result.publish.uploaded))
        result._enter(ReleaseState.DONE)

    def _push(self, tag: str) -> None:
        remote = self.config.git.remote
        if self.repo.remote_url(remote) is None:
            log.warning("push_skipped", remote=remote, reason="remote not configured")
            return
        refs = [f"refs/tags/{tag}"]
        branch = self.repo.current_branch()
        if branch is not None:
            refs.insert(0, f"HEAD:refs/heads/{branch}")
        self.repo.push(remote, refs)


def _strip_heading(notes: str) -> str:
    """Drop the ``## [version]`` heading, the hosted release has its own title."""
    lines = notes.strip().splitlines()
    if lines and lines[0].startswith("## "):
        lines = lines[1:]
    return "\n".join(lines).strip() + "\n" if lines else ""
