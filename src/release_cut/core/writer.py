"""Release state writing: manifests, changelog, release commit and tag.

Writing is all-or-nothing. Every file the release touches is snapshotted
first; if a manifest update, hook, commit or tag fails, the snapshots are
restored, a release commit is undone and a half-created tag is removed
before :class:`ManifestWriteError` is raised.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from release_cut.core.changelog import prepend_changelog
from release_cut.exceptions import GitError, ManifestWriteError, ReleaseCutError, TagExistsError
from release_cut.logging import get_logger
from release_cut.project.manifest import read_manifest_version, write_manifest_version

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from release_cut.config.models import ReleaseCutConfig
    from release_cut.core.version import VersionDecision
    from release_cut.vcs.git import GitRepository

log = get_logger(__name__)


@dataclass(slots=True)
class WriteResult:
    """What the writer changed."""

    tag: str
    commit_sha: str
    files: list[Path] = field(default_factory=list)


class _Snapshot:
    """Original bytes of a set of files; None marks a file that did not exist."""

    def __init__(self, paths: list[Path]) -> None:
        self._contents: dict[Path, bytes | None] = {}
        for path in paths:
            if path not in self._contents:
                self._contents[path] = path.read_bytes() if path.is_file() else None

    def restore(self) -> None:
        for path, content in self._contents.items():
            try:
                if content is None:
                    path.unlink(missing_ok=True)
                else:
                    path.write_bytes(content)
            except OSError as e:
                log.error("rollback_failed", path=str(path), error=str(e))


def run_hooks(commands: list[str], cwd: Path, variables: dict[str, str], phase: str) -> None:
    """Run shell hook commands with ``{name}`` substitution.

    Only the given variable names are replaced; any other braces, such as
    an ``awk`` program or a shell ``${VAR}``, reach the shell unchanged.

    Raises:
        ManifestWriteError: If a command exits non-zero
    """
    for command in commands:
        expanded = command
        for name, value in variables.items():
            expanded = expanded.replace("{" + name + "}", value)
        log.info("hook_run", phase=phase, command=expanded)
        try:
            subprocess.run(
                expanded,
                shell=True,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise ManifestWriteError(
                f"{phase} hook failed with exit code {e.returncode}: {expanded}\n{e.stderr.strip()}"
            ) from e


class ReleaseWriter:
    """Writes a resolved version into the repository and tags it."""

    def __init__(self, repo: GitRepository, config: ReleaseCutConfig) -> None:
        self.repo = repo
        self.config = config

    def _remote_has_tag(self, tag: str) -> bool:
        """Check the push remote too, a CI checkout may not have fetched its tags."""
        remote = self.config.git.remote
        if not self.config.git.push or self.repo.remote_url(remote) is None:
            return False
        return self.repo.remote_tag_exists(remote, tag)

    def _tracked_files(self) -> list[Path]:
        root = self.repo.path
        files = [root / entry.path for entry in self.config.manifests]
        if self.config.changelog.enabled:
            files.append(root / self.config.changelog.path)
        files.extend(root / asset for asset in self.config.git.extra_assets)
        return files

    def write(self, decision: VersionDecision, notes: str) -> WriteResult:
        """Update manifests and changelog, commit and tag.

        Args:
            decision: Resolved version, must be a release
            notes: Rendered release notes for the changelog

        Returns:
            The created tag and commit

        Raises:
            TagExistsError: If the tag for the new version already exists
                locally or on the push remote; nothing is changed
            ManifestWriteError: If anything fails; all changes are undone
        """
        version = str(decision.next)
        tag = self.config.tag_for(version)

        if self.repo.tag_exists(tag):
            raise TagExistsError(f"Tag {tag} already exists; version {version} was released before")
        if self._remote_has_tag(tag):
            raise TagExistsError(
                f"Tag {tag} already exists on {self.config.git.remote}; "
                f"version {version} was released before (fetch tags and retry)"
            )

        # Fail on unreadable manifests before anything is touched.
        for entry in self.config.manifests:
            current = read_manifest_version(entry, self.repo.path)
            log.debug("manifest_version", path=str(entry.path), version=current)

        files = self._tracked_files()
        snapshot = _Snapshot(files)
        head_before = self.repo.head_sha()
        committed = False
        tagged = False

        try:
            variables = {
                "version": version,
                "prev_version": str(decision.previous),
                "bump_kind": str(decision.bump_kind),
            }
            run_hooks(self.config.hooks.pre_bump, self.repo.path, variables, "pre-bump")

            for entry in self.config.manifests:
                write_manifest_version(entry, self.repo.path, version)

            if self.config.changelog.enabled:
                prepend_changelog(
                    self.repo.path / self.config.changelog.path,
                    notes,
                    self.config.changelog.title,
                )

            run_hooks(self.config.hooks.post_bump, self.repo.path, variables, "post-bump")

            staged = [path for path in files if path.exists()]
            self.repo.add(staged)
            sha = self.repo.commit(self.config.git.commit_message.format(version=version))
            committed = True

            self.repo.create_tag(tag, self.config.git.tag_message.format(version=version))
            tagged = True
        except ReleaseCutError as e:
            self._rollback(snapshot, head_before, tag, committed=committed, tagged=tagged)
            if isinstance(e, ManifestWriteError):
                raise
            raise ManifestWriteError(f"Release commit or tag failed: {e}") from e
        except Exception as e:
            self._rollback(snapshot, head_before, tag, committed=committed, tagged=tagged)
            raise ManifestWriteError(f"Release files could not be written: {e}") from e

        log.info("release_written", tag=tag, sha=sha, files=len(staged))
        return WriteResult(tag=tag, commit_sha=sha, files=staged)

    def _rollback(
        self,
        snapshot: _Snapshot,
        head_before: str,
        tag: str,
        *,
        committed: bool,
        tagged: bool,
    ) -> None:
        log.warning("release_rollback", tag=tag, committed=committed)
        if tagged:
            self._best_effort(self.repo.delete_tag, tag)
        if committed:
            self._best_effort(self.repo.reset, head_before)
        else:
            # unstage anything added before the commit failed
            self._best_effort(self.repo.reset, "HEAD")
        snapshot.restore()

    @staticmethod
    def _best_effort(operation: Callable[..., None], *args: str) -> None:
        try:
            operation(*args)
        except GitError as e:
            log.error("rollback_step_failed", step=operation.__name__, error=str(e))
