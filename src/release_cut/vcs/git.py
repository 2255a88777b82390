"""Git operations via the ``git`` command line.

:class:`GitRepository` is a thin synchronous wrapper around ``git``
subprocess calls. Every failed command raises :class:`GitError` carrying
git's stderr.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from release_cut.core.version import SemVer
from release_cut.exceptions import GitError
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

log = get_logger(__name__)

# Field and record separators for `git log` output parsing.
_FS = "\x1f"
_RS = "\x1e"
_LOG_FORMAT = f"%H{_FS}%an{_FS}%ae{_FS}%aI{_FS}%B{_RS}"

_GITHUB_REMOTE = re.compile(
    r"^(?:https?://(?:[^@/]+@)?[^/]+/|git@[^:]+:|ssh://git@[^/]+/)"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
)


@dataclass(frozen=True, slots=True)
class Commit:
    """A commit as read from ``git log``."""

    sha: str
    message: str
    author_name: str
    author_email: str
    date: datetime

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


def parse_github_remote(url: str) -> tuple[str, str] | None:
    """Return ``(owner, repo)`` from a GitHub remote URL, or None."""
    match = _GITHUB_REMOTE.match(url.strip())
    if match is None:
        return None
    return match.group("owner"), match.group("repo")


class GitRepository:
    """A git working tree.

    Args:
        path: Any directory inside the working tree

    Raises:
        GitError: If ``path`` is not inside a git repository
    """

    def __init__(self, path: Path) -> None:
        self._cwd = Path(path)
        root = self._run("rev-parse", "--show-toplevel").strip()
        self.path = Path(root)

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    def _run(self, *args: str, check: bool = True) -> str:
        cmd = ["git", *args]
        log.debug("git", args=list(args))
        try:
            result = subprocess.run(
                cmd,
                cwd=getattr(self, "path", self._cwd),
                capture_output=True,
                text=True,
                check=check,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found on PATH") from e
        except subprocess.CalledProcessError as e:
            message = f"git {args[0]} failed with exit code {e.returncode}"
            raise GitError(message, stderr=e.stderr) from e
        return result.stdout

    def _ok(self, *args: str) -> bool:
        try:
            self._run(*args)
        except GitError:
            return False
        return True

    # Inspection

    def is_dirty(self) -> bool:
        """Return True if the working tree has uncommitted changes."""
        return bool(self._run("status", "--porcelain").strip())

    def current_branch(self) -> str | None:
        """Return the checked-out branch name, None on a detached HEAD."""
        try:
            name = self._run("symbolic-ref", "--quiet", "--short", "HEAD").strip()
        except GitError:
            return None
        return name or None

    def head_sha(self) -> str:
        return self._run("rev-parse", "HEAD").strip()

    def has_commits(self) -> bool:
        return self._ok("rev-parse", "--verify", "--quiet", "HEAD")

    def remote_url(self, remote: str = "origin") -> str | None:
        try:
            url = self._run("remote", "get-url", remote).strip()
        except GitError:
            return None
        return url or None

    # Tags

    def list_tags(self, pattern: str = "*", *, merged: bool = True) -> list[str]:
        """Return tags matching the glob ``pattern``.

        Args:
            pattern: Glob passed to ``git tag --list``
            merged: Only tags reachable from HEAD
        """
        args = ["tag", "--list", pattern]
        if merged and self.has_commits():
            args[1:1] = ["--merged", "HEAD"]
        return [line.strip() for line in self._run(*args).splitlines() if line.strip()]

    def get_latest_tag(self, tag_format: str = "v{version}") -> str | None:
        """Return the highest-versioned tag reachable from HEAD.

        Only tags produced by ``tag_format`` count; others are ignored.
        """
        glob = tag_format.replace("{version}", "*")
        best: tuple[SemVer, str] | None = None
        for tag in self.list_tags(glob):
            version = SemVer.from_tag(tag, tag_format)
            if version is None:
                continue
            if best is None or version > best[0]:
                best = (version, tag)
        return best[1] if best else None

    def tag_exists(self, tag: str) -> bool:
        return self._ok("rev-parse", "--verify", "--quiet", f"refs/tags/{tag}")

    def create_tag(self, tag: str, message: str, ref: str = "HEAD") -> None:
        """Create an annotated tag.

        Raises:
            GitError: If the tag exists or git fails
        """
        self._run("tag", "--annotate", tag, "--message", message, ref)
        log.info("tag_created", tag=tag)

    def delete_tag(self, tag: str) -> None:
        self._run("tag", "--delete", tag)
        log.info("tag_deleted", tag=tag)

    # History

    def get_commits_since_tag(self, tag: str | None) -> list[Commit]:
        """Return commits after ``tag`` up to HEAD, newest first.

        With ``tag=None`` the whole history of HEAD is returned.
        """
        if not self.has_commits():
            return []
        revision = f"{tag}..HEAD" if tag else "HEAD"
        output = self._run("log", f"--format={_LOG_FORMAT}", revision)
        return _parse_log(output)

    # Writing

    def add(self, paths: Sequence[Path | str]) -> None:
        if paths:
            self._run("add", "--", *(str(p) for p in paths))

    def commit(self, message: str) -> str:
        """Commit the staged changes and return the new HEAD sha."""
        self._run("commit", "--message", message)
        sha = self.head_sha()
        log.info("commit_created", sha=sha, message=message.split("\n", 1)[0])
        return sha

    def reset(self, ref: str) -> None:
        """Move HEAD to ``ref``, keeping the working tree (mixed reset)."""
        self._run("reset", "--mixed", "--quiet", ref)
        log.info("head_reset", ref=ref)

    def push(self, remote: str, refs: Sequence[str]) -> None:
        """Push ``refs`` (branches or ``refs/tags/...``) to ``remote``."""
        self._run("push", "--atomic", remote, *refs)
        log.info("pushed", remote=remote, refs=list(refs))

    def remote_tag_exists(self, remote: str, tag: str) -> bool:
        output = self._run("ls-remote", "--tags", remote, f"refs/tags/{tag}")
        return bool(output.strip())


def _parse_log(output: str) -> list[Commit]:
    commits = []
    for record in output.split(_RS):
        record = record.strip("\n")
        if not record:
            continue
        sha, name, email, date, message = record.split(_FS, 4)
        commits.append(
            Commit(
                sha=sha.strip(),
                message=message.strip(),
                author_name=name,
                author_email=email,
                date=datetime.fromisoformat(date),
            )
        )
    return commits
