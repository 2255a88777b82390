"""Conventional commit classification.

Turns raw commit messages into :class:`ChangeRecord` objects following the
Conventional Commits header format::

    <type>[(scope)][!]: <summary>

    [body]

    [BREAKING CHANGE: <note>]

Classification never fails: anything that does not match is recorded as an
``other`` change so a single odd commit cannot stop a release.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from release_cut.exceptions import CommitParseError
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from release_cut.config.models import CommitsConfig
    from release_cut.vcs.git import Commit

log = get_logger(__name__)

DEFAULT_BREAKING_PATTERN = r"^BREAKING[ -]CHANGE:"

# type, optional (scope), optional !, colon, summary
CONVENTIONAL_HEADER = re.compile(
    r"^(?P<type>[A-Za-z]+)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<breaking>!)?"
    r":[ \t]+(?P<summary>\S.*?)\s*$"
)


class ChangeType(str, Enum):
    """Kinds of change a commit can describe."""

    FEAT = "feat"
    FIX = "fix"
    PERF = "perf"
    DOCS = "docs"
    STYLE = "style"
    CHORE = "chore"
    REFACTOR = "refactor"
    TEST = "test"
    CI = "ci"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """A classified commit.

    Attributes:
        type: Change type, ``other`` for anything unrecognized
        scope: Scope from the header, if any
        summary: Header text after the colon (whole first line for ``other``)
        breaking: Whether the commit declares a breaking change
        breaking_note: Text of the ``BREAKING CHANGE:`` footer, or the
            summary when the ``!`` marker was used
        sha: Hash of the source commit, when known
    """

    type: ChangeType
    summary: str
    scope: str | None = None
    breaking: bool = False
    breaking_note: str | None = None
    sha: str | None = None

    @property
    def short_sha(self) -> str | None:
        return self.sha[:7] if self.sha else None


def _parse_header(header: str) -> tuple[ChangeType, str | None, bool, str]:
    match = CONVENTIONAL_HEADER.match(header)
    if match is None:
        raise CommitParseError(f"not a conventional commit header: {header!r}")

    bang = match.group("breaking") is not None
    raw_type = match.group("type").lower()
    try:
        change_type = ChangeType(raw_type)
    except ValueError:
        change_type = ChangeType.OTHER
    if change_type is ChangeType.OTHER:
        raise CommitParseError(f"unknown commit type: {raw_type!r}", breaking=bang)

    scope = match.group("scope")
    if scope is not None:
        scope = scope.strip() or None
    return change_type, scope, bang, match.group("summary")


def _find_breaking_note(body: str, breaking_pattern: str) -> str | None:
    """Return the footer text following the breaking marker, or None."""
    pattern = re.compile(breaking_pattern, re.MULTILINE)
    match = pattern.search(body)
    if match is None:
        return None
    # The note runs until the next blank line.
    rest = body[match.end() :]
    note_lines: list[str] = []
    for line in rest.splitlines():
        if not line.strip() and note_lines:
            break
        if line.strip():
            note_lines.append(line.strip())
    return " ".join(note_lines) or None


def classify_commit(
    message: str,
    breaking_pattern: str = DEFAULT_BREAKING_PATTERN,
    *,
    sha: str | None = None,
) -> ChangeRecord:
    """Classify one commit message.

    Args:
        message: Full commit message (header, body and footers)
        breaking_pattern: Regex matching a breaking-change footer line
        sha: Hash of the commit, kept on the record for the changelog

    Returns:
        The classified change. Malformed input yields an ``other`` record
        that is not breaking, unless it carries a breaking marker.
    """
    if not isinstance(message, str) or not message.strip():
        return ChangeRecord(type=ChangeType.OTHER, summary="", sha=sha)

    header, _, body = message.strip().partition("\n")
    header = header.strip()
    try:
        footer_note = _find_breaking_note(body, breaking_pattern)
    except re.error:
        log.warning("invalid_breaking_pattern", pattern=breaking_pattern)
        footer_note = None

    try:
        change_type, scope, bang, summary = _parse_header(header)
    except CommitParseError as e:
        log.debug("commit_not_conventional", sha=sha, reason=str(e))
        breaking = footer_note is not None or e.breaking
        return ChangeRecord(
            type=ChangeType.OTHER,
            summary=header,
            breaking=breaking,
            breaking_note=footer_note or (header if breaking else None),
            sha=sha,
        )

    breaking = bang or footer_note is not None
    note = footer_note or (summary if breaking else None)
    return ChangeRecord(
        type=change_type,
        scope=scope,
        summary=summary,
        breaking=breaking,
        breaking_note=note,
        sha=sha,
    )


def parse_commits(commits: Iterable[Commit], config: CommitsConfig) -> list[ChangeRecord]:
    """Classify a list of commits, keeping their order."""
    return [
        classify_commit(commit.message, config.breaking_pattern, sha=commit.sha)
        for commit in commits
    ]


def filter_skip_release_commits(commits: list[Commit], patterns: list[str]) -> list[Commit]:
    """Drop commits whose message contains one of the skip markers.

    Markers are plain substrings matched case-insensitively anywhere in the
    message, so ``[skip release]`` in the body works as well as in the header.

    Args:
        commits: Commits to filter
        patterns: Skip markers such as ``[skip release]``

    Returns:
        The commits without any marker, in their original order
    """
    if not patterns:
        return list(commits)

    lowered = [p.lower() for p in patterns]
    kept = []
    for commit in commits:
        message = commit.message.lower()
        if any(p in message for p in lowered):
            log.debug("commit_skipped", sha=commit.sha)
            continue
        kept.append(commit)
    return kept

