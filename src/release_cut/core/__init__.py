"""Core business logic for release-cut.

This module contains the fundamental building blocks:
- Conventional commit classification
- Semantic version resolution
- Release notes and changelog generation

Writing, publishing and orchestration live in their own modules
(:mod:`release_cut.core.writer`, :mod:`release_cut.core.publisher`,
:mod:`release_cut.core.orchestrator`).
"""

from __future__ import annotations

from release_cut.core.changelog import (
    ReleaseNotes,
    build_release_notes,
    extract_release_notes,
    prepend_changelog,
    render_release_notes,
)
from release_cut.core.commits import (
    ChangeRecord,
    ChangeType,
    classify_commit,
    filter_skip_release_commits,
    parse_commits,
)
from release_cut.core.version import (
    BumpKind,
    SemVer,
    VersionDecision,
    calculate_bump,
    resolve_version,
)

__all__ = [
    # Version
    "BumpKind",
    # Commits
    "ChangeRecord",
    "ChangeType",
    # Changelog
    "ReleaseNotes",
    "SemVer",
    "VersionDecision",
    "build_release_notes",
    "calculate_bump",
    "classify_commit",
    "extract_release_notes",
    "filter_skip_release_commits",
    "parse_commits",
    "prepend_changelog",
    "render_release_notes",
    "resolve_version",
]
