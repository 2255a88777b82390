"""Tests for conventional commit classification."""

from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from release_cut.config.models import CommitsConfig
from release_cut.core.commits import (
    ChangeRecord,
    ChangeType,
    classify_commit,
    filter_skip_release_commits,
    parse_commits,
)
from release_cut.vcs.git import Commit


class TestClassifyCommit:
    """Tests for classify_commit()."""

    def test_simple_feat(self):
        """Parse a simple feat commit."""
        record = classify_commit("feat: add new feature")

        assert record.type is ChangeType.FEAT
        assert record.scope is None
        assert record.summary == "add new feature"
        assert not record.breaking

    def test_with_scope(self):
        """Parse commit with scope."""
        record = classify_commit("fix(api): handle null response")

        assert record.type is ChangeType.FIX
        assert record.scope == "api"
        assert record.summary == "handle null response"

    def test_type_is_case_insensitive(self):
        """Upper-case types are normalized."""
        record = classify_commit("PERF: faster startup")

        assert record.type is ChangeType.PERF

    def test_breaking_with_exclamation(self):
        """Breaking change with ! indicator."""
        record = classify_commit("feat!: redesign API")

        assert record.breaking
        assert record.type is ChangeType.FEAT
        assert record.breaking_note == "redesign API"

    def test_breaking_with_scope_and_exclamation(self):
        """Breaking change with scope and ! indicator."""
        record = classify_commit("feat(core)!: change config format")

        assert record.breaking
        assert record.scope == "core"

    def test_breaking_footer(self):
        """BREAKING CHANGE footer marks the commit as breaking."""
        record = classify_commit("feat: new feature\n\nBREAKING CHANGE: old API removed")

        assert record.breaking
        assert record.breaking_note == "old API removed"

    def test_breaking_footer_with_hyphen(self):
        """BREAKING-CHANGE is accepted too."""
        record = classify_commit("fix: tweak\n\nBREAKING-CHANGE: config keys renamed")

        assert record.breaking

    def test_breaking_footer_spanning_lines(self):
        """A multi-line breaking note is joined until the next blank line."""
        message = (
            "refactor: split\n\n"
            "BREAKING CHANGE: the settings file\nmoved to a new place\n\n"
            "Refs: #12"
        )
        record = classify_commit(message)

        assert record.breaking_note == "the settings file moved to a new place"

    def test_breaking_marker_in_text_is_not_a_footer(self):
        """The footer token only counts at the start of a line."""
        record = classify_commit("docs: explain the BREAKING CHANGE: policy")

        assert not record.breaking

    def test_breaking_sets_flag_regardless_of_type(self):
        """Hidden types can still be breaking."""
        record = classify_commit("chore!: drop Node 16")

        assert record.type is ChangeType.CHORE
        assert record.breaking

    def test_non_conventional(self):
        """Non-conventional commits classify as other."""
        record = classify_commit("Updated the readme file")

        assert record.type is ChangeType.OTHER
        assert record.summary == "Updated the readme file"
        assert not record.breaking

    def test_unknown_type(self):
        """Unknown types classify as other."""
        record = classify_commit("build(deps): bump serde")

        assert record.type is ChangeType.OTHER
        assert not record.breaking

    def test_unknown_type_with_exclamation_is_breaking(self):
        """The ! marker counts even on unknown types."""
        record = classify_commit("build!: require Rust 1.80")

        assert record.type is ChangeType.OTHER
        assert record.breaking

    def test_other_type_name_is_not_a_type(self):
        """'other: ...' is not a conventional type."""
        record = classify_commit("other: something")

        assert record.type is ChangeType.OTHER
        assert record.summary == "other: something"

    def test_missing_space_after_colon(self):
        """A header without a space after the colon is malformed."""
        record = classify_commit("feat:no space")

        assert record.type is ChangeType.OTHER

    def test_empty_message(self):
        """Empty messages never raise."""
        record = classify_commit("")

        assert record.type is ChangeType.OTHER
        assert not record.breaking

    def test_non_string_message(self):
        """Garbage input never raises."""
        record = classify_commit(None)  # type: ignore[arg-type]

        assert record.type is ChangeType.OTHER
        assert not record.breaking

    def test_invalid_breaking_pattern_is_recovered(self):
        """A broken footer regex does not stop classification."""
        record = classify_commit("fix: x\n\nBREAKING CHANGE: y", breaking_pattern="(")

        assert record.type is ChangeType.FIX
        assert not record.breaking

    def test_sha_is_kept(self):
        """The commit hash is carried on the record."""
        record = classify_commit("fix: x", sha="0123456789abcdef")

        assert record.sha == "0123456789abcdef"
        assert record.short_sha == "0123456"

    def test_record_is_immutable(self):
        """Records are frozen."""
        record = classify_commit("fix: x")

        with pytest.raises(dataclasses.FrozenInstanceError):
            record.summary = "y"  # type: ignore[misc]


class TestParseCommits:
    """Tests for parse_commits()."""

    def test_parse_multiple_commits(self, sample_commits: list[Commit]):
        """Parse multiple commits, keeping order."""
        records = parse_commits(sample_commits, CommitsConfig())

        assert len(records) == len(sample_commits)
        assert all(isinstance(r, ChangeRecord) for r in records)
        assert [r.sha for r in records] == [c.sha for c in sample_commits]

    def test_custom_breaking_pattern(self):
        """A custom breaking footer pattern is used."""
        commits = [Commit("a", "fix: x\n\nBC: removed y", "T", "t@t.com", datetime.now())]
        records = parse_commits(commits, CommitsConfig(breaking_pattern=r"^BC:"))

        assert records[0].breaking
        assert records[0].breaking_note == "removed y"


class TestFilterSkipReleaseCommits:
    """Tests for filter_skip_release_commits()."""

    def test_filter_with_skip_release_marker(self):
        """Commits with [skip release] are filtered out."""
        commits = [
            Commit("a", "feat: add feature", "T", "t@t.com", datetime.now()),
            Commit("b", "fix: bug fix [skip release]", "T", "t@t.com", datetime.now()),
            Commit("c", "docs: update readme", "T", "t@t.com", datetime.now()),
        ]
        filtered = filter_skip_release_commits(commits, ["[skip release]"])

        assert [c.sha for c in filtered] == ["a", "c"]

    def test_filter_case_insensitive(self):
        """Skip markers are matched case-insensitively."""
        commits = [
            Commit("a", "feat: add feature [SKIP RELEASE]", "T", "t@t.com", datetime.now()),
            Commit("b", "fix: bug fix [Skip Release]", "T", "t@t.com", datetime.now()),
            Commit("c", "docs: update readme", "T", "t@t.com", datetime.now()),
        ]
        filtered = filter_skip_release_commits(commits, ["[skip release]"])

        assert [c.sha for c in filtered] == ["c"]

    def test_filter_marker_in_body(self):
        """Skip markers in commit body are also detected."""
        commits = [
            Commit(
                "a", "feat: add feature\n\nDetails [no release]", "T", "t@t.com", datetime.now()
            ),
            Commit("b", "fix: bug fix", "T", "t@t.com", datetime.now()),
        ]
        filtered = filter_skip_release_commits(commits, CommitsConfig().skip_release_patterns)

        assert [c.sha for c in filtered] == ["b"]

    def test_filter_empty_patterns_returns_all(self):
        """Empty patterns list returns all commits."""
        commits = [Commit("a", "feat: x [skip release]", "T", "t@t.com", datetime.now())]

        assert filter_skip_release_commits(commits, []) == commits
