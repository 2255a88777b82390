"""Shared fixtures for release-cut tests."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from release_cut.vcs.git import Commit


def _git(path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def _make_commit(sha: str, message: str) -> Commit:
    return Commit(
        sha=sha,
        message=message,
        author_name="Test",
        author_email="test@test.com",
        date=datetime.now(),
    )


@pytest.fixture
def feat_commit() -> Commit:
    return _make_commit("feat1234567890", "feat: add user authentication")


@pytest.fixture
def fix_commit() -> Commit:
    return _make_commit("fix1234567890", "fix(core): resolve memory leak")


@pytest.fixture
def breaking_commit() -> Commit:
    return _make_commit(
        "break1234567890", "feat!: redesign API\n\nBREAKING CHANGE: v1 endpoints removed"
    )


@pytest.fixture
def sample_commits(
    feat_commit: Commit, fix_commit: Commit, breaking_commit: Commit
) -> list[Commit]:
    """Commits in git log order, newest first."""
    return [
        _make_commit("chore1234567890", "chore: update dependencies"),
        breaking_commit,
        _make_commit("docs1234567890", "docs: update README"),
        fix_commit,
        feat_commit,
        _make_commit("misc1234567890", "Merge branch 'feature/x'"),
    ]


@pytest.fixture
def git() -> Callable[..., str]:
    """Run a git command in a directory: ``git(path, "log", ...)``."""
    return _git


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Path:
    """A git repository on ``main`` with one initial commit."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "--initial-branch", "main")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "commit.gpgsign", "false")
    _git(repo, "config", "tag.gpgsign", "false")
    (repo / "README.md").write_text("# Test\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-m", "chore: initial commit")
    return repo


@pytest.fixture
def commit_file(git: Callable[..., str]) -> Callable[..., str]:
    """Create a commit touching one file; returns the new sha."""
    counter = {"n": 0}

    def _commit(repo: Path, message: str, filename: str | None = None) -> str:
        counter["n"] += 1
        target = repo / (filename or f"file{counter['n']}.txt")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f"change {counter['n']}\n")
        git(repo, "add", str(target.relative_to(repo)))
        git(repo, "commit", "-m", message)
        return git(repo, "rev-parse", "HEAD").strip()

    return _commit


@pytest.fixture
def tauri_project(temp_git_repo: Path, git: Callable[..., str]) -> Path:
    """A repository shaped like a Tauri app with JSON and TOML manifests."""
    repo = temp_git_repo
    (repo / "package.json").write_text(
        '{\n  "name": "app",\n  "version": "0.3.2",\n  "private": true\n}\n'
    )
    (repo / "src-tauri").mkdir()
    (repo / "src-tauri" / "Cargo.toml").write_text(
        '[package]\nname = "app"\n# keep in sync with package.json\nversion = "0.3.2"\n'
        'edition = "2021"\n\n[dependencies]\nserde = "1"\n'
    )
    (repo / "release-cut.toml").write_text(
        '[[manifests]]\npath = "package.json"\nfield = "version"\n\n'
        '[[manifests]]\npath = "src-tauri/Cargo.toml"\nfield = "package.version"\n\n'
        '[[artifacts]]\npattern = "**/*.dmg"\n\n'
        "[git]\npush = false\n"
    )
    git(repo, "add", ".")
    git(repo, "commit", "-m", "chore(release): 0.3.2 [skip ci]")
    git(repo, "tag", "-a", "v0.3.2", "-m", "Release 0.3.2")
    return repo


class FakeReleaseHost:
    """In-memory release host recording every call."""

    def __init__(self, *, fail_uploads: set[str] | None = None) -> None:
        self.releases: dict[str, dict[str, Any]] = {}
        self.assets: dict[int, list[dict[str, Any]]] = {}
        self.uploads: list[str] = []
        self.fail_uploads = fail_uploads or set()
        self.closed = False

    def get_release_by_tag(self, tag: str) -> dict[str, Any] | None:
        return self.releases.get(tag)

    def create_release(self, tag: str, **kwargs: Any) -> dict[str, Any]:
        release_id = len(self.releases) + 1
        release = {
            "id": release_id,
            "tag_name": tag,
            "html_url": f"https://github.com/o/r/releases/tag/{tag}",
            **kwargs,
        }
        self.releases[tag] = release
        self.assets[release_id] = []
        return release

    def list_release_assets(self, release_id: int) -> list[dict[str, Any]]:
        return list(self.assets.get(release_id, []))

    def upload_asset(self, release_id: int, path: Path, name: str) -> dict[str, Any]:
        from release_cut.exceptions import PublishTransportError

        if name in self.fail_uploads:
            raise PublishTransportError(f"upload of {name} failed", status_code=502)
        asset = {"name": name, "size": path.stat().st_size}
        self.assets[release_id].append(asset)
        self.uploads.append(name)
        return asset

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_host() -> FakeReleaseHost:
    return FakeReleaseHost()
