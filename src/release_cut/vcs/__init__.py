"""Version control backends."""

from __future__ import annotations

from release_cut.vcs.git import Commit, GitRepository, parse_github_remote

__all__ = ["Commit", "GitRepository", "parse_github_remote"]
