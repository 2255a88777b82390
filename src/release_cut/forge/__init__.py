"""Release host clients."""

from __future__ import annotations

from release_cut.forge.github import GitHubClient, resolve_token

__all__ = ["GitHubClient", "resolve_token"]
