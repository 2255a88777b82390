"""Configuration management for release-cut."""

from __future__ import annotations

from release_cut.config.loader import load_config
from release_cut.config.models import (
    ArtifactConfig,
    ChangelogConfig,
    CommitsConfig,
    GitConfig,
    GitHubConfig,
    HooksConfig,
    ManifestEntry,
    ReleaseCutConfig,
    SectionConfig,
    VersionConfig,
)

__all__ = [
    "ArtifactConfig",
    "ChangelogConfig",
    "CommitsConfig",
    "GitConfig",
    "GitHubConfig",
    "HooksConfig",
    "ManifestEntry",
    "ReleaseCutConfig",
    "SectionConfig",
    "VersionConfig",
    "load_config",
]
