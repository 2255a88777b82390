"""Pydantic models for release-cut configuration.

All models have defaults, so an empty configuration describes the common
case: a ``main`` branch, ``v``-prefixed tags, a ``CHANGELOG.md`` at the
repository root and releases published to GitHub.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from release_cut.core.commits import ChangeType
from release_cut.core.version import SemVer

DEFAULT_BREAKING_PATTERN = r"^BREAKING[ -]CHANGE:"
DEFAULT_SKIP_RELEASE_PATTERNS = ["[skip release]", "[release skip]", "[no release]"]


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class SectionConfig(_Model):
    """One changelog section: which commit type goes under which heading."""

    type: ChangeType
    section: str
    hidden: bool = False

    @field_validator("type")
    @classmethod
    def _reject_other(cls, value: ChangeType) -> ChangeType:
        if value is ChangeType.OTHER:
            raise ValueError("'other' commits are never rendered and cannot have a section")
        return value


DEFAULT_SECTIONS = [
    SectionConfig(type=ChangeType.FEAT, section="Features"),
    SectionConfig(type=ChangeType.FIX, section="Bug Fixes"),
    SectionConfig(type=ChangeType.PERF, section="Performance Improvements"),
    SectionConfig(type=ChangeType.DOCS, section="Documentation", hidden=True),
    SectionConfig(type=ChangeType.STYLE, section="Styles", hidden=True),
    SectionConfig(type=ChangeType.CHORE, section="Miscellaneous Chores", hidden=True),
    SectionConfig(type=ChangeType.REFACTOR, section="Code Refactoring", hidden=True),
    SectionConfig(type=ChangeType.TEST, section="Tests", hidden=True),
    SectionConfig(type=ChangeType.CI, section="Continuous Integration", hidden=True),
]


class CommitsConfig(_Model):
    """How commit messages are read."""

    breaking_pattern: str = DEFAULT_BREAKING_PATTERN
    skip_release_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SKIP_RELEASE_PATTERNS)
    )

    @field_validator("breaking_pattern")
    @classmethod
    def _valid_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid breaking_pattern regex: {e}") from e
        return value


class ChangelogConfig(_Model):
    """Release notes and CHANGELOG.md generation."""

    enabled: bool = True
    path: Path = Path("CHANGELOG.md")
    title: str = "# Changelog"
    sections: list[SectionConfig] = Field(default_factory=lambda: list(DEFAULT_SECTIONS))
    include_sha: bool = True

    @field_validator("sections")
    @classmethod
    def _unique_types(cls, value: list[SectionConfig]) -> list[SectionConfig]:
        seen: set[ChangeType] = set()
        for section in value:
            if section.type in seen:
                raise ValueError(f"commit type '{section.type}' has more than one section")
            seen.add(section.type)
        return value


class VersionConfig(_Model):
    """Version used for the very first release."""

    initial_version: str = "1.0.0"

    @field_validator("initial_version")
    @classmethod
    def _valid_semver(cls, value: str) -> str:
        SemVer.parse(value)
        return value


class ManifestEntry(_Model):
    """A file holding the version string that every release rewrites.

    ``field`` is a dotted key path into a JSON or TOML document
    (``version``, ``package.version``). For any other file, ``pattern`` is a
    regex matching the text right before the version.
    """

    path: Path
    field: str | None = None
    pattern: str | None = None

    @model_validator(mode="after")
    def _field_or_pattern(self) -> ManifestEntry:
        if (self.field is None) == (self.pattern is None):
            raise ValueError(f"manifest {self.path}: set exactly one of 'field' or 'pattern'")
        if self.field is not None and self.path.suffix not in (".json", ".toml"):
            raise ValueError(
                f"manifest {self.path}: 'field' needs a .json or .toml file, use 'pattern'"
            )
        return self


class ArtifactConfig(_Model):
    """Build outputs attached to the published release."""

    pattern: str
    target_name: str | None = None
    required: bool = True


class GitConfig(_Model):
    """Release commit, tag and push settings."""

    commit_message: str = "chore(release): {version} [skip ci]"
    tag_message: str = "Release {version}"
    extra_assets: list[Path] = Field(default_factory=list)
    push: bool = True
    remote: str = "origin"


class GitHubConfig(_Model):
    """Release host settings.

    ``owner`` and ``repo`` are read from the git remote URL when unset. The
    token is never stored in config files; it comes from ``GITHUB_TOKEN`` or
    ``GH_TOKEN`` unless passed explicitly.
    """

    owner: str | None = None
    repo: str | None = None
    api_url: str = "https://api.github.com"
    uploads_url: str = "https://uploads.github.com"
    token: str | None = Field(default=None, repr=False)
    draft: bool = False
    max_workers: int = Field(default=4, ge=1, le=32)
    timeout: float = 60.0


class HooksConfig(_Model):
    """Shell commands run around the version bump.

    Commands can use ``{version}``, ``{prev_version}`` and ``{bump_kind}``.
    """

    pre_bump: list[str] = Field(default_factory=list)
    post_bump: list[str] = Field(default_factory=list)


class ReleaseCutConfig(_Model):
    """Root configuration object."""

    branch: str = "main"
    tag_format: str = "v{version}"
    allow_dirty: bool = False
    build_dir: Path = Path("build")
    commits: CommitsConfig = Field(default_factory=CommitsConfig)
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    version: VersionConfig = Field(default_factory=VersionConfig)
    manifests: list[ManifestEntry] = Field(default_factory=list)
    artifacts: list[ArtifactConfig] = Field(default_factory=list)
    git: GitConfig = Field(default_factory=GitConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)

    @field_validator("tag_format")
    @classmethod
    def _has_version_placeholder(cls, value: str) -> str:
        if value.count("{version}") != 1:
            raise ValueError("tag_format must contain '{version}' exactly once")
        return value

    def tag_for(self, version: object) -> str:
        """Return the tag name for ``version``."""
        return self.tag_format.replace("{version}", str(version))
