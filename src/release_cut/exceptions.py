"""Exception hierarchy for release-cut.

Every error raised by release-cut derives from :class:`ReleaseCutError`.
Errors that can only happen after the release tag exists derive from
:class:`PublishError`, so callers can tell a clean failure (nothing changed)
from a partial one (version bumped, publishing incomplete).
"""

from __future__ import annotations


class ReleaseCutError(Exception):
    """Base exception for all release-cut errors."""

    stage: str | None = None

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


# Configuration


class ConfigError(ReleaseCutError):
    """Configuration could not be loaded."""


class ConfigNotFoundError(ConfigError):
    """A configuration file that was asked for does not exist."""


class ConfigValidationError(ConfigError):
    """Configuration values failed validation."""


# Commits


class CommitParseError(ReleaseCutError):
    """A commit message is not a conventional commit.

    Raised inside the classifier only; it is always recovered there and the
    commit is classified as ``other``.
    """

    stage = "classifying"

    def __init__(self, message: str, *, breaking: bool = False) -> None:
        super().__init__(message)
        self.breaking = breaking


# Git


class GitError(ReleaseCutError):
    """A git command failed."""

    def __init__(
        self, message: str, *, stderr: str | None = None, stage: str | None = None
    ) -> None:
        super().__init__(message, stage=stage)
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}\n{self.stderr.strip()}"
        return self.message


class TagExistsError(GitError):
    """The release tag already exists, the version was released before."""

    stage = "writing"


# Writing


class ManifestWriteError(ReleaseCutError):
    """Updating a manifest, the changelog, the release commit or tag failed.

    All local changes are rolled back before this error reaches the caller.
    """

    stage = "writing"


# Publishing


class PublishError(ReleaseCutError):
    """Publishing failed after the release commit and tag were created."""

    stage = "publishing"

    def __init__(self, message: str, *, tag: str | None = None) -> None:
        super().__init__(message)
        self.tag = tag

    def __str__(self) -> str:
        if self.tag:
            return (
                f"{self.message} (version was bumped and tagged {self.tag}, "
                "but publishing is incomplete; run 'release-cut resume' to retry)"
            )
        return self.message


class ArtifactMissingError(PublishError):
    """A required artifact glob matched no files in the build directory."""


class PublishTransportError(PublishError):
    """The release host rejected a request or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        tag: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, tag=tag)
        self.status_code = status_code
