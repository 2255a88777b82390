"""Semantic versions and next-version resolution.

The next version is decided by folding every change since the last release
into a single bump, the most severe one wins::

    breaking > feat > fix, perf > everything else

Before 1.0.0 the public API is not considered stable, so a breaking change
only bumps the minor component (``0.3.2`` -> ``0.4.0``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from release_cut.core.commits import ChangeType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from release_cut.core.commits import ChangeRecord

SEMVER_PATTERN = r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
_SEMVER_RE = re.compile(rf"^{SEMVER_PATTERN}$")


class BumpKind(str, Enum):
    """Version bump kinds, comparable by severity."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __str__(self) -> str:
        return self.value


_SEVERITY = {BumpKind.NONE: 0, BumpKind.PATCH: 1, BumpKind.MINOR: 2, BumpKind.MAJOR: 3}


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    """A ``major.minor.patch`` version."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> SemVer:
        """Parse ``1.2.3`` (a leading ``v`` is accepted).

        Raises:
            ValueError: If ``text`` is not a plain semantic version
        """
        candidate = text.strip()
        if candidate[:1] in ("v", "V"):
            candidate = candidate[1:]
        match = _SEMVER_RE.match(candidate)
        if match is None:
            raise ValueError(f"Invalid semantic version: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    @classmethod
    def from_tag(cls, tag: str, tag_format: str = "v{version}") -> SemVer | None:
        """Extract the version from a tag name built with ``tag_format``.

        Returns None for tags that do not follow the format.
        """
        prefix, _, suffix = tag_format.partition("{version}")
        pattern = rf"^{re.escape(prefix)}{SEMVER_PATTERN}{re.escape(suffix)}$"
        match = re.match(pattern, tag)
        if match is None:
            return None
        return cls(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    def bump(self, kind: BumpKind) -> SemVer:
        if kind is BumpKind.MAJOR:
            return SemVer(self.major + 1, 0, 0)
        if kind is BumpKind.MINOR:
            return SemVer(self.major, self.minor + 1, 0)
        if kind is BumpKind.PATCH:
            return SemVer(self.major, self.minor, self.patch + 1)
        return self

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


ZERO = SemVer(0, 0, 0)


@dataclass(frozen=True, slots=True)
class VersionDecision:
    """Outcome of version resolution.

    ``next`` is strictly greater than ``previous`` unless ``bump_kind`` is
    ``none``, in which case both are equal and nothing is released.
    """

    previous: SemVer
    next: SemVer
    bump_kind: BumpKind

    @property
    def is_release(self) -> bool:
        return self.bump_kind is not BumpKind.NONE

    @property
    def is_first_release(self) -> bool:
        return self.previous == ZERO and self.is_release


def bump_for_record(record: ChangeRecord) -> BumpKind:
    """Return the bump a single change asks for, ignoring the 0.x rule."""
    if record.breaking:
        return BumpKind.MAJOR
    if record.type is ChangeType.FEAT:
        return BumpKind.MINOR
    if record.type in (ChangeType.FIX, ChangeType.PERF):
        return BumpKind.PATCH
    return BumpKind.NONE


def calculate_bump(records: Iterable[ChangeRecord]) -> BumpKind:
    """Return the most severe bump across ``records``."""
    bump = BumpKind.NONE
    for record in records:
        candidate = bump_for_record(record)
        if candidate.severity > bump.severity:
            bump = candidate
            if bump is BumpKind.MAJOR:
                break
    return bump


def resolve_version(
    records: Iterable[ChangeRecord],
    previous: SemVer | None,
    *,
    initial_version: SemVer | None = None,
) -> VersionDecision:
    """Decide the next version from the changes since ``previous``.

    Args:
        records: Changes since the previous release
        previous: Last released version, None when nothing was ever tagged
        initial_version: Version used for the first release instead of
            bumping ``0.0.0``

    Returns:
        The decision; ``bump_kind`` is ``none`` when no change qualifies
    """
    base = previous if previous is not None else ZERO
    bump = calculate_bump(records)

    if bump is BumpKind.NONE:
        return VersionDecision(previous=base, next=base, bump_kind=BumpKind.NONE)

    # 0.x: breaking changes are minor bumps
    if bump is BumpKind.MAJOR and base.major == 0:
        bump = BumpKind.MINOR

    if previous is None and initial_version is not None and initial_version > ZERO:
        return VersionDecision(previous=ZERO, next=initial_version, bump_kind=bump)

    return VersionDecision(previous=base, next=base.bump(bump), bump_kind=bump)
