"""Artifact resolution and release publishing.

Build outputs are described by glob patterns relative to the build
directory. They are resolved when publishing, not when configuring, and a
required pattern that matches nothing aborts the publish.

Publishing is safe to repeat for the same tag: an existing release is
reused and assets already attached to it are not uploaded again.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from release_cut.exceptions import ArtifactMissingError, PublishError
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from release_cut.config.models import ArtifactConfig

log = get_logger(__name__)


class ReleaseHost(Protocol):
    """What the publisher needs from a release host client."""

    def get_release_by_tag(self, tag: str) -> dict[str, Any] | None: ...

    def create_release(
        self,
        tag: str,
        *,
        name: str | None = None,
        body: str = "",
        draft: bool = False,
        prerelease: bool = False,
    ) -> dict[str, Any]: ...

    def list_release_assets(self, release_id: int) -> list[dict[str, Any]]: ...

    def upload_asset(self, release_id: int, path: Path, name: str) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class ResolvedArtifact:
    """A file to upload and its remote name."""

    path: Path
    name: str


@dataclass(slots=True)
class PublishResult:
    release_url: str | None = None
    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def resolve_artifacts(
    artifacts: Sequence[ArtifactConfig], build_dir: Path
) -> list[ResolvedArtifact]:
    """Expand artifact globs against the build directory.

    Args:
        artifacts: Configured artifact patterns
        build_dir: Directory holding the finished build

    Returns:
        Files to upload, in configuration order

    Raises:
        ArtifactMissingError: If a required pattern matches no file, a
            ``target_name`` pattern matches more than one file, or two
            files would get the same remote name
    """
    resolved: list[ResolvedArtifact] = []
    names: dict[str, Path] = {}

    for artifact in artifacts:
        matches = sorted(p for p in build_dir.glob(artifact.pattern) if p.is_file())
        if not matches:
            if artifact.required:
                raise ArtifactMissingError(
                    f"No files match required artifact '{artifact.pattern}' in {build_dir}"
                )
            log.warning("artifact_not_found", pattern=artifact.pattern)
            continue

        if artifact.target_name and len(matches) > 1:
            raise ArtifactMissingError(
                f"Artifact '{artifact.pattern}' matched {len(matches)} files "
                f"but has a single target name '{artifact.target_name}'"
            )

        for path in matches:
            name = artifact.target_name or path.name
            if name in names and names[name] != path:
                raise ArtifactMissingError(
                    f"Two artifacts would be uploaded as '{name}': {names[name]} and {path}"
                )
            if name in names:
                continue
            names[name] = path
            resolved.append(ResolvedArtifact(path=path, name=name))

    return resolved


class ArtifactPublisher:
    """Creates the hosted release and uploads its assets.

    Args:
        host: Release host client
        draft: Create releases as drafts
        max_workers: Number of concurrent uploads
    """

    def __init__(self, host: ReleaseHost, *, draft: bool = False, max_workers: int = 4) -> None:
        self.host = host
        self.draft = draft
        self.max_workers = max_workers

    def publish(
        self,
        tag: str,
        notes: str,
        artifacts: Sequence[ResolvedArtifact],
        *,
        name: str | None = None,
    ) -> PublishResult:
        """Find or create the release for ``tag`` and upload missing assets.

        Raises:
            PublishTransportError: If the host rejects a request; the
                error names ``tag``
        """
        try:
            return self._publish(tag, notes, artifacts, name=name)
        except PublishError as e:
            e.tag = e.tag or tag
            raise

    def _publish(
        self,
        tag: str,
        notes: str,
        artifacts: Sequence[ResolvedArtifact],
        *,
        name: str | None,
    ) -> PublishResult:
        release = self.host.get_release_by_tag(tag)
        if release is None:
            release = self.host.create_release(tag, name=name, body=notes, draft=self.draft)
        else:
            log.info("release_exists", tag=tag, id=release.get("id"))

        result = PublishResult(release_url=release.get("html_url"))
        release_id = release["id"]

        existing = {asset["name"] for asset in self.host.list_release_assets(release_id)}
        pending = []
        for artifact in artifacts:
            if artifact.name in existing:
                result.skipped.append(artifact.name)
            else:
                pending.append(artifact)

        if not pending:
            return result

        # Uploads go to distinct remote names, so their order does not matter.
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(
                    self.host.upload_asset, release_id, artifact.path, artifact.name
                ): artifact
                for artifact in pending
            }
            errors: list[PublishError] = []
            for future in as_completed(futures):
                artifact = futures[future]
                try:
                    future.result()
                except PublishError as e:
                    log.error("asset_upload_failed", name=artifact.name, error=str(e))
                    errors.append(e)
                else:
                    result.uploaded.append(artifact.name)

        if errors:
            raise errors[0]

        result.uploaded.sort(key=[a.name for a in pending].index)
        return result
