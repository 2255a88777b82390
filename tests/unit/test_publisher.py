"""Tests for artifact resolution and release publishing."""

from __future__ import annotations

from pathlib import Path

import pytest

from release_cut.config.models import ArtifactConfig
from release_cut.core.publisher import ArtifactPublisher, ResolvedArtifact, resolve_artifacts
from release_cut.exceptions import ArtifactMissingError, PublishError, PublishTransportError


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """A Tauri-style bundle directory."""
    root = tmp_path / "build"
    (root / "macos").mkdir(parents=True)
    (root / "windows").mkdir(parents=True)
    (root / "macos" / "App_1.1.0_aarch64.dmg").write_bytes(b"arm")
    (root / "macos" / "App_1.1.0_x64.dmg").write_bytes(b"intel")
    (root / "windows" / "App_1.1.0_x64_en-US.msi").write_bytes(b"msi")
    return root


def _artifacts(build_dir: Path, *names: str) -> list[ResolvedArtifact]:
    return [ResolvedArtifact(path=next(build_dir.rglob(name)), name=name) for name in names]


class TestResolveArtifacts:
    """Tests for resolve_artifacts()."""

    def test_recursive_globs(self, build_dir: Path):
        resolved = resolve_artifacts(
            [ArtifactConfig(pattern="**/*.dmg"), ArtifactConfig(pattern="**/*.msi")], build_dir
        )

        assert [a.name for a in resolved] == [
            "App_1.1.0_aarch64.dmg",
            "App_1.1.0_x64.dmg",
            "App_1.1.0_x64_en-US.msi",
        ]

    def test_target_name(self, build_dir: Path):
        resolved = resolve_artifacts(
            [ArtifactConfig(pattern="windows/*.msi", target_name="App-setup.msi")], build_dir
        )

        assert resolved == [
            ResolvedArtifact(
                path=build_dir / "windows" / "App_1.1.0_x64_en-US.msi", name="App-setup.msi"
            )
        ]

    def test_target_name_with_many_matches(self, build_dir: Path):
        with pytest.raises(ArtifactMissingError, match="single target name"):
            resolve_artifacts(
                [ArtifactConfig(pattern="**/*.dmg", target_name="App.dmg")], build_dir
            )

    def test_required_pattern_without_match(self, build_dir: Path):
        with pytest.raises(ArtifactMissingError, match=r"\*\*/\*\.AppImage"):
            resolve_artifacts([ArtifactConfig(pattern="**/*.AppImage")], build_dir)

    def test_optional_pattern_without_match(self, build_dir: Path):
        resolved = resolve_artifacts(
            [
                ArtifactConfig(pattern="**/*.AppImage", required=False),
                ArtifactConfig(pattern="**/*.msi"),
            ],
            build_dir,
        )

        assert [a.name for a in resolved] == ["App_1.1.0_x64_en-US.msi"]

    def test_missing_build_dir(self, tmp_path: Path):
        with pytest.raises(ArtifactMissingError):
            resolve_artifacts([ArtifactConfig(pattern="**/*.dmg")], tmp_path / "nope")

    def test_overlapping_patterns_deduplicated(self, build_dir: Path):
        resolved = resolve_artifacts(
            [ArtifactConfig(pattern="**/*.msi"), ArtifactConfig(pattern="windows/*")], build_dir
        )

        assert len(resolved) == 1

    def test_name_collision(self, build_dir: Path):
        (build_dir / "windows" / "App_1.1.0_aarch64.dmg").write_bytes(b"other")

        with pytest.raises(ArtifactMissingError, match="same|would be uploaded as"):
            resolve_artifacts([ArtifactConfig(pattern="**/*.dmg")], build_dir)

    def test_no_artifacts(self, build_dir: Path):
        assert resolve_artifacts([], build_dir) == []


class TestArtifactPublisher:
    """Tests for ArtifactPublisher.publish()."""

    def test_creates_release_and_uploads(self, fake_host, build_dir: Path):
        artifacts = _artifacts(build_dir, "App_1.1.0_aarch64.dmg", "App_1.1.0_x64.dmg")

        result = ArtifactPublisher(fake_host).publish("v1.1.0", "### Features\n", artifacts)

        release = fake_host.releases["v1.1.0"]
        assert release["body"] == "### Features\n"
        assert release["draft"] is False
        assert result.release_url == "https://github.com/o/r/releases/tag/v1.1.0"
        assert result.uploaded == ["App_1.1.0_aarch64.dmg", "App_1.1.0_x64.dmg"]
        assert sorted(fake_host.uploads) == result.uploaded

    def test_draft_release(self, fake_host, build_dir: Path):
        ArtifactPublisher(fake_host, draft=True).publish("v1.1.0", "", [])

        assert fake_host.releases["v1.1.0"]["draft"] is True

    def test_reuses_release_and_skips_uploaded(self, fake_host, build_dir: Path):
        """Publishing twice uploads each asset once."""
        artifacts = _artifacts(build_dir, "App_1.1.0_aarch64.dmg", "App_1.1.0_x64_en-US.msi")
        publisher = ArtifactPublisher(fake_host)
        publisher.publish("v1.1.0", "notes", artifacts[:1])

        result = publisher.publish("v1.1.0", "notes", artifacts)

        assert len(fake_host.releases) == 1
        assert result.skipped == ["App_1.1.0_aarch64.dmg"]
        assert result.uploaded == ["App_1.1.0_x64_en-US.msi"]
        assert fake_host.uploads == ["App_1.1.0_aarch64.dmg", "App_1.1.0_x64_en-US.msi"]

    def test_upload_failure_names_tag(self, fake_host, build_dir: Path):
        fake_host.fail_uploads = {"App_1.1.0_x64.dmg"}
        artifacts = _artifacts(build_dir, "App_1.1.0_aarch64.dmg", "App_1.1.0_x64.dmg")

        with pytest.raises(PublishTransportError) as exc_info:
            ArtifactPublisher(fake_host).publish("v1.1.0", "notes", artifacts)

        error = exc_info.value
        assert error.tag == "v1.1.0"
        assert "tagged v1.1.0" in str(error)
        assert fake_host.uploads == ["App_1.1.0_aarch64.dmg"]

    def test_retry_after_failure_uploads_the_rest(self, fake_host, build_dir: Path):
        artifacts = _artifacts(build_dir, "App_1.1.0_aarch64.dmg", "App_1.1.0_x64.dmg")
        publisher = ArtifactPublisher(fake_host, max_workers=1)
        fake_host.fail_uploads = {"App_1.1.0_x64.dmg"}
        with pytest.raises(PublishError):
            publisher.publish("v1.1.0", "notes", artifacts)

        fake_host.fail_uploads = set()
        result = publisher.publish("v1.1.0", "notes", artifacts)

        assert result.skipped == ["App_1.1.0_aarch64.dmg"]
        assert result.uploaded == ["App_1.1.0_x64.dmg"]

    def test_nothing_to_upload(self, fake_host):
        result = ArtifactPublisher(fake_host).publish("v1.1.0", "notes", [])

        assert result.uploaded == []
        assert "v1.1.0" in fake_host.releases
