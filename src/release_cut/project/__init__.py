"""Version manifests of the project being released."""

from __future__ import annotations

from release_cut.project.manifest import read_manifest_version, write_manifest_version

__all__ = ["read_manifest_version", "write_manifest_version"]
