"""Version manifest reading and updating.

A manifest is any tracked file holding the released version: a
``package.json``, a ``Cargo.toml``, a ``tauri.conf.json``, a Python
``__init__.py``. Formatting is preserved:

- JSON files are rewritten with their original indentation and key order
- TOML files go through tomlkit, which keeps comments and layout
- anything else is updated with a targeted regex replacement
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

import tomlkit
import tomlkit.exceptions

from release_cut.exceptions import ManifestWriteError
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from release_cut.config.models import ManifestEntry

log = get_logger(__name__)

# Version text following a manifest pattern, pre-release and build suffixes included.
_VERSION_TOKEN = r"[0-9]+\.[0-9]+\.[0-9]+(?:[-+][0-9A-Za-z.\-+]*)?"


def _resolve(entry: ManifestEntry, root: Path) -> Path:
    path = entry.path if entry.path.is_absolute() else root / entry.path
    if not path.is_file():
        raise ManifestWriteError(f"Manifest file not found: {path}")
    return path


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ManifestWriteError(f"{path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ManifestWriteError(f"Cannot read {path}: {e}") from e


def _walk(document: Any, field: str, path: Path) -> tuple[Any, str]:
    """Return the container holding the last key of ``field``."""
    keys = field.split(".")
    container = document
    for key in keys[:-1]:
        if not isinstance(container, dict) or key not in container:
            raise ManifestWriteError(f"Field '{field}' not found in {path}")
        container = container[key]
    if not isinstance(container, dict) or keys[-1] not in container:
        raise ManifestWriteError(f"Field '{field}' not found in {path}")
    return container, keys[-1]


def _detect_json_indent(content: str) -> int | str:
    match = re.search(r"^([ \t]+)\"", content, re.MULTILINE)
    if match is None:
        return 2
    indent = match.group(1)
    return indent if "\t" in indent else len(indent)


def _load_json(path: Path, content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestWriteError(f"Cannot parse {path}: {e}") from e


def _load_toml(path: Path, content: str) -> tomlkit.TOMLDocument:
    try:
        return tomlkit.parse(content)
    except tomlkit.exceptions.TOMLKitError as e:
        raise ManifestWriteError(f"Cannot parse {path}: {e}") from e


def _compile(entry: ManifestEntry) -> re.Pattern[str]:
    try:
        compiled = re.compile(entry.pattern or "", re.MULTILINE)
    except re.error as e:
        raise ManifestWriteError(f"Invalid pattern for {entry.path}: {e}") from e
    return re.compile(rf"(?:{compiled.pattern})({_VERSION_TOKEN})", re.MULTILINE)


def read_manifest_version(entry: ManifestEntry, root: Path) -> str:
    """Read the version stored in a manifest.

    Args:
        entry: Manifest location
        root: Repository root that relative paths are resolved against

    Returns:
        The version string as written in the file

    Raises:
        ManifestWriteError: If the file or field is missing or unparsable
    """
    path = _resolve(entry, root)
    content = _read_text(path)

    if entry.field is not None:
        document = (
            _load_json(path, content) if path.suffix == ".json" else _load_toml(path, content)
        )
        container, key = _walk(document, entry.field, path)
        return str(container[key])

    match = _compile(entry).search(content)
    if match is None:
        raise ManifestWriteError(f"Could not find version pattern in {path}")
    return match.group(match.re.groups)


def write_manifest_version(entry: ManifestEntry, root: Path, new_version: str) -> Path:
    """Rewrite the version stored in a manifest, in place.

    Args:
        entry: Manifest location
        root: Repository root that relative paths are resolved against
        new_version: Version string to write

    Returns:
        Path of the updated file

    Raises:
        ManifestWriteError: If the file or field is missing or the write fails
    """
    path = _resolve(entry, root)
    content = _read_text(path)

    if entry.field is not None and path.suffix == ".json":
        document = _load_json(path, content)
        container, key = _walk(document, entry.field, path)
        old_version = container[key]
        container[key] = new_version
        new_content = json.dumps(
            document, indent=_detect_json_indent(content), ensure_ascii=False
        )
        if content.endswith("\n"):
            new_content += "\n"
    elif entry.field is not None:
        document = _load_toml(path, content)
        container, key = _walk(document, entry.field, path)
        old_version = container[key]
        container[key] = new_version
        new_content = tomlkit.dumps(document)
    else:
        full = _compile(entry)
        match = full.search(content)
        if match is None:
            raise ManifestWriteError(f"Could not find version pattern in {path}")
        old_version = match.group(full.groups)
        start, end = match.span(full.groups)
        new_content = content[:start] + new_version + content[end:]

    try:
        path.write_text(new_content, encoding="utf-8")
    except OSError as e:
        raise ManifestWriteError(f"Cannot write {path}: {e}") from e

    log.info("manifest_updated", path=str(path), old=str(old_version), new=new_version)
    return path
