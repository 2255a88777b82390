"""Release notes and changelog generation.

Changes are grouped into the configured sections, in section order, and
rendered as Markdown. Within a section entries keep git log order, which is
newest first. Hidden sections still count for version resolution but are
left out of the rendered notes, and ``other`` changes never appear.

The changelog file keeps the newest release on top::

    # Changelog

    ## [1.3.0](https://github.com/o/r/compare/v1.2.0...v1.3.0) (2026-10-18)

    ### Features

    - **ui:** add dark mode (a1b2c3d)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from release_cut.core.commits import ChangeType
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from release_cut.config.models import SectionConfig
    from release_cut.core.commits import ChangeRecord
    from release_cut.core.version import SemVer

log = get_logger(__name__)

BREAKING_SECTION = "⚠ BREAKING CHANGES"


@dataclass(slots=True)
class ReleaseNotes:
    """Visible changes of one release, grouped by section label.

    ``sections`` only holds sections with at least one visible record, in
    the configured display order.
    """

    sections: dict[str, list[ChangeRecord]] = field(default_factory=dict)
    breaking: list[ChangeRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.sections and not self.breaking

    def summaries(self, label: str) -> list[str]:
        """Return the summaries listed under ``label``."""
        return [record.summary for record in self.sections.get(label, [])]


def build_release_notes(
    records: Iterable[ChangeRecord],
    sections: Sequence[SectionConfig],
) -> ReleaseNotes:
    """Group records into the configured sections.

    Args:
        records: Changes in git log order (newest first)
        sections: Section definitions; their order is the display order

    Returns:
        Release notes without hidden or empty sections
    """
    records = list(records)
    by_type = {section.type: section for section in sections}
    grouped: dict[ChangeType, list[ChangeRecord]] = {}
    breaking: list[ChangeRecord] = []

    for record in records:
        if record.type is ChangeType.OTHER:
            continue
        if record.breaking:
            breaking.append(record)
        section = by_type.get(record.type)
        if section is None or section.hidden:
            continue
        grouped.setdefault(record.type, []).append(record)

    notes = ReleaseNotes(breaking=breaking)
    for section in sections:
        if section.type in grouped:
            notes.sections[section.section] = grouped[section.type]

    log.debug(
        "release_notes_built",
        records=len(records),
        sections=list(notes.sections),
        breaking=len(breaking),
    )
    return notes


def format_record(
    record: ChangeRecord,
    *,
    include_scope: bool = True,
    include_sha: bool = False,
    commit_url: str | None = None,
    text: str | None = None,
) -> str:
    """Format one change as a Markdown bullet.

    Args:
        record: Change to format
        include_scope: Prefix the entry with its bold scope
        include_sha: Append the short commit hash
        commit_url: URL prefix for linking the hash (``.../commit``)
        text: Text to show instead of the summary

    Returns:
        A single ``- `` bullet line
    """
    parts = ["-"]
    if include_scope and record.scope:
        parts.append(f"**{record.scope}:**")
    parts.append(text if text is not None else record.summary)

    if include_sha and record.short_sha:
        if commit_url:
            parts.append(f"([{record.short_sha}]({commit_url.rstrip('/')}/{record.sha}))")
        else:
            parts.append(f"({record.short_sha})")

    return " ".join(parts)


def render_release_notes(
    notes: ReleaseNotes,
    version: SemVer | str,
    *,
    release_date: date | None = None,
    compare_url: str | None = None,
    commit_url: str | None = None,
    include_sha: bool = True,
) -> str:
    """Render release notes as Markdown.

    Args:
        notes: Grouped changes
        version: Version being released
        release_date: Date for the heading, today (UTC) by default
        compare_url: Link target for the version heading
        commit_url: URL prefix used to link commit hashes
        include_sha: Append short commit hashes to entries

    Returns:
        Markdown starting with the ``## `` release heading
    """
    day = (release_date or datetime.now(UTC).date()).isoformat()
    title = f"[{version}]({compare_url})" if compare_url else f"[{version}]"
    lines = [f"## {title} ({day})", ""]

    if notes.breaking:
        lines.append(f"### {BREAKING_SECTION}")
        lines.append("")
        for record in notes.breaking:
            lines.append(
                format_record(
                    record,
                    include_sha=include_sha,
                    commit_url=commit_url,
                    text=record.breaking_note or record.summary,
                )
            )
        lines.append("")

    for label, records in notes.sections.items():
        lines.append(f"### {label}")
        lines.append("")
        lines.extend(
            format_record(record, include_sha=include_sha, commit_url=commit_url)
            for record in records
        )
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def prepend_changelog(path: Path, rendered: str, title: str = "# Changelog") -> str:
    """Insert ``rendered`` above the newest release in the changelog.

    The title and any introduction before the first ``## `` heading stay on
    top. The file is created when missing.

    Returns:
        The new file content
    """
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    body = existing.lstrip("﻿")

    if title and body.startswith(title):
        body = body[len(title) :].lstrip("\n")

    first_release = re.search(r"^## ", body, re.MULTILINE)
    split = first_release.start() if first_release else len(body)
    intro, releases = body[:split].strip(), body[split:].strip()

    parts = [title] if title else []
    if intro:
        parts.append(intro)
    parts.append(rendered.strip())
    if releases:
        parts.append(releases)
    content = "\n\n".join(parts) + "\n"

    path.write_text(content, encoding="utf-8")
    log.info("changelog_updated", path=str(path))
    return content


def extract_release_notes(changelog: str, version: SemVer | str) -> str | None:
    """Return the section of ``changelog`` describing ``version``.

    The heading line itself is dropped, so the result can be used as the
    body of a hosted release. Returns None when the version is not listed.
    """
    heading = re.compile(rf"^## \[?{re.escape(str(version))}\]?(?:[(\s]|$)")
    lines = changelog.splitlines()

    start = None
    for index, line in enumerate(lines):
        if heading.match(line):
            start = index + 1
            break
    if start is None:
        return None

    end = len(lines)
    for index in range(start, len(lines)):
        if lines[index].startswith("## "):
            end = index
            break

    return "\n".join(lines[start:end]).strip() + "\n"
