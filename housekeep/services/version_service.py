"""
Version reconciliation for housekeep.

Works on the version file (a Maven pom.xml by default) as plain text:
- Locates the project's own <version> by excluding nested blocks
  (parent, dependencies, dependencyManagement, build, profiles)
- Bumps it when it equals the latest tag
- Optionally moves the parent version to a target
- Applies fixed structural edits

Blocks are found with non-greedy regex windows, not an XML parser. A block
nested inside another block of the same name ends at the first closing tag,
and malformed files may be mis-excluded. That is an accepted limitation.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..domain.work import BumpStrategy, StructuralEdit
from ..sink import LogSink

EXCLUDED_BLOCKS = ("parent", "dependencies", "dependencyManagement", "build", "profiles")

EXCLUDED_BLOCK_PATTERNS = [
    re.compile(rf"<{name}>.*?</{name}>", re.DOTALL) for name in EXCLUDED_BLOCKS
]
VERSION_PATTERN = re.compile(r"<version>(.*?)</version>")
PARENT_PATTERN = re.compile(r"<parent>.*?</parent>", re.DOTALL)

Span = Tuple[int, int]


@dataclass(frozen=True)
class VersionField:
    """
    The located project version.

    Attributes:
        value: Text between <version> and </version>
        start: Offset of the value in the file
        end: Offset just past the value
        tag_span: Span of the whole <version>...</version> element
    """
    value: str
    start: int
    end: int
    tag_span: Span


def find_excluded_spans(content: str) -> List[Span]:
    """Spans of every excluded nested block, ordered by start offset."""
    spans: List[Span] = []
    for pattern in EXCLUDED_BLOCK_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(content))
    return sorted(spans)


def _contained(span: Span, excluded: Iterable[Span]) -> bool:
    start, end = span
    return any(start >= lo and end <= hi for lo, hi in excluded)


def find_project_version(content: str) -> Optional[VersionField]:
    """
    Find the authoritative project version.

    Returns the first <version> element not fully contained in an excluded
    block, or None (typical when the version is inherited from a parent).
    """
    excluded = find_excluded_spans(content)
    for match in VERSION_PATTERN.finditer(content):
        if not _contained(match.span(), excluded):
            return VersionField(
                value=match.group(1),
                start=match.start(1),
                end=match.end(1),
                tag_span=match.span(),
            )
    return None


def clean_tag(tag: Optional[str]) -> str:
    """Strip a leading tag-name prefix: 'v3.6.0' -> '3.6.0', 'release-1.2' -> '1.2'."""
    if not tag:
        return ""
    return re.sub(r"^[^\d]+", "", tag.strip())


def bump_version(version: str, strategy: BumpStrategy = BumpStrategy.PATCH) -> Optional[str]:
    """
    Bump a two- or three-part numeric version.

    A two-part version is treated as Major.Minor: a patch bump appends a
    third component ('1.2' -> '1.2.1') instead of touching the minor.

    Returns:
        The bumped version, or None when the version is not purely numeric
        or has another number of components.
    """
    parts = version.split(".")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        return None

    numbers = [int(p) for p in parts]

    if len(numbers) == 3:
        major, minor, patch = numbers
        if strategy is BumpStrategy.MAJOR:
            return f"{major + 1}.0.0"
        if strategy is BumpStrategy.MINOR:
            return f"{major}.{minor + 1}.0"
        return f"{major}.{minor}.{patch + 1}"

    major, minor = numbers
    if strategy is BumpStrategy.MAJOR:
        return f"{major + 1}.0"
    if strategy is BumpStrategy.MINOR:
        return f"{major}.{minor + 1}"
    return f"{major}.{minor}.1"


def reconcile(
    content: str,
    tag: Optional[str],
    strategy: BumpStrategy,
    sink: LogSink,
    label: str = "pom.xml"
) -> str:
    """
    Bump the project version if it equals the latest tag.

    Only exact string equality triggers a bump; a project that is ahead of
    or diverged from its last tag is left alone. Only the located version
    value is rewritten.

    Args:
        content: Version file text
        tag: Latest tag, or None if the repository has no tags
        strategy: Which component to bump
        sink: Log sink for the repository
        label: File name used in log lines

    Returns:
        The (possibly) updated content
    """
    cleaned = clean_tag(tag)
    if not cleaned:
        return content

    field = find_project_version(content)
    if field is None:
        sink.info(f"No project version found in {label} (maybe only defined in parent?).")
        return content

    if field.value != cleaned:
        sink.info(
            f"Version in {label} ({field.value}) does not match tag ({cleaned}). No update."
        )
        return content

    new_version = bump_version(field.value, strategy)
    if new_version is None:
        return content

    sink.info(
        f"Version in {label} updated ({strategy.value}): {field.value} -> {new_version}",
        old=field.value,
        new=new_version,
    )
    return content[:field.start] + new_version + content[field.end:]


def update_parent_version(content: str, target: str, sink: LogSink) -> str:
    """Move the first <version> inside the first <parent> block to `target`."""
    if not target:
        return content

    parent = PARENT_PATTERN.search(content)
    if parent is None:
        return content

    version = VERSION_PATTERN.search(content, parent.start(), parent.end())
    if version is None:
        return content

    current = version.group(1)
    if current == target:
        sink.info("Parent version is already up to date.")
        return content

    sink.info(f"Parent version updated: {current} -> {target}", old=current, new=target)
    return content[:version.start(1)] + target + content[version.end(1):]


def apply_structural_edits(
    content: str,
    edits: Iterable[StructuralEdit],
    sink: LogSink,
    label: str
) -> str:
    """Apply exact, first-occurrence edits whose search text is present."""
    for edit in edits:
        if edit.search and edit.search in content:
            content = content.replace(edit.search, edit.replace, 1)
            sink.info(f"Structural edit applied to {label}.")
    return content
