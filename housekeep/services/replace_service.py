"""
Fuzzy replacement for housekeep.

Search text is matched token by token, with any run of whitespace
(newlines included) accepted between tokens, so stored rules keep working
when the live file has been reformatted. Multi-line replacement text is
re-indented to the line the match starts on.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..domain.work import ReplacementRule
from ..infra.git_client import GitClient
from ..sink import LogSink

logger = logging.getLogger(__name__)

NBSP = "\u00a0"

# Never descended into during tree-wide replacement
ALWAYS_EXCLUDED_DIRS = {'.git', 'target', 'node_modules'}

BINARY_SNIFF_BYTES = 1024


@dataclass(frozen=True)
class ReplaceResult:
    """
    Outcome of a fuzzy replacement.

    Attributes:
        content: Resulting text
        changed: True only if the text differs from the input
        matches: Number of occurrences found (may be > 0 with changed False
                 when the replacement reproduces the matched text)
    """
    content: str
    changed: bool
    matches: int = 0


def build_pattern(search: str) -> Optional[re.Pattern]:
    """Compile the whitespace-tolerant pattern for a search text, or None if it has no tokens."""
    tokens = search.replace(NBSP, " ").split()
    if not tokens:
        return None
    return re.compile(r"\s+".join(re.escape(token) for token in tokens))


def _line_indent(content: str, start: int) -> str:
    """Whitespace between the start of the line and `start`, or '' if the match is not line-initial."""
    line_start = content.rfind("\n", 0, start) + 1
    indent = content[line_start:start]
    if indent.strip():
        return ""
    return indent


def _reindent(lines: List[str], indent: str) -> str:
    if len(lines) > 1 and indent:
        return "\n".join([lines[0]] + [indent + line for line in lines[1:]])
    return "\n".join(lines)


def fuzzy_replace(content: str, search: str, replace: str) -> ReplaceResult:
    """
    Replace every whitespace-tolerant occurrence of `search` with `replace`.

    The first line of the replacement takes the place of the match; every
    following line is prefixed with the indentation of the line the match
    started on, provided only whitespace precedes the match on that line.
    Matches are substituted from the last to the first so earlier offsets
    stay valid.

    Args:
        content: Text to edit
        search: Search text; its tokens must appear in order
        replace: Replacement text

    Returns:
        ReplaceResult with the new content and change information
    """
    if not search:
        return ReplaceResult(content, False)

    pattern = build_pattern(search)
    if pattern is None:
        return ReplaceResult(content, False)

    matches = list(pattern.finditer(content))
    if not matches:
        return ReplaceResult(content, False)

    lines = replace.replace(NBSP, " ").replace("\r\n", "\n").split("\n")

    result = content
    for match in reversed(matches):
        start, end = match.span()
        text = _reindent(lines, _line_indent(result, start))
        result = result[:start] + text + result[end:]

    return ReplaceResult(result, result != content, len(matches))


def apply_rules(
    content: str,
    rules: Iterable[ReplacementRule],
    sink: LogSink,
    label: str = ""
) -> str:
    """Apply rules in order to one file's content, logging each outcome."""
    where = f" in {label}" if label else ""
    for rule in rules:
        if not rule.search:
            continue
        outcome = fuzzy_replace(content, rule.search, rule.replace)
        if outcome.changed:
            content = outcome.content
            sink.info(
                f"Custom replacement performed{where}: '{rule.search}' -> '{rule.replace}'",
                matches=outcome.matches,
            )
        elif outcome.matches:
            sink.info(f"Search text '{rule.search}' already up to date{where}.")
        else:
            sink.info(f"Search text '{rule.search}' not found{where}, no replacement.")
    return content


def _is_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_SNIFF_BYTES]


def replace_in_tree(
    root: str,
    rules: Sequence[ReplacementRule],
    git: GitClient,
    sink: LogSink,
    excluded: Iterable[str] = (),
    skip_files: Iterable[str] = ()
) -> List[str]:
    """
    Apply rules to every text file below `root` and commit each changed file.

    Args:
        root: Repository root
        rules: Replacement rules, applied in order to each file
        git: Git client used to stage and commit
        sink: Log sink for the repository
        excluded: Extra directory names never descended into
        skip_files: Paths relative to root that must not be touched

    Returns:
        Relative paths of the files that were changed
    """
    rules = [r for r in rules if r.search]
    if not rules:
        return []

    excluded_dirs = ALWAYS_EXCLUDED_DIRS | set(excluded)
    skipped = {os.path.normpath(p) for p in skip_files}
    changed: List[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded_dirs)

        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            relpath = os.path.normpath(os.path.relpath(path, root))
            if relpath in skipped or os.path.islink(path):
                continue

            try:
                data = Path(path).read_bytes()
            except OSError as e:
                sink.warning(f"Could not read file {relpath}: {e}")
                continue

            if _is_binary(data):
                continue
            try:
                content = data.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug(f"Skipping non UTF-8 file {path}")
                continue

            new_content = content
            for rule in rules:
                outcome = fuzzy_replace(new_content, rule.search, rule.replace)
                if outcome.changed:
                    new_content = outcome.content

            if new_content == content:
                continue

            try:
                Path(path).write_bytes(new_content.encode("utf-8"))
            except OSError as e:
                sink.error(f"Could not write file {relpath}: {e}")
                continue

            sink.info(f"File updated: {relpath}", file=relpath)
            changed.append(relpath)

            _, error = git.add(root, relpath)
            if error is None:
                _, error = git.commit(root, f"Update {filename} via project-wide replacement")
            if error is not None:
                sink.warning(f"Could not commit {relpath}: {error}")

    return changed
