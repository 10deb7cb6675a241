"""
Code Excerpt Formatter - indentation-normalized, line-numbered previews.

Indentation is measured in columns (space = 1, tab = 4) over non-blank lines
only. Stripping walks each line's leading whitespace character by character
and stops once the removed columns reach the target, so a tab that straddles
the target is consumed whole and can remove up to 3 extra columns.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


TAB_WIDTH = 4


def _leading_columns(line: str) -> int:
    columns = 0
    for char in line:
        if char == " ":
            columns += 1
        elif char == "\t":
            columns += TAB_WIDTH
        else:
            break
    return columns


def minimum_indent(lines: Sequence[str]) -> int:
    """Smallest leading indentation among non-blank lines, 0 if all blank."""
    indents = [_leading_columns(line) for line in lines if line.strip()]
    return min(indents) if indents else 0


def remove_indent(line: str, columns: int) -> str:
    """Strip up to `columns` of leading indentation. Blank lines are returned as is."""
    if columns == 0 or not line.strip():
        return line

    removed = 0
    index = 0
    while index < len(line) and removed < columns:
        char = line[index]
        if char == " ":
            removed += 1
        elif char == "\t":
            removed += TAB_WIDTH
        else:
            break
        index += 1
    return line[index:]


def normalize_indentation(lines: Sequence[str]) -> List[str]:
    """Remove the common indentation from a block of lines."""
    indent = minimum_indent(lines)
    return [remove_indent(line, indent) for line in lines]


def format_excerpt(file_lines: Sequence[str], start_line: int, end_line: int) -> List[str]:
    """
    Build the display lines for an annotation's source range.

    Args:
        file_lines: Every line of the source file
        start_line: First line, 1-based
        end_line: Last line, 1-based inclusive; clamped to the file length

    Returns:
        Lines shaped "<num>: <code>", numbers left-padded to the width of the
        last line number. Empty when the file is empty or the range is out of
        bounds.
    """
    if not file_lines:
        return []

    last_line = min(end_line, len(file_lines))
    first_line = max(start_line, 1)
    if first_line > last_line:
        return []

    numbers = list(range(first_line, last_line + 1))
    raw_lines = [file_lines[number - 1] for number in numbers]
    width = len(str(last_line))

    return [
        f"{str(number).rjust(width)}: {line}"
        for number, line in zip(numbers, normalize_indentation(raw_lines))
    ]


def split_source_lines(content: str) -> List[str]:
    """
    Split file content into editor lines.

    Only "\\n" ends a line (read_text already folds "\\r\\n" and "\\r"). Form
    feeds and Unicode line separators stay inside their line.
    """
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


class FileExcerptSource:
    """
    Reads project files for excerpts. Best-effort: a missing or unreadable
    file yields None, never an exception.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def __call__(self, file_path: str) -> Optional[List[str]]:
        path = self.root / file_path
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"No excerpt for {file_path}: {e}")
            return None
        return split_source_lines(content)
