"""
Identity key - the single shared key for matching annotations.

A key is "<file_path>#L<spec>" where spec is "<start>" when the range is a
single line and "<start>-<end>" otherwise. The same string is the anchor
target in the rendered document and is what the extractor rebuilds from
parsed headings, so every module derives keys through this file.
"""

import re
from typing import Tuple

from .errors import RecordValidationError
from .models import Annotation


KEY_SEPARATOR = "#L"

_LINE_SPEC_RE = re.compile(r"^(\d+)(?:-(\d+))?$")


def format_line_spec(start_line: int, end_line: int) -> str:
    """Collapse equal bounds to a single number."""
    if start_line == end_line:
        return f"{start_line}"
    return f"{start_line}-{end_line}"


def identity_key(file_path: str, start_line: int, end_line: int) -> str:
    return f"{file_path}{KEY_SEPARATOR}{format_line_spec(start_line, end_line)}"


def key_for(annotation: Annotation) -> str:
    return identity_key(annotation.file_path, annotation.start_line, annotation.end_line)


def parse_line_spec(spec: str, allow_zero: bool = False) -> Tuple[int, int]:
    """
    Parse "<n>" or "<n>-<m>" into (start_line, end_line).

    Args:
        spec: Line spec without the "L" prefix
        allow_zero: Accept 0 (the general sentinel) as a line number

    Raises:
        RecordValidationError: Non-numeric spec, non-positive line,
            or start greater than end. Bounds are never swapped.
    """
    match = _LINE_SPEC_RE.match(spec.strip())
    if not match:
        raise RecordValidationError(f"Invalid line spec: {spec}")

    start_line = int(match.group(1))
    end_line = int(match.group(2)) if match.group(2) is not None else start_line
    validate_range(start_line, end_line, spec, allow_zero=allow_zero)
    return start_line, end_line


def validate_range(start_line: int, end_line: int, spec: str, allow_zero: bool = False) -> None:
    """Raise RecordValidationError when the range breaks an invariant."""
    lowest = 0 if allow_zero else 1
    if start_line < lowest or end_line < lowest:
        raise RecordValidationError(f"Line numbers must be positive: {spec}")
    if start_line > end_line:
        raise RecordValidationError(f"Invalid range (start > end): {spec}")
