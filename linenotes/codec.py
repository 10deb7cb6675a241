"""
Record Codec - one annotation per line of the canonical store.

Line grammar:
    <file_path>#L<line_spec> "<escaped_text>"

    line_spec:  <n> | <n>-<m>
    extended:   <n>,<c> | <n>,<c>-<m>,<c2>    (columns=True only)

Escapes inside the quotes: \\n (newline), \\" (quote), \\\\ (backslash).
Encoding escapes backslash first, then quote, then newline. Decoding is a
single left-to-right scan, so an escaped backslash never starts another
escape and decode(encode(a)) == a for any text.

Batch decoding is best-effort: it never raises and reports every rejected
line with its 1-based line number.
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from .errors import RecordValidationError
from .keys import KEY_SEPARATOR, validate_range
from .models import GENERAL_LINE, GENERAL_PATH, Annotation, DecodeResult, ParseIssue

logger = logging.getLogger(__name__)


_RECORD_RE = re.compile(r'^(.+?)#L([\d,\-]+)\s+"((?:[^"\\]|\\.)*)"\s*$', re.DOTALL)

# Plain variant: "7" or "7-9". Leading "-" lets negative numbers reach validation.
_PLAIN_SPEC_RE = re.compile(r"^(-?\d+)(?:-(-?\d+))?$")

# Column variant: "7", "7,10", "7-9", "7,10-9,2"
_COLUMN_SPEC_RE = re.compile(r"^(-?\d+)(?:,(\d+))?(?:-(-?\d+)(?:,(\d+))?)?$")

_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

_UNESCAPES = {
    "n": "\n",
    '"': '"',
    "\\": "\\",
}


def escape_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def unescape_text(escaped: str) -> str:
    """Unknown escapes are kept verbatim, backslash included."""
    return _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), escaped)


def _parse_positions(
    spec: str, columns: bool
) -> Optional[Tuple[int, int, Optional[int], Optional[int]]]:
    """Split a line spec into (start, end, start_column, end_column)."""
    if columns:
        match = _COLUMN_SPEC_RE.match(spec)
        if not match:
            return None
        start_s, start_col_s, end_s, end_col_s = match.groups()
    else:
        match = _PLAIN_SPEC_RE.match(spec)
        if not match:
            return None
        start_s, end_s = match.groups()
        start_col_s = end_col_s = None

    start_line = int(start_s)
    start_column = int(start_col_s) if start_col_s is not None else None
    if end_s is None:
        return start_line, start_line, start_column, start_column
    end_column = int(end_col_s) if end_col_s is not None else None
    return start_line, int(end_s), start_column, end_column


def decode_line(line: str, columns: bool = False) -> Optional[Annotation]:
    """
    Decode one store line.

    Args:
        line: A single line of the canonical store
        columns: Accept the extended "<n>,<c>" position variant

    Returns:
        The decoded Annotation, or None when the line does not match the grammar

    Raises:
        RecordValidationError: The line matches the grammar but its range is
            invalid (non-positive line, start > end, or a general note that
            does not use line 0)
    """
    match = _RECORD_RE.match(line)
    if not match:
        return None

    file_path, spec, escaped = match.groups()
    positions = _parse_positions(spec, columns)
    if positions is None:
        return None
    start_line, end_line, start_column, end_column = positions

    if file_path == GENERAL_PATH:
        if start_line != GENERAL_LINE or end_line != GENERAL_LINE:
            raise RecordValidationError(f"General annotations must use line 0: {spec}")
    else:
        validate_range(start_line, end_line, spec)

    return Annotation(
        file_path=file_path,
        start_line=start_line,
        end_line=end_line,
        text=unescape_text(escaped),
        raw=line,
        start_column=start_column,
        end_column=end_column,
    )


def decode_file(content: str, columns: bool = False) -> DecodeResult:
    """
    Decode a whole store. Blank lines are skipped, nothing is raised.

    Returns:
        DecodeResult with every well-formed record and one ParseIssue per
        rejected line
    """
    records: List[Annotation] = []
    errors: List[ParseIssue] = []

    for index, line in enumerate(content.split("\n")):
        if not line.strip():
            continue
        try:
            annotation = decode_line(line, columns=columns)
        except RecordValidationError as e:
            errors.append(ParseIssue(index + 1, line, e.reason, kind="validation"))
            continue
        if annotation is None:
            errors.append(ParseIssue(index + 1, line, "Invalid format", kind="decode"))
            continue
        records.append(annotation)

    if errors:
        logger.debug(f"Decoded {len(records)} record(s) with {len(errors)} issue(s)")
    return DecodeResult(records=records, errors=errors)


def _position(line: int, column: Optional[int]) -> str:
    if column is None:
        return f"{line}"
    return f"{line},{column}"


def encode_line(annotation: Annotation) -> str:
    """Serialize one annotation. A single-line range collapses to one number."""
    start = _position(annotation.start_line, annotation.start_column)
    end = _position(annotation.end_line, annotation.end_column)
    spec = start if start == end else f"{start}-{end}"
    return f'{annotation.file_path}{KEY_SEPARATOR}{spec} "{escape_text(annotation.text)}"'


def encode_file(annotations: Iterable[Annotation]) -> str:
    """Serialize a full store: one line per annotation, trailing newline if any."""
    lines = [encode_line(annotation) for annotation in annotations]
    return "\n".join(lines) + ("\n" if lines else "")
