"""
Document Extractor - recover (key, text) pairs from an edited document.

Single pass, line by line, driven by ExtractState:

    SEEKING_FILE  before the first heading (preamble, placeholder) or after
                  a section that could not be used
    IN_FILE       inside a file section, no active range
    IN_RANGE      collecting the body of one range
    IN_GENERAL    collecting the body of the general section

Rules:
- A file or general heading flushes the open body and opens a new section
- A range heading is valid from IN_FILE or IN_RANGE only
- Excerpt lines ("> <n>: ...") before the body starts are skipped
- Leading and trailing blank lines of a body are dropped, interior ones kept
- A blank line followed by a heading ends the body
- An empty body is an issue, never a silently dropped pair

The extractor only reports content. It cannot express adding or removing
keys; the reconciler decides what the pairs mean for the store.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .errors import RecordValidationError
from .keys import identity_key, parse_line_spec
from .models import GENERAL_LINE, GENERAL_PATH, Annotation, ParseIssue

logger = logging.getLogger(__name__)


_FILE_HEADING_RE = re.compile(r"^##\s+\[(.+?)\]")
_GENERAL_HEADING_RE = re.compile(r"^##\s+(?:/(?:\s.*)?|General)\s*$")
_RANGE_HEADING_RE = re.compile(r"^###\s+\[L([^\]]*)\]\(.*?\)")
_EXCERPT_LINE_RE = re.compile(r"^> +\d+:(?: |$)")


class ExtractState(str, Enum):
    SEEKING_FILE = "seeking_file"
    IN_FILE = "in_file"
    IN_RANGE = "in_range"
    IN_GENERAL = "in_general"


@dataclass(frozen=True)
class ExtractedPair:
    """One annotation body found in the document, keyed by identity key."""

    key: str
    text: str
    file_path: str
    start_line: int
    end_line: int
    line_number: int

    def to_annotation(self) -> Annotation:
        return Annotation(
            file_path=self.file_path,
            start_line=self.start_line,
            end_line=self.end_line,
            text=self.text,
        )


@dataclass(frozen=True)
class ExtractResult:
    pairs: List[ExtractedPair]
    errors: List[ParseIssue]

    @property
    def success(self) -> bool:
        return not self.errors


def is_heading(line: str) -> bool:
    return bool(
        _GENERAL_HEADING_RE.match(line)
        or _FILE_HEADING_RE.match(line)
        or _RANGE_HEADING_RE.match(line)
    )


class DocumentExtractor:
    """State machine over the lines of one document. Use extract() once."""

    def __init__(self, text: str):
        self._lines = [line.rstrip("\r") for line in text.split("\n")]
        self._state = ExtractState.SEEKING_FILE
        self._file_path: Optional[str] = None
        self._start_line = 0
        self._end_line = 0
        self._heading_number = 0
        self._heading_text = ""
        self._body: List[str] = []
        self._pairs: List[ExtractedPair] = []
        self._errors: List[ParseIssue] = []

    @property
    def state(self) -> ExtractState:
        return self._state

    def extract(self) -> ExtractResult:
        for index, line in enumerate(self._lines):
            self._feed(index, line)
        self._flush()

        if self._errors:
            logger.debug(f"Extracted {len(self._pairs)} pair(s) with {len(self._errors)} issue(s)")
        return ExtractResult(pairs=list(self._pairs), errors=list(self._errors))

    def _feed(self, index: int, line: str) -> None:
        number = index + 1

        if _GENERAL_HEADING_RE.match(line):
            self._flush()
            self._open_body(GENERAL_PATH, GENERAL_LINE, GENERAL_LINE, number, line)
            self._state = ExtractState.IN_GENERAL
            return

        file_match = _FILE_HEADING_RE.match(line)
        if file_match:
            self._flush()
            self._file_path = file_match.group(1)
            self._state = ExtractState.IN_FILE
            return

        range_match = _RANGE_HEADING_RE.match(line)
        if range_match:
            self._flush()
            self._open_range(range_match.group(1), number, line)
            return

        if self._state not in (ExtractState.IN_RANGE, ExtractState.IN_GENERAL):
            return

        if not line.strip():
            if self._next_is_heading(index):
                self._flush()
                return
            if self._body:
                self._body.append(line)
            return

        if (
            self._state == ExtractState.IN_RANGE
            and not self._body
            and _EXCERPT_LINE_RE.match(line)
        ):
            return

        self._body.append(line)

    def _next_is_heading(self, index: int) -> bool:
        return index + 1 < len(self._lines) and is_heading(self._lines[index + 1])

    def _open_range(self, spec: str, number: int, line: str) -> None:
        if self._state not in (ExtractState.IN_FILE, ExtractState.IN_RANGE):
            self._errors.append(
                ParseIssue(number, line, "Range heading outside a file section", kind="validation")
            )
            self._state = ExtractState.SEEKING_FILE
            return

        try:
            start_line, end_line = parse_line_spec(spec)
        except RecordValidationError as e:
            self._errors.append(ParseIssue(number, line, e.reason, kind="validation"))
            self._state = ExtractState.IN_FILE
            return

        self._open_body(self._file_path, start_line, end_line, number, line)
        self._state = ExtractState.IN_RANGE

    def _open_body(self, file_path: str, start_line: int, end_line: int, number: int, line: str) -> None:
        self._file_path = file_path
        self._start_line = start_line
        self._end_line = end_line
        self._heading_number = number
        self._heading_text = line
        self._body = []

    def _flush(self) -> None:
        """Finalize the open body, if any. The state falls back to its section."""
        if self._state == ExtractState.IN_RANGE:
            self._state = ExtractState.IN_FILE
        elif self._state == ExtractState.IN_GENERAL:
            self._state = ExtractState.SEEKING_FILE
        else:
            return

        while self._body and not self._body[-1].strip():
            self._body.pop()

        key = identity_key(self._file_path, self._start_line, self._end_line)
        if not self._body:
            self._errors.append(
                ParseIssue(
                    self._heading_number,
                    self._heading_text,
                    f"Empty annotation for {key}",
                    kind="validation",
                )
            )
            return

        self._pairs.append(
            ExtractedPair(
                key=key,
                text="\n".join(self._body),
                file_path=self._file_path,
                start_line=self._start_line,
                end_line=self._end_line,
                line_number=self._heading_number,
            )
        )
        self._body = []


def extract_document(text: str) -> ExtractResult:
    """Parse a rendered document into (key, text) pairs plus issues. Never raises."""
    return DocumentExtractor(text).extract()
