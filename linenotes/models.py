"""
linenotes - Immutable Data Models

Purpose: Define frozen dataclasses shared by the codec, renderer,
extractor and reconciler. None of these types touch the filesystem.
"""

from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional


# Reserved file path for general, file-less annotations
GENERAL_PATH = "/"

# Line sentinel used by general annotations for both bounds
GENERAL_LINE = 0


@dataclass(frozen=True)
class Annotation:
    """
    A free-text note bound to an inclusive line range of a project file.

    file_path is project-relative. GENERAL_PATH marks a general note, whose
    start_line and end_line are both GENERAL_LINE.

    raw holds the exact store line this annotation was decoded from. It is
    bookkeeping for line-based update/delete and does not take part in
    equality.
    """

    file_path: str
    start_line: int
    end_line: int
    text: str
    raw: str = field(default="", compare=False)
    start_column: Optional[int] = None
    end_column: Optional[int] = None

    @property
    def is_general(self) -> bool:
        return self.file_path == GENERAL_PATH

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def with_text(self, text: str) -> "Annotation":
        """Return a copy carrying new text. raw is kept for store matching."""
        return replace(self, text=text)


@dataclass(frozen=True)
class ParseIssue:
    """
    One rejected line from a decode or extract pass.

    kind is "decode" when the line does not match the grammar at all and
    "validation" when it matches but violates an invariant.
    """

    line_number: int
    raw_text: str
    reason: str
    kind: Literal["decode", "validation"] = "decode"

    def describe(self) -> str:
        return f"Line {self.line_number}: {self.reason}"


@dataclass(frozen=True)
class DecodeResult:
    """Records and issues from one pass over a canonical store."""

    records: List[Annotation]
    errors: List[ParseIssue]

    @property
    def success(self) -> bool:
        return not self.errors


def format_issues(issues: List[ParseIssue]) -> str:
    """Aggregate issues into one multi-line warning text."""
    return "\n".join(issue.describe() for issue in issues)
