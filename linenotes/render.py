"""
Document Renderer - canonical annotations as an editable Markdown document.

Layout (deterministic: same annotations and files -> byte-identical output):

    ## / (General Notes)

    <general text>

    ## [src/app.py](src/app.py)

    ### [L10-12](src/app.py#L10-12)

    > 10: def main():
    > 11:     run()

    <annotation text>

The general section comes first. File sections follow in lexicographic path
order, annotations within a file in start-line order (stable for ties). The
range anchor target is the identity key, which the extractor reads back.
"""

from datetime import datetime
from itertools import groupby
from typing import Callable, Dict, List, Optional, Sequence

from .excerpt import format_excerpt
from .keys import format_line_spec, key_for
from .models import GENERAL_PATH, Annotation


ExcerptSource = Callable[[str], Optional[Sequence[str]]]

NO_ANNOTATIONS_PLACEHOLDER = "*No notes found*"

GENERAL_HEADING = "## / (General Notes)"
GENERAL_HEADING_LLM = "## General"

EXCERPT_PREFIX = "> "

_PREAMBLE_UPDATE = [
    "You can edit note text directly in this file.",
    "- Change the text under any ### heading; headings identify the note",
    '- Text under "## / (General Notes)" is the project-wide note',
    "- Save the file to apply the changes to the note store",
]

_PREAMBLE_REWRITE = [
    "You can fully edit as markdown!",
    "- Edit existing notes, add new notes, delete notes, or change line numbers",
    '- Use "## /" for general notes (project-wide or cross-file topics)',
    "- Save the file to apply all changes",
]


def file_heading(file_path: str) -> str:
    return f"## [{file_path}]({file_path})"


def range_heading(annotation: Annotation) -> str:
    spec = format_line_spec(annotation.start_line, annotation.end_line)
    return f"### [L{spec}]({key_for(annotation)})"


def document_order(annotations: Sequence[Annotation]) -> List[Annotation]:
    """Rendered order: general first, then by path, then by start line (stable)."""
    return sorted(
        annotations,
        key=lambda a: (a.file_path != GENERAL_PATH, a.file_path, a.start_line),
    )


def _group_by_file(annotations: Sequence[Annotation]) -> Dict[str, List[Annotation]]:
    ordered = sorted(annotations, key=lambda a: a.file_path)
    return {path: list(group) for path, group in groupby(ordered, key=lambda a: a.file_path)}


def _excerpt_lines(
    file_lines: Optional[Sequence[str]], annotation: Annotation
) -> List[str]:
    if not file_lines:
        return []
    return [
        f"{EXCERPT_PREFIX}{line}"
        for line in format_excerpt(file_lines, annotation.start_line, annotation.end_line)
    ]


def render_document(
    annotations: Sequence[Annotation],
    excerpt_source: Optional[ExcerptSource] = None,
    for_llm: bool = False,
) -> str:
    """
    Render annotations as Markdown.

    Args:
        annotations: Canonical annotations, any order
        excerpt_source: Optional callable returning a file's lines by path;
            None or a None result means no excerpts for that file
        for_llm: Use the plain "## General" heading for the general section

    Returns:
        The document text without a trailing blank line, or
        NO_ANNOTATIONS_PLACEHOLDER when there are no annotations
    """
    if not annotations:
        return NO_ANNOTATIONS_PLACEHOLDER

    groups = _group_by_file(annotations)
    sections: List[str] = []

    general = groups.pop(GENERAL_PATH, None)
    if general:
        sections.append(GENERAL_HEADING_LLM if for_llm else GENERAL_HEADING)
        sections.append("")
        for annotation in general:
            sections.append(annotation.text)
            sections.append("")

    for file_path, file_annotations in groups.items():
        file_lines = excerpt_source(file_path) if excerpt_source is not None else None

        sections.append(file_heading(file_path))
        sections.append("")

        for annotation in sorted(file_annotations, key=lambda a: a.start_line):
            sections.append(range_heading(annotation))
            sections.append("")

            excerpt = _excerpt_lines(file_lines, annotation)
            if excerpt:
                sections.extend(excerpt)
                sections.append("")

            sections.append(annotation.text)
            sections.append("")

    while sections and sections[-1] == "":
        sections.pop()

    return "\n".join(sections)


def render_preamble(generated_at: datetime, sync_mode: str = "update") -> str:
    """HTML comment with editing instructions. The extractor skips it."""
    instructions = _PREAMBLE_REWRITE if sync_mode == "rewrite" else _PREAMBLE_UPDATE
    lines = ["<!--"]
    lines.extend(instructions)
    lines.append("")
    lines.append(f"Generated: {generated_at.isoformat(timespec='seconds')}")
    lines.append("-->")
    return "\n".join(lines)


def render_document_file(
    annotations: Sequence[Annotation],
    excerpt_source: Optional[ExcerptSource] = None,
    show_preamble: bool = True,
    sync_mode: str = "update",
    generated_at: Optional[datetime] = None,
) -> str:
    """Full document file content: optional preamble, then the rendered body."""
    body = render_document(annotations, excerpt_source)
    if not show_preamble:
        return body

    if generated_at is None:
        generated_at = datetime.now().astimezone()
    return f"{render_preamble(generated_at, sync_mode)}\n\n{body}"
