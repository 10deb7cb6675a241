"""
linenotes - Side-car annotations for line ranges of project files.

Annotations live in a canonical, line-oriented store next to the project.
They can be rendered as an editable Markdown document and synchronized back.

Constraints:
- Annotated source files are never modified
- The canonical store is the only durable owner
- The rendered document is a disposable view
- Document sync updates text only (no inferred adds or deletes)
- Batch decode/extract never aborts on the first error

The store records. The document edits. The key matches them.
"""

from .models import GENERAL_PATH, Annotation, ParseIssue
from .keys import identity_key
from .codec import decode_file, decode_line, encode_file, encode_line
from .excerpt import format_excerpt
from .render import NO_ANNOTATIONS_PLACEHOLDER, render_document
from .extract import extract_document
from .reconcile import reconcile
from .store import AnnotationStore

__all__ = [
    "GENERAL_PATH",
    "Annotation",
    "ParseIssue",
    "identity_key",
    "decode_file",
    "decode_line",
    "encode_file",
    "encode_line",
    "format_excerpt",
    "NO_ANNOTATIONS_PLACEHOLDER",
    "render_document",
    "extract_document",
    "reconcile",
    "AnnotationStore",
]
