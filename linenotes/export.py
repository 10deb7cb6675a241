"""
Note Export - deterministic, read-only export formats.

Exports never touch the store. Same annotations -> byte-identical output.

Formats:
- JSON: list of records with explicit field order
- LLM Markdown: renderer output without preamble, plain "## General" heading
- Raw: the store text itself (see AnnotationStore.raw_content)
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from .models import Annotation
from .render import ExcerptSource, document_order, render_document


def annotation_to_dict(annotation: Annotation) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "filePath": annotation.file_path,
        "startLine": annotation.start_line,
        "endLine": annotation.end_line,
        "comment": annotation.text,
    }
    if annotation.start_column is not None:
        record["startColumn"] = annotation.start_column
    if annotation.end_column is not None:
        record["endColumn"] = annotation.end_column
    return record


def export_json(annotations: Sequence[Annotation]) -> List[Dict[str, Any]]:
    return [annotation_to_dict(a) for a in document_order(annotations)]


def export_json_text(annotations: Sequence[Annotation]) -> str:
    return json.dumps(export_json(annotations), indent=2, ensure_ascii=False)


def export_llm_markdown(
    annotations: Sequence[Annotation], excerpt_source: Optional[ExcerptSource] = None
) -> str:
    return render_document(annotations, excerpt_source, for_llm=True)
