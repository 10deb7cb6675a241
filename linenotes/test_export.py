"""
Tests for note export formats.
"""

import json

from linenotes.export import annotation_to_dict, export_json, export_json_text, export_llm_markdown
from linenotes.models import Annotation


class TestExportJson:
    """Test JSON export."""

    def test_field_names(self):
        assert annotation_to_dict(Annotation("a.py", 1, 2, "x")) == {
            "filePath": "a.py",
            "startLine": 1,
            "endLine": 2,
            "comment": "x",
        }

    def test_columns_included_when_present(self):
        record = annotation_to_dict(Annotation("a.py", 1, 2, "x", start_column=3, end_column=7))
        assert (record["startColumn"], record["endColumn"]) == (3, 7)

    def test_order_general_first(self):
        annotations = [
            Annotation("b.py", 1, 1, "b"),
            Annotation("a.py", 9, 9, "a9"),
            Annotation("a.py", 2, 2, "a2"),
            Annotation("/", 0, 0, "g"),
        ]
        assert [r["comment"] for r in export_json(annotations)] == ["g", "a2", "a9", "b"]

    def test_text_is_valid_unicode_json(self):
        text = export_json_text([Annotation("a.py", 1, 1, "naïve \"quote\"\nline")])

        assert "naïve" in text
        assert json.loads(text)[0]["comment"] == 'naïve "quote"\nline'

    def test_deterministic(self):
        annotations = [Annotation("b.py", 1, 1, "b"), Annotation("a.py", 1, 1, "a")]
        assert export_json_text(annotations) == export_json_text(list(reversed(annotations)))


class TestExportLlmMarkdown:
    """Test LLM Markdown export."""

    def test_plain_general_heading_no_preamble(self):
        text = export_llm_markdown([Annotation("/", 0, 0, "g"), Annotation("a.py", 1, 1, "x")])

        assert text.startswith("## General\n\ng\n")
        assert "<!--" not in text

    def test_with_excerpts(self):
        text = export_llm_markdown([Annotation("a.py", 1, 1, "x")], {"a.py": ["  code"]}.get)
        assert "> 1: code" in text
