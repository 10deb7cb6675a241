"""
Tests for the Record Codec

Validates:
- Single-line and range records decode to the right annotation
- Escaping survives encode -> decode (quote, backslash, newline)
- Malformed lines are collected with 1-based line numbers, never raised
- Range validation (non-positive lines, start > end) is reported, not fixed
- General notes and the extended column variant
"""

import pytest

from linenotes.codec import decode_file, decode_line, encode_file, encode_line, unescape_text
from linenotes.errors import RecordValidationError
from linenotes.models import Annotation


class TestDecodeLine:
    """Test decode_line()."""

    def test_decode_single_line(self):
        """A single line number sets both bounds."""
        line = 'src/app.py#L10 "check the loop bound"'
        annotation = decode_line(line)

        assert annotation == Annotation("src/app.py", 10, 10, "check the loop bound")
        assert annotation.raw == line

    def test_decode_range(self):
        """A range spec sets start and end."""
        annotation = decode_line('src/app.py#L10-20 "whole block"')

        assert annotation.start_line == 10
        assert annotation.end_line == 20
        assert annotation.text == "whole block"

    def test_decode_accepts_trailing_whitespace(self):
        """Whitespace after the closing quote is ignored."""
        annotation = decode_line('a.py#L1 "x"   ')
        assert annotation == Annotation("a.py", 1, 1, "x")

    def test_decode_unescapes_text(self):
        """Escaped newline, quote and backslash are restored."""
        annotation = decode_line('a.py#L1 "say \\"hi\\"\\nC:\\\\tmp"')
        assert annotation.text == 'say "hi"\nC:\\tmp'

    def test_non_matching_line_returns_none(self):
        """Lines outside the grammar decode to None."""
        assert decode_line("just some text") is None
        assert decode_line('a.py:10 "old separator"') is None
        assert decode_line("a.py#L10 missing quotes") is None
        assert decode_line('a.py#L1-2-3 "x"') is None

    def test_start_after_end_is_validation_error(self):
        """Bounds are never swapped silently."""
        with pytest.raises(RecordValidationError) as exc_info:
            decode_line('f#L20-10 "x"')
        assert "start > end" in exc_info.value.reason

    def test_zero_line_is_validation_error(self):
        """Line 0 is reserved for general notes."""
        with pytest.raises(RecordValidationError) as exc_info:
            decode_line('a.py#L0 "x"')
        assert "must be positive" in exc_info.value.reason

    def test_negative_line_is_validation_error(self):
        """Negative line numbers are rejected as non-positive."""
        with pytest.raises(RecordValidationError) as exc_info:
            decode_line('a.py#L-3 "x"')
        assert "must be positive" in exc_info.value.reason

    def test_decode_general_note(self):
        """The "/" path with line 0 is a general note."""
        annotation = decode_line('/#L0 "project-wide"')

        assert annotation.is_general
        assert annotation.start_line == 0
        assert annotation.end_line == 0

    def test_general_note_with_line_is_validation_error(self):
        """General notes must use the 0 sentinel."""
        with pytest.raises(RecordValidationError):
            decode_line('/#L5 "x"')

    def test_unknown_escape_is_kept_verbatim(self):
        """Only \\n, \\" and \\\\ are escapes."""
        annotation = decode_line('a.py#L1 "tab\\there"')
        assert annotation.text == "tab\\there"


class TestColumnVariant:
    """Test the extended <line>,<column> positions."""

    def test_decode_columns(self):
        """Columns are carried into start_column and end_column."""
        annotation = decode_line('a.py#L7,10-8,12 "x"', columns=True)

        assert (annotation.start_line, annotation.start_column) == (7, 10)
        assert (annotation.end_line, annotation.end_column) == (8, 12)

    def test_single_position_with_column(self):
        """A single position sets both columns."""
        annotation = decode_line('a.py#L7,3 "x"', columns=True)

        assert annotation.start_line == annotation.end_line == 7
        assert annotation.start_column == annotation.end_column == 3

    def test_columns_rejected_without_flag(self):
        """The plain variant does not accept column positions."""
        assert decode_line('a.py#L7,10 "x"') is None

    def test_plain_spec_still_accepted_with_flag(self):
        """Column positions are optional in the extended variant."""
        annotation = decode_line('a.py#L7-9 "x"', columns=True)
        assert annotation == Annotation("a.py", 7, 9, "x")

    def test_columns_round_trip(self):
        """Encoding keeps the column suffix."""
        line = 'a.py#L7,10-8,12 "x"'
        assert encode_line(decode_line(line, columns=True)) == line


class TestEncodeLine:
    """Test encode_line()."""

    def test_single_line_range_collapses(self):
        """start == end encodes as one number."""
        assert encode_line(Annotation("a.py", 5, 5, "x")) == 'a.py#L5 "x"'

    def test_range_encodes_both_bounds(self):
        assert encode_line(Annotation("a.py", 5, 9, "x")) == 'a.py#L5-9 "x"'

    def test_escapes_backslash_quote_newline(self):
        """Backslash, quote and newline are escaped."""
        annotation = Annotation("a.py", 3, 3, 'q"\\\n')
        assert encode_line(annotation) == 'a.py#L3 "q\\"\\\\\\n"'

    def test_round_trip_with_all_escapes(self):
        """A quote, a backslash and an embedded newline survive unchanged."""
        annotation = Annotation("src/x.py", 1, 4, 'He said "hi"\\ and C:\\new\nsecond line')
        assert decode_line(encode_line(annotation)) == annotation

    def test_round_trip_backslash_before_n(self):
        """A literal backslash followed by "n" is not read back as a newline."""
        annotation = Annotation("a.py", 1, 1, "path\\nope")
        decoded = decode_line(encode_line(annotation))

        assert decoded.text == "path\\nope"
        assert "\n" not in decoded.text

    def test_round_trip_general(self):
        annotation = Annotation("/", 0, 0, "general\nnote")
        assert decode_line(encode_line(annotation)) == annotation


class TestDecodeFile:
    """Test decode_file()."""

    def test_collects_errors_with_line_numbers(self):
        """One malformed line among three good ones: 3 records, 1 error."""
        content = 'a.py#L1 "x"\n\nthis is not a note\nb.py#L2 "y"\nc.py#L3-4 "z"\n'
        result = decode_file(content)

        assert len(result.records) == 3
        assert len(result.errors) == 1
        assert result.errors[0].line_number == 3
        assert result.errors[0].raw_text == "this is not a note"
        assert result.errors[0].reason == "Invalid format"
        assert result.errors[0].kind == "decode"
        assert not result.success

    def test_validation_errors_are_collected(self):
        """Validation failures become issues of kind "validation"."""
        result = decode_file('a.py#L1 "x"\nf#L20-10 "x"\n')

        assert len(result.records) == 1
        assert result.errors[0].line_number == 2
        assert result.errors[0].kind == "validation"
        assert "start > end" in result.errors[0].reason

    def test_blank_and_whitespace_lines_skipped(self):
        """Blank lines are neither records nor errors, but still count for numbering."""
        result = decode_file('\n   \n\t\na.py#L1 "x"\nbroken\n\n')

        assert result.records == [Annotation("a.py", 1, 1, "x")]
        assert [e.line_number for e in result.errors] == [5]

    def test_empty_content(self):
        result = decode_file("")

        assert result.records == []
        assert result.errors == []
        assert result.success

    def test_file_round_trip(self):
        """encode_file output decodes back to the same list."""
        annotations = [
            Annotation("/", 0, 0, "general"),
            Annotation("src/a.py", 1, 1, 'multi\nline "quoted"'),
            Annotation("src/b.py", 4, 9, "back\\slash"),
        ]
        result = decode_file(encode_file(annotations))

        assert result.records == annotations
        assert result.errors == []

    def test_encode_file_empty(self):
        assert encode_file([]) == ""

    def test_encode_file_trailing_newline(self):
        assert encode_file([Annotation("a.py", 1, 1, "x")]) == 'a.py#L1 "x"\n'


def test_unescape_is_single_pass():
    """An escaped backslash never starts another escape."""
    assert unescape_text("\\\\n") == "\\n"
    assert unescape_text("\\\\\\n") == "\\\n"
