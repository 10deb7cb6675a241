"""
Annotation Store - File-backed canonical store.

Purpose: Persist annotations in one UTF-8 text file, one record per line
(see codec.py for the grammar).

Rules:
- Reads are best-effort: malformed lines are reported, never fatal
- Writes replace the whole file atomically (temp file + rename)
- A failed write leaves the store exactly as it was
- Update and delete match the stored line exactly (Annotation.raw)
- Lookups by key or line return the first match; collisions are not merged
"""

import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from .codec import decode_file, encode_file, encode_line
from .errors import AnnotationNotFoundError, RecordValidationError, StoreIOError
from .extract import is_heading
from .keys import key_for, validate_range
from .models import GENERAL_LINE, GENERAL_PATH, Annotation, DecodeResult, format_issues

logger = logging.getLogger(__name__)


class AnnotationStore:
    """
    Canonical store for one project.

    The file does not need to exist; a missing store reads as empty and is
    created by the first write.
    """

    def __init__(self, path: Path, columns: bool = False):
        """
        Initialize the store.

        Args:
            path: Store file path
            columns: Accept and keep "<line>,<column>" positions
        """
        self.path = Path(path)
        self.columns = columns

    # =========================================================================
    # Reading
    # =========================================================================

    def raw_content(self) -> str:
        """
        Raw store text, empty when the store does not exist yet.

        Raises:
            StoreIOError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StoreIOError(f"Failed to read note store {self.path}: {e}") from e

    def read(self) -> DecodeResult:
        """Decode the store into records and issues."""
        return decode_file(self.raw_content(), columns=self.columns)

    def load(self) -> List[Annotation]:
        """
        Decode the store and return well-formed annotations only.

        Rejected lines are logged as one aggregated warning.
        """
        result = self.read()
        if result.errors:
            logger.warning(
                f"Some notes in {self.path} could not be parsed:\n{format_issues(result.errors)}"
            )
        return result.records

    def annotations_for_file(self, file_path: str) -> List[Annotation]:
        return [a for a in self.load() if a.file_path == file_path]

    def find_at_line(self, file_path: str, line: int) -> Optional[Annotation]:
        """First annotation of file_path whose range contains line."""
        for annotation in self.load():
            if annotation.file_path == file_path and annotation.contains_line(line):
                return annotation
        return None

    def find_by_key(self, key: str) -> Optional[Annotation]:
        for annotation in self.load():
            if key_for(annotation) == key:
                return annotation
        return None

    # =========================================================================
    # Writing
    # =========================================================================

    def add(
        self,
        file_path: str,
        start_line: int,
        end_line: int,
        text: str,
        start_column: Optional[int] = None,
        end_column: Optional[int] = None,
    ) -> Annotation:
        """
        Append a new annotation.

        Raises:
            RecordValidationError: Empty path or text, or an invalid range
            StoreIOError: If the store cannot be read or written
        """
        annotation = Annotation(
            file_path=file_path.strip(),
            start_line=start_line,
            end_line=end_line,
            text=text,
            start_column=start_column if self.columns else None,
            end_column=end_column if self.columns else None,
        )
        self._validate(annotation)
        _warn_heading_lines(annotation)

        line = encode_line(annotation)
        content = self.raw_content()
        if content.strip():
            new_content = f"{content.rstrip()}\n{line}\n"
        else:
            new_content = f"{line}\n"

        self._write(new_content)
        logger.info(f"Added note {key_for(annotation)}")
        return replace(annotation, raw=line)

    def update(self, annotation: Annotation, new_text: str) -> Annotation:
        """
        Replace the text of the stored line matching annotation.

        Raises:
            AnnotationNotFoundError: If no store line matches
            RecordValidationError: If new_text is empty
            StoreIOError: If the store cannot be read or written
        """
        if not new_text.strip():
            raise RecordValidationError("Note text must not be empty")

        raw = self._stored_raw(annotation)
        replacement = annotation.with_text(new_text)
        _warn_heading_lines(replacement)
        new_line = encode_line(replacement)

        lines = self.raw_content().split("\n")
        updated = [new_line if line.strip() == raw else line for line in lines]
        self._write("\n".join(updated))

        logger.info(f"Updated note {key_for(annotation)}")
        return replace(replacement, raw=new_line)

    def delete(self, annotation: Annotation) -> None:
        """
        Remove the stored line matching annotation.

        Raises:
            AnnotationNotFoundError: If no store line matches
            StoreIOError: If the store cannot be read or written
        """
        raw = self._stored_raw(annotation)
        lines = self.raw_content().split("\n")
        self._write("\n".join(line for line in lines if line.strip() != raw))
        logger.info(f"Deleted note {key_for(annotation)}")

    def replace_all(self, annotations: Sequence[Annotation]) -> None:
        """
        Rewrite the whole store from annotations.

        Raises:
            StoreIOError: If the store cannot be written
        """
        self._write(encode_file(annotations))
        logger.info(f"Wrote {len(annotations)} note(s) to {self.path}")

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate(self, annotation: Annotation) -> None:
        spec = f"{annotation.start_line}-{annotation.end_line}"
        if not annotation.file_path:
            raise RecordValidationError("File path must not be empty")
        if not annotation.text.strip():
            raise RecordValidationError("Note text must not be empty")
        if annotation.is_general:
            if annotation.start_line != GENERAL_LINE or annotation.end_line != GENERAL_LINE:
                raise RecordValidationError(f"General annotations must use line 0: {spec}")
            return
        validate_range(annotation.start_line, annotation.end_line, spec)

    def _stored_raw(self, annotation: Annotation) -> str:
        """
        The exact stored line for annotation.

        Annotations that were not decoded from this store (empty raw) are
        resolved to the first stored annotation with the same key.
        """
        raw = annotation.raw.strip()
        if not raw:
            match = self.find_by_key(key_for(annotation))
            if match is None:
                raise AnnotationNotFoundError(f"Note not found: {key_for(annotation)}")
            return match.raw.strip()

        for line in self.raw_content().split("\n"):
            if line.strip() == raw:
                return raw
        raise AnnotationNotFoundError(f"Note not found in store: {raw}")

    def _write(self, content: str) -> None:
        try:
            write_text_atomic(self.path, content)
        except OSError as e:
            raise StoreIOError(f"Failed to write note store {self.path}: {e}") from e


def _warn_heading_lines(annotation: Annotation) -> None:
    """Log note lines the document extractor would read as headings."""
    headings = [line for line in annotation.text.split("\n") if is_heading(line)]
    if headings:
        logger.warning(
            f"Note {key_for(annotation)} has {len(headings)} line(s) that read as document "
            f"headings and will be cut off on document sync: {headings[0]!r}"
        )


def general_annotation(text: str) -> Annotation:
    """A general, file-less annotation carrying text."""
    return Annotation(file_path=GENERAL_PATH, start_line=GENERAL_LINE, end_line=GENERAL_LINE, text=text)


def write_text_atomic(path: Path, content: str) -> None:
    """
    Replace path with content via a temp file in the same directory.

    Raises:
        OSError: The original file is untouched and no temp file is left behind
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
