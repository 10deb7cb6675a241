"""
Document Sync - render the store to a document and apply document edits back.

One DocumentSync per store. It owns the in-flight guard:
- generate() and sync_from_document() are serialized by one lock, so a second
  request waits for the first to finish instead of interleaving with its
  read-modify-write of the store
- while a sync writes the store, change notifications for the store file are
  ignored; while generate() writes the document, notifications for the
  document are ignored. Neither write can re-trigger itself.

Sync modes:
- "update": extractor + reconciler. Text edits only, keys never added or removed
- "rewrite": the store is replaced by the annotations found in the document.
  Any extract issue aborts the sync without writing.

Both modes raise SyncError while the store has unparsed lines.

The store is always rewritten wholesale, never patched line by line.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import DocumentIOError, SyncError
from .excerpt import FileExcerptSource
from .extract import ExtractedPair, ExtractResult, extract_document
from .keys import key_for
from .models import GENERAL_PATH, Annotation, DecodeResult, ParseIssue, format_issues
from .reconcile import map_general_section, reconcile
from .render import ExcerptSource, document_order, render_document_file
from .settings import NotesSettings
from .store import AnnotationStore, general_annotation, write_text_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    """
    Outcome of one document sync.

    Attributes:
        mode: "update" or "rewrite"
        applied: True when the store was written
        changed: True when annotation content differs from the store
        updated_keys: Keys whose text changed ("update" mode)
        note_count: Annotations in the store after the sync
        errors: Extract issues; callers must surface these
        unmatched: Document keys absent from the store ("update" mode)
        warnings: Edits that could not be applied
    """

    mode: str
    applied: bool
    changed: bool
    note_count: int
    updated_keys: List[str] = field(default_factory=list)
    errors: List[ParseIssue] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class DocumentSync:
    """Keeps one canonical store and its rendered document in step."""

    def __init__(
        self,
        store: AnnotationStore,
        document_path: Path,
        excerpt_source: Optional[ExcerptSource] = None,
        show_preamble: bool = True,
        sync_mode: str = "update",
    ):
        if sync_mode not in ("update", "rewrite"):
            raise ValueError(f"Invalid sync_mode: {sync_mode}. Must be 'update' or 'rewrite'.")

        self.store = store
        self.document_path = Path(document_path)
        self.excerpt_source = excerpt_source
        self.show_preamble = show_preamble
        self.sync_mode = sync_mode

        self._lock = threading.Lock()
        self._writing_store = threading.Event()
        self._writing_document = threading.Event()

    @classmethod
    def from_settings(cls, project_root: Path, settings: NotesSettings) -> "DocumentSync":
        project_root = Path(project_root)
        store = AnnotationStore(
            settings.resolve_store_path(project_root), columns=settings.track_columns
        )
        return cls(
            store=store,
            document_path=settings.resolve_document_path(project_root),
            excerpt_source=FileExcerptSource(project_root) if settings.include_code else None,
            show_preamble=settings.show_preamble,
            sync_mode=settings.sync_mode,
        )

    # =========================================================================
    # Change notifications
    # =========================================================================

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def notify_store_changed(self, path: Path) -> bool:
        """
        Report a change of the store file.

        Returns:
            False when the change is the sync's own write-back and must be
            ignored, True when the caller should refresh its views
        """
        if self._is_same(path, self.store.path) and self._writing_store.is_set():
            logger.debug(f"Ignoring own write to {path}")
            return False
        return True

    def notify_document_changed(self, path: Path) -> Optional[SyncReport]:
        """
        Report a change of the document file and sync it into the store.

        Returns:
            The SyncReport, or None when the change was ignored
        """
        if not self._is_same(path, self.document_path):
            return None
        if self._writing_document.is_set():
            logger.debug(f"Ignoring own write to {path}")
            return None
        return self.sync_from_document()

    # =========================================================================
    # Operations
    # =========================================================================

    def generate(self) -> Path:
        """
        Render the store into the document file.

        Raises:
            StoreIOError: If the store cannot be read
            DocumentIOError: If the document cannot be written
        """
        with self._lock:
            annotations = self.store.load()
            content = render_document_file(
                annotations,
                self.excerpt_source,
                show_preamble=self.show_preamble,
                sync_mode=self.sync_mode,
            )
            with self._flag(self._writing_document):
                try:
                    write_text_atomic(self.document_path, content)
                except OSError as e:
                    raise DocumentIOError(f"Failed to write document {self.document_path}: {e}") from e

        logger.info(f"Rendered {len(annotations)} note(s) to {self.document_path}")
        return self.document_path

    def sync_from_document(self) -> SyncReport:
        """
        Apply the document's content to the store.

        A missing document is a no-op.

        Raises:
            DocumentIOError: If the document cannot be read
            StoreIOError: If the store cannot be read or written
            SyncError: If the store holds lines that a wholesale rewrite would drop
        """
        with self._lock:
            text = self._read_document()
            if text is None:
                return SyncReport(mode=self.sync_mode, applied=False, changed=False, note_count=0)

            extracted = extract_document(text)
            if extracted.errors:
                logger.warning(
                    f"Some notes in {self.document_path} could not be parsed:\n"
                    f"{format_issues(extracted.errors)}"
                )

            if self.sync_mode == "rewrite":
                return self._rewrite(extracted)
            return self._update(extracted)

    # =========================================================================
    # Internals
    # =========================================================================

    def _read_store(self) -> DecodeResult:
        current = self.store.read()
        if current.errors:
            raise SyncError(
                f"Note store {self.store.path} has {len(current.errors)} unparsed line(s); "
                f"fix them before syncing:\n{format_issues(current.errors)}"
            )
        return current

    def _update(self, extracted: ExtractResult) -> SyncReport:
        current = self._read_store()

        result = reconcile(current.records, extracted.pairs)
        if result.changed:
            self._write_store(result.updated)
            logger.info(f"Updated {len(result.updated_keys)} note(s) from {self.document_path}")

        return SyncReport(
            mode="update",
            applied=result.changed,
            changed=result.changed,
            note_count=len(result.updated),
            updated_keys=result.updated_keys,
            errors=extracted.errors,
            unmatched=result.unmatched,
            warnings=result.warnings,
        )

    def _rewrite(self, extracted: ExtractResult) -> SyncReport:
        current = self._read_store()
        if extracted.errors:
            logger.error(f"Document has {len(extracted.errors)} issue(s); store left unchanged")
            return SyncReport(
                mode="rewrite",
                applied=False,
                changed=False,
                note_count=len(current.records),
                errors=extracted.errors,
            )

        annotations = rewrite_annotations(current.records, extracted.pairs)
        changed = annotations != document_order(current.records)
        if changed:
            self._write_store(annotations)
            logger.info(f"Updated notes from {self.document_path}: {len(annotations)} note(s)")

        return SyncReport(
            mode="rewrite",
            applied=changed,
            changed=changed,
            note_count=len(annotations),
        )

    def _write_store(self, annotations: List[Annotation]) -> None:
        with self._flag(self._writing_store):
            self.store.replace_all(annotations)

    def _read_document(self) -> Optional[str]:
        if not self.document_path.exists():
            logger.debug(f"No document at {self.document_path}; nothing to sync")
            return None
        try:
            return self.document_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentIOError(f"Failed to read document {self.document_path}: {e}") from e

    @staticmethod
    @contextmanager
    def _flag(event: threading.Event) -> Iterator[None]:
        event.set()
        try:
            yield
        finally:
            event.clear()

    @staticmethod
    def _is_same(a: Path, b: Path) -> bool:
        return Path(a).resolve() == Path(b).resolve()


def rewrite_annotations(
    current: Sequence[Annotation], pairs: Sequence[ExtractedPair]
) -> List[Annotation]:
    """
    The store content a full-rewrite sync produces from the document's pairs.

    The general section maps back onto the current general annotations when
    it still splits into one block each; otherwise every general section
    becomes one annotation. Pairs whose key is already stored keep that
    annotation's columns, matched by occurrence. General annotations come
    first and the rest keep document order, so an unedited document yields
    document_order(current).
    """
    general = [annotation for annotation in current if annotation.is_general]
    general_texts = [pair.text for pair in pairs if pair.file_path == GENERAL_PATH]

    mapped = None
    if general and general_texts:
        mapped = map_general_section(general, general_texts)
    if mapped is None:
        mapped = general_texts
    annotations = [general_annotation(text) for text in mapped]

    stored: Dict[str, List[Annotation]] = {}
    for annotation in document_order(current):
        if not annotation.is_general:
            stored.setdefault(key_for(annotation), []).append(annotation)

    for pair in pairs:
        if pair.file_path == GENERAL_PATH:
            continue
        matches = stored.get(pair.key)
        if matches:
            annotations.append(matches.pop(0).with_text(pair.text))
        else:
            annotations.append(pair.to_annotation())
    return annotations
