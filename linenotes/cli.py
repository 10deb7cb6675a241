#!/usr/bin/env python3
"""
linenotes CLI - Thin entrypoint for note store operations.

Commands:
- list:    Show stored notes
- add:     Add a note to a file range (or a general note with path "/")
- update:  Replace the text of a note by key
- delete:  Remove a note by key
- render:  Render the store to the Markdown document (or stdout)
- sync:    Apply edits from the Markdown document back to the store
- export:  Print the notes as JSON, Markdown, LLM Markdown or raw store text
- check:   Report malformed store lines

Design Principles:
==================
- CLI is a dispatcher only
- No store logic inside CLI
- Surface errors verbatim from the store and sync layers
- Exit non-zero on failure

Exit Codes:
===========
- 0: Success
- 1: Validation error or parse issues reported
- 2: Note not found
- 4: System error (unreadable store/document/config, permissions, etc.)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .errors import (
    AnnotationNotFoundError,
    DocumentIOError,
    RecordValidationError,
    SettingsError,
    StoreIOError,
    SyncError,
)
from .excerpt import FileExcerptSource
from .export import export_json_text, export_llm_markdown
from .keys import key_for, parse_line_spec
from .models import GENERAL_LINE, GENERAL_PATH, format_issues
from .render import render_document, render_document_file
from .settings import NotesSettings, load_settings
from .store import AnnotationStore
from .sync import DocumentSync

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_NOT_FOUND = 2
EXIT_SYSTEM = 4


def _fail(message: str, code: int) -> NoReturn:
    print(f"ERROR: {message}", file=sys.stderr)
    sys.exit(code)


def _settings(args: argparse.Namespace) -> NotesSettings:
    config = Path(args.config) if args.config else None
    try:
        return load_settings(Path(args.root), config)
    except SettingsError as e:
        _fail(str(e), EXIT_SYSTEM)


def _store(args: argparse.Namespace) -> AnnotationStore:
    settings = _settings(args)
    return AnnotationStore(
        settings.resolve_store_path(Path(args.root)), columns=settings.track_columns
    )


def _summary(text: str) -> str:
    first = text.split("\n", 1)[0]
    return first if first == text else f"{first} ..."


def cmd_list(args: argparse.Namespace) -> NoReturn:
    """
    Print one line per note: key, then the first line of its text.

    Exit codes:
        0: Listed (store may be empty)
        4: Store unreadable
    """
    store = _store(args)
    try:
        annotations = store.annotations_for_file(args.file) if args.file else store.load()
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    for annotation in annotations:
        print(f"{key_for(annotation)}\t{_summary(annotation.text)}")
    sys.exit(EXIT_OK)


def cmd_add(args: argparse.Namespace) -> NoReturn:
    """
    Add a note.

    Exit codes:
        0: Added
        1: Invalid range or empty text
        4: Store unreadable or unwritable
    """
    store = _store(args)
    try:
        if args.file == GENERAL_PATH:
            start_line = end_line = GENERAL_LINE
        else:
            start_line, end_line = parse_line_spec(args.lines)
        annotation = store.add(args.file, start_line, end_line, args.text)
    except RecordValidationError as e:
        _fail(str(e), EXIT_VALIDATION)
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    print(f"✓ Added {key_for(annotation)}")
    sys.exit(EXIT_OK)


def cmd_update(args: argparse.Namespace) -> NoReturn:
    """
    Replace the text of the first note with the given key.

    Exit codes:
        0: Updated
        1: Empty text
        2: Key not found
        4: Store unreadable or unwritable
    """
    store = _store(args)
    try:
        annotation = store.find_by_key(args.key)
        if annotation is None:
            _fail(f"Note not found: {args.key}", EXIT_NOT_FOUND)
        store.update(annotation, args.text)
    except RecordValidationError as e:
        _fail(str(e), EXIT_VALIDATION)
    except AnnotationNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    print(f"✓ Updated {args.key}")
    sys.exit(EXIT_OK)


def cmd_delete(args: argparse.Namespace) -> NoReturn:
    """
    Delete the first note with the given key.

    Exit codes:
        0: Deleted
        2: Key not found
        4: Store unreadable or unwritable
    """
    store = _store(args)
    try:
        annotation = store.find_by_key(args.key)
        if annotation is None:
            _fail(f"Note not found: {args.key}", EXIT_NOT_FOUND)
        store.delete(annotation)
    except AnnotationNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    print(f"✓ Deleted {args.key}")
    sys.exit(EXIT_OK)


def cmd_render(args: argparse.Namespace) -> NoReturn:
    """
    Render the store to the configured document, or to stdout with --stdout.

    Exit codes:
        0: Rendered
        4: Store unreadable or document unwritable
    """
    root = Path(args.root)
    settings = _settings(args)
    sync = DocumentSync.from_settings(root, settings)

    try:
        if args.stdout:
            print(
                render_document_file(
                    sync.store.load(),
                    sync.excerpt_source,
                    show_preamble=settings.show_preamble,
                    sync_mode=settings.sync_mode,
                )
            )
        else:
            path = sync.generate()
            print(f"✓ Rendered notes to {path}")
    except (StoreIOError, DocumentIOError) as e:
        _fail(str(e), EXIT_SYSTEM)
    sys.exit(EXIT_OK)


def cmd_sync(args: argparse.Namespace) -> NoReturn:
    """
    Apply the document to the store.

    Exit codes:
        0: Synced without issues (including "nothing changed")
        1: Document issues reported, or store has unparsed lines
        4: Store or document unreadable/unwritable
    """
    root = Path(args.root)
    sync = DocumentSync.from_settings(root, _settings(args))

    try:
        report = sync.sync_from_document()
    except SyncError as e:
        _fail(str(e), EXIT_VALIDATION)
    except (StoreIOError, DocumentIOError) as e:
        _fail(str(e), EXIT_SYSTEM)

    if report.applied:
        print(f"✓ Synced {sync.document_path} ({report.mode}): {report.note_count} note(s)")
        for key in report.updated_keys:
            print(f"  updated {key}")
    else:
        print(f"No changes from {sync.document_path}")
    for key in report.unmatched:
        print(f"  ignored {key} (not in store)")
    for warning in report.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)

    if report.errors:
        print(f"✗ {len(report.errors)} issue(s) in document:", file=sys.stderr)
        print(format_issues(report.errors), file=sys.stderr)
        sys.exit(EXIT_VALIDATION)
    sys.exit(EXIT_OK)


def cmd_export(args: argparse.Namespace) -> NoReturn:
    """
    Print the notes in the requested format.

    Exit codes:
        0: Exported
        4: Store unreadable
    """
    root = Path(args.root)
    settings = _settings(args)
    store = AnnotationStore(settings.resolve_store_path(root), columns=settings.track_columns)
    excerpt_source = FileExcerptSource(root) if settings.include_code and not args.no_code else None

    try:
        if args.format == "raw":
            print(store.raw_content(), end="")
            sys.exit(EXIT_OK)

        annotations = store.load()
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    if args.format == "json":
        print(export_json_text(annotations))
    elif args.format == "llm":
        print(export_llm_markdown(annotations, excerpt_source))
    else:
        print(render_document(annotations, excerpt_source))
    sys.exit(EXIT_OK)


def cmd_check(args: argparse.Namespace) -> NoReturn:
    """
    Validate every store line.

    Exit codes:
        0: All lines parse
        1: At least one line was rejected
        4: Store unreadable
    """
    store = _store(args)
    try:
        result = store.read()
    except StoreIOError as e:
        _fail(str(e), EXIT_SYSTEM)

    if result.errors:
        print(f"✗ {len(result.errors)} malformed line(s) in {store.path}:", file=sys.stderr)
        print(format_issues(result.errors), file=sys.stderr)
        sys.exit(EXIT_VALIDATION)

    print(f"✓ {store.path}: {len(result.records)} note(s)")
    sys.exit(EXIT_OK)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linenotes",
        description="Side-car notes for line ranges of project files",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Project root (default: current directory)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Settings JSON file (default: <root>/.notes/config.json)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    parser_list = subparsers.add_parser("list", help="List stored notes")
    parser_list.add_argument("--file", default=None, help="Only notes for this project-relative path")
    parser_list.set_defaults(func=cmd_list)

    parser_add = subparsers.add_parser("add", help="Add a note")
    parser_add.add_argument("file", help='Project-relative path, or "/" for a general note')
    parser_add.add_argument("lines", help='Line spec: "10" or "10-20" (ignored for "/")')
    parser_add.add_argument("text", help="Note text")
    parser_add.set_defaults(func=cmd_add)

    parser_update = subparsers.add_parser("update", help="Replace a note's text")
    parser_update.add_argument("key", help='Note key, e.g. "src/app.py#L10-20"')
    parser_update.add_argument("text", help="New note text")
    parser_update.set_defaults(func=cmd_update)

    parser_delete = subparsers.add_parser("delete", help="Delete a note")
    parser_delete.add_argument("key", help='Note key, e.g. "src/app.py#L10-20"')
    parser_delete.set_defaults(func=cmd_delete)

    parser_render = subparsers.add_parser("render", help="Render notes to the Markdown document")
    parser_render.add_argument("--stdout", action="store_true", help="Print instead of writing the document")
    parser_render.set_defaults(func=cmd_render)

    parser_sync = subparsers.add_parser("sync", help="Apply Markdown document edits to the store")
    parser_sync.set_defaults(func=cmd_sync)

    parser_export = subparsers.add_parser("export", help="Print notes in an export format")
    parser_export.add_argument(
        "--format",
        choices=("json", "markdown", "llm", "raw"),
        default="json",
        help="Export format (default: json)",
    )
    parser_export.add_argument("--no-code", action="store_true", help="Omit source excerpts")
    parser_export.set_defaults(func=cmd_export)

    parser_check = subparsers.add_parser("check", help="Report malformed store lines")
    parser_check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    args.func(args)


if __name__ == "__main__":
    main()
