"""
linenotes CLI Tests

Test Coverage:
--------------
1. add / list / update / delete round through the store file
2. render to the document and to stdout
3. sync applies document edits
4. export formats
5. check reports malformed store lines
6. Exit codes for validation, not-found and config errors
"""

import json

import pytest

from linenotes.cli import EXIT_NOT_FOUND, EXIT_OK, EXIT_SYSTEM, EXIT_VALIDATION, main
from linenotes.settings import CONFIG_ENV_VAR


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_env_override(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def project(tmp_path):
    """A project with one source file."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text(
        "def main():\n    run()\n    stop()\n", encoding="utf-8"
    )
    return tmp_path


def run_cli(project, *argv):
    """Run main() and return its exit code."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--root", str(project), *argv])
    return exc_info.value.code


def store_text(project):
    return (project / ".notes" / "data.txt").read_text(encoding="utf-8")


# =============================================================================
# Store Commands
# =============================================================================

class TestStoreCommands:
    """add, list, update, delete."""

    def test_add_and_list(self, project, capsys):
        assert run_cli(project, "add", "src/app.py", "2-3", "body of main") == EXIT_OK
        assert "✓ Added src/app.py#L2-3" in capsys.readouterr().out

        assert run_cli(project, "list") == EXIT_OK
        assert capsys.readouterr().out == "src/app.py#L2-3\tbody of main\n"

    def test_add_general_ignores_lines(self, project, capsys):
        assert run_cli(project, "add", "/", "-", "project-wide") == EXIT_OK
        assert store_text(project) == '/#L0 "project-wide"\n'

    def test_add_invalid_range(self, project, capsys):
        assert run_cli(project, "add", "src/app.py", "5-2", "x") == EXIT_VALIDATION
        assert "start > end" in capsys.readouterr().err

    def test_list_filters_by_file_and_summarizes(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "first line\nsecond line")
        run_cli(project, "add", "other.py", "1", "other")
        capsys.readouterr()

        assert run_cli(project, "list", "--file", "src/app.py") == EXIT_OK
        assert capsys.readouterr().out == "src/app.py#L1\tfirst line ...\n"

    def test_update(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "old")

        assert run_cli(project, "update", "src/app.py#L1", "new") == EXIT_OK
        assert store_text(project) == 'src/app.py#L1 "new"\n'

    def test_update_unknown_key(self, project, capsys):
        assert run_cli(project, "update", "src/app.py#L9", "new") == EXIT_NOT_FOUND
        assert "ERROR: Note not found" in capsys.readouterr().err

    def test_update_empty_text(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "old")
        assert run_cli(project, "update", "src/app.py#L1", "  ") == EXIT_VALIDATION

    def test_delete(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "drop")
        run_cli(project, "add", "src/app.py", "2", "keep")

        assert run_cli(project, "delete", "src/app.py#L1") == EXIT_OK
        assert store_text(project) == 'src/app.py#L2 "keep"\n'

    def test_delete_unknown_key(self, project):
        assert run_cli(project, "delete", "nope#L1") == EXIT_NOT_FOUND


# =============================================================================
# Document Commands
# =============================================================================

class TestDocumentCommands:
    """render and sync."""

    def test_render_writes_document(self, project, capsys):
        run_cli(project, "add", "src/app.py", "2-3", "the body")

        assert run_cli(project, "render") == EXIT_OK
        document = (project / ".notes.local.md").read_text(encoding="utf-8")

        assert document.startswith("<!--")
        assert "> 2: run()\n> 3: stop()" in document
        assert "✓ Rendered notes to" in capsys.readouterr().out

    def test_render_stdout(self, project, capsys):
        assert run_cli(project, "render", "--stdout") == EXIT_OK
        assert "*No notes found*" in capsys.readouterr().out
        assert not (project / ".notes.local.md").exists()

    def test_sync_applies_edit(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "old text")
        run_cli(project, "render")
        document = project / ".notes.local.md"
        document.write_text(
            document.read_text(encoding="utf-8").replace("old text", "new text"), encoding="utf-8"
        )
        capsys.readouterr()

        assert run_cli(project, "sync") == EXIT_OK
        out = capsys.readouterr().out
        assert "✓ Synced" in out
        assert "updated src/app.py#L1" in out
        assert store_text(project) == 'src/app.py#L1 "new text"\n'

    def test_sync_without_changes(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "text")
        run_cli(project, "render")
        capsys.readouterr()

        assert run_cli(project, "sync") == EXIT_OK
        assert "No changes from" in capsys.readouterr().out

    def test_sync_reports_document_issues(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "text")
        (project / ".notes.local.md").write_text(
            "## [src/app.py](src/app.py)\n\n### [L1](src/app.py#L1)\n", encoding="utf-8"
        )
        capsys.readouterr()

        assert run_cli(project, "sync") == EXIT_VALIDATION
        assert "Empty annotation for src/app.py#L1" in capsys.readouterr().err

    def test_sync_refuses_malformed_store(self, project, capsys):
        (project / ".notes").mkdir()
        (project / ".notes" / "data.txt").write_text("not a note\n", encoding="utf-8")
        (project / ".notes.local.md").write_text("*No notes found*", encoding="utf-8")

        assert run_cli(project, "sync") == EXIT_VALIDATION
        assert "unparsed" in capsys.readouterr().err


# =============================================================================
# Export and Check
# =============================================================================

class TestExportAndCheck:
    """export and check."""

    def test_export_json(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "x")
        capsys.readouterr()

        assert run_cli(project, "export") == EXIT_OK
        assert json.loads(capsys.readouterr().out) == [
            {"filePath": "src/app.py", "startLine": 1, "endLine": 1, "comment": "x"}
        ]

    def test_export_llm_without_code(self, project, capsys):
        run_cli(project, "add", "/", "0", "g")
        run_cli(project, "add", "src/app.py", "1", "x")
        capsys.readouterr()

        assert run_cli(project, "export", "--format", "llm", "--no-code") == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("## General\n")
        assert "> 1:" not in out

    def test_export_raw(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "x")
        capsys.readouterr()

        assert run_cli(project, "export", "--format", "raw") == EXIT_OK
        assert capsys.readouterr().out == 'src/app.py#L1 "x"\n'

    def test_check_clean(self, project, capsys):
        run_cli(project, "add", "src/app.py", "1", "x")
        capsys.readouterr()

        assert run_cli(project, "check") == EXIT_OK
        assert "1 note(s)" in capsys.readouterr().out

    def test_check_reports_malformed(self, project, capsys):
        (project / ".notes").mkdir()
        (project / ".notes" / "data.txt").write_text(
            'src/app.py#L1 "x"\nbroken\nsrc/app.py#L3-1 "y"\n', encoding="utf-8"
        )

        assert run_cli(project, "check") == EXIT_VALIDATION
        err = capsys.readouterr().err
        assert "2 malformed line(s)" in err
        assert "Line 2: Invalid format" in err
        assert "Line 3: Invalid range" in err


# =============================================================================
# Configuration
# =============================================================================

class TestConfiguration:
    """--config and settings errors."""

    def test_custom_store_path(self, project, tmp_path_factory):
        config = tmp_path_factory.mktemp("config") / "linenotes.json"
        config.write_text(json.dumps({"store_path": "notes.txt"}), encoding="utf-8")

        assert run_cli(project, "--config", str(config), "add", "src/app.py", "1", "x") == EXIT_OK
        assert (project / "notes.txt").read_text(encoding="utf-8") == 'src/app.py#L1 "x"\n'

    def test_missing_config_file(self, project, capsys):
        assert run_cli(project, "--config", str(project / "missing.json"), "list") == EXIT_SYSTEM
        assert "Config file not found" in capsys.readouterr().err
