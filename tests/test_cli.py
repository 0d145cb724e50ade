"""Tests for the quillmark command-line front end."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

QUIZ = '{"question": "Pick one", "options": ["a", "b"], "correctAnswer": "b", "explanation": "It is b."}'


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from installing handlers on the shared logger."""
    import quillmark.cli as cli

    monkeypatch.setattr(cli, "configure_logging", lambda level=None: None)


@pytest.fixture
def write_doc(tmp_path: Path):
    def write(source: str) -> str:
        path = tmp_path / "doc.md"
        path.write_text(source, encoding="utf-8")
        return str(path)

    return write


class TestDispatch:
    """Argument handling."""

    def test_no_args_prints_usage(self, capsys) -> None:
        from quillmark.cli import main

        assert main([]) == 0
        assert "Commands:" in capsys.readouterr().out

    def test_help(self, capsys) -> None:
        from quillmark.cli import main

        assert main(["--help"]) == 0
        assert "QUILLMARK_LOG_LEVEL" in capsys.readouterr().out

    def test_unknown_command(self, capsys) -> None:
        from quillmark.cli import main

        assert main(["frobnicate"]) == 1
        assert "Unknown command: frobnicate" in capsys.readouterr().out

    def test_missing_argument(self, capsys) -> None:
        from quillmark.cli import main

        assert main(["format"]) == 1
        assert "Usage: format FILE" in capsys.readouterr().out

    def test_missing_file(self, capsys, tmp_path: Path) -> None:
        from quillmark.cli import main

        assert main(["format", str(tmp_path / "nope.md")]) == 1
        assert capsys.readouterr().out.startswith("Error: ")


class TestCommands:
    """Each command against a small document."""

    def test_format(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(":::warning\nMind the gap.\n:::\n\n* one\n* two\n")

        assert main(["format", path]) == 0
        assert capsys.readouterr().out == "::: warning\nMind the gap.\n:::\n\n- one\n- two\n"

    def test_format_stdin(self, capsys, monkeypatch) -> None:
        from quillmark.cli import main

        monkeypatch.setattr("sys.stdin", io.StringIO("# Hi"))

        assert main(["format", "-"]) == 0
        assert capsys.readouterr().out == "# Hi\n"

    def test_tree(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        assert main(["tree", write_doc("Hello")]) == 0
        data = json.loads(capsys.readouterr().out)

        assert data["type"] == "doc"
        assert data["content"][0]["type"] == "paragraph"

    def test_outline(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        assert main(["outline", write_doc("# Intro\n\n## Setup Steps\n\n## Intro")]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "Intro  #intro",
            "  Setup Steps  #setup-steps",
            "  Intro  #intro-1",
        ]

    def test_check_clean(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(f'```quiz\n{QUIZ}\n```\n\n```mindmap\n{{"text": "root"}}\n```')

        assert main(["check", path]) == 0
        assert "Checked 1 quizzes, 1 mind maps: 0 failed" in capsys.readouterr().out

    def test_check_reports_broken_quiz(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(f"```quiz\n{{broken\n```\n\n```quiz\n{QUIZ}\n```")

        assert main(["check", path]) == 1
        out = capsys.readouterr().out
        assert "quiz #1: error:" in out
        assert "quiz #2" not in out
        assert "1 failed" in out

    def test_check_reports_warnings(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc('```quiz\n{"question": "Q?", "options": ["a"]}\n```')

        assert main(["check", path]) == 0
        assert "quiz #1: warning: quiz has no correct answers" in capsys.readouterr().out

    def test_grade_correct(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(f"```quiz\n{QUIZ}\n```")

        assert main(["grade", path, "1", "1"]) == 0
        assert capsys.readouterr().out == "correct\n"

    def test_grade_incorrect_shows_explanation(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(f"```quiz\n{QUIZ}\n```")

        assert main(["grade", path, "1", "0"]) == 1
        assert capsys.readouterr().out == "incorrect\nIt is b.\n"

    def test_grade_bad_number(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc(f"```quiz\n{QUIZ}\n```")

        assert main(["grade", path, "2", "0"]) == 1
        assert "No quiz #2 (document has 1)" in capsys.readouterr().out
        assert main(["grade", path, "x", "0"]) == 1
        assert "Not a quiz number: x" in capsys.readouterr().out

    def test_grade_broken_quiz(self, capsys, write_doc) -> None:
        from quillmark.cli import main

        path = write_doc("```quiz\n{broken\n```")

        assert main(["grade", path, "1", "0"]) == 1
        assert capsys.readouterr().out.startswith("Error: ")
