#!/usr/bin/env python3
"""Command-line front end for the Markdown transcoder.

Usage:
    quillmark [command] [args...]
    python -m quillmark [command] [args...]

Commands:
    format FILE             Print canonical Markdown (parse + render)
    check FILE              Validate quiz/mind-map payloads, report warnings
    tree FILE               Print the document tree as JSON
    outline FILE            Print headings with their anchor slugs
    grade FILE N IDS        Grade comma-separated option ids against quiz #N

FILE may be "-" to read standard input.

Environment Variables:
    QUILLMARK_LOG_LEVEL         Logging level (default: WARNING)
    QUILLMARK_MAX_NESTING_DEPTH Container nesting limit (default: 32)
    QUILLMARK_STRICT_SCHEMA     Raise on invalid attributes (default: off)
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from .document import (
    DocumentNode,
    NodeKind,
    grade_quiz,
    heading_slugs,
    load_mindmap,
    load_quiz,
    parse_markdown,
    quiz_warnings,
    render_markdown,
    text_content,
)
from .document.tree import find_nodes
from .errors import QuillmarkError
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(__doc__)
        return 0

    configure_logging()
    command = args[0]

    try:
        if command == "format":
            if len(args) < 2:
                print("Usage: format FILE")
                return 1
            return cmd_format(args[1])
        elif command == "check":
            if len(args) < 2:
                print("Usage: check FILE")
                return 1
            return cmd_check(args[1])
        elif command == "tree":
            if len(args) < 2:
                print("Usage: tree FILE")
                return 1
            return cmd_tree(args[1])
        elif command == "outline":
            if len(args) < 2:
                print("Usage: outline FILE")
                return 1
            return cmd_outline(args[1])
        elif command == "grade":
            if len(args) < 4:
                print("Usage: grade FILE N IDS")
                return 1
            return cmd_grade(args[1], args[2], args[3])
        elif command in ("-h", "--help", "help"):
            print(__doc__)
            return 0
        else:
            print(f"Unknown command: {command}")
            print(__doc__)
            return 1

    except (OSError, UnicodeDecodeError, QuillmarkError) as e:
        logger.debug("Command %s failed", command, exc_info=True)
        print(f"Error: {e}")
        return 1


def _load(path: str) -> DocumentNode:
    if path == "-":
        source = sys.stdin.read()
    else:
        source = Path(path).read_text(encoding="utf-8")
    return parse_markdown(source)


def cmd_format(path: str) -> int:
    """Print the canonical form of a document."""
    print(render_markdown(_load(path)))
    return 0


def cmd_check(path: str) -> int:
    """Validate every payload node; fail if any cannot be decoded."""
    document = _load(path)
    failures = 0
    quizzes = find_nodes(document, NodeKind.QUIZ)
    mindmaps = find_nodes(document, NodeKind.MINDMAP)

    for index, quiz_node in enumerate(quizzes, start=1):
        result = load_quiz(quiz_node)
        if not result.success:
            failures += 1
            print(f"quiz #{index}: error: {result.error.message}")
            continue
        for warning in quiz_warnings(result.value):
            print(f"quiz #{index}: warning: {warning}")

    for index, mindmap_node in enumerate(mindmaps, start=1):
        result = load_mindmap(mindmap_node)
        if not result.success:
            failures += 1
            print(f"mindmap #{index}: error: {result.error.message}")

    print(f"\nChecked {len(quizzes)} quizzes, {len(mindmaps)} mind maps: {failures} failed")
    return 1 if failures else 0


def cmd_tree(path: str) -> int:
    """Dump the document tree as JSON."""
    print(json.dumps(_load(path).to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_outline(path: str) -> int:
    """List headings, indented by level, with their anchors."""
    for heading, slug in heading_slugs(_load(path)):
        indent = "  " * (heading.attrs["level"] - 1)
        title = text_content(heading).replace("\n", " ")
        print(f"{indent}{title}  #{slug}")
    return 0


def cmd_grade(path: str, number: str, ids: str) -> int:
    """Grade a selection against the Nth quiz (1-based).

    Exits 0 for a correct selection and 1 otherwise.
    """
    quizzes = find_nodes(_load(path), NodeKind.QUIZ)
    try:
        index = int(number)
    except ValueError:
        print(f"Not a quiz number: {number}")
        return 1
    if not 1 <= index <= len(quizzes):
        print(f"No quiz #{index} (document has {len(quizzes)})")
        return 1

    quiz = load_quiz(quizzes[index - 1]).unwrap()
    selected = [part.strip() for part in ids.split(",") if part.strip()]
    if grade_quiz(selected, quiz):
        print("correct")
        return 0
    print("incorrect")
    if quiz.explanation:
        print(quiz.explanation)
    return 1


if __name__ == "__main__":
    sys.exit(main())
