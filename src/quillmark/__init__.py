"""quillmark - bidirectional Markdown transcoding for a rich document model.

Markdown goes in, a typed document tree comes out, and the tree renders
back to canonical Markdown. On top of CommonMark blocks and inline marks
the dialect carries details blocks, ``:::`` callouts, spoilers,
annotations, sized images, math blocks and quiz/mind-map payloads.
"""

from __future__ import annotations

from .document import parse_markdown, render_markdown
from .errors import (
    ConfigurationError,
    MalformedPayload,
    QuillmarkError,
    Result,
    SchemaViolation,
    UnterminatedConstruct,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "MalformedPayload",
    "QuillmarkError",
    "Result",
    "SchemaViolation",
    "UnterminatedConstruct",
    "parse_markdown",
    "render_markdown",
]
