"""Document model and Markdown transcoding.

Usage:
    from quillmark.document import parse_markdown, render_markdown

    doc = parse_markdown(":::warning\\nMind the gap.\\n:::")
    assert render_markdown(doc) == "::: warning\\nMind the gap.\\n:::"

Architecture:
    registry            <- Closed set of node/mark kinds and their schemas
    models              <- DocumentNode, TextRun, MarkInstance, builders
    inline              <- Inline scanner (mistletoe spans + directives)
    markdown_parser     <- Block scanner, Markdown -> tree
    markdown_renderer   <- Tree -> canonical Markdown
    payloads            <- Quiz and mind-map JSON codecs
    tree                <- Structural queries and heading slugs
    views               <- Host node-view interface
"""

from __future__ import annotations

from .markdown_parser import parse_markdown
from .markdown_renderer import normalize_math_backslashes, render_markdown
from .models import (
    DocumentNode,
    MarkInstance,
    TextRun,
    doc,
    hard_break,
    mark,
    node,
    paragraph,
    text,
)
from .payloads import (
    MindMapNode,
    QuizOption,
    QuizPayload,
    decode_mindmap,
    decode_quiz,
    encode_mindmap,
    encode_quiz,
    grade_quiz,
    load_mindmap,
    load_quiz,
    normalize_quiz,
    quiz_warnings,
)
from .registry import ContentModel, MarkKind, NodeKind, get_registry
from .tree import heading_slugs, slugify, text_content
from .views import NodeViewContext, NodeViewRegistry

__all__ = [
    "ContentModel",
    "DocumentNode",
    "MarkInstance",
    "MarkKind",
    "MindMapNode",
    "NodeKind",
    "NodeViewContext",
    "NodeViewRegistry",
    "QuizOption",
    "QuizPayload",
    "TextRun",
    "decode_mindmap",
    "decode_quiz",
    "doc",
    "encode_mindmap",
    "encode_quiz",
    "get_registry",
    "grade_quiz",
    "hard_break",
    "heading_slugs",
    "load_mindmap",
    "load_quiz",
    "mark",
    "node",
    "normalize_math_backslashes",
    "normalize_quiz",
    "paragraph",
    "parse_markdown",
    "quiz_warnings",
    "render_markdown",
    "slugify",
    "text",
    "text_content",
]
