"""Render a document tree to Markdown.

This module converts a DocumentNode tree back to canonical Markdown text.
The output re-parses to an equal tree for documents in normal form, and
rendering is idempotent through a parse.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any, Iterable

from .models import DocumentNode, MarkInstance, TextRun, normalize_inline
from .registry import (
    DEFAULT_DETAILS_TITLE,
    IMAGE_MAX_WIDTH,
    MAX_LIST_START,
    MarkKind,
    NodeKind,
)

logger = logging.getLogger(__name__)

NBSP = "\u00a0"
EMPTY_PARAGRAPH = "&nbsp;"
HARD_BREAK = "  \n"

_MATH_BLOCK_RE = re.compile(r"\$\$([\s\S]*?)\$\$")
_MATH_INLINE_RE = re.compile(r"\$([^$\n]*?)\$")
_DOUBLED_BACKSLASH_RE = re.compile(r"\\\\([A-Za-z])")

_ENTITY_LIKE_RE = re.compile(r"&(?:#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[A-Za-z][A-Za-z0-9]{1,31});")
_ORDERED_START_RE = re.compile(r"^(\d{1,9})([.)])")
_HEADING_TAIL_RE = re.compile(r"(^|[ \t])(#+)$")

_ALWAYS_ESCAPED = set("\\`*_[]~<")
_LINE_START_ESCAPED = set("#>+-=:$|")

# Line breaks inside attribute values would split the markup over lines.
_LINE_BREAK_REFS = {"\n": "&#10;", "\r": "&#13;"}

# Marks written as paired delimiters; whitespace at their edges is moved
# outside so the delimiters stay left/right-flanking.
_DELIMITER_MARKS = frozenset({MarkKind.BOLD, MarkKind.ITALIC, MarkKind.STRIKE})

_CLOSE_DELIMITERS = {
    MarkKind.BOLD: "**",
    MarkKind.ITALIC: "*",
    MarkKind.STRIKE: "~~",
    MarkKind.SPOILER: "]",
    MarkKind.ANNOTATION: "</span>",
}


def normalize_math_backslashes(markdown: str) -> str:
    """Collapse ``\\\\`` before a Latin letter inside math spans.

    Escaping text doubles every backslash, which turns ``$\\alpha$`` into
    ``$\\\\alpha$``. Inside ``$$...$$`` and ``$...$`` the doubled form is
    collapsed back so math renderers see the original command.
    """
    if "$" not in markdown or "\\" not in markdown:
        return markdown

    def fix(match: re.Match[str]) -> str:
        return _DOUBLED_BACKSLASH_RE.sub(r"\\\1", match.group(0))

    markdown = _MATH_BLOCK_RE.sub(fix, markdown)
    return _MATH_INLINE_RE.sub(fix, markdown)


def render_markdown(source: DocumentNode | Iterable[DocumentNode]) -> str:
    """Render a document (or a list of blocks) to Markdown.

    Args:
        source: A ``doc`` node or a sequence of block nodes.

    Returns:
        Markdown text, blocks separated by one blank line, no trailing newline.
    """
    if isinstance(source, DocumentNode):
        blocks = source.content if source.kind is NodeKind.DOC else [source]
    else:
        blocks = list(source)
    return _render_blocks(blocks)


def _render_blocks(blocks: list[DocumentNode]) -> str:
    parts = []
    previous: DocumentNode | None = None
    alternate = False
    for block in blocks:
        if block.kind in (NodeKind.BULLET_LIST, NodeKind.ORDERED_LIST):
            # Consecutive lists of one kind switch markers or they would merge
            alternate = previous is not None and previous.kind is block.kind and not alternate
            parts.append(_render_list(block, alternate))
        else:
            parts.append(_render_block(block))
        previous = block
    return "\n\n".join(parts)


def _render_block(block: DocumentNode) -> str:
    """Render a single block to Markdown."""
    kind = block.kind

    if kind is NodeKind.PARAGRAPH:
        return _render_paragraph(block)
    elif kind is NodeKind.HEADING:
        return _render_heading(block)
    elif kind is NodeKind.BLOCKQUOTE:
        return _render_blockquote(block)
    elif kind in (NodeKind.BULLET_LIST, NodeKind.ORDERED_LIST):
        return _render_list(block)
    elif kind is NodeKind.CODE_BLOCK:
        return _render_fence(block.attrs.get("language", ""), block.attrs.get("code", ""))
    elif kind is NodeKind.HORIZONTAL_RULE:
        return "---"
    elif kind is NodeKind.DETAILS:
        return _render_details(block)
    elif kind is NodeKind.CALLOUT:
        return _render_callout(block)
    elif kind is NodeKind.IMAGE:
        return render_image(block)
    elif kind is NodeKind.MATH_BLOCK:
        return _render_math(block)
    elif kind in (NodeKind.MINDMAP, NodeKind.QUIZ):
        return _render_fence(kind.value, block.attrs.get("data", ""))
    elif kind is NodeKind.DOC:
        return _render_blocks(block.content)
    else:
        # Inline atoms never appear at block level
        logger.warning("Unexpected %s at block level", kind.value)
        return _render_paragraph(DocumentNode(NodeKind.PARAGRAPH))


# =============================================================================
# Text blocks
# =============================================================================


def _render_paragraph(block: DocumentNode) -> str:
    """Render a paragraph; an empty one becomes a placeholder."""
    lines = render_inline_lines(block.content)
    if not any(lines):
        return EMPTY_PARAGRAPH
    return _join_lines(lines)


def _render_heading(block: DocumentNode) -> str:
    level = block.attrs.get("level", 1)
    flat = [
        TextRun(" ") if isinstance(item, DocumentNode) else item
        for item in block.content
    ]
    text = "".join(render_inline_lines(normalize_inline(flat)))
    text = _HEADING_TAIL_RE.sub(lambda m: f"{m.group(1)}\\{m.group(2)}", text)
    prefix = "#" * level
    return f"{prefix} {text}" if text else prefix


def _join_lines(lines: list[str]) -> str:
    """Join the lines of a text block with hard breaks.

    An empty line between breaks uses the backslash form, since a line of
    only spaces would end the paragraph.
    """
    out = []
    for line in lines[:-1]:
        out.append(f"{line}{HARD_BREAK}" if line else "\\\n")
    out.append(lines[-1])
    return "".join(out)


# =============================================================================
# Containers
# =============================================================================


def _indent_block(text: str, first: str, rest: str) -> str:
    lines = text.split("\n")
    out = [first + lines[0]]
    for line in lines[1:]:
        out.append(rest + line if line else "")
    return "\n".join(out)


def _render_blockquote(block: DocumentNode) -> str:
    inner = _render_blocks(block.content)
    return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))


def _render_list(block: DocumentNode, alternate: bool = False) -> str:
    """Render a list, one item per marker, continuation lines indented."""
    ordered = block.kind is NodeKind.ORDERED_LIST
    start = block.attrs.get("start", 1) if ordered else 0

    items = []
    for index, item in enumerate(block.content):
        if ordered:
            number = min(start + index, MAX_LIST_START)
            marker = f"{number}{')' if alternate else '.'} "
        else:
            marker = "* " if alternate else "- "
        body = _render_blocks(item.content)
        items.append(_indent_block(body, marker, " " * len(marker)))
    return "\n".join(items)


def _render_details(block: DocumentNode) -> str:
    title = block.attrs.get("title") or DEFAULT_DETAILS_TITLE
    opener = "<details open>" if block.attrs.get("open") else "<details>"
    summary = f"<summary>{_encode_line_breaks(html.escape(title, quote=False))}</summary>"
    body = _render_blocks(block.content)
    return f"{opener}\n{summary}\n\n{body}\n\n</details>"


def _render_callout(block: DocumentNode) -> str:
    body = _render_blocks(block.content)
    return f"::: {block.attrs.get('type', 'info')}\n{body}\n:::"


# =============================================================================
# Atomic blocks
# =============================================================================


def _render_fence(language: str, body: str) -> str:
    """Render a fenced block, the fence longer than any backtick run inside."""
    longest = max((len(run) for run in re.findall(r"`+", body)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{language}\n{body}\n{fence}" if body else f"{fence}{language}\n{fence}"


def _render_math(block: DocumentNode) -> str:
    latex = block.attrs.get("latex", "")
    if "\n" in latex:
        return f"$$\n{latex}\n$$"
    return f"$${latex}$$"


def _encode_line_breaks(value: str) -> str:
    return re.sub(r"[\r\n]", lambda m: _LINE_BREAK_REFS[m.group(0)], value)


def _attr(value: str) -> str:
    return _encode_line_breaks(html.escape(value, quote=True))


def render_image(block: DocumentNode) -> str:
    """Plain form for default width/alignment, element form otherwise.

    Values holding line breaks always use the element form, where the
    breaks can be written as character references.
    """
    src = block.attrs.get("src", "")
    alt = block.attrs.get("alt", "")
    title = block.attrs.get("title")
    width = block.attrs.get("width", IMAGE_MAX_WIDTH)
    align = block.attrs.get("align", "center")

    multiline = any("\n" in v or "\r" in v for v in (src, alt, title or ""))
    if width == IMAGE_MAX_WIDTH and align == "center" and not multiline:
        target = _link_destination(src)
        if title:
            target += f' "{_escape_title(title)}"'
        return f"![{_escape_label(alt)}]({target})"

    parts = [f'<img src="{_attr(src)}" alt="{_attr(alt)}"']
    if title:
        parts.append(f'title="{_attr(title)}"')
    parts.append(f'width="{width}"')
    parts.append(f'align="{align}"')
    parts.append(f'style="{_image_style(width, align)}"')
    return " ".join(parts) + " />"


def _image_style(width: int, align: str) -> str:
    margins = {
        "left": "margin-left: 0; margin-right: auto;",
        "center": "margin-left: auto; margin-right: auto;",
        "right": "margin-left: auto; margin-right: 0;",
    }[align]
    return f"width: {width}%; display: block; {margins}"


# =============================================================================
# Inline content
# =============================================================================


def _escape_label(text: str) -> str:
    return re.sub(r"([\\\[\]])", r"\\\1", text)


def _escape_title(text: str) -> str:
    return re.sub(r'([\\"])', r"\\\1", text)


def _link_destination(href: str) -> str:
    if not href:
        return ""
    if re.search(r"[\s()<>]", href):
        return "<" + re.sub(r"([<>\\])", r"\\\1", href) + ">"
    return href


def _escape_explanation(text: str) -> str:
    """Escape an annotation explanation for a double-quoted attribute.

    Markdown-significant characters become numeric references so the
    attribute survives inline tokenization unchanged.
    """
    out = html.escape(text, quote=True)
    return re.sub(r"[\\`*_\[\]~<>!\r\n]", lambda m: f"&#{ord(m.group(0))};", out)


def _escape_text(text: str, *, line_start: bool, line_end: bool) -> str:
    """Escape plain text so it re-parses to the same characters."""
    out: list[str] = []
    for i, ch in enumerate(text):
        if ch in _ALWAYS_ESCAPED:
            out.append("\\" + ch)
        elif ch == "&" and _ENTITY_LIKE_RE.match(text, i):
            out.append("\\&")
        elif ch == NBSP:
            out.append("&nbsp;")
        elif ch == "\n":
            out.append(" ")
        else:
            out.append(ch)

    if line_start and out:
        # Leading whitespace would be stripped by the parser
        k = 0
        while k < len(text) and text[k] in " \t":
            out[k] = f"&#{ord(text[k])};"
            k += 1
        if k == 0:
            if out[0] in _LINE_START_ESCAPED:
                out[0] = "\\" + out[0]
            else:
                ordered = _ORDERED_START_RE.match(text)
                if ordered:
                    pos = len(ordered.group(1))
                    out[pos] = "\\" + out[pos]
    if line_end and out:
        k = len(text) - 1
        while k >= 0 and text[k] in " \t" and not out[k].startswith("&#"):
            out[k] = f"&#{ord(text[k])};"
            k -= 1
    return normalize_math_backslashes("".join(out))


def _code_span(text: str) -> str:
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    fence = "`" * (longest + 1)
    pad = text.startswith("`") or text.endswith("`") or (
        text.startswith(" ") and text.endswith(" ") and text.strip(" ")
    )
    return f"{fence} {text} {fence}" if pad else f"{fence}{text}{fence}"


def _open_delimiter(mark: MarkInstance) -> str:
    kind = mark.kind
    if kind is MarkKind.LINK:
        return "["
    if kind is MarkKind.ANNOTATION:
        explanation = _escape_explanation(mark.get("explanation", "") or "")
        return f'<span class="annotation" data-explanation="{explanation}">'
    if kind is MarkKind.SPOILER:
        return ":spoiler["
    return _CLOSE_DELIMITERS[kind]


def _close_delimiter(mark: MarkInstance) -> str:
    if mark.kind is MarkKind.LINK:
        target = _link_destination(mark.get("href", "") or "")
        title = mark.get("title")
        if title:
            target += f' "{_escape_title(title)}"'
        return f"]({target})"
    return _CLOSE_DELIMITERS[mark.kind]


def _stack_marks(item: Any) -> list[MarkInstance]:
    """Marks kept on the open-delimiter stack, outermost first."""
    if not isinstance(item, TextRun):
        return []
    return [m for m in item.sorted_marks() if m.kind is not MarkKind.CODE]


def _shared_prefix(a: list[MarkInstance], b: list[MarkInstance]) -> int:
    k = 0
    while k < len(a) and k < len(b) and a[k] == b[k]:
        k += 1
    return k


def _expel_whitespace(items: list[Any]) -> list[Any]:
    """Move whitespace at the edges of delimiter marks outside them."""
    out: list[Any] = []
    for index, item in enumerate(items):
        if not isinstance(item, TextRun) or item.has(MarkKind.CODE):
            out.append(item)
            continue
        delimiters = {m for m in item.marks if m.kind in _DELIMITER_MARKS}
        if not delimiters:
            out.append(item)
            continue
        if not item.text.strip(" \t"):
            out.append(TextRun(item.text, item.marks - delimiters))
            continue

        marks = _stack_marks(item)
        prev = items[index - 1] if index else None
        nxt = items[index + 1] if index + 1 < len(items) else None
        opened = marks[_shared_prefix(_stack_marks(prev), marks):]
        closed = marks[_shared_prefix(marks, _stack_marks(nxt)):]
        opening = {m for m in opened if m in delimiters}
        closing = {m for m in closed if m in delimiters}

        body = item.text
        lead = trail = ""
        if opening:
            stripped = body.lstrip(" \t")
            lead, body = body[: len(body) - len(stripped)], stripped
        if closing:
            stripped = body.rstrip(" \t")
            trail, body = body[len(stripped):], stripped
        if lead:
            out.append(TextRun(lead, item.marks - opening))
        out.append(TextRun(body, item.marks))
        if trail:
            out.append(TextRun(trail, item.marks - closing))
    return normalize_inline(out)


def render_inline_lines(content: list[Any]) -> list[str]:
    """Render inline content to lines, one per hard break segment.

    Marks stay open across adjacent runs that share them, in registry rank
    order, and are all closed at a hard break. Trailing hard breaks are
    dropped since nothing after them would keep the break.
    """
    items = list(content)
    while items and isinstance(items[-1], DocumentNode):
        items.pop()
    items = _expel_whitespace(items)

    lines: list[str] = []
    out: list[str] = []
    stack: list[MarkInstance] = []

    def close_to(k: int) -> None:
        while len(stack) > k:
            out.append(_close_delimiter(stack.pop()))

    for index, item in enumerate(items):
        if isinstance(item, DocumentNode):
            close_to(0)
            lines.append("".join(out))
            out = []
            continue

        wanted = _stack_marks(item)
        k = _shared_prefix(stack, wanted)
        close_to(k)
        for mark in wanted[k:]:
            out.append(_open_delimiter(mark))
            stack.append(mark)

        if item.has(MarkKind.CODE):
            out.append(_code_span(item.text))
            continue
        nxt = items[index + 1] if index + 1 < len(items) else None
        out.append(
            _escape_text(
                item.text,
                line_start=not out,
                line_end=nxt is None or isinstance(nxt, DocumentNode),
            )
        )
    close_to(0)
    lines.append("".join(out))
    return lines
