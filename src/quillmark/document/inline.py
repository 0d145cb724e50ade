"""Parse inline Markdown into text runs.

Standard inline Markdown (emphasis, strikethrough, code spans, links,
escapes, line breaks) is tokenized by mistletoe. The tokens are flattened
into a stream of glyphs, one per character, each carrying its marks and a
``literal`` flag for characters that came from an escape or a code span.
The directive scanner then walks that stream looking for spoilers,
annotation spans and character references, which mistletoe leaves as raw
text.
"""

from __future__ import annotations

import html
import logging
import re
import threading
from typing import Any, NamedTuple

from mistletoe import Document
from mistletoe.span_token import (
    AutoLink,
    Emphasis,
    EscapeSequence,
    Image,
    InlineCode,
    LineBreak,
    Link,
    RawText,
    Strikethrough,
    Strong,
)

from ..errors import UnterminatedConstruct
from ..settings import settings
from .models import DocumentNode, MarkInstance, TextRun, normalize_inline
from .registry import InlineRule, MarkKind, NodeKind

logger = logging.getLogger(__name__)

# Prefixed to source lines so mistletoe cannot read them as block syntax.
# It is ASCII punctuation, so emphasis flanking at line start is unchanged.
SENTINEL = "%"

SPOILER_PREFIX = ":spoiler["

# mistletoe keeps the document being tokenized in module state.
_TOKENIZE_LOCK = threading.Lock()

_ENTITY_RE = re.compile(r"&(?:#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[A-Za-z][A-Za-z0-9]{1,31});")
_SPAN_OPEN_RE = re.compile(r"<span(?:\s[^<>]*)?>", re.IGNORECASE)
_SPAN_CLOSE = "</span>"
_EXPLANATION_RE = re.compile(
    r"""\sdata-explanation\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE
)

# Continuation lines that mistletoe could read as block structure
# (setext underlines, list markers, fences, table rows).
_RISKY_LINE_RE = re.compile(r"[^\w\s]|\d{1,9}[.)]")


class Glyph(NamedTuple):
    """One character of inline content, or an inline atom."""

    char: str
    marks: frozenset[MarkInstance]
    literal: bool = False
    node: DocumentNode | None = None

    @property
    def is_text(self) -> bool:
        return self.node is None and not self.literal


# =============================================================================
# mistletoe tokens -> glyphs
# =============================================================================


class _Walker:
    """Flatten mistletoe span tokens, removing line sentinels."""

    def __init__(self, prefixed: list[bool]) -> None:
        self.prefixed = prefixed
        self.line = 0
        self.at_line_start = True
        self.glyphs: list[Glyph] = []

    def _emit_text(self, content: str, marks: frozenset[MarkInstance], literal: bool = False) -> None:
        if self.at_line_start and not literal:
            if self._line_prefixed() and content.startswith(SENTINEL):
                content = content[1:]
            self.at_line_start = False
        for ch in content:
            self.glyphs.append(Glyph(ch, marks, literal))

    def _line_prefixed(self) -> bool:
        return self.line < len(self.prefixed) and self.prefixed[self.line]

    def line_break(self, marks: frozenset[MarkInstance], soft: bool) -> None:
        if soft:
            self.glyphs.append(Glyph(" ", marks))
        else:
            self.glyphs.append(Glyph("\n", frozenset(), node=DocumentNode(NodeKind.HARD_BREAK)))
        self.line += 1
        self.at_line_start = True

    def walk(self, tokens: Any, marks: frozenset[MarkInstance] = frozenset()) -> None:
        for token in tokens or ():
            self._convert_inline_token(token, marks)

    def _convert_inline_token(self, token: Any, marks: frozenset[MarkInstance]) -> None:
        """Convert a single inline token to glyphs."""
        if isinstance(token, RawText):
            self._emit_text(token.content, marks)

        elif isinstance(token, Strong):
            self.walk(token.children, _with_mark(marks, MarkInstance.create(MarkKind.BOLD)))

        elif isinstance(token, Emphasis):
            self.walk(token.children, _with_mark(marks, MarkInstance.create(MarkKind.ITALIC)))

        elif isinstance(token, Strikethrough):
            self.walk(token.children, _with_mark(marks, MarkInstance.create(MarkKind.STRIKE)))

        elif isinstance(token, InlineCode):
            content = token.children[0].content if token.children else ""
            self._emit_text(content, _with_mark(marks, MarkInstance.create(MarkKind.CODE)), literal=True)
            self.at_line_start = False

        elif isinstance(token, Image):
            alt = _extract_text(token)
            image = DocumentNode(
                NodeKind.IMAGE,
                attrs={"src": token.src, "alt": alt, "title": token.title or None},
            )
            self.glyphs.append(Glyph("", frozenset(), node=image))
            self.at_line_start = False

        elif isinstance(token, AutoLink):
            href = token.target
            if getattr(token, "mailto", False) and not href.lower().startswith("mailto:"):
                href = f"mailto:{href}"
            link = MarkInstance.create(MarkKind.LINK, href=href)
            self._emit_text(_extract_text(token), _with_mark(marks, link), literal=True)

        elif isinstance(token, Link):
            link = MarkInstance.create(
                MarkKind.LINK, href=token.target, title=getattr(token, "title", None) or None
            )
            self.walk(token.children, _with_mark(marks, link))

        elif isinstance(token, LineBreak):
            self.line_break(marks, soft=getattr(token, "soft", False))

        elif isinstance(token, EscapeSequence):
            if token.children:
                self._emit_text(token.children[0].content, marks, literal=True)
                self.at_line_start = False

        elif hasattr(token, "children"):
            # Generic handling for tokens with children
            self.walk(token.children, marks)


def _with_mark(marks: frozenset[MarkInstance], mark: MarkInstance) -> frozenset[MarkInstance]:
    """Add a mark, replacing any existing mark of the same kind."""
    return frozenset([m for m in marks if m.kind is not mark.kind] + [mark])


def _extract_text(token: Any) -> str:
    """Extract plain text from a token."""
    if isinstance(token, RawText):
        return token.content
    elif hasattr(token, "children") and token.children:
        return "".join(_extract_text(child) for child in token.children)
    return ""


def tokenize_lines(lines: list[str]) -> list[Glyph]:
    """Run mistletoe over paragraph lines and flatten the result."""
    prefixed: list[bool] = []
    source_lines: list[str] = []
    for i, line in enumerate(lines):
        line = line.lstrip(" \t")
        if i == len(lines) - 1:
            line = line.rstrip(" \t")
        needs = i == 0 or bool(_RISKY_LINE_RE.match(line)) or "|" in line
        prefixed.append(needs)
        source_lines.append(SENTINEL + line if needs else line)

    walker = _Walker(prefixed)
    with _TOKENIZE_LOCK:
        document = Document("\n".join(source_lines) + "\n")
    for index, block in enumerate(document.children):
        if index:
            walker.line_break(frozenset(), soft=True)
        walker.walk(getattr(block, "children", None))
    return walker.glyphs


# =============================================================================
# Directive scanner
# =============================================================================


def _chars_from(glyphs: list[Glyph], start: int, limit: int | None = None) -> str:
    """Plain, non-literal characters starting at ``start``."""
    out = []
    end = len(glyphs) if limit is None else min(len(glyphs), start + limit)
    for j in range(start, end):
        if not glyphs[j].is_text:
            break
        out.append(glyphs[j].char)
    return "".join(out)


def _match_spoiler(glyphs: list[Glyph], i: int) -> int:
    """Return the index of the closing bracket of a spoiler opening at i."""
    if _chars_from(glyphs, i, len(SPOILER_PREFIX)) != SPOILER_PREFIX:
        return -1
    depth = 1
    for j in range(i + len(SPOILER_PREFIX), len(glyphs)):
        glyph = glyphs[j]
        if not glyph.is_text:
            continue
        if glyph.char == "[":
            depth += 1
        elif glyph.char == "]":
            depth -= 1
            if depth == 0:
                return j
    raise UnterminatedConstruct("spoiler", offset=i)


def _match_annotation(glyphs: list[Glyph], i: int) -> tuple[int, int, int, str] | None:
    """Match ``<span ... data-explanation="...">...</span>`` at i.

    Returns (content_start, content_end, after_close, explanation).
    """
    head = _chars_from(glyphs, i, 2048)
    opener = _SPAN_OPEN_RE.match(head)
    if not opener:
        return None
    found = _EXPLANATION_RE.search(opener.group(0))
    if not found:
        return None
    explanation = html.unescape(found.group(1) if found.group(1) is not None else found.group(2))

    content_start = i + opener.end()
    depth = 1
    j = content_start
    while j < len(glyphs):
        if glyphs[j].is_text and glyphs[j].char == "<":
            rest = _chars_from(glyphs, j, 2048)
            if rest[: len(_SPAN_CLOSE)].lower() == _SPAN_CLOSE:
                depth -= 1
                if depth == 0:
                    return content_start, j, j + len(_SPAN_CLOSE), explanation
                j += len(_SPAN_CLOSE)
                continue
            nested = _SPAN_OPEN_RE.match(rest)
            if nested:
                depth += 1
                j += nested.end()
                continue
        j += 1
    raise UnterminatedConstruct("annotation", offset=i)


def _decode_entity(glyphs: list[Glyph], i: int) -> tuple[str, int] | None:
    head = _chars_from(glyphs, i, 40)
    found = _ENTITY_RE.match(head)
    if not found:
        return None
    decoded = html.unescape(found.group(0))
    if decoded == found.group(0):
        return None
    return decoded, len(found.group(0))


def _add_mark(glyphs: list[Glyph], mark: MarkInstance) -> list[Glyph]:
    return [g._replace(marks=_with_mark(g.marks, mark)) if g.node is None else g for g in glyphs]


def scan_directives(glyphs: list[Glyph], depth: int = 0, max_depth: int | None = None) -> list[Glyph]:
    """Apply the inline directive rules to a glyph stream.

    Spoilers and annotations past ``max_depth`` levels of nesting, and any
    directive without a closer, are left as literal text.
    """
    limit = settings.max_nesting_depth if max_depth is None else max_depth
    out: list[Glyph] = []
    i = 0
    while i < len(glyphs):
        glyph = glyphs[i]
        if glyph.is_text:
            for rule in _rules_for(glyph.char):
                try:
                    consumed = _apply_rule(rule, glyphs, i, depth, limit, out)
                except UnterminatedConstruct as e:
                    logger.debug("%s; keeping it as text", e.message)
                    consumed = 0
                if consumed:
                    i += consumed
                    break
            else:
                out.append(glyph)
                i += 1
            continue
        out.append(glyph)
        i += 1
    return out


def _rules_for(char: str) -> tuple[InlineRule, ...]:
    if char == ":":
        return (InlineRule.SPOILER,)
    if char == "<":
        return (InlineRule.ANNOTATION,)
    if char == "&":
        return (InlineRule.ENTITY,)
    return ()


def _apply_rule(
    rule: InlineRule,
    glyphs: list[Glyph],
    i: int,
    depth: int,
    limit: int,
    out: list[Glyph],
) -> int:
    """Try one rule at i; append its output and return glyphs consumed."""
    match rule:
        case InlineRule.SPOILER:
            close = _match_spoiler(glyphs, i)
            if close < 0:
                return 0
            if depth >= limit:
                logger.debug("Spoiler nested too deeply; keeping it as text")
                return 0
            inner = scan_directives(glyphs[i + len(SPOILER_PREFIX):close], depth + 1, limit)
            out.extend(_add_mark(inner, MarkInstance.create(MarkKind.SPOILER)))
            return close + 1 - i

        case InlineRule.ANNOTATION:
            found = _match_annotation(glyphs, i)
            if found is None:
                return 0
            if depth >= limit:
                logger.debug("Annotation nested too deeply; keeping it as text")
                return 0
            start, end, after, explanation = found
            inner = scan_directives(glyphs[start:end], depth + 1, limit)
            mark = MarkInstance.create(MarkKind.ANNOTATION, explanation=explanation)
            out.extend(_add_mark(inner, mark))
            return after - i

        case InlineRule.ENTITY:
            decoded = _decode_entity(glyphs, i)
            if decoded is None:
                return 0
            value, length = decoded
            marks = glyphs[i].marks
            out.extend(Glyph(ch, marks, literal=True) for ch in value)
            return length

    return 0


# =============================================================================
# Assembly
# =============================================================================


def glyphs_to_inline(glyphs: list[Glyph]) -> list[Any]:
    """Group glyphs into text runs and inline nodes."""
    items: list[Any] = []
    buf: list[str] = []
    current: frozenset[MarkInstance] | None = None

    def flush() -> None:
        if buf:
            items.append(TextRun("".join(buf), current or frozenset()))
            buf.clear()

    for glyph in glyphs:
        if glyph.node is not None:
            flush()
            items.append(glyph.node)
            continue
        if current is not None and glyph.marks != current:
            flush()
        current = glyph.marks
        buf.append(glyph.char)
    flush()
    return normalize_inline(items)


def parse_inline(lines: list[str], depth: int = 0, max_depth: int | None = None) -> list[Any]:
    """Parse the text lines of one block into inline content.

    Image atoms are returned in place; callers that cannot hold them split
    or flatten the result.
    """
    if not lines:
        return []
    glyphs = tokenize_lines(lines)
    glyphs = scan_directives(glyphs, depth, max_depth)
    return glyphs_to_inline(glyphs)
