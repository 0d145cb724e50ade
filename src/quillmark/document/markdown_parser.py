"""Parse Markdown into a document tree.

This module converts source text into a DocumentNode tree. Blocks are
recognized by a line scanner that tries a fixed, ordered list of rules at
each unconsumed line; inline content of paragraphs and headings is handed
to the inline scanner in ``inline.py``.

Every rule can run in silent mode: it reports the line range it would
claim without building anything. Closing-marker searches use silent mode
to step over nested constructs, so a ``:::`` inside a code fence or a
``</details>`` of an inner section never closes the outer block.

Anything that cannot be parsed as its construct (no closing marker,
nesting too deep) is kept as ordinary paragraph text.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from ..errors import UnterminatedConstruct
from ..settings import settings
from .inline import parse_inline
from .models import DocumentNode, TextRun
from .registry import (
    BLOCK_RULES,
    CALLOUT_TYPES,
    PAYLOAD_LANGUAGES,
    BlockRule,
    NodeKind,
    get_registry,
)

logger = logging.getLogger(__name__)

NBSP = "\u00a0"

# Upper bound on the configured nesting depth, keeping recursion well
# inside the interpreter's stack limit.
DEPTH_CEILING = 100

# Rules that hold nested blocks; they decline past the depth limit.
CONTAINER_RULES = frozenset({
    BlockRule.DETAILS,
    BlockRule.CALLOUT,
    BlockRule.BLOCKQUOTE,
    BlockRule.LIST,
})

# Rules whose closing marker must be found before they claim anything.
FENCED_RULES = (
    BlockRule.DETAILS,
    BlockRule.CALLOUT,
    BlockRule.PAYLOAD,
    BlockRule.CODE_FENCE,
    BlockRule.MATH,
)

# Closer searches step over these, so a marker indented inside a
# list item or quoted line belongs to the inner scope.
SKIPPED_RULES = FENCED_RULES + (BlockRule.BLOCKQUOTE, BlockRule.LIST)

# Rules that may end a paragraph on the line after it starts.
INTERRUPTING_RULES = tuple(
    rule for rule in BLOCK_RULES if rule not in (BlockRule.PARAGRAPH, BlockRule.LIST)
)

_INDENT = r"[ ]{0,3}"

_DETAILS_OPEN_RE = re.compile(rf"^{_INDENT}<details(\s[^>]*)?>(.*)$", re.IGNORECASE)
_DETAILS_CLOSE_RE = re.compile(rf"^({_INDENT})</details>\s*$", re.IGNORECASE)
_DETAILS_DIV_OPEN_RE = re.compile(rf"^{_INDENT}<div(\s[^>]*)>\s*$", re.IGNORECASE)
_DIV_OPEN_RE = re.compile(rf"^{_INDENT}<div(\s[^>]*)?>", re.IGNORECASE)
_DIV_CLOSE_RE = re.compile(rf"^{_INDENT}</div>\s*$", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"^\s*<summary(?:\s[^>]*)?>(.*?)(?:</summary>(.*))?$", re.IGNORECASE)

_CALLOUT_OPEN_RE = re.compile(rf"^({_INDENT}):::[ \t]*([A-Za-z]*)[ \t]*$")
_COLON_FENCE_OPEN_RE = re.compile(rf"^({_INDENT}):::[ \t]*([\w][\w+#.-]*)[ \t]*$")
_COLON_FENCE_CLOSE_RE = re.compile(rf"^({_INDENT}):::[ \t]*$")

_FENCE_OPEN_RE = re.compile(rf"^({_INDENT})(`{{3,}}|~{{3,}})[ \t]*(.*?)[ \t]*$")

_MATH_OPEN_RE = re.compile(rf"^{_INDENT}\$\$(.*)$")

_IMAGE_LINE_RE = re.compile(
    r"""^!\[((?:\\.|[^\\\]])*)\]\(\s*(<[^<>\n]*>|[^\s()<>]*)(?:\s+"((?:\\.|[^"\\])*)")?\s*\)$"""
)
_IMG_TAG_RE = re.compile(r"^<img(\s[^<>]*?)\s*/?>$", re.IGNORECASE)
_ATTR_RE = re.compile(
    r"""([A-Za-z_:][-\w:.]*)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?"""
)
_BACKSLASH_ESCAPE_RE = re.compile(r"\\([!-/:-@\[-`{-~])")

_HEADING_RE = re.compile(rf"^{_INDENT}(#{{1,6}})(?=[ \t]|$)(.*)$")
_HEADING_CLOSE_RE = re.compile(r"(?:^|[ \t]+)#+$")
_THEMATIC_RE = re.compile(rf"^{_INDENT}([-*_])(?:[ \t]*\1){{2,}}[ \t]*$")
_QUOTE_RE = re.compile(rf"^{_INDENT}>(.*)$")
_BULLET_RE = re.compile(rf"^({_INDENT})([-+*])(?:([ \t]+)(.*))?$")
_ORDERED_RE = re.compile(rf"^({_INDENT})(\d{{1,9}})([.)])(?:([ \t]+)(.*))?$")


@dataclass(frozen=True)
class BlockMatch:
    """What a rule would claim, computed without building nodes.

    Attributes:
        rule: The rule that matched
        start: First claimed line
        end: One past the last claimed line
        attrs: Raw attributes recovered from the markup
        lines: Text lines for text blocks (paragraph, heading)
        children: Interior line groups for containers, one per child scope
    """

    rule: BlockRule
    start: int
    end: int
    kind: NodeKind | None = None
    attrs: dict[str, Any] = field(default_factory=dict)
    lines: tuple[str, ...] = ()
    children: tuple[tuple[str, ...], ...] = ()


def _is_blank(line: str) -> bool:
    return not line.strip(" \t")


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _closer_at(pattern: re.Pattern[str], indent: int) -> Callable[[str], bool]:
    """Match a closing marker only at the opener's column."""

    def is_closer(line: str) -> bool:
        found = pattern.match(line)
        return found is not None and len(found.group(1)) == indent

    return is_closer


def _parse_html_attrs(raw: str) -> dict[str, str]:
    """Parse HTML attributes into a name -> unescaped value mapping."""
    attrs: dict[str, str] = {}
    for found in _ATTR_RE.finditer(raw or ""):
        name = found.group(1).lower()
        value = next((g for g in found.group(2, 3, 4) if g is not None), "")
        attrs[name] = html.unescape(value)
    return attrs


def _unescape_backslashes(text: str) -> str:
    return _BACKSLASH_ESCAPE_RE.sub(r"\1", text)


class BlockScanner:
    """Line scanner over one block scope (the document or a container)."""

    def __init__(
        self,
        lines: list[str] | tuple[str, ...],
        depth: int = 0,
        max_depth: int | None = None,
    ) -> None:
        self.lines = list(lines)
        self.depth = depth
        limit = settings.max_nesting_depth if max_depth is None else max_depth
        self.max_depth = max(1, min(limit, DEPTH_CEILING))
        self._memo: dict[tuple[BlockRule, int], BlockMatch | None] = {}
        self._lookahead = 0

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------

    def scan(self) -> list[DocumentNode]:
        """Parse every line of this scope into block nodes."""
        blocks: list[DocumentNode] = []
        i = 0
        while i < len(self.lines):
            if _is_blank(self.lines[i]):
                i += 1
                continue
            found = self.match(i)
            blocks.extend(self.build(found))
            i = found.end
        return blocks

    def match(self, i: int) -> BlockMatch:
        """Find the first rule that claims line i. Paragraph always does."""
        for rule in BLOCK_RULES:
            found = self.try_rule(rule, i)
            if found is not None:
                return found
        # PARAGRAPH never declines on a non-blank line
        return self._match_paragraph(i)

    def try_rule(self, rule: BlockRule, i: int) -> BlockMatch | None:
        """Silent mode: what would ``rule`` claim at line i, if anything."""
        if rule in CONTAINER_RULES and self.depth >= self.max_depth:
            return None
        return self._silent(rule, i)

    def _silent(self, rule: BlockRule, i: int) -> BlockMatch | None:
        """Memoized rule evaluation; unterminated constructs decline."""
        key = (rule, i)
        if key in self._memo:
            return self._memo[key]
        if self._lookahead > self.max_depth:
            # Closer searches nested this deep stop seeing inner constructs
            return None
        self._lookahead += 1
        try:
            found = self._dispatch(rule, i)
        except UnterminatedConstruct as e:
            logger.debug("%s; keeping it as text", e.message)
            found = None
        finally:
            self._lookahead -= 1
        self._memo[key] = found
        return found

    def _dispatch(self, rule: BlockRule, i: int) -> BlockMatch | None:
        match rule:
            case BlockRule.DETAILS:
                return self._match_details(i)
            case BlockRule.CALLOUT:
                return self._match_callout(i)
            case BlockRule.PAYLOAD:
                return self._match_fence(i, payload=True)
            case BlockRule.CODE_FENCE:
                return self._match_fence(i, payload=False) or self._match_colon_fence(i)
            case BlockRule.MATH:
                return self._match_math(i)
            case BlockRule.IMAGE:
                return self._match_image(i)
            case BlockRule.HEADING:
                return self._match_heading(i)
            case BlockRule.THEMATIC_BREAK:
                return self._match_thematic_break(i)
            case BlockRule.BLOCKQUOTE:
                return self._match_blockquote(i)
            case BlockRule.LIST:
                return self._match_list(i)
            case BlockRule.PARAGRAPH:
                return self._match_paragraph(i)

    def _nested_end(self, j: int) -> int | None:
        """End of a nested construct opening at j, ignoring the depth limit."""
        for rule in SKIPPED_RULES:
            found = self._silent(rule, j)
            if found is not None:
                return found.end
        return None

    def _find_closer(self, start: int, is_closer: Any, *, count_divs: bool = False) -> int | None:
        """Index of the closing line for a block whose body starts at ``start``."""
        j = start
        div_depth = 0
        while j < len(self.lines):
            line = self.lines[j]
            if count_divs:
                if _DIV_CLOSE_RE.match(line):
                    if div_depth == 0:
                        return j
                    div_depth -= 1
                    j += 1
                    continue
            elif is_closer(line):
                return j
            nested = self._nested_end(j)
            if nested is not None:
                j = nested
                continue
            if count_divs and _DIV_OPEN_RE.match(line) and not line.rstrip().endswith("</div>"):
                div_depth += 1
            j += 1
        return None

    # -------------------------------------------------------------------------
    # Collapsible sections
    # -------------------------------------------------------------------------

    def _match_details(self, i: int) -> BlockMatch | None:
        line = self.lines[i]
        opener = _DETAILS_OPEN_RE.match(line)
        if opener:
            return self._match_details_tag(i, opener)
        div = _DETAILS_DIV_OPEN_RE.match(line)
        if div:
            attrs = _parse_html_attrs(div.group(1))
            if attrs.get("data-type", "").lower() == "details":
                return self._match_details_div(i, attrs)
        return None

    def _match_details_tag(self, i: int, opener: re.Match[str]) -> BlockMatch:
        tag_attrs = _parse_html_attrs(opener.group(1) or "")
        attrs: dict[str, Any] = {"open": "open" in tag_attrs}
        title = tag_attrs.get("data-title")

        body: list[str] = []
        rest = opener.group(2).strip()
        body_start = i + 1
        summary_line = rest
        if not rest:
            # Summary may sit on the next non-blank line
            k = i + 1
            while k < len(self.lines) and _is_blank(self.lines[k]):
                k += 1
            if k < len(self.lines) and _SUMMARY_RE.match(self.lines[k]):
                summary_line = self.lines[k]
                body_start = k + 1
        summary = _SUMMARY_RE.match(summary_line) if summary_line else None
        if summary:
            title = html.unescape(summary.group(1)).strip() or title
            trailing = (summary.group(2) or "").strip()
            if trailing:
                body.append(trailing)
        elif rest:
            body.append(rest)

        is_closer = _closer_at(_DETAILS_CLOSE_RE, _indent_of(self.lines[i]))
        close = self._find_closer(body_start, is_closer)
        if close is None:
            raise UnterminatedConstruct("details", line=i)
        if title is not None:
            attrs["title"] = title
        body.extend(self.lines[body_start:close])
        return BlockMatch(
            BlockRule.DETAILS, i, close + 1, NodeKind.DETAILS, attrs, children=(tuple(body),)
        )

    def _match_details_div(self, i: int, tag_attrs: dict[str, str]) -> BlockMatch:
        close = self._find_closer(i + 1, None, count_divs=True)
        if close is None:
            raise UnterminatedConstruct("details", line=i)
        attrs: dict[str, Any] = {
            "open": tag_attrs.get("data-open", "false").lower() in {"true", "open", "1", ""},
        }
        if tag_attrs.get("data-title"):
            attrs["title"] = tag_attrs["data-title"]
        return BlockMatch(
            BlockRule.DETAILS,
            i,
            close + 1,
            NodeKind.DETAILS,
            attrs,
            children=(tuple(self.lines[i + 1:close]),),
        )

    # -------------------------------------------------------------------------
    # Callouts and fences
    # -------------------------------------------------------------------------

    def _match_callout(self, i: int) -> BlockMatch | None:
        opener = _CALLOUT_OPEN_RE.match(self.lines[i])
        if not opener:
            return None
        keyword = opener.group(2).lower()
        if keyword and keyword not in CALLOUT_TYPES:
            return None
        is_closer = _closer_at(_COLON_FENCE_CLOSE_RE, len(opener.group(1)))
        close = self._find_closer(i + 1, is_closer)
        if close is None:
            raise UnterminatedConstruct("callout", line=i)
        return BlockMatch(
            BlockRule.CALLOUT,
            i,
            close + 1,
            NodeKind.CALLOUT,
            {"type": keyword or CALLOUT_TYPES[0]},
            children=(tuple(self.lines[i + 1:close]),),
        )

    def _match_colon_fence(self, i: int) -> BlockMatch | None:
        """A ``:::`` fence with a keyword that is not a callout category."""
        opener = _COLON_FENCE_OPEN_RE.match(self.lines[i])
        if not opener or opener.group(2).lower() in CALLOUT_TYPES:
            return None
        j = i + 1
        while j < len(self.lines):
            if _COLON_FENCE_CLOSE_RE.match(self.lines[j]):
                indent = len(opener.group(1))
                code = "\n".join(_strip_indent(line, indent) for line in self.lines[i + 1:j])
                return BlockMatch(
                    BlockRule.CODE_FENCE,
                    i,
                    j + 1,
                    NodeKind.CODE_BLOCK,
                    {"language": opener.group(2), "code": code},
                )
            j += 1
        raise UnterminatedConstruct("fence", line=i)

    def _match_fence(self, i: int, *, payload: bool) -> BlockMatch | None:
        opener = _FENCE_OPEN_RE.match(self.lines[i])
        if not opener:
            return None
        indent, marker, info = len(opener.group(1)), opener.group(2), opener.group(3)
        if marker[0] == "`" and "`" in info:
            return None
        language = info.split()[0] if info else ""
        is_payload = language in PAYLOAD_LANGUAGES
        if payload != is_payload:
            return None

        closer = re.compile(rf"^{_INDENT}{re.escape(marker[0])}{{{len(marker)},}}[ \t]*$")
        j = i + 1
        while j < len(self.lines):
            if closer.match(self.lines[j]):
                body = "\n".join(_strip_indent(line, indent) for line in self.lines[i + 1:j])
                if is_payload:
                    kind = NodeKind(language)
                    attrs: dict[str, Any] = {"data": body}
                else:
                    kind = NodeKind.CODE_BLOCK
                    attrs = {"language": _unescape_backslashes(language), "code": body}
                rule = BlockRule.PAYLOAD if is_payload else BlockRule.CODE_FENCE
                return BlockMatch(rule, i, j + 1, kind, attrs)
            j += 1
        raise UnterminatedConstruct("fence", line=i)

    def _match_math(self, i: int) -> BlockMatch | None:
        opener = _MATH_OPEN_RE.match(self.lines[i])
        if not opener:
            return None
        rest = opener.group(1).rstrip()
        if "$$" in rest:
            if not rest.endswith("$$") or rest[:-2].count("$$"):
                return None
            latex = rest[:-2].strip()
            return BlockMatch(BlockRule.MATH, i, i + 1, NodeKind.MATH_BLOCK, {"latex": latex})

        parts = [rest.strip()] if rest.strip() else []
        j = i + 1
        while j < len(self.lines):
            line = self.lines[j].rstrip()
            if line.endswith("$$"):
                head = line[:-2]
                if head.strip():
                    parts.append(head)
                return BlockMatch(
                    BlockRule.MATH, i, j + 1, NodeKind.MATH_BLOCK, {"latex": "\n".join(parts)}
                )
            parts.append(self.lines[j])
            j += 1
        raise UnterminatedConstruct("math block", line=i)

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    def _match_image(self, i: int) -> BlockMatch | None:
        line = self.lines[i].strip()
        if _indent_of(self.lines[i]) > 3:
            return None
        attrs = image_attrs_from_markup(line)
        if attrs is None:
            return None
        return BlockMatch(BlockRule.IMAGE, i, i + 1, NodeKind.IMAGE, attrs)

    # -------------------------------------------------------------------------
    # Headings, rules, quotes, lists
    # -------------------------------------------------------------------------

    def _match_heading(self, i: int) -> BlockMatch | None:
        found = _HEADING_RE.match(self.lines[i])
        if not found:
            return None
        content = found.group(2).strip(" \t")
        content = _HEADING_CLOSE_RE.sub("", content)
        return BlockMatch(
            BlockRule.HEADING,
            i,
            i + 1,
            NodeKind.HEADING,
            {"level": len(found.group(1))},
            lines=(content,) if content else (),
        )

    def _match_thematic_break(self, i: int) -> BlockMatch | None:
        if not _THEMATIC_RE.match(self.lines[i]):
            return None
        return BlockMatch(BlockRule.THEMATIC_BREAK, i, i + 1, NodeKind.HORIZONTAL_RULE)

    def _match_blockquote(self, i: int) -> BlockMatch | None:
        if not _QUOTE_RE.match(self.lines[i]):
            return None
        inner: list[str] = []
        j = i
        while j < len(self.lines):
            found = _QUOTE_RE.match(self.lines[j])
            if not found:
                break
            text = found.group(1)
            inner.append(text[1:] if text.startswith(" ") else text)
            j += 1
        return BlockMatch(
            BlockRule.BLOCKQUOTE, i, j, NodeKind.BLOCKQUOTE, children=(tuple(inner),)
        )

    def _list_marker(self, line: str) -> tuple[str, str, int, str, int | None] | None:
        """Parse a list marker: (kind, delimiter, content offset, first text, number)."""
        bullet = _BULLET_RE.match(line)
        ordered = None if bullet else _ORDERED_RE.match(line)
        found = bullet or ordered
        if not found:
            return None
        indent = len(found.group(1))
        if bullet:
            marker = found.group(2)
            spaces, text = found.group(3) or "", found.group(4) or ""
            kind, number = "bullet", None
        else:
            marker = found.group(2) + found.group(3)
            spaces, text = found.group(4) or "", found.group(5) or ""
            kind, number = "ordered", int(found.group(2))
        width = len(spaces.expandtabs(4))
        if not text or width > 4:
            offset = indent + len(marker) + 1
            if width > 4:
                text = " " * (width - 1) + text
        else:
            offset = indent + len(marker) + width
        return kind, marker[-1], offset, text, number

    def _match_list(self, i: int) -> BlockMatch | None:
        first = self._list_marker(self.lines[i])
        if first is None or _THEMATIC_RE.match(self.lines[i]):
            return None
        kind, delimiter, offset, text, number = first

        items: list[tuple[str, ...]] = []
        current = [text]
        j = i + 1
        end = i + 1
        while j < len(self.lines):
            line = self.lines[j]
            if _is_blank(line):
                current.append("")
                j += 1
                continue
            if _indent_of(line) >= offset:
                current.append(line[offset:])
                j += 1
                end = j
                continue
            marker = None if _THEMATIC_RE.match(line) else self._list_marker(line)
            if marker and marker[0] == kind and marker[1] == delimiter:
                items.append(tuple(_trim_trailing_blank(current)))
                _, _, offset, text, _ = marker
                current = [text]
                j += 1
                end = j
                continue
            break
        items.append(tuple(_trim_trailing_blank(current)))

        attrs: dict[str, Any] = {}
        node_kind = NodeKind.BULLET_LIST
        if kind == "ordered":
            node_kind = NodeKind.ORDERED_LIST
            attrs["start"] = number
        return BlockMatch(
            BlockRule.LIST,
            i,
            end,
            node_kind,
            attrs,
            children=tuple(items),
        )

    # -------------------------------------------------------------------------
    # Paragraphs
    # -------------------------------------------------------------------------

    def _interrupts(self, j: int) -> bool:
        for rule in INTERRUPTING_RULES:
            if self.try_rule(rule, j) is not None:
                return True
        if self.depth >= self.max_depth:
            return False
        marker = None if _THEMATIC_RE.match(self.lines[j]) else self._list_marker(self.lines[j])
        if marker is None:
            return False
        kind, _, _, text, number = marker
        # Only non-empty items, and ordered lists starting at 1
        return bool(text.strip()) and (kind == "bullet" or number == 1)

    def _match_paragraph(self, i: int) -> BlockMatch:
        j = i + 1
        while j < len(self.lines) and not _is_blank(self.lines[j]) and not self._interrupts(j):
            j += 1
        return BlockMatch(
            BlockRule.PARAGRAPH,
            i,
            j,
            NodeKind.PARAGRAPH,
            lines=tuple(self.lines[i:j]),
        )

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def _child_blocks(self, lines: tuple[str, ...]) -> list[DocumentNode]:
        child = BlockScanner(lines, self.depth + 1, self.max_depth)
        return child.scan() or [DocumentNode(NodeKind.PARAGRAPH)]

    def build(self, found: BlockMatch) -> list[DocumentNode]:
        """Turn a match into nodes."""
        match found.rule:
            case BlockRule.PARAGRAPH:
                return self._build_paragraphs(found.lines)
            case BlockRule.HEADING:
                content = parse_inline(list(found.lines), self.depth, self.max_depth)
                return [
                    DocumentNode(
                        NodeKind.HEADING,
                        attrs=found.attrs,
                        content=_flatten_for_heading(content),
                    )
                ]
            case BlockRule.DETAILS | BlockRule.CALLOUT | BlockRule.BLOCKQUOTE:
                return [
                    DocumentNode(
                        found.kind,
                        attrs=markup_attrs(found.kind, found.attrs),
                        content=self._child_blocks(found.children[0]),
                    )
                ]
            case BlockRule.LIST:
                items = [
                    DocumentNode(NodeKind.LIST_ITEM, content=self._child_blocks(lines))
                    for lines in found.children
                ]
                return [DocumentNode(found.kind, attrs=markup_attrs(found.kind, found.attrs), content=items)]
            case _:
                return [DocumentNode(found.kind, attrs=markup_attrs(found.kind, found.attrs))]

    def _build_paragraphs(self, lines: tuple[str, ...]) -> list[DocumentNode]:
        """Build a paragraph, splitting it around embedded images."""
        content = parse_inline(list(lines), self.depth, self.max_depth)
        blocks: list[DocumentNode] = []
        segment: list[Any] = []
        after_image = False
        for item in content:
            if isinstance(item, DocumentNode) and item.kind is NodeKind.IMAGE:
                if _has_text(segment):
                    blocks.append(_paragraph(segment, lead=after_image, trail=True))
                blocks.append(item)
                segment = []
                after_image = True
            else:
                segment.append(item)
        if _has_text(segment) or not blocks:
            blocks.append(_paragraph(segment, lead=after_image, trail=False))
        return blocks


def _strip_indent(line: str, indent: int) -> str:
    if not indent:
        return line
    return line[min(indent, _indent_of(line)):]


def _trim_trailing_blank(lines: list[str]) -> list[str]:
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def _has_text(items: list[Any]) -> bool:
    return any(isinstance(item, TextRun) and item.text.strip(" \t") for item in items) or any(
        isinstance(item, DocumentNode) for item in items
    )


def _paragraph(items: list[Any], *, lead: bool = False, trail: bool = False) -> DocumentNode:
    items = _trim_edges(items, lead, trail)
    if len(items) == 1 and isinstance(items[0], TextRun) and items[0].text == NBSP and not items[0].marks:
        items = []
    return DocumentNode(NodeKind.PARAGRAPH, content=items)


def _trim_edges(items: list[Any], lead: bool, trail: bool) -> list[Any]:
    """Drop whitespace left next to an image the paragraph was split around."""
    items = list(items)
    if lead and items and isinstance(items[0], TextRun):
        items[0] = TextRun(items[0].text.lstrip(" "), items[0].marks)
    if trail and items and isinstance(items[-1], TextRun):
        items[-1] = TextRun(items[-1].text.rstrip(" "), items[-1].marks)
    return items


def _flatten_for_heading(content: list[Any]) -> list[Any]:
    """Headings hold text only; images become their alt text."""
    out: list[Any] = []
    for item in content:
        if isinstance(item, DocumentNode):
            if item.kind is NodeKind.IMAGE:
                out.append(TextRun(item.attrs.get("alt", "")))
            elif item.kind is NodeKind.HARD_BREAK:
                out.append(TextRun(" "))
            continue
        out.append(item)
    return out


def markup_attrs(kind: NodeKind, raw: dict[str, Any]) -> dict[str, Any]:
    """Keep only attribute values the type's extraction rules accept.

    Markup is user input: an unusable value is dropped so the node falls
    back to its default instead of failing the parse.
    """
    desc = get_registry().node(kind)
    kept: dict[str, Any] = {}
    for name, value in raw.items():
        spec = desc.attr(name)
        if spec is None:
            continue
        if value is None:
            kept[name] = None
            continue
        try:
            spec.extract(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring %s=%r on %s", name, value, kind.value)
            continue
        kept[name] = value
    return kept


def image_attrs_from_markup(line: str) -> dict[str, Any] | None:
    """Recover image attributes from a plain or element-form image line."""
    plain = _IMAGE_LINE_RE.match(line)
    if plain:
        src = plain.group(2)
        if src.startswith("<") and src.endswith(">"):
            src = src[1:-1]
        attrs: dict[str, Any] = {
            "alt": _unescape_backslashes(plain.group(1)),
            "src": _unescape_backslashes(src),
        }
        if plain.group(3) is not None:
            attrs["title"] = _unescape_backslashes(plain.group(3))
        return attrs

    tag = _IMG_TAG_RE.match(line)
    if not tag:
        return None
    raw = _parse_html_attrs(tag.group(1))
    style = _parse_style(raw.get("style", ""))
    attrs = {"src": raw.get("src", ""), "alt": raw.get("alt", "")}
    if raw.get("title"):
        attrs["title"] = raw["title"]

    width = raw.get("width") or style.get("width")
    if width:
        attrs["width"] = width

    align = raw.get("align") or raw.get("data-align") or _align_from_margins(style)
    if align:
        attrs["align"] = align
    return attrs


def _parse_style(style: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for decl in style.split(";"):
        if ":" in decl:
            name, _, value = decl.partition(":")
            out[name.strip().lower()] = value.strip().lower()
    return out


def _align_from_margins(style: dict[str, str]) -> str | None:
    left = style.get("margin-left")
    right = style.get("margin-right")
    if style.get("margin", "").endswith("auto"):
        return "center"
    if left == "auto" and right == "auto":
        return "center"
    if left == "auto":
        return "right"
    if right == "auto":
        return "left"
    return None


def parse_markdown(markdown: str, *, max_depth: int | None = None) -> DocumentNode:
    """Parse Markdown text into a document tree.

    Never raises for malformed input: constructs that cannot be parsed are
    kept as paragraph text.

    Args:
        markdown: The Markdown text to parse.
        max_depth: Nesting limit overriding ``settings.max_nesting_depth``.

    Returns:
        A ``doc`` node holding at least one block.
    """
    text = markdown.replace("\r\n", "\n").replace("\r", "\n")
    if text.startswith("\ufeff"):
        text = text[1:]
    blocks = BlockScanner(text.split("\n"), 0, max_depth).scan()
    if not blocks:
        blocks = [DocumentNode(NodeKind.PARAGRAPH)]
    logger.debug("Parsed %d top-level blocks", len(blocks))
    return DocumentNode(NodeKind.DOC, content=blocks)
