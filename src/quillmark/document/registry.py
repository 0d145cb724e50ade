"""Type registry for the document model.

The set of node and mark types is closed: every kind is declared here
with its content model, attribute schema and the parse rule that
recognizes it. The registry is built once and is read-only afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """Every node type the document model knows about."""

    DOC = "doc"

    # Text blocks
    PARAGRAPH = "paragraph"
    HEADING = "heading"

    # Containers
    BLOCKQUOTE = "blockquote"
    BULLET_LIST = "bullet_list"
    ORDERED_LIST = "ordered_list"
    LIST_ITEM = "list_item"
    DETAILS = "details"
    CALLOUT = "callout"

    # Atomic blocks
    CODE_BLOCK = "code_block"
    HORIZONTAL_RULE = "horizontal_rule"
    IMAGE = "image"
    MATH_BLOCK = "math_block"
    MINDMAP = "mindmap"
    QUIZ = "quiz"

    # Inline atoms
    HARD_BREAK = "hard_break"


class MarkKind(str, Enum):
    """Inline marks, declared outermost first."""

    LINK = "link"
    ANNOTATION = "annotation"
    SPOILER = "spoiler"
    BOLD = "bold"
    ITALIC = "italic"
    STRIKE = "strike"
    CODE = "code"


class ContentModel(str, Enum):
    """What a node may contain."""

    BLOCKS = "block+"
    ITEMS = "list_item+"
    INLINE = "inline"
    ATOMIC = "atomic"


class NodeGroup(str, Enum):
    BLOCK = "block"
    INLINE = "inline"
    LIST_ITEM = "list_item"
    ROOT = "root"


class BlockRule(str, Enum):
    """Block-level parse rules."""

    DETAILS = "details"
    CALLOUT = "callout"
    PAYLOAD = "payload"
    CODE_FENCE = "code_fence"
    MATH = "math"
    IMAGE = "image"
    HEADING = "heading"
    THEMATIC_BREAK = "thematic_break"
    BLOCKQUOTE = "blockquote"
    LIST = "list"
    PARAGRAPH = "paragraph"


class InlineRule(str, Enum):
    """Inline parse rules handled outside standard Markdown emphasis."""

    SPOILER = "spoiler"
    ANNOTATION = "annotation"
    ENTITY = "entity"


# Evaluation order of the block scanner. Earlier rules win.
BLOCK_RULES: tuple[BlockRule, ...] = (
    BlockRule.DETAILS,
    BlockRule.CALLOUT,
    BlockRule.PAYLOAD,
    BlockRule.CODE_FENCE,
    BlockRule.MATH,
    BlockRule.IMAGE,
    BlockRule.HEADING,
    BlockRule.THEMATIC_BREAK,
    BlockRule.BLOCKQUOTE,
    BlockRule.LIST,
    BlockRule.PARAGRAPH,
)

INLINE_RULES: tuple[InlineRule, ...] = (
    InlineRule.SPOILER,
    InlineRule.ANNOTATION,
    InlineRule.ENTITY,
)

CALLOUT_TYPES: tuple[str, ...] = ("info", "warning", "error", "success", "tip")
IMAGE_ALIGNMENTS: tuple[str, ...] = ("left", "center", "right")
PAYLOAD_LANGUAGES: tuple[str, ...] = ("mindmap", "quiz")

DEFAULT_DETAILS_TITLE = "Click to expand"
IMAGE_MIN_WIDTH = 10
IMAGE_MAX_WIDTH = 100
# Ordered list markers hold at most nine digits.
MAX_LIST_START = 999_999_999


# =============================================================================
# Attribute extraction rules
# =============================================================================
# Each extractor takes a raw value (a string straight out of markup, or a
# value set programmatically) and returns the canonical value. Unusable
# input raises ValueError and the caller decides between default and error.


def _text(value: Any) -> str:
    if value is None:
        raise ValueError("missing text")
    if isinstance(value, (dict, list, tuple, set)):
        raise ValueError(f"expected text, got {type(value).__name__}")
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = _text(value)
    return text or None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    raw = str(value).strip().lower()
    if raw in {"", "open", "true", "1", "yes", "on"}:
        return True
    if raw in {"false", "0", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value:  # NaN
            raise ValueError("NaN is not an integer")
        return int(round(value))
    raw = str(value).strip().rstrip("%").strip()
    try:
        return int(raw)
    except ValueError:
        return int(round(float(raw)))


def _clamped(low: int, high: int) -> Callable[[Any], int]:
    def extract(value: Any) -> int:
        return max(low, min(high, _integer(value)))

    return extract


def _list_start(value: Any) -> int:
    number = _integer(value)
    if number < 0:
        raise ValueError("must not be negative")
    return min(number, MAX_LIST_START)


def _choice(options: tuple[str, ...]) -> Callable[[Any], str]:
    def extract(value: Any) -> str:
        raw = _text(value).strip().lower()
        if raw not in options:
            raise ValueError(f"{value!r} not in {', '.join(options)}")
        return raw

    return extract


def _title(value: Any) -> str:
    text = _text(value).strip()
    if not text:
        raise ValueError("empty title")
    return text


@dataclass(frozen=True)
class AttrSpec:
    """One attribute of a node or mark type.

    Attributes:
        name: Attribute name
        default: Value used when the attribute is absent or unusable
        extract: Rule recovering the canonical value from a raw one
    """

    name: str
    default: Any = None
    extract: Callable[[Any], Any] = _text


@dataclass(frozen=True)
class NodeTypeDescriptor:
    kind: NodeKind
    content: ContentModel
    group: NodeGroup
    attrs: tuple[AttrSpec, ...] = ()
    parse_rule: BlockRule | None = None

    @property
    def is_atomic(self) -> bool:
        return self.content is ContentModel.ATOMIC

    def attr(self, name: str) -> AttrSpec | None:
        for spec in self.attrs:
            if spec.name == name:
                return spec
        return None


@dataclass(frozen=True)
class MarkTypeDescriptor:
    kind: MarkKind
    rank: int
    attrs: tuple[AttrSpec, ...] = ()
    parse_rule: InlineRule | None = None

    def attr(self, name: str) -> AttrSpec | None:
        for spec in self.attrs:
            if spec.name == name:
                return spec
        return None


_NODE_TYPES: tuple[NodeTypeDescriptor, ...] = (
    NodeTypeDescriptor(NodeKind.DOC, ContentModel.BLOCKS, NodeGroup.ROOT),
    NodeTypeDescriptor(
        NodeKind.PARAGRAPH, ContentModel.INLINE, NodeGroup.BLOCK,
        parse_rule=BlockRule.PARAGRAPH,
    ),
    NodeTypeDescriptor(
        NodeKind.HEADING, ContentModel.INLINE, NodeGroup.BLOCK,
        attrs=(AttrSpec("level", 1, _clamped(1, 6)),),
        parse_rule=BlockRule.HEADING,
    ),
    NodeTypeDescriptor(
        NodeKind.BLOCKQUOTE, ContentModel.BLOCKS, NodeGroup.BLOCK,
        parse_rule=BlockRule.BLOCKQUOTE,
    ),
    NodeTypeDescriptor(
        NodeKind.BULLET_LIST, ContentModel.ITEMS, NodeGroup.BLOCK,
        parse_rule=BlockRule.LIST,
    ),
    NodeTypeDescriptor(
        NodeKind.ORDERED_LIST, ContentModel.ITEMS, NodeGroup.BLOCK,
        attrs=(AttrSpec("start", 1, _list_start),),
        parse_rule=BlockRule.LIST,
    ),
    NodeTypeDescriptor(
        NodeKind.LIST_ITEM, ContentModel.BLOCKS, NodeGroup.LIST_ITEM,
        parse_rule=BlockRule.LIST,
    ),
    NodeTypeDescriptor(
        NodeKind.DETAILS, ContentModel.BLOCKS, NodeGroup.BLOCK,
        attrs=(
            AttrSpec("title", DEFAULT_DETAILS_TITLE, _title),
            AttrSpec("open", False, _flag),
        ),
        parse_rule=BlockRule.DETAILS,
    ),
    NodeTypeDescriptor(
        NodeKind.CALLOUT, ContentModel.BLOCKS, NodeGroup.BLOCK,
        attrs=(AttrSpec("type", "info", _choice(CALLOUT_TYPES)),),
        parse_rule=BlockRule.CALLOUT,
    ),
    NodeTypeDescriptor(
        NodeKind.CODE_BLOCK, ContentModel.ATOMIC, NodeGroup.BLOCK,
        attrs=(AttrSpec("language", ""), AttrSpec("code", "")),
        parse_rule=BlockRule.CODE_FENCE,
    ),
    NodeTypeDescriptor(
        NodeKind.HORIZONTAL_RULE, ContentModel.ATOMIC, NodeGroup.BLOCK,
        parse_rule=BlockRule.THEMATIC_BREAK,
    ),
    NodeTypeDescriptor(
        NodeKind.IMAGE, ContentModel.ATOMIC, NodeGroup.BLOCK,
        attrs=(
            AttrSpec("src", ""),
            AttrSpec("alt", ""),
            AttrSpec("title", None, _optional_text),
            AttrSpec("width", IMAGE_MAX_WIDTH, _clamped(IMAGE_MIN_WIDTH, IMAGE_MAX_WIDTH)),
            AttrSpec("align", "center", _choice(IMAGE_ALIGNMENTS)),
        ),
        parse_rule=BlockRule.IMAGE,
    ),
    NodeTypeDescriptor(
        NodeKind.MATH_BLOCK, ContentModel.ATOMIC, NodeGroup.BLOCK,
        attrs=(AttrSpec("latex", ""),),
        parse_rule=BlockRule.MATH,
    ),
    NodeTypeDescriptor(
        NodeKind.MINDMAP, ContentModel.ATOMIC, NodeGroup.BLOCK,
        attrs=(AttrSpec("data", ""),),
        parse_rule=BlockRule.PAYLOAD,
    ),
    NodeTypeDescriptor(
        NodeKind.QUIZ, ContentModel.ATOMIC, NodeGroup.BLOCK,
        attrs=(AttrSpec("data", ""),),
        parse_rule=BlockRule.PAYLOAD,
    ),
    NodeTypeDescriptor(NodeKind.HARD_BREAK, ContentModel.ATOMIC, NodeGroup.INLINE),
)

_MARK_TYPES: tuple[MarkTypeDescriptor, ...] = (
    MarkTypeDescriptor(
        MarkKind.LINK, 0,
        attrs=(AttrSpec("href", ""), AttrSpec("title", None, _optional_text)),
    ),
    MarkTypeDescriptor(
        MarkKind.ANNOTATION, 1,
        attrs=(AttrSpec("explanation", ""),),
        parse_rule=InlineRule.ANNOTATION,
    ),
    MarkTypeDescriptor(MarkKind.SPOILER, 2, parse_rule=InlineRule.SPOILER),
    MarkTypeDescriptor(MarkKind.BOLD, 3),
    MarkTypeDescriptor(MarkKind.ITALIC, 4),
    MarkTypeDescriptor(MarkKind.STRIKE, 5),
    MarkTypeDescriptor(MarkKind.CODE, 6),
)


@dataclass(frozen=True)
class TypeRegistry:
    """Read-only lookup of node and mark descriptors."""

    nodes: Mapping[NodeKind, NodeTypeDescriptor] = field(default_factory=dict)
    marks: Mapping[MarkKind, MarkTypeDescriptor] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        node_types: tuple[NodeTypeDescriptor, ...],
        mark_types: tuple[MarkTypeDescriptor, ...],
    ) -> TypeRegistry:
        """Build a registry, checking that the kind sets are complete.

        Raises:
            ConfigurationError: If a kind is missing, duplicated, or two
                marks share a rank.
        """
        nodes: dict[NodeKind, NodeTypeDescriptor] = {}
        for desc in node_types:
            if desc.kind in nodes:
                raise ConfigurationError(
                    f"Duplicate node type: {desc.kind.value}", setting="node_types"
                )
            nodes[desc.kind] = desc

        marks: dict[MarkKind, MarkTypeDescriptor] = {}
        for mdesc in mark_types:
            if mdesc.kind in marks:
                raise ConfigurationError(
                    f"Duplicate mark type: {mdesc.kind.value}", setting="mark_types"
                )
            marks[mdesc.kind] = mdesc

        missing = [k.value for k in NodeKind if k not in nodes]
        missing += [k.value for k in MarkKind if k not in marks]
        if missing:
            raise ConfigurationError(
                f"Type registry is missing: {', '.join(missing)}",
                expected="a descriptor for every node and mark kind",
            )

        ranks = [m.rank for m in marks.values()]
        if len(set(ranks)) != len(ranks):
            raise ConfigurationError("Mark ranks must be unique", setting="mark_types")

        logger.debug("Type registry built: %d nodes, %d marks", len(nodes), len(marks))
        return cls(nodes=MappingProxyType(nodes), marks=MappingProxyType(marks))

    def node(self, kind: NodeKind | str) -> NodeTypeDescriptor:
        return self.nodes[NodeKind(kind)]

    def mark(self, kind: MarkKind | str) -> MarkTypeDescriptor:
        return self.marks[MarkKind(kind)]

    def mark_rank(self, kind: MarkKind) -> int:
        return self.marks[kind].rank

    def kinds_for_rule(self, rule: BlockRule) -> list[NodeKind]:
        """Node kinds produced by a block rule."""
        return [d.kind for d in self.nodes.values() if d.parse_rule is rule]


REGISTRY = TypeRegistry.build(_NODE_TYPES, _MARK_TYPES)


def get_registry() -> TypeRegistry:
    """Get the process-wide type registry."""
    return REGISTRY
