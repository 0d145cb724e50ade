"""Data models for the document tree.

A document is a tree of DocumentNode values. Block nodes hold other
blocks; text blocks hold inline content, which is a sequence of TextRun
values (text plus a set of marks) and inline atoms such as hard breaks.

Nodes are validated against the type registry when they are built, so a
tree that exists is a tree that fits the schema.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Union

from ..errors import SchemaViolation
from ..settings import settings
from .registry import (
    ContentModel,
    MarkKind,
    NodeGroup,
    NodeKind,
    get_registry,
)

logger = logging.getLogger(__name__)


def _resolve_attrs(
    type_name: str,
    specs: Iterable[Any],
    raw: dict[str, Any],
) -> dict[str, Any]:
    """Apply defaults and extraction rules to raw attribute values."""
    specs = tuple(specs)
    known = {spec.name for spec in specs}
    for name in raw:
        if name not in known:
            logger.debug("Dropping unknown attribute %r on %s", name, type_name)

    resolved: dict[str, Any] = {}
    for spec in specs:
        if spec.name not in raw:
            resolved[spec.name] = spec.default
            continue
        value = raw[spec.name]
        if value is None and spec.default is None:
            resolved[spec.name] = None
            continue
        try:
            resolved[spec.name] = spec.extract(value)
        except (TypeError, ValueError) as e:
            if settings.strict_schema:
                raise SchemaViolation(
                    f"Invalid {spec.name} for {type_name}: {e}",
                    node_type=type_name,
                    attribute=spec.name,
                    constraint=str(e),
                    value=value,
                ) from e
            logger.warning(
                "Invalid %s=%r on %s, using default %r",
                spec.name,
                value,
                type_name,
                spec.default,
            )
            resolved[spec.name] = spec.default
    return resolved


@dataclass(frozen=True)
class MarkInstance:
    """A mark applied to a run of text, with its attribute values.

    Attributes are stored as ordered (name, value) pairs so instances are
    hashable and can live in a frozenset.
    """

    kind: MarkKind
    attrs: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def create(cls, kind: MarkKind | str, **attrs: Any) -> MarkInstance:
        """Create a mark, validating attributes against its descriptor."""
        kind = MarkKind(kind)
        desc = get_registry().mark(kind)
        resolved = _resolve_attrs(kind.value, desc.attrs, attrs)
        return cls(kind=kind, attrs=tuple(resolved.items()))

    @property
    def rank(self) -> int:
        return get_registry().mark_rank(self.kind)

    def get(self, name: str, default: Any = None) -> Any:
        for key, value in self.attrs:
            if key == name:
                return value
        return default

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarkInstance:
        return cls.create(data["type"], **data.get("attrs", {}))


@dataclass(frozen=True)
class TextRun:
    """A run of text sharing one set of marks."""

    text: str
    marks: frozenset[MarkInstance] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.marks, frozenset):
            object.__setattr__(self, "marks", frozenset(self.marks))
        kinds = [m.kind for m in self.marks]
        if len(set(kinds)) != len(kinds):
            raise SchemaViolation(
                "A text run cannot carry the same mark twice",
                node_type="text",
                constraint="one mark per kind",
            )

    def has(self, kind: MarkKind) -> bool:
        return any(m.kind is kind for m in self.marks)

    def sorted_marks(self) -> list[MarkInstance]:
        """Marks ordered outermost first."""
        return sorted(self.marks, key=lambda m: m.rank)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "text", "text": self.text}
        if self.marks:
            data["marks"] = [m.to_dict() for m in self.sorted_marks()]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextRun:
        return cls(
            text=data.get("text", ""),
            marks=frozenset(MarkInstance.from_dict(m) for m in data.get("marks", [])),
        )


Inline = Union[TextRun, "DocumentNode"]


@dataclass
class DocumentNode:
    """A node in the document tree.

    Construction resolves attributes (defaults, extraction rules), checks
    the content against the node's content model and puts inline content
    into canonical form (no empty runs, no two adjacent runs with the same
    marks). Two trees are equivalent exactly when they compare equal.
    """

    kind: NodeKind
    attrs: dict[str, Any] = field(default_factory=dict)
    content: list[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.kind = NodeKind(self.kind)
        desc = get_registry().node(self.kind)
        self.attrs = _resolve_attrs(self.kind.value, desc.attrs, dict(self.attrs))
        self.content = list(self.content)
        self._check_content(desc.content)
        if desc.content is ContentModel.INLINE:
            self.content = normalize_inline(self.content)

    def _check_content(self, model: ContentModel) -> None:
        registry = get_registry()
        name = self.kind.value

        if model is ContentModel.ATOMIC:
            if self.content:
                raise SchemaViolation(
                    f"{name} is atomic and cannot hold content",
                    node_type=name,
                    constraint=model.value,
                )
            return

        if model in (ContentModel.BLOCKS, ContentModel.ITEMS) and not self.content:
            raise SchemaViolation(
                f"{name} needs at least one child",
                node_type=name,
                constraint=model.value,
            )

        for child in self.content:
            if model is ContentModel.INLINE:
                ok = isinstance(child, TextRun) or (
                    isinstance(child, DocumentNode)
                    and registry.node(child.kind).group is NodeGroup.INLINE
                )
            elif model is ContentModel.ITEMS:
                ok = isinstance(child, DocumentNode) and child.kind is NodeKind.LIST_ITEM
            else:
                ok = (
                    isinstance(child, DocumentNode)
                    and registry.node(child.kind).group is NodeGroup.BLOCK
                )
            if not ok:
                found = child.kind.value if isinstance(child, DocumentNode) else type(child).__name__
                raise SchemaViolation(
                    f"{name} cannot contain {found}",
                    node_type=name,
                    constraint=model.value,
                )

    @property
    def is_text_block(self) -> bool:
        return get_registry().node(self.kind).content is ContentModel.INLINE

    @property
    def is_atomic(self) -> bool:
        return get_registry().node(self.kind).is_atomic

    def set_attrs(self, **changes: Any) -> dict[str, Any]:
        """Apply validated attribute changes and return the new attributes."""
        desc = get_registry().node(self.kind)
        merged = {**self.attrs, **changes}
        self.attrs = _resolve_attrs(self.kind.value, desc.attrs, merged)
        return dict(self.attrs)

    def plain_text(self) -> str:
        """Text of inline content, hard breaks as newlines."""
        parts = []
        for child in self.content:
            if isinstance(child, TextRun):
                parts.append(child.text)
            elif child.kind is NodeKind.HARD_BREAK:
                parts.append("\n")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {"type": self.kind.value}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        if self.content:
            data["content"] = [child.to_dict() for child in self.content]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentNode:
        """Create from dictionary."""
        content: list[Any] = []
        for child in data.get("content", []):
            if child.get("type") == "text":
                content.append(TextRun.from_dict(child))
            else:
                content.append(cls.from_dict(child))
        return cls(kind=NodeKind(data["type"]), attrs=data.get("attrs", {}), content=content)


def normalize_inline(items: Iterable[Any]) -> list[Any]:
    """Merge adjacent runs with identical marks and drop empty runs."""
    merged: list[Any] = []
    for item in items:
        if isinstance(item, TextRun):
            if not item.text:
                continue
            prev = merged[-1] if merged else None
            if isinstance(prev, TextRun) and prev.marks == item.marks:
                merged[-1] = TextRun(prev.text + item.text, prev.marks)
                continue
        merged.append(item)
    return merged


# =============================================================================
# Builders
# =============================================================================


def text(value: str, *marks: MarkInstance | MarkKind | str) -> TextRun:
    """Build a text run; bare kinds become marks without attributes."""
    resolved = [m if isinstance(m, MarkInstance) else MarkInstance.create(m) for m in marks]
    return TextRun(value, frozenset(resolved))


def mark(kind: MarkKind | str, **attrs: Any) -> MarkInstance:
    return MarkInstance.create(kind, **attrs)


def node(kind: NodeKind | str, *content: Any, **attrs: Any) -> DocumentNode:
    """Build a node; string children of text blocks become plain runs."""
    items = [TextRun(c) if isinstance(c, str) else c for c in content]
    return DocumentNode(kind=NodeKind(kind), attrs=attrs, content=items)


def hard_break() -> DocumentNode:
    return DocumentNode(NodeKind.HARD_BREAK)


def paragraph(*content: Any) -> DocumentNode:
    return node(NodeKind.PARAGRAPH, *content)


def doc(*blocks: DocumentNode) -> DocumentNode:
    return node(NodeKind.DOC, *blocks)
