"""Structural queries over a document tree.

This module provides read-only operations on the node hierarchy:
- Walking nodes and collecting descendants
- Finding parents, ancestors and siblings
- Extracting text content
- Heading anchor slugs

Nodes are compared by identity, so two equal paragraphs in different
places are still different nodes.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterator

from .models import DocumentNode, TextRun
from .registry import NodeKind

_SLUG_DROP_RE = re.compile(r"[^a-z0-9\u4e00-\u9fa5-]")
_DASHES_RE = re.compile(r"-{2,}")


# =============================================================================
# Ancestor/Descendant Operations
# =============================================================================


def iter_nodes(root: DocumentNode) -> Iterator[DocumentNode]:
    """Yield root and every node below it, depth-first, in document order.

    Text runs are not nodes and are skipped.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        yield current
        children = [c for c in current.content if isinstance(c, DocumentNode)]
        stack.extend(reversed(children))


def get_descendants(root: DocumentNode) -> list[DocumentNode]:
    """Get all descendants of a node (depth-first), excluding the node."""
    return list(iter_nodes(root))[1:]


def find_nodes(root: DocumentNode, kind: NodeKind | str) -> list[DocumentNode]:
    kind = NodeKind(kind)
    return [n for n in iter_nodes(root) if n.kind is kind]


def _parent_map(root: DocumentNode) -> dict[int, DocumentNode]:
    parents: dict[int, DocumentNode] = {}
    for current in iter_nodes(root):
        for child in current.content:
            if isinstance(child, DocumentNode):
                parents[id(child)] = current
    return parents


def get_parent(root: DocumentNode, target: DocumentNode) -> DocumentNode | None:
    """Get the parent of target within root, or None for root or strangers."""
    return _parent_map(root).get(id(target))


def get_ancestors(root: DocumentNode, target: DocumentNode) -> list[DocumentNode]:
    """Get all ancestors of a node, from immediate parent to root.

    Args:
        root: The tree to search.
        target: A node inside that tree.

    Returns:
        List of ancestor nodes, starting with the immediate parent. Empty
        when target is root or not in the tree.
    """
    parents = _parent_map(root)
    ancestors = []
    current = parents.get(id(target))
    while current is not None:
        ancestors.append(current)
        current = parents.get(id(current))
    return ancestors


def get_siblings(
    root: DocumentNode,
    target: DocumentNode,
    include_self: bool = False,
) -> list[DocumentNode]:
    """Get the nodes sharing target's parent, in document order."""
    parent = get_parent(root, target)
    if parent is None:
        return [target] if include_self and target is root else []
    return [
        c
        for c in parent.content
        if isinstance(c, DocumentNode) and (include_self or c is not target)
    ]


def is_ancestor(ancestor: DocumentNode, target: DocumentNode) -> bool:
    """Check whether target sits strictly below ancestor."""
    return any(n is target for n in get_descendants(ancestor))


# =============================================================================
# Text
# =============================================================================


def text_content(root: DocumentNode, separator: str = "\n") -> str:
    """Extract the text of a subtree.

    Text blocks contribute their inline text; code, math and image alt
    text are included. Blocks are joined with separator.
    """
    if root.is_text_block:
        return "".join(
            c.text if isinstance(c, TextRun) else "\n"
            for c in root.content
        )
    if root.kind is NodeKind.CODE_BLOCK:
        return root.attrs["code"]
    if root.kind is NodeKind.MATH_BLOCK:
        return root.attrs["latex"]
    if root.kind is NodeKind.IMAGE:
        return root.attrs["alt"]
    if root.kind is NodeKind.DETAILS:
        parts = [root.attrs["title"]]
    else:
        parts = []
    for child in root.content:
        if isinstance(child, DocumentNode):
            piece = text_content(child, separator)
            if piece:
                parts.append(piece)
    return separator.join(parts)


# =============================================================================
# Heading slugs
# =============================================================================


def slugify(value: str) -> str:
    """Turn heading text into an anchor slug.

    Keeps ASCII letters, digits, dashes and CJK ideographs.
    """
    slug = re.sub(r"\s+", "-", value.strip().lower())
    slug = _SLUG_DROP_RE.sub("", slug)
    slug = _DASHES_RE.sub("-", slug)
    return slug.strip("-")


def heading_slugs(root: DocumentNode) -> list[tuple[DocumentNode, str]]:
    """Pair every heading with a unique anchor slug, in document order.

    Repeats get a numeric suffix: ``intro``, ``intro-1``, ``intro-2``.
    """
    seen: Counter[str] = Counter()
    result = []
    for heading in find_nodes(root, NodeKind.HEADING):
        base = slugify(text_content(heading).replace("\n", " "))
        slug = base
        while slug in seen:
            slug = f"{base}-{seen[base]}"
            seen[base] += 1
        seen[slug] += 1
        result.append((heading, slug))
    return result
