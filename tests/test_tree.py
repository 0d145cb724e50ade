"""Tests for tree.py - structural queries over documents.

Tests:
- Ancestor/descendant traversal
- Siblings
- Text extraction
- Heading slugs
"""

from __future__ import annotations

import pytest


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample():
    """A doc with a callout holding a list, plus a trailing paragraph."""
    from quillmark.document import NodeKind, doc, node, paragraph

    leaf = paragraph("leaf")
    item = node(NodeKind.LIST_ITEM, leaf)
    other_item = node(NodeKind.LIST_ITEM, paragraph("other"))
    lst = node(NodeKind.BULLET_LIST, item, other_item)
    callout = node(NodeKind.CALLOUT, lst, type="tip")
    tail = paragraph("tail")
    root = doc(callout, tail)
    return {
        "root": root,
        "callout": callout,
        "list": lst,
        "item": item,
        "other_item": other_item,
        "leaf": leaf,
        "tail": tail,
    }


# =============================================================================
# Ancestor/Descendant Tests
# =============================================================================


class TestAncestorDescendant:
    """Test ancestor and descendant traversal."""

    def test_get_ancestors_root(self, sample) -> None:
        """Root has no ancestors."""
        from quillmark.document.tree import get_ancestors

        assert get_ancestors(sample["root"], sample["root"]) == []

    def test_get_ancestors_nested(self, sample) -> None:
        from quillmark.document.tree import get_ancestors

        ancestors = get_ancestors(sample["root"], sample["leaf"])

        assert len(ancestors) == 4
        assert ancestors[0] is sample["item"]  # Immediate parent first
        assert ancestors[-1] is sample["root"]

    def test_get_parent(self, sample) -> None:
        from quillmark.document.tree import get_parent

        assert get_parent(sample["root"], sample["list"]) is sample["callout"]
        assert get_parent(sample["root"], sample["root"]) is None

    def test_identity_not_equality(self, sample) -> None:
        """An equal node elsewhere is not part of the tree."""
        from quillmark.document import paragraph
        from quillmark.document.tree import get_parent

        assert get_parent(sample["root"], paragraph("tail")) is None

    def test_get_descendants_depth_first(self, sample) -> None:
        from quillmark.document.tree import get_descendants

        kinds = [n.kind.value for n in get_descendants(sample["callout"])]
        assert kinds == ["bullet_list", "list_item", "paragraph", "list_item", "paragraph"]

    def test_get_descendants_of_leaf(self, sample) -> None:
        from quillmark.document.tree import get_descendants

        assert get_descendants(sample["leaf"]) == []

    def test_is_ancestor(self, sample) -> None:
        from quillmark.document.tree import is_ancestor

        assert is_ancestor(sample["callout"], sample["leaf"])
        assert not is_ancestor(sample["leaf"], sample["callout"])
        assert not is_ancestor(sample["tail"], sample["tail"])

    def test_find_nodes(self, sample) -> None:
        from quillmark.document import NodeKind
        from quillmark.document.tree import find_nodes

        assert len(find_nodes(sample["root"], NodeKind.PARAGRAPH)) == 3
        assert find_nodes(sample["root"], "callout") == [sample["callout"]]


class TestSiblings:
    """Nodes sharing a parent."""

    def test_siblings_exclude_self(self, sample) -> None:
        from quillmark.document.tree import get_siblings

        siblings = get_siblings(sample["root"], sample["item"])
        assert len(siblings) == 1
        assert siblings[0] is sample["other_item"]

    def test_siblings_include_self(self, sample) -> None:
        from quillmark.document.tree import get_siblings

        siblings = get_siblings(sample["root"], sample["tail"], include_self=True)
        assert siblings == [sample["callout"], sample["tail"]]

    def test_only_child(self, sample) -> None:
        from quillmark.document.tree import get_siblings

        assert get_siblings(sample["root"], sample["list"]) == []


# =============================================================================
# Text
# =============================================================================


class TestTextContent:
    """Text extraction over subtrees."""

    def test_subtree_text(self, sample) -> None:
        from quillmark.document.tree import text_content

        assert text_content(sample["root"]) == "leaf\nother\ntail"

    def test_atomic_blocks_contribute(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph
        from quillmark.document.tree import text_content

        root = doc(
            node(NodeKind.DETAILS, paragraph("body"), title="Title"),
            node(NodeKind.CODE_BLOCK, code="x = 1"),
            node(NodeKind.MATH_BLOCK, latex="a^2"),
            node(NodeKind.IMAGE, src="i.png", alt="diagram"),
            node(NodeKind.HORIZONTAL_RULE),
        )
        assert text_content(root, " | ") == "Title | body | x = 1 | a^2 | diagram"


# =============================================================================
# Heading slugs
# =============================================================================


class TestSlugs:
    """Anchor slugs for headings."""

    @pytest.mark.parametrize(
        ("title", "slug"),
        [
            ("Hello World", "hello-world"),
            ("  What's new?  ", "whats-new"),
            ("A -- B", "a-b"),
            ("你好 World", "你好-world"),
            ("C++ & Rust", "c-rust"),
        ],
    )
    def test_slugify(self, title: str, slug: str) -> None:
        from quillmark.document.tree import slugify

        assert slugify(title) == slug

    def test_duplicates_numbered(self) -> None:
        from quillmark.document import parse_markdown
        from quillmark.document.tree import heading_slugs

        doc = parse_markdown("# Intro\n\n## Intro\n\n## Setup\n\n### Intro")
        assert [slug for _, slug in heading_slugs(doc)] == ["intro", "intro-1", "setup", "intro-2"]

    def test_generated_slug_not_reused(self) -> None:
        from quillmark.document import parse_markdown
        from quillmark.document.tree import heading_slugs

        doc = parse_markdown("# A\n\n# A 1\n\n# A")
        assert [slug for _, slug in heading_slugs(doc)] == ["a", "a-1", "a-2"]

    def test_headings_inside_containers(self) -> None:
        from quillmark.document import parse_markdown
        from quillmark.document.tree import heading_slugs

        doc = parse_markdown(":::tip\n# Inside\n:::")
        assert [slug for _, slug in heading_slugs(doc)] == ["inside"]
