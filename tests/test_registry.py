"""Tests for the type registry.

Tests:
- Every node and mark kind has a descriptor
- Mark rank order
- Build-time validation
- Attribute extraction rules
"""

from __future__ import annotations

import pytest


class TestRegistryContents:
    """The built-in registry covers the closed kind sets."""

    def test_every_node_kind_registered(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        registry = get_registry()
        assert set(registry.nodes) == set(NodeKind)

    def test_every_mark_kind_registered(self) -> None:
        from quillmark.document.registry import MarkKind, get_registry

        registry = get_registry()
        assert set(registry.marks) == set(MarkKind)

    def test_mark_ranks_follow_declaration_order(self) -> None:
        """Link is outermost, code innermost."""
        from quillmark.document.registry import MarkKind, get_registry

        registry = get_registry()
        ranks = [registry.mark_rank(kind) for kind in MarkKind]
        assert ranks == sorted(ranks)
        assert registry.mark_rank(MarkKind.LINK) < registry.mark_rank(MarkKind.CODE)

    def test_mappings_are_read_only(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        registry = get_registry()
        with pytest.raises(TypeError):
            registry.nodes[NodeKind.DOC] = None  # type: ignore[index]

    def test_content_models(self) -> None:
        from quillmark.document.registry import ContentModel, NodeGroup, NodeKind, get_registry

        registry = get_registry()
        assert registry.node(NodeKind.PARAGRAPH).content is ContentModel.INLINE
        assert registry.node(NodeKind.BULLET_LIST).content is ContentModel.ITEMS
        assert registry.node(NodeKind.CALLOUT).content is ContentModel.BLOCKS
        assert registry.node(NodeKind.QUIZ).is_atomic
        assert registry.node(NodeKind.HARD_BREAK).group is NodeGroup.INLINE

    def test_kinds_for_rule(self) -> None:
        from quillmark.document.registry import BlockRule, NodeKind, get_registry

        kinds = get_registry().kinds_for_rule(BlockRule.PAYLOAD)
        assert set(kinds) == {NodeKind.MINDMAP, NodeKind.QUIZ}

    def test_lookup_by_string(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        assert get_registry().node("callout").kind is NodeKind.CALLOUT


class TestRegistryBuild:
    """TypeRegistry.build rejects inconsistent descriptor sets."""

    def test_missing_kind_raises(self) -> None:
        from quillmark.document import registry as reg
        from quillmark.errors import ConfigurationError

        partial = tuple(d for d in reg._NODE_TYPES if d.kind is not reg.NodeKind.QUIZ)
        with pytest.raises(ConfigurationError, match="quiz"):
            reg.TypeRegistry.build(partial, reg._MARK_TYPES)

    def test_duplicate_kind_raises(self) -> None:
        from quillmark.document import registry as reg
        from quillmark.errors import ConfigurationError

        doubled = reg._NODE_TYPES + reg._NODE_TYPES[:1]
        with pytest.raises(ConfigurationError, match="Duplicate"):
            reg.TypeRegistry.build(doubled, reg._MARK_TYPES)

    def test_shared_rank_raises(self) -> None:
        from dataclasses import replace

        from quillmark.document import registry as reg
        from quillmark.errors import ConfigurationError

        marks = list(reg._MARK_TYPES)
        marks[1] = replace(marks[1], rank=marks[0].rank)
        with pytest.raises(ConfigurationError, match="rank"):
            reg.TypeRegistry.build(reg._NODE_TYPES, tuple(marks))


class TestExtractionRules:
    """Attribute extractors coerce markup strings and reject garbage."""

    def test_width_clamped(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        extract = get_registry().node(NodeKind.IMAGE).attr("width").extract
        assert extract("60") == 60
        assert extract("60%") == 60
        assert extract(250) == 100
        assert extract(3) == 10
        assert extract(55.6) == 56

    def test_width_rejects_text(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        extract = get_registry().node(NodeKind.IMAGE).attr("width").extract
        with pytest.raises(ValueError):
            extract("wide")

    def test_choice_is_case_insensitive(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        extract = get_registry().node(NodeKind.CALLOUT).attr("type").extract
        assert extract("WARNING") == "warning"
        with pytest.raises(ValueError):
            extract("danger")

    def test_flag_values(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        extract = get_registry().node(NodeKind.DETAILS).attr("open").extract
        assert extract("") is True
        assert extract("open") is True
        assert extract("false") is False
        with pytest.raises(ValueError):
            extract("maybe")

    def test_start_bounds(self) -> None:
        from quillmark.document.registry import NodeKind, get_registry

        extract = get_registry().node(NodeKind.ORDERED_LIST).attr("start").extract
        assert extract("7") == 7
        assert extract(10**10) == 999_999_999
        with pytest.raises(ValueError):
            extract(-1)
