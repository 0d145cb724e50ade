"""Interface between document nodes and host-provided node views.

A host (an editor, a preview pane) renders the interactive node kinds
itself. It receives a NodeViewContext per node: a read-only snapshot of
the node's attributes plus an update callback that writes validated
changes back into the tree.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..errors import ConfigurationError
from .models import DocumentNode
from .registry import NodeKind

logger = logging.getLogger(__name__)

Subscriber = Callable[[DocumentNode, Mapping[str, Any]], None]
ViewFactory = Callable[["NodeViewContext"], Any]


class NodeViewContext:
    """Attribute access and updates for a single node."""

    def __init__(self, node: DocumentNode) -> None:
        self._node = node
        self._subscribers: list[Subscriber] = []

    @property
    def kind(self) -> NodeKind:
        return self._node.kind

    def snapshot(self) -> Mapping[str, Any]:
        """Current attributes as a read-only mapping."""
        return MappingProxyType(dict(self._node.attrs))

    def update(self, **changes: Any) -> Mapping[str, Any]:
        """Write attribute changes back to the node.

        Values go through the node's extraction rules, so an out-of-range
        width is clamped and an unknown callout type falls back to its
        default (or raises SchemaViolation in strict mode). Subscribers see
        the resulting attributes.

        Returns:
            The node's attributes after the update.
        """
        attrs = MappingProxyType(self._node.set_attrs(**changes))
        logger.debug("Updated %s: %s", self._node.kind.value, sorted(changes))
        for subscriber in list(self._subscribers):
            try:
                subscriber(self._node, attrs)
            except Exception:
                logger.exception("Node view subscriber failed for %s", self._node.kind.value)
        return attrs

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class NodeViewRegistry:
    """Registry that maps node kinds to host view factories."""

    def __init__(self) -> None:
        self._factories: dict[NodeKind, ViewFactory] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, kind: NodeKind | str, factory: ViewFactory) -> None:
        """Register a view factory for a node kind."""
        if self._frozen:
            raise ConfigurationError(
                "Node view registry is frozen",
                setting="node_views",
            )
        kind = NodeKind(kind)
        if kind in self._factories:
            logger.info("Replacing node view for %s", kind.value)
        self._factories[kind] = factory

    def freeze(self) -> None:
        """Stop accepting registrations."""
        self._frozen = True

    def has_view(self, kind: NodeKind | str) -> bool:
        return NodeKind(kind) in self._factories

    def create_view(self, node: DocumentNode) -> Any | None:
        """Build the host view for node, or None if its kind has no view."""
        factory = self._factories.get(node.kind)
        if factory is None:
            return None
        return factory(NodeViewContext(node))
