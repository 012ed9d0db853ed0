"""Index-addressed mirror of the recursive tree, used as the pruning substrate."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .exceptions import InvariantViolation
from .tree import Node


LOGGER = logging.getLogger("extant_sampler.flat")


class TraversalOrder(enum.Enum):
    PRE_ORDER = "pre"
    IN_ORDER = "in"
    POST_ORDER = "post"


@dataclass
class FlatNode:
    """One record of a FlatTree; relations are indices into the same tree."""

    name: str = ""
    branch_length: float = 0.0
    depth: Optional[float] = None
    parent: Optional[int] = None
    left_child: Optional[int] = None
    right_child: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.left_child is None and self.right_child is None

    def child_indices(self) -> List[int]:
        return [child for child in (self.left_child, self.right_child) if child is not None]


@dataclass
class FlatTree:
    """Dense list of FlatNode records plus the index of the root.

    Records detached by pruning stay in ``nodes`` but are unreachable from
    ``root``; traversals and ``to_node`` never visit them.
    """

    nodes: List[FlatNode] = field(default_factory=list)
    root: int = 0

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> FlatNode:
        return self.node_at(index)

    def __iter__(self) -> Iterator[Tuple[int, FlatNode]]:
        return self.iter(TraversalOrder.PRE_ORDER)

    def node_at(self, index: int) -> FlatNode:
        if not 0 <= index < len(self.nodes):
            raise InvariantViolation(
                f"index {index} does not address a record (tree has {len(self.nodes)})"
            )
        return self.nodes[index]

    @classmethod
    def from_node(cls, node: Node) -> "FlatTree":
        """Linearize a recursive tree in pre-order; the root lands at index 0."""
        flat = cls()
        stack: List[Tuple[Node, Optional[int], bool]] = [(node, None, False)]
        while stack:
            current, parent, is_right = stack.pop()
            index = len(flat.nodes)
            flat.nodes.append(
                FlatNode(current.name, current.branch_length, current.depth, parent)
            )
            if parent is not None:
                if is_right:
                    flat.nodes[parent].right_child = index
                else:
                    flat.nodes[parent].left_child = index
            if current.right is not None:
                stack.append((current.right, index, True))
            if current.left is not None:
                stack.append((current.left, index, False))
        LOGGER.debug("Flattened tree into %d records", len(flat.nodes))
        return flat

    def to_node(self) -> Node:
        """Rebuild the owned tree hanging from ``root``."""
        top: Optional[Node] = None
        built = 0
        stack: List[Tuple[int, Optional[Node], bool]] = [(self.root, None, False)]
        while stack:
            index, parent, is_right = stack.pop()
            record = self.node_at(index)
            if (record.left_child is None) != (record.right_child is None):
                raise InvariantViolation(f"record {index} ({record.name!r}) has a single child")
            built += 1
            if built > len(self.nodes):
                raise InvariantViolation("cycle detected while rebuilding flat tree")
            node = Node(record.name, record.branch_length, record.depth)
            if parent is None:
                top = node
            elif is_right:
                parent.right = node
            else:
                parent.left = node
            if record.left_child is not None:
                stack.append((record.right_child, node, True))
                stack.append((record.left_child, node, False))
        return top

    def iter(
        self, order: TraversalOrder = TraversalOrder.PRE_ORDER
    ) -> Iterator[Tuple[int, FlatNode]]:
        """Lazily yield ``(index, record)`` pairs reachable from ``root``.

        Each call starts a fresh traversal.
        """
        if order is TraversalOrder.PRE_ORDER:
            indices = self._preorder()
        elif order is TraversalOrder.IN_ORDER:
            indices = self._inorder()
        else:
            indices = self._postorder()
        visited = 0
        for index in indices:
            visited += 1
            if visited > len(self.nodes):
                raise InvariantViolation("cycle detected while traversing flat tree")
            yield index, self.node_at(index)

    def _check_stack(self, stack: List) -> None:
        if len(stack) > len(self.nodes):
            raise InvariantViolation("cycle detected while traversing flat tree")

    def _preorder(self) -> Iterator[int]:
        stack = [self.root]
        while stack:
            index = stack.pop()
            yield index
            stack.extend(reversed(self.node_at(index).child_indices()))

    def _inorder(self) -> Iterator[int]:
        stack: List[int] = []
        current: Optional[int] = self.root
        while stack or current is not None:
            while current is not None:
                stack.append(current)
                self._check_stack(stack)
                current = self.node_at(current).left_child
            index = stack.pop()
            yield index
            current = self.nodes[index].right_child

    def _postorder(self) -> Iterator[int]:
        stack: List[Tuple[int, bool]] = [(self.root, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                yield index
                continue
            stack.append((index, True))
            for child in reversed(self.node_at(index).child_indices()):
                stack.append((child, False))
            self._check_stack(stack)


def flatten(tree: Node) -> FlatTree:
    """Linearize a recursive tree into a FlatTree rooted at index 0."""
    return FlatTree.from_node(tree)


def unflatten(flat_tree: FlatTree) -> Node:
    """Rebuild the recursive tree reachable from ``flat_tree.root``."""
    return flat_tree.to_node()


__all__ = ["FlatNode", "FlatTree", "TraversalOrder", "flatten", "unflatten"]
