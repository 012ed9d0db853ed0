"""Keep the deepest leaves of a flat tree and splice all the others out."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .exceptions import EmptySampleError, InvariantViolation
from .flat import FlatTree, TraversalOrder


LOGGER = logging.getLogger("extant_sampler.pruning")


@dataclass
class PruneResult:
    """Indices of the kept leaves (deepest first) and of the removed ones."""

    sampled: List[int]
    removed: List[int]


def find_all_leaves(flat_tree: FlatTree) -> List[int]:
    """Indices of every leaf reachable from the root, in pre-order."""
    return [
        index
        for index, node in flat_tree.iter(TraversalOrder.PRE_ORDER)
        if node.is_leaf
    ]


def find_deepest_leaves(flat_tree: FlatTree, nb_leaves: int) -> List[int]:
    """Return the ``nb_leaves`` deepest leaves, deepest first.

    Equal depths keep their pre-order discovery order. Asking for more leaves
    than the tree has returns all of them.

    Raises:
        EmptySampleError: ``nb_leaves`` is zero or negative.
        InvariantViolation: a leaf has no depth assigned.
    """
    if nb_leaves <= 0:
        raise EmptySampleError(
            f"cannot sample {nb_leaves} leaves: the pruned tree would have no root"
        )
    leaves = find_all_leaves(flat_tree)
    for index in leaves:
        if flat_tree[index].depth is None:
            raise InvariantViolation(f"leaf {index} has no depth assigned")
    ranked = sorted(leaves, key=lambda index: flat_tree[index].depth, reverse=True)
    return ranked[:nb_leaves]


def leaves_to_be_removed(leaves: Sequence[int], sampled_leaves: Iterable[int]) -> List[int]:
    """Leaves not in ``sampled_leaves``, in the order of ``leaves``."""
    sampled = set(sampled_leaves)
    return [leaf for leaf in leaves if leaf not in sampled]


def change_tree(flat_tree: FlatTree, index: int) -> None:
    """Splice one leaf and its parent out of the tree.

    The leaf's sibling takes the parent's place under the grandparent (or
    becomes the new top of the tree when the parent was the root). The parent
    and the leaf stay in ``flat_tree.nodes`` as detached records. Depths are
    left untouched and ``flat_tree.root`` is not updated.

    Raises:
        InvariantViolation: ``index`` is not a leaf, has no parent, or is not
            one of its parent's children.
    """
    leaf = flat_tree[index]
    if not leaf.is_leaf:
        raise InvariantViolation(f"record {index} ({leaf.name!r}) is not a leaf")
    if leaf.parent is None:
        raise InvariantViolation(f"leaf {index} ({leaf.name!r}) is the root of the tree")

    parent_index = leaf.parent
    parent = flat_tree[parent_index]
    if parent.left_child == index:
        sister_index = parent.right_child
    elif parent.right_child == index:
        sister_index = parent.left_child
    else:
        raise InvariantViolation(
            f"record {parent_index} is the parent of {index} but has no child slot for it"
        )
    if sister_index is None:
        raise InvariantViolation(f"record {parent_index} has a single child")

    grandparent_index = parent.parent
    parent.parent = None
    flat_tree[sister_index].parent = grandparent_index

    if grandparent_index is not None:
        grandparent = flat_tree[grandparent_index]
        if grandparent.left_child == parent_index:
            grandparent.left_child = sister_index
        elif grandparent.right_child == parent_index:
            grandparent.right_child = sister_index
        else:
            raise InvariantViolation(
                f"record {grandparent_index} is the parent of {parent_index} "
                "but has no child slot for it"
            )
    LOGGER.debug(
        "Removed leaf %d (%r); sibling %d now hangs from %s",
        index,
        leaf.name,
        sister_index,
        grandparent_index,
    )


def remove_all_unsampled(flat_tree: FlatTree, indexes: Iterable[int]) -> None:
    """Splice every leaf in ``indexes`` out of ``flat_tree``."""
    for index in indexes:
        change_tree(flat_tree, index)


def find_root(flat_tree: FlatTree, leaf_index: int) -> int:
    """Follow parent links upward from ``leaf_index`` to the top of its tree."""
    current = leaf_index
    steps = 0
    while flat_tree[current].parent is not None:
        current = flat_tree[current].parent
        steps += 1
        if steps > len(flat_tree):
            raise InvariantViolation("cycle detected while searching for the root")
    return current


def prune_to_deepest(flat_tree: FlatTree, nb_leaves: int) -> PruneResult:
    """Reduce ``flat_tree`` in place to its ``nb_leaves`` deepest leaves.

    ``flat_tree.root`` is set once all splices are done, by walking up from a
    kept leaf.
    """
    sampled = find_deepest_leaves(flat_tree, nb_leaves)
    leaves = find_all_leaves(flat_tree)
    removed = leaves_to_be_removed(leaves, sampled)
    LOGGER.debug("Keeping %d of %d leaves", len(sampled), len(leaves))

    remove_all_unsampled(flat_tree, removed)
    flat_tree.root = find_root(flat_tree, sampled[0])
    return PruneResult(sampled=sampled, removed=removed)


__all__ = [
    "PruneResult",
    "change_tree",
    "find_all_leaves",
    "find_deepest_leaves",
    "find_root",
    "leaves_to_be_removed",
    "prune_to_deepest",
    "remove_all_unsampled",
]
