"""Recursive tree: building from tokens, Newick output, depth bookkeeping."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .exceptions import InvariantViolation, StructureError
from .grammar import LABEL_STOP, Token, TokenKind, tokenize


LOGGER = logging.getLogger("extant_sampler.tree")


@dataclass
class Node:
    """A binary tree node that owns its children.

    ``branch_length`` is the distance to the parent and ``depth`` the distance
    from the root baseline; which of the two is authoritative depends on the
    pipeline stage.
    """

    name: str = ""
    branch_length: float = 0.0
    depth: Optional[float] = None
    left: Optional["Node"] = None
    right: Optional["Node"] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def children(self) -> List["Node"]:
        return [child for child in (self.left, self.right) if child is not None]

    def iter_preorder(self) -> Iterator["Node"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def leaves(self) -> List["Node"]:
        return [node for node in self.iter_preorder() if node.is_leaf]


class _Builder:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = tokens
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def expect(self, kind: TokenKind) -> Token:
        token = self.peek()
        if token is None:
            raise StructureError(f"unexpected end of tree, expected {kind.value!r}")
        if token.kind is not kind:
            raise StructureError(
                f"expected {kind.value!r} at position {token.position}, "
                f"found {token.kind.value!r}"
            )
        self.index += 1
        return token

    def finish(self, node: Node) -> Node:
        """Attach the optional label and length that follow a node."""
        token = self.peek()
        if token is not None and token.kind is TokenKind.LABEL:
            node.name = str(token.value)
            self.index += 1
            token = self.peek()
        if token is not None and token.kind is TokenKind.LENGTH:
            node.branch_length = float(token.value)
            self.index += 1
        return node

    def subtree(self) -> Node:
        # Groups still waiting for their ')': (node, children so far, opening token).
        open_groups: List[Tuple[Node, List[Node], Token]] = []
        while True:
            token = self.peek()
            if token is not None and token.kind is TokenKind.OPEN:
                self.index += 1
                open_groups.append((Node(), [], token))
                continue

            node = self.finish(Node())
            while open_groups:
                parent, children, opened = open_groups[-1]
                children.append(node)
                token = self.peek()
                if token is not None and token.kind is TokenKind.COMMA:
                    self.index += 1
                    break
                self.expect(TokenKind.CLOSE)
                open_groups.pop()
                if len(children) != 2:
                    raise StructureError(
                        f"group opened at position {opened.position} has {len(children)} "
                        "children; only binary trees are supported"
                    )
                parent.left, parent.right = children
                node = self.finish(parent)
            else:
                return node


def build(tokens: Sequence[Token]) -> Node:
    """Build one recursive tree from a token stream.

    Raises:
        StructureError: the stream is empty, encodes a node with one child or
            more than two, or continues after the first complete tree.
    """
    if not tokens:
        raise StructureError("no tree found in token stream")
    builder = _Builder(tokens)
    root = builder.subtree()
    builder.expect(TokenKind.END)
    trailing = builder.peek()
    if trailing is not None:
        raise StructureError(
            f"trailing data after the first tree at position {trailing.position}"
        )
    return root


def parse_newick(text: str) -> Node:
    """Tokenize and build a single tree from Newick text."""
    return build(tokenize(text))


def format_length(value: float) -> str:
    """Shortest text that parses back to ``value`` (``2`` rather than ``2.0``)."""
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def format_name(name: str) -> str:
    """Quote a label that would not read back as a bare Newick label."""
    if any(char.isspace() or char in LABEL_STOP for char in name):
        return "'" + name.replace("'", "''") + "'"
    return name


def serialize(node: Node) -> str:
    """Render a tree as Newick text terminated by ``;``.

    Internal nodes are written ``(left,right)name:length`` and leaves
    ``name:length``. The root's length is omitted when it is zero.
    """
    rendered: List[str] = []
    stack: List[Tuple[Node, bool]] = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if not current.is_leaf and not expanded:
            if current.left is None or current.right is None:
                raise InvariantViolation(f"node {current.name!r} has a single child")
            stack.append((current, True))
            stack.append((current.right, False))
            stack.append((current.left, False))
            continue
        text = ""
        if not current.is_leaf:
            right = rendered.pop()
            left = rendered.pop()
            text = f"({left},{right})"
        text += format_name(current.name)
        if current is not node or current.branch_length != 0.0:
            text += ":" + format_length(current.branch_length)
        rendered.append(text)
    return rendered[0] + ";"


def zero_root_length(tree: Node) -> None:
    """Discard whatever length was parsed for the root."""
    tree.branch_length = 0.0


def assign_depths(tree: Node, start_depth: float = 0.0) -> None:
    """Set every node's depth from the branch lengths, starting at ``start_depth``."""
    tree.depth = start_depth
    stack = [tree]
    while stack:
        parent = stack.pop()
        for child in parent.children():
            child.depth = parent.depth + child.branch_length
            stack.append(child)


def _require_depth(node: Node) -> float:
    if node.depth is None:
        raise InvariantViolation(f"node {node.name!r} has no depth assigned")
    return node.depth


def depths_to_lengths(tree: Node, root_depth: float) -> None:
    """Recompute every branch length from the recorded depths.

    ``root_depth`` is the baseline the root is measured against; passing the
    root's own depth gives the root a zero length. Each child gets
    ``depth(child) - depth(parent)``.

    Raises:
        InvariantViolation: a node in the tree has no depth.
    """
    tree.branch_length = _require_depth(tree) - root_depth
    stack = [tree]
    while stack:
        parent = stack.pop()
        parent_depth = _require_depth(parent)
        for child in parent.children():
            child.branch_length = _require_depth(child) - parent_depth
            stack.append(child)


__all__ = [
    "Node",
    "assign_depths",
    "build",
    "depths_to_lengths",
    "format_length",
    "format_name",
    "parse_newick",
    "serialize",
    "zero_root_length",
]
