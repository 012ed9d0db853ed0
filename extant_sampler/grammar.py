"""Tokenizer for Newick (bracket-notation) tree text."""
from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Union

from .exceptions import GrammarError


LOGGER = logging.getLogger("extant_sampler.grammar")


class TokenKind(enum.Enum):
    OPEN = "("
    CLOSE = ")"
    COMMA = ","
    LABEL = "label"
    LENGTH = "length"
    END = ";"


@dataclass(frozen=True)
class Token:
    """A syntax token and the offset of its first character in the source text."""

    kind: TokenKind
    position: int
    value: Union[str, float, None] = None


_DELIMITERS: Dict[str, TokenKind] = {
    "(": TokenKind.OPEN,
    ")": TokenKind.CLOSE,
    ",": TokenKind.COMMA,
    ";": TokenKind.END,
}

# Characters that can never appear in an unquoted label.
LABEL_STOP = frozenset("(),:;[]'")

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# A lone ";" is a tree made of one unnamed leaf.
_TREE_START: FrozenSet[TokenKind] = frozenset(
    {TokenKind.OPEN, TokenKind.LABEL, TokenKind.LENGTH, TokenKind.END}
)
_CHILD_START: FrozenSet[TokenKind] = frozenset(
    {TokenKind.OPEN, TokenKind.LABEL, TokenKind.LENGTH, TokenKind.COMMA, TokenKind.CLOSE}
)

# Which token kinds may follow a given one (None stands for "start of a tree").
_FOLLOWERS: Dict[Optional[TokenKind], FrozenSet[TokenKind]] = {
    None: _TREE_START,
    TokenKind.END: _TREE_START,
    TokenKind.OPEN: _CHILD_START,
    TokenKind.COMMA: _CHILD_START,
    TokenKind.LABEL: frozenset(
        {TokenKind.LENGTH, TokenKind.COMMA, TokenKind.CLOSE, TokenKind.END}
    ),
    TokenKind.LENGTH: frozenset({TokenKind.COMMA, TokenKind.CLOSE, TokenKind.END}),
    TokenKind.CLOSE: frozenset(
        {TokenKind.LABEL, TokenKind.LENGTH, TokenKind.COMMA, TokenKind.CLOSE, TokenKind.END}
    ),
}


def _fragment(text: str, position: int, width: int = 12) -> str:
    return text[position:position + width]


def _describe(token: Token) -> str:
    if token.kind is TokenKind.LABEL:
        return f"label {token.value!r}"
    if token.kind is TokenKind.LENGTH:
        return f"branch length {token.value!r}"
    return repr(token.kind.value)


class _Tokenizer:
    """Single-pass scanner; keeps the nesting depth and the previous token."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.depth = 0
        self.tokens: List[Token] = []

    def error(self, message: str, position: Optional[int] = None) -> GrammarError:
        position = self.pos if position is None else position
        return GrammarError(message, position, _fragment(self.text, position))

    def emit(self, token: Token) -> None:
        previous = self.tokens[-1].kind if self.tokens else None
        if token.kind not in _FOLLOWERS[previous]:
            raise self.error(f"unexpected {_describe(token)}", token.position)
        if token.kind is TokenKind.OPEN:
            self.depth += 1
        elif token.kind is TokenKind.CLOSE:
            if self.depth == 0:
                raise self.error("unbalanced ')'", token.position)
            self.depth -= 1
        elif token.kind is TokenKind.COMMA and self.depth == 0:
            raise self.error("',' outside of a group", token.position)
        elif token.kind is TokenKind.END and self.depth != 0:
            raise self.error(f"{self.depth} unclosed '('", token.position)
        self.tokens.append(token)

    def skip_comment(self) -> None:
        end = self.text.find("]", self.pos)
        if end < 0:
            raise self.error("unterminated comment")
        self.pos = end + 1

    def read_quoted(self) -> str:
        start = self.pos
        chars: List[str] = []
        self.pos += 1
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "'":
                if self.text.startswith("''", self.pos):
                    chars.append("'")
                    self.pos += 2
                    continue
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        raise self.error("unterminated quoted label", start)

    def read_unquoted(self) -> str:
        start = self.pos
        while (
            self.pos < len(self.text)
            and not self.text[self.pos].isspace()
            and self.text[self.pos] not in LABEL_STOP
        ):
            self.pos += 1
        return self.text[start:self.pos]

    def read_length(self) -> float:
        self.pos += 1
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        start = self.pos
        match = _NUMBER.match(self.text, self.pos)
        end = match.end() if match else start
        if (
            match is None
            or end < len(self.text)
            and not self.text[end].isspace()
            and self.text[end] not in LABEL_STOP
        ):
            raise self.error("invalid branch length", start)
        value = float(match.group())
        if not math.isfinite(value):
            raise self.error("branch length out of range", start)
        self.pos = end
        return value

    def run(self) -> List[Token]:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            start = self.pos
            if char.isspace():
                self.pos += 1
            elif char == "[":
                self.skip_comment()
            elif char in _DELIMITERS:
                self.pos += 1
                self.emit(Token(_DELIMITERS[char], start))
            elif char == ":":
                self.emit(Token(TokenKind.LENGTH, start, self.read_length()))
            elif char == "'":
                self.emit(Token(TokenKind.LABEL, start, self.read_quoted()))
            elif char in LABEL_STOP:
                raise self.error(f"unexpected character {char!r}")
            else:
                self.emit(Token(TokenKind.LABEL, start, self.read_unquoted()))

        if not self.tokens:
            raise self.error("empty tree text", 0)
        if self.tokens[-1].kind is not TokenKind.END:
            if self.depth:
                raise self.error(f"{self.depth} unclosed '('", len(text))
            raise self.error("missing terminating ';'", len(text))
        return self.tokens


def tokenize(text: str) -> List[Token]:
    """Split Newick text into a list of tokens.

    Whitespace and ``[...]`` comments are skipped. Labels may be bare or
    single-quoted (``''`` escapes a quote). A ``LENGTH`` token carries the float
    that followed a ``:``.

    Raises:
        GrammarError: the text is empty, unbalanced, has a non-numeric length,
            an unexpected character or token, or no terminating ``;``.
    """
    tokens = _Tokenizer(text).run()
    LOGGER.debug("Tokenized %d characters into %d tokens", len(text), len(tokens))
    return tokens


__all__ = ["LABEL_STOP", "Token", "TokenKind", "tokenize"]
