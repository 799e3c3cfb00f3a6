# File: apiscaffold/lexer.py
"""
apiscaffold - PHP Source Tokenizer
====================================
A small tokenizer for the subset of PHP that migration files and Eloquent
model classes are written in.  It is deliberately forgiving: anything it
does not recognise becomes an ``OTHER`` token, so malformed input degrades
into "no match" instead of an exception.

Recognised tokens::

    VARIABLE   $table
    IDENT      Schema, create, Blueprint, App\\Models\\User
    STRING     'name'  "name"          (value holds the decoded text)
    NUMBER     255  8.2
    ARROW      ->
    NULLSAFE   ?->
    DCOLON     ::
    DARROW     =>
    PUNCT      ( ) [ ] { } , ;
    OTHER      any other single character

Whitespace and ``//``, ``#`` and ``/* */`` comments are skipped.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, NamedTuple, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.lexer")

# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------

VARIABLE: str = "VARIABLE"
IDENT: str = "IDENT"
STRING: str = "STRING"
NUMBER: str = "NUMBER"
ARROW: str = "ARROW"
NULLSAFE: str = "NULLSAFE"
DCOLON: str = "DCOLON"
DARROW: str = "DARROW"
PUNCT: str = "PUNCT"
OTHER: str = "OTHER"

# Order matters: longer operators before their prefixes.
_TOKEN_SPEC: List[tuple] = [
    ("NEWLINE", r"\n"),
    ("SKIP", r"[ \t\r\f\v]+"),
    ("BLOCK_COMMENT", r"/\*.*?\*/"),
    ("LINE_COMMENT", r"(?://|\#)[^\n]*"),
    (VARIABLE, r"\$[A-Za-z_][A-Za-z0-9_]*"),
    (STRING, r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\""),
    (NUMBER, r"\d+(?:\.\d+)?"),
    (NULLSAFE, r"\?->"),
    (ARROW, r"->"),
    (DARROW, r"=>"),
    (DCOLON, r"::"),
    (IDENT, r"[A-Za-z_\\][A-Za-z0-9_\\]*"),
    (PUNCT, r"[()\[\]{},;]"),
    (OTHER, r"."),
]

_MASTER_RE: re.Pattern[str] = re.compile(
    "|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC),
    re.DOTALL,
)

_SINGLE_QUOTE_ESCAPES_RE: re.Pattern[str] = re.compile(r"\\([\\'])")
_DOUBLE_QUOTE_ESCAPES_RE: re.Pattern[str] = re.compile(r"\\([\\\"$nt])")
_DOUBLE_QUOTE_MAP: Dict[str, str] = {"n": "\n", "t": "\t"}


class Token(NamedTuple):
    """A single lexical token."""

    kind: str
    value: str
    text: str
    line: int
    offset: int = 0

    def is_punct(self, char: str) -> bool:
        return self.kind == PUNCT and self.value == char

    def is_ident(self, name: Optional[str] = None) -> bool:
        return self.kind == IDENT and (name is None or self.value == name)


def _decode_string(raw: str) -> str:
    """Strip quotes and decode the escape sequences PHP honours in them."""
    body: str = raw[1:-1]
    if raw[0] == "'":
        return _SINGLE_QUOTE_ESCAPES_RE.sub(r"\1", body)
    return _DOUBLE_QUOTE_ESCAPES_RE.sub(
        lambda m: _DOUBLE_QUOTE_MAP.get(m.group(1), m.group(1)), body
    )


def iter_tokens(source: str) -> Iterator[Token]:
    """Yield tokens from *source*, skipping whitespace and comments."""
    line: int = 1
    for match in _MASTER_RE.finditer(source):
        kind: Optional[str] = match.lastgroup
        text: str = match.group()
        if kind == "NEWLINE":
            line += 1
            continue
        if kind in ("SKIP", "LINE_COMMENT"):
            continue
        if kind == "BLOCK_COMMENT":
            line += text.count("\n")
            continue
        if kind == STRING:
            yield Token(STRING, _decode_string(text), text, line, match.start())
            line += text.count("\n")
            continue
        yield Token(kind or OTHER, text, text, line, match.start())


def tokenize(source: str) -> List[Token]:
    """Tokenize *source* into a list."""
    tokens: List[Token] = list(iter_tokens(source))
    logger.debug("Tokenized %d chars into %d tokens.", len(source), len(tokens))
    return tokens


# ---------------------------------------------------------------------------
# Bracket helpers over a token list
# ---------------------------------------------------------------------------

_CLOSERS: Dict[str, str] = {"(": ")", "[": "]", "{": "}"}


class TokenStream:
    """
    Random-access view over a token list with the bracket helpers the
    parsers share.  Callers index ``tokens`` directly.
    """

    __slots__ = ("tokens",)

    def __init__(self, tokens: List[Token]) -> None:
        self.tokens: List[Token] = tokens

    def matching_close(self, open_index: int) -> int:
        """
        Index of the bracket closing the one at *open_index*, or ``-1`` when
        the input ends first.
        """
        opener: str = self.tokens[open_index].value
        closer: str = _CLOSERS[opener]
        depth: int = 0
        for idx in range(open_index, len(self.tokens)):
            tok: Token = self.tokens[idx]
            if tok.kind != PUNCT:
                continue
            if tok.value == opener:
                depth += 1
            elif tok.value == closer:
                depth -= 1
                if depth == 0:
                    return idx
        return -1

    def split_arguments(self, open_index: int, close_index: int) -> List[List[Token]]:
        """
        Split the tokens between a ``(``/``[`` at *open_index* and its closer
        into top-level comma-separated groups.  Empty groups are dropped, so
        a trailing comma is harmless.
        """
        groups: List[List[Token]] = []
        current: List[Token] = []
        depth: int = 0
        for tok in self.tokens[open_index + 1 : close_index]:
            if tok.kind == PUNCT and tok.value in _CLOSERS:
                depth += 1
            elif tok.kind == PUNCT and tok.value in _CLOSERS.values():
                depth -= 1
            if depth == 0 and tok.is_punct(","):
                if current:
                    groups.append(current)
                current = []
                continue
            current.append(tok)
        if current:
            groups.append(current)
        return groups


__all__: List[str] = [
    "Token",
    "TokenStream",
    "iter_tokens",
    "tokenize",
    "VARIABLE",
    "IDENT",
    "STRING",
    "NUMBER",
    "ARROW",
    "NULLSAFE",
    "DCOLON",
    "DARROW",
    "PUNCT",
    "OTHER",
]
