# File: apiscaffold/routes.py
"""
apiscaffold - Route Merger
============================
Idempotently merges one ``Route::apiResource`` registration into the text of
a Laravel route file (``routes/api.php``).

State machine::

    CheckDuplicate ──(already in a group for this version)──▶ NOOP
          │
          ▼
    LocateGroup ──(group with this middleware)──▶ INSERTED   (before its ``}``)
          │
          └──────(not found or unclosed)──────────▶ APPENDED   (new group at the end)

A registration's identity is the ``(version, slug)`` pair: the same slug in
a different version's group is not a duplicate.

Groups are found on the token stream from ``apiscaffold.lexer``.  A group's
body runs from the ``{`` inside ``group(...)`` to its matching ``}``, however
the chain and the body are laid out over lines.

The merger only ever works on text.  Reading and writing the registry file
is the caller's job (see ``apiscaffold.generator``).
"""

from __future__ import annotations

import logging
import re
from typing import List, NamedTuple, Optional, Tuple

from apiscaffold.lexer import ARROW, DCOLON, IDENT, STRING, Token, TokenStream, tokenize
from apiscaffold.models import MergeOutcome, MergeResult, RouteDeclaration
from apiscaffold.utils import php_string

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.routes")

# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

DEFAULT_MIDDLEWARE: str = "auth:sanctum"
DEFAULT_INDENT: str = "    "
GROUP_CLOSE: str = "});"

REGISTRY_HEADER: str = "<?php\n\nuse Illuminate\\Support\\Facades\\Route;\n"

_LEADING_WS_RE: re.Pattern[str] = re.compile(r"[ \t]*")


def group_opening(prefix: str, middleware: str = DEFAULT_MIDDLEWARE) -> str:
    """The literal line that opens a versioned, guarded route group."""
    return (
        f"Route::prefix({php_string(prefix)})"
        f"->middleware({php_string(middleware)})"
        f"->group(function () {{"
    )


def resource_line(decl: RouteDeclaration) -> str:
    """``Route::apiResource('students', \\App\\...\\StudentController::class);``"""
    controller: str = decl.controller_reference.lstrip("\\")
    return f"Route::apiResource({php_string(decl.resource_slug)}, \\{controller}::class);"


def group_block(decl: RouteDeclaration, middleware: str = DEFAULT_MIDDLEWARE) -> str:
    """A complete new group holding only *decl*, without a trailing newline."""
    return "\n".join(
        [
            group_opening(decl.prefix, middleware),
            DEFAULT_INDENT + resource_line(decl),
            GROUP_CLOSE,
        ]
    )


# ---------------------------------------------------------------------------
# Group location
# ---------------------------------------------------------------------------


class _Group(NamedTuple):
    """A ``Route::...->group(function () { ... })`` call for one prefix."""

    middleware: Tuple[str, ...]
    body_open: int
    body_close: int


def _is_route_facade(tok: Token) -> bool:
    return tok.kind == IDENT and tok.value.split("\\")[-1] == "Route"


def _chain_calls(
    tokens: List[Token], stream: TokenStream, start: int
) -> List[Tuple[str, int, int]]:
    """
    ``(name, open, close)`` for each call of the fluent chain that begins at
    the ``Route`` token on *start*.  ``close`` is ``-1`` for an unterminated
    call, which also ends the chain.
    """
    calls: List[Tuple[str, int, int]] = []
    idx: int = start + 1
    while (
        idx + 2 < len(tokens)
        and tokens[idx].kind in (DCOLON, ARROW)
        and tokens[idx + 1].kind == IDENT
        and tokens[idx + 2].is_punct("(")
    ):
        close: int = stream.matching_close(idx + 2)
        calls.append((tokens[idx + 1].value, idx + 2, close))
        if close < 0:
            break
        idx = close + 1
    return calls


def _string_args(tokens: List[Token], open_index: int, close_index: int) -> Tuple[str, ...]:
    end: int = close_index if close_index >= 0 else len(tokens)
    return tuple(tok.value for tok in tokens[open_index + 1 : end] if tok.kind == STRING)


def _find_groups(tokens: List[Token], prefix: str) -> List[_Group]:
    """Every route group whose chain carries ``prefix(<prefix>)``, in source order."""
    stream: TokenStream = TokenStream(tokens)
    wanted: str = prefix.lower()
    groups: List[_Group] = []
    for idx, tok in enumerate(tokens):
        if not (_is_route_facade(tok) and idx + 1 < len(tokens) and tokens[idx + 1].kind == DCOLON):
            continue
        calls: List[Tuple[str, int, int]] = _chain_calls(tokens, stream, idx)
        if not calls or calls[-1][0] != "group":
            continue
        prefixes: List[Tuple[str, ...]] = [
            _string_args(tokens, open_, close) for name, open_, close in calls if name == "prefix"
        ]
        if not any(len(args) == 1 and args[0].lower() == wanted for args in prefixes):
            continue
        middleware: Tuple[str, ...] = tuple(
            value
            for name, open_, close in calls
            if name == "middleware"
            for value in _string_args(tokens, open_, close)
        )
        _, group_open, group_close = calls[-1]
        end: int = group_close if group_close >= 0 else len(tokens)
        body_open: int = next(
            (i for i in range(group_open + 1, end) if tokens[i].is_punct("{")), -1
        )
        if body_open < 0:
            continue
        groups.append(_Group(middleware, body_open, stream.matching_close(body_open)))
    return groups


def _registers(tokens: List[Token], start: int, end: int, slug: str) -> bool:
    """True if ``Route::apiResource('<slug>', ...)`` occurs in ``tokens[start:end]``."""
    for idx in range(start, end - 4):
        if (
            _is_route_facade(tokens[idx])
            and tokens[idx + 1].kind == DCOLON
            and tokens[idx + 2].is_ident("apiResource")
            and tokens[idx + 3].is_punct("(")
            and tokens[idx + 4].kind == STRING
            and tokens[idx + 4].value == slug
        ):
            return True
    return False


def _registered_in(tokens: List[Token], decl: RouteDeclaration) -> bool:
    for group in _find_groups(tokens, decl.prefix):
        end: int = group.body_close if group.body_close >= 0 else len(tokens)
        if _registers(tokens, group.body_open + 1, end, decl.resource_slug):
            return True
    return False


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _newline_of(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def _line_start(text: str, offset: int) -> int:
    return text.rfind("\n", 0, offset) + 1


def _indent_at(text: str, offset: int) -> str:
    match: Optional[re.Match[str]] = _LEADING_WS_RE.match(text, _line_start(text, offset))
    return match.group() if match else ""


def _body_indent(text: str, tokens: List[Token], group: _Group) -> str:
    """Indent of the last statement in the group, or one level past its closer."""
    closer: Token = tokens[group.body_close]
    last: Token = tokens[group.body_close - 1]
    if group.body_close - 1 > group.body_open and last.line != tokens[group.body_open].line:
        return _indent_at(text, last.offset)
    return _indent_at(text, closer.offset) + DEFAULT_INDENT


def _insert_into_group(
    text: str, tokens: List[Token], group: _Group, line: str, newline: str
) -> str:
    """Place *line* just before the ``}`` that closes *group*."""
    closer: Token = tokens[group.body_close]
    start: int = _line_start(text, closer.offset)
    if not text[start : closer.offset].strip():
        indent: str = _body_indent(text, tokens, group)
        return text[:start] + indent + line + newline + text[start:]
    # Closer shares its line with other code: keep the group on one line.
    separator: str = "" if text[closer.offset - 1] in " \t" else " "
    return text[: closer.offset] + separator + line + " " + text[closer.offset :]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_registered(registry_text: str, decl: RouteDeclaration) -> bool:
    """True if a group for ``decl.version`` already registers ``decl.resource_slug``."""
    return _registered_in(tokenize(registry_text), decl)


def merge_route(
    registry_text: str,
    decl: RouteDeclaration,
    middleware: str = DEFAULT_MIDDLEWARE,
) -> MergeResult:
    """
    Merge *decl* into *registry_text*.

    Returns a ``MergeResult`` whose ``outcome`` tells which branch of the
    state machine was taken.  A ``NOOP`` result carries the input text
    unchanged, byte for byte.
    """
    tokens: List[Token] = tokenize(registry_text)
    if _registered_in(tokens, decl):
        logger.info(
            "Route '%s' already registered for %s; nothing to do.",
            decl.resource_slug,
            decl.version,
        )
        return MergeResult(text=registry_text, outcome=MergeOutcome.NOOP)

    newline: str = _newline_of(registry_text)
    candidates: List[_Group] = [
        group for group in _find_groups(tokens, decl.prefix) if group.middleware == (middleware,)
    ]
    if candidates and candidates[0].body_close < 0:
        logger.warning(
            "Route group '%s' on line %d is never closed; appending a new group.",
            decl.prefix,
            tokens[candidates[0].body_open].line,
        )
    elif candidates:
        merged: str = _insert_into_group(
            registry_text, tokens, candidates[0], resource_line(decl), newline
        )
        logger.info(
            "Inserted route '%s' into existing %s group.",
            decl.resource_slug,
            decl.prefix,
        )
        return MergeResult(text=merged, outcome=MergeOutcome.INSERTED)

    text: str = registry_text
    if not text.strip():
        text = REGISTRY_HEADER.replace("\n", newline)
    if not text.endswith(newline):
        text += newline
    block: str = group_block(decl, middleware).replace("\n", newline)
    text += newline + block + newline
    logger.info("Appended new %s route group for '%s'.", decl.prefix, decl.resource_slug)
    return MergeResult(text=text, outcome=MergeOutcome.APPENDED)


def merge_route_text(
    registry_text: str,
    decl: RouteDeclaration,
    middleware: str = DEFAULT_MIDDLEWARE,
) -> str:
    """Convenience wrapper returning only the merged text."""
    return merge_route(registry_text, decl, middleware).text


__all__: List[str] = [
    "DEFAULT_MIDDLEWARE",
    "REGISTRY_HEADER",
    "group_opening",
    "resource_line",
    "group_block",
    "is_registered",
    "merge_route",
    "merge_route_text",
]
