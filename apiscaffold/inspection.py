# File: apiscaffold/inspection.py
"""
apiscaffold - Model Metadata Inspection
=========================================
Answers "what table backs this model, and which relations does it declare?"
by reading the Eloquent model class source.

Only members declared in the class body itself are considered, so
relations inherited from parent classes or traits are never reported.  A
method counts as a relation accessor when it is public, non-static, takes
no parameters, and either declares an Eloquent relation return type or
returns ``$this->hasMany(...)`` / ``$this->belongsTo(...)`` and friends.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import FrozenSet, List, Optional, Protocol, Tuple

from apiscaffold.lexer import (
    ARROW,
    DCOLON,
    IDENT,
    OTHER,
    STRING,
    VARIABLE,
    Token,
    TokenStream,
    tokenize,
)
from apiscaffold.models import ModelMetadata
from apiscaffold.stores import DocumentStore
from apiscaffold.utils import model_to_table_name, to_studly_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.inspection")

RELATION_METHODS: FrozenSet[str] = frozenset(
    {
        "hasOne",
        "hasMany",
        "belongsTo",
        "belongsToMany",
        "hasOneThrough",
        "hasManyThrough",
        "morphTo",
        "morphOne",
        "morphMany",
        "morphToMany",
        "morphedByMany",
    }
)

RELATION_TYPES: FrozenSet[str] = frozenset(
    name[0].upper() + name[1:] for name in RELATION_METHODS
)

_MODIFIERS: FrozenSet[str] = frozenset(
    {"public", "protected", "private", "static", "final", "abstract"}
)


class UnknownModelError(LookupError):
    """Raised when the named model has no backing class definition."""

    def __init__(self, model_name: str, searched: str) -> None:
        self.model_name: str = model_name
        self.searched: str = searched
        super().__init__(
            f"Model '{model_name}' not found (looked in {searched}). "
            f"Create it first, e.g. 'php artisan make:model {model_name} -m', then retry."
        )


class ModelMetadataProvider(Protocol):
    """Capability: model name → table name + relation accessors."""

    def describe(self, model_name: str) -> ModelMetadata:
        ...


# ---------------------------------------------------------------------------
# Class-body scanning
# ---------------------------------------------------------------------------


class _ClassScanner:
    def __init__(self, source: str) -> None:
        self.tokens: List[Token] = tokenize(source)
        self.stream: TokenStream = TokenStream(self.tokens)

    def class_body(self, class_name: str) -> Optional[Tuple[int, int]]:
        tokens: List[Token] = self.tokens
        for idx in range(len(tokens) - 1):
            if not tokens[idx].is_ident("class"):
                continue
            if idx > 0 and tokens[idx - 1].kind == DCOLON:
                continue
            if not tokens[idx + 1].is_ident(class_name):
                continue
            for open_index in range(idx + 2, len(tokens)):
                if tokens[open_index].is_punct("{"):
                    close_index: int = self.stream.matching_close(open_index)
                    if close_index < 0:
                        return None
                    return open_index, close_index
            return None
        return None

    def table_property(self, body_open: int, body_close: int) -> Optional[str]:
        tokens: List[Token] = self.tokens
        for idx in range(body_open + 1, body_close - 2):
            if (
                tokens[idx].kind == VARIABLE
                and tokens[idx].value == "$table"
                and tokens[idx - 1].kind == IDENT
                and tokens[idx + 1].kind == OTHER
                and tokens[idx + 1].value == "="
                and tokens[idx + 2].kind == STRING
            ):
                return tokens[idx + 2].value
        return None

    def _modifiers_before(self, function_index: int) -> List[str]:
        found: List[str] = []
        idx: int = function_index - 1
        while idx >= 0 and self.tokens[idx].kind == IDENT and self.tokens[idx].value in _MODIFIERS:
            found.append(self.tokens[idx].value)
            idx -= 1
        return found

    def _return_type(self, params_close: int, limit: int) -> List[str]:
        names: List[str] = []
        idx: int = params_close + 1
        if idx >= limit or not (self.tokens[idx].kind == OTHER and self.tokens[idx].value == ":"):
            return names
        for tok in self.tokens[idx + 1 : limit]:
            if tok.is_punct("{") or tok.is_punct(";"):
                break
            if tok.kind == IDENT:
                names.append(tok.value.split("\\")[-1])
        return names

    def _calls_relation(self, start: int, end: int) -> bool:
        tokens: List[Token] = self.tokens
        for idx in range(start, end - 2):
            if (
                tokens[idx].kind == VARIABLE
                and tokens[idx].value == "$this"
                and tokens[idx + 1].kind == ARROW
                and tokens[idx + 2].kind == IDENT
                and tokens[idx + 2].value in RELATION_METHODS
            ):
                return True
        return False

    def relation_accessors(self, body_open: int, body_close: int) -> List[str]:
        tokens: List[Token] = self.tokens
        accessors: List[str] = []
        idx: int = body_open + 1
        while idx < body_close:
            tok: Token = tokens[idx]
            if tok.is_punct("{"):
                idx = max(self.stream.matching_close(idx), idx) + 1
                continue
            if not (
                tok.is_ident("function")
                and idx + 2 < body_close
                and tokens[idx + 1].kind == IDENT
                and tokens[idx + 2].is_punct("(")
            ):
                idx += 1
                continue

            name: str = tokens[idx + 1].value
            params_close: int = self.stream.matching_close(idx + 2)
            if params_close < 0:
                break
            body_start: int = params_close + 1
            while body_start < body_close and not (
                tokens[body_start].is_punct("{") or tokens[body_start].is_punct(";")
            ):
                body_start += 1
            if body_start >= body_close or tokens[body_start].is_punct(";"):
                idx = body_start + 1
                continue
            body_end: int = self.stream.matching_close(body_start)
            if body_end < 0:
                break

            modifiers: List[str] = self._modifiers_before(idx)
            is_public: bool = not ({"protected", "private"} & set(modifiers))
            is_static: bool = "static" in modifiers
            takes_no_args: bool = params_close == idx + 3
            returns_relation: bool = bool(
                set(self._return_type(params_close, body_start)) & RELATION_TYPES
            )
            if (
                is_public
                and not is_static
                and takes_no_args
                and not name.startswith("__")
                and (returns_relation or self._calls_relation(body_start, body_end))
                and name not in accessors
            ):
                accessors.append(name)
            idx = body_end + 1
        return accessors


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class PhpModelInspector:
    """
    ``ModelMetadataProvider`` that reads ``<models_dir>/<Model>.php``.

    The table is the class's ``protected $table`` property when set,
    otherwise the Eloquent default (snake_case plural of the class name).
    """

    def __init__(
        self,
        store: DocumentStore,
        models_dir: str = "app/Models",
        models_namespace: str = "App\\Models",
    ) -> None:
        self._store: DocumentStore = store
        self._models_dir: str = models_dir
        self._namespace: str = models_namespace.strip("\\")

    def model_path(self, model_name: str) -> str:
        return str(PurePosixPath(self._models_dir) / f"{to_studly_case(model_name)}.php")

    def describe(self, model_name: str) -> ModelMetadata:
        name: str = to_studly_case(model_name)
        path: str = self.model_path(name)
        if not self._store.exists(path):
            raise UnknownModelError(name, path)

        scanner: _ClassScanner = _ClassScanner(self._store.read(path))
        body: Optional[Tuple[int, int]] = scanner.class_body(name)
        if body is None:
            raise UnknownModelError(name, path)

        table: str = scanner.table_property(*body) or model_to_table_name(name)
        accessors: List[str] = scanner.relation_accessors(*body)
        logger.info(
            "Model %s → table '%s', %d relation accessor(s)%s.",
            name,
            table,
            len(accessors),
            f": {', '.join(accessors)}" if accessors else "",
        )
        return ModelMetadata(
            name=name,
            class_name=f"{self._namespace}\\{name}" if self._namespace else name,
            table=table,
            relation_accessors=tuple(accessors),
            source_path=path,
        )


__all__: List[str] = [
    "RELATION_METHODS",
    "UnknownModelError",
    "ModelMetadataProvider",
    "PhpModelInspector",
]
