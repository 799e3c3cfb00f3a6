# File: apiscaffold/schema_dsl.py
"""
apiscaffold - Migration Schema Extractor
==========================================
Reads Laravel migration files and recovers the column definitions of one
table.  Parsing is a small recursive-descent grammar over the token stream
produced by ``apiscaffold.lexer``::

    create_call := "Schema" "::" "create" "(" STRING "," closure ")"
    closure     := "function" "(" [TYPE] VARIABLE ")" "{" statement* "}"
    statement   := VARIABLE "->" IDENT "(" args ")" modifier* ";"
    modifier    := "->" IDENT "(" args ")"
    args        := [arg ("," arg)*]

A document is relevant only when one of its ``create_call`` STRING tokens
equals the target table exactly.  Only statements inside that closure whose
receiver is the closure's blueprint variable are read; other tables created
in the same file are ignored.

Later declarations of a column overwrite earlier ones (across statements
and across documents, which are processed in the order given), while the
column keeps the position of its first declaration.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from apiscaffold.lexer import (
    ARROW,
    DCOLON,
    IDENT,
    STRING,
    VARIABLE,
    Token,
    TokenStream,
    tokenize,
)
from apiscaffold.models import ColumnDefinition, SchemaOrigin, TableSchema
from apiscaffold.stores import DocumentStore
from apiscaffold.utils import to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.schema_dsl")

# ---------------------------------------------------------------------------
# Grammar constants
# ---------------------------------------------------------------------------

# Blueprint methods that take column names but do not declare columns.
_NON_COLUMN_METHODS: FrozenSet[str] = frozenset(
    {
        "index",
        "unique",
        "primary",
        "foreign",
        "fullText",
        "spatialIndex",
        "rawIndex",
        "dropColumn",
        "dropColumns",
        "renameColumn",
        "dropIndex",
        "dropUnique",
        "dropPrimary",
        "dropForeign",
        "dropForeignIdFor",
        "dropConstrainedForeignId",
        "dropFullText",
        "dropSpatialIndex",
        "dropMorphs",
        "dropTimestamps",
        "dropSoftDeletes",
        "dropRememberToken",
        "comment",
        "engine",
        "charset",
        "collation",
        "temporary",
    }
)

# Declared types whose second argument is a list of allowed values.
_ENUM_TYPES: FrozenSet[str] = frozenset({"enum", "set"})

_NULLABLE_MODIFIER: str = "nullable"


class SchemaDocument(NamedTuple):
    """A named schema-definition document (usually one migration file)."""

    name: str
    text: str


class _Call(NamedTuple):
    method: str
    args: List[List[Token]]


class _Statement(NamedTuple):
    call: _Call
    modifiers: List[_Call]
    line: int


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _string_arg(arg: Optional[List[Token]]) -> Optional[str]:
    """Value of an argument that is exactly one string literal."""
    if arg and len(arg) == 1 and arg[0].kind == STRING:
        return arg[0].value
    return None


def _class_arg(arg: Optional[List[Token]]) -> Optional[str]:
    """Short class name of a ``Foo::class`` argument."""
    if (
        arg
        and len(arg) == 3
        and arg[0].kind == IDENT
        and arg[1].kind == DCOLON
        and arg[2].is_ident("class")
    ):
        return arg[0].value.split("\\")[-1]
    return None


def _list_literal(arg: Optional[List[Token]]) -> Optional[Tuple[str, ...]]:
    """
    String items of an array-literal argument (``['a', 'b']`` or
    ``array('a', 'b')``), flattened in source order.  Anything that is not an
    array literal yields ``None``.
    """
    if not arg:
        return None
    is_short: bool = arg[0].is_punct("[") and arg[-1].is_punct("]")
    is_long: bool = (
        len(arg) >= 3
        and arg[0].is_ident("array")
        and arg[1].is_punct("(")
        and arg[-1].is_punct(")")
    )
    if not (is_short or is_long):
        return None
    return tuple(tok.value.strip() for tok in arg if tok.kind == STRING)


def _is_truthy_flag(args: List[List[Token]]) -> bool:
    """``nullable()`` and ``nullable(true)`` are true; ``nullable(false)`` is not."""
    if not args:
        return True
    first: List[Token] = args[0]
    return not (len(first) == 1 and first[0].kind == IDENT and first[0].value.lower() == "false")


# ---------------------------------------------------------------------------
# Shorthand blueprint methods that declare columns implicitly
# ---------------------------------------------------------------------------

ShorthandFn = Callable[[List[List[Token]]], List[ColumnDefinition]]


def _id_columns(args: List[List[Token]]) -> List[ColumnDefinition]:
    name: str = _string_arg(args[0] if args else None) or "id"
    return [ColumnDefinition(name=name, declared_type="id")]


def _timestamp_columns(kind: str) -> ShorthandFn:
    def build(args: List[List[Token]]) -> List[ColumnDefinition]:
        return [
            ColumnDefinition(name="created_at", declared_type=kind, nullable=True),
            ColumnDefinition(name="updated_at", declared_type=kind, nullable=True),
        ]

    return build


def _soft_delete_columns(kind: str) -> ShorthandFn:
    def build(args: List[List[Token]]) -> List[ColumnDefinition]:
        name: str = _string_arg(args[0] if args else None) or "deleted_at"
        return [ColumnDefinition(name=name, declared_type=kind, nullable=True)]

    return build


def _remember_token_columns(args: List[List[Token]]) -> List[ColumnDefinition]:
    return [ColumnDefinition(name="remember_token", declared_type="string", nullable=True)]


def _morph_columns(nullable: bool) -> ShorthandFn:
    def build(args: List[List[Token]]) -> List[ColumnDefinition]:
        base: Optional[str] = _string_arg(args[0] if args else None)
        if base is None:
            return []
        return [
            ColumnDefinition(name=f"{base}_type", declared_type="string", nullable=nullable),
            ColumnDefinition(
                name=f"{base}_id", declared_type="unsignedBigInteger", nullable=nullable
            ),
        ]

    return build


def _foreign_id_for_columns(args: List[List[Token]]) -> List[ColumnDefinition]:
    explicit: Optional[str] = _string_arg(args[1] if len(args) > 1 else None)
    if explicit:
        return [ColumnDefinition(name=explicit, declared_type="foreignId")]
    model: Optional[str] = _class_arg(args[0] if args else None)
    if model is None:
        return []
    return [ColumnDefinition(name=f"{to_snake_case(model)}_id", declared_type="foreignId")]


_SHORTHANDS: Dict[str, ShorthandFn] = {
    "id": _id_columns,
    "timestamps": _timestamp_columns("timestamp"),
    "nullableTimestamps": _timestamp_columns("timestamp"),
    "timestampsTz": _timestamp_columns("timestampTz"),
    "softDeletes": _soft_delete_columns("timestamp"),
    "softDeletesTz": _soft_delete_columns("timestampTz"),
    "rememberToken": _remember_token_columns,
    "morphs": _morph_columns(nullable=False),
    "nullableMorphs": _morph_columns(nullable=True),
    "foreignIdFor": _foreign_id_for_columns,
}


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class MigrationParser:
    """
    Grammar rules over one tokenized migration document.

    Each public method corresponds to a production in the module docstring
    and can be exercised on its own in tests.
    """

    def __init__(self, source: str) -> None:
        self._tokens: List[Token] = tokenize(source)
        self._stream: TokenStream = TokenStream(self._tokens)

    # -- create_call --------------------------------------------------------

    def create_blocks(self, target_table: str) -> List[Tuple[str, int, int]]:
        """
        Locate every ``Schema::create('<target_table>', function (...) {...})``.

        Returns ``(blueprint_variable, body_open_index, body_close_index)``
        triples.
        """
        blocks: List[Tuple[str, int, int]] = []
        tokens: List[Token] = self._tokens
        for idx in range(len(tokens) - 4):
            head: Token = tokens[idx]
            if not (head.kind == IDENT and head.value.split("\\")[-1] == "Schema"):
                continue
            if not (
                tokens[idx + 1].kind == DCOLON
                and tokens[idx + 2].is_ident("create")
                and tokens[idx + 3].is_punct("(")
                and tokens[idx + 4].kind == STRING
                and tokens[idx + 4].value == target_table
            ):
                continue
            block: Optional[Tuple[str, int, int]] = self._closure(idx + 3)
            if block is None:
                logger.debug(
                    "Schema::create('%s') on line %d has no readable closure.",
                    target_table,
                    head.line,
                )
                continue
            blocks.append(block)
        return blocks

    # -- closure ------------------------------------------------------------

    def _closure(self, call_open: int) -> Optional[Tuple[str, int, int]]:
        call_close: int = self._stream.matching_close(call_open)
        if call_close < 0:
            return None
        tokens: List[Token] = self._tokens
        for idx in range(call_open + 1, call_close):
            if not (tokens[idx].is_ident("function") and tokens[idx + 1].is_punct("(")):
                continue
            params_close: int = self._stream.matching_close(idx + 1)
            if params_close < 0:
                return None
            params: List[Token] = [
                t for t in tokens[idx + 2 : params_close] if t.kind == VARIABLE
            ]
            variable: str = params[-1].value if params else "$table"
            for body_open in range(params_close + 1, call_close):
                if tokens[body_open].is_punct("{"):
                    body_close: int = self._stream.matching_close(body_open)
                    if body_close < 0:
                        return None
                    return variable, body_open, body_close
            return None
        return None

    # -- statement / modifier -----------------------------------------------

    def statements(self, variable: str, body_open: int, body_close: int) -> List[_Statement]:
        """Blueprint call chains rooted at *variable* inside a closure body."""
        found: List[_Statement] = []
        tokens: List[Token] = self._tokens
        idx: int = body_open + 1
        while idx < body_close:
            tok: Token = tokens[idx]
            prev: Token = tokens[idx - 1]
            starts_statement: bool = (
                prev.is_punct("{") or prev.is_punct(";") or prev.is_punct("}")
            )
            if tok.kind == VARIABLE and tok.value == variable and starts_statement:
                parsed: Optional[Tuple[_Statement, int]] = self._chain(idx, body_close)
                if parsed is not None:
                    statement, idx = parsed
                    found.append(statement)
                    continue
            idx += 1
        return found

    def _call_at(self, idx: int, limit: int) -> Optional[Tuple[_Call, int]]:
        """Parse ``"->" IDENT "(" args ")"`` starting at *idx*."""
        tokens: List[Token] = self._tokens
        if idx + 2 >= limit:
            return None
        if not (
            tokens[idx].kind == ARROW
            and tokens[idx + 1].kind == IDENT
            and tokens[idx + 2].is_punct("(")
        ):
            return None
        close: int = self._stream.matching_close(idx + 2)
        if close < 0 or close > limit:
            return None
        args: List[List[Token]] = self._stream.split_arguments(idx + 2, close)
        return _Call(tokens[idx + 1].value, args), close + 1

    def _chain(self, idx: int, limit: int) -> Optional[Tuple[_Statement, int]]:
        first: Optional[Tuple[_Call, int]] = self._call_at(idx + 1, limit)
        if first is None:
            return None
        call, pos = first
        modifiers: List[_Call] = []
        while True:
            nxt: Optional[Tuple[_Call, int]] = self._call_at(pos, limit)
            if nxt is None:
                break
            modifier, pos = nxt
            modifiers.append(modifier)
        return _Statement(call, modifiers, self._tokens[idx].line), pos

    # -- column declarations ------------------------------------------------

    def columns(self, target_table: str) -> List[ColumnDefinition]:
        """All column declarations for *target_table* in document order."""
        result: List[ColumnDefinition] = []
        for variable, body_open, body_close in self.create_blocks(target_table):
            for statement in self.statements(variable, body_open, body_close):
                result.extend(_statement_columns(statement))
        return result


def _statement_columns(statement: _Statement) -> List[ColumnDefinition]:
    """Turn one parsed statement into zero or more column definitions."""
    method: str = statement.call.method
    args: List[List[Token]] = statement.call.args

    if method in _NON_COLUMN_METHODS:
        return []

    nullable: Optional[bool] = None
    for modifier in statement.modifiers:
        if modifier.method == _NULLABLE_MODIFIER:
            nullable = _is_truthy_flag(modifier.args)

    shorthand: Optional[ShorthandFn] = _SHORTHANDS.get(method)
    if shorthand is not None:
        columns: List[ColumnDefinition] = shorthand(args)
        if nullable is None:
            return columns
        return [col.model_copy(update={"nullable": nullable}) for col in columns]

    name: Optional[str] = _string_arg(args[0] if args else None)
    if name is None:
        logger.debug(
            "Line %d: '%s(...)' has no literal column name; skipped.",
            statement.line,
            method,
        )
        return []

    options: Optional[Tuple[str, ...]] = None
    if method in _ENUM_TYPES:
        options = _list_literal(args[1] if len(args) > 1 else None)
        if options is None:
            logger.warning(
                "Line %d: choices of %s column '%s' are not a literal list; "
                "no 'in:' rule can be inferred.",
                statement.line,
                method,
                name,
            )

    return [
        ColumnDefinition(
            name=name,
            declared_type=method,
            nullable=bool(nullable),
            options=options,
        )
    ]


# ---------------------------------------------------------------------------
# Public extraction API
# ---------------------------------------------------------------------------


def _as_document(item: Union[str, SchemaDocument], position: int) -> SchemaDocument:
    if isinstance(item, SchemaDocument):
        return item
    return SchemaDocument(name=f"<document {position}>", text=item)


def extract_columns(
    documents: Iterable[Union[str, SchemaDocument]],
    target_table: str,
) -> TableSchema:
    """
    Extract the column definitions of *target_table* from schema documents.

    Documents that never create *target_table* contribute nothing.  When no
    document matches, the returned schema is empty (``origin == NONE``); the
    caller decides how to degrade.

    Complexity: O(total tokens).
    """
    columns: Dict[str, ColumnDefinition] = {}
    contributing: List[str] = []

    for position, item in enumerate(documents):
        document: SchemaDocument = _as_document(item, position)
        parser: MigrationParser = MigrationParser(document.text)
        found: List[ColumnDefinition] = parser.columns(target_table)
        if not found:
            continue
        contributing.append(document.name)
        for col in found:
            if col.name in columns:
                logger.debug(
                    "Column '%s.%s' redefined in %s.",
                    target_table,
                    col.name,
                    document.name,
                )
            columns[col.name] = col

    if not columns:
        logger.info("No schema document creates table '%s'.", target_table)
        return TableSchema(table=target_table)

    logger.info(
        "Extracted %d column(s) for '%s' from %d document(s).",
        len(columns),
        target_table,
        len(contributing),
    )
    return TableSchema(
        table=target_table,
        columns=columns,
        origin=SchemaOrigin.MIGRATIONS,
        sources=tuple(contributing),
    )


# ---------------------------------------------------------------------------
# Schema sources
# ---------------------------------------------------------------------------


class SchemaSource(Protocol):
    """Anything that can describe a table's columns."""

    def load_table(self, table: str) -> TableSchema:
        ...


class MigrationSchemaSource:
    """Reads ``*.php`` migration documents from a document store."""

    def __init__(self, store: DocumentStore, migrations_dir: str) -> None:
        self._store: DocumentStore = store
        self._migrations_dir: str = migrations_dir

    def documents(self) -> List[SchemaDocument]:
        if not self._store.is_dir(self._migrations_dir):
            logger.warning(
                "Migrations directory '%s' does not exist.", self._migrations_dir
            )
            return []
        names: Sequence[str] = self._store.list_files(self._migrations_dir, "*.php")
        return [
            SchemaDocument(name=PurePosixPath(path).name, text=self._store.read(path))
            for path in names
        ]

    def load_table(self, table: str) -> TableSchema:
        return extract_columns(self.documents(), table)

    def __repr__(self) -> str:
        return f"<MigrationSchemaSource {self._migrations_dir}>"


__all__: List[str] = [
    "SchemaDocument",
    "MigrationParser",
    "extract_columns",
    "SchemaSource",
    "MigrationSchemaSource",
]
