# File: apiscaffold/reflection.py
"""
apiscaffold - Live Schema Reflection
======================================
Reads a table's columns straight from a running database with SQLAlchemy's
inspector, as an alternative to parsing migration files.

SQLAlchemy column types are mapped back onto the Blueprint type vocabulary
the rule engine understands, so both schema sources feed the same
``infer_rules`` path.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type

from sqlalchemy import create_engine, inspect, types as sqltypes
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from apiscaffold.models import ColumnDefinition, SchemaOrigin, TableSchema

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.reflection")


class SchemaUnavailableError(RuntimeError):
    """The live database could not be reached or does not have the table."""


class SchemaReflector(Protocol):
    """Capability: table name → columns from a running database."""

    def load_table(self, table: str) -> TableSchema:
        ...


# Checked in order: subclasses before their bases (BigInteger is an
# Integer, Float is a Numeric, Enum and Text are Strings).
_TYPE_MAP: Tuple[Tuple[Type[Any], str], ...] = (
    (sqltypes.Boolean, "boolean"),
    (sqltypes.BigInteger, "bigInteger"),
    (sqltypes.SmallInteger, "smallInteger"),
    (sqltypes.Integer, "integer"),
    (sqltypes.Float, "float"),
    (sqltypes.Numeric, "decimal"),
    (sqltypes.DateTime, "dateTime"),
    (sqltypes.Date, "date"),
    (sqltypes.JSON, "json"),
    (sqltypes.Uuid, "uuid"),
    (sqltypes.Enum, "enum"),
    (sqltypes.Text, "text"),
    (sqltypes.String, "string"),
)


def declared_type_for(column_type: Any) -> str:
    """Map a SQLAlchemy type instance to a Blueprint type name."""
    for sa_type, declared in _TYPE_MAP:
        if isinstance(column_type, sa_type):
            return declared
    return type(column_type).__name__.lower()


def column_from_reflection(info: Dict[str, Any]) -> ColumnDefinition:
    """Build a ``ColumnDefinition`` from one ``Inspector.get_columns`` entry."""
    column_type: Any = info["type"]
    declared: str = declared_type_for(column_type)
    options: Optional[Tuple[str, ...]] = None
    if declared == "enum":
        options = tuple(str(choice) for choice in getattr(column_type, "enums", ()))
    return ColumnDefinition(
        name=info["name"],
        declared_type=declared,
        nullable=bool(info.get("nullable", True)),
        options=options,
    )


class SqlAlchemyReflector:
    """``SchemaReflector`` backed by ``sqlalchemy.inspect``."""

    def __init__(self, database_url: Optional[str] = None, *, engine: Optional[Engine] = None) -> None:
        if engine is None and not database_url:
            raise ValueError("Either database_url or engine is required.")
        self._database_url: Optional[str] = database_url
        self._engine: Optional[Engine] = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if not self._database_url:
                raise SchemaUnavailableError("No database URL configured.")
            self._engine = create_engine(self._database_url)
        return self._engine

    def load_table(self, table: str) -> TableSchema:
        try:
            inspector = inspect(self.engine)
            reflected: List[Dict[str, Any]] = inspector.get_columns(table)
        except NoSuchTableError as exc:
            raise SchemaUnavailableError(f"Table '{table}' does not exist.") from exc
        except SQLAlchemyError as exc:
            raise SchemaUnavailableError(
                f"Could not reflect table '{table}': {exc}"
            ) from exc

        if not reflected:
            raise SchemaUnavailableError(f"Table '{table}' has no columns.")

        columns: Dict[str, ColumnDefinition] = {}
        for info in reflected:
            column: ColumnDefinition = column_from_reflection(info)
            columns[column.name] = column

        logger.info("Reflected %d column(s) for '%s'.", len(columns), table)
        return TableSchema(
            table=table,
            columns=columns,
            origin=SchemaOrigin.DATABASE,
            sources=(self.engine.url.render_as_string(hide_password=True),),
        )

    def __repr__(self) -> str:
        return f"<SqlAlchemyReflector {self._database_url or self._engine}>"


__all__: List[str] = [
    "SchemaUnavailableError",
    "SchemaReflector",
    "declared_type_for",
    "column_from_reflection",
    "SqlAlchemyReflector",
]
