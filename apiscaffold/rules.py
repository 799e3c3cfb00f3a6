# File: apiscaffold/rules.py
"""
apiscaffold - Rule Inference Engine
=====================================
Turns a ``TableSchema`` into an ordered FormRequest rule set for one
request kind.

Policies applied per column, in this order:

1. **Exclusion**     system / audit / owner columns are never user input.
2. **Requiredness**  ``store``: ``required`` unless nullable (``sometimes``);
                     ``update``: always ``sometimes``.
3. **Type**          declared type → one rule token (see ``TYPE_RULES``).
4. **Enum**          ``in:<choices>`` built from the column's options.
5. **Uniqueness**    ``unique:<table>,<field>`` when the ``UniqueFieldPolicy``
                     says so for this table and request kind.

Output order is the schema's insertion order.  Never raises for a missing
schema: an empty schema degrades to a single fallback field.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional

from apiscaffold.models import (
    ColumnDefinition,
    RequestKind,
    RulePolicy,
    TableSchema,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.rules")

Rules = Dict[str, List[str]]

# ---------------------------------------------------------------------------
# Type → rule token map (declared Blueprint method names)
# ---------------------------------------------------------------------------

_STRING_TYPES: FrozenSet[str] = frozenset(
    {"string", "text", "char", "longText", "mediumText", "tinyText"}
)
_INTEGER_TYPES: FrozenSet[str] = frozenset(
    {
        "integer",
        "bigInteger",
        "smallInteger",
        "tinyInteger",
        "mediumInteger",
        "unsignedInteger",
        "unsignedBigInteger",
        "unsignedSmallInteger",
        "unsignedTinyInteger",
        "unsignedMediumInteger",
        "foreignId",
        "year",
    }
)
_NUMERIC_TYPES: FrozenSet[str] = frozenset(
    {"decimal", "float", "numeric", "double", "unsignedDecimal"}
)
_DATE_TYPES: FrozenSet[str] = frozenset(
    {"date", "dateTime", "timestamp", "dateTimeTz", "timestampTz"}
)
_ARRAY_TYPES: FrozenSet[str] = frozenset({"json", "jsonb"})
_UUID_TYPES: FrozenSet[str] = frozenset({"uuid", "foreignUuid"})

TYPE_RULES: Dict[str, str] = {}
for _names, _token in (
    (_STRING_TYPES, "string"),
    (_INTEGER_TYPES, "integer"),
    (_NUMERIC_TYPES, "numeric"),
    (frozenset({"boolean"}), "boolean"),
    (_DATE_TYPES, "date"),
    (_ARRAY_TYPES, "array"),
    (_UUID_TYPES, "uuid"),
    (frozenset({"ipAddress"}), "ip"),
):
    for _name in _names:
        TYPE_RULES[_name] = _token


# ---------------------------------------------------------------------------
# Single-column policies
# ---------------------------------------------------------------------------


def requiredness_token(column: ColumnDefinition, kind: RequestKind) -> str:
    """``required`` only for non-nullable columns on store requests."""
    if kind == RequestKind.STORE and not column.nullable:
        return "required"
    return "sometimes"


def type_token(column: ColumnDefinition) -> Optional[str]:
    """The rule token for the column's declared type, if one is known."""
    if column.is_enum:
        if not column.options:
            logger.warning(
                "Enum column '%s' has no literal choices; only requiredness is enforced.",
                column.name,
            )
            return None
        if any("," in choice for choice in column.options):
            logger.warning(
                "Enum column '%s' has a choice containing ','; the 'in:' rule "
                "will split it.",
                column.name,
            )
        return f"in:{column.in_literal}"
    token: Optional[str] = TYPE_RULES.get(column.declared_type)
    if token is None:
        logger.debug(
            "No type rule for '%s' (%s); requiredness only.",
            column.name,
            column.declared_type,
        )
    return token


def column_rules(
    table: str,
    column: ColumnDefinition,
    kind: RequestKind,
    policy: RulePolicy,
) -> List[str]:
    """Full ordered token list for one column."""
    tokens: List[str] = [requiredness_token(column, kind)]
    typed: Optional[str] = type_token(column)
    if typed is not None:
        tokens.append(typed)
    if policy.unique.is_unique(table, column.name, kind):
        tokens.append(f"unique:{table},{column.name}")
    return tokens


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def fallback_rules(kind: RequestKind, policy: Optional[RulePolicy] = None) -> Rules:
    """Minimal rule set used when no schema is available."""
    field: str = (policy or RulePolicy()).fallback_field
    requiredness: str = "required" if kind == RequestKind.STORE else "sometimes"
    return {field: [requiredness, "string"]}


def infer_rules(
    schema: TableSchema,
    kind: RequestKind,
    policy: Optional[RulePolicy] = None,
) -> Rules:
    """
    Infer the validation rules for *kind* requests against *schema*.

    Args:
        schema: Extracted or reflected table schema (may be empty).
        kind:   ``RequestKind.STORE`` or ``RequestKind.UPDATE``.
        policy: Exclusion / uniqueness policy; defaults to ``RulePolicy()``.

    Returns:
        ``{field: [token, ...]}`` in schema order.  Never empty.
    """
    policy = policy or RulePolicy()

    if schema.is_empty:
        logger.warning(
            "No schema found for table '%s'; using fallback %s rules for '%s'.",
            schema.table,
            kind.value,
            policy.fallback_field,
        )
        return fallback_rules(kind, policy)

    rules: Rules = {}
    for name, column in schema.columns.items():
        if name in policy.excluded_fields:
            continue
        rules[name] = column_rules(schema.table, column, kind, policy)

    if not rules:
        logger.warning(
            "Every column of '%s' is a system field; using fallback %s rules.",
            schema.table,
            kind.value,
        )
        return fallback_rules(kind, policy)

    logger.debug(
        "Inferred %d %s rule(s) for '%s'.", len(rules), kind.value, schema.table
    )
    return rules


__all__: List[str] = [
    "Rules",
    "TYPE_RULES",
    "requiredness_token",
    "type_token",
    "column_rules",
    "fallback_rules",
    "infer_rules",
]
