# File: apiscaffold/enrichment.py
"""
apiscaffold - Relation & Field Enricher
=========================================
Pure transformation from a table's column list (plus the model's relation
accessors) into the ``EnrichmentPlan`` the resource and controller
templates consume.  No I/O happens here.

For ``student_id`` the plan contains::

    student_id    ← $this->student_id
    student_name  ← $this->student?->name     (null when the relation is absent)
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set

from apiscaffold.models import (
    EnrichmentPlan,
    EnrichmentPolicy,
    FieldMapping,
    RelationHint,
)
from apiscaffold.utils import to_camel_case, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.enrichment")


def relation_hint(column: str, policy: EnrichmentPolicy) -> Optional[RelationHint]:
    """Return the relation implied by *column*, or ``None`` if it is not key-shaped."""
    suffix: str = policy.key_suffix
    if not column.endswith(suffix) or len(column) == len(suffix):
        return None
    base: str = column[: -len(suffix)]
    return RelationHint(
        foreign_key_column=column,
        relation_name=to_snake_case(base),
        accessor=to_camel_case(base),
    )


def _display_expression(hint: RelationHint, policy: EnrichmentPolicy) -> str:
    return f"$this->{hint.accessor}?->{policy.display_attribute}"


def enrich(
    columns: Sequence[str],
    relation_accessors: Iterable[str] = (),
    policy: Optional[EnrichmentPolicy] = None,
) -> EnrichmentPlan:
    """
    Build the enrichment plan for a table.

    Args:
        columns:            Column names in schema order.
        relation_accessors: The model's own zero-argument relation methods,
                            in declaration order.  Used verbatim as eager-load
                            hints.
        policy:             Key suffix / display attribute / audit fields.

    Returns:
        An ``EnrichmentPlan`` whose ``field_mappings`` never repeat an output key.
    """
    policy = policy or EnrichmentPolicy()
    column_set: Set[str] = set(columns)

    mappings: List[FieldMapping] = []
    hints: List[RelationHint] = []
    emitted: Set[str] = set()

    def add(mapping: FieldMapping) -> None:
        if mapping.output_key in emitted:
            return
        emitted.add(mapping.output_key)
        mappings.append(mapping)

    for column in columns:
        if column in policy.audit_fields:
            continue
        add(FieldMapping(output_key=column, source_expression=f"$this->{column}"))

        hint: Optional[RelationHint] = relation_hint(column, policy)
        if hint is None:
            continue
        hints.append(hint)
        if hint.display_field in column_set:
            logger.debug(
                "Derived field '%s' collides with a real column; not emitted.",
                hint.display_field,
            )
            continue
        add(
            FieldMapping(
                output_key=hint.display_field,
                source_expression=_display_expression(hint, policy),
                derived=True,
            )
        )

    eager: List[str] = []
    for accessor in relation_accessors:
        if accessor not in eager:
            eager.append(accessor)

    logger.debug(
        "Enrichment: %d field(s), %d relation hint(s), %d eager load(s).",
        len(mappings),
        len(hints),
        len(eager),
    )
    return EnrichmentPlan(
        eager_load_hints=tuple(eager),
        field_mappings=tuple(mappings),
        relation_hints=tuple(hints),
    )


__all__: List[str] = ["relation_hint", "enrich"]
