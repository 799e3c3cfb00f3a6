# File: apiscaffold/models.py
"""
apiscaffold - Core Data Models
================================
Pydantic V2 models representing extracted table schemas, enrichment plans,
route declarations and the scaffolding configuration.  These models are the
single source of truth for the whole pipeline:

    Schema Extraction → Rule Inference / Enrichment → Emission → Route Merge
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RequestKind(str, Enum):
    """The two generated FormRequest flavours."""

    STORE = "store"
    UPDATE = "update"


class SchemaOrigin(str, Enum):
    """Where a ``TableSchema`` came from."""

    MIGRATIONS = "migrations"
    DATABASE = "database"
    NONE = "none"


class MergeOutcome(str, Enum):
    """Terminal state of a route merge."""

    NOOP = "noop"
    INSERTED = "inserted"
    APPENDED = "appended"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Schema primitives
# ---------------------------------------------------------------------------


class ColumnDefinition(BaseModel):
    """
    A single column as declared by a migration statement or reflected from
    a live database.

    ``declared_type`` keeps the migration method name verbatim
    (``string``, ``bigInteger``, ``enum`` …) so that the rule engine can map
    it without loss.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    declared_type: str = Field(
        ..., min_length=1, description="Blueprint method / type name."
    )
    nullable: bool = Field(default=False, description="Whether NULL is allowed.")
    options: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="Ordered enum choices (only for enum columns).",
    )

    @property
    def is_enum(self) -> bool:
        return self.declared_type in {"enum", "set"}

    @property
    def in_literal(self) -> str:
        """Comma-joined choices usable directly inside an ``in:`` rule."""
        return ",".join(self.options or ())

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Column {self.name} {self.declared_type}{null_flag}>"


class TableSchema(BaseModel):
    """
    Ordered column definitions for one table.

    Built once per generation run and immutable afterwards.  Column order is
    insertion order of the first declaration; a redefinition replaces the
    content but keeps the original position.
    """

    model_config = _FROZEN_CONFIG

    table: str = Field(..., min_length=1, description="Table name.")
    columns: Dict[str, ColumnDefinition] = Field(
        default_factory=dict, description="Column name → definition."
    )
    origin: SchemaOrigin = Field(
        default=SchemaOrigin.NONE, description="Source of truth used."
    )
    sources: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Documents (or connection URL) that contributed columns.",
    )

    @model_validator(mode="after")
    def _keys_match_names(self) -> "TableSchema":
        for key, col in self.columns.items():
            if key != col.name:
                raise ValueError(
                    f"Column key '{key}' does not match column name '{col.name}'."
                )
        return self

    @property
    def is_empty(self) -> bool:
        return not self.columns

    @property
    def column_names(self) -> List[str]:
        return list(self.columns)

    def get(self, name: str) -> Optional[ColumnDefinition]:
        """O(1) column lookup by name."""
        return self.columns.get(name)

    def __repr__(self) -> str:
        return f"<TableSchema {self.table} ({len(self.columns)} cols, {self.origin})>"


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


class RelationHint(BaseModel):
    """A foreign-key-shaped column and the relation it implies."""

    model_config = _FROZEN_CONFIG

    foreign_key_column: str = Field(..., min_length=1)
    relation_name: str = Field(
        ..., min_length=1, description="snake_case column name minus the key suffix."
    )
    accessor: str = Field(
        ..., min_length=1, description="camelCase relation accessor on the model."
    )

    @property
    def display_field(self) -> str:
        return f"{self.relation_name}_name"


class FieldMapping(BaseModel):
    """One output key of the generated resource and the PHP expression feeding it."""

    model_config = _FROZEN_CONFIG

    output_key: str = Field(..., min_length=1)
    source_expression: str = Field(..., min_length=1)
    derived: bool = Field(
        default=False, description="True for relation display fields."
    )


class EnrichmentPlan(BaseModel):
    """Output of the relation & field enricher, consumed by the templates."""

    model_config = _FROZEN_CONFIG

    eager_load_hints: Tuple[str, ...] = Field(default_factory=tuple)
    field_mappings: Tuple[FieldMapping, ...] = Field(default_factory=tuple)
    relation_hints: Tuple[RelationHint, ...] = Field(default_factory=tuple)

    @property
    def output_keys(self) -> List[str]:
        return [m.output_key for m in self.field_mappings]

    @property
    def has_eager_loads(self) -> bool:
        return bool(self.eager_load_hints)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class RouteDeclaration(BaseModel):
    """A resource registration to merge into the route registry."""

    model_config = _FROZEN_CONFIG

    version: str = Field(..., min_length=1, description="API version, e.g. 'V1'.")
    resource_slug: str = Field(..., min_length=1, description="URL slug, e.g. 'students'.")
    controller_reference: str = Field(
        ..., min_length=1, description="Fully-qualified controller class name."
    )

    @property
    def prefix(self) -> str:
        """Route prefix for the version group (``V1`` → ``v1``)."""
        return self.version.lower()


class MergeResult(BaseModel):
    """Updated registry text plus the state the merge ended in."""

    model_config = _FROZEN_CONFIG

    text: str
    outcome: MergeOutcome

    @property
    def changed(self) -> bool:
        return self.outcome != MergeOutcome.NOOP


# ---------------------------------------------------------------------------
# Model metadata
# ---------------------------------------------------------------------------


class ModelMetadata(BaseModel):
    """What the generator needs to know about an existing model class."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Model class short name.")
    class_name: str = Field(
        ..., min_length=1, description="Fully-qualified class name."
    )
    table: str = Field(..., min_length=1, description="Backing table name.")
    relation_accessors: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Zero-argument relation methods declared on the class itself.",
    )
    source_path: Optional[str] = Field(default=None)


# ---------------------------------------------------------------------------
# Policies derived from configuration
# ---------------------------------------------------------------------------


class UniqueFieldPolicy(BaseModel):
    """
    Decides which fields receive a ``unique:<table>,<field>`` rule.

    ``fields`` is keyed by table name; the ``"*"`` entry applies to tables
    without an entry of their own.
    """

    model_config = _FROZEN_CONFIG

    fields: Dict[str, FrozenSet[str]] = Field(
        default_factory=lambda: {"*": frozenset({"code", "slug"})}
    )
    request_kinds: FrozenSet[RequestKind] = Field(
        default_factory=lambda: frozenset({RequestKind.STORE})
    )

    def fields_for(self, table: str) -> FrozenSet[str]:
        if table in self.fields:
            return self.fields[table]
        return self.fields.get("*", frozenset())

    def is_unique(self, table: str, field: str, kind: RequestKind) -> bool:
        return kind in self.request_kinds and field in self.fields_for(table)


class RulePolicy(BaseModel):
    """Everything the rule engine needs besides the schema."""

    model_config = _FROZEN_CONFIG

    excluded_fields: FrozenSet[str] = Field(
        default_factory=lambda: frozenset(
            {
                "id",
                "created_at",
                "updated_at",
                "deleted_at",
                "user_id",
                "email_verified_at",
                "remember_token",
            }
        )
    )
    unique: UniqueFieldPolicy = Field(default_factory=UniqueFieldPolicy)
    fallback_field: str = Field(default="name", min_length=1)


class EnrichmentPolicy(BaseModel):
    """Naming conventions used by the relation & field enricher."""

    model_config = _FROZEN_CONFIG

    key_suffix: str = Field(default="_id", min_length=1)
    display_attribute: str = Field(default="name", min_length=1)
    audit_fields: FrozenSet[str] = Field(
        default_factory=lambda: frozenset(
            {"created_at", "updated_at", "deleted_at", "remember_token"}
        )
    )


# ---------------------------------------------------------------------------
# Scaffolding configuration
# ---------------------------------------------------------------------------


class ScaffoldConfig(BaseModel):
    """
    Master configuration for one scaffolding run.

    Loaded from ``apiscaffold.yaml`` in the project root when present;
    CLI flags override individual fields.  Paths are relative to the project
    root.
    """

    model_config = _SHARED_CONFIG

    # -- Project layout -----------------------------------------------------
    migrations_dir: str = Field(
        default="database/migrations", description="Migration files directory."
    )
    models_dir: str = Field(default="app/Models", description="Eloquent models directory.")
    models_namespace: str = Field(
        default="App\\Models", description="PHP namespace of the models."
    )
    requests_dir: str = Field(default="app/Http/Requests")
    resources_dir: str = Field(default="app/Http/Resources")
    controllers_dir: str = Field(
        default="app/Http/Controllers/Api",
        description="Versioned controllers live in <controllers_dir>/<version>.",
    )
    controllers_namespace: str = Field(default="App\\Http\\Controllers\\Api")
    routes_file: str = Field(default="routes/api.php")

    # -- Routing ------------------------------------------------------------
    default_version: str = Field(default="V1", min_length=1)
    route_middleware: str = Field(default="auth:sanctum", min_length=1)

    # -- Inference ----------------------------------------------------------
    owner_column: str = Field(
        default="user_id",
        description="Column filled from the authenticated user, never user input.",
    )
    excluded_fields: List[str] = Field(
        default_factory=lambda: [
            "id",
            "created_at",
            "updated_at",
            "deleted_at",
            "email_verified_at",
            "remember_token",
        ],
        description="System fields never accepted as input (owner_column is added).",
    )
    audit_fields: List[str] = Field(
        default_factory=lambda: ["created_at", "updated_at", "deleted_at", "remember_token"],
        description="Columns left out of generated resources.",
    )
    key_suffix: str = Field(default="_id", min_length=1)
    display_attribute: str = Field(default="name", min_length=1)
    unique_fields: Dict[str, List[str]] = Field(
        default_factory=lambda: {"*": ["code", "slug"]},
        description="Table name → fields that get a unique rule ('*' = default).",
    )
    unique_request_kinds: List[RequestKind] = Field(
        default_factory=lambda: [RequestKind.STORE],
        description="Request kinds the unique rule applies to.",
    )

    # -- Sources ------------------------------------------------------------
    database_url: Optional[str] = Field(
        default=None,
        description="When set, read columns from the live database instead of migrations.",
    )

    # -- Behaviour ----------------------------------------------------------
    force: bool = Field(
        default=False, description="Overwrite artifacts that already exist."
    )
    generate_policy: bool = Field(default=True, description="Delegate policy stub creation.")
    dry_run: bool = Field(default=False, description="Log writes instead of performing them.")

    @field_validator("unique_request_kinds")
    @classmethod
    def _dedupe_kinds(cls, v: List[RequestKind]) -> List[RequestKind]:
        seen: List[RequestKind] = []
        for kind in v:
            if kind not in seen:
                seen.append(kind)
        return seen

    # -- Helpers ------------------------------------------------------------

    def rule_policy(self) -> RulePolicy:
        excluded = set(self.excluded_fields)
        if self.owner_column:
            excluded.add(self.owner_column)
        return RulePolicy(
            excluded_fields=frozenset(excluded),
            unique=UniqueFieldPolicy(
                fields={k: frozenset(v) for k, v in self.unique_fields.items()},
                request_kinds=frozenset(self.unique_request_kinds),
            ),
        )

    def enrichment_policy(self) -> EnrichmentPolicy:
        return EnrichmentPolicy(
            key_suffix=self.key_suffix,
            display_attribute=self.display_attribute,
            audit_fields=frozenset(self.audit_fields),
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RequestKind",
    "SchemaOrigin",
    "MergeOutcome",
    "ColumnDefinition",
    "TableSchema",
    "RelationHint",
    "FieldMapping",
    "EnrichmentPlan",
    "RouteDeclaration",
    "MergeResult",
    "ModelMetadata",
    "UniqueFieldPolicy",
    "RulePolicy",
    "EnrichmentPolicy",
    "ScaffoldConfig",
]

logger.debug("apiscaffold.models loaded — %d public symbols.", len(__all__))
