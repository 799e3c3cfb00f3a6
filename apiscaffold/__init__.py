# File: apiscaffold/__init__.py
"""
apiscaffold — CRUD API Module Scaffolder for Laravel Projects
===============================================================

Reads a model's migrations (or its live table), infers FormRequest
validation rules, enriches foreign-key columns into display fields, and
emits a versioned API module: requests, resource, controller, policy
delegation and an idempotent ``routes/api.php`` entry.

Architecture overview::

    ┌──────────────┐     ┌─────────────────┐     ┌───────────────────┐
    │  CLI / Entry │────▶│ ModuleGenerator │────▶│ TemplateGenerator │
    │   (cli.py)   │     │ (generator.py)  │     │  (templates.py)   │
    └──────────────┘     └────────┬────────┘     └───────────────────┘
                                  │
          ┌──────────────┬────────┼─────────┬──────────────┐
          ▼              ▼        ▼         ▼              ▼
    ┌───────────┐  ┌─────────┐ ┌────────────┐ ┌────────┐ ┌──────────┐
    │schema_dsl │  │  rules  │ │ enrichment │ │ routes │ │  stores  │
    │ + lexer   │  │         │ │            │ │        │ │          │
    └───────────┘  └─────────┘ └────────────┘ └────────┘ └──────────┘

Usage::

    # As a library
    from apiscaffold import extract_columns, infer_rules, RequestKind
    schema = extract_columns([migration_text], "students")
    rules = infer_rules(schema, RequestKind.STORE)

    # From the command line
    apiscaffold Student V1 --project-root ./my-laravel-app -v
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from apiscaffold.models import (
    ColumnDefinition,
    EnrichmentPlan,
    FieldMapping,
    MergeOutcome,
    MergeResult,
    ModelMetadata,
    RelationHint,
    RequestKind,
    RouteDeclaration,
    ScaffoldConfig,
    SchemaOrigin,
    TableSchema,
)
from apiscaffold.schema_dsl import MigrationSchemaSource, extract_columns
from apiscaffold.rules import infer_rules
from apiscaffold.enrichment import enrich
from apiscaffold.routes import merge_route, merge_route_text
from apiscaffold.inspection import PhpModelInspector, UnknownModelError
from apiscaffold.reflection import SchemaUnavailableError, SqlAlchemyReflector
from apiscaffold.stores import FileSystemStore
from apiscaffold.templates import TemplateGenerator
from apiscaffold.validators import ValidationResult, validate_request
from apiscaffold.generator import GenerationReport, ModuleGenerator, load_config

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestrator
    "ModuleGenerator",
    "GenerationReport",
    "load_config",
    # Models
    "ColumnDefinition",
    "TableSchema",
    "SchemaOrigin",
    "RequestKind",
    "RelationHint",
    "FieldMapping",
    "EnrichmentPlan",
    "RouteDeclaration",
    "MergeOutcome",
    "MergeResult",
    "ModelMetadata",
    "ScaffoldConfig",
    # Core engine
    "extract_columns",
    "MigrationSchemaSource",
    "infer_rules",
    "enrich",
    "merge_route",
    "merge_route_text",
    # Collaborators
    "PhpModelInspector",
    "UnknownModelError",
    "SqlAlchemyReflector",
    "SchemaUnavailableError",
    "FileSystemStore",
    "TemplateGenerator",
    # Validation
    "validate_request",
    "ValidationResult",
]
