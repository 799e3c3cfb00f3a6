"""
tests/test_rules.py
Unit tests for apiscaffold.rules.

Tests cover:
- Requiredness per request kind and nullability
- Type token mapping and enum ``in:`` rules
- Excluded system / owner fields
- Configurable unique rules
- Fallback when no schema (or only system fields) is available
"""

from __future__ import annotations

from typing import Dict

import pytest

from apiscaffold.models import (
    ColumnDefinition,
    RequestKind,
    RulePolicy,
    ScaffoldConfig,
    SchemaOrigin,
    TableSchema,
    UniqueFieldPolicy,
)
from apiscaffold.rules import fallback_rules, infer_rules, type_token
from apiscaffold.schema_dsl import extract_columns

from conftest import STUDENTS_MIGRATION


def _schema(table: str, *columns: ColumnDefinition) -> TableSchema:
    cols: Dict[str, ColumnDefinition] = {c.name: c for c in columns}
    return TableSchema(table=table, columns=cols, origin=SchemaOrigin.MIGRATIONS)


@pytest.fixture()
def students_schema() -> TableSchema:
    return extract_columns([STUDENTS_MIGRATION], "students")


# ===========================================================================
# Full inference against the fixture migration
# ===========================================================================


class TestInferRulesForStudents:
    """Store and update rules for the students table."""

    def test_store_rules(self, students_schema: TableSchema) -> None:
        rules = infer_rules(students_schema, RequestKind.STORE)
        assert rules == {
            "name": ["required", "string"],
            "code": ["required", "string", "unique:students,code"],
            "nickname": ["sometimes", "string"],
            "gender": ["required", "in:male,female"],
            "school_class_id": ["sometimes", "integer"],
            "gpa": ["sometimes", "numeric"],
            "is_active": ["required", "boolean"],
            "birth_date": ["required", "date"],
            "meta": ["sometimes", "array"],
        }

    def test_update_rules_are_all_optional(self, students_schema: TableSchema) -> None:
        rules = infer_rules(students_schema, RequestKind.UPDATE)
        for field_name, tokens in rules.items():
            assert tokens[0] == "sometimes", f"{field_name} must be optional on update"
        assert rules["code"] == ["sometimes", "string"], "unique applies to store only"

    def test_system_fields_never_present(self, students_schema: TableSchema) -> None:
        for kind in RequestKind:
            rules = infer_rules(students_schema, kind)
            for excluded in ("id", "user_id", "created_at", "updated_at", "deleted_at"):
                assert excluded not in rules, f"{excluded} leaked into {kind.value} rules"

    def test_order_follows_schema(self, students_schema: TableSchema) -> None:
        rules = infer_rules(students_schema, RequestKind.STORE)
        expected = [n for n in students_schema.column_names if n in rules]
        assert list(rules) == expected


# ===========================================================================
# Column-level policies
# ===========================================================================


class TestColumnPolicies:
    """Tests for type tokens and requiredness on hand-built schemas."""

    @pytest.mark.parametrize(
        "declared, token",
        [
            ("string", "string"),
            ("longText", "string"),
            ("unsignedBigInteger", "integer"),
            ("year", "integer"),
            ("double", "numeric"),
            ("dateTimeTz", "date"),
            ("jsonb", "array"),
            ("foreignUuid", "uuid"),
            ("ipAddress", "ip"),
        ],
    )
    def test_type_tokens(self, declared: str, token: str) -> None:
        assert type_token(ColumnDefinition(name="c", declared_type=declared)) == token

    def test_unknown_type_gets_requiredness_only(self) -> None:
        schema = _schema("files", ColumnDefinition(name="blob", declared_type="binary"))
        assert infer_rules(schema, RequestKind.STORE) == {"blob": ["required"]}

    def test_enum_without_choices(self) -> None:
        schema = _schema("t", ColumnDefinition(name="status", declared_type="enum"))
        assert infer_rules(schema, RequestKind.STORE) == {"status": ["required"]}

    def test_nullable_enum_on_store(self) -> None:
        schema = _schema(
            "t",
            ColumnDefinition(
                name="status", declared_type="enum", nullable=True, options=("a", "b")
            ),
        )
        assert infer_rules(schema, RequestKind.STORE) == {"status": ["sometimes", "in:a,b"]}

    def test_owner_column_follows_config(self) -> None:
        schema = _schema(
            "posts",
            ColumnDefinition(name="author_id", declared_type="foreignId"),
            ColumnDefinition(name="user_id", declared_type="foreignId"),
        )
        policy = ScaffoldConfig(owner_column="author_id").rule_policy()
        rules = infer_rules(schema, RequestKind.STORE, policy)
        assert "author_id" not in rules
        assert rules["user_id"] == ["required", "integer"]


# ===========================================================================
# Unique rules
# ===========================================================================


class TestUniqueRules:
    """Tests for the configurable unique-field policy."""

    def test_default_slug_is_unique(self) -> None:
        schema = _schema("posts", ColumnDefinition(name="slug", declared_type="string"))
        rules = infer_rules(schema, RequestKind.STORE)
        assert rules["slug"] == ["required", "string", "unique:posts,slug"]

    def test_per_table_override(self) -> None:
        policy = RulePolicy(
            unique=UniqueFieldPolicy(fields={"users": frozenset({"email"})})
        )
        users = _schema("users", ColumnDefinition(name="email", declared_type="string"))
        posts = _schema("posts", ColumnDefinition(name="code", declared_type="string"))
        assert "unique:users,email" in infer_rules(users, RequestKind.STORE, policy)["email"]
        assert infer_rules(posts, RequestKind.STORE, policy)["code"] == ["required", "string"]

    def test_unique_on_update_when_configured(self) -> None:
        policy = ScaffoldConfig(
            unique_request_kinds=[RequestKind.STORE, RequestKind.UPDATE]
        ).rule_policy()
        schema = _schema("posts", ColumnDefinition(name="code", declared_type="string"))
        assert infer_rules(schema, RequestKind.UPDATE, policy)["code"] == [
            "sometimes",
            "string",
            "unique:posts,code",
        ]


# ===========================================================================
# Fallback
# ===========================================================================


class TestFallback:
    """Tests for the minimal rule set used without a schema."""

    def test_empty_schema_store(self) -> None:
        rules = infer_rules(TableSchema(table="courses"), RequestKind.STORE)
        assert rules == {"name": ["required", "string"]}

    def test_empty_schema_update(self) -> None:
        rules = infer_rules(TableSchema(table="courses"), RequestKind.UPDATE)
        assert rules == {"name": ["sometimes", "string"]}

    def test_only_system_fields(self) -> None:
        schema = _schema(
            "logs",
            ColumnDefinition(name="id", declared_type="id"),
            ColumnDefinition(name="created_at", declared_type="timestamp", nullable=True),
        )
        assert infer_rules(schema, RequestKind.STORE) == fallback_rules(RequestKind.STORE)

    def test_fallback_is_never_empty(self) -> None:
        for kind in RequestKind:
            assert fallback_rules(kind), f"{kind.value} fallback must not be empty"
