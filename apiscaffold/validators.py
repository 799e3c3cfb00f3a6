# File: apiscaffold/validators.py
"""
apiscaffold - Request & Configuration Validators
==================================================
Pure validation functions run before any file is touched.  Pydantic handles
structural correctness of ``ScaffoldConfig``; this module adds the semantic
checks: a module name that is a legal PHP class name, a usable version
token, relative project paths, and sane inference settings.

Usage::

    from apiscaffold.validators import validate_request
    result = validate_request("Student", "V1", config)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any, Dict, FrozenSet, List, Optional

from apiscaffold.models import ScaffoldConfig

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` instances."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            prefix: str = "❌" if item.is_error else "⚠️"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_PHP_CLASS_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STUDLY_RE: re.Pattern[str] = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_VERSION_RE: re.Pattern[str] = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_CONVENTIONAL_VERSION_RE: re.Pattern[str] = re.compile(r"^V\d+$")
_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NAMESPACE_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\\[A-Za-z_][A-Za-z0-9_]*)*$")

# PHP keywords that cannot be class names.
_PHP_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "abstract", "and", "array", "as", "break", "callable", "case",
        "catch", "class", "clone", "const", "continue", "declare",
        "default", "do", "echo", "else", "elseif", "empty", "enddeclare",
        "endfor", "endforeach", "endif", "endswitch", "endwhile", "enum",
        "eval", "exit", "extends", "final", "finally", "fn", "for",
        "foreach", "function", "global", "goto", "if", "implements",
        "include", "instanceof", "insteadof", "interface", "isset", "list",
        "match", "namespace", "new", "or", "print", "private", "protected",
        "public", "readonly", "require", "return", "static", "switch",
        "throw", "trait", "try", "unset", "use", "var", "while", "xor",
        "yield", "bool", "false", "float", "int", "iterable", "mixed",
        "never", "null", "object", "parent", "self", "string", "true",
        "void",
    }
)

_PATH_FIELDS: List[str] = [
    "migrations_dir",
    "models_dir",
    "requests_dir",
    "resources_dir",
    "controllers_dir",
    "routes_file",
]


# ---------------------------------------------------------------------------
# Individual validators
# ---------------------------------------------------------------------------


def validate_module_name(name: str) -> ValidationResult:
    """The module name becomes a PHP class name prefix."""
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"name": name}

    if not name:
        result.add_error("EMPTY_MODULE_NAME", "Module name must not be empty.")
        return result

    if not _PHP_CLASS_RE.match(name):
        result.add_error(
            "INVALID_MODULE_NAME",
            f"Module name '{name}' is not a valid PHP class name.",
            ctx,
        )
        return result

    if name.lower() in _PHP_RESERVED_WORDS:
        result.add_error(
            "MODULE_NAME_RESERVED",
            f"Module name '{name}' is a PHP reserved word.",
            ctx,
        )

    if not _STUDLY_RE.match(name):
        result.add_warning(
            "MODULE_NAME_NOT_STUDLY",
            f"Module name '{name}' is not StudlyCase; it will be normalised.",
            ctx,
        )
    return result


def validate_version(version: str) -> ValidationResult:
    """The version is both a namespace segment and a route prefix."""
    result: ValidationResult = ValidationResult()
    if not _VERSION_RE.match(version or ""):
        result.add_error(
            "INVALID_VERSION",
            f"Version '{version}' must start with a letter and contain only "
            f"letters, digits and underscores (e.g. V1).",
            {"version": version},
        )
    elif not _CONVENTIONAL_VERSION_RE.match(version):
        result.add_warning(
            "UNCONVENTIONAL_VERSION",
            f"Version '{version}' does not follow the 'V<number>' convention.",
            {"version": version},
        )
    return result


def _is_relative(path: str) -> bool:
    return not (PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute())


def validate_config(config: ScaffoldConfig) -> ValidationResult:
    """Semantic checks on a structurally valid ``ScaffoldConfig``."""
    result: ValidationResult = ValidationResult()

    for field_name in _PATH_FIELDS:
        value: str = getattr(config, field_name)
        if not value:
            result.add_error(
                "EMPTY_PATH",
                f"'{field_name}' must not be empty.",
                {"field": field_name},
            )
        elif not _is_relative(value):
            result.add_error(
                "ABSOLUTE_PATH",
                f"'{field_name}' must be relative to the project root, got '{value}'.",
                {"field": field_name, "value": value},
            )
        elif ".." in PurePosixPath(value.replace("\\", "/")).parts:
            result.add_error(
                "PATH_ESCAPES_ROOT",
                f"'{field_name}' must stay inside the project root, got '{value}'.",
                {"field": field_name, "value": value},
            )

    for field_name in ("models_namespace", "controllers_namespace"):
        value = getattr(config, field_name).strip("\\")
        if not _NAMESPACE_RE.match(value):
            result.add_error(
                "INVALID_NAMESPACE",
                f"'{field_name}' is not a valid PHP namespace: '{value}'.",
                {"field": field_name},
            )

    result.merge(validate_version(config.default_version))

    if config.owner_column and not _IDENTIFIER_RE.match(config.owner_column):
        result.add_error(
            "INVALID_OWNER_COLUMN",
            f"owner_column '{config.owner_column}' is not a valid column name.",
        )

    if not config.key_suffix.strip():
        result.add_error("EMPTY_KEY_SUFFIX", "key_suffix must not be blank.")

    for table, fields in config.unique_fields.items():
        if table != "*" and not _IDENTIFIER_RE.match(table):
            result.add_error(
                "INVALID_UNIQUE_TABLE",
                f"unique_fields key '{table}' is not a table name or '*'.",
                {"table": table},
            )
        for field_name in fields:
            if field_name in config.excluded_fields:
                result.add_warning(
                    "UNIQUE_FIELD_EXCLUDED",
                    f"Unique field '{field_name}' is also excluded from input; "
                    f"its rule will never be emitted.",
                    {"table": table, "field": field_name},
                )

    if not config.unique_request_kinds:
        result.add_warning(
            "UNIQUE_RULES_DISABLED",
            "unique_request_kinds is empty; no unique rules will be emitted.",
        )

    return result


def validate_request(
    module_name: str,
    version: str,
    config: ScaffoldConfig,
) -> ValidationResult:
    """
    **Master validation entry point** used by the generator and the CLI
    before anything is read or written.
    """
    result: ValidationResult = ValidationResult()
    result.merge(validate_module_name(module_name))
    result.merge(validate_version(version))
    result.merge(validate_config(config))

    if result.has_errors:
        logger.error("Validation FAILED. %s", result.summary())
    else:
        logger.debug("Validation passed. %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_module_name",
    "validate_version",
    "validate_config",
    "validate_request",
]
