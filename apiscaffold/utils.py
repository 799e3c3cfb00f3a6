# File: apiscaffold/utils.py
"""
apiscaffold - Utility Functions & Helpers
==========================================
String transformation, PHP literal formatting, and timing utilities used
throughout the scaffolding pipeline.

Performance strategy:
- ALL string-conversion functions are decorated with ``@lru_cache(maxsize=None)``
  so repeated calls (one per column, per artifact) are amortised to O(1)
  after first invocation.
- No external dependencies beyond the Python standard library.

Naming helpers follow the conventions of the Laravel framework the generated
code targets (``Str::studly``, ``Str::camel``, ``Str::kebab``,
``Str::plural``) closely enough for class, table and route-slug derivation.
"""

from __future__ import annotations

import functools
import logging
import re
import time
from typing import Dict, List, Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_STUDLY_SEPARATORS_RE: re.Pattern[str] = re.compile(r"[-_\s]+")

# Irregular plurals common in database schemas
_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "crisis": "crises",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
}


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("StudentCourse")
        'student_course'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_studly_case(name: str) -> str:
    """
    Convert a name to StudlyCase the way Laravel's ``Str::studly`` does.

    Each ``-``/``_``/space separated piece gets its first letter upper-cased;
    the rest of the piece is left alone, so ``HTTPClient`` stays intact.

    Examples:
        >>> to_studly_case("student_course")
        'StudentCourse'
        >>> to_studly_case("student")
        'Student'
    """
    if not name:
        return ""
    pieces: List[str] = [p for p in _STUDLY_SEPARATORS_RE.split(name) if p]
    return "".join(p[0].upper() + p[1:] for p in pieces)


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """
    Convert any string to camelCase.

    Examples:
        >>> to_camel_case("parent_course")
        'parentCourse'
        >>> to_camel_case("HTTPResponse")
        'httpResponse'
    """
    if not name:
        return ""
    words: Tuple[str, ...] = _extract_words(name)
    if not words:
        return ""
    first: str = words[0].lower()
    rest: str = "".join(w.capitalize() for w in words[1:])
    return first + rest


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert any string to kebab-case (used in URL paths)."""
    if not name:
        return ""
    words: Tuple[str, ...] = _extract_words(name)
    return "-".join(w.lower() for w in words)


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Naive English pluralisation sufficient for code generation.

    Handles common suffixes. Only the last word of a compound name is
    pluralised (``StudentCourse`` → ``StudentCourses``).
    """
    if not name:
        return ""

    lower: str = name.lower()

    for singular, plural in _IRREGULAR_PLURALS.items():
        if lower == singular or lower.endswith("_" + singular):
            stem: str = name[: len(name) - len(singular)]
            tail: str = name[len(name) - len(singular):]
            if tail[0].isupper():
                return stem + plural[0].upper() + plural[1:]
            return stem + plural
        # Compound StudlyCase ending in an irregular word, e.g. "SalesPerson"
        if lower.endswith(singular) and name[-len(singular)].isupper():
            return name[: -len(singular)] + plural[0].upper() + plural[1:]

    # Already plural-looking (very naive)
    if lower.endswith("s") and not lower.endswith("ss"):
        return name

    # Rules ordered by specificity
    if lower.endswith(("sh", "ch", "x", "z", "ss")):
        return name + "es"
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith("fe"):
        return name[:-2] + "ves"
    if lower.endswith("f"):
        return name[:-1] + "ves"
    if lower.endswith("o") and len(name) > 1 and lower[-2] not in "aeiou":
        return name + "es"

    return name + "s"


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """
    Extract individual words from any casing style.

    Returns a tuple (hashable for LRU cache) of lowercase word strings.
    """
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


# ---------------------------------------------------------------------------
# Laravel naming conventions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def model_to_table_name(model_name: str) -> str:
    """Default Eloquent table name for a model class (``StudentCourse`` → ``student_courses``)."""
    return to_snake_case(to_plural(to_studly_case(model_name)))


@functools.lru_cache(maxsize=None)
def model_to_resource_slug(model_name: str) -> str:
    """Route resource slug for a model class (``StudentCourse`` → ``student-courses``)."""
    return to_kebab_case(to_plural(to_studly_case(model_name)))


# ---------------------------------------------------------------------------
# PHP literal formatting helpers
# ---------------------------------------------------------------------------


def php_string(value: str) -> str:
    """Render *value* as a single-quoted PHP string literal."""
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def php_list_literal(items: Sequence[str]) -> str:
    """
    Format a short PHP array literal of strings.

    Example:
        >>> php_list_literal(["required", "string"])
        "['required', 'string']"
    """
    inner: str = ", ".join(php_string(item) for item in items)
    return f"[{inner}]"


def count_lines(content: str) -> int:
    """Count the number of lines in a string. O(n)."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling generation steps.

    Usage:
        with Timer("extract schema") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug(
            "Timer [%s]: %.4f seconds",
            self.label,
            self.elapsed,
        )

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "to_studly_case",
    "to_camel_case",
    "to_kebab_case",
    "to_plural",
    "model_to_table_name",
    "model_to_resource_slug",
    "php_string",
    "php_list_literal",
    "count_lines",
    "Timer",
]

logger.debug("apiscaffold.utils loaded — %d public symbols.", len(__all__))
