# File: apiscaffold/templates.py
"""
apiscaffold - PHP Artifact Templates
======================================
Turns inferred rules and enrichment plans into the text of the generated
Laravel classes:

    1. ``Store<Model>Request`` / ``Update<Model>Request``  (FormRequest)
    2. ``<Model>Resource``                                  (JsonResource)
    3. ``Api\\<Version>\\<Model>Controller``                 (API controller)

**Performance contract:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Template methods are stateless, so one generator serves a whole run.

Output is deterministic: the same inputs always render byte-identical text,
which keeps regenerated files diff-friendly.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from apiscaffold.models import (
    EnrichmentPlan,
    ModelMetadata,
    RequestKind,
    ScaffoldConfig,
)
from apiscaffold.utils import php_list_literal, php_string, to_camel_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "
_BACKSLASH: str = "\\"

REQUESTS_NAMESPACE: str = "App\\Http\\Requests"
RESOURCES_NAMESPACE: str = "App\\Http\\Resources"


def request_class_name(model_name: str, kind: RequestKind) -> str:
    """``Student`` + store → ``StoreStudentRequest``."""
    return f"{kind.value.capitalize()}{model_name}Request"


def resource_class_name(model_name: str) -> str:
    return f"{model_name}Resource"


def controller_class_name(model_name: str) -> str:
    return f"{model_name}Controller"


class TemplateGenerator:
    """
    Stateless PHP source generator.

    Each ``generate_*`` method returns a complete file content string ending
    in a newline.
    """

    def __init__(self, config: Optional[ScaffoldConfig] = None) -> None:
        self._config: ScaffoldConfig = config or ScaffoldConfig()
        self._indent: str = _INDENT
        self._double_indent: str = _INDENT * 2
        self._triple_indent: str = _INDENT * 3

    def controller_namespace(self, version: str) -> str:
        return f"{self._config.controllers_namespace.strip(_BACKSLASH)}\\{version}"

    def controller_reference(self, model_name: str, version: str) -> str:
        """Fully-qualified controller class name used in route files."""
        return f"{self.controller_namespace(version)}\\{controller_class_name(model_name)}"

    # ===================================================================
    # 1. FormRequest
    # ===================================================================

    def generate_request(
        self,
        model: ModelMetadata,
        kind: RequestKind,
        rules: Dict[str, List[str]],
    ) -> str:
        """Render a FormRequest whose ``rules()`` returns *rules* in order."""
        class_name: str = request_class_name(model.name, kind)
        lines: List[str] = [
            "<?php",
            "",
            f"namespace {REQUESTS_NAMESPACE};",
            "",
            "use Illuminate\\Foundation\\Http\\FormRequest;",
            "",
            f"class {class_name} extends FormRequest",
            "{",
            f"{self._indent}public function authorize(): bool",
            f"{self._indent}{{",
            f"{self._double_indent}return true;",
            f"{self._indent}}}",
            "",
            f"{self._indent}public function rules(): array",
            f"{self._indent}{{",
            f"{self._double_indent}return [",
        ]
        for field_name, tokens in rules.items():
            lines.append(
                f"{self._triple_indent}{php_string(field_name)} => {php_list_literal(tokens)},"
            )
        lines.extend(
            [
                f"{self._double_indent}];",
                f"{self._indent}}}",
                "}",
                "",
            ]
        )
        logger.debug("Rendered %s (%d rule(s)).", class_name, len(rules))
        return "\n".join(lines)

    # ===================================================================
    # 2. JsonResource
    # ===================================================================

    def generate_resource(self, model: ModelMetadata, plan: EnrichmentPlan) -> str:
        """
        Render the JsonResource.  Without any field mappings (unknown schema)
        the resource falls back to ``parent::toArray($request)``.
        """
        class_name: str = resource_class_name(model.name)
        lines: List[str] = [
            "<?php",
            "",
            f"namespace {RESOURCES_NAMESPACE};",
            "",
            "use Illuminate\\Http\\Resources\\Json\\JsonResource;",
            "",
            f"class {class_name} extends JsonResource",
            "{",
            f"{self._indent}public function toArray($request): array",
            f"{self._indent}{{",
        ]
        if plan.field_mappings:
            lines.append(f"{self._double_indent}return [")
            for mapping in plan.field_mappings:
                lines.append(
                    f"{self._triple_indent}{php_string(mapping.output_key)} => "
                    f"{mapping.source_expression},"
                )
            lines.append(f"{self._double_indent}];")
        else:
            lines.append(f"{self._double_indent}return parent::toArray($request);")
        lines.extend([f"{self._indent}}}", "}", ""])
        logger.debug("Rendered %s (%d field(s)).", class_name, len(plan.field_mappings))
        return "\n".join(lines)

    # ===================================================================
    # 3. Controller
    # ===================================================================

    def _query_expression(self, model_name: str, plan: EnrichmentPlan) -> str:
        if plan.has_eager_loads:
            return f"{model_name}::with({php_list_literal(plan.eager_load_hints)})"
        return f"{model_name}::query()"

    def generate_controller(
        self,
        model: ModelMetadata,
        version: str,
        plan: EnrichmentPlan,
        owner_column_present: Optional[bool] = None,
    ) -> str:
        """
        Render the versioned API controller.

        Args:
            owner_column_present: ``True`` assigns the owner column from the
                authenticated user unconditionally, ``False`` omits it, and
                ``None`` (schema unknown) emits a runtime ``Schema::hasColumn``
                check instead.
        """
        name: str = model.name
        class_name: str = controller_class_name(name)
        resource: str = resource_class_name(name)
        store_request: str = request_class_name(name, RequestKind.STORE)
        update_request: str = request_class_name(name, RequestKind.UPDATE)
        var: str = "$" + to_camel_case(name)
        query: str = self._query_expression(name, plan)
        owner: str = self._config.owner_column
        i1, i2, i3 = self._indent, self._double_indent, self._triple_indent

        uses: List[str] = [
            "use App\\Http\\Controllers\\Controller;",
            f"use {RESOURCES_NAMESPACE}\\{resource};",
            f"use {REQUESTS_NAMESPACE}\\{store_request};",
            f"use {REQUESTS_NAMESPACE}\\{update_request};",
            f"use {model.class_name.lstrip(_BACKSLASH)};",
        ]
        if owner and owner_column_present is None:
            uses.append("use Illuminate\\Support\\Facades\\Schema;")

        lines: List[str] = [
            "<?php",
            "",
            f"namespace {self.controller_namespace(version)};",
            "",
            *uses,
            "",
            f"class {class_name} extends Controller",
            "{",
            # index
            f"{i1}public function index()",
            f"{i1}{{",
            f"{i2}return {resource}::collection({query}->get());",
            f"{i1}}}",
            "",
            # store
            f"{i1}public function store({store_request} $request)",
            f"{i1}{{",
            f"{i2}$data = $request->validated();",
        ]
        if owner and owner_column_present is True:
            lines.append(f"{i2}$data[{php_string(owner)}] = $request->user()->id;")
        elif owner and owner_column_present is None:
            lines.extend(
                [
                    f"{i2}if (Schema::hasColumn({php_string(model.table)}, {php_string(owner)})) {{",
                    f"{i3}$data[{php_string(owner)}] = $request->user()->id;",
                    f"{i2}}}",
                ]
            )
        lines.extend(
            [
                "",
                f"{i2}{var} = {name}::create($data);",
                f"{i2}return response()->json(new {resource}({var}), 201);",
                f"{i1}}}",
                "",
                # show
                f"{i1}public function show($id)",
                f"{i1}{{",
                f"{i2}{var} = {query}->find($id);",
                f"{i2}if (!{var}) {{",
                f"{i3}return response()->json(['message' => 'Not found'], 404);",
                f"{i2}}}",
                "",
                f"{i2}return new {resource}({var});",
                f"{i1}}}",
                "",
                # update
                f"{i1}public function update({update_request} $request, $id)",
                f"{i1}{{",
                f"{i2}{var} = {name}::find($id);",
                f"{i2}if (!{var}) {{",
                f"{i3}return response()->json(['message' => 'Not found'], 404);",
                f"{i2}}}",
                "",
                f"{i2}{var}->update($request->validated());",
                f"{i2}return new {resource}({var});",
                f"{i1}}}",
                "",
                # destroy
                f"{i1}public function destroy($id)",
                f"{i1}{{",
                f"{i2}{var} = {name}::find($id);",
                f"{i2}if ({var}) {{",
                f"{i3}{var}->delete();",
                f"{i2}}}",
                "",
                f"{i2}return response()->noContent();",
                f"{i1}}}",
                "}",
                "",
            ]
        )
        logger.debug(
            "Rendered %s (eager loads: %s).",
            class_name,
            ", ".join(plan.eager_load_hints) or "none",
        )
        return "\n".join(lines)


__all__: List[str] = [
    "REQUESTS_NAMESPACE",
    "RESOURCES_NAMESPACE",
    "request_class_name",
    "resource_class_name",
    "controller_class_name",
    "TemplateGenerator",
]
