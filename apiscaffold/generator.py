# File: apiscaffold/generator.py
"""
apiscaffold - Module Generation Pipeline (Orchestrator)
=========================================================

Connects every phase together for one module::

    Validate → Resolve Model → Load Schema → Infer Rules / Enrich
             → Emit Requests, Resource, Policy, Controller → Merge Routes

The ``ModuleGenerator`` class provides both a programmatic API and the
backend for the CLI.

Error handling strategy:
    - Validation errors and an unknown model abort the run before any
      artifact is written.
    - A missing or unreachable schema degrades to fallback rules with a
      warning.
    - Every emission step is isolated: an exception in one step marks that
      step failed and the run continues with the next.
    - Existing artifacts are skipped unless ``force`` is set.  The route
      file is only rewritten when a merge actually changes it.

Concurrent runs against the same project are not coordinated.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional

import yaml

from apiscaffold.enrichment import enrich
from apiscaffold.inspection import (
    ModelMetadataProvider,
    PhpModelInspector,
    UnknownModelError,
)
from apiscaffold.models import (
    EnrichmentPlan,
    MergeResult,
    ModelMetadata,
    RequestKind,
    RouteDeclaration,
    ScaffoldConfig,
    SchemaOrigin,
    TableSchema,
)
from apiscaffold.policy import (
    ArtisanPolicyGenerator,
    PolicyDelegateError,
    PolicyStubGenerator,
)
from apiscaffold.reflection import (
    SchemaReflector,
    SchemaUnavailableError,
    SqlAlchemyReflector,
)
from apiscaffold.routes import merge_route
from apiscaffold.rules import Rules, infer_rules
from apiscaffold.schema_dsl import MigrationSchemaSource, SchemaSource
from apiscaffold.stores import DocumentStore, FileSystemStore
from apiscaffold.templates import (
    TemplateGenerator,
    controller_class_name,
    request_class_name,
    resource_class_name,
)
from apiscaffold.utils import Timer, model_to_resource_slug, to_studly_case
from apiscaffold.validators import ValidationResult, validate_request

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.generator")

CONFIG_FILE_NAMES: List[str] = ["apiscaffold.yaml", ".apiscaffold.yaml"]


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


class StepStatus(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    WARNING = "warning"
    FAILED = "failed"


_STATUS_ICONS: Dict[StepStatus, str] = {
    StepStatus.CREATED: "✓",
    StepStatus.SKIPPED: "⊘",
    StepStatus.WARNING: "⚠",
    StepStatus.FAILED: "✗",
}


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    status: StepStatus = StepStatus.CREATED
    elapsed_seconds: float = 0.0
    detail: str = ""
    path: Optional[str] = None


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``ModuleGenerator.generate()``.

    ``aborted`` is set when the run stopped before emitting anything
    (invalid input or unknown model).
    """

    module_name: str = ""
    version: str = ""
    table: str = ""
    schema_origin: SchemaOrigin = SchemaOrigin.NONE
    project_root: str = ""
    dry_run: bool = False

    aborted: bool = False
    model_missing: bool = False
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    created_paths: List[str] = field(default_factory=list)
    skipped_paths: List[str] = field(default_factory=list)

    rules: Dict[str, Rules] = field(default_factory=dict)
    plan: Optional[EnrichmentPlan] = None

    @property
    def failed_steps(self) -> List[GenerationStepMetric]:
        return [m for m in self.step_metrics if m.status == StepStatus.FAILED]

    @property
    def success(self) -> bool:
        return not self.aborted and not self.failed_steps

    def step(self, name: str) -> Optional[GenerationStepMetric]:
        for metric in self.step_metrics:
            if metric.step_name == name:
                return metric
        return None

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        if self.dry_run and self.success:
            status += " (dry run)"
        lines.append(f"{'='*60}")
        lines.append("  apiscaffold — Module Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:   {status}")
        lines.append(f"  Module:   {self.module_name} ({self.version})")
        if self.table:
            lines.append(f"  Table:    {self.table} (schema: {self.schema_origin.value})")
        lines.append(f"  Project:  {self.project_root}")
        lines.append(f"  Time:     {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Steps:")
            for step in self.step_metrics:
                icon: str = _STATUS_ICONS[step.status]
                lines.append(
                    f"    {icon} {step.step_name:<22s} {step.status.value:<8s} "
                    f"{step.elapsed_seconds:>6.3f}s  {step.detail}"
                )

        for title, items, icon in (
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Errors", self.errors, "✗"),
            ("Warnings", self.warnings, "⚠"),
        ):
            if items:
                lines.append(f"{'─'*60}")
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    {icon} {item}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Config loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. An empty file is an empty mapping."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Load a configuration file (YAML or JSON), dispatching on extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Config path is not a file: {path}")
    if path.suffix.lower() == ".json":
        return _load_json_file(path)
    return _load_yaml_file(path)


def discover_config_file(project_root: Path) -> Optional[Path]:
    for name in CONFIG_FILE_NAMES:
        candidate: Path = project_root / name
        if candidate.is_file():
            return candidate
    return None


def load_config(
    project_root: Path,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ScaffoldConfig:
    """
    Build the effective ``ScaffoldConfig``: file values (explicit path or
    discovered in *project_root*), then *overrides* on top.

    Raises:
        FileNotFoundError: If an explicit *config_path* is missing.
        ValueError: If the file can't be parsed or fails validation.
    """
    path: Optional[Path] = config_path or discover_config_file(project_root)
    data: Dict[str, Any] = {}
    if path is not None:
        data = load_config_file(path)
        logger.info("Loaded config file: %s (%d key(s)).", path, len(data))
    data.update(overrides or {})
    try:
        return ScaffoldConfig.model_validate(data)
    except Exception as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ModuleGenerator:
    """
    Master pipeline orchestrator for one Laravel project.

    Usage::

        generator = ModuleGenerator.for_project(Path("."), config)
        report = generator.generate("Student", "V1")
        print(report.summary())

    Every collaborator is injectable; ``for_project`` wires the defaults.
    """

    def __init__(
        self,
        config: ScaffoldConfig,
        store: DocumentStore,
        *,
        model_provider: Optional[ModelMetadataProvider] = None,
        schema_source: Optional[SchemaSource] = None,
        reflector: Optional[SchemaReflector] = None,
        policy_generator: Optional[PolicyStubGenerator] = None,
        templates: Optional[TemplateGenerator] = None,
        project_root: str = "",
    ) -> None:
        self._config: ScaffoldConfig = config
        self._store: DocumentStore = store
        self._models: ModelMetadataProvider = model_provider or PhpModelInspector(
            store, config.models_dir, config.models_namespace
        )
        self._schema_source: SchemaSource = schema_source or MigrationSchemaSource(
            store, config.migrations_dir
        )
        self._reflector: Optional[SchemaReflector] = reflector
        self._policy: Optional[PolicyStubGenerator] = policy_generator
        self._templates: TemplateGenerator = templates or TemplateGenerator(config)
        self._project_root: str = project_root

        logger.debug(
            "ModuleGenerator initialised (force=%s, dry_run=%s, reflection=%s).",
            config.force,
            config.dry_run,
            reflector is not None,
        )

    @classmethod
    def for_project(cls, project_root: Path, config: ScaffoldConfig) -> "ModuleGenerator":
        """Wire the file-system store, PHP inspector, and optional reflector."""
        store: FileSystemStore = FileSystemStore(project_root, dry_run=config.dry_run)
        reflector: Optional[SchemaReflector] = (
            SqlAlchemyReflector(config.database_url) if config.database_url else None
        )
        policy: Optional[PolicyStubGenerator] = (
            ArtisanPolicyGenerator(project_root) if config.generate_policy else None
        )
        return cls(
            config,
            store,
            reflector=reflector,
            policy_generator=policy,
            project_root=str(project_root),
        )

    # -----------------------------------------------------------------
    # Public entry point
    # -----------------------------------------------------------------

    def generate(self, module_name: str, version: Optional[str] = None) -> GenerationReport:
        """
        Run the whole pipeline for *module_name* and return the report.

        *version* (or the configured default) is upper-cased, so ``v1`` and
        ``V1`` address the same controller namespace and route group.
        """
        start: float = time.perf_counter()
        version = (version or self._config.default_version).upper()
        report: GenerationReport = GenerationReport(
            module_name=module_name,
            version=version,
            project_root=self._project_root,
            dry_run=self._config.dry_run,
        )

        if not self._step_validate(module_name, version, report):
            return self._finalise_report(report, start)

        name: str = to_studly_case(module_name)
        report.module_name = name

        model: Optional[ModelMetadata] = self._step_resolve_model(name, report)
        if model is None:
            return self._finalise_report(report, start)
        report.table = model.table

        schema: TableSchema = self._step_load_schema(model.table, report)
        report.schema_origin = schema.origin

        rule_policy = self._config.rule_policy()
        for kind in (RequestKind.STORE, RequestKind.UPDATE):
            report.rules[kind.value] = infer_rules(schema, kind, rule_policy)
        if schema.is_empty:
            report.warn(
                f"No schema for table '{model.table}'; requests use fallback "
                f"'{rule_policy.fallback_field}' rules. Review them by hand."
            )

        plan: EnrichmentPlan = enrich(
            schema.column_names,
            model.relation_accessors,
            self._config.enrichment_policy(),
        )
        report.plan = plan

        owner_present: Optional[bool] = (
            None if schema.is_empty else self._config.owner_column in schema.columns
        )

        for kind in (RequestKind.STORE, RequestKind.UPDATE):
            self._run_step(
                f"{kind.value.capitalize()} Request",
                report,
                lambda k=kind: self._emit(
                    self._request_path(name, k),
                    self._templates.generate_request(model, k, report.rules[k.value]),
                ),
            )
        self._run_step(
            "Resource",
            report,
            lambda: self._emit(
                self._resource_path(name),
                self._templates.generate_resource(model, plan),
            ),
        )
        self._run_step("Policy", report, lambda: self._delegate_policy(name))
        self._run_step(
            "Controller",
            report,
            lambda: self._emit(
                self._controller_path(name, version),
                self._templates.generate_controller(model, version, plan, owner_present),
                make_parent=True,
            ),
        )
        self._run_step("Routes", report, lambda: self._merge_routes(name, version))

        return self._finalise_report(report, start)

    # -----------------------------------------------------------------
    # Paths
    # -----------------------------------------------------------------

    def _request_path(self, name: str, kind: RequestKind) -> str:
        return str(PurePosixPath(self._config.requests_dir) / f"{request_class_name(name, kind)}.php")

    def _resource_path(self, name: str) -> str:
        return str(PurePosixPath(self._config.resources_dir) / f"{resource_class_name(name)}.php")

    def _controller_path(self, name: str, version: str) -> str:
        return str(
            PurePosixPath(self._config.controllers_dir)
            / version
            / f"{controller_class_name(name)}.php"
        )

    # -----------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------

    def _step_validate(self, module_name: str, version: str, report: GenerationReport) -> bool:
        with Timer("validation") as t:
            result: ValidationResult = validate_request(module_name, version, self._config)

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)
        for warning in result.warnings:
            logger.warning("  ⚠ %s", warning)

        if result.has_errors:
            for err in result.errors:
                logger.error("  ✗ %s", err)
            report.aborted = True
            report.step_metrics.append(GenerationStepMetric(
                step_name="Validate",
                status=StepStatus.FAILED,
                elapsed_seconds=t.elapsed,
                detail=f"{len(result.errors)} error(s)",
            ))
            return False

        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate",
            status=StepStatus.WARNING if result.warnings else StepStatus.CREATED,
            elapsed_seconds=t.elapsed,
            detail=f"{len(result.warnings)} warning(s)" if result.warnings else "all checks passed",
        ))
        return True

    def _step_resolve_model(self, name: str, report: GenerationReport) -> Optional[ModelMetadata]:
        with Timer("resolve_model") as t:
            try:
                model: ModelMetadata = self._models.describe(name)
            except UnknownModelError as exc:
                logger.error("%s", exc)
                report.errors.append(str(exc))
                report.aborted = True
                report.model_missing = True
                report.step_metrics.append(GenerationStepMetric(
                    step_name="Resolve Model",
                    status=StepStatus.FAILED,
                    elapsed_seconds=t.elapsed,
                    detail="model not found",
                ))
                return None

        report.step_metrics.append(GenerationStepMetric(
            step_name="Resolve Model",
            status=StepStatus.CREATED,
            elapsed_seconds=t.elapsed,
            detail=f"table '{model.table}', {len(model.relation_accessors)} relation(s)",
            path=model.source_path,
        ))
        return model

    def _step_load_schema(self, table: str, report: GenerationReport) -> TableSchema:
        """Live reflection first when configured, then migrations."""
        with Timer("load_schema") as t:
            schema: Optional[TableSchema] = None
            if self._reflector is not None:
                try:
                    schema = self._reflector.load_table(table)
                except SchemaUnavailableError as exc:
                    report.warn(f"Live schema unavailable ({exc}); reading migrations instead.")
            if schema is None:
                schema = self._schema_source.load_table(table)

        if schema.is_empty:
            status: StepStatus = StepStatus.WARNING
            detail: str = f"no schema found for '{table}'"
        else:
            status = StepStatus.CREATED
            detail = f"{len(schema.columns)} column(s) from {schema.origin.value}"
        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Schema",
            status=status,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        return schema

    def _run_step(
        self,
        step_name: str,
        report: GenerationReport,
        action: Callable[[], GenerationStepMetric],
    ) -> None:
        """Run one emission step, isolating any failure to that step."""
        with Timer(step_name) as t:
            try:
                metric: GenerationStepMetric = action()
            except Exception as exc:
                message: str = f"{step_name}: {type(exc).__name__}: {exc}"
                logger.error("%s", message, exc_info=True)
                report.errors.append(message)
                metric = GenerationStepMetric(status=StepStatus.FAILED, detail=str(exc))

        metric.step_name = step_name
        metric.elapsed_seconds = t.elapsed
        if metric.status == StepStatus.CREATED and metric.path:
            report.created_paths.append(metric.path)
        elif metric.status == StepStatus.SKIPPED and metric.path:
            report.skipped_paths.append(metric.path)
        if metric.status == StepStatus.WARNING or (
            metric.status == StepStatus.SKIPPED and metric.path
        ):
            report.warn(f"{step_name}: {metric.detail}")
        report.step_metrics.append(metric)

    # -----------------------------------------------------------------
    # Step actions
    # -----------------------------------------------------------------

    def _emit(self, path: str, content: str, make_parent: bool = False) -> GenerationStepMetric:
        """Write one artifact under the skip-if-exists policy."""
        existed: bool = self._store.exists(path)
        if existed and not self._config.force:
            return GenerationStepMetric(
                status=StepStatus.SKIPPED,
                detail=f"{path} already exists (use --force to overwrite)",
                path=path,
            )
        if make_parent:
            parent: str = str(PurePosixPath(path).parent)
            if not self._store.is_dir(parent):
                self._store.make_dirs(parent)
        self._store.write(path, content)
        logger.info("%s %s", "Overwrote" if existed else "Created", path)
        return GenerationStepMetric(
            status=StepStatus.CREATED,
            detail=("overwritten " if existed else "") + path,
            path=path,
        )

    def _delegate_policy(self, name: str) -> GenerationStepMetric:
        if not self._config.generate_policy:
            return GenerationStepMetric(status=StepStatus.SKIPPED, detail="disabled")
        if self._config.dry_run:
            return GenerationStepMetric(status=StepStatus.SKIPPED, detail="dry run")
        if self._policy is None:
            return GenerationStepMetric(
                status=StepStatus.WARNING, detail="no policy generator configured"
            )
        try:
            message: str = self._policy.generate(name)
        except PolicyDelegateError as exc:
            return GenerationStepMetric(status=StepStatus.WARNING, detail=str(exc))
        return GenerationStepMetric(status=StepStatus.CREATED, detail=message)

    def _merge_routes(self, name: str, version: str) -> GenerationStepMetric:
        path: str = self._config.routes_file
        decl: RouteDeclaration = RouteDeclaration(
            version=version,
            resource_slug=model_to_resource_slug(name),
            controller_reference=self._templates.controller_reference(name, version),
        )
        current: str = self._store.read(path) if self._store.exists(path) else ""
        result: MergeResult = merge_route(current, decl, self._config.route_middleware)
        if not result.changed:
            return GenerationStepMetric(
                status=StepStatus.SKIPPED,
                detail=f"'{decl.resource_slug}' already registered for {decl.prefix}",
            )
        self._store.write(path, result.text)
        return GenerationStepMetric(
            status=StepStatus.CREATED,
            detail=f"{result.outcome.value} '{decl.resource_slug}' in {path}",
            path=path,
        )

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: GenerationReport, start: float) -> GenerationReport:
        report.total_elapsed_seconds = time.perf_counter() - start
        if report.success:
            logger.info(
                "Module %s generated: %d created, %d skipped in %.3fs.",
                report.module_name,
                len(report.created_paths),
                len(report.skipped_paths),
                report.total_elapsed_seconds,
            )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CONFIG_FILE_NAMES",
    "StepStatus",
    "GenerationStepMetric",
    "GenerationReport",
    "load_config_file",
    "discover_config_file",
    "load_config",
    "ModuleGenerator",
]

logger.debug("apiscaffold.generator loaded.")
