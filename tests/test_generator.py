"""
tests/test_generator.py
Integration tests for apiscaffold.generator (the ModuleGenerator pipeline).

Tests cover:
- Config loading from YAML / JSON files plus overrides
- A full generation run against a miniature Laravel project
- Re-run idempotency, --force, dry runs and policy delegation modes
- Unknown models, missing schemas and live-schema fallbacks
- Per-step failure isolation and the printed report
"""

from __future__ import annotations

import json
import pathlib
from typing import List, Optional

import pytest

from apiscaffold.generator import (
    GenerationReport,
    ModuleGenerator,
    StepStatus,
    discover_config_file,
    load_config,
)
from apiscaffold.models import (
    ColumnDefinition,
    EnrichmentPlan,
    ModelMetadata,
    ScaffoldConfig,
    SchemaOrigin,
    TableSchema,
)
from apiscaffold.reflection import SchemaUnavailableError
from apiscaffold.stores import FileSystemStore
from apiscaffold.templates import TemplateGenerator

from conftest import EXISTING_ROUTES, RecordingPolicyGenerator, write_project_file

STEP_NAMES: List[str] = [
    "Validate",
    "Resolve Model",
    "Load Schema",
    "Store Request",
    "Update Request",
    "Resource",
    "Policy",
    "Controller",
    "Routes",
]

STORE_REQUEST = "app/Http/Requests/StoreStudentRequest.php"
UPDATE_REQUEST = "app/Http/Requests/UpdateStudentRequest.php"
RESOURCE = "app/Http/Resources/StudentResource.php"
CONTROLLER = "app/Http/Controllers/Api/V1/StudentController.php"
ROUTES = "routes/api.php"


def _generator(
    root: pathlib.Path,
    config: Optional[ScaffoldConfig] = None,
    policy: Optional[RecordingPolicyGenerator] = None,
    **kwargs,
) -> ModuleGenerator:
    config = config or ScaffoldConfig()
    return ModuleGenerator(
        config,
        FileSystemStore(root, dry_run=config.dry_run),
        policy_generator=policy if policy is not None else RecordingPolicyGenerator(),
        project_root=str(root),
        **kwargs,
    )


# ===========================================================================
# Test doubles
# ===========================================================================


class StaticReflector:
    def __init__(self, schema: TableSchema) -> None:
        self.schema = schema

    def load_table(self, table: str) -> TableSchema:
        return self.schema


class OfflineReflector:
    def load_table(self, table: str) -> TableSchema:
        raise SchemaUnavailableError("connection refused")


class BrokenResourceTemplates(TemplateGenerator):
    def generate_resource(self, model: ModelMetadata, plan: EnrichmentPlan) -> str:
        raise RuntimeError("template exploded")


# ===========================================================================
# Config loading
# ===========================================================================


class TestLoadConfig:
    """Tests for load_config() and config discovery."""

    def test_defaults_without_file(self, tmp_path: pathlib.Path) -> None:
        config = load_config(tmp_path)
        assert config == ScaffoldConfig()

    def test_discovered_yaml(
        self, laravel_project: pathlib.Path, config_yaml_path: pathlib.Path
    ) -> None:
        assert discover_config_file(laravel_project) == config_yaml_path
        config = load_config(laravel_project)
        assert config.default_version == "V2"
        assert config.generate_policy is False
        assert config.unique_fields["students"] == ["code", "name"]

    def test_overrides_win(
        self, laravel_project: pathlib.Path, config_yaml_path: pathlib.Path
    ) -> None:
        config = load_config(laravel_project, overrides={"default_version": "V3", "force": True})
        assert config.default_version == "V3"
        assert config.force is True

    def test_explicit_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "scaffold.json"
        path.write_text(json.dumps({"route_middleware": "auth:api"}), encoding="utf-8")
        assert load_config(tmp_path, path).route_middleware == "auth:api"

    def test_empty_yaml(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "apiscaffold.yaml").write_text("", encoding="utf-8")
        assert load_config(tmp_path) == ScaffoldConfig()

    def test_missing_explicit_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path, tmp_path / "missing.yaml")

    @pytest.mark.parametrize(
        "content",
        [
            "default_version: [unclosed",
            "- just\n- a list\n",
            "no_such_option: true\n",
            "force: maybe-not\n",
        ],
    )
    def test_invalid_files(self, tmp_path: pathlib.Path, content: str) -> None:
        (tmp_path / "apiscaffold.yaml").write_text(content, encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(tmp_path)


# ===========================================================================
# Full run
# ===========================================================================


class TestFullRun:
    """A first run against the fixture project."""

    @pytest.fixture()
    def report(
        self, laravel_project: pathlib.Path, policy_generator: RecordingPolicyGenerator
    ) -> GenerationReport:
        return _generator(laravel_project, policy=policy_generator).generate("Student", "V1")

    def test_success(self, report: GenerationReport) -> None:
        assert report.success, report.summary()
        assert [m.step_name for m in report.step_metrics] == STEP_NAMES
        assert report.table == "students"
        assert report.schema_origin == SchemaOrigin.MIGRATIONS

    def test_artifacts_written(
        self, report: GenerationReport, laravel_project: pathlib.Path
    ) -> None:
        for relative in (STORE_REQUEST, UPDATE_REQUEST, RESOURCE, CONTROLLER, ROUTES):
            assert (laravel_project / relative).is_file(), f"{relative} missing"
        assert sorted(report.created_paths) == sorted(
            [STORE_REQUEST, UPDATE_REQUEST, RESOURCE, CONTROLLER, ROUTES]
        )

    def test_request_contents(
        self, report: GenerationReport, laravel_project: pathlib.Path
    ) -> None:
        store = (laravel_project / STORE_REQUEST).read_text(encoding="utf-8")
        update = (laravel_project / UPDATE_REQUEST).read_text(encoding="utf-8")
        assert "'gender' => ['required', 'in:male,female']," in store
        assert "'code' => ['required', 'string', 'unique:students,code']," in store
        assert "'nickname' => ['sometimes', 'string']," in store
        assert "'user_id'" not in store
        assert "'gender' => ['sometimes', 'in:male,female']," in update

    def test_resource_and_controller_contents(
        self, report: GenerationReport, laravel_project: pathlib.Path
    ) -> None:
        resource = (laravel_project / RESOURCE).read_text(encoding="utf-8")
        controller = (laravel_project / CONTROLLER).read_text(encoding="utf-8")
        assert "'school_class_name' => $this->schoolClass?->name," in resource
        assert "'user_name' => $this->user?->name," in resource
        assert "'created_at'" not in resource
        assert "Student::with(['user', 'schoolClass', 'enrollments'])" in controller
        assert "$data['user_id'] = $request->user()->id;" in controller
        assert "Schema::hasColumn" not in controller

    def test_routes_file(self, report: GenerationReport, laravel_project: pathlib.Path) -> None:
        routes = (laravel_project / ROUTES).read_text(encoding="utf-8")
        assert routes.startswith("<?php")
        assert "Route::prefix('v1')->middleware('auth:sanctum')->group(function () {" in routes
        assert (
            "Route::apiResource('students', "
            "\\App\\Http\\Controllers\\Api\\V1\\StudentController::class);"
        ) in routes

    def test_policy_delegated(
        self, report: GenerationReport, policy_generator: RecordingPolicyGenerator
    ) -> None:
        assert policy_generator.calls == ["Student"]
        assert report.step("Policy").status == StepStatus.CREATED

    def test_report_rules_and_plan(self, report: GenerationReport) -> None:
        assert set(report.rules) == {"store", "update"}
        assert report.plan is not None
        assert "school_class_name" in report.plan.output_keys

    def test_summary(self, report: GenerationReport) -> None:
        summary = report.summary()
        assert "SUCCESS" in summary
        assert "Student (V1)" in summary
        for name in STEP_NAMES:
            assert name in summary


# ===========================================================================
# Re-runs
# ===========================================================================


class TestRerun:
    """Skip-if-exists and --force behaviour."""

    def test_second_run_skips_everything(self, laravel_project: pathlib.Path) -> None:
        _generator(laravel_project).generate("Student", "V1")
        routes_before = (laravel_project / ROUTES).read_bytes()
        controller = laravel_project / CONTROLLER
        controller.write_text("<?php // edited by hand\n", encoding="utf-8")

        report = _generator(laravel_project).generate("Student", "V1")

        assert report.success
        assert report.created_paths == []
        assert sorted(report.skipped_paths) == sorted(
            [STORE_REQUEST, UPDATE_REQUEST, RESOURCE, CONTROLLER]
        )
        assert report.step("Routes").status == StepStatus.SKIPPED
        assert (laravel_project / ROUTES).read_bytes() == routes_before
        assert controller.read_text(encoding="utf-8") == "<?php // edited by hand\n"
        assert any("already exists" in w for w in report.warnings)

    def test_force_overwrites(self, laravel_project: pathlib.Path) -> None:
        _generator(laravel_project).generate("Student", "V1")
        controller = laravel_project / CONTROLLER
        controller.write_text("<?php // edited by hand\n", encoding="utf-8")

        report = _generator(laravel_project, ScaffoldConfig(force=True)).generate("Student", "V1")

        assert report.success
        assert CONTROLLER in report.created_paths
        assert "class StudentController" in controller.read_text(encoding="utf-8")
        assert report.step("Routes").status == StepStatus.SKIPPED, (
            "--force never duplicates a route"
        )

    def test_existing_route_group_extended(self, laravel_project: pathlib.Path) -> None:
        write_project_file(laravel_project, ROUTES, EXISTING_ROUTES)
        _generator(laravel_project).generate("Student", "V1")
        routes = (laravel_project / ROUTES).read_text(encoding="utf-8")
        assert routes.count("Route::prefix('v1')") == 1
        assert routes.index("'courses'") < routes.index("'students'")

    def test_new_version_adds_group(self, laravel_project: pathlib.Path) -> None:
        _generator(laravel_project).generate("Student", "V1")
        report = _generator(laravel_project).generate("Student", "V2")
        routes = (laravel_project / ROUTES).read_text(encoding="utf-8")
        assert report.step("Controller").status == StepStatus.CREATED
        assert (laravel_project / "app/Http/Controllers/Api/V2/StudentController.php").is_file()
        assert routes.count("Route::apiResource('students'") == 2
        assert "Route::prefix('v2')" in routes

    def test_version_is_upper_cased(self, laravel_project: pathlib.Path) -> None:
        first = _generator(laravel_project).generate("Student", "v1")
        second = _generator(laravel_project).generate("Student", "V1")
        assert first.version == "V1"
        controllers = sorted(
            p.relative_to(laravel_project).as_posix()
            for p in (laravel_project / "app/Http/Controllers/Api").rglob("*.php")
        )
        assert controllers == [CONTROLLER], f"One controller expected, got {controllers}"
        assert second.step("Controller").status == StepStatus.SKIPPED
        routes = (laravel_project / ROUTES).read_text(encoding="utf-8")
        assert "\\Api\\V1\\StudentController::class" in routes
        assert routes.count("Route::apiResource('students'") == 1


# ===========================================================================
# Degraded paths
# ===========================================================================


class TestDegradedRuns:
    """Unknown models, missing schemas, dry runs and failures."""

    def test_unknown_model_aborts(
        self, laravel_project: pathlib.Path, policy_generator: RecordingPolicyGenerator
    ) -> None:
        report = _generator(laravel_project, policy=policy_generator).generate("Guardian", "V1")
        assert report.aborted and report.model_missing
        assert not report.success
        assert not (laravel_project / "app" / "Http").exists()
        assert not (laravel_project / ROUTES).exists()
        assert policy_generator.calls == []
        assert "make:model Guardian" in report.errors[0]

    def test_invalid_name_aborts(self, laravel_project: pathlib.Path) -> None:
        report = _generator(laravel_project).generate("123", "V1")
        assert report.aborted
        assert report.validation_errors
        assert report.step("Validate").status == StepStatus.FAILED
        assert report.step("Resolve Model") is None

    def test_lower_case_name_normalised(self, laravel_project: pathlib.Path) -> None:
        report = _generator(laravel_project).generate("student", "V1")
        assert report.success
        assert report.module_name == "Student"
        assert report.validation_warnings
        assert (laravel_project / STORE_REQUEST).is_file()

    def test_default_version_from_config(self, laravel_project: pathlib.Path) -> None:
        report = _generator(laravel_project, ScaffoldConfig(default_version="V4")).generate("Student")
        assert report.version == "V4"
        assert (laravel_project / "app/Http/Controllers/Api/V4/StudentController.php").is_file()

    def test_missing_schema_falls_back(self, laravel_project: pathlib.Path) -> None:
        report = _generator(laravel_project).generate("Course", "V1")
        assert report.success
        assert report.table == "school_courses"
        assert report.schema_origin == SchemaOrigin.NONE
        assert report.step("Load Schema").status == StepStatus.WARNING
        assert any("fallback" in w for w in report.warnings)

        request = (laravel_project / "app/Http/Requests/StoreCourseRequest.php").read_text(
            encoding="utf-8"
        )
        resource = (laravel_project / "app/Http/Resources/CourseResource.php").read_text(
            encoding="utf-8"
        )
        controller = (
            laravel_project / "app/Http/Controllers/Api/V1/CourseController.php"
        ).read_text(encoding="utf-8")
        assert "'name' => ['required', 'string']," in request
        assert "return parent::toArray($request);" in resource
        assert "Schema::hasColumn('school_courses', 'user_id')" in controller

    def test_dry_run_writes_nothing(
        self, laravel_project: pathlib.Path, policy_generator: RecordingPolicyGenerator
    ) -> None:
        config = ScaffoldConfig(dry_run=True)
        report = _generator(laravel_project, config, policy_generator).generate("Student", "V1")
        assert report.success
        assert report.dry_run
        assert not (laravel_project / "app" / "Http").exists()
        assert not (laravel_project / ROUTES).exists()
        assert report.step("Policy").status == StepStatus.SKIPPED
        assert policy_generator.calls == []
        assert "(dry run)" in report.summary()

    def test_policy_disabled(
        self, laravel_project: pathlib.Path, policy_generator: RecordingPolicyGenerator
    ) -> None:
        config = ScaffoldConfig(generate_policy=False)
        report = _generator(laravel_project, config, policy_generator).generate("Student", "V1")
        assert report.step("Policy").status == StepStatus.SKIPPED
        assert policy_generator.calls == []

    def test_policy_failure_is_a_warning(self, laravel_project: pathlib.Path) -> None:
        failing = RecordingPolicyGenerator(error="'php' is not on PATH.")
        report = _generator(laravel_project, policy=failing).generate("Student", "V1")
        assert report.success
        assert report.step("Policy").status == StepStatus.WARNING
        assert any("not on PATH" in w for w in report.warnings)

    def test_failed_step_is_isolated(self, laravel_project: pathlib.Path) -> None:
        report = _generator(
            laravel_project, templates=BrokenResourceTemplates()
        ).generate("Student", "V1")
        assert not report.success
        assert [m.step_name for m in report.failed_steps] == ["Resource"]
        assert report.step("Controller").status == StepStatus.CREATED
        assert report.step("Routes").status == StepStatus.CREATED
        assert not (laravel_project / RESOURCE).exists()
        assert any("template exploded" in e for e in report.errors)


# ===========================================================================
# Schema sources
# ===========================================================================


class TestSchemaSources:
    """Live reflection first, migrations second."""

    def test_reflected_schema_used(self, laravel_project: pathlib.Path) -> None:
        schema = TableSchema(
            table="students",
            columns={
                "title": ColumnDefinition(name="title", declared_type="string"),
            },
            origin=SchemaOrigin.DATABASE,
        )
        report = _generator(
            laravel_project, reflector=StaticReflector(schema)
        ).generate("Student", "V1")
        assert report.schema_origin == SchemaOrigin.DATABASE
        assert report.rules["store"] == {"title": ["required", "string"]}

    def test_offline_database_falls_back_to_migrations(
        self, laravel_project: pathlib.Path
    ) -> None:
        report = _generator(laravel_project, reflector=OfflineReflector()).generate("Student", "V1")
        assert report.success
        assert report.schema_origin == SchemaOrigin.MIGRATIONS
        assert any("Live schema unavailable" in w for w in report.warnings)

    def test_for_project_wiring(self, laravel_project: pathlib.Path) -> None:
        config = ScaffoldConfig(generate_policy=False)
        report = ModuleGenerator.for_project(laravel_project, config).generate("Student", "V1")
        assert report.success
        assert report.project_root == str(laravel_project)
        assert (laravel_project / CONTROLLER).is_file()
