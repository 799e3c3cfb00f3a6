"""
tests/conftest.py
Shared fixtures for the apiscaffold test suite.

No external mocking libraries are used; real file I/O is performed inside a
miniature Laravel project built under pytest's tmp_path.
"""

from __future__ import annotations

import logging
import pathlib
import textwrap
from typing import Dict, Iterator, List, Optional

import pytest
import yaml

from apiscaffold.models import ScaffoldConfig
from apiscaffold.policy import PolicyDelegateError
from apiscaffold.stores import FileSystemStore


# ---------------------------------------------------------------------------
# PHP source fixtures
# ---------------------------------------------------------------------------

STUDENTS_MIGRATION: str = textwrap.dedent(
    """\
    <?php

    use Illuminate\\Database\\Migrations\\Migration;
    use Illuminate\\Database\\Schema\\Blueprint;
    use Illuminate\\Support\\Facades\\Schema;

    return new class extends Migration
    {
        public function up(): void
        {
            Schema::create('students', function (Blueprint $table) {
                $table->id();
                $table->foreignId('user_id')->constrained()->cascadeOnDelete();
                $table->string('name');
                $table->string('code')->unique();
                $table->string('nickname')->nullable();
                $table->enum('gender', ['male', 'female']);
                $table->foreignId('school_class_id')->nullable()->constrained();
                $table->decimal('gpa', 4, 2)->nullable();
                $table->boolean('is_active')->default(true);
                $table->date('birth_date');
                $table->json('meta')->nullable();
                $table->timestamps();
                $table->softDeletes();
            });
        }

        public function down(): void
        {
            Schema::dropIfExists('students');
        }
    };
    """
)

STUDENT_PROFILES_MIGRATION: str = textwrap.dedent(
    """\
    <?php

    return new class extends Migration
    {
        public function up(): void
        {
            Schema::create('student_profiles', function (Blueprint $table) {
                $table->id();
                $table->foreignId('student_id')->constrained();
                $table->text('bio');
            });
        }
    };
    """
)

STUDENT_MODEL: str = textwrap.dedent(
    """\
    <?php

    namespace App\\Models;

    use Illuminate\\Database\\Eloquent\\Factories\\HasFactory;
    use Illuminate\\Database\\Eloquent\\Model;
    use Illuminate\\Database\\Eloquent\\Relations\\BelongsTo;
    use Illuminate\\Database\\Eloquent\\Relations\\HasMany;

    class Student extends Model
    {
        use HasFactory;

        protected $fillable = ['name', 'code'];

        public function user(): BelongsTo
        {
            return $this->belongsTo(User::class);
        }

        public function schoolClass()
        {
            return $this->belongsTo(SchoolClass::class);
        }

        public function enrollments(): HasMany
        {
            return $this->hasMany(Enrollment::class);
        }

        public function scopeActive($query)
        {
            return $query->where('is_active', true);
        }

        protected function secret()
        {
            return $this->hasOne(Secret::class);
        }

        public static function booted()
        {
            static::creating(function ($student) {
                $student->code = strtoupper($student->code);
            });
        }

        public function getDisplayNameAttribute()
        {
            return strtoupper($this->name);
        }
    }
    """
)

COURSE_MODEL: str = textwrap.dedent(
    """\
    <?php

    namespace App\\Models;

    use Illuminate\\Database\\Eloquent\\Model;

    class Course extends Model
    {
        protected $table = 'school_courses';
    }
    """
)

EXISTING_ROUTES: str = textwrap.dedent(
    """\
    <?php

    use Illuminate\\Support\\Facades\\Route;

    Route::prefix('v1')->middleware('auth:sanctum')->group(function () {
        Route::apiResource('courses', \\App\\Http\\Controllers\\Api\\V1\\CourseController::class);
    });
    """
)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingPolicyGenerator:
    """Policy delegate that records calls instead of running artisan."""

    def __init__(self, error: Optional[str] = None) -> None:
        self.calls: List[str] = []
        self._error: Optional[str] = error

    def generate(self, model_name: str) -> str:
        self.calls.append(model_name)
        if self._error is not None:
            raise PolicyDelegateError(self._error)
        return f"Policy [app/Policies/{model_name}Policy.php] created successfully."


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


def write_project_file(root: pathlib.Path, relative: str, content: str) -> pathlib.Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def laravel_project(tmp_path: pathlib.Path) -> pathlib.Path:
    """A miniature Laravel project with one migrated model and one without a migration."""
    root = tmp_path / "school-api"
    files: Dict[str, str] = {
        "database/migrations/2024_01_01_000000_create_students_table.php": STUDENTS_MIGRATION,
        "database/migrations/2024_01_02_000000_create_student_profiles_table.php": (
            STUDENT_PROFILES_MIGRATION
        ),
        "app/Models/Student.php": STUDENT_MODEL,
        "app/Models/Course.php": COURSE_MODEL,
    }
    for relative, content in files.items():
        write_project_file(root, relative, content)
    return root


@pytest.fixture()
def store(laravel_project: pathlib.Path) -> FileSystemStore:
    return FileSystemStore(laravel_project)


@pytest.fixture()
def config() -> ScaffoldConfig:
    return ScaffoldConfig()


@pytest.fixture()
def policy_generator() -> RecordingPolicyGenerator:
    return RecordingPolicyGenerator()


@pytest.fixture()
def config_yaml_path(laravel_project: pathlib.Path) -> pathlib.Path:
    """An ``apiscaffold.yaml`` in the project root with a few overrides."""
    path = laravel_project / "apiscaffold.yaml"
    data = {
        "default_version": "V2",
        "unique_fields": {"*": ["code"], "students": ["code", "name"]},
        "generate_policy": False,
    }
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, default_flow_style=False)
    return path


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """cli_main installs its own handler; undo that so caplog keeps working."""
    yield
    package_logger = logging.getLogger("apiscaffold")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
