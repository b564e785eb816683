from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from academy.main import app
from academy.models.course import (
    Activity,
    Course,
    ExamOption,
    ExamQuestion,
    FinalExam,
    FinalProject,
    Lesson,
)
from academy.repos import registry
from academy.repos.content_repo import InMemoryContentRepo, seed_sample_content
from academy.repos.credential_repo import (
    InMemoryAchievementRepo,
    InMemoryCertificateRepo,
)
from academy.repos.integration_repo import InMemoryIntegrationRepo
from academy.repos.progress_repo import InMemoryProgressRepo
from academy.repos.registry import Repositories
from academy.services import token_service

# Ensure repo root is on sys.path so `import academy` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# 2026-01-01T00:00:00Z
T0 = 1767225600


@pytest.fixture(autouse=True)
def reset_repositories() -> None:
    """Clear the in-memory singletons and re-seed the sample catalogue."""
    registry.content_repo.clear()
    seed_sample_content(registry.content_repo)
    registry.progress_repo.clear()
    registry.achievement_repo.clear()
    registry.certificate_repo.clear()
    registry.integration_repo.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(username: str = "test-user", roles: list[str] | None = None) -> dict:
    return {"Authorization": f"Bearer {mint_token(username, roles)}"}


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock pinned to ``now``; tests move it with ``advance``."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def fresh_repositories() -> Repositories:
    """An empty, isolated repository bundle (not the app singletons)."""
    return Repositories(
        content=InMemoryContentRepo(),
        progress=InMemoryProgressRepo(),
        achievements=InMemoryAchievementRepo(),
        certificates=InMemoryCertificateRepo(),
        integrations=InMemoryIntegrationRepo(),
    )


@pytest.fixture
def repos() -> Repositories:
    return fresh_repositories()


@dataclass
class BuiltCourse:
    course: Course
    lessons: list[Lesson] = field(default_factory=list)
    activities: dict[UUID, list[Activity]] = field(default_factory=dict)
    project: FinalProject | None = None
    exam: FinalExam | None = None

    def activities_of(self, lesson_number: int) -> list[Activity]:
        return self.activities[self.lessons[lesson_number - 1].id]


DEFAULT_QUESTIONS = (
    ExamQuestion(
        id="q1",
        text="Cursors only move forward.",
        type="true_false",
        points=50,
        order=1,
        options=(
            ExamOption(id="true", text="True", is_correct=True),
            ExamOption(id="false", text="False"),
        ),
    ),
    ExamQuestion(
        id="q2",
        text="Which unit unlocks after a lesson?",
        type="multiple_choice",
        points=50,
        order=2,
        options=(
            ExamOption(id="a", text="The next lesson", is_correct=True),
            ExamOption(id="b", text="Every lesson"),
        ),
    ),
)


def build_course(
    content: InMemoryContentRepo,
    course_number: int,
    *,
    lesson_count: int = 2,
    activity_count: int = 2,
    optional_numbers: tuple[int, ...] = (),
    questions: tuple[ExamQuestion, ...] = DEFAULT_QUESTIONS,
) -> BuiltCourse:
    """Author a course of exercise activities plus a final project and exam."""
    course = content.add_course(
        Course.new(course_number=course_number, title=f"Course {course_number}")
    )
    built = BuiltCourse(course=course)
    for lesson_number in range(1, lesson_count + 1):
        lesson = content.add_lesson(
            Lesson.new(
                course_id=course.id,
                lesson_number=lesson_number,
                title=f"Lesson {lesson_number}",
            )
        )
        built.lessons.append(lesson)
        built.activities[lesson.id] = [
            content.add_activity(
                Activity.new(
                    lesson_id=lesson.id,
                    activity_number=n,
                    type="exercise",
                    required=n not in optional_numbers,
                    title=f"Exercise {n}",
                )
            )
            for n in range(1, activity_count + 1)
        ]
    built.project = content.add_final_project(
        FinalProject.new(course_id=course.id, title="Capstone")
    )
    built.exam = content.add_final_exam(
        FinalExam.new(course_id=course.id, title="Final exam", questions=questions)
    )
    return built


EXERCISE_ANSWER = {"answer": "my answer"}


def seeded_course(course_number: int) -> BuiltCourse:
    """Look up a course of the seeded sample catalogue with its content."""
    content = registry.content_repo

    async def load() -> BuiltCourse:
        course = await content.get_course_by_number(course_number)
        assert course is not None
        built = BuiltCourse(course=course)
        for lesson in await content.list_lessons(course.id):
            built.lessons.append(lesson)
            built.activities[lesson.id] = await content.list_activities(lesson.id)
        built.project = await content.get_final_project_for_course(course.id)
        if course.final_exam_id is not None:
            built.exam = await content.get_final_exam(course.final_exam_id)
        return built

    return asyncio.run(load())


QUIZ_ANSWER = {"answers": [0]}
REFLECTION_ANSWER = {
    "reflection": "Working through each activity in order made the material stick."
}
