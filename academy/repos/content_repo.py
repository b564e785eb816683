from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.models.course import (
    Activity,
    Course,
    ExamOption,
    ExamQuestion,
    FinalExam,
    FinalProject,
    Lesson,
)


class ContentRepo(Protocol):
    """Read access to authored learning content.  The engine never writes here."""

    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def get_course_by_number(self, course_number: int) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def count_courses(self) -> int: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def get_lesson_by_number(
        self, course_id: UUID, lesson_number: int
    ) -> Lesson | None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def get_activity(self, activity_id: UUID) -> Activity | None: ...
    async def list_activities(self, lesson_id: UUID) -> list[Activity]: ...
    async def get_final_project(self, project_id: UUID) -> FinalProject | None: ...
    async def get_final_project_for_course(
        self, course_id: UUID
    ) -> FinalProject | None: ...
    async def get_final_exam(self, exam_id: UUID) -> FinalExam | None: ...


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._activities: dict[UUID, Activity] = {}
        self._projects: dict[UUID, FinalProject] = {}
        self._exams: dict[UUID, FinalExam] = {}

    # --- authoring helpers (seed data, tests) ---

    def add_course(self, course: Course) -> Course:
        self._courses[course.id] = course
        return course

    def add_lesson(self, lesson: Lesson) -> Lesson:
        self._lessons[lesson.id] = lesson
        return lesson

    def add_activity(self, activity: Activity) -> Activity:
        self._activities[activity.id] = activity
        return activity

    def add_final_project(self, project: FinalProject) -> FinalProject:
        self._projects[project.id] = project
        course = self._courses.get(project.course_id)
        if course is not None:
            self._courses[course.id] = replace(course, final_project_id=project.id)
        return project

    def add_final_exam(self, exam: FinalExam) -> FinalExam:
        self._exams[exam.id] = exam
        course = self._courses.get(exam.course_id)
        if course is not None:
            self._courses[course.id] = replace(course, final_exam_id=exam.id)
        return exam

    def clear(self) -> None:
        self._courses.clear()
        self._lessons.clear()
        self._activities.clear()
        self._projects.clear()
        self._exams.clear()

    # --- ContentRepo ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_course_by_number(self, course_number: int) -> Course | None:
        return next(
            (c for c in self._courses.values() if c.course_number == course_number),
            None,
        )

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.course_number)

    async def count_courses(self) -> int:
        return len(self._courses)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def get_lesson_by_number(
        self, course_id: UUID, lesson_number: int
    ) -> Lesson | None:
        return next(
            (
                lesson
                for lesson in self._lessons.values()
                if lesson.course_id == course_id
                and lesson.lesson_number == lesson_number
            ),
            None,
        )

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        lessons = [
            lesson for lesson in self._lessons.values() if lesson.course_id == course_id
        ]
        return sorted(lessons, key=lambda lesson: lesson.lesson_number)

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        return self._activities.get(activity_id)

    async def list_activities(self, lesson_id: UUID) -> list[Activity]:
        activities = [a for a in self._activities.values() if a.lesson_id == lesson_id]
        return sorted(activities, key=lambda a: a.activity_number)

    async def get_final_project(self, project_id: UUID) -> FinalProject | None:
        return self._projects.get(project_id)

    async def get_final_project_for_course(
        self, course_id: UUID
    ) -> FinalProject | None:
        return next(
            (p for p in self._projects.values() if p.course_id == course_id), None
        )

    async def get_final_exam(self, exam_id: UUID) -> FinalExam | None:
        return self._exams.get(exam_id)


def seed_sample_content(repo: InMemoryContentRepo) -> None:
    """Seed a small two-course catalogue for local development."""
    if repo._courses:
        return

    for number, title in ((1, "Foundations"), (2, "Going Further")):
        course = repo.add_course(Course.new(course_number=number, title=title))
        for lesson_number in (1, 2):
            lesson = repo.add_lesson(
                Lesson.new(
                    course_id=course.id,
                    lesson_number=lesson_number,
                    title=f"{title}: lesson {lesson_number}",
                )
            )
            repo.add_activity(
                Activity.new(
                    lesson_id=lesson.id,
                    activity_number=1,
                    type="quiz",
                    title="Check your understanding",
                    content={
                        "questions": [
                            {
                                "question": "Which unit unlocks next?",
                                "options": ["The next one", "All of them"],
                                "correctAnswer": 0,
                            }
                        ]
                    },
                )
            )
            repo.add_activity(
                Activity.new(
                    lesson_id=lesson.id,
                    activity_number=2,
                    type="reflection",
                    title="Reflect",
                    content={"minLength": 50},
                )
            )
        repo.add_final_project(
            FinalProject.new(course_id=course.id, title=f"{title} capstone")
        )
        repo.add_final_exam(
            FinalExam.new(
                course_id=course.id,
                title=f"{title} final exam",
                questions=(
                    ExamQuestion(
                        id="q1",
                        text="Progress cursors only move forward.",
                        type="true_false",
                        points=10,
                        order=1,
                        options=(
                            ExamOption(id="true", text="True", is_correct=True),
                            ExamOption(id="false", text="False"),
                        ),
                    ),
                ),
            )
        )
