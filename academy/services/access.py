"""Access evaluation.

Lock state is never stored.  Every decision here is a pure read over the
three watermarks:

  activity  N  unlocked  iff  N <= LessonProgress.current_activity (default 1)
  lesson    N  unlocked  iff  enrolled in its course and N <= current_lesson
  course    N  unlocked  iff  N <= max(unlocked_courses over ALL enrollments)

The course rule takes the maximum across enrollments rather than trusting
any single row, so an enrollment left stale by an interrupted propagation
can never lock a user out of a course they already earned.

Unknown ids evaluate to False rather than raising; callers that need to
distinguish "missing" from "locked" look the entity up themselves first.
"""

from __future__ import annotations

import logging
from uuid import UUID

from academy.models.progress import PROJECT_APPROVED
from academy.repos.content_repo import ContentRepo
from academy.repos.progress_repo import ProgressRepo

logger = logging.getLogger(__name__)


class AccessEvaluator:
    def __init__(self, content: ContentRepo, progress: ProgressRepo) -> None:
        self._content = content
        self._progress = progress

    async def effective_unlocked_courses(self, user_id: str) -> int:
        enrollments = await self._progress.list_enrollments(user_id)
        return max((e.unlocked_courses for e in enrollments), default=1)

    async def can_access_activity(self, user_id: str, activity_id: UUID) -> bool:
        activity = await self._content.get_activity(activity_id)
        if activity is None:
            return False
        progress = await self._progress.get_lesson_progress(
            user_id, activity.lesson_id
        )
        current = progress.current_activity if progress else 1
        return activity.activity_number <= current

    async def can_access_lesson(self, user_id: str, lesson_id: UUID) -> bool:
        lesson = await self._content.get_lesson(lesson_id)
        if lesson is None:
            return False
        enrollment = await self._progress.get_enrollment(user_id, lesson.course_id)
        if enrollment is None:
            return False
        return lesson.lesson_number <= enrollment.current_lesson

    async def can_access_course(self, user_id: str, course_id: UUID) -> bool:
        course = await self._content.get_course(course_id)
        if course is None:
            return False
        return course.course_number <= await self.effective_unlocked_courses(user_id)

    async def is_project_unlocked(self, user_id: str, course_id: UUID) -> bool:
        """Every lesson of the course is completed (and there is at least one)."""
        lessons = await self._content.list_lessons(course_id)
        if not lessons:
            return False
        for lesson in lessons:
            progress = await self._progress.get_lesson_progress(user_id, lesson.id)
            if progress is None or not progress.completed:
                return False
        return True

    async def is_exam_unlocked(self, user_id: str, course_id: UUID) -> bool:
        project = await self._content.get_final_project_for_course(course_id)
        if project is None:
            logger.debug("Course %s has no final project; exam stays locked", course_id)
            return False
        submission = await self._progress.get_project_submission(user_id, project.id)
        return submission is not None and submission.status == PROJECT_APPROVED
