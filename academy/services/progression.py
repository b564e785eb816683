"""Progression and completion engine.

Drives a learner through the sequence activity → lesson → course:

  submit_activity   validate + record a submission, advance the activity
                    cursor, and complete the lesson when every required
                    activity is done (raising the lesson cursor)
  submit_final_exam grade, record, and complete the course on a pass
  complete_course   stamp completion, raise the user's course watermark on
                    every enrollment, then issue the certificate, notify,
                    and grant achievements

Cursor writes go through the repos' conditional ``advance_*`` / ``raise_*``
methods, so concurrent submissions can only move a cursor forward.

Side effects (achievements, certificates, webhooks) run through
``_best_effort``: each in its own savepoint, failures logged with a
traceback and never re-raised.  The learner's recorded progress is never
undone because a notification or a grant failed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

from academy.core.errors import (
    Conflict,
    Forbidden,
    InvalidSubmission,
    NotFound,
    PreconditionFailed,
)
from academy.core.metrics import (
    ACTIVITY_SUBMISSIONS,
    COURSES_COMPLETED,
    EXAM_SUBMISSIONS,
    LESSONS_COMPLETED,
)
from academy.models.course import Activity, Course, Lesson
from academy.models.progress import (
    GRADED,
    PROJECT_APPROVED,
    PROJECT_NEEDS_REVISION,
    PROJECT_PENDING,
    ActivitySubmission,
    Enrollment,
    FinalExamResult,
    FinalProjectSubmission,
    GradingStatus,
)
from academy.repos.errors import DuplicateKeyError
from academy.repos.registry import Repositories
from academy.services.access import AccessEvaluator
from academy.services.achievements import AchievementEvaluator
from academy.services.certificates import CertificateIssuer
from academy.services.clock import Clock, iso, now_ts
from academy.services.grading import grade
from academy.services.validation import feedback, validate
from academy.services.webhooks import NotificationDispatcher

logger = logging.getLogger(__name__)

ActivityState = Literal["locked", "unlocked", "completed"]


@dataclass(frozen=True, slots=True)
class ActivityOutcome:
    feedback: str
    next_activity_unlocked: bool
    lesson_completed: bool


@dataclass(frozen=True, slots=True)
class ExamOutcome:
    score: int
    passed: bool
    grading_status: GradingStatus


@dataclass(frozen=True, slots=True)
class CourseView:
    course: Course
    is_locked: bool
    is_enrolled: bool
    is_completed: bool


@dataclass(frozen=True, slots=True)
class ActivityView:
    activity: Activity
    state: ActivityState
    submission: ActivitySubmission | None = None


class ProgressionService:
    def __init__(
        self,
        repos: Repositories,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = now_ts,
    ) -> None:
        self._repos = repos
        self._content = repos.content
        self._progress = repos.progress
        self._dispatcher = dispatcher
        self._clock = clock
        self.access = AccessEvaluator(repos.content, repos.progress)
        self.achievements = AchievementEvaluator(
            repos.content, repos.progress, repos.achievements, dispatcher, clock
        )
        self.certificates = CertificateIssuer(repos.progress, repos.certificates, clock)

    # ------------------------------------------------------------------
    # Side-effect isolation
    # ------------------------------------------------------------------

    async def _best_effort(
        self,
        what: str,
        user_id: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        try:
            async with self._repos.savepoint():
                return await func(*args)
        except Exception:
            logger.exception("%s failed", what, extra={"user_id": user_id})
            return None

    async def _notify(self, user_id: str, event_type: str, payload: dict[str, Any]) -> None:
        if self._dispatcher is None:
            return
        await self._best_effort(
            f"{event_type} webhook",
            user_id,
            self._dispatcher.dispatch,
            user_id,
            event_type,
            payload,
        )

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    async def enroll(self, user_id: str, course_id: UUID) -> Enrollment:
        course = await self._content.get_course(course_id)
        if course is None or not course.published:
            raise NotFound("Course not found")
        if not await self.access.can_access_course(user_id, course_id):
            raise Forbidden("Complete the previous course to unlock this one")
        if await self._progress.get_enrollment(user_id, course_id) is not None:
            raise Conflict("Already enrolled in this course")

        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            enrolled_at=self._clock(),
            unlocked_courses=await self.access.effective_unlocked_courses(user_id),
        )
        try:
            await self._progress.add_enrollment(enrollment)
        except DuplicateKeyError:
            raise Conflict("Already enrolled in this course") from None

        logger.info(
            "Enrolled in course %d",
            course.course_number,
            extra={"user_id": user_id, "course_id": str(course_id)},
        )
        await self._notify(
            user_id,
            "course.enrolled",
            {
                "courseId": str(course.id),
                "courseNumber": course.course_number,
                "courseTitle": course.title,
                "enrolledAt": iso(enrollment.enrolled_at),
            },
        )
        await self._best_effort(
            "course_enrolled achievements",
            user_id,
            self.achievements.evaluate,
            user_id,
            "course_enrolled",
        )
        return enrollment

    async def register_user(self, user_id: str) -> Enrollment | None:
        """Enroll a newly registered user in course 1.  No-op if already enrolled."""
        course = await self._content.get_course_by_number(1)
        if course is None:
            logger.warning("No course 1 configured, skipping initial enrollment")
            return None

        existing = await self._progress.get_enrollment(user_id, course.id)
        if existing is not None:
            return existing

        enrollment = Enrollment(
            user_id=user_id,
            course_id=course.id,
            enrolled_at=self._clock(),
            unlocked_courses=await self.access.effective_unlocked_courses(user_id),
        )
        try:
            await self._progress.add_enrollment(enrollment)
        except DuplicateKeyError:
            return await self._progress.get_enrollment(user_id, course.id)

        await self._best_effort(
            "course_enrolled achievements",
            user_id,
            self.achievements.evaluate,
            user_id,
            "course_enrolled",
        )
        return enrollment

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def submit_activity(
        self, user_id: str, activity_id: UUID, response: Any
    ) -> ActivityOutcome:
        activity = await self._content.get_activity(activity_id)
        if activity is None:
            raise NotFound("Activity not found")
        if not await self.access.can_access_activity(user_id, activity_id):
            ACTIVITY_SUBMISSIONS.labels(result="forbidden").inc()
            raise Forbidden(
                "You do not have access to this activity. "
                "Complete previous activities first."
            )

        lesson = await self._content.get_lesson(activity.lesson_id)
        if lesson is None:
            raise NotFound("Lesson not found")
        required = [
            a for a in await self._content.list_activities(lesson.id) if a.required
        ]

        if not validate(activity.type, activity.content, response):
            ACTIVITY_SUBMISSIONS.labels(result="invalid").inc()
            raise InvalidSubmission(
                "Invalid submission. Please check your response and try again."
            )

        text = feedback(activity.type, activity.content, response)
        now = self._clock()
        await self._progress.upsert_submission(
            ActivitySubmission(
                user_id=user_id,
                activity_id=activity.id,
                response=response,
                submitted_at=now,
                completed=True,
                feedback=text,
            )
        )
        ACTIVITY_SUBMISSIONS.labels(result="accepted").inc()

        last_required = max((a.activity_number for a in required), default=0)
        if activity.activity_number < last_required:
            await self._progress.advance_current_activity(
                user_id, lesson.id, activity.activity_number + 1
            )
            return ActivityOutcome(
                feedback=text, next_activity_unlocked=True, lesson_completed=False
            )

        done = await self._progress.count_completed_submissions(
            user_id, [a.id for a in required]
        )
        if done < len(required):
            return ActivityOutcome(
                feedback=text, next_activity_unlocked=False, lesson_completed=False
            )

        transitioned = await self._progress.mark_lesson_completed(
            user_id, lesson.id, now, activity.activity_number
        )
        next_lesson = await self._content.get_lesson_by_number(
            lesson.course_id, lesson.lesson_number + 1
        )
        if next_lesson is not None:
            await self._progress.advance_current_lesson(
                user_id, lesson.course_id, next_lesson.lesson_number
            )

        if transitioned:
            LESSONS_COMPLETED.inc()
            logger.info(
                "Lesson %d completed",
                lesson.lesson_number,
                extra={"user_id": user_id, "course_id": str(lesson.course_id)},
            )
            await self._on_lesson_completed(user_id, lesson, now)

        return ActivityOutcome(
            feedback=text, next_activity_unlocked=False, lesson_completed=True
        )

    async def _on_lesson_completed(self, user_id: str, lesson: Lesson, now: int) -> None:
        await self._best_effort(
            "lesson_completed achievements",
            user_id,
            self.achievements.evaluate,
            user_id,
            "lesson_completed",
        )
        course = await self._content.get_course(lesson.course_id)
        await self._notify(
            user_id,
            "course.progress_updated",
            {
                "lessonId": str(lesson.id),
                "lessonNumber": lesson.lesson_number,
                "lessonTitle": lesson.title,
                "courseId": str(lesson.course_id),
                "courseNumber": course.course_number if course else None,
                "courseTitle": course.title if course else None,
                "completed": True,
                "completedAt": iso(now),
            },
        )

    async def update_video_position(
        self, user_id: str, lesson_id: UUID, position: int
    ) -> None:
        if await self._content.get_lesson(lesson_id) is None:
            raise NotFound("Lesson not found")
        if not await self.access.can_access_lesson(user_id, lesson_id):
            raise Forbidden("Lesson is locked")
        if position < 0:
            raise InvalidSubmission("Video position must be >= 0")
        await self._progress.set_video_position(user_id, lesson_id, position)

    # ------------------------------------------------------------------
    # Final project
    # ------------------------------------------------------------------

    async def submit_final_project(
        self, user_id: str, project_id: UUID, submission: dict[str, Any]
    ) -> FinalProjectSubmission:
        project = await self._content.get_final_project(project_id)
        if project is None:
            raise NotFound("Final project not found")
        if not await self.access.is_project_unlocked(user_id, project.course_id):
            raise PreconditionFailed(
                "Complete every lesson in the course before submitting the project"
            )
        if not submission:
            raise InvalidSubmission("Project submission is required")

        record = FinalProjectSubmission(
            user_id=user_id,
            project_id=project_id,
            submitted_at=self._clock(),
            submission=submission,
            status=PROJECT_PENDING,
            feedback=None,
        )
        await self._progress.upsert_project_submission(record)
        logger.info(
            "Final project submitted",
            extra={"user_id": user_id, "course_id": str(project.course_id)},
        )
        return record

    async def review_final_project(
        self,
        reviewer_id: str,
        user_id: str,
        project_id: UUID,
        *,
        approve: bool,
        feedback: str | None = None,
    ) -> FinalProjectSubmission:
        if await self._content.get_final_project(project_id) is None:
            raise NotFound("Final project not found")
        status = PROJECT_APPROVED if approve else PROJECT_NEEDS_REVISION
        updated = await self._progress.set_project_status(
            user_id, project_id, status, feedback
        )
        if updated is None:
            raise NotFound("No submission found for this project")
        logger.info(
            "Final project reviewed status=%s reviewer=%s",
            status,
            reviewer_id,
            extra={"user_id": user_id},
        )
        return updated

    # ------------------------------------------------------------------
    # Final exam
    # ------------------------------------------------------------------

    async def submit_final_exam(
        self, user_id: str, exam_id: UUID, answers: dict[str, str]
    ) -> ExamOutcome:
        exam = await self._content.get_final_exam(exam_id)
        if exam is None:
            raise NotFound("Final exam not found")
        if not await self.access.is_exam_unlocked(user_id, exam.course_id):
            raise PreconditionFailed(
                "Final project must be approved before taking the exam"
            )
        if not answers:
            raise InvalidSubmission("Exam answers are required")

        result = grade(exam.questions, answers)
        score = result.percentage
        passed = result.passed(exam.passing_score)
        status = result.grading_status

        await self._progress.upsert_exam_result(
            FinalExamResult(
                user_id=user_id,
                exam_id=exam.id,
                score=score,
                passed=passed,
                grading_status=status,
                answers=dict(answers),
                submitted_at=self._clock(),
            )
        )
        EXAM_SUBMISSIONS.labels(grading_status=status, passed=str(passed).lower()).inc()
        logger.info(
            "Final exam submitted score=%d passed=%s status=%s",
            score,
            passed,
            status,
            extra={"user_id": user_id, "course_id": str(exam.course_id)},
        )

        if status == GRADED:
            await self._best_effort(
                "exam_submitted achievements",
                user_id,
                self.achievements.evaluate,
                user_id,
                "exam_submitted",
            )
            if passed:
                await self.complete_course(user_id, exam.course_id)

        return ExamOutcome(score=score, passed=passed, grading_status=status)

    # ------------------------------------------------------------------
    # Course completion
    # ------------------------------------------------------------------

    async def complete_course(self, user_id: str, course_id: UUID) -> bool:
        """Mark the course completed.  Returns False if it already was."""
        course = await self._content.get_course(course_id)
        if course is None:
            raise NotFound("Course not found")

        if await self._progress.get_enrollment(user_id, course_id) is None:
            logger.warning(
                "Cannot complete course without an enrollment",
                extra={"user_id": user_id, "course_id": str(course_id)},
            )
            return False

        now = self._clock()
        if not await self._progress.mark_course_completed(user_id, course_id, now):
            return False

        raised = await self._progress.raise_unlocked_courses(
            user_id, course.course_number + 1
        )
        COURSES_COMPLETED.inc()
        logger.info(
            "Course %d completed, watermark raised on %d enrollment(s)",
            course.course_number,
            raised,
            extra={"user_id": user_id, "course_id": str(course_id)},
        )

        await self._best_effort(
            "Certificate issuance", user_id, self.certificates.issue, user_id, course_id
        )
        await self._notify(
            user_id,
            "course.completed",
            {
                "courseId": str(course.id),
                "courseNumber": course.course_number,
                "courseTitle": course.title,
                "completedAt": iso(now),
            },
        )
        await self._best_effort(
            "course_completed achievements",
            user_id,
            self.achievements.evaluate,
            user_id,
            "course_completed",
        )
        return True

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def course_overview(self, user_id: str) -> list[CourseView]:
        watermark = await self.access.effective_unlocked_courses(user_id)
        enrollments = {
            e.course_id: e for e in await self._progress.list_enrollments(user_id)
        }
        views = []
        for course in await self._content.list_courses():
            if not course.published:
                continue
            enrollment = enrollments.get(course.id)
            views.append(
                CourseView(
                    course=course,
                    is_locked=course.course_number > watermark,
                    is_enrolled=enrollment is not None,
                    is_completed=enrollment is not None and enrollment.is_completed,
                )
            )
        return views

    async def lesson_activities(
        self, user_id: str, lesson_id: UUID
    ) -> list[ActivityView]:
        if await self._content.get_lesson(lesson_id) is None:
            raise NotFound("Lesson not found")
        if not await self.access.can_access_lesson(user_id, lesson_id):
            raise Forbidden("Lesson is locked")

        activities = await self._content.list_activities(lesson_id)
        progress = await self._progress.get_lesson_progress(user_id, lesson_id)
        current = progress.current_activity if progress else 1
        submissions = {
            s.activity_id: s
            for s in await self._progress.list_submissions(
                user_id, [a.id for a in activities]
            )
        }

        views = []
        for activity in activities:
            submission = submissions.get(activity.id)
            state: ActivityState
            if submission is not None and submission.completed:
                state = "completed"
            elif activity.activity_number > current:
                state = "locked"
            else:
                state = "unlocked"
            views.append(ActivityView(activity=activity, state=state, submission=submission))
        return views
