"""Final exam grading.

multiple_choice / true_false questions are graded automatically against
the option flagged ``is_correct``.  A short_answer question cannot be
graded here: it earns 0 points and flags the whole result for manual
review, whether or not the learner typed anything.  A result flagged for
review is never passed, whatever the auto-graded percentage.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from academy.models.course import ExamQuestion
from academy.models.progress import GRADED, PENDING_REVIEW, GradingStatus

AUTO_GRADED_TYPES = frozenset({"multiple_choice", "true_false"})
MANUAL_TYPES = frozenset({"short_answer"})


def percentage(part: int, whole: int) -> int:
    """``round(part / whole * 100)`` with halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (2 * whole)


@dataclass(frozen=True, slots=True)
class GradeResult:
    score: int
    total_points: int
    requires_manual_grading: bool

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_points)

    @property
    def grading_status(self) -> GradingStatus:
        return PENDING_REVIEW if self.requires_manual_grading else GRADED

    def passed(self, passing_score: int) -> bool:
        return not self.requires_manual_grading and self.percentage >= passing_score


def grade(questions: Iterable[ExamQuestion], answers: Mapping[str, str]) -> GradeResult:
    score = 0
    total = 0
    manual = False

    for question in questions:
        total += question.points
        if question.type in MANUAL_TYPES:
            manual = True
            continue

        answer = answers.get(question.id)
        if not answer:
            continue

        if question.type in AUTO_GRADED_TYPES:
            correct = question.correct_option()
            if correct is not None and answer == correct.id:
                score += question.points

    return GradeResult(score=score, total_points=total, requires_manual_grading=manual)
