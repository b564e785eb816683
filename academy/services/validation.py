"""Activity submission validation and feedback.

Each activity type registers a validator and a feedback builder with the
decorators below.  Adding a type means adding two small functions; the
cascade never branches on type itself.

Types with no registered validator accept any non-empty object, so
content authored for a newer activity type is still submittable.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from academy.services.grading import percentage

Validator = Callable[[dict[str, Any], dict[str, Any]], bool]
FeedbackBuilder = Callable[[dict[str, Any], dict[str, Any]], str]

VALIDATORS: dict[str, Validator] = {}
FEEDBACK: dict[str, FeedbackBuilder] = {}

DEFAULT_FEEDBACK = "Your submission has been received. Great job!"


def register_validator(activity_type: str):
    """Decorator: register the response validator for an activity type."""

    def decorator(func):
        VALIDATORS[activity_type] = func
        return func

    return decorator


def register_feedback(activity_type: str):
    """Decorator: register the feedback builder for an activity type."""

    def decorator(func):
        FEEDBACK[activity_type] = func
        return func

    return decorator


def validate(activity_type: str, content: dict[str, Any], response: Any) -> bool:
    if not isinstance(response, dict):
        return False
    validator = VALIDATORS.get(activity_type)
    if validator is None:
        return bool(response)
    return validator(content or {}, response)


def feedback(activity_type: str, content: dict[str, Any], response: Any) -> str:
    builder = FEEDBACK.get(activity_type)
    if builder is None:
        return DEFAULT_FEEDBACK
    return builder(content or {}, response if isinstance(response, dict) else {})


# --- quiz ---


@register_validator("quiz")
def _validate_quiz(content: dict[str, Any], response: dict[str, Any]) -> bool:
    questions = content.get("questions")
    answers = response.get("answers")
    if not isinstance(questions, list) or not isinstance(answers, list):
        return False
    return len(answers) == len(questions)


@register_feedback("quiz")
def _quiz_feedback(content: dict[str, Any], response: dict[str, Any]) -> str:
    questions = content.get("questions")
    if not isinstance(questions, list):
        return "Unable to generate feedback: Invalid quiz content."

    answers = response.get("answers")
    if not isinstance(answers, list):
        answers = []

    correct_count = 0
    lines: list[str] = []
    for index, question in enumerate(questions):
        answer = answers[index] if index < len(answers) else None
        expected = question.get("correctAnswer")
        explanation = question.get("feedback") or question.get("explanation")

        if answer is not None and answer == expected:
            correct_count += 1
            line = f"Question {index + 1}: ✓ Correct!"
            if explanation:
                line += f" {explanation}"
        else:
            line = f"Question {index + 1}: ✗ Incorrect."
            if explanation:
                line += f" {explanation}"
            line += f' The correct answer is "{_option_text(question, expected)}".'
        lines.append(line)

    total = len(questions)
    summary = (
        f"You got {correct_count} out of {total} correct "
        f"({percentage(correct_count, total)}%)."
    )
    return "\n\n".join([summary, *lines])


def _option_text(question: dict[str, Any], expected: Any) -> Any:
    options = question.get("options")
    if (
        isinstance(options, list)
        and isinstance(expected, int)
        and not isinstance(expected, bool)
        and 0 <= expected < len(options)
    ):
        return options[expected]
    return expected


# --- exercise ---


@register_validator("exercise")
def _validate_exercise(content: dict[str, Any], response: dict[str, Any]) -> bool:
    answer = response.get("answer")
    return isinstance(answer, str) and len(answer.strip()) > 0


@register_feedback("exercise")
def _exercise_feedback(content: dict[str, Any], response: dict[str, Any]) -> str:
    return "Your exercise has been submitted successfully. Keep up the great work!"


# --- reflection ---


@register_validator("reflection")
def _validate_reflection(content: dict[str, Any], response: dict[str, Any]) -> bool:
    min_length = content.get("minLength") or 50
    reflection = response.get("reflection")
    return isinstance(reflection, str) and len(reflection.strip()) >= min_length


@register_feedback("reflection")
def _reflection_feedback(content: dict[str, Any], response: dict[str, Any]) -> str:
    return "Thank you for your thoughtful reflection. Your insights are valuable!"


# --- practical_task ---


@register_validator("practical_task")
def _validate_practical_task(
    content: dict[str, Any], response: dict[str, Any]
) -> bool:
    submission = response.get("submission")
    if not isinstance(submission, dict):
        return False
    required = content.get("requiredFields") or []
    return all(submission.get(name) for name in required)


@register_feedback("practical_task")
def _practical_task_feedback(
    content: dict[str, Any], response: dict[str, Any]
) -> str:
    return (
        "Your practical task has been submitted. "
        "Excellent work on completing this hands-on activity!"
    )
