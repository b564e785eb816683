"""Lesson activity listing, activity submission and video position."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from tests.conftest import QUIZ_ANSWER, REFLECTION_ANSWER, auth, seeded_course


def _enroll(client: TestClient, user: str = "test-user"):
    built = seeded_course(1)
    resp = client.post(f"/v1/courses/{built.course.id}/enroll", headers=auth(user))
    assert resp.status_code == 201
    return built


def test_activities_listing_shows_lock_state(client: TestClient) -> None:
    built = _enroll(client)
    lesson = built.lessons[0]

    resp = client.get(f"/v1/lessons/{lesson.id}/activities", headers=auth())

    assert resp.status_code == 200
    body = resp.json()
    assert [(a["activityNumber"], a["state"]) for a in body] == [
        (1, "unlocked"),
        (2, "locked"),
    ]
    assert body[1]["isLocked"] is True
    assert body[0]["type"] == "quiz"


def test_activities_of_locked_lesson_returns_403(client: TestClient) -> None:
    built = _enroll(client)
    resp = client.get(f"/v1/lessons/{built.lessons[1].id}/activities", headers=auth())
    assert resp.status_code == 403


def test_submit_quiz_returns_feedback_and_unlocks_next(client: TestClient) -> None:
    built = _enroll(client)
    quiz = built.activities_of(1)[0]

    resp = client.post(
        f"/v1/activities/{quiz.id}/submit",
        json={"response": QUIZ_ANSWER},
        headers=auth(),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["nextActivityUnlocked"] is True
    assert body["lessonCompleted"] is False
    assert body["feedback"].startswith("You got 1 out of 1 correct (100%).")

    listing = client.get(
        f"/v1/lessons/{built.lessons[0].id}/activities", headers=auth()
    ).json()
    assert [a["state"] for a in listing] == ["completed", "unlocked"]
    assert listing[0]["feedback"] == body["feedback"]


def test_completing_lesson_unlocks_next_lesson(client: TestClient) -> None:
    built = _enroll(client)
    quiz, reflection = built.activities_of(1)

    client.post(
        f"/v1/activities/{quiz.id}/submit", json={"response": QUIZ_ANSWER}, headers=auth()
    )
    resp = client.post(
        f"/v1/activities/{reflection.id}/submit",
        json={"response": REFLECTION_ANSWER},
        headers=auth(),
    )

    assert resp.status_code == 200
    assert resp.json()["lessonCompleted"] is True
    next_lesson = client.get(
        f"/v1/lessons/{built.lessons[1].id}/activities", headers=auth()
    )
    assert next_lesson.status_code == 200


def test_submit_locked_activity_returns_403(client: TestClient) -> None:
    built = _enroll(client)
    reflection = built.activities_of(1)[1]

    resp = client.post(
        f"/v1/activities/{reflection.id}/submit",
        json={"response": REFLECTION_ANSWER},
        headers=auth(),
    )

    assert resp.status_code == 403
    assert "Complete previous activities first" in resp.json()["detail"]


def test_submit_invalid_response_returns_422(client: TestClient) -> None:
    built = _enroll(client)
    quiz = built.activities_of(1)[0]

    resp = client.post(
        f"/v1/activities/{quiz.id}/submit",
        json={"response": {"answers": []}},
        headers=auth(),
    )

    assert resp.status_code == 422
    assert resp.json()["detail"].startswith("Invalid submission")


def test_submit_unknown_activity_returns_404(client: TestClient) -> None:
    resp = client.post(
        f"/v1/activities/{uuid.uuid4()}/submit",
        json={"response": QUIZ_ANSWER},
        headers=auth(),
    )
    assert resp.status_code == 404


def test_progress_is_per_user(client: TestClient) -> None:
    built = _enroll(client, "alice")
    _enroll(client, "bob")
    quiz = built.activities_of(1)[0]
    client.post(
        f"/v1/activities/{quiz.id}/submit",
        json={"response": QUIZ_ANSWER},
        headers=auth("alice"),
    )

    bob_view = client.get(
        f"/v1/lessons/{built.lessons[0].id}/activities", headers=auth("bob")
    ).json()
    assert [a["state"] for a in bob_view] == ["unlocked", "locked"]


def test_video_position_round_trip(client: TestClient) -> None:
    built = _enroll(client)
    lesson = built.lessons[0]

    resp = client.put(
        f"/v1/lessons/{lesson.id}/video-position",
        json={"position": 95},
        headers=auth(),
    )

    assert resp.status_code == 200
    assert resp.json() == {"lessonId": str(lesson.id), "videoPosition": 95}


def test_video_position_on_locked_lesson_returns_403(client: TestClient) -> None:
    built = _enroll(client)
    resp = client.put(
        f"/v1/lessons/{built.lessons[1].id}/video-position",
        json={"position": 5},
        headers=auth(),
    )
    assert resp.status_code == 403
