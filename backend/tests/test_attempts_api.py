import uuid

from sqlalchemy import func, select

from app.models.attempt import QuestionAttempt
from app.models.audit import LearningEvent, LearningEventType
from app.models.gamification import TopicMastery, UserAchievement, XPTransaction
from app.models.quiz import Difficulty
from app.models.user import User


def _question_ids(assessment) -> list[str]:
    return [str(link.question_id) for link in assessment.questions]


def _start(client, headers, path: str) -> str:
    r = client.post(f"{path}/start", headers=headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "in_progress"
    return body["attempt_id"]


def _answers(ids: list[str], correct: int) -> list[dict]:
    return [{"question_id": qid, "selected_option": "A" if i < correct else "B"} for i, qid in enumerate(ids)]


def test_start_requires_auth(client, make_quiz):
    quiz = make_quiz()
    r = client.post(f"/quizzes/{quiz.id}/start")
    assert r.status_code == 401
    assert r.json()["ok"] is False


def test_start_unknown_quiz_is_not_found(client, auth_headers):
    r = client.post(f"/quizzes/{uuid.uuid4()}/start", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_start_inactive_quiz_is_not_found(client, db, auth_headers, make_quiz):
    quiz = make_quiz()
    quiz.is_active = False
    db.commit()
    r = client.post(f"/quizzes/{quiz.id}/start", headers=auth_headers)
    assert r.status_code == 404


def test_start_invalid_id_is_bad_request(client, auth_headers):
    r = client.post("/quizzes/not-a-uuid/start", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error_code"] == "invalid_id"


def test_all_correct_easy_quiz_scores_100_and_awards_5_xp(client, db, user, auth_headers, make_quiz, notification_queue):
    quiz = make_quiz(4, difficulty=Difficulty.easy)
    ids = _question_ids(quiz)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 4), "duration_seconds": 42},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["message"] is None

    data = body["data"]
    assert data["status"] == "completed"
    assert data["score"] == 100
    assert data["correct_count"] == 4
    assert data["incorrect_count"] == 0
    assert data["xp_awarded"] == 5
    assert data["duration_seconds"] == 42
    assert data["xp_transaction_id"]
    assert [q["question_id"] for q in data["questions"]] == ids

    rewards = body["rewards"]
    # 5 for the quiz + 15 for the first-attempt achievement
    assert rewards["xp_total"] == 20
    assert rewards["streak_days"] == 1
    assert [a["key"] for a in rewards["new_achievements"]] == ["first_quiz"]

    db.expire_all()
    assert db.get(type(user), user.id).xp_total == 20
    assert len(notification_queue.jobs) == 1
    _, args, _ = notification_queue.jobs[0]
    assert args[0]["attempt_id"] == attempt_id


def test_half_correct_quiz_rounds_xp_and_updates_mastery(client, db, user, auth_headers, make_quiz, make_topic):
    topic = make_topic()
    quiz = make_quiz(4, difficulty=Difficulty.easy, topic=topic)
    ids = _question_ids(quiz)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 2)},
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["score"] == 50
    assert data["xp_awarded"] == 3

    db.expire_all()
    mastery = db.scalar(select(TopicMastery).where(TopicMastery.user_id == user.id, TopicMastery.topic_id == topic.id))
    assert mastery.total_attempts == 4
    assert mastery.correct_attempts == 2
    assert mastery.accuracy == 50


def test_unanswered_questions_count_as_incorrect(client, auth_headers, make_quiz):
    quiz = make_quiz(3)
    ids = _question_ids(quiz)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": [{"question_id": ids[0], "selected_option": "a"}]},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total_questions"] == 3
    assert data["correct_count"] == 1
    assert data["score"] == 33
    assert [q["is_correct"] for q in data["questions"]] == [True, False, False]


def test_practice_test_awards_fixed_reward(client, auth_headers, make_practice_test):
    pt = make_practice_test(2, xp_reward=50, time_limit_seconds=600)
    ids = _question_ids(pt)
    attempt_id = _start(client, auth_headers, f"/practice-tests/{pt.id}")

    r = client.post(
        f"/practice-tests/{pt.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 1), "time_spent_seconds": 300},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["data"]["xp_awarded"] == 50
    assert body["data"]["score"] == 50
    assert body["data"]["kind"] == "practice_test"
    assert body["message"] is None


def test_practice_test_past_time_limit_is_forfeited(client, db, user, auth_headers, make_practice_test):
    pt = make_practice_test(2, xp_reward=50, time_limit_seconds=600)
    ids = _question_ids(pt)
    attempt_id = _start(client, auth_headers, f"/practice-tests/{pt.id}")

    r = client.post(
        f"/practice-tests/{pt.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 2), "time_spent_seconds": 700},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Time limit exceeded"
    assert body["rewards"] is None
    data = body["data"]
    assert data["score"] == 0
    assert data["xp_awarded"] == 0
    assert data["correct_count"] == 0
    assert data["time_limit_exceeded"] is True
    assert data["xp_transaction_id"] is None
    assert all(q["is_correct"] is False for q in data["questions"])

    db.expire_all()
    assert db.scalar(select(func.count(XPTransaction.id)).where(XPTransaction.user_id == user.id)) == 0


def test_forfeit_leaves_mastery_streak_and_achievements_untouched(
    client, db, make_user, headers_for, make_topic, make_practice_test
):
    topic = make_topic("Geometry")
    learner = make_user(streak_days=3)
    headers = headers_for(learner)
    pt = make_practice_test(2, xp_reward=50, topic=topic, time_limit_seconds=600)
    ids = _question_ids(pt)
    attempt_id = _start(client, headers, f"/practice-tests/{pt.id}")

    r = client.post(
        f"/practice-tests/{pt.id}/submit",
        headers=headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 2), "time_spent_seconds": 700},
    )
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Time limit exceeded"

    db.expire_all()
    assert db.scalar(select(func.count(TopicMastery.id)).where(TopicMastery.user_id == learner.id)) == 0
    assert db.scalar(select(func.count(UserAchievement.id)).where(UserAchievement.user_id == learner.id)) == 0
    stored = db.get(User, learner.id)
    assert stored.streak_days == 3
    assert stored.last_activity_at is None


def test_practice_test_duration_minutes_is_the_fallback_limit(client, auth_headers, make_practice_test):
    pt = make_practice_test(1, xp_reward=10, duration_minutes=1)
    ids = _question_ids(pt)
    attempt_id = _start(client, auth_headers, f"/practice-tests/{pt.id}")

    r = client.post(
        f"/practice-tests/{pt.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 1), "duration_seconds": 61},
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Time limit exceeded"


def test_question_outside_snapshot_is_rejected_with_ids(client, auth_headers, make_quiz, make_question):
    quiz = make_quiz(2)
    stray = make_question()
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": [{"question_id": str(stray.id), "selected_option": "A"}]},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "validation_error"
    assert body["question_ids"] == [str(stray.id)]

    # the attempt stays open
    r = client.get(f"/quizzes/attempts/{attempt_id}", headers=auth_headers)
    assert r.json()["status"] == "in_progress"


def test_empty_responses_are_rejected(client, auth_headers, make_quiz):
    quiz = make_quiz(2)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(f"/quizzes/{quiz.id}/submit", headers=auth_headers, json={"attempt_id": attempt_id, "responses": []})
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"


def test_attempt_of_another_quiz_is_bad_request(client, auth_headers, make_quiz):
    quiz = make_quiz(1)
    other = make_quiz(1)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    r = client.post(
        f"/quizzes/{other.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(_question_ids(quiz), 1)},
    )
    assert r.status_code == 400
    assert r.json()["error_code"] == "conflict"


def test_other_users_attempt_is_not_found(client, auth_headers, headers_for, make_user, make_quiz):
    quiz = make_quiz(1)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")
    intruder = headers_for(make_user())

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=intruder,
        json={"attempt_id": attempt_id, "responses": _answers(_question_ids(quiz), 1)},
    )
    assert r.status_code == 404

    r = client.get(f"/quizzes/attempts/{attempt_id}", headers=intruder)
    assert r.status_code == 404


def test_snapshot_is_frozen_at_start(client, db, auth_headers, make_quiz, make_question):
    from app.models.quiz import QuizQuestion

    quiz = make_quiz(2)
    ids = _question_ids(quiz)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")

    added = make_question()
    db.add(QuizQuestion(quiz_id=quiz.id, question_id=added.id, order_index=5))
    db.commit()

    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(ids, 2)},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total_questions"] == 2
    assert data["score"] == 100


def test_start_and_submit_write_audit_events(client, db, user, auth_headers, make_quiz):
    quiz = make_quiz(1)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")
    client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(_question_ids(quiz), 1)},
    )

    db.expire_all()
    types = set(
        db.scalars(
            select(LearningEvent.type).where(
                LearningEvent.user_id == user.id, LearningEvent.ref_id == uuid.UUID(attempt_id)
            )
        )
    )
    assert LearningEventType.attempt_started in types
    assert LearningEventType.attempt_completed in types
    assert LearningEventType.achievement_unlocked in types


def test_notification_failure_does_not_fail_submit(client, db, auth_headers, make_quiz, monkeypatch):
    import app.services.notifications as notifications_module

    def _broken(name=None):
        raise ConnectionError("redis down")

    monkeypatch.setattr(notifications_module, "get_queue", _broken)

    quiz = make_quiz(1)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")
    r = client.post(
        f"/quizzes/{quiz.id}/submit",
        headers=auth_headers,
        json={"attempt_id": attempt_id, "responses": _answers(_question_ids(quiz), 1)},
    )
    assert r.status_code == 200
    db.expire_all()
    assert db.scalar(select(func.count(QuestionAttempt.id)).where(QuestionAttempt.quiz_attempt_id == uuid.UUID(attempt_id))) == 1


def test_attempt_listing_and_lookup_by_type(client, auth_headers, make_quiz, make_practice_test):
    quiz = make_quiz(1)
    pt = make_practice_test(1)
    quiz_attempt = _start(client, auth_headers, f"/quizzes/{quiz.id}")
    pt_attempt = _start(client, auth_headers, f"/practice-tests/{pt.id}")

    r = client.get("/attempts?limit=10", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert [a["attempt_id"] for a in body["quiz_attempts"]] == [quiz_attempt]
    assert [a["attempt_id"] for a in body["practice_test_attempts"]] == [pt_attempt]

    r = client.get(f"/attempts/{pt_attempt}?type=practice", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["kind"] == "practice_test"

    r = client.get(f"/attempts/{pt_attempt}?type=quiz", headers=auth_headers)
    assert r.status_code == 404

    r = client.get(f"/attempts/{pt_attempt}?type=essay", headers=auth_headers)
    assert r.status_code == 400


def test_submit_is_rate_limited(client, auth_headers, make_quiz):
    quiz = make_quiz(1)
    attempt_id = _start(client, auth_headers, f"/quizzes/{quiz.id}")
    payload = {"attempt_id": attempt_id, "responses": _answers(_question_ids(quiz), 1)}

    responses = [client.post(f"/quizzes/{quiz.id}/submit", headers=auth_headers, json=payload) for _ in range(21)]
    assert [r.status_code for r in responses[:20]] == [200] * 20
    assert responses[20].status_code == 429
    assert responses[20].json()["error_code"] == "rate_limited"
    assert int(responses[20].headers["Retry-After"]) > 0
