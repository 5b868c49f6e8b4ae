import sys
from pathlib import Path
import uuid
import time

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from app.models import (  # noqa: F401
    Achievement,
    Badge,
    Difficulty,
    LearningEvent,
    PracticeTest,
    PracticeTestAttempt,
    PracticeTestQuestion,
    Question,
    QuestionAttempt,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    Topic,
    TopicMastery,
    User,
    UserAchievement,
    UserRole,
    XPTransaction,
)


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


class _MemoryQueue:
    """Records enqueued notification jobs instead of talking to Redis."""

    def __init__(self):
        self.jobs: list[tuple[object, tuple, dict]] = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))
        return None


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import app.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis

# Stub the notification queue.
_mem_queue = _MemoryQueue()
import app.services.notifications as notifications_module
notifications_module.get_queue = lambda name=None: _mem_queue


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def notification_queue():
    _mem_queue.jobs.clear()
    return _mem_queue


@pytest.fixture()
def make_user(db):
    def _make(role: UserRole = UserRole.learner, **fields) -> User:
        user = User(name=f"test_{uuid.uuid4().hex[:8]}", role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def user(make_user):
    return make_user()


def _headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers_for():
    return _headers_for


@pytest.fixture()
def auth_headers(user):
    return _headers_for(user)


@pytest.fixture()
def make_question(db):
    def _make(
        question_type: QuestionType = QuestionType.multiple_choice,
        *,
        topic: Topic | None = None,
        correct_option: str | None = "A",
        correct_answers: list[str] | None = None,
        prompt: str = "Test question",
    ) -> Question:
        q = Question(
            topic_id=topic.id if topic is not None else None,
            question_type=question_type,
            prompt=prompt,
            options=["A", "B", "C", "D"] if question_type == QuestionType.multiple_choice else None,
            correct_option=correct_option,
            correct_answers=correct_answers,
        )
        db.add(q)
        db.commit()
        db.refresh(q)
        return q

    return _make


@pytest.fixture()
def make_topic(db):
    def _make(name: str = "Algebra") -> Topic:
        t = Topic(name=name)
        db.add(t)
        db.commit()
        db.refresh(t)
        return t

    return _make


@pytest.fixture()
def make_quiz(db, make_question):
    def _make(
        n_questions: int = 2,
        *,
        difficulty: Difficulty = Difficulty.medium,
        topic: Topic | None = None,
        time_limit_seconds: int | None = None,
        questions: list[Question] | None = None,
    ) -> Quiz:
        qs = questions if questions is not None else [make_question(topic=topic) for _ in range(n_questions)]
        quiz = Quiz(
            topic_id=topic.id if topic is not None else None,
            title="Test quiz",
            difficulty=difficulty,
            time_limit_seconds=time_limit_seconds,
            is_active=True,
        )
        db.add(quiz)
        db.flush()
        for idx, q in enumerate(qs):
            db.add(QuizQuestion(quiz_id=quiz.id, question_id=q.id, order_index=idx))
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture()
def make_practice_test(db, make_question):
    def _make(
        n_questions: int = 2,
        *,
        xp_reward: int = 20,
        topic: Topic | None = None,
        time_limit_seconds: int | None = None,
        duration_minutes: int | None = None,
    ) -> PracticeTest:
        qs = [make_question(topic=topic) for _ in range(n_questions)]
        pt = PracticeTest(
            title="Test practice test",
            xp_reward=xp_reward,
            time_limit_seconds=time_limit_seconds,
            duration_minutes=duration_minutes,
            is_active=True,
        )
        db.add(pt)
        db.flush()
        for idx, q in enumerate(qs):
            db.add(PracticeTestQuestion(practice_test_id=pt.id, question_id=q.id, order_index=idx))
        db.commit()
        db.refresh(pt)
        return pt

    return _make