from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AttemptStartResponse(BaseModel):
    attempt_id: str
    status: str


class QuestionResponseIn(BaseModel):
    question_id: uuid.UUID
    selected_option: str | None = None
    selected_options: list[str] | None = None


class AttemptSubmitRequest(BaseModel):
    attempt_id: uuid.UUID
    responses: list[QuestionResponseIn] = []
    duration_seconds: int | None = Field(default=None, ge=0)
    time_spent_seconds: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] | None = None


class QuestionAttemptOut(BaseModel):
    question_attempt_id: str
    question_id: str
    order_index: int
    prompt: str | None = None
    question_type: str | None = None
    options: Any = None
    selected_option: str | None = None
    selected_options: list[str] | None = None
    is_correct: bool
    score: int


class AttemptOut(BaseModel):
    attempt_id: str
    kind: str
    assessment_id: str
    user_id: str
    status: str
    score: int
    total_questions: int
    correct_count: int
    incorrect_count: int
    xp_awarded: int
    duration_seconds: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    xp_transaction_id: str | None = None
    time_limit_exceeded: bool = False
    questions: list[QuestionAttemptOut] = []


class AchievementEarned(BaseModel):
    key: str
    name: str
    xp_reward: int


class BadgeOut(BaseModel):
    id: str
    name: str
    xp_required: int


class RewardsOut(BaseModel):
    xp_total: int
    level: int
    level_up: bool
    xp_to_next_level: int
    streak_days: int
    new_achievements: list[AchievementEarned] = []
    new_badge: BadgeOut | None = None


class AttemptSubmitResponse(BaseModel):
    ok: bool = True
    data: AttemptOut
    message: str | None = None
    rewards: RewardsOut | None = None


class RecentAttemptsResponse(BaseModel):
    quiz_attempts: list[AttemptOut]
    practice_test_attempts: list[AttemptOut]
