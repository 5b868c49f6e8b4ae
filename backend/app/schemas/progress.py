from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.attempt import BadgeOut, RewardsOut


class OwnedAchievement(BaseModel):
    key: str
    name: str
    description: str | None = None
    xp_reward: int
    unlocked_at: datetime | None = None


class ProgressSummaryResponse(BaseModel):
    user_id: str
    xp_total: int
    level: int
    xp_to_next_level: int
    streak_days: int
    last_activity_at: datetime | None = None
    badge: BadgeOut | None = None
    achievements: list[OwnedAchievement]


class TopicMasteryOut(BaseModel):
    topic_id: str
    topic_name: str | None = None
    total_attempts: int
    correct_attempts: int
    accuracy: int


class MasteryResponse(BaseModel):
    items: list[TopicMasteryOut]


class XPTransactionOut(BaseModel):
    id: str
    amount: int
    source: str
    reason: str | None = None
    created_at: datetime | None = None


class XPHistoryResponse(BaseModel):
    items: list[XPTransactionOut]


class XPGrantRequest(BaseModel):
    user_id: str
    amount: int = Field(gt=0, le=100000)
    reason: str | None = Field(default=None, max_length=255)


class XPGrantResponse(BaseModel):
    ok: bool = True
    transaction_id: str
    rewards: RewardsOut
