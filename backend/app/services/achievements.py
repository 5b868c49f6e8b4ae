from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.attempt import AttemptStatus, PracticeTestAttempt, QuestionAttempt, QuizAttempt
from app.models.gamification import Achievement, Badge, UserAchievement
from app.models.user import User
from app.services.rewards import level_for_xp, xp_to_next_level
from app.services.xp_ledger import achievement_source, record_xp


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementStats:
    attempts: int
    questions_answered: int
    correct_answers: int


@dataclass(frozen=True)
class AchievementRule:
    key: str
    name: str
    description: str
    criteria: str
    xp_reward: int
    check: Callable[[AchievementStats], bool]


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule(
        key="first_quiz",
        name="First Quiz Completed",
        description="Complete your very first quiz attempt.",
        criteria="Complete at least 1 attempt.",
        xp_reward=15,
        check=lambda s: s.attempts >= 1,
    ),
    AchievementRule(
        key="quiz_enthusiast",
        name="Quiz Enthusiast",
        description="Complete 10 quizzes or practice tests.",
        criteria="Complete at least 10 attempts.",
        xp_reward=25,
        check=lambda s: s.attempts >= 10,
    ),
    AchievementRule(
        key="accuracy_ace",
        name="Accuracy Ace",
        description="Maintain 80% accuracy over at least 5 correct answers.",
        criteria="5 correct answers with at least 80% accuracy.",
        xp_reward=40,
        check=lambda s: (
            s.questions_answered > 0
            and s.correct_answers >= 5
            and s.correct_answers / s.questions_answered >= 0.8
        ),
    ),
)


@dataclass
class RewardOutcome:
    xp_total: int
    level: int
    level_up: bool
    xp_to_next_level: int
    streak_days: int
    new_achievements: list[dict] = field(default_factory=list)
    new_badge: dict | None = None

    def as_dict(self) -> dict:
        return {
            "xp_total": self.xp_total,
            "level": self.level,
            "level_up": self.level_up,
            "xp_to_next_level": self.xp_to_next_level,
            "streak_days": self.streak_days,
            "new_achievements": list(self.new_achievements),
            "new_badge": self.new_badge,
        }


def achievement_stats(db: Session, user_id: uuid.UUID) -> AchievementStats:
    attempts = 0
    for model in (QuizAttempt, PracticeTestAttempt):
        attempts += int(
            db.scalar(
                select(func.count(model.id)).where(model.user_id == user_id, model.status == AttemptStatus.completed)
            )
            or 0
        )

    answered = db.scalar(select(func.count(QuestionAttempt.id)).where(QuestionAttempt.user_id == user_id)) or 0
    correct = (
        db.scalar(
            select(func.count(QuestionAttempt.id)).where(
                QuestionAttempt.user_id == user_id,
                QuestionAttempt.is_correct == True,  # noqa: E712
            )
        )
        or 0
    )
    return AchievementStats(attempts=attempts, questions_answered=int(answered), correct_answers=int(correct))


def ensure_achievement(db: Session, rule: AchievementRule) -> Achievement:
    row = db.scalar(select(Achievement).where(Achievement.key == rule.key))
    if row is None:
        row = Achievement(key=rule.key)
        db.add(row)
    row.name = rule.name
    row.description = rule.description
    row.criteria = rule.criteria
    row.xp_reward = rule.xp_reward
    db.flush()
    return row


def badge_for_xp(db: Session, xp_total: int) -> Badge | None:
    """Current badge: highest threshold at or below the total. Badges are never owned."""

    return db.scalar(
        select(Badge).where(Badge.xp_required <= int(xp_total)).order_by(Badge.xp_required.desc()).limit(1)
    )


def owned_achievements(db: Session, user_id: uuid.UUID) -> list[UserAchievement]:
    return list(
        db.scalars(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at.asc())
        )
    )


def unlock_achievements(db: Session, user: User) -> list[Achievement]:
    """Award every rule that is newly satisfied. Ownership is permanent and paid out once."""

    stats = achievement_stats(db, user.id)
    if stats.attempts == 0:
        return []

    owned = {ua.achievement_id for ua in owned_achievements(db, user.id)}
    earned: list[Achievement] = []

    for rule in ACHIEVEMENT_RULES:
        achievement = ensure_achievement(db, rule)
        if achievement.id in owned:
            continue
        if not rule.check(stats):
            continue

        db.add(UserAchievement(user_id=user.id, achievement_id=achievement.id))
        record_xp(
            db,
            user=user,
            amount=achievement.xp_reward,
            source=achievement_source(rule.key),
            reason=f"Achievement unlocked: {achievement.name}",
            meta={"achievement_id": str(achievement.id)},
        )
        earned.append(achievement)
        log.info("achievement %s unlocked for user %s", rule.key, user.id)

    db.flush()
    return earned


def apply_rewards(db: Session, *, user: User, xp_before: int, level_before: int) -> RewardOutcome:
    """Run the achievement engine and compare badge/level against the pre-event snapshot."""

    previous_badge = badge_for_xp(db, max(0, xp_before))
    earned = unlock_achievements(db, user)

    xp_total = int(user.xp_total or 0)
    latest_badge = badge_for_xp(db, max(0, xp_total))
    new_badge = None
    if latest_badge is not None and (previous_badge is None or previous_badge.id != latest_badge.id):
        new_badge = {"id": str(latest_badge.id), "name": latest_badge.name, "xp_required": latest_badge.xp_required}

    level = level_for_xp(max(0, xp_total))
    return RewardOutcome(
        xp_total=xp_total,
        level=level,
        level_up=level > int(level_before or 1),
        xp_to_next_level=xp_to_next_level(xp_total),
        streak_days=int(user.streak_days or 0),
        new_achievements=[{"key": a.key, "name": a.name, "xp_reward": a.xp_reward} for a in earned],
        new_badge=new_badge,
    )
