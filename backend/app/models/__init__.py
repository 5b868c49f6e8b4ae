from app.models.user import User, UserRole
from app.models.quiz import Difficulty, Question, QuestionType, Quiz, QuizQuestion, Topic
from app.models.practice_test import PracticeTest, PracticeTestQuestion
from app.models.attempt import AttemptStatus, PracticeTestAttempt, QuestionAttempt, QuizAttempt
from app.models.gamification import Achievement, Badge, TopicMastery, UserAchievement, XPTransaction
from app.models.audit import LearningEvent, LearningEventType

__all__ = [
    "User",
    "UserRole",
    "Difficulty",
    "Question",
    "QuestionType",
    "Quiz",
    "QuizQuestion",
    "Topic",
    "PracticeTest",
    "PracticeTestQuestion",
    "AttemptStatus",
    "PracticeTestAttempt",
    "QuestionAttempt",
    "QuizAttempt",
    "Achievement",
    "Badge",
    "TopicMastery",
    "UserAchievement",
    "XPTransaction",
    "LearningEvent",
    "LearningEventType",
]
