from app.routers import admin, attempts, health, practice_tests, progress, quizzes

__all__ = [
    "admin",
    "attempts",
    "health",
    "practice_tests",
    "progress",
    "quizzes",
]
