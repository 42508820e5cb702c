"""Database models."""

# Import all models here so metadata.create_all sees every table
from kidquiz.models.attempt import AttemptStatus, QuestionAttempt, TestAttempt
from kidquiz.models.performance import PerformanceMetrics
from kidquiz.models.question_bank import QuestionBank
from kidquiz.models.quiz import Question, Test, TestStatus
from kidquiz.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Test",
    "TestStatus",
    "Question",
    "TestAttempt",
    "QuestionAttempt",
    "AttemptStatus",
    "PerformanceMetrics",
    "QuestionBank",
]
