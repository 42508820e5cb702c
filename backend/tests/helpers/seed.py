"""Test seed helpers for creating test data."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from kidquiz.core.security import create_access_token
from kidquiz.models.attempt import AttemptStatus, QuestionAttempt, TestAttempt
from kidquiz.models.quiz import Question, Test, TestStatus
from kidquiz.models.user import User, UserRole

DEFAULT_QUESTIONS = [
    ("What is the capital of France?", "Paris", ["It is a big city.", "The Eiffel Tower is there."], "Paris is the capital of France."),
    ("What colour is the sky on a sunny day?", "Blue", [], ""),
    ("How many legs does a cat have?", "4", ["Count them!"], "Cats walk on four legs."),
]


def create_test_user(
    db: Session,
    email: str | None = None,
    role: UserRole = UserRole.STUDENT,
    is_active: bool = True,
    **kwargs: Any,
) -> User:
    """Create a user with deterministic defaults."""
    if email is None:
        email = f"test_{role.value.lower()}_{uuid.uuid4().hex[:8]}@test.example.com"

    user = User(
        id=kwargs.pop("id", uuid.uuid4()),
        email=email.lower().strip(),
        role=role.value,
        is_active=is_active,
        full_name=kwargs.pop("full_name", f"Test {role.value}"),
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


def create_test_admin(db: Session, **kwargs: Any) -> User:
    return create_test_user(db, role=UserRole.ADMIN, **kwargs)


def create_test_teacher(db: Session, **kwargs: Any) -> User:
    return create_test_user(db, role=UserRole.TEACHER, **kwargs)


def create_test_student(db: Session, **kwargs: Any) -> User:
    return create_test_user(db, role=UserRole.STUDENT, grade=kwargs.pop("grade", "UKG"), **kwargs)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role)
    return {"Authorization": f"Bearer {token}"}


def create_quiz(
    db: Session,
    owner: User,
    status: TestStatus = TestStatus.ACTIVE,
    questions: list[tuple[str, str, list[str], str]] | None = None,
    title: str = "Fun Facts Quiz",
    duration: int = 10,
) -> Test:
    """
    Create a test with questions.

    Args:
        questions: (question_text, correct_answer, hints, micro_learning) tuples
    """
    items = DEFAULT_QUESTIONS if questions is None else questions
    test = Test(
        title=title,
        description="A short quiz used in tests.",
        scheduled_date=datetime.now(timezone.utc),
        duration=duration,
        status=status,
        created_by=owner.id,
    )
    test.questions = [
        Question(question_text=text, correct_answer=answer, hints=list(hints), micro_learning=micro, order=i)
        for i, (text, answer, hints, micro) in enumerate(items)
    ]
    test.question_count = len(test.questions)
    db.add(test)
    db.commit()
    db.refresh(test)
    return test


def create_attempt(
    db: Session,
    test: Test,
    student: User,
    status: AttemptStatus = AttemptStatus.COMPLETED,
    basic_score: int | None = None,
    started_at: datetime | None = None,
    completed_at: datetime | None = None,
    **kwargs: Any,
) -> TestAttempt:
    """Insert an attempt row directly (no grading flow)."""
    started = started_at or datetime.now(timezone.utc) - timedelta(minutes=5)
    if status == AttemptStatus.COMPLETED and completed_at is None:
        completed_at = started + timedelta(minutes=3)
    attempt = TestAttempt(
        test_id=test.id,
        student_id=student.id,
        status=status,
        started_at=started,
        completed_at=completed_at,
        total_questions=test.question_count,
        basic_score=basic_score,
        score=kwargs.pop("score", basic_score),
        ai_score=kwargs.pop("ai_score", basic_score),
        time_taken_seconds=kwargs.pop(
            "time_taken_seconds", 180 if status == AttemptStatus.COMPLETED else None
        ),
        **kwargs,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def add_question_attempt(db: Session, attempt: TestAttempt, question: Question, **kwargs: Any) -> QuestionAttempt:
    hint_sequence = kwargs.pop("hint_sequence", [])
    qa = QuestionAttempt(
        test_attempt_id=attempt.id,
        question_id=question.id,
        hint_sequence=hint_sequence,
        hints_used=len(hint_sequence),
        attempt_history=[],
        generated_hints=kwargs.pop("generated_hints", {}),
        **kwargs,
    )
    db.add(qa)
    db.commit()
    return qa
