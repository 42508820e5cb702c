"""Attempt engine: starting, answering, hints, micro-learning and completion.

Every write to an attempt's question records happens after taking a row lock
on the TestAttempt (``SELECT ... FOR UPDATE``), so concurrent requests for
the same attempt are serialized while different attempts never wait on each
other. Delegate calls are made before the lock is taken.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kidquiz.common.clock import utcnow
from kidquiz.core.app_exceptions import (
    ConflictError,
    DelegateUnavailable,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from kidquiz.core.logging import get_logger
from kidquiz.models.attempt import AttemptStatus, QuestionAttempt, TestAttempt
from kidquiz.models.quiz import MAX_HINTS_PER_QUESTION, Question, Test, TestStatus
from kidquiz.models.user import User
from kidquiz.services.analytics_service import recompute_performance_metrics
from kidquiz.services.assistant import Assistant
from kidquiz.services.grading import GradeResult, grade_answer
from kidquiz.services.scoring import MasteryPolicy, QuestionOutcome, score_attempt

logger = get_logger(__name__)

FALLBACK_HINT = "Think about the question carefully! You can do it!"
FALLBACK_MICRO_LEARNING = "Learning is fun! Keep exploring this topic."


# ============================================================================
# Loading helpers
# ============================================================================


def get_attempt(db: Session, attempt_id: UUID, user: User) -> TestAttempt:
    """Load an attempt the user may read (its student, or an admin)."""
    attempt = db.get(TestAttempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt", attempt_id)
    if attempt.student_id != user.id and not user.is_admin:
        raise ForbiddenError("This attempt belongs to another student")
    return attempt


def _owned_attempt(db: Session, attempt_id: UUID, user: User) -> TestAttempt:
    attempt = db.get(TestAttempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt", attempt_id)
    if attempt.student_id != user.id:
        raise ForbiddenError("Only the student taking this attempt can change it")
    return attempt


def _lock_attempt(db: Session, attempt_id: UUID) -> TestAttempt:
    """Re-read the attempt under a row lock, refreshing any stale state."""
    return db.execute(
        select(TestAttempt)
        .where(TestAttempt.id == attempt_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def _ensure_in_progress(attempt: TestAttempt) -> None:
    if attempt.status.is_terminal:
        raise ConflictError(
            "ATTEMPT_NOT_IN_PROGRESS",
            "This attempt is already finished",
            {"status": attempt.status.value},
        )


def _get_question(db: Session, attempt: TestAttempt, question_id: UUID) -> Question:
    question = db.get(Question, question_id)
    if question is None or question.test_id != attempt.test_id:
        raise NotFoundError("Question", question_id)
    return question


def _find_question_attempt(db: Session, attempt_id: UUID, question_id: UUID) -> QuestionAttempt | None:
    return db.execute(
        select(QuestionAttempt).where(
            QuestionAttempt.test_attempt_id == attempt_id,
            QuestionAttempt.question_id == question_id,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _get_or_create_question_attempt(db: Session, attempt: TestAttempt, question_id: UUID) -> QuestionAttempt:
    qa = _find_question_attempt(db, attempt.id, question_id)
    if qa is None:
        qa = QuestionAttempt(
            test_attempt_id=attempt.id,
            question_id=question_id,
            attempts_count=0,
            hints_used=0,
            hint_sequence=[],
            attempt_history=[],
            generated_hints={},
            time_taken_seconds=0,
            is_correct=False,
            used_no_hints=True,
        )
        db.add(qa)
        db.flush()
    return qa


# ============================================================================
# Operations
# ============================================================================


async def start_attempt(db: Session, test_id: UUID, student: User) -> TestAttempt:
    """
    Start (or resume) the student's attempt at a test.

    An IN_PROGRESS attempt for the same test is returned as is. New attempts
    snapshot the test's question count.

    Raises:
        NotFoundError: Test missing
        ConflictError: Test is not ACTIVE
    """
    test = db.get(Test, test_id)
    if test is None:
        raise NotFoundError("Test", test_id)

    existing = db.execute(
        select(TestAttempt)
        .where(
            TestAttempt.test_id == test_id,
            TestAttempt.student_id == student.id,
            TestAttempt.status == AttemptStatus.IN_PROGRESS,
        )
        .order_by(TestAttempt.started_at.desc())
    ).scalars().first()
    if existing is not None:
        return existing

    if test.status != TestStatus.ACTIVE:
        raise ConflictError(
            "TEST_NOT_ACTIVE",
            "This test is not open for attempts",
            {"status": test.status.value},
        )

    attempt = TestAttempt(
        test_id=test.id,
        student_id=student.id,
        status=AttemptStatus.IN_PROGRESS,
        started_at=utcnow(),
        total_questions=test.question_count,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)

    logger.info(
        "Attempt started",
        extra={"attempt_id": str(attempt.id), "test_id": str(test.id), "student_id": str(student.id)},
    )
    return attempt


async def submit_answer(
    db: Session,
    attempt_id: UUID,
    student: User,
    question_id: UUID,
    answer: str,
    time_taken_seconds: int = 0,
    viewed_micro_learning: bool = False,
    assistant: Assistant | None = None,
) -> tuple[QuestionAttempt, GradeResult, Question]:
    """Grade one submission and record it on the question attempt."""
    attempt = _owned_attempt(db, attempt_id, student)
    _ensure_in_progress(attempt)
    question = _get_question(db, attempt, question_id)

    existing = _find_question_attempt(db, attempt.id, question.id)
    if existing is not None and existing.is_correct:
        raise ConflictError("QUESTION_ALREADY_ANSWERED", "This question was already answered correctly")

    result = await grade_answer(question.question_text, question.correct_answer, answer, assistant)

    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)
    qa = _get_or_create_question_attempt(db, attempt, question.id)
    if qa.is_correct:
        raise ConflictError("QUESTION_ALREADY_ANSWERED", "This question was already answered correctly")

    now = utcnow()
    qa.attempts_count += 1
    qa.student_answer = answer
    qa.is_correct = result.is_correct
    qa.ai_score = max(qa.ai_score or 0, result.score)
    qa.ai_feedback = result.feedback
    qa.time_taken_seconds += time_taken_seconds
    qa.viewed_micro_learning = qa.viewed_micro_learning or viewed_micro_learning
    qa.answered_on_first_attempt = result.is_correct and qa.attempts_count == 1
    qa.showed_persistence = result.is_correct and qa.attempts_count > 1
    qa.used_no_hints = qa.hints_used == 0
    qa.answered_at = now
    # Reassign so the JSON column is flagged dirty
    qa.attempt_history = [
        *(qa.attempt_history or []),
        {
            "answer": answer,
            "is_correct": result.is_correct,
            "score": result.score,
            "feedback": result.feedback,
            "source": result.source,
            "timestamp": now.isoformat(),
        },
    ]
    db.commit()
    db.refresh(qa)

    logger.info(
        "Answer graded",
        extra={
            "attempt_id": str(attempt.id),
            "question_id": str(question.id),
            "attempts_count": qa.attempts_count,
            "is_correct": result.is_correct,
            "grade_source": result.source,
        },
    )
    return qa, result, question


async def reveal_hint(
    db: Session,
    attempt_id: UUID,
    student: User,
    question_id: UUID,
    hint_index: int,
    student_answer: str | None = None,
    assistant: Assistant | None = None,
) -> tuple[QuestionAttempt, str, str]:
    """
    Reveal hint ``hint_index`` for a question.

    Hints are revealed in order; asking again for an already revealed index
    returns the same text without counting it twice. Authored hints come
    first, then delegate-generated ones (cached per question attempt).

    Returns:
        (question attempt, hint text, source) where source is
        "static", "generated" or "fallback"
    """
    if not 0 <= hint_index < MAX_HINTS_PER_QUESTION:
        raise ValidationError("Hint index out of range", field="hint_index")

    attempt = _owned_attempt(db, attempt_id, student)
    _ensure_in_progress(attempt)
    question = _get_question(db, attempt, question_id)

    existing = _find_question_attempt(db, attempt.id, question.id)
    revealed = list(existing.hint_sequence or []) if existing else []
    if hint_index not in revealed and hint_index != len(revealed):
        raise ValidationError(
            f"Hints are revealed in order; next hint is {len(revealed)}",
            field="hint_index",
        )

    static_hints = question.hints or []
    cached = (existing.generated_hints or {}) if existing else {}
    generated: str | None = None
    if hint_index < len(static_hints):
        text, source = static_hints[hint_index], "static"
    elif str(hint_index) in cached:
        text, source = cached[str(hint_index)], "generated"
    elif assistant is None:
        text, source = FALLBACK_HINT, "fallback"
    else:
        try:
            generated = await assistant.hint(question.question_text, question.correct_answer, student_answer)
            text, source = generated, "generated"
        except DelegateUnavailable:
            logger.warning(
                "Hint delegate unavailable, using fallback hint",
                extra={"attempt_id": str(attempt_id), "question_id": str(question_id)},
            )
            text, source = FALLBACK_HINT, "fallback"

    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)
    qa = _get_or_create_question_attempt(db, attempt, question.id)
    sequence = list(qa.hint_sequence or [])
    if hint_index not in sequence:
        if hint_index != len(sequence):
            raise ConflictError(
                "HINT_ORDER_CONFLICT",
                "Another request revealed a hint first; ask for the next one",
                {"next_hint_index": len(sequence)},
            )
        sequence.append(hint_index)
    if generated is not None:
        cached = qa.generated_hints or {}
        if str(hint_index) in cached:
            # A concurrent reveal cached its text first; keep one text per index
            text = cached[str(hint_index)]
        else:
            qa.generated_hints = {**cached, str(hint_index): generated}
    qa.hint_sequence = sequence
    qa.hints_used = len(sequence)
    qa.used_no_hints = qa.hints_used == 0
    db.commit()
    db.refresh(qa)
    return qa, text, source


async def get_micro_learning(
    db: Session,
    attempt_id: UUID,
    student: User,
    question_id: UUID,
    student_question: str | None = None,
    assistant: Assistant | None = None,
) -> tuple[str, str]:
    """Return the short explanation for a question and mark it viewed."""
    attempt = _owned_attempt(db, attempt_id, student)
    _ensure_in_progress(attempt)
    question = _get_question(db, attempt, question_id)
    existing = _find_question_attempt(db, attempt.id, question.id)

    generated: str | None = None
    if question.micro_learning and not student_question:
        content, source = question.micro_learning, "static"
    elif not student_question and existing is not None and existing.micro_learning_content:
        content, source = existing.micro_learning_content, "generated"
    elif assistant is None:
        content, source = FALLBACK_MICRO_LEARNING, "fallback"
    else:
        try:
            generated = await assistant.explain(
                question.question_text, question.correct_answer, student_question
            )
            content, source = generated, "generated"
        except DelegateUnavailable:
            logger.warning(
                "Explanation delegate unavailable, using fallback text",
                extra={"attempt_id": str(attempt_id), "question_id": str(question_id)},
            )
            content, source = FALLBACK_MICRO_LEARNING, "fallback"

    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)
    qa = _get_or_create_question_attempt(db, attempt, question.id)
    qa.viewed_micro_learning = True
    if generated is not None:
        qa.micro_learning_content = generated
    db.commit()
    return content, source


async def track_study_material_download(
    db: Session, attempt_id: UUID, student: User, question_id: UUID
) -> QuestionAttempt:
    attempt = _owned_attempt(db, attempt_id, student)
    _ensure_in_progress(attempt)
    question = _get_question(db, attempt, question_id)

    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)
    qa = _get_or_create_question_attempt(db, attempt, question.id)
    if not qa.study_material_downloaded:
        qa.study_material_downloaded = True
        qa.downloaded_at = utcnow()
    db.commit()
    db.refresh(qa)
    return qa


def _outcome(qa: QuestionAttempt) -> QuestionOutcome:
    return QuestionOutcome(
        question_id=str(qa.question_id),
        is_correct=bool(qa.is_correct),
        score=qa.ai_score,
        attempts_count=qa.attempts_count or 0,
        hints_used=qa.hints_used or 0,
        time_taken_seconds=qa.time_taken_seconds or 0,
        viewed_micro_learning=bool(qa.viewed_micro_learning),
        study_material_downloaded=bool(qa.study_material_downloaded),
    )


async def complete_attempt(
    db: Session,
    attempt_id: UUID,
    student: User,
    mastery_policy: MasteryPolicy | None = None,
    completed_at: datetime | None = None,
) -> TestAttempt:
    """
    Score and close an attempt.

    Unanswered questions get a QuestionAttempt with ``attempts_count = 0`` so
    the record set is complete. Nothing is committed until every metric is
    computed; on any failure the transaction is rolled back and the attempt
    stays IN_PROGRESS.
    """
    _owned_attempt(db, attempt_id, student)
    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)

    try:
        test = db.get(Test, attempt.test_id)
        answered = {
            qa.question_id: qa
            for qa in db.execute(
                select(QuestionAttempt).where(QuestionAttempt.test_attempt_id == attempt.id)
            ).scalars()
        }
        for question in test.questions:
            if question.id not in answered:
                answered[question.id] = _get_or_create_question_attempt(db, attempt, question.id)

        finished_at = completed_at or utcnow()
        result = score_attempt(
            [_outcome(qa) for qa in answered.values()],
            total_questions=attempt.total_questions,
            started_at=attempt.started_at,
            completed_at=finished_at,
            duration_minutes=test.duration,
            mastery_policy=mastery_policy,
        )

        attempt.status = AttemptStatus.COMPLETED
        attempt.completed_at = finished_at
        attempt.correct_answers = result.correct_answers
        attempt.basic_score = result.basic_score
        attempt.ai_score = result.ai_score
        attempt.score = result.ai_score
        attempt.hints_used = result.hints_used
        attempt.time_taken_seconds = result.time_taken_seconds
        attempt.needs_audit = result.needs_audit
        attempt.learning_engagement_rate = result.learning_engagement_rate
        attempt.first_attempt_success_rate = result.first_attempt_success_rate
        attempt.persistence_score = result.persistence_score
        attempt.hint_dependency_rate = result.hint_dependency_rate
        attempt.confidence_indicator = result.confidence_indicator
        attempt.average_time_per_question = result.average_time_per_question
        attempt.mastery_achieved = result.mastery_achieved
        attempt.questions_requiring_study = result.questions_requiring_study
        attempt.ai_score_breakdown = result.breakdown
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Attempt scoring failed", extra={"attempt_id": str(attempt_id)}, exc_info=True)
        raise

    db.refresh(attempt)
    logger.info(
        "Attempt completed",
        extra={
            "attempt_id": str(attempt.id),
            "basic_score": attempt.basic_score,
            "ai_score": attempt.ai_score,
            "mastery_achieved": attempt.mastery_achieved,
        },
    )

    _refresh_rollups(db, attempt)
    return attempt


def _refresh_rollups(db: Session, attempt: TestAttempt) -> None:
    """Rebuild advisory rollups; the completed attempt stands even if this fails."""
    try:
        recompute_performance_metrics(db, attempt.student_id, attempt.test_id)
        recompute_performance_metrics(db, attempt.student_id, None)
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Performance metrics refresh failed",
            extra={"attempt_id": str(attempt.id), "student_id": str(attempt.student_id)},
            exc_info=True,
        )


async def abandon_attempt(db: Session, attempt_id: UUID, student: User) -> TestAttempt:
    """Close an attempt without scoring it."""
    _owned_attempt(db, attempt_id, student)
    attempt = _lock_attempt(db, attempt_id)
    _ensure_in_progress(attempt)
    attempt.status = AttemptStatus.ABANDONED
    db.commit()
    db.refresh(attempt)
    logger.info("Attempt abandoned", extra={"attempt_id": str(attempt.id)})
    return attempt


def question_attempt_summary(qa: QuestionAttempt, question: Question) -> dict[str, Any]:
    return {
        "attempts_count": qa.attempts_count,
        "best_score": qa.ai_score or 0,
        "offer_study_material": (
            not qa.is_correct and qa.attempts_count >= question.max_attempts_before_study
        ),
    }
