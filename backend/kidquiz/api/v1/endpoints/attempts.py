"""Attempt endpoints: answering, hints, micro-learning, completion."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kidquiz.core.dependencies import get_current_user, get_db
from kidquiz.models.user import User
from kidquiz.schemas.attempt import (
    AnswerResult,
    AnswerSubmit,
    AttemptDetailOut,
    AttemptOut,
    DownloadRequest,
    HintOut,
    HintRequest,
    MicroLearningOut,
    MicroLearningRequest,
    QuestionAttemptOut,
)
from kidquiz.services import attempt_engine
from kidquiz.services.assistant import Assistant, get_assistant
from kidquiz.services.scoring import MasteryPolicy, ThresholdMasteryPolicy

router = APIRouter()


def get_mastery_policy() -> MasteryPolicy:
    """Dependency returning the mastery predicate used at completion."""
    return ThresholdMasteryPolicy.from_settings()


@router.get("/{attempt_id}", response_model=AttemptDetailOut)
async def get_attempt(
    attempt_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttemptDetailOut:
    attempt = attempt_engine.get_attempt(db, attempt_id, current_user)
    return AttemptDetailOut.model_validate(attempt)


@router.post("/{attempt_id}/answers", response_model=AnswerResult)
async def submit_answer(
    attempt_id: UUID,
    payload: AnswerSubmit,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    assistant: Assistant = Depends(get_assistant),
) -> AnswerResult:
    qa, result, question = await attempt_engine.submit_answer(
        db,
        attempt_id,
        current_user,
        question_id=payload.question_id,
        answer=payload.answer,
        time_taken_seconds=payload.time_taken_seconds,
        viewed_micro_learning=payload.viewed_micro_learning,
        assistant=assistant,
    )
    return AnswerResult(
        question_id=question.id,
        is_correct=result.is_correct,
        score=result.score,
        feedback=result.feedback,
        **attempt_engine.question_attempt_summary(qa, question),
    )


@router.post("/{attempt_id}/hints", response_model=HintOut)
async def reveal_hint(
    attempt_id: UUID,
    payload: HintRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    assistant: Assistant = Depends(get_assistant),
) -> HintOut:
    qa, hint, source = await attempt_engine.reveal_hint(
        db,
        attempt_id,
        current_user,
        question_id=payload.question_id,
        hint_index=payload.hint_index,
        student_answer=payload.student_answer,
        assistant=assistant,
    )
    return HintOut(
        question_id=payload.question_id,
        hint_index=payload.hint_index,
        hint=hint,
        hints_used=qa.hints_used,
        source=source,
    )


@router.post("/{attempt_id}/micro-learning", response_model=MicroLearningOut)
async def get_micro_learning(
    attempt_id: UUID,
    payload: MicroLearningRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    assistant: Assistant = Depends(get_assistant),
) -> MicroLearningOut:
    content, source = await attempt_engine.get_micro_learning(
        db,
        attempt_id,
        current_user,
        question_id=payload.question_id,
        student_question=payload.student_question,
        assistant=assistant,
    )
    return MicroLearningOut(question_id=payload.question_id, content=content, source=source)


@router.post("/{attempt_id}/downloads", response_model=QuestionAttemptOut)
async def track_download(
    attempt_id: UUID,
    payload: DownloadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> QuestionAttemptOut:
    qa = await attempt_engine.track_study_material_download(db, attempt_id, current_user, payload.question_id)
    return QuestionAttemptOut.model_validate(qa)


@router.post("/{attempt_id}/complete", response_model=AttemptDetailOut)
async def complete_attempt(
    attempt_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mastery_policy: MasteryPolicy = Depends(get_mastery_policy),
) -> AttemptDetailOut:
    attempt = await attempt_engine.complete_attempt(db, attempt_id, current_user, mastery_policy)
    return AttemptDetailOut.model_validate(attempt)


@router.post("/{attempt_id}/abandon", response_model=AttemptOut)
async def abandon_attempt(
    attempt_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttemptOut:
    attempt = await attempt_engine.abandon_attempt(db, attempt_id, current_user)
    return AttemptOut.model_validate(attempt)
