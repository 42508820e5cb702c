"""Attempt scoring: folds per-question outcomes into attempt-level metrics.

Everything here is pure; the attempt engine loads rows, calls
``score_attempt`` and writes the result back in one transaction.
"""

import dataclasses
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from kidquiz.common.clock import as_utc
from kidquiz.core.config import settings
from kidquiz.core.logging import get_logger

logger = get_logger(__name__)

# Advisory penalties for the score breakdown
HINT_PENALTY = 10
MICRO_LEARNING_PENALTY = 20
STUDY_MATERIAL_PENALTY = 20
TIME_OVERRUN_BONUS_PENALTY = 10  # added once the overrun passes 5 minutes
TIME_OVERRUN_GRACE_MINUTES = 5
STUDY_THRESHOLD = 60
CONFIDENT_ANSWER_SECONDS = 30


@dataclass(frozen=True)
class QuestionOutcome:
    """What the scorer needs from one QuestionAttempt."""

    question_id: str
    is_correct: bool
    score: int | None = None  # delegate-assisted score; None means binary
    attempts_count: int = 0
    hints_used: int = 0
    time_taken_seconds: int = 0
    viewed_micro_learning: bool = False
    study_material_downloaded: bool = False

    @property
    def effective_score(self) -> int:
        if self.score is None:
            return 100 if self.is_correct else 0
        return max(0, min(100, self.score))


@dataclass(frozen=True)
class AttemptScore:
    total_questions: int
    correct_answers: int
    basic_score: int
    ai_score: int
    hints_used: int
    time_taken_seconds: int
    needs_audit: bool
    learning_engagement_rate: float
    first_attempt_success_rate: float
    persistence_score: float
    hint_dependency_rate: float
    confidence_indicator: float
    average_time_per_question: float
    questions_requiring_study: int
    breakdown: dict[str, Any] = field(default_factory=dict)
    mastery_achieved: bool = False


MasteryPolicy = Callable[[AttemptScore], bool]


@dataclass(frozen=True)
class ThresholdMasteryPolicy:
    """Mastery when the assisted score, first-try rate and hint reliance all clear their bars."""

    min_score: int = 90
    min_first_attempt_rate: float = 80
    max_hint_dependency: float = 100

    @classmethod
    def from_settings(cls) -> "ThresholdMasteryPolicy":
        return cls(
            min_score=settings.MASTERY_MIN_SCORE,
            min_first_attempt_rate=settings.MASTERY_MIN_FIRST_ATTEMPT_RATE,
            max_hint_dependency=settings.MASTERY_MAX_HINT_DEPENDENCY,
        )

    def __call__(self, score: AttemptScore) -> bool:
        if score.total_questions == 0:
            return False
        return (
            score.ai_score >= self.min_score
            and score.first_attempt_success_rate >= self.min_first_attempt_rate
            and score.hint_dependency_rate <= self.max_hint_dependency
        )


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(numerator: int, denominator: int) -> float:
    """Bounded percentage; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    return round(max(0.0, min(100.0, numerator / denominator * 100)), 2)


def elapsed_seconds(started_at: datetime, completed_at: datetime) -> tuple[int, bool]:
    """Whole seconds between the two instants, clamped at 0; flag is True when clamped."""
    delta = (as_utc(completed_at) - as_utc(started_at)).total_seconds()
    if delta < 0:
        return 0, True
    return int(delta), False


def time_overrun_penalty(time_taken_seconds: int, duration_minutes: int | None) -> int:
    if not duration_minutes:
        return 0
    extra_minutes = int(max(0.0, time_taken_seconds / 60 - duration_minutes))
    if extra_minutes > TIME_OVERRUN_GRACE_MINUTES:
        return extra_minutes + TIME_OVERRUN_BONUS_PENALTY
    return extra_minutes


def build_breakdown(
    outcomes: Sequence[QuestionOutcome], time_taken_seconds: int, duration_minutes: int | None
) -> dict[str, Any]:
    questions = []
    for o in outcomes:
        hint_penalty = o.hints_used * HINT_PENALTY
        micro_penalty = MICRO_LEARNING_PENALTY if o.viewed_micro_learning else 0
        study_penalty = STUDY_MATERIAL_PENALTY if o.study_material_downloaded else 0
        questions.append(
            {
                "question_id": o.question_id,
                "raw_score": o.effective_score,
                "hint_penalty": hint_penalty,
                "micro_learning_penalty": micro_penalty,
                "study_material_penalty": study_penalty,
                "final_score": max(0, o.effective_score - hint_penalty - micro_penalty - study_penalty),
            }
        )

    time_penalty = time_overrun_penalty(time_taken_seconds, duration_minutes)
    mean_final = sum(q["final_score"] for q in questions) / len(questions) if questions else 0
    return {
        "questions": questions,
        "time_penalty": time_penalty,
        "penalized_score": max(0, round_half_up(mean_final) - time_penalty),
    }


def score_attempt(
    outcomes: Sequence[QuestionOutcome],
    total_questions: int,
    started_at: datetime,
    completed_at: datetime,
    duration_minutes: int | None = None,
    mastery_policy: MasteryPolicy | None = None,
) -> AttemptScore:
    """
    Compute every attempt-level metric.

    Args:
        outcomes: One entry per question of the test (unanswered ones included)
        total_questions: Question count snapshotted when the attempt started
        started_at: Attempt start
        completed_at: Completion instant
        duration_minutes: Test duration, only used for the advisory time penalty
        mastery_policy: Predicate deciding ``mastery_achieved``

    Returns:
        AttemptScore with all ratios bounded to [0, 100]
    """
    total = max(0, total_questions)
    correct = [o for o in outcomes if o.is_correct]
    correct_count = min(len(correct), total)

    if total:
        basic_score = max(0, min(100, round_half_up(100 * correct_count / total)))
        ai_score = max(0, min(100, round_half_up(sum(o.effective_score for o in outcomes) / total)))
    else:
        basic_score = ai_score = 0

    time_taken, needs_audit = elapsed_seconds(started_at, completed_at)
    if needs_audit:
        logger.warning(
            "Attempt completed before it started; time clamped to 0",
            extra={"started_at": str(started_at), "completed_at": str(completed_at)},
        )

    engaged = sum(1 for o in outcomes if o.hints_used > 0 or o.viewed_micro_learning)
    first_try = sum(1 for o in correct if o.attempts_count == 1)
    retried = [o for o in outcomes if o.attempts_count > 1]
    if retried:
        persistence = percentage(sum(1 for o in retried if o.is_correct), len(retried))
    else:
        persistence = 100.0 if total else 0.0

    answered = [o for o in outcomes if o.attempts_count > 0]
    avg_time = (
        round(sum(o.time_taken_seconds for o in answered) / len(answered), 2) if answered else 0.0
    )

    breakdown = build_breakdown(outcomes, time_taken, duration_minutes)
    requiring_study = sum(1 for q in breakdown["questions"] if q["final_score"] < STUDY_THRESHOLD)

    result = AttemptScore(
        total_questions=total,
        correct_answers=correct_count,
        basic_score=basic_score,
        ai_score=ai_score,
        hints_used=sum(o.hints_used for o in outcomes),
        time_taken_seconds=time_taken,
        needs_audit=needs_audit,
        learning_engagement_rate=percentage(engaged, total),
        first_attempt_success_rate=percentage(first_try, total),
        persistence_score=persistence,
        hint_dependency_rate=percentage(sum(1 for o in correct if o.hints_used > 0), len(correct)) if total else 0.0,
        confidence_indicator=(
            percentage(
                sum(1 for o in correct if o.time_taken_seconds < CONFIDENT_ANSWER_SECONDS),
                len(correct),
            )
            if total
            else 0.0
        ),
        average_time_per_question=avg_time,
        questions_requiring_study=requiring_study,
        breakdown=breakdown,
    )

    policy = mastery_policy or ThresholdMasteryPolicy.from_settings()
    return dataclasses.replace(result, mastery_achieved=bool(policy(result)))
