"""Per-question grading: exact match first, then the grading delegate."""

from dataclasses import dataclass
from typing import Protocol

from kidquiz.core.app_exceptions import DelegateUnavailable
from kidquiz.core.logging import get_logger

logger = get_logger(__name__)

# Rubric boundary: a delegate score at or above this is a correct answer
PASSING_RUBRIC_SCORE = 80

CORRECT_FEEDBACK = "Correct! Great job!"
EMPTY_FEEDBACK = "Type your answer and try again!"
INCORRECT_FEEDBACK = "Incorrect. Have another look and try again!"


class GradingDelegate(Protocol):
    async def grade(self, question_text: str, correct_answer: str, student_answer: str): ...


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    score: int
    feedback: str
    source: str  # "exact", "delegate" or "baseline"


def normalize_answer(value: str | None) -> str:
    return (value or "").strip().casefold()


def is_exact_match(expected_answer: str, student_answer: str | None) -> bool:
    given = normalize_answer(student_answer)
    return bool(given) and given == normalize_answer(expected_answer)


def apply_rubric(score: float) -> tuple[int, bool]:
    """Clamp a delegate score to 0..100 and derive correctness from it."""
    clamped = max(0, min(100, int(round(score))))
    return clamped, clamped >= PASSING_RUBRIC_SCORE


def baseline_grade(expected_answer: str, student_answer: str | None) -> GradeResult:
    if is_exact_match(expected_answer, student_answer):
        return GradeResult(is_correct=True, score=100, feedback=CORRECT_FEEDBACK, source="exact")
    feedback = EMPTY_FEEDBACK if not normalize_answer(student_answer) else INCORRECT_FEEDBACK
    return GradeResult(is_correct=False, score=0, feedback=feedback, source="baseline")


async def grade_answer(
    question_text: str,
    expected_answer: str,
    student_answer: str | None,
    delegate: GradingDelegate | None = None,
) -> GradeResult:
    """
    Grade one answer.

    Exact (trimmed, case-folded) matches never reach the delegate, nor do
    blank answers. Whatever correctness flag the delegate reports, the
    result's ``is_correct`` is derived from its score. If the delegate is
    unavailable the baseline result stands.
    """
    baseline = baseline_grade(expected_answer, student_answer)
    if baseline.is_correct or not normalize_answer(student_answer) or delegate is None:
        return baseline

    try:
        verdict = await delegate.grade(question_text, expected_answer, student_answer.strip())
    except DelegateUnavailable as e:
        logger.warning(
            "Grading delegate unavailable, using exact-match result",
            extra={"reason": (e.details or {}).get("reason")},
        )
        return baseline

    score, is_correct = apply_rubric(verdict.score)
    feedback = verdict.feedback or (CORRECT_FEEDBACK if is_correct else INCORRECT_FEEDBACK)
    return GradeResult(is_correct=is_correct, score=score, feedback=feedback, source="delegate")
