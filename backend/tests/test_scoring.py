"""Tests for attempt scoring."""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings, strategies as st

from kidquiz.services.scoring import (
    AttemptScore,
    QuestionOutcome,
    ThresholdMasteryPolicy,
    elapsed_seconds,
    percentage,
    round_half_up,
    score_attempt,
    time_overrun_penalty,
)

START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def outcome(i: int, correct: bool, **kwargs) -> QuestionOutcome:
    kwargs.setdefault("attempts_count", 1)
    return QuestionOutcome(question_id=f"q{i}", is_correct=correct, **kwargs)


def never(_: AttemptScore) -> bool:
    return False


outcome_strategy = st.builds(
    QuestionOutcome,
    question_id=st.text(min_size=1, max_size=5),
    is_correct=st.booleans(),
    score=st.one_of(st.none(), st.integers(min_value=0, max_value=100)),
    attempts_count=st.integers(min_value=0, max_value=6),
    hints_used=st.integers(min_value=0, max_value=3),
    time_taken_seconds=st.integers(min_value=0, max_value=600),
    viewed_micro_learning=st.booleans(),
    study_material_downloaded=st.booleans(),
)


def test_basic_and_ai_scores():
    outcomes = [
        outcome(0, True, score=100),
        outcome(1, True, score=85),
        outcome(2, False, score=40, attempts_count=2),
    ]

    result = score_attempt(outcomes, 3, START, START + timedelta(seconds=95), mastery_policy=never)

    assert result.correct_answers == 2
    assert result.basic_score == 67  # 66.67 rounds up
    assert result.ai_score == 75  # (100 + 85 + 40) / 3
    assert result.time_taken_seconds == 95
    assert result.needs_audit is False


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2


def test_empty_test_has_zero_ratios():
    result = score_attempt([], 0, START, START + timedelta(minutes=1))

    assert result.basic_score == 0
    assert result.ai_score == 0
    assert result.learning_engagement_rate == 0
    assert result.first_attempt_success_rate == 0
    assert result.persistence_score == 0
    assert result.hint_dependency_rate == 0
    assert result.confidence_indicator == 0
    assert result.average_time_per_question == 0
    assert result.mastery_achieved is False


def test_negative_duration_is_clamped_and_flagged():
    result = score_attempt([outcome(0, True)], 1, START, START - timedelta(seconds=30))

    assert result.time_taken_seconds == 0
    assert result.needs_audit is True


def test_elapsed_seconds_accepts_naive_values_as_utc():
    naive_start = START.replace(tzinfo=None)
    assert elapsed_seconds(naive_start, START + timedelta(seconds=61.7)) == (61, False)


def test_behaviour_ratios():
    outcomes = [
        outcome(0, True, attempts_count=1, time_taken_seconds=10),
        outcome(1, True, attempts_count=3, hints_used=2, time_taken_seconds=90),
        outcome(2, False, attempts_count=4, viewed_micro_learning=True, time_taken_seconds=50),
        outcome(3, False, attempts_count=0),
    ]

    result = score_attempt(outcomes, 4, START, START + timedelta(minutes=3), mastery_policy=never)

    assert result.learning_engagement_rate == 50.0  # q1 hints, q2 micro-learning
    assert result.first_attempt_success_rate == 25.0
    assert result.persistence_score == 50.0  # q1 of {q1, q2}
    assert result.hint_dependency_rate == 50.0  # q1 of the 2 correct
    assert result.confidence_indicator == 50.0  # q0 under 30 s
    assert result.average_time_per_question == 50.0  # 150 s over 3 answered
    assert result.hints_used == 2


def test_persistence_is_full_when_nothing_needed_retries():
    result = score_attempt([outcome(0, True), outcome(1, False)], 2, START, START)
    assert result.persistence_score == 100.0


def test_breakdown_penalties_and_study_count():
    outcomes = [
        outcome(0, True, score=100, hints_used=2),
        outcome(1, True, score=90, viewed_micro_learning=True, study_material_downloaded=True),
    ]

    result = score_attempt(outcomes, 2, START, START + timedelta(minutes=17), duration_minutes=10)

    first, second = result.breakdown["questions"]
    assert first["final_score"] == 80
    assert second["final_score"] == 50
    assert result.questions_requiring_study == 1
    # 7 minutes over, more than 5: 7 + 10
    assert result.breakdown["time_penalty"] == 17
    assert result.breakdown["penalized_score"] == 65 - 17


def test_time_overrun_penalty_grace():
    assert time_overrun_penalty(600, None) == 0
    assert time_overrun_penalty(600, 10) == 0
    assert time_overrun_penalty(13 * 60, 10) == 3


def test_default_mastery_policy_thresholds():
    outcomes = [outcome(i, True, score=100) for i in range(5)]
    result = score_attempt(outcomes, 5, START, START + timedelta(minutes=2))
    assert result.mastery_achieved is True

    outcomes[0] = outcome(0, True, score=100, attempts_count=2)
    outcomes[1] = outcome(1, True, score=100, attempts_count=2)
    result = score_attempt(outcomes, 5, START, START + timedelta(minutes=2))
    assert result.first_attempt_success_rate == 60.0
    assert result.mastery_achieved is False


def test_mastery_policy_is_injectable():
    strict = ThresholdMasteryPolicy(min_score=90, min_first_attempt_rate=0, max_hint_dependency=0)
    outcomes = [outcome(0, True, hints_used=1), outcome(1, True)]

    result = score_attempt(outcomes, 2, START, START, mastery_policy=strict)

    assert result.hint_dependency_rate == 50.0
    assert result.mastery_achieved is False

    result = score_attempt(outcomes, 2, START, START, mastery_policy=lambda s: s.basic_score == 100)
    assert result.mastery_achieved is True


@pytest.mark.parametrize("num, den, expected", [(1, 3, 33.33), (5, 0, 0.0), (7, 5, 100.0)])
def test_percentage_is_bounded(num, den, expected):
    assert percentage(num, den) == expected


@settings(max_examples=200, deadline=None)
@given(outcomes=st.lists(outcome_strategy, min_size=1, max_size=100))
def test_basic_score_is_100_iff_all_correct(outcomes):
    """
    Property: 0 <= basic_score <= 100, and 100 exactly when every question is correct.
    """
    result = score_attempt(outcomes, len(outcomes), START, START + timedelta(minutes=5), mastery_policy=never)

    assert 0 <= result.basic_score <= 100
    assert (result.basic_score == 100) == all(o.is_correct for o in outcomes)


@settings(max_examples=200, deadline=None)
@given(
    outcomes=st.lists(outcome_strategy, max_size=30),
    offset=st.integers(min_value=-3600, max_value=3600),
)
def test_ratios_are_bounded(outcomes, offset):
    """Property: every ratio metric stays within [0, 100] and time is never negative."""
    result = score_attempt(outcomes, len(outcomes), START, START + timedelta(seconds=offset), mastery_policy=never)

    for value in (
        result.ai_score,
        result.learning_engagement_rate,
        result.first_attempt_success_rate,
        result.persistence_score,
        result.hint_dependency_rate,
        result.confidence_indicator,
    ):
        assert 0 <= value <= 100
    assert result.time_taken_seconds >= 0
    assert result.needs_audit == (offset < 0)
