"""Cohort analytics: dashboard rollups over many attempts.

Aggregations are pure functions over already-fetched rows, so running them
twice on the same rows gives the same answer. Filters are applied in SQL
before any aggregation or pagination.
"""

import math
import statistics
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import Select, delete, or_, select
from sqlalchemy.orm import Session

from kidquiz.common.clock import as_utc, utcnow
from kidquiz.common.pagination import PaginationParams
from kidquiz.core.logging import get_logger
from kidquiz.models.attempt import AttemptStatus, TestAttempt
from kidquiz.models.performance import PerformanceMetrics
from kidquiz.models.quiz import Test, TestStatus
from kidquiz.models.user import User

logger = get_logger(__name__)

DECLUTTER_RADIUS_STEP = 3
DECLUTTER_ANGLE_STEP = 0.75 * math.pi
MAX_STARS = 5


def _mean(values: Iterable[float | int | None]) -> float:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else 0.0


def _completed(attempts: Iterable[TestAttempt]) -> list[TestAttempt]:
    return [a for a in attempts if a.status == AttemptStatus.COMPLETED]


# ============================================================================
# Pure aggregations
# ============================================================================


def overall_stats(attempts: Sequence[TestAttempt], tests: Sequence[Test]) -> dict[str, Any]:
    completed = _completed(attempts)
    return {
        "total_students": len({a.student_id for a in attempts}),
        "active_tests": sum(1 for t in tests if t.status == TestStatus.ACTIVE),
        "avg_score": round(_mean(a.basic_score for a in completed), 2),
        "total_attempts": len(attempts),
    }


def per_test_stats(attempts: Sequence[TestAttempt], titles: dict[UUID, str]) -> list[dict[str, Any]]:
    """Per-test rollup, in ``titles`` order followed by any untitled test ids."""
    grouped: dict[UUID, list[TestAttempt]] = defaultdict(list)
    for a in attempts:
        grouped[a.test_id].append(a)

    order = list(titles) + sorted((tid for tid in grouped if tid not in titles), key=str)
    stats = []
    for test_id in order:
        group = grouped.get(test_id, [])
        completed = _completed(group)
        stats.append(
            {
                "test_id": test_id,
                "title": titles.get(test_id, ""),
                "total_attempts": len(group),
                "completed_attempts": len(completed),
                "average_score": round(_mean(a.basic_score for a in completed), 2),
                "average_time": round(_mean(a.time_taken_seconds for a in completed), 2),
                "average_hints_used": round(_mean(a.hints_used for a in completed), 1),
                "completion_rate": round(len(completed) / len(group) * 100, 2) if group else 0.0,
            }
        )
    return stats


def student_performance(attempts: Sequence[TestAttempt]) -> dict[str, Any]:
    """Rollup of one student's completed attempts (optionally for one test)."""
    completed = sorted(
        _completed(attempts),
        key=lambda a: (as_utc(a.completed_at) or as_utc(a.started_at), str(a.id)),
    )
    scores = [a.basic_score or 0 for a in completed]

    improvement = float(scores[-1] - scores[0]) if len(scores) > 1 else 0.0
    consistency = float(max(0, round(100 - statistics.pstdev(scores)))) if scores else 0.0
    return {
        "average_basic_score": round(_mean(scores), 2),
        "average_ai_score": round(_mean(a.ai_score for a in completed), 2),
        "total_attempts": len(completed),
        "improvement_rate": improvement,
        "consistency_score": consistency,
        "average_hint_usage": round(_mean(a.hints_used for a in completed), 1),
        "average_learning_engagement": round(_mean(a.learning_engagement_rate for a in completed), 2),
        "average_time_efficiency": round(_mean(a.average_time_per_question for a in completed), 2),
    }


def declutter_offset(k: int) -> tuple[float, float]:
    """Offset for the k-th point sharing a coordinate (k = 0 stays put)."""
    if k <= 0:
        return 0.0, 0.0
    radius = math.ceil(math.sqrt(k)) * DECLUTTER_RADIUS_STEP
    angle = k * DECLUTTER_ANGLE_STEP
    return radius * math.cos(angle), radius * math.sin(angle)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def performance_matrix(rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Scatter-plot points (engagement, score, size) for per-student rollups.

    Points landing on the exact same coordinate are spread out by a fixed
    spiral, indexed by insertion order. The offsets only change ``x``/``y``;
    ``original_x``/``original_y`` and every statistic are left untouched.
    """
    max_score = max((r["score"] for r in rows), default=0)
    seen: dict[tuple[float, float], int] = defaultdict(int)
    points = []
    for row in rows:
        key = (row["engagement"], row["score"])
        k = seen[key]
        seen[key] += 1
        dx, dy = declutter_offset(k)
        points.append(
            {
                "student_id": row["student_id"],
                "student_name": row.get("student_name", ""),
                "test_id": row.get("test_id"),
                "x": _clamp(row["engagement"] + dx),
                "y": _clamp(row["score"] + dy),
                "z": row["total_attempts"],
                "original_x": row["engagement"],
                "original_y": row["score"],
                "is_top_student": max_score > 0 and row["score"] == max_score,
            }
        )
    return points


def compute_streak(completion_dates: Iterable[date], today: date) -> int:
    """Consecutive days with a completed attempt, ending today or yesterday."""
    days = sorted(set(completion_dates), reverse=True)
    if not days or days[0] < today - timedelta(days=1):
        return 0

    streak = 1
    for previous, current in zip(days, days[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def stars_for_score(score: int | None) -> int:
    if score is None:
        return 0
    return min(MAX_STARS, score // 20 + 1)


def student_dashboard(attempts: Sequence[TestAttempt], today: date) -> dict[str, Any]:
    completed = _completed(attempts)
    return {
        "tests_completed": len(completed),
        "average_score": round(_mean(a.basic_score for a in completed), 2),
        "total_stars": sum(stars_for_score(a.basic_score) for a in completed),
        "streak": compute_streak((as_utc(a.completed_at).date() for a in completed if a.completed_at), today),
    }


def summarize_attempts(attempts: Sequence[TestAttempt]) -> dict[str, Any]:
    completed = _completed(attempts)
    return {
        "total_attempts": len(attempts),
        "completed_attempts": len(completed),
        "average_score": round(_mean(a.basic_score for a in completed), 2),
        "completion_rate": round(len(completed) / len(attempts) * 100, 2) if attempts else 0.0,
    }


# ============================================================================
# Queries
# ============================================================================


@dataclass
class AttemptFilter:
    """Attempt filters; ``status="all"`` or None means any status."""

    search: str | None = None
    status: str | None = None
    min_score: int | None = None
    max_score: int | None = None
    test_id: UUID | None = None
    student_id: UUID | None = None

    def apply(self, stmt: Select) -> Select:
        stmt = stmt.join(User, User.id == TestAttempt.student_id).join(Test, Test.id == TestAttempt.test_id)
        if self.status and self.status.lower() != "all":
            stmt = stmt.where(TestAttempt.status == AttemptStatus(self.status.upper()))
        if self.min_score is not None:
            stmt = stmt.where(TestAttempt.basic_score >= self.min_score)
        if self.max_score is not None:
            stmt = stmt.where(TestAttempt.basic_score <= self.max_score)
        if self.test_id is not None:
            stmt = stmt.where(TestAttempt.test_id == self.test_id)
        if self.student_id is not None:
            stmt = stmt.where(TestAttempt.student_id == self.student_id)
        if self.search:
            pattern = f"%{self.search.strip()}%"
            stmt = stmt.where(
                or_(User.full_name.ilike(pattern), User.email.ilike(pattern), Test.title.ilike(pattern))
            )
        return stmt


def fetch_attempts(db: Session, filters: AttemptFilter | None = None) -> list[TestAttempt]:
    stmt = (filters or AttemptFilter()).apply(select(TestAttempt))
    stmt = stmt.order_by(TestAttempt.started_at.desc(), TestAttempt.id)
    return list(db.execute(stmt).scalars().all())


def attempt_list_item(attempt: TestAttempt) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "test_id": attempt.test_id,
        "test_title": attempt.test.title,
        "student_id": attempt.student_id,
        "student_name": attempt.student.name,
        "student_email": attempt.student.email,
        "status": attempt.status,
        "started_at": attempt.started_at,
        "completed_at": attempt.completed_at,
        "basic_score": attempt.basic_score,
        "score": attempt.score,
        "hints_used": attempt.hints_used,
        "time_taken_seconds": attempt.time_taken_seconds,
    }


def list_attempts(
    db: Session, filters: AttemptFilter, pagination: PaginationParams
) -> tuple[list[TestAttempt], int, dict[str, Any]]:
    """One page of filtered attempts plus a summary over the whole filtered set."""
    matching = fetch_attempts(db, filters)
    page = matching[pagination.offset : pagination.offset + pagination.page_size]
    return page, len(matching), summarize_attempts(matching)


def get_overview(db: Session, filters: AttemptFilter | None = None) -> dict[str, Any]:
    attempts = fetch_attempts(db, filters)
    tests = list(db.execute(select(Test).order_by(Test.created_at, Test.id)).scalars().all())
    titles = {t.id: t.title for t in tests if filters is None or filters.test_id in (None, t.id)}
    return {
        "stats": overall_stats(attempts, tests),
        "tests": per_test_stats(attempts, titles),
    }


def get_test_stats(db: Session, test: Test) -> dict[str, Any]:
    attempts = fetch_attempts(db, AttemptFilter(test_id=test.id))
    return per_test_stats(attempts, {test.id: test.title})[0]


def get_performance_matrix(db: Session, test_id: UUID | None = None) -> list[dict[str, Any]]:
    """Matrix points per (student, test) from completed attempts."""
    attempts = fetch_attempts(db, AttemptFilter(status=AttemptStatus.COMPLETED.value, test_id=test_id))
    grouped: dict[tuple[UUID, UUID], list[TestAttempt]] = defaultdict(list)
    for a in attempts:
        grouped[(a.student_id, a.test_id)].append(a)

    rows = []
    for (student_id, tid), group in sorted(grouped.items(), key=lambda item: (str(item[0][0]), str(item[0][1]))):
        perf = student_performance(group)
        rows.append(
            {
                "student_id": student_id,
                "student_name": group[0].student.name,
                "test_id": tid,
                "engagement": perf["average_learning_engagement"],
                "score": perf["average_basic_score"],
                "total_attempts": perf["total_attempts"],
            }
        )
    return performance_matrix(rows)


def get_student_performance(db: Session, student_id: UUID) -> list[dict[str, Any]]:
    """Fresh rollups for a student: overall first, then one per test."""
    attempts = fetch_attempts(db, AttemptFilter(student_id=student_id, status=AttemptStatus.COMPLETED.value))
    by_test: dict[UUID, list[TestAttempt]] = defaultdict(list)
    for a in attempts:
        by_test[a.test_id].append(a)

    rollups = [{"student_id": student_id, "test_id": None, **student_performance(attempts)}]
    for test_id in sorted(by_test, key=str):
        rollups.append({"student_id": student_id, "test_id": test_id, **student_performance(by_test[test_id])})
    return rollups


def get_student_dashboard(db: Session, student_id: UUID, today: date | None = None) -> dict[str, Any]:
    attempts = fetch_attempts(db, AttemptFilter(student_id=student_id))
    dashboard = student_dashboard(attempts, today or utcnow().date())
    dashboard["recent_attempts"] = [attempt_list_item(a) for a in _completed(attempts)[:5]]
    return dashboard


def recompute_performance_metrics(
    db: Session, student_id: UUID, test_id: UUID | None = None
) -> PerformanceMetrics | None:
    """Upsert the advisory rollup for (student, test); removes it when nothing is completed."""
    stmt = select(TestAttempt).where(
        TestAttempt.student_id == student_id,
        TestAttempt.status == AttemptStatus.COMPLETED,
    )
    if test_id is not None:
        stmt = stmt.where(TestAttempt.test_id == test_id)
    attempts = list(db.execute(stmt).scalars().all())

    row = db.execute(
        select(PerformanceMetrics).where(
            PerformanceMetrics.student_id == student_id,
            PerformanceMetrics.test_id.is_(None) if test_id is None else PerformanceMetrics.test_id == test_id,
        )
    ).scalars().first()

    if not attempts:
        if row is not None:
            db.delete(row)
            db.commit()
        return None

    values = student_performance(attempts)
    if row is None:
        row = PerformanceMetrics(student_id=student_id, test_id=test_id)
        db.add(row)
    for key, value in values.items():
        setattr(row, key, value)
    row.calculated_at = utcnow()
    db.commit()
    db.refresh(row)
    return row



def rebuild_student_rollups(db: Session, student_id: UUID) -> list[dict[str, Any]]:
    """Rewrite every stored rollup for a student, dropping tests with no completed attempt."""
    rollups = get_student_performance(db, student_id)
    test_ids = [r["test_id"] for r in rollups if r["test_id"] is not None]
    for rollup in rollups:
        recompute_performance_metrics(db, student_id, rollup["test_id"])

    stale = db.execute(
        delete(PerformanceMetrics).where(
            PerformanceMetrics.student_id == student_id,
            PerformanceMetrics.test_id.is_not(None),
            PerformanceMetrics.test_id.not_in(test_ids),
        )
    )
    db.commit()
    if stale.rowcount:
        logger.info(
            "Removed stale performance rollups",
            extra={"student_id": str(student_id), "removed": stale.rowcount},
        )
    return rollups
