"""Pydantic schemas for analytics endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from kidquiz.models.attempt import AttemptStatus


class OverallStats(BaseModel):
    total_students: int
    active_tests: int
    avg_score: float
    total_attempts: int


class TestStats(BaseModel):
    __test__ = False

    test_id: UUID
    title: str
    total_attempts: int
    completed_attempts: int
    average_score: float
    average_time: float
    average_hints_used: float
    completion_rate: float


class AnalyticsOverview(BaseModel):
    stats: OverallStats
    tests: list[TestStats]


class MatrixPoint(BaseModel):
    student_id: UUID
    student_name: str
    test_id: UUID | None
    x: float
    y: float
    z: int
    original_x: float
    original_y: float
    is_top_student: bool


class AttemptListItem(BaseModel):
    id: UUID
    test_id: UUID
    test_title: str
    student_id: UUID
    student_name: str
    student_email: str
    status: AttemptStatus
    started_at: datetime
    completed_at: datetime | None
    basic_score: int | None
    score: int | None
    hints_used: int
    time_taken_seconds: int | None


class AttemptListSummary(BaseModel):
    total_attempts: int
    completed_attempts: int
    average_score: float
    completion_rate: float


class AttemptListResponse(BaseModel):
    items: list[AttemptListItem]
    page: int
    page_size: int
    total: int
    total_pages: int
    summary: AttemptListSummary


class PerformanceOut(BaseModel):
    student_id: UUID
    test_id: UUID | None
    average_basic_score: float
    average_ai_score: float
    total_attempts: int
    improvement_rate: float
    consistency_score: float
    average_hint_usage: float
    average_learning_engagement: float
    average_time_efficiency: float


class StudentDashboard(BaseModel):
    tests_completed: int
    average_score: float
    total_stars: int
    streak: int
    recent_attempts: list[AttemptListItem]
