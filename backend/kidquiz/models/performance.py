"""Advisory performance rollups per student (and optionally per test)."""

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, Uuid
from sqlalchemy.sql import func

from kidquiz.db.base import Base


class PerformanceMetrics(Base):
    """Recomputable rollup of a student's completed attempts.

    Never read by scoring; safe to drop and rebuild from attempts.
    """

    __tablename__ = "performance_metrics"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # NULL test_id = rollup across every test the student completed
    test_id = Column(Uuid(as_uuid=True), ForeignKey("tests.id", ondelete="CASCADE"), nullable=True)

    average_basic_score = Column(Float, nullable=False, default=0.0)
    average_ai_score = Column(Float, nullable=False, default=0.0)
    total_attempts = Column(Integer, nullable=False, default=0)
    improvement_rate = Column(Float, nullable=False, default=0.0)
    consistency_score = Column(Float, nullable=False, default=0.0)
    average_hint_usage = Column(Float, nullable=False, default=0.0)
    average_learning_engagement = Column(Float, nullable=False, default=0.0)
    average_time_efficiency = Column(Float, nullable=False, default=0.0)
    calculated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_performance_metrics_student_test", "student_id", "test_id"),)
