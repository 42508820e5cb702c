"""Quiz content models: tests and their questions."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kidquiz.db.base import Base

MAX_HINTS_PER_QUESTION = 3
MAX_QUESTIONS_PER_TEST = 100
DEFAULT_MAX_ATTEMPTS_BEFORE_STUDY = 4


class TestStatus(str, PyEnum):
    """Test lifecycle status. Transitions only move forward."""

    __test__ = False

    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [TestStatus.DRAFT, TestStatus.SCHEDULED, TestStatus.ACTIVE, TestStatus.COMPLETED]


class Test(Base):
    """A short quiz authored by a teacher or admin."""

    __tablename__ = "tests"
    __test__ = False

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    status = Column(
        Enum(TestStatus, name="test_status"),
        nullable=False,
        default=TestStatus.DRAFT,
    )
    # Denormalized; kept equal to len(questions) by every write path
    question_count = Column(Integer, nullable=False, default=0)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    creator = relationship("User")
    questions = relationship(
        "Question",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )
    attempts = relationship("TestAttempt", back_populates="test")

    __table_args__ = (
        Index("ix_tests_created_by", "created_by"),
        Index("ix_tests_status", "status"),
    )


class Question(Base):
    """A fill-in-the-blank question with progressive hints."""

    __tablename__ = "questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    test_id = Column(
        Uuid(as_uuid=True), ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    question_text = Column(Text, nullable=False)
    correct_answer = Column(String(500), nullable=False)
    hints = Column(JSON, nullable=False, default=list)  # up to 3, revealed in order
    micro_learning = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    max_attempts_before_study = Column(
        Integer, nullable=False, default=DEFAULT_MAX_ATTEMPTS_BEFORE_STUDY
    )

    test = relationship("Test", back_populates="questions")

    __table_args__ = (Index("ix_questions_test_order", "test_id", "order"),)
