"""Attempt models: one student's run through a test and its per-question records."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from kidquiz.common.clock import utcnow
from kidquiz.db.base import Base


class AttemptStatus(str, PyEnum):
    """Attempt status. COMPLETED and ABANDONED are terminal."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


class TestAttempt(Base):
    """A student's attempt at a test.

    ``total_questions`` is a snapshot of the test's question count at start and
    is never touched again. Metric columns stay NULL until completion.
    """

    __tablename__ = "test_attempts"
    __test__ = False

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    test_id = Column(Uuid(as_uuid=True), ForeignKey("tests.id"), nullable=False)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = Column(
        Enum(AttemptStatus, name="attempt_status"),
        nullable=False,
        default=AttemptStatus.IN_PROGRESS,
    )
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    total_questions = Column(Integer, nullable=False)

    # Scoring (computed at completion)
    correct_answers = Column(Integer, nullable=False, default=0)
    hints_used = Column(Integer, nullable=False, default=0)
    time_taken_seconds = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)  # AI-assisted score, mirrors ai_score
    basic_score = Column(Integer, nullable=True)
    ai_score = Column(Integer, nullable=True)
    ai_score_breakdown = Column(JSON, nullable=True)

    # Behavioural metrics, each a percentage in [0, 100]
    learning_engagement_rate = Column(Float, nullable=True)
    first_attempt_success_rate = Column(Float, nullable=True)
    hint_dependency_rate = Column(Float, nullable=True)
    persistence_score = Column(Float, nullable=True)
    confidence_indicator = Column(Float, nullable=True)
    average_time_per_question = Column(Float, nullable=True)  # seconds
    mastery_achieved = Column(Boolean, nullable=False, default=False)
    questions_requiring_study = Column(Integer, nullable=False, default=0)

    # Set when completed_at < started_at (clock skew); time was clamped to 0
    needs_audit = Column(Boolean, nullable=False, default=False)

    test = relationship("Test", back_populates="attempts")
    student = relationship("User")
    question_attempts = relationship(
        "QuestionAttempt",
        back_populates="test_attempt",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_test_attempts_test_status", "test_id", "status"),
        Index("ix_test_attempts_student_started", "student_id", "started_at"),
    )


class QuestionAttempt(Base):
    """Answer record for one question inside one attempt."""

    __tablename__ = "question_attempts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    test_attempt_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("test_attempts.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )

    student_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    attempts_count = Column(Integer, nullable=False, default=0)
    # hints_used is always len(hint_sequence); only the engine writes both
    hints_used = Column(Integer, nullable=False, default=0)
    hint_sequence = Column(JSON, nullable=False, default=list)
    time_taken_seconds = Column(Integer, nullable=False, default=0)
    viewed_micro_learning = Column(Boolean, nullable=False, default=False)
    study_material_downloaded = Column(Boolean, nullable=False, default=False)
    downloaded_at = Column(DateTime(timezone=True), nullable=True)

    # Grading
    ai_score = Column(Integer, nullable=True)  # best score across history
    ai_feedback = Column(Text, nullable=True)
    attempt_history = Column(JSON, nullable=False, default=list)

    # Behaviour flags
    answered_on_first_attempt = Column(Boolean, nullable=False, default=False)
    used_no_hints = Column(Boolean, nullable=False, default=True)
    showed_persistence = Column(Boolean, nullable=False, default=False)

    # Delegate output cached per student so repeated requests stay stable
    generated_hints = Column(JSON, nullable=False, default=dict)  # {"<index>": "hint"}
    micro_learning_content = Column(Text, nullable=True)

    answered_at = Column(DateTime(timezone=True), nullable=True)

    test_attempt = relationship("TestAttempt", back_populates="question_attempts")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("test_attempt_id", "question_id", name="uq_question_attempt"),
        Index("ix_question_attempts_attempt", "test_attempt_id"),
    )
