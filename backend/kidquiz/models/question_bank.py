"""Question bank: reusable sets of generated practice questions."""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kidquiz.db.base import Base

MAX_VARIANTS_PER_CONFIGURATION = 20
MAX_CONFIGURATIONS_PER_REQUEST = 10
MAX_QUESTIONS_PER_SET = 500


class QuestionBank(Base):
    """A titled set of question items, stored as one JSON document.

    ``questions`` holds item dicts (title, answer, topic, concept,
    difficulty, marks, working, evaluation); ``configurations`` records the
    variant settings the set was generated from.
    """

    __tablename__ = "question_bank"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    # Lessons live in the content service; no local foreign key
    lesson_id = Column(Uuid(as_uuid=True), nullable=True)
    questions = Column(JSON, nullable=False, default=list)
    configurations = Column(JSON, nullable=False, default=list)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    creator = relationship("User")

    __table_args__ = (
        Index("ix_question_bank_created_by", "created_by"),
        Index("ix_question_bank_lesson", "lesson_id"),
    )

    @property
    def question_count(self) -> int:
        return len(self.questions or [])
