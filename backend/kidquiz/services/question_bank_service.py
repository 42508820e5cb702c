"""Question bank sets: CRUD and per-item quality review."""

import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from kidquiz.common.pagination import PaginationParams
from kidquiz.core.app_exceptions import ForbiddenError, NotFoundError
from kidquiz.core.logging import get_logger
from kidquiz.models.question_bank import QuestionBank
from kidquiz.models.user import User
from kidquiz.schemas.question_bank import QuestionBankCreate, QuestionBankItem, QuestionBankUpdate
from kidquiz.services.assistant import Assistant

logger = get_logger(__name__)


def _dump_items(items: list[QuestionBankItem]) -> list[dict[str, Any]]:
    """Serialize items for the JSON column, giving each one a stable id."""
    return [{**item.model_dump(), "id": item.id or str(uuid.uuid4())} for item in items]


def get_set(db: Session, set_id: UUID, user: User) -> QuestionBank:
    """Load a set owned by the user (admins may load any set)."""
    bank = db.get(QuestionBank, set_id)
    if bank is None:
        raise NotFoundError("QuestionBank", set_id)
    if not user.is_admin and bank.created_by != user.id:
        raise ForbiddenError("Only the set's creator or an admin can use it")
    return bank


async def create_set(db: Session, data: QuestionBankCreate, owner: User) -> QuestionBank:
    bank = QuestionBank(
        title=data.title.strip(),
        lesson_id=data.lesson_id,
        questions=_dump_items(data.questions),
        configurations=[c.model_dump() for c in data.configurations],
        created_by=owner.id,
    )
    db.add(bank)
    db.commit()
    db.refresh(bank)

    logger.info(
        "Question bank set created",
        extra={"set_id": str(bank.id), "created_by": str(owner.id), "question_count": bank.question_count},
    )
    return bank


async def list_sets(
    db: Session,
    user: User,
    pagination: PaginationParams,
    lesson_id: UUID | None = None,
    search: str | None = None,
) -> tuple[list[QuestionBank], int]:
    """Newest first; teachers see their own sets, admins see all."""
    stmt = select(QuestionBank)
    if not user.is_admin:
        stmt = stmt.where(QuestionBank.created_by == user.id)
    if lesson_id is not None:
        stmt = stmt.where(QuestionBank.lesson_id == lesson_id)
    if search:
        stmt = stmt.where(QuestionBank.title.ilike(f"%{search.strip()}%"))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    items = (
        db.execute(
            stmt.order_by(QuestionBank.created_at.desc(), QuestionBank.id)
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        .scalars()
        .all()
    )
    return list(items), total


async def update_set(db: Session, set_id: UUID, data: QuestionBankUpdate, user: User) -> QuestionBank:
    bank = get_set(db, set_id, user)
    if data.title is not None:
        bank.title = data.title.strip()
    if "lesson_id" in data.model_fields_set:
        bank.lesson_id = data.lesson_id
    if data.questions is not None:
        bank.questions = _dump_items(data.questions)
    db.commit()
    db.refresh(bank)
    return bank


async def delete_set(db: Session, set_id: UUID, user: User) -> None:
    bank = get_set(db, set_id, user)
    db.delete(bank)
    db.commit()
    logger.info("Question bank set deleted", extra={"set_id": str(set_id), "deleted_by": str(user.id)})


async def evaluate_item(
    db: Session, set_id: UUID, item_id: str, user: User, assistant: Assistant
) -> dict[str, Any]:
    """Run the quality review on one stored item and keep the verdict on it."""
    bank = get_set(db, set_id, user)
    items = list(bank.questions or [])
    index = next((i for i, item in enumerate(items) if item.get("id") == item_id), None)
    if index is None:
        raise NotFoundError("Question", item_id)

    item = items[index]
    evaluation = await assistant.evaluate_quality(item["title"], item["answer"], item.get("working"))

    # Reassign so the JSON column is flagged dirty
    items[index] = {**item, "evaluation": evaluation}
    bank.questions = items
    db.commit()
    db.refresh(bank)
    return items[index]
