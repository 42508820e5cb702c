"""Question bank endpoints: owner-scoped sets of generated questions."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from kidquiz.common.pagination import PaginatedResponse, PaginationParams, pagination_params, total_pages
from kidquiz.core.dependencies import get_db, require_roles
from kidquiz.models.user import User, UserRole
from kidquiz.schemas.question_bank import (
    QuestionBankCreate,
    QuestionBankItem,
    QuestionBankOut,
    QuestionBankSummaryOut,
    QuestionBankUpdate,
)
from kidquiz.services import question_bank_service
from kidquiz.services.assistant import Assistant, get_assistant

router = APIRouter()

require_author = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post("", response_model=QuestionBankOut, status_code=status.HTTP_201_CREATED)
async def create_set(
    payload: QuestionBankCreate,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> QuestionBankOut:
    bank = await question_bank_service.create_set(db, payload, current_user)
    return QuestionBankOut.model_validate(bank)


@router.get("", response_model=PaginatedResponse[QuestionBankSummaryOut])
async def list_sets(
    lesson_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=200),
    pagination: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> PaginatedResponse[QuestionBankSummaryOut]:
    items, total = await question_bank_service.list_sets(db, current_user, pagination, lesson_id, search)
    return PaginatedResponse[QuestionBankSummaryOut](
        items=[QuestionBankSummaryOut.model_validate(b) for b in items],
        page=pagination.page,
        page_size=pagination.page_size,
        total=total,
        total_pages=total_pages(total, pagination.page_size),
    )


@router.get("/{set_id}", response_model=QuestionBankOut)
async def get_set(
    set_id: UUID,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> QuestionBankOut:
    return QuestionBankOut.model_validate(question_bank_service.get_set(db, set_id, current_user))


@router.put("/{set_id}", response_model=QuestionBankOut)
async def update_set(
    set_id: UUID,
    payload: QuestionBankUpdate,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> QuestionBankOut:
    bank = await question_bank_service.update_set(db, set_id, payload, current_user)
    return QuestionBankOut.model_validate(bank)


@router.delete("/{set_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_set(
    set_id: UUID,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> Response:
    await question_bank_service.delete_set(db, set_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{set_id}/questions/{item_id}/evaluate", response_model=QuestionBankItem)
async def evaluate_item(
    set_id: UUID,
    item_id: str,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
    assistant: Assistant = Depends(get_assistant),
) -> QuestionBankItem:
    """Review one stored question with the quality delegate and keep the verdict."""
    item = await question_bank_service.evaluate_item(db, set_id, item_id, current_user, assistant)
    return QuestionBankItem.model_validate(item)
