"""Test authoring endpoints and test discovery for students."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from kidquiz.common.pagination import PaginatedResponse, PaginationParams, pagination_params, total_pages
from kidquiz.core.dependencies import get_current_user, get_db, require_roles
from kidquiz.models.quiz import Test, TestStatus
from kidquiz.models.user import User, UserRole
from kidquiz.schemas.attempt import AttemptOut
from kidquiz.schemas.quiz import (
    QuestionStudentOut,
    TestCreate,
    TestOut,
    TestStudentOut,
    TestSummaryOut,
    TestUpdate,
)
from kidquiz.services import attempt_engine, quiz_service

router = APIRouter()

require_author = require_roles(UserRole.ADMIN, UserRole.TEACHER)


def to_student_view(test: Test) -> TestStudentOut:
    """Student-facing test: no answers, no hint text."""
    return TestStudentOut(
        id=test.id,
        title=test.title,
        description=test.description,
        duration=test.duration,
        status=test.status,
        question_count=test.question_count,
        questions=[
            QuestionStudentOut(
                id=q.id,
                question_text=q.question_text,
                order=q.order,
                hint_count=len(q.hints or []),
                has_micro_learning=bool(q.micro_learning),
            )
            for q in test.questions
        ],
    )


@router.post("", response_model=TestOut, status_code=status.HTTP_201_CREATED)
async def create_test(
    payload: TestCreate,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> TestOut:
    test = await quiz_service.create_test(db, payload, current_user)
    return TestOut.model_validate(test)


@router.get("", response_model=PaginatedResponse[TestSummaryOut])
async def list_tests(
    status_filter: TestStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=200),
    pagination: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> PaginatedResponse[TestSummaryOut]:
    """Tests the caller authored; admins see all tests."""
    items, total = await quiz_service.list_tests(db, current_user, pagination, status_filter, search)
    return PaginatedResponse[TestSummaryOut](
        items=[TestSummaryOut.model_validate(t) for t in items],
        page=pagination.page,
        page_size=pagination.page_size,
        total=total,
        total_pages=total_pages(total, pagination.page_size),
    )


@router.get("/available", response_model=list[TestSummaryOut])
async def list_available_tests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TestSummaryOut]:
    tests = await quiz_service.list_available_tests(db)
    return [TestSummaryOut.model_validate(t) for t in tests]


@router.get("/{test_id}", response_model=TestOut | TestStudentOut)
async def get_test(
    test_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TestOut | TestStudentOut:
    test = quiz_service.get_test_for_user(db, test_id, current_user)
    if quiz_service.can_manage(test, current_user):
        return TestOut.model_validate(test)
    return to_student_view(test)


@router.put("/{test_id}", response_model=TestOut)
async def update_test(
    test_id: UUID,
    payload: TestUpdate,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> TestOut:
    test = await quiz_service.update_test(db, test_id, payload, current_user)
    return TestOut.model_validate(test)


@router.delete("/{test_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_test(
    test_id: UUID,
    current_user: User = Depends(require_author),
    db: Session = Depends(get_db),
) -> Response:
    await quiz_service.delete_test(db, test_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{test_id}/attempts", response_model=AttemptOut, status_code=status.HTTP_201_CREATED)
async def start_attempt(
    test_id: UUID,
    current_user: User = Depends(require_roles(UserRole.STUDENT)),
    db: Session = Depends(get_db),
) -> AttemptOut:
    """Start a new attempt, or resume the one already in progress."""
    attempt = await attempt_engine.start_attempt(db, test_id, current_user)
    return AttemptOut.model_validate(attempt)
