"""Student self-service endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kidquiz.common.pagination import PaginatedResponse, PaginationParams, pagination_params, total_pages
from kidquiz.core.dependencies import get_current_user, get_db
from kidquiz.models.user import User
from kidquiz.schemas.analytics import AttemptListItem, StudentDashboard
from kidquiz.services import analytics_service

router = APIRouter()


@router.get("/attempts", response_model=PaginatedResponse[AttemptListItem])
async def my_attempts(
    status_filter: str | None = Query(None, alias="status", pattern="(?i)^(all|in_progress|completed|abandoned)$"),
    pagination: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaginatedResponse[AttemptListItem]:
    filters = analytics_service.AttemptFilter(student_id=current_user.id, status=status_filter)
    page, total, _ = analytics_service.list_attempts(db, filters, pagination)
    return PaginatedResponse[AttemptListItem](
        items=[AttemptListItem(**analytics_service.attempt_list_item(a)) for a in page],
        page=pagination.page,
        page_size=pagination.page_size,
        total=total,
        total_pages=total_pages(total, pagination.page_size),
    )


@router.get("/dashboard", response_model=StudentDashboard)
async def my_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentDashboard:
    """Completed tests, average score, stars and the current daily streak."""
    return StudentDashboard(**analytics_service.get_student_dashboard(db, current_user.id))
