"""Admin analytics endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kidquiz.common.pagination import PaginationParams, pagination_params, total_pages
from kidquiz.core.app_exceptions import NotFoundError
from kidquiz.core.dependencies import get_db, require_roles
from kidquiz.models.user import User, UserRole
from kidquiz.schemas.analytics import (
    AnalyticsOverview,
    AttemptListItem,
    AttemptListResponse,
    AttemptListSummary,
    MatrixPoint,
    PerformanceOut,
    TestStats,
)
from kidquiz.services import analytics_service, quiz_service

router = APIRouter()

require_admin = require_roles(UserRole.ADMIN)

STATUS_PATTERN = "(?i)^(all|in_progress|completed|abandoned)$"


def attempt_filters(
    search: str | None = Query(None, max_length=200, description="Student name/email or test title"),
    status: str | None = Query(None, pattern=STATUS_PATTERN),
    min_score: int | None = Query(None, ge=0, le=100),
    max_score: int | None = Query(None, ge=0, le=100),
    test_id: UUID | None = Query(None),
) -> analytics_service.AttemptFilter:
    """Dependency collecting attempt filters from the query string."""
    return analytics_service.AttemptFilter(
        search=search, status=status, min_score=min_score, max_score=max_score, test_id=test_id
    )


@router.get("/overview", response_model=AnalyticsOverview)
async def overview(
    filters: analytics_service.AttemptFilter = Depends(attempt_filters),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AnalyticsOverview:
    return AnalyticsOverview(**analytics_service.get_overview(db, filters))


@router.get("/tests/{test_id}", response_model=TestStats)
async def test_stats(
    test_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> TestStats:
    test = quiz_service.get_test(db, test_id)
    return TestStats(**analytics_service.get_test_stats(db, test))


@router.get("/matrix", response_model=list[MatrixPoint])
async def performance_matrix(
    test_id: UUID | None = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[MatrixPoint]:
    """Engagement vs. score scatter points, one per student and test."""
    return [MatrixPoint(**p) for p in analytics_service.get_performance_matrix(db, test_id)]


@router.get("/attempts", response_model=AttemptListResponse)
async def list_attempts(
    filters: analytics_service.AttemptFilter = Depends(attempt_filters),
    pagination: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttemptListResponse:
    page, total, summary = analytics_service.list_attempts(db, filters, pagination)
    return AttemptListResponse(
        items=[AttemptListItem(**analytics_service.attempt_list_item(a)) for a in page],
        page=pagination.page,
        page_size=pagination.page_size,
        total=total,
        total_pages=total_pages(total, pagination.page_size),
        summary=AttemptListSummary(**summary),
    )


@router.get("/students/{student_id}/performance", response_model=list[PerformanceOut])
async def student_performance(
    student_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[PerformanceOut]:
    if db.get(User, student_id) is None:
        raise NotFoundError("Student", student_id)
    return [PerformanceOut(**r) for r in analytics_service.get_student_performance(db, student_id)]


@router.post("/students/{student_id}/performance/recompute", response_model=list[PerformanceOut])
async def recompute_student_performance(
    student_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[PerformanceOut]:
    """Rebuild the stored rollups for a student from attempt history."""
    if db.get(User, student_id) is None:
        raise NotFoundError("Student", student_id)
    rollups = analytics_service.rebuild_student_rollups(db, student_id)
    return [PerformanceOut(**r) for r in rollups]
