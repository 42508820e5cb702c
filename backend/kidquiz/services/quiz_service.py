"""Test and question authoring service."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from kidquiz.common.pagination import PaginationParams
from kidquiz.core.app_exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from kidquiz.core.logging import get_logger
from kidquiz.models.attempt import TestAttempt
from kidquiz.models.quiz import Question, Test, TestStatus
from kidquiz.models.user import User
from kidquiz.schemas.quiz import QuestionIn, TestCreate, TestUpdate

logger = get_logger(__name__)

STUDENT_VISIBLE_STATUSES = (TestStatus.ACTIVE, TestStatus.COMPLETED)


def can_manage(test: Test, user: User) -> bool:
    return user.is_admin or test.created_by == user.id


def ensure_can_manage(test: Test, user: User) -> None:
    if not can_manage(test, user):
        raise ForbiddenError("Only the test's creator or an admin can change it")


def get_test(db: Session, test_id: UUID) -> Test:
    test = db.execute(
        select(Test).where(Test.id == test_id).options(selectinload(Test.questions))
    ).scalar_one_or_none()
    if test is None:
        raise NotFoundError("Test", test_id)
    return test


def get_test_for_user(db: Session, test_id: UUID, user: User) -> Test:
    """Load a test the user may see; students only see published tests."""
    test = get_test(db, test_id)
    if not can_manage(test, user) and test.status not in STUDENT_VISIBLE_STATUSES:
        # Drafts of other authors do not exist as far as the caller is concerned
        raise NotFoundError("Test", test_id)
    return test


def _build_question_set(test: Test, items: list[QuestionIn]) -> list[Question]:
    existing = {q.id: q for q in test.questions}
    result: list[Question] = []
    for index, item in enumerate(items):
        if item.id is not None:
            question = existing.get(item.id)
            if question is None:
                raise ValidationError(
                    "Question does not belong to this test",
                    field=f"questions[{index}].id",
                )
        else:
            question = Question()
        question.question_text = item.question_text
        question.correct_answer = item.correct_answer
        question.hints = list(item.hints)
        question.micro_learning = item.micro_learning
        question.order = item.order if item.order is not None else index
        question.max_attempts_before_study = item.max_attempts_before_study
        result.append(question)
    return result


def replace_questions(test: Test, items: list[QuestionIn]) -> None:
    """Swap in a new question set and keep ``question_count`` in step with it.

    Questions missing from ``items`` are deleted (delete-orphan cascade); the
    caller commits both changes together.
    """
    test.questions = _build_question_set(test, items)
    test.question_count = len(test.questions)


async def create_test(db: Session, data: TestCreate, owner: User) -> Test:
    test = Test(
        title=data.title.strip(),
        description=data.description.strip(),
        scheduled_date=data.scheduled_date,
        duration=data.duration,
        status=TestStatus.DRAFT,
        created_by=owner.id,
    )
    test.questions = []
    replace_questions(test, data.questions)
    db.add(test)
    db.commit()
    db.refresh(test)

    logger.info(
        "Test created",
        extra={"test_id": str(test.id), "created_by": str(owner.id), "question_count": test.question_count},
    )
    return test


async def list_tests(
    db: Session,
    user: User,
    pagination: PaginationParams,
    status: TestStatus | None = None,
    search: str | None = None,
) -> tuple[list[Test], int]:
    """List tests the user authors (admins see every test)."""
    stmt = select(Test)
    if not user.is_admin:
        stmt = stmt.where(Test.created_by == user.id)
    if status is not None:
        stmt = stmt.where(Test.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Test.title.ilike(pattern), Test.description.ilike(pattern)))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    items = (
        db.execute(
            stmt.order_by(Test.created_at.desc(), Test.id)
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        .scalars()
        .all()
    )
    return list(items), total


async def list_available_tests(db: Session) -> list[Test]:
    """Tests a student can start right now."""
    return list(
        db.execute(
            select(Test)
            .where(Test.status == TestStatus.ACTIVE)
            .order_by(Test.scheduled_date, Test.id)
        )
        .scalars()
        .all()
    )


async def update_test(db: Session, test_id: UUID, data: TestUpdate, user: User) -> Test:
    test = get_test(db, test_id)
    ensure_can_manage(test, user)

    if data.questions is not None:
        if test.status != TestStatus.DRAFT:
            raise ConflictError(
                "TEST_NOT_EDITABLE",
                "Questions can only be edited while the test is a draft",
                {"status": test.status.value},
            )
        replace_questions(test, data.questions)

    for field in ("title", "description", "scheduled_date", "duration"):
        value = getattr(data, field)
        if value is not None:
            setattr(test, field, value.strip() if isinstance(value, str) else value)

    if data.status is not None and data.status != test.status:
        if data.status.rank < test.status.rank:
            raise ValidationError(
                f"Cannot move a test from {test.status.value} back to {data.status.value}",
                field="status",
            )
        if test.question_count == 0:
            raise ValidationError("A test needs at least one question to be published", field="status")
        logger.info(
            "Test status changed",
            extra={"test_id": str(test.id), "from": test.status.value, "to": data.status.value},
        )
        test.status = data.status

    db.commit()
    db.refresh(test)
    return test


async def delete_test(db: Session, test_id: UUID, user: User) -> None:
    test = get_test(db, test_id)
    ensure_can_manage(test, user)

    attempt_count = db.execute(
        select(func.count(TestAttempt.id)).where(TestAttempt.test_id == test.id)
    ).scalar_one()
    if attempt_count > 0:
        raise ConflictError(
            "TEST_HAS_ATTEMPTS",
            "Cannot delete a test that students have attempted",
            {"attempt_count": attempt_count},
        )

    db.delete(test)
    db.commit()
    logger.info("Test deleted", extra={"test_id": str(test_id), "deleted_by": str(user.id)})
