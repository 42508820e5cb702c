"""API tests for admin analytics and the student dashboard."""

from datetime import datetime, timedelta, timezone

import pytest

from kidquiz.models.attempt import AttemptStatus
from kidquiz.models.performance import PerformanceMetrics
from kidquiz.models.quiz import TestStatus
from tests.helpers.seed import create_attempt, create_quiz, create_test_student


@pytest.fixture
def cohort(db, teacher_user, student_user):
    """Two tests, three students, a mix of attempt states."""
    animals = create_quiz(db, teacher_user, title="Animals")
    colours = create_quiz(db, teacher_user, title="Colours", status=TestStatus.COMPLETED)
    mia = create_test_student(db, full_name="Mia Moon", email="mia@school.example.com")
    leo = create_test_student(db, full_name="Leo Lake", email="leo@school.example.com")

    now = datetime.now(timezone.utc)
    create_attempt(db, animals, student_user, basic_score=100, started_at=now - timedelta(hours=3))
    create_attempt(db, animals, mia, basic_score=67, started_at=now - timedelta(hours=2))
    create_attempt(db, animals, leo, status=AttemptStatus.IN_PROGRESS, started_at=now - timedelta(hours=1))
    create_attempt(db, colours, mia, basic_score=33, started_at=now - timedelta(days=1))
    return {"animals": animals, "colours": colours, "mia": mia, "leo": leo}


def test_overview(client, cohort, auth_headers_admin):
    response = client.get("/v1/admin/analytics/overview", headers=auth_headers_admin)

    assert response.status_code == 200
    data = response.json()
    assert data["stats"] == {"total_students": 3, "active_tests": 1, "avg_score": 66.67, "total_attempts": 4}
    animals = next(t for t in data["tests"] if t["title"] == "Animals")
    assert animals["total_attempts"] == 3
    assert animals["completed_attempts"] == 2
    assert animals["average_score"] == 83.5
    assert animals["completion_rate"] == 66.67


def test_overview_is_admin_only(client, cohort, auth_headers_teacher):
    response = client.get("/v1/admin/analytics/overview", headers=auth_headers_teacher)

    assert response.status_code == 403


def test_overview_is_stable_across_calls(client, cohort, auth_headers_admin):
    first = client.get("/v1/admin/analytics/overview", headers=auth_headers_admin).json()
    second = client.get("/v1/admin/analytics/overview", headers=auth_headers_admin).json()

    assert first == second


def test_attempt_list_filters_before_paging(client, cohort, auth_headers_admin):
    response = client.get(
        "/v1/admin/analytics/attempts",
        params={"status": "completed", "min_score": 50, "page_size": 1},
        headers=auth_headers_admin,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["total_pages"] == 2
    assert len(data["items"]) == 1
    # Most recent first
    assert data["items"][0]["student_name"] == "Mia Moon"
    assert data["summary"]["completed_attempts"] == 2
    assert data["summary"]["average_score"] == 83.5


def test_attempt_list_search(client, cohort, auth_headers_admin):
    by_email = client.get(
        "/v1/admin/analytics/attempts", params={"search": "leo@school"}, headers=auth_headers_admin
    ).json()
    by_title = client.get(
        "/v1/admin/analytics/attempts", params={"search": "colour", "status": "all"}, headers=auth_headers_admin
    ).json()

    assert [i["student_name"] for i in by_email["items"]] == ["Leo Lake"]
    assert [i["test_title"] for i in by_title["items"]] == ["Colours"]


def test_attempt_list_rejects_unknown_status(client, auth_headers_admin):
    response = client.get(
        "/v1/admin/analytics/attempts", params={"status": "paused"}, headers=auth_headers_admin
    )

    assert response.status_code == 422


def test_test_stats(client, cohort, auth_headers_admin):
    response = client.get(f"/v1/admin/analytics/tests/{cohort['colours'].id}", headers=auth_headers_admin)

    assert response.status_code == 200
    assert response.json()["average_score"] == 33.0
    assert response.json()["completion_rate"] == 100.0


def test_performance_matrix(client, cohort, auth_headers_admin):
    response = client.get(
        "/v1/admin/analytics/matrix", params={"test_id": str(cohort["animals"].id)}, headers=auth_headers_admin
    )

    assert response.status_code == 200
    points = response.json()
    assert len(points) == 2
    top = [p for p in points if p["is_top_student"]]
    assert [p["original_y"] for p in top] == [100.0]


def test_student_performance_and_recompute(client, db, cohort, auth_headers_admin):
    mia = cohort["mia"]

    response = client.get(f"/v1/admin/analytics/students/{mia.id}/performance", headers=auth_headers_admin)
    recompute = client.post(
        f"/v1/admin/analytics/students/{mia.id}/performance/recompute", headers=auth_headers_admin
    )

    assert response.status_code == 200
    rollups = response.json()
    assert rollups[0]["test_id"] is None
    assert rollups[0]["total_attempts"] == 2
    assert rollups[0]["average_basic_score"] == 50.0
    assert len(rollups) == 3
    assert recompute.json() == rollups
    stored = db.query(PerformanceMetrics).filter(PerformanceMetrics.student_id == mia.id).count()
    assert stored == 3


def test_recompute_drops_rollups_without_completed_attempts(client, db, cohort, teacher_user, auth_headers_admin):
    mia = cohort["mia"]
    shapes = create_quiz(db, teacher_user, title="Shapes")
    db.add(PerformanceMetrics(student_id=mia.id, test_id=shapes.id, total_attempts=1, average_basic_score=40.0))
    db.commit()

    response = client.post(
        f"/v1/admin/analytics/students/{mia.id}/performance/recompute", headers=auth_headers_admin
    )

    assert response.status_code == 200
    rows = db.query(PerformanceMetrics).filter(PerformanceMetrics.student_id == mia.id).all()
    assert len(rows) == 3
    assert shapes.id not in {r.test_id for r in rows}
    assert {r.test_id for r in rows} == {None, cohort["animals"].id, cohort["colours"].id}


def test_student_performance_unknown_student(client, auth_headers_admin):
    response = client.get(
        "/v1/admin/analytics/students/00000000-0000-0000-0000-000000000000/performance",
        headers=auth_headers_admin,
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "STUDENT_NOT_FOUND"


def test_my_attempts_and_dashboard(client, cohort, auth_headers_student):
    attempts = client.get("/v1/me/attempts", headers=auth_headers_student).json()
    dashboard = client.get("/v1/me/dashboard", headers=auth_headers_student).json()

    assert attempts["total"] == 1
    assert attempts["items"][0]["test_title"] == "Animals"
    assert dashboard["tests_completed"] == 1
    assert dashboard["average_score"] == 100.0
    assert dashboard["total_stars"] == 5
    assert dashboard["streak"] >= 1
    assert len(dashboard["recent_attempts"]) == 1
