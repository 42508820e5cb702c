"""API tests for the AI authoring endpoints."""


def test_analyze_document(client, auth_headers_teacher, llm):
    llm.queue(
        "analyze-document",
        {
            "type": "educational",
            "greeting": "Hi!",
            "analysis": "A text about farm animals.",
            "topics": ["animals", "farms"],
            "suggestedQuestionCount": 6,
        },
    )

    response = client.post(
        "/v1/ai/analyze-document",
        json={"content": "Cows, pigs and sheep live on the farm."},
        headers=auth_headers_teacher,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["topics"] == ["animals", "farms"]
    assert data["suggested_question_count"] == 6
    assert data["clarification"] is None


def test_extract_questions(client, auth_headers_admin, llm):
    llm.queue(
        "extract-questions",
        {
            "questions": [
                {"questionText": "Cows give us ____?", "correctAnswer": "milk", "hints": ["White drink"]},
                {"questionText": "Hens lay ____?", "correctAnswer": "eggs"},
            ]
        },
    )

    response = client.post(
        "/v1/ai/extract-questions",
        json={"content": "Cows give us milk. Hens lay eggs.", "count": 1},
        headers=auth_headers_admin,
    )

    assert response.status_code == 200
    questions = response.json()["questions"]
    assert len(questions) == 1
    assert questions[0]["correct_answer"] == "milk"
    assert llm.calls_for("extract-questions")[0].metadata["input"]["count"] == 1


def test_regenerate_question_preserves_dirty_fields(client, auth_headers_teacher, llm):
    llm.queue(
        "regenerate-question",
        {"title": "What do cows drink?", "answer": "juice", "topics": ["farm"], "marks": 2},
    )

    response = client.post(
        "/v1/ai/regenerate-question",
        json={
            "document_text": "Cows drink water.",
            "current_question": {"title": "Cows drink ____?", "answer": "water", "marks": 1},
            "dirty_fields": ["answer"],
        },
        headers=auth_headers_teacher,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["preserved_fields"] == ["answer"]
    assert data["question"]["answer"] == "water"
    assert data["question"]["title"] == "What do cows drink?"
    sent = llm.calls_for("regenerate-question")[0].metadata["input"]
    assert sent["preserveFields"] == ["answer"]
    assert "answer" not in sent["regenerateFields"]


def test_regenerate_rejects_unknown_dirty_field(client, auth_headers_teacher):
    response = client.post(
        "/v1/ai/regenerate-question",
        json={
            "current_question": {"title": "Q", "answer": "A"},
            "dirty_fields": ["colour"],
        },
        headers=auth_headers_teacher,
    )

    assert response.status_code == 422


def test_delegate_outage_is_503(client, auth_headers_teacher, llm):
    llm.fail("analyze-document")

    response = client.post(
        "/v1/ai/analyze-document",
        json={"content": "Some classroom text to analyze."},
        headers=auth_headers_teacher,
    )

    assert response.status_code == 503
    body = response.json()
    assert body["error_code"] == "DELEGATE_UNAVAILABLE"
    assert body["details"]["retryable"] is True
    assert len(llm.calls_for("analyze-document")) == 2


def test_students_cannot_use_authoring_tools(client, auth_headers_student):
    response = client.post(
        "/v1/ai/analyze-document",
        json={"content": "Some classroom text to analyze."},
        headers=auth_headers_student,
    )

    assert response.status_code == 403
