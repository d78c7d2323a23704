from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from grading_service.main import app
from grading_service.models.attempt import QuestionResult
from grading_service.models.quiz import parse_question
from grading_service.services.scorer import score_results
from grading_service.utils.dependencies import get_container

from tests.conftest import ENROLLMENT, essay_fill_quiz_data, mc_tf_quiz_data


@pytest.fixture(params=["memory", "mongodb"])
def backend_client(request, container):
    if request.param == "mongodb":
        container = replace(
            container,
            quiz_repository=request.getfixturevalue("mongo_quiz_repository"),
            attempt_store=request.getfixturevalue("mongo_attempt_store"),
        )
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, data):
    response = client.post("/quizzes", json=data)
    assert response.status_code == 201
    return response.json()


def _submit(client, quiz_id, answers):
    response = client.post(f"/quizzes/{quiz_id}/attempts", json={
        "enrollment_id": ENROLLMENT,
        "answers": [{"question_id": k, "answer": v} for k, v in answers.items()],
    })
    assert response.status_code == 201
    return response.json()


def _rescore(client, attempt_id, quiz):
    """Load an attempt over HTTP and score its results again"""
    attempt = client.get(f"/attempts/{attempt_id}").json()
    results = [QuestionResult(**r) for r in attempt["results"]]
    questions = [parse_question(q) for q in quiz["questions"]]
    return attempt, score_results(questions, results, attempt["passing_score_percent"])


def test_final_attempt_rescores_to_stored_values(backend_client):
    quiz = _create(backend_client, mc_tf_quiz_data())
    view = _submit(backend_client, quiz["id"], {"q-mc": "B", "q-tf": "false"})

    attempt, scorecard = _rescore(backend_client, view["attempt_id"], quiz)

    assert attempt["status"] == "final"
    assert scorecard.score == attempt["score"] == 2
    assert scorecard.total_points == attempt["total_points"]
    assert scorecard.passed is attempt["passed"] is False


def test_pending_and_graded_attempt_rescore_to_stored_values(backend_client):
    quiz = _create(backend_client, essay_fill_quiz_data())
    view = _submit(backend_client, quiz["id"], {"q-essay": "The Seine", "q-fill": "Paris"})

    attempt, scorecard = _rescore(backend_client, view["attempt_id"], quiz)
    assert attempt["status"] == "awaiting_manual_grades"
    assert scorecard.score == attempt["score"] == 5
    assert scorecard.passed is attempt["passed"] is None

    response = backend_client.post(f"/attempts/{view['attempt_id']}/grade", json={
        "question_id": "q-essay", "awarded_points": 3.5, "grader_id": "inst-1"
    })
    assert response.status_code == 200

    attempt, scorecard = _rescore(backend_client, view["attempt_id"], quiz)
    assert attempt["status"] == "final"
    assert scorecard.score == attempt["score"] == 8.5
    assert scorecard.passed is attempt["passed"] is True
