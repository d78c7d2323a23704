import mongomock
import pytest
from fastapi.testclient import TestClient

from grading_service.main import app
from grading_service.models.quiz import QuizCreate
from grading_service.services.attempt_store import MemoryAttemptStore, MongoAttemptStore
from grading_service.services.clients import ACTIVE, StaticAssignmentClient, StaticEnrollmentClient
from grading_service.services.events import InMemoryEventPublisher
from grading_service.services.grading_queue import GradingQueue
from grading_service.services.quiz_repository import MemoryQuizRepository, MongoQuizRepository
from grading_service.services.session import QuizSessionController
from grading_service.utils.dependencies import Container, get_container

ENROLLMENT = "enr-1"


@pytest.fixture
def enrollment_client():
    return StaticEnrollmentClient({ENROLLMENT: ACTIVE, "enr-2": ACTIVE, "enr-done": "completed"})


@pytest.fixture
def assignment_client():
    return StaticAssignmentClient({"inst-1": ["sec-a"], "inst-2": ["sec-b"]})


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def quiz_repository():
    return MemoryQuizRepository()


@pytest.fixture
def attempt_store(enrollment_client):
    return MemoryAttemptStore(enrollment_client)


@pytest.fixture
def mongo_db():
    client = mongomock.MongoClient()
    yield client["gradingdb_test"]
    client.close()


@pytest.fixture
def mongo_attempt_store(mongo_db, enrollment_client):
    store = MongoAttemptStore(mongo_db["quiz_attempts"], enrollment_client)
    store.ensure_indexes()
    return store


@pytest.fixture
def mongo_quiz_repository(mongo_db):
    repository = MongoQuizRepository(mongo_db["quizzes"], mongo_db["quiz_versions"])
    repository.ensure_indexes()
    return repository


@pytest.fixture
def controller(quiz_repository, attempt_store, publisher):
    return QuizSessionController(quiz_repository, attempt_store, publisher)


@pytest.fixture
def grading_queue(attempt_store, quiz_repository, assignment_client):
    return GradingQueue(attempt_store, quiz_repository, assignment_client)


@pytest.fixture
def container(quiz_repository, attempt_store, enrollment_client, assignment_client, publisher):
    return Container(
        quiz_repository=quiz_repository,
        attempt_store=attempt_store,
        enrollment_client=enrollment_client,
        assignment_client=assignment_client,
        event_publisher=publisher,
    )


@pytest.fixture
def client(container):
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


# =====================
# Quiz builders
# =====================
def mc_tf_quiz_data(**config):
    return {
        "course_id": "course-1",
        "section_id": "sec-a",
        "title": "Basics",
        "config": {"passing_score_percent": 70, **config},
        "questions": [
            {"id": "q-mc", "position": 0, "type": "multiple_choice", "text": "Pick B",
             "points": 2, "options": ["A", "B", "C"], "correct_option": "B",
             "explanation": "B is the second letter"},
            {"id": "q-tf", "position": 1, "type": "true_false", "text": "True?",
             "points": 1, "correct_answer": True},
        ],
    }


def essay_fill_quiz_data(**config):
    return {
        "course_id": "course-1",
        "section_id": "sec-a",
        "title": "Geography",
        "gates_completion": True,
        "config": {"passing_score_percent": 50, **config},
        "questions": [
            {"id": "q-essay", "position": 0, "type": "essay", "text": "Describe Paris",
             "points": 5, "rubric": "Mentions the Seine"},
            {"id": "q-fill", "position": 1, "type": "fill_blank", "text": "Capital of France",
             "points": 5, "correct_answer": "paris"},
        ],
    }


@pytest.fixture
def mc_tf_quiz(quiz_repository):
    return quiz_repository.create(QuizCreate(**mc_tf_quiz_data()))


@pytest.fixture
def essay_quiz(quiz_repository):
    return quiz_repository.create(QuizCreate(**essay_fill_quiz_data()))
