"""FastAPI dependency providers.

The container is built once at startup from settings: MongoDB collections
and Dapr-backed collaborators, or everything in memory when
STORAGE_BACKEND=memory. Tests swap it with `set_container`.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends

from ..config import settings
from ..services.attempt_store import AttemptStore, MemoryAttemptStore, MongoAttemptStore
from ..services.clients import (
    ACTIVE, AssignmentClient, DaprAssignmentClient, DaprEnrollmentClient, EnrollmentClient,
    StaticAssignmentClient, StaticEnrollmentClient
)
from ..services.events import DaprEventPublisher, EventPublisher, InMemoryEventPublisher
from ..services.grading_queue import GradingQueue
from ..services.quiz_repository import MemoryQuizRepository, MongoQuizRepository, QuizRepository
from ..services.session import QuizSessionController

logger = logging.getLogger(__name__)


@dataclass
class Container:
    quiz_repository: QuizRepository
    attempt_store: AttemptStore
    enrollment_client: EnrollmentClient
    assignment_client: AssignmentClient
    event_publisher: EventPublisher


_container: Optional[Container] = None


def build_memory_container() -> Container:
    enrollment_client = StaticEnrollmentClient(default_status=ACTIVE)
    return Container(
        quiz_repository=MemoryQuizRepository(),
        attempt_store=MemoryAttemptStore(enrollment_client),
        enrollment_client=enrollment_client,
        assignment_client=StaticAssignmentClient(),
        event_publisher=InMemoryEventPublisher(),
    )


def build_mongo_container(db) -> Container:
    enrollment_client = DaprEnrollmentClient()

    quiz_repository = MongoQuizRepository(db["quizzes"], db["quiz_versions"])
    quiz_repository.ensure_indexes()
    attempt_store = MongoAttemptStore(db["quiz_attempts"], enrollment_client)
    attempt_store.ensure_indexes()

    return Container(
        quiz_repository=quiz_repository,
        attempt_store=attempt_store,
        enrollment_client=enrollment_client,
        assignment_client=DaprAssignmentClient(),
        event_publisher=DaprEventPublisher(),
    )


def set_container(container: Optional[Container]):
    global _container
    _container = container


def get_container() -> Container:
    global _container
    if _container is None:
        logger.warning("Container requested before startup, using memory storage")
        _container = build_memory_container()
    return _container


def get_quiz_repository(container: Container = Depends(get_container)) -> QuizRepository:
    return container.quiz_repository


def get_attempt_store(container: Container = Depends(get_container)) -> AttemptStore:
    return container.attempt_store


def get_session_controller(container: Container = Depends(get_container)) -> QuizSessionController:
    return QuizSessionController(
        container.quiz_repository, container.attempt_store, container.event_publisher
    )


def get_grading_queue(container: Container = Depends(get_container)) -> GradingQueue:
    return GradingQueue(
        container.attempt_store, container.quiz_repository, container.assignment_client
    )


def storage_backend() -> str:
    return "memory" if settings.use_memory_storage else "mongodb"
