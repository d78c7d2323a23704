from .attempt_store import AttemptStore, MemoryAttemptStore, MongoAttemptStore
from .quiz_repository import QuizRepository, MemoryQuizRepository, MongoQuizRepository
from .grading_queue import GradingQueue
from .session import QuizSessionController
from .events import EventPublisher, DaprEventPublisher, InMemoryEventPublisher

__all__ = [
    "AttemptStore", "MemoryAttemptStore", "MongoAttemptStore",
    "QuizRepository", "MemoryQuizRepository", "MongoQuizRepository",
    "GradingQueue", "QuizSessionController",
    "EventPublisher", "DaprEventPublisher", "InMemoryEventPublisher"
]
