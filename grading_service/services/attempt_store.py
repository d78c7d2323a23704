# services/attempt_store.py
"""
Attempt store: attempt history per (quiz, enrollment) and manual grades.

The attempt limit and the pending -> graded transition both rely on
storage-level primitives rather than application locks:

- a unique slot per (quiz_id, enrollment_id, attempt_number): two
  submissions that count the same history race for the same slot and
  only one insert succeeds; the loser recounts.
- a `version` counter on every attempt: updates are compare-and-swap on
  the version read, so two graders cannot both move the same item out of
  `pending`.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import settings
from ..exceptions import (
    AttemptLimitExceeded, AttemptNotFound, EnrollmentNotActive, EnrollmentNotFound,
    InvalidGrade, PersistenceFailure, UnknownPendingItem
)
from ..models.attempt import (
    Attempt, AttemptStatus, GradingStatus, QuestionResult, SubmittedAnswer,
    make_request_key
)
from ..models.quiz import Quiz
from ..utils import utcnow
from .clients import ACTIVE, EnrollmentClient
from .scorer import has_pending, score_against_total

logger = logging.getLogger(__name__)


class DuplicateAttempt(Exception):
    """Raised by a backend when a unique constraint rejects an insert"""


class AttemptStore:
    def __init__(self, enrollment_client: EnrollmentClient, max_retries: Optional[int] = None):
        self.enrollment_client = enrollment_client
        self.max_retries = max_retries or settings.ATTEMPT_INSERT_RETRIES

    # Backend primitives
    def _count(self, quiz_id: str, enrollment_id: str) -> int:
        raise NotImplementedError

    def _insert(self, attempt: Attempt) -> None:
        raise NotImplementedError

    def _find_one(self, attempt_id: str) -> Optional[Attempt]:
        raise NotImplementedError

    def _find_by_request_key(self, key: str) -> Optional[Attempt]:
        raise NotImplementedError

    def _find(self, **criteria) -> List[Attempt]:
        raise NotImplementedError

    def _replace_if_version(self, attempt: Attempt, expected_version: int) -> bool:
        raise NotImplementedError

    # Enrollment gate
    def check_enrollment(self, enrollment_id: str):
        status = self.enrollment_client.get_status(enrollment_id)
        if status is None:
            raise EnrollmentNotFound(f"Enrollment {enrollment_id} not found")
        if status != ACTIVE:
            raise EnrollmentNotActive(f"Enrollment {enrollment_id} is {status}")

    # Attempt limit
    def count_attempts(self, quiz_id: str, enrollment_id: str) -> int:
        return self._count(quiz_id, enrollment_id)

    def ensure_attempt_available(self, quiz: Quiz, enrollment_id: str, count: Optional[int] = None):
        max_attempts = quiz.config.max_attempts
        if max_attempts <= 0:
            return
        if count is None:
            count = self._count(quiz.id, enrollment_id)
        if count >= max_attempts:
            raise AttemptLimitExceeded(
                f"Maximum attempts ({max_attempts}) reached for quiz {quiz.id}"
            )

    def find_replay(self, quiz_id: str, enrollment_id: str,
                    idempotency_key: Optional[str]) -> Optional[Attempt]:
        """Attempt already stored for this idempotency key, if any"""
        if not idempotency_key:
            return None
        return self._find_by_request_key(make_request_key(quiz_id, enrollment_id, idempotency_key))

    def create_attempt(
        self,
        quiz: Quiz,
        enrollment_id: str,
        answers: List[SubmittedAnswer],
        results: List[QuestionResult],
        started_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
        verify_enrollment: bool = True,
    ) -> Attempt:
        attempt, _ = self.create_or_replay(
            quiz, enrollment_id, answers, results, started_at, idempotency_key, verify_enrollment
        )
        return attempt

    def create_or_replay(
        self,
        quiz: Quiz,
        enrollment_id: str,
        answers: List[SubmittedAnswer],
        results: List[QuestionResult],
        started_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
        verify_enrollment: bool = True,
    ) -> Tuple[Attempt, bool]:
        """Store a new attempt, or return the one already stored for the idempotency key.

        The flag is True when a new attempt was inserted.
        """
        if verify_enrollment:
            self.check_enrollment(enrollment_id)

        scorecard = score_against_total(
            results, quiz.total_points, quiz.config.passing_score_percent
        )
        pending = has_pending(results)
        completed_at = utcnow()

        for _ in range(self.max_retries):
            replay = self.find_replay(quiz.id, enrollment_id, idempotency_key)
            if replay is not None:
                logger.info(f"Replayed attempt {replay.id} for idempotency key {idempotency_key}")
                return replay, False

            count = self._count(quiz.id, enrollment_id)
            self.ensure_attempt_available(quiz, enrollment_id, count)

            attempt = Attempt(
                quiz_id=quiz.id,
                quiz_version=quiz.version,
                enrollment_id=enrollment_id,
                attempt_number=count + 1,
                answers=answers,
                results=results,
                score=scorecard.score,
                total_points=scorecard.total_points,
                passing_score_percent=quiz.config.passing_score_percent,
                passed=scorecard.passed,
                status=AttemptStatus.AWAITING_MANUAL_GRADES if pending else AttemptStatus.FINAL,
                started_at=started_at or completed_at,
                completed_at=completed_at,
                finalized_at=None if pending else completed_at,
                idempotency_key=idempotency_key,
            )
            try:
                self._insert(attempt)
            except DuplicateAttempt:
                logger.warning(
                    f"Attempt slot {count + 1} for quiz {quiz.id} / enrollment {enrollment_id} "
                    f"taken concurrently, recounting"
                )
                continue

            logger.info(
                f"Attempt {attempt.id} stored: quiz {quiz.id}, enrollment {enrollment_id}, "
                f"#{attempt.attempt_number}, status {attempt.status}"
            )
            return attempt, True

        raise PersistenceFailure(
            f"Could not allocate an attempt slot for quiz {quiz.id} after {self.max_retries} tries"
        )

    def get_attempt(self, attempt_id: str) -> Attempt:
        attempt = self._find_one(attempt_id)
        if attempt is None:
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        return attempt

    def list_attempts(self, quiz_id: str, enrollment_id: str) -> List[Attempt]:
        """Attempts of one learner on one quiz, newest first"""
        attempts = self._find(quiz_id=quiz_id, enrollment_id=enrollment_id)
        return sorted(attempts, key=lambda a: a.attempt_number, reverse=True)

    def quiz_attempts(self, quiz_id: str) -> List[Attempt]:
        return self._find(quiz_id=quiz_id)

    def find_awaiting_grades(self) -> List[Attempt]:
        """Attempts holding at least one pending item, oldest submission first"""
        attempts = self._find(status=AttemptStatus.AWAITING_MANUAL_GRADES.value)
        return sorted(attempts, key=lambda a: a.completed_at)

    def record_manual_grade(
        self,
        attempt_id: str,
        question_id: str,
        awarded_points: float,
        grader_id: str,
        feedback: Optional[str] = None,
    ) -> Attempt:
        for _ in range(self.max_retries):
            attempt = self._find_one(attempt_id)
            if attempt is None:
                raise UnknownPendingItem(f"No pending item {question_id} on attempt {attempt_id}")

            result = attempt.result_for(question_id)
            if result is None or result.grading_status != GradingStatus.PENDING:
                raise UnknownPendingItem(f"No pending item {question_id} on attempt {attempt_id}")

            # Written so that NaN is rejected too
            if not (0 <= awarded_points <= result.max_points):
                raise InvalidGrade(
                    f"awarded_points must be between 0 and {result.max_points}, got {awarded_points}"
                )

            updated = self._apply_grade(attempt, question_id, awarded_points, grader_id, feedback)
            if self._replace_if_version(updated, attempt.version):
                logger.info(
                    f"Graded {question_id} on attempt {attempt_id}: {awarded_points}/{result.max_points} "
                    f"by {grader_id}; status {updated.status}"
                )
                return updated

            logger.warning(f"Attempt {attempt_id} changed while grading {question_id}, re-reading")

        raise PersistenceFailure(f"Could not record grade on attempt {attempt_id}: too much contention")

    def _apply_grade(self, attempt: Attempt, question_id: str, awarded_points: float,
                     grader_id: str, feedback: Optional[str]) -> Attempt:
        now = utcnow()
        results = []
        for r in attempt.results:
            if r.question_id == question_id:
                r = r.model_copy(update={
                    "awarded_points": awarded_points,
                    "correct": awarded_points >= r.max_points,
                    "grading_status": GradingStatus.GRADED.value,
                    "feedback": feedback,
                    "graded_by": grader_id,
                    "graded_at": now,
                })
            results.append(r)

        scorecard = score_against_total(results, attempt.total_points, attempt.passing_score_percent)
        final = not has_pending(results)
        return attempt.model_copy(update={
            "results": results,
            "score": scorecard.score,
            "passed": scorecard.passed,
            "status": AttemptStatus.FINAL.value if final else attempt.status,
            "finalized_at": now if final else None,
            "version": attempt.version + 1,
        })


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error(f"MongoDB error during {operation}: {e}")
        raise PersistenceFailure(f"Storage failure during {operation}") from e


class MongoAttemptStore(AttemptStore):
    def __init__(self, collection: Collection, enrollment_client: EnrollmentClient, **kwargs):
        super().__init__(enrollment_client, **kwargs)
        self.collection = collection

    def ensure_indexes(self):
        with _storage_errors("index creation"):
            self.collection.create_index(
                [("quiz_id", ASCENDING), ("enrollment_id", ASCENDING), ("attempt_number", ASCENDING)],
                unique=True, name="attempt_slot"
            )
            self.collection.create_index("request_key", unique=True, sparse=True, name="request_key")
            self.collection.create_index(
                [("status", ASCENDING), ("completed_at", ASCENDING)], name="status_completed"
            )

    def _count(self, quiz_id: str, enrollment_id: str) -> int:
        with _storage_errors("count"):
            return self.collection.count_documents({"quiz_id": quiz_id, "enrollment_id": enrollment_id})

    def _insert(self, attempt: Attempt) -> None:
        with _storage_errors("insert"):
            try:
                self.collection.insert_one(attempt.to_document())
            except DuplicateKeyError as e:
                raise DuplicateAttempt(str(e)) from e

    def _find_one(self, attempt_id: str) -> Optional[Attempt]:
        with _storage_errors("find"):
            doc = self.collection.find_one({"_id": attempt_id})
        return Attempt.from_document(doc) if doc else None

    def _find_by_request_key(self, key: str) -> Optional[Attempt]:
        with _storage_errors("find"):
            doc = self.collection.find_one({"request_key": key})
        return Attempt.from_document(doc) if doc else None

    def _find(self, **criteria) -> List[Attempt]:
        with _storage_errors("find"):
            docs = list(self.collection.find(criteria).sort("completed_at", DESCENDING))
        return [Attempt.from_document(doc) for doc in docs]

    def _replace_if_version(self, attempt: Attempt, expected_version: int) -> bool:
        with _storage_errors("update"):
            result = self.collection.replace_one(
                {"_id": attempt.id, "version": expected_version},
                attempt.to_document(),
            )
        return result.matched_count == 1


class MemoryAttemptStore(AttemptStore):
    """In-process backend with the same unique-slot and version semantics"""

    def __init__(self, enrollment_client: EnrollmentClient, **kwargs):
        super().__init__(enrollment_client, **kwargs)
        self._lock = threading.Lock()
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._slots: Dict[tuple, str] = {}
        self._request_keys: Dict[str, str] = {}

    def _load(self, doc: Optional[Dict[str, Any]]) -> Optional[Attempt]:
        return Attempt.from_document(copy.deepcopy(doc)) if doc else None

    def _count(self, quiz_id: str, enrollment_id: str) -> int:
        with self._lock:
            return sum(
                1 for d in self._docs.values()
                if d["quiz_id"] == quiz_id and d["enrollment_id"] == enrollment_id
            )

    def _insert(self, attempt: Attempt) -> None:
        doc = copy.deepcopy(attempt.to_document())
        slot = (attempt.quiz_id, attempt.enrollment_id, attempt.attempt_number)
        key = doc.get("request_key")
        with self._lock:
            if slot in self._slots or (key and key in self._request_keys):
                raise DuplicateAttempt(f"Duplicate attempt slot {slot}")
            self._slots[slot] = attempt.id
            if key:
                self._request_keys[key] = attempt.id
            self._docs[attempt.id] = doc

    def _find_one(self, attempt_id: str) -> Optional[Attempt]:
        with self._lock:
            return self._load(self._docs.get(attempt_id))

    def _find_by_request_key(self, key: str) -> Optional[Attempt]:
        with self._lock:
            attempt_id = self._request_keys.get(key)
            return self._load(self._docs.get(attempt_id)) if attempt_id else None

    def _find(self, **criteria) -> List[Attempt]:
        with self._lock:
            return [
                self._load(d) for d in self._docs.values()
                if all(d.get(k) == v for k, v in criteria.items())
            ]

    def _replace_if_version(self, attempt: Attempt, expected_version: int) -> bool:
        with self._lock:
            current = self._docs.get(attempt.id)
            if current is None or current["version"] != expected_version:
                return False
            self._docs[attempt.id] = copy.deepcopy(attempt.to_document())
            return True
