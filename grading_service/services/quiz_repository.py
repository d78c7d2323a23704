# services/quiz_repository.py
"""
Quiz definitions and their grading snapshots.

`quizzes` holds the current definition of each quiz. `quiz_versions` holds
one immutable copy per grading-relevant revision, keyed by (quiz, version);
attempts point at the version they were graded against.
"""
import copy
import logging
import threading
from typing import Any, Dict, Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..exceptions import DuplicateQuestion, PersistenceFailure, QuestionNotFound, QuizNotFound
from ..models.quiz import QuestionBase, Quiz, QuizCreate, QuizUpdate
from ..utils import utcnow

logger = logging.getLogger(__name__)

# Fields whose change does not affect grading
METADATA_FIELDS = {"title", "description", "section_id"}


def _version_key(quiz_id: str, version: int) -> str:
    return f"{quiz_id}:{version}"


class QuizRepository:
    # Backend primitives
    def _load_current(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _load_version(self, quiz_id: str, version: int) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _save(self, quiz: Quiz, snapshot: bool) -> None:
        raise NotImplementedError

    def create(self, quiz_data: QuizCreate) -> Quiz:
        """Create a new quiz"""
        questions = sorted(quiz_data.questions, key=lambda q: q.position)
        quiz = Quiz(**{**quiz_data.model_dump(exclude={"questions"}), "questions": questions})
        self._save(quiz, snapshot=True)
        logger.info(f"Quiz created: {quiz.id} ({quiz.title}), {len(quiz.questions)} questions")
        return quiz

    def get(self, quiz_id: str) -> Quiz:
        doc = self._load_current(quiz_id)
        if doc is None:
            raise QuizNotFound(f"Quiz {quiz_id} not found")
        return Quiz.from_document(doc)

    def get_version(self, quiz_id: str, version: int) -> Quiz:
        """The quiz exactly as it was when `version` was current"""
        doc = self._load_version(quiz_id, version)
        if doc is None:
            raise QuizNotFound(f"Quiz {quiz_id} version {version} not found")
        return Quiz.from_document(doc)

    def update(self, quiz_id: str, update_data: QuizUpdate) -> Quiz:
        quiz = self.get(quiz_id)
        changes = {
            k: v for k, v in update_data.model_dump(exclude_unset=True).items()
            if v is not None or k in ("description", "section_id")
        }
        if "config" in changes:
            config_changes = {
                k: v for k, v in update_data.config.model_dump(exclude_unset=True).items()
                if v is not None
            }
            config = quiz.config.model_copy(update=config_changes)
            if config == quiz.config:
                del changes["config"]
            else:
                changes["config"] = config
        if not changes:
            return quiz

        grading_change = any(k not in METADATA_FIELDS for k in changes)
        if grading_change:
            changes["version"] = quiz.version + 1
        changes["updated_at"] = utcnow()

        updated = quiz.model_copy(update=changes)
        self._save(updated, snapshot=grading_change)
        logger.info(f"Quiz updated: {quiz_id} (version {updated.version})")
        return updated

    def add_question(self, quiz_id: str, question: QuestionBase) -> Quiz:
        quiz = self.get(quiz_id)
        if quiz.question(question.id) is not None:
            raise DuplicateQuestion(f"Question {question.id} already exists in quiz {quiz_id}")

        if "position" not in question.model_fields_set:
            question = question.model_copy(update={
                "position": max((q.position for q in quiz.questions), default=-1) + 1
            })
        questions = sorted(quiz.questions + [question], key=lambda q: q.position)
        updated = quiz.model_copy(update={
            "questions": questions, "version": quiz.version + 1, "updated_at": utcnow()
        })
        self._save(updated, snapshot=True)
        logger.info(f"Question {question.id} added to quiz {quiz_id} (version {updated.version})")
        return updated

    def remove_question(self, quiz_id: str, question_id: str) -> Quiz:
        quiz = self.get(quiz_id)
        if quiz.question(question_id) is None:
            raise QuestionNotFound(f"Question {question_id} not found in quiz {quiz_id}")

        updated = quiz.model_copy(update={
            "questions": [q for q in quiz.questions if q.id != question_id],
            "version": quiz.version + 1,
            "updated_at": utcnow(),
        })
        self._save(updated, snapshot=True)
        logger.info(f"Question {question_id} removed from quiz {quiz_id} (version {updated.version})")
        return updated


class MongoQuizRepository(QuizRepository):
    def __init__(self, quizzes: Collection, versions: Collection):
        self.quizzes = quizzes
        self.versions = versions

    def ensure_indexes(self):
        try:
            self.quizzes.create_index("course_id")
            self.quizzes.create_index("section_id")
            self.versions.create_index([("quiz_id", 1), ("version", 1)], unique=True)
        except PyMongoError as e:
            logger.error(f"MongoDB error during index creation: {e}")
            raise PersistenceFailure("Storage failure during index creation") from e

    def _load_current(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.quizzes.find_one({"_id": quiz_id})
        except PyMongoError as e:
            logger.error(f"MongoDB error loading quiz {quiz_id}: {e}")
            raise PersistenceFailure(f"Could not load quiz {quiz_id}") from e

    def _load_version(self, quiz_id: str, version: int) -> Optional[Dict[str, Any]]:
        try:
            doc = self.versions.find_one({"_id": _version_key(quiz_id, version)})
        except PyMongoError as e:
            logger.error(f"MongoDB error loading quiz {quiz_id} v{version}: {e}")
            raise PersistenceFailure(f"Could not load quiz {quiz_id}") from e
        if doc is None:
            return None
        doc = dict(doc)
        doc["_id"] = doc.pop("quiz_id")
        return doc

    def _save(self, quiz: Quiz, snapshot: bool) -> None:
        doc = quiz.to_document()
        try:
            # Snapshot first: the current document must never reference a missing version
            if snapshot:
                version_doc = {**doc, "_id": _version_key(quiz.id, quiz.version), "quiz_id": quiz.id}
                self.versions.replace_one({"_id": version_doc["_id"]}, version_doc, upsert=True)
            self.quizzes.replace_one({"_id": quiz.id}, doc, upsert=True)
        except PyMongoError as e:
            logger.error(f"MongoDB error saving quiz {quiz.id}: {e}")
            raise PersistenceFailure(f"Could not save quiz {quiz.id}") from e


class MemoryQuizRepository(QuizRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._quizzes: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, Dict[str, Any]] = {}

    def _load_current(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._quizzes.get(quiz_id)
            return copy.deepcopy(doc) if doc else None

    def _load_version(self, quiz_id: str, version: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._versions.get(_version_key(quiz_id, version))
            return copy.deepcopy(doc) if doc else None

    def _save(self, quiz: Quiz, snapshot: bool) -> None:
        doc = quiz.to_document()
        with self._lock:
            if snapshot:
                self._versions[_version_key(quiz.id, quiz.version)] = copy.deepcopy(doc)
            self._quizzes[quiz.id] = doc
