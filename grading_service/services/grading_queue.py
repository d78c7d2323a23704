# services/grading_queue.py
"""
Pending manual grading, derived on demand from the attempt store.

Nothing here is stored: every call rescans attempts awaiting grades, so
the queue cannot drift from the attempts themselves.
"""
import logging
from typing import Dict, List, Optional, Tuple

from ..exceptions import QuizNotFound
from ..models.attempt import Attempt
from ..models.grading import GradingTask
from ..models.quiz import EssayQuestion, Quiz
from .attempt_store import AttemptStore
from .clients import AssignmentClient
from .quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


class GradingQueue:
    def __init__(self, attempt_store: AttemptStore, quiz_repository: QuizRepository,
                 assignment_client: AssignmentClient):
        self.attempt_store = attempt_store
        self.quiz_repository = quiz_repository
        self.assignment_client = assignment_client

    def list_pending(self, instructor_id: Optional[str] = None) -> List[GradingTask]:
        sections = None
        if instructor_id:
            sections = set(self.assignment_client.instructor_sections_for(instructor_id))
            if not sections:
                return []

        current: Dict[str, Optional[Quiz]] = {}
        snapshots: Dict[Tuple[str, int], Optional[Quiz]] = {}
        tasks = []
        for attempt in self.attempt_store.find_awaiting_grades():
            # Section and title follow the current quiz; questions follow the graded version
            if attempt.quiz_id not in current:
                current[attempt.quiz_id] = self._current(attempt)
            quiz = current[attempt.quiz_id]
            if quiz is None:
                continue
            if sections is not None and quiz.section_id not in sections:
                continue

            key = (attempt.quiz_id, attempt.quiz_version)
            if key not in snapshots:
                snapshots[key] = self._snapshot(attempt)
            snapshot = snapshots[key]
            if snapshot is None:
                continue
            tasks.extend(self._tasks_for(attempt, quiz, snapshot, instructor_id))

        logger.debug(f"Pending grading tasks: {len(tasks)} (instructor={instructor_id})")
        return tasks

    def _current(self, attempt: Attempt) -> Optional[Quiz]:
        try:
            return self.quiz_repository.get(attempt.quiz_id)
        except QuizNotFound:
            logger.warning(
                f"Attempt {attempt.id} references missing quiz {attempt.quiz_id}; skipped from grading queue"
            )
            return None

    def _snapshot(self, attempt: Attempt) -> Optional[Quiz]:
        try:
            return self.quiz_repository.get_version(attempt.quiz_id, attempt.quiz_version)
        except QuizNotFound:
            logger.warning(
                f"Attempt {attempt.id} references missing quiz {attempt.quiz_id} "
                f"v{attempt.quiz_version}; skipped from grading queue"
            )
            return None

    def _tasks_for(self, attempt: Attempt, quiz: Quiz, snapshot: Quiz,
                   instructor_id: Optional[str]) -> List[GradingTask]:
        tasks = []
        for question_id in attempt.pending_question_ids:
            question = snapshot.question(question_id)
            result = attempt.result_for(question_id)
            tasks.append(GradingTask(
                attempt_id=attempt.id,
                question_id=question_id,
                quiz_id=quiz.id,
                quiz_title=quiz.title,
                enrollment_id=attempt.enrollment_id,
                instructor_id=instructor_id,
                question_text=question.text if question else "",
                rubric=question.rubric if isinstance(question, EssayQuestion) else None,
                submitted_answer=attempt.answer_for(question_id),
                max_points=result.max_points,
                submitted_at=attempt.completed_at,
            ))
        return tasks
