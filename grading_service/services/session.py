# services/session.py
"""
Quiz session controller: one submission from intake to stored attempt.

    Received -> Validated -> Scored -> Persisted -> Finalized | AwaitingManualGrades

Validation (quiz, answers, enrollment, attempt limit) happens before any
scoring work. Nothing is written before the single attempt insert, so a
request that fails earlier leaves no trace. The controller never retries;
a client that wants safe retries sends an Idempotency-Key.
"""
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..exceptions import EmptyQuiz, InvalidSubmission, QuizNotFound
from ..config import settings
from ..models.attempt import Attempt, GradingStatus, SubmittedAnswer
from ..models.grading import ManualGradeRequest
from ..models.quiz import (
    FillBlankQuestion, LearnerQuestion, LearnerQuizView, MultipleChoiceQuestion,
    QuestionBase, Quiz, TrueFalseQuestion
)
from ..models.schemas import (
    FINAL_MESSAGE, PENDING_REVIEW_MESSAGE, AttemptSubmission, AttemptSummary,
    LearnerAttemptView, LearnerQuestionResult, QuizStats
)
from ..utils import utcnow
from .attempt_store import AttemptStore
from .evaluator import evaluate_all
from .events import EventPublisher
from .quiz_repository import QuizRepository
from .scorer import display_percentage

logger = logging.getLogger(__name__)


def correct_answer_of(question: Optional[QuestionBase]) -> Any:
    if isinstance(question, MultipleChoiceQuestion):
        return question.correct_option
    if isinstance(question, (TrueFalseQuestion, FillBlankQuestion)):
        return question.correct_answer
    return None


class QuizSessionController:
    def __init__(self, quiz_repository: QuizRepository, attempt_store: AttemptStore,
                 event_publisher: EventPublisher):
        self.quiz_repository = quiz_repository
        self.attempt_store = attempt_store
        self.event_publisher = event_publisher

    # =====================
    # Submission
    # =====================
    def submit(self, quiz_id: str, submission: AttemptSubmission,
               idempotency_key: Optional[str] = None) -> LearnerAttemptView:
        enrollment_id = submission.enrollment_id
        logger.info(f"Quiz submission: {quiz_id} by enrollment {enrollment_id}")

        # Received -> Validated
        quiz = self.quiz_repository.get(quiz_id)

        replay = self.attempt_store.find_replay(quiz_id, enrollment_id, idempotency_key)
        if replay is not None:
            logger.info(f"Submission replayed: attempt {replay.id} (key {idempotency_key})")
            return self.learner_view(replay, self._snapshot_for(replay, quiz))

        if quiz.total_points <= 0:
            raise EmptyQuiz(f"Quiz {quiz_id} has no points to score")
        answers = self._validate_answers(quiz, submission.answers)
        self.attempt_store.check_enrollment(enrollment_id)
        self.attempt_store.ensure_attempt_available(quiz, enrollment_id)

        # Validated -> Scored
        results = evaluate_all(quiz, {a.question_id: a.answer for a in answers})

        # Scored -> Persisted
        attempt, created = self.attempt_store.create_or_replay(
            quiz, enrollment_id, answers, results,
            started_at=self._normalize_started_at(submission.started_at),
            idempotency_key=idempotency_key,
            verify_enrollment=False,
        )

        # Persisted -> Finalized | AwaitingManualGrades
        if created and attempt.is_final:
            self._on_finalized(attempt, quiz)
        elif created:
            logger.info(
                f"Attempt {attempt.id} awaiting manual grades for {len(attempt.pending_question_ids)} item(s)"
            )

        return self.learner_view(attempt, self._snapshot_for(attempt, quiz))

    def _validate_answers(self, quiz: Quiz, answers: List[SubmittedAnswer]) -> List[SubmittedAnswer]:
        """One answer per quiz question, in quiz order; missing ones are null"""
        submitted: Dict[str, Any] = {}
        for answer in answers:
            if quiz.question(answer.question_id) is None:
                raise InvalidSubmission(f"Question {answer.question_id} is not part of quiz {quiz.id}")
            if answer.question_id in submitted:
                raise InvalidSubmission(f"Question {answer.question_id} answered more than once")
            submitted[answer.question_id] = answer.answer

        return [
            SubmittedAnswer(question_id=q.id, answer=submitted.get(q.id))
            for q in quiz.questions
        ]

    @staticmethod
    def _normalize_started_at(started_at: Optional[datetime]) -> Optional[datetime]:
        if started_at is None:
            return None
        if started_at.tzinfo is not None:
            started_at = started_at.astimezone(timezone.utc).replace(tzinfo=None)
        started_at = started_at.replace(microsecond=(started_at.microsecond // 1000) * 1000)
        # A start time in the future is not trusted
        if started_at > utcnow():
            return None
        return started_at

    # =====================
    # Manual grading
    # =====================
    def grade(self, attempt_id: str, request: ManualGradeRequest) -> Attempt:
        attempt = self.attempt_store.record_manual_grade(
            attempt_id,
            request.question_id,
            request.awarded_points,
            request.grader_id,
            request.feedback,
        )
        # Grading only succeeds on a pending item, so a final attempt here just became final
        if attempt.is_final:
            self._on_finalized(attempt)
        return attempt

    # =====================
    # Finalization events
    # =====================
    def _on_finalized(self, attempt: Attempt, quiz: Optional[Quiz] = None):
        # Course, section and gating come from the current quiz, not the graded version
        if quiz is None:
            try:
                quiz = self.quiz_repository.get(attempt.quiz_id)
            except QuizNotFound:
                logger.warning(f"Finalized attempt {attempt.id} has no quiz; events skipped")
                return

        logger.info(
            f"Attempt {attempt.id} final: {attempt.score}/{attempt.total_points}, passed={attempt.passed}"
        )
        payload = {
            "attempt_id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "course_id": quiz.course_id,
            "section_id": quiz.section_id,
            "enrollment_id": attempt.enrollment_id,
            "attempt_number": attempt.attempt_number,
            "score": attempt.score,
            "total_points": attempt.total_points,
            "percentage": display_percentage(attempt.score, attempt.total_points),
            "passed": attempt.passed,
            "finalized_at": (attempt.finalized_at or utcnow()).isoformat(),
            "service": settings.APP_ID,
        }
        self.event_publisher.publish(settings.QUIZ_COMPLETED_TOPIC, payload)

        if attempt.passed and quiz.gates_completion:
            self.event_publisher.publish(settings.CERTIFICATE_TOPIC, payload)
            logger.info(f"Certificate eligibility published for enrollment {attempt.enrollment_id}")

    # =====================
    # Reads
    # =====================
    def get_attempt(self, attempt_id: str) -> Attempt:
        return self.attempt_store.get_attempt(attempt_id)

    def list_attempts(self, quiz_id: str, enrollment_id: str) -> List[LearnerAttemptView]:
        quiz = self.quiz_repository.get(quiz_id)
        snapshots = {quiz.version: quiz}
        views = []
        for attempt in self.attempt_store.list_attempts(quiz_id, enrollment_id):
            if attempt.quiz_version not in snapshots:
                snapshots[attempt.quiz_version] = self._snapshot_for(attempt, quiz)
            views.append(self.learner_view(attempt, snapshots[attempt.quiz_version]))
        return views

    def attempt_summary(self, quiz_id: str, enrollment_id: str) -> AttemptSummary:
        quiz = self.quiz_repository.get(quiz_id)
        attempts = self.attempt_store.list_attempts(quiz_id, enrollment_id)
        final = [a for a in attempts if a.is_final]
        max_attempts = quiz.config.max_attempts

        return AttemptSummary(
            quiz_id=quiz_id,
            enrollment_id=enrollment_id,
            attempts_count=len(attempts),
            attempts_remaining=max(0, max_attempts - len(attempts)) if max_attempts > 0 else None,
            best_percentage=max(
                (display_percentage(a.score, a.total_points) or 0 for a in final), default=None
            ),
            latest_attempt_number=attempts[0].attempt_number if attempts else None,
            latest_status=attempts[0].status if attempts else None,
            passed_any=any(a.passed for a in final),
            awaiting_grades=len(attempts) - len(final),
        )

    def quiz_stats(self, quiz_id: str) -> QuizStats:
        self.quiz_repository.get(quiz_id)
        attempts = self.attempt_store.quiz_attempts(quiz_id)
        final = [a for a in attempts if a.is_final]
        percentages = [a.score / a.total_points * 100 for a in final if a.total_points > 0]

        return QuizStats(
            quiz_id=quiz_id,
            attempts_count=len(attempts),
            finalized_count=len(final),
            awaiting_grades_count=len(attempts) - len(final),
            average_percentage=round(sum(percentages) / len(percentages), 2) if percentages else 0.0,
            pass_rate=round(sum(1 for a in final if a.passed) / len(final), 4) if final else 0.0,
        )

    def present_quiz(self, quiz_id: str) -> LearnerQuizView:
        """Quiz for a learner to take: answers stripped, order shuffled when configured"""
        quiz = self.quiz_repository.get(quiz_id)
        questions = list(quiz.questions)
        if quiz.config.shuffle_questions:
            questions = random.sample(questions, len(questions))

        return LearnerQuizView(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            total_points=quiz.total_points,
            passing_score_percent=quiz.config.passing_score_percent,
            max_attempts=quiz.config.max_attempts,
            time_limit_seconds=quiz.config.time_limit_seconds,
            questions=[
                LearnerQuestion(
                    id=q.id,
                    position=q.position,
                    type=q.type,
                    text=q.text,
                    points=q.points,
                    options=q.options if isinstance(q, MultipleChoiceQuestion) else None,
                )
                for q in questions
            ],
        )

    # =====================
    # Learner-facing view
    # =====================
    def _snapshot_for(self, attempt: Attempt, current: Quiz) -> Quiz:
        if attempt.quiz_version == current.version:
            return current
        return self.quiz_repository.get_version(attempt.quiz_id, attempt.quiz_version)

    @staticmethod
    def learner_view(attempt: Attempt, quiz: Quiz) -> LearnerAttemptView:
        """Attempt as a learner may see it.

        Until the attempt is final only auto-graded items are revealed: manual
        items show as pending with no points, `passed` and `percentage` stay
        null, and correct answers, explanations and feedback are withheld.
        """
        final = attempt.is_final
        results = []
        visible_score = 0.0
        for r in attempt.results:
            question = quiz.question(r.question_id)
            revealed = final or r.grading_status == GradingStatus.AUTO
            if revealed:
                visible_score += r.awarded_points
            results.append(LearnerQuestionResult(
                question_id=r.question_id,
                grading_status=r.grading_status if final or revealed else GradingStatus.PENDING.value,
                awarded_points=r.awarded_points if revealed else None,
                correct=r.correct if revealed else None,
                your_answer=attempt.answer_for(r.question_id),
                correct_answer=correct_answer_of(question) if final else None,
                explanation=question.explanation if final and question else None,
                feedback=r.feedback if final else None,
            ))

        time_limit = quiz.config.time_limit_seconds
        return LearnerAttemptView(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            enrollment_id=attempt.enrollment_id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            score=attempt.score if final else visible_score,
            total_points=attempt.total_points,
            percentage=display_percentage(attempt.score, attempt.total_points) if final else None,
            passed=attempt.passed if final else None,
            message=FINAL_MESSAGE if final else PENDING_REVIEW_MESSAGE,
            results=results,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            time_taken_seconds=attempt.time_taken_seconds,
            over_time_limit=time_limit > 0 and attempt.time_taken_seconds > time_limit,
        )
