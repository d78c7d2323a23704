from datetime import datetime, timedelta, timezone

import pytest

from grading_service.exceptions import (
    AttemptLimitExceeded, EmptyQuiz, EnrollmentNotActive, EnrollmentNotFound, InvalidGrade,
    InvalidSubmission, QuizNotFound, UnknownPendingItem
)
from grading_service.models.grading import ManualGradeRequest
from grading_service.models.quiz import EssayQuestion, QuizConfigUpdate, QuizCreate, QuizUpdate
from grading_service.models.schemas import (
    FINAL_MESSAGE, PENDING_REVIEW_MESSAGE, AttemptSubmission
)
from grading_service.utils import utcnow

from tests.conftest import ENROLLMENT, mc_tf_quiz_data


def submission(answers, enrollment_id=ENROLLMENT, **kwargs):
    return AttemptSubmission(
        enrollment_id=enrollment_id,
        answers=[{"question_id": k, "answer": v} for k, v in answers.items()],
        **kwargs
    )


def essay_grade(points, grader="inst-1", feedback=None):
    return ManualGradeRequest(
        question_id="q-essay", awarded_points=points, grader_id=grader, feedback=feedback
    )


# =====================
# Auto-graded quizzes
# =====================
def test_all_correct_answers_pass(controller, mc_tf_quiz, publisher):
    view = controller.submit(mc_tf_quiz.id, submission({"q-mc": "B", "q-tf": True}))

    assert view.score == 3
    assert view.total_points == 3
    assert view.percentage == 100
    assert view.passed is True
    assert view.status == "final"
    assert view.message == FINAL_MESSAGE
    assert view.attempt_number == 1
    assert publisher.topics() == ["quiz_completed"]
    assert publisher.events[0][1]["passed"] is True


def test_all_wrong_answers_fail(controller, mc_tf_quiz):
    view = controller.submit(mc_tf_quiz.id, submission({"q-mc": "A", "q-tf": False}))

    assert view.score == 0
    assert view.percentage == 0
    assert view.passed is False


def test_final_view_reveals_answers_and_explanations(controller, mc_tf_quiz):
    view = controller.submit(mc_tf_quiz.id, submission({"q-mc": "A"}))
    mc, tf = view.results

    assert (mc.your_answer, mc.correct_answer, mc.correct) == ("A", "B", False)
    assert mc.explanation == "B is the second letter"
    # Unanswered questions still produce a result
    assert (tf.your_answer, tf.awarded_points, tf.correct) == (None, 0, False)


def test_certificate_event_only_for_gating_quizzes(controller, quiz_repository, publisher):
    quiz = quiz_repository.create(QuizCreate(**{**mc_tf_quiz_data(), "gates_completion": True}))

    controller.submit(quiz.id, submission({"q-mc": "A"}))
    assert publisher.topics() == ["quiz_completed"]

    controller.submit(quiz.id, submission({"q-mc": "B", "q-tf": "true"}))
    assert publisher.topics() == ["quiz_completed", "quiz_completed", "certificate_eligible"]
    assert publisher.events[-1][1]["course_id"] == "course-1"


# =====================
# Manual grading
# =====================
def test_essay_pending_then_graded(controller, essay_quiz, publisher):
    view = controller.submit(essay_quiz.id, submission({"q-essay": "any text", "q-fill": "Paris"}))

    assert view.status == "awaiting_manual_grades"
    assert view.passed is None
    assert view.percentage is None
    assert view.score == 5
    assert view.message == PENDING_REVIEW_MESSAGE
    essay, fill = view.results
    assert (essay.grading_status, essay.awarded_points, essay.correct) == ("pending", None, None)
    assert (fill.grading_status, fill.awarded_points, fill.correct) == ("auto", 5, True)
    assert fill.correct_answer is None
    assert publisher.events == []

    attempt = controller.grade(view.attempt_id, essay_grade(5, feedback="Well argued"))

    assert attempt.score == 10
    assert attempt.passed is True
    assert attempt.status == "final"
    assert publisher.topics() == ["quiz_completed", "certificate_eligible"]

    final_view = controller.list_attempts(essay_quiz.id, ENROLLMENT)[0]
    assert final_view.percentage == 100
    assert final_view.results[0].feedback == "Well argued"
    assert final_view.results[1].correct_answer == "paris"


def test_pending_view_hides_partial_manual_grades(controller, essay_quiz):
    """Test a graded item stays hidden until the whole attempt is final"""
    quiz = controller.quiz_repository.add_question(
        essay_quiz.id, EssayQuestion(id="q-essay-2", text="Describe Lyon", points=5)
    )

    view = controller.submit(quiz.id, submission({"q-fill": "Paris"}))
    controller.grade(view.attempt_id, essay_grade(5))
    pending_view = controller.list_attempts(quiz.id, ENROLLMENT)[0]

    assert pending_view.passed is None
    assert pending_view.score == 5
    assert pending_view.results[0].awarded_points is None
    assert pending_view.results[0].feedback is None


def test_grading_twice_fails(controller, essay_quiz):
    view = controller.submit(essay_quiz.id, submission({"q-essay": "text"}))
    controller.grade(view.attempt_id, essay_grade(3))

    with pytest.raises(UnknownPendingItem):
        controller.grade(view.attempt_id, essay_grade(5))


def test_grade_above_maximum_fails(controller, essay_quiz, publisher):
    view = controller.submit(essay_quiz.id, submission({"q-essay": "text"}))

    with pytest.raises(InvalidGrade):
        controller.grade(view.attempt_id, essay_grade(999))
    assert controller.get_attempt(view.attempt_id).status == "awaiting_manual_grades"
    assert publisher.events == []


def test_grading_uses_submitted_quiz_version(controller, essay_quiz):
    """Test a later quiz change does not rescore an attempt awaiting grades"""
    view = controller.submit(essay_quiz.id, submission({"q-fill": "Paris"}))
    controller.quiz_repository.update(
        essay_quiz.id, QuizUpdate(config=QuizConfigUpdate(passing_score_percent=100))
    )

    attempt = controller.grade(view.attempt_id, essay_grade(1))

    # 6/10 against the 50% threshold in force at submission
    assert attempt.passed is True
    assert attempt.passing_score_percent == 50


# =====================
# Submission validation
# =====================
def test_attempt_limit(controller, quiz_repository):
    quiz = quiz_repository.create(QuizCreate(**mc_tf_quiz_data(max_attempts=1)))
    controller.submit(quiz.id, submission({"q-mc": "B"}))

    with pytest.raises(AttemptLimitExceeded):
        controller.submit(quiz.id, submission({"q-mc": "B"}))
    assert len(controller.list_attempts(quiz.id, ENROLLMENT)) == 1


def test_unlimited_attempts(controller, quiz_repository):
    quiz = quiz_repository.create(QuizCreate(**mc_tf_quiz_data(max_attempts=0)))
    for _ in range(5):
        controller.submit(quiz.id, submission({}))

    assert controller.attempt_summary(quiz.id, ENROLLMENT).attempts_remaining is None


def test_unknown_references(controller, mc_tf_quiz):
    with pytest.raises(QuizNotFound):
        controller.submit("missing", submission({}))
    with pytest.raises(EnrollmentNotFound):
        controller.submit(mc_tf_quiz.id, submission({}, enrollment_id="stranger"))
    with pytest.raises(EnrollmentNotActive):
        controller.submit(mc_tf_quiz.id, submission({}, enrollment_id="enr-done"))


@pytest.mark.parametrize("answers", [
    [{"question_id": "q-other", "answer": "x"}],
    [{"question_id": "q-mc", "answer": "A"}, {"question_id": "q-mc", "answer": "B"}],
])
def test_invalid_answers_are_rejected(controller, mc_tf_quiz, answers):
    with pytest.raises(InvalidSubmission):
        controller.submit(mc_tf_quiz.id, AttemptSubmission(enrollment_id=ENROLLMENT, answers=answers))
    assert controller.list_attempts(mc_tf_quiz.id, ENROLLMENT) == []


def test_quiz_without_points_is_rejected(controller, quiz_repository):
    quiz = quiz_repository.create(QuizCreate(title="Empty"))
    with pytest.raises(EmptyQuiz):
        controller.submit(quiz.id, submission({}))


def test_idempotent_resubmission(controller, mc_tf_quiz, publisher):
    first = controller.submit(mc_tf_quiz.id, submission({"q-mc": "B"}), idempotency_key="abc")
    again = controller.submit(mc_tf_quiz.id, submission({"q-mc": "A"}), idempotency_key="abc")

    assert again.attempt_id == first.attempt_id
    assert again.score == first.score
    assert len(controller.list_attempts(mc_tf_quiz.id, ENROLLMENT)) == 1
    assert publisher.topics() == ["quiz_completed"]


def test_time_taken_and_limit(controller, quiz_repository):
    quiz = quiz_repository.create(QuizCreate(**mc_tf_quiz_data(time_limit_seconds=60)))
    started = datetime.now(timezone.utc) - timedelta(minutes=5)

    view = controller.submit(quiz.id, submission({"q-mc": "B"}, started_at=started))

    assert view.time_taken_seconds >= 299
    assert view.over_time_limit is True
    # Recorded, not rejected
    assert view.score == 2


def test_future_start_time_is_ignored(controller, mc_tf_quiz):
    view = controller.submit(
        mc_tf_quiz.id, submission({}, started_at=utcnow() + timedelta(hours=1))
    )
    assert view.time_taken_seconds == 0
    assert view.over_time_limit is False


# =====================
# Reads
# =====================
def test_summary_and_stats(controller, mc_tf_quiz):
    controller.submit(mc_tf_quiz.id, submission({"q-mc": "B"}))
    controller.submit(mc_tf_quiz.id, submission({"q-mc": "B", "q-tf": True}))
    controller.submit(mc_tf_quiz.id, submission({}, enrollment_id="enr-2"))

    summary = controller.attempt_summary(mc_tf_quiz.id, ENROLLMENT)
    assert summary.attempts_count == 2
    assert summary.attempts_remaining == 1
    assert summary.best_percentage == 100
    assert summary.latest_attempt_number == 2
    assert summary.passed_any is True

    stats = controller.quiz_stats(mc_tf_quiz.id)
    assert stats.attempts_count == 3
    assert stats.finalized_count == 3
    # 66.67%, 100% and 0%
    assert stats.average_percentage == pytest.approx(55.56)
    assert stats.pass_rate == pytest.approx(0.3333)


def test_summary_without_attempts(controller, mc_tf_quiz):
    summary = controller.attempt_summary(mc_tf_quiz.id, "enr-2")
    assert summary.attempts_count == 0
    assert summary.best_percentage is None
    assert summary.latest_status is None
    assert summary.passed_any is False


def test_present_quiz_hides_answers(controller, quiz_repository):
    quiz = quiz_repository.create(QuizCreate(**mc_tf_quiz_data(shuffle_questions=True)))
    view = controller.present_quiz(quiz.id)

    assert sorted(q.id for q in view.questions) == ["q-mc", "q-tf"]
    assert view.total_points == 3
    mc = next(q for q in view.questions if q.id == "q-mc")
    assert mc.options == ["A", "B", "C"]
    assert "correct_option" not in mc.model_dump()


def test_finalize_event_uses_current_section(controller, essay_quiz, publisher):
    view = controller.submit(essay_quiz.id, submission({"q-essay": "text", "q-fill": "Paris"}))
    controller.quiz_repository.update(essay_quiz.id, QuizUpdate(section_id="sec-b"))

    controller.grade(view.attempt_id, essay_grade(5))

    assert publisher.events[0][0] == "quiz_completed"
    assert publisher.events[0][1]["section_id"] == "sec-b"
