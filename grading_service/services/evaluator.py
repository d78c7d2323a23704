# services/evaluator.py
"""Per-question answer evaluation.

Functions:
- evaluate_multiple_choice: selected option text against the correct option.
- evaluate_true_false: bool or "true"/"false" string against the key.
- evaluate_fill_blank: trimmed, case-insensitive match against the key.
- evaluate_essay: never graded automatically; always pending.
- evaluate: dispatch on the question variant.
- evaluate_all: one result per quiz question, unanswered ones included.

Everything here is pure: no I/O, no clock, no shared state.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import UnsupportedQuestionType
from ..models.attempt import GradingStatus, QuestionResult
from ..models.quiz import (
    EssayQuestion, FillBlankQuestion, MultipleChoiceQuestion, QuestionBase,
    TrueFalseQuestion, Quiz
)


@dataclass(frozen=True)
class Evaluation:
    correct: Optional[bool]
    awarded_points: float
    grading_status: GradingStatus


def _normalize_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (str, int, float)):
        return None
    return str(value).strip().lower()


def _normalize_bool(value: Any) -> Optional[bool]:
    """Accept True/False or the strings "true"/"false" in any case"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _auto(question: QuestionBase, correct: bool) -> Evaluation:
    return Evaluation(
        correct=correct,
        awarded_points=question.points if correct else 0,
        grading_status=GradingStatus.AUTO,
    )


def evaluate_multiple_choice(question: MultipleChoiceQuestion, raw_answer: Any) -> Evaluation:
    if not isinstance(raw_answer, str):
        return _auto(question, False)
    return _auto(question, raw_answer.strip() == question.correct_option.strip())


def evaluate_true_false(question: TrueFalseQuestion, raw_answer: Any) -> Evaluation:
    answer = _normalize_bool(raw_answer)
    return _auto(question, answer is not None and answer == question.correct_answer)


def evaluate_fill_blank(question: FillBlankQuestion, raw_answer: Any) -> Evaluation:
    answer = _normalize_text(raw_answer)
    return _auto(question, answer is not None and answer == _normalize_text(question.correct_answer))


def evaluate_essay(question: EssayQuestion, raw_answer: Any) -> Evaluation:
    return Evaluation(correct=None, awarded_points=0, grading_status=GradingStatus.PENDING)


_EVALUATORS = {
    MultipleChoiceQuestion: evaluate_multiple_choice,
    TrueFalseQuestion: evaluate_true_false,
    FillBlankQuestion: evaluate_fill_blank,
    EssayQuestion: evaluate_essay,
}


def evaluate(question: QuestionBase, raw_answer: Any) -> Evaluation:
    """Return correctness, awarded points and grading status for one answer."""
    evaluator = _EVALUATORS.get(type(question))
    if evaluator is None:
        raise UnsupportedQuestionType(
            f"Unsupported question type: {getattr(question, 'type', type(question).__name__)}"
        )
    return evaluator(question, raw_answer)


def evaluate_all(quiz: Quiz, answers: Dict[str, Any]) -> List[QuestionResult]:
    """Evaluate every question of `quiz`; missing answers count as unanswered.

    Raises UnsupportedQuestionType before producing any result if the quiz
    holds a question this module cannot grade.
    """
    results = []
    for question in quiz.questions:
        evaluation = evaluate(question, answers.get(question.id))
        results.append(QuestionResult(
            question_id=question.id,
            awarded_points=evaluation.awarded_points,
            correct=evaluation.correct,
            grading_status=evaluation.grading_status,
            max_points=question.points,
        ))
    return results
