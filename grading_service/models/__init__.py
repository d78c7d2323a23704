from .quiz import (
    QuestionType, MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion,
    EssayQuestion, Question, QuestionPayload, parse_question, QuizConfig, QuizConfigUpdate, QuizCreate, QuizUpdate,
    Quiz, LearnerQuizView, LearnerQuestion
)
from .attempt import (
    GradingStatus, AttemptStatus, SubmittedAnswer, QuestionResult, Attempt
)
from .grading import ManualGradeRequest, GradingTask
from .schemas import (
    AttemptSubmission, LearnerAttemptView, LearnerQuestionResult, AttemptSummary,
    QuizStats
)

__all__ = [
    "QuestionType", "MultipleChoiceQuestion", "TrueFalseQuestion", "FillBlankQuestion",
    "EssayQuestion", "Question", "QuestionPayload", "parse_question", "QuizConfig", "QuizConfigUpdate", "QuizCreate",
    "QuizUpdate", "Quiz", "LearnerQuizView", "LearnerQuestion",
    "GradingStatus", "AttemptStatus", "SubmittedAnswer", "QuestionResult", "Attempt",
    "ManualGradeRequest", "GradingTask",
    "AttemptSubmission", "LearnerAttemptView", "LearnerQuestionResult",
    "AttemptSummary", "QuizStats"
]
