from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime

from .attempt import SubmittedAnswer

PENDING_REVIEW_MESSAGE = "Results pending instructor review"
FINAL_MESSAGE = "Quiz graded"


class AttemptSubmission(BaseModel):
    enrollment_id: str = Field(..., min_length=1)
    answers: List[SubmittedAnswer] = Field(default_factory=list)
    # When the learner opened the quiz; defaults to submission time
    started_at: Optional[datetime] = None


class LearnerQuestionResult(BaseModel):
    question_id: str
    grading_status: str
    awarded_points: Optional[float] = None
    correct: Optional[bool] = None
    your_answer: Any = None
    # Revealed only once the attempt is final
    correct_answer: Any = None
    explanation: Optional[str] = None
    feedback: Optional[str] = None


class LearnerAttemptView(BaseModel):
    attempt_id: str
    quiz_id: str
    enrollment_id: str
    attempt_number: int
    status: str
    score: float
    total_points: int
    percentage: Optional[int] = None
    passed: Optional[bool] = None
    message: str
    results: List[LearnerQuestionResult]
    started_at: datetime
    completed_at: datetime
    time_taken_seconds: float
    over_time_limit: bool = False


class AttemptSummary(BaseModel):
    quiz_id: str
    enrollment_id: str
    attempts_count: int
    attempts_remaining: Optional[int] = None  # None = unlimited
    best_percentage: Optional[int] = None
    latest_attempt_number: Optional[int] = None
    latest_status: Optional[str] = None
    passed_any: bool = False
    awaiting_grades: int = 0


class QuizStats(BaseModel):
    quiz_id: str
    attempts_count: int
    finalized_count: int
    awaiting_grades_count: int
    average_percentage: float
    pass_rate: float
