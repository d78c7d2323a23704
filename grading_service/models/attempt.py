# models/attempt.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from ..utils import new_id, utcnow


class GradingStatus(str, Enum):
    AUTO = "auto"
    PENDING = "pending"
    GRADED = "graded"


class AttemptStatus(str, Enum):
    AWAITING_MANUAL_GRADES = "awaiting_manual_grades"
    FINAL = "final"


class SubmittedAnswer(BaseModel):
    question_id: str
    # Raw client value: option text, bool or "true"/"false", free text, or null
    answer: Any = None


class QuestionResult(BaseModel):
    question_id: str
    awarded_points: float = 0
    correct: Optional[bool] = None
    grading_status: GradingStatus
    max_points: int = 0
    feedback: Optional[str] = None
    graded_by: Optional[str] = None
    graded_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class Attempt(BaseModel):
    id: str = Field(default_factory=new_id)
    quiz_id: str
    quiz_version: int
    enrollment_id: str
    attempt_number: int = 0
    answers: List[SubmittedAnswer]
    results: List[QuestionResult]
    score: float = 0
    total_points: int
    passing_score_percent: int
    passed: Optional[bool] = None
    status: AttemptStatus
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime = Field(default_factory=utcnow)
    finalized_at: Optional[datetime] = None
    idempotency_key: Optional[str] = None
    # Optimistic concurrency counter, bumped on every stored update
    version: int = 0

    class Config:
        use_enum_values = True

    @property
    def is_final(self) -> bool:
        return self.status == AttemptStatus.FINAL

    @property
    def pending_question_ids(self) -> List[str]:
        return [
            r.question_id for r in self.results
            if r.grading_status == GradingStatus.PENDING
        ]

    @property
    def time_taken_seconds(self) -> float:
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def result_for(self, question_id: str) -> Optional[QuestionResult]:
        for r in self.results:
            if r.question_id == question_id:
                return r
        return None

    def answer_for(self, question_id: str) -> Any:
        for a in self.answers:
            if a.question_id == question_id:
                return a.answer
        return None

    @property
    def request_key(self) -> Optional[str]:
        """Idempotency key scoped to the (quiz, enrollment) pair"""
        if not self.idempotency_key:
            return None
        return make_request_key(self.quiz_id, self.enrollment_id, self.idempotency_key)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Attempt":
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        data.pop("request_key", None)
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        doc["_id"] = doc.pop("id")
        # Sparse unique index: only present when the client sent a key
        if self.request_key:
            doc["request_key"] = self.request_key
        return doc


def make_request_key(quiz_id: str, enrollment_id: str, idempotency_key: str) -> str:
    return f"{quiz_id}:{enrollment_id}:{idempotency_key}"
