# models/grading.py
from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import datetime


class ManualGradeRequest(BaseModel):
    question_id: str
    awarded_points: float
    grader_id: str = Field(..., min_length=1)
    feedback: Optional[str] = None


class GradingTask(BaseModel):
    """One pending manual item, projected from an attempt awaiting grades"""
    attempt_id: str
    question_id: str
    quiz_id: str
    quiz_title: str
    enrollment_id: str
    instructor_id: Optional[str] = None
    question_text: str
    rubric: Optional[str] = None
    submitted_answer: Any = None
    max_points: int
    submitted_at: datetime
