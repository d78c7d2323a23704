# models/quiz.py
from pydantic import BaseModel, Field, RootModel, model_validator
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from enum import Enum

from ..exceptions import UnsupportedQuestionType
from ..utils import new_id, utcnow


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"


class QuestionBase(BaseModel):
    id: str = Field(default_factory=new_id)
    position: int = Field(0, ge=0)
    text: str = Field(..., min_length=1, max_length=2000)
    points: int = Field(1, gt=0)
    explanation: Optional[str] = None


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[str] = Field(..., min_length=2)
    correct_option: str

    @model_validator(mode="after")
    def check_correct_option(self):
        if self.correct_option not in self.options:
            raise ValueError("correct_option must be one of options")
        return self


class TrueFalseQuestion(QuestionBase):
    type: Literal["true_false"] = "true_false"
    correct_answer: bool


class FillBlankQuestion(QuestionBase):
    type: Literal["fill_blank"] = "fill_blank"
    correct_answer: str = Field(..., min_length=1)


class EssayQuestion(QuestionBase):
    """Manually graded; `points` is the maximum a grader can award."""
    type: Literal["essay"] = "essay"
    rubric: Optional[str] = None
    min_words: Optional[int] = Field(None, ge=0)
    max_words: Optional[int] = Field(None, ge=1)


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion, EssayQuestion],
    Field(discriminator="type"),
]

QUESTION_MODELS = {
    QuestionType.MULTIPLE_CHOICE.value: MultipleChoiceQuestion,
    QuestionType.TRUE_FALSE.value: TrueFalseQuestion,
    QuestionType.FILL_BLANK.value: FillBlankQuestion,
    QuestionType.ESSAY.value: EssayQuestion,
}


def parse_question(data: Dict[str, Any]) -> QuestionBase:
    """Build the question variant matching the stored `type` tag"""
    question_type = data.get("type")
    model = QUESTION_MODELS.get(question_type)
    if model is None:
        raise UnsupportedQuestionType(f"Unsupported question type: {question_type}")
    return model(**data)


def _check_unique_ids(questions: List[QuestionBase]) -> None:
    ids = [q.id for q in questions]
    if len(ids) != len(set(ids)):
        raise ValueError("question ids must be unique within a quiz")


class QuizConfig(BaseModel):
    passing_score_percent: int = Field(70, ge=0, le=100)
    max_attempts: int = Field(3, ge=0)  # 0 = unlimited
    shuffle_questions: bool = False
    time_limit_seconds: int = Field(0, ge=0)  # 0 = untimed


class QuizConfigUpdate(BaseModel):
    """Partial config change; fields left out keep their current value"""
    passing_score_percent: Optional[int] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=0)
    shuffle_questions: Optional[bool] = None
    time_limit_seconds: Optional[int] = Field(None, ge=0)


class QuizBase(BaseModel):
    course_id: Optional[str] = None
    section_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    config: QuizConfig = Field(default_factory=QuizConfig)
    gates_completion: bool = False


class QuizCreate(QuizBase):
    questions: List[Question] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_questions(self):
        _check_unique_ids(self.questions)
        return self


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    section_id: Optional[str] = None
    config: Optional[QuizConfigUpdate] = None
    gates_completion: Optional[bool] = None


class Quiz(QuizBase):
    id: str = Field(default_factory=new_id)
    questions: List[Question] = Field(default_factory=list)
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_questions(self):
        _check_unique_ids(self.questions)
        return self

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def question(self, question_id: str) -> Optional[QuestionBase]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Quiz":
        """Build a Quiz from a stored document, rejecting unknown question types"""
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        data["questions"] = [parse_question(dict(q)) for q in data.get("questions", [])]
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        doc["_id"] = doc.pop("id")
        return doc


class LearnerQuestion(BaseModel):
    id: str
    position: int
    type: QuestionType
    text: str
    points: int
    options: Optional[List[str]] = None


class LearnerQuizView(BaseModel):
    """Quiz as presented to a learner: no correct answers, no explanations"""
    id: str
    title: str
    description: Optional[str] = None
    total_points: int
    passing_score_percent: int
    max_attempts: int
    time_limit_seconds: int
    questions: List[LearnerQuestion]


class QuestionPayload(RootModel[Question]):
    """Request body for a single question of any supported type"""
