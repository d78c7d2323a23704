from fastapi import APIRouter, Depends, Header, Query, status
from typing import List, Optional

from ..models.attempt import Attempt
from ..models.grading import ManualGradeRequest
from ..models.schemas import AttemptSubmission, AttemptSummary, LearnerAttemptView
from ..services.session import QuizSessionController
from ..utils.dependencies import get_session_controller

router = APIRouter(
    tags=["attempts"],
    responses={404: {"description": "Not found"}}
)


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=LearnerAttemptView,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a quiz attempt",
    description="Grades the submission and stores it as a new attempt. "
                "Resending the same Idempotency-Key returns the stored attempt."
)
async def submit_attempt(
    quiz_id: str,
    submission: AttemptSubmission,
    idempotency_key: Optional[str] = Header(None),
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.submit(quiz_id, submission, idempotency_key)


@router.get(
    "/quizzes/{quiz_id}/attempts",
    response_model=List[LearnerAttemptView],
    summary="Attempts of a learner, newest first"
)
async def list_attempts(
    quiz_id: str,
    enrollment_id: str = Query(..., min_length=1),
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.list_attempts(quiz_id, enrollment_id)


@router.get(
    "/quizzes/{quiz_id}/attempts/summary",
    response_model=AttemptSummary,
    summary="Results summary of a learner"
)
async def attempt_summary(
    quiz_id: str,
    enrollment_id: str = Query(..., min_length=1),
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.attempt_summary(quiz_id, enrollment_id)


@router.get("/attempts/{attempt_id}", response_model=Attempt, summary="Get an attempt")
async def get_attempt(
    attempt_id: str,
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.get_attempt(attempt_id)


@router.post(
    "/attempts/{attempt_id}/grade",
    response_model=Attempt,
    summary="Grade a pending item",
    description="Records an instructor grade. The attempt becomes final once no item is pending."
)
async def grade_attempt(
    attempt_id: str,
    grade: ManualGradeRequest,
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.grade(attempt_id, grade)
