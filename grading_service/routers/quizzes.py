from fastapi import APIRouter, Depends, status

from ..models.quiz import LearnerQuizView, QuestionPayload, Quiz, QuizCreate, QuizUpdate
from ..models.schemas import QuizStats
from ..services.quiz_repository import QuizRepository
from ..services.session import QuizSessionController
from ..utils.dependencies import get_quiz_repository, get_session_controller

router = APIRouter(
    prefix="/quizzes",
    tags=["quizzes"],
    responses={404: {"description": "Not found"}}
)


@router.post(
    "",
    response_model=Quiz,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new quiz"
)
async def create_quiz(
    quiz_data: QuizCreate,
    repository: QuizRepository = Depends(get_quiz_repository)
):
    return repository.create(quiz_data)


@router.get(
    "/{quiz_id}",
    response_model=LearnerQuizView,
    summary="Get a quiz to take",
    description="Questions without correct answers, shuffled when the quiz is configured to."
)
async def get_quiz(
    quiz_id: str,
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.present_quiz(quiz_id)


@router.patch("/{quiz_id}", response_model=Quiz, summary="Update quiz settings")
async def update_quiz(
    quiz_id: str,
    update_data: QuizUpdate,
    repository: QuizRepository = Depends(get_quiz_repository)
):
    return repository.update(quiz_id, update_data)


@router.post(
    "/{quiz_id}/questions",
    response_model=Quiz,
    status_code=status.HTTP_201_CREATED,
    summary="Add a question"
)
async def add_question(
    quiz_id: str,
    payload: QuestionPayload,
    repository: QuizRepository = Depends(get_quiz_repository)
):
    return repository.add_question(quiz_id, payload.root)


@router.delete("/{quiz_id}/questions/{question_id}", response_model=Quiz, summary="Remove a question")
async def remove_question(
    quiz_id: str,
    question_id: str,
    repository: QuizRepository = Depends(get_quiz_repository)
):
    return repository.remove_question(quiz_id, question_id)


@router.get("/{quiz_id}/stats", response_model=QuizStats, summary="Quiz statistics")
async def get_quiz_stats(
    quiz_id: str,
    controller: QuizSessionController = Depends(get_session_controller)
):
    return controller.quiz_stats(quiz_id)
