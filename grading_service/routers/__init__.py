from .quizzes import router as quizzes_router
from .attempts import router as attempts_router
from .grading import router as grading_router

__all__ = ["quizzes_router", "attempts_router", "grading_router"]
