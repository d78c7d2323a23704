from fastapi import APIRouter, Depends
from typing import List, Optional

from ..models.grading import GradingTask
from ..services.grading_queue import GradingQueue
from ..utils.dependencies import get_grading_queue

router = APIRouter(prefix="/grading", tags=["grading"])


@router.get(
    "/pending",
    response_model=List[GradingTask],
    summary="Pending manual grading",
    description="Items awaiting a grade, oldest submission first. "
                "With instructor_id, only quizzes of that instructor's sections."
)
async def list_pending(
    instructor_id: Optional[str] = None,
    queue: GradingQueue = Depends(get_grading_queue)
):
    return queue.list_pending(instructor_id)
