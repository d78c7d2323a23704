from fastapi import status


class GradingError(Exception):
    """Base class for errors surfaced to the caller of the grading service"""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__name__
        super().__init__(self.detail)

    @property
    def name(self) -> str:
        return self.__class__.__name__


# 404
class QuizNotFound(GradingError):
    status_code = status.HTTP_404_NOT_FOUND


class QuestionNotFound(GradingError):
    status_code = status.HTTP_404_NOT_FOUND


class EnrollmentNotFound(GradingError):
    status_code = status.HTTP_404_NOT_FOUND


class AttemptNotFound(GradingError):
    status_code = status.HTTP_404_NOT_FOUND


# 409
class EnrollmentNotActive(GradingError):
    status_code = status.HTTP_409_CONFLICT


class AttemptLimitExceeded(GradingError):
    status_code = status.HTTP_409_CONFLICT


class UnknownPendingItem(GradingError):
    status_code = status.HTTP_409_CONFLICT


class DuplicateQuestion(GradingError):
    status_code = status.HTTP_409_CONFLICT


# 400
class UnsupportedQuestionType(GradingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidGrade(GradingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidSubmission(GradingError):
    status_code = status.HTTP_400_BAD_REQUEST


class EmptyQuiz(GradingError):
    status_code = status.HTTP_400_BAD_REQUEST


# 503
class PersistenceFailure(GradingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ServiceUnavailable(GradingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
