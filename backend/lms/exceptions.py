from fastapi import status


class LMSError(Exception):
    """Base class for business-rule errors raised by the services.

    Each subclass carries the HTTP status the API answers with; the handler
    registered in ``lms.app`` turns it into ``{"detail": message}``.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotPermitted(LMSError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Operation not permitted"


class ExamNotFound(LMSError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Exam not found"


class QuestionNotFound(LMSError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Question not found"


class SubmissionNotFound(LMSError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Submission not found"


class ExamNotActive(LMSError):
    default_message = "Exam is not active"


class ExamNotStarted(LMSError):
    default_message = "Exam has not started yet"


class AttemptNotInProgress(LMSError):
    default_message = "Exam attempt is no longer in progress"


class AlreadySubmitted(AttemptNotInProgress):
    default_message = "You have already submitted this exam"


class InvalidGrade(LMSError):
    default_message = "Invalid grade"


class ExamHasSubmissions(LMSError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Exam already has submissions"
