class TutorError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500
    public_message = "Internal Server Error"

    def __init__(self, message=None):
        super().__init__(message or self.public_message)


class NotFoundError(TutorError):
    status_code = 404
    public_message = "Not found"


class ConversationClosedError(TutorError):
    status_code = 409
    public_message = "Conversation already finished"


class UpstreamGenerationError(TutorError):
    """The language model failed, timed out or sent back something unreadable."""
    status_code = 502
    public_message = "Could not process your message, please retry"


class PersistenceError(TutorError):
    status_code = 500
    public_message = "Could not save your progress, please retry"


class UnauthorizedError(TutorError):
    status_code = 401
    public_message = "Unauthorized"
