"""Error kinds raised by the round services and rendered by the HTTP layer."""


class QuizRoomError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class RoomNotFound(QuizRoomError):
    status_code = 404

    def __init__(self, code: str):
        super().__init__(f'Room not found: {code}')
        self.code = code


class InvalidSubmission(QuizRoomError):
    status_code = 400


class NoQuestionsAvailable(QuizRoomError):
    """The pool holds no question at all for an audience band.

    This is a seeding problem for operators, never retried automatically.
    """

    status_code = 503

    def __init__(self, audience_band: str):
        super().__init__(f'No questions available for {audience_band}. Seed questions first.')
        self.audience_band = audience_band


class TransientStoreError(QuizRoomError):
    """A datastore write failed; the caller may retry on its next heartbeat."""

    status_code = 503

    def __init__(self, operation: str, cause: Exception = None):
        super().__init__(f'Store unavailable during {operation}')
        self.operation = operation
        self.cause = cause
