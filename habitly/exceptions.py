"""
Typed errors shared by the Habitly apps.

Each error carries a stable machine code and an HTTP status hint. Only the
calling layer turns the hint into a response (see habitly.utils).
"""


class HabitlyError(Exception):
    """Base exception for domain-level errors."""
    code = 'ERROR'
    status_code = 400
    default_message = 'Request could not be completed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailure(HabitlyError):
    """Raised for malformed pagination, date or status input."""
    code = 'VALIDATION_ERROR'
    status_code = 400
    default_message = 'Invalid input.'


class OperationCancelled(HabitlyError):
    """Raised when the caller cancelled the operation before it finished."""
    code = 'CANCELLED'
    status_code = 499
    default_message = 'The operation was cancelled.'


class DeadlineExceeded(OperationCancelled):
    """Raised when the caller's deadline expired before the operation finished."""
    code = 'DEADLINE_EXCEEDED'
    status_code = 504
    default_message = 'The operation deadline was exceeded.'
