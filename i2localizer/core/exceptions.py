"""
Custom exceptions for I2 RTL Localizer.
"""

class I2LocalizerError(Exception):
    """Base exception for I2 RTL Localizer."""
    pass

class ParseError(I2LocalizerError):
    """Raised when an input file cannot be read at all."""
    pass

class InvalidInputError(I2LocalizerError):
    """Raised when an input file or option is rejected by validation."""
    pass

class WorkerError(I2LocalizerError):
    """Base class for background task dispatch failures."""

    def __init__(self, message: str, request_id: int = None):
        super().__init__(message)
        self.request_id = request_id

class WorkerUnavailableError(WorkerError):
    """Raised when the background worker cannot be reached."""
    pass

class TaskFailedError(WorkerError):
    """Raised when the worker reports an error for a request."""
    pass

class TaskTimeoutError(WorkerError):
    """Raised when a dispatched task gets no reply within its time limit."""
    pass

class TaskCancelledError(WorkerError):
    """Raised for pending tasks when the task runner shuts down."""
    pass
