"""
Service layer exceptions.

Routers translate these into HTTP responses; background tasks record them
on the job as its error message.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class JobNotFoundError(ServiceError):
    """Raised when an upload or report job id is unknown."""


class InvalidStatusTransition(ServiceError):
    """Raised when a job update would move its status backwards."""


class InvalidFileTypeError(ServiceError):
    """Raised when an upload has an unsupported extension."""


class TabularParseError(ServiceError):
    """Raised when an uploaded file cannot be decoded into rows."""


class ReportNotReadyError(ServiceError):
    """Raised when downloading a report that has not completed."""


class ReportExpiredError(ServiceError):
    """Raised when downloading a report past its expiry time."""


class ReportFileNotFoundError(ServiceError):
    """Raised when a completed report's file is missing from disk."""
