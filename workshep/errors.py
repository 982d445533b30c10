"""
Exceptions raised by the Workshep services.

Each exception carries the HTTP status the route layer answers with.
"""


class WorkshepError(Exception):
    """Base class for all errors the services raise on purpose."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(WorkshepError):
    status_code = 400


class PermissionDenied(WorkshepError):
    status_code = 403


class NotFoundError(WorkshepError):
    status_code = 404


class PhaseError(WorkshepError):
    """The operation is not legal in the current workshop phase."""
    status_code = 409


class AllocationExists(WorkshepError):
    """The reviewer is already allocated to the submission."""
    status_code = 409
