class WorkflowError(Exception):
    """Base class for every error the workflow core raises on purpose."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class NotFound(WorkflowError):
    status_code = 404


class Forbidden(WorkflowError):
    status_code = 403


class InvalidTransition(WorkflowError):
    """Target status is not reachable from the current one."""

    status_code = 400


class ValidationFailed(InvalidTransition):
    """Malformed input: unknown status, missing field, out-of-range value."""


class Conflict(WorkflowError):
    status_code = 409


class StoreFailure(WorkflowError):
    status_code = 500
