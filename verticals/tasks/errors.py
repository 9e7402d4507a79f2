"""Task error taxonomy.

Every failure the service surfaces derives from TaskError. The API layer maps
``code`` and ``status_code`` onto the HTTP response; nothing below the API
swallows these.
"""


class TaskError(Exception):
    code = "task_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskError):
    """Rejected input, e.g. an empty title."""

    code = "validation_error"
    status_code = 422


class AuthorizationError(TaskError):
    """The acting user may not perform this operation on this task."""

    code = "forbidden"
    status_code = 403


class NotFoundError(TaskError):
    """The task does not exist or is not visible to the caller."""

    code = "not_found"
    status_code = 404

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TransportError(TaskError):
    """The underlying store failed."""

    code = "storage_unavailable"
    status_code = 503
