"""Error taxonomy raised by the ticket workflow core."""


class WorkflowError(RuntimeError):
    """Base error for ticket workflow issues."""


class ValidationError(WorkflowError):
    """Raised when input to a workflow operation is missing or invalid."""

    def __init__(self, message: str, *, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = list(problems or [message])


class InvalidTransitionError(WorkflowError):
    """Raised when the requested stage is not reachable from the current one."""


class NotFoundError(WorkflowError):
    """Raised when a ticket or a referenced staff member does not exist."""


class ConflictError(WorkflowError):
    """Raised when a ticket was modified between load and write."""


class DuplicateTicketNumberError(ConflictError):
    """Raised by a repository when a ticket number is already taken."""


class StorageError(WorkflowError):
    """Raised when the backing store fails; no mutation took place."""
