"""Error taxonomy shared by the approval core and the HTTP layer."""

from typing import Optional


class SopGateError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SopGateError):
    """Unknown pending operation or target document."""

    code = "not_found"

    def __init__(self, resource: str, resource_id):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(SopGateError):
    """The operation is no longer PENDING (another decision won)."""

    code = "conflict"

    def __init__(self, message: str, operation_id=None, status: Optional[str] = None):
        super().__init__(message)
        self.operation_id = operation_id
        self.status = status


class InvalidArgumentError(SopGateError):
    """Missing rejection comments, malformed payloads and similar."""

    code = "invalid_argument"


class UnauthorizedError(SopGateError):
    """Failed or throttled authentication. The cause is never exposed."""

    code = "unauthorized"

    def __init__(self, message: str = "Invalid approver credentials or rate limit exceeded"):
        super().__init__(message)


class ExecutionFailureError(SopGateError):
    """Applying an approved operation failed; the operation stays PENDING."""

    code = "execution_failure"

    def __init__(self, message: str, operation_id=None):
        super().__init__(message)
        self.operation_id = operation_id
