"""Custom exception classes for the bulk generation service."""


class BulkGenError(Exception):
    """Base exception for the bulk generation service."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(BulkGenError):
    """Submission or request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(BulkGenError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class ConflictError(BulkGenError):
    """Resource state conflict (stale version on a conditional write)."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status_code=409)


class GenerationServiceError(BulkGenError):
    """The generation service answered with a non-success response."""

    def __init__(self, upstream_status: int, body: str):
        self.upstream_status = upstream_status
        self.body = body
        super().__init__(
            "GENERATION_FAILED",
            f"Generation service returned {upstream_status}: {body}",
            status_code=502,
        )


class GenerationTimeoutError(BulkGenError):
    """The generation call did not finish within the per-item ceiling."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            "GENERATION_TIMEOUT",
            f"Generation timed out after {timeout_seconds:g} seconds",
            status_code=504,
        )
