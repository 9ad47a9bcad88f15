# src/utils/errors.py
class AppError(Exception):
    """Base error class for application exceptions."""
    error = "Internal server error"

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class InvalidRequestError(AppError):
    error = "Invalid request"

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class AgentNotReadyError(AppError):
    error = "Chat agent not ready"

    def __init__(self, message: str = "Please wait for agent initialization to complete"):
        super().__init__(message, status_code=503)


class FetchError(AppError):
    """Upstream page could not be fetched or parsed."""


class StoreUnavailableError(AppError):
    """Vector store backend cannot be reached or holds no usable data."""

    def __init__(self, message: str):
        super().__init__(message, status_code=503)


class PipelineError(AppError):
    """A pipeline stage had nothing to work on."""
