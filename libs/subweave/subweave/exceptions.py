"""SubWeave exception hierarchy."""

from __future__ import annotations

from subweave.error_codes import ErrorCode


class SubWeaveError(Exception):
    """Base error for SubWeave."""


class ConfigurationError(SubWeaveError):
    """Raised when configuration or inputs are invalid."""

    def __init__(self, message: str, *, error_code: ErrorCode | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or ErrorCode.INVALID_INPUT


class ProviderError(SubWeaveError):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.error_code = error_code


class StageExecutionError(SubWeaveError):
    """Raised when a pipeline stage fails for a chunk."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        chunk_index: int | None = None,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if chunk_index is not None:
            prefix = f"{prefix} (chunk={chunk_index})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.chunk_index = chunk_index
        self.message = message
        self.error_code = error_code


class PipelineCancelledError(SubWeaveError):
    """Raised at a suspension point once the run has been cancelled."""

    def __init__(self, reason: str = "Operation cancelled") -> None:
        super().__init__(reason)
        self.reason = reason
        self.error_code = ErrorCode.CANCELLED
