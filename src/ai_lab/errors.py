"""Exception hierarchy shared by every layer.

Each error carries an HTTP ``status_code`` so the serving layer can map any
:class:`AILabError` to a response with a single exception handler.
"""

from __future__ import annotations

from typing import Any


class AILabError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ValidationError(AILabError):
    """Malformed request shape at a boundary (missing field, bad value, …)."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class NotFoundError(AILabError):
    status_code = 404


class ConfigurationError(AILabError):
    status_code = 500


class ExtractionError(AILabError):
    """Bad or unsupported input document, or an unreachable/invalid remote source."""

    status_code = 422


class EmbeddingError(AILabError):
    """Empty input text or an upstream embedding failure."""

    status_code = 502


class StoreError(AILabError):
    """Base class for vector-store failures."""

    status_code = 502


class UpsertError(StoreError):
    pass


class QueryError(StoreError):
    pass


class DeleteError(StoreError):
    pass


class StatsError(StoreError):
    pass


class StorageError(AILabError):
    """The local key-value store holds data that cannot be read back."""

    status_code = 500


class ProviderUnavailableError(AILabError):
    status_code = 503


class ToolRegistrationError(AILabError):
    """A tool descriptor failed validation when it was registered."""

    status_code = 500
