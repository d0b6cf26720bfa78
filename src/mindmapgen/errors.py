"""Error taxonomy.

Every failure the service raises on purpose is an `AppError`. The status code doubles as the
HTTP status when the error reaches the API layer; `is_operational` separates expected runtime
failures (bad input, upstream outage) from programming or configuration mistakes.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        is_operational: bool = True,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.is_operational = is_operational
        self.cause = cause
        self.context = context or {}
        if cause is not None:
            self.__cause__ = cause

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self, *, include_details: bool = False) -> dict[str, Any]:
        """Serialize for an API response."""

        payload: dict[str, Any] = {
            "error": self.name,
            "message": self.message,
            "statusCode": self.status_code,
        }
        if include_details:
            payload["isOperational"] = self.is_operational
            payload["context"] = {k: str(v) for k, v in self.context.items()}
            if self.cause is not None:
                payload["cause"] = {"name": type(self.cause).__name__, "message": str(self.cause)}
        return payload


class ValidationError(AppError):
    """Bad shape: input row, generated document, or file content. Never retried."""

    def __init__(
        self,
        message: str,
        errors: list[Any] | None = None,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, 400, True, cause, context)
        self.errors = errors or []


class ExternalAPIError(AppError):
    """Upstream generation failure. Transient."""

    def __init__(
        self,
        service: str,
        message: str,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"{service} API Error: {message}", 502, True, cause, context)
        self.service = service


class FileSystemError(AppError):
    def __init__(
        self,
        operation: str,
        path: str,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"File system operation {operation} failed for path: {path}",
            500,
            True,
            cause,
            context,
        )
        self.operation = operation
        self.path = path


class StorageError(AppError):
    def __init__(
        self,
        operation: str,
        message: str,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Storage operation '{operation}' failed: {message}", 500, True, cause, context)
        self.operation = operation


class OperationTimeoutError(AppError):
    """A single call exceeded its hard timeout. Transient."""

    def __init__(
        self,
        operation: str,
        timeout_s: float,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Operation {operation} timed out after {timeout_s:g}s",
            408,
            True,
            cause,
            context,
        )
        self.operation = operation
        self.timeout_s = timeout_s


class ConfigurationError(AppError):
    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, 500, False, **kwargs)


class AuthenticationError(AppError):
    def __init__(self, message: str, status_code: int = 401) -> None:
        super().__init__(message, status_code, True)


def normalize_error(error: BaseException | object) -> AppError:
    """Wrap anything raised into an `AppError`."""

    if isinstance(error, AppError):
        return error
    if isinstance(error, BaseException):
        return AppError(str(error) or type(error).__name__, 500, False, error)
    return AppError(str(error) if error else "Unknown error", 500, False)
