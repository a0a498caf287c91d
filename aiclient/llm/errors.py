"""Errors raised by the provider abstraction layer."""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional


class ErrorKind(str, enum.Enum):
    """Closed set of failure kinds surfaced to callers."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNSERIALIZABLE_RESPONSE = "unserializable_response"
    PROVIDER = "provider"
    TRANSPORT = "transport"


DEFAULT_ERROR_TYPES = {
    ErrorKind.VALIDATION: "Invalid Argument",
    ErrorKind.AUTHENTICATION: "Authentication",
    ErrorKind.RATE_LIMIT: "Rate Limit Exceeded",
    ErrorKind.QUOTA_EXCEEDED: "Quota Exceeded",
    ErrorKind.UNSERIALIZABLE_RESPONSE: "Response Parsing",
    ErrorKind.PROVIDER: "Unknown Error",
    ErrorKind.TRANSPORT: "Transport Failure",
}

RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.TRANSPORT})


def compose_message(
    provider: str,
    http_status: Optional[int],
    error_type: str,
    message: str,
    provider_error_code: Optional[str] = None,
) -> str:
    """Build the multi-line message shared by every error kind."""
    lines = [
        f"Provider: {provider}",
        f"HTTP Status: {http_status if http_status is not None else 'Unknown'}",
        f"Error Type: {error_type}",
    ]
    if provider_error_code:
        lines.append(f"Error Code: {provider_error_code}")
    lines.append(f"Message: {message}")
    return "\n".join(lines)


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return repr(value)
    return str(value)


class AIError(RuntimeError):
    """Single error type for every provider-layer failure.

    Instances are immutable once raised; ``context`` is a read-only mapping.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        provider: str = "",
        http_status: Optional[int] = None,
        provider_error_code: Optional[str] = None,
        error_type: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        kind = ErrorKind(kind)
        error_type = error_type or DEFAULT_ERROR_TYPES[kind]
        code = str(provider_error_code) if provider_error_code not in (None, "") else None
        composed = compose_message(provider or "Unknown", http_status, error_type, message, code)
        super().__init__(composed)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "provider", provider)
        object.__setattr__(self, "http_status", http_status)
        object.__setattr__(self, "provider_error_code", code)
        object.__setattr__(self, "error_type", error_type)
        object.__setattr__(self, "detail", message)
        object.__setattr__(self, "context", MappingProxyType(dict(context or {})))
        object.__setattr__(self, "_frozen", True)

    def __setattr__(self, name: str, value: Any) -> None:
        # traceback machinery assigns dunder attributes on raise
        if name.startswith("__") or not getattr(self, "_frozen", False):
            object.__setattr__(self, name, value)
            return
        raise AttributeError(f"AIError is immutable; cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"AIError is immutable; cannot delete '{name}'")

    def __reduce__(self):
        return (
            _rebuild_error,
            (
                self.kind,
                self.detail,
                self.provider,
                self.http_status,
                self.provider_error_code,
                self.error_type,
                dict(self.context),
            ),
        )

    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return f"AIError(kind={self.kind.value!r}, provider={self.provider!r}, http_status={self.http_status!r})"

    # Validation factories

    @classmethod
    def validation(
        cls,
        message: str,
        *,
        provider: str = "",
        parameter: Optional[str] = None,
        invalid_value: Any = None,
        requirement: Optional[str] = None,
        valid_values: Optional[Iterable[Any]] = None,
        validation_type: str = "invalid_parameter",
        http_status: int = 400,
    ) -> "AIError":
        """Build a validation error with the parameter details in ``context``."""
        context: dict[str, Any] = {"validation_type": validation_type}
        if parameter is not None:
            context["parameter"] = parameter
            context["invalid_value"] = invalid_value
        if requirement is not None:
            context["requirement"] = requirement
        if valid_values is not None:
            context["valid_values"] = list(valid_values)
        return cls(
            ErrorKind.VALIDATION,
            message,
            provider=provider,
            http_status=http_status,
            context=context,
        )

    @classmethod
    def invalid_parameter(
        cls,
        parameter: str,
        value: Any,
        requirement: str,
        *,
        provider: str = "",
        valid_values: Optional[Iterable[Any]] = None,
    ) -> "AIError":
        values = list(valid_values) if valid_values is not None else None
        message = f"Parameter '{parameter}' has invalid value '{_format_value(value)}'. {requirement}"
        return cls.validation(
            message,
            provider=provider,
            parameter=parameter,
            invalid_value=value,
            requirement=requirement,
            valid_values=values,
        )

    @classmethod
    def missing_parameter(cls, parameter: str, *, provider: str = "", requirement: str = "") -> "AIError":
        message = f"Required parameter '{parameter}' is missing."
        if requirement:
            message = f"{message} {requirement}"
        return cls.validation(
            message,
            provider=provider,
            parameter=parameter,
            requirement=requirement or None,
            validation_type="missing_parameter",
        )

    @classmethod
    def invalid_model(
        cls,
        model: str,
        capability: str,
        *,
        provider: str,
        valid_models: Iterable[str] = (),
    ) -> "AIError":
        models = sorted(valid_models)
        message = f"Model '{model}' does not support {capability} capability on {provider}."
        if models:
            message += f" Valid models: {', '.join(models)}"
        return cls.validation(
            message,
            provider=provider,
            parameter="model",
            invalid_value=model,
            requirement=f"Model must support {capability}",
            valid_values=models,
            validation_type="invalid_model",
        )

    @classmethod
    def file_not_found(cls, path: str, *, provider: str = "") -> "AIError":
        return cls.validation(
            f"File '{path}' not found or is not readable",
            provider=provider,
            parameter="file",
            invalid_value=path,
            validation_type="file_not_found",
        )

    @classmethod
    def file_too_large(cls, path: str, size: int, max_bytes: int, *, provider: str = "") -> "AIError":
        size_mb = round(size / (1024 * 1024), 2)
        max_mb = round(max_bytes / (1024 * 1024), 2)
        return cls.validation(
            f"File '{path}' is {size_mb}MB, which exceeds the maximum allowed size of {max_mb}MB",
            provider=provider,
            parameter="file",
            invalid_value=path,
            requirement=f"File size must not exceed {max_mb}MB",
            validation_type="file_size_exceeded",
        )

    @classmethod
    def invalid_file_format(
        cls, path: str, extension: str, allowed: Iterable[str], *, provider: str = ""
    ) -> "AIError":
        allowed_list = sorted(allowed)
        return cls.validation(
            f"File '{path}' has unsupported format '{extension}'. Allowed formats: {', '.join(allowed_list)}",
            provider=provider,
            parameter="file",
            invalid_value=path,
            valid_values=allowed_list,
            validation_type="invalid_file_format",
        )

    # Mapped-failure factories

    @classmethod
    def authentication(
        cls, message: str = "Authentication error", *, provider: str, http_status: Optional[int] = 401, **kwargs: Any
    ) -> "AIError":
        return cls(ErrorKind.AUTHENTICATION, message, provider=provider, http_status=http_status, **kwargs)

    @classmethod
    def transport(cls, message: str, *, provider: str = "", url: str = "") -> "AIError":
        return cls(
            ErrorKind.TRANSPORT,
            message,
            provider=provider,
            http_status=None,
            context={"url": url} if url else None,
        )

    @classmethod
    def unserializable(
        cls,
        *,
        provider: str,
        raw_response: Any = "",
        parse_error: str = "",
        http_status: Optional[int] = 422,
    ) -> "AIError":
        raw_text = raw_response.decode("utf-8", "replace") if isinstance(raw_response, bytes) else str(raw_response)
        if parse_error:
            message = parse_error
        elif not raw_text.strip():
            message = "Received empty response from provider"
        else:
            message = "Unable to parse response"
        return cls(
            ErrorKind.UNSERIALIZABLE_RESPONSE,
            message,
            provider=provider,
            http_status=http_status,
            context={"raw_response": raw_text, "parse_error": parse_error},
        )


def _rebuild_error(kind, detail, provider, http_status, code, error_type, context) -> AIError:
    return AIError(
        kind,
        detail,
        provider=provider,
        http_status=http_status,
        provider_error_code=code,
        error_type=error_type,
        context=context,
    )
