"""Typed conversion errors with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers surfaced to callers."""

    VALIDATION = "E_VALIDATION"
    MALFORMED_LOCK = "E_MALFORMED_LOCK"
    UNSUPPORTED_LOCK_VERSION = "E_UNSUPPORTED_LOCK_VERSION"
    MISSING_CHECKSUM = "E_MISSING_CHECKSUM"
    UNCLASSIFIABLE_ORIGIN = "E_UNCLASSIFIABLE_ORIGIN"


class FlatcrateError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    @property
    def package(self) -> str | None:
        return self.context.get("package")

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(FlatcrateError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class MalformedLockError(FlatcrateError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MALFORMED_LOCK, hint=hint, context=context)


class UnsupportedLockVersionError(FlatcrateError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.UNSUPPORTED_LOCK_VERSION,
            hint=hint,
            context=context,
        )


class MissingChecksumError(FlatcrateError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_CHECKSUM, hint=hint, context=context)


class UnclassifiableOriginError(FlatcrateError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.UNCLASSIFIABLE_ORIGIN,
            hint=hint,
            context=context,
        )


__all__ = [
    "ErrorCode",
    "FlatcrateError",
    "MalformedLockError",
    "MissingChecksumError",
    "UnclassifiableOriginError",
    "UnsupportedLockVersionError",
    "ValidationError",
]
