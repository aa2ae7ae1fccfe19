"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across the wrapper and its CLIs."""

    UNKNOWN_OPTION = "E_UNKNOWN_OPTION"
    INVALID_OPTION_VALUE = "E_INVALID_OPTION_VALUE"
    UNKNOWN_PERSONA = "E_UNKNOWN_PERSONA"
    INVALID_MODULE_KIND = "E_INVALID_MODULE_KIND"
    INCOMPATIBLE_PROFILE = "E_INCOMPATIBLE_PROFILE"
    MISSING_RESOURCE = "E_MISSING_RESOURCE"
    ACQUISITION_FAILED = "E_ACQUISITION_FAILED"
    UNSUPPORTED_COMBINATION = "E_UNSUPPORTED_COMBINATION"
    INVALID_ARGUMENT = "E_INVALID_ARGUMENT"
    SUBPROCESS_FAILURE = "E_SUBPROCESS_FAILURE"


# Subprocess failures carry the toolchain's own status instead.
EXIT_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNKNOWN_OPTION: 64,
    ErrorCode.INVALID_OPTION_VALUE: 65,
    ErrorCode.UNKNOWN_PERSONA: 66,
    ErrorCode.INVALID_MODULE_KIND: 67,
    ErrorCode.INCOMPATIBLE_PROFILE: 68,
    ErrorCode.MISSING_RESOURCE: 69,
    ErrorCode.ACQUISITION_FAILED: 70,
    ErrorCode.UNSUPPORTED_COMBINATION: 71,
    ErrorCode.INVALID_ARGUMENT: 72,
    ErrorCode.SUBPROCESS_FAILURE: 1,
}


class WasixccError(Exception):
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

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def exit_status(self) -> int:
        return EXIT_STATUS[ErrorCode(self.code)]

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class UnknownOptionError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNKNOWN_OPTION, hint=hint, context=context)


class InvalidOptionValueError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.INVALID_OPTION_VALUE, hint=hint, context=context
        )


class UnknownPersonaError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNKNOWN_PERSONA, hint=hint, context=context)


class InvalidModuleKindError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.INVALID_MODULE_KIND, hint=hint, context=context
        )


class IncompatibleProfileError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.INCOMPATIBLE_PROFILE, hint=hint, context=context
        )


class MissingResourceError(WasixccError):
    """A sysroot or toolchain directory is absent and acquisition was not requested."""

    kind: str
    expected_path: str

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        expected_path: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"kind": kind, "expected_path": expected_path, **(context or {})}
        super().__init__(message, code=ErrorCode.MISSING_RESOURCE, hint=hint, context=merged)
        self.kind = kind
        self.expected_path = expected_path


class AcquisitionFailedError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.ACQUISITION_FAILED, hint=hint, context=context
        )


class UnsupportedCombinationError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.UNSUPPORTED_COMBINATION, hint=hint, context=context
        )


class InvalidArgumentError(WasixccError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_ARGUMENT, hint=hint, context=context)


class SubprocessFailureError(WasixccError):
    """The underlying toolchain exited with a non-zero status."""

    status: int

    def __init__(
        self,
        message: str,
        *,
        status: int,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"exit_status": str(status), **(context or {})}
        super().__init__(message, code=ErrorCode.SUBPROCESS_FAILURE, hint=hint, context=merged)
        self.status = status

    @property
    def exit_status(self) -> int:
        # Signals surface as negative return codes from subprocess.
        return self.status if self.status > 0 else 1


__all__ = [
    "AcquisitionFailedError",
    "ErrorCode",
    "EXIT_STATUS",
    "IncompatibleProfileError",
    "InvalidArgumentError",
    "InvalidModuleKindError",
    "InvalidOptionValueError",
    "MissingResourceError",
    "SubprocessFailureError",
    "UnknownOptionError",
    "UnknownPersonaError",
    "UnsupportedCombinationError",
    "WasixccError",
]
