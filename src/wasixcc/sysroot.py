"""Resolution of platform-root and toolchain locations.

Only path arithmetic and existence checks happen here. When a directory is
missing and ``DOWNLOAD_MISSING`` is set, the work is delegated to an
acquisition collaborator and the location is checked again afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from wasixcc.config import EffectiveConfig
from wasixcc.errors import (
    AcquisitionFailedError,
    IncompatibleProfileError,
    InvalidOptionValueError,
    MissingResourceError,
)
from wasixcc.models import BuildProfile, ResourceKind, ToolPaths
from wasixcc.observability import StructuredLogger

OPTIMIZER_NAME = "wasm-opt"


class Acquirer(Protocol):
    def acquire(self, kind: ResourceKind, tag: str) -> Path:
        """Download and install a resource, returning its installation path."""


def sysroot_dir_name(*, wasm_exceptions: bool, pic: bool) -> str:
    if pic and not wasm_exceptions:
        raise IncompatibleProfileError(
            "PIC without wasm exceptions is not a valid build configuration",
            hint="No sysroot is built for this combination.",
            context={"operation": "resolve_platform_root"},
        )
    if wasm_exceptions:
        return "sysroot-ehpic" if pic else "sysroot-eh"
    return "sysroot"


class SysrootResolver:
    def __init__(
        self,
        config: EffectiveConfig,
        *,
        acquirer: Acquirer | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.config = config
        self.acquirer = acquirer
        self.logger = logger

    def platform_root_location(self, profile: BuildProfile) -> Path:
        override = self.config.path("SYSROOT")
        if override is not None:
            return override.absolute()
        prefix = self._required_path("SYSROOT_PREFIX")
        name = sysroot_dir_name(
            wasm_exceptions=profile.wasm_exceptions,
            pic=profile.position_independent,
        )
        return (prefix / name).absolute()

    def toolchain_location(self) -> Path:
        return self._required_path("LLVM_LOCATION").absolute()

    def resolve_platform_root(self, profile: BuildProfile) -> Path:
        return self._ensure(ResourceKind.PLATFORM_ROOT, self.platform_root_location(profile))

    def resolve_toolchain_bin_dir(self) -> Path:
        return self._ensure(ResourceKind.TOOLCHAIN, self.toolchain_location() / "bin")

    def resolve_optimizer(self) -> Path:
        location = self.config.path("BINARYEN_LOCATION")
        if location is not None and (location / "bin").is_dir():
            return (location / "bin" / OPTIMIZER_NAME).absolute()
        # Fall back to whatever wasm-opt is on PATH.
        return Path(OPTIMIZER_NAME)

    def resolve_paths(self, profile: BuildProfile) -> ToolPaths:
        return ToolPaths(
            platform_root=self.resolve_platform_root(profile),
            toolchain_bin_dir=self.resolve_toolchain_bin_dir(),
            optimizer=self.resolve_optimizer(),
        )

    def _required_path(self, key: str) -> Path:
        location = self.config.path(key)
        if location is None:
            raise InvalidOptionValueError(
                f"{key} must not be empty",
                context={"key": key, "source": self.config.source(key).value},
            )
        return location

    def _ensure(self, kind: ResourceKind, expected: Path) -> Path:
        if expected.is_dir():
            return expected

        if not self.config.flag("DOWNLOAD_MISSING"):
            raise MissingResourceError(
                f"{kind.value} does not exist: {expected}",
                kind=kind.value,
                expected_path=str(expected),
                hint=_missing_hint(kind),
            )

        tag = self.config.string("DOWNLOAD_TAG") or "latest"
        if self.acquirer is None:
            raise AcquisitionFailedError(
                f"No acquisition backend available for {kind.value}",
                context={"kind": kind.value, "expected_path": str(expected), "tag": tag},
            )
        if self.logger is not None:
            self.logger.log(
                operation="resolve",
                persona=None,
                phase="acquire",
                message=f"{kind.value} missing, acquiring tag {tag}",
                extra={"expected_path": str(expected)},
            )
        self.acquirer.acquire(kind, tag)

        if not expected.is_dir():
            raise AcquisitionFailedError(
                f"{kind.value} still missing after acquisition: {expected}",
                hint="Check SYSROOT/SYSROOT_PREFIX/LLVM_LOCATION against the downloaded layout.",
                context={"kind": kind.value, "expected_path": str(expected), "tag": tag},
            )
        return expected


def _missing_hint(kind: ResourceKind) -> str:
    if kind is ResourceKind.PLATFORM_ROOT:
        return "Run `wasixccenv download-sysroot`, set SYSROOT, or set DOWNLOAD_MISSING=yes."
    return "Run `wasixccenv download-llvm`, set LLVM_LOCATION, or set DOWNLOAD_MISSING=yes."
