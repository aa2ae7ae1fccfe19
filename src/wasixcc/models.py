"""Core typed dataclasses for build profiles and composed tool invocations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

TARGET_TRIPLE = "wasm32-wasi"


class ModuleKind(StrEnum):
    STATIC_MAIN = "static-main"
    DYNAMIC_MAIN = "dynamic-main"
    SHARED_LIBRARY = "shared-library"
    OBJECT_FILE = "object-file"

    @property
    def requires_pic(self) -> bool:
        return self in (ModuleKind.DYNAMIC_MAIN, ModuleKind.SHARED_LIBRARY)

    @property
    def is_binary(self) -> bool:
        return self is not ModuleKind.OBJECT_FILE

    @property
    def is_executable(self) -> bool:
        return self in (ModuleKind.STATIC_MAIN, ModuleKind.DYNAMIC_MAIN)


class ExceptionMode(StrEnum):
    ASYNCIFY = "asyncify"
    WASM_EH = "wasm-eh"


class SourceLanguage(StrEnum):
    C = "c"
    CXX = "c++"


class ToolPersona(StrEnum):
    C_COMPILER = "c-compiler"
    CXX_COMPILER = "cxx-compiler"
    ARCHIVER = "archiver"
    SYMBOL_LISTER = "symbol-lister"
    INDEX_GENERATOR = "index-generator"
    LINKER = "linker"

    @property
    def is_compiler(self) -> bool:
        return self in (ToolPersona.C_COMPILER, ToolPersona.CXX_COMPILER)


class ResourceKind(StrEnum):
    PLATFORM_ROOT = "platform-root"
    TOOLCHAIN = "toolchain"
    OPTIMIZER = "optimizer"


class OptLevel(StrEnum):
    O0 = "0"
    O1 = "1"
    O2 = "2"
    O3 = "3"
    O4 = "4"
    OS = "s"
    OZ = "z"

    @property
    def flag(self) -> str:
        return f"-O{self.value}"


class DebugLevel(StrEnum):
    NONE = "none"
    G0 = "0"
    G1 = "1"
    G2 = "2"
    G3 = "3"

    @property
    def keeps_debug_info(self) -> bool:
        return self in (DebugLevel.G1, DebugLevel.G2, DebugLevel.G3)


@dataclass(frozen=True, slots=True)
class BuildProfile:
    """Validated build configuration for a single invocation."""

    module_kind: ModuleKind
    exception_mode: ExceptionMode
    position_independent: bool
    source_language: SourceLanguage
    module_kind_explicit: bool = False
    opt_level: OptLevel = OptLevel.O0
    debug_level: DebugLevel = DebugLevel.NONE

    @property
    def wasm_exceptions(self) -> bool:
        return self.exception_mode is ExceptionMode.WASM_EH

    @property
    def cxx(self) -> bool:
        return self.source_language is SourceLanguage.CXX

    @property
    def relocatable(self) -> bool:
        return self.position_independent or self.module_kind.requires_pic


@dataclass(frozen=True, slots=True)
class FlagList:
    """Ordered tool arguments split into configuration and pass-through segments.

    ``pre`` is contributed by configuration before the caller's tokens, ``user``
    holds the caller's tokens verbatim, ``post`` is appended after them. The
    underlying tools apply last-flag-wins, so the order of ``argv`` matters.
    """

    pre: tuple[str, ...] = ()
    user: tuple[str, ...] = ()
    post: tuple[str, ...] = ()

    @property
    def argv(self) -> tuple[str, ...]:
        return (*self.pre, *self.user, *self.post)

    def __len__(self) -> int:
        return len(self.pre) + len(self.user) + len(self.post)


@dataclass(frozen=True, slots=True)
class ToolPaths:
    platform_root: Path | None
    toolchain_bin_dir: Path
    optimizer: Path

    def tool(self, name: str) -> Path:
        return self.toolchain_bin_dir / name


@dataclass(frozen=True, slots=True)
class Invocation:
    executable: Path
    flags: FlagList

    @property
    def command(self) -> tuple[str, ...]:
        return (str(self.executable), *self.flags.argv)


@dataclass(frozen=True, slots=True)
class ComposedInvocations:
    primary: Invocation
    optimizer: Invocation | None = None
    output: Path | None = None


__all__ = [
    "BuildProfile",
    "ComposedInvocations",
    "DebugLevel",
    "ExceptionMode",
    "FlagList",
    "Invocation",
    "ModuleKind",
    "OptLevel",
    "ResourceKind",
    "SourceLanguage",
    "TARGET_TRIPLE",
    "ToolPaths",
    "ToolPersona",
]
