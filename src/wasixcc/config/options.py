"""Registry of recognized configuration options."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

ENV_PREFIX = "WASIXCC_"


class OptionKind(StrEnum):
    STRING = "string"
    BOOL = "bool"
    PATH = "path"
    LIST = "list"


class OptionSource(StrEnum):
    DEFAULT = "default"
    ENVIRONMENT = "environment"
    COMMAND_LINE = "command-line"


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    kind: OptionKind
    help: str
    default: str | Callable[[], str] | None = None

    @property
    def env_var(self) -> str:
        return f"{ENV_PREFIX}{self.key}"

    def default_value(self) -> str | None:
        if callable(self.default):
            return self.default()
        return self.default


def _home_default(name: str) -> Callable[[], str]:
    def factory() -> str:
        try:
            return str(Path.home() / ".wasixcc" / name)
        except RuntimeError:
            return str(Path("/lib/wasixcc") / name)

    return factory


OPTIONS: tuple[ConfigEntry, ...] = (
    ConfigEntry(
        "SYSROOT",
        OptionKind.PATH,
        "Set the sysroot location directly; overrides SYSROOT_PREFIX.",
    ),
    ConfigEntry(
        "SYSROOT_PREFIX",
        OptionKind.PATH,
        "Directory holding the 'sysroot', 'sysroot-eh' and 'sysroot-ehpic' trees.",
        default=_home_default("sysroot"),
    ),
    ConfigEntry(
        "LLVM_LOCATION",
        OptionKind.PATH,
        "Installation directory of the LLVM toolchain; tools run from LLVM_LOCATION/bin.",
        default=_home_default("llvm"),
    ),
    ConfigEntry(
        "BINARYEN_LOCATION",
        OptionKind.PATH,
        "Installation directory of Binaryen; wasm-opt is taken from PATH when absent.",
        default=_home_default("binaryen"),
    ),
    ConfigEntry(
        "COMPILER_FLAGS",
        OptionKind.LIST,
        "Extra compiler flags, colon-separated, passed before command-line arguments.",
    ),
    ConfigEntry(
        "COMPILER_POST_FLAGS",
        OptionKind.LIST,
        "Extra compiler flags, colon-separated, passed after command-line arguments.",
    ),
    ConfigEntry("COMPILER_FLAGS_C", OptionKind.LIST, "Same as COMPILER_FLAGS, C only."),
    ConfigEntry("COMPILER_POST_FLAGS_C", OptionKind.LIST, "Same as COMPILER_POST_FLAGS, C only."),
    ConfigEntry("COMPILER_FLAGS_CXX", OptionKind.LIST, "Same as COMPILER_FLAGS, C++ only."),
    ConfigEntry(
        "COMPILER_POST_FLAGS_CXX", OptionKind.LIST, "Same as COMPILER_POST_FLAGS, C++ only."
    ),
    ConfigEntry("LINKER_FLAGS", OptionKind.LIST, "Extra linker flags, colon-separated."),
    ConfigEntry(
        "INCLUDE_CPP_SYMBOLS",
        OptionKind.BOOL,
        "Export the C++ runtime from a dynamic main module built from C sources.",
        default="no",
    ),
    ConfigEntry(
        "RUN_WASM_OPT",
        OptionKind.BOOL,
        "Whether to run wasm-opt on linked output. Implied by a non-empty WASM_OPT_FLAGS.",
        default="yes",
    ),
    ConfigEntry("WASM_OPT_FLAGS", OptionKind.LIST, "Extra wasm-opt flags, colon-separated."),
    ConfigEntry(
        "WASM_OPT_SUPPRESS_DEFAULT",
        OptionKind.BOOL,
        "Suppress the built-in wasm-opt flags (-O*, --asyncify, --emit-exnref).",
        default="no",
    ),
    ConfigEntry(
        "WASM_OPT_PRESERVE_UNOPTIMIZED",
        OptionKind.BOOL,
        "Keep a copy of the unoptimized artifact if wasm-opt fails.",
        default="no",
    ),
    ConfigEntry(
        "MODULE_KIND",
        OptionKind.STRING,
        "static-main, dynamic-main, shared-library or object-file; deduced when unset.",
    ),
    ConfigEntry(
        "WASM_EXCEPTIONS",
        OptionKind.BOOL,
        "Enable WebAssembly exception handling instead of asyncify.",
        default="no",
    ),
    ConfigEntry(
        "PIC",
        OptionKind.BOOL,
        "Generate position-independent code; requires WASM_EXCEPTIONS.",
        default="no",
    ),
    ConfigEntry(
        "LINK_SYMBOLIC",
        OptionKind.BOOL,
        "Link position-independent output with -Bsymbolic.",
        default="yes",
    ),
    ConfigEntry(
        "DOWNLOAD_MISSING",
        OptionKind.BOOL,
        "Download a missing sysroot or toolchain instead of failing.",
        default="no",
    ),
    ConfigEntry(
        "DOWNLOAD_TAG",
        OptionKind.STRING,
        "Release tag used by DOWNLOAD_MISSING: 'latest', 'v*' or 'version_*'.",
        default="latest",
    ),
    ConfigEntry(
        "LOG_LEVEL",
        OptionKind.STRING,
        "Diagnostic verbosity written to stderr (debug, info, warning, error).",
        default="warning",
    ),
)

OPTIONS_BY_KEY: dict[str, ConfigEntry] = {entry.key: entry for entry in OPTIONS}


def lookup(key: str) -> ConfigEntry | None:
    return OPTIONS_BY_KEY.get(key.upper())


def render_help() -> str:
    width = max(len(entry.key) for entry in OPTIONS) + 2
    lines = [
        "Configuration options can be provided on the command line as",
        f"'-sKEY=VALUE', or as environment variables prefixed with '{ENV_PREFIX}'.",
        "Lists are colon-separated; use '\\:' for a literal colon.",
        "",
    ]
    for entry in OPTIONS:
        default = entry.default_value()
        suffix = f" [default: {default}]" if default is not None else ""
        lines.append(f"  {entry.key.ljust(width)}{entry.kind.value:<7}{entry.help}{suffix}")
    return "\n".join(lines)
