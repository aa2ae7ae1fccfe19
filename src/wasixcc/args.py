"""Read-only scanning of pass-through tool arguments.

The scanners never rewrite the caller's tokens; they only record what the
arguments ask for (inputs, output, language, levels, module-kind hints) so
the profile resolver and the composer can make decisions. The one exception
is the pair of wrapper directives ``--wasm-opt``/``--no-wasm-opt``, which the
underlying tools do not understand and which are dropped from ``passthrough``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import PurePath

from wasixcc.errors import InvalidArgumentError
from wasixcc.models import DebugLevel, OptLevel, SourceLanguage

CLANG_FLAGS_WITH_ARGS = frozenset(
    {
        "-MT",
        "-MF",
        "-MJ",
        "-MQ",
        "-D",
        "-U",
        "-o",
        "-x",
        "-Xpreprocessor",
        "-include",
        "-imacros",
        "-idirafter",
        "-iprefix",
        "-iwithprefix",
        "-iwithprefixbefore",
        "-isysroot",
        "-imultilib",
        "-A",
        "-isystem",
        "-iquote",
        "-install_name",
        "-compatibility_version",
        "-mllvm",
        "-mthread-model",
        "-current_version",
        "-I",
        "-l",
        "-L",
        "-include-pch",
        "-u",
        "-undefined",
        "-target",
        "-Xlinker",
        "-Xclang",
        "-z",
    }
)

WASM_LD_FLAGS_WITH_ARGS = frozenset({"-o", "-mllvm", "-L", "-l", "-m", "-O", "-y", "-z"})

LINK_INPUT_SUFFIXES = frozenset({".a", ".o", ".obj"})

WRAPPER_DIRECTIVES = {"--wasm-opt": True, "--no-wasm-opt": False}

OPT_LEVELS = {
    "": OptLevel.O1,
    "0": OptLevel.O0,
    "1": OptLevel.O1,
    "2": OptLevel.O2,
    "3": OptLevel.O3,
    "4": OptLevel.O4,
    "s": OptLevel.OS,
    "z": OptLevel.OZ,
    "fast": OptLevel.O3,
}

DEBUG_LEVELS = {
    "": DebugLevel.G2,
    "0": DebugLevel.G0,
    "1": DebugLevel.G1,
    "2": DebugLevel.G2,
    "3": DebugLevel.G3,
}

LANGUAGES = {
    "c": SourceLanguage.C,
    "c-header": SourceLanguage.C,
    "c++": SourceLanguage.CXX,
    "c++-header": SourceLanguage.CXX,
}


@dataclass(slots=True)
class ArgScan:
    passthrough: tuple[str, ...] = ()
    compiler_inputs: list[str] = field(default_factory=list)
    linker_inputs: list[str] = field(default_factory=list)
    compiler_flags: list[str] = field(default_factory=list)
    linker_flags: list[str] = field(default_factory=list)
    output: str | None = None
    wasm_exceptions: bool | None = None
    pic: bool | None = None
    language: SourceLanguage | None = None
    opt_level: OptLevel = OptLevel.O0
    debug_level: DebugLevel = DebugLevel.NONE
    run_wasm_opt: bool | None = None
    targets: list[str] = field(default_factory=list)

    @property
    def has_inputs(self) -> bool:
        return bool(self.compiler_inputs or self.linker_inputs)

    @property
    def compile_only(self) -> bool:
        return any(flag in ("-c", "-S", "-E") for flag in self.compiler_flags)

    @property
    def shared(self) -> bool:
        return "-shared" in self.compiler_flags or "-shared" in self.linker_flags

    @property
    def pie(self) -> bool:
        return "-pie" in self.linker_flags

    @property
    def output_suffix(self) -> str:
        return PurePath(self.output).suffix if self.output else ""


def scan_compiler_args(tokens: Iterable[str]) -> ArgScan:
    """Classify clang driver arguments without reordering or rewriting them."""
    scan = ArgScan()
    kept: list[str] = []
    items = iter(tokens)
    for arg in items:
        if arg in WRAPPER_DIRECTIVES:
            scan.run_wasm_opt = WRAPPER_DIRECTIVES[arg]
            continue
        kept.append(arg)

        if arg.startswith("-Wl,"):
            scan.linker_flags.extend(part for part in arg[4:].split(",") if part)
        elif arg in ("-Xlinker", "-z"):
            value = _expect_value(arg, items)
            kept.append(value)
            if arg == "-z":
                scan.linker_flags.extend(("-z", value))
            else:
                scan.linker_flags.append(value)
        elif arg == "-o":
            scan.output = _expect_value(arg, items)
            kept.append(scan.output)
        elif arg == "-x" or (arg.startswith("-x") and len(arg) > 2):
            value = _expect_value(arg, items) if arg == "-x" else arg[2:]
            if arg == "-x":
                kept.append(value)
            _record_language(scan, value)
        elif arg.startswith("-") and arg != "-":
            _record_flag(scan, arg)
            value = None
            if arg in CLANG_FLAGS_WITH_ARGS:
                value = _expect_value(arg, items)
                kept.append(value)
            if arg == "-target" and value is not None:
                scan.targets.append(value)
            elif arg.startswith("--target="):
                scan.targets.append(arg.partition("=")[2])
            target = scan.linker_flags if arg.startswith(("-l", "-L")) else scan.compiler_flags
            target.append(arg)
            if value is not None:
                target.append(value)
        elif PurePath(arg).suffix in LINK_INPUT_SUFFIXES:
            scan.linker_inputs.append(arg)
        else:
            scan.compiler_inputs.append(arg)

    scan.passthrough = tuple(kept)
    return scan


def scan_linker_args(tokens: Iterable[str]) -> ArgScan:
    """Classify wasm-ld arguments."""
    scan = ArgScan()
    kept: list[str] = []
    items = iter(tokens)
    for arg in items:
        if arg in WRAPPER_DIRECTIVES:
            scan.run_wasm_opt = WRAPPER_DIRECTIVES[arg]
            continue
        kept.append(arg)
        if arg == "-o":
            scan.output = _expect_value(arg, items)
            kept.append(scan.output)
        elif arg.startswith("-"):
            scan.linker_flags.append(arg)
            if arg in WASM_LD_FLAGS_WITH_ARGS:
                value = next(items, None)
                if value is not None:
                    kept.append(value)
                    scan.linker_flags.append(value)
        else:
            scan.linker_inputs.append(arg)

    scan.passthrough = tuple(kept)
    return scan


def _record_flag(scan: ArgScan, arg: str) -> None:
    if arg == "-fwasm-exceptions":
        scan.wasm_exceptions = True
    elif arg == "-fno-wasm-exceptions":
        scan.wasm_exceptions = False
    elif arg in ("-fPIC", "-fpic"):
        scan.pic = True
    elif arg in ("-fno-PIC", "-fno-pic"):
        scan.pic = False
    elif arg.startswith("-O"):
        level = arg[2:]
        if level not in OPT_LEVELS:
            raise InvalidArgumentError(
                f"Invalid argument: {arg}",
                hint="Use one of -O0, -O1, -O2, -O3, -O4, -Os, -Oz.",
                context={"argument": arg},
            )
        scan.opt_level = OPT_LEVELS[level]
    elif arg.startswith("-g") and arg[2:] in DEBUG_LEVELS:
        scan.debug_level = DEBUG_LEVELS[arg[2:]]


def _record_language(scan: ArgScan, value: str) -> None:
    if value == "none":
        scan.language = None
    elif value in LANGUAGES:
        scan.language = LANGUAGES[value]


def _expect_value(flag: str, items: Iterator[str]) -> str:
    value = next(items, None)
    if value is None:
        raise InvalidArgumentError(
            f"Expected argument after {flag}",
            context={"argument": flag},
        )
    return value
