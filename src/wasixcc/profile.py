"""Derivation of a validated build profile from the configuration snapshot."""

from __future__ import annotations

from collections.abc import Sequence

from wasixcc.args import ArgScan, scan_compiler_args, scan_linker_args
from wasixcc.config import EffectiveConfig
from wasixcc.errors import IncompatibleProfileError, InvalidModuleKindError
from wasixcc.models import (
    BuildProfile,
    ExceptionMode,
    ModuleKind,
    SourceLanguage,
    ToolPersona,
)

PERSONA_LANGUAGES = {
    ToolPersona.C_COMPILER: SourceLanguage.C,
    ToolPersona.CXX_COMPILER: SourceLanguage.CXX,
}

OUTPUT_SUFFIX_KINDS = {
    ".o": ModuleKind.OBJECT_FILE,
    ".obj": ModuleKind.OBJECT_FILE,
    ".so": ModuleKind.SHARED_LIBRARY,
}


def scan_arguments(persona: ToolPersona, raw_args: Sequence[str]) -> ArgScan:
    if persona.is_compiler:
        return scan_compiler_args(raw_args)
    if persona is ToolPersona.LINKER:
        return scan_linker_args(raw_args)
    return ArgScan(passthrough=tuple(raw_args))


def parse_module_kind(value: str) -> ModuleKind:
    try:
        return ModuleKind(value.strip().lower())
    except ValueError:
        raise InvalidModuleKindError(
            f"Unknown module kind: {value}",
            hint=f"Use one of: {', '.join(kind.value for kind in ModuleKind)}.",
            context={"key": "MODULE_KIND", "value": value},
        ) from None


def resolve_profile(
    config: EffectiveConfig,
    persona: ToolPersona,
    raw_args: Sequence[str],
) -> BuildProfile:
    """Map configuration and pass-through arguments to a consistent profile.

    Pure: reads the snapshot and the argument list, never the environment or
    the file system. Failures surface in a fixed order: module kind, then the
    PIC/exception-handling compatibility rule.
    """
    scan = scan_arguments(persona, raw_args)

    configured_kind = config.string("MODULE_KIND")
    explicit_kind = parse_module_kind(configured_kind) if configured_kind else None

    wasm_exceptions = config.flag("WASM_EXCEPTIONS")
    if scan.wasm_exceptions is not None:
        wasm_exceptions = scan.wasm_exceptions
    exception_mode = ExceptionMode.WASM_EH if wasm_exceptions else ExceptionMode.ASYNCIFY

    pic = config.flag("PIC")
    pic_source = config.source("PIC").value
    if scan.pic is not None:
        pic = scan.pic
        pic_source = "argument"

    module_kind = explicit_kind or _deduce_module_kind(scan, pic=pic)
    # Objects reaching the linker for a dynamic module must come from the PIC sysroot.
    if persona is ToolPersona.LINKER and module_kind.requires_pic and not pic:
        pic = True
        pic_source = "module-kind"

    if pic and exception_mode is ExceptionMode.ASYNCIFY:
        raise IncompatibleProfileError(
            "PIC without wasm exceptions is not a valid build configuration",
            hint="Set WASM_EXCEPTIONS=yes (or pass -fwasm-exceptions), or drop PIC.",
            context={
                "persona": persona.value,
                "pic_source": pic_source,
                "module_kind": module_kind.value,
                "exception_mode": exception_mode.value,
            },
        )

    language = PERSONA_LANGUAGES.get(persona, SourceLanguage.C)
    if scan.language is not None:
        language = scan.language

    return BuildProfile(
        module_kind=module_kind,
        exception_mode=exception_mode,
        position_independent=pic,
        source_language=language,
        module_kind_explicit=explicit_kind is not None,
        opt_level=scan.opt_level,
        debug_level=scan.debug_level,
    )


def _deduce_module_kind(scan: ArgScan, *, pic: bool) -> ModuleKind:
    suffix_kind = OUTPUT_SUFFIX_KINDS.get(scan.output_suffix)
    if suffix_kind is not None:
        return suffix_kind
    if scan.compile_only:
        return ModuleKind.OBJECT_FILE
    if scan.shared:
        return ModuleKind.SHARED_LIBRARY
    if scan.pie:
        return ModuleKind.DYNAMIC_MAIN
    return ModuleKind.DYNAMIC_MAIN if pic else ModuleKind.STATIC_MAIN
