"""Composition of ordered tool invocations from a build profile.

The primary invocation is assembled in a fixed order:

1. target triple and sysroot
2. module-kind flags
3. exception-handling flags
4. position-independence flags (PIC profiles only)
5. configured language flags (pre segment)
6. the caller's pass-through arguments, verbatim
7. forced target features and configured post flags (post segment)

Steps 1-5 form ``FlagList.pre``, step 6 ``FlagList.user`` and step 7
``FlagList.post``. The toolchain applies last-flag-wins, so caller arguments
override defaults and the post segment overrides caller arguments.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from wasixcc.args import ArgScan
from wasixcc.config import EffectiveConfig
from wasixcc.errors import UnsupportedCombinationError
from wasixcc.models import (
    TARGET_TRIPLE,
    BuildProfile,
    ComposedInvocations,
    ExceptionMode,
    FlagList,
    Invocation,
    ModuleKind,
    SourceLanguage,
    ToolPaths,
    ToolPersona,
)
from wasixcc.observability import StructuredLogger
from wasixcc.persona import TOOLS
from wasixcc.profile import scan_arguments

TARGET_FLAG = f"--target={TARGET_TRIPLE}"

PLATFORM_COMPILE_FLAGS = (
    "-mthread-model",
    "posix",
    "-fno-trapping-math",
    "-D_WASI_EMULATED_MMAN",
    "-D_WASI_EMULATED_SIGNAL",
    "-D_WASI_EMULATED_PROCESS_CLOCKS",
)

FORCED_TARGET_FEATURES = ("-matomics", "-mbulk-memory", "-mmutable-globals", "-pthread")

DISABLED_FEATURE_FLAGS = {
    "-mno-atomics": "atomics",
    "-mno-bulk-memory": "bulk-memory",
    "-mno-mutable-globals": "mutable-globals",
}

SUPPORTED_TARGET_PREFIX = "wasm32-wasi"

LINK_BASELINE = (
    ("--extra-features=atomics",),
    ("--extra-features=bulk-memory",),
    ("--extra-features=mutable-globals",),
    ("--shared-memory",),
    ("--max-memory=4294967296",),
    ("--import-memory",),
    ("--export-dynamic",),
    ("--export=__wasm_call_ctors",),
    ("--export=__wasm_init_tls",),
    ("--export=__wasm_signal",),
    ("--export=__tls_size",),
    ("--export=__tls_align",),
    ("--export=__tls_base",),
)

ENTRY_POINT = ("--entry=_start",)

EXECUTABLE_EXPORTS = (
    ("--export-if-defined=__stack_pointer",),
    ("--export-if-defined=__heap_base",),
    ("--export-if-defined=__data_end",),
)

STATIC_MAIN_STACK = ("-z", "stack-size=8388608")

FULL_RUNTIME_EXPORT = ("--export-all",)

RUNTIME_LIBRARIES = (
    "-lwasi-emulated-getpid",
    "-lwasi-emulated-mman",
    "-lwasi-emulated-process-clocks",
    "-lc",
    "-lresolv",
    "-lrt",
    "-lm",
    "-lpthread",
    "-lutil",
)

CXX_RUNTIME_LIBRARIES = ("-lc++", "-lc++abi", "-lunwind")

BUILTINS_LIBRARY = "-lclang_rt.builtins-wasm32"

SHARED_LIBRARY_LINK = (
    ("--no-entry",),
    ("--unresolved-symbols=import-dynamic",),
)

PIC_LINK = (
    ("--experimental-pic",),
    ("--export-if-defined=__wasm_apply_data_relocs",),
    ("--export-if-defined=__wasm_apply_tls_relocs",),
)

PIC_COMPILE_FLAGS = ("-fPIC", "-ftls-model=global-dynamic", "-fvisibility=default")

SJLJ_LLVM_FLAG = ("-mllvm", "--wasm-enable-sjlj")
EH_LLVM_FLAG = ("-mllvm", "--wasm-enable-eh")

WASM_OPT_FEATURES = (
    "--enable-threads",
    "--enable-mutable-globals",
    "--enable-bulk-memory",
    "--enable-bulk-memory-opt",
    "--enable-exception-handling",
)

DEFAULT_OUTPUT = {True: "a.out", False: "a.o"}

LANGUAGE_FLAG_KEYS = {
    SourceLanguage.C: ("COMPILER_FLAGS_C", "COMPILER_POST_FLAGS_C"),
    SourceLanguage.CXX: ("COMPILER_FLAGS_CXX", "COMPILER_POST_FLAGS_CXX"),
}


@dataclass(slots=True)
class _LinkArgs:
    """Linker arguments rendered either for the clang driver or for wasm-ld."""

    driver: bool
    tokens: list[str] = field(default_factory=list)

    def group(self, *flags: str) -> None:
        if self.driver:
            self.tokens.append("-Wl," + ",".join(flags))
        else:
            self.tokens.extend(flags)

    def groups(self, groups: Sequence[tuple[str, ...]]) -> None:
        for flags in groups:
            self.group(*flags)

    def libs(self, *libs: str) -> None:
        self.tokens.extend(libs)


class ToolInvocationComposer:
    def __init__(self, config: EffectiveConfig, *, logger: StructuredLogger | None = None) -> None:
        self.config = config
        self.logger = logger

    @staticmethod
    def requires_platform_root(persona: ToolPersona, raw_args: Sequence[str]) -> bool:
        if persona.is_compiler or persona is ToolPersona.LINKER:
            return scan_arguments(persona, raw_args).has_inputs
        return False

    def compose(
        self,
        profile: BuildProfile | None,
        persona: ToolPersona,
        raw_args: Sequence[str],
        paths: ToolPaths,
    ) -> ComposedInvocations:
        scan = scan_arguments(persona, raw_args)
        executable = paths.tool(TOOLS[persona])

        if persona.is_compiler and not scan.has_inputs:
            # Nothing to build (e.g. --version, -dumpmachine): hand straight to clang.
            self._log(persona, "passthrough", "no inputs, forwarding arguments")
            primary = Invocation(executable, FlagList(pre=(TARGET_FLAG,), user=scan.passthrough))
            return ComposedInvocations(primary=primary)
        if persona is ToolPersona.LINKER and not scan.has_inputs:
            self._log(persona, "passthrough", "no inputs, forwarding arguments")
            return ComposedInvocations(
                primary=Invocation(executable, FlagList(user=scan.passthrough))
            )

        if profile is None or not (persona.is_compiler or persona is ToolPersona.LINKER):
            return ComposedInvocations(
                primary=Invocation(executable, FlagList(user=scan.passthrough))
            )

        self._check_conflicts(profile, persona, scan)
        if persona is ToolPersona.LINKER:
            flags = self._linker_flags(profile, scan, paths)
        else:
            flags = self._compiler_flags(profile, scan, paths)
        primary = Invocation(executable, flags)

        output = Path(scan.output or DEFAULT_OUTPUT[profile.module_kind.is_binary])
        optimizer = self._optimizer(profile, scan, paths, output)
        self._log(
            persona,
            "compose",
            "composed invocations",
            extra={
                "module_kind": profile.module_kind.value,
                "exception_mode": profile.exception_mode.value,
                "pic": profile.position_independent,
                "optimizer": optimizer is not None,
            },
        )
        return ComposedInvocations(primary=primary, optimizer=optimizer, output=output)

    def _compiler_flags(self, profile: BuildProfile, scan: ArgScan, paths: ToolPaths) -> FlagList:
        pre: list[str] = [TARGET_FLAG, f"--sysroot={self._root(paths)}", *PLATFORM_COMPILE_FLAGS]

        pre.extend(self._module_kind_flags(profile, scan, driver=True))
        pre.extend(self._exception_flags(profile, driver=True))
        if profile.position_independent:
            pre.extend(self._pic_flags(profile, driver=True))

        pre_key, post_key = LANGUAGE_FLAG_KEYS[profile.source_language]
        pre.extend(self.config.list("COMPILER_FLAGS"))
        pre.extend(self.config.list(pre_key))
        if profile.module_kind.is_binary:
            for flag in self.config.list("LINKER_FLAGS"):
                pre.extend(("-Xlinker", flag))

        post: list[str] = [*FORCED_TARGET_FEATURES]
        post.append("-fwasm-exceptions" if profile.wasm_exceptions else "-fno-wasm-exceptions")
        post.extend(self.config.list("COMPILER_POST_FLAGS"))
        post.extend(self.config.list(post_key))

        return FlagList(pre=tuple(pre), user=scan.passthrough, post=tuple(post))

    def _linker_flags(self, profile: BuildProfile, scan: ArgScan, paths: ToolPaths) -> FlagList:
        lib_dir = self._root(paths) / "lib"
        pre: list[str] = [f"-L{lib_dir}", f"-L{lib_dir / TARGET_TRIPLE}"]

        pre.extend(self._module_kind_flags(profile, scan, driver=False))
        pre.extend(self._exception_flags(profile, driver=False))
        if profile.position_independent:
            pre.extend(self._pic_flags(profile, driver=False))
        pre.extend(self.config.list("LINKER_FLAGS"))

        crt = "crt1.o" if profile.module_kind.is_executable else "scrt1.o"
        post = (BUILTINS_LIBRARY, str(lib_dir / TARGET_TRIPLE / crt))
        return FlagList(pre=tuple(pre), user=scan.passthrough, post=post)

    def _module_kind_flags(
        self, profile: BuildProfile, scan: ArgScan, *, driver: bool
    ) -> list[str]:
        kind = profile.module_kind
        compile_flags: list[str] = []

        if kind is ModuleKind.OBJECT_FILE:
            if not scan.compile_only:
                compile_flags.append("-c")
        elif kind is ModuleKind.SHARED_LIBRARY and driver:
            compile_flags.append("-shared")

        if kind.requires_pic and not profile.position_independent:
            compile_flags.extend(("-fPIC", "-ftls-model=global-dynamic"))
        elif not profile.relocatable:
            compile_flags.append("-ftls-model=local-exec")

        link = _LinkArgs(driver=driver)
        if kind.is_binary:
            link.groups(LINK_BASELINE)
        if kind.is_executable:
            link.group(*ENTRY_POINT)
            link.groups(EXECUTABLE_EXPORTS)

        if kind is ModuleKind.STATIC_MAIN:
            link.group(*STATIC_MAIN_STACK)
            link.libs(*self._runtime_libraries(profile))
        elif kind is ModuleKind.DYNAMIC_MAIN:
            # Side modules resolve their imports against the main module's runtime.
            link.group("-pie")
            link.group("--whole-archive")
            link.group(*FULL_RUNTIME_EXPORT)
            link.libs(*self._runtime_libraries(profile, full=True))
            link.group("--no-whole-archive")
            link.libs("-lcommon-tag-stubs")
        elif kind is ModuleKind.SHARED_LIBRARY:
            if not driver:
                link.group("-shared")
            link.groups(SHARED_LIBRARY_LINK)

        if kind.is_binary and kind.requires_pic:
            link.groups(PIC_LINK)

        return [*compile_flags, *link.tokens] if driver else link.tokens

    def _runtime_libraries(self, profile: BuildProfile, *, full: bool = False) -> list[str]:
        libs = list(RUNTIME_LIBRARIES)
        if profile.cxx or (full and self.config.flag("INCLUDE_CPP_SYMBOLS")):
            libs.extend(CXX_RUNTIME_LIBRARIES)
        return libs

    def _exception_flags(self, profile: BuildProfile, *, driver: bool) -> list[str]:
        if profile.exception_mode is ExceptionMode.ASYNCIFY:
            # setjmp/longjmp are lowered by the asyncify pass in wasm-opt.
            return ["-fno-wasm-exceptions"] if driver else []

        llvm_flags = [SJLJ_LLVM_FLAG]
        if profile.cxx:
            llvm_flags.append(EH_LLVM_FLAG)

        flags: list[str] = []
        if driver:
            flags.append("-fwasm-exceptions")
            for pair in llvm_flags:
                flags.extend(pair)
        if profile.module_kind.is_binary:
            link = _LinkArgs(driver=driver)
            link.groups(llvm_flags)
            flags.extend(link.tokens)
        return flags

    def _pic_flags(self, profile: BuildProfile, *, driver: bool) -> list[str]:
        flags = list(PIC_COMPILE_FLAGS) if driver else []
        if profile.module_kind is ModuleKind.SHARED_LIBRARY and self.config.flag("LINK_SYMBOLIC"):
            link = _LinkArgs(driver=driver)
            link.group("-Bsymbolic")
            flags.extend(link.tokens)
        return flags

    def _optimizer(
        self,
        profile: BuildProfile,
        scan: ArgScan,
        paths: ToolPaths,
        output: Path,
    ) -> Invocation | None:
        if not profile.module_kind.is_binary or not self._optimizer_enabled(scan):
            return None

        configured = self.config.list("WASM_OPT_FLAGS")
        defaults: list[str] = []
        if not self.config.flag("WASM_OPT_SUPPRESS_DEFAULT"):
            if profile.exception_mode is ExceptionMode.WASM_EH:
                defaults.append("--emit-exnref")
            else:
                defaults.append("--asyncify")
            if profile.opt_level.flag != "-O0" and not any(
                flag.startswith("-O") for flag in configured
            ):
                defaults.append(profile.opt_level.flag)

        if not defaults and not configured:
            self._log(None, "optimize", "skipping wasm-opt, no passes requested")
            return None

        post: list[str] = []
        if profile.debug_level.keeps_debug_info:
            post.append("-g")
        post.append("--no-validation")
        post.extend(WASM_OPT_FEATURES)
        post.extend((str(output), "-o", str(output)))
        return Invocation(
            paths.optimizer,
            FlagList(pre=tuple(defaults), user=configured, post=tuple(post)),
        )

    def _optimizer_enabled(self, scan: ArgScan) -> bool:
        if self.config.is_set("RUN_WASM_OPT"):
            return self.config.flag("RUN_WASM_OPT")
        if self.config.list("WASM_OPT_FLAGS"):
            return True
        if scan.run_wasm_opt is not None:
            return scan.run_wasm_opt
        return self.config.flag("RUN_WASM_OPT")

    def _check_conflicts(self, profile: BuildProfile, persona: ToolPersona, scan: ArgScan) -> None:
        kind = profile.module_kind
        problems: list[tuple[str, str]] = []

        for target in scan.targets:
            if not target.startswith(SUPPORTED_TARGET_PREFIX):
                problems.append((f"--target={target}", f"only {TARGET_TRIPLE} is supported"))
        for flag, feature in DISABLED_FEATURE_FLAGS.items():
            if flag in scan.compiler_flags:
                problems.append((flag, f"the {feature} feature is required by the platform"))
        if scan.pic is False and kind.requires_pic:
            problems.append(("-fno-PIC", f"{kind.value} modules must be position-independent"))
        if profile.module_kind_explicit and scan.shared and kind is not ModuleKind.SHARED_LIBRARY:
            problems.append(("-shared", f"MODULE_KIND is {kind.value}"))
        if profile.module_kind_explicit and scan.compile_only and kind.is_binary:
            problems.append(("-c", f"MODULE_KIND is {kind.value}"))
        if persona is ToolPersona.LINKER and not kind.is_binary:
            problems.append(("MODULE_KIND", "only binaries can be linked"))

        if problems:
            argument, reason = problems[0]
            raise UnsupportedCombinationError(
                f"Argument {argument} conflicts with the build profile: {reason}",
                hint="Remove the conflicting argument or change the wrapper configuration.",
                context={
                    "persona": persona.value,
                    "argument": argument,
                    "module_kind": kind.value,
                    "exception_mode": profile.exception_mode.value,
                    "pic": str(profile.position_independent).lower(),
                },
            )

    def _root(self, paths: ToolPaths) -> Path:
        if paths.platform_root is None:
            raise UnsupportedCombinationError(
                "A platform root is required to build inputs",
                context={"operation": "compose"},
            )
        return paths.platform_root

    def _log(
        self,
        persona: ToolPersona | None,
        phase: str,
        message: str,
        *,
        extra: dict[str, object] | None = None,
    ) -> None:
        if self.logger is None:
            return
        self.logger.log(
            operation="compose",
            persona=persona.value if persona is not None else None,
            phase=phase,
            message=message,
            level="debug",
            extra=dict(extra) if extra is not None else None,
        )
