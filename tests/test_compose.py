from collections.abc import Sequence
from pathlib import Path

import pytest

from wasixcc.compose import ToolInvocationComposer
from wasixcc.config import ConfigStore, EffectiveConfig
from wasixcc.errors import UnsupportedCombinationError
from wasixcc.models import ComposedInvocations, ToolPaths, ToolPersona
from wasixcc.observability import StructuredLogger
from wasixcc.profile import resolve_profile

PATHS = ToolPaths(
    platform_root=Path("/opt/wasix/sysroot"),
    toolchain_bin_dir=Path("/opt/llvm/bin"),
    optimizer=Path("/opt/binaryen/bin/wasm-opt"),
)


def _compose(
    persona: ToolPersona,
    args: Sequence[str],
    settings: Sequence[str] = (),
    *,
    logger: StructuredLogger | None = None,
) -> ComposedInvocations:
    config = ConfigStore(settings, {}).snapshot()
    profile = resolve_profile(config, persona, args)
    return ToolInvocationComposer(config, logger=logger).compose(profile, persona, args, PATHS)


def _config(settings: Sequence[str] = ()) -> EffectiveConfig:
    return ConfigStore(settings, {}).snapshot()


def test_asyncify_static_main_segments() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["hello.c", "-o", "hello.wasm"])
    flags = composed.primary.flags

    assert composed.primary.executable == Path("/opt/llvm/bin/clang")
    assert flags.pre[:2] == ("--target=wasm32-wasi", "--sysroot=/opt/wasix/sysroot")
    assert flags.user == ("hello.c", "-o", "hello.wasm")
    assert flags.post[:5] == (
        "-matomics",
        "-mbulk-memory",
        "-mmutable-globals",
        "-pthread",
        "-fno-wasm-exceptions",
    )
    argv = flags.argv
    start = argv.index("hello.c")
    assert argv[start : start + 3] == ("hello.c", "-o", "hello.wasm")

    assert "-Wl,--entry=_start" in flags.pre
    assert "-Wl,-z,stack-size=8388608" in flags.pre
    assert "-ftls-model=local-exec" in flags.pre
    assert "-fPIC" not in flags.argv

    assert composed.optimizer is not None
    assert composed.optimizer.executable == PATHS.optimizer
    assert composed.optimizer.flags.pre == ("--asyncify",)
    assert composed.optimizer.flags.post[-3:] == ("hello.wasm", "-o", "hello.wasm")
    assert composed.output == Path("hello.wasm")


def test_eh_pic_shared_library_segments() -> None:
    composed = _compose(
        ToolPersona.CXX_COMPILER,
        ["-shared", "lib.cpp", "-o", "lib.wasm"],
        ["-sWASM_EXCEPTIONS=yes", "-sPIC=yes"],
    )
    flags = composed.primary.flags

    assert composed.primary.executable == Path("/opt/llvm/bin/clang++")
    assert flags.user == ("-shared", "lib.cpp", "-o", "lib.wasm")
    for expected in (
        "-fPIC",
        "-fvisibility=default",
        "-ftls-model=global-dynamic",
        "-Wl,-Bsymbolic",
        "-shared",
        "-Wl,--no-entry",
        "-Wl,--unresolved-symbols=import-dynamic",
        "-Wl,--experimental-pic",
        "-fwasm-exceptions",
        "-Wl,-mllvm,--wasm-enable-eh",
    ):
        assert expected in flags.pre
    assert "-Wl,--entry=_start" not in flags.pre
    assert "-fwasm-exceptions" in flags.post

    assert composed.optimizer is not None
    assert composed.optimizer.flags.pre == ("--emit-exnref",)


def test_segment_order_is_configured_pre_user_post() -> None:
    composed = _compose(
        ToolPersona.C_COMPILER,
        ["-O0", "a.c"],
        ["-sCOMPILER_FLAGS=-O2", "-sCOMPILER_POST_FLAGS=-Werror", "-sCOMPILER_FLAGS_C=-std=c11"],
    )
    argv = composed.primary.flags.argv

    assert argv.index("-O2") < argv.index("-std=c11") < argv.index("-O0") < argv.index("-Werror")
    assert composed.primary.flags.post[-1] == "-Werror"


def test_language_specific_flags_follow_the_language() -> None:
    composed = _compose(
        ToolPersona.CXX_COMPILER,
        ["-c", "a.cc"],
        ["-sCOMPILER_FLAGS_C=-std=c11", "-sCOMPILER_FLAGS_CXX=-std=c++20"],
    )
    assert "-std=c++20" in composed.primary.flags.pre
    assert "-std=c11" not in composed.primary.flags.argv


def test_dynamic_main_exports_the_whole_runtime() -> None:
    composed = _compose(
        ToolPersona.C_COMPILER,
        ["main.c", "-o", "main.wasm"],
        ["-sWASM_EXCEPTIONS=yes", "-sMODULE_KIND=dynamic-main", "-sINCLUDE_CPP_SYMBOLS=yes"],
    )
    pre = composed.primary.flags.pre

    assert "-Wl,--export-all" in pre
    assert "-Wl,-pie" in pre
    whole = pre.index("-Wl,--whole-archive")
    end = pre.index("-Wl,--no-whole-archive")
    assert whole < pre.index("-lc") < end
    assert whole < pre.index("-lc++") < end
    assert "-fPIC" in pre


def test_object_file_has_no_entry_point_and_no_optimizer() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["-c", "a.c", "-o", "a.o"])
    argv = composed.primary.flags.argv

    assert not any("--entry" in flag for flag in argv)
    assert not any(flag.startswith("-Wl,") for flag in argv)
    assert argv.count("-c") == 1
    assert composed.optimizer is None


def test_explicit_object_file_adds_compile_only_flag() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["a.c"], ["-sMODULE_KIND=object-file"])
    assert "-c" in composed.primary.flags.pre
    assert composed.output == Path("a.o")


def test_linker_flags_are_forwarded_for_binaries() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["a.c"], ["-sLINKER_FLAGS=--gc-sections"])
    pre = composed.primary.flags.pre
    index = pre.index("-Xlinker")
    assert pre[index + 1] == "--gc-sections"


def test_link_symbolic_can_be_disabled() -> None:
    composed = _compose(
        ToolPersona.C_COMPILER,
        ["-shared", "a.c"],
        ["-sWASM_EXCEPTIONS=yes", "-sPIC=yes", "-sLINK_SYMBOLIC=no"],
    )
    assert "-Wl,-Bsymbolic" not in composed.primary.flags.argv


def test_no_inputs_pass_straight_through() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["--version"])

    assert composed.primary.flags.argv == ("--target=wasm32-wasi", "--version")
    assert composed.optimizer is None


@pytest.mark.parametrize(
    ("persona", "tool"),
    [
        (ToolPersona.ARCHIVER, "llvm-ar"),
        (ToolPersona.SYMBOL_LISTER, "llvm-nm"),
        (ToolPersona.INDEX_GENERATOR, "llvm-ranlib"),
    ],
)
def test_binutils_personas_forward_arguments(persona: ToolPersona, tool: str) -> None:
    args = ["rcs", "libfoo.a", "foo.o"]
    composed = ToolInvocationComposer(_config()).compose(None, persona, args, PATHS)

    assert composed.primary.command == (f"/opt/llvm/bin/{tool}", *args)
    assert composed.optimizer is None


def test_linker_persona_drives_wasm_ld() -> None:
    composed = _compose(ToolPersona.LINKER, ["main.o", "-o", "main.wasm"])
    flags = composed.primary.flags

    assert composed.primary.executable == Path("/opt/llvm/bin/wasm-ld")
    assert flags.pre[:2] == ("-L/opt/wasix/sysroot/lib", "-L/opt/wasix/sysroot/lib/wasm32-wasi")
    assert "--shared-memory" in flags.pre
    assert "-lc" in flags.pre
    assert not any(flag.startswith("-Wl,") for flag in flags.argv)
    assert flags.user == ("main.o", "-o", "main.wasm")
    assert flags.post == (
        "-lclang_rt.builtins-wasm32",
        "/opt/wasix/sysroot/lib/wasm32-wasi/crt1.o",
    )
    assert composed.optimizer is not None


def test_linker_persona_shared_library_uses_scrt1() -> None:
    composed = _compose(
        ToolPersona.LINKER,
        ["-shared", "a.o", "-o", "liba.so"],
        ["-sWASM_EXCEPTIONS=yes", "-sPIC=yes"],
    )
    flags = composed.primary.flags
    assert "-shared" in flags.pre
    assert "-Bsymbolic" in flags.pre
    assert flags.post[-1].endswith("scrt1.o")


def test_symbolic_binding_is_limited_to_shared_libraries() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["a.c"], ["-sWASM_EXCEPTIONS=yes", "-sPIC=yes"])
    pre = composed.primary.flags.pre

    assert "-Wl,-pie" in pre
    assert "-Wl,-Bsymbolic" not in pre


def test_linker_without_inputs_forwards_arguments() -> None:
    config = _config()
    composed = ToolInvocationComposer(config).compose(
        resolve_profile(config, ToolPersona.LINKER, ["--version"]),
        ToolPersona.LINKER,
        ["--version"],
        ToolPaths(
            platform_root=None,
            toolchain_bin_dir=PATHS.toolchain_bin_dir,
            optimizer=PATHS.optimizer,
        ),
    )

    assert composed.primary.command == ("/opt/llvm/bin/wasm-ld", "--version")
    assert composed.optimizer is None
    assert not ToolInvocationComposer.requires_platform_root(ToolPersona.LINKER, ["--version"])
    assert ToolInvocationComposer.requires_platform_root(ToolPersona.LINKER, ["a.o"])


@pytest.mark.parametrize(
    ("args", "settings"),
    [
        (["--target=x86_64-linux-gnu", "a.c"], []),
        (["-mno-atomics", "a.c"], []),
        (["-fno-PIC", "a.c"], ["-sWASM_EXCEPTIONS=yes", "-sMODULE_KIND=shared-library"]),
        (["-shared", "a.c"], ["-sMODULE_KIND=static-main"]),
        (["-c", "a.c"], ["-sMODULE_KIND=static-main"]),
    ],
)
def test_contradictory_arguments_are_rejected(args: list[str], settings: list[str]) -> None:
    with pytest.raises(UnsupportedCombinationError):
        _compose(ToolPersona.C_COMPILER, args, settings)


def test_linker_persona_rejects_object_file() -> None:
    with pytest.raises(UnsupportedCombinationError):
        _compose(ToolPersona.LINKER, ["a.o"], ["-sMODULE_KIND=object-file"])


def test_optimizer_disabled_by_configuration() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["a.c"], ["-sRUN_WASM_OPT=no"])
    assert composed.optimizer is None


def test_optimizer_disabled_by_directive_but_implied_by_flags() -> None:
    assert _compose(ToolPersona.C_COMPILER, ["--no-wasm-opt", "a.c"]).optimizer is None

    composed = _compose(
        ToolPersona.C_COMPILER, ["--no-wasm-opt", "a.c"], ["-sWASM_OPT_FLAGS=--strip-debug"]
    )
    assert composed.optimizer is not None


def test_optimizer_defaults_can_be_suppressed() -> None:
    composed = _compose(
        ToolPersona.C_COMPILER,
        ["-O2", "a.c"],
        ["-sWASM_OPT_SUPPRESS_DEFAULT=yes", "-sWASM_OPT_FLAGS=--strip-debug:-Oz"],
    )
    assert composed.optimizer is not None
    assert composed.optimizer.flags.pre == ()
    assert composed.optimizer.flags.user == ("--strip-debug", "-Oz")

    suppressed = _compose(
        ToolPersona.C_COMPILER, ["a.c"], ["-sWASM_OPT_SUPPRESS_DEFAULT=yes"]
    )
    assert suppressed.optimizer is None


def test_optimizer_follows_compile_level_and_debug_info() -> None:
    composed = _compose(ToolPersona.C_COMPILER, ["-O2", "-g", "a.c"])
    assert composed.optimizer is not None
    assert composed.optimizer.flags.pre == ("--asyncify", "-O2")
    assert composed.optimizer.flags.post[0] == "-g"
    assert "--enable-threads" in composed.optimizer.flags.post

    composed = _compose(ToolPersona.C_COMPILER, ["-O2", "a.c"], ["-sWASM_OPT_FLAGS=-O4"])
    assert composed.optimizer is not None
    assert composed.optimizer.flags.pre == ("--asyncify",)


def test_composition_is_deterministic() -> None:
    args = ["-O2", "main.c", "-o", "main.wasm"]
    settings = ["-sWASM_EXCEPTIONS=yes", "-sCOMPILER_FLAGS=-DX"]
    assert _compose(ToolPersona.C_COMPILER, args, settings) == _compose(
        ToolPersona.C_COMPILER, args, settings
    )


def test_composition_is_logged() -> None:
    logger = StructuredLogger()
    _compose(ToolPersona.C_COMPILER, ["a.c"], logger=logger)

    records = logger.records_for_phase("compose")
    assert records[0]["extra"]["module_kind"] == "static-main"
