from pathlib import Path

import pytest
from conftest import Toolchain

from wasixcc import engine
from wasixcc.errors import (
    IncompatibleProfileError,
    MissingResourceError,
    SubprocessFailureError,
    UnknownOptionError,
    UnknownPersonaError,
)
from wasixcc.executor import RecordingExecutor
from wasixcc.models import ExceptionMode, Invocation, ModuleKind
from wasixcc.observability import StructuredLogger


def test_c_compile_runs_clang_then_wasm_opt(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    status = engine.run(
        "wasixcc",
        ["hello.c", "-o", "hello.wasm"],
        environ=toolchain.environ,
        executor=recording_executor,
    )

    assert status == 0
    clang, wasm_opt = recording_executor.calls
    assert clang.executable == toolchain.llvm / "bin" / "clang"
    assert f"--sysroot={toolchain.sysroot_prefix / 'sysroot'}" in clang.flags.pre
    assert clang.flags.user == ("hello.c", "-o", "hello.wasm")
    assert wasm_opt.executable == toolchain.binaryen / "bin" / "wasm-opt"
    assert "--asyncify" in wasm_opt.flags.pre


def test_eh_pic_shared_library_plan(toolchain: Toolchain) -> None:
    run_plan = engine.plan(
        "wasix++",
        ["-sWASM_EXCEPTIONS=yes", "-sPIC=yes", "-shared", "lib.cpp", "-o", "lib.wasm"],
        environ=toolchain.environ,
    )

    assert run_plan.profile is not None
    assert run_plan.profile.module_kind is ModuleKind.SHARED_LIBRARY
    assert run_plan.paths.platform_root == toolchain.sysroot_prefix / "sysroot-ehpic"
    pre = run_plan.invocations.primary.flags.pre
    assert "-fPIC" in pre
    assert "-Wl,-Bsymbolic" in pre
    assert "-Wl,--no-entry" in pre


def test_unknown_persona_runs_nothing(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    with pytest.raises(UnknownPersonaError):
        engine.run("gcc", ["a.c"], environ=toolchain.environ, executor=recording_executor)

    assert recording_executor.calls == []


def test_configuration_errors_surface_before_any_subprocess(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    with pytest.raises(UnknownOptionError):
        engine.run(
            "wasixcc",
            ["-sNO_SUCH_OPTION=1", "a.c"],
            environ=toolchain.environ,
            executor=recording_executor,
        )

    assert recording_executor.calls == []


def test_command_line_settings_beat_environment(toolchain: Toolchain) -> None:
    environ = {**toolchain.environ, "WASIXCC_WASM_EXCEPTIONS": "yes"}

    from_env = engine.plan("wasixcc", ["a.c"], environ=environ)
    overridden = engine.plan("wasixcc", ["-sWASM_EXCEPTIONS=no", "a.c"], environ=environ)

    assert from_env.profile is not None and overridden.profile is not None
    assert from_env.profile.exception_mode is ExceptionMode.WASM_EH
    assert overridden.profile.exception_mode is ExceptionMode.ASYNCIFY


def test_planning_is_deterministic(toolchain: Toolchain) -> None:
    args = ["-sCOMPILER_FLAGS=-DA:-DB", "-O2", "main.c", "-o", "main.wasm"]
    first = engine.plan("wasixcc", args, environ=toolchain.environ)
    second = engine.plan("wasixcc", args, environ=toolchain.environ)

    assert first.invocations == second.invocations
    assert first.profile == second.profile


def test_missing_sysroot_fails_without_running_tools(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    environ = {**toolchain.environ, "WASIXCC_SYSROOT_PREFIX": str(toolchain.root / "empty")}

    with pytest.raises(MissingResourceError):
        engine.run("wasixcc", ["a.c"], environ=environ, executor=recording_executor)

    assert recording_executor.calls == []


def test_no_input_invocation_does_not_need_a_sysroot(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    environ = {**toolchain.environ, "WASIXCC_SYSROOT_PREFIX": str(toolchain.root / "empty")}

    assert engine.run("wasixcc", ["--version"], environ=environ, executor=recording_executor) == 0
    assert recording_executor.commands == [
        (str(toolchain.llvm / "bin" / "clang"), "--target=wasm32-wasi", "--version")
    ]


def test_archiver_forwards_arguments(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    engine.run(
        "wasixar",
        ["rcs", "libfoo.a", "foo.o"],
        environ=toolchain.environ,
        executor=recording_executor,
    )

    assert recording_executor.commands == [
        (str(toolchain.llvm / "bin" / "llvm-ar"), "rcs", "libfoo.a", "foo.o")
    ]


def test_primary_failure_stops_before_optimizer(toolchain: Toolchain) -> None:
    executor = RecordingExecutor(statuses={"clang": 3})

    with pytest.raises(SubprocessFailureError) as excinfo:
        engine.run("wasixcc", ["a.c"], environ=toolchain.environ, executor=executor)

    assert excinfo.value.exit_status == 3
    assert len(executor.calls) == 1


def test_unoptimized_artifact_is_preserved_when_optimizer_fails(
    toolchain: Toolchain, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(toolchain.root)

    def write_output(invocation: Invocation) -> None:
        if invocation.executable.name == "clang":
            Path("hello.wasm").write_bytes(b"\0asm")

    executor = RecordingExecutor(statuses={"wasm-opt": 1}, on_execute=write_output)
    logger = StructuredLogger()

    with pytest.raises(SubprocessFailureError) as excinfo:
        engine.run(
            "wasixcc",
            ["-sWASM_OPT_PRESERVE_UNOPTIMIZED=yes", "hello.c", "-o", "hello.wasm"],
            environ=toolchain.environ,
            executor=executor,
            logger=logger,
        )

    preserved = Path(excinfo.value.context["unoptimized"])
    assert preserved.read_bytes() == b"\0asm"
    assert any(record["level"] == "warning" for record in logger.records)
    preserved.unlink()


def test_preserved_copy_is_removed_after_successful_optimization(
    toolchain: Toolchain, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(toolchain.root)
    copies: list[Path] = []
    created = engine.tempfile.mkstemp

    def tracking_mkstemp(*args: object, **kwargs: object) -> tuple[int, str]:
        fd, name = created(*args, **kwargs)  # type: ignore[arg-type]
        copies.append(Path(name))
        return fd, name

    monkeypatch.setattr(engine.tempfile, "mkstemp", tracking_mkstemp)
    Path("hello.wasm").write_bytes(b"\0asm")

    engine.run(
        "wasixcc",
        ["-sWASM_OPT_PRESERVE_UNOPTIMIZED=yes", "hello.c", "-o", "hello.wasm"],
        environ=toolchain.environ,
        executor=RecordingExecutor(),
    )

    assert len(copies) == 1
    assert not copies[0].exists()


def test_run_records_each_step(toolchain: Toolchain, recording_executor: RecordingExecutor) -> None:
    logger = StructuredLogger()
    engine.run(
        "wasixcc",
        ["a.c"],
        environ=toolchain.environ,
        executor=recording_executor,
        logger=logger,
    )

    assert [record["phase"] for record in logger.records if record["operation"] == "execute"] == [
        "primary",
        "optimizer",
    ]
    assert logger.records_for_phase("profile")[0]["extra"]["module_kind"] == "static-main"


def test_linker_shared_library_links_against_the_pic_sysroot(toolchain: Toolchain) -> None:
    with pytest.raises(IncompatibleProfileError):
        engine.plan("wasixld", ["-shared", "a.o", "-o", "liba.so"], environ=toolchain.environ)

    run_plan = engine.plan(
        "wasixld",
        ["-sWASM_EXCEPTIONS=yes", "-shared", "a.o", "-o", "liba.so"],
        environ=toolchain.environ,
    )
    assert run_plan.paths.platform_root == toolchain.sysroot_prefix / "sysroot-ehpic"
    assert "--experimental-pic" in run_plan.invocations.primary.flags.pre


def test_linker_version_query_does_not_need_a_sysroot(
    toolchain: Toolchain, recording_executor: RecordingExecutor
) -> None:
    environ = {**toolchain.environ, "WASIXCC_SYSROOT_PREFIX": str(toolchain.root / "empty")}

    assert engine.run("wasixld", ["--version"], environ=environ, executor=recording_executor) == 0
    assert recording_executor.commands == [(str(toolchain.llvm / "bin" / "wasm-ld"), "--version")]


def test_preserved_copy_is_removed_when_optimizer_cannot_start(
    toolchain: Toolchain, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(toolchain.root)
    copies: list[Path] = []
    created = engine.tempfile.mkstemp

    def tracking_mkstemp(*args: object, **kwargs: object) -> tuple[int, str]:
        fd, name = created(*args, **kwargs)  # type: ignore[arg-type]
        copies.append(Path(name))
        return fd, name

    def missing_wasm_opt(invocation: Invocation) -> None:
        if invocation.executable.name == "wasm-opt":
            raise MissingResourceError(
                "Tool not found", kind="tool", expected_path=str(invocation.executable)
            )

    monkeypatch.setattr(engine.tempfile, "mkstemp", tracking_mkstemp)
    Path("hello.wasm").write_bytes(b"\0asm")

    with pytest.raises(MissingResourceError):
        engine.run(
            "wasixcc",
            ["-sWASM_OPT_PRESERVE_UNOPTIMIZED=yes", "hello.c", "-o", "hello.wasm"],
            environ=toolchain.environ,
            executor=RecordingExecutor(on_execute=missing_wasm_opt),
        )

    assert len(copies) == 1
    assert not copies[0].exists()
