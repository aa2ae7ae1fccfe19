"""One wrapper run: persona, configuration, profile, paths, composition, execution."""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from wasixcc.compose import ToolInvocationComposer
from wasixcc.config import ConfigStore, EffectiveConfig, split_settings_args
from wasixcc.errors import SubprocessFailureError
from wasixcc.executor import Executor, SubprocessExecutor
from wasixcc.fetch import GithubReleaseFetcher
from wasixcc.models import BuildProfile, ComposedInvocations, Invocation, ToolPaths, ToolPersona
from wasixcc.observability import StructuredLogger
from wasixcc.persona import determine_persona
from wasixcc.profile import resolve_profile
from wasixcc.sysroot import Acquirer, SysrootResolver


@dataclass(frozen=True, slots=True)
class Plan:
    """Everything decided for a run before any process is started."""

    persona: ToolPersona
    config: EffectiveConfig
    profile: BuildProfile | None
    paths: ToolPaths
    invocations: ComposedInvocations


def load_config(
    argv: Sequence[str],
    environ: Mapping[str, str] | None = None,
) -> tuple[EffectiveConfig, list[str]]:
    """Split ``-sKEY=VALUE`` settings off ``argv`` and freeze the configuration."""
    settings, passthrough = split_settings_args(argv)
    store = ConfigStore(settings, os.environ if environ is None else environ)
    return store.snapshot(), passthrough


def plan(
    invoked_name: str,
    argv: Sequence[str],
    *,
    environ: Mapping[str, str] | None = None,
    acquirer: Acquirer | None = None,
    logger: StructuredLogger | None = None,
) -> Plan:
    logger = logger or StructuredLogger()
    environ = os.environ if environ is None else environ

    persona = determine_persona(invoked_name)
    config, raw_args = load_config(argv, environ)
    logger.log(
        operation="plan",
        persona=persona.value,
        phase="config",
        message="configuration resolved",
        level="debug",
        extra={key: option.source.value for key, option in config.items() if config.is_set(key)},
    )

    profile = None
    if persona.is_compiler or persona is ToolPersona.LINKER:
        profile = resolve_profile(config, persona, raw_args)
        logger.log(
            operation="plan",
            persona=persona.value,
            phase="profile",
            message="build profile resolved",
            level="debug",
            extra={
                "module_kind": profile.module_kind.value,
                "exception_mode": profile.exception_mode.value,
                "pic": profile.position_independent,
                "language": profile.source_language.value,
            },
        )

    resolver = SysrootResolver(
        config,
        acquirer=acquirer or GithubReleaseFetcher(config, environ=environ, logger=logger),
        logger=logger,
    )
    platform_root = None
    if profile is not None and ToolInvocationComposer.requires_platform_root(persona, raw_args):
        platform_root = resolver.resolve_platform_root(profile)
    paths = ToolPaths(
        platform_root=platform_root,
        toolchain_bin_dir=resolver.resolve_toolchain_bin_dir(),
        optimizer=resolver.resolve_optimizer(),
    )

    composer = ToolInvocationComposer(config, logger=logger)
    invocations = composer.compose(profile, persona, raw_args, paths)
    return Plan(
        persona=persona,
        config=config,
        profile=profile,
        paths=paths,
        invocations=invocations,
    )


def execute(
    run_plan: Plan,
    *,
    executor: Executor | None = None,
    logger: StructuredLogger | None = None,
) -> int:
    """Run the primary invocation, then the optimizer if one was composed."""
    executor = executor or SubprocessExecutor()
    logger = logger or StructuredLogger()
    invocations = run_plan.invocations

    _run(executor, invocations.primary, run_plan.persona, logger, step="primary")

    optimizer = invocations.optimizer
    if optimizer is None or invocations.output is None:
        return 0

    preserved = None
    if run_plan.config.flag("WASM_OPT_PRESERVE_UNOPTIMIZED"):
        preserved = _preserve(invocations.output, run_plan.persona, logger)
    keep = False
    try:
        _run(executor, optimizer, run_plan.persona, logger, step="optimizer")
    except SubprocessFailureError as exc:
        if preserved is None:
            raise
        keep = True
        logger.log(
            operation="execute",
            persona=run_plan.persona.value,
            phase="optimizer",
            message=f"unoptimized module preserved at {preserved}",
            level="warning",
        )
        raise SubprocessFailureError(
            str(exc).splitlines()[0],
            status=exc.status,
            hint=exc.hint,
            context={**exc.context, "unoptimized": str(preserved)},
        ) from exc
    finally:
        # Only a failed wasm-opt run leaves the copy behind for the user.
        if preserved is not None and not keep:
            preserved.unlink(missing_ok=True)
    return 0


def run(
    invoked_name: str,
    argv: Sequence[str],
    *,
    environ: Mapping[str, str] | None = None,
    executor: Executor | None = None,
    acquirer: Acquirer | None = None,
    logger: StructuredLogger | None = None,
) -> int:
    logger = logger or StructuredLogger()
    run_plan = plan(invoked_name, argv, environ=environ, acquirer=acquirer, logger=logger)
    return execute(run_plan, executor=executor, logger=logger)


def _run(
    executor: Executor,
    invocation: Invocation,
    persona: ToolPersona,
    logger: StructuredLogger,
    *,
    step: str,
) -> None:
    logger.log(
        operation="execute",
        persona=persona.value,
        phase=step,
        message=" ".join(invocation.command),
        level="info",
    )
    status = executor.execute(invocation.executable, invocation.flags)
    if status != 0:
        raise SubprocessFailureError(
            f"{invocation.executable.name} exited with status {status}",
            status=status,
            context={"step": step, "executable": str(invocation.executable)},
        )


def _preserve(output: Path, persona: ToolPersona, logger: StructuredLogger) -> Path | None:
    if not output.is_file():
        logger.log(
            operation="execute",
            persona=persona.value,
            phase="optimizer",
            message=f"no artifact at {output} to preserve",
            level="debug",
        )
        return None
    fd, name = tempfile.mkstemp(prefix=f"{output.name}.", suffix=".unopt")
    os.close(fd)
    shutil.copy2(output, name)
    return Path(name)
