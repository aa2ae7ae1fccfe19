"""Process execution for composed tool invocations."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from wasixcc.errors import MissingResourceError
from wasixcc.models import FlagList, Invocation


class Executor(Protocol):
    def execute(self, executable: Path, flags: FlagList) -> int:
        """Run a tool and return its exit status."""


@dataclass(slots=True)
class SubprocessExecutor:
    """Runs tools with inherited stdio so compiler diagnostics reach the caller."""

    def execute(self, executable: Path, flags: FlagList) -> int:
        command = [str(executable), *flags.argv]
        try:
            result = subprocess.run(command, check=False)
        except FileNotFoundError:
            raise MissingResourceError(
                f"Tool not found: {executable}",
                kind="tool",
                expected_path=str(executable),
                hint="Check LLVM_LOCATION/BINARYEN_LOCATION or run `wasixccenv install-all`.",
                context={"operation": "execute"},
            ) from None
        return result.returncode


@dataclass(slots=True)
class RecordingExecutor:
    """Executor that records invocations instead of starting processes.

    ``statuses`` maps a tool file name (``clang``, ``wasm-opt``) to the exit
    status to report; anything unlisted succeeds. ``on_execute`` lets tests
    simulate side effects such as the tool writing its output file.
    """

    statuses: dict[str, int] = field(default_factory=dict)
    calls: list[Invocation] = field(default_factory=list)
    on_execute: Callable[[Invocation], None] | None = None

    def execute(self, executable: Path, flags: FlagList) -> int:
        invocation = Invocation(executable, flags)
        self.calls.append(invocation)
        if self.on_execute is not None:
            self.on_execute(invocation)
        return self.statuses.get(Path(executable).name, 0)

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [call.command for call in self.calls]
