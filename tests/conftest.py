"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest

from wasixcc.executor import RecordingExecutor


@dataclass(frozen=True, slots=True)
class Toolchain:
    root: Path
    sysroot_prefix: Path
    llvm: Path
    binaryen: Path
    environ: dict[str, str]


@pytest.fixture
def toolchain(tmp_path: Path) -> Toolchain:
    """Lay out installed sysroots, LLVM and binaryen under a temporary root."""
    prefix = tmp_path / "sysroots"
    for name in ("sysroot", "sysroot-eh", "sysroot-ehpic"):
        (prefix / name / "lib" / "wasm32-wasi").mkdir(parents=True)
    llvm = tmp_path / "llvm"
    (llvm / "bin").mkdir(parents=True)
    binaryen = tmp_path / "binaryen"
    (binaryen / "bin").mkdir(parents=True)
    environ = {
        "WASIXCC_SYSROOT_PREFIX": str(prefix),
        "WASIXCC_LLVM_LOCATION": str(llvm),
        "WASIXCC_BINARYEN_LOCATION": str(binaryen),
    }
    return Toolchain(
        root=tmp_path,
        sysroot_prefix=prefix,
        llvm=llvm,
        binaryen=binaryen,
        environ=environ,
    )


@pytest.fixture
def recording_executor() -> RecordingExecutor:
    """Provide an executor that records invocations instead of running tools."""
    return RecordingExecutor()
