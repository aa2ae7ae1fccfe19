"""Installation of ``wasix<command>`` links pointing at the wrapper executable."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

from wasixcc.errors import AcquisitionFailedError, MissingResourceError
from wasixcc.persona import INSTALLED_COMMANDS

WRAPPER_NAME = "wasixcc"


def find_wrapper(hint: str | None = None) -> Path:
    """Locate the ``wasixcc`` script, preferring the one beside ``hint``."""
    candidates: list[Path] = []
    if hint:
        candidates.append(Path(hint).absolute().with_name(WRAPPER_NAME))
    found = shutil.which(WRAPPER_NAME)
    if found:
        candidates.append(Path(found))
    for candidate in candidates:
        if candidate.is_file():
            return candidate.resolve()
    raise MissingResourceError(
        f"Could not locate the {WRAPPER_NAME} executable",
        kind="tool",
        expected_path=str(candidates[0]) if candidates else WRAPPER_NAME,
        hint=f"Install the package so that '{WRAPPER_NAME}' is on PATH.",
    )


def install_executables(target_dir: str | Path, wrapper: Path | None = None) -> list[Path]:
    """Create one ``wasix<command>`` symlink per persona in ``target_dir``."""
    wrapper = wrapper or find_wrapper(sys.argv[0] if sys.argv else None)
    directory = Path(target_dir).expanduser()
    links: list[Path] = []
    try:
        directory.mkdir(parents=True, exist_ok=True)
        for command in INSTALLED_COMMANDS:
            link = directory / f"wasix{command}"
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(wrapper)
            links.append(link)
    except OSError as exc:
        raise AcquisitionFailedError(
            f"Failed to install executables into {directory}",
            context={"path": str(directory), "error": str(exc)},
        ) from exc
    return links
