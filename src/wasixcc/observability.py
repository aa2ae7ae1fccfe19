"""Structured logging and observability helpers."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

LOGGER_NAME = "wasixcc"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(LOGGER_NAME))

    def log(
        self,
        *,
        operation: str,
        persona: str | None,
        phase: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "persona": persona,
            "phase": phase,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

        rendered = f"[{operation}/{phase}] {message}" if phase else f"[{operation}] {message}"
        if extra:
            rendered += " " + json.dumps(extra, sort_keys=True, default=str)
        self.logger.log(LEVELS.get(level, logging.INFO), rendered)

    def records_for_phase(self, phase: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("phase") == phase]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True, default=str) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path


def configure_logging(level: str | None) -> None:
    """Install a stderr handler on the package logger; idempotent."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(LEVELS.get((level or "warning").strip().lower(), logging.WARNING))
    for handler in logger.handlers:
        if getattr(handler, "_wasixcc", False):
            handler.setStream(sys.stderr)  # type: ignore[attr-defined]
            break
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        handler._wasixcc = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.propagate = False
