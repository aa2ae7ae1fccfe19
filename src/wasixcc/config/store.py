"""Layered configuration store: command line > environment > default."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from wasixcc.config.options import OPTIONS, ConfigEntry, OptionKind, OptionSource, lookup
from wasixcc.errors import InvalidOptionValueError, UnknownOptionError

SETTING_PREFIX = "-s"
# Clang spellings such as -std=c11 or -stdlib=libc++ are lowercase.
SETTING_KEY = re.compile(r"[A-Z][A-Z0-9_]*")

TRUE_VALUES = frozenset({"1", "true", "yes"})
FALSE_VALUES = frozenset({"0", "false", "no"})


@dataclass(frozen=True, slots=True)
class ResolvedOption:
    key: str
    kind: OptionKind
    value: str | None
    source: OptionSource


def split_settings_args(tokens: Iterable[str]) -> tuple[list[str], list[str]]:
    """Separate ``-sKEY=VALUE`` settings from pass-through tool arguments.

    Every token after a bare ``--`` is pass-through. Lower-case clang flags
    that merely look alike (``-std=c11``) are pass-through too.
    """
    settings: list[str] = []
    passthrough: list[str] = []
    seen_dash_dash = False
    for token in tokens:
        if seen_dash_dash:
            passthrough.append(token)
        elif token == "--":
            seen_dash_dash = True
        elif is_setting(token):
            settings.append(token)
        else:
            passthrough.append(token)
    return settings, passthrough


def is_setting(token: str) -> bool:
    if not token.startswith(SETTING_PREFIX) or "=" not in token:
        return False
    name = token[len(SETTING_PREFIX) :].partition("=")[0]
    return SETTING_KEY.fullmatch(name) is not None or lookup(name) is not None


def parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def parse_list(value: str) -> tuple[str, ...]:
    """Split a colon-separated list; ``\\:`` is a literal colon."""
    items: list[str] = []
    current: list[str] = []

    def push() -> None:
        item = "".join(current).strip()
        if item:
            items.append(item)
        current.clear()

    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt == ":":
                current.append(":")
            elif nxt is None:
                current.append("\\")
            else:
                current.extend(("\\", nxt))
        elif ch == ":":
            push()
        else:
            current.append(ch)
    push()
    return tuple(items)


class ConfigStore:
    """Resolves option values from command-line settings and the environment."""

    def __init__(
        self,
        settings_args: Iterable[str] = (),
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._command_line: dict[str, str] = {}
        for token in settings_args:
            body = token[len(SETTING_PREFIX) :]
            name, _, value = body.partition("=")
            entry = self._entry(name)
            # Last occurrence wins.
            self._command_line[entry.key] = value

    def resolve(self, key: str) -> ResolvedOption:
        entry = self._entry(key)
        if entry.key in self._command_line:
            return ResolvedOption(
                entry.key, entry.kind, self._command_line[entry.key], OptionSource.COMMAND_LINE
            )
        env_value = self._environ.get(entry.env_var)
        if env_value is not None:
            return ResolvedOption(entry.key, entry.kind, env_value, OptionSource.ENVIRONMENT)
        return ResolvedOption(entry.key, entry.kind, entry.default_value(), OptionSource.DEFAULT)

    def snapshot(self) -> EffectiveConfig:
        """Freeze every recognized option at this instant."""
        resolved = {entry.key: self.resolve(entry.key) for entry in OPTIONS}
        return EffectiveConfig(options=MappingProxyType(resolved))

    @staticmethod
    def _entry(key: str) -> ConfigEntry:
        entry = lookup(key)
        if entry is None:
            raise UnknownOptionError(
                f"Unknown configuration option: {key}",
                hint="Run `wasixccenv help-config` to list recognized options.",
                context={"key": key},
            )
        return entry


@dataclass(frozen=True, slots=True)
class EffectiveConfig(Mapping[str, ResolvedOption]):
    """Immutable view of resolved options; the sole input downstream."""

    options: Mapping[str, ResolvedOption]

    def __getitem__(self, key: str) -> ResolvedOption:
        entry = lookup(key)
        if entry is None:
            raise UnknownOptionError(
                f"Unknown configuration option: {key}",
                context={"key": key},
            )
        return self.options[entry.key]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and lookup(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.options)

    def __len__(self) -> int:
        return len(self.options)

    def source(self, key: str) -> OptionSource:
        return self[key].source

    def is_set(self, key: str) -> bool:
        return self[key].source is not OptionSource.DEFAULT

    def string(self, key: str) -> str | None:
        value = self[key].value
        if value is None or not value.strip():
            return None
        return value.strip()

    def path(self, key: str) -> Path | None:
        value = self.string(key)
        return Path(value).expanduser() if value is not None else None

    def flag(self, key: str) -> bool:
        option = self[key]
        if option.value is None:
            return False
        parsed = parse_bool(option.value)
        if parsed is None:
            raise InvalidOptionValueError(
                f"Invalid value {option.value!r} for {option.key}",
                hint="Use one of 1/true/yes or 0/false/no.",
                context={"key": option.key, "source": option.source.value},
            )
        return parsed

    def list(self, key: str) -> tuple[str, ...]:
        value = self[key].value
        if value is None:
            return ()
        return parse_list(value)
