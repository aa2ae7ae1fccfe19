"""Layered option registry and configuration snapshot."""

from .options import ENV_PREFIX, OPTIONS, ConfigEntry, OptionKind, OptionSource, render_help
from .store import (
    ConfigStore,
    EffectiveConfig,
    ResolvedOption,
    parse_bool,
    parse_list,
    split_settings_args,
)

__all__ = [
    "ConfigEntry",
    "ConfigStore",
    "ENV_PREFIX",
    "EffectiveConfig",
    "OPTIONS",
    "OptionKind",
    "OptionSource",
    "ResolvedOption",
    "parse_bool",
    "parse_list",
    "render_help",
    "split_settings_args",
]
