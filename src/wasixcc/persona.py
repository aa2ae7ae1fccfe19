"""Tool persona selection from the name the process was started as."""

from __future__ import annotations

from pathlib import PurePath

from wasixcc.errors import UnknownPersonaError
from wasixcc.models import ToolPersona

NAME_PREFIXES = ("wasix-", "wasix")

PERSONAS: dict[str, ToolPersona] = {
    "cc": ToolPersona.C_COMPILER,
    "++": ToolPersona.CXX_COMPILER,
    "cc++": ToolPersona.CXX_COMPILER,
    "c++": ToolPersona.CXX_COMPILER,
    "ar": ToolPersona.ARCHIVER,
    "nm": ToolPersona.SYMBOL_LISTER,
    "ranlib": ToolPersona.INDEX_GENERATOR,
    "ld": ToolPersona.LINKER,
}

# Suffixes installed by `wasixccenv install-executables`.
INSTALLED_COMMANDS = ("cc", "++", "cc++", "ar", "nm", "ranlib", "ld")

# Underlying LLVM binary for each persona.
TOOLS: dict[ToolPersona, str] = {
    ToolPersona.C_COMPILER: "clang",
    ToolPersona.CXX_COMPILER: "clang++",
    ToolPersona.ARCHIVER: "llvm-ar",
    ToolPersona.SYMBOL_LISTER: "llvm-nm",
    ToolPersona.INDEX_GENERATOR: "llvm-ranlib",
    ToolPersona.LINKER: "wasm-ld",
}


def command_name(invoked_name: str) -> str | None:
    base = PurePath(invoked_name).name
    if base.lower().endswith(".exe"):
        base = base[:-4]
    for prefix in NAME_PREFIXES:
        if base.startswith(prefix):
            return base[len(prefix) :]
    return None


def determine_persona(invoked_name: str) -> ToolPersona:
    command = command_name(invoked_name)
    persona = PERSONAS.get(command) if command is not None else None
    if persona is None:
        raise UnknownPersonaError(
            f"Unknown tool persona for invocation name {PurePath(invoked_name).name!r}",
            hint=(
                "Run this program as 'wasix-<command>' or 'wasix<command>', "
                f"with <command> one of: {', '.join(PERSONAS)}."
            ),
            context={"invoked_name": invoked_name, "command": command or ""},
        )
    return persona
