"""Public package entrypoint for the WASIX compiler wrapper."""

__version__ = "0.1.0"

from .compose import ToolInvocationComposer  # noqa: E402
from .config import ConfigStore, EffectiveConfig  # noqa: E402
from .engine import Plan, execute, plan, run  # noqa: E402
from .errors import (  # noqa: E402
    AcquisitionFailedError,
    IncompatibleProfileError,
    InvalidArgumentError,
    InvalidModuleKindError,
    InvalidOptionValueError,
    MissingResourceError,
    SubprocessFailureError,
    UnknownOptionError,
    UnknownPersonaError,
    UnsupportedCombinationError,
    WasixccError,
)
from .models import (  # noqa: E402
    BuildProfile,
    ComposedInvocations,
    ExceptionMode,
    FlagList,
    Invocation,
    ModuleKind,
    SourceLanguage,
    ToolPaths,
    ToolPersona,
)
from .persona import determine_persona  # noqa: E402
from .profile import resolve_profile  # noqa: E402
from .sysroot import SysrootResolver  # noqa: E402

__all__ = [
    "AcquisitionFailedError",
    "BuildProfile",
    "ComposedInvocations",
    "ConfigStore",
    "EffectiveConfig",
    "ExceptionMode",
    "FlagList",
    "IncompatibleProfileError",
    "InvalidArgumentError",
    "InvalidModuleKindError",
    "InvalidOptionValueError",
    "Invocation",
    "MissingResourceError",
    "ModuleKind",
    "Plan",
    "SourceLanguage",
    "SubprocessFailureError",
    "SysrootResolver",
    "ToolInvocationComposer",
    "ToolPaths",
    "ToolPersona",
    "UnknownOptionError",
    "UnknownPersonaError",
    "UnsupportedCombinationError",
    "WasixccError",
    "__version__",
    "determine_persona",
    "execute",
    "plan",
    "resolve_profile",
    "run",
]
