"""mob-consensus: git-native collaboration on shared twigs."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("mob-consensus")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .commands import run  # noqa: F401
from .context import Command, ExecutionMode, Options, Streams  # noqa: F401
from .errors import (  # noqa: F401
    AbortedError,
    AmbiguityError,
    MobConsensusError,
    NotFoundError,
    PreconditionError,
    SubstrateError,
    UsageError,
)
from .merge import MergeOutcome  # noqa: F401

__all__ = [
    "run",
    "Command",
    "ExecutionMode",
    "Options",
    "Streams",
    "MergeOutcome",
    "MobConsensusError",
    "UsageError",
    "AmbiguityError",
    "NotFoundError",
    "PreconditionError",
    "AbortedError",
    "SubstrateError",
    "__version__",
]
