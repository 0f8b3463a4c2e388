"""Build process invocations that fit the platform's argument limits.

Re-exports public symbols so callers can write::

    from cmdlimits import CommandBuilder, InsufficientSpaceError
"""

from cmdlimits.accounting import AccountingState, Budget, check, check_and_commit, release
from cmdlimits.builder import CommandBuilder, EnvMode, Invocation
from cmdlimits.encoding import POINTER_SIZE, arg_cost, env_pair_cost, environment_cost
from cmdlimits.errors import (
    InsufficientSpaceError,
    LimitError,
    LimitErrorKind,
    LimitsProfileError,
    TooLargeError,
    TooManyError,
)
from cmdlimits.limits import CommandLimits, resolve_limits
from cmdlimits.logging import LogEntry, Logger, LogLevel
from cmdlimits.platforms import HostPlatform, detect_platform, host_environment, query_arg_max
from cmdlimits.profile import dump_limits, limits_from_mapping, limits_to_mapping, load_limits

__all__ = [
    "POINTER_SIZE",
    "AccountingState",
    "Budget",
    "CommandBuilder",
    "CommandLimits",
    "EnvMode",
    "HostPlatform",
    "InsufficientSpaceError",
    "Invocation",
    "LimitError",
    "LimitErrorKind",
    "LimitsProfileError",
    "LogEntry",
    "LogLevel",
    "Logger",
    "TooLargeError",
    "TooManyError",
    "arg_cost",
    "check",
    "check_and_commit",
    "detect_platform",
    "dump_limits",
    "env_pair_cost",
    "environment_cost",
    "host_environment",
    "limits_from_mapping",
    "limits_to_mapping",
    "load_limits",
    "query_arg_max",
    "release",
    "resolve_limits",
]
