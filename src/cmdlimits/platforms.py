"""Host platform identity and capability queries.

The rest of the package never touches ``os`` or ``sys`` directly for
platform facts.  Everything it needs from the host comes through here:

- ``detect_platform`` — which process-creation convention applies.
- ``query_arg_max`` — the kernel's advertised argument+environment budget.
- ``host_environment`` — a snapshot of the current environment.
"""

import os
import sys
from enum import StrEnum

_UNIX_PREFIXES = ("darwin", "freebsd", "openbsd", "netbsd", "dragonfly", "sunos", "aix", "cygwin")


class HostPlatform(StrEnum):
    """Process-creation conventions we know how to budget for.

    - LINUX: ``execve`` with a per-string ``MAX_ARG_STRLEN`` ceiling.
    - UNIX: other POSIX ``execve`` systems (macOS, the BSDs, ...).
    - WINDOWS: ``CreateProcess`` with a single quoted command line.
    - OTHER: unknown; budget with a small conservative constant.
    """

    LINUX = "linux"
    UNIX = "unix"
    WINDOWS = "windows"
    OTHER = "other"

    @property
    def is_posix(self) -> bool:
        """Return True if arguments are passed as a NUL-terminated vector."""
        return self is not HostPlatform.WINDOWS


def detect_platform(name: str | None = None) -> HostPlatform:
    """Map a ``sys.platform`` string to a ``HostPlatform``.

    Args:
        name: Platform string to classify (default ``sys.platform``).

    """
    name = sys.platform if name is None else name
    if name.startswith("linux"):
        return HostPlatform.LINUX
    if name == "win32":
        return HostPlatform.WINDOWS
    if name.startswith(_UNIX_PREFIXES):
        return HostPlatform.UNIX
    return HostPlatform.OTHER


def query_arg_max() -> int | None:
    """Return ``sysconf(_SC_ARG_MAX)``, or None if it is unavailable.

    Windows has no ``os.sysconf`` and some systems report -1 for an
    indeterminate limit; both come back as None.
    """
    try:
        value = os.sysconf("SC_ARG_MAX")
    except (AttributeError, OSError, ValueError):
        return None
    return value if value > 0 else None


def host_environment() -> dict[str, str]:
    """Return a snapshot of the current process environment."""
    return dict(os.environ)
