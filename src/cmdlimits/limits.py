"""Command limits — how much argument and environment data fits in one exec.

Every kernel caps the memory a new process's arguments and environment
may occupy.  Exceed it and ``execve`` fails with ``E2BIG`` (or Windows
truncates the command line), usually long after the caller decided
what to run.  ``CommandLimits`` captures those caps as a value so a
``CommandBuilder`` can refuse an argument *before* that happens.

The numbers we report are deliberately conservative:

- **Linux** advertises ``ARG_MAX`` as a quarter of the stack rlimit,
  which is often far more than is safe to use.  Like GNU xargs we cap
  it at 128 KiB.  Linux also refuses any single string longer than
  ``MAX_ARG_STRLEN`` (32 pages, 128 KiB).
- **Other POSIX** systems get the same treatment with a 2 MiB cap.
- POSIX asks callers to leave 2 KiB of headroom; we reserve 4 KiB, but
  never go below the 2 KiB floor.
- **Windows** allows 32767 UTF-16 units on the command line and keeps
  the environment in a separate block with the same limit.
- **Unknown** platforms get 4 KiB, the smallest ``ARG_MAX`` POSIX allows.

When ``env_size`` is None, arguments and environment share one budget
(``arg_size``), as they do in a single ``execve`` call.
"""

from collections.abc import Callable
from dataclasses import dataclass, fields

from cmdlimits.accounting import Budget
from cmdlimits.platforms import HostPlatform, detect_platform, query_arg_max

KIB = 1024

# POSIX guarantees at least 4 KiB and asks for 2 KiB of headroom.
ARG_POSIX_MIN = 4 * KIB
ARG_RESERVED = 4 * KIB
ARG_MIN = 2 * KIB

LINUX_ARG_MAX = 128 * KIB
LINUX_SINGLE_MAX = 128 * KIB
UNIX_ARG_MAX = 2048 * KIB

WINDOWS_ARG_MAX = 32767 - ARG_RESERVED
FALLBACK_ARG_MAX = 4 * KIB


@dataclass(frozen=True, kw_only=True)
class CommandLimits:
    """Byte and count ceilings for one process invocation.

    Attributes:
        arg_size: Total budget for all arguments (and the environment
            too, when ``env_size`` is None).
        individual_arg_size: Ceiling on one argument's encoded size.
        arg_count: Ceiling on the number of arguments after the
            program name.
        env_size: Separate budget for the environment, or None to share
            ``arg_size``.
        individual_env_size: Ceiling on one ``key=value`` entry.
        env_count: Ceiling on the number of environment entries.

    """

    arg_size: int
    individual_arg_size: int | None = None
    arg_count: int | None = None
    env_size: int | None = None
    individual_env_size: int | None = None
    env_count: int | None = None

    def __post_init__(self) -> None:
        """Reject bounds that are not strictly positive integers."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None and f.name != "arg_size":
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                msg = f"{f.name} must be an int, got {value!r}"
                raise ValueError(msg)
            if value <= 0:
                msg = f"{f.name} must be positive, got {value}"
                raise ValueError(msg)

    @property
    def shared_budget(self) -> bool:
        """Return True if arguments and environment share ``arg_size``."""
        return self.env_size is None

    def arg_budget(self, env_bytes: int = 0) -> Budget:
        """Return the budget arguments are admitted against.

        Args:
            env_bytes: Bytes the environment already uses; only counted
                when the budget is shared.

        """
        return Budget(
            size=self.arg_size,
            individual_size=self.individual_arg_size,
            # argv[0] holds the program name and is not counted against arg_count
            count=None if self.arg_count is None else self.arg_count + 1,
            reserved=env_bytes if self.shared_budget else 0,
        )

    def env_budget(self, arg_bytes: int = 0) -> Budget:
        """Return the budget environment entries are admitted against."""
        if self.env_size is None:
            return Budget(
                size=self.arg_size,
                individual_size=self.individual_env_size,
                count=self.env_count,
                reserved=arg_bytes,
            )
        return Budget(
            size=self.env_size,
            individual_size=self.individual_env_size,
            count=self.env_count,
        )


def _posix_arg_size(arg_max: int | None, cap: int) -> int:
    """Clamp the advertised ``ARG_MAX`` into a safe budget."""
    advertised = min(cap, arg_max or 0)
    return max(max(advertised, ARG_POSIX_MIN) - ARG_RESERVED, ARG_MIN)


def resolve_limits(
    platform: HostPlatform | None = None,
    *,
    arg_max: Callable[[], int | None] = query_arg_max,
) -> CommandLimits:
    """Return a conservative ``CommandLimits`` for a platform.

    Args:
        platform: Target platform (default: the running host).
        arg_max: Capability query returning the kernel's ``ARG_MAX``, or
            None if unavailable.  Only consulted on POSIX platforms.

    Returns:
        Limits that never exceed what the platform will accept.

    """
    platform = detect_platform() if platform is None else platform

    match platform:
        case HostPlatform.LINUX:
            return CommandLimits(
                arg_size=_posix_arg_size(arg_max(), LINUX_ARG_MAX),
                individual_arg_size=LINUX_SINGLE_MAX,
                individual_env_size=LINUX_SINGLE_MAX,
            )
        case HostPlatform.UNIX:
            return CommandLimits(arg_size=_posix_arg_size(arg_max(), UNIX_ARG_MAX))
        case HostPlatform.WINDOWS:
            return CommandLimits(arg_size=WINDOWS_ARG_MAX, env_size=WINDOWS_ARG_MAX)
        case _:
            return CommandLimits(arg_size=FALLBACK_ARG_MAX)
