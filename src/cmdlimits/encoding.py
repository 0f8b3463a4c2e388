"""Encoded sizes — what one argument or environment entry costs the kernel.

The limits a kernel enforces are not on string lengths but on the
memory the strings occupy once laid out for the new process.

On POSIX ``execve`` copies each string plus its NUL terminator onto the
new stack and stores a pointer to it in ``argv`` or ``envp``::

    char *argv[] = {"ls", "-l", NULL};   # 2 pointers + "ls\\0" + "-l\\0"

so one argument costs ``pointer + len(bytes) + 1`` and one environment
entry costs ``pointer + len(key) + 1 ("=") + len(value) + 1``.

On Windows ``CreateProcess`` receives a single UTF-16 command line.
Each argument is quoted and escaped, so we count code units, double
every backslash and double quote, and add 3 for the surrounding quotes
and separator.  The environment block is a run of ``key=value\\0``
strings with no pointer table.

The same functions are used both to check an item before admitting it
and to seed the accounting for the executable and a captured
environment, so what we report always matches what we charge.
"""

import os
import struct
from typing import TypeAlias
from collections.abc import Mapping

from cmdlimits.platforms import HostPlatform

OsValue: TypeAlias = str | bytes | os.PathLike[str] | os.PathLike[bytes]

# Size of one argv/envp slot (``char *``) on this interpreter's build.
POINTER_SIZE = struct.calcsize("P")

# Quote, quote, separator around each Windows command-line argument.
_WINDOWS_ARG_OVERHEAD = 3
_WINDOWS_ESCAPED = frozenset("\\\"")


def encode_posix(value: OsValue) -> bytes:
    """Return the bytes ``execve`` would receive for *value*."""
    return os.fsencode(value)


def _utf16_units(value: OsValue) -> int:
    text = os.fsdecode(value)
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def arg_cost(value: OsValue, platform: HostPlatform) -> int:
    """Return the encoded size of one argument.

    Args:
        value: The argument (str, bytes, or path-like).
        platform: Which process-creation convention to charge for.

    Returns:
        The number of bytes (POSIX) or UTF-16 units (Windows) charged.

    """
    if platform is HostPlatform.WINDOWS:
        text = os.fsdecode(value)
        escaped = sum(1 for ch in text if ch in _WINDOWS_ESCAPED)
        return _utf16_units(text) + escaped + _WINDOWS_ARG_OVERHEAD
    return POINTER_SIZE + len(encode_posix(value)) + 1


def env_pair_cost(key: OsValue, value: OsValue, platform: HostPlatform) -> int:
    """Return the encoded size of one ``key=value`` environment entry."""
    if platform is HostPlatform.WINDOWS:
        return _utf16_units(key) + 1 + _utf16_units(value) + 1
    return POINTER_SIZE + len(encode_posix(key)) + 1 + len(encode_posix(value)) + 1


def environment_cost(environ: Mapping[str, str], platform: HostPlatform) -> int:
    """Return the total encoded size of a whole environment mapping."""
    return sum(env_pair_cost(k, v, platform) for k, v in environ.items())
