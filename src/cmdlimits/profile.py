"""Limits profiles — ``CommandLimits`` stored as JSON.

The resolved defaults suit most callers, but a deployment may want to
pin tighter limits (a remote host with a smaller ``ARG_MAX``, a wrapper
that prepends its own arguments).  A profile is a flat JSON object::

    {"arg_size": 65536, "individual_arg_size": 4096, "arg_count": 500}

``arg_size`` is required; every other key is optional and must be one
of the ``CommandLimits`` fields.  Anything else is rejected rather than
ignored, so a typo cannot silently leave a limit unenforced.
"""

from __future__ import annotations

import json
from dataclasses import asdict, fields
from typing import TYPE_CHECKING, Any

from cmdlimits.errors import LimitsProfileError
from cmdlimits.limits import CommandLimits

if TYPE_CHECKING:
    from pathlib import Path

_FIELDS = frozenset(f.name for f in fields(CommandLimits))


def limits_from_mapping(data: Any) -> CommandLimits:
    """Build ``CommandLimits`` from a decoded JSON object.

    Raises:
        LimitsProfileError: If the data is not an object, has unknown
            keys, lacks ``arg_size`` or holds an invalid bound.

    """
    if not isinstance(data, dict):
        msg = f"Limits profile must be a JSON object, got {type(data).__name__}"
        raise LimitsProfileError(msg)

    unknown = sorted(set(data) - _FIELDS)
    if unknown:
        msg = f"Unknown limits profile keys: {', '.join(unknown)}"
        raise LimitsProfileError(msg)
    if "arg_size" not in data:
        msg = "Limits profile is missing arg_size"
        raise LimitsProfileError(msg)

    try:
        return CommandLimits(**data)
    except ValueError as e:
        msg = f"Invalid limits profile: {e}"
        raise LimitsProfileError(msg) from e


def limits_to_mapping(limits: CommandLimits) -> dict[str, int]:
    """Return the bounds that are set, omitting absent ones."""
    return {k: v for k, v in asdict(limits).items() if v is not None}


def load_limits(path: Path) -> CommandLimits:
    """Load a limits profile from a JSON file.

    Raises:
        LimitsProfileError: If the file cannot be read or parsed.

    """
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        msg = f"Cannot load limits profile: {e}"
        raise LimitsProfileError(msg) from e
    return limits_from_mapping(data)


def dump_limits(limits: CommandLimits, path: Path) -> None:
    """Write *limits* to *path* as a JSON profile."""
    path.write_text(json.dumps(limits_to_mapping(limits), indent=2) + "\n")
