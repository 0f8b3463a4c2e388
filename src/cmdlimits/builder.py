"""Command builder — assemble an invocation that is guaranteed to fit.

A ``CommandBuilder`` accumulates a program name, its arguments and its
environment, charging each one against a ``CommandLimits`` profile as it
goes.  Anything that would push the command past a limit is rejected on
the spot with a ``LimitError``, and the builder is left exactly as it
was.  When the caller is done, ``invocation()`` hands back an
``Invocation`` ready for ``subprocess`` (or anything else that spawns
processes; the builder itself never does).

The environment is in one of three modes::

    INHERIT ──env()/env_remove()──► EXPLICIT ◄──env()── CLEARED
       ▲                               │                   ▲
       └──────── inherit_env() ────────┴──── env_clear() ──┘

- **INHERIT** — the child gets the host environment as it is at spawn
  time.  Plain construction starts here without charging anything;
  ``inherit_env()`` charges a snapshot of the host environment.
- **EXPLICIT** — the child gets exactly the mapping the builder holds.
  The first ``env()`` in INHERIT mode seeds the mapping from a fresh
  host snapshot, so what is spawned is never a silent mix of managed
  and unmanaged variables.
- **CLEARED** — the child gets an empty environment.

Builders are cheap to clone, and a clone shares nothing mutable with its
origin.  The usual pattern is to keep a known-good base and clone it
for each attempt::

    base = CommandBuilder("grep").args(["-n", pattern])
    cmd = base.clone()
    for path in paths:
        try:
            cmd.arg(path)
        except InsufficientSpaceError:
            run(cmd.invocation())
            cmd = base.clone().arg(path)
"""

import os
from typing import TypeAlias
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from cmdlimits.accounting import AccountingState, Budget, check_and_commit, release
from cmdlimits.encoding import OsValue, arg_cost, env_pair_cost, environment_cost
from cmdlimits.errors import LimitError
from cmdlimits.limits import CommandLimits, resolve_limits
from cmdlimits.logging import Logger, LogLevel
from cmdlimits.platforms import HostPlatform, detect_platform, host_environment

# Type alias for the host environment snapshot provider.
EnvironProvider: TypeAlias = Callable[[], Mapping[str, str]]


class EnvMode(StrEnum):
    """How the spawned process gets its environment."""

    INHERIT = "inherit"
    CLEARED = "cleared"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class Invocation:
    """A finished, read-only command ready to be spawned.

    Attributes:
        executable: The program to run (also ``argv[0]``).
        arguments: The arguments after the program name, in order.
        environment: None to inherit the host environment, otherwise
            the exact mapping the process should see (possibly empty).
        env_mode: The builder's environment mode when exported.

    """

    executable: OsValue
    arguments: tuple[OsValue, ...]
    environment: Mapping[str, str] | None
    env_mode: EnvMode

    @property
    def argv(self) -> tuple[OsValue, ...]:
        """Return the full argument vector, program name first."""
        return (self.executable, *self.arguments)

    def popen_kwargs(self) -> dict[str, object]:
        """Return keyword arguments for ``subprocess.Popen`` / ``run``."""
        env = None if self.environment is None else dict(self.environment)
        return {"args": list(self.argv), "env": env}


def _check_no_nul(value: OsValue, what: str) -> None:
    if "\0" in os.fsdecode(value):
        msg = f"{what} must not contain NUL characters"
        raise ValueError(msg)


def _env_key(key: OsValue) -> str:
    name = os.fsdecode(key)
    if not name or "=" in name:
        msg = f"Invalid environment variable name: {name!r}"
        raise ValueError(msg)
    _check_no_nul(name, "Environment variable name")
    return name


class CommandBuilder:
    """Build a process invocation within the platform's size limits.

    Every mutator returns the builder so calls can be chained, or raises
    a ``LimitError`` subclass (``TooLargeError``, ``TooManyError`` or
    ``InsufficientSpaceError``) without changing anything.
    """

    def __init__(
        self,
        executable: OsValue,
        *,
        limits: CommandLimits | None = None,
        platform: HostPlatform | None = None,
        capture_env: bool = False,
        environ: EnvironProvider = host_environment,
        logger: Logger | None = None,
    ) -> None:
        """Create a builder for *executable*.

        Args:
            executable: Program path or name; charged as ``argv[0]``.
            limits: Limits to enforce (default: resolved for *platform*).
            platform: Process-creation convention to charge for
                (default: the running host).
            capture_env: If True, snapshot and charge the host
                environment now (EXPLICIT mode) instead of inheriting
                it uncharged.
            environ: Provider of the host environment snapshot.
            logger: Optional audit log for admissions and rejections.

        Raises:
            LimitError: The program name (or captured environment) does
                not fit within *limits*.

        """
        self._platform = detect_platform() if platform is None else platform
        self._limits = resolve_limits(self._platform) if limits is None else limits
        self._environ = environ
        self._logger = logger
        self._executable = executable
        self._arguments: list[OsValue] = []
        self._env_mode = EnvMode.INHERIT
        self._env: dict[str, str] = {}
        self._arg_accounting = AccountingState()
        self._env_accounting = AccountingState()

        _check_no_nul(executable, "Executable")
        self._admit(
            self._arg_accounting,
            self._arg_budget(),
            arg_cost(executable, self._platform),
            source="args",
            label=f"executable {os.fsdecode(executable)!r}",
        )
        if capture_env:
            self.capture_env()

    # -- Alternative constructors -----------------------------------------

    @classmethod
    def capture(
        cls,
        executable: OsValue,
        *,
        platform: HostPlatform | None = None,
        environ: EnvironProvider = host_environment,
        logger: Logger | None = None,
    ) -> "CommandBuilder":
        """Create a builder that captures and charges the host environment."""
        return cls(executable, platform=platform, capture_env=True, environ=environ, logger=logger)

    @classmethod
    def with_limits(
        cls,
        executable: OsValue,
        limits: CommandLimits,
        *,
        capture_env: bool = False,
        platform: HostPlatform | None = None,
        environ: EnvironProvider = host_environment,
        logger: Logger | None = None,
    ) -> "CommandBuilder":
        """Create a builder enforcing caller-supplied *limits*."""
        return cls(
            executable,
            limits=limits,
            platform=platform,
            capture_env=capture_env,
            environ=environ,
            logger=logger,
        )

    @classmethod
    def capture_with_limits(
        cls,
        executable: OsValue,
        limits: CommandLimits,
        *,
        platform: HostPlatform | None = None,
        environ: EnvironProvider = host_environment,
        logger: Logger | None = None,
    ) -> "CommandBuilder":
        """Create a builder with *limits* that also captures the environment."""
        return cls.with_limits(
            executable,
            limits,
            capture_env=True,
            platform=platform,
            environ=environ,
            logger=logger,
        )

    # -- Introspection ----------------------------------------------------

    @property
    def limits(self) -> CommandLimits:
        """Return the limits in force."""
        return self._limits

    @property
    def platform(self) -> HostPlatform:
        """Return the platform whose encoding is charged."""
        return self._platform

    @property
    def executable(self) -> OsValue:
        """Return the program name."""
        return self._executable

    @property
    def arguments(self) -> tuple[OsValue, ...]:
        """Return the accepted arguments, excluding the program name."""
        return tuple(self._arguments)

    @property
    def env_mode(self) -> EnvMode:
        """Return the current environment mode."""
        return self._env_mode

    @property
    def environment(self) -> dict[str, str] | None:
        """Return a copy of the managed environment, or None if inherited."""
        if self._env_mode is EnvMode.INHERIT:
            return None
        return dict(self._env)

    @property
    def arg_accounting(self) -> AccountingState:
        """Return a snapshot of the argument totals (program name included)."""
        return self._arg_accounting.copy()

    @property
    def env_accounting(self) -> AccountingState:
        """Return a snapshot of the environment totals."""
        return self._env_accounting.copy()

    def remaining_arg_bytes(self) -> int:
        """Return how many bytes of argument space are left."""
        return self._arg_budget().remaining(self._arg_accounting)

    def remaining_env_bytes(self) -> int:
        """Return how many bytes of environment space are left."""
        return self._env_budget().remaining(self._env_accounting)

    # -- Arguments --------------------------------------------------------

    def arg(self, value: OsValue) -> "CommandBuilder":
        """Append one argument if it fits.

        Raises:
            LimitError: The argument does not fit; nothing is changed.
            ValueError: The argument contains a NUL character.

        """
        _check_no_nul(value, "Argument")
        self._admit(
            self._arg_accounting,
            self._arg_budget(),
            arg_cost(value, self._platform),
            source="args",
            label=f"argument {os.fsdecode(value)!r}",
        )
        self._arguments.append(value)
        return self

    def args(self, values: Iterable[OsValue]) -> "CommandBuilder":
        """Append arguments one by one, stopping at the first that does not fit.

        Arguments admitted before the failure stay admitted.  To make a
        batch all-or-nothing, add it to a ``clone()`` and keep the clone
        only if this returns.
        """
        for value in values:
            self.arg(value)
        return self

    # -- Environment ------------------------------------------------------

    def env(self, key: OsValue, value: OsValue) -> "CommandBuilder":
        """Set one environment variable if it fits.

        Overwriting a variable releases its old charge before the new
        one is checked, so the count does not grow.  In INHERIT mode the
        managed mapping is first seeded from a host snapshot; in
        CLEARED mode it starts empty.

        Raises:
            LimitError: The entry (or the seeding snapshot) does not
                fit; nothing is changed.
            ValueError: The name is empty or contains ``=`` or NUL.

        """
        name = _env_key(key)
        text = os.fsdecode(value)
        _check_no_nul(text, "Environment variable value")

        if self._env_mode is EnvMode.EXPLICIT:
            env, state = self._env, self._env_accounting.copy()
        elif self._env_mode is EnvMode.CLEARED:
            env, state = {}, AccountingState()
        else:
            env, state = self._capture(check=True)

        old = env.get(name)
        if old is not None:
            release(state, env_pair_cost(name, old, self._platform))
        self._admit(
            state,
            self._env_budget(),
            env_pair_cost(name, text, self._platform),
            source="env",
            label=f"variable {name}",
        )

        env[name] = text
        self._commit_env(EnvMode.EXPLICIT, env, state)
        return self

    def envs(self, variables: Mapping[str, str]) -> "CommandBuilder":
        """Set several environment variables, stopping at the first misfit."""
        for key, value in variables.items():
            self.env(key, value)
        return self

    def env_remove(self, key: OsValue) -> "CommandBuilder":
        """Remove one environment variable; never fails on size grounds.

        Removing a variable that is not set, or whose name no variable could
        have, is a no-op.  In INHERIT mode,
        removing a variable the host does have switches to EXPLICIT mode
        with the host snapshot minus that variable.
        """
        try:
            name = _env_key(key)
        except ValueError:
            # No variable can have such a name, so there is nothing to remove.
            return self
        if self._env_mode is EnvMode.CLEARED:
            return self
        if self._env_mode is EnvMode.INHERIT:
            env, state = self._capture(check=False)
            if name not in env:
                return self
        else:
            env, state = self._env, self._env_accounting
            if name not in env:
                return self

        size = env_pair_cost(name, env.pop(name), self._platform)
        release(state, size)
        self._commit_env(EnvMode.EXPLICIT, env, state)
        self._log(LogLevel.DEBUG, f"Removed variable {name}", source="env", size=size)
        return self

    def inherit_env(self) -> "CommandBuilder":
        """Inherit the host environment, charging a snapshot of it.

        Raises:
            LimitError: The host environment no longer fits; the
                builder keeps its previous environment.

        """
        _, state = self._capture(check=True)
        self._commit_env(EnvMode.INHERIT, {}, state)
        return self

    def capture_env(self) -> "CommandBuilder":
        """Replace the managed environment with a charged host snapshot.

        Raises:
            LimitError: The host environment does not fit; the builder
                keeps its previous environment.

        """
        env, state = self._capture(check=True)
        self._commit_env(EnvMode.EXPLICIT, env, state)
        return self

    def env_clear(self) -> "CommandBuilder":
        """Give the spawned process an empty environment."""
        self._commit_env(EnvMode.CLEARED, {}, AccountingState())
        return self

    # -- Export and copying -----------------------------------------------

    def invocation(self) -> Invocation:
        """Return the current command as a read-only ``Invocation``."""
        environment = None
        if self._env_mode is not EnvMode.INHERIT:
            environment = MappingProxyType(dict(self._env))
        return Invocation(
            executable=self._executable,
            arguments=tuple(self._arguments),
            environment=environment,
            env_mode=self._env_mode,
        )

    def clone(self) -> "CommandBuilder":
        """Return an independent copy to use as a checkpoint.

        The audit logger, if any, is shared: it is a sink, not state.
        """
        other = type(self).__new__(type(self))
        other.__dict__.update(self.__dict__)
        other._arguments = list(self._arguments)
        other._env = dict(self._env)
        other._arg_accounting = self._arg_accounting.copy()
        other._env_accounting = self._env_accounting.copy()
        return other

    __copy__ = clone

    def __deepcopy__(self, memo: dict[int, object]) -> "CommandBuilder":
        """Deep copies are clones; there is nothing deeper to copy."""
        return self.clone()

    def __repr__(self) -> str:
        """Return a short summary of the builder."""
        return (
            f"CommandBuilder({os.fsdecode(self._executable)!r}, "
            f"args={len(self._arguments)}, env={self._env_mode.value}, "
            f"arg_bytes={self._arg_accounting.bytes_used}, "
            f"env_bytes={self._env_accounting.bytes_used})"
        )

    # -- Internals --------------------------------------------------------

    def _arg_budget(self) -> Budget:
        return self._limits.arg_budget(self._env_accounting.bytes_used)

    def _env_budget(self) -> Budget:
        return self._limits.env_budget(self._arg_accounting.bytes_used)

    def _capture(self, *, check: bool) -> tuple[dict[str, str], AccountingState]:
        """Snapshot the host environment and charge it to a fresh state.

        With *check*, every entry goes through admission and the first
        misfit raises.  Without it, entries are charged unconditionally
        (used by removal, which must never fail).
        """
        snapshot = dict(self._environ())
        if not check:
            return snapshot, AccountingState(
                bytes_used=environment_cost(snapshot, self._platform),
                items_used=len(snapshot),
            )
        state = AccountingState()
        budget = self._env_budget()
        for name, value in snapshot.items():
            size = env_pair_cost(name, value, self._platform)
            self._admit(state, budget, size, source="env", label=f"host variable {name}")
        return snapshot, state

    def _commit_env(self, mode: EnvMode, env: dict[str, str], state: AccountingState) -> None:
        if mode is not self._env_mode:
            self._log(
                LogLevel.INFO,
                f"Environment mode {self._env_mode.value} -> {mode.value}",
                source="env",
                size=state.bytes_used,
            )
        self._env_mode = mode
        self._env = env
        self._env_accounting = state

    def _admit(
        self,
        state: AccountingState,
        budget: Budget,
        size: int,
        *,
        source: str,
        label: str,
    ) -> None:
        try:
            check_and_commit(state, budget, size)
        except LimitError as e:
            self._log(LogLevel.WARNING, f"Rejected {label}: {e}", source=source, size=size)
            raise
        self._log(LogLevel.DEBUG, f"Admitted {label}", source=source, size=size)

    def _log(self, level: LogLevel, message: str, *, source: str, size: int = 0) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source=source, size=size)
