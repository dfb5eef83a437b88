"""Exceptions raised by projlens."""


class ProjlensError(Exception):
    """Base class for all projlens errors."""


class WorkerError(ProjlensError):
    """The worker round trip failed at the transport level.

    Raised when the worker is not running, exits while requests are pending,
    or writes a reply that cannot be decoded.
    """


class UnknownCommandError(ProjlensError):
    """The UI sent a command kind with no registered handler."""


class InvalidCommandError(ProjlensError):
    """The UI sent a known command with malformed parameters."""


class ConfigError(ProjlensError):
    """A configuration file could not be loaded."""
