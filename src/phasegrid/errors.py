"""
Exception types raised by the phasegrid package.

Configuration problems are detected at setup time and raised as
ConfigError. A term or diagnostic that asks for a field the bound state
does not hold raises MissingFieldError. Snapshot files whose recorded grid
disagrees with the configured one raise GridMismatchError. File system
failures are left to propagate as the built-in OSError.
"""


class PhasegridError(Exception):
    """Base class for all errors raised by phasegrid."""


class ConfigError(PhasegridError, ValueError):
    """Malformed, missing or unrecognised setup value."""


class MissingFieldError(PhasegridError, KeyError):
    """A named field is absent from the FieldStore being read."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Missing field: {self.name}"


class GridMismatchError(PhasegridError, ValueError):
    """Field data whose size does not match the grid it is used with."""
