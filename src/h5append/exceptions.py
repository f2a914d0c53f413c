"""exceptions.py - Exception hierarchy for h5append writers and layouts.

Defines exceptions for:
- Writer configuration errors (batch size, max length, compression)
- Record layout registration and lookup errors
- Internal buffer invariant failures
- Use of a writer after it has been closed

Errors raised by h5py itself (OSError, ValueError, RuntimeError) are not
wrapped and reach the caller unchanged.
"""

from __future__ import annotations


class H5AppendError(Exception):
    """Base exception for all h5append errors."""

    pass


class ConfigurationError(H5AppendError, ValueError):
    """Raised when a writer is constructed with invalid parameters.

    Examples:
        - batch_size < 1
        - max_length < 1
        - compression level outside 0..9
    """

    def __init__(self, parameter: str, value: object, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")


class LayoutError(H5AppendError):
    """Raised when a record layout cannot be registered."""

    pass


class LayoutNotRegisteredError(LayoutError, KeyError):
    """Raised when querying the layout of a type that was never registered."""

    def __init__(self, record_type: object):
        self.record_type = record_type
        name = getattr(record_type, "__qualname__", repr(record_type))
        super().__init__(f"No layout registered for type {name}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class InvariantViolation(H5AppendError, AssertionError):
    """Raised when an internal consistency check fails. Not recoverable."""

    pass


class WriterClosedError(H5AppendError):
    """Raised when a writer is used after close()."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Writer for dataset '{name}' is closed")
