"""Exceptions raised by the stream filter runtime.

Failures raised by transforms themselves are never raised through these
classes; they are reported as ``FailureEvent`` objects instead (see
``streamfilter.chain.lifecycle``).
"""


class StreamFilterError(Exception):
    """Base exception for all stream filter errors."""


class InvalidStreamError(StreamFilterError, ValueError):
    """Raised when an operation targets a stream that is not open and filterable."""


class InvalidTransformError(StreamFilterError, TypeError):
    """Raised when a transform cannot be called with a single chunk argument."""


class RemovalFailedError(StreamFilterError, RuntimeError):
    """Raised when a filter cannot be removed from its stream."""


class ReentrantDispatchError(StreamFilterError, RuntimeError):
    """Raised when a chain is dispatched while it is already dispatching."""


class UnknownTransformError(StreamFilterError, LookupError):
    """Raised when a named built-in transform does not exist."""
