"""Transform adapter: the uniform invocation contract for chain members.

Wraps a plain callable into an object the chain can feed chunks and the
end-of-stream marker to. Transform errors never escape ``invoke``; they come
back as a ``Failure`` outcome for the lifecycle controller to report.

Callable contract:
    fn(chunk: bytes) -> bytes | None    ordinary data
    fn() -> bytes | None                end-of-stream (only if fn can be called bare)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, Flag
from typing import Any

from streamfilter.exceptions import InvalidTransformError

logger = logging.getLogger(__name__)


# Type aliases
Chunk = bytes
TransformFn = Callable[..., Any]


class Direction(Flag):
    """Side of a stream a transform is attached to."""

    READ = 1
    WRITE = 2
    BOTH = READ | WRITE

    def split(self) -> list[Direction]:
        """Single directions contained in this value, write side first."""
        return [d for d in (Direction.WRITE, Direction.READ) if d in self]


class EndOfStream:
    """Marker type for "no more input will arrive"."""

    _instance: EndOfStream | None = None

    def __new__(cls) -> EndOfStream:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END"

    def __bool__(self) -> bool:
        return False


END = EndOfStream()


class AdapterStatus(Enum):
    """Lifecycle status of an adapter. Transitions only leave ACTIVE."""

    ACTIVE = "active"
    ENDED = "ended"
    FAILED = "failed"


class Phase(Enum):
    """Which kind of invocation produced an outcome."""

    CHUNK = "chunk"
    END = "end"


@dataclass(frozen=True)
class Success:
    """Transform returned normally."""

    chunk: Chunk


@dataclass(frozen=True)
class Failure:
    """Transform raised (or returned something that is not bytes)."""

    error: Exception
    phase: Phase


Outcome = Success | Failure


def describe(callback: TransformFn) -> str:
    """Human readable name for a transform callable."""
    name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", None)
    if name:
        return name
    return type(callback).__name__


def inspect_transform(callback: Any) -> bool:
    """Validate a transform callable.

    Args:
        callback: Candidate transform

    Returns:
        True if the callable can also be invoked with no arguments,
        i.e. it wants to see the end-of-stream call

    Raises:
        InvalidTransformError: If callback is not callable with one chunk
    """
    if not callable(callback):
        raise InvalidTransformError(f"Invalid transform given: {callback!r} is not callable")

    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        # Some C callables carry no signature
        logger.debug("No signature for %s, treating it as chunks only", describe(callback))
        return False

    try:
        signature.bind(b"")
    except TypeError as e:
        raise InvalidTransformError(
            f"Invalid transform given: {describe(callback)}{signature} does not accept a chunk argument"
        ) from e

    try:
        signature.bind()
    except TypeError:
        return False
    return True


def coerce_chunk(result: Any) -> Chunk:
    """Normalize a transform's return value to bytes."""
    if result is None:
        return b""
    if isinstance(result, bytes):
        return result
    if isinstance(result, (bytearray, memoryview)):
        return bytes(result)
    raise TypeError(f"transform returned {type(result).__name__}, expected bytes")


class TransformAdapter:
    """One transform attached to one direction of one stream.

    Attributes:
        callback: The wrapped transform callable
        direction: Direction.READ or Direction.WRITE
        name: Display name used in logs and failure events
        supports_end: Whether the callable receives the end-of-stream call
        status: Current lifecycle status
    """

    def __init__(
        self,
        callback: TransformFn,
        direction: Direction,
        *,
        name: str | None = None,
        supports_end: bool | None = None,
    ) -> None:
        if direction not in (Direction.READ, Direction.WRITE):
            raise ValueError(f"Adapter needs a single direction, got {direction!r}")
        if supports_end is None:
            supports_end = inspect_transform(callback)
        self.callback = callback
        self.direction = direction
        self.name = name or describe(callback)
        self.supports_end = supports_end
        self.status = AdapterStatus.ACTIVE
        self.end_delivered = False

    def __repr__(self) -> str:
        return f"<TransformAdapter {self.name!r} {self.direction.name.lower()} {self.status.value}>"

    @property
    def active(self) -> bool:
        return self.status is AdapterStatus.ACTIVE

    def invoke(self, data: Chunk | EndOfStream) -> Outcome:
        """Feed one chunk or the end-of-stream marker to the transform.

        A retired adapter is never called again and yields empty output.

        Args:
            data: Chunk of bytes, or END

        Returns:
            Success with the output chunk, or Failure with the raised error
        """
        if not self.active:
            return Success(b"")

        if data is END:
            return self._deliver_end(AdapterStatus.ENDED)

        try:
            chunk = coerce_chunk(self.callback(data))
        except Exception as e:
            self.status = AdapterStatus.FAILED
            return Failure(e, Phase.CHUNK)
        return Success(chunk)

    def force_end(self) -> Outcome | None:
        """Deliver end-of-stream to an adapter that failed on a chunk.

        Returns:
            Outcome of the end call, or None if end was already delivered
        """
        if self.end_delivered:
            return None
        return self._deliver_end(AdapterStatus.FAILED)

    def _deliver_end(self, final_status: AdapterStatus) -> Outcome:
        self.end_delivered = True
        self.status = final_status
        if not self.supports_end:
            return Success(b"")

        try:
            chunk = coerce_chunk(self.callback())
        except Exception as e:
            self.status = AdapterStatus.FAILED
            return Failure(e, Phase.END)
        return Success(chunk)
