"""Attach and remove transforms on a stream.

    token = append(stream, lambda chunk: chunk.upper())
    stream.write(b"hello")
    remove(token)

A transform is any callable taking one ``bytes`` chunk and returning the
bytes to pass on (``None`` counts as empty). Declare the chunk argument
optional to also receive the end-of-stream call, made with no arguments:

    def trailer(chunk=None):
        if chunk is None:
            return b"!"
        return chunk
"""

from __future__ import annotations

from typing import Any

from streamfilter.chain.adapter import Direction, TransformFn
from streamfilter.chain.lifecycle import FilterToken, get_registry
from streamfilter.exceptions import InvalidStreamError, RemovalFailedError
from streamfilter.stream import FilterableStream


def append(stream: Any, callback: TransformFn, direction: Direction = Direction.BOTH) -> FilterToken:
    """Attach a transform at the end of a stream's chain(s).

    Args:
        stream: Open FilterableStream
        callback: Transform callable
        direction: READ, WRITE or BOTH (each chain gets its own adapter)

    Returns:
        Token for ``remove``

    Raises:
        InvalidStreamError: If stream is not an open FilterableStream
        InvalidTransformError: If callback cannot take a chunk
    """
    return _attach(stream, callback, direction, at_head=False)


def prepend(stream: Any, callback: TransformFn, direction: Direction = Direction.BOTH) -> FilterToken:
    """Attach a transform at the start of a stream's chain(s).

    Same arguments and errors as ``append``.
    """
    return _attach(stream, callback, direction, at_head=True)


def remove(token: Any) -> None:
    """Detach a transform, delivering its end-of-stream call first.

    Args:
        token: Token returned by ``append`` or ``prepend``

    Raises:
        RemovalFailedError: If the token is invalid or no longer attached, or
            if the transform raised while flushing (it then stays attached,
            marked failed)
    """
    if not isinstance(token, FilterToken):
        raise RemovalFailedError(f"Unable to remove filter: expected FilterToken, got {type(token).__name__}")

    resolved = get_registry().lookup(token)
    if resolved is None:
        raise RemovalFailedError("Unable to remove filter: filter is not attached to an open stream")

    controller, adapters = resolved
    controller.detach(token, adapters)


def _attach(stream: Any, callback: TransformFn, direction: Direction, *, at_head: bool) -> FilterToken:
    if not isinstance(stream, FilterableStream):
        raise InvalidStreamError(f"Unable to attach filter: expected FilterableStream, got {type(stream).__name__}")
    if stream.closed:
        raise InvalidStreamError(f"Unable to attach filter: {stream.name} is closed")
    if not isinstance(direction, Direction):
        raise ValueError(f"Invalid direction given: {direction!r}")
    return stream.lifecycle.attach(callback, direction, at_head=at_head)
