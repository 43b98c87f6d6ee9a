"""Attachment, end-of-stream delivery and failure reporting.

Every adapter gets exactly one end-of-stream call over the life of its
stream: on removal, on stream close, or right after it fails on a chunk.
Transform errors are reported once per failing invocation through the
module logger and the stream's failure listeners; only a failed flush during
``remove`` is raised back to the caller.
"""

from __future__ import annotations

import itertools
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from streamfilter.chain.adapter import (
    Chunk,
    Direction,
    Failure,
    TransformAdapter,
    TransformFn,
    describe,
    inspect_transform,
)
from streamfilter.chain.dispatch import DispatchHook
from streamfilter.chain.slot import ChainSlot
from streamfilter.exceptions import RemovalFailedError

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    """Category of a reported transform failure."""

    TRANSFORM_FAILURE = "transform_failure"  # raised on an ordinary chunk
    END_FLUSH_FAILURE = "end_flush_failure"  # raised on end-of-stream


@dataclass(frozen=True)
class FailureEvent:
    """A transform failure reported on a stream.

    Attributes:
        kind: Failure category
        direction: Chain the adapter belongs to
        transform: Adapter display name
        error: Exception raised by the transform
        stream: Name of the stream
    """

    kind: FailureKind
    direction: Direction
    transform: str
    error: Exception
    stream: str = ""

    def __str__(self) -> str:
        phase = "chunk" if self.kind is FailureKind.TRANSFORM_FAILURE else "end-of-stream"
        return (
            f"Error invoking filter '{self.transform}' on {phase} "
            f"({self.direction.name.lower()}): {type(self.error).__name__}: {self.error}"
        )


FailureListener = Callable[[FailureEvent], None]


class HookHost(Protocol):
    """What a stream must provide to have chains attached."""

    name: str

    def get_hook(self, direction: Direction) -> DispatchHook | None: ...

    def install_hook(self, direction: Direction, hook: DispatchHook) -> None: ...

    def uninstall_hook(self, direction: Direction) -> DispatchHook | None: ...


class FilterToken:
    """Opaque handle to an attached transform, used for removal."""

    __slots__ = ("id", "__weakref__")

    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.id = next(self._ids)

    def __repr__(self) -> str:
        return f"<FilterToken #{self.id}>"


@dataclass
class _Attachment:
    controller: weakref.ref[LifecycleController]
    adapters: list[weakref.ref[TransformAdapter]] = field(default_factory=list)


class _FilterRegistry:
    """Process-wide lookup from tokens to the adapters they name.

    Holds weak references only; chain slots own the adapters.
    """

    def __init__(self) -> None:
        self._attachments: weakref.WeakKeyDictionary[FilterToken, _Attachment] = weakref.WeakKeyDictionary()

    def register(self, token: FilterToken, controller: LifecycleController, adapters: list[TransformAdapter]) -> None:
        self._attachments[token] = _Attachment(
            controller=weakref.ref(controller),
            adapters=[weakref.ref(a) for a in adapters],
        )

    def lookup(self, token: FilterToken) -> tuple[LifecycleController, list[TransformAdapter]] | None:
        """Resolve a token to its controller and live adapters."""
        attachment = self._attachments.get(token)
        if attachment is None:
            return None
        controller = attachment.controller()
        if controller is None:
            return None
        adapters = [a for ref in attachment.adapters if (a := ref()) is not None]
        return controller, adapters

    def forget(self, token: FilterToken) -> None:
        self._attachments.pop(token, None)

    def __len__(self) -> int:
        return len(self._attachments)

    def clear(self) -> None:
        """Clear all registrations (for testing)."""
        self._attachments.clear()


# Global registry
_registry = _FilterRegistry()


def get_registry() -> _FilterRegistry:
    """Get the global filter token registry."""
    return _registry


class LifecycleController:
    """Owns the chains of one stream from first attach to close.

    Attributes:
        host: Stream whose hook points the chains are installed on
    """

    def __init__(self, host: HookHost) -> None:
        self.host = host
        self._listeners: list[FailureListener] = []

    def add_listener(self, listener: FailureListener) -> None:
        """Register a callback receiving every failure reported on this stream."""
        self._listeners.append(listener)

    def slot(self, direction: Direction) -> ChainSlot | None:
        """Installed chain for a direction, if any."""
        hook = self.host.get_hook(direction)
        return hook.slot if hook is not None else None

    def attach(self, callback: TransformFn, direction: Direction, *, at_head: bool = False) -> FilterToken:
        """Attach a transform to one or both chains.

        Args:
            callback: Transform callable
            direction: READ, WRITE or BOTH
            at_head: Prepend instead of append

        Returns:
            Token naming every adapter created

        Raises:
            InvalidTransformError: If callback has the wrong shape
            ValueError: If direction names no chain
        """
        directions = direction.split()
        if not directions:
            raise ValueError(f"Invalid direction given: {direction!r}")

        supports_end = inspect_transform(callback)
        name = describe(callback)
        adapters = [TransformAdapter(callback, d, name=name, supports_end=supports_end) for d in directions]

        for adapter in adapters:
            slot = self._ensure_slot(adapter.direction)
            if at_head:
                slot.prepend(adapter)
            else:
                slot.append(adapter)

        token = FilterToken()
        get_registry().register(token, self, adapters)
        logger.debug(
            "Attached '%s' to %s as %r (%s)",
            name,
            self.host.name,
            token,
            "end-aware" if supports_end else "chunks only",
        )
        return token

    def detach(self, token: FilterToken, adapters: list[TransformAdapter]) -> None:
        """Remove the adapters a token names, flushing the active ones.

        Every adapter is attempted even if an earlier one fails to flush.

        Raises:
            RemovalFailedError: If none of the adapters is attached, or a
                final flush raised (that adapter stays attached, failed)
        """
        attached: list[tuple[TransformAdapter, ChainSlot]] = []
        for adapter in adapters:
            slot = self.slot(adapter.direction)
            if slot is not None and adapter in slot:
                attached.append((adapter, slot))
        if not attached:
            raise RemovalFailedError("Unable to remove filter: filter is not attached to an open stream")

        errors: list[RemovalFailedError] = []
        for adapter, slot in attached:
            try:
                slot.remove(adapter)
            except RemovalFailedError as e:
                errors.append(e)
                continue
            if not slot:
                self.host.uninstall_hook(adapter.direction)
                logger.debug("Uninstalled empty %s chain from %s", adapter.direction.name.lower(), self.host.name)

        if errors:
            raise errors[0]
        get_registry().forget(token)

    def finish(self, direction: Direction) -> Chunk:
        """Deliver end-of-stream to one chain and uninstall it.

        Returns:
            Output flushed by the chain
        """
        hook = self.host.uninstall_hook(direction)
        if hook is None:
            return b""
        return hook.close()

    def flush(self, direction: Direction) -> Chunk:
        """Deliver end-of-stream to one chain, leaving it installed.

        Adapters stay in the slot as ended: they swallow later input and
        their tokens remain removable.

        Returns:
            Output flushed by the chain
        """
        slot = self.slot(direction)
        if slot is None:
            return b""
        output = slot.finish()
        logger.debug("Flushed %s chain of %s at EOF", direction.name.lower(), self.host.name)
        return output

    def shutdown(self, emit: Callable[[Chunk], object]) -> None:
        """Close-time flush of every chain, write side first.

        Write-side output goes to ``emit``. Read-side output has no reader
        left and is dropped with a warning. Transform failures are reported
        and never interrupt the shutdown.

        Args:
            emit: Sink for the write chain's final output
        """
        try:
            written = self.finish(Direction.WRITE)
            if written:
                emit(written)
        finally:
            unread = self.finish(Direction.READ)
        if unread:
            logger.warning(
                "Discarding %d bytes flushed by the read chain of %s at close",
                len(unread),
                self.host.name,
                extra={"event": "read_flush_discarded", "stream": self.host.name, "size": len(unread)},
            )

    def handle_chunk_failure(self, adapter: TransformAdapter, failure: Failure) -> None:
        """Report a chunk failure and give the adapter its end-of-stream call."""
        self._report(FailureKind.TRANSFORM_FAILURE, adapter, failure.error)

        outcome = adapter.force_end()
        if isinstance(outcome, Failure):
            self._report(FailureKind.END_FLUSH_FAILURE, adapter, outcome.error)
        elif outcome is not None and outcome.chunk:
            logger.debug("Discarding %d bytes flushed by failed '%s'", len(outcome.chunk), adapter.name)

    def report_end_failure(self, adapter: TransformAdapter, error: Exception) -> None:
        """Report an end-of-stream failure."""
        self._report(FailureKind.END_FLUSH_FAILURE, adapter, error)

    def _report(self, kind: FailureKind, adapter: TransformAdapter, error: Exception) -> None:
        event = FailureEvent(
            kind=kind,
            direction=adapter.direction,
            transform=adapter.name,
            error=error,
            stream=self.host.name,
        )
        logger.error(
            "%s",
            event,
            extra={
                "event": kind.value,
                "transform": adapter.name,
                "direction": adapter.direction.name.lower(),
                "stream": self.host.name,
            },
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error("Failure listener %s raised: %s: %s", describe(listener), type(e).__name__, e)

    def _ensure_slot(self, direction: Direction) -> ChainSlot:
        slot = self.slot(direction)
        if slot is None:
            slot = ChainSlot(direction, self)
            self.host.install_hook(direction, DispatchHook(slot))
            logger.debug("Installed %s chain on %s", direction.name.lower(), self.host.name)
        return slot
