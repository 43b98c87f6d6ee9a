"""Ordered per-direction chain of transform adapters.

Insertion order is invocation order: ``append`` puts an adapter at the tail
(applied last in data-flow order), ``prepend`` at the head (applied first).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from streamfilter.chain.adapter import END, Chunk, Direction, EndOfStream, Failure, TransformAdapter
from streamfilter.exceptions import ReentrantDispatchError, RemovalFailedError

if TYPE_CHECKING:
    from streamfilter.chain.lifecycle import LifecycleController

logger = logging.getLogger(__name__)


class ChainSlot:
    """Adapters attached to one direction of one stream.

    Attributes:
        direction: Direction.READ or Direction.WRITE
    """

    def __init__(self, direction: Direction, controller: LifecycleController) -> None:
        self.direction = direction
        self._controller = controller
        self._adapters: list[TransformAdapter] = []
        self._busy = False

    def __repr__(self) -> str:
        names = ", ".join(a.name for a in self._adapters)
        return f"<ChainSlot {self.direction.name.lower()} [{names}]>"

    def __len__(self) -> int:
        return len(self._adapters)

    def __iter__(self) -> Iterator[TransformAdapter]:
        return iter(list(self._adapters))

    def __contains__(self, adapter: object) -> bool:
        return any(a is adapter for a in self._adapters)

    @property
    def order(self) -> list[str]:
        """Adapter names in invocation order."""
        return [a.name for a in self._adapters]

    def append(self, adapter: TransformAdapter) -> None:
        """Attach an adapter at the tail of the chain."""
        self._check_direction(adapter)
        self._adapters.append(adapter)
        logger.debug("Appended '%s' to %s chain: %s", adapter.name, self._label, " → ".join(self.order))

    def prepend(self, adapter: TransformAdapter) -> None:
        """Attach an adapter at the head of the chain."""
        self._check_direction(adapter)
        self._adapters.insert(0, adapter)
        logger.debug("Prepended '%s' to %s chain: %s", adapter.name, self._label, " → ".join(self.order))

    def remove(self, adapter: TransformAdapter) -> None:
        """Detach an adapter, delivering its end-of-stream call first.

        Output produced by that final call is discarded. If the call raises,
        the adapter stays attached (now failed) and the removal fails.

        Args:
            adapter: Adapter previously attached to this slot

        Raises:
            ValueError: If the adapter is not in this slot
            RemovalFailedError: If the final end-of-stream call raised
        """
        if adapter not in self:
            raise ValueError(f"{adapter!r} is not attached to {self!r}")

        if adapter.active:
            with self._exclusive():
                outcome = adapter.invoke(END)
            if isinstance(outcome, Failure):
                self._controller.report_end_failure(adapter, outcome.error)
                raise RemovalFailedError(
                    f"Unable to remove filter: unable to flush '{adapter.name}', not removing"
                ) from outcome.error
            if outcome.chunk:
                logger.debug(
                    "Discarding %d bytes flushed by '%s' on removal",
                    len(outcome.chunk),
                    adapter.name,
                )

        self._adapters = [a for a in self._adapters if a is not adapter]
        logger.debug("Removed '%s' from %s chain", adapter.name, self._label)

    def dispatch(self, data: Chunk | EndOfStream) -> Chunk:
        """Feed data through every adapter in order.

        Each adapter's output is the next adapter's input. Empty intermediate
        output is still passed on. Retired adapters swallow their input.

        Args:
            data: Chunk of bytes, or END to finish the chain

        Returns:
            Output of the last adapter
        """
        if data is END:
            return self.finish()

        with self._exclusive():
            for adapter in list(self._adapters):
                data = self._feed(adapter, data)
        return data

    def finish(self) -> Chunk:
        """Deliver end-of-stream to every active adapter, in order.

        Whatever an upstream adapter flushes is fed to the next adapter as an
        ordinary chunk before that adapter receives its own end call.

        Returns:
            Flushed output of the whole chain
        """
        with self._exclusive():
            carry = b""
            for adapter in list(self._adapters):
                if not adapter.active:
                    carry = b""
                    continue

                output = self._feed(adapter, carry) if carry else b""
                if adapter.active:
                    outcome = adapter.invoke(END)
                    if isinstance(outcome, Failure):
                        self._controller.report_end_failure(adapter, outcome.error)
                    else:
                        output += outcome.chunk
                carry = output
        return carry

    def _feed(self, adapter: TransformAdapter, chunk: Chunk) -> Chunk:
        if not adapter.active:
            return b""
        outcome = adapter.invoke(chunk)
        if isinstance(outcome, Failure):
            self._controller.handle_chunk_failure(adapter, outcome)
            return b""
        return outcome.chunk

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._busy:
            raise ReentrantDispatchError(f"{self._label} chain is already dispatching")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _check_direction(self, adapter: TransformAdapter) -> None:
        if adapter.direction is not self.direction:
            raise ValueError(f"{adapter!r} cannot join the {self._label} chain")

    @property
    def _label(self) -> str:
        return self.direction.name.lower()
