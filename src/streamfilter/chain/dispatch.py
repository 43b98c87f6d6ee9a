"""Per-direction interception point installed on a stream."""

from __future__ import annotations

from streamfilter.chain.adapter import Chunk
from streamfilter.chain.slot import ChainSlot


class DispatchHook:
    """Entry point the stream calls for each unit of activity in one direction.

    Holds nothing but its chain slot; all transformation happens there.
    """

    def __init__(self, slot: ChainSlot) -> None:
        self.slot = slot

    def __repr__(self) -> str:
        return f"<DispatchHook {self.slot!r}>"

    def __call__(self, chunk: Chunk) -> Chunk:
        return self.slot.dispatch(chunk)

    def close(self) -> Chunk:
        return self.slot.finish()
