"""Filter-chain runtime for byte streams.

This package implements per-direction transform chains with:
- Ordered attachment at either end (append / prepend)
- Exactly-once end-of-stream delivery per transform
- Failure isolation: transform errors are reported, never raised into I/O

Formal Model:
    Chain C = [a₁, ..., aₙ] where each aᵢ: Chunk | END → Chunk

    dispatch(C, x) = aₙ(...a₂(a₁(x)))
    finish(C)      = fold over aᵢ of aᵢ(END) after aᵢ(carry)
"""

from streamfilter.chain.adapter import END, AdapterStatus, Direction, TransformAdapter
from streamfilter.chain.dispatch import DispatchHook
from streamfilter.chain.lifecycle import (
    FailureEvent,
    FailureKind,
    FilterToken,
    LifecycleController,
    get_registry,
)
from streamfilter.chain.slot import ChainSlot

__all__ = [
    "END",
    "AdapterStatus",
    "Direction",
    "TransformAdapter",
    "ChainSlot",
    "DispatchHook",
    "LifecycleController",
    "FailureEvent",
    "FailureKind",
    "FilterToken",
    "get_registry",
]
