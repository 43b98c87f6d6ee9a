"""Attach chunk transforms to the read and write sides of byte streams."""

from streamfilter.api import append, prepend, remove
from streamfilter.chain import END, Direction, FailureEvent, FailureKind, FilterToken
from streamfilter.config import StreamFilterConfig, get_config
from streamfilter.exceptions import (
    InvalidStreamError,
    InvalidTransformError,
    ReentrantDispatchError,
    RemovalFailedError,
    StreamFilterError,
    UnknownTransformError,
)
from streamfilter.stream import FilterableStream, open_memory
from streamfilter.transforms import fun

__all__ = [
    "append",
    "prepend",
    "remove",
    "fun",
    "END",
    "Direction",
    "FailureEvent",
    "FailureKind",
    "FilterToken",
    "FilterableStream",
    "open_memory",
    "StreamFilterConfig",
    "get_config",
    "StreamFilterError",
    "InvalidStreamError",
    "InvalidTransformError",
    "RemovalFailedError",
    "ReentrantDispatchError",
    "UnknownTransformError",
]
