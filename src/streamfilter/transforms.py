"""Named built-in transforms.

Each built-in is a factory registered with ``@builtin``; ``fun(name)`` calls
the factory and returns a fresh transform callable with its own state, ready
to pass to ``append`` or ``prepend``:

    append(stream, fun("dechunk"), Direction.WRITE)
    append(stream, fun("zlib.deflate", level=9), Direction.WRITE)

All built-ins take part in end-of-stream (they accept ``chunk=None``) and
flush whatever they buffered when it arrives.
"""

from __future__ import annotations

import base64
import binascii
import logging
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from streamfilter.exceptions import UnknownTransformError

logger = logging.getLogger(__name__)


# Type aliases
Transform = Callable[..., bytes]
Factory = Callable[..., Transform]


@dataclass(frozen=True)
class BuiltinSpec:
    """Registered built-in transform.

    Attributes:
        name: Lookup name
        factory: Callable returning a new transform
        description: One-line summary
    """

    name: str
    factory: Factory
    description: str = ""

    def create(self, params: dict[str, Any] | None = None) -> Transform:
        transform = self.factory(**(params or {}))
        transform.__name__ = self.name
        transform.__qualname__ = self.name
        return transform


class _BuiltinRegistry:
    """Global registry for transforms decorated with @builtin."""

    def __init__(self) -> None:
        self._specs: dict[str, BuiltinSpec] = {}

    def register_spec(self, spec: BuiltinSpec) -> None:
        self._specs[spec.name] = spec

    def get_spec(self, name: str) -> BuiltinSpec | None:
        return self._specs.get(name)

    def get_all_specs(self) -> dict[str, BuiltinSpec]:
        return dict(sorted(self._specs.items()))


# Global registry
_registry = _BuiltinRegistry()


def get_registry() -> _BuiltinRegistry:
    """Get the global built-in transform registry."""
    return _registry


def builtin(name: str, description: str = "") -> Callable[[Factory], Factory]:
    """Decorator to register a transform factory under a name."""

    def decorator(factory: Factory) -> Factory:
        doc = description or (factory.__doc__ or "").strip().splitlines()[0]
        _registry.register_spec(BuiltinSpec(name=name, factory=factory, description=doc))
        return factory

    return decorator


def fun(name: str, **params: Any) -> Transform:
    """Create a transform callable for a named built-in.

    Args:
        name: Built-in name (see ``get_registry().get_all_specs()``)
        **params: Factory parameters (e.g. ``level`` for zlib.deflate)

    Returns:
        New transform callable

    Raises:
        UnknownTransformError: If no built-in has that name
    """
    spec = _registry.get_spec(name)
    if spec is None:
        raise UnknownTransformError(f"Unable to access built-in filter '{name}'")
    logger.debug("Creating built-in transform '%s'%s", name, f" with params: {params}" if params else "")
    return spec.create(params)


class QuantumBuffer:
    """Holds back the tail of the input that does not fill a whole quantum."""

    def __init__(self, quantum: int) -> None:
        self.quantum = quantum
        self._tail = b""

    def take(self, chunk: bytes) -> bytes:
        """Return the longest prefix of buffered + chunk that fills whole quanta."""
        data = self._tail + chunk
        cut = len(data) - len(data) % self.quantum
        self._tail = data[cut:]
        return data[:cut]

    def drain(self) -> bytes:
        data, self._tail = self._tail, b""
        return data


_ROT13 = bytes.maketrans(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz",
    b"NOPQRSTUVWXYZABCDEFGHIJKLMnopqrstuvwxyzabcdefghijklm",
)


@builtin("string.toupper")
def _toupper() -> Transform:
    """Uppercase ASCII letters."""

    def transform(chunk: bytes | None = None) -> bytes:
        return chunk.upper() if chunk else b""

    return transform


@builtin("string.tolower")
def _tolower() -> Transform:
    """Lowercase ASCII letters."""

    def transform(chunk: bytes | None = None) -> bytes:
        return chunk.lower() if chunk else b""

    return transform


@builtin("string.rot13")
def _rot13() -> Transform:
    """Apply ROT13 to ASCII letters."""

    def transform(chunk: bytes | None = None) -> bytes:
        return chunk.translate(_ROT13) if chunk else b""

    return transform


@builtin("dechunk")
def _dechunk() -> Transform:
    """Decode HTTP chunked transfer encoding."""
    buffer = bytearray()
    remaining: int | None = None  # data bytes left in the current chunk
    done = False

    def transform(chunk: bytes | None = None) -> bytes:
        nonlocal remaining, done
        if chunk is None:
            if buffer or remaining:
                logger.debug("dechunk ended inside a chunk, dropping %d bytes", len(buffer))
            return b""
        if done:
            return b""

        buffer.extend(chunk)
        out = bytearray()
        while buffer:
            if remaining is None:
                end = buffer.find(b"\n")
                if end < 0:
                    break
                line = bytes(buffer[:end]).strip()
                del buffer[: end + 1]
                size_field = line.split(b";", 1)[0].strip()
                if not size_field:
                    # CRLF closing the previous chunk's data
                    continue
                size = int(size_field, 16)
                if size == 0:
                    done = True
                    buffer.clear()
                    break
                remaining = size
            else:
                take = min(remaining, len(buffer))
                out += buffer[:take]
                del buffer[:take]
                remaining -= take
                if remaining:
                    break
                remaining = None
        return bytes(out)

    return transform


@builtin("convert.base64-encode")
def _base64_encode() -> Transform:
    """Base64-encode; partial 3-byte groups are held until end-of-stream."""
    pending = QuantumBuffer(3)

    def transform(chunk: bytes | None = None) -> bytes:
        data = pending.drain() if chunk is None else pending.take(chunk)
        return base64.b64encode(data)

    return transform


@builtin("convert.base64-decode")
def _base64_decode() -> Transform:
    """Base64-decode, ignoring whitespace; partial 4-char groups are held."""
    pending = QuantumBuffer(4)

    def transform(chunk: bytes | None = None) -> bytes:
        if chunk is None:
            data = pending.drain()
        else:
            data = pending.take(b"".join(chunk.split()))
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 input: {e}") from e

    return transform


@builtin("zlib.deflate")
def _deflate(level: int = -1, window_bits: int = -15) -> Transform:
    """Compress with zlib (raw deflate by default)."""
    compressor = zlib.compressobj(level, zlib.DEFLATED, window_bits)

    def transform(chunk: bytes | None = None) -> bytes:
        if chunk is None:
            return compressor.flush()
        return compressor.compress(chunk)

    return transform


@builtin("zlib.inflate")
def _inflate(window_bits: int = -15) -> Transform:
    """Decompress zlib data (raw deflate by default)."""
    decompressor = zlib.decompressobj(window_bits)

    def transform(chunk: bytes | None = None) -> bytes:
        if chunk is None:
            return decompressor.flush()
        return decompressor.decompress(chunk)

    return transform
