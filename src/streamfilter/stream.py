"""Byte stream with one filter hook point per direction.

``FilterableStream`` wraps a raw binary file object (``io.BytesIO``, a file
opened in binary mode, ``socket.makefile("rwb")``) and routes every write and
every block read through the dispatch hook installed for that direction, if
any. Chains are attached with ``streamfilter.append`` / ``prepend``.
"""

from __future__ import annotations

import io
import logging
from types import TracebackType
from typing import Any, BinaryIO

from streamfilter.chain.adapter import Chunk, Direction
from streamfilter.chain.dispatch import DispatchHook
from streamfilter.chain.lifecycle import FailureListener, LifecycleController
from streamfilter.config import get_config

logger = logging.getLogger(__name__)


class FilterableStream:
    """Binary stream whose traffic passes through per-direction chains.

    Positions reported by ``tell`` and accepted by ``seek`` are positions in
    the raw stream, before read transforms are applied.

    Attributes:
        raw: Underlying binary file object
        name: Name used in logs and failure events
        read_block_size: Bytes requested from raw per read dispatch
        flush_read_on_eof: Deliver end-of-stream to the read chain when raw
            reports EOF; the ended transforms stay attached and swallow any
            bytes read later
        close_raw: Close raw when this stream closes
        lifecycle: Controller owning this stream's chains
    """

    def __init__(
        self,
        raw: BinaryIO,
        *,
        name: str | None = None,
        read_block_size: int | None = None,
        flush_read_on_eof: bool | None = None,
        close_raw: bool = True,
    ) -> None:
        config = get_config()
        self.raw = raw
        self.name = name or str(getattr(raw, "name", "") or f"<{type(raw).__name__}>")
        self.read_block_size = read_block_size or config.read_block_size
        self.flush_read_on_eof = config.flush_read_on_eof if flush_read_on_eof is None else flush_read_on_eof
        self.close_raw = close_raw
        self.lifecycle = LifecycleController(self)
        self._hooks: dict[Direction, DispatchHook] = {}
        self._read_buffer = bytearray()
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<FilterableStream {self.name!r} {state}>"

    def __enter__(self) -> FilterableStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # Hook points

    def get_hook(self, direction: Direction) -> DispatchHook | None:
        return self._hooks.get(direction)

    def install_hook(self, direction: Direction, hook: DispatchHook) -> None:
        if direction in self._hooks:
            raise ValueError(f"{self!r} already has a {direction.name.lower()} hook")
        self._hooks[direction] = hook

    def uninstall_hook(self, direction: Direction) -> DispatchHook | None:
        return self._hooks.pop(direction, None)

    def on_failure(self, callback: FailureListener) -> None:
        """Register a callback for transform failures reported on this stream."""
        self.lifecycle.add_listener(callback)

    # I/O

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return not self._closed and _probe(self.raw, "readable")

    def writable(self) -> bool:
        return not self._closed and _probe(self.raw, "writable")

    def seekable(self) -> bool:
        return not self._closed and _probe(self.raw, "seekable")

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Write data through the write chain.

        Returns:
            Number of bytes accepted from the caller (before transforms)
        """
        self._check_open()
        chunk = bytes(data)
        if not chunk:
            return 0

        hook = self._hooks.get(Direction.WRITE)
        output = hook(chunk) if hook is not None else chunk
        if output:
            self.raw.write(output)
        return len(chunk)

    def read(self, size: int | None = -1) -> bytes:
        """Read transformed bytes.

        Args:
            size: Maximum bytes to return; negative or None reads to EOF

        Returns:
            Up to size bytes; empty at EOF
        """
        self._check_open()
        want_all = size is None or size < 0
        while want_all or len(self._read_buffer) < size:
            if not self._fill():
                break

        count = len(self._read_buffer) if want_all else min(size, len(self._read_buffer))
        data = bytes(self._read_buffer[:count])
        del self._read_buffer[:count]
        return data

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the raw position, dropping transformed bytes not yet read.

        State held inside read transforms (partial base64 groups, a
        decompressor) is not reset; bytes they buffered before the seek are
        emitted ahead of the data read after it.
        """
        self._check_open()
        if self._hooks.get(Direction.READ) is not None:
            logger.debug(
                "Seek on %s with a read chain attached; %d transformed bytes dropped, transform state kept",
                self.name,
                len(self._read_buffer),
            )
        self._read_buffer.clear()
        return self.raw.seek(offset, whence)

    def rewind(self) -> None:
        self.seek(0)

    def tell(self) -> int:
        self._check_open()
        return self.raw.tell()

    def flush(self) -> None:
        self._check_open()
        self.raw.flush()

    def close(self) -> None:
        """Flush every chain and close the stream.

        Write chain output flushed here reaches the raw stream; read chain
        output has no reader left and is dropped.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self.lifecycle.shutdown(self.raw.write)
        finally:
            self._read_buffer.clear()
            if self.close_raw:
                self.raw.close()
            else:
                self.raw.flush()
            logger.debug("Closed %s", self.name)

    def _fill(self) -> bool:
        block = self.raw.read(self.read_block_size)
        if block is None:
            # Non-blocking raw with nothing available
            return False
        if not block:
            if self.flush_read_on_eof:
                self._read_buffer += self.lifecycle.flush(Direction.READ)
            return False

        hook = self._hooks.get(Direction.READ)
        self._read_buffer += hook(block) if hook is not None else block
        return True

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed stream.")


def _probe(raw: Any, method: str) -> bool:
    probe = getattr(raw, method, None)
    return bool(probe()) if callable(probe) else True


def open_memory(initial: Chunk = b"", **kwargs: Any) -> FilterableStream:
    """Open a filterable stream over an in-memory buffer.

    The buffer is positioned at the start, so existing content is read first
    and writes overwrite it.
    """
    kwargs.setdefault("name", "memory")
    return FilterableStream(io.BytesIO(initial), **kwargs)
