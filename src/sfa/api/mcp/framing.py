"""
Newline-delimited framing over stdio.

Input arrives in arbitrary chunks; ``LineReader`` buffers them and yields
one complete, non-empty line at a time. An unterminated tail left at end
of input is discarded. ``LineWriter`` emits one JSON message per line and
refuses to write once closed.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Any, BinaryIO

import structlog

from sfa.api.schemas.jsonrpc import encode_message

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class LineReader:
    """Incremental line splitter on top of an ``asyncio.StreamReader``."""

    def __init__(self, reader: asyncio.StreamReader, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._reader = reader
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._eof = False

    @property
    def at_eof(self) -> bool:
        return self._eof

    async def read_line(self) -> bytes | None:
        """Next non-empty line without its terminator, or ``None`` at end of input."""
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                line = bytes(self._buffer[:newline]).strip()
                del self._buffer[: newline + 1]
                if line:
                    return line
                continue
            if self._eof:
                return None
            chunk = await self._reader.read(self._chunk_size)
            if not chunk:
                self._eof = True
                if self._buffer.strip():
                    logger.debug("framing.unterminated_tail_dropped", size=len(self._buffer))
                self._buffer.clear()
                return None
            self._buffer.extend(chunk)


class LineWriter:
    """Write JSON messages as single lines to a binary stream."""

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout.buffer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, payload: dict[str, Any]) -> bool:
        """Send ``payload``. Returns False when the writer is already closed."""
        if self._closed:
            logger.debug("framing.write_after_close", id=payload.get("id"))
            return False
        self._stream.write(encode_message(payload))
        self._stream.flush()
        return True

    def close(self) -> None:
        self._closed = True


async def open_stdin_reader(loop: asyncio.AbstractEventLoop | None = None) -> asyncio.StreamReader:
    """
    ``StreamReader`` fed from the process's stdin.

    Pipes and terminals are attached to the loop directly; anything else
    (a redirected regular file) is pumped from a worker thread.
    """
    loop = loop or asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    except (ValueError, OSError):
        threading.Thread(target=_pump_blocking_stdin, args=(loop, reader), name="stdin-pump", daemon=True).start()
    return reader


def _pump_blocking_stdin(loop: asyncio.AbstractEventLoop, reader: asyncio.StreamReader) -> None:
    stream = sys.stdin.buffer
    while True:
        chunk = stream.read1(DEFAULT_CHUNK_SIZE) if hasattr(stream, "read1") else stream.read(DEFAULT_CHUNK_SIZE)
        if not chunk:
            loop.call_soon_threadsafe(reader.feed_eof)
            return
        loop.call_soon_threadsafe(reader.feed_data, chunk)
