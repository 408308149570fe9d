from __future__ import annotations

import asyncio
import itertools
from typing import Optional, Protocol, Tuple, Union, runtime_checkable

from loguru import logger


_EOF = object()
_ids = itertools.count(1)

CLOSE_TIMEOUT = 1.0


class ConnectionClosed(ConnectionError):
    """Read or write on an endpoint that is closed (locally or by its peer)."""


@runtime_checkable
class Connection(Protocol):
    name: str

    async def read(self, n: int = -1) -> bytes:
        ...

    async def write(self, data: bytes) -> int:
        ...

    async def close(self) -> None:
        ...


class Mailbox:
    """Unbounded inbound buffer of byte chunks with partial reads.

    `get` hands out one queued chunk at a time (or a prefix of it when `n`
    is smaller) and returns b"" once end-of-stream has been put.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending = b""
        self._eof = False

    def put(self, data: Union[bytes, bytearray, memoryview]) -> None:
        if data:
            self._queue.put_nowait(bytes(data))

    def put_eof(self) -> None:
        self._queue.put_nowait(_EOF)

    async def get(self, n: int = -1) -> bytes:
        if not self._pending:
            if self._eof:
                return b""
            item = await self._queue.get()
            if item is _EOF:
                self._eof = True
                return b""
            self._pending = item
        if n < 0 or n >= len(self._pending):
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending[:n], self._pending[n:]
        return data


class PipeConnection:
    """One end of an in-memory duplex pipe. Create pairs with `pipe()`."""

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or f"pipe-{next(_ids)}"
        self._inbox = Mailbox()
        self._peer: Optional[PipeConnection] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = -1) -> bytes:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        data = await self._inbox.get(n)
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        return data

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        peer = self._peer
        if peer is None or peer._closed:
            raise ConnectionClosed(f"{self.name}: peer is gone")
        peer._inbox.put(data)
        return len(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # wake our own pending reader, then signal EOF to the other end
        self._inbox.put_eof()
        if self._peer is not None:
            self._peer._inbox.put_eof()

    def __repr__(self) -> str:
        return f"PipeConnection({self.name!r}, closed={self._closed})"


def pipe(name_a: Optional[str] = None, name_b: Optional[str] = None) -> Tuple[PipeConnection, PipeConnection]:
    """Return two connected endpoints: bytes written to one are read from the other."""
    a, b = PipeConnection(name_a), PipeConnection(name_b)
    a._peer, b._peer = b, a
    return a, b


class StreamConnection:
    """Connection over an asyncio StreamReader/StreamWriter pair (raw TCP)."""

    close_timeout = CLOSE_TIMEOUT

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, name: Optional[str] = None) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False
        if name is None:
            peer = writer.get_extra_info("peername")
            name = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) and len(peer) >= 2 else f"stream-{next(_ids)}"
        self.name = name

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = 4096) -> bytes:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        data = await self._reader.read(n)
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        return data

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        self._writer.write(data)
        await self._writer.drain()
        return len(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # closing the transport feeds EOF to any pending reader
        self._writer.close()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            # unsent bytes the peer is not reading; drop them
            logger.debug(f"stream_abort | conn={self.name} | close timed out after {self.close_timeout}s")
            self._writer.transport.abort()
        except (ConnectionError, OSError) as e:
            logger.debug(f"stream_close | conn={self.name} | {e}")

    def __repr__(self) -> str:
        return f"StreamConnection({self.name!r}, closed={self._closed})"
