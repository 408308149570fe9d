from __future__ import annotations

import asyncio
import itertools
from typing import Optional, Set

from loguru import logger

from .connection import ConnectionClosed, Mailbox
from .markov import Chain


_ids = itertools.count(1)


class Bot:
    """Connection stand-in that answers every inbound write with chain text.

    Each write schedules its own reply `delay` seconds later; the text is
    generated when the reply fires, not when the message arrived. Bursts are
    not coalesced: K writes give K replies.
    """

    def __init__(self, chain: Chain, delay: float = 1.0, max_tokens: int = 10, name: Optional[str] = None) -> None:
        self.chain = chain
        self.delay = delay
        self.max_tokens = max_tokens
        self.name = name or f"bot-{next(_ids)}"
        self._outbox = Mailbox()
        self._pending: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = -1) -> bytes:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        data = await self._outbox.get(n)
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        return data

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise ConnectionClosed(f"{self.name} is closed")
        task = asyncio.get_running_loop().create_task(self._speak())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return len(data)

    async def _speak(self) -> None:
        await asyncio.sleep(self.delay)
        if self._closed:
            return
        text = self.chain.generate(self.max_tokens)
        if not text:
            logger.debug(f"bot_silent | bot={self.name} | chain has no continuation")
            return
        logger.debug(f"bot_reply | bot={self.name} | msg='{text}'")
        self._outbox.put(text.encode("utf-8"))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._pending):
            task.cancel()
        self._outbox.put_eof()

    def __repr__(self) -> str:
        return f"Bot({self.name!r}, pending={len(self._pending)}, closed={self._closed})"
