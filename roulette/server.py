from __future__ import annotations

import asyncio
import random
from typing import Optional

from loguru import logger

from .config import Settings
from .connection import StreamConnection
from .markov import Chain
from .matcher import Matcher


def build_matcher(settings: Settings, rng: Optional[random.Random] = None) -> Matcher:
    """Create the shared chain (pre-trained from the corpus, if set) and a Matcher."""
    if rng is None and settings.seed is not None:
        rng = random.Random(settings.seed)
    chain = Chain(prefix_len=settings.prefix_len, rng=rng)
    if settings.corpus:
        try:
            chain.train_file(settings.corpus)
        except OSError as e:
            logger.error(f"Failed to load corpus {settings.corpus}: {e}")
    return Matcher(
        chain,
        timeout=settings.match_timeout,
        bot_delay=settings.bot_delay,
        bot_tokens=settings.bot_tokens,
    )


async def serve(matcher: Matcher, host: str = "localhost", port: int = 4000) -> asyncio.Server:
    """Start a TCP listener that hands every client to `matcher.match`."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        conn = StreamConnection(reader, writer)
        logger.info(f"client_connected | conn={conn.name}")
        try:
            result = await matcher.match(conn)
        except Exception as e:
            logger.error(f"client_failed | conn={conn.name} | {type(e).__name__}: {e}")
            return
        finally:
            await conn.close()
        logger.info(f"client_done | conn={conn.name} | role={result.role.value} | partner={result.partner}")

    server = await asyncio.start_server(handle, host, port)
    addrs = ", ".join(str(s.getsockname()) for s in server.sockets)
    logger.info(f"Listening on {addrs}")
    return server
