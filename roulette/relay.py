from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from loguru import logger

from .connection import Connection
from .states import RelayOutcome


CONNECTED_NOTICE = b"You are now connected to a chat partner\n"
CHUNK_SIZE = 4096

Tap = Callable[[bytes], Any]


async def _copy(dst: Connection, src: Connection, tap: Optional[Tap] = None) -> Optional[BaseException]:
    """Copy src into dst until EOF (returns None) or a failure (returns it)."""
    try:
        while True:
            data = await src.read(CHUNK_SIZE)
            if not data:
                return None
            if tap is not None:
                tap(data)
            await dst.write(data)
    except Exception as e:
        return e


async def _close(conn: Connection) -> None:
    try:
        await conn.close()
    except Exception as e:
        logger.warning(f"relay_close_failed | conn={getattr(conn, 'name', '')} | {e}")


async def relay(a: Connection, b: Connection, tap: Optional[Tap] = None) -> RelayOutcome:
    """Run one chat session between `a` and `b` until either side ends.

    Both sides get the connected notice before any copying starts. Only the
    first direction to finish decides the outcome; both connections are closed
    on every exit path, which unblocks the other direction. `tap` sees every
    chunk read from `b`.
    """
    a_name = getattr(a, "name", "")
    b_name = getattr(b, "name", "")
    outcome = RelayOutcome()
    tasks: list[asyncio.Task] = []
    try:
        try:
            await a.write(CONNECTED_NOTICE)
            await b.write(CONNECTED_NOTICE)
        except Exception as e:
            outcome = RelayOutcome(error=e)
        else:
            logger.info(f"session_start | a={a_name} | b={b_name}")
            tasks = [
                asyncio.create_task(_copy(a, b, tap)),
                asyncio.create_task(_copy(b, a)),
            ]
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            outcome = RelayOutcome(error=next(iter(done)).result())
    finally:
        for task in tasks:
            task.cancel()
        # the two closes run concurrently; neither waits on the other
        await asyncio.gather(_close(a), _close(b), *tasks, return_exceptions=True)

    if outcome.clean:
        logger.info(f"session_end | a={a_name} | b={b_name}")
    else:
        logger.warning(f"relay_error | a={a_name} | b={b_name} | {type(outcome.error).__name__}: {outcome.error}")
    return outcome
