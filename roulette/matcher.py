from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from .bot import Bot
from .connection import Connection
from .markov import Chain
from .relay import relay
from .states import MatchResult, MatchRole, MatcherMetrics, RelayOutcome


WAITING_NOTICE = b"Waiting for a chat partner...\n"


class Offer:
    """A connection parked in the rendezvous slot.

    `claimed` resolves to the claimant's connection; `finished` resolves to
    the RelayOutcome of the session the claimant drives.
    """

    def __init__(self, conn: Connection) -> None:
        loop = asyncio.get_running_loop()
        self.conn = conn
        self.claimed: asyncio.Future = loop.create_future()
        self.finished: asyncio.Future = loop.create_future()


class Rendezvous:
    """Single-slot hand-off shared by every `match` call.

    All operations run on the event loop without awaiting, so taking,
    posting and withdrawing are each atomic. An offer is resolved exactly
    once: either by one claimant or by its own withdrawal.
    """

    def __init__(self) -> None:
        self._slot: Optional[Offer] = None

    @property
    def waiting(self) -> Optional[Connection]:
        return self._slot.conn if self._slot is not None else None

    def take(self, claimant: Connection) -> Optional[Offer]:
        """Claim the parked offer for `claimant`, if there is one."""
        offer = self._slot
        if offer is None or offer.claimed.done():
            return None
        self._slot = None
        offer.claimed.set_result(claimant)
        return offer

    def post(self, conn: Connection) -> Offer:
        if self._slot is not None and not self._slot.claimed.done():
            raise RuntimeError("rendezvous slot already holds a live offer")
        offer = Offer(conn)
        self._slot = offer
        return offer

    def withdraw(self, offer: Offer) -> bool:
        """Retract an unclaimed offer. False means a claimant got it first."""
        if offer.claimed.done() and not offer.claimed.cancelled():
            return False
        offer.claimed.cancel()
        if self._slot is offer:
            self._slot = None
        return True


class Matcher:
    def __init__(
        self,
        chain: Chain,
        rendezvous: Optional[Rendezvous] = None,
        timeout: float = 5.0,
        bot_delay: float = 1.0,
        bot_tokens: int = 10,
        train: bool = True,
    ) -> None:
        self.chain = chain
        self.rendezvous = rendezvous or Rendezvous()
        self.timeout = timeout
        self.bot_delay = bot_delay
        self.bot_tokens = bot_tokens
        self.train = train
        self.metrics = MatcherMetrics()

    async def match(self, conn: Connection) -> MatchResult:
        """Pair `conn` with a waiting party, park it, or fall back to a Bot.

        The wait for a partner is measured from arrival. Runs until the
        session `conn` ends up in has finished.
        """
        name = getattr(conn, "name", "")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        self.metrics.arrivals += 1
        try:
            await conn.write(WAITING_NOTICE)
        except Exception as e:
            logger.warning(f"match_notice_failed | conn={name} | {e}")
            await conn.close()
            return MatchResult(MatchRole.ABANDONED, outcome=RelayOutcome(error=e))

        offer = self.rendezvous.take(conn)
        if offer is not None:
            return await self._drive(offer, conn)

        offer = self.rendezvous.post(conn)
        logger.debug(f"match_waiting | conn={name} | timeout={self.timeout}")
        try:
            await asyncio.wait({offer.claimed}, timeout=max(0.0, deadline - loop.time()))
        finally:
            withdrawn = self.rendezvous.withdraw(offer)
        if not withdrawn:
            partner = offer.claimed.result()
            outcome = await asyncio.shield(offer.finished)
            return MatchResult(MatchRole.OFFERED, partner=getattr(partner, "name", ""), outcome=outcome)

        bot = Bot(self.chain, delay=self.bot_delay, max_tokens=self.bot_tokens)
        logger.info(f"match_timeout | conn={name} | bot={bot.name}")
        outcome = await relay(bot, conn)
        self.metrics.record(MatchRole.BOT, outcome)
        return MatchResult(MatchRole.BOT, partner=bot.name, outcome=outcome)

    async def _drive(self, offer: Offer, conn: Connection) -> MatchResult:
        partner = offer.conn
        logger.info(f"match_paired | waiting={getattr(partner, 'name', '')} | claimant={getattr(conn, 'name', '')}")
        tap = self.chain.trainer() if self.train else None
        outcome: Optional[RelayOutcome] = None
        try:
            outcome = await relay(partner, conn, tap=tap)
        finally:
            if not offer.finished.done():
                offer.finished.set_result(outcome)
        self.metrics.record(MatchRole.CLAIMED, outcome)
        return MatchResult(MatchRole.CLAIMED, partner=getattr(partner, "name", ""), outcome=outcome)
