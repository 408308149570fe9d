from __future__ import annotations

import argparse
import asyncio
import random
import sys
from dataclasses import replace

from loguru import logger

from roulette.config import Settings, get_settings
from roulette.server import build_matcher, serve


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Pair anonymous TCP clients into chats, with a Markov bot fallback")
    p.add_argument("--host", type=str, help="Listen host (env ROULETTE_HOST)")
    p.add_argument("--port", type=int, help="Listen port (env ROULETTE_PORT)")
    p.add_argument("--timeout", type=float, help="Seconds to wait for a human partner before the bot steps in")
    p.add_argument("--bot-delay", type=float, help="Seconds before each bot reply")
    p.add_argument("--bot-tokens", type=int, help="Max tokens per bot reply")
    p.add_argument("--prefix-len", type=int, help="Markov chain prefix length")
    p.add_argument("--corpus", type=str, help="Text file to pre-train the chain from")
    p.add_argument("--seed", type=int, help="Random seed (default: time-based)")
    p.add_argument("--log-level", type=str, help="Log level (DEBUG, INFO, ...)")
    return p.parse_args(argv)


def resolve_settings(args: argparse.Namespace, base: Settings) -> Settings:
    overrides = {
        "host": args.host,
        "port": args.port,
        "match_timeout": args.timeout,
        "bot_delay": args.bot_delay,
        "bot_tokens": args.bot_tokens,
        "prefix_len": args.prefix_len,
        "corpus": args.corpus,
        "seed": args.seed,
        "log_level": args.log_level.upper() if args.log_level else None,
    }
    return replace(base, **{k: v for k, v in overrides.items() if v is not None})


async def main(argv: list[str] | None = None) -> None:
    settings = resolve_settings(parse_args(argv), get_settings())

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, colorize=True, format="{time:HH:mm:ss} | {level} | {message}")

    if settings.seed is not None:
        random.seed(settings.seed)
    matcher = build_matcher(settings)
    server = await serve(matcher, settings.host, settings.port)
    async with server:
        await server.serve_forever()


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    cli()
