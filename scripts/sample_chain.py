from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path

from loguru import logger

_pkg_root = str(Path(__file__).resolve().parents[1])
if _pkg_root not in sys.path:
    sys.path.insert(0, _pkg_root)

from roulette.markov import Chain


# ==========================
# Defaults (override on CLI)
# ==========================
PREFIX_LEN = 2
COUNT = 5
MAX_TOKENS = 10


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Train a chain on text files and print sample bot lines")
    p.add_argument("paths", nargs="+", help="Corpus files, one training stream each")
    p.add_argument("--prefix-len", type=int, default=PREFIX_LEN)
    p.add_argument("--count", type=int, default=COUNT, help="Number of lines to generate")
    p.add_argument("--tokens", type=int, default=MAX_TOKENS, help="Max tokens per line")
    p.add_argument("--seed", type=int, default=None)
    return p.parse_args()


def main() -> int:
    args = parse_args()
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")

    chain = Chain(prefix_len=args.prefix_len, rng=random.Random(args.seed))
    for path in args.paths:
        try:
            chain.train_file(path)
        except OSError as e:
            logger.error(f"Skipping {path}: {e}")
    if not len(chain):
        logger.error("Nothing trained; chain is empty")
        return 1

    for _ in range(args.count):
        print(chain.generate(args.tokens))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
