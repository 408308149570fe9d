from __future__ import annotations

import codecs
import random
import threading
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from loguru import logger


class Chain:
    """Fixed-order Markov chain over space-delimited tokens.

    The table maps a prefix of `prefix_len` tokens (joined with single spaces)
    to every suffix observed right after it. Duplicates are kept, so a uniform
    pick from the list is a frequency-weighted pick. The table only grows.

    Training goes through `Trainer` streams, each with its own rolling prefix;
    the table itself is shared and guarded by one lock for reads and writes.
    """

    def __init__(self, prefix_len: int = 2, rng: Optional[random.Random] = None) -> None:
        if prefix_len < 1:
            raise ValueError(f"prefix_len must be >= 1, got {prefix_len}")
        self.prefix_len = prefix_len
        self._table: Dict[str, List[str]] = {}
        self._lock = threading.Lock()
        self._rng = rng or random.Random()
        self._default = Trainer(self)

    def trainer(self) -> "Trainer":
        """Open a new training stream starting from the empty prefix."""
        return Trainer(self)

    def train(self, data: Union[bytes, str]) -> int:
        return self._default.write(data)

    def train_file(self, path: Union[str, Path]) -> int:
        """Feed a text corpus through a fresh stream; returns tokens seen."""
        stream = self.trainer()
        p = Path(path)
        with p.open("rb") as f:
            for chunk in iter(lambda: f.read(64 * 1024), b""):
                stream.write(chunk)
        logger.info(f"chain_train_file | path={p} | tokens={stream.tokens} | prefixes={len(self)}")
        return stream.tokens

    def _extend(self, cursor: deque, tokens: Sequence[str]) -> None:
        with self._lock:
            for token in tokens:
                self._table.setdefault(" ".join(cursor), []).append(token)
                cursor.append(token)

    def suffixes(self, prefix: Union[str, Sequence[str]]) -> List[str]:
        key = prefix if isinstance(prefix, str) else " ".join(prefix)
        with self._lock:
            return list(self._table.get(key, ()))

    def table(self) -> Dict[str, List[str]]:
        with self._lock:
            return {k: list(v) for k, v in self._table.items()}

    def generate(self, max_tokens: int) -> str:
        """Walk the chain from the empty prefix for at most `max_tokens` steps.

        Stops early at a prefix with no recorded suffix; returns "" when the
        chain knows nothing about the empty prefix.
        """
        prefix = deque([""] * self.prefix_len, maxlen=self.prefix_len)
        words: List[str] = []
        for _ in range(max_tokens):
            with self._lock:
                choices = self._table.get(" ".join(prefix))
                if not choices:
                    break
                word = self._rng.choice(choices)
            words.append(word)
            prefix.append(word)
        return " ".join(words)

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)


class Trainer:
    """One logical training stream with its own rolling prefix.

    The prefix carries over between writes, so chunk boundaries do not reset
    it. Bytes are decoded incrementally as UTF-8.
    """

    def __init__(self, chain: Chain) -> None:
        self.chain = chain
        self.tokens = 0
        self._cursor = deque([""] * chain.prefix_len, maxlen=chain.prefix_len)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write(self, data: Union[bytes, str]) -> int:
        text = data if isinstance(data, str) else self._decoder.decode(bytes(data))
        if text:
            tokens = text.split(" ")
            self.chain._extend(self._cursor, tokens)
            self.tokens += len(tokens)
        return len(data)

    def __call__(self, data: Union[bytes, str]) -> int:
        return self.write(data)
