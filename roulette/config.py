from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger


# Load env from the project root, then CWD, before settings are read
try:
    here = Path(__file__).resolve().parents[1]
    for env_path in (here / ".env", Path.cwd() / ".env"):
        if env_path.is_file():
            load_dotenv(dotenv_path=str(env_path), override=False)
            break
except OSError as e:
    logger.debug(f"dotenv_skipped | {e}")


@dataclass(frozen=True)
class Settings:
    host: str = "localhost"
    port: int = 4000
    match_timeout: float = 5.0
    bot_delay: float = 1.0
    bot_tokens: int = 10
    prefix_len: int = 2
    corpus: Optional[str] = None
    seed: Optional[int] = None
    log_level: str = "INFO"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; using {default}")
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings from the environment.

    Env vars (all optional):
      - ROULETTE_HOST / ROULETTE_PORT: listen address (localhost:4000)
      - ROULETTE_MATCH_TIMEOUT: seconds to wait for a human partner (5)
      - ROULETTE_BOT_DELAY: seconds before a bot reply (1)
      - ROULETTE_BOT_TOKENS: max tokens per bot reply (10)
      - ROULETTE_PREFIX_LEN: Markov prefix length (2)
      - ROULETTE_CORPUS: text file to pre-train the chain from
      - ROULETTE_SEED: random seed
      - ROULETTE_LOG_LEVEL: loguru level (INFO)
    """
    d = Settings()
    settings = Settings(
        host=os.getenv("ROULETTE_HOST", d.host),
        port=_env_int("ROULETTE_PORT", d.port),
        match_timeout=_env_float("ROULETTE_MATCH_TIMEOUT", d.match_timeout),
        bot_delay=_env_float("ROULETTE_BOT_DELAY", d.bot_delay),
        bot_tokens=_env_int("ROULETTE_BOT_TOKENS", d.bot_tokens),
        prefix_len=_env_int("ROULETTE_PREFIX_LEN", d.prefix_len),
        corpus=os.getenv("ROULETTE_CORPUS") or None,
        seed=_env_int("ROULETTE_SEED", None),
        log_level=os.getenv("ROULETTE_LOG_LEVEL", d.log_level).upper(),
    )
    logger.debug(f"Loaded settings {settings}")
    return settings
