from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MatchRole(Enum):
    OFFERED = "offered"
    CLAIMED = "claimed"
    BOT = "bot"
    ABANDONED = "abandoned"


@dataclass
class RelayOutcome:
    error: Optional[BaseException] = None

    @property
    def clean(self) -> bool:
        return self.error is None


@dataclass
class MatchResult:
    role: MatchRole
    partner: str = ""
    outcome: Optional[RelayOutcome] = None


@dataclass
class MatcherMetrics:
    arrivals: int = 0
    human_sessions: int = 0
    bot_sessions: int = 0
    relay_errors: int = 0

    def record(self, role: MatchRole, outcome: Optional[RelayOutcome]) -> None:
        """Count a session once, from the side that drove it."""
        if role == MatchRole.CLAIMED:
            self.human_sessions += 1
        elif role == MatchRole.BOT:
            self.bot_sessions += 1
        else:
            return
        if outcome is not None and not outcome.clean:
            self.relay_errors += 1
