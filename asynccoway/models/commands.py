"""
Commands dispatched to the IoCare control endpoint.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

COMMAND_MAXIMUM_SKIPS = 3


@dataclass
class PayloadCommand:
    """A single ``funcId``/``comdVal`` instruction."""

    key: str
    value: str

    def to_func(self) -> dict:
        return {"funcId": self.key, "comdVal": self.value}


@dataclass
class ExpirablePayloadCommand(PayloadCommand):
    """A dispatched command still waiting to be confirmed by a poll.

    ``skips`` counts how many poll cycles disagreed with the command while it
    was kept; the command expires once the budget is spent or once it is older
    than the polling interval.
    """

    skips: int = 0
    issued_at: float = field(default_factory=time.monotonic)

    def is_expired(self, max_age: float, now: float | None = None) -> bool:
        if self.skips >= COMMAND_MAXIMUM_SKIPS:
            return True
        if now is None:
            now = time.monotonic()
        return now - self.issued_at >= max_age
