"""Clock abstraction so TTL behaviour can be tested without real waiting."""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now_ms(self) -> int:
        """Current time as epoch milliseconds."""
        ...


class SystemClock:
    """Wall clock. Proposal timestamps survive restarts, so epoch time is used."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)
