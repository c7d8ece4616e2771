import logging
from typing import Optional

from .events import PhaseTimer, TimerFired

logger = logging.getLogger(__name__)


class PhaseScheduler:
    """Single-owner holder of a client's one phase timer.

    Cooperative: nothing fires on its own. The owner calls ``due(now)``
    from its poll loop and feeds the returned event back into the reducer.
    Arming a timer always cancels the previous one first.
    """

    def __init__(self):
        self._active: Optional[PhaseTimer] = None

    @property
    def active(self) -> Optional[PhaseTimer]:
        return self._active

    def sync(self, timer: Optional[PhaseTimer]) -> None:
        """Make `timer` the only armed timer (None disarms)."""
        if timer == self._active:
            return
        self.cancel()
        if timer is not None:
            logger.debug(f"[timer-set] kind={timer.kind} token={timer.token} fires_at={timer.fires_at:.3f}")
        self._active = timer

    def cancel(self) -> None:
        if self._active is not None:
            logger.debug(f"[timer-cancel] kind={self._active.kind} token={self._active.token}")
        self._active = None

    def due(self, now: float) -> Optional[TimerFired]:
        timer = self._active
        if timer is None or now < timer.fires_at:
            return None
        self._active = None
        logger.debug(f"[timer-fire] kind={timer.kind} token={timer.token}")
        return TimerFired(kind=timer.kind, token=timer.token, now=now)
