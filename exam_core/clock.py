"""Countdown for one exam session.

The clock is cooperative: nothing runs in the background, the owner calls
``tick``/``advance`` once per elapsed second. Phases move

    main -> grace -> ended
    main -> prevented
    main -> ended
    prevented -> ended   (a save that was in flight succeeds)

and ``ended``/``prevented`` are terminal: no ticks, no new submissions.
``on_expire`` fires at most once, when a countdown (main or grace) reaches
zero and the session must be submitted automatically.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from .config import DEFAULT_ON_TIME_UP_ACTION, TICK_SECONDS


log = logging.getLogger(__name__)


class Phase(str, Enum):
    MAIN = "main"
    GRACE = "grace"
    ENDED = "ended"
    PREVENTED = "prevented"


class OnTimeUpAction(str, Enum):
    AUTO_SUBMIT = "auto-submit"
    PREVENT_SUBMIT = "prevent-submit"
    GRACE_PERIOD = "allow-submission-grace-period"


TERMINAL_PHASES = frozenset({Phase.ENDED, Phase.PREVENTED})


def format_seconds(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class SessionClock:
    def __init__(
        self,
        duration_minutes: int,
        on_time_up: str = DEFAULT_ON_TIME_UP_ACTION,
        grace_period_minutes: Optional[int] = None,
        on_expire: Optional[Callable[[], None]] = None,
    ):
        self.duration_seconds = max(0, int(duration_minutes or 0)) * 60
        try:
            self.on_time_up = OnTimeUpAction(on_time_up or DEFAULT_ON_TIME_UP_ACTION)
        except ValueError:
            log.warning("unknown on-time-up action %r, using %s", on_time_up, DEFAULT_ON_TIME_UP_ACTION)
            self.on_time_up = OnTimeUpAction(DEFAULT_ON_TIME_UP_ACTION)
        self.grace_seconds = max(0, int(grace_period_minutes or 0)) * 60
        self.on_expire = on_expire

        self.phase = Phase.MAIN
        self.main_remaining = self.duration_seconds
        self.grace_remaining: Optional[int] = None
        self.running = False
        self._expired_fired = False

    # ---- projections ----
    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def remaining(self) -> int:
        if self.phase == Phase.GRACE and self.grace_remaining is not None:
            return self.grace_remaining
        if self.phase == Phase.MAIN:
            return self.main_remaining
        return 0

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - max(0, self.main_remaining)

    def formatted_time(self) -> str:
        return format_seconds(self.remaining)

    # ---- control ----
    def start(self) -> None:
        if not self.is_terminal:
            self.running = True

    def stop(self) -> None:
        self.running = False

    def tick(self) -> Phase:
        """Advance one second; handles expiry of the active countdown."""
        if not self.running or self.is_terminal:
            return self.phase
        if self.phase == Phase.MAIN:
            if self.main_remaining > 0:
                self.main_remaining = max(0, self.main_remaining - TICK_SECONDS)
            if self.main_remaining <= 0:
                self._main_expired()
        elif self.phase == Phase.GRACE:
            if self.grace_remaining and self.grace_remaining > 0:
                self.grace_remaining = max(0, self.grace_remaining - TICK_SECONDS)
            if not self.grace_remaining:
                log.info("grace period over, auto-submitting")
                self._end_and_fire()
        return self.phase

    def advance(self, seconds: int) -> Phase:
        for _ in range(max(0, int(seconds))):
            if not self.running or self.is_terminal:
                break
            self.tick()
        return self.phase

    def finish(self) -> bool:
        """
        A saved submission ends the clock: main, grace or prevented -> ended.
        Prevented is only reached here by a save already in flight when time
        ran out. False if already ended.
        """
        if self.phase == Phase.ENDED:
            return False
        log.debug("clock finished manually in phase=%s remaining=%d", self.phase.value, self.remaining)
        self.phase = Phase.ENDED
        self.running = False
        return True

    # ---- internals ----
    def _main_expired(self) -> None:
        if self.on_time_up == OnTimeUpAction.GRACE_PERIOD and self.grace_seconds > 0:
            self.phase = Phase.GRACE
            self.grace_remaining = self.grace_seconds
            log.info("main time over, grace period of %ds started", self.grace_seconds)
        elif self.on_time_up == OnTimeUpAction.PREVENT_SUBMIT:
            self.phase = Phase.PREVENTED
            self.running = False
            log.info("main time over, submission prevented")
        else:
            log.info("main time over, auto-submitting")
            self._end_and_fire()

    def _end_and_fire(self) -> None:
        self.phase = Phase.ENDED
        self.running = False
        if self._expired_fired:
            return
        self._expired_fired = True
        if self.on_expire is not None:
            self.on_expire()
