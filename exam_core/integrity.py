from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

from .types import Infraction


log = logging.getLogger(__name__)

SIGNALS: tuple[str, ...] = ("copy", "paste", "blur", "visibilitychange")


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class IntegrityMonitor:
    """
    Turns raw input-surface signals into timestamped infractions.

    The monitor only reports; what to do about a focus loss is decided by
    whoever listens. Pasted content is swallowed here and never handed on.
    """

    def __init__(
        self,
        on_event: Optional[Callable[[Infraction], None]] = None,
        *,
        enabled: bool = True,
        now: Callable[[], str] = utcnow_iso,
    ):
        self.on_event = on_event
        self.enabled = enabled
        self._now = now

    def _emit(self, kind: str) -> Optional[Infraction]:
        if not self.enabled:
            return None
        evt = Infraction(type=kind, timestamp=self._now())
        log.debug("integrity event type=%s at=%s", evt.type, evt.timestamp)
        if self.on_event is not None:
            self.on_event(evt)
        return evt

    def copy(self) -> Optional[Infraction]:
        return self._emit("copy")

    def paste(self, content: Optional[str] = None) -> None:
        """Record the paste attempt; the content is dropped."""
        self._emit("paste")
        return None

    def blur(self) -> Optional[Infraction]:
        return self._emit("focus-lost")

    def visibility_change(self, hidden: bool) -> Optional[Infraction]:
        if not hidden:
            return None
        return self._emit("focus-lost")

    def handle(self, signal: str, *, hidden: bool = True, content: Optional[str] = None) -> Optional[Infraction]:
        """Dispatch a named surface signal (``copy``, ``paste``, ``blur``, ``visibilitychange``)."""
        if signal == "copy":
            return self.copy()
        if signal == "paste":
            return self._emit("paste")
        if signal == "blur":
            return self.blur()
        if signal == "visibilitychange":
            return self.visibility_change(hidden)
        raise ValueError(f"unknown integrity signal: {signal!r} (expected one of {', '.join(SIGNALS)})")
