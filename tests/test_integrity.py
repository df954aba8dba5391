from __future__ import annotations

import pytest

from exam_core.integrity import IntegrityMonitor

from tests.conftest import FixedClock


def test_signals_map_to_infractions():
    seen = []
    mon = IntegrityMonitor(seen.append, now=FixedClock("t0"))
    mon.copy()
    mon.paste("secret answer")
    mon.blur()
    mon.visibility_change(hidden=False)
    mon.visibility_change(hidden=True)
    assert [e.type for e in seen] == ["copy", "paste", "focus-lost", "focus-lost"]
    assert all(e.timestamp == "t0" for e in seen)


def test_paste_never_hands_content_back():
    mon = IntegrityMonitor()
    assert mon.paste("copied text") is None
    assert mon.handle("paste", content="copied text").type == "paste"


def test_disabled_monitor_emits_nothing():
    seen = []
    mon = IntegrityMonitor(seen.append, enabled=False)
    assert mon.copy() is None
    assert mon.handle("blur") is None
    assert seen == []


def test_handle_dispatches_named_signals():
    mon = IntegrityMonitor()
    assert mon.handle("copy").type == "copy"
    assert mon.handle("blur").type == "focus-lost"
    assert mon.handle("visibilitychange", hidden=False) is None
    assert mon.handle("visibilitychange").type == "focus-lost"
    with pytest.raises(ValueError):
        mon.handle("screenshot")
