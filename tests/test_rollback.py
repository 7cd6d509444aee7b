from __future__ import annotations

import pytest

from lnk.rollback import Rollback


def test_success_discards_compensations() -> None:
    calls: list[str] = []

    with Rollback() as rollback:
        rollback.push("first", lambda: calls.append("first"))

    assert calls == []
    assert len(rollback) == 0


def test_failure_unwinds_in_reverse_and_reraises() -> None:
    calls: list[str] = []

    with pytest.raises(ValueError):
        with Rollback() as rollback:
            rollback.push("first", lambda: calls.append("first"))
            rollback.push("second", lambda: calls.append("second"))
            raise ValueError("boom")

    assert calls == ["second", "first"]


def test_failing_compensation_does_not_stop_unwind(caplog: pytest.LogCaptureFixture) -> None:
    calls: list[str] = []

    def broken() -> None:
        raise OSError("disk gone")

    with pytest.raises(RuntimeError):
        with Rollback() as rollback:
            rollback.push("first", lambda: calls.append("first"))
            rollback.push("broken", broken)
            raise RuntimeError("boom")

    assert calls == ["first"]
    assert "broken" in caplog.text
