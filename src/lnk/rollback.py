"""Compensation stack used by multi-step repository transitions."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Callable

logger = logging.getLogger(__name__)

Compensation = Callable[[], object]


class Rollback:
    """Records undo actions and replays them in reverse if the block fails.

    Used as a context manager: leaving the block normally discards the
    recorded actions, leaving it with an exception runs them newest first
    and lets the original exception propagate. Failures inside a
    compensation are logged and skipped.
    """

    def __init__(self) -> None:
        self._actions: list[tuple[str, Compensation]] = []

    def push(self, description: str, action: Compensation) -> None:
        self._actions.append((description, action))

    def commit(self) -> None:
        self._actions.clear()

    def unwind(self) -> None:
        while self._actions:
            description, action = self._actions.pop()
            logger.debug("Rolling back: %s", description)
            try:
                action()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Rollback step '%s' failed: %s", description, exc)

    def __len__(self) -> int:
        return len(self._actions)

    def __enter__(self) -> "Rollback":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.unwind()
