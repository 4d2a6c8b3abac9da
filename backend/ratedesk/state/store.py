from __future__ import annotations

import asyncio
import datetime
import logging
import threading
from typing import Any

from pydantic import ValidationError

from ratedesk.errors import PersistenceFailure
from ratedesk.schemas.indicator import (
    FAILURE_STATUSES,
    INDICATORS,
    IndicatorSnapshot,
)
from ratedesk.state.backends import StateBackend


logger = logging.getLogger(__name__)


def default_state() -> dict[str, IndicatorSnapshot]:
    return {name: IndicatorSnapshot() for name in INDICATORS}


class StateStore:
    """
    Latest snapshot per indicator.

    A failed acquisition only ever touches ``status``; ``value``, ``source``
    and ``updated_at`` move together and only on success. Every mutation is
    followed by a full write of the state document. Write errors are logged
    and the in-memory snapshot stays authoritative.
    """

    def __init__(self, backend: StateBackend) -> None:
        self.backend = backend
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._state = default_state()

    def load(self) -> None:
        try:
            stored = self.backend.read()
        except PersistenceFailure as exc:
            logger.error("Could not load state, starting from defaults: %s", exc)
            with self._lock:
                self._state = default_state()
            return

        if stored is None:
            logger.info("No stored state found, initialising defaults")
            with self._lock:
                self._state = default_state()
            self.persist()
            return

        state = default_state()
        for name in INDICATORS:
            entry = stored.get(name)
            if entry is None:
                continue
            try:
                state[name] = IndicatorSnapshot.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Ignoring malformed stored snapshot for %s: %s", name, exc)
        with self._lock:
            self._state = state
        logger.info("State loaded")

    def get(self, indicator: str) -> IndicatorSnapshot:
        with self._lock:
            snapshot = self._state.get(indicator)
            if snapshot is None:
                return IndicatorSnapshot()
            return snapshot.model_copy(deep=True)

    def get_all(self) -> dict[str, IndicatorSnapshot]:
        with self._lock:
            return {name: snapshot.model_copy(deep=True) for name, snapshot in self._state.items()}

    def record_success(
        self,
        indicator: str,
        value: Any,
        source: str,
        now: datetime.datetime | None = None,
    ) -> None:
        if indicator not in INDICATORS:
            raise ValueError(f"Unknown indicator: {indicator}")
        updated_at = now or datetime.datetime.now(datetime.UTC)
        with self._lock:
            self._state[indicator] = IndicatorSnapshot(
                value=value,
                source=source,
                updated_at=updated_at,
                status="ok",
            )
        self.persist()

    def record_failure(self, indicator: str, status: str) -> None:
        if indicator not in INDICATORS:
            raise ValueError(f"Unknown indicator: {indicator}")
        if status not in FAILURE_STATUSES:
            raise ValueError(f"Not a failure status: {status}")
        with self._lock:
            current = self._state[indicator]
            self._state[indicator] = current.model_copy(update={"status": status})
        self.persist()

    async def save_success(
        self,
        indicator: str,
        value: Any,
        source: str,
        now: datetime.datetime | None = None,
    ) -> None:
        """``record_success`` with the backend write run off the event loop."""
        await asyncio.to_thread(self.record_success, indicator, value, source, now)

    async def save_failure(self, indicator: str, status: str) -> None:
        await asyncio.to_thread(self.record_failure, indicator, status)

    def to_document(self) -> dict:
        with self._lock:
            return {
                name: snapshot.model_dump(mode="json", by_alias=True)
                for name, snapshot in self._state.items()
            }

    def persist(self) -> bool:
        # Readers only wait on _lock; the backend write holds _write_lock alone.
        with self._write_lock:
            document = self.to_document()
            try:
                self.backend.write(document)
            except PersistenceFailure as exc:
                logger.error("Could not persist state: %s", exc)
                return False
        return True
