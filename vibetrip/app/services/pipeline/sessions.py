"""In-memory store of pipeline sessions keyed by trip id."""

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict

from vibetrip.app.core.locks import KeyedLock
from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import NotFoundError
from vibetrip.app.services.pipeline.state import PipelineSession, PipelineStatus

logger = get_logger(__name__)


class SessionStore:
    """Holds sessions and serializes work on each one.

    ``locked(trip_id)`` is the only way to mutate a session: a confirm and a
    cancel racing on one trip run one after the other, while different trips
    proceed in parallel.
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, PipelineSession] = {}
        self._locks = KeyedLock()

    def add(self, session: PipelineSession) -> PipelineSession:
        self._sessions[session.id] = session
        return session

    def get(self, trip_id: str) -> PipelineSession:
        session = self._sessions.get(trip_id)
        if session is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return session

    @asynccontextmanager
    async def locked(self, trip_id: str) -> AsyncIterator[PipelineSession]:
        async with self._locks.hold(trip_id):
            yield self.get(trip_id)

    async def cleanup(self) -> int:
        """Drop sessions untouched for longer than ``ttl``.

        Sessions with a stage in flight are kept.
        """
        cutoff = self._clock() - self.ttl
        stale = [
            trip_id for trip_id, session in list(self._sessions.items())
            if session.updated_at < cutoff
            and session.status is not PipelineStatus.RUNNING
            and not self._locks.is_locked(trip_id)
        ]
        for trip_id in stale:
            self._sessions.pop(trip_id, None)
        if stale:
            logger.info(f"Dropped {len(stale)} idle trip sessions. Active: {len(self._sessions)}")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
