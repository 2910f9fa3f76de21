"""Pipeline stage logging.

Every stage run is recorded with content hashes of its input and output,
its duration, confidence and final status. Entries go to the application
log and to a bounded in-memory buffer served by the debug endpoint. Stage
durations are forwarded to the metrics collector.

Logging is best effort: a failure here is reported on the application log
and never propagates into the pipeline.
"""

import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Deque, Dict, List, Optional

from vibetrip.app.core.logging import get_log_context, get_logger
from vibetrip.app.core.utils import content_hash

logger = get_logger(__name__)

PREVIEW_LENGTH = 100


@dataclass
class StageLogEntry:
    """A single stage run."""
    id: str
    stage: str
    trip_id: Optional[str]
    timestamp: float
    input_hash: str
    input_preview: str
    status: str = "RUNNING"
    output_hash: Optional[str] = None
    duration_ms: Optional[float] = None
    confidence: Optional[float] = None
    error: Optional[str] = None
    _started: float = field(default=0.0, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_started")
        return data


def _preview(data: Any) -> str:
    text = data if isinstance(data, str) else repr(data)
    return text[:PREVIEW_LENGTH] + "..." if len(text) > PREVIEW_LENGTH else text


def _hash(data: Any) -> str:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    return content_hash(data)


class StageLogger:
    """Records stage start, success and error events.

    Example:
        entry_id = await stage_logger.start("intent", message, trip_id=trip.id)
        ...
        await stage_logger.success(entry_id, intent, confidence=0.9)
    """

    def __init__(self, metrics=None, max_entries: int = 200):
        """Initialize the stage logger.

        Args:
            metrics: Optional MetricsCollector receiving stage durations
            max_entries: Number of recent entries kept in memory
        """
        self._metrics = metrics
        self._entries: Deque[StageLogEntry] = deque(maxlen=max_entries)
        self._index: Dict[str, StageLogEntry] = {}

    async def start(self, stage: str, data: Any, trip_id: Optional[str] = None) -> str:
        entry_id = uuid.uuid4().hex[:12]
        try:
            entry = StageLogEntry(
                id=entry_id,
                stage=stage,
                trip_id=trip_id,
                timestamp=time.time(),
                input_hash=_hash(data),
                input_preview=_preview(data),
                _started=time.perf_counter(),
            )
            self._append(entry)
            logger.info(
                f"[{stage}] Stage started",
                extra=get_log_context(
                    stage=stage, trip_id=trip_id, input_hash=entry.input_hash
                ),
            )
        except Exception as e:
            logger.warning(f"Failed to record stage start for {stage}: {e}")
        return entry_id

    async def success(
        self, entry_id: str, output: Any, confidence: Optional[float] = None
    ) -> None:
        try:
            entry = self._finish(entry_id, "SUCCESS")
            if entry is None:
                return
            entry.output_hash = _hash(output)
            entry.confidence = confidence
            logger.info(
                f"[{entry.stage}] Stage succeeded in {entry.duration_ms}ms",
                extra=get_log_context(
                    stage=entry.stage,
                    trip_id=entry.trip_id,
                    duration_ms=entry.duration_ms,
                    input_hash=entry.input_hash,
                    output_hash=entry.output_hash,
                ),
            )
            await self._record_metric(entry, success=True)
        except Exception as e:
            logger.warning(f"Failed to record stage success: {e}")

    async def error(self, entry_id: str, error: BaseException | str) -> None:
        try:
            entry = self._finish(entry_id, "ERROR")
            if entry is None:
                return
            entry.error = str(error)
            logger.warning(
                f"[{entry.stage}] Stage failed after {entry.duration_ms}ms: {error}",
                extra=get_log_context(
                    stage=entry.stage,
                    trip_id=entry.trip_id,
                    duration_ms=entry.duration_ms,
                    input_hash=entry.input_hash,
                ),
            )
            await self._record_metric(entry, success=False)
        except Exception as e:
            logger.warning(f"Failed to record stage error: {e}")

    def recent(self, limit: Optional[int] = None, trip_id: Optional[str] = None) -> List[dict]:
        """Newest-first view of the buffered entries."""
        entries = [e for e in reversed(self._entries) if trip_id is None or e.trip_id == trip_id]
        if limit is not None:
            entries = entries[:limit]
        return [e.to_dict() for e in entries]

    def clear(self) -> None:
        self._entries.clear()
        self._index.clear()

    def _append(self, entry: StageLogEntry) -> None:
        if len(self._entries) == self._entries.maxlen:
            evicted = self._entries[0]
            self._index.pop(evicted.id, None)
        self._entries.append(entry)
        self._index[entry.id] = entry

    def _finish(self, entry_id: str, status: str) -> Optional[StageLogEntry]:
        entry = self._index.get(entry_id)
        if entry is None:
            return None
        entry.status = status
        entry.duration_ms = round((time.perf_counter() - entry._started) * 1000, 2)
        return entry

    async def _record_metric(self, entry: StageLogEntry, success: bool) -> None:
        if self._metrics is not None and entry.duration_ms is not None:
            await self._metrics.record_stage(entry.stage, entry.duration_ms / 1000, success)
