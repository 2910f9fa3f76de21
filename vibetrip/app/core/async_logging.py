"""Async logging support to keep log I/O off the event loop.

Console writes are queued in memory and flushed by a background thread so a
slow stdout never stalls request handling or pipeline stages.
"""

import atexit
import logging
import queue
import threading
import time
from typing import List, Optional


class AsyncLogHandler(logging.Handler):
    """Handler that queues records for a background processor.

    If the queue is full, records are dropped rather than blocking the caller.

    Attributes:
        log_queue: Thread-safe queue for log records
    """

    def __init__(self, max_queue_size: int = 10000):
        super().__init__()
        self.log_queue: queue.Queue[logging.LogRecord] = queue.Queue(
            maxsize=max_queue_size
        )
        self._shutdown = False

    def emit(self, record: logging.LogRecord) -> None:
        if self._shutdown:
            return
        try:
            self.log_queue.put_nowait(record)
        except queue.Full:
            pass

    def shutdown(self) -> None:
        self._shutdown = True


class BackgroundLogProcessor:
    """Drains an AsyncLogHandler queue into the real output handlers.

    Attributes:
        handler: The AsyncLogHandler to read from
        targets: Handlers that perform the actual I/O
        flush_interval: Seconds between explicit flushes
        batch_size: Maximum records to process per iteration
    """

    def __init__(
        self,
        handler: AsyncLogHandler,
        targets: List[logging.Handler],
        flush_interval: float = 1.0,
        batch_size: int = 100,
    ):
        self.handler = handler
        self.targets = targets
        self.flush_interval = flush_interval
        self.batch_size = batch_size
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._process_loop, name="vibetrip-log-writer", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the processor to stop and wait for the final drain."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

    def _process_loop(self) -> None:
        last_flush = time.time()

        while not self._stop.is_set():
            batch: List[logging.LogRecord] = []
            for _ in range(self.batch_size):
                try:
                    batch.append(self.handler.log_queue.get_nowait())
                except queue.Empty:
                    break

            for record in batch:
                self._emit(record)

            if time.time() - last_flush > self.flush_interval:
                self._flush()
                last_flush = time.time()

            if not batch:
                self._stop.wait(0.005)

        self._drain()

    def _emit(self, record: logging.LogRecord) -> None:
        for target in self.targets:
            if record.levelno < target.level:
                continue
            try:
                target.handle(record)
            except Exception:
                target.handleError(record)

    def _flush(self) -> None:
        for target in self.targets:
            try:
                target.flush()
            except Exception:
                pass

    def _drain(self) -> None:
        while True:
            try:
                record = self.handler.log_queue.get_nowait()
            except queue.Empty:
                break
            self._emit(record)
        self._flush()


class AsyncHandlerWrapper(logging.Handler):
    """Wrapper that makes any handler asynchronous.

    Example:
        console_handler = logging.StreamHandler(sys.stdout)
        logger.addHandler(AsyncHandlerWrapper(console_handler))
    """

    def __init__(self, wrapped_handler: logging.Handler, max_queue_size: int = 10000):
        super().__init__(level=wrapped_handler.level)
        self.wrapped_handler = wrapped_handler
        self.async_handler = AsyncLogHandler(max_queue_size)
        self.processor = BackgroundLogProcessor(self.async_handler, [wrapped_handler])
        self.processor.start()
        atexit.register(self.shutdown)

    def emit(self, record: logging.LogRecord) -> None:
        self.async_handler.emit(record)

    def flush(self) -> None:
        self.wrapped_handler.flush()

    def shutdown(self) -> None:
        self.async_handler.shutdown()
        self.processor.stop()

    def close(self) -> None:
        self.shutdown()
        self.wrapped_handler.close()
        super().close()


_wrapped_handlers: List[AsyncHandlerWrapper] = []


def setup_async_logging(logger_names: List[str]) -> List[AsyncHandlerWrapper]:
    """Replace the stream handlers of the given loggers with async wrappers.

    Filters and formatters stay on the wrapped handlers, so records are
    formatted on the writer thread.

    Returns:
        The wrappers that were installed.
    """
    installed: List[AsyncHandlerWrapper] = []
    for name in logger_names:
        target = logging.getLogger(name) if name else logging.getLogger()
        for handler in list(target.handlers):
            if isinstance(handler, AsyncHandlerWrapper):
                continue
            wrapper = AsyncHandlerWrapper(handler)
            # Context must be attached on the calling thread
            for flt in handler.filters:
                wrapper.addFilter(flt)
            target.removeHandler(handler)
            target.addHandler(wrapper)
            installed.append(wrapper)
    _wrapped_handlers.extend(installed)
    return installed


def shutdown_async_logging() -> None:
    """Flush and stop every installed background writer."""
    while _wrapped_handlers:
        _wrapped_handlers.pop().shutdown()
