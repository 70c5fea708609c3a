from __future__ import annotations

import logging
import os
import queue
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.utils import platform

from scoutwatch.config import settings
from scoutwatch.exceptions import ScoutWatchError, StoreUnavailable
from scoutwatch.ingest.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    WATCHING = "watching"
    EVENT_RECEIVED = "event_received"
    PROCESSING = "processing"
    INACCESSIBLE = "inaccessible"
    STORE_UNAVAILABLE = "store_unavailable"
    STOPPED = "stopped"


TERMINAL_STATES = {WatcherState.INACCESSIBLE, WatcherState.STORE_UNAVAILABLE, WatcherState.STOPPED}


class EventSource(Protocol):
    def start(self) -> None:
        ...

    def wait(self, timeout: float) -> list[str]:
        """Block up to ``timeout`` for a batch of file names; empty list on timeout."""
        ...

    def renew(self) -> bool:
        """Re-arm for the next batch; False once the directory can no longer be watched."""
        ...

    def close(self) -> None:
        ...


class _QueueingHandler(FileSystemEventHandler):
    """
    Turns watchdog events into file names on a queue.

    With ``close_events`` (inotify), a new file is held back until its writer
    closes it, so the reader never sees a half-written file. A held file that
    sees no activity for ``settle_seconds`` is released anyway: inotify reports
    a file moved in from elsewhere as a plain creation with no close. Without
    close events the file is queued on creation.
    """

    def __init__(
        self,
        events: "queue.Queue[str]",
        include_modified: bool,
        close_events: bool = False,
        settle_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.events = events
        self.include_modified = include_modified
        self.close_events = close_events
        self.settle_seconds = settle_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._being_written: dict[str, float] = {}

    def _finish(self, path: str) -> None:
        with self._lock:
            held = self._being_written.pop(path, None)
        if held is not None:
            self.events.put(path)

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        if self.close_events:
            with self._lock:
                self._being_written[path] = self._clock()
        else:
            self.events.put(path)

    def on_closed(self, event: FileSystemEvent) -> None:
        self._finish(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        with self._lock:
            self._being_written.pop(os.fsdecode(event.src_path), None)
        self.events.put(os.fsdecode(event.dest_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        with self._lock:
            if path in self._being_written:
                self._being_written[path] = self._clock()
                return
        if self.include_modified:
            self.events.put(path)

    def release_settled(self) -> None:
        now = self._clock()
        with self._lock:
            settled = [p for p, seen in self._being_written.items() if now - seen >= self.settle_seconds]
            for path in settled:
                del self._being_written[path]
        for path in settled:
            logger.debug(f"{path}: no close event, queued after settling")
            self.events.put(path)


def _reports_close_events(observer: BaseObserver) -> bool:
    if not platform.is_linux():
        return False
    from watchdog.observers.inotify import InotifyObserver

    return isinstance(observer, InotifyObserver)


class WatchdogEventSource:
    """New files (and optionally modifications) in one directory, non-recursive."""

    def __init__(
        self,
        directory: Path,
        include_modified: Optional[bool] = None,
        settle_seconds: Optional[float] = None,
    ):
        self.directory = Path(directory)
        self.include_modified = settings.watch.include_modified if include_modified is None else include_modified
        self.settle_seconds = settings.watch.settle_seconds if settle_seconds is None else settle_seconds
        self._events: "queue.Queue[str]" = queue.Queue()
        self._observer: Optional[Observer] = None
        self._handler: Optional[_QueueingHandler] = None

    def start(self) -> None:
        self._observer = Observer()
        self._handler = _QueueingHandler(
            self._events,
            self.include_modified,
            close_events=_reports_close_events(self._observer),
            settle_seconds=self.settle_seconds,
        )
        self._observer.schedule(self._handler, str(self.directory), recursive=False)
        self._observer.start()

    def wait(self, timeout: float) -> list[str]:
        if self._handler is not None:
            self._handler.release_settled()
        try:
            batch = [self._events.get(timeout=timeout)]
        except queue.Empty:
            return []
        while True:
            try:
                batch.append(self._events.get_nowait())
            except queue.Empty:
                return batch

    def renew(self) -> bool:
        return self._observer is not None and self._observer.is_alive() and self.directory.is_dir()

    def close(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            self._handler = None


class DirectoryWatcher:
    """
    Long-lived ingestion loop over one directory.

    WATCHING -> EVENT_RECEIVED -> PROCESSING -> WATCHING, until the directory
    becomes unwatchable (INACCESSIBLE), the store cannot be reached
    (STORE_UNAVAILABLE) or ``cancel`` is set (STOPPED). Files are handled one
    at a time in delivery order.
    """

    def __init__(
        self,
        directory: Path,
        pipeline: IngestionPipeline,
        source: Optional[EventSource] = None,
        cancel: Optional[threading.Event] = None,
        poll_timeout: Optional[float] = None,
    ):
        self.directory = Path(directory)
        self.pipeline = pipeline
        self.source = source or WatchdogEventSource(self.directory)
        self.cancel = cancel or threading.Event()
        self.poll_timeout = settings.watch.poll_timeout_seconds if poll_timeout is None else poll_timeout
        self.state = WatcherState.WATCHING
        self.processed = 0

    def stop(self) -> None:
        self.cancel.set()

    def _enter(self, state: WatcherState) -> None:
        if state is not self.state:
            logger.debug(f"watcher {self.state.value} -> {state.value}")
        self.state = state

    def run(self) -> WatcherState:
        if not self.directory.is_dir():
            logger.error(f"Directory inaccessible: {self.directory}")
            self._enter(WatcherState.INACCESSIBLE)
            return self.state

        self.source.start()
        logger.info(f"Ready, watching {self.directory}")
        try:
            while not self.cancel.is_set():
                self._enter(WatcherState.WATCHING)
                batch = self.source.wait(self.poll_timeout)
                if batch:
                    self._enter(WatcherState.EVENT_RECEIVED)
                    if not self._drain(batch):
                        return self.state
                if not self.source.renew():
                    logger.error(f"Directory inaccessible: {self.directory}; stopped watching")
                    self._enter(WatcherState.INACCESSIBLE)
                    return self.state
            self._enter(WatcherState.STOPPED)
            logger.info("Watcher stopped")
            return self.state
        finally:
            self.source.close()

    def _drain(self, batch: list[str]) -> bool:
        for name in batch:
            path = self.directory / Path(name).name
            self._enter(WatcherState.PROCESSING)
            try:
                self.pipeline.ingest(path)
            except StoreUnavailable as exc:
                logger.critical(f"Store unavailable, ingestion paused until restarted: {exc}")
                self._enter(WatcherState.STORE_UNAVAILABLE)
                return False
            except ScoutWatchError as exc:
                logger.error(f"{path.name}: {exc}")
            except Exception:
                logger.exception(f"{path.name}: unexpected failure, skipped")
            self.processed += 1
        return True
