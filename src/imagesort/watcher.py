"""Directory watcher: initial sweep, then debounced per-event processing."""

import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional, Set, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import DEBOUNCE_SECONDS, DRAIN_TIMEOUT, STOP_POLL_SECONDS
from .errors import ConfigError
from .pipeline import Attempt

logger = logging.getLogger(__name__)


def normalize_extensions(extensions: Iterable[str]) -> FrozenSet[str]:
    """Lowercase extensions and strip any leading dot: ``".JPG" -> "jpg"``."""
    return frozenset(ext.strip().lstrip(".").lower() for ext in extensions if ext.strip().lstrip("."))


@dataclass(frozen=True)
class WatchTarget:
    """Immutable watch configuration."""

    directory: Path
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    confidence: float = 0.9
    debounce: float = DEBOUNCE_SECONDS

    @classmethod
    def create(
        cls,
        directory: Union[str, Path],
        extensions: Iterable[str],
        confidence: float,
        debounce: float = DEBOUNCE_SECONDS
    ) -> "WatchTarget":
        """
        Normalize and validate a watch configuration.

        Raises:
            ConfigError: On an empty extension set, a confidence outside (0, 1]
                or a negative debounce
        """
        exts = normalize_extensions(extensions)
        if not exts:
            raise ConfigError("At least one file extension is required")
        if not 0.0 < confidence <= 1.0:
            raise ConfigError(f"Confidence must be in (0, 1], got {confidence}")
        if debounce < 0:
            raise ConfigError(f"Debounce must not be negative, got {debounce}")
        return cls(Path(directory), exts, float(confidence), float(debounce))

    def validate(self) -> None:
        """Raise ConfigError unless the watched directory exists."""
        if not self.directory.is_dir():
            raise ConfigError(f"Directory \"{self.directory}\" does not exist.")

    def matches(self, path: Union[str, Path]) -> bool:
        """Case-insensitive suffix match; multi-part extensions such as ``tar.gz`` work too."""
        name = Path(path).name.lower()
        return any(name.endswith(f".{ext}") for ext in self.extensions)


class WatchState(str, Enum):
    STARTING = "starting"
    SWEEPING = "sweeping"
    WATCHING = "watching"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ImageCreatedHandler(FileSystemEventHandler):
    """Watchdog handler forwarding created image files to a callback."""

    def __init__(self, target: WatchTarget, on_image: Callable[[Path], None]) -> None:
        super().__init__()
        self.target = target
        self.on_image = on_image

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        path = Path(os.fsdecode(event.src_path))
        if not self.target.matches(path):
            return

        logger.debug(f"Created: {path}")
        self.on_image(path)


class WatchLoop:
    """Lifecycle owner: STARTING -> SWEEPING -> WATCHING -> STOPPING -> STOPPED.

    Every creation event gets its own timer thread that waits out the debounce
    delay and then runs one attempt, so slow files never hold up new events.
    Repeated events for the same path are not merged.
    """

    def __init__(self, target: WatchTarget, sorter, observer_factory: Callable = Observer):
        """
        Args:
            target: What to watch
            sorter: Object with ``process(path) -> Attempt`` and ``close()``,
                normally an ``ImageSorter``
            observer_factory: Builds the watchdog observer
        """
        self.target = target
        self.sorter = sorter
        self.observer_factory = observer_factory
        self.state = WatchState.STARTING

        self._observer = None
        self._pending: Set[threading.Thread] = set()
        # Timers still waiting out the debounce delay
        self._armed: Set[threading.Timer] = set()
        self._idle = threading.Condition()

    def run(self, stop_event: threading.Event) -> None:
        """Start, block until ``stop_event`` is set, then stop."""
        self.start()
        try:
            while not stop_event.is_set():
                stop_event.wait(STOP_POLL_SECONDS)
        finally:
            self.stop()

    def start(self) -> int:
        """
        Validate the target, sweep existing files and start watching.

        Returns:
            Number of pre-existing files moved by the sweep

        Raises:
            ConfigError: If the directory does not exist
            OSError: If listing or subscribing to the directory fails

        The loop is STOPPED and the oracle released whenever this raises.
        """
        logger.info("Service started")
        try:
            self.target.validate()
        except ConfigError:
            self.sorter.close()
            self.state = WatchState.STOPPED
            raise

        try:
            count = self.sweep()
            self.watch()
        except Exception:
            self.stop(drain_timeout=0)
            raise
        return count

    def sweep(self) -> int:
        """Process files already in the directory; returns how many were moved."""
        self.state = WatchState.SWEEPING
        count = 0
        for path in self._existing_files():
            attempt: Attempt = self.sorter.process(path)
            if attempt.moved:
                count += 1

        if count > 0:
            logger.info(f"Moved {count} existing files.")
        return count

    def _existing_files(self) -> List[Path]:
        with os.scandir(self.target.directory) as entries:
            return sorted(
                Path(entry.path) for entry in entries
                if entry.is_file() and self.target.matches(entry.name)
            )

    def watch(self) -> None:
        """Subscribe to creation events in the target directory."""
        handler = ImageCreatedHandler(self.target, self.submit)
        observer = self.observer_factory()
        observer.schedule(handler, str(self.target.directory), recursive=False)
        observer.daemon = True
        observer.start()

        self._observer = observer
        self.state = WatchState.WATCHING
        logger.info(f"Listening for images created in \"{self.target.directory}\"...")

    def submit(self, path: Union[str, Path]) -> None:
        """Schedule one attempt for ``path`` after the debounce delay."""
        if self.state is not WatchState.WATCHING:
            logger.debug(f"Ignoring {path}: watcher is {self.state.value}")
            return

        timer = threading.Timer(self.target.debounce, self._attempt, args=(Path(path),))
        timer.daemon = True
        with self._idle:
            self._pending.add(timer)
            self._armed.add(timer)
        timer.start()

    def _attempt(self, path: Path) -> None:
        with self._idle:
            timer = threading.current_thread()
            if timer not in self._armed:
                # cancelled by stop()
                return
            self._armed.discard(timer)

        try:
            self.sorter.process(path)
        finally:
            with self._idle:
                self._pending.discard(timer)
                if not self._pending:
                    self._idle.notify_all()

    @property
    def pending(self) -> int:
        """Number of attempts still debouncing or running."""
        with self._idle:
            return len(self._pending)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no attempt is pending; False if ``timeout`` expired first."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._pending, timeout)

    def _cancel_armed(self) -> int:
        """Cancel timers that have not fired yet; returns how many were cancelled."""
        with self._idle:
            armed = list(self._armed)
            for timer in armed:
                timer.cancel()
            self._pending.difference_update(armed)
            self._armed.clear()
            if not self._pending:
                self._idle.notify_all()
        return len(armed)

    def stop(self, drain_timeout: Optional[float] = DRAIN_TIMEOUT) -> None:
        """Unsubscribe, let in-flight attempts finish (best effort), release the oracle."""
        if self.state is WatchState.STOPPED:
            return
        self.state = WatchState.STOPPING

        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        if not self.wait_idle(drain_timeout):
            cancelled = self._cancel_armed()
            if cancelled:
                logger.warning(f"Cancelled {cancelled} attempts still waiting for their debounce delay")
            if self.pending:
                logger.warning(f"Stopping with {self.pending} attempts still in flight")

        self.sorter.close()
        self.state = WatchState.STOPPED
        logger.info("Service stopped")
