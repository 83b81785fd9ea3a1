"""
Hot reload: watch property source files and reload the engine when they change.
"""
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Union

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from logging_layer import FrameworkLogger

from .engine import ConfigEngine
from .sources import SOURCE_SUFFIXES

logger = FrameworkLogger(__name__)

WATCHED_SUFFIXES = tuple(suffix for suffix, _ in SOURCE_SUFFIXES)


class ConfigFileWatcher(FileSystemEventHandler):
    """Watch configuration files for changes."""

    def __init__(self, engine: ConfigEngine, debounce: float = 1.0):
        self.engine = engine
        self.debounce = debounce
        self.last_reload: Dict[str, float] = {}
        self.lock = threading.Lock()

    def _should_reload(self, file_path: str) -> bool:
        if not file_path.endswith(WATCHED_SUFFIXES):
            return False

        now = time.monotonic()
        with self.lock:
            last = self.last_reload.get(file_path)
            if last is not None and now - last < self.debounce:
                return False
            self.last_reload[file_path] = now
        return True

    def _handle_change(self, file_path: str):
        if not self._should_reload(file_path):
            return

        logger.info("Configuration file changed", path=file_path)

        # Reload off the observer thread
        threading.Thread(
            target=self.engine.reload,
            daemon=True
        ).start()

    def on_modified(self, event):
        """Handle file modification events."""
        if event.is_directory:
            return
        self._handle_change(str(event.src_path))

    on_created = on_modified

    def on_moved(self, event):
        """Handle atomic saves: a temp file renamed over a watched file."""
        if event.is_directory:
            return
        self._handle_change(str(event.dest_path))


class ConfigWatchService:
    """Owns the watchdog observer for one engine."""

    def __init__(self, engine: ConfigEngine, path: Union[str, Path], debounce: float = 1.0):
        self.engine = engine
        self.path = Path(path)
        self.handler = ConfigFileWatcher(engine, debounce=debounce)
        self.observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None

    def start(self):
        if self.observer is not None:
            return
        self.observer = Observer()
        self.observer.schedule(self.handler, str(self.path), recursive=False)
        self.observer.start()
        logger.info("Started watching config directory", path=str(self.path))

    def stop(self):
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("Stopped watching config directory", path=str(self.path))


def start_file_watching(engine: ConfigEngine, path: Union[str, Path, None] = None,
                        debounce: float = 1.0) -> ConfigWatchService:
    """Start hot reload for ``engine``; defaults to the loader's base path."""
    if path is None:
        path = getattr(engine.loader, 'base_path', None)
        if path is None:
            raise ValueError("Engine loader has no base_path; pass the directory to watch")
    service = ConfigWatchService(engine, path, debounce=debounce)
    service.start()
    return service
