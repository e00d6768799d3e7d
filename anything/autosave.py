"""
Debounced snapshot persistence.

The store only serializes itself into memory; this module decides when
that happens and writes the result to disk atomically.
"""

import io
import os
import tempfile
import threading
from pathlib import Path
from typing import IO, Protocol

from anything.logger import get_logger

log = get_logger("anything.autosave")


class LoaderSaver(Protocol):
    def load(self, fp: IO[str]) -> None: ...

    def save(self, fp: IO[str]) -> None: ...


class AutoSaver:
    """
    Saves a LoaderSaver to a file some time after it changes.

    Call delay() whenever the state changes. The first call arms a timer;
    further calls while it is armed are folded into the same save. close()
    flushes any pending change, so nothing is lost on a clean shutdown.
    """

    def __init__(self, path: Path | str, interval: float, target: LoaderSaver):
        self._path = Path(path)
        self._interval = interval
        self._target = target

        self._lock = threading.Lock()
        # Held for a whole save; taken before _lock, never after.
        self._save_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._dirty = False
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._dirty

    def start(self) -> None:
        """Load the snapshot file into the target, if there is one.

        Raises:
            SnapshotError: If the file exists but cannot be deserialized
        """
        if not self._path.exists():
            log.info(f"No snapshot at {self._path}; starting fresh")
            return
        with self._path.open("r", encoding="utf-8") as f:
            self._target.load(f)
        log.info(f"Loaded snapshot from {self._path}")

    def delay(self) -> None:
        """Note a change and schedule a save if none is pending."""
        with self._lock:
            if self._closed:
                return
            self._dirty = True
            if self._timer is not None:
                return
            self._timer = threading.Timer(self._interval, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        self.save_now()

    def save_now(self) -> bool:
        """Serialize the target and write it to disk.

        Returns:
            True if the file was written. Write failures are logged and
            leave the state marked dirty for the next attempt.
        """
        with self._save_lock:
            return self._save()

    def _save(self) -> bool:
        with self._lock:
            self._dirty = False

        buf = io.StringIO()
        self._target.save(buf)

        try:
            self._write_atomic(buf.getvalue())
        except OSError as e:
            log.error(f"Failed to write snapshot to {self._path}: {e}")
            with self._lock:
                self._dirty = True
            return False

        log.info(f"Saved snapshot to {self._path}")
        return True

    def _write_atomic(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", dir=self._path.parent, delete=False, encoding="utf-8"
        ) as tmp:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_path = Path(tmp.name)

        try:
            temp_path.replace(self._path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def close(self) -> None:
        """Cancel the timer and flush pending changes. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()
        # Blocks until a save the timer already started has finished.
        with self._save_lock:
            if self.dirty:
                self._save()
        log.info("Auto-save stopped")
