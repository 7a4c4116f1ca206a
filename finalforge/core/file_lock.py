"""Single-writer file locks and atomic file replacement.

``IndexLock`` combines a per-path ``threading.RLock`` (threads in this
process) with ``fcntl.flock`` on a sidecar ``.lock`` file (other processes).
It is re-entrant for the owning thread, so a caller holding the lock across
lookup-then-record may call the index's own locked writers.
"""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from finalforge.core.errors import IndexLockTimeoutError

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05


class _PathLockState:
    def __init__(self) -> None:
        self.rlock = threading.RLock()
        self.depth = 0
        self.fd: int | None = None


_states: dict[Path, _PathLockState] = {}
_states_guard = threading.Lock()


def _state_for(path: Path) -> _PathLockState:
    key = path.resolve()
    with _states_guard:
        state = _states.get(key)
        if state is None:
            state = _PathLockState()
            _states[key] = state
        return state


class IndexLock:
    """Exclusive lock on ``lock_path``.

    Parameters
    ----------
    lock_path:
        Sidecar lock file. Its parent directory is created on first acquire.
    timeout:
        Seconds to wait before raising ``IndexLockTimeoutError``.
    """

    def __init__(self, lock_path: Path, timeout: float = 30.0) -> None:
        self._path = Path(lock_path)
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._path

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        state = _state_for(self._path)
        deadline = time.monotonic() + self._timeout

        if not state.rlock.acquire(timeout=self._timeout):
            raise IndexLockTimeoutError(
                f"Timed out after {self._timeout}s waiting for {self._path}"
            )
        if state.depth > 0:
            state.depth += 1
            return

        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    state.rlock.release()
                    raise IndexLockTimeoutError(
                        f"Timed out after {self._timeout}s waiting for {self._path}"
                    ) from None
                time.sleep(_POLL_INTERVAL)

        state.fd = fd
        state.depth = 1
        logger.debug("Acquired index lock %s", self._path)

    def release(self) -> None:
        state = _state_for(self._path)
        state.depth -= 1
        if state.depth == 0 and state.fd is not None:
            fcntl.flock(state.fd, fcntl.LOCK_UN)
            os.close(state.fd)
            state.fd = None
            logger.debug("Released index lock %s", self._path)
        state.rlock.release()

    @contextmanager
    def hold(self) -> Iterator[IndexLock]:
        self.acquire()
        try:
            yield self
        finally:
            self.release()


def atomic_write_text(path: Path, content: str) -> None:
    """Write *content* to *path* so readers see the old or the new file, never half."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp.", dir=path.parent, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Binary counterpart of :func:`atomic_write_text`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)
