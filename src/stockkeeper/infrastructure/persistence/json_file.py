"""JSON list file shared by the JSON-backed repositories.

Every CLI call is its own process, so the file is guarded by two locks: a
thread lock for callers inside this process and a ``filelock`` on a
sidecar ``<name>.lock`` file for callers in other processes.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from stockkeeper.domain.exceptions import PersistenceError

LOCK_TIMEOUT_SECONDS = 10.0


class JsonFile:
    """A JSON array on disk.

    ``locked()`` must be held around any read-modify-write sequence; the
    individual ``load``/``persist`` calls translate I/O and decode errors
    into PersistenceError.
    """

    def __init__(self, file_path: Path, timeout: float = LOCK_TIMEOUT_SECONDS) -> None:
        self.path = file_path
        self.lock_path = file_path.with_name(file_path.name + ".lock")
        self._thread_lock = threading.RLock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create {self.path.parent}: {exc}") from exc
        self._process_lock = FileLock(str(self.lock_path), timeout=timeout)
        self._ensure_file()

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the file exclusively, against threads and other processes.

        Reentrant: a holder may call ``locked()`` again.
        """
        with self._thread_lock:
            try:
                self._process_lock.acquire()
            except Timeout as exc:
                raise PersistenceError(
                    f"Timed out waiting for {self.lock_path.name}"
                ) from exc
            try:
                yield
            finally:
                self._process_lock.release()

    def load(self) -> list[dict]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {self.path.name}: {exc}") from exc

    def persist(self, records: list[dict]) -> None:
        # write-then-rename so a crash never leaves a half-written file
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=self.path.name + ".",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(json.dumps(records, indent=2) + "\n")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"Cannot write {self.path.name}: {exc}") from exc

    def _ensure_file(self) -> None:
        with self.locked():
            if not self.path.exists():
                self.persist([])
