import getpass
import json
import os
import time
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout


class LockAcquisitionError(Exception):
    pass


class LockManager:
    """Exclusive file lock around one injection log, with holder metadata."""

    def __init__(self, log_name: str, lock_dir: str = "lcms_data/locks", timeout_sec: float = 0.0):
        self.log_name = log_name
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        self.lock_path = self.lock_dir / f"{log_name}.lock"
        self.meta_path = self.lock_dir / f"{log_name}.lockmeta.json"
        self.timeout_sec = timeout_sec
        self._lock = FileLock(self.lock_path)

    def _write_metadata(self):
        metadata = {
            "pid": os.getpid(),
            "user": _current_user(),
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
            "log": self.log_name,
        }
        with open(self.meta_path, "w") as f:
            json.dump(metadata, f)

    def _delete_metadata(self):
        if self.meta_path.exists():
            self.meta_path.unlink()

    def read_metadata(self):
        if self.meta_path.exists():
            with open(self.meta_path) as f:
                return json.load(f)
        return None

    @contextmanager
    def acquire(self):
        try:
            self._lock.acquire(timeout=self.timeout_sec)
        except Timeout as err:
            meta = self.read_metadata()
            who = f"{meta['user']} (PID {meta['pid']})" if meta else "another process"
            raise LockAcquisitionError(f"Injection log '{self.log_name}' is locked by {who}.") from err

        try:
            self._write_metadata()
            yield
        finally:
            # Metadata goes first so the next holder's file is never removed
            self._delete_metadata()
            self._lock.release()


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
