import logging
import os
from pathlib import Path
from typing import List, Optional

import pandas as pd

from lcms_tracker.batching import aggregate_into_batches, create_batch, refresh_batch_sizes
from lcms_tracker.data_types import InjectionBatch, InjectionRecord
from lcms_tracker.lock_manager import LockManager

logger = logging.getLogger(__name__)

LOG_COLUMNS = list(InjectionRecord.__dataclass_fields__)

# Read back as text so ids like "007" keep their leading zeros
TEXT_COLUMNS = [
    "id",
    "method_id",
    "column_id",
    "batch_id",
    "sample_id",
    "injection_date",
    "method_name",
    "column_name",
    "notes",
]


class InjectionNotFoundError(LookupError):
    pass


class InjectionLog:
    """
    CSV-backed injection history for a single lab notebook.

    Every write happens under a file lock so that two CLI invocations cannot
    interleave a read-modify-write of the same log.
    """

    def __init__(self, path: str, lock_dir: Optional[str] = None, lock_timeout_sec: float = 0.0):
        self.path = Path(path)
        if lock_dir is None:
            lock_dir = os.path.join(os.path.dirname(os.path.abspath(path)), "locks")
        self.lock = LockManager(self.path.stem, lock_dir=lock_dir, timeout_sec=lock_timeout_sec)

    def load(self) -> List[InjectionRecord]:
        if not self.path.exists():
            return []
        df = pd.read_csv(self.path, dtype={c: str for c in TEXT_COLUMNS})
        return [InjectionRecord.from_dict(row) for row in df.to_dict(orient="records")]

    def _write(self, records: List[InjectionRecord]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        df = pd.DataFrame([r.to_dict() for r in records], columns=LOG_COLUMNS)
        df.to_csv(self.path, index=False)

    def add_batch(
        self,
        method_id: str,
        column_id: str,
        batch_size: int,
        **fields,
    ) -> List[InjectionRecord]:
        """Append a new batch, numbered after the column's last injection."""
        with self.lock.acquire():
            records = self.load()
            new_records = create_batch(records, method_id, column_id, batch_size, **fields)
            self._write(records + new_records)
        return new_records

    def delete_injection(self, injection_id: str) -> InjectionRecord:
        """
        Remove one injection and recount the batch it belonged to.

        Raises:
            InjectionNotFoundError: If no record has this id
        """
        with self.lock.acquire():
            records = self.load()
            match = next((r for r in records if r.id == injection_id), None)
            if match is None:
                raise InjectionNotFoundError(f"No injection with id '{injection_id}' in {self.path}")

            remaining = refresh_batch_sizes(r for r in records if r.id != injection_id)
            self._write(remaining)

        logger.info(
            f"Deleted injection #{match.injection_number} ({injection_id}) from batch {match.batch_id}"
        )
        return match

    def batches(self, success_policy: str = "all") -> List[InjectionBatch]:
        return aggregate_into_batches(self.load(), success_policy=success_policy)
