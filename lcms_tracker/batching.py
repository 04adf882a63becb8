"""
Injection batch aggregation and bookkeeping.

Injections created together share a batch id. The functions here group flat
injection rows back into batches for display and export, hand out injection
numbers for new batches, and keep the stored batch size of each record in
step with the records that actually survive.
"""

import logging
import uuid
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from lcms_tracker.data_types import InjectionBatch, InjectionRecord

logger = logging.getLogger(__name__)

SUCCESS_POLICIES = ("all", "latest")

RecordLike = Union[InjectionRecord, Dict[str, Any]]


def _as_record(record: RecordLike) -> InjectionRecord:
    if isinstance(record, InjectionRecord):
        return record
    return InjectionRecord.from_dict(record)


def _batch_key(record: InjectionRecord, index: int) -> str:
    if record.batch_id:
        return record.batch_id
    # Records without a batch id stand alone instead of being dropped or merged
    return record.id or f"injection-{index}"


def aggregate_into_batches(
    records: Iterable[RecordLike], success_policy: str = "all"
) -> List[InjectionBatch]:
    """
    Group injection records that share a batch id into one batch each.

    Args:
        records: Injection records (or raw rows), usually newest first
        success_policy: "all" marks a batch successful only if every member
            succeeded; "latest" takes the flag of the last member encountered

    Returns:
        Batches sorted by representative injection date, newest first.
        Undated batches come last.
    """
    if success_policy not in SUCCESS_POLICIES:
        raise ValueError(
            f"Unknown success policy '{success_policy}'. Expected one of {SUCCESS_POLICIES}"
        )

    batches: Dict[str, InjectionBatch] = {}
    for index, raw in enumerate(records):
        record = _as_record(raw)
        succeeded = bool(record.run_successful)
        key = _batch_key(record, index)

        batch = batches.get(key)
        if batch is None:
            batches[key] = InjectionBatch(
                batch_id=key,
                sample_id=record.sample_id,
                injection_date=record.injection_date,
                method_id=record.method_id,
                column_id=record.column_id,
                method_name=record.method_name,
                column_name=record.column_name,
                min_injection_number=record.injection_number,
                max_injection_number=record.injection_number,
                run_successful=succeeded,
                injections=[record],
            )
            continue

        batch.injections.append(record)
        batch.min_injection_number = min(batch.min_injection_number, record.injection_number)
        batch.max_injection_number = max(batch.max_injection_number, record.injection_number)
        if success_policy == "all":
            batch.run_successful = batch.run_successful and succeeded
        else:
            batch.run_successful = succeeded

        if _is_newer(record.injection_date, batch.injection_date):
            # The newest member represents the batch whatever the input order
            batch.injection_date = record.injection_date
            batch.sample_id = record.sample_id
            batch.method_name = record.method_name or batch.method_name
            batch.column_name = record.column_name or batch.column_name

    result = list(batches.values())
    # Undated batches sort as datetime.min, i.e. last
    result.sort(key=lambda b: _parse_date(b.injection_date) or datetime.min, reverse=True)
    return result


def _is_newer(candidate: Optional[str], current: Optional[str]) -> bool:
    candidate_date = _parse_date(candidate)
    if candidate_date is None:
        return False
    current_date = _parse_date(current)
    return current_date is None or candidate_date > current_date


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable injection date '{value}'")
        return None
    # Compare everything as naive timestamps
    return parsed.replace(tzinfo=None)


def format_injection_range(batch: InjectionBatch) -> str:
    if batch.min_injection_number == batch.max_injection_number:
        return f"#{batch.min_injection_number}"
    return f"#{batch.min_injection_number}-{batch.max_injection_number}"


def next_injection_number(records: Iterable[RecordLike], column_id: str) -> int:
    """Next free injection number in a column's numbering sequence."""
    numbers = [
        rec.injection_number for rec in map(_as_record, records) if rec.column_id == column_id
    ]
    return max(numbers, default=0) + 1


def create_batch(
    existing: Iterable[RecordLike],
    method_id: str,
    column_id: str,
    batch_size: int,
    sample_id: Optional[str] = None,
    injection_date: Optional[str] = None,
    run_successful: bool = True,
    notes: Optional[str] = None,
    method_name: Optional[str] = None,
    column_name: Optional[str] = None,
) -> List[InjectionRecord]:
    """
    Build the records for a new batch of sequentially numbered injections.

    Numbering continues from the highest injection number already used on the
    column. All new records share a freshly generated batch id.
    """
    if batch_size < 1:
        raise ValueError(f"Batch size must be at least 1, got {batch_size}")

    start = next_injection_number(existing, column_id)
    batch_id = str(uuid.uuid4())
    if injection_date is None:
        injection_date = datetime.now().isoformat(timespec="seconds")

    records = [
        InjectionRecord(
            id=str(uuid.uuid4()),
            injection_number=start + offset,
            method_id=method_id,
            column_id=column_id,
            batch_id=batch_id,
            batch_size=batch_size,
            sample_id=sample_id,
            injection_date=injection_date,
            run_successful=run_successful,
            method_name=method_name,
            column_name=column_name,
            notes=notes,
        )
        for offset in range(batch_size)
    ]
    logger.info(
        f"Created batch {batch_id} with injections #{start}-{start + batch_size - 1} "
        f"on column {column_id}"
    )
    return records


def refresh_batch_sizes(records: Iterable[RecordLike]) -> List[InjectionRecord]:
    """
    Recount every batch and rewrite the stored batch size on its members.

    Records without a batch id are left untouched.
    """
    records = [_as_record(r) for r in records]
    counts = Counter(r.batch_id for r in records if r.batch_id)

    refreshed = []
    for record in records:
        if record.batch_id and record.batch_size != counts[record.batch_id]:
            record = replace(record, batch_size=counts[record.batch_id])
        refreshed.append(record)
    return refreshed
