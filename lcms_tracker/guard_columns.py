"""
Guard column and analytical column lifetime tracking.

Expected lifetimes are always passed in by the caller; see
``lcms_tracker.config`` for the defaults.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from lcms_tracker.config import (
    COLUMN_LIFETIME_BANDS,
    DEFAULT_GUARD_COLUMN_LIFETIME,
    GUARD_COLUMN_THRESHOLDS,
)
from lcms_tracker.data_types import GuardColumn, GuardColumnType

STATUS_LABELS: Dict[str, str] = {
    "overdue": "Change Overdue",
    "warning": "Change Soon",
    "good": "Good",
    "none": "No Guard Column",
}


@dataclass
class GuardColumnStatus:
    status: str  # none, good, warning or overdue
    guard_column: Optional[GuardColumn] = None
    injections_since_install: Optional[int] = None
    injections_remaining: Optional[int] = None
    usage_percent: Optional[float] = None

    @property
    def label(self) -> str:
        return STATUS_LABELS.get(self.status, "Unknown")


@dataclass
class ColumnLifetimeUsage:
    total_injections: int
    estimated_lifetime_injections: int
    usage_percent: float
    status: str  # Good, Warning or Critical


def guard_columns_from_rows(rows: Iterable[Dict[str, object]]) -> List[GuardColumn]:
    """Build guard column records from raw rows, oldest installation first."""
    fields = GuardColumn.__dataclass_fields__
    guard_columns = [GuardColumn(**{k: v for k, v in row.items() if k in fields}) for row in rows]
    return sorted(guard_columns, key=lambda gc: gc.installed_date or "")


def current_guard_column(guard_columns: Iterable[GuardColumn]) -> Optional[GuardColumn]:
    """The first guard column (in installation order) that has not been removed."""
    return next((gc for gc in guard_columns if gc.is_installed), None)


def lookup_expected_lifetime(
    part_number: Optional[str],
    guard_column_types: Sequence[GuardColumnType],
    default: int = DEFAULT_GUARD_COLUMN_LIFETIME,
) -> int:
    for gc_type in guard_column_types:
        if gc_type.part_number == part_number:
            return gc_type.expected_lifetime
    return default


def guard_column_status(
    guard_columns: Iterable[GuardColumn],
    total_injections: int,
    expected_lifetime: int = DEFAULT_GUARD_COLUMN_LIFETIME,
) -> GuardColumnStatus:
    """
    Work out whether the installed guard column on a column is due for a change.

    Args:
        guard_columns: Guard column history for one column, oldest first
        total_injections: Injections run on the analytical column so far
        expected_lifetime: Injections a guard column is expected to last

    Returns:
        GuardColumnStatus; status is "none" when no guard column is installed
    """
    current = current_guard_column(guard_columns)
    if current is None:
        return GuardColumnStatus(status="none")

    since_install = total_injections - (current.installation_injection_count or 0)
    if expected_lifetime > 0:
        usage_percent = since_install * 100 / expected_lifetime
    else:
        usage_percent = float("inf")

    if usage_percent >= GUARD_COLUMN_THRESHOLDS["overdue"]:
        status = "overdue"
    elif usage_percent >= GUARD_COLUMN_THRESHOLDS["warning"]:
        status = "warning"
    else:
        status = "good"

    return GuardColumnStatus(
        status=status,
        guard_column=current,
        injections_since_install=since_install,
        injections_remaining=max(0, expected_lifetime - since_install),
        usage_percent=usage_percent,
    )


def guard_column_timeline(
    guard_columns: Iterable[GuardColumn], total_injections: int
) -> List[Dict[str, object]]:
    """Injections run on each guard column, for the change history view."""
    timeline = []
    for gc in guard_columns:
        installed_at = gc.installation_injection_count or 0
        if gc.removal_injection_count is not None:
            count = gc.removal_injection_count - installed_at
        else:
            count = total_injections - installed_at
        timeline.append(
            {
                "id": gc.id,
                "part_number": gc.part_number,
                "installed_date": gc.installed_date,
                "removed_date": gc.removed_date,
                "installation_injection_count": gc.installation_injection_count,
                "removal_injection_count": gc.removal_injection_count,
                "injection_count": max(0, count),
                "active": gc.is_installed,
            }
        )
    return timeline


def column_lifetime_usage(
    total_injections: int, estimated_lifetime_injections: int
) -> ColumnLifetimeUsage:
    """Share of an analytical column's estimated lifetime already used."""
    if estimated_lifetime_injections > 0:
        usage_percent = total_injections * 100 / estimated_lifetime_injections
    else:
        usage_percent = 0.0

    status = "Good"
    for threshold, band in COLUMN_LIFETIME_BANDS:
        if usage_percent >= threshold:
            status = band
            break

    return ColumnLifetimeUsage(
        total_injections=total_injections,
        estimated_lifetime_injections=estimated_lifetime_injections,
        usage_percent=usage_percent,
        status=status,
    )
