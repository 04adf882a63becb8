"""
Common data types for LC-MS method tracking.

This module contains the data structures shared across the tracker modules
to avoid circular imports.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class GradientStep:
    """One validated point on a gradient curve."""

    time: float  # min
    percent_a: float
    percent_b: float
    flow_rate: float  # mL/min

    def to_dict(self) -> Dict[str, float]:
        return {
            "time": self.time,
            "percent_a": self.percent_a,
            "percent_b": self.percent_b,
            "flow_rate": self.flow_rate,
        }


@dataclass(frozen=True)
class SolventUsage:
    """Estimated mobile-phase consumption for a batch, in mL."""

    solvent_a_ml: float = 0.0
    solvent_b_ml: float = 0.0
    total_volume_ml: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "solvent_a_ml": self.solvent_a_ml,
            "solvent_b_ml": self.solvent_b_ml,
            "total_volume_ml": self.total_volume_ml,
        }


@dataclass
class InjectionRecord:
    """A single injection row as stored by the persistence layer."""

    id: str
    injection_number: int
    method_id: str
    column_id: str
    batch_id: Optional[str] = None
    batch_size: Optional[int] = None  # Stored size, can go stale after deletes
    sample_id: Optional[str] = None
    injection_date: Optional[str] = None  # ISO 8601
    run_successful: Optional[bool] = True
    method_name: Optional[str] = None
    column_name: Optional[str] = None
    notes: Optional[str] = None
    pressure_reading: Optional[float] = None
    temperature_reading: Optional[float] = None

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "InjectionRecord":
        """Build a record from a raw row, tolerating missing optional fields.

        Joined display names may arrive either flat (``method_name``) or nested
        the way the backend returns them (``methods: {"name": ...}``).
        """
        method_name = row.get("method_name")
        if method_name is None and isinstance(row.get("methods"), dict):
            method_name = row["methods"].get("name")
        column_name = row.get("column_name")
        if column_name is None and isinstance(row.get("columns"), dict):
            column_name = row["columns"].get("name")

        return cls(
            id=str(row["id"]),
            injection_number=int(row["injection_number"]),
            method_id=str(row["method_id"]),
            column_id=str(row["column_id"]),
            batch_id=_optional_str(row.get("batch_id")),
            batch_size=_optional_int(row.get("batch_size")),
            sample_id=_optional_str(row.get("sample_id")),
            injection_date=_optional_str(row.get("injection_date")),
            run_successful=_optional_bool(row.get("run_successful")),
            method_name=_optional_str(method_name),
            column_name=_optional_str(column_name),
            notes=_optional_str(row.get("notes")),
            pressure_reading=_optional_float(row.get("pressure_reading")),
            temperature_reading=_optional_float(row.get("temperature_reading")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "injection_number": self.injection_number,
            "method_id": self.method_id,
            "column_id": self.column_id,
            "batch_id": self.batch_id,
            "batch_size": self.batch_size,
            "sample_id": self.sample_id,
            "injection_date": self.injection_date,
            "run_successful": self.run_successful,
            "method_name": self.method_name,
            "column_name": self.column_name,
            "notes": self.notes,
            "pressure_reading": self.pressure_reading,
            "temperature_reading": self.temperature_reading,
        }


@dataclass
class InjectionBatch:
    """All surviving injection records that share one batch id."""

    batch_id: str
    sample_id: Optional[str]
    injection_date: Optional[str]  # Representative date (newest member)
    method_id: str
    column_id: str
    method_name: Optional[str]
    column_name: Optional[str]
    min_injection_number: int
    max_injection_number: int
    run_successful: bool
    injections: List[InjectionRecord] = field(default_factory=list)

    @property
    def actual_batch_size(self) -> int:
        # Counted from the members, never from the stored batch_size field
        return len(self.injections)


@dataclass
class GuardColumn:
    """Installation record for a guard column on an analytical column."""

    id: str
    column_id: str
    installed_date: Optional[str] = None
    installation_injection_count: int = 0
    removed_date: Optional[str] = None
    removal_injection_count: Optional[int] = None
    part_number: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_installed(self) -> bool:
        return not self.removed_date


@dataclass(frozen=True)
class GuardColumnType:
    part_number: str
    expected_lifetime: int  # injections


def _is_missing(value: Any) -> bool:
    # pandas hands back NaN for empty CSV cells
    return value is None or (isinstance(value, float) and value != value) or value == ""


def _optional_str(value: Any) -> Optional[str]:
    return None if _is_missing(value) else str(value)


def _optional_int(value: Any) -> Optional[int]:
    return None if _is_missing(value) else int(value)


def _optional_float(value: Any) -> Optional[float]:
    return None if _is_missing(value) else float(value)


def _optional_bool(value: Any) -> Optional[bool]:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
