from typing import Dict, List, Tuple

from lcms_tracker.data_types import GuardColumnType

# Guard column types offered when none are configured
DEFAULT_GUARD_COLUMN_TYPES: List[GuardColumnType] = [
    GuardColumnType(part_number="Standard Guard", expected_lifetime=1000),
    GuardColumnType(part_number="High Capacity Guard", expected_lifetime=1500),
    GuardColumnType(part_number="Ultra Guard", expected_lifetime=2000),
]

# Typical guard column lifespan in injections
DEFAULT_GUARD_COLUMN_LIFETIME: int = 1000

# Usage percent at which a guard column should be changed soon / is overdue
GUARD_COLUMN_THRESHOLDS: Dict[str, float] = {
    "warning": 80.0,
    "overdue": 100.0,
}

# Usage percent bands for analytical column lifetime
COLUMN_LIFETIME_BANDS: List[Tuple[float, str]] = [
    (90.0, "Critical"),
    (70.0, "Warning"),
    (0.0, "Good"),
]

# Percent A + percent B must add up to this within tolerance
PERCENT_TOTAL: float = 100.0
PERCENT_TOLERANCE: float = 0.5
