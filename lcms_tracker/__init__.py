"""
LC-MS method tracking package.

This package provides gradient validation, solvent usage estimates,
injection batch bookkeeping and column lifetime tracking for LC-MS
method development.
"""

from .batching import aggregate_into_batches, create_batch, refresh_batch_sizes
from .data_types import (
    GradientStep,
    GuardColumn,
    GuardColumnType,
    InjectionBatch,
    InjectionRecord,
    SolventUsage,
)
from .gradient_utils import calculate_solvent_usage, normalize_gradient_profile
from .guard_columns import column_lifetime_usage, guard_column_status

__all__ = [
    "GradientStep",
    "GuardColumn",
    "GuardColumnType",
    "InjectionBatch",
    "InjectionRecord",
    "SolventUsage",
    "aggregate_into_batches",
    "calculate_solvent_usage",
    "column_lifetime_usage",
    "create_batch",
    "guard_column_status",
    "normalize_gradient_profile",
    "refresh_batch_sizes",
]
