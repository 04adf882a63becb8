import json
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from lcms_tracker.batching import format_injection_range  # noqa: E402
from lcms_tracker.data_types import GradientStep, InjectionBatch  # noqa: E402
from lcms_tracker.gradient_utils import (  # noqa: E402
    calculate_solvent_usage,
    expand_gradient,
    normalize_gradient_profile,
)

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "batch_id",
    "injection_range",
    "batch_size",
    "sample_id",
    "injection_date",
    "method",
    "column",
    "status",
    "solvent_a_ml",
    "solvent_b_ml",
    "total_volume_ml",
]


def load_methods(path: str) -> Dict[str, Dict[str, Any]]:
    """
    Load method records from a JSON file, keyed by method id.

    The file holds a list of objects with at least ``id``; ``gradient_steps``
    and ``injection_volume`` are used for solvent estimates when present.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Methods file not found: {path}")

    with open(path) as f:
        try:
            data = json.load(f)
        except ValueError as e:
            raise ValueError(f"Error reading methods file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("methods", [])
    return {str(m["id"]): m for m in data if isinstance(m, dict) and "id" in m}


def batch_report_row(
    batch: InjectionBatch, method: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    row = {
        "batch_id": batch.batch_id,
        "injection_range": format_injection_range(batch),
        "batch_size": batch.actual_batch_size,
        "sample_id": batch.sample_id,
        "injection_date": batch.injection_date,
        "method": batch.method_name or batch.method_id,
        "column": batch.column_name or batch.column_id,
        "status": "Success" if batch.run_successful else "Failed",
        "solvent_a_ml": None,
        "solvent_b_ml": None,
        "total_volume_ml": None,
    }

    profile = normalize_gradient_profile((method or {}).get("gradient_steps"))
    if profile:
        usage = calculate_solvent_usage(
            profile, batch.actual_batch_size, method.get("injection_volume") or 0.0
        )
        row.update(usage.to_dict())
    return row


def batches_to_dataframe(
    batches: Sequence[InjectionBatch], methods: Optional[Dict[str, Dict[str, Any]]] = None
) -> pd.DataFrame:
    """
    Tabulate batches for display or export.

    Solvent columns stay empty for batches whose method has no usable gradient.
    """
    methods = methods or {}
    rows = [batch_report_row(b, methods.get(b.method_id)) for b in batches]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def export_batch_report(
    batches: Sequence[InjectionBatch],
    output_csv: str,
    methods: Optional[Dict[str, Dict[str, Any]]] = None,
) -> pd.DataFrame:
    df = batches_to_dataframe(batches, methods)
    os.makedirs(os.path.dirname(output_csv) or ".", exist_ok=True)
    df.to_csv(output_csv, index=False)
    logger.info(f"Exported {len(df)} batches to {output_csv}")
    return df


def plot_gradient_profile(
    profile: List[GradientStep], output_path: str, title: str = "Gradient Profile"
) -> Optional[str]:
    """
    Save a %B / flow rate plot of a gradient.

    Returns:
        The output path, or None when the profile is empty
    """
    if not profile:
        logger.warning("No gradient data available, skipping gradient plot")
        return None

    expanded = expand_gradient(profile, resolution=0.1)
    times = [t for t, _, _ in expanded]

    fig, ax_b = plt.subplots(figsize=(10, 6))
    ax_b.plot(times, [b for _, b, _ in expanded], "-", color="tab:blue", label="%B")
    ax_b.plot([s.time for s in profile], [s.percent_b for s in profile], "o", color="tab:blue")
    ax_b.set_xlabel("Time (min)")
    ax_b.set_ylabel("%B")
    ax_b.set_ylim(0, 100)
    ax_b.grid(True)

    ax_flow = ax_b.twinx()
    ax_flow.plot(times, [f for _, _, f in expanded], "--", color="tab:orange", label="Flow rate")
    ax_flow.set_ylabel("Flow rate (mL/min)")

    ax_b.set_title(title)
    fig.legend(loc="upper right")

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    fig.savefig(output_path)
    plt.close(fig)
    logger.info(f"Saved gradient plot to {output_path}")
    return output_path
