import pytest

from lcms_tracker.config import DEFAULT_GUARD_COLUMN_TYPES
from lcms_tracker.data_types import GuardColumn
from lcms_tracker.guard_columns import (
    column_lifetime_usage,
    current_guard_column,
    guard_column_status,
    guard_column_timeline,
    guard_columns_from_rows,
    lookup_expected_lifetime,
)


@pytest.fixture
def history():
    return [
        GuardColumn(
            id="g1",
            column_id="c1",
            installed_date="2024-01-01",
            installation_injection_count=0,
            removed_date="2024-02-01",
            removal_injection_count=950,
            part_number="Standard Guard",
        ),
        GuardColumn(
            id="g2",
            column_id="c1",
            installed_date="2024-02-01",
            installation_injection_count=950,
            part_number="Ultra Guard",
        ),
    ]


def test_current_guard_column(history):
    assert current_guard_column(history).id == "g2"
    assert current_guard_column(history[:1]) is None


def test_status_none_without_installed_guard(history):
    status = guard_column_status(history[:1], total_injections=1200)

    assert status.status == "none"
    assert status.label == "No Guard Column"
    assert status.injections_remaining is None


@pytest.mark.parametrize(
    "total, expected_status, remaining",
    [
        (950, "good", 1000),
        (1500, "good", 450),
        (1750, "warning", 200),
        (1950, "overdue", 0),
        (2500, "overdue", 0),
    ],
)
def test_status_thresholds(history, total, expected_status, remaining):
    status = guard_column_status(history, total_injections=total, expected_lifetime=1000)

    assert status.status == expected_status
    assert status.injections_remaining == remaining
    assert status.guard_column.id == "g2"


def test_status_uses_configured_lifetime(history):
    lifetime = lookup_expected_lifetime("Ultra Guard", DEFAULT_GUARD_COLUMN_TYPES)
    status = guard_column_status(history, total_injections=1950, expected_lifetime=lifetime)

    assert lifetime == 2000
    assert status.status == "good"
    assert status.injections_remaining == 1000


def test_lookup_expected_lifetime_falls_back_to_default():
    assert lookup_expected_lifetime("Unknown Guard", DEFAULT_GUARD_COLUMN_TYPES) == 1000
    assert lookup_expected_lifetime(None, [], default=750) == 750


def test_timeline_counts(history):
    timeline = guard_column_timeline(history, total_injections=1300)

    assert [t["injection_count"] for t in timeline] == [950, 350]
    assert [t["active"] for t in timeline] == [False, True]


def test_guard_columns_from_rows_sorts_and_ignores_extra_fields():
    rows = [
        {"id": "b", "column_id": "c1", "installed_date": "2024-05-01", "user_id": "u1"},
        {"id": "a", "column_id": "c1", "installed_date": "2024-01-01", "removed_date": "2024-05-01"},
    ]
    guard_columns = guard_columns_from_rows(rows)

    assert [gc.id for gc in guard_columns] == ["a", "b"]
    assert current_guard_column(guard_columns).id == "b"


@pytest.mark.parametrize(
    "total, expected",
    [(0, "Good"), (699, "Good"), (700, "Warning"), (899, "Warning"), (900, "Critical")],
)
def test_column_lifetime_bands(total, expected):
    usage = column_lifetime_usage(total, 1000)

    assert usage.status == expected
    assert usage.usage_percent == pytest.approx(total / 10)


def test_column_lifetime_without_estimate():
    usage = column_lifetime_usage(500, 0)
    assert usage.usage_percent == 0.0
    assert usage.status == "Good"
