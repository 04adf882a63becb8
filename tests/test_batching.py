import pytest

from lcms_tracker.batching import (
    aggregate_into_batches,
    create_batch,
    format_injection_range,
    next_injection_number,
    refresh_batch_sizes,
)
from lcms_tracker.data_types import InjectionRecord


def make_record(id, number, batch_id=None, date="2024-03-01T10:00:00", ok=True, **kwargs):
    return InjectionRecord(
        id=id,
        injection_number=number,
        method_id=kwargs.pop("method_id", "m1"),
        column_id=kwargs.pop("column_id", "c1"),
        batch_id=batch_id,
        injection_date=date,
        run_successful=ok,
        **kwargs,
    )


@pytest.fixture
def records():
    # Newest first, the way the injection history is queried
    return [
        make_record("r4", 4, "B2", date="2024-03-02T09:00:00"),
        make_record("r3", 3, "B1"),
        make_record("r2", 2, "B1"),
        make_record("r1", 1, "B1"),
    ]


def test_aggregate_groups_by_batch_id(records):
    batches = aggregate_into_batches(records)

    assert len(batches) == 2
    b1 = next(b for b in batches if b.batch_id == "B1")
    assert b1.actual_batch_size == 3
    assert (b1.min_injection_number, b1.max_injection_number) == (1, 3)
    assert [r.id for r in b1.injections] == ["r3", "r2", "r1"]


def test_aggregate_sorts_newest_first(records):
    batches = aggregate_into_batches(list(reversed(records)))

    assert [b.batch_id for b in batches] == ["B2", "B1"]


def test_aggregate_missing_batch_id_is_singleton():
    batches = aggregate_into_batches(
        [make_record("r9", 9, None), make_record("r10", 10, None), make_record("r1", 1, "B1")]
    )

    singleton = next(b for b in batches if b.batch_id == "r9")
    assert singleton.actual_batch_size == 1
    assert singleton.min_injection_number == singleton.max_injection_number == 9
    assert len(batches) == 3, "Unbatched records must not be merged together"


def test_actual_batch_size_ignores_stale_stored_size():
    recs = [make_record(f"r{i}", i, "B1", batch_size=5) for i in (1, 2)]
    (batch,) = aggregate_into_batches(recs)

    assert batch.actual_batch_size == 2
    assert batch.actual_batch_size == len(batch.injections)


def test_success_policy_all_requires_every_member():
    recs = [make_record("r1", 1, "B1", ok=False), make_record("r2", 2, "B1", ok=True)]

    (batch,) = aggregate_into_batches(recs)
    assert batch.run_successful is False


def test_success_policy_latest_uses_last_member_seen():
    recs = [make_record("r1", 1, "B1", ok=False), make_record("r2", 2, "B1", ok=True)]

    (batch,) = aggregate_into_batches(recs, success_policy="latest")
    assert batch.run_successful is True


def test_unknown_success_policy_raises(records):
    with pytest.raises(ValueError):
        aggregate_into_batches(records, success_policy="majority")


def test_aggregate_accepts_raw_rows():
    rows = [
        {
            "id": "a",
            "injection_number": 7,
            "method_id": "m1",
            "column_id": "c1",
            "batch_id": "B7",
            "injection_date": "2024-01-05T08:00:00Z",
            "run_successful": True,
            "methods": {"name": "Lipids RP"},
            "columns": {"name": "C18 2.1x100"},
        }
    ]
    (batch,) = aggregate_into_batches(rows)

    assert batch.method_name == "Lipids RP"
    assert batch.column_name == "C18 2.1x100"


def test_aggregate_undated_batches_sort_last():
    recs = [make_record("r1", 1, "B1", date=None), make_record("r2", 2, "B2")]
    batches = aggregate_into_batches(recs)

    assert [b.batch_id for b in batches] == ["B2", "B1"]


def test_aggregate_empty():
    assert aggregate_into_batches([]) == []


def test_format_injection_range(records):
    batches = {b.batch_id: b for b in aggregate_into_batches(records)}

    assert format_injection_range(batches["B1"]) == "#1-3"
    assert format_injection_range(batches["B2"]) == "#4"


def test_next_injection_number_per_column(records):
    recs = records + [make_record("x1", 40, "B9", column_id="c2")]

    assert next_injection_number(recs, "c1") == 5
    assert next_injection_number(recs, "c2") == 41
    assert next_injection_number(recs, "c3") == 1


def test_create_batch_numbers_sequentially(records):
    new = create_batch(records, "m1", "c1", 3, sample_id="QC-01", injection_date="2024-03-03")

    assert [r.injection_number for r in new] == [5, 6, 7]
    assert len({r.batch_id for r in new}) == 1
    assert len({r.id for r in new}) == 3
    assert all(r.batch_size == 3 and r.sample_id == "QC-01" for r in new)


def test_create_batch_rejects_empty_batch(records):
    with pytest.raises(ValueError):
        create_batch(records, "m1", "c1", 0)


def test_refresh_batch_sizes_after_delete():
    recs = [make_record(f"r{i}", i, "B1", batch_size=4) for i in (1, 2, 4)]
    recs.append(make_record("solo", 9, None, batch_size=None))

    refreshed = refresh_batch_sizes(recs)

    assert [r.batch_size for r in refreshed if r.batch_id == "B1"] == [3, 3, 3]
    assert refreshed[-1].batch_size is None
    assert recs[0].batch_size == 4, "Input records are not modified"


def test_newest_member_represents_batch_regardless_of_order():
    recs = [
        make_record("a1", 1, "B1", date="2024-03-01T10:00:00", sample_id="S-old"),
        make_record("b1", 3, "B2", date="2024-03-03T10:00:00"),
        make_record("a2", 2, "B1", date="2024-03-05T10:00:00", sample_id="S-new"),
    ]

    ascending = aggregate_into_batches(recs)
    descending = aggregate_into_batches(list(reversed(recs)))

    assert [b.batch_id for b in ascending] == ["B1", "B2"]
    assert [b.batch_id for b in descending] == ["B1", "B2"]
    b1 = ascending[0]
    assert b1.injection_date == "2024-03-05T10:00:00"
    assert b1.sample_id == "S-new"
