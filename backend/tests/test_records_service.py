"""
Tests for the satellite record data-access layer
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from app.models.satellite_record import SatelliteRecord
from app.services.cache import TTLQueryCache
from app.services.normalization import RecordRow, normalize_row
from app.services.records import (
    EmptyTableError,
    QueryOptions,
    RecordNotFoundError,
    batch_upsert_records,
    build_record_filters,
    categorize_result,
    clear_records,
    count_records,
    delete_record,
    get_chart_data,
    get_record,
    get_records,
    get_stats,
    success_rate,
    update_existing_records,
    update_record,
)


def make_row(plan_id, start, result="正常", **extra):
    return RecordRow(plan_id=plan_id, start_time=start, task_result=result, **extra)


@pytest.fixture
def seeded(db_session):
    rows = [
        make_row("P1", datetime(2024, 1, 1, 8), "正常", customer="A", satellite_name="SAT-1"),
        make_row("P2", datetime(2024, 1, 2, 8), "未跟踪", customer="A", satellite_name="SAT-2"),
        make_row("P3", datetime(2024, 1, 3, 8), "正常", customer="B", satellite_name="SAT-1"),
        make_row("P4", datetime(2024, 1, 4, 8), "因设备故障失败", customer="B", satellite_name="SAT-3"),
        make_row("P5", datetime(2024, 1, 5, 8), "其他", customer="C", satellite_name="SAT-1"),
    ]
    assert batch_upsert_records(db_session, rows) == 5
    return rows


def test_reimport_updates_instead_of_duplicating(db_session):
    batch = [
        normalize_row({"plan_id": "P1", "start_time": "2024-01-01 08:00:00", "task_result": "正常"}),
        normalize_row({"plan_id": "P1", "start_time": "2024-01-02 09:00:00", "task_result": "失败"}),
    ]
    assert batch_upsert_records(db_session, batch) == 2

    assert count_records(db_session) == 1
    record = get_record(db_session, "P1")
    assert record["task_result"] == "失败"
    assert record["start_time"] == datetime(2024, 1, 2, 9, 0, 0)


def test_conflict_keeps_created_at(db_session):
    batch_upsert_records(db_session, [make_row("P1", datetime(2024, 1, 1), customer="old")])
    first = get_record(db_session, "P1")

    batch_upsert_records(db_session, [make_row("P1", datetime(2024, 1, 1), customer="new")])
    db_session.expire_all()
    second = get_record(db_session, "P1")

    assert second["customer"] == "new"
    assert second["created_at"] == first["created_at"]
    assert second["updated_at"] >= first["updated_at"]


def test_failed_row_is_skipped_and_rest_committed(db_session):
    rows = [
        make_row("P1", datetime(2024, 1, 1)),
        make_row("P2", None),
        make_row("P3", datetime(2024, 1, 3)),
    ]
    assert batch_upsert_records(db_session, rows) == 2
    assert count_records(db_session) == 2
    with pytest.raises(RecordNotFoundError):
        get_record(db_session, "P2")


def test_structural_error_rolls_back_whole_batch(db_session, monkeypatch):
    real_execute = db_session.execute
    calls = {"n": 0}

    def flaky_execute(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("INSERT", {}, Exception("connection lost"))
        return real_execute(*args, **kwargs)

    monkeypatch.setattr(db_session, "execute", flaky_execute)
    rows = [make_row("P1", datetime(2024, 1, 1)), make_row("P2", datetime(2024, 1, 2))]
    with pytest.raises(OperationalError):
        batch_upsert_records(db_session, rows)

    monkeypatch.undo()
    assert count_records(db_session) == 0


def test_replace_empties_table_first(db_session, seeded):
    assert batch_upsert_records(db_session, [make_row("N1", datetime(2024, 2, 1))], replace=True) == 1
    assert count_records(db_session) == 1
    assert get_record(db_session, "N1")["plan_id"] == "N1"


def test_update_mode_only_touches_existing_rows(db_session, seeded):
    rows = [make_row("P1", datetime(2024, 6, 1), "未跟踪"), make_row("NEW", datetime(2024, 6, 1))]
    assert update_existing_records(db_session, rows) == 1
    assert get_record(db_session, "P1")["task_result"] == "未跟踪"
    assert count_records(db_session) == 5


def test_filters_are_built_in_fixed_order():
    options = QueryOptions(
        task_type="测控", customer="A", plan_id="P1",
        end_date=datetime(2024, 2, 1), start_date=datetime(2024, 1, 1),
        station_id="S1", task_result="正常", satellite_name="SAT", station_name="站",
    )
    keys = [condition.left.key for condition in build_record_filters(options)]
    assert keys == [
        "start_time", "start_time", "task_result", "plan_id", "customer",
        "satellite_name", "station_name", "station_id", "task_type",
    ]
    assert build_record_filters(QueryOptions(customer="")) == []


def test_records_newest_first_with_pagination(db_session, seeded):
    page = get_records(db_session, QueryOptions(page=1, limit=2))
    assert [r["plan_id"] for r in page.records] == ["P5", "P4"]
    assert page.total == 5
    assert page.total_pages == 3

    last = get_records(db_session, QueryOptions(page=3, limit=2))
    assert [r["plan_id"] for r in last.records] == ["P1"]


def test_unbounded_limit_returns_everything(db_session, seeded):
    page = get_records(db_session, QueryOptions())
    assert len(page.records) == 5
    assert page.limit is None
    assert page.total_pages == 1
    assert get_records(db_session, QueryOptions(page=2)).records == []


def test_equality_filter_matches_only_that_value(db_session, seeded):
    page = get_records(db_session, QueryOptions(task_result="正常"))
    assert page.total == 2
    assert all(r["task_result"] == "正常" for r in page.records)

    page = get_records(db_session, QueryOptions(customer="B", satellite_name="SAT-1"))
    assert [r["plan_id"] for r in page.records] == ["P3"]


def test_time_range_is_inclusive(db_session, seeded):
    page = get_records(db_session, QueryOptions(start_date=datetime(2024, 1, 2, 8), end_date=datetime(2024, 1, 4, 8)))
    assert sorted(r["plan_id"] for r in page.records) == ["P2", "P3", "P4"]


def test_cache_hit_skips_the_database(db_session, seeded, monkeypatch):
    cache = TTLQueryCache()
    options = QueryOptions(page=1, limit=10)
    first = get_records(db_session, options, cache=cache)

    def no_queries(*args, **kwargs):
        raise AssertionError("query executed on cache hit")

    monkeypatch.setattr(db_session, "query", no_queries)
    assert get_records(db_session, options, cache=cache) == first


def test_cached_page_is_not_shared_with_callers(db_session, seeded):
    cache = TTLQueryCache()
    options = QueryOptions(page=1, limit=10)
    first = get_records(db_session, options, cache=cache)
    first.records[0]["task_result"] = "changed"
    first.records.clear()

    again = get_records(db_session, options, cache=cache)
    assert len(again.records) == 5
    assert again.records[0]["task_result"] == "其他"


def test_writes_clear_the_cache(db_session, seeded):
    cache = TTLQueryCache()
    options = QueryOptions()
    assert get_records(db_session, options, cache=cache).total == 5

    batch_upsert_records(db_session, [make_row("P6", datetime(2024, 1, 6))], cache=cache)
    assert get_records(db_session, options, cache=cache).total == 6


def test_stats_match_full_listing(db_session, seeded):
    stats = get_stats(db_session)
    assert stats["total_records"] == 5
    assert stats["total_plans"] == 5
    assert stats["total_failures"] == 2
    assert stats["earliest_time"] == datetime(2024, 1, 1, 8)
    assert stats["latest_time"] == datetime(2024, 1, 5, 8)

    start, end = datetime(2024, 1, 2), datetime(2024, 1, 4, 23, 59, 59)
    ranged = get_stats(db_session, start, end)
    listed = get_records(db_session, QueryOptions(start_date=start, end_date=end))
    assert ranged["total_records"] == listed.total == 3


def test_stats_on_empty_table(db_session):
    stats = get_stats(db_session)
    assert stats["total_records"] == 0
    assert stats["earliest_time"] is None
    assert success_rate(stats["total_records"], stats["total_failures"]) == 0


def test_success_rate():
    assert success_rate(0, 0) == 0
    assert success_rate(4, 1) == 75.0
    assert success_rate(3, 1) == 66.67


def test_categorize_result():
    assert categorize_result("正常") == "success"
    assert categorize_result("未跟踪") == "failure"
    assert categorize_result("任务成功数据处理失误") == "failure"
    assert categorize_result("其他") == "unknown"
    assert categorize_result(None) == "unknown"


def test_clear_reports_deleted_count(db_session, seeded):
    result = clear_records(db_session)
    assert result.deleted_count == 5
    assert result.remaining_count == 0
    assert count_records(db_session) == 0


def test_clear_refuses_empty_table(db_session):
    with pytest.raises(EmptyTableError):
        clear_records(db_session)


def test_update_and_delete_single_record(db_session, seeded):
    updated = update_record(db_session, "P1", {"task_result": "未跟踪"})
    assert updated["task_result"] == "未跟踪"
    assert updated["result_category"] == "failure"

    assert delete_record(db_session, "P1")["plan_id"] == "P1"
    assert db_session.get(SatelliteRecord, "P1") is None
    with pytest.raises(RecordNotFoundError):
        delete_record(db_session, "P1")


def test_update_rejects_key_changes(db_session, seeded):
    with pytest.raises(ValueError):
        update_record(db_session, "P1", {"plan_id": "X"})


def test_chart_data_defaults_to_recent_window(db_session, seeded):
    data = get_chart_data(db_session, None, None, limit=100, fields="minimal",
                          now=datetime(2024, 1, 10), default_days=7)
    assert [r["plan_id"] for r in data.records] == ["P5", "P4", "P3"]
    assert set(data.records[0]) == {"plan_id", "start_time", "task_result", "timestamp"}
    assert data.total == 3

    data = get_chart_data(db_session, datetime(2024, 1, 1), datetime(2024, 1, 5, 23, 59, 59), limit=2)
    assert len(data.records) == 2
    assert data.total == 5
    assert data.earliest_time == datetime(2024, 1, 1, 8)
