"""Tests for the SQLAlchemy call record and history stores (in-memory SQLite)."""

import pytest
from datetime import datetime, timedelta, timezone

from coaching_trends.database import CallRecordStore, TrendHistoryStore, init_db, to_naive_utc
from coaching_trends.errors import SubjectNotFoundError


@pytest.fixture
def engine():
    return init_db("sqlite://")


@pytest.fixture
def record_store(engine):
    store = CallRecordStore(engine)
    store.add_rep("rep-1", "Avery")
    return store


@pytest.fixture
def history_store(engine):
    return TrendHistoryStore(engine)


@pytest.fixture
def january(make_range):
    return make_range(datetime(2024, 1, 1), datetime(2024, 1, 31))


class TestCallRecordStore:
    @pytest.mark.asyncio
    async def test_fetch_in_range_ordered_by_date(self, record_store, make_record, january):
        record_store.add_call(make_record(call_id="late", call_date=datetime(2024, 1, 20)))
        record_store.add_call(make_record(call_id="early", call_date=datetime(2024, 1, 3)))
        record_store.add_call(make_record(call_id="outside", call_date=datetime(2024, 2, 2)))

        records = await record_store.fetch_records("rep-1", january)

        assert [r.id for r in records] == ["early", "late"]
        assert records[0].subject_id == "rep-1"

    @pytest.mark.asyncio
    async def test_range_bounds_are_inclusive(self, record_store, make_record, january):
        record_store.add_call(make_record(call_id="first", call_date=january.start))
        record_store.add_call(make_record(call_id="last", call_date=january.end))

        assert await record_store.count_records("rep-1", january) == 2

    @pytest.mark.asyncio
    async def test_round_trips_analysis_json(self, record_store, make_record, january):
        record_store.add_call(make_record(
            analysis_behavior={"overall_score": 81, "metrics": {"patience": {"score": 26}}},
            framework_scores={"meddpicc": {"score": 70, "summary": "Champion identified"}},
            critical_info_missing=["Paper process"],
        ))

        [record] = await record_store.fetch_records("rep-1", january)

        assert record.analysis_behavior.metrics.patience.score == 26
        assert record.framework_scores.meddpicc.summary == "Champion identified"
        assert record.critical_info_missing == ["Paper process"]

    @pytest.mark.asyncio
    async def test_soft_deleted_calls_excluded(self, record_store, make_record, january):
        record_store.add_call(make_record(call_id="kept"))
        record_store.add_call(make_record(call_id="removed"))

        assert record_store.soft_delete_call("removed") is True
        assert record_store.soft_delete_call("removed") is False
        assert record_store.soft_delete_call("missing") is False

        records = await record_store.fetch_records("rep-1", january)
        assert [r.id for r in records] == ["kept"]
        assert await record_store.count_records("rep-1", january) == 1

    @pytest.mark.asyncio
    async def test_other_reps_excluded(self, record_store, make_record, january):
        record_store.add_rep("rep-2")
        record_store.add_call(make_record(call_id="mine"))
        record_store.add_call(make_record(call_id="theirs", subject_id="rep-2"))

        records = await record_store.fetch_records("rep-1", january)
        assert [r.id for r in records] == ["mine"]

    @pytest.mark.asyncio
    async def test_known_rep_without_calls_is_empty(self, record_store, january):
        assert await record_store.fetch_records("rep-1", january) == []

    @pytest.mark.asyncio
    async def test_unknown_rep_raises(self, record_store, january):
        with pytest.raises(SubjectNotFoundError):
            await record_store.fetch_records("nobody", january)
        with pytest.raises(SubjectNotFoundError):
            await record_store.count_records("nobody", january)

    @pytest.mark.asyncio
    async def test_aware_range_compared_in_utc(self, record_store, make_record):
        from coaching_trends.models import DateRange

        record_store.add_call(make_record(call_date=datetime(2024, 1, 10, 3, 0)))
        eastern = timezone(timedelta(hours=-5))
        # 2024-01-09 21:00 to 23:00 in UTC-5 is 02:00 to 04:00 UTC on the 10th
        period = DateRange(
            start=datetime(2024, 1, 9, 21, tzinfo=eastern),
            end=datetime(2024, 1, 9, 23, tzinfo=eastern),
        )
        assert await record_store.count_records("rep-1", period) == 1


class TestToNaiveUtc:
    def test_naive_unchanged(self):
        moment = datetime(2024, 1, 1, 12)
        assert to_naive_utc(moment) is moment

    def test_aware_converted(self):
        moment = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(moment) == datetime(2024, 1, 1, 10)


class TestTrendHistoryStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, history_store, january, sample_result):
        item = await history_store.save_analysis("rep-1", january, 12, sample_result)

        assert item.id is not None
        assert item.call_count == 12
        assert item.analysis == sample_result
        assert item.date_range == january
        assert history_store.get_analysis(item.id) == item

    @pytest.mark.asyncio
    async def test_same_range_is_upserted(self, history_store, january, sample_result):
        first = await history_store.save_analysis("rep-1", january, 12, sample_result)
        updated_result = sample_result.model_copy(update={"summary": "Updated"})
        second = await history_store.save_analysis("rep-1", january, 14, updated_result)

        assert second.id == first.id
        assert second.call_count == 14
        assert second.analysis.summary == "Updated"
        assert len(history_store.list_history("rep-1")) == 1

    @pytest.mark.asyncio
    async def test_list_newest_first_with_limit(self, history_store, make_range, sample_result):
        for month in (1, 2, 3):
            period = make_range(datetime(2024, month, 1), datetime(2024, month, 20))
            await history_store.save_analysis("rep-1", period, month, sample_result)
        await history_store.save_analysis("rep-2", make_range(datetime(2024, 1, 1), datetime(2024, 1, 2)), 1, sample_result)

        items = history_store.list_history("rep-1")
        assert [i.call_count for i in items] == [3, 2, 1]
        assert len(history_store.list_history("rep-1", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_snapshots(self, history_store, make_range, sample_result):
        keep = await history_store.save_analysis(
            "rep-1", make_range(datetime(2024, 1, 1), datetime(2024, 1, 31)), 5, sample_result
        )
        await history_store.save_analysis(
            "rep-1", make_range(datetime(2024, 2, 1), datetime(2024, 2, 29)), 6, sample_result
        )

        pinned = history_store.mark_snapshot(keep.id, title="Q1 baseline")

        assert pinned.is_snapshot
        assert pinned.title == "Q1 baseline"
        snapshots = history_store.list_history("rep-1", snapshots_only=True)
        assert [s.id for s in snapshots] == [keep.id]

    def test_missing_items(self, history_store):
        assert history_store.get_analysis(999) is None
        assert history_store.mark_snapshot(999) is None

    @pytest.mark.asyncio
    async def test_history_item_converts_to_outcome(self, history_store, january, sample_result):
        item = await history_store.save_analysis("rep-1", january, 12, sample_result)
        outcome = item.to_outcome()
        assert outcome.kind == "history"
        assert outcome.history_id == item.id
        assert outcome.call_count == 12
