"""Tests for batched inserts and page-by-page batch processing."""

import pytest

from recordbase.exceptions import DuplicateKeyError, QueryError, ValidationError


def donors(count, **extra):
    return [{"donor_name": f"Donor {i}", "amount": i, **extra} for i in range(count)]


# --- create_many ---

class TestCreateMany:
    def test_splits_into_batches(self, make_engine, spy):
        engine = make_engine(executor=spy, max_bulk_insert=100)
        spy.reset()

        result = engine.create_many(donors(250))

        assert len(spy.inserts()) == 3
        assert result.success
        assert result.inserted_count == 250
        assert len(set(result.inserted_ids)) == 250
        assert engine.count() == 250

    def test_explicit_batch_size(self, make_engine, spy):
        engine = make_engine(executor=spy)
        spy.reset()
        engine.create_many(donors(100), batch_size=40)
        assert len(spy.inserts()) == 3

    def test_progress(self, make_engine):
        engine = make_engine(max_bulk_insert=100)
        progress = []
        engine.create_many(donors(250), on_progress=progress.append)

        assert [(p.processed, p.total, p.percentage) for p in progress] == [
            (100, 250, 40), (200, 250, 80), (250, 250, 100),
        ]

    def test_shared_timestamps(self, donations):
        donations.create_many(donors(3))
        stamps = {(r["created_at"], r["updated_at"]) for r in donations.find_many()}
        assert len(stamps) == 1

    def test_everything_validated_first(self, make_engine, spy):
        engine = make_engine(executor=spy)
        records = donors(5)
        records[2]["amount"] = "lots"
        records[4]["donor_name"] = None
        spy.reset()

        with pytest.raises(ValidationError) as exc_info:
            engine.create_many(records, batch_size=2)

        assert exc_info.value.errors == [
            "Record 2: amount must be a number",
            "Record 4: donor_name is required",
        ]
        assert spy.inserts() == []

    def test_missing_columns_keep_store_defaults(self, donations):
        donations.create_many([
            {"donor_name": "A", "amount": 1, "category": "zakat", "is_anonymous": True},
            {"donor_name": "B", "amount": 2},
        ])
        second = donations.find_one({"donor_name": "B"})
        assert second["category"] is None
        assert second["is_anonymous"] is False

    def test_mixed_columns_match_single_create(self, pool, make_engine):
        pool.execute("CREATE TABLE pledges (id TEXT PRIMARY KEY, donor_name TEXT NOT NULL, "
                     "status TEXT NOT NULL DEFAULT 'open')")
        engine = make_engine(table="pledges", soft_delete=False, timestamps=False)

        engine.create_many([{"donor_name": "Huda", "status": "closed"}, {"donor_name": "Karim"}])
        assert engine.find_one({"donor_name": "Karim"})["status"] == "open"
        assert engine.create({"donor_name": "Sami"})["status"] == "open"

    def test_mixed_column_batch_is_atomic(self, donations):
        donations.create({"donor_name": "A", "amount": 1, "reference_code": "R1"})

        with pytest.raises(DuplicateKeyError):
            donations.create_many([
                {"donor_name": "B", "amount": 2},
                {"donor_name": "C", "amount": 3, "reference_code": "R1"},
            ])
        assert donations.count() == 1

    def test_uniform_batch_is_one_statement(self, make_engine, spy):
        engine = make_engine(executor=spy)
        spy.reset()
        engine.create_many([{"donor_name": "A", "amount": 1, "category": "zakat"},
                            {"donor_name": "B", "amount": 2, "category": None}])
        assert len(spy.inserts()) == 1

    def test_earlier_batches_survive_a_failure(self, donations):
        records = donors(4)
        records[0]["reference_code"] = "R1"
        records[3]["reference_code"] = "R1"

        with pytest.raises(DuplicateKeyError):
            donations.create_many(records, batch_size=2)
        assert donations.count() == 2

    def test_failure_still_invalidates_cache(self, make_engine):
        engine = make_engine(cache_enabled=True)
        assert engine.count(use_cache=True) == 0

        records = donors(4)
        records[0]["reference_code"] = "R1"
        records[3]["reference_code"] = "R1"
        with pytest.raises(DuplicateKeyError):
            engine.create_many(records, batch_size=2)

        assert engine.count(use_cache=True) == 2

    @pytest.mark.parametrize("records,kwargs", [
        ([], {}),
        (None, {}),
        ([{"donor_name": "A", "amount": 1}], {"batch_size": -1}),
        (["not a record"], {}),
    ])
    def test_bad_input(self, donations, records, kwargs):
        with pytest.raises(QueryError):
            donations.create_many(records, **kwargs)


# --- batch_process ---

class TestBatchProcess:
    @pytest.fixture
    def seven(self, donations):
        donations.create_many([
            {"id": f"d{i}", "donor_name": f"Donor {i}", "amount": 10 - i} for i in range(1, 8)
        ])
        return donations

    def test_visits_every_record_in_key_order(self, seven):
        seen = []
        summary = seven.batch_process(lambda record, index: seen.append((index, record["id"])), batch_size=3)

        assert seen == [(i - 1, f"d{i}") for i in range(1, 8)]
        assert summary.total_processed == 7
        assert summary.batches == 3

    def test_progress_and_completion(self, seven):
        progress = []
        completed = []
        seven.batch_process(lambda record, index: None, batch_size=3,
                            on_progress=progress.append, on_complete=completed.append)

        assert [(p.processed, p.batch, p.has_more) for p in progress] == [
            (3, 1, True), (6, 2, True), (7, 3, False),
        ]
        assert completed[0].total_processed == 7

    def test_exact_multiple_of_batch_size(self, seven):
        seven.hard_delete("d7")
        progress = []
        summary = seven.batch_process(lambda record, index: None, batch_size=3, on_progress=progress.append)

        assert summary.total_processed == 6
        assert summary.batches == 2
        assert len(progress) == 2

    def test_soft_deleted_included_by_default(self, seven):
        seven.delete("d1")
        assert seven.batch_process(lambda record, index: None).total_processed == 7
        assert seven.batch_process(lambda record, index: None, include_soft_deleted=False).total_processed == 6

    def test_where_and_order_by(self, seven):
        seen = []
        seven.batch_process(lambda record, index: seen.append(record["id"]),
                            where={"amount": {"operator": ">=", "value": 6}}, order_by="amount")
        assert seen == ["d4", "d3", "d2", "d1"]

    def test_records_are_decoded(self, donations):
        donations.create({"donor_name": "A", "amount": 1, "tags": {"k": "v"}})
        seen = []
        donations.batch_process(lambda record, index: seen.append(record["tags"]))
        assert seen == [{"k": "v"}]

    def test_callback_error_stops_the_walk(self, seven):
        seen = []

        def process(record, index):
            if index == 4:
                raise RuntimeError("receipt printer jammed")
            seen.append(record["id"])

        with pytest.raises(RuntimeError):
            seven.batch_process(process, batch_size=3)
        assert seen == ["d1", "d2", "d3", "d4"]

    def test_empty_table(self, donations):
        completed = []
        summary = donations.batch_process(lambda record, index: None, on_complete=completed.append)
        assert summary.total_processed == 0
        assert summary.batches == 0
        assert completed == [summary]

    @pytest.mark.parametrize("callback,batch_size", [(None, 10), (lambda r, i: None, 0), (lambda r, i: None, "5")])
    def test_bad_arguments(self, donations, callback, batch_size):
        with pytest.raises(QueryError):
            donations.batch_process(callback, batch_size=batch_size)
