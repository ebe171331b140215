"""Tests for transaction scopes over the SQLite pool."""

import pytest

from recordbase.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from recordbase.model_base import TransactionScope


def active_connections(pool):
    return pool.get_stats()["active_connections"]


class TestTransaction:
    def test_commit_returns_callback_result(self, donations, pool, donation_data):
        def work(scope):
            assert isinstance(scope, TransactionScope)
            first = scope.create(donation_data(donor_name="First"))
            second = scope.create(donation_data(donor_name="Second"))
            return [first["id"], second["id"]]

        ids = donations.transaction(work)

        assert len(ids) == 2
        assert donations.count() == 2
        assert active_connections(pool) == 0

    def test_exception_rolls_back(self, donations, pool, donation_data):
        def work(scope):
            scope.create(donation_data())
            raise RuntimeError("payment gateway timeout")

        with pytest.raises(RuntimeError, match="payment gateway timeout"):
            donations.transaction(work)

        assert donations.count() == 0
        assert active_connections(pool) == 0

    def test_store_error_rolls_back(self, donations, donation_data):
        def work(scope):
            scope.create(donation_data(reference_code="REF-1"))
            scope.create(donation_data(reference_code="REF-1"))

        with pytest.raises(DuplicateKeyError):
            donations.transaction(work)
        assert donations.count() == 0

    def test_validation_inside_scope(self, donations, donation_data):
        def work(scope):
            scope.create(donation_data())
            scope.create({"donor_name": None, "amount": 1})

        with pytest.raises(ValidationError):
            donations.transaction(work)
        assert donations.count() == 0

    def test_uncommitted_writes_are_private(self, donations, donation_data):
        def work(scope):
            created = scope.create(donation_data())
            # same connection sees the row, the pool does not yet
            assert scope.find_by_id(created["id"]) is not None
            assert donations.count() == 0
            return created["id"]

        record_id = donations.transaction(work)
        assert donations.find_by_id(record_id) is not None

    def test_update_and_delete(self, donations, donation_data):
        keep = donations.create(donation_data(quantity=1))
        soft = donations.create(donation_data())
        hard = donations.create(donation_data())

        def work(scope):
            updated = scope.update(keep["id"], {"quantity": 5, "id": "ignored"})
            scope.delete(soft["id"])
            scope.delete(hard["id"], hard_delete=True)
            return updated

        updated = donations.transaction(work)

        assert updated["quantity"] == 5
        assert donations.find_by_id(keep["id"])["quantity"] == 5
        assert donations.find_by_id(soft["id"], include_soft_deleted=True)["deleted_at"] is not None
        assert donations.find_by_id(hard["id"], include_soft_deleted=True) is None

    @pytest.mark.parametrize("operation", ["update", "delete"])
    def test_missing_record_rolls_back(self, donations, donation_data, operation):
        def work(scope):
            scope.create(donation_data())
            if operation == "update":
                scope.update("nope", {"quantity": 1})
            else:
                scope.delete("nope")

        with pytest.raises(NotFoundError):
            donations.transaction(work)
        assert donations.count() == 0

    def test_commit_invalidates_cache(self, make_engine, donation_data):
        engine = make_engine(cache_enabled=True)
        created = engine.create(donation_data(quantity=1))
        assert engine.find_by_id(created["id"])["quantity"] == 1

        engine.transaction(lambda scope: scope.update(created["id"], {"quantity": 2}))
        assert engine.find_by_id(created["id"])["quantity"] == 2

    def test_read_only_transaction_keeps_cache(self, make_engine, donation_data):
        engine = make_engine(cache_enabled=True)
        created = engine.create(donation_data())
        engine.find_by_id(created["id"])
        cached_entries = len(engine.cache)

        engine.transaction(lambda scope: scope.find_by_id(created["id"]))
        assert len(engine.cache) == cached_entries

    def test_scope_query(self, donations, donation_data):
        donations.create(donation_data())
        rows = donations.transaction(lambda scope: scope.query("SELECT COUNT(*) AS total FROM donations"))
        assert rows[0]["total"] == 1
