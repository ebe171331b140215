"""Shared fixtures: a temporary SQLite database with donation tables."""

import pytest

from recordbase.database import SQLiteConnectionPool, DatabaseError, StoreErrorCode
from recordbase.model_base import EntityDescriptor, RecordEngine

TABLES = [
    """
    CREATE TABLE donation_campaigns (
        id TEXT PRIMARY KEY,
        title VARCHAR(100) NOT NULL,
        goal DECIMAL(12,2),
        created_at DATETIME,
        updated_at DATETIME,
        deleted_at DATETIME
    )
    """,
    """
    CREATE TABLE donations (
        id TEXT PRIMARY KEY,
        donor_name VARCHAR(20) NOT NULL,
        amount DECIMAL(10,2) NOT NULL,
        quantity INTEGER,
        is_anonymous BOOLEAN DEFAULT 0,
        tags JSON,
        category VARCHAR(50),
        reference_code VARCHAR(30) UNIQUE,
        campaign_id TEXT REFERENCES donation_campaigns(id),
        donated_on DATE,
        created_at DATETIME,
        updated_at DATETIME,
        deleted_at DATETIME
    )
    """,
    "CREATE INDEX idx_donations_category ON donations (category)",
]


class SpyExecutor:
    """Executor wrapper that records every statement it forwards."""

    def __init__(self, inner):
        self.inner = inner
        self.dialect = inner.dialect
        self.statements = []

    def execute(self, sql, params=()):
        self.statements.append(" ".join(sql.split()))
        return self.inner.execute(sql, params)

    def acquire_connection(self):
        return self.inner.acquire_connection()

    def inserts(self):
        return [s for s in self.statements if s.upper().startswith("INSERT")]

    def reset(self):
        self.statements.clear()


class FlakyExecutor(SpyExecutor):
    """Fails the next `failures` statements with the given store error code."""

    def __init__(self, inner):
        super().__init__(inner)
        self.failures = 0
        self.code = StoreErrorCode.GENERIC

    def fail_next(self, count, code=StoreErrorCode.GENERIC):
        self.failures = count
        self.code = code

    def execute(self, sql, params=()):
        self.statements.append(" ".join(sql.split()))
        if self.failures > 0:
            self.failures -= 1
            raise DatabaseError("simulated failure", self.code)
        return self.inner.execute(sql, params)


def create_tables(executor):
    for ddl in TABLES:
        executor.execute(ddl)


@pytest.fixture
def install_tables():
    """Creates the donation tables on any executor"""
    return create_tables


@pytest.fixture
def pool(tmp_path):
    """Connection pool on a fresh database file with the donation tables."""
    pool = SQLiteConnectionPool(str(tmp_path / "family.db"), max_connections=4)
    create_tables(pool)
    yield pool
    pool.close_all()


@pytest.fixture
def spy(pool):
    return SpyExecutor(pool)


@pytest.fixture
def flaky(pool):
    return FlakyExecutor(pool)


@pytest.fixture
def make_engine(pool):
    """Factory for RecordEngines; all of them are closed after the test."""
    engines = []

    def factory(executor=None, **options):
        options.setdefault("table", "donations")
        engine = RecordEngine(executor or pool, EntityDescriptor(**options))
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.close()


@pytest.fixture
def donations(make_engine):
    return make_engine()


@pytest.fixture
def campaigns(make_engine):
    return make_engine(table="donation_campaigns")


@pytest.fixture
def donation_data():
    def build(**overrides):
        data = {
            "donor_name": "Layla Haddad",
            "amount": 25.5,
            "quantity": 1,
            "is_anonymous": False,
            "tags": {"channel": "web", "recurring": False},
            "category": "zakat",
        }
        data.update(overrides)
        return data
    return build
