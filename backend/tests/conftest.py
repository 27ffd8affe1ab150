import os
import tempfile
from pathlib import Path

# Must be set before config/database are imported.
os.environ["LEDGER_TELEMETRY_ENABLED"] = "0"
os.environ.setdefault("DATABASE_URL", "sqlite:///" + str(Path(tempfile.gettempdir()) / "blocks_test.db"))
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from batch_fetcher import BatchAccountFetcher
from database import Base
from domain_cache import DomainCache
from engagement import EngagementReconciler, EngagementStore
from ledger_fakes import PROGRAM_ID, FakeLedger, FakeSubmitter, no_sleep


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def client(ledger):
    return ledger.client()


@pytest.fixture
def fetcher(client):
    return BatchAccountFetcher(client, batch_size=100, base_delay=0.2, max_delay=2.0, max_retries=4, sleep=no_sleep)


@pytest.fixture
def cache(client, fetcher):
    return DomainCache(client, fetcher, PROGRAM_ID, max_age=30.0)


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return EngagementStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))


@pytest.fixture
def submitter(ledger):
    return FakeSubmitter(ledger)


@pytest.fixture
def reconciler(store, cache, submitter):
    return EngagementReconciler(store, cache, submitter, PROGRAM_ID)
