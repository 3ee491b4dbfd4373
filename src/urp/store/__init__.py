"""Record stores.

The engine reads through the ``RecordStore`` protocol; two adapters ship:

    InMemoryRecordStore   dict partitions per org_id (tests, CLI fixtures)
    SqlRecordStore        SQLAlchemy 2.0 ORM tables
"""

from urp.store.fixtures import load_fixture, load_fixture_file
from urp.store.memory import InMemoryRecordStore
from urp.store.protocol import RecordStore
from urp.store.sql import SqlRecordStore, create_urp_engine

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "SqlRecordStore",
    "create_urp_engine",
    "load_fixture",
    "load_fixture_file",
]
