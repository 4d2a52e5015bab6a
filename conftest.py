import os

import pytest
from unittest.mock import AsyncMock, Mock

# Settings are read at import time; keep tests off real services
os.environ.setdefault("EMAIL_PROVIDER", "dev")
os.environ.setdefault("EVENT_BUS_ENABLED", "false")
os.environ.setdefault("DATABASE_NAME", "blood_link_test")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")


def make_mock_collection():
    collection = AsyncMock()
    cursor = Mock()
    cursor.sort = Mock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=[])
    collection.find = Mock(return_value=cursor)
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.update_many = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_index = AsyncMock()
    return collection


# Common test fixtures
@pytest.fixture
def mock_database():
    """Mock MongoDB database; `db[name]` returns the same mock collection per name"""
    collections = {name: make_mock_collection() for name in ["users", "blood_requests", "notifications"]}
    db = Mock()
    db.__getitem__ = Mock(side_effect=lambda name: collections[name])
    db.collections = collections
    return db
