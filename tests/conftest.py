"""Pytest configuration and fixtures."""
import os
import tempfile
from pathlib import Path

import pytest

# must be set before db.session is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="color_grid_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"


@pytest.fixture
def color_rows():
    """Two parent colors, three children, one orphan."""
    return [
        {"message_id": "M1", "is_parent": True, "children_count": 2, "ticker": "AAA", "cusip": "C1",
         "bias": "BID", "bid": 99, "ask": 101, "source": "RBC", "date": "2024-01-02"},
        {"message_id": "M1-a", "parent_message_id": "M1", "ticker": "AAA", "cusip": "C1",
         "bias": "OFFER", "bid": 98, "ask": 100, "source": "JPM", "date": "2024-01-02"},
        {"message_id": "M1-b", "parent_message_id": "M1", "ticker": "AAA", "cusip": "C1",
         "bias": "BID", "bid": 97.5, "ask": 99.5, "source": "GS", "date": "2024-01-03"},
        {"message_id": "M2", "is_parent": True, "children_count": 1, "ticker": "BBB", "cusip": "C2",
         "bias": "BID", "bid": 50, "ask": 52, "source": "RBC", "date": "2024-01-04"},
        {"message_id": "M2-a", "parent_message_id": "M2", "ticker": "BBB", "cusip": "C2",
         "bias": "OFFER", "bid": 49, "ask": 51, "source": "MS", "date": "2024-01-04"},
        {"message_id": "X9", "parent_message_id": "NOPE", "ticker": "ZZZ", "cusip": "C9",
         "bias": "BID", "bid": 1, "ask": 2, "source": "RBC", "date": "2024-01-05"},
    ]


@pytest.fixture
def store(color_rows):
    from services.grid.row_store import RowStore

    s = RowStore()
    s.load(color_rows)
    return s


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from db.base import Base
    from db.session import engine
    from main import app
    from services.color_repository import invalidate_color_cache

    invalidate_color_cache()
    with TestClient(app) as c:
        yield c

    Base.metadata.drop_all(bind=engine)
    invalidate_color_cache()
