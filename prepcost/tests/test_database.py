"""
Tests for engine and session management against a database file.
"""

import pytest

from prepcost.models import Item
from prepcost.services.database import (
    REQUIRED_TABLES,
    close_connections,
    init_database,
    initialize_app_database,
    missing_tables,
    session_scope,
    verify_database,
)
from prepcost.utils.config import get_config


@pytest.fixture
def file_db():
    close_connections()
    yield get_config().database_path
    close_connections()


def test_empty_database_fails_verification(file_db):
    assert sorted(missing_tables()) == sorted(REQUIRED_TABLES)
    assert not verify_database()


def test_init_database_creates_tables(file_db):
    init_database()

    assert missing_tables() == []
    assert verify_database()
    assert file_db.exists()


def test_initialize_app_database_is_repeatable(file_db):
    assert initialize_app_database()
    assert initialize_app_database()


def test_session_scope_rolls_back_on_error(file_db):
    init_database()

    with pytest.raises(RuntimeError):
        with session_scope() as session:
            session.add(Item(name="Soy Sauce", item_kind="raw"))
            session.flush()
            raise RuntimeError("abort")

    with session_scope() as session:
        assert session.query(Item).count() == 0


def test_model_helpers(file_db):
    init_database()

    with session_scope() as session:
        item = Item(name="Soy Sauce", item_kind="raw")
        session.add(item)
        session.flush()
        item.update_from_dict({"id": 999, "notes": "low sodium", "unknown": 1})
        session.flush()

        data = item.to_dict(exclude=["created_at"])
        assert data["id"] != 999
        assert data["notes"] == "low sodium"
        assert "created_at" not in data
        assert isinstance(data["updated_at"], str)
        assert repr(item) == f"Item(id={item.id}, 'Soy Sauce')"


def test_rows_get_a_uuid_that_updates_cannot_change(file_db):
    init_database()

    with session_scope() as session:
        soy = Item(name="Soy Sauce", item_kind="raw")
        sugar = Item(name="Sugar", item_kind="raw")
        session.add_all([soy, sugar])
        session.flush()
        original = soy.uuid

        soy.update_from_dict({"uuid": "not-a-uuid", "notes": "low sodium"})
        session.flush()

        assert len(original) == 36
        assert soy.uuid == original
        assert sugar.uuid != original
        assert soy.to_dict()["uuid"] == original
