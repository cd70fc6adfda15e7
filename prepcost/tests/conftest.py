"""Pytest configuration and fixtures for Prep Cost tests."""

import dataclasses
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from prepcost.models.base import Base
from prepcost.models.enums import DeprecationReason, ValidationMode
from prepcost.services.dto import CostBreakdown, IngredientLine, ItemState, LaborLine
from prepcost.utils.constants import ITEM_KIND_PREPPED, ITEM_KIND_RAW


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean in-memory database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database shared by every session
    2. Creates all tables
    3. Points the global session factory at it
    4. Drops all tables after the test completes
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from prepcost.models import item, recipe_line, cost_breakdown, settings  # noqa: F401

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    import prepcost.services.database as db_module

    original_get_session_factory = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session_factory


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test's config (and change-history file) under tmp_path."""
    from prepcost.utils.config import reset_config

    monkeypatch.setenv("PREPCOST_DB_PATH", str(tmp_path / "prepcost.db"))
    monkeypatch.delenv("PREPCOST_ENV", raising=False)
    monkeypatch.delenv("PREPCOST_FETCH_WORKERS", raising=False)
    monkeypatch.delenv("PREPCOST_VALIDATION_MODE", raising=False)
    reset_config()
    yield
    reset_config()


# ============================================================================
# In-memory store fakes
# ============================================================================


class FakeItemStore:
    """ItemStore keeping ItemStates (without lines) in a dict."""

    def __init__(self, items=()):
        self.records = {
            item.id: dataclasses.replace(item, lines=()) for item in items if item.id is not None
        }
        self.calls = []
        self.next_id = 1000
        self.create_error = None
        self.delete_error = None
        self.list_error = None

    @property
    def writes(self):
        return [call for call in self.calls if call[0] != "list"]

    def create(self, fields):
        self.calls.append(("create", dict(fields)))
        if self.create_error is not None:
            raise self.create_error
        item_id = self.next_id
        self.next_id += 1
        state = ItemState(id=item_id, key=str(item_id), **fields)
        self.records[item_id] = state
        return state

    def update(self, item_id, fields):
        self.calls.append(("update", item_id, dict(fields)))
        self.records[item_id] = dataclasses.replace(self.records[item_id], **fields)

    def deprecate(self, item_id):
        self.calls.append(("deprecate", item_id))
        self.records[item_id] = dataclasses.replace(
            self.records[item_id], deprecation_reason=DeprecationReason.DIRECT
        )
        return [item_id]

    def delete(self, item_id):
        self.calls.append(("delete", item_id))
        if self.delete_error is not None:
            raise self.delete_error
        del self.records[item_id]

    def list(self):
        self.calls.append(("list",))
        if self.list_error is not None:
            raise self.list_error
        return list(self.records.values())


class FakeLineStore:
    """RecipeLineStore keeping persisted lines per parent id."""

    def __init__(self, items=()):
        self.lines = {item.id: list(item.lines) for item in items if item.id is not None}
        self.batches = []
        self.fetches = []
        self.batch_error = None
        self.next_line_id = 5000

    def batch(self, creates, updates, deletes):
        self.batches.append((list(creates), list(updates), list(deletes)))
        if self.batch_error is not None:
            raise self.batch_error

        for create in creates:
            line_id = self.next_line_id
            self.next_line_id += 1
            line = dataclasses.replace(create.line, id=line_id, key=str(line_id), is_new=False)
            self.lines.setdefault(create.parent_item_id, []).append(line)

        for update in updates:
            lines = self.lines.get(update.parent_item_id, [])
            for index, line in enumerate(lines):
                if line.id == update.line_id:
                    lines[index] = update.line

        for delete in deletes:
            self.lines[delete.parent_item_id] = [
                line for line in self.lines.get(delete.parent_item_id, [])
                if line.id != delete.line_id
            ]

    def get_by_item_ids(self, item_ids):
        item_ids = list(item_ids)
        self.fetches.append(item_ids)
        return {item_id: list(self.lines.get(item_id, [])) for item_id in item_ids}


class FakeCostService:
    def __init__(self, breakdowns=None):
        self.breakdowns = dict(breakdowns or {})
        self.error = None

    def get_costs(self, item_ids):
        return {
            item_id: self.breakdowns[item_id].total_cost_per_gram
            for item_id in item_ids
            if item_id in self.breakdowns
        }

    def get_costs_breakdown(self):
        if self.error is not None:
            raise self.error
        return dict(self.breakdowns)


class FakeSettings:
    def __init__(self, mode=ValidationMode.BLOCK):
        self.mode = mode

    def get(self):
        return self.mode


class FakeHistory:
    def __init__(self):
        self.recorded = []
        self.error = None

    def record(self, item_ids):
        if self.error is not None:
            raise self.error
        self.recorded.append(list(item_ids))


class FakePermissions:
    def __init__(self, levels=None):
        self.levels = dict(levels or {})

    def share_level(self, item_id):
        return self.levels.get(item_id, "edit")


# ============================================================================
# Sample data
# ============================================================================


@pytest.fixture
def catalog():
    """Raw ingredients plus one prepped sauce with 1000 g of ingredients.

    ids: 1 Soy Sauce (density 1.2), 2 Sugar, 3 Eggs (50 g each),
         10 Teriyaki Sauce (yield 1000 g; 600 g soy + 400 g sugar + labor)
    """
    soy = ItemState(id=1, key="1", name="Soy Sauce", item_kind=ITEM_KIND_RAW, specific_weight=1.2)
    sugar = ItemState(id=2, key="2", name="Sugar", item_kind=ITEM_KIND_RAW)
    eggs = ItemState(id=3, key="3", name="Eggs", item_kind=ITEM_KIND_RAW, each_grams=50.0)
    sauce = ItemState(
        id=10,
        key="10",
        name="Teriyaki Sauce",
        item_kind=ITEM_KIND_PREPPED,
        yield_amount=1000.0,
        yield_unit="g",
        wholesale=10.0,
        lines=(
            IngredientLine(id=100, key="100", child_item_id=1, quantity=600.0, unit="g"),
            IngredientLine(id=101, key="101", child_item_id=2, quantity=400.0, unit="g"),
            LaborLine(id=102, key="102", labor_role="Prep Cook", minutes=15.0),
        ),
    )
    return [soy, sugar, eggs, sauce]


@pytest.fixture
def items_by_id(catalog):
    return {item.id: item for item in catalog}


@pytest.fixture
def fake_stores(catalog):
    """Fakes for every store the save pipeline talks to."""
    return SimpleNamespace(
        items=FakeItemStore(catalog),
        lines=FakeLineStore(catalog),
        costs=FakeCostService({10: CostBreakdown(0.002, 0.003)}),
        settings=FakeSettings(ValidationMode.BLOCK),
        history=FakeHistory(),
        permissions=FakePermissions(),
    )


@pytest.fixture
def edit_session(fake_stores):
    """A loaded and opened EditSession over the fakes."""
    from prepcost.services.edit_session import EditSession

    session = EditSession(
        fake_stores.items,
        fake_stores.lines,
        fake_stores.costs,
        fake_stores.settings,
        history=fake_stores.history,
        permissions=fake_stores.permissions,
        fetch_workers=2,
    )
    session.load()
    session.open()
    fake_stores.items.calls.clear()
    fake_stores.lines.fetches.clear()
    return session
