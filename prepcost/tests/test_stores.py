"""
Tests for the bundled SQLAlchemy store implementations.
"""

import pytest

from prepcost.models import BaseItem, ItemCostBreakdown, RecipeLine, ResourceShare
from prepcost.models.enums import DeprecationReason, ValidationMode
from prepcost.services.database import session_scope
from prepcost.services.dto import (
    IngredientLine,
    ItemState,
    LaborLine,
    LineCreate,
    LineDelete,
    LineUpdate,
)
from prepcost.services.exceptions import DatabaseError, ItemNotFound, ServiceError
from prepcost.services.stores import (
    SqlCostService,
    SqlItemStore,
    SqlPermissionLookup,
    SqlRecipeLineStore,
    SqlValidationSettings,
)
from prepcost.utils.constants import ITEM_KIND_PREPPED, ITEM_KIND_RAW


@pytest.fixture
def item_store(test_db):
    return SqlItemStore()


@pytest.fixture
def line_store(test_db):
    return SqlRecipeLineStore()


def _raw(store, name, **fields):
    return store.create(ItemState(name=name, item_kind=ITEM_KIND_RAW, **fields).to_fields())


def _prepped(store, name, **fields):
    fields.setdefault("yield_amount", 1000.0)
    fields.setdefault("yield_unit", "g")
    return store.create(ItemState(name=name, item_kind=ITEM_KIND_PREPPED, **fields).to_fields())


def _uses(line_store, parent, *children):
    line_store.batch(
        [
            LineCreate(
                parent_item_id=parent.id,
                parent_key=parent.key,
                line=IngredientLine(child_item_id=child.id, quantity=100.0, unit="g"),
            )
            for child in children
        ],
        [],
        [],
    )


class TestSqlItemStore:
    """Test item persistence."""

    def test_create_assigns_id(self, item_store):
        soy = _raw(item_store, "Soy Sauce")

        assert soy.id is not None
        assert soy.key == str(soy.id)
        assert soy.item_kind == ITEM_KIND_RAW
        assert soy.deprecation_reason == DeprecationReason.NONE

    def test_list_includes_base_item_density(self, item_store, test_db):
        with session_scope() as session:
            base = BaseItem(name="Soy", specific_weight=1.2)
            session.add(base)
            session.flush()
            base_id = base.id

        _raw(item_store, "Soy Sauce", base_item_id=base_id)

        items = item_store.list()
        assert [item.name for item in items] == ["Soy Sauce"]
        assert items[0].specific_weight == pytest.approx(1.2)

    def test_update(self, item_store):
        sauce = _prepped(item_store, "Teriyaki Sauce")

        item_store.update(sauce.id, {"retail": 18.0, "name": "Teriyaki Glaze"})

        updated = item_store.list()[0]
        assert updated.retail == 18.0
        assert updated.name == "Teriyaki Glaze"

    def test_update_missing_item(self, item_store):
        with pytest.raises(ItemNotFound):
            item_store.update(999, {"name": "x"})

    def test_delete(self, item_store):
        sauce = _prepped(item_store, "Teriyaki Sauce")
        item_store.delete(sauce.id)
        assert item_store.list() == []

    def test_constraint_violation_wrapped(self, item_store):
        with pytest.raises(DatabaseError) as exc_info:
            item_store.create({"name": "Bad", "item_kind": "bogus"})
        assert exc_info.value.original_error is not None


class TestDeprecationCascade:
    """Test direct and indirect deprecation."""

    def test_cascades_to_dependent_prepped_items(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")
        glaze = _prepped(item_store, "Teriyaki Glaze")
        unrelated = _prepped(item_store, "Ranch")
        _uses(line_store, sauce, soy)
        _uses(line_store, glaze, sauce)

        affected = item_store.deprecate(soy.id)

        assert affected == [soy.id, sauce.id, glaze.id]
        states = {item.id: item.deprecation_reason for item in item_store.list()}
        assert states[soy.id] == DeprecationReason.DIRECT
        assert states[sauce.id] == DeprecationReason.INDIRECT
        assert states[glaze.id] == DeprecationReason.INDIRECT
        assert states[unrelated.id] == DeprecationReason.NONE

    def test_cyclic_references_terminate(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        first = _prepped(item_store, "First")
        second = _prepped(item_store, "Second")
        _uses(line_store, first, soy, second)
        _uses(line_store, second, first)

        affected = item_store.deprecate(soy.id)

        assert sorted(affected) == sorted([soy.id, first.id, second.id])

    def test_already_deprecated_parents_are_left_alone(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")
        _uses(line_store, sauce, soy)
        item_store.deprecate(sauce.id)

        affected = item_store.deprecate(soy.id)

        assert affected == [soy.id]
        states = {item.id: item.deprecation_reason for item in item_store.list()}
        assert states[sauce.id] == DeprecationReason.DIRECT

    def test_missing_item(self, item_store):
        with pytest.raises(ItemNotFound):
            item_store.deprecate(999)


class TestSqlRecipeLineStore:
    """Test line batches and lookups."""

    def test_batch_and_lookup(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")
        empty = _prepped(item_store, "Empty")

        line_store.batch(
            [
                LineCreate(
                    sauce.id,
                    sauce.key,
                    IngredientLine(child_item_id=soy.id, quantity=600, unit="g"),
                ),
                LineCreate(sauce.id, sauce.key, LaborLine(labor_role="Prep Cook", minutes=15)),
            ],
            [],
            [],
        )

        lines = line_store.get_by_item_ids([sauce.id, empty.id, 999])

        assert set(lines) == {sauce.id, empty.id}
        assert lines[empty.id] == []
        ingredient, labor = lines[sauce.id]
        assert isinstance(ingredient, IngredientLine)
        assert ingredient.child_item_id == soy.id
        assert ingredient.key == str(ingredient.id)
        assert isinstance(labor, LaborLine)
        assert labor.minutes == 15

    def test_update_and_delete(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")
        _uses(line_store, sauce, soy, soy)
        first, second = line_store.get_by_item_ids([sauce.id])[sauce.id]

        changed = IngredientLine(id=first.id, child_item_id=soy.id, quantity=650.0, unit="g")
        line_store.batch(
            [],
            [LineUpdate(first.id, sauce.id, changed)],
            [LineDelete(second.id, sauce.id)],
        )

        lines = line_store.get_by_item_ids([sauce.id])[sauce.id]
        assert [(line.id, line.quantity) for line in lines] == [(first.id, 650.0)]

    def test_variant_change_clears_other_columns(self, item_store, line_store, test_db):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")
        _uses(line_store, sauce, soy)
        line = line_store.get_by_item_ids([sauce.id])[sauce.id][0]

        labor = LaborLine(id=line.id, labor_role="Prep Cook", minutes=10)
        line_store.batch([], [LineUpdate(line.id, sauce.id, labor)], [])

        with session_scope() as session:
            record = session.get(RecipeLine, line.id)
            assert record.line_type == "labor"
            assert record.child_item_id is None
            assert record.quantity is None

    def test_batch_is_atomic(self, item_store, line_store):
        soy = _raw(item_store, "Soy Sauce")
        sauce = _prepped(item_store, "Teriyaki Sauce")

        line = IngredientLine(child_item_id=soy.id, quantity=1, unit="g")
        missing = IngredientLine(id=999, child_item_id=soy.id, quantity=1, unit="g")

        with pytest.raises(ServiceError):
            line_store.batch(
                [LineCreate(sauce.id, sauce.key, line)],
                [LineUpdate(999, sauce.id, missing)],
                [],
            )

        assert line_store.get_by_item_ids([sauce.id])[sauce.id] == []

    def test_create_without_parent_rejected(self, line_store):
        with pytest.raises(ServiceError):
            line_store.batch(
                [LineCreate(None, "new-x", LaborLine(labor_role="Cook", minutes=1))], [], []
            )

    def test_lookup_with_no_ids(self, line_store):
        assert line_store.get_by_item_ids([]) == {}


class TestSqlCostService:
    """Test reading externally computed costs."""

    def test_breakdowns(self, item_store, test_db):
        sauce = _prepped(item_store, "Teriyaki Sauce")
        with session_scope() as session:
            session.add(
                ItemCostBreakdown(
                    item_id=sauce.id, labor_cost_per_gram=0.002, food_cost_per_gram=0.003
                )
            )

        service = SqlCostService()
        breakdown = service.get_costs_breakdown()[sauce.id]

        assert breakdown.labor_cost_per_gram == pytest.approx(0.002)
        assert breakdown.total_cost_per_gram == pytest.approx(0.005)
        assert service.get_costs([sauce.id, 999]) == {sauce.id: pytest.approx(0.005)}

    def test_no_rows(self, test_db):
        assert SqlCostService().get_costs_breakdown() == {}


class TestSettingsAndPermissions:
    def test_validation_mode_defaults_to_block(self, test_db):
        assert SqlValidationSettings().get() == ValidationMode.BLOCK

    def test_validation_mode_round_trip(self, test_db):
        settings = SqlValidationSettings()
        settings.set(ValidationMode.NOTIFY)
        settings.set("permit")
        assert settings.get() == ValidationMode.PERMIT

    def test_share_levels(self, item_store, test_db):
        shared = _prepped(item_store, "Shared")
        own = _prepped(item_store, "Own")
        with session_scope() as session:
            session.add(ResourceShare(item_id=shared.id, share_level="view"))

        permissions = SqlPermissionLookup()
        assert permissions.share_level(shared.id) == "view"
        assert permissions.share_level(own.id) == "edit"
