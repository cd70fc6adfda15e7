"""
Tests for recipe totals and yield validation.
"""

import pytest

from prepcost.models.enums import ValidationMode
from prepcost.services.dto import IngredientLine, ItemState, LaborLine
from prepcost.services.exceptions import SaveCancelled, YieldValidationError
from prepcost.services.yield_service import (
    YieldStatus,
    enforce_yield_rules,
    total_grams,
    validate_yield,
)
from prepcost.utils.constants import ITEM_KIND_PREPPED


def _recipe(yield_amount, yield_unit="g", each_grams=None, name="Teriyaki Sauce", key="sauce"):
    return ItemState(
        id=None,
        key=key,
        name=name,
        item_kind=ITEM_KIND_PREPPED,
        yield_amount=yield_amount,
        yield_unit=yield_unit,
        each_grams=each_grams,
        lines=(
            IngredientLine(child_item_id=1, quantity=600.0, unit="g"),
            IngredientLine(child_item_id=2, quantity=400.0, unit="g"),
        ),
    )


class TestTotalGrams:
    """Test the recipe total aggregator."""

    def test_sums_convertible_lines(self, catalog, items_by_id):
        sauce = catalog[3]
        assert total_grams(sauce.lines, items_by_id) == pytest.approx(1000.0)

    def test_empty_recipe_is_zero(self, items_by_id):
        assert total_grams((), items_by_id) == 0.0

    def test_order_independent(self, catalog, items_by_id):
        lines = catalog[3].lines
        assert total_grams(tuple(reversed(lines)), items_by_id) == pytest.approx(
            total_grams(lines, items_by_id)
        )

    def test_zero_quantity_line_adds_nothing(self, catalog, items_by_id):
        lines = catalog[3].lines + (IngredientLine(child_item_id=1, quantity=0, unit="g"),)
        assert total_grams(lines, items_by_id) == pytest.approx(1000.0)

    def test_negative_quantity_line_adds_nothing(self, catalog, items_by_id):
        lines = catalog[3].lines + (IngredientLine(child_item_id=1, quantity=-100.0, unit="g"),)
        assert total_grams(lines, items_by_id) == pytest.approx(1000.0)

    def test_excludes_deleted_and_labor_lines(self, items_by_id):
        lines = (
            IngredientLine(child_item_id=1, quantity=600.0, unit="g"),
            IngredientLine(
                child_item_id=2, quantity=400.0, unit="g", is_marked_for_deletion=True
            ),
            LaborLine(labor_role="Prep Cook", minutes=30),
        )
        assert total_grams(lines, items_by_id) == pytest.approx(600.0)

    def test_incomplete_and_unconvertible_lines_add_nothing(self, items_by_id):
        lines = (
            IngredientLine(child_item_id=1, quantity=100.0, unit="g"),
            IngredientLine(child_item_id=None, quantity=100.0, unit="g"),
            IngredientLine(child_item_id=1, quantity=100.0, unit=None),
            IngredientLine(child_item_id=2, quantity=1.0, unit="liter"),
        )
        assert total_grams(lines, items_by_id) == pytest.approx(100.0)


class TestValidateYield:
    """Test single-item yield checks."""

    @pytest.mark.parametrize("mode", list(ValidationMode))
    def test_exact_yield_passes_in_every_mode(self, items_by_id, mode):
        item = _recipe(1000)
        outcome = validate_yield(item, total_grams(item.lines, items_by_id), mode)

        assert outcome.status == YieldStatus.VALID
        assert outcome.total_grams == pytest.approx(1000.0)
        assert outcome.yield_grams == pytest.approx(1000.0)

    def test_one_gram_over_fails(self, items_by_id):
        item = _recipe(1001)
        outcome = validate_yield(item, total_grams(item.lines, items_by_id))

        assert outcome.status == YieldStatus.VIOLATION
        assert outcome.blocks_save
        assert "exceeds" in outcome.message

    def test_kilogram_yield_converted(self):
        assert validate_yield(_recipe(1, "kg"), 1000.0).status == YieldStatus.VALID
        assert validate_yield(_recipe(1.5, "kg"), 1000.0).status == YieldStatus.VIOLATION

    def test_count_yield_implicit_per_unit_weight(self):
        """10 each from 500 g: 50 g per unit, derived from the total."""
        outcome = validate_yield(_recipe(10, "each"), 500.0)

        assert outcome.status == YieldStatus.VALID
        assert outcome.implicit_per_unit is True
        assert outcome.per_unit_grams == pytest.approx(50.0)

    def test_count_yield_explicit_per_unit_weight_violation(self):
        """10 each at 60 g needs 600 g but only 500 g are in the recipe."""
        outcome = validate_yield(_recipe(10, "each", each_grams=60.0), 500.0)

        assert outcome.status == YieldStatus.VIOLATION
        assert outcome.implicit_per_unit is False
        assert outcome.yield_grams == pytest.approx(600.0)

    @pytest.mark.parametrize("unit", ["Each", " each ", "EACH"])
    def test_count_yield_unit_matched_like_line_units(self, unit):
        outcome = validate_yield(_recipe(10, unit, each_grams=60.0), 500.0)

        assert outcome.status == YieldStatus.VIOLATION
        assert outcome.yield_grams == pytest.approx(600.0)
        assert _recipe(10, unit).has_count_yield

    def test_implicit_per_unit_weight_follows_ingredient_edits(self):
        item = _recipe(10, "each")
        assert validate_yield(item, 500.0).per_unit_grams == pytest.approx(50.0)
        assert validate_yield(item, 800.0).per_unit_grams == pytest.approx(80.0)

    def test_unknown_yield_unit_is_skipped(self):
        outcome = validate_yield(_recipe(3, "quart"), 10.0)
        assert outcome.status == YieldStatus.SKIPPED
        assert not outcome.is_violation

    def test_missing_yield_amount_is_skipped(self):
        assert validate_yield(_recipe(None), 10.0).status == YieldStatus.SKIPPED
        assert validate_yield(_recipe(0), 10.0).status == YieldStatus.SKIPPED


class TestEnforceYieldRules:
    """Test enforcement modes over a batch of items."""

    def test_block_collects_every_violation(self, items_by_id):
        first = _recipe(1001, key="a", name="Sauce A")
        second = _recipe(2000, key="b", name="Sauce B")
        ok = _recipe(900, key="c", name="Sauce C")

        with pytest.raises(YieldValidationError) as exc_info:
            enforce_yield_rules([first, ok, second], items_by_id, ValidationMode.BLOCK)

        assert [outcome.item_key for outcome in exc_info.value.outcomes] == ["a", "b"]
        assert "Sauce A" in str(exc_info.value)

    def test_permit_returns_violations(self, items_by_id):
        outcomes = enforce_yield_rules([_recipe(1001)], items_by_id, ValidationMode.PERMIT)
        assert outcomes[0].is_violation
        assert not outcomes[0].blocks_save

    def test_notify_accepted_proceeds(self, items_by_id):
        asked = []

        def confirm(outcome):
            asked.append(outcome.item_key)
            return True

        outcomes = enforce_yield_rules(
            [_recipe(1001, key="a"), _recipe(1002, key="b")],
            items_by_id,
            ValidationMode.NOTIFY,
            confirm,
        )
        assert asked == ["a", "b"]
        assert len(outcomes) == 2

    def test_notify_aborts_on_first_decline(self, items_by_id):
        asked = []

        def confirm(outcome):
            asked.append(outcome.item_key)
            return False

        with pytest.raises(SaveCancelled) as exc_info:
            enforce_yield_rules(
                [_recipe(1001, key="a"), _recipe(1002, key="b")],
                items_by_id,
                ValidationMode.NOTIFY,
                confirm,
            )
        assert asked == ["a"]
        assert exc_info.value.outcome.item_key == "a"

    def test_notify_without_callback_declines(self, items_by_id):
        with pytest.raises(SaveCancelled):
            enforce_yield_rules([_recipe(1001)], items_by_id, ValidationMode.NOTIFY)

    def test_valid_items_never_prompt(self, items_by_id):
        def confirm(outcome):
            raise AssertionError("no prompt expected")

        outcomes = enforce_yield_rules(
            [_recipe(1000)], items_by_id, ValidationMode.NOTIFY, confirm
        )
        assert outcomes[0].status == YieldStatus.VALID
