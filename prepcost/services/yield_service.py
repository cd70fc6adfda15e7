"""
Yield Service - output-cannot-exceed-input checks for prepped items.

This service provides:
- total_grams: ingredient mass of a recipe, summed over convertible lines
- validate_yield: compare an item's declared yield against that mass
- enforce_yield_rules: apply the configured validation mode to a batch of
  items before any remote write happens

Validation modes:
    block  - any violation raises YieldValidationError
    notify - each violation is offered to a confirm callback; the first
             "no" raises SaveCancelled
    permit - violations are logged and ignored
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Optional

from prepcost.models.enums import ValidationMode
from prepcost.services.dto import IngredientLine, ItemState
from prepcost.services.exceptions import SaveCancelled, YieldValidationError
from prepcost.services.logging_utils import get_service_logger, log_operation
from prepcost.services.unit_converter import format_grams, get_mass_multiplier, to_grams

logger = get_service_logger(__name__)

# Float noise allowed when comparing yield and ingredient mass
GRAM_TOLERANCE = 1e-9


class YieldStatus(str, Enum):
    VALID = "valid"
    VIOLATION = "violation"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class YieldOutcome:
    """Result of checking one item's yield.

    Attributes:
        item_key: Session identity of the checked item
        item_name: Display name, for messages
        status: VALID, VIOLATION or SKIPPED (cannot validate)
        mode: Validation mode the outcome was evaluated under
        total_grams: Ingredient mass of the recipe
        yield_grams: Declared output in grams (None when skipped)
        per_unit_grams: Effective per-unit weight for count yields
        implicit_per_unit: True when per_unit_grams was derived from the total
    """

    item_key: str
    item_name: str
    status: YieldStatus
    mode: ValidationMode = ValidationMode.BLOCK
    total_grams: float = 0.0
    yield_grams: Optional[float] = None
    per_unit_grams: Optional[float] = None
    implicit_per_unit: bool = False

    @property
    def is_violation(self) -> bool:
        return self.status == YieldStatus.VIOLATION

    @property
    def blocks_save(self) -> bool:
        return self.is_violation and self.mode == ValidationMode.BLOCK

    @property
    def needs_confirmation(self) -> bool:
        return self.is_violation and self.mode == ValidationMode.NOTIFY

    @property
    def message(self) -> str:
        name = self.item_name or "Unnamed item"
        if self.status == YieldStatus.SKIPPED:
            return f"{name}: yield could not be validated"
        if self.status == YieldStatus.VALID:
            return f"{name}: yield is within ingredient total"
        return (
            f"{name}: yield {format_grams(self.yield_grams)} exceeds "
            f"ingredients {format_grams(self.total_grams)}"
        )


def total_grams(lines: Iterable, items_by_id: Mapping) -> float:
    """
    Total ingredient mass of a recipe.

    Sums to_grams over ingredient lines that are not marked for deletion and
    have child, quantity and unit set. Labor lines and lines that cannot be
    converted contribute nothing.

    Args:
        lines: Recipe lines of one item
        items_by_id: Mapping of item identity to ItemState for child lookups

    Returns:
        Total grams (0.0 for an empty recipe)
    """
    total = 0.0
    for line in lines:
        if not isinstance(line, IngredientLine):
            continue
        if line.is_marked_for_deletion or not line.is_complete():
            continue
        grams = to_grams(line.unit, line.quantity, line.child_item_id, items_by_id)
        if grams is None:
            logger.debug(
                f"Skipping unconvertible line {line.key}: {line.quantity} {line.unit} "
                f"of item {line.child_item_id}"
            )
            continue
        total += grams
    return total


def validate_yield(
    item: ItemState,
    total_ingredient_grams: float,
    mode: ValidationMode = ValidationMode.BLOCK,
) -> YieldOutcome:
    """
    Check that an item's declared yield does not exceed its ingredient mass.

    Count yields ("each") use the explicit per-unit weight when set,
    otherwise total_ingredient_grams / yield_amount. Mass yields are
    converted to grams. An unknown yield unit or a missing/non-positive
    yield amount cannot be validated and returns SKIPPED.

    Args:
        item: Item to check
        total_ingredient_grams: Result of total_grams for the item's lines
        mode: Validation mode recorded on the outcome

    Returns:
        YieldOutcome
    """
    base = dict(
        item_key=item.key,
        item_name=item.name,
        mode=ValidationMode(mode),
        total_grams=total_ingredient_grams,
    )

    if not item.yield_amount or item.yield_amount <= 0:
        return YieldOutcome(status=YieldStatus.SKIPPED, **base)

    if item.has_count_yield:
        if item.each_grams:
            per_unit = item.each_grams
            yield_grams = per_unit * item.yield_amount
            implicit = False
        else:
            per_unit = total_ingredient_grams / item.yield_amount
            yield_grams = total_ingredient_grams
            implicit = True
        status = (
            YieldStatus.VALID
            if yield_grams <= total_ingredient_grams + GRAM_TOLERANCE
            else YieldStatus.VIOLATION
        )
        return YieldOutcome(
            status=status,
            yield_grams=yield_grams,
            per_unit_grams=per_unit,
            implicit_per_unit=implicit,
            **base,
        )

    multiplier = get_mass_multiplier(item.yield_unit)
    if multiplier is None:
        return YieldOutcome(status=YieldStatus.SKIPPED, **base)

    yield_grams = item.yield_amount * multiplier
    status = (
        YieldStatus.VALID
        if yield_grams <= total_ingredient_grams + GRAM_TOLERANCE
        else YieldStatus.VIOLATION
    )
    return YieldOutcome(status=status, yield_grams=yield_grams, **base)


def enforce_yield_rules(
    items: Iterable[ItemState],
    items_by_id: Mapping,
    mode: ValidationMode,
    confirm: Optional[Callable[[YieldOutcome], bool]] = None,
) -> List[YieldOutcome]:
    """
    Validate every item once and apply the validation mode.

    Runs synchronously and performs no writes, so a save that fails here
    has no side effects.

    Args:
        items: Items about to be saved
        items_by_id: Mapping used to resolve ingredient lines to grams
        mode: Validation mode from the settings service
        confirm: Callback asked about each violation in notify mode; a missing
            callback declines

    Returns:
        Outcomes for all items, in input order

    Raises:
        YieldValidationError: Block mode and at least one violation
        SaveCancelled: Notify mode and a violation was declined
    """
    mode = ValidationMode(mode)
    outcomes = []
    for item in items:
        outcome = validate_yield(item, total_grams(item.lines, items_by_id), mode)
        outcomes.append(outcome)
        if not outcome.is_violation:
            continue

        log_operation(
            logger,
            operation="validate_yield",
            outcome="violation",
            level=logging.WARNING,
            item_key=item.key,
            item_name=item.name,
            yield_grams=outcome.yield_grams,
            total_grams=outcome.total_grams,
            mode=mode.value,
        )

        if mode == ValidationMode.NOTIFY:
            accepted = confirm(outcome) if confirm is not None else False
            if not accepted:
                raise SaveCancelled(outcome)

    violations = [outcome for outcome in outcomes if outcome.blocks_save]
    if violations:
        raise YieldValidationError(violations)

    return outcomes
