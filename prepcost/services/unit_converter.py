"""
Unit conversion system for Prep Cost.

This module provides:
- Standard conversion tables (mass to grams, volume to liters)
- Unit type detection
- Gram normalization of (unit, quantity, item) triples
- The set of units a child item can legally be measured in

Conversion Strategy:
- Mass units convert through grams (base unit)
- Volume units convert through liters, then to grams via the item's
  specific weight (g/ml); only raw items carry a specific weight
- "each" converts through the item's own per-unit weight

Nothing in this module raises for bad input: an unknown unit or an
illegal unit/item combination yields None, which callers treat as
"cannot convert" (zero contribution when summing).
"""

from typing import Dict, List, Mapping, Optional

from prepcost.utils.constants import (
    EACH_UNIT,
    ITEM_KIND_RAW,
    MASS_UNITS_ORDERED,
    MILLILITERS_PER_LITER,
    NON_MASS_UNITS_ORDERED,
    UNIT_TYPE_COUNT,
    UNIT_TYPE_MASS,
    UNIT_TYPE_UNKNOWN,
    UNIT_TYPE_VOLUME,
)


# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Mass conversions to grams (base unit)
MASS_TO_GRAMS: Dict[str, float] = {
    "g": 1.0,
    "kg": 1000.0,
    "lb": 453.592,
    "oz": 28.3495,
}

# Volume conversions to liters
VOLUME_TO_LITERS: Dict[str, float] = {
    "gallon": 3.78541,
    "liter": 1.0,
    "floz": 0.0295735,
    "ml": 0.001,
}

COUNT_UNITS = (EACH_UNIT,)


# ============================================================================
# Unit Type Detection
# ============================================================================


def _normalize(unit: Optional[str]) -> str:
    return unit.strip().lower() if unit else ""


def get_mass_multiplier(unit: Optional[str]) -> Optional[float]:
    """
    Grams per unit for a mass unit.

    Args:
        unit: Unit string (e.g., "kg", "oz")

    Returns:
        Multiplier, or None if the unit is not a mass unit
    """
    return MASS_TO_GRAMS.get(_normalize(unit))


def get_liters_per_unit(unit: Optional[str]) -> Optional[float]:
    """
    Liters per unit for a volume unit.

    Args:
        unit: Unit string (e.g., "gallon", "floz")

    Returns:
        Multiplier, or None if the unit is not a volume unit
    """
    return VOLUME_TO_LITERS.get(_normalize(unit))


def is_mass_unit(unit: Optional[str]) -> bool:
    return _normalize(unit) in MASS_TO_GRAMS


def is_volume_unit(unit: Optional[str]) -> bool:
    return _normalize(unit) in VOLUME_TO_LITERS


def is_count_unit(unit: Optional[str]) -> bool:
    return _normalize(unit) in COUNT_UNITS


def get_unit_type(unit: Optional[str]) -> str:
    """
    Determine the type of a unit.

    Args:
        unit: Unit string

    Returns:
        Unit type: "mass", "volume", "count", or "unknown"
    """
    if is_mass_unit(unit):
        return UNIT_TYPE_MASS
    elif is_volume_unit(unit):
        return UNIT_TYPE_VOLUME
    elif is_count_unit(unit):
        return UNIT_TYPE_COUNT

    return UNIT_TYPE_UNKNOWN


# ============================================================================
# Gram Normalization
# ============================================================================


def to_grams(
    unit: Optional[str],
    quantity: Optional[float],
    item_id,
    items_by_id: Mapping,
) -> Optional[float]:
    """
    Convert a quantity of a referenced item to grams.

    Args:
        unit: Unit of the quantity
        quantity: Amount in ``unit``
        item_id: Identity of the referenced item
        items_by_id: Mapping of item identity to ItemState; consulted for the
            item's kind, per-unit weight (each_grams) and specific weight

    Returns:
        Grams, or None when the combination cannot be converted:
        - unknown unit or missing quantity
        - "each" on an item without a positive per-unit weight
        - a volume unit on a prepped item, or on a raw item with no density

    Example:
        >>> to_grams("kg", 2, 7, items)
        2000.0
    """
    if quantity is None:
        return None

    multiplier = get_mass_multiplier(unit)
    if multiplier is not None:
        return quantity * multiplier

    item = items_by_id.get(item_id)
    if item is None:
        return None

    if is_count_unit(unit):
        if not item.each_grams or item.each_grams <= 0:
            return None
        return quantity * item.each_grams

    liters_per_unit = get_liters_per_unit(unit)
    if liters_per_unit is None:
        return None

    # Volume units are only meaningful for raw items backed by a density
    if item.item_kind != ITEM_KIND_RAW:
        return None
    if not item.specific_weight or item.specific_weight <= 0:
        return None

    return quantity * liters_per_unit * MILLILITERS_PER_LITER * item.specific_weight


def valid_units_for(item) -> List[str]:
    """
    Units an ingredient line may use for the given child item.

    Mass units are always valid; volume units require a raw item with a
    specific weight; "each" requires a positive per-unit weight.

    Args:
        item: Child ItemState (None returns mass units only)

    Returns:
        Unit symbols in presentation order
    """
    units = list(MASS_UNITS_ORDERED)
    if item is None:
        return units

    for unit in NON_MASS_UNITS_ORDERED:
        if unit == EACH_UNIT:
            if item.each_grams and item.each_grams > 0:
                units.append(unit)
        elif item.item_kind == ITEM_KIND_RAW and item.specific_weight:
            units.append(unit)

    return units


def format_grams(grams: Optional[float], precision: int = 2) -> str:
    """
    Format a gram amount for display.

    Returns:
        Formatted string (e.g., "1000 g", "12.5 g"), or "n/a" for None
    """
    if grams is None:
        return "n/a"
    return f"{round(grams, precision):g} g"
