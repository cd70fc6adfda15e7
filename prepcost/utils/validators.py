"""
Input validation functions for the Prep Cost application.

This module provides the required-field checks run once at save time:
- Item names and lengths
- Yield amount and unit for prepped items
- Sell prices
- Recipe lines: quantity, unit legal for the child item, labor minutes
"""

from typing import Optional, Tuple

from .constants import (
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_UNIT,
    ERROR_NAME_TOO_LONG,
    ERROR_REQUIRED_FIELD,
    ITEM_KIND_PREPPED,
    ITEM_KINDS,
    LINE_TYPE_LABOR,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_QUANTITY,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_positive_number(value, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number within range.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"

    if number <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    if number > MAX_QUANTITY:
        return False, f"{field_name}: must be {MAX_QUANTITY} or less"
    return True, ""


def validate_item_data(data: dict) -> Tuple[bool, list]:  # noqa: C901
    """
    Validate item fields before they are sent to the item store.

    Args:
        data: Dictionary of item fields (name, item_kind, yield_amount, ...)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    name = data.get("name")

    is_valid, error = validate_required_string(name, "Name")
    if not is_valid:
        errors.append(error)
    elif len(name.strip()) > MAX_NAME_LENGTH:
        errors.append(f"Name: {ERROR_NAME_TOO_LONG}")

    item_kind = data.get("item_kind", ITEM_KIND_PREPPED)
    if item_kind not in ITEM_KINDS:
        errors.append(f"Item kind: must be one of {', '.join(ITEM_KINDS)}")

    if item_kind == ITEM_KIND_PREPPED:
        is_valid, error = validate_positive_number(data.get("yield_amount"), "Yield amount")
        if not is_valid:
            errors.append(error)
        # Unknown units are left to the yield check, which skips them
        is_valid, error = validate_required_string(data.get("yield_unit"), "Yield unit")
        if not is_valid:
            errors.append(error)

    for price_field in ("wholesale", "retail"):
        value = data.get(price_field)
        if value is not None:
            is_valid, error = validate_positive_number(value, price_field.capitalize())
            if not is_valid:
                errors.append(error)

    each_grams = data.get("each_grams")
    if each_grams is not None:
        is_valid, error = validate_positive_number(each_grams, "Each grams")
        if not is_valid:
            errors.append(error)

    notes = data.get("notes")
    if notes and len(notes) > MAX_NOTES_LENGTH:
        errors.append(f"Notes: must be {MAX_NOTES_LENGTH} characters or less")

    return len(errors) == 0, errors


def validate_line_data(data: dict, child=None) -> Tuple[bool, list]:
    """
    Validate recipe line fields before they are sent to the line store.

    Ingredient lines need a child item, a positive quantity and a unit the
    child can be measured in. Labor lines need a role and positive minutes.

    Args:
        data: Dictionary of line fields (line_type, child_item_id, quantity, ...)
        child: ItemState of the referenced item, if known; an unknown child
            accepts mass units only

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    # prepcost.services imports this module
    from prepcost.services.unit_converter import valid_units_for

    errors = []

    if data.get("line_type") == LINE_TYPE_LABOR:
        is_valid, error = validate_required_string(data.get("labor_role"), "Labor role")
        if not is_valid:
            errors.append(error)
        is_valid, error = validate_positive_number(data.get("minutes"), "Minutes")
        if not is_valid:
            errors.append(error)
        return len(errors) == 0, errors

    if data.get("child_item_id") is None:
        errors.append(f"Ingredient: {ERROR_REQUIRED_FIELD}")

    is_valid, error = validate_positive_number(data.get("quantity"), "Quantity")
    if not is_valid:
        errors.append(error)

    unit = data.get("unit")
    is_valid, error = validate_required_string(unit, "Unit")
    if not is_valid:
        errors.append(error)
    elif unit.strip().lower() not in valid_units_for(child):
        errors.append(f"Unit: {ERROR_INVALID_UNIT} ({unit})")

    return len(errors) == 0, errors
