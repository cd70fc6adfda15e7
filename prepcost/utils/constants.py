"""
Constants and enumerations for the Prep Cost application.

This module defines all system-wide constants including:
- Unit lists (mass, volume, count) in presentation order
- Item kinds, line types and share levels
- Conversion constants used by the percentage calculator
- Application metadata
"""

from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Prep Cost"
DATABASE_FILENAME = "prepcost.db"

# ============================================================================
# Unit Types
# ============================================================================

# Mass units, in the order they are offered for selection
MASS_UNITS_ORDERED: List[str] = ["g", "kg", "oz", "lb"]

# Non-mass units, in the order they are offered for selection
NON_MASS_UNITS_ORDERED: List[str] = [
    "floz",  # Fluid ounce
    "ml",  # Milliliter
    "liter",  # Liter
    "gallon",  # US gallon
    "each",  # Individual items
]

# Count unit
EACH_UNIT = "each"

UNIT_TYPE_MASS = "mass"
UNIT_TYPE_VOLUME = "volume"
UNIT_TYPE_COUNT = "count"
UNIT_TYPE_UNKNOWN = "unknown"

# ============================================================================
# Items and Recipe Lines
# ============================================================================

ITEM_KIND_RAW = "raw"
ITEM_KIND_PREPPED = "prepped"
ITEM_KINDS: List[str] = [ITEM_KIND_RAW, ITEM_KIND_PREPPED]

LINE_TYPE_INGREDIENT = "ingredient"
LINE_TYPE_LABOR = "labor"

# Vendor selection for an ingredient line ("lowest" or a vendor product id)
SPECIFIC_CHILD_LOWEST = "lowest"

# ============================================================================
# Sharing
# ============================================================================

# Level required to change an item; "view" and "hide" are read-only
SHARE_EDIT = "edit"

# ============================================================================
# Pricing
# ============================================================================

GRAMS_PER_KILOGRAM = 1000.0
MILLILITERS_PER_LITER = 1000.0

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_NOTES_LENGTH = 2000
MAX_QUANTITY = 999999.99

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_NAME_TOO_LONG = f"Name must be {MAX_NAME_LENGTH} characters or less"
ERROR_INVALID_UNIT = "Unit is not valid for this ingredient"
ERROR_SAVE_FAILED = "Failed to save changes. Your edits were not applied; please try again."
