"""
Enumerations for recipe costing.

This module contains enums used across the engine:
- ValidationMode: How a yield violation is enforced at save time
- DeprecationReason: Why an item is retired
- PricingBasis: How a sell price is interpreted
- SaveState: Stages of one save run
"""

from enum import Enum


class ValidationMode(str, Enum):
    """
    Enforcement mode for the output-cannot-exceed-input yield rule.

    Values:
        BLOCK: A violation aborts the whole save
        NOTIFY: A violation asks the user whether to continue
        PERMIT: A violation is ignored
    """

    BLOCK = "block"
    NOTIFY = "notify"
    PERMIT = "permit"


class DeprecationReason(str, Enum):
    """
    Deprecation state of an item.

    Values:
        NONE: Active item
        DIRECT: The item itself was retired; excluded from new selection
        INDIRECT: The item depends on a retired item; visible but flagged
    """

    NONE = "none"
    DIRECT = "direct"
    INDIRECT = "indirect"


class PricingBasis(str, Enum):
    """Unit a wholesale/retail price is quoted in."""

    PER_KG = "per_kg"
    PER_EACH = "per_each"


class SaveState(str, Enum):
    """States of a save run, in execution order."""

    VALIDATING = "validating"
    DIFFING = "diffing"
    APPLYING_LINES = "applying_lines"
    APPLYING_ITEM_FIELDS = "applying_item_fields"
    DEPRECATING = "deprecating"
    REFETCHING = "refetching"
    DONE = "done"
    ABORTED = "aborted"
    FAILED_ROLLBACK = "failed_rollback"
