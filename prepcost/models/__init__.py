"""
Database models package.

This package contains all SQLAlchemy ORM models for the bundled store.
"""

from .base import Base, BaseModel
from .item import BaseItem, Item
from .recipe_line import RecipeLine
from .cost_breakdown import ItemCostBreakdown
from .settings import ValidationSetting, ResourceShare
from .enums import ValidationMode, DeprecationReason, PricingBasis, SaveState

__all__ = [
    "Base",
    "BaseModel",
    "BaseItem",
    "Item",
    "RecipeLine",
    "ItemCostBreakdown",
    "ValidationSetting",
    "ResourceShare",
    "ValidationMode",
    "DeprecationReason",
    "PricingBasis",
    "SaveState",
]
