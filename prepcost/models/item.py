"""
Item models for recipe costing.

This module contains:
- BaseItem: Density (specific weight) record backing raw items
- Item: A raw purchased ingredient or a prepped/menu product
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import DeprecationReason


class BaseItem(BaseModel):
    """
    Base item holding the specific weight used for volume conversions.

    Attributes:
        name: Base item name (required)
        specific_weight: Density in grams per milliliter (optional)
        deprecated: When the base item was retired (None while active)
    """

    __tablename__ = "base_items"

    name = Column(String(200), nullable=False, index=True)
    specific_weight = Column(Float, nullable=True)
    deprecated = Column(DateTime, nullable=True)

    items = relationship("Item", back_populates="base_item")

    __table_args__ = (
        CheckConstraint(
            "specific_weight IS NULL OR specific_weight > 0",
            name="ck_base_item_specific_weight_positive",
        ),
    )


class Item(BaseModel):
    """
    Item model for raw ingredients and prepped products.

    Raw items reference a BaseItem for density; prepped items declare a
    yield and carry sell prices. Items are soft-retired through the
    deprecated/deprecation_reason pair and never hard-deleted by a save.

    Attributes:
        name: Display name (required)
        item_kind: "raw" or "prepped"
        is_menu_item: Prepped item sold on the menu
        base_item_id: Density record (raw items)
        yield_amount: Declared output amount (prepped items)
        yield_unit: "g", "kg" or "each" (prepped items)
        each_grams: Weight of one unit, for count-based purchasing or yield
        wholesale: Wholesale price
        retail: Retail price
        notes: Free-form notes
        deprecated: When the item was retired (None while active)
        deprecation_reason: "direct" or "indirect" when retired
    """

    __tablename__ = "items"

    name = Column(String(200), nullable=False, index=True)
    item_kind = Column(String(20), nullable=False, default="raw")
    is_menu_item = Column(Boolean, nullable=False, default=False)

    # Raw item fields
    base_item_id = Column(
        Integer, ForeignKey("base_items.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Prepped item fields
    yield_amount = Column(Float, nullable=True)
    yield_unit = Column(String(20), nullable=True)
    wholesale = Column(Float, nullable=True)
    retail = Column(Float, nullable=True)

    # Common fields
    each_grams = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    deprecated = Column(DateTime, nullable=True)
    deprecation_reason = Column(String(20), nullable=True)

    base_item = relationship("BaseItem", back_populates="items", lazy="joined")
    recipe_lines = relationship(
        "RecipeLine",
        foreign_keys="RecipeLine.parent_item_id",
        back_populates="parent_item",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("item_kind IN ('raw', 'prepped')", name="ck_item_kind"),
        CheckConstraint("each_grams IS NULL OR each_grams > 0", name="ck_item_each_grams_positive"),
        Index("idx_item_kind", "item_kind"),
    )

    @property
    def deprecation_state(self) -> DeprecationReason:
        """Deprecation state, NONE for active items."""
        if self.deprecated is None:
            return DeprecationReason.NONE
        return DeprecationReason(self.deprecation_reason or DeprecationReason.DIRECT.value)

    @property
    def specific_weight(self):
        """Density of the backing base item, if any."""
        if self.base_item is None:
            return None
        return self.base_item.specific_weight
