"""
RecipeLine model - one row of an item's bill of materials.

A line is either an ingredient line (child item, quantity, unit, vendor
selection) or a labor line (role and minutes), discriminated by line_type.
"""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class RecipeLine(BaseModel):
    """
    Recipe line owned by a parent item.

    Attributes:
        parent_item_id: Owning item
        line_type: "ingredient" or "labor"
        child_item_id: Referenced item (ingredient lines)
        quantity: Amount of the child item (ingredient lines)
        unit: Unit of the quantity (ingredient lines)
        specific_child: "lowest" or a pinned vendor product id (ingredient lines)
        labor_role: Labor role name (labor lines)
        minutes: Labor duration in minutes (labor lines)
    """

    __tablename__ = "recipe_lines"

    parent_item_id = Column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_type = Column(String(20), nullable=False)

    # Ingredient line fields
    child_item_id = Column(Integer, ForeignKey("items.id"), nullable=True, index=True)
    quantity = Column(Float, nullable=True)
    unit = Column(String(20), nullable=True)
    specific_child = Column(String(64), nullable=True)

    # Labor line fields
    labor_role = Column(String(100), nullable=True)
    minutes = Column(Float, nullable=True)

    parent_item = relationship(
        "Item", foreign_keys=[parent_item_id], back_populates="recipe_lines"
    )
    child_item = relationship("Item", foreign_keys=[child_item_id], lazy="select")

    __table_args__ = (
        CheckConstraint("line_type IN ('ingredient', 'labor')", name="ck_recipe_line_type"),
        CheckConstraint("quantity IS NULL OR quantity >= 0", name="ck_recipe_line_quantity"),
        Index("idx_recipe_line_parent_type", "parent_item_id", "line_type"),
    )
