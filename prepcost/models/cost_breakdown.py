"""
ItemCostBreakdown model - externally computed per-gram cost split.

Rows are written by the cost producer; this package only reads them.
"""

from sqlalchemy import Column, Float, ForeignKey, Integer

from .base import BaseModel


class ItemCostBreakdown(BaseModel):
    """
    Per-gram cost of an item, split into labor and food components.

    Attributes:
        item_id: Costed item (unique)
        labor_cost_per_gram: Labor component in dollars per gram
        food_cost_per_gram: Food component in dollars per gram
    """

    __tablename__ = "item_cost_breakdowns"

    item_id = Column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    labor_cost_per_gram = Column(Float, nullable=False, default=0.0)
    food_cost_per_gram = Column(Float, nullable=False, default=0.0)

    @property
    def total_cost_per_gram(self) -> float:
        return (self.labor_cost_per_gram or 0.0) + (self.food_cost_per_gram or 0.0)
