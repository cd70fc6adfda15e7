"""
Settings models.

This module contains:
- ValidationSetting: Persisted yield validation mode
- ResourceShare: Share level (edit/view/hide) granted on an item
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String

from .base import BaseModel


class ValidationSetting(BaseModel):
    """Single-row table holding the yield validation mode."""

    __tablename__ = "validation_settings"

    validation_mode = Column(String(10), nullable=False, default="block")

    __table_args__ = (
        CheckConstraint(
            "validation_mode IN ('block', 'notify', 'permit')", name="ck_validation_mode"
        ),
    )


class ResourceShare(BaseModel):
    """
    Share level granted on an item.

    Items without a row are fully editable.
    """

    __tablename__ = "resource_shares"

    item_id = Column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    share_level = Column(String(10), nullable=False, default="edit")

    __table_args__ = (
        CheckConstraint("share_level IN ('edit', 'view', 'hide')", name="ck_share_level"),
    )
