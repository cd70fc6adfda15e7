"""Data Transfer Objects for the edit session and the save pipeline.

Edit state is immutable: every edit produces new ItemState / line objects
via dataclasses.replace, and collections are tuples. Recipe lines are a
tagged variant discriminated by ``line_type``:

    IngredientLine(line_type="ingredient")  child item, quantity, unit
    LaborLine(line_type="labor")            role name, minutes

Identity:
    id   - persisted identity assigned by the store (None before first save)
    key  - client-assigned identity, stable for the life of the edit session
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from prepcost.models.enums import DeprecationReason, SaveState
from prepcost.services.unit_converter import is_count_unit
from prepcost.utils.constants import (
    ITEM_KIND_PREPPED,
    LINE_TYPE_INGREDIENT,
    LINE_TYPE_LABOR,
)
from prepcost.utils.datetime_utils import utc_now


def new_key() -> str:
    """Return a fresh client-side identity."""
    return f"new-{uuid.uuid4().hex}"


# ============================================================================
# Recipe Lines
# ============================================================================


@dataclass(frozen=True)
class IngredientLine:
    """Ingredient line: an amount of a child item.

    Attributes:
        child_item_id: Referenced item (persisted identity)
        quantity: Amount in ``unit``
        unit: Unit symbol (mass, volume or "each")
        specific_child: "lowest" or a pinned vendor product id
    """

    id: Optional[int] = None
    key: str = field(default_factory=new_key)
    child_item_id: Optional[int] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    specific_child: Optional[str] = None
    is_new: bool = False
    is_marked_for_deletion: bool = False
    line_type: str = field(default=LINE_TYPE_INGREDIENT, init=False)

    SEMANTIC_FIELDS = ("child_item_id", "quantity", "unit", "specific_child")

    def is_filled_in(self) -> bool:
        """Child reference, quantity and unit have all been entered."""
        return self.child_item_id is not None and self.quantity is not None and bool(self.unit)

    def is_complete(self) -> bool:
        """Filled in with a positive quantity."""
        return self.is_filled_in() and self.quantity > 0

    def to_fields(self) -> Dict[str, Any]:
        return {
            "line_type": self.line_type,
            "child_item_id": self.child_item_id,
            "quantity": self.quantity,
            "unit": self.unit,
            "specific_child": self.specific_child,
        }


@dataclass(frozen=True)
class LaborLine:
    """Labor line: minutes of a labor role."""

    id: Optional[int] = None
    key: str = field(default_factory=new_key)
    labor_role: Optional[str] = None
    minutes: Optional[float] = None
    is_new: bool = False
    is_marked_for_deletion: bool = False
    line_type: str = field(default=LINE_TYPE_LABOR, init=False)

    SEMANTIC_FIELDS = ("labor_role", "minutes")

    def is_filled_in(self) -> bool:
        return bool(self.labor_role) and self.minutes is not None

    def is_complete(self) -> bool:
        """Role and a positive duration are both set."""
        return self.is_filled_in() and self.minutes > 0

    def to_fields(self) -> Dict[str, Any]:
        return {
            "line_type": self.line_type,
            "labor_role": self.labor_role,
            "minutes": self.minutes,
        }


RecipeLine = Union[IngredientLine, LaborLine]


def line_from_fields(data: Dict[str, Any]) -> RecipeLine:
    """Build the right line variant from a store row dictionary."""
    if data.get("line_type") == LINE_TYPE_LABOR:
        return LaborLine(
            id=data.get("id"),
            key=str(data["id"]) if data.get("id") is not None else new_key(),
            labor_role=data.get("labor_role"),
            minutes=data.get("minutes"),
        )
    return IngredientLine(
        id=data.get("id"),
        key=str(data["id"]) if data.get("id") is not None else new_key(),
        child_item_id=data.get("child_item_id"),
        quantity=data.get("quantity"),
        unit=data.get("unit"),
        specific_child=data.get("specific_child"),
    )


# ============================================================================
# Items
# ============================================================================


@dataclass(frozen=True)
class ItemState:
    """One item as held by the edit session.

    Attributes:
        name: Display name
        item_kind: "raw" or "prepped"
        is_menu_item: Prepped item sold on the menu (the item's type flag)
        base_item_id: Density record (raw items)
        specific_weight: Density of the base item in g/ml (raw items)
        yield_amount: Declared output amount (prepped items)
        yield_unit: "g", "kg" or "each" (prepped items)
        each_grams: Weight of one unit
        wholesale: Wholesale price
        retail: Retail price
        notes: Free-form notes
        deprecation_reason: NONE, DIRECT or INDIRECT
        lines: Recipe lines, in display order
    """

    id: Optional[int] = None
    key: str = field(default_factory=new_key)
    name: str = ""
    item_kind: str = ITEM_KIND_PREPPED
    is_menu_item: bool = False
    base_item_id: Optional[int] = None
    specific_weight: Optional[float] = None
    yield_amount: Optional[float] = None
    yield_unit: Optional[str] = None
    each_grams: Optional[float] = None
    wholesale: Optional[float] = None
    retail: Optional[float] = None
    notes: Optional[str] = None
    deprecation_reason: DeprecationReason = DeprecationReason.NONE
    lines: Tuple[RecipeLine, ...] = ()
    is_new: bool = False
    is_marked_for_deletion: bool = False

    @property
    def identity(self):
        """Persisted id when there is one, otherwise the client key."""
        return self.id if self.id is not None else self.key

    @property
    def has_count_yield(self) -> bool:
        return is_count_unit(self.yield_unit)

    @property
    def is_selectable(self) -> bool:
        """Directly retired items are excluded from new selection."""
        return self.deprecation_reason != DeprecationReason.DIRECT

    def is_empty_placeholder(self) -> bool:
        """A freshly added item the user never filled in."""
        return self.name.strip() == "" and not self.yield_amount

    def scalar_fields(self) -> Dict[str, Any]:
        """Item fields compared by the differ and pushed on update."""
        fields = {
            "name": self.name,
            "is_menu_item": self.is_menu_item,
            "yield_amount": self.yield_amount,
            "yield_unit": self.yield_unit,
            "wholesale": self.wholesale,
            "retail": self.retail,
            "notes": self.notes,
        }
        if self.has_count_yield:
            fields["each_grams"] = self.each_grams
        return fields

    def to_fields(self) -> Dict[str, Any]:
        """All persisted fields, for item creation."""
        fields = self.scalar_fields()
        fields.update(
            {
                "item_kind": self.item_kind,
                "base_item_id": self.base_item_id,
                "each_grams": self.each_grams,
            }
        )
        return fields


def selectable_items(items) -> List[ItemState]:
    """Items offered as ingredient choices (no directly retired items)."""
    return [item for item in items if item.is_selectable]


# ============================================================================
# Costs
# ============================================================================


@dataclass(frozen=True)
class CostBreakdown:
    """Per-gram cost split produced by the external cost service."""

    labor_cost_per_gram: float = 0.0
    food_cost_per_gram: float = 0.0

    @property
    def total_cost_per_gram(self) -> float:
        return self.labor_cost_per_gram + self.food_cost_per_gram


@dataclass(frozen=True)
class CostPercentages:
    """Labor, cost-of-goods and combined percentages of a price.

    Each value is None when it is not applicable.
    """

    labor: Optional[float] = None
    cog: Optional[float] = None
    lcog: Optional[float] = None

    @property
    def is_applicable(self) -> bool:
        return self.lcog is not None


# ============================================================================
# Edit Snapshot
# ============================================================================


@dataclass(frozen=True)
class EditSnapshot:
    """Deep copy of the item collection taken when an edit session opens."""

    items: Tuple[ItemState, ...]
    taken_at: datetime = field(default_factory=utc_now)

    @classmethod
    def take(cls, items) -> "EditSnapshot":
        return cls(items=tuple(copy.deepcopy(list(items))))

    def find_item(self, item_id) -> Optional[ItemState]:
        if item_id is None:
            return None
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def find_line(self, item_id, line_id) -> Optional[RecipeLine]:
        item = self.find_item(item_id)
        if item is None or line_id is None:
            return None
        for line in item.lines:
            if line.id == line_id:
                return line
        return None


# ============================================================================
# Operation Batch
# ============================================================================


@dataclass(frozen=True)
class LineCreate:
    """Create ``line`` under a parent item.

    parent_item_id is None until the orchestrator has created a new parent;
    parent_key always identifies the parent within the session.
    """

    parent_item_id: Optional[int]
    parent_key: str
    line: RecipeLine

    def to_fields(self) -> Dict[str, Any]:
        fields = self.line.to_fields()
        fields["parent_item_id"] = self.parent_item_id
        return fields


@dataclass(frozen=True)
class LineUpdate:
    line_id: Optional[int]
    parent_item_id: int
    line: RecipeLine

    def to_fields(self) -> Dict[str, Any]:
        fields = self.line.to_fields()
        fields["parent_item_id"] = self.parent_item_id
        return fields


@dataclass(frozen=True)
class LineDelete:
    line_id: int
    parent_item_id: int


@dataclass
class RecipeDiff:
    """Minimal operation batch turning the baseline into the edited state."""

    line_creates: List[LineCreate] = field(default_factory=list)
    line_updates: List[LineUpdate] = field(default_factory=list)
    line_deletes: List[LineDelete] = field(default_factory=list)
    item_field_updates: List[ItemState] = field(default_factory=list)
    new_items: List[ItemState] = field(default_factory=list)

    @property
    def has_line_changes(self) -> bool:
        return bool(self.line_creates or self.line_updates or self.line_deletes)

    @property
    def is_empty(self) -> bool:
        return not (self.has_line_changes or self.item_field_updates or self.new_items)


@dataclass
class SaveResult:
    """Outcome of a completed save run."""

    state: SaveState
    items: Tuple[ItemState, ...] = ()
    breakdowns: Dict[Any, CostBreakdown] = field(default_factory=dict)
    created_item_ids: List[int] = field(default_factory=list)
    deprecated_item_ids: List[int] = field(default_factory=list)
    diff: Optional[RecipeDiff] = None
