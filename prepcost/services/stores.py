"""
Store interfaces and the bundled SQLAlchemy implementations.

The save pipeline talks to its collaborators only through the protocols
below. The Sql* classes implement them over the local SQLite database using
session_scope(); any other backend (a REST client, a test fake) can be
plugged in instead.

Protocols:
- ItemStore: create / update / deprecate / delete / list items
- RecipeLineStore: atomic line batch, lines by parent item
- CostService: per-gram costs and their labor/food breakdown
- ValidationSettingsService: the configured yield validation mode
- ChangeHistoryRecorder: ids of items changed by a save
- PermissionLookup: share level granted on an item
"""

from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from prepcost.models import (
    Item,
    ItemCostBreakdown,
    RecipeLine,
    ResourceShare,
    ValidationSetting,
)
from prepcost.models.enums import DeprecationReason, ValidationMode
from prepcost.services.database import session_scope
from prepcost.services.dto import (
    CostBreakdown,
    ItemState,
    LineCreate,
    LineDelete,
    LineUpdate,
    line_from_fields,
)
from prepcost.services.exceptions import DatabaseError, ItemNotFound, ServiceError, ValidationError
from prepcost.services.logging_utils import get_service_logger, log_operation
from prepcost.utils.config import get_config
from prepcost.utils.constants import ITEM_KIND_PREPPED, LINE_TYPE_INGREDIENT, SHARE_EDIT
from prepcost.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)

ITEM_WRITABLE_FIELDS = (
    "name",
    "item_kind",
    "is_menu_item",
    "base_item_id",
    "yield_amount",
    "yield_unit",
    "each_grams",
    "wholesale",
    "retail",
    "notes",
)

LINE_COLUMNS = (
    "parent_item_id",
    "line_type",
    "child_item_id",
    "quantity",
    "unit",
    "specific_child",
    "labor_role",
    "minutes",
)


# ============================================================================
# Protocol Definitions
# ============================================================================


class ItemStore(Protocol):
    """Persistence of items."""

    def create(self, fields: dict) -> ItemState:
        """Create an item and return it with its assigned id."""
        ...

    def update(self, item_id, fields: dict) -> None:
        ...

    def deprecate(self, item_id) -> List:
        """Soft-retire an item; returns the ids whose deprecation changed."""
        ...

    def delete(self, item_id) -> None:
        """Hard delete; only used to roll back items created by a failed save."""
        ...

    def list(self) -> List[ItemState]:
        ...


class RecipeLineStore(Protocol):
    """Persistence of recipe lines."""

    def batch(
        self,
        creates: Sequence[LineCreate],
        updates: Sequence[LineUpdate],
        deletes: Sequence[LineDelete],
    ) -> None:
        """Apply all operations atomically; a failure leaves no partial writes."""
        ...

    def get_by_item_ids(self, item_ids: Iterable) -> Dict:
        """Map each requested item id to its lines."""
        ...


class CostService(Protocol):
    """Authoritative, cycle-safe recursive cost computation."""

    def get_costs(self, item_ids: Iterable) -> Dict:
        ...

    def get_costs_breakdown(self) -> Dict:
        ...


class ValidationSettingsService(Protocol):
    def get(self) -> ValidationMode:
        ...


class ChangeHistoryRecorder(Protocol):
    def record(self, item_ids: Iterable) -> None:
        ...


class PermissionLookup(Protocol):
    def share_level(self, item_id) -> str:
        ...


# ============================================================================
# Record Conversion
# ============================================================================


def item_state_from_record(record: Item, lines: Sequence = ()) -> ItemState:
    """Build an ItemState from an Item row."""
    return ItemState(
        id=record.id,
        key=str(record.id),
        name=record.name,
        item_kind=record.item_kind,
        is_menu_item=bool(record.is_menu_item),
        base_item_id=record.base_item_id,
        specific_weight=record.specific_weight,
        yield_amount=record.yield_amount,
        yield_unit=record.yield_unit,
        each_grams=record.each_grams,
        wholesale=record.wholesale,
        retail=record.retail,
        notes=record.notes,
        deprecation_reason=record.deprecation_state,
        lines=tuple(lines),
    )


def _item_columns(fields: dict) -> dict:
    return {name: fields[name] for name in ITEM_WRITABLE_FIELDS if name in fields}


def _line_columns(fields: dict) -> dict:
    # Columns of the other variant are cleared so a type change leaves no residue
    return {name: fields.get(name) for name in LINE_COLUMNS}


# ============================================================================
# SQLAlchemy Implementations
# ============================================================================


class SqlItemStore:
    """ItemStore over the local database."""

    def create(self, fields: dict) -> ItemState:
        try:
            with session_scope() as session:
                record = Item(**_item_columns(fields))
                session.add(record)
                session.flush()
                session.refresh(record)
                state = item_state_from_record(record)
            log_operation(logger, operation="create_item", outcome="success", item_id=state.id)
            return state
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to create item", e)

    def update(self, item_id, fields: dict) -> None:
        try:
            with session_scope() as session:
                record = session.get(Item, item_id)
                if record is None:
                    raise ItemNotFound(item_id)
                record.update_from_dict(_item_columns(fields))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to update item {item_id}", e)

    def deprecate(self, item_id) -> List:
        """
        Retire an item directly and its dependents indirectly.

        Every active prepped item that uses the retired item, directly or
        through other prepped items, is marked INDIRECT. A visited set keeps
        the walk finite on cyclic data; cycles are not reported here.

        Returns:
            Ids of all items whose deprecation state changed
        """
        try:
            with session_scope() as session:
                record = session.get(Item, item_id)
                if record is None:
                    raise ItemNotFound(item_id)

                now = utc_now()
                record.deprecated = now
                record.deprecation_reason = DeprecationReason.DIRECT.value
                affected = [record.id]

                visited = {record.id}
                frontier = [record.id]
                while frontier:
                    parent_ids = [
                        row.parent_item_id
                        for row in session.query(RecipeLine.parent_item_id)
                        .filter(
                            RecipeLine.line_type == LINE_TYPE_INGREDIENT,
                            RecipeLine.child_item_id.in_(frontier),
                        )
                        .distinct()
                    ]
                    frontier = []
                    for parent_id in parent_ids:
                        if parent_id in visited:
                            continue
                        visited.add(parent_id)
                        frontier.append(parent_id)
                        parent = session.get(Item, parent_id)
                        if parent.item_kind == ITEM_KIND_PREPPED and parent.deprecated is None:
                            parent.deprecated = now
                            parent.deprecation_reason = DeprecationReason.INDIRECT.value
                            affected.append(parent.id)

            log_operation(
                logger,
                operation="deprecate_item",
                outcome="success",
                item_id=item_id,
                affected_items=affected,
            )
            return affected
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to deprecate item {item_id}", e)

    def delete(self, item_id) -> None:
        try:
            with session_scope() as session:
                record = session.get(Item, item_id)
                if record is None:
                    raise ItemNotFound(item_id)
                session.delete(record)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to delete item {item_id}", e)

    def list(self) -> List[ItemState]:
        try:
            with session_scope() as session:
                records = (
                    session.query(Item)
                    .options(joinedload(Item.base_item))
                    .order_by(Item.name, Item.id)
                    .all()
                )
                return [item_state_from_record(record) for record in records]
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to list items", e)


class SqlRecipeLineStore:
    """RecipeLineStore over the local database."""

    def batch(
        self,
        creates: Sequence[LineCreate],
        updates: Sequence[LineUpdate],
        deletes: Sequence[LineDelete],
    ) -> None:
        try:
            with session_scope() as session:
                for create in creates:
                    if create.parent_item_id is None:
                        raise ValidationError(
                            [f"Line {create.line.key}: parent item has not been created"]
                        )
                    session.add(RecipeLine(**_line_columns(create.to_fields())))

                for update in updates:
                    record = session.get(RecipeLine, update.line_id)
                    if record is None:
                        raise ServiceError(f"Recipe line with ID {update.line_id} not found")
                    record.update_from_dict(_line_columns(update.to_fields()))

                for delete in deletes:
                    record = session.get(RecipeLine, delete.line_id)
                    if record is not None:
                        session.delete(record)

            log_operation(
                logger,
                operation="recipe_line_batch",
                outcome="success",
                creates=len(creates),
                updates=len(updates),
                deletes=len(deletes),
            )
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to apply recipe line batch", e)

    def get_by_item_ids(self, item_ids: Iterable) -> Dict:
        ids = [item_id for item_id in item_ids if item_id is not None]
        if not ids:
            return {}
        try:
            with session_scope() as session:
                existing = [row.id for row in session.query(Item.id).filter(Item.id.in_(ids))]
                result = {item_id: [] for item_id in existing}
                records = (
                    session.query(RecipeLine)
                    .filter(RecipeLine.parent_item_id.in_(existing))
                    .order_by(RecipeLine.id)
                    .all()
                )
                for record in records:
                    result[record.parent_item_id].append(line_from_fields(record.to_dict()))
                return result
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load recipe lines", e)


class SqlCostService:
    """
    Reads per-gram costs written by the external cost producer.

    Costs are never computed here.
    """

    def get_costs(self, item_ids: Iterable) -> Dict:
        ids = list(item_ids)
        try:
            with session_scope() as session:
                records = (
                    session.query(ItemCostBreakdown)
                    .filter(ItemCostBreakdown.item_id.in_(ids))
                    .all()
                )
                return {record.item_id: record.total_cost_per_gram for record in records}
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load item costs", e)

    def get_costs_breakdown(self) -> Dict:
        try:
            with session_scope() as session:
                return {
                    record.item_id: CostBreakdown(
                        labor_cost_per_gram=record.labor_cost_per_gram or 0.0,
                        food_cost_per_gram=record.food_cost_per_gram or 0.0,
                    )
                    for record in session.query(ItemCostBreakdown).all()
                }
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load cost breakdown", e)


class SqlValidationSettings:
    """Validation mode stored in the validation_settings table."""

    def __init__(self, default_mode: Optional[ValidationMode] = None):
        self.default_mode = default_mode

    def get(self) -> ValidationMode:
        """Stored mode, or the configured default when none is stored."""
        try:
            with session_scope() as session:
                record = session.query(ValidationSetting).order_by(ValidationSetting.id).first()
                if record is not None:
                    return ValidationMode(record.validation_mode)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load validation settings", e)

        if self.default_mode is not None:
            return ValidationMode(self.default_mode)
        return ValidationMode(get_config().default_validation_mode)

    def set(self, mode: ValidationMode) -> None:
        mode = ValidationMode(mode)
        try:
            with session_scope() as session:
                record = session.query(ValidationSetting).order_by(ValidationSetting.id).first()
                if record is None:
                    session.add(ValidationSetting(validation_mode=mode.value))
                else:
                    record.validation_mode = mode.value
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to save validation settings", e)


class SqlPermissionLookup:
    """Share levels from the resource_shares table; unshared items are editable."""

    def share_level(self, item_id) -> str:
        try:
            with session_scope() as session:
                record = session.query(ResourceShare).filter_by(item_id=item_id).first()
                return record.share_level if record is not None else SHARE_EDIT
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load share level for item {item_id}", e)
