"""
Edit Session - the caller-facing surface of the costing engine.

An EditSession holds the current item collection, the cost breakdowns and,
while editing, the EditSnapshot used as diff baseline. Every edit replaces
state wholesale with new frozen objects; nothing is mutated in place.

Typical flow:
    session = EditSession(item_store, line_store, cost_service, settings)
    session.load()
    session.open()
    key = session.add_item(name="Teriyaki Sauce", yield_amount=1, yield_unit="kg")
    session.add_ingredient_line(key, child_item_id=7, quantity=600, unit="g")
    result = session.save(confirm=ask_user)
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from prepcost.models.enums import PricingBasis, ValidationMode
from prepcost.services.cost_percentage_service import calculate_percentages
from prepcost.services.dto import (
    CostPercentages,
    EditSnapshot,
    IngredientLine,
    ItemState,
    LaborLine,
    SaveResult,
    selectable_items,
)
from prepcost.services.exceptions import ItemNotFound, SaveError, SaveInProgress, ServiceError
from prepcost.services.logging_utils import error_context, get_service_logger, log_operation
from prepcost.services.save_orchestrator import ConfirmCallback, SaveOrchestrator, merge_refetched
from prepcost.services.stores import (
    ChangeHistoryRecorder,
    CostService,
    ItemStore,
    PermissionLookup,
    RecipeLineStore,
    ValidationSettingsService,
)
from prepcost.services.yield_service import YieldOutcome, total_grams, validate_yield
from prepcost.utils.config import get_config
from prepcost.utils.constants import SPECIFIC_CHILD_LOWEST

logger = get_service_logger(__name__)


class EditSession:
    """Load, edit and save a collection of items."""

    def __init__(
        self,
        item_store: ItemStore,
        line_store: RecipeLineStore,
        cost_service: CostService,
        settings: ValidationSettingsService,
        history: Optional[ChangeHistoryRecorder] = None,
        permissions: Optional[PermissionLookup] = None,
        pricing_basis: Optional[PricingBasis] = None,
        fetch_workers: Optional[int] = None,
    ):
        config = get_config()
        self.item_store = item_store
        self.line_store = line_store
        self.cost_service = cost_service
        self.settings = settings
        self.pricing_basis = PricingBasis(pricing_basis or config.default_pricing_basis)
        self.fetch_workers = fetch_workers or config.fetch_workers
        self.orchestrator = SaveOrchestrator(
            item_store,
            line_store,
            cost_service,
            settings,
            history=history,
            permissions=permissions,
            fetch_workers=self.fetch_workers,
        )
        self.items: Tuple[ItemState, ...] = ()
        self.breakdowns: Dict = {}
        self.snapshot: Optional[EditSnapshot] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.snapshot is not None

    @property
    def is_saving(self) -> bool:
        return self.orchestrator.is_running

    def load(self) -> Tuple[ItemState, ...]:
        """
        Load items, their recipe lines and the cost breakdowns.

        The breakdown read runs alongside the item and line reads.
        A breakdown failure leaves the breakdowns empty.
        """
        with ThreadPoolExecutor(max_workers=self.fetch_workers) as executor:
            breakdowns_future = executor.submit(self.cost_service.get_costs_breakdown)
            items = self.item_store.list()
            lines_future = executor.submit(
                self.line_store.get_by_item_ids, [item.id for item in items]
            )
            lines = lines_future.result()
            try:
                self.breakdowns = dict(breakdowns_future.result())
            except Exception as e:
                log_operation(
                    logger,
                    operation="fetch_cost_breakdown",
                    outcome="failed",
                    level=logging.ERROR,
                    **error_context(e),
                )
                self.breakdowns = {}

        self.items = tuple(merge_refetched((), items, lines))
        log_operation(logger, operation="load", outcome="success", item_count=len(self.items))
        return self.items

    def open(self) -> EditSnapshot:
        """Start editing: take the baseline snapshot."""
        if self.is_saving:
            raise SaveInProgress()
        self.snapshot = EditSnapshot.take(self.items)
        return self.snapshot

    def cancel(self) -> None:
        """Discard every edit made since open()."""
        if self.snapshot is None:
            return
        self.items = tuple(self.snapshot.items)
        self.snapshot = None

    def save(self, confirm: Optional[ConfirmCallback] = None) -> SaveResult:
        """
        Persist the session's edits and close the session.

        On SaveError the session is closed with the resynchronized state; on
        a validation stop it stays open so the user can fix the items.

        Raises:
            SaveInProgress: A save is already running
            ServiceError: See SaveOrchestrator.save
        """
        if self.snapshot is None:
            raise ServiceError("No edit session is open")
        try:
            result = self.orchestrator.save(self.items, self.snapshot, confirm)
        except SaveError:
            recovered = self.orchestrator.recovered
            if recovered is not None:
                self.items = recovered.items
                self.breakdowns = recovered.breakdowns
            self.snapshot = None
            raise

        self.items = result.items
        self.breakdowns = result.breakdowns
        self.snapshot = None
        return result

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self.snapshot is None:
            raise ServiceError("No edit session is open")
        if self.is_saving:
            raise SaveInProgress()

    def _index_of(self, key: str) -> int:
        for index, item in enumerate(self.items):
            if item.key == key:
                return index
        raise ItemNotFound(key)

    def _replace_item(self, key: str, **changes) -> ItemState:
        self._require_open()
        index = self._index_of(key)
        updated = dataclasses.replace(self.items[index], **changes)
        self.items = self.items[:index] + (updated,) + self.items[index + 1 :]
        return updated

    def get_item(self, key: str) -> ItemState:
        return self.items[self._index_of(key)]

    def selectable_items(self) -> List[ItemState]:
        return selectable_items(self.items)

    def add_item(self, **fields) -> str:
        """Append a new item and return its session key."""
        self._require_open()
        item = ItemState(is_new=True, **fields)
        self.items = self.items + (item,)
        return item.key

    def update_item(self, key: str, **changes) -> ItemState:
        return self._replace_item(key, **changes)

    def toggle_item_deletion(self, key: str) -> ItemState:
        item = self.get_item(key)
        return self._replace_item(key, is_marked_for_deletion=not item.is_marked_for_deletion)

    def _add_line(self, item_key: str, line) -> str:
        item = self.get_item(item_key)
        self._replace_item(item_key, lines=item.lines + (line,))
        return line.key

    def add_ingredient_line(
        self,
        item_key: str,
        child_item_id: Optional[int] = None,
        quantity: Optional[float] = None,
        unit: Optional[str] = None,
        specific_child: Optional[str] = SPECIFIC_CHILD_LOWEST,
    ) -> str:
        line = IngredientLine(
            child_item_id=child_item_id,
            quantity=quantity,
            unit=unit,
            specific_child=specific_child,
            is_new=True,
        )
        return self._add_line(item_key, line)

    def add_labor_line(
        self,
        item_key: str,
        labor_role: Optional[str] = None,
        minutes: Optional[float] = None,
    ) -> str:
        return self._add_line(
            item_key, LaborLine(labor_role=labor_role, minutes=minutes, is_new=True)
        )

    def _replace_line(self, item_key: str, line_key: str, **changes):
        item = self.get_item(item_key)
        for index, line in enumerate(item.lines):
            if line.key == line_key:
                updated = dataclasses.replace(line, **changes)
                lines = item.lines[:index] + (updated,) + item.lines[index + 1 :]
                self._replace_item(item_key, lines=lines)
                return updated
        raise ServiceError(f"Recipe line {line_key} not found on item {item_key}")

    def update_line(self, item_key: str, line_key: str, **changes):
        return self._replace_line(item_key, line_key, **changes)

    def toggle_line_deletion(self, item_key: str, line_key: str):
        item = self.get_item(item_key)
        current = next((line for line in item.lines if line.key == line_key), None)
        if current is None:
            raise ServiceError(f"Recipe line {line_key} not found on item {item_key}")
        return self._replace_line(
            item_key, line_key, is_marked_for_deletion=not current.is_marked_for_deletion
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def _items_by_id(self) -> Dict:
        return {item.id: item for item in self.items if item.id is not None}

    def compute_total_grams(self, lines) -> float:
        return total_grams(lines, self._items_by_id())

    def validate_yield(
        self, item: ItemState, mode: Optional[ValidationMode] = None
    ) -> YieldOutcome:
        """Check one item under ``mode`` (the configured mode when omitted)."""
        if mode is None:
            mode = self.settings.get()
        return validate_yield(item, self.compute_total_grams(item.lines), mode)

    def percentages(self, price: Optional[float], item: ItemState) -> CostPercentages:
        breakdown = self.breakdowns.get(item.id) if item.id is not None else None
        return calculate_percentages(price, breakdown, item, self.pricing_basis)
