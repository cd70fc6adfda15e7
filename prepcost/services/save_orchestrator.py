"""
Save Orchestrator - one save run of an edit session.

A run walks a fixed sequence of states:

    VALIDATING -> DIFFING -> APPLYING_LINES -> APPLYING_ITEM_FIELDS
        -> DEPRECATING -> REFETCHING -> DONE

VALIDATING and DIFFING perform no writes; a stop there ends the run in
ABORTED. A failure while applying lines deletes the items created by this
run (best-effort), resynchronizes from the stores and re-raises as
SaveError; the run ends in FAILED_ROLLBACK.

Item field updates are issued one item at a time and only after the line
batch has committed, so anything reacting to an item update sees the final
lines. Items marked for deletion are deprecated, never deleted.

The final refetch merges rather than replaces: items whose ids come back
with fresh recipe lines take the stored values, every other item keeps its
local (settled) state so that unrelated edits are not clobbered.
"""

import dataclasses
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from prepcost.models.enums import SaveState
from prepcost.services.dto import EditSnapshot, ItemState, RecipeDiff, SaveResult
from prepcost.services.exceptions import (
    PermissionDenied,
    SaveError,
    SaveInProgress,
    ServiceError,
    ValidationError,
)
from prepcost.services.logging_utils import error_context, get_service_logger, log_operation
from prepcost.services.recipe_diff_service import (
    diff,
    item_fields_differ,
    line_differs,
    settle_item,
)
from prepcost.services.stores import (
    ChangeHistoryRecorder,
    CostService,
    ItemStore,
    PermissionLookup,
    RecipeLineStore,
    ValidationSettingsService,
)
from prepcost.services.yield_service import YieldOutcome, enforce_yield_rules
from prepcost.utils.config import get_config
from prepcost.utils.constants import ERROR_SAVE_FAILED, ITEM_KIND_PREPPED, SHARE_EDIT
from prepcost.utils.validators import validate_item_data, validate_line_data

logger = get_service_logger(__name__)

ConfirmCallback = Callable[[YieldOutcome], bool]


def merge_refetched(
    local_items: Sequence[ItemState],
    fresh_items: Sequence[ItemState],
    fresh_lines: Mapping,
) -> List[ItemState]:
    """
    Merge freshly fetched state into the local item collection.

    Args:
        local_items: Items as held locally, in display order
        fresh_items: Items as listed by the item store
        fresh_lines: Item id to lines, for the ids that were refetched

    Returns:
        Local items in their original order, with refetched ids replaced by
        fresh values (keeping the local session key), followed by stored
        items the local collection did not know about
    """
    fresh_by_id = {item.id: item for item in fresh_items}
    merged = []
    seen = set()

    for item in local_items:
        seen.add(item.id)
        fresh = fresh_by_id.get(item.id)
        if fresh is not None and item.id in fresh_lines:
            merged.append(
                dataclasses.replace(fresh, key=item.key, lines=tuple(fresh_lines[item.id]))
            )
        else:
            merged.append(item)

    for item in fresh_items:
        if item.id not in seen:
            merged.append(dataclasses.replace(item, lines=tuple(fresh_lines.get(item.id, ()))))

    return merged


class SaveOrchestrator:
    """
    Sequences validation, differencing, remote writes and resynchronization.

    One orchestrator belongs to one edit session; concurrent runs against it
    are refused with SaveInProgress. There is no mid-run cancellation.
    """

    def __init__(
        self,
        item_store: ItemStore,
        line_store: RecipeLineStore,
        cost_service: CostService,
        settings: ValidationSettingsService,
        history: Optional[ChangeHistoryRecorder] = None,
        permissions: Optional[PermissionLookup] = None,
        fetch_workers: Optional[int] = None,
    ):
        self.item_store = item_store
        self.line_store = line_store
        self.cost_service = cost_service
        self.settings = settings
        self.history = history
        self.permissions = permissions
        self.fetch_workers = fetch_workers or get_config().fetch_workers
        self.state: Optional[SaveState] = None
        self.recovered: Optional[SaveResult] = None
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _transition(self, state: SaveState) -> None:
        self.state = state
        log_operation(logger, operation="save_run", outcome=state.value)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def save(
        self,
        items: Sequence[ItemState],
        snapshot: EditSnapshot,
        confirm: Optional[ConfirmCallback] = None,
    ) -> SaveResult:
        """
        Run one save.

        Args:
            items: Current edited items, including new and deletion-marked ones
            snapshot: Baseline taken when the edit session opened
            confirm: Asked about each yield violation in notify mode

        Returns:
            SaveResult in state DONE

        Raises:
            SaveInProgress: Another run is active on this orchestrator
            ValidationError: Required fields missing (nothing written)
            YieldValidationError: Block-mode yield violation (nothing written)
            SaveCancelled: A notify-mode violation was declined (nothing written)
            PermissionDenied: The run would touch a non-editable item
            SaveError: A remote write failed; this run's new items were rolled
                back and ``recovered`` holds the resynchronized state
        """
        if not self._run_lock.acquire(blocking=False):
            raise SaveInProgress()
        try:
            self.recovered = None
            return self._run(list(items), snapshot, confirm)
        finally:
            self._run_lock.release()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _run(self, items: List[ItemState], snapshot: EditSnapshot, confirm) -> SaveResult:
        self._transition(SaveState.VALIDATING)
        candidates = [
            item
            for item in items
            if not item.is_marked_for_deletion and not item.is_empty_placeholder()
        ]
        try:
            self._check_required_fields(candidates, items, snapshot)
            self._check_yields(candidates, items, confirm)
        except ServiceError:
            self._transition(SaveState.ABORTED)
            raise

        self._transition(SaveState.DIFFING)
        batch = diff(snapshot, candidates)
        to_deprecate = [
            item
            for item in items
            if item.is_marked_for_deletion and not item.is_new and item.id is not None
        ]
        try:
            self._check_permissions(batch, to_deprecate)
        except PermissionDenied:
            self._transition(SaveState.ABORTED)
            raise

        self._transition(SaveState.APPLYING_LINES)
        created = self._apply_lines(batch, snapshot)

        try:
            self._transition(SaveState.APPLYING_ITEM_FIELDS)
            self._apply_item_fields(batch)

            self._transition(SaveState.DEPRECATING)
            deprecated_ids = self._deprecate(to_deprecate)
        except Exception as e:
            self._fail(e, [], snapshot)

        self._transition(SaveState.REFETCHING)
        local_items = self._settled_items(items, created)
        affected = set(deprecated_ids)
        affected.update(item.id for item in batch.item_field_updates)
        affected.update(state.id for state in created.values())
        refreshed, breakdowns = self._refetch_safely(local_items, affected)

        self._transition(SaveState.DONE)
        log_operation(
            logger,
            operation="save",
            outcome="success",
            created_count=len(created),
            updated_count=len(batch.item_field_updates),
            deprecated_count=len(deprecated_ids),
        )
        return SaveResult(
            state=SaveState.DONE,
            items=tuple(refreshed),
            breakdowns=breakdowns,
            created_item_ids=[state.id for state in created.values()],
            deprecated_item_ids=deprecated_ids,
            diff=batch,
        )

    def _check_required_fields(
        self,
        candidates: Sequence[ItemState],
        items: Sequence[ItemState],
        snapshot: EditSnapshot,
    ):
        items_by_id = {item.id: item for item in items if item.id is not None}
        errors = []
        for item in candidates:
            label = item.name.strip() or "Unnamed item"
            baseline = snapshot.find_item(item.id)
            if item.is_new or baseline is None or item_fields_differ(item, baseline):
                is_valid, item_errors = validate_item_data(item.to_fields())
                if not is_valid:
                    errors.extend(f"{label}: {error}" for error in item_errors)

            for line in self._lines_to_write(item, snapshot):
                child = items_by_id.get(getattr(line, "child_item_id", None))
                is_valid, line_errors = validate_line_data(line.to_fields(), child)
                if not is_valid:
                    errors.extend(f"{label}: {error}" for error in line_errors)
        if errors:
            raise ValidationError(errors)

    @staticmethod
    def _lines_to_write(item: ItemState, snapshot: EditSnapshot) -> List:
        """
        Lines of ``item`` the differ may create or update.

        Lines that are not filled in are left out; the differ drops those
        without an error.
        """
        lines = []
        for line in item.lines:
            if line.is_marked_for_deletion or not line.is_filled_in():
                continue
            if item.is_new or line.is_new:
                lines.append(line)
            elif line.id is not None:
                baseline_line = snapshot.find_line(item.id, line.id)
                if baseline_line is None or line_differs(line, baseline_line):
                    lines.append(line)
        return lines

    def _check_yields(self, candidates, items, confirm) -> List[YieldOutcome]:
        mode = self.settings.get()
        items_by_id = {item.id: item for item in items if item.id is not None}
        prepped = [item for item in candidates if item.item_kind == ITEM_KIND_PREPPED]
        return enforce_yield_rules(prepped, items_by_id, mode, confirm)

    def _check_permissions(self, batch: RecipeDiff, to_deprecate: Sequence[ItemState]) -> None:
        if self.permissions is None:
            return
        touched = []
        for item_id in (
            [item.id for item in batch.item_field_updates]
            + [op.parent_item_id for op in batch.line_creates]
            + [op.parent_item_id for op in batch.line_updates]
            + [op.parent_item_id for op in batch.line_deletes]
            + [item.id for item in to_deprecate]
        ):
            if item_id is not None and item_id not in touched:
                touched.append(item_id)

        for item_id in touched:
            level = self.permissions.share_level(item_id)
            if level != SHARE_EDIT:
                log_operation(
                    logger,
                    operation="save_permission",
                    outcome="denied",
                    level=logging.WARNING,
                    item_id=item_id,
                    share_level=level,
                )
                raise PermissionDenied(item_id, level)

    def _apply_lines(self, batch: RecipeDiff, snapshot: EditSnapshot) -> Dict[str, ItemState]:
        """Create new items, then submit the whole line batch in one call."""
        created: Dict[str, ItemState] = {}
        try:
            for item in batch.new_items:
                created[item.key] = self.item_store.create(item.to_fields())

            creates = [
                dataclasses.replace(op, parent_item_id=created[op.parent_key].id)
                if op.parent_item_id is None
                else op
                for op in batch.line_creates
            ]
            if creates or batch.line_updates or batch.line_deletes:
                self.line_store.batch(creates, batch.line_updates, batch.line_deletes)
        except Exception as e:
            self._fail(e, [state.id for state in created.values()], snapshot)
        return created

    def _apply_item_fields(self, batch: RecipeDiff) -> None:
        # One item at a time, after the line batch has committed
        for item in batch.item_field_updates:
            self.item_store.update(item.id, item.scalar_fields())

    def _deprecate(self, to_deprecate: Sequence[ItemState]) -> List:
        deprecated: List = []
        for item in to_deprecate:
            affected = self.item_store.deprecate(item.id) or [item.id]
            for item_id in affected:
                if item_id not in deprecated:
                    deprecated.append(item_id)

        if deprecated and self.history is not None:
            try:
                self.history.record(deprecated)
            except Exception as e:
                log_operation(
                    logger,
                    operation="record_change_history",
                    outcome="failed",
                    level=logging.WARNING,
                    item_ids=deprecated,
                    **error_context(e),
                )
        return deprecated

    def _fail(self, error: Exception, created_ids: Iterable, snapshot: EditSnapshot) -> None:
        """Roll back this run's new items, resynchronize, re-raise ``error``."""
        self._transition(SaveState.FAILED_ROLLBACK)
        log_operation(
            logger,
            operation="save",
            outcome="failed",
            level=logging.ERROR,
            **error_context(error),
        )

        for item_id in created_ids:
            try:
                self.item_store.delete(item_id)
            except Exception as e:
                log_operation(
                    logger,
                    operation="rollback_delete",
                    outcome="failed",
                    level=logging.WARNING,
                    item_id=item_id,
                    **error_context(e),
                )

        items, breakdowns = self._refetch_safely(list(snapshot.items), None)
        self.recovered = SaveResult(
            state=SaveState.FAILED_ROLLBACK,
            items=tuple(items),
            breakdowns=breakdowns,
        )
        raise SaveError(ERROR_SAVE_FAILED, error) from error

    # ------------------------------------------------------------------
    # Refetch
    # ------------------------------------------------------------------

    @staticmethod
    def _settled_items(items: Sequence[ItemState], created: Mapping) -> List[ItemState]:
        settled = []
        for item in items:
            if item.is_marked_for_deletion:
                continue
            if item.is_new:
                if item.key not in created:
                    continue
                settled.append(settle_item(item, created[item.key].id))
            else:
                settled.append(settle_item(item))
        return settled

    def refetch(
        self,
        local_items: Sequence[ItemState],
        affected_ids: Optional[Iterable] = None,
    ) -> Tuple[List[ItemState], Dict]:
        """
        Reload items, lines and cost breakdowns and merge them into local state.

        The item list, line and breakdown reads are issued concurrently.

        Args:
            local_items: Current local items
            affected_ids: Ids whose lines should be refetched; None refetches
                every locally known id

        Returns:
            (merged items, breakdowns); breakdowns degrade to {} on failure
        """
        if affected_ids is None:
            wanted = [item.id for item in local_items if item.id is not None]
        else:
            wanted = [item_id for item_id in affected_ids if item_id is not None]

        with ThreadPoolExecutor(max_workers=self.fetch_workers) as executor:
            items_future = executor.submit(self.item_store.list)
            lines_future = executor.submit(self.line_store.get_by_item_ids, wanted)
            breakdowns_future = executor.submit(self.cost_service.get_costs_breakdown)

            fresh_items = items_future.result()
            fresh_lines = dict(lines_future.result())
            try:
                breakdowns = dict(breakdowns_future.result())
            except Exception as e:
                log_operation(
                    logger,
                    operation="fetch_cost_breakdown",
                    outcome="failed",
                    level=logging.ERROR,
                    **error_context(e),
                )
                breakdowns = {}

        known = {item.id for item in local_items}
        unknown = [
            item.id for item in fresh_items if item.id not in known and item.id not in fresh_lines
        ]
        if unknown:
            fresh_lines.update(self.line_store.get_by_item_ids(unknown))

        return merge_refetched(local_items, fresh_items, fresh_lines), breakdowns

    def _refetch_safely(self, local_items, affected_ids) -> Tuple[List[ItemState], Dict]:
        try:
            return self.refetch(local_items, affected_ids)
        except Exception as e:
            log_operation(
                logger,
                operation="refetch",
                outcome="failed",
                level=logging.ERROR,
                **error_context(e),
            )
            return list(local_items), {}
