"""
Recipe Diff Service - reconcile an edited recipe graph against its baseline.

diff() compares the items of an edit session against the EditSnapshot taken
when the session opened and produces the minimal RecipeDiff:

- New items: the item itself becomes a creation request, and each
  non-deleted, complete line becomes a create keyed to the item's client key.
- Existing items, per line:
    new this session           -> create (if complete)
    marked for deletion        -> delete (if it has a persisted id)
    otherwise                  -> update when any field differs from the
                                  baseline line with the same id, or when no
                                  baseline line exists
  A line with neither a persisted id nor the new flag produces nothing.
- Item scalar fields are compared to the baseline; a difference, or any line
  operation on the item, flags the item for a field update.

None stands for an absent value, so absent and None compare equal.
The functions here have no side effects.
"""

import dataclasses
from typing import Iterable, List, Optional, Union

from prepcost.services.dto import (
    EditSnapshot,
    ItemState,
    LineCreate,
    LineDelete,
    LineUpdate,
    RecipeDiff,
)


def _values_equal(left, right) -> bool:
    if left is None or right is None:
        return left is None and right is None
    return left == right


def line_differs(line, baseline_line) -> bool:
    """True when any semantic field of ``line`` differs from the baseline."""
    if line.line_type != baseline_line.line_type:
        return True
    return any(
        not _values_equal(getattr(line, name), getattr(baseline_line, name, None))
        for name in line.SEMANTIC_FIELDS
    )


def item_fields_differ(item: ItemState, baseline_item: ItemState) -> bool:
    """True when any compared scalar field differs from the baseline."""
    return any(
        not _values_equal(value, getattr(baseline_item, name, None))
        for name, value in item.scalar_fields().items()
    )


def _as_snapshot(baseline: Union[EditSnapshot, Iterable[ItemState]]) -> EditSnapshot:
    if isinstance(baseline, EditSnapshot):
        return baseline
    return EditSnapshot(items=tuple(baseline))


def _diff_new_item(item: ItemState, result: RecipeDiff) -> None:
    result.new_items.append(item)
    for line in item.lines:
        if line.is_marked_for_deletion or not line.is_complete():
            continue
        result.line_creates.append(LineCreate(parent_item_id=None, parent_key=item.key, line=line))


def _diff_existing_item(item: ItemState, snapshot: EditSnapshot, result: RecipeDiff) -> None:
    baseline_item = snapshot.find_item(item.id)
    lines_changed = False

    for line in item.lines:
        if line.is_new:
            if line.is_marked_for_deletion or not line.is_complete():
                continue
            result.line_creates.append(
                LineCreate(parent_item_id=item.id, parent_key=item.key, line=line)
            )
            lines_changed = True
        elif line.is_marked_for_deletion:
            if line.id is None:
                continue
            result.line_deletes.append(LineDelete(line_id=line.id, parent_item_id=item.id))
            lines_changed = True
        else:
            if line.id is None or not line.is_complete():
                continue
            baseline_line = snapshot.find_line(item.id, line.id)
            if baseline_line is None or line_differs(line, baseline_line):
                result.line_updates.append(
                    LineUpdate(line_id=line.id, parent_item_id=item.id, line=line)
                )
                lines_changed = True

    # Any line operation also flags the item for a field update
    if baseline_item is None or lines_changed or item_fields_differ(item, baseline_item):
        result.item_field_updates.append(item)


def diff(
    baseline: Union[EditSnapshot, Iterable[ItemState]],
    edited: Iterable[ItemState],
) -> RecipeDiff:
    """
    Compute the operation batch turning ``baseline`` into ``edited``.

    Args:
        baseline: EditSnapshot (or items) as last persisted
        edited: Items as currently edited; items marked for deletion are
            ignored here (they are deprecated separately)

    Returns:
        RecipeDiff with line creates/updates/deletes, items needing a field
        update, and items needing creation

    Example:
        >>> snapshot = EditSnapshot.take(items)
        >>> diff(snapshot, items).is_empty
        True
    """
    snapshot = _as_snapshot(baseline)
    result = RecipeDiff()

    for item in edited:
        if item.is_marked_for_deletion:
            continue
        if item.is_new:
            _diff_new_item(item, result)
        else:
            _diff_existing_item(item, snapshot, result)

    return result


def settle_item(item: ItemState, item_id: Optional[int] = None) -> ItemState:
    """
    The state an item is in once its edits are committed.

    Deleted lines and incomplete unsaved lines are dropped and session flags
    cleared. A persisted line is kept even when incomplete: the differ
    leaves it untouched, so the store still holds it.

    Args:
        item: Edited item
        item_id: Persisted id to assign (for items created by the save)

    Returns:
        New ItemState
    """
    lines = tuple(
        dataclasses.replace(line, is_new=False)
        for line in item.lines
        if not line.is_marked_for_deletion
        and (line.is_complete() or (line.id is not None and not line.is_new))
    )
    return dataclasses.replace(
        item,
        id=item_id if item_id is not None else item.id,
        lines=lines,
        is_new=False,
        is_marked_for_deletion=False,
    )


def settle_items(items: Iterable[ItemState]) -> List[ItemState]:
    """Settle every item that is not marked for deletion."""
    return [settle_item(item) for item in items if not item.is_marked_for_deletion]

