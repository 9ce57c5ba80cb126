# ABOUTME: Plans the exact field writes an update would make and detects no-op updates.
# ABOUTME: Shared by the merge engine (to apply) and callers (to skip redundant work).

from dataclasses import dataclass, field
from typing import Any

from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.fields import (
    FILE_COLLECTION_FIELDS,
    LOCKABLE_FIELDS,
    SCALAR_FIELDS,
    scalar_field,
)
from shelfkeeper.metadata.policy import UNCHANGED, collection_outcome, scalar_outcome
from shelfkeeper.metadata.reviews import reviews_outcome
from shelfkeeper.metadata.types import CandidateMetadata, ClearFlags, ReplaceMode


@dataclass
class UpdatePlan:
    """The differences an update would make to a record.

    Attributes:
        values: New values keyed by field name, only for fields that differ.
        locks: New lock states keyed by field name, only for locks that differ.
    """

    values: dict[str, Any] = field(default_factory=dict)
    locks: dict[str, bool] = field(default_factory=dict)

    @property
    def has_value_changes(self) -> bool:
        return bool(self.values)

    @property
    def has_file_changes(self) -> bool:
        """True when a changed field is one the book file itself carries."""
        for name in self.values:
            if name in FILE_COLLECTION_FIELDS:
                return True
            if name not in ("moods", "tags", "reviews") and scalar_field(name).writes_to_file:
                return True
        return False

    def __bool__(self) -> bool:
        return bool(self.values or self.locks)


def _comparable(value: Any) -> Any:
    # Strip strings and treat empty as null so whitespace-only edits are not changes.
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, tuple):
        return list(value)
    return value


def plan_update(
    record: CatalogRecord,
    update: CandidateMetadata,
    *,
    clear: ClearFlags = ClearFlags(),
    replace_mode: ReplaceMode | None = None,
    merge_categories: bool = False,
    merge_moods: bool = False,
    merge_tags: bool = False,
) -> UpdatePlan:
    """Compute every value and lock change ``update`` would make to ``record``.

    Locks on the record are honored for values; incoming lock flags are
    compared separately. Authors and reviews share the categories merge flag.
    """
    plan = UpdatePlan()

    for field_def in SCALAR_FIELDS:
        current = getattr(record, field_def.name)
        outcome = scalar_outcome(
            field_def,
            current,
            getattr(update, field_def.name),
            locked=record.is_locked(field_def.name),
            clear=field_def.name in clear,
            replace_mode=replace_mode,
        )
        if outcome is not UNCHANGED and _comparable(outcome) != _comparable(current):
            plan.values[field_def.name] = outcome

    merge_flags = {
        "authors": merge_categories,
        "categories": merge_categories,
        "moods": merge_moods,
        "tags": merge_tags,
    }
    for name, merge in merge_flags.items():
        current = getattr(record, name)
        outcome = collection_outcome(
            current,
            getattr(update, name),
            locked=record.is_locked(name),
            clear=name in clear,
            replace_mode=replace_mode,
            merge=merge,
        )
        if outcome is not UNCHANGED and outcome != list(current):
            plan.values[name] = outcome

    reviews = reviews_outcome(
        record.reviews,
        update.reviews,
        locked=record.is_locked("reviews"),
        clear="reviews" in clear,
        merge=merge_categories,
    )
    if reviews is not UNCHANGED and reviews != list(record.reviews):
        plan.values["reviews"] = reviews

    for name, locked in update.locks.items():
        if name not in LOCKABLE_FIELDS:
            raise ValueError(f"Unknown lockable field: {name}")
        if locked is not None and bool(locked) != record.is_locked(name):
            plan.locks[name] = bool(locked)

    return plan
