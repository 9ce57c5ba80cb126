# ABOUTME: Pure lock, clear, and replace-mode rules for merging metadata into records.
# ABOUTME: Computes what a field would become without touching storage or files.

from collections.abc import Sequence
from typing import Any

from shelfkeeper.metadata.fields import ScalarField
from shelfkeeper.metadata.types import ReplaceMode

# Sentinel meaning "leave the field untouched".
UNCHANGED: Any = object()


def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def is_missing(value: Any) -> bool:
    """True for blank scalars and empty collections."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return is_blank(value)


def normalize(field_def: ScalarField, value: Any) -> Any:
    """Apply the field's blank handling to an incoming value."""
    if field_def.blank_to_none and is_blank(value):
        return None
    return value


def scalar_outcome(
    field_def: ScalarField,
    current: Any,
    incoming: Any,
    *,
    locked: bool,
    clear: bool,
    replace_mode: ReplaceMode | None,
) -> Any:
    """Decide the new value of one scalar field.

    Returns:
        The value to store, or UNCHANGED if the field must not be written.
    """
    if locked:
        return UNCHANGED
    if clear:
        return None
    value = normalize(field_def, incoming)
    if replace_mode is ReplaceMode.REPLACE_ALL:
        return value
    if replace_mode is ReplaceMode.REPLACE_MISSING:
        return value if is_blank(current) else UNCHANGED
    return value if value is not None else UNCHANGED


def collection_outcome(
    current: Sequence[str],
    incoming: Sequence[str],
    *,
    locked: bool,
    clear: bool,
    replace_mode: ReplaceMode | None,
    merge: bool,
) -> list[str] | Any:
    """Decide the new contents of a taxonomy set (authors, categories, moods, tags).

    Names compare case-sensitively. Order is preserved: existing names first
    when merging, then new names in incoming order.

    Returns:
        The new list of names, or UNCHANGED if the set must not be written.
    """
    if locked:
        return UNCHANGED
    if clear:
        return []
    names = _dedupe(n for n in incoming if not is_blank(n))
    if not names:
        return [] if replace_mode is ReplaceMode.REPLACE_ALL else UNCHANGED
    if replace_mode is ReplaceMode.REPLACE_MISSING:
        return names if not current else UNCHANGED
    base = list(current) if merge else []
    return _dedupe([*base, *names])


def _dedupe(names: Any) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result
