"""Field normalization for loosely-shaped rows.

Rows reach the referral pipeline from several places (RPC results, ORM rows,
legacy imports with upper-case columns). Instead of guessing per call site,
each logical field has one documented priority list of source keys.
"""

from collections.abc import Mapping
from typing import Any

# Tried in order; the first key present with a non-null value wins.
INVESTOR_ID_FIELDS = ("investor_id", "id", "INVESTOR_ID")
EMAIL_FIELDS = ("email", "investor_email", "EMAIL")
NAME_FIELDS = ("name", "full_name", "investor_name", "NAME")


def pick_field(row: Mapping[str, Any] | Any, candidates: tuple[str, ...]) -> Any:
    """Return the first non-null value among candidates.

    Exact keys are tried first, in priority order; then the same order is
    tried case-insensitively. Objects are read through their attributes.

    Args:
        row: Mapping or object
        candidates: Source keys in priority order

    Returns:
        The value, or None if no candidate is present
    """
    if row is None:
        return None

    if isinstance(row, Mapping):
        data = row
    else:
        data = {name: getattr(row, name) for name in candidates if hasattr(row, name)}

    for key in candidates:
        value = data.get(key)
        if value is not None:
            return value

    lowered = {str(key).lower(): value for key, value in data.items() if value is not None}
    for key in candidates:
        value = lowered.get(key.lower())
        if value is not None:
            return value

    return None


def normalize_investor_id(value: Any) -> int | None:
    """Extract a positive investor id from an int, a numeric string or a row."""
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, str)):
        value = pick_field(value, INVESTOR_ID_FIELDS)

    if isinstance(value, bool) or value is None:
        return None
    try:
        investor_id = int(value)
    except (TypeError, ValueError):
        return None
    return investor_id if investor_id > 0 else None
