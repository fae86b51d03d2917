"""Standardized API response helpers.

List endpoints return a consistent envelope:
    {"items": [...], "total": <int>}

Extra top-level keys (the outlet and window a list was computed for) sit
next to ``items``. Single-item endpoints return the object directly.
"""

from typing import Any, Optional


def list_response(
    items: list,
    total: Optional[int] = None,
    **extra: Any,
) -> dict:
    """Wrap a list in the standard envelope.

    Args:
        items: The list of serialized items.
        total: Total count (defaults to len(items) when the full list is returned).
        **extra: Additional top-level keys.

    Returns:
        {"items": items, "total": total, **extra}
    """
    return {
        "items": items,
        "total": total if total is not None else len(items),
        **extra,
    }
