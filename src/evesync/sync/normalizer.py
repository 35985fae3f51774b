"""
Payload Normalizer.

The remote API wraps many scalar attributes in ``{"content": ..., "type": ...}``
objects, and does so inconsistently. flatten_content() reduces a response
fragment to a flat attribute mapping with the same top-level keys:

    >>> flatten_content({"name": {"content": "Pilot", "type": "str"}, "alliance": {}})
    {'name': 'Pilot', 'alliance': None}

Each value is classified before it is reduced, so every branch is explicit.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..core.errors import NormalizationError

CONTENT_FIELD = "content"


class Shape(Enum):
    """How a payload value is reduced."""

    EMPTY = "empty"
    """Empty mapping; reduces to None."""

    WRAPPER = "wrapper"
    """Mapping with a content field; reduces to that field's value."""

    NESTED = "nested"
    """Any other mapping; flattened recursively and kept as a mapping."""

    SCALAR = "scalar"
    """Non-mapping value (including lists); passed through unchanged."""


def classify(value: Any) -> Shape:
    if not isinstance(value, Mapping):
        return Shape.SCALAR
    if not value:
        return Shape.EMPTY
    if CONTENT_FIELD in value:
        return Shape.WRAPPER
    return Shape.NESTED


def reduce_value(value: Any) -> Any:
    shape = classify(value)
    if shape is Shape.EMPTY:
        return None
    if shape is Shape.WRAPPER:
        return value[CONTENT_FIELD]
    if shape is Shape.NESTED:
        return flatten_content(value)
    return value


def flatten_content(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Flatten a nested remote response fragment.

    Args:
        data: Response fragment

    Returns:
        Mapping with the same keys and reduced values

    Raises:
        NormalizationError: ``data`` is not a mapping
    """
    if not isinstance(data, Mapping):
        raise NormalizationError(
            f"flatten_content expects a mapping, got {type(data).__name__}"
        )
    return {key: reduce_value(value) for key, value in data.items()}
