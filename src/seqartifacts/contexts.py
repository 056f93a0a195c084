"""Coarser views of a fixed-length reference context.

For a context of length ``2 * context_size + 1`` the reduced views keep the center base and
replace one or both flanks with the ``N`` wildcard. The wildcard is a grouping key only; the
observed data never contains it.
"""

from __future__ import annotations

from .models import InternalConsistencyError

WILDCARD = "N"


def center_base(context: str) -> str:
    if len(context) % 2 == 0:
        raise InternalConsistencyError(f"Contexts cannot have an even number of bases: {context!r}")
    return context[len(context) // 2]


def leading(context: str, context_size: int) -> str:
    """Leading bases + center, trailing flank masked."""
    return context[:context_size] + context[context_size] + WILDCARD * context_size


def trailing(context: str, context_size: int) -> str:
    """Center + trailing bases, leading flank masked."""
    return WILDCARD * context_size + context[context_size:]


def zero(context: str, context_size: int) -> str:
    padding = WILDCARD * context_size
    return padding + context[context_size] + padding
