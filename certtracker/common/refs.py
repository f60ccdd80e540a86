"""Reference normalisation.

Employee and certificate records carry position references in two shapes:
a bare identifier (UUID or string) or an embedded record that carries the
identifier (a mapping with ``id`` / ``_id``, or an object with ``.id``).
Every identifier comparison goes through :func:`resolve_id`.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Any, Optional


def resolve_id(ref: Any) -> Optional[str]:
    """Return the identifier behind *ref* as a string, or ``None``.

    >>> resolve_id("64f0")
    '64f0'
    >>> resolve_id({"_id": "64f0", "title": "Welder"})
    '64f0'
    """
    if ref is None:
        return None
    if isinstance(ref, uuid.UUID):
        return str(ref)
    if isinstance(ref, str):
        return ref or None
    if isinstance(ref, Mapping):
        for key in ("id", "_id"):
            if ref.get(key) is not None:
                return resolve_id(ref[key])
        return None
    inner = getattr(ref, "id", None)
    if inner is not None and inner is not ref:
        return resolve_id(inner)
    return None


def resolve_ids(refs: Optional[Iterable[Any]]) -> list[str]:
    """Resolve every reference in *refs*, dropping the ones that yield nothing."""
    if not refs:
        return []
    resolved = (resolve_id(ref) for ref in refs)
    return [ref_id for ref_id in resolved if ref_id]


def same_ref(left: Any, right: Any) -> bool:
    """True when both references resolve to the same non-empty identifier."""
    left_id = resolve_id(left)
    return left_id is not None and left_id == resolve_id(right)
