"""
SHA-256 fingerprints over canonical JSON.

Used for the org tree snapshot fingerprint (the scope-cache tag) and the
access-configuration checksum.  Both must be identical across processes
and independent of dict or load order.
"""

import dataclasses
import hashlib
import json
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _canonical_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 1000 and 1000.00 hash alike.
        return str(obj.normalize())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonical_json(data: Any) -> str:
    """Sorted keys, no whitespace, kernel value types normalized."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical_default,
    )


def hash_payload(payload: Mapping[str, Any] | list) -> str:
    """Hex SHA-256 of ``canonical_json(payload)``."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def hash_org_snapshot(tenant_id: str, units: Iterable[Any]) -> str:
    """Fingerprint of one tenant's org units.

    Units are ordered by id first, so load order does not matter and only
    an added, removed, renamed or re-parented unit changes the result.
    """
    return hash_payload({
        "tenant_id": tenant_id,
        "units": sorted(units, key=lambda u: u.id),
    })
