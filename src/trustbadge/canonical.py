"""trustbadge.canonical — Deterministic byte encoding of badge payloads.

Canonical form: UTF-8 JSON, object keys sorted at every depth, no
insignificant whitespace, non-ASCII characters emitted as-is. Independent
signers and verifiers must produce byte-identical input for the same logical
payload, regardless of how the payload dict was built.
"""

import json
from typing import Any


def canonicalize(obj: Any) -> bytes:
    """Encode ``obj`` to canonical JSON bytes.

    ``json.dumps(sort_keys=True)`` orders keys of nested objects too, so two
    payloads that differ only in insertion order at any depth encode to the
    same bytes. NaN and Infinity have no JSON representation and are rejected.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def encode(payload: Any) -> bytes:
    """Canonical bytes of a payload dict or any object exposing ``to_dict()``."""
    if hasattr(payload, "to_dict"):
        payload = payload.to_dict()
    return canonicalize(payload)
