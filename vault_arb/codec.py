# vault_arb/codec.py
"""
Wire helpers for contract messages
Sub-queries, sub-responses and embedded send instructions travel as base64 JSON
"""

import base64
import json
from typing import Any


def encode_json_to_b64(to_encode: Any) -> str:
    """Compact JSON -> utf-8 -> base64"""
    raw = json.dumps(to_encode, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_b64_to_json(encoded: str) -> Any:
    """base64 -> utf-8 -> JSON"""
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


def to_amount_string(amount: float) -> str:
    """
    Render an amount the way the contracts expect it:
    integer decimal string, truncated toward zero, never in exponent form.
    """
    return str(int(amount))
