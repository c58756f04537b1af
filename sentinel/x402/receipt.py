"""
Payment receipt commitments.

A commitment is the SHA-256 of a receipt's canonical JSON: keys sorted, no
whitespace, UTF-8. It is a stable handle to a receipt, not a proof.
"""

import dataclasses
import hashlib
import json
import time
from typing import Any, Union

from pydantic import BaseModel

from .models import PaymentReceipt


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, PaymentReceipt):
        return value.to_dict()
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def canonical_json(value: Any) -> str:
    """Serialize with a fixed key order so equal content gives equal text"""
    return json.dumps(
        _to_jsonable(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def hash_receipt(receipt: Union[str, dict, PaymentReceipt, BaseModel]) -> str:
    """SHA-256 hex of a receipt; strings are hashed as-is"""
    text = receipt if isinstance(receipt, str) else canonical_json(receipt)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_commitment_from_receipt(receipt: Union[dict, PaymentReceipt]) -> str:
    """Stamp the receipt with the current time (ms) and hash it"""
    stamped = dict(_to_jsonable(receipt))
    stamped["timestamp"] = int(time.time() * 1000)
    return hash_receipt(stamped)
