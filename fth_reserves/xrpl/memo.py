"""
XRPL memo encoding.

Memos are the on-ledger footprint of a business operation: a short
type label and a data string, both hex-encoded UTF-8 as the ledger
requires. No PII, no secrets, identifiers only.

Well-known memo types:
    - deposit_id, redemption_id: FTHUSD credit / redemption references
    - bonus_batch_id, bonus_date: USDF bonus issuance
    - gold_order_id, gold_buyback_id: gold order lifecycle
    - member_id: membership NFT
    - por_hash, por_time: proof-of-reserves anchoring
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

MEMO_DEPOSIT_ID = "deposit_id"
MEMO_REDEMPTION_ID = "redemption_id"
MEMO_BONUS_BATCH_ID = "bonus_batch_id"
MEMO_BONUS_DATE = "bonus_date"
MEMO_GOLD_ORDER_ID = "gold_order_id"
MEMO_GOLD_BUYBACK_ID = "gold_buyback_id"
MEMO_MEMBER_ID = "member_id"
MEMO_POR_HASH = "por_hash"
MEMO_POR_TIME = "por_time"

# Conservative limit on the decoded size of all memos on one transaction.
MAX_MEMO_BYTES = 1024


def encode_hex(text: str) -> str:
    """Hex-encode a UTF-8 string for MemoType / MemoData / URI fields."""
    return text.encode("utf-8").hex().upper()


def decode_hex(data: str) -> str:
    """Decode a hex field back to text. Invalid UTF-8 is replaced."""
    return bytes.fromhex(data).decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Memo:
    """A single memo, held in plain text until serialized."""

    memo_type: str
    memo_data: str

    def __post_init__(self) -> None:
        if not self.memo_type:
            raise ValueError("memo_type must be non-empty")

    def to_xrpl(self) -> dict[str, Any]:
        return {
            "Memo": {
                "MemoType": encode_hex(self.memo_type),
                "MemoData": encode_hex(self.memo_data),
            }
        }

    @classmethod
    def from_xrpl(cls, entry: dict[str, Any]) -> Memo:
        inner = entry.get("Memo", {})
        return cls(
            memo_type=decode_hex(inner.get("MemoType", "")),
            memo_data=decode_hex(inner.get("MemoData", "")),
        )


def memos_size(memos: Iterable[Memo]) -> int:
    """Decoded byte size of a memo set."""
    return sum(
        len(m.memo_type.encode("utf-8")) + len(m.memo_data.encode("utf-8"))
        for m in memos
    )


def decode_memos(entries: Iterable[dict[str, Any]]) -> dict[str, str]:
    """Decode ledger memo entries to a type -> data mapping.

    Later entries with the same type win. Untyped entries are skipped.
    """
    result: dict[str, str] = {}
    for entry in entries:
        if not entry.get("Memo", {}).get("MemoType"):
            continue
        memo = Memo.from_xrpl(entry)
        result[memo.memo_type] = memo.memo_data
    return result
