"""
Tests for XRPL memo encoding.

Test plan:
- encode_hex is upper-case UTF-8 hex, decode_hex inverts it
- Memo.to_xrpl wraps MemoType/MemoData in a Memo object
- Memo.from_xrpl reads the ledger form back
- Empty memo type rejected
- memos_size counts decoded UTF-8 bytes
- decode_memos maps type -> data, skips untyped entries, last wins
"""

import pytest

from fth_reserves.xrpl.memo import (
    MEMO_DEPOSIT_ID,
    MEMO_POR_HASH,
    Memo,
    decode_hex,
    decode_memos,
    encode_hex,
    memos_size,
)


class TestHex:
    def test_encode_is_upper_hex(self) -> None:
        assert encode_hex("por_hash") == "706F725F68617368"

    def test_decode_inverts(self) -> None:
        assert decode_hex("706F725F68617368") == "por_hash"

    def test_non_ascii(self) -> None:
        assert decode_hex(encode_hex("Zürich")) == "Zürich"


class TestMemo:
    def test_ledger_form(self) -> None:
        memo = Memo(MEMO_DEPOSIT_ID, "dep-42")
        assert memo.to_xrpl() == {
            "Memo": {
                "MemoType": encode_hex("deposit_id"),
                "MemoData": encode_hex("dep-42"),
            }
        }

    def test_from_ledger_form(self) -> None:
        entry = Memo(MEMO_POR_HASH, "0xabc").to_xrpl()
        assert Memo.from_xrpl(entry) == Memo("por_hash", "0xabc")

    def test_empty_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            Memo("", "data")

    def test_size_counts_utf8_bytes(self) -> None:
        assert memos_size([Memo("a", "bc"), Memo("d", "ü")]) == 1 + 2 + 1 + 2


class TestDecodeMemos:
    def test_maps_type_to_data(self) -> None:
        entries = [Memo("bonus_batch_id", "b-1").to_xrpl(), Memo("bonus_date", "2025-01-01").to_xrpl()]
        assert decode_memos(entries) == {"bonus_batch_id": "b-1", "bonus_date": "2025-01-01"}

    def test_untyped_entries_skipped(self) -> None:
        entries = [{"Memo": {"MemoData": encode_hex("orphan")}}, Memo("member_id", "m-1").to_xrpl()]
        assert decode_memos(entries) == {"member_id": "m-1"}

    def test_last_entry_wins(self) -> None:
        entries = [Memo("member_id", "old").to_xrpl(), Memo("member_id", "new").to_xrpl()]
        assert decode_memos(entries) == {"member_id": "new"}
