"""
Tests for the xrpl-py backed signer.

Test plan:
- signed_tx_hash matches xrpl-py's own transaction hash
- WalletSigner exposes the classic address and public key
- sign fills SigningPubKey/TxnSignature and the signature verifies
- the caller's dict is not mutated
- repr/str never contain the seed
- decode_signed_blob returns ledger fields; garbage raises ValueError
"""

from __future__ import annotations

from typing import Any

import pytest
from xrpl.core.binarycodec import decode, encode_for_signing
from xrpl.core.keypairs import is_valid_message
from xrpl.models.transactions import Transaction
from xrpl.wallet import Wallet

from fth_reserves.xrpl.signer import (
    WalletSigner,
    XRPLSigner,
    decode_signed_blob,
    signed_tx_hash,
)


@pytest.fixture
def wallet() -> Wallet:
    return Wallet.create()


def _payment(account: str, destination: str) -> dict[str, Any]:
    return {
        "TransactionType": "Payment",
        "Account": account,
        "Destination": destination,
        "Amount": "1000",
        "Flags": 0,
        "Sequence": 5,
        "Fee": "12",
        "LastLedgerSequence": 120,
    }


class TestWalletSigner:
    def test_identity(self, wallet: Wallet) -> None:
        signer = WalletSigner(wallet.seed)
        assert isinstance(signer, XRPLSigner)
        assert signer.account == wallet.classic_address
        assert signer.key_id == wallet.public_key

    def test_sign_produces_verifiable_blob(self, wallet: Wallet) -> None:
        signer = WalletSigner(wallet.seed)
        tx = _payment(wallet.classic_address, Wallet.create().classic_address)

        result = signer.sign(tx)
        decoded = decode(result.signed_tx_blob_hex)

        assert decoded["SigningPubKey"] == wallet.public_key
        assert decoded["Sequence"] == 5
        assert decoded["LastLedgerSequence"] == 120
        unsigned = {k: v for k, v in decoded.items() if k != "TxnSignature"}
        assert is_valid_message(
            bytes.fromhex(encode_for_signing(unsigned)),
            bytes.fromhex(decoded["TxnSignature"]),
            wallet.public_key,
        )
        assert result.key_id == wallet.public_key

    def test_hash_matches_xrpl_py(self, wallet: Wallet) -> None:
        signer = WalletSigner(wallet.seed)
        result = signer.sign(_payment(wallet.classic_address, Wallet.create().classic_address))
        assert result.tx_hash == signed_tx_hash(result.signed_tx_blob_hex)
        assert result.tx_hash == Transaction.from_blob(result.signed_tx_blob_hex).get_hash()

    def test_input_not_mutated(self, wallet: Wallet) -> None:
        signer = WalletSigner(wallet.seed)
        tx = _payment(wallet.classic_address, Wallet.create().classic_address)
        before = dict(tx)
        signer.sign(tx)
        assert tx == before

    def test_repr_redacts_seed(self, wallet: Wallet) -> None:
        signer = WalletSigner(wallet.seed)
        for text in (repr(signer), str(signer)):
            assert wallet.seed not in text
            assert "<redacted>" in text
            assert wallet.classic_address in text


class TestDecodeSignedBlob:
    def test_round_trips_signed_fields(self, wallet: Wallet) -> None:
        tx = _payment(wallet.classic_address, Wallet.create().classic_address)
        blob = WalletSigner(wallet.seed).sign(tx).signed_tx_blob_hex
        decoded = decode_signed_blob(blob)
        assert decoded["Account"] == tx["Account"]
        assert decoded["LastLedgerSequence"] == 120
        assert decoded["SigningPubKey"] == wallet.public_key

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="undecodable"):
            decode_signed_blob("not-hex")
