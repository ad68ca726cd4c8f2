"""
XRPL signer protocol: the secrets boundary.

The LedgerClient never sees private keys. It passes a prepared
(autofilled) transaction dict, and the signer returns a signed blob and
the transaction hash. The hash is known before submission, so the audit
record can carry it even when the submission fails.

Concrete implementations:
    - WalletSigner (xrpl-py keypairs and binary codec)
    - FakeSigner (tests)

``key_id`` is a public identifier (the public key hex) that can be
recorded without leaking secrets. Nothing in this module logs, prints
or reprs key material.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SignResult:
    """Result of signing a transaction.

    Attributes:
        signed_tx_blob_hex: Hex-encoded signed blob, ready for submit.
        tx_hash: Transaction hash (64 upper-case hex chars).
        key_id: Public identifier of the signing key. Never a secret.
    """

    signed_tx_blob_hex: str
    tx_hash: str
    key_id: str


@runtime_checkable
class XRPLSigner(Protocol):
    """Interface for XRPL transaction signing.

    Properties:
        account: The r-address this signer signs for.
        key_id: Public identifier of the signing key (safe for logging).
    """

    @property
    def account(self) -> str: ...

    @property
    def key_id(self) -> str: ...

    def sign(self, tx_dict: dict[str, Any]) -> SignResult:
        """Sign a prepared transaction dict.

        The dict must already carry Sequence, Fee and LastLedgerSequence.

        Raises:
            ValueError: If the transaction dict cannot be encoded.
        """
        ...


def signed_tx_hash(signed_tx_blob_hex: str) -> str:
    """Transaction id of a signed blob (64 upper-case hex chars)."""
    from xrpl.models.transactions import Transaction

    return str(Transaction.from_blob(signed_tx_blob_hex).get_hash())


def decode_signed_blob(signed_tx_blob_hex: str) -> dict[str, Any]:
    """Decode a signed blob into its ledger-form transaction dict.

    Raises:
        ValueError: If the blob is not a valid binary-encoded transaction.
    """
    from xrpl.core.binarycodec import decode

    try:
        return dict(decode(signed_tx_blob_hex))
    except Exception as exc:
        raise ValueError(f"undecodable transaction blob: {exc}") from exc


class WalletSigner:
    """Single-key signer backed by an xrpl-py Wallet.

    xrpl-py is imported lazily so modules that only plan or validate
    transactions do not need it.

    Args:
        seed: Family seed ("s..."). Held only inside this object.
    """

    __slots__ = ("_wallet",)

    def __init__(self, seed: str) -> None:
        from xrpl.wallet import Wallet

        self._wallet = Wallet.from_seed(seed)

    @property
    def account(self) -> str:
        return str(self._wallet.classic_address)

    @property
    def key_id(self) -> str:
        return str(self._wallet.public_key)

    def sign(self, tx_dict: dict[str, Any]) -> SignResult:
        from xrpl.core.binarycodec import encode, encode_for_signing
        from xrpl.core.keypairs import sign

        tx = dict(tx_dict)
        tx["SigningPubKey"] = self._wallet.public_key
        tx.pop("TxnSignature", None)
        signature = sign(
            bytes.fromhex(encode_for_signing(tx)),
            self._wallet.private_key,
        )
        tx["TxnSignature"] = signature
        blob = encode(tx)
        return SignResult(
            signed_tx_blob_hex=blob,
            tx_hash=signed_tx_hash(blob),
            key_id=self.key_id,
        )

    def __repr__(self) -> str:
        return f"WalletSigner(account={self.account!r}, key=<redacted>)"

    __str__ = __repr__
