"""
Typed XRPL responses.

Boring frozen dataclasses over the handful of rippled response shapes
the reserves core reads. Parsing lives in ``jsonrpc_client``; nothing
here does I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DROPS_PER_XRP = Decimal(1_000_000)

SUCCESS = "tesSUCCESS"


@dataclass(frozen=True)
class AccountInfo:
    """Account root fields used for autofill and balance display."""

    account: str
    balance_drops: int
    sequence: int
    owner_count: int = 0
    flags: int = 0

    @property
    def xrp_balance(self) -> Decimal:
        return Decimal(self.balance_drops) / DROPS_PER_XRP


@dataclass(frozen=True)
class AccountLine:
    """One trustline as seen from the queried account.

    ``balance`` is signed from the queried account's perspective: for an
    issuer, holder balances appear negative.
    """

    account: str
    currency: str
    balance: Decimal
    limit: Decimal = Decimal(0)
    no_ripple: bool = False
    authorized: bool = False


@dataclass(frozen=True)
class SubmitResult:
    """Preliminary result of submitting a signed blob.

    Attributes:
        engine_result: e.g. "tesSUCCESS", "temBAD_FEE". None if the
            server refused the request outright.
        engine_result_message: Human-readable explanation.
        tx_hash: Hash echoed by the server, if any.
        accepted: Whether the server queued the transaction for consensus.
            True does NOT mean validated.
        error: Server-level error (e.g. "invalidParams") when the request
            itself failed.
    """

    engine_result: str | None
    engine_result_message: str | None = None
    tx_hash: str | None = None
    accepted: bool = False
    error: str | None = None


@dataclass(frozen=True)
class TxResponse:
    """Outcome of a ``tx`` lookup.

    Attributes:
        tx_hash: The queried hash.
        found: Whether the server knows the transaction.
        validated: Whether it is in a validated ledger.
        engine_result: meta.TransactionResult, once applied.
        ledger_index: Ledger the transaction was validated in.
        close_time_iso: Ledger close time, when reported.
        searched_all: For a miss, whether the server holds the complete
            ledger range asked about (makes "not found" definitive).
    """

    tx_hash: str
    found: bool
    validated: bool = False
    engine_result: str | None = None
    ledger_index: int | None = None
    close_time_iso: str | None = None
    searched_all: bool = False

    @property
    def succeeded(self) -> bool:
        return self.validated and self.engine_result == SUCCESS


@dataclass(frozen=True)
class FeeInfo:
    base_fee_drops: int
    open_ledger_fee_drops: int
    ledger_current_index: int | None = None

    @property
    def recommended_drops(self) -> int:
        return max(self.base_fee_drops, self.open_ledger_fee_drops)


@dataclass(frozen=True)
class BookOffer:
    """One order-book offer. Amounts are normalized to (currency, issuer, value).

    XRP sides report currency "XRP", issuer "" and value in drops.
    """

    account: str
    sequence: int
    gets_currency: str
    gets_issuer: str
    gets_value: str
    pays_currency: str
    pays_issuer: str
    pays_value: str
    quality: str | None = None

    def involves(self, currency: str, issuer: str) -> bool:
        return (self.gets_currency == currency and self.gets_issuer == issuer) or (
            self.pays_currency == currency and self.pays_issuer == issuer
        )
