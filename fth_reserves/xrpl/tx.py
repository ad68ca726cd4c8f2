"""
XRPL transaction intents and builders.

Each intent is a frozen tagged variant over the small closed set of
transaction shapes the program uses:

    - PaymentTx       (currency credit/redemption, bonus issue, anchoring)
    - TrustSetTx      (member trustlines, issuer authorizations)
    - NFTokenMintTx   (gold order and membership NFTs)
    - NFTokenBurnTx   (gold buyback)

Intents are pure "transaction recipes": no network state, no secrets.
Sequence, Fee and LastLedgerSequence are submit-time concerns filled in
by the LedgerClient. ``to_xrpl()`` produces the ledger JSON form.

Safety rules (``validate_transaction``), enforced before any signing:
    - A payment moving a program currency (FTHUSD, USDF) must not carry
      tfPartialPayment and must not carry a non-empty Paths list. The
      currency moves issuer -> holder or holder -> issuer directly.
    - A program-currency TrustSet must carry tfSetNoRipple, unless it is
      an issuer-side authorization (tfSetfAuth).

Builders always produce conforming intents; validation exists for
intents assembled by hand.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

from fth_reserves.errors import ValidationError
from fth_reserves.xrpl.memo import (
    MAX_MEMO_BYTES,
    MEMO_POR_HASH,
    MEMO_POR_TIME,
    Memo,
    encode_hex,
    memos_size,
)

# =========================================================================
# Flags and constants
# =========================================================================

# Payment flags
TF_NO_DIRECT_RIPPLE = 0x00010000
TF_PARTIAL_PAYMENT = 0x00020000
TF_LIMIT_QUALITY = 0x00040000

# TrustSet flags
TF_SETF_AUTH = 0x00010000
TF_SET_NO_RIPPLE = 0x00020000
TF_CLEAR_NO_RIPPLE = 0x00040000

# NFTokenMint flags
TF_BURNABLE = 0x00000001
TF_TRANSFERABLE = 0x00000008

FTHUSD = "FTHUSD"
USDF = "USDF"
PROGRAM_CURRENCIES: frozenset[str] = frozenset({FTHUSD, USDF})

GOLD_ORDER_NFT_TAXON = 1
MEMBERSHIP_NFT_TAXON = 2

# Trustline ceilings: logical limits, not risk limits.
FTHUSD_TRUST_LIMIT = "1000000"
USDF_TRUST_LIMIT = "1000000000"

# One drop, purely to carry anchoring memos.
ANCHOR_AMOUNT_DROPS = "1"


# =========================================================================
# Currency codes
# =========================================================================


def encode_currency(code: str) -> str:
    """Encode a currency code for the ledger.

    Three-character codes pass through. Longer codes (FTHUSD) use the
    160-bit hex form: ASCII bytes right-padded with zeros to 20 bytes.
    Codes already in hex form are upper-cased.
    """
    if len(code) == 40 and _is_hex(code):
        return code.upper()
    if len(code) == 3:
        if code == "XRP":
            raise ValidationError("XRP is not an issued currency")
        return code
    raw = code.encode("ascii")
    if len(raw) > 20:
        raise ValidationError(f"currency code too long: {code!r}")
    return raw.hex().upper().ljust(40, "0")


def decode_currency(code: str) -> str:
    """Inverse of encode_currency. Unknown hex codes are returned as-is."""
    if len(code) != 40 or not _is_hex(code):
        return code
    raw = bytes.fromhex(code).rstrip(b"\x00")
    # Non-standard codes must not start with 0x00.
    if not raw or code[:2] == "00":
        return code
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        return code
    return text if text.isprintable() else code


def _is_hex(value: str) -> bool:
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def _check_value(value: str, *, allow_zero: bool = False) -> str:
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"amount must be a decimal string, got: {value!r}") from exc
    if not parsed.is_finite():
        raise ValidationError(f"amount must be finite, got: {value!r}")
    if parsed < 0 or (parsed == 0 and not allow_zero):
        raise ValidationError(f"amount must be positive, got: {value!r}")
    return value


def _require(name: str, value: str) -> None:
    if not value:
        raise ValidationError(f"{name} must be non-empty")


# =========================================================================
# Amounts
# =========================================================================


@dataclass(frozen=True)
class IssuedAmount:
    """An issued-currency amount. ``currency`` is held decoded (e.g. FTHUSD)."""

    currency: str
    issuer: str
    value: str

    def to_xrpl(self) -> dict[str, str]:
        return {
            "currency": encode_currency(self.currency),
            "issuer": self.issuer,
            "value": self.value,
        }

    @classmethod
    def from_xrpl(cls, data: dict[str, Any]) -> IssuedAmount:
        return cls(
            currency=decode_currency(str(data["currency"])),
            issuer=str(data["issuer"]),
            value=str(data["value"]),
        )


# An XRP amount is a string of drops.
Amount = IssuedAmount | str


def _amount_to_xrpl(amount: Amount) -> Any:
    return amount.to_xrpl() if isinstance(amount, IssuedAmount) else amount


def _is_program_amount(amount: Amount | None, currencies: Collection[str]) -> bool:
    return isinstance(amount, IssuedAmount) and decode_currency(amount.currency) in currencies


# =========================================================================
# Transaction intents
# =========================================================================


def _memo_list(memos: Sequence[Memo]) -> list[dict[str, Any]]:
    return [m.to_xrpl() for m in memos]


@dataclass(frozen=True)
class PaymentTx:
    """A Payment. ``amount`` is an IssuedAmount or a drops string."""

    TRANSACTION_TYPE: ClassVar[str] = "Payment"

    account: str
    destination: str
    amount: Amount
    memos: tuple[Memo, ...] = ()
    flags: int = 0
    paths: tuple[tuple[dict[str, str], ...], ...] = ()
    send_max: Amount | None = None
    deliver_min: Amount | None = None

    @property
    def currency(self) -> str:
        return self.amount.currency if isinstance(self.amount, IssuedAmount) else "XRP"

    @property
    def value(self) -> str:
        return self.amount.value if isinstance(self.amount, IssuedAmount) else self.amount

    def to_xrpl(self) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "TransactionType": self.TRANSACTION_TYPE,
            "Account": self.account,
            "Destination": self.destination,
            "Amount": _amount_to_xrpl(self.amount),
            "Flags": self.flags,
        }
        if self.memos:
            tx["Memos"] = _memo_list(self.memos)
        if self.paths:
            tx["Paths"] = [[dict(step) for step in path] for path in self.paths]
        if self.send_max is not None:
            tx["SendMax"] = _amount_to_xrpl(self.send_max)
        if self.deliver_min is not None:
            tx["DeliverMin"] = _amount_to_xrpl(self.deliver_min)
        return tx


@dataclass(frozen=True)
class TrustSetTx:
    """A TrustSet. ``limit.issuer`` is the counterparty of the line."""

    TRANSACTION_TYPE: ClassVar[str] = "TrustSet"

    account: str
    limit: IssuedAmount
    flags: int = TF_SET_NO_RIPPLE
    memos: tuple[Memo, ...] = ()

    @property
    def currency(self) -> str:
        return self.limit.currency

    @property
    def value(self) -> str:
        return self.limit.value

    @property
    def destination(self) -> str | None:
        return None

    @property
    def is_authorization(self) -> bool:
        return bool(self.flags & TF_SETF_AUTH)

    def to_xrpl(self) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "TransactionType": self.TRANSACTION_TYPE,
            "Account": self.account,
            "LimitAmount": self.limit.to_xrpl(),
            "Flags": self.flags,
        }
        if self.memos:
            tx["Memos"] = _memo_list(self.memos)
        return tx


@dataclass(frozen=True)
class NFTokenMintTx:
    """An NFTokenMint. ``uri`` is held as text and hex-encoded on the ledger."""

    TRANSACTION_TYPE: ClassVar[str] = "NFTokenMint"

    account: str
    taxon: int
    uri: str
    memos: tuple[Memo, ...] = ()
    flags: int = TF_TRANSFERABLE
    destination: str | None = None

    @property
    def currency(self) -> str | None:
        return None

    @property
    def value(self) -> str | None:
        return None

    def to_xrpl(self) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "TransactionType": self.TRANSACTION_TYPE,
            "Account": self.account,
            "NFTokenTaxon": self.taxon,
            "URI": encode_hex(self.uri),
            "Flags": self.flags,
        }
        if self.memos:
            tx["Memos"] = _memo_list(self.memos)
        if self.destination is not None:
            tx["Destination"] = self.destination
        return tx


@dataclass(frozen=True)
class NFTokenBurnTx:
    TRANSACTION_TYPE: ClassVar[str] = "NFTokenBurn"

    account: str
    nftoken_id: str
    memos: tuple[Memo, ...] = ()

    @property
    def currency(self) -> str | None:
        return None

    @property
    def value(self) -> str | None:
        return None

    @property
    def destination(self) -> str | None:
        return None

    def to_xrpl(self) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "TransactionType": self.TRANSACTION_TYPE,
            "Account": self.account,
            "NFTokenID": self.nftoken_id,
        }
        if self.memos:
            tx["Memos"] = _memo_list(self.memos)
        return tx


LedgerTx = PaymentTx | TrustSetTx | NFTokenMintTx | NFTokenBurnTx


def payload_summary(tx: LedgerTx) -> dict[str, str]:
    """Audit summary of an intent: type, destination, amount, currency.

    Destination falls back to the sending account for shapes without
    one. XRP amounts are reported in drops.
    """
    return {
        "type": tx.TRANSACTION_TYPE,
        "destination": tx.destination or tx.account,
        "amount": tx.value or "",
        "currency": tx.currency or "",
    }


# =========================================================================
# Validation
# =========================================================================


def validate_transaction(
    tx: LedgerTx,
    *,
    currencies: Collection[str] = PROGRAM_CURRENCIES,
    issuers: Collection[str] | None = None,
) -> None:
    """Enforce the payment and trustline safety rules.

    Args:
        tx: The intent to check.
        currencies: Program currency codes the rules apply to.
        issuers: Issuer accounts allowed to send tfSetfAuth
            authorizations. None skips the account check.

    Raises:
        ValidationError: On any violation. Raised before signing, so no
            audit record is written for a rejected intent.
    """
    _require("account", tx.account)

    if isinstance(tx, PaymentTx):
        _require("destination", tx.destination)
        moves_program_currency = any(
            _is_program_amount(a, currencies)
            for a in (tx.amount, tx.send_max, tx.deliver_min)
        )
        if moves_program_currency:
            if tx.flags & TF_PARTIAL_PAYMENT:
                raise ValidationError(
                    f"partial payments are not allowed for {tx.currency}"
                )
            if tx.paths:
                raise ValidationError(
                    f"pathfinding is not allowed for {tx.currency}; "
                    "use direct payments only"
                )
        if isinstance(tx.amount, IssuedAmount):
            _check_value(tx.amount.value)

    elif isinstance(tx, TrustSetTx):
        if decode_currency(tx.limit.currency) in currencies:
            if tx.is_authorization:
                if issuers is not None and tx.account not in issuers:
                    raise ValidationError(
                        f"trustline authorization must be sent by the issuer, "
                        f"got account {tx.account}"
                    )
            elif not tx.flags & TF_SET_NO_RIPPLE:
                raise ValidationError(
                    f"{tx.limit.currency} trustlines must set tfSetNoRipple"
                )

    elif isinstance(tx, NFTokenMintTx):
        if tx.taxon < 0:
            raise ValidationError("NFTokenTaxon must be non-negative")

    elif isinstance(tx, NFTokenBurnTx):
        _require("nftoken_id", tx.nftoken_id)

    if memos_size(tx.memos) > MAX_MEMO_BYTES:
        raise ValidationError(
            f"memos exceed {MAX_MEMO_BYTES} bytes (got {memos_size(tx.memos)})"
        )


# =========================================================================
# Builders
# =========================================================================


def build_currency_payment(
    *,
    account: str,
    destination: str,
    currency: str,
    issuer: str,
    value: str,
    memos: Sequence[Memo] = (),
) -> PaymentTx:
    """Direct issued-currency payment: no flags, no paths.

    Used for issuer -> holder credits and holder -> issuer redemptions.

    Raises:
        ValidationError: If an address is empty or value is not a
            positive decimal string.
    """
    _require("account", account)
    _require("destination", destination)
    _require("issuer", issuer)
    _check_value(value)
    tx = PaymentTx(
        account=account,
        destination=destination,
        amount=IssuedAmount(currency=currency, issuer=issuer, value=value),
        memos=tuple(memos),
    )
    validate_transaction(tx)
    return tx


def build_trustline(
    *,
    account: str,
    currency: str,
    issuer: str,
    limit: str,
) -> TrustSetTx:
    """Holder-side trustline. Always sets tfSetNoRipple."""
    _require("account", account)
    _require("issuer", issuer)
    _check_value(limit)
    return TrustSetTx(
        account=account,
        limit=IssuedAmount(currency=currency, issuer=issuer, value=limit),
        flags=TF_SET_NO_RIPPLE,
    )


def build_member_trustlines(
    member_address: str,
    *,
    fthusd_issuer: str,
    usdf_issuer: str,
) -> tuple[TrustSetTx, TrustSetTx]:
    """FTHUSD and USDF trustlines for a member. The member signs these."""
    return (
        build_trustline(
            account=member_address,
            currency=FTHUSD,
            issuer=fthusd_issuer,
            limit=FTHUSD_TRUST_LIMIT,
        ),
        build_trustline(
            account=member_address,
            currency=USDF,
            issuer=usdf_issuer,
            limit=USDF_TRUST_LIMIT,
        ),
    )


def build_trustline_authorization(
    *,
    issuer: str,
    member_address: str,
    currency: str,
) -> TrustSetTx:
    """Issuer-side authorization of a member trustline (RequireAuth)."""
    _require("issuer", issuer)
    _require("member_address", member_address)
    return TrustSetTx(
        account=issuer,
        limit=IssuedAmount(currency=currency, issuer=member_address, value="0"),
        flags=TF_SETF_AUTH,
    )


def build_anchor_payment(
    *,
    account: str,
    destination: str,
    por_hash: str,
    por_time: str,
) -> PaymentTx:
    """One-drop payment carrying por_hash and por_time memos."""
    _require("account", account)
    _require("destination", destination)
    _require("por_hash", por_hash)
    _require("por_time", por_time)
    return PaymentTx(
        account=account,
        destination=destination,
        amount=ANCHOR_AMOUNT_DROPS,
        memos=(
            Memo(MEMO_POR_HASH, por_hash),
            Memo(MEMO_POR_TIME, por_time),
        ),
    )


def build_nft_mint(
    *,
    account: str,
    taxon: int,
    uri: str,
    memos: Sequence[Memo] = (),
    destination: str | None = None,
    flags: int = TF_TRANSFERABLE,
) -> NFTokenMintTx:
    _require("account", account)
    _require("uri", uri)
    tx = NFTokenMintTx(
        account=account,
        taxon=taxon,
        uri=uri,
        memos=tuple(memos),
        flags=flags,
        destination=destination,
    )
    validate_transaction(tx)
    return tx


def build_nft_burn(
    *,
    account: str,
    nftoken_id: str,
    memos: Sequence[Memo] = (),
) -> NFTokenBurnTx:
    tx = NFTokenBurnTx(account=account, nftoken_id=nftoken_id, memos=tuple(memos))
    validate_transaction(tx)
    return tx
