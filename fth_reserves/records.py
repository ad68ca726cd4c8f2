"""
Ledger transaction record: the audit trail of every ledger interaction.

A record is written the moment an attempt is made (status PENDING, before
the network round-trip) and updated exactly once with the outcome. A crash
mid-submission therefore leaves a PENDING record that a human or follow-up
job can reconcile, never an unaccounted business operation.

Design:
    - **Failure-first**: a record exists for every attempt, success or not.
    - **Terminal states**: CONFIRMED and FAILED never transition again.
    - **Immutable values**: records are frozen; transitions return a new
      record via ``mark_confirmed()`` / ``mark_failed()``.
    - **No secrets**: payload summaries describe the operation (type,
      destination, amount, currency), never key material.

Invariants:
    - created_at / updated_at: RFC3339 UTC (ending "Z" or "+00:00").
    - FAILED records carry error_code or error_message.
    - payload_summary is a JSON string (canonical JSON when built here).
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from fth_reserves.canonical_json import canonical_json

_RFC3339_UTC_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|\+00:00)$"
)


# =========================================================================
# Enums
# =========================================================================


class Ledger(StrEnum):
    """Which ledger a record pertains to."""

    XRPL = "XRPL"
    EVM = "EVM"
    INTERNAL = "INTERNAL"


class Direction(StrEnum):
    """Direction from the backend's perspective."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    INTERNAL = "internal"


class TxStatus(StrEnum):
    """Lifecycle status of a record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Flow(StrEnum):
    """Tagged business operation a record belongs to."""

    FTHUSD_DEPOSIT = "fthusd_deposit"
    FTHUSD_REDEMPTION = "fthusd_redemption"
    BONUS_ISSUE = "bonus_issue"
    GOLD_ORDER_CREATE = "gold_order_create"
    GOLD_ORDER_NFT_MINT = "gold_order_nft_mint"
    GOLD_ORDER_BUYBACK = "gold_order_buyback"
    MEMBERSHIP_NFT_MINT = "membership_nft_mint"
    MEMBER_ONBOARDING_FTHUSD_AUTH = "member_onboarding_fthusd_auth"
    MEMBER_ONBOARDING_USDF_AUTH = "member_onboarding_usdf_auth"
    MEMBER_TRUSTLINE = "member_trustline"
    POR_SNAPSHOT = "por_snapshot"
    POR_ANCHORING = "por_anchoring"
    KYC_UPDATE = "kyc_update"
    SANCTION_UPDATE = "sanction_update"
    SUPPLY_RECONCILIATION = "SUPPLY_RECONCILIATION"
    DEX_SCAN_ALERT = "DEX_SCAN_ALERT"
    OTHER = "other"


TERMINAL_STATUSES = frozenset({TxStatus.CONFIRMED, TxStatus.FAILED})


# =========================================================================
# Helpers
# =========================================================================


def now_utc() -> str:
    """RFC3339 UTC timestamp with millisecond precision."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def new_record_id() -> str:
    return str(uuid.uuid4())


def _validate_timestamp(name: str, value: str) -> None:
    if not _RFC3339_UTC_RE.match(value):
        raise ValueError(
            f"{name} must be RFC3339 UTC (ending Z or +00:00), got: {value!r}"
        )


# =========================================================================
# LedgerTransactionRecord
# =========================================================================


@dataclass(frozen=True)
class LedgerTransactionRecord:
    """An auditable record of one interaction with an external ledger.

    Required:
        id: Unique record identifier.
        ledger: XRPL, EVM or INTERNAL.
        flow: Business operation tag.
        direction: inbound / outbound / internal.
        status: pending / confirmed / failed.
        payload_summary: JSON snapshot of the attempted operation.
        created_at, updated_at: RFC3339 UTC.

    Optional:
        member_id: Member reference for attribution.
        wallet_address: Ledger address involved (signer or subject).
        tx_hash: On-chain transaction hash.
        error_code, error_message: Populated on FAILED.
        request_id: Correlation id from the calling run.
    """

    # --- Required ---
    id: str
    ledger: Ledger
    flow: Flow
    direction: Direction
    status: TxStatus
    payload_summary: str
    created_at: str
    updated_at: str

    # --- Optional ---
    member_id: str | None = None
    wallet_address: str | None = None
    tx_hash: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    request_id: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id must be non-empty")
        _validate_timestamp("created_at", self.created_at)
        _validate_timestamp("updated_at", self.updated_at)
        if self.status == TxStatus.FAILED and not (
            self.error_code or self.error_message
        ):
            raise ValueError("failed records must carry error_code or error_message")

    # --- Construction ---

    @classmethod
    def pending(
        cls,
        *,
        ledger: Ledger,
        flow: Flow,
        direction: Direction,
        payload: dict[str, Any],
        record_id: str | None = None,
        member_id: str | None = None,
        wallet_address: str | None = None,
        tx_hash: str | None = None,
        request_id: str | None = None,
        created_at: str | None = None,
    ) -> LedgerTransactionRecord:
        """Build a fresh PENDING record for an attempt about to be made."""
        ts = created_at or now_utc()
        return cls(
            id=record_id or new_record_id(),
            ledger=ledger,
            flow=flow,
            direction=direction,
            status=TxStatus.PENDING,
            payload_summary=canonical_json(payload),
            created_at=ts,
            updated_at=ts,
            member_id=member_id,
            wallet_address=wallet_address,
            tx_hash=tx_hash,
            request_id=request_id,
        )

    # --- Transitions ---

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_confirmed(
        self,
        *,
        tx_hash: str | None = None,
        updated_at: str | None = None,
    ) -> LedgerTransactionRecord:
        """Return a CONFIRMED copy. Raises ValueError if already terminal."""
        self._require_pending()
        return replace(
            self,
            status=TxStatus.CONFIRMED,
            tx_hash=tx_hash or self.tx_hash,
            updated_at=updated_at or now_utc(),
        )

    def mark_failed(
        self,
        *,
        error_code: str | None,
        error_message: str | None,
        tx_hash: str | None = None,
        updated_at: str | None = None,
    ) -> LedgerTransactionRecord:
        """Return a FAILED copy. Raises ValueError if already terminal."""
        self._require_pending()
        return replace(
            self,
            status=TxStatus.FAILED,
            error_code=error_code,
            error_message=error_message or error_code,
            tx_hash=tx_hash or self.tx_hash,
            updated_at=updated_at or now_utc(),
        )

    def _require_pending(self) -> None:
        if self.is_terminal:
            raise ValueError(
                f"record {self.id} is already {self.status.value}; "
                "terminal records cannot transition"
            )

    # --- Payload ---

    def payload(self) -> dict[str, Any]:
        """Parse payload_summary. Non-object or malformed JSON yields {}."""
        try:
            data = json.loads(self.payload_summary or "{}")
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    # --- Serialization ---

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "id": self.id,
            "ledger": self.ledger.value,
            "flow": self.flow.value,
            "direction": self.direction.value,
            "status": self.status.value,
            "payload_summary": self.payload_summary,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        for key in (
            "member_id",
            "wallet_address",
            "tx_hash",
            "error_code",
            "error_message",
            "request_id",
        ):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerTransactionRecord:
        return cls(
            id=data["id"],
            ledger=Ledger(data["ledger"]),
            flow=Flow(data["flow"]),
            direction=Direction(data["direction"]),
            status=TxStatus(data["status"]),
            payload_summary=data.get("payload_summary") or "{}",
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            member_id=data.get("member_id"),
            wallet_address=data.get("wallet_address"),
            tx_hash=data.get("tx_hash"),
            error_code=data.get("error_code"),
            error_message=data.get("error_message"),
            request_id=data.get("request_id"),
        )
