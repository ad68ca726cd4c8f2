"""
RegistryClient: write-through to the EVM PoR and compliance registries.

Every write is awaited to a mined receipt before the caller is told it
succeeded. The outcome is then recorded in the audit store:

    - mined, status 1    -> CONFIRMED record with the EVM tx hash
    - mined, status 0    -> FAILED record (REVERTED), RegistryError
    - send failure       -> FAILED record (SEND_FAILED), RegistryError
    - no receipt in time -> PENDING record with the tx hash,
                            SubmissionTimeout (outcome unknown)

The network boundary is the ``RegistryContract`` protocol. The concrete
implementation is ``Web3RegistryContract``; tests use a fake.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from fth_reserves.errors import RegistryError, SubmissionTimeout
from fth_reserves.records import Direction, Flow, Ledger, LedgerTransactionRecord
from fth_reserves.store import RecordStore

logger = logging.getLogger(__name__)

RECEIPT_STATUS_REVERTED = 0


class RegistryName(StrEnum):
    POR = "por"
    COMPLIANCE = "compliance"


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class RegistryReceipt:
    """A mined transaction receipt.

    Attributes:
        tx_hash: 0x-prefixed transaction hash.
        status: 1 for success, 0 for revert.
        block_number: Block the transaction was mined in.
        gas_used: Gas consumed.
    """

    tx_hash: str
    status: int
    block_number: int | None = None
    gas_used: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != RECEIPT_STATUS_REVERTED


@dataclass(frozen=True)
class PoRSnapshotRecord:
    """The latest snapshot committed to the PoR registry. Amounts in cents."""

    canonical_hash: str
    timestamp: int
    coverage_ratio_bps: int
    total_assets: int
    total_liabilities: int
    uri: str


@dataclass(frozen=True)
class ComplianceStatus:
    kyc_approved: bool
    sanctioned: bool
    jurisdiction_code: int
    flags: int


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class RegistryContract(Protocol):
    """Contract call boundary.

    ``transact`` sends a state-changing call and waits for its receipt;
    it raises on send failure or wait timeout (RegistryError carrying
    the tx hash when one exists). A reverted transaction is returned as
    a receipt with status 0. ``call`` performs a read-only call.
    """

    async def transact(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> RegistryReceipt: ...

    async def call(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> Any: ...


# =========================================================================
# Helpers
# =========================================================================


def _hex32(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


def hash_to_bytes32(canonical_hash: str) -> bytes:
    raw = bytes.fromhex(canonical_hash.removeprefix("0x"))
    if len(raw) != 32:
        raise ValueError(f"hash must be 32 bytes, got {len(raw)}")
    return raw


# =========================================================================
# RegistryClient
# =========================================================================


class RegistryClient:
    """PoR and compliance registry operations with audit recording."""

    def __init__(self, contract: RegistryContract, store: RecordStore) -> None:
        self._contract = contract
        self._store = store

    async def _write(
        self,
        registry: RegistryName,
        function: str,
        args: tuple[Any, ...],
        *,
        flow: Flow,
        payload: dict[str, Any],
        wallet_address: str | None = None,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> RegistryReceipt:
        record = LedgerTransactionRecord.pending(
            ledger=Ledger.EVM,
            flow=flow,
            direction=Direction.OUTBOUND,
            payload=payload,
            member_id=member_id,
            wallet_address=wallet_address,
            request_id=request_id,
        )
        try:
            receipt = await self._contract.transact(registry, function, args)
        except SubmissionTimeout as exc:
            self._store.create(replace(record, tx_hash=exc.tx_hash))
            logger.warning(
                "evm %s unconfirmed: %s", function, exc,
                extra={"flow": flow.value, "tx_hash": exc.tx_hash},
            )
            raise
        except Exception as exc:
            tx_hash = getattr(exc, "tx_hash", None)
            self._store.create(
                record.mark_failed(
                    error_code="SEND_FAILED",
                    error_message=str(exc),
                    tx_hash=tx_hash,
                )
            )
            logger.error(
                "evm %s failed: %s", function, exc,
                extra={"flow": flow.value, "tx_hash": tx_hash},
            )
            if isinstance(exc, RegistryError):
                raise
            raise RegistryError(f"{function} failed: {exc}", tx_hash=tx_hash) from exc

        if not receipt.succeeded:
            self._store.create(
                record.mark_failed(
                    error_code="REVERTED",
                    error_message=f"{function} reverted in block {receipt.block_number}",
                    tx_hash=receipt.tx_hash,
                )
            )
            logger.error(
                "evm %s reverted", function,
                extra={"flow": flow.value, "tx_hash": receipt.tx_hash},
            )
            raise RegistryError(f"{function} reverted", tx_hash=receipt.tx_hash)

        self._store.create(record.mark_confirmed(tx_hash=receipt.tx_hash))
        logger.info(
            "evm %s confirmed", function,
            extra={"flow": flow.value, "tx_hash": receipt.tx_hash},
        )
        return receipt

    async def _read(
        self, registry: RegistryName, function: str, args: tuple[Any, ...] = ()
    ) -> Any:
        try:
            return await self._contract.call(registry, function, args)
        except RegistryError:
            raise
        except Exception as exc:
            raise RegistryError(f"{function} call failed: {exc}") from exc

    # -----------------------------------------------------------------
    # PoR
    # -----------------------------------------------------------------

    async def record_por_snapshot(
        self,
        canonical_hash: str,
        timestamp: int,
        coverage_ratio_bps: int,
        total_assets: int,
        total_liabilities: int,
        uri: str,
        *,
        usdf_off_balance_cents: int | None = None,
        request_id: str | None = None,
    ) -> RegistryReceipt:
        """Commit a snapshot. ``timestamp`` is unix seconds; amounts in cents.

        The USDF off-balance figure is not part of the registry struct; it
        travels in the audit record so reconciliation can read it back.
        """
        payload: dict[str, Any] = {
            "hash": canonical_hash,
            "timestamp": timestamp,
            "coverageRatioBps": coverage_ratio_bps,
            "totalAssets": str(total_assets),
            "totalLiabilities": str(total_liabilities),
            "uri": uri,
        }
        if usdf_off_balance_cents is not None:
            payload["usdfOffBalanceCents"] = str(usdf_off_balance_cents)
        return await self._write(
            RegistryName.POR,
            "recordSnapshot",
            (
                hash_to_bytes32(canonical_hash),
                timestamp,
                coverage_ratio_bps,
                total_assets,
                total_liabilities,
                uri,
            ),
            flow=Flow.POR_SNAPSHOT,
            payload=payload,
            request_id=request_id,
        )

    async def get_latest_por(self) -> PoRSnapshotRecord | None:
        """Most recent committed snapshot, or None if nothing was ever recorded."""
        raw = await self._read(RegistryName.POR, "latestSnapshot")
        snapshot = PoRSnapshotRecord(
            canonical_hash=_hex32(raw[0]),
            timestamp=int(raw[1]),
            coverage_ratio_bps=int(raw[2]),
            total_assets=int(raw[3]),
            total_liabilities=int(raw[4]),
            uri=str(raw[5]),
        )
        if snapshot.timestamp == 0:
            return None
        return snapshot

    # -----------------------------------------------------------------
    # Compliance
    # -----------------------------------------------------------------

    async def set_kyc_status(
        self,
        wallet: str,
        approved: bool,
        jurisdiction_code: int,
        flags: int,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> RegistryReceipt:
        return await self._write(
            RegistryName.COMPLIANCE,
            "setKYCStatus",
            (wallet, approved, jurisdiction_code, flags),
            flow=Flow.KYC_UPDATE,
            payload={
                "wallet": wallet,
                "approved": approved,
                "jurisdictionCode": jurisdiction_code,
                "flags": str(flags),
            },
            wallet_address=wallet,
            member_id=member_id,
            request_id=request_id,
        )

    async def set_sanctioned(
        self,
        wallet: str,
        sanctioned: bool,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> RegistryReceipt:
        return await self._write(
            RegistryName.COMPLIANCE,
            "setSanctioned",
            (wallet, sanctioned),
            flow=Flow.SANCTION_UPDATE,
            payload={"wallet": wallet, "sanctioned": sanctioned},
            wallet_address=wallet,
            member_id=member_id,
            request_id=request_id,
        )

    async def get_compliance_status(self, wallet: str) -> ComplianceStatus:
        raw = await self._read(RegistryName.COMPLIANCE, "getStatus", (wallet,))
        return ComplianceStatus(
            kyc_approved=bool(raw[0]),
            sanctioned=bool(raw[1]),
            jurisdiction_code=int(raw[2]),
            flags=int(raw[3]),
        )
