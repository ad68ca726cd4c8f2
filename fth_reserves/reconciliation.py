"""
Supply and reserves reconciliation.

Three independently derived views of token supply must agree:

    on-chain   Sum of |issuer trustline balances| per currency.
    off-chain  From confirmed audit records:
                 FTHUSD = deposits - redemptions
                 USDF   = bonus issues - gold order spends
    PoR        Latest registry snapshot: FTHUSD liabilities from the
               registry struct, USDF from the matching por_snapshot
               audit record, coverage in percent.

Five invariants, absolute tolerance, strict ``<``:
    onChainFTHUSDMatchesDB, onChainUSDFMatchesDB,
    onChainFTHUSDMatchesPoRLiabilities, onChainUSDFMatchesPoRLiabilities,
    porCoverageAboveThreshold (coverage >= 100%).

Every run persists exactly one SUPPLY_RECONCILIATION record, CONFIRMED
when all five hold and FAILED (RECONCILIATION_FAILED) otherwise. An
exception while gathering figures yields a failure report, still
persisted. Divergence is a report status, never an exception.

All arithmetic is Decimal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from fth_reserves.evm.registry import PoRSnapshotRecord
from fth_reserves.records import (
    Direction,
    Flow,
    Ledger,
    LedgerTransactionRecord,
    TxStatus,
    now_utc,
)
from fth_reserves.store import RecordStore
from fth_reserves.xrpl.tx import FTHUSD, USDF

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.001")
MIN_COVERAGE_PERCENT = Decimal(100)
FAILURE_CODE = "RECONCILIATION_FAILED"

# Payload keys an amount may be stored under, in preference order.
AMOUNT_KEYS = ("amount", "amountUSDF", "usdfAmount")

_CENTS = Decimal(100)

# (credit flow, debit flow) per currency.
SUPPLY_FLOWS: dict[str, tuple[Flow, Flow]] = {
    FTHUSD: (Flow.FTHUSD_DEPOSIT, Flow.FTHUSD_REDEMPTION),
    USDF: (Flow.BONUS_ISSUE, Flow.GOLD_ORDER_CREATE),
}


class SupplyReader(Protocol):
    async def get_issued_supply(self, currency: str) -> Decimal: ...


class PoRReader(Protocol):
    async def get_latest_por(self) -> PoRSnapshotRecord | None: ...


# =========================================================================
# Report
# =========================================================================


@dataclass(frozen=True)
class Invariants:
    onchain_fthusd_matches_db: bool = False
    onchain_usdf_matches_db: bool = False
    onchain_fthusd_matches_por: bool = False
    onchain_usdf_matches_por: bool = False
    por_coverage_above_threshold: bool = False

    @property
    def all_hold(self) -> bool:
        return all(self.to_dict().values())

    def to_dict(self) -> dict[str, bool]:
        return {
            "onChainFTHUSDMatchesDB": self.onchain_fthusd_matches_db,
            "onChainUSDFMatchesDB": self.onchain_usdf_matches_db,
            "onChainFTHUSDMatchesPoRLiabilities": self.onchain_fthusd_matches_por,
            "onChainUSDFMatchesPoRLiabilities": self.onchain_usdf_matches_por,
            "porCoverageAboveThreshold": self.por_coverage_above_threshold,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    timestamp: str
    status: str
    details: str
    tolerance: Decimal
    onchain_fthusd_supply: Decimal = Decimal(0)
    onchain_usdf_supply: Decimal = Decimal(0)
    offchain_fthusd_supply: Decimal = Decimal(0)
    offchain_usdf_supply: Decimal = Decimal(0)
    por_fthusd_liabilities: Decimal = Decimal(0)
    por_usdf_liabilities: Decimal = Decimal(0)
    por_total_assets: Decimal = Decimal(0)
    por_coverage_percent: Decimal = Decimal(0)
    invariants: Invariants = field(default_factory=Invariants)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form; amounts as decimal strings."""
        return {
            "timestamp": self.timestamp,
            "status": self.status,
            "details": self.details,
            "tolerance": str(self.tolerance),
            "onChainFTHUSDSupply": str(self.onchain_fthusd_supply),
            "onChainUSDFSupply": str(self.onchain_usdf_supply),
            "dbFTHUSDSupply": str(self.offchain_fthusd_supply),
            "dbUSDFSupply": str(self.offchain_usdf_supply),
            "porLiabilitiesFTHUSD": str(self.por_fthusd_liabilities),
            "porLiabilitiesUSDF": str(self.por_usdf_liabilities),
            "porTotalAssets": str(self.por_total_assets),
            "porCoverageRatio": str(self.por_coverage_percent),
            "invariants": self.invariants.to_dict(),
        }


# =========================================================================
# Helpers (pure)
# =========================================================================


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    return abs(a - b) < tolerance


def record_amount(record: LedgerTransactionRecord) -> Decimal:
    """Amount from a record's payload summary; 0 when absent.

    Raises:
        ValueError: If the stored amount is not a decimal number.
    """
    payload = record.payload()
    for key in AMOUNT_KEYS:
        value = payload.get(key)
        if value not in (None, ""):
            try:
                amount = Decimal(str(value))
            except InvalidOperation as exc:
                raise ValueError(
                    f"record {record.id} has a non-numeric {key}: {value!r}"
                ) from exc
            if not amount.is_finite():
                raise ValueError(f"record {record.id} has a non-finite {key}")
            return amount
    return Decimal(0)


def sum_amounts(records: Iterable[LedgerTransactionRecord]) -> Decimal:
    return sum((record_amount(r) for r in records), Decimal(0))


def cents_to_units(cents: int | str) -> Decimal:
    return Decimal(cents) / _CENTS


# =========================================================================
# Engine
# =========================================================================


class ReconciliationEngine:
    """Recomputes the three supply views and persists a report.

    Args:
        ledger: On-chain supply reader (LedgerClient).
        registry: Latest PoR reader (RegistryClient).
        store: Audit store; read for history, written for the report.
        tolerance: Absolute tolerance in token units.
        clock: RFC3339 timestamp source.
    """

    def __init__(
        self,
        ledger: SupplyReader,
        registry: PoRReader,
        store: RecordStore,
        *,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        clock: Callable[[], str] = now_utc,
    ) -> None:
        if tolerance <= 0:
            raise ValueError("tolerance must be positive")
        self._ledger = ledger
        self._registry = registry
        self._store = store
        self._tolerance = tolerance
        self._clock = clock

    def offchain_supply(self, currency: str) -> Decimal:
        credit_flow, debit_flow = SUPPLY_FLOWS[currency]
        credits = self._store.list_records(flow=credit_flow, status=TxStatus.CONFIRMED)
        debits = self._store.list_records(flow=debit_flow, status=TxStatus.CONFIRMED)
        return sum_amounts(credits) - sum_amounts(debits)

    def por_usdf_liabilities(self, snapshot: PoRSnapshotRecord) -> Decimal:
        """USDF figure recorded alongside the registry write of this snapshot."""
        records = self._store.list_records(
            flow=Flow.POR_SNAPSHOT,
            status=TxStatus.CONFIRMED,
            ledger=Ledger.EVM,
        )
        for record in reversed(records):
            payload = record.payload()
            if str(payload.get("hash", "")).lower() == snapshot.canonical_hash.lower():
                return cents_to_units(payload.get("usdfOffBalanceCents", 0))
        return Decimal(0)

    async def reconcile(self) -> ReconciliationReport:
        """Gather figures and evaluate the invariants. Does not persist."""
        timestamp = self._clock()
        try:
            onchain_fthusd = await self._ledger.get_issued_supply(FTHUSD)
            onchain_usdf = await self._ledger.get_issued_supply(USDF)

            offchain_fthusd = self.offchain_supply(FTHUSD)
            offchain_usdf = self.offchain_supply(USDF)

            snapshot = await self._registry.get_latest_por()
            if snapshot is None:
                raise LookupError("no PoR snapshot has been published")
            por_fthusd = cents_to_units(snapshot.total_liabilities)
            por_usdf = self.por_usdf_liabilities(snapshot)
            por_assets = cents_to_units(snapshot.total_assets)
            coverage = Decimal(snapshot.coverage_ratio_bps) / 100
        except Exception as exc:
            logger.exception("reconciliation could not gather figures")
            return ReconciliationReport(
                timestamp=timestamp,
                status="failure",
                details=f"Reconciliation failed: {exc}",
                tolerance=self._tolerance,
            )

        tol = self._tolerance
        invariants = Invariants(
            onchain_fthusd_matches_db=within_tolerance(onchain_fthusd, offchain_fthusd, tol),
            onchain_usdf_matches_db=within_tolerance(onchain_usdf, offchain_usdf, tol),
            onchain_fthusd_matches_por=within_tolerance(onchain_fthusd, por_fthusd, tol),
            onchain_usdf_matches_por=within_tolerance(onchain_usdf, por_usdf, tol),
            por_coverage_above_threshold=coverage >= MIN_COVERAGE_PERCENT,
        )
        if invariants.all_hold:
            status, details = "success", "All supply and reserve invariants satisfied."
        else:
            failed = [name for name, ok in invariants.to_dict().items() if not ok]
            status = "failure"
            details = "Invariants failed: " + ", ".join(failed)

        return ReconciliationReport(
            timestamp=timestamp,
            status=status,
            details=details,
            tolerance=tol,
            onchain_fthusd_supply=onchain_fthusd,
            onchain_usdf_supply=onchain_usdf,
            offchain_fthusd_supply=offchain_fthusd,
            offchain_usdf_supply=offchain_usdf,
            por_fthusd_liabilities=por_fthusd,
            por_usdf_liabilities=por_usdf,
            por_total_assets=por_assets,
            por_coverage_percent=coverage,
            invariants=invariants,
        )

    def persist(
        self,
        report: ReconciliationReport,
        *,
        request_id: str | None = None,
    ) -> LedgerTransactionRecord:
        record = LedgerTransactionRecord.pending(
            ledger=Ledger.INTERNAL,
            flow=Flow.SUPPLY_RECONCILIATION,
            direction=Direction.INTERNAL,
            payload=report.to_payload(),
            request_id=request_id,
        )
        if report.succeeded:
            record = record.mark_confirmed()
        else:
            record = record.mark_failed(
                error_code=FAILURE_CODE,
                error_message=report.details,
            )
        return self._store.create(record)

    async def run(
        self, *, request_id: str | None = None
    ) -> tuple[ReconciliationReport, LedgerTransactionRecord]:
        """Reconcile and persist. Always leaves exactly one record."""
        report = await self.reconcile()
        record = self.persist(report, request_id=request_id)
        if report.succeeded:
            logger.info("reconciliation succeeded", extra={"record_id": record.id})
        else:
            logger.error(
                "reconciliation failed: %s", report.details,
                extra={"record_id": record.id},
            )
        return report, record
