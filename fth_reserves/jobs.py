"""
Operational runners shared by the CLI and the scheduler.

Each runner takes a wired Application and a correlation id, does one
unit of work, emits exactly one ``log_ledger_event`` for its outcome and
returns a process exit code (0 success, 1 failure). Errors become
exit 1 plus a failed event; runners do not raise.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from fth_reserves.canonical_json import canonical_json
from fth_reserves.errors import AnchorError
from fth_reserves.logs import log_ledger_event
from fth_reserves.records import (
    Direction,
    Flow,
    Ledger,
    LedgerTransactionRecord,
)
from fth_reserves.scheduler import DailyAt, Every, JobScheduler
from fth_reserves.store import RecordStore
from fth_reserves.wiring import Application
from fth_reserves.xrpl.dex_scan import scan_dex

POR_JOB = "por_snapshot"
RECONCILIATION_JOB = "supply_reconciliation"
DEX_SCAN_JOB = "dex_scan"

POR_JOB_FAILURE_CODE = "POR_JOB_FAILED"


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def _summary(data: dict[str, object]) -> str:
    return canonical_json(data)


def record_por_job_failure(
    store: RecordStore, exc: BaseException, *, request_id: str | None = None
) -> LedgerTransactionRecord:
    """Failed INTERNAL por_snapshot record for a PoR run that did not finish."""
    record = LedgerTransactionRecord.pending(
        ledger=Ledger.INTERNAL,
        flow=Flow.POR_SNAPSHOT,
        direction=Direction.INTERNAL,
        payload={"error": type(exc).__name__},
        request_id=request_id,
    )
    return store.create(
        record.mark_failed(
            error_code=POR_JOB_FAILURE_CODE,
            error_message=str(exc),
            tx_hash=getattr(exc, "tx_hash", None),
        )
    )


# =========================================================================
# Runners
# =========================================================================


async def run_reconciliation(app: Application, *, correlation_id: str | None = None) -> int:
    correlation_id = correlation_id or new_correlation_id()
    report, record = await app.reconciliation.run(request_id=correlation_id)
    log_ledger_event(
        flow=Flow.SUPPLY_RECONCILIATION.value,
        ledger=Ledger.INTERNAL.value,
        status=record.status.value,
        correlation_id=correlation_id,
        error_code=record.error_code,
        error_message=record.error_message,
        payload_summary=_summary(report.invariants.to_dict()),
    )
    return 0 if report.succeeded else 1


async def run_por_snapshot(
    app: Application,
    *,
    correlation_id: str | None = None,
    as_of: datetime | None = None,
) -> int:
    """Build, publish and anchor today's snapshot.

    Any failure writes a failed INTERNAL por_snapshot record. An anchor
    failure also logs the hash and time needed for ``retry-anchor``.
    """
    correlation_id = correlation_id or new_correlation_id()
    try:
        snapshot = await app.snapshots.build_snapshot_input(as_of)
        result = await app.composer.publish_snapshot(snapshot, request_id=correlation_id)
    except Exception as exc:
        record_por_job_failure(app.store, exc, request_id=correlation_id)
        summary = None
        if isinstance(exc, AnchorError):
            summary = _summary(
                {
                    "hash": exc.canonical_hash,
                    "asOf": exc.as_of_iso,
                    "evmTxHash": exc.evm_tx_hash,
                }
            )
        log_ledger_event(
            flow=Flow.POR_SNAPSHOT.value,
            ledger=Ledger.INTERNAL.value,
            status="failed",
            correlation_id=correlation_id,
            tx_hash=getattr(exc, "tx_hash", None),
            error_code=type(exc).__name__,
            error_message=str(exc),
            payload_summary=summary,
        )
        return 1

    log_ledger_event(
        flow=Flow.POR_SNAPSHOT.value,
        ledger=Ledger.EVM.value,
        status="confirmed",
        correlation_id=correlation_id,
        tx_hash=result.evm_tx_hash,
        payload_summary=_summary(
            {
                "hash": result.canonical_hash,
                "asOf": result.as_of_iso,
                "coverageRatioBps": result.coverage_ratio_bps,
                "xrplTxHash": result.xrpl_tx_hash,
            }
        ),
    )
    return 0


async def run_retry_anchor(
    app: Application,
    canonical_hash: str,
    as_of_iso: str,
    *,
    evm_tx_hash: str = "",
    correlation_id: str | None = None,
) -> int:
    correlation_id = correlation_id or new_correlation_id()
    try:
        xrpl_tx_hash = await app.composer.retry_anchor(
            canonical_hash,
            as_of_iso,
            evm_tx_hash=evm_tx_hash,
            request_id=correlation_id,
        )
    except Exception as exc:
        log_ledger_event(
            flow=Flow.POR_ANCHORING.value,
            ledger=Ledger.XRPL.value,
            status="failed",
            correlation_id=correlation_id,
            error_code=type(exc).__name__,
            error_message=str(exc),
            payload_summary=_summary({"hash": canonical_hash, "asOf": as_of_iso}),
        )
        return 1
    log_ledger_event(
        flow=Flow.POR_ANCHORING.value,
        ledger=Ledger.XRPL.value,
        status="confirmed",
        correlation_id=correlation_id,
        tx_hash=xrpl_tx_hash,
        payload_summary=_summary({"hash": canonical_hash, "asOf": as_of_iso}),
    )
    return 0


async def run_dex_scan(app: Application, *, correlation_id: str | None = None) -> int:
    """Exit 1 when any program-currency offer is found or the scan fails."""
    correlation_id = correlation_id or new_correlation_id()
    try:
        await app.ledger.connect()
        offers = await scan_dex(
            app.xrpl,
            app.store,
            fthusd_issuer=app.settings.xrpl.fthusd_issuer,
            usdf_issuer=app.settings.xrpl.usdf_issuer,
            request_id=correlation_id,
        )
    except Exception as exc:
        log_ledger_event(
            flow=Flow.DEX_SCAN_ALERT.value,
            ledger=Ledger.XRPL.value,
            status="failed",
            correlation_id=correlation_id,
            error_code=type(exc).__name__,
            error_message=str(exc),
        )
        return 1
    log_ledger_event(
        flow=Flow.DEX_SCAN_ALERT.value,
        ledger=Ledger.XRPL.value,
        status="failed" if offers else "confirmed",
        correlation_id=correlation_id,
        payload_summary=_summary({"offers": len(offers)}),
    )
    return 1 if offers else 0


# =========================================================================
# Scheduler wiring
# =========================================================================


def build_scheduler(app: Application, *, owner: str | None = None) -> JobScheduler:
    """Register the daily PoR, daily reconciliation and periodic DEX scan jobs."""
    cfg = app.settings.scheduler
    scheduler = JobScheduler(app.store, owner=owner, lease_ttl_s=cfg.lease_ttl_s)

    async def por_job() -> None:
        await run_por_snapshot(app)

    async def reconciliation_job() -> None:
        await run_reconciliation(app)

    async def dex_scan_job() -> None:
        await run_dex_scan(app)

    scheduler.add_job(
        POR_JOB,
        DailyAt.parse(cfg.por_time_utc),
        por_job,
    )
    scheduler.add_job(
        RECONCILIATION_JOB,
        DailyAt.parse(cfg.reconciliation_time_utc),
        reconciliation_job,
    )
    scheduler.add_job(
        DEX_SCAN_JOB,
        Every(timedelta(minutes=cfg.dex_scan_interval_minutes)),
        dex_scan_job,
    )
    return scheduler
