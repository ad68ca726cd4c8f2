"""
``fth-reserves`` command line.

    fth-reserves reconcile
    fth-reserves por-snapshot [--as-of ISO8601]
    fth-reserves retry-anchor --hash 0x... --as-of ISO8601 [--evm-tx-hash 0x...]
    fth-reserves dex-scan
    fth-reserves records [--flow F] [--status S] [--ledger L] [--limit N]
    fth-reserves scheduler

Exit code 0 on success, 1 on any failure or failed invariant. Settings or
wiring that fail at startup also exit 1, after one failed ledger event.
`records` lists newest first.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone

from pydantic import ValidationError

from fth_reserves.config import Settings, get_settings
from fth_reserves.jobs import (
    build_scheduler,
    new_correlation_id,
    run_dex_scan,
    run_por_snapshot,
    run_reconciliation,
    run_retry_anchor,
)
from fth_reserves.logs import configure_logging, log_ledger_event
from fth_reserves.records import Flow, Ledger, TxStatus
from fth_reserves.wiring import Application, build_application


def _parse_as_of(text: str) -> datetime:
    try:
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {text!r}") from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _startup_failed(exc: Exception, flow: Flow, correlation_id: str | None) -> int:
    if isinstance(exc, ValidationError):
        # field locations only; rejected inputs may be key material
        message = "; ".join(
            f"{'.'.join(map(str, err['loc']))}: {err['msg']}"
            for err in exc.errors(include_input=False)
        )
    else:
        message = str(exc)
    log_ledger_event(
        flow=flow.value,
        ledger=Ledger.INTERNAL.value,
        status="failed",
        correlation_id=correlation_id,
        error_code=type(exc).__name__,
        error_message=message,
    )
    return 1


def _run(
    func: Callable[[Application], Awaitable[int]],
    *,
    flow: Flow = Flow.OTHER,
    correlation_id: str | None = None,
) -> int:
    try:
        settings = get_settings()
    except Exception as exc:
        configure_logging(Settings.model_construct())
        return _startup_failed(exc, flow, correlation_id)
    configure_logging(settings)
    try:
        app = build_application(settings)
    except Exception as exc:
        return _startup_failed(exc, flow, correlation_id)

    async def go() -> int:
        try:
            return await func(app)
        finally:
            await app.aclose()

    return asyncio.run(go())


# =========================================================================
# Commands
# =========================================================================


def cmd_reconcile(args: argparse.Namespace) -> int:
    return _run(
        lambda app: run_reconciliation(app, correlation_id=args.correlation_id),
        flow=Flow.SUPPLY_RECONCILIATION,
        correlation_id=args.correlation_id,
    )


def cmd_por_snapshot(args: argparse.Namespace) -> int:
    return _run(
        lambda app: run_por_snapshot(
            app, correlation_id=args.correlation_id, as_of=args.as_of
        ),
        flow=Flow.POR_SNAPSHOT,
        correlation_id=args.correlation_id,
    )


def cmd_retry_anchor(args: argparse.Namespace) -> int:
    return _run(
        lambda app: run_retry_anchor(
            app,
            args.hash,
            args.as_of,
            evm_tx_hash=args.evm_tx_hash,
            correlation_id=args.correlation_id,
        ),
        flow=Flow.POR_ANCHORING,
        correlation_id=args.correlation_id,
    )


def cmd_dex_scan(args: argparse.Namespace) -> int:
    return _run(
        lambda app: run_dex_scan(app, correlation_id=args.correlation_id),
        flow=Flow.DEX_SCAN_ALERT,
        correlation_id=args.correlation_id,
    )


def cmd_records(args: argparse.Namespace) -> int:
    async def dump(app: Application) -> int:
        records = app.store.list_records(
            flow=args.flow,
            status=args.status,
            ledger=args.ledger,
            limit=args.limit,
            newest_first=True,
        )
        for record in records:
            sys.stdout.write(json.dumps(record.to_dict(), sort_keys=True) + "\n")
        return 0

    return _run(dump, correlation_id=args.correlation_id)


def cmd_scheduler(args: argparse.Namespace) -> int:
    async def serve(app: Application) -> int:
        scheduler = build_scheduler(app)
        await scheduler.run_forever()
        return 0

    return _run(serve, correlation_id=args.correlation_id)


# =========================================================================
# Entry point
# =========================================================================


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="fth-reserves")
    ap.add_argument(
        "--correlation-id",
        default=None,
        help="Correlation id for logs and records (default: random UUID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("reconcile", help="Reconcile on-chain, off-chain and PoR supply")
    r.set_defaults(func=cmd_reconcile)

    p = sub.add_parser("por-snapshot", help="Publish and anchor a PoR snapshot")
    p.add_argument("--as-of", type=_parse_as_of, default=None)
    p.set_defaults(func=cmd_por_snapshot)

    a = sub.add_parser("retry-anchor", help="Re-anchor a registered snapshot on XRPL")
    a.add_argument("--hash", required=True)
    a.add_argument("--as-of", required=True, help="ISO timestamp exactly as registered")
    a.add_argument("--evm-tx-hash", default="")
    a.set_defaults(func=cmd_retry_anchor)

    d = sub.add_parser("dex-scan", help="Alert on DEX offers in program currencies")
    d.set_defaults(func=cmd_dex_scan)

    ls = sub.add_parser("records", help="List ledger transaction records")
    ls.add_argument("--flow", type=Flow, choices=list(Flow), default=None)
    ls.add_argument("--status", type=TxStatus, choices=list(TxStatus), default=None)
    ls.add_argument("--ledger", type=Ledger, choices=list(Ledger), default=None)
    ls.add_argument("--limit", type=int, default=50)
    ls.set_defaults(func=cmd_records)

    s = sub.add_parser("scheduler", help="Run the PoR, reconciliation and DEX scan jobs")
    s.set_defaults(func=cmd_scheduler)
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.correlation_id is None:
        args.correlation_id = new_correlation_id()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
