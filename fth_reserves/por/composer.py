"""
PoRComposer: turns a snapshot input into a cross-ledger published snapshot.

Algorithm (``publish_snapshot``):
    1. total_assets = bank + gold + other (integer cents).
    2. total_liabilities = FTHUSD liabilities.
    3. Guard: assets < liabilities raises UnderCollateralizedError
       before any write to either ledger.
    4. coverage_ratio_bps = (assets * 10000) // liabilities; 0 when
       liabilities are 0.
    5. Canonical payload, fixed key order, compact separators, UTF-8.
       Hash = Keccak-256, 0x-prefixed hex.
    6. Register on the EVM PoR registry (registry of record).
    7. Anchor hash + ISO timestamp on XRPL (corroborating evidence).
    8. Return the result.

Failure semantics:
    - Guard failure: nothing written anywhere.
    - EVM failure: RegistryError propagates, XRPL anchor never attempted.
    - Anchor failure: the EVM write stays. AnchorError carries the hash,
      timestamp and EVM tx hash so ``retry_anchor`` can finish the job.

Canonical payload key order (part of the hash contract):
    asOf, bankUsdCents, goldUsdCents, otherAssetsUsdCents, totalAssets,
    totalLiabilities, coverageRatioBps, uri

Cent figures are decimal strings, coverageRatioBps is a JSON integer,
asOf is ISO-8601 UTC with milliseconds and a ``Z`` suffix.
"""

from __future__ import annotations

import logging
from typing import Any

from fth_reserves.canonical_json import ordered_json_bytes
from fth_reserves.errors import (
    AnchorError,
    FTHError,
    UnderCollateralizedError,
)
from fth_reserves.evm.registry import RegistryClient
from fth_reserves.integrity import keccak256_hex
from fth_reserves.por.types import PoRSnapshotInput, PoRSnapshotResult
from fth_reserves.xrpl.ledger_client import LedgerClient

logger = logging.getLogger(__name__)

BPS_SCALE = 10_000


# =========================================================================
# Pure computation
# =========================================================================


def compute_totals(snapshot: PoRSnapshotInput) -> tuple[int, int]:
    """(total_assets, total_liabilities) in cents."""
    return snapshot.total_assets, snapshot.total_liabilities


def coverage_ratio_bps(total_assets: int, total_liabilities: int) -> int:
    """floor(assets * 10000 / liabilities); 0 when liabilities are 0."""
    if total_liabilities == 0:
        return 0
    return (total_assets * BPS_SCALE) // total_liabilities


def canonical_payload(snapshot: PoRSnapshotInput) -> dict[str, Any]:
    """The hash input, in its fixed key order."""
    total_assets, total_liabilities = compute_totals(snapshot)
    return {
        "asOf": snapshot.as_of_iso,
        "bankUsdCents": str(snapshot.bank_usd_cents),
        "goldUsdCents": str(snapshot.gold_usd_cents),
        "otherAssetsUsdCents": str(snapshot.other_assets_usd_cents),
        "totalAssets": str(total_assets),
        "totalLiabilities": str(total_liabilities),
        "coverageRatioBps": coverage_ratio_bps(total_assets, total_liabilities),
        "uri": snapshot.uri,
    }


def snapshot_hash(snapshot: PoRSnapshotInput) -> str:
    """Keccak-256 of the canonical payload bytes, 0x-prefixed."""
    return keccak256_hex(ordered_json_bytes(canonical_payload(snapshot)))


def check_collateral(snapshot: PoRSnapshotInput) -> None:
    total_assets, total_liabilities = compute_totals(snapshot)
    if total_assets < total_liabilities:
        raise UnderCollateralizedError(total_assets, total_liabilities)


# =========================================================================
# Orchestrator
# =========================================================================


class PoRComposer:
    """Publishes snapshots to the EVM registry and anchors them on XRPL."""

    def __init__(self, registry: RegistryClient, ledger: LedgerClient) -> None:
        self._registry = registry
        self._ledger = ledger

    async def publish_snapshot(
        self,
        snapshot: PoRSnapshotInput,
        *,
        request_id: str | None = None,
    ) -> PoRSnapshotResult:
        """Guard, hash, register, anchor.

        Raises:
            UnderCollateralizedError: assets < liabilities. Nothing written.
            RegistryError: EVM write failed. Nothing anchored.
            SubmissionTimeout: EVM write broadcast but unmined. Nothing anchored.
            AnchorError: EVM write succeeded, XRPL anchor failed.
        """
        check_collateral(snapshot)

        total_assets, total_liabilities = compute_totals(snapshot)
        coverage = coverage_ratio_bps(total_assets, total_liabilities)
        por_hash = snapshot_hash(snapshot)
        as_of_iso = snapshot.as_of_iso

        receipt = await self._registry.record_por_snapshot(
            por_hash,
            snapshot.as_of_unix,
            coverage,
            total_assets,
            total_liabilities,
            snapshot.uri,
            usdf_off_balance_cents=snapshot.usdf_off_balance_cents,
            request_id=request_id,
        )
        logger.info(
            "por snapshot registered",
            extra={"por_hash": por_hash, "evm_tx_hash": receipt.tx_hash, "coverage_bps": coverage},
        )

        xrpl_tx_hash = await self._anchor(
            por_hash, as_of_iso, evm_tx_hash=receipt.tx_hash, request_id=request_id
        )
        return PoRSnapshotResult(
            canonical_hash=por_hash,
            coverage_ratio_bps=coverage,
            evm_tx_hash=receipt.tx_hash,
            xrpl_tx_hash=xrpl_tx_hash,
            as_of_iso=as_of_iso,
        )

    async def retry_anchor(
        self,
        canonical_hash: str,
        as_of_iso: str,
        *,
        evm_tx_hash: str = "",
        request_id: str | None = None,
    ) -> str:
        """Re-anchor an already registered snapshot. Returns the XRPL tx hash."""
        return await self._anchor(
            canonical_hash, as_of_iso, evm_tx_hash=evm_tx_hash, request_id=request_id
        )

    async def _anchor(
        self,
        por_hash: str,
        as_of_iso: str,
        *,
        evm_tx_hash: str,
        request_id: str | None,
    ) -> str:
        try:
            response = await self._ledger.anchor_por(
                por_hash, as_of_iso, request_id=request_id
            )
        except FTHError as exc:
            logger.error(
                "por anchor failed: %s", exc,
                extra={"por_hash": por_hash, "evm_tx_hash": evm_tx_hash},
            )
            raise AnchorError(
                f"XRPL anchoring failed for {por_hash}: {exc}",
                canonical_hash=por_hash,
                as_of_iso=as_of_iso,
                evm_tx_hash=evm_tx_hash,
            ) from exc
        logger.info("por anchored", extra={"por_hash": por_hash, "xrpl_tx_hash": response.tx_hash})
        return response.tx_hash
