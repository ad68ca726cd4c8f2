"""Proof-of-reserves snapshot types and the cross-ledger composer."""

from fth_reserves.por.composer import (
    PoRComposer,
    canonical_payload,
    coverage_ratio_bps,
    snapshot_hash,
)
from fth_reserves.por.types import PoRSnapshotInput, PoRSnapshotResult

__all__ = [
    "PoRComposer",
    "PoRSnapshotInput",
    "PoRSnapshotResult",
    "canonical_payload",
    "coverage_ratio_bps",
    "snapshot_hash",
]
