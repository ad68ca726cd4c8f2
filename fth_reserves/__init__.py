"""
fth-reserves: cross-ledger reserves core for FTHUSD and USDF.

Every ledger interaction is:
- validated before it is signed
- recorded as a pending audit record before it is submitted
- moved to confirmed or failed exactly once

Proof-of-reserves snapshots are registered on an EVM registry and
anchored on XRPL; reconciliation checks that on-chain supply, the audit
trail and the latest snapshot agree.
"""

__version__ = "0.1.0"

from fth_reserves.compliance import ComplianceSync, KYCStatus, MemberKYC
from fth_reserves.errors import (
    AnchorError,
    ConfigurationError,
    FTHError,
    JobLockedError,
    LedgerConnectionError,
    RegistryError,
    SubmissionTimeout,
    TransactionError,
    UnderCollateralizedError,
    ValidationError,
)
from fth_reserves.reconciliation import (
    Invariants,
    ReconciliationEngine,
    ReconciliationReport,
)
from fth_reserves.records import (
    Direction,
    Flow,
    Ledger,
    LedgerTransactionRecord,
    TxStatus,
)
from fth_reserves.store import RecordStore, ReservesStore
from fth_reserves.treasury import SnapshotBuilder

__all__ = [
    "__version__",
    # Records
    "Direction",
    "Flow",
    "Ledger",
    "LedgerTransactionRecord",
    "TxStatus",
    "RecordStore",
    "ReservesStore",
    # Errors
    "AnchorError",
    "ConfigurationError",
    "FTHError",
    "JobLockedError",
    "LedgerConnectionError",
    "RegistryError",
    "SubmissionTimeout",
    "TransactionError",
    "UnderCollateralizedError",
    "ValidationError",
    # Workflows
    "ComplianceSync",
    "KYCStatus",
    "MemberKYC",
    "Invariants",
    "ReconciliationEngine",
    "ReconciliationReport",
    "SnapshotBuilder",
]
