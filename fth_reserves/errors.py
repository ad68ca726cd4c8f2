"""
Error taxonomy for the reserves core.

    ValidationError
        Construction-time: a caller tried to build something that violates a
        safety invariant (partial payment, pathfinding, missing no-ripple,
        under-collateralized snapshot). Raised before any network I/O and
        never accompanied by an audit record. Not retryable.

    LedgerConnectionError
        Transport/session failure reaching a ledger. If raised before
        signing, no record exists. If raised after the pending record was
        written (lost connection mid-submit), the record stays pending and
        ``tx_hash`` identifies the transaction to chase.

    TransactionError
        The ledger rejected or failed the transaction. Carries the ledger's
        own code and message plus the transaction hash. The audit record is
        already marked failed. Retrying means building a fresh transaction.

    SubmissionTimeout
        No validated outcome within the wait bound. The record stays
        pending; the transaction may still validate later.

    RegistryError
        EVM registry write failed (send failure, revert, mining timeout).

    AnchorError
        PoR snapshot registered on the EVM registry but the XRPL anchor
        failed. Carries what an operator needs to retry anchoring alone.

    ConfigurationError
        A workflow needs a wallet, issuer or key that is not configured.

    JobLockedError
        Another runner holds the lease for a scheduled job.

Reconciliation divergence is deliberately not an exception: it is a report
status plus a non-zero runner exit.
"""

from __future__ import annotations


class FTHError(Exception):
    """Base class for all reserves-core errors."""


class ValidationError(FTHError, ValueError):
    """A transaction or snapshot violates a construction-time invariant."""


class UnderCollateralizedError(ValidationError):
    """Total assets are below total liabilities; publishing is refused."""

    def __init__(self, total_assets: int, total_liabilities: int) -> None:
        super().__init__(
            f"assets < liabilities, cannot publish PoR snapshot "
            f"(total_assets={total_assets}, total_liabilities={total_liabilities})"
        )
        self.total_assets = total_assets
        self.total_liabilities = total_liabilities


class LedgerConnectionError(FTHError):
    """Could not reach the ledger node."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class TransactionError(FTHError):
    """The ledger rejected or failed a submitted transaction."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        ledger_message: str | None = None,
        tx_hash: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.ledger_message = ledger_message
        self.tx_hash = tx_hash


class SubmissionTimeout(FTHError):
    """The transaction outcome is unknown after the bounded wait."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class RegistryError(FTHError):
    """An EVM registry call failed or reverted."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class AnchorError(FTHError):
    """The XRPL anchor failed after the EVM registry write succeeded."""

    def __init__(
        self,
        message: str,
        *,
        canonical_hash: str,
        as_of_iso: str,
        evm_tx_hash: str,
    ) -> None:
        super().__init__(message)
        self.canonical_hash = canonical_hash
        self.as_of_iso = as_of_iso
        self.evm_tx_hash = evm_tx_hash


class ConfigurationError(FTHError):
    """A required setting (signer, issuer, registry address) is missing."""


class JobLockedError(FTHError):
    """Another runner holds the lease for this job."""
