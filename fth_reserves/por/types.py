"""
Proof-of-Reserves value types.

All monetary figures are integer cents (Python ``int``, arbitrary
precision). Floats and bools are rejected at construction, so no
rounding ever enters a published snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

_CENT_FIELDS = (
    "bank_usd_cents",
    "gold_usd_cents",
    "other_assets_usd_cents",
    "fthusd_liabilities_cents",
    "usdf_off_balance_cents",
)


def iso_millis(instant: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    return (
        instant.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass(frozen=True)
class PoRSnapshotInput:
    """Asset and liability aggregate as of one instant.

    Attributes:
        as_of: Timezone-aware instant the figures describe.
        bank_usd_cents: Bank custody cash.
        gold_usd_cents: Value of physical gold holdings.
        other_assets_usd_cents: Everything else backing FTHUSD.
        fthusd_liabilities_cents: Circulating FTHUSD.
        usdf_off_balance_cents: USDF tracked off balance sheet.
        uri: Where the detailed report lives.
    """

    as_of: datetime
    bank_usd_cents: int
    gold_usd_cents: int
    other_assets_usd_cents: int
    fthusd_liabilities_cents: int
    usdf_off_balance_cents: int
    uri: str

    def __post_init__(self) -> None:
        if self.as_of.tzinfo is None or self.as_of.utcoffset() is None:
            raise ValueError("as_of must be timezone-aware")
        for name in _CENT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an int of cents, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if not self.uri:
            raise ValueError("uri must be non-empty")

    @property
    def total_assets(self) -> int:
        return self.bank_usd_cents + self.gold_usd_cents + self.other_assets_usd_cents

    @property
    def total_liabilities(self) -> int:
        return self.fthusd_liabilities_cents

    @property
    def as_of_iso(self) -> str:
        return iso_millis(self.as_of)

    @property
    def as_of_unix(self) -> int:
        return int(self.as_of.timestamp())


@dataclass(frozen=True)
class PoRSnapshotResult:
    """Outcome of one publish: hash, coverage and both ledgers' tx hashes."""

    canonical_hash: str
    coverage_ratio_bps: int
    evm_tx_hash: str
    xrpl_tx_hash: str | None = None
    as_of_iso: str | None = None
