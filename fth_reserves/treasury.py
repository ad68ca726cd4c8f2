"""
Treasury aggregation: builds PoRSnapshotInput from its sources.

Pure aggregation. Sources are read-only; the builder never checks the
coverage invariant (that is the composer's guard).

Sources:
    - BankBalanceSource, GoldCustodySource, OtherAssetsSource:
      asset figures in integer cents.
    - LiabilitySource: FTHUSD liabilities and USDF off-balance cents.

Implementations here:
    - StaticAmountSource: configured figures (custody adapters are
      external vendors; their totals arrive as configuration).
    - StaticLiabilitySource: configured liabilities.
    - IssuedSupplyLiabilitySource: reads circulating supply from the
      issuing ledger and converts token units to cents (ROUND_HALF_UP).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, runtime_checkable

from fth_reserves.por.types import PoRSnapshotInput
from fth_reserves.xrpl.tx import FTHUSD, USDF

CENTS_PER_UNIT = Decimal(100)


@runtime_checkable
class AmountSource(Protocol):
    """A single asset figure in integer cents."""

    async def amount_cents(self, as_of: datetime) -> int: ...


# Distinct names for the three asset roles; same shape.
BankBalanceSource = AmountSource
GoldCustodySource = AmountSource
OtherAssetsSource = AmountSource


@runtime_checkable
class LiabilitySource(Protocol):
    async def fthusd_liabilities_cents(self, as_of: datetime) -> int: ...

    async def usdf_off_balance_cents(self, as_of: datetime) -> int: ...


class SupplyReader(Protocol):
    async def get_issued_supply(self, currency: str) -> Decimal: ...


def units_to_cents(units: Decimal) -> int:
    """Token units (1 FTHUSD = 1 USD) to integer cents, half-up."""
    return int((units * CENTS_PER_UNIT).quantize(Decimal(1), rounding=ROUND_HALF_UP))


# =========================================================================
# Sources
# =========================================================================


@dataclass(frozen=True)
class StaticAmountSource:
    cents: int

    async def amount_cents(self, as_of: datetime) -> int:
        return self.cents


@dataclass(frozen=True)
class StaticLiabilitySource:
    fthusd_cents: int
    usdf_cents: int = 0

    async def fthusd_liabilities_cents(self, as_of: datetime) -> int:
        return self.fthusd_cents

    async def usdf_off_balance_cents(self, as_of: datetime) -> int:
        return self.usdf_cents


class IssuedSupplyLiabilitySource:
    """Liabilities read from the issuing ledger's trustlines.

    ``as_of`` is ignored: the ledger is read at its latest validated state.
    """

    def __init__(self, ledger: SupplyReader) -> None:
        self._ledger = ledger

    async def fthusd_liabilities_cents(self, as_of: datetime) -> int:
        return units_to_cents(await self._ledger.get_issued_supply(FTHUSD))

    async def usdf_off_balance_cents(self, as_of: datetime) -> int:
        return units_to_cents(await self._ledger.get_issued_supply(USDF))


# =========================================================================
# Builder
# =========================================================================


def report_uri(base: str, as_of: datetime) -> str:
    day = as_of.astimezone(timezone.utc).strftime("%Y-%m-%d")
    return f"{base.rstrip('/')}/snapshot-{day}.json"


class SnapshotBuilder:
    def __init__(
        self,
        *,
        bank: BankBalanceSource,
        gold: GoldCustodySource,
        other: OtherAssetsSource,
        liabilities: LiabilitySource,
        report_uri_base: str,
    ) -> None:
        self._bank = bank
        self._gold = gold
        self._other = other
        self._liabilities = liabilities
        self._report_uri_base = report_uri_base

    async def build_snapshot_input(self, as_of: datetime | None = None) -> PoRSnapshotInput:
        """Aggregate all sources as of ``as_of`` (default: now, UTC)."""
        as_of = as_of or datetime.now(timezone.utc)
        return PoRSnapshotInput(
            as_of=as_of,
            bank_usd_cents=await self._bank.amount_cents(as_of),
            gold_usd_cents=await self._gold.amount_cents(as_of),
            other_assets_usd_cents=await self._other.amount_cents(as_of),
            fthusd_liabilities_cents=await self._liabilities.fthusd_liabilities_cents(as_of),
            usdf_off_balance_cents=await self._liabilities.usdf_off_balance_cents(as_of),
            uri=report_uri(self._report_uri_base, as_of),
        )
