"""
Shared fakes for the ledger, registry and clock boundaries.

Each fake records the calls it receives so tests can assert on what
crossed the boundary, and can be told to fail at a specific step.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from fth_reserves.config import Settings, TreasurySettings, XRPLSettings
from fth_reserves.errors import RegistryError
from fth_reserves.evm.registry import RegistryName, RegistryReceipt
from fth_reserves.store import ReservesStore
from fth_reserves.wiring import Application, build_application
from fth_reserves.xrpl.ledger_client import OpsSigners
from fth_reserves.xrpl.responses import (
    AccountInfo,
    AccountLine,
    BookOffer,
    FeeInfo,
    SubmitResult,
    TxResponse,
)
from fth_reserves.xrpl.signer import SignResult

FTHUSD_ISSUER = "rFTHUSDIssuerXXXXXXXXXXXXXXXXXXXX"
USDF_ISSUER = "rUSDFIssuerXXXXXXXXXXXXXXXXXXXXXX"
GOLD_VAULT = "rGoldVaultXXXXXXXXXXXXXXXXXXXXXXX"
ORACLE_ACCOUNT = "rOracleXXXXXXXXXXXXXXXXXXXXXXXXXX"
OPS_ORACLE = "rOpsOracleXXXXXXXXXXXXXXXXXXXXXXX"
MEMBER = "rMemberAliceXXXXXXXXXXXXXXXXXXXXX"
OTHER_MEMBER = "rMemberBobXXXXXXXXXXXXXXXXXXXXXXX"

CURRENT_LEDGER = 100
LEDGER_OFFSET = 20


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# XRPL signer
# ---------------------------------------------------------------------------


class FakeSigner:
    """XRPLSigner that 'signs' by hashing the prepared dict."""

    def __init__(
        self,
        account: str,
        *,
        key_id: str = "ED00FAKEPUBKEY",
        should_raise: Exception | None = None,
    ) -> None:
        self._account = account
        self._key_id = key_id
        self._should_raise = should_raise
        self.sign_calls: list[dict[str, Any]] = []

    @property
    def account(self) -> str:
        return self._account

    @property
    def key_id(self) -> str:
        return self._key_id

    def sign(self, tx_dict: dict[str, Any]) -> SignResult:
        self.sign_calls.append(dict(tx_dict))
        if self._should_raise is not None:
            raise self._should_raise
        blob = f"{self._account}:{len(self.sign_calls)}".encode().hex().upper()
        return SignResult(
            signed_tx_blob_hex=blob,
            tx_hash=hashlib.sha256(bytes.fromhex(blob)).hexdigest().upper(),
            key_id=self._key_id,
        )


# ---------------------------------------------------------------------------
# XRPL client
# ---------------------------------------------------------------------------


def validated_success(tx_hash: str) -> TxResponse:
    return TxResponse(
        tx_hash=tx_hash,
        found=True,
        validated=True,
        engine_result="tesSUCCESS",
        ledger_index=CURRENT_LEDGER + 1,
    )


class FakeXRPLClient:
    """XRPLClient with scripted responses.

    ``submit_results`` and ``tx_responses`` are consumed in order; when
    empty, submit accepts with tesSUCCESS and ``tx_default`` answers tx.
    Entries may be exceptions, which are raised instead.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.open_error: Exception | None = None
        self.account_info_error: Exception | None = None
        self.submit_results: list[SubmitResult | Exception] = []
        self.tx_responses: list[TxResponse | Exception] = []
        self.tx_default: Callable[[str], TxResponse] = validated_success
        self.sequences: dict[str, int] = {}
        self.lines: dict[str, list[AccountLine]] = {}
        self.books: dict[tuple[Any, Any], list[BookOffer]] = {}
        self.opened = 0
        self.closed = 0

    async def open(self) -> None:
        self.calls.append(("open", None))
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1

    async def aclose(self) -> None:
        self.calls.append(("aclose", None))
        self.closed += 1

    async def account_info(self, account: str, *, ledger_index: str = "current") -> AccountInfo:
        self.calls.append(("account_info", account))
        if self.account_info_error is not None:
            raise self.account_info_error
        sequence = self.sequences.get(account, 1)
        return AccountInfo(account=account, balance_drops=50_000_000, sequence=sequence)

    async def account_lines(self, account: str, **_: Any) -> list[AccountLine]:
        self.calls.append(("account_lines", account))
        return list(self.lines.get(account, []))

    async def fee(self) -> FeeInfo:
        self.calls.append(("fee", None))
        return FeeInfo(base_fee_drops=10, open_ledger_fee_drops=12)

    async def ledger_current(self) -> int:
        self.calls.append(("ledger_current", None))
        return CURRENT_LEDGER

    async def book_offers(
        self,
        taker_gets: tuple[str, str | None],
        taker_pays: tuple[str, str | None],
        *,
        limit: int = 50,
    ) -> list[BookOffer]:
        self.calls.append(("book_offers", (taker_gets, taker_pays)))
        return list(self.books.get((taker_gets, taker_pays), []))

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        self.calls.append(("submit", signed_tx_blob_hex))
        await asyncio.sleep(0)
        if self.submit_results:
            result = self.submit_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return SubmitResult(engine_result="tesSUCCESS", accepted=True)

    async def tx(
        self,
        tx_hash: str,
        *,
        min_ledger: int | None = None,
        max_ledger: int | None = None,
    ) -> TxResponse:
        self.calls.append(("tx", (tx_hash, min_ledger, max_ledger)))
        await asyncio.sleep(0)
        if self.tx_responses:
            response = self.tx_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return self.tx_default(tx_hash)

    def method_calls(self, method: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == method]


def issuer_line(holder: str, currency: str, balance: str) -> AccountLine:
    """A trustline as seen from the issuer: holder balances are negative."""
    return AccountLine(account=holder, currency=currency, balance=-Decimal(balance))


# ---------------------------------------------------------------------------
# EVM registry contract
# ---------------------------------------------------------------------------


class FakeContract:
    """RegistryContract that keeps registry state in memory.

    ``recordSnapshot`` replaces the latest snapshot; compliance writes
    update a per-wallet status tuple.
    """

    def __init__(self) -> None:
        self.transactions: list[tuple[RegistryName, str, tuple[Any, ...]]] = []
        self.revert_next = False
        self.send_error: Exception | None = None
        self.call_error: Exception | None = None
        self.latest: tuple[Any, ...] = (b"\x00" * 32, 0, 0, 0, 0, "")
        self.status: dict[str, list[Any]] = {}
        self._nonce = 0

    async def transact(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> RegistryReceipt:
        if self.send_error is not None:
            raise self.send_error
        self._nonce += 1
        tx_hash = "0x" + f"{self._nonce:064x}"
        self.transactions.append((registry, function, args))
        if self.revert_next:
            self.revert_next = False
            return RegistryReceipt(tx_hash=tx_hash, status=0, block_number=self._nonce)

        if function == "recordSnapshot":
            self.latest = args
        elif function == "setKYCStatus":
            wallet, approved, jurisdiction, flags = args
            entry = self.status.setdefault(wallet, [False, False, 0, 0])
            entry[0], entry[2], entry[3] = approved, jurisdiction, flags
        elif function == "setSanctioned":
            wallet, sanctioned = args
            self.status.setdefault(wallet, [False, False, 0, 0])[1] = sanctioned
        return RegistryReceipt(tx_hash=tx_hash, status=1, block_number=self._nonce, gas_used=21_000)

    async def call(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> Any:
        if self.call_error is not None:
            raise self.call_error
        if function == "latestSnapshot":
            return self.latest
        if function == "getStatus":
            return tuple(self.status.get(args[0], [False, False, 0, 0]))
        raise RegistryError(f"unknown function {function}")


# ---------------------------------------------------------------------------
# Wired application
# ---------------------------------------------------------------------------


def make_settings(**treasury: Any) -> Settings:
    """Settings for the fake ledgers, never reading the environment."""
    return Settings(
        _env_file=None,
        database_path=":memory:",
        xrpl=XRPLSettings(
            fthusd_issuer=FTHUSD_ISSUER,
            usdf_issuer=USDF_ISSUER,
            gold_vault=GOLD_VAULT,
            oracle_account=ORACLE_ACCOUNT,
            poll_interval_s=0.0,
        ),
        treasury=TreasurySettings(liabilities_from_ledger=False, **treasury),
    )


def make_app(settings: Settings | None = None, *, signers: OpsSigners | None = None) -> Application:
    """Application over FakeXRPLClient, FakeContract and an in-memory store."""
    if signers is None:
        signers = OpsSigners(
            bonus=FakeSigner(USDF_ISSUER),
            gold=FakeSigner(GOLD_VAULT),
            oracle=FakeSigner(OPS_ORACLE),
            issuer=FakeSigner(FTHUSD_ISSUER),
        )
    return build_application(
        settings or make_settings(),
        store=ReservesStore(),
        xrpl_client=FakeXRPLClient(),
        contract=FakeContract(),
        signers=signers,
    )
