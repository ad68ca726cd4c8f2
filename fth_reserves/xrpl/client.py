"""
XRPL client protocol: the network boundary.

The LedgerClient depends on this interface, not on a concrete
implementation, which keeps submission logic testable and keeps
``httpx`` out of business logic.

Concrete implementations:
    - JsonRpcClient (rippled JSON-RPC over an injectable transport)
    - FakeLedger (tests)

Query methods raise on failure (transport exception or RpcError).
``submit`` reports engine rejections as data; ``tx`` reports a miss as
``found=False``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fth_reserves.xrpl.responses import (
    AccountInfo,
    AccountLine,
    BookOffer,
    FeeInfo,
    SubmitResult,
    TxResponse,
)


@runtime_checkable
class XRPLClient(Protocol):
    async def open(self) -> None: ...

    async def aclose(self) -> None: ...

    async def account_info(
        self, account: str, *, ledger_index: str = "current"
    ) -> AccountInfo: ...

    async def account_lines(
        self,
        account: str,
        *,
        peer: str | None = None,
        ledger_index: str = "validated",
    ) -> list[AccountLine]: ...

    async def fee(self) -> FeeInfo: ...

    async def ledger_current(self) -> int: ...

    async def book_offers(
        self,
        taker_gets: tuple[str, str | None],
        taker_pays: tuple[str, str | None],
        *,
        limit: int = 50,
    ) -> list[BookOffer]: ...

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult: ...

    async def tx(
        self,
        tx_hash: str,
        *,
        min_ledger: int | None = None,
        max_ledger: int | None = None,
    ) -> TxResponse: ...
