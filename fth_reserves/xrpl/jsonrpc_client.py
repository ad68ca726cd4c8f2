"""
XRPL JSON-RPC client.

Translates rippled JSON-RPC responses into the typed results in
``responses``. Uses an injectable transport (JsonRpcTransport) so the
HTTP layer can be swapped for test fakes without changing parsing logic.

No retry loops. No secrets. No XRPL logic beyond request shaping and
response parsing.

Error conventions:
    - Transport exceptions propagate unchanged.
    - Server-level errors on queries raise RpcError.
    - submit never raises for an engine result; a rejection is data.
    - tx returns found=False for txnNotFound.

Response shapes follow rippled conventions:
    - {"result": {"status": "success", ...}}
    - {"result": {"status": "error", "error": "...", "error_message": "..."}}
"""

from __future__ import annotations

import itertools
from decimal import Decimal
from typing import Any

from fth_reserves.xrpl.errors import RpcError
from fth_reserves.xrpl.responses import (
    AccountInfo,
    AccountLine,
    BookOffer,
    FeeInfo,
    SubmitResult,
    TxResponse,
)
from fth_reserves.xrpl.transport import HttpxTransport, JsonRpcTransport
from fth_reserves.xrpl.tx import decode_currency, encode_currency

_request_ids = itertools.count(1)

# Safety valve for account_lines pagination.
MAX_PAGES = 1000


class JsonRpcClient:
    """XRPL JSON-RPC client.

    Args:
        url: The rippled JSON-RPC endpoint URL (e.g. "http://localhost:5005").
        transport: Injectable transport for HTTP POST. Defaults to
            HttpxTransport. Pass a FakeTransport for testing.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
    ) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()

    @property
    def url(self) -> str:
        return self._url

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def open(self) -> None:
        """Open the transport if it supports it, then ping the node."""
        opener = getattr(self._transport, "open", None)
        if opener is not None:
            await opener()
        await self.ping()

    async def aclose(self) -> None:
        closer = getattr(self._transport, "aclose", None)
        if closer is not None:
            await closer()

    async def _request(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "method": method,
            "params": [params],
            "id": next(_request_ids),
        }
        response = await self._transport.post_json(self._url, payload)
        result = response.get("result")
        if not isinstance(result, dict):
            raise RpcError(method, "malformedResponse", "no result object")
        return result

    async def _query(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        result = await self._request(method, params)
        _raise_for_error(method, result)
        return result

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    async def ping(self) -> None:
        await self._query("ping", {})

    async def account_info(
        self, account: str, *, ledger_index: str = "current"
    ) -> AccountInfo:
        result = await self._query(
            "account_info",
            {"account": account, "ledger_index": ledger_index},
        )
        return _parse_account_info(result)

    async def account_lines(
        self,
        account: str,
        *,
        peer: str | None = None,
        ledger_index: str = "validated",
    ) -> list[AccountLine]:
        """All trustlines of an account, following ``marker`` pagination."""
        lines: list[AccountLine] = []
        marker: Any = None
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {"account": account, "ledger_index": ledger_index}
            if peer is not None:
                params["peer"] = peer
            if marker is not None:
                params["marker"] = marker
            result = await self._query("account_lines", params)
            lines.extend(_parse_account_lines(result))
            marker = result.get("marker")
            if marker is None:
                return lines
        raise RpcError("account_lines", "tooManyPages", f"more than {MAX_PAGES} pages")

    async def fee(self) -> FeeInfo:
        result = await self._query("fee", {})
        return _parse_fee(result)

    async def ledger_current(self) -> int:
        result = await self._query("ledger_current", {})
        index = result.get("ledger_current_index")
        if not isinstance(index, int):
            raise RpcError("ledger_current", "malformedResponse", "no ledger_current_index")
        return index

    async def book_offers(
        self,
        taker_gets: tuple[str, str | None],
        taker_pays: tuple[str, str | None],
        *,
        limit: int = 50,
    ) -> list[BookOffer]:
        """Offers in one order book. Sides are (currency, issuer or None for XRP)."""
        result = await self._query(
            "book_offers",
            {
                "taker_gets": _book_side(*taker_gets),
                "taker_pays": _book_side(*taker_pays),
                "limit": limit,
                "ledger_index": "validated",
            },
        )
        return _parse_book_offers(result)

    # -----------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        """Submit a signed blob. Engine rejections are returned, not raised."""
        result = await self._request("submit", {"tx_blob": signed_tx_blob_hex})
        return _parse_submit_response(result)

    async def tx(
        self,
        tx_hash: str,
        *,
        min_ledger: int | None = None,
        max_ledger: int | None = None,
    ) -> TxResponse:
        params: dict[str, Any] = {"transaction": tx_hash, "binary": False}
        if min_ledger is not None and max_ledger is not None:
            params["min_ledger"] = min_ledger
            params["max_ledger"] = max_ledger
        result = await self._request("tx", params)
        return _parse_tx_response(tx_hash, result)


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _raise_for_error(method: str, result: dict[str, Any]) -> None:
    if result.get("status") == "error":
        raise RpcError(
            method,
            str(result.get("error", "unknown")),
            result.get("error_message"),
        )


def _book_side(currency: str, issuer: str | None) -> dict[str, str]:
    if currency == "XRP" or issuer is None:
        return {"currency": "XRP"}
    return {"currency": encode_currency(currency), "issuer": issuer}


def _parse_account_info(result: dict[str, Any]) -> AccountInfo:
    data = result.get("account_data")
    if not isinstance(data, dict):
        raise RpcError("account_info", "malformedResponse", "no account_data")
    return AccountInfo(
        account=str(data["Account"]),
        balance_drops=int(data.get("Balance", 0)),
        sequence=int(data["Sequence"]),
        owner_count=int(data.get("OwnerCount", 0)),
        flags=int(data.get("Flags", 0)),
    )


def _parse_account_lines(result: dict[str, Any]) -> list[AccountLine]:
    return [
        AccountLine(
            account=str(line["account"]),
            currency=decode_currency(str(line["currency"])),
            balance=Decimal(str(line["balance"])),
            limit=Decimal(str(line.get("limit", "0"))),
            no_ripple=bool(line.get("no_ripple", False)),
            authorized=bool(line.get("authorized", False) or line.get("peer_authorized", False)),
        )
        for line in result.get("lines", [])
    ]


def _parse_fee(result: dict[str, Any]) -> FeeInfo:
    drops = result.get("drops")
    if not isinstance(drops, dict):
        raise RpcError("fee", "malformedResponse", "no drops object")
    current = result.get("ledger_current_index")
    return FeeInfo(
        base_fee_drops=int(drops.get("base_fee", 10)),
        open_ledger_fee_drops=int(drops.get("open_ledger_fee", drops.get("base_fee", 10))),
        ledger_current_index=int(current) if current is not None else None,
    )


def _parse_amount(amount: Any) -> tuple[str, str, str]:
    if isinstance(amount, dict):
        return (
            decode_currency(str(amount["currency"])),
            str(amount.get("issuer", "")),
            str(amount["value"]),
        )
    return ("XRP", "", str(amount))


def _parse_book_offers(result: dict[str, Any]) -> list[BookOffer]:
    offers: list[BookOffer] = []
    for offer in result.get("offers", []):
        gets = _parse_amount(offer["TakerGets"])
        pays = _parse_amount(offer["TakerPays"])
        offers.append(
            BookOffer(
                account=str(offer["Account"]),
                sequence=int(offer.get("Sequence", 0)),
                gets_currency=gets[0],
                gets_issuer=gets[1],
                gets_value=gets[2],
                pays_currency=pays[0],
                pays_issuer=pays[1],
                pays_value=pays[2],
                quality=offer.get("quality"),
            )
        )
    return offers


def _parse_submit_response(result: dict[str, Any]) -> SubmitResult:
    """Parse a rippled submit result.

    Handles:
        - Engine result present (accepted or rejected)
        - Server-level errors (status == "error")
        - Missing engine_result
    """
    if result.get("status") == "error":
        return SubmitResult(
            engine_result=None,
            engine_result_message=result.get("error_message"),
            error=str(result.get("error", "unknown server error")),
        )

    engine_result = result.get("engine_result")
    if engine_result is None:
        return SubmitResult(
            engine_result=None,
            engine_result_message="no engine_result in submit response",
            error="malformedResponse",
        )

    tx_hash = None
    tx_json = result.get("tx_json")
    if isinstance(tx_json, dict):
        tx_hash = tx_json.get("hash")

    # Older servers omit "accepted"; infer it from the result prefix.
    accepted = result.get("accepted")
    if accepted is None:
        accepted = engine_result == "tesSUCCESS" or engine_result.startswith(("ter", "tec"))

    return SubmitResult(
        engine_result=engine_result,
        engine_result_message=result.get("engine_result_message"),
        tx_hash=tx_hash,
        accepted=bool(accepted),
    )


def _parse_tx_response(tx_hash: str, result: dict[str, Any]) -> TxResponse:
    """Parse a rippled tx result.

    Handles:
        - Found and validated
        - Found but not yet validated
        - txnNotFound (with searched_all when a ledger range was given)

    Raises:
        RpcError: For any other server-level error.
    """
    if result.get("status") == "error":
        if result.get("error") == "txnNotFound":
            return TxResponse(
                tx_hash=tx_hash,
                found=False,
                searched_all=bool(result.get("searched_all", False)),
            )
        _raise_for_error("tx", result)

    validated = bool(result.get("validated", False))
    engine_result = None
    meta = result.get("meta")
    if isinstance(meta, dict):
        engine_result = meta.get("TransactionResult")

    ledger_index = result.get("ledger_index")
    return TxResponse(
        tx_hash=str(result.get("hash", tx_hash)),
        found=True,
        validated=validated,
        engine_result=engine_result,
        ledger_index=int(ledger_index) if validated and ledger_index is not None else None,
        close_time_iso=result.get("close_time_iso"),
    )
