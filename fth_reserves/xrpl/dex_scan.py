"""
DEX offer scan for the program currencies.

FTHUSD and USDF are not meant to trade on the XRPL DEX. The scan reads
the FTHUSD/XRP and USDF/XRP order books in both directions and writes a
FAILED ``DEX_SCAN_ALERT`` record for every offer that involves a
program currency from its real issuer.
"""

from __future__ import annotations

import logging

from fth_reserves.records import Direction, Flow, Ledger, LedgerTransactionRecord
from fth_reserves.store import RecordStore
from fth_reserves.xrpl.client import XRPLClient
from fth_reserves.xrpl.responses import BookOffer
from fth_reserves.xrpl.tx import FTHUSD, USDF

logger = logging.getLogger(__name__)

ALERT_CODE = "UNAUTHORIZED_DEX_OFFER"


async def scan_dex(
    client: XRPLClient,
    store: RecordStore,
    *,
    fthusd_issuer: str,
    usdf_issuer: str,
    request_id: str | None = None,
) -> list[BookOffer]:
    """Return the program-currency offers found, recording one alert each.

    Transport and RPC errors propagate; the caller decides the exit code.
    """
    watched = [(FTHUSD, fthusd_issuer), (USDF, usdf_issuer)]
    books: list[tuple[tuple[str, str | None], tuple[str, str | None]]] = []
    for currency, issuer in watched:
        books.append((("XRP", None), (currency, issuer)))
        books.append(((currency, issuer), ("XRP", None)))

    detected: list[BookOffer] = []
    for taker_gets, taker_pays in books:
        for offer in await client.book_offers(taker_gets, taker_pays):
            if not any(offer.involves(c, i) for c, i in watched):
                continue
            detected.append(offer)
            logger.warning(
                "unauthorized DEX offer",
                extra={
                    "account": offer.account,
                    "sequence": offer.sequence,
                    "gets": f"{offer.gets_value} {offer.gets_currency}",
                    "pays": f"{offer.pays_value} {offer.pays_currency}",
                },
            )
            record = LedgerTransactionRecord.pending(
                ledger=Ledger.XRPL,
                flow=Flow.DEX_SCAN_ALERT,
                direction=Direction.INTERNAL,
                payload={
                    "account": offer.account,
                    "sequence": offer.sequence,
                    "takerGets": _side(offer.gets_currency, offer.gets_issuer, offer.gets_value),
                    "takerPays": _side(offer.pays_currency, offer.pays_issuer, offer.pays_value),
                },
                wallet_address=offer.account,
                request_id=request_id,
            )
            store.create(
                record.mark_failed(
                    error_code=ALERT_CODE,
                    error_message=f"offer {offer.account}:{offer.sequence} trades a program currency",
                )
            )

    if not detected:
        logger.info("no unauthorized DEX offers detected")
    return detected


def _side(currency: str, issuer: str, value: str) -> dict[str, str]:
    if currency == "XRP":
        return {"currency": "XRP", "value": value}
    return {"currency": currency, "issuer": issuer, "value": value}
