"""
XRPL engine result classification.

Keeps the mapping coarse and conservative. Prefixes:
    - tes: success (tesSUCCESS)
    - tec: claimed cost; included in a ledger but failed
    - tef: local failure; never forwarded
    - tel: local error; never forwarded
    - tem: malformed; will never succeed
    - ter: retry; may still apply in a later ledger

Reference:
    https://xrpl.org/docs/references/protocol/transactions/transaction-results
"""

from __future__ import annotations

from enum import StrEnum

from fth_reserves.errors import FTHError


class EngineResultClass(StrEnum):
    SUCCESS = "success"
    CLAIMED = "claimed"
    FAILED_LOCALLY = "failed_locally"
    MALFORMED = "malformed"
    RETRY = "retry"
    UNKNOWN = "unknown"


_PREFIX_MAP: dict[str, EngineResultClass] = {
    "tes": EngineResultClass.SUCCESS,
    "tec": EngineResultClass.CLAIMED,
    "tef": EngineResultClass.FAILED_LOCALLY,
    "tel": EngineResultClass.FAILED_LOCALLY,
    "tem": EngineResultClass.MALFORMED,
    "ter": EngineResultClass.RETRY,
}


def classify_engine_result(engine_result: str | None) -> EngineResultClass:
    """Map an engine result code to its class. None means no response."""
    if engine_result is None:
        return EngineResultClass.UNKNOWN
    for prefix, cls in _PREFIX_MAP.items():
        if engine_result.startswith(prefix):
            return cls
    return EngineResultClass.UNKNOWN


def is_final_rejection(engine_result: str | None) -> bool:
    """Whether a preliminary result means the tx can never be validated.

    tem/tef/tel results are never forwarded to the network. tec and ter
    results may still end up in a validated ledger, so the outcome must
    be read from the validated ledger instead.
    """
    return classify_engine_result(engine_result) in (
        EngineResultClass.MALFORMED,
        EngineResultClass.FAILED_LOCALLY,
    )


class RpcError(FTHError):
    """The node answered a query with a server-level error.

    Treated like a transport failure by the LedgerClient: the request
    never produced ledger state.
    """

    def __init__(self, method: str, error: str, message: str | None = None) -> None:
        super().__init__(f"{method} failed: {error}" + (f" ({message})" if message else ""))
        self.method = method
        self.error = error
        self.error_message = message
