"""
XRPL side of the reserves core.

Public API:

    Pure layer (no I/O):
        - Transaction intents: ``PaymentTx``, ``TrustSetTx``,
          ``NFTokenMintTx``, ``NFTokenBurnTx`` and their ``build_*`` helpers.
        - ``validate_transaction()``: partial-payment, pathfinding and
          no-ripple safety checks.
        - Memo utilities: ``Memo``, hex encode/decode, size checks.

    Impure layer (network I/O):
        - ``LedgerClient``: validate, sign, submit, wait, record.
        - ``scan_dex()``: order-book scan for program-currency offers.

    Protocols (for dependency injection):
        - ``XRPLClient``: network boundary.
        - ``XRPLSigner``: secrets boundary.
        - ``JsonRpcTransport``: HTTP boundary.

    Concrete implementations:
        - ``JsonRpcClient``, ``HttpxTransport``, ``WalletSigner``.
"""

from fth_reserves.xrpl.client import XRPLClient
from fth_reserves.xrpl.dex_scan import ALERT_CODE, scan_dex
from fth_reserves.xrpl.errors import (
    EngineResultClass,
    RpcError,
    classify_engine_result,
    is_final_rejection,
)
from fth_reserves.xrpl.jsonrpc_client import JsonRpcClient
from fth_reserves.xrpl.ledger_client import LedgerClient, OpsSigners
from fth_reserves.xrpl.memo import MAX_MEMO_BYTES, Memo, decode_memos
from fth_reserves.xrpl.responses import (
    SUCCESS,
    AccountInfo,
    AccountLine,
    BookOffer,
    FeeInfo,
    SubmitResult,
    TxResponse,
)
from fth_reserves.xrpl.signer import SignResult, WalletSigner, XRPLSigner
from fth_reserves.xrpl.transport import HttpxTransport, JsonRpcTransport
from fth_reserves.xrpl.tx import (
    FTHUSD,
    USDF,
    IssuedAmount,
    LedgerTx,
    NFTokenBurnTx,
    NFTokenMintTx,
    PaymentTx,
    TrustSetTx,
    build_anchor_payment,
    build_currency_payment,
    build_member_trustlines,
    build_nft_burn,
    build_nft_mint,
    build_trustline,
    build_trustline_authorization,
    validate_transaction,
)

__all__ = [
    # Transactions
    "FTHUSD",
    "USDF",
    "IssuedAmount",
    "LedgerTx",
    "NFTokenBurnTx",
    "NFTokenMintTx",
    "PaymentTx",
    "TrustSetTx",
    "build_anchor_payment",
    "build_currency_payment",
    "build_member_trustlines",
    "build_nft_burn",
    "build_nft_mint",
    "build_trustline",
    "build_trustline_authorization",
    "validate_transaction",
    # Memos
    "MAX_MEMO_BYTES",
    "Memo",
    "decode_memos",
    # Responses
    "SUCCESS",
    "AccountInfo",
    "AccountLine",
    "BookOffer",
    "FeeInfo",
    "SubmitResult",
    "TxResponse",
    # Errors
    "EngineResultClass",
    "RpcError",
    "classify_engine_result",
    "is_final_rejection",
    # Boundaries
    "XRPLClient",
    "XRPLSigner",
    "SignResult",
    "JsonRpcTransport",
    "HttpxTransport",
    "JsonRpcClient",
    "WalletSigner",
    # Orchestration
    "LedgerClient",
    "OpsSigners",
    "ALERT_CODE",
    "scan_dex",
]
