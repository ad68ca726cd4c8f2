"""
LedgerClient: single point of submission for XRPL state changes.

Composes the pure planning layer (tx.py, memo.py) with the impure
boundaries (client.py for the network, signer.py for secrets) and the
audit store.

Submission pipeline (``submit``):
    1. Validate the intent's shape. ValidationError, no I/O, no record.
    2. Connect (idempotent). LedgerConnectionError, no record.
    3. Autofill Sequence, Fee, LastLedgerSequence.
       LedgerConnectionError, no record.
    4. Sign. The tx hash is known from here on.
    5. Write a PENDING record.
    6. Submit, then poll ``tx`` until validated, bounded by
       LastLedgerSequence and a wall-clock timeout.
    7. tesSUCCESS in a validated ledger marks the record CONFIRMED.
       Anything else marks it FAILED and raises TransactionError.
    8. A transport failure after step 5 leaves the record PENDING and
       raises LedgerConnectionError carrying the tx hash.
    9. A timeout leaves the record PENDING and raises SubmissionTimeout.

At most one transaction per signing account is in flight: each account
has an asyncio.Lock held from autofill through the final outcome, so
sequence numbers never race.

Member-signed payments (``submit_member_signed``: redemptions and gold
orders) arrive as signed blobs. The blob is decoded and must match the
intent the service built; steps 5 to 9 then apply, with an INBOUND
record.

Key material never reaches this module; signers are opaque.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from fth_reserves.errors import (
    ConfigurationError,
    LedgerConnectionError,
    SubmissionTimeout,
    TransactionError,
    ValidationError,
)
from fth_reserves.records import (
    Direction,
    Flow,
    Ledger,
    LedgerTransactionRecord,
)
from fth_reserves.store import RecordStore
from fth_reserves.xrpl.client import XRPLClient
from fth_reserves.xrpl.errors import is_final_rejection
from fth_reserves.xrpl.memo import (
    MEMO_BONUS_BATCH_ID,
    MEMO_BONUS_DATE,
    MEMO_DEPOSIT_ID,
    MEMO_GOLD_BUYBACK_ID,
    MEMO_GOLD_ORDER_ID,
    MEMO_MEMBER_ID,
    MEMO_REDEMPTION_ID,
    Memo,
    decode_memos,
)
from fth_reserves.xrpl.responses import SUCCESS, AccountInfo, AccountLine, TxResponse
from fth_reserves.xrpl.signer import XRPLSigner, decode_signed_blob, signed_tx_hash
from fth_reserves.xrpl.tx import (
    FTHUSD,
    GOLD_ORDER_NFT_TAXON,
    MEMBERSHIP_NFT_TAXON,
    USDF,
    IssuedAmount,
    LedgerTx,
    NFTokenBurnTx,
    PaymentTx,
    TrustSetTx,
    build_anchor_payment,
    build_currency_payment,
    build_member_trustlines,
    build_nft_burn,
    build_nft_mint,
    build_trustline_authorization,
    decode_currency,
    payload_summary,
    validate_transaction,
)

logger = logging.getLogger(__name__)

# Engine code rippled uses for a transaction that missed its LastLedgerSequence.
EXPIRED_CODE = "tefMAX_LEDGER"


@dataclass(frozen=True)
class OpsSigners:
    """The long-lived operations wallets, one per workflow.

    Any may be None when that workflow is not run from this process.
    """

    bonus: XRPLSigner | None = None
    gold: XRPLSigner | None = None
    oracle: XRPLSigner | None = None
    issuer: XRPLSigner | None = None


class LedgerClient:
    """XRPL submission, validation and audit recording.

    Args:
        client: Network boundary (JsonRpcClient or a fake).
        store: Audit store for ledger transaction records.
        fthusd_issuer, usdf_issuer: Issuer accounts of the program
            currencies.
        gold_vault: Account holding gold order payments and NFTs.
        oracle_account: Destination of PoR anchor payments.
        signers: Operations wallets.
        last_ledger_offset: LastLedgerSequence = current ledger + offset.
        validation_timeout_s: Wall-clock bound on waiting for validation.
        poll_interval_s: Delay between ``tx`` polls.
        network_id: NetworkID to stamp on transactions, if required.
        clock, sleep: Injectable for deterministic tests.
    """

    def __init__(
        self,
        client: XRPLClient,
        store: RecordStore,
        *,
        fthusd_issuer: str,
        usdf_issuer: str,
        gold_vault: str = "",
        oracle_account: str = "",
        signers: OpsSigners | None = None,
        last_ledger_offset: int = 20,
        validation_timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
        network_id: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._store = store
        self.fthusd_issuer = fthusd_issuer
        self.usdf_issuer = usdf_issuer
        self.gold_vault = gold_vault
        self.oracle_account = oracle_account
        self._signers = signers or OpsSigners()
        self._last_ledger_offset = last_ledger_offset
        self._validation_timeout_s = validation_timeout_s
        self._poll_interval_s = poll_interval_s
        self._network_id = network_id
        self._clock = clock
        self._sleep = sleep
        self._connected = False
        self._connect_lock = asyncio.Lock()
        self._account_locks: dict[str, asyncio.Lock] = {}

    # -----------------------------------------------------------------
    # Connection lifecycle
    # -----------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the node connection. No-op when already connected."""
        async with self._connect_lock:
            if self._connected:
                return
            try:
                await self._client.open()
            except Exception as exc:
                raise LedgerConnectionError(
                    f"failed to connect to XRPL node: {exc}"
                ) from exc
            self._connected = True

    async def disconnect(self) -> None:
        async with self._connect_lock:
            if not self._connected:
                return
            self._connected = False
            try:
                await self._client.aclose()
            except Exception as exc:
                logger.warning("XRPL disconnect was not clean: %s", exc)

    async def __aenter__(self) -> LedgerClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # -----------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------

    def _account_lock(self, account: str) -> asyncio.Lock:
        return self._account_locks.setdefault(account, asyncio.Lock())

    def _issuers(self) -> frozenset[str] | None:
        issuers = frozenset(a for a in (self.fthusd_issuer, self.usdf_issuer) if a)
        return issuers or None

    async def _autofill(self, tx: LedgerTx) -> tuple[dict[str, Any], int]:
        info = await self._client.account_info(tx.account, ledger_index="current")
        fee = await self._client.fee()
        current = await self._client.ledger_current()

        prepared = tx.to_xrpl()
        prepared["Sequence"] = info.sequence
        prepared["Fee"] = str(fee.recommended_drops)
        prepared["LastLedgerSequence"] = current + self._last_ledger_offset
        if self._network_id is not None:
            prepared["NetworkID"] = self._network_id
        return prepared, current

    async def submit(
        self,
        signer: XRPLSigner,
        tx: LedgerTx,
        flow: Flow,
        subject_address: str | None = None,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        """Validate, sign, submit and wait for one transaction.

        Args:
            signer: Operations wallet (opaque credential).
            tx: Unsigned intent.
            flow: Business operation tag for the audit record.
            subject_address: Member address the operation concerns.
            member_id: Member reference; defaults to subject_address.
            request_id: Correlation id of the calling run.

        Returns:
            The validated TxResponse (engine result tesSUCCESS).

        Raises:
            ValidationError: Intent violates a safety rule. No record.
            LedgerConnectionError: Node unreachable. No record if raised
                before signing; otherwise the record stays pending and
                ``tx_hash`` is set.
            TransactionError: Rejected or failed on ledger. Record failed.
            SubmissionTimeout: Outcome unknown. Record stays pending.
        """
        validate_transaction(tx, issuers=self._issuers())

        async with self._account_lock(signer.account):
            await self.connect()

            try:
                prepared, current = await self._autofill(tx)
            except Exception as exc:
                raise LedgerConnectionError(f"autofill failed: {exc}") from exc

            try:
                signed = signer.sign(prepared)
            except ValueError as exc:
                raise ValidationError(f"signing failed: {exc}") from exc

            record = self._store.create(
                LedgerTransactionRecord.pending(
                    ledger=Ledger.XRPL,
                    flow=flow,
                    direction=Direction.OUTBOUND,
                    payload=payload_summary(tx),
                    member_id=member_id or subject_address,
                    wallet_address=signer.account,
                    tx_hash=signed.tx_hash,
                    request_id=request_id,
                )
            )
            return await self._submit_and_confirm(
                record,
                signed.signed_tx_blob_hex,
                min_ledger=current,
                last_ledger_sequence=prepared["LastLedgerSequence"],
            )

    async def submit_member_signed(
        self,
        tx: PaymentTx,
        signed_tx_blob_hex: str,
        flow: Flow,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        """Submit a payment the member's own wallet signed.

        The blob must encode exactly ``tx`` (same accounts, amount, flags
        and memos, no paths) and carry a LastLedgerSequence. The record is
        INBOUND and follows the same pending-then-terminal lifecycle as
        ``submit``.

        Raises:
            ValidationError: Intent violates a safety rule, or the blob
                does not match it. No record.
            LedgerConnectionError, TransactionError, SubmissionTimeout:
                As for ``submit``.
        """
        validate_transaction(tx, issuers=self._issuers())
        try:
            decoded = decode_signed_blob(signed_tx_blob_hex)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        _check_blob_matches(tx, decoded)
        last_ledger_sequence = decoded.get("LastLedgerSequence")
        if last_ledger_sequence is None:
            raise ValidationError("member-signed transactions must set LastLedgerSequence")
        tx_hash = signed_tx_hash(signed_tx_blob_hex)

        async with self._account_lock(tx.account):
            await self.connect()
            try:
                current = await self._client.ledger_current()
            except Exception as exc:
                raise LedgerConnectionError(f"ledger_current failed: {exc}") from exc

            record = self._store.create(
                LedgerTransactionRecord.pending(
                    ledger=Ledger.XRPL,
                    flow=flow,
                    direction=Direction.INBOUND,
                    payload=payload_summary(tx),
                    member_id=member_id or tx.account,
                    wallet_address=tx.account,
                    tx_hash=tx_hash,
                    request_id=request_id,
                )
            )
            return await self._submit_and_confirm(
                record,
                signed_tx_blob_hex,
                min_ledger=min(current, int(last_ledger_sequence)),
                last_ledger_sequence=int(last_ledger_sequence),
            )

    async def _submit_and_confirm(
        self,
        record: LedgerTransactionRecord,
        signed_tx_blob_hex: str,
        *,
        min_ledger: int,
        last_ledger_sequence: int,
    ) -> TxResponse:
        """Submit a signed blob whose PENDING record exists, then wait."""
        tx_hash = record.tx_hash or ""
        log_extra = {
            "flow": record.flow.value,
            "tx_hash": tx_hash,
            "wallet": record.wallet_address,
            "record_id": record.id,
        }
        logger.info("xrpl submit", extra=log_extra)

        try:
            submitted = await self._client.submit(signed_tx_blob_hex)
        except Exception as exc:
            logger.warning("xrpl submit lost: %s", exc, extra=log_extra)
            raise LedgerConnectionError(
                f"connection lost while submitting {tx_hash}: {exc}",
                tx_hash=tx_hash,
            ) from exc

        if submitted.engine_result is None or is_final_rejection(submitted.engine_result):
            code = submitted.engine_result or submitted.error or "SUBMIT_ERROR"
            self._fail(record, code, submitted.engine_result_message, log_extra)

        try:
            response = await self._wait_for_validation(
                tx_hash,
                min_ledger=min_ledger,
                last_ledger_sequence=last_ledger_sequence,
            )
        except SubmissionTimeout:
            logger.warning("xrpl validation timed out", extra=log_extra)
            raise
        except _LedgerExpired:
            self._fail(
                record,
                EXPIRED_CODE,
                "transaction was not validated before its LastLedgerSequence",
                log_extra,
            )
        except Exception as exc:
            logger.warning("xrpl validation poll lost: %s", exc, extra=log_extra)
            raise LedgerConnectionError(
                f"connection lost while waiting for {tx_hash}: {exc}",
                tx_hash=tx_hash,
            ) from exc

        if response.engine_result != SUCCESS:
            message = (
                submitted.engine_result_message
                if response.engine_result == submitted.engine_result
                else None
            )
            self._fail(record, response.engine_result or "UNKNOWN", message, log_extra)

        self._store.update(record.mark_confirmed())
        logger.info("xrpl confirmed", extra=log_extra)
        return response

    def _fail(
        self,
        record: LedgerTransactionRecord,
        code: str,
        message: str | None,
        log_extra: dict[str, Any],
    ) -> None:
        """Mark the record failed and raise TransactionError."""
        self._store.update(
            record.mark_failed(error_code=code, error_message=message or code)
        )
        logger.error("xrpl failed: %s", code, extra=log_extra)
        raise TransactionError(
            f"XRPL transaction failed: {code}" + (f" - {message}" if message else ""),
            code=code,
            ledger_message=message,
            tx_hash=record.tx_hash,
        )

    async def _wait_for_validation(
        self,
        tx_hash: str,
        *,
        min_ledger: int,
        last_ledger_sequence: int,
    ) -> TxResponse:
        deadline = self._clock() + self._validation_timeout_s
        while True:
            response = await self._client.tx(
                tx_hash,
                min_ledger=min_ledger,
                max_ledger=last_ledger_sequence,
            )
            if response.found and response.validated:
                return response
            if not response.found and response.searched_all:
                raise _LedgerExpired(tx_hash)
            if self._clock() >= deadline:
                raise SubmissionTimeout(
                    f"{tx_hash} not validated within {self._validation_timeout_s}s",
                    tx_hash=tx_hash,
                )
            await self._sleep(self._poll_interval_s)

    # -----------------------------------------------------------------
    # Signers
    # -----------------------------------------------------------------

    def _signer(self, name: str) -> XRPLSigner:
        signer = getattr(self._signers, name)
        if signer is None:
            raise ConfigurationError(f"ops {name} wallet is not configured")
        return signer

    # -----------------------------------------------------------------
    # Member onboarding
    # -----------------------------------------------------------------

    def build_member_trustlines(self, member_address: str) -> tuple[TrustSetTx, TrustSetTx]:
        """Member-signed FTHUSD and USDF trustlines, always no-ripple."""
        return build_member_trustlines(
            member_address,
            fthusd_issuer=self.fthusd_issuer,
            usdf_issuer=self.usdf_issuer,
        )

    async def authorize_member_trustlines(
        self,
        member_address: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> tuple[TxResponse, TxResponse]:
        """Issuer-side authorization of both member trustlines, in order."""
        signer = self._signer("issuer")
        fthusd = await self.submit(
            signer,
            build_trustline_authorization(
                issuer=self.fthusd_issuer,
                member_address=member_address,
                currency=FTHUSD,
            ),
            Flow.MEMBER_ONBOARDING_FTHUSD_AUTH,
            member_address,
            member_id=member_id,
            request_id=request_id,
        )
        usdf = await self.submit(
            signer,
            build_trustline_authorization(
                issuer=self.usdf_issuer,
                member_address=member_address,
                currency=USDF,
            ),
            Flow.MEMBER_ONBOARDING_USDF_AUTH,
            member_address,
            member_id=member_id,
            request_id=request_id,
        )
        return fthusd, usdf

    # -----------------------------------------------------------------
    # FTHUSD credit / redemption
    # -----------------------------------------------------------------

    async def credit_fthusd(
        self,
        member_address: str,
        amount: str,
        deposit_id: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        tx = build_currency_payment(
            account=self.fthusd_issuer,
            destination=member_address,
            currency=FTHUSD,
            issuer=self.fthusd_issuer,
            value=amount,
            memos=[Memo(MEMO_DEPOSIT_ID, deposit_id)],
        )
        return await self.submit(
            self._signer("issuer"),
            tx,
            Flow.FTHUSD_DEPOSIT,
            member_address,
            member_id=member_id,
            request_id=request_id,
        )

    def build_redemption_tx(
        self, member_address: str, amount: str, redemption_id: str
    ) -> PaymentTx:
        """Member-side redemption payment; the member's wallet signs it."""
        return build_currency_payment(
            account=member_address,
            destination=self.fthusd_issuer,
            currency=FTHUSD,
            issuer=self.fthusd_issuer,
            value=amount,
            memos=[Memo(MEMO_REDEMPTION_ID, redemption_id)],
        )

    async def redeem_fthusd(
        self,
        member_address: str,
        amount: str,
        redemption_id: str,
        signed_tx_blob_hex: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        """Submit the member-signed redemption built by ``build_redemption_tx``."""
        return await self.submit_member_signed(
            self.build_redemption_tx(member_address, amount, redemption_id),
            signed_tx_blob_hex,
            Flow.FTHUSD_REDEMPTION,
            member_id=member_id,
            request_id=request_id,
        )

    # -----------------------------------------------------------------
    # USDF bonus
    # -----------------------------------------------------------------

    async def issue_usdf_bonus(
        self,
        member_address: str,
        amount: str,
        bonus_batch_id: str,
        bonus_date_iso: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        tx = build_currency_payment(
            account=self.usdf_issuer,
            destination=member_address,
            currency=USDF,
            issuer=self.usdf_issuer,
            value=amount,
            memos=[
                Memo(MEMO_BONUS_BATCH_ID, bonus_batch_id),
                Memo(MEMO_BONUS_DATE, bonus_date_iso),
            ],
        )
        return await self.submit(
            self._signer("bonus"),
            tx,
            Flow.BONUS_ISSUE,
            member_address,
            member_id=member_id,
            request_id=request_id,
        )

    # -----------------------------------------------------------------
    # Gold orders
    # -----------------------------------------------------------------

    def build_gold_order_payment(
        self, member_address: str, usdf_amount: str, order_id: str
    ) -> PaymentTx:
        """Member-signed USDF payment to the gold vault."""
        return build_currency_payment(
            account=member_address,
            destination=self.gold_vault,
            currency=USDF,
            issuer=self.usdf_issuer,
            value=usdf_amount,
            memos=[Memo(MEMO_GOLD_ORDER_ID, order_id)],
        )

    async def create_gold_order(
        self,
        member_address: str,
        usdf_amount: str,
        order_id: str,
        signed_tx_blob_hex: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        """Submit the member-signed USDF payment to the gold vault."""
        return await self.submit_member_signed(
            self.build_gold_order_payment(member_address, usdf_amount, order_id),
            signed_tx_blob_hex,
            Flow.GOLD_ORDER_CREATE,
            member_id=member_id,
            request_id=request_id,
        )

    async def mint_gold_order_nft(
        self,
        to_address: str,
        order_id: str,
        metadata_uri: str,
        *,
        member_id: str | None = None,
        request_id: str | None = None,
    ) -> TxResponse:
        tx = build_nft_mint(
            account=self.gold_vault,
            taxon=GOLD_ORDER_NFT_TAXON,
            uri=metadata_uri,
            memos=[Memo(MEMO_GOLD_ORDER_ID, order_id)],
        )
        return await self.submit(
            self._signer("gold"),
            tx,
            Flow.GOLD_ORDER_NFT_MINT,
            to_address,
            member_id=member_id,
            request_id=request_id,
        )

    def build_gold_buyback(
        self,
        member_address: str,
        order_nft_id: str,
        usdf_amount: str,
        buyback_id: str,
    ) -> tuple[NFTokenBurnTx, PaymentTx]:
        """Member-signed NFT burn plus the vault's USDF payout."""
        memos = [Memo(MEMO_GOLD_BUYBACK_ID, buyback_id)]
        burn = build_nft_burn(
            account=member_address,
            nftoken_id=order_nft_id,
            memos=memos,
        )
        payout = build_currency_payment(
            account=self.gold_vault,
            destination=member_address,
            currency=USDF,
            issuer=self.usdf_issuer,
            value=usdf_amount,
            memos=memos,
        )
        return burn, payout

    # -----------------------------------------------------------------
    # Membership NFTs
    # -----------------------------------------------------------------

    async def mint_membership_nft(
        self,
        to_address: str,
        member_id: str,
        metadata_uri: str,
        issuer_address: str | None = None,
        *,
        request_id: str | None = None,
    ) -> TxResponse:
        signer = self._signer("issuer")
        tx = build_nft_mint(
            account=issuer_address or signer.account,
            taxon=MEMBERSHIP_NFT_TAXON,
            uri=metadata_uri,
            memos=[Memo(MEMO_MEMBER_ID, member_id)],
            destination=to_address,
        )
        return await self.submit(
            signer,
            tx,
            Flow.MEMBERSHIP_NFT_MINT,
            to_address,
            member_id=member_id,
            request_id=request_id,
        )

    # -----------------------------------------------------------------
    # PoR anchoring
    # -----------------------------------------------------------------

    async def anchor_por(
        self,
        por_hash: str,
        por_time_iso: str,
        *,
        request_id: str | None = None,
    ) -> TxResponse:
        """One-drop payment from the oracle wallet carrying hash and time memos.

        Raises:
            ConfigurationError: No oracle wallet, or no oracle account
                distinct from it (the ledger rejects XRP self-payments).
        """
        signer = self._signer("oracle")
        if not self.oracle_account or self.oracle_account == signer.account:
            raise ConfigurationError(
                "oracle account must be set and differ from the ops oracle wallet"
            )
        tx = build_anchor_payment(
            account=signer.account,
            destination=self.oracle_account,
            por_hash=por_hash,
            por_time=por_time_iso,
        )
        return await self.submit(signer, tx, Flow.POR_ANCHORING, request_id=request_id)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    async def get_account_info(self, address: str) -> AccountInfo:
        await self.connect()
        return await self._client.account_info(address, ledger_index="validated")

    async def get_account_balances(self, address: str) -> list[AccountLine]:
        await self.connect()
        return await self._client.account_lines(address)

    async def get_issued_supply(self, currency: str) -> Decimal:
        """Circulating supply of a program currency.

        Sum of |balance| over the issuer's trustlines in that currency.
        Issuer-side balances are negative by ledger convention.
        """
        issuer = {FTHUSD: self.fthusd_issuer, USDF: self.usdf_issuer}.get(currency)
        if not issuer:
            raise ConfigurationError(f"no issuer configured for {currency}")
        await self.connect()
        lines = await self._client.account_lines(issuer)
        return sum(
            (abs(line.balance) for line in lines if line.currency == currency),
            Decimal(0),
        )


class _LedgerExpired(Exception):
    """The ledger range up to LastLedgerSequence holds no such transaction."""


def _same_amount(expected: Any, actual: Any) -> bool:
    if isinstance(expected, IssuedAmount):
        if not isinstance(actual, dict):
            return False
        return (
            decode_currency(str(actual.get("currency", ""))) == decode_currency(expected.currency)
            and actual.get("issuer") == expected.issuer
            and Decimal(str(actual.get("value", "0"))) == Decimal(expected.value)
        )
    return isinstance(actual, str) and actual == expected


def _check_blob_matches(tx: PaymentTx, decoded: dict[str, Any]) -> None:
    """Raise ValidationError unless the decoded blob is exactly ``tx``."""
    mismatches = [
        field
        for field, ok in (
            ("TransactionType", decoded.get("TransactionType") == tx.TRANSACTION_TYPE),
            ("Account", decoded.get("Account") == tx.account),
            ("Destination", decoded.get("Destination") == tx.destination),
            ("Amount", _same_amount(tx.amount, decoded.get("Amount"))),
            ("Flags", int(decoded.get("Flags", 0)) == tx.flags),
            ("Memos", decode_memos(decoded.get("Memos", [])) == decode_memos(
                [m.to_xrpl() for m in tx.memos]
            )),
        )
        if not ok
    ]
    mismatches += [f for f in ("Paths", "SendMax", "DeliverMin") if f in decoded]
    if mismatches:
        raise ValidationError(
            "signed transaction does not match the expected payment: "
            + ", ".join(mismatches)
        )
