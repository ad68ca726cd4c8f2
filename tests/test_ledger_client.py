"""
Tests for LedgerClient: the XRPL submission pipeline and its audit trail.

All network and signing goes through FakeXRPLClient and FakeSigner; the
store is a real in-memory ReservesStore so record transitions are
checked end to end.

Test plan:
- Success: autofill stamps Sequence/Fee/LastLedgerSequence, one record
  goes pending then confirmed with the signed hash, tx is polled over
  [current, LastLedgerSequence]
- Claimed failure (tec): record failed with the ledger code and message,
  a retry writes a second record
- Before signing (connect, autofill, validation, signing, missing
  signer): raises, no record
- After the pending record: transport loss and timeout keep it pending
  and carry the hash; tem/tef rejection fails it without polling;
  LastLedgerSequence expiry fails it with tefMAX_LEDGER
- One in-flight transaction per signing account
- Workflows: trustline authorization, bonus, gold NFT, membership NFT,
  PoR anchor memos, member-signed builders
- Reads: issued supply sums |balance| per currency
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from fth_reserves.errors import (
    ConfigurationError,
    LedgerConnectionError,
    SubmissionTimeout,
    TransactionError,
    ValidationError,
)
from fth_reserves.records import Direction, Flow, Ledger, TxStatus
from fth_reserves.store import ReservesStore
from fth_reserves.xrpl.errors import RpcError
from fth_reserves.xrpl.ledger_client import EXPIRED_CODE, LedgerClient, OpsSigners
from fth_reserves.xrpl.memo import decode_memos
from fth_reserves.xrpl.responses import SubmitResult, TxResponse
from fth_reserves.xrpl.tx import (
    FTHUSD,
    TF_PARTIAL_PAYMENT,
    TF_SET_NO_RIPPLE,
    TF_SETF_AUTH,
    USDF,
    IssuedAmount,
    PaymentTx,
)

from .fakes import (
    CURRENT_LEDGER,
    FTHUSD_ISSUER,
    GOLD_VAULT,
    LEDGER_OFFSET,
    MEMBER,
    OPS_ORACLE,
    ORACLE_ACCOUNT,
    OTHER_MEMBER,
    USDF_ISSUER,
    FakeClock,
    FakeSigner,
    FakeXRPLClient,
    issuer_line,
)

POR_HASH = "0x" + "ab" * 32
POR_TIME = "2025-01-15T00:00:00.000Z"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class Harness:
    def __init__(self, *, signers: OpsSigners | None = None, timeout_s: float = 60.0) -> None:
        self.client = FakeXRPLClient()
        self.store = ReservesStore()
        self.clock = FakeClock()
        self.issuer = FakeSigner(FTHUSD_ISSUER)
        self.bonus = FakeSigner(USDF_ISSUER)
        self.gold = FakeSigner(GOLD_VAULT)
        self.oracle = FakeSigner(OPS_ORACLE)
        if signers is None:
            signers = OpsSigners(
                bonus=self.bonus, gold=self.gold, oracle=self.oracle, issuer=self.issuer
            )
        self.ledger = LedgerClient(
            self.client,
            self.store,
            fthusd_issuer=FTHUSD_ISSUER,
            usdf_issuer=USDF_ISSUER,
            gold_vault=GOLD_VAULT,
            oracle_account=ORACLE_ACCOUNT,
            signers=signers,
            last_ledger_offset=LEDGER_OFFSET,
            validation_timeout_s=timeout_s,
            poll_interval_s=1.0,
            clock=self.clock,
            sleep=self.clock.sleep,
        )

    def only_record(self):
        records = self.store.list_records()
        assert len(records) == 1
        return records[0]


@pytest.fixture
def h() -> Harness:
    return Harness()


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------


class TestConfirmed:
    @pytest.mark.asyncio
    async def test_credit_is_autofilled_and_confirmed(self, h: Harness) -> None:
        h.client.sequences[FTHUSD_ISSUER] = 7

        response = await h.ledger.credit_fthusd(MEMBER, "100", "dep-1", request_id="req-1")

        prepared = h.issuer.sign_calls[0]
        assert prepared["Sequence"] == 7
        assert prepared["Fee"] == "12"
        assert prepared["LastLedgerSequence"] == CURRENT_LEDGER + LEDGER_OFFSET
        assert decode_memos(prepared["Memos"]) == {"deposit_id": "dep-1"}

        record = h.only_record()
        assert record.status == TxStatus.CONFIRMED
        assert record.ledger == Ledger.XRPL
        assert record.flow == Flow.FTHUSD_DEPOSIT
        assert record.direction == Direction.OUTBOUND
        assert record.tx_hash == response.tx_hash
        assert record.member_id == MEMBER
        assert record.wallet_address == FTHUSD_ISSUER
        assert record.request_id == "req-1"
        assert record.payload() == {
            "type": "Payment",
            "destination": MEMBER,
            "amount": "100",
            "currency": FTHUSD,
        }

    @pytest.mark.asyncio
    async def test_polls_over_submission_window(self, h: Harness) -> None:
        response = await h.ledger.credit_fthusd(MEMBER, "1", "dep-2")
        assert h.client.method_calls("tx") == [
            (response.tx_hash, CURRENT_LEDGER, CURRENT_LEDGER + LEDGER_OFFSET)
        ]

    @pytest.mark.asyncio
    async def test_waits_for_validation(self, h: Harness) -> None:
        h.client.tx_responses = [
            TxResponse(tx_hash="X", found=False),
            TxResponse(tx_hash="X", found=True, validated=False),
        ]
        await h.ledger.credit_fthusd(MEMBER, "1", "dep-3")
        assert len(h.client.method_calls("tx")) == 3
        assert h.clock.sleeps == [1.0, 1.0]
        assert h.only_record().status == TxStatus.CONFIRMED


# ---------------------------------------------------------------------------
# Ledger failures
# ---------------------------------------------------------------------------


class TestLedgerFailures:
    @pytest.mark.asyncio
    async def test_claimed_failure_then_retry(self, h: Harness) -> None:
        h.client.submit_results = [
            SubmitResult(engine_result="tecNO_LINE", engine_result_message="No such line.", accepted=True)
        ]
        h.client.tx_responses = [
            TxResponse(tx_hash="X", found=True, validated=True, engine_result="tecNO_LINE", ledger_index=101)
        ]

        with pytest.raises(TransactionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert exc_info.value.code == "tecNO_LINE"
        assert exc_info.value.ledger_message == "No such line."

        failed = h.only_record()
        assert failed.status == TxStatus.FAILED
        assert failed.error_code == "tecNO_LINE"
        assert failed.error_message == "No such line."
        assert exc_info.value.tx_hash == failed.tx_hash

        await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        records = h.store.list_records()
        assert [r.status for r in records] == [TxStatus.FAILED, TxStatus.CONFIRMED]
        assert records[0].id != records[1].id
        assert len(h.issuer.sign_calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_rejection_skips_polling(self, h: Harness) -> None:
        h.client.submit_results = [
            SubmitResult(engine_result="temBAD_FEE", engine_result_message="bad fee")
        ]
        with pytest.raises(TransactionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")

        assert exc_info.value.code == "temBAD_FEE"
        assert h.client.method_calls("tx") == []
        record = h.only_record()
        assert record.status == TxStatus.FAILED
        assert record.error_message == "bad fee"

    @pytest.mark.asyncio
    async def test_server_error_on_submit_fails_record(self, h: Harness) -> None:
        h.client.submit_results = [SubmitResult(engine_result=None, error="invalidParams")]
        with pytest.raises(TransactionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert exc_info.value.code == "invalidParams"
        assert h.only_record().error_code == "invalidParams"

    @pytest.mark.asyncio
    async def test_expired_window(self, h: Harness) -> None:
        h.client.tx_default = lambda tx_hash: TxResponse(
            tx_hash=tx_hash, found=False, searched_all=True
        )
        with pytest.raises(TransactionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")

        assert exc_info.value.code == EXPIRED_CODE
        record = h.only_record()
        assert record.status == TxStatus.FAILED
        assert record.error_code == "tefMAX_LEDGER"


# ---------------------------------------------------------------------------
# Failures before anything is signed
# ---------------------------------------------------------------------------


class TestNoRecordFailures:
    @pytest.mark.asyncio
    async def test_connect_failure(self, h: Harness) -> None:
        h.client.open_error = OSError("connection refused")
        with pytest.raises(LedgerConnectionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert exc_info.value.tx_hash is None
        assert h.store.list_records() == []
        assert h.issuer.sign_calls == []
        assert not h.ledger.is_connected

    @pytest.mark.asyncio
    async def test_autofill_failure(self, h: Harness) -> None:
        h.client.account_info_error = RpcError("account_info", "actNotFound")
        with pytest.raises(LedgerConnectionError, match="autofill"):
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert h.store.list_records() == []

    @pytest.mark.asyncio
    async def test_invalid_amount_never_touches_network(self, h: Harness) -> None:
        with pytest.raises(ValidationError):
            await h.ledger.credit_fthusd(MEMBER, "0", "dep-1")
        assert h.client.calls == []
        assert h.store.list_records() == []

    @pytest.mark.asyncio
    async def test_partial_payment_rejected_before_io(self, h: Harness) -> None:
        tx = PaymentTx(
            account=FTHUSD_ISSUER,
            destination=MEMBER,
            amount=IssuedAmount(FTHUSD, FTHUSD_ISSUER, "5"),
            flags=TF_PARTIAL_PAYMENT,
        )
        with pytest.raises(ValidationError):
            await h.ledger.submit(h.issuer, tx, Flow.FTHUSD_DEPOSIT, MEMBER)
        assert h.client.calls == []

    @pytest.mark.asyncio
    async def test_signing_failure(self) -> None:
        broken = FakeSigner(FTHUSD_ISSUER, should_raise=ValueError("cannot encode"))
        h = Harness(signers=OpsSigners(issuer=broken))
        with pytest.raises(ValidationError, match="signing failed"):
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert h.store.list_records() == []

    @pytest.mark.asyncio
    async def test_missing_signer(self) -> None:
        h = Harness(signers=OpsSigners())
        with pytest.raises(ConfigurationError, match="bonus"):
            await h.ledger.issue_usdf_bonus(MEMBER, "5", "batch-1", "2025-01-15")
        assert h.client.calls == []


# ---------------------------------------------------------------------------
# Unknown outcomes: record stays pending
# ---------------------------------------------------------------------------


class TestPendingOutcomes:
    @pytest.mark.asyncio
    async def test_lost_connection_on_submit(self, h: Harness) -> None:
        h.client.submit_results = [ConnectionResetError("reset by peer")]
        with pytest.raises(LedgerConnectionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")

        record = h.only_record()
        assert record.status == TxStatus.PENDING
        assert record.tx_hash is not None
        assert exc_info.value.tx_hash == record.tx_hash

    @pytest.mark.asyncio
    async def test_lost_connection_while_polling(self, h: Harness) -> None:
        h.client.tx_responses = [ConnectionResetError("reset by peer")]
        with pytest.raises(LedgerConnectionError) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")
        assert h.only_record().status == TxStatus.PENDING
        assert exc_info.value.tx_hash == h.only_record().tx_hash

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        h = Harness(timeout_s=5.0)
        h.client.tx_default = lambda tx_hash: TxResponse(
            tx_hash=tx_hash, found=True, validated=False
        )
        with pytest.raises(SubmissionTimeout) as exc_info:
            await h.ledger.credit_fthusd(MEMBER, "100", "dep-1")

        record = h.only_record()
        assert record.status == TxStatus.PENDING
        assert exc_info.value.tx_hash == record.tx_hash
        assert sum(h.clock.sleeps) == 5.0


# ---------------------------------------------------------------------------
# Per-account serialization
# ---------------------------------------------------------------------------


class TestAccountLock:
    @pytest.mark.asyncio
    async def test_one_in_flight_per_account(self, h: Harness) -> None:
        await asyncio.gather(
            h.ledger.credit_fthusd(MEMBER, "1", "dep-a"),
            h.ledger.credit_fthusd(OTHER_MEMBER, "2", "dep-b"),
        )
        names = [name for name, _ in h.client.calls]
        pipeline = ["account_info", "fee", "ledger_current", "submit", "tx"]
        assert names == ["open", *pipeline, *pipeline]
        assert [r.status for r in h.store.list_records()] == [TxStatus.CONFIRMED] * 2

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, h: Harness) -> None:
        async with h.ledger:
            await h.ledger.connect()
            assert h.ledger.is_connected
        assert h.client.opened == 1
        assert h.client.closed == 1
        assert not h.ledger.is_connected


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class TestWorkflows:
    @pytest.mark.asyncio
    async def test_authorize_member_trustlines(self, h: Harness) -> None:
        await h.ledger.authorize_member_trustlines(MEMBER, member_id="m-1")

        fthusd, usdf = h.issuer.sign_calls
        assert fthusd["Account"] == FTHUSD_ISSUER
        assert usdf["Account"] == USDF_ISSUER
        for prepared in (fthusd, usdf):
            assert prepared["TransactionType"] == "TrustSet"
            assert prepared["Flags"] == TF_SETF_AUTH
            assert prepared["LimitAmount"]["issuer"] == MEMBER
            assert prepared["LimitAmount"]["value"] == "0"

        records = h.store.list_records()
        assert [r.flow for r in records] == [
            Flow.MEMBER_ONBOARDING_FTHUSD_AUTH,
            Flow.MEMBER_ONBOARDING_USDF_AUTH,
        ]
        assert all(r.member_id == "m-1" for r in records)

    @pytest.mark.asyncio
    async def test_bonus(self, h: Harness) -> None:
        await h.ledger.issue_usdf_bonus(MEMBER, "5.25", "batch-1", "2025-01-15")
        prepared = h.bonus.sign_calls[0]
        assert prepared["Amount"]["issuer"] == USDF_ISSUER
        assert decode_memos(prepared["Memos"]) == {
            "bonus_batch_id": "batch-1",
            "bonus_date": "2025-01-15",
        }
        assert h.only_record().flow == Flow.BONUS_ISSUE

    @pytest.mark.asyncio
    async def test_gold_order_nft(self, h: Harness) -> None:
        await h.ledger.mint_gold_order_nft(MEMBER, "order-9", "ipfs://gold/9")
        prepared = h.gold.sign_calls[0]
        assert prepared["TransactionType"] == "NFTokenMint"
        assert prepared["Account"] == GOLD_VAULT
        assert decode_memos(prepared["Memos"]) == {"gold_order_id": "order-9"}
        record = h.only_record()
        assert record.flow == Flow.GOLD_ORDER_NFT_MINT
        assert record.member_id == MEMBER

    @pytest.mark.asyncio
    async def test_membership_nft(self, h: Harness) -> None:
        await h.ledger.mint_membership_nft(MEMBER, "m-1", "ipfs://member/1")
        prepared = h.issuer.sign_calls[0]
        assert prepared["Destination"] == MEMBER
        assert prepared["Account"] == FTHUSD_ISSUER
        record = h.only_record()
        assert record.flow == Flow.MEMBERSHIP_NFT_MINT
        assert record.member_id == "m-1"

    @pytest.mark.asyncio
    async def test_anchor_por(self, h: Harness) -> None:
        await h.ledger.anchor_por(POR_HASH, POR_TIME, request_id="run-1")
        prepared = h.oracle.sign_calls[0]
        assert prepared["Amount"] == "1"
        assert prepared["Destination"] == ORACLE_ACCOUNT
        assert decode_memos(prepared["Memos"]) == {"por_hash": POR_HASH, "por_time": POR_TIME}
        record = h.only_record()
        assert record.flow == Flow.POR_ANCHORING
        assert record.request_id == "run-1"
        assert record.member_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("oracle_account", ["", OPS_ORACLE])
    async def test_anchor_needs_distinct_oracle_account(
        self, h: Harness, oracle_account: str
    ) -> None:
        h.ledger.oracle_account = oracle_account
        with pytest.raises(ConfigurationError, match="oracle account"):
            await h.ledger.anchor_por(POR_HASH, POR_TIME)
        assert h.oracle.sign_calls == []
        assert h.store.list_records() == []

    def test_member_trustlines_are_no_ripple(self, h: Harness) -> None:
        fthusd, usdf = h.ledger.build_member_trustlines(MEMBER)
        assert fthusd.flags == usdf.flags == TF_SET_NO_RIPPLE
        assert fthusd.limit.issuer == FTHUSD_ISSUER
        assert usdf.limit.issuer == USDF_ISSUER

    def test_redemption_tx(self, h: Harness) -> None:
        tx = h.ledger.build_redemption_tx(MEMBER, "40", "red-1")
        data = tx.to_xrpl()
        assert data["Account"] == MEMBER
        assert data["Destination"] == FTHUSD_ISSUER
        assert decode_memos(data["Memos"]) == {"redemption_id": "red-1"}

    def test_gold_buyback_pair(self, h: Harness) -> None:
        burn, payout = h.ledger.build_gold_buyback(MEMBER, "00" * 32, "900", "bb-1")
        assert burn.account == MEMBER
        assert payout.account == GOLD_VAULT
        assert payout.destination == MEMBER
        assert decode_memos(burn.to_xrpl()["Memos"]) == {"gold_buyback_id": "bb-1"}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestIssuedSupply:
    @pytest.mark.asyncio
    async def test_sums_absolute_balances(self, h: Harness) -> None:
        h.client.lines[FTHUSD_ISSUER] = [
            issuer_line(MEMBER, FTHUSD, "100.5"),
            issuer_line(OTHER_MEMBER, FTHUSD, "20"),
            issuer_line(OTHER_MEMBER, "USD", "999"),
        ]
        assert await h.ledger.get_issued_supply(FTHUSD) == Decimal("120.5")

    @pytest.mark.asyncio
    async def test_no_holders(self, h: Harness) -> None:
        assert await h.ledger.get_issued_supply(USDF) == Decimal(0)

    @pytest.mark.asyncio
    async def test_unknown_currency(self, h: Harness) -> None:
        with pytest.raises(ConfigurationError):
            await h.ledger.get_issued_supply("EUR")
