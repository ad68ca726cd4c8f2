"""
Tests for the PoR composer: guard, hash contract, EVM-then-XRPL ordering.

Test plan:
- Coverage: floor bps, zero liabilities yields 0
- Guard: under-collateralized input writes nothing to either ledger
- Hash: Keccak-256 of the exact ordered payload bytes; any field
  (uri included) changes it
- Publish: EVM registry written first, then the anchor payment carries
  the same hash and ISO timestamp
- EVM failure: no anchor attempted
- Anchor failure: EVM write stays, AnchorError carries what retry needs,
  retry_anchor finishes the job
- Input validation: naive datetimes, floats, bools, negatives rejected
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from eth_utils import keccak

from fth_reserves.errors import AnchorError, RegistryError, UnderCollateralizedError
from fth_reserves.evm.registry import RegistryClient
from fth_reserves.por import (
    PoRComposer,
    PoRSnapshotInput,
    canonical_payload,
    coverage_ratio_bps,
    snapshot_hash,
)
from fth_reserves.records import Flow, Ledger, TxStatus
from fth_reserves.store import ReservesStore
from fth_reserves.xrpl.ledger_client import LedgerClient, OpsSigners
from fth_reserves.xrpl.memo import decode_memos

from .fakes import (
    FTHUSD_ISSUER,
    OPS_ORACLE,
    ORACLE_ACCOUNT,
    USDF_ISSUER,
    FakeClock,
    FakeContract,
    FakeSigner,
    FakeXRPLClient,
)

AS_OF = datetime(2025, 1, 15, tzinfo=timezone.utc)
URI = "https://por.example/2025-01-15.json"


def _snapshot(**overrides) -> PoRSnapshotInput:
    fields = {
        "as_of": AS_OF,
        "bank_usd_cents": 500_000,
        "gold_usd_cents": 200_000,
        "other_assets_usd_cents": 120_000,
        "fthusd_liabilities_cents": 500_000,
        "usdf_off_balance_cents": 30_000,
        "uri": URI,
    }
    fields.update(overrides)
    return PoRSnapshotInput(**fields)


class Harness:
    def __init__(self) -> None:
        self.store = ReservesStore()
        self.contract = FakeContract()
        self.client = FakeXRPLClient()
        self.oracle = FakeSigner(OPS_ORACLE)
        clock = FakeClock()
        self.ledger = LedgerClient(
            self.client,
            self.store,
            fthusd_issuer=FTHUSD_ISSUER,
            usdf_issuer=USDF_ISSUER,
            oracle_account=ORACLE_ACCOUNT,
            signers=OpsSigners(oracle=self.oracle),
            clock=clock,
            sleep=clock.sleep,
        )
        self.composer = PoRComposer(RegistryClient(self.contract, self.store), self.ledger)


@pytest.fixture
def h() -> Harness:
    return Harness()


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


class TestCoverage:
    def test_floor_bps(self) -> None:
        assert coverage_ratio_bps(820_000, 500_000) == 16_400
        assert coverage_ratio_bps(1, 3) == 3333

    def test_zero_liabilities(self) -> None:
        assert coverage_ratio_bps(100, 0) == 0
        assert coverage_ratio_bps(0, 0) == 0


class TestHash:
    def test_hash_of_exact_bytes(self) -> None:
        expected_bytes = (
            b'{"asOf":"2025-01-15T00:00:00.000Z","bankUsdCents":"500000",'
            b'"goldUsdCents":"200000","otherAssetsUsdCents":"120000",'
            b'"totalAssets":"820000","totalLiabilities":"500000",'
            b'"coverageRatioBps":16400,"uri":"https://por.example/2025-01-15.json"}'
        )
        assert snapshot_hash(_snapshot()) == "0x" + keccak(expected_bytes).hex()

    def test_key_order_is_fixed(self) -> None:
        assert list(canonical_payload(_snapshot())) == [
            "asOf",
            "bankUsdCents",
            "goldUsdCents",
            "otherAssetsUsdCents",
            "totalAssets",
            "totalLiabilities",
            "coverageRatioBps",
            "uri",
        ]

    def test_uri_changes_hash(self) -> None:
        assert snapshot_hash(_snapshot()) != snapshot_hash(_snapshot(uri=URI + "?v=2"))

    def test_usdf_off_balance_not_hashed(self) -> None:
        assert snapshot_hash(_snapshot()) == snapshot_hash(_snapshot(usdf_off_balance_cents=0))

    def test_as_of_normalized_to_utc(self) -> None:
        plus_two = AS_OF.astimezone(timezone(timedelta(hours=2)))
        assert canonical_payload(_snapshot(as_of=plus_two))["asOf"] == "2025-01-15T00:00:00.000Z"


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class TestPublish:
    @pytest.mark.asyncio
    async def test_under_collateralized_writes_nothing(self, h: Harness) -> None:
        snapshot = _snapshot(
            bank_usd_cents=500_000,
            gold_usd_cents=0,
            other_assets_usd_cents=0,
            fthusd_liabilities_cents=600_000,
        )
        with pytest.raises(UnderCollateralizedError) as exc_info:
            await h.composer.publish_snapshot(snapshot)

        assert exc_info.value.total_assets == 500_000
        assert exc_info.value.total_liabilities == 600_000
        assert h.contract.transactions == []
        assert h.client.calls == []
        assert h.store.list_records() == []

    @pytest.mark.asyncio
    async def test_publish_registers_then_anchors(self, h: Harness) -> None:
        snapshot = _snapshot()
        result = await h.composer.publish_snapshot(snapshot, request_id="run-1")

        assert result.coverage_ratio_bps == 16_400
        assert result.canonical_hash == snapshot_hash(snapshot)
        assert result.as_of_iso == "2025-01-15T00:00:00.000Z"

        _, function, args = h.contract.transactions[0]
        assert function == "recordSnapshot"
        assert args[0] == bytes.fromhex(result.canonical_hash[2:])
        assert args[1] == int(AS_OF.timestamp())

        memos = decode_memos(h.oracle.sign_calls[0]["Memos"])
        assert memos == {"por_hash": result.canonical_hash, "por_time": result.as_of_iso}

        evm, xrpl = h.store.list_records()
        assert (evm.ledger, evm.flow, evm.status) == (Ledger.EVM, Flow.POR_SNAPSHOT, TxStatus.CONFIRMED)
        assert evm.tx_hash == result.evm_tx_hash
        assert evm.payload()["usdfOffBalanceCents"] == "30000"
        assert (xrpl.ledger, xrpl.flow, xrpl.status) == (
            Ledger.XRPL,
            Flow.POR_ANCHORING,
            TxStatus.CONFIRMED,
        )
        assert xrpl.tx_hash == result.xrpl_tx_hash
        assert {evm.request_id, xrpl.request_id} == {"run-1"}

    @pytest.mark.asyncio
    async def test_zero_liabilities_publishes_zero_coverage(self, h: Harness) -> None:
        result = await h.composer.publish_snapshot(_snapshot(fthusd_liabilities_cents=0))
        assert result.coverage_ratio_bps == 0

    @pytest.mark.asyncio
    async def test_evm_failure_skips_anchor(self, h: Harness) -> None:
        h.contract.send_error = ConnectionError("rpc down")
        with pytest.raises(RegistryError):
            await h.composer.publish_snapshot(_snapshot())
        assert h.client.calls == []
        (record,) = h.store.list_records()
        assert record.status == TxStatus.FAILED

    @pytest.mark.asyncio
    async def test_anchor_failure_then_retry(self, h: Harness) -> None:
        snapshot = _snapshot()
        h.client.open_error = OSError("xrpl unreachable")

        with pytest.raises(AnchorError) as exc_info:
            await h.composer.publish_snapshot(snapshot)

        error = exc_info.value
        assert error.canonical_hash == snapshot_hash(snapshot)
        assert error.as_of_iso == "2025-01-15T00:00:00.000Z"
        assert error.evm_tx_hash == h.store.list_records()[0].tx_hash
        (evm,) = h.store.list_records()
        assert evm.status == TxStatus.CONFIRMED

        h.client.open_error = None
        xrpl_hash = await h.composer.retry_anchor(
            error.canonical_hash, error.as_of_iso, evm_tx_hash=error.evm_tx_hash
        )

        assert len(h.contract.transactions) == 1
        anchored = h.store.list_records(flow=Flow.POR_ANCHORING)
        assert [r.tx_hash for r in anchored] == [xrpl_hash]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestSnapshotInput:
    def test_naive_datetime_rejected(self) -> None:
        with pytest.raises(ValueError):
            _snapshot(as_of=datetime(2025, 1, 15))

    @pytest.mark.parametrize("value", [1.5, True, "100"])
    def test_non_int_cents_rejected(self, value: object) -> None:
        with pytest.raises(TypeError):
            _snapshot(bank_usd_cents=value)

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            _snapshot(gold_usd_cents=-1)

    def test_empty_uri_rejected(self) -> None:
        with pytest.raises(ValueError):
            _snapshot(uri="")
