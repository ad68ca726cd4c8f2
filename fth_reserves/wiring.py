"""
Object graph built from Settings.

Everything with a network or disk side is constructed here and nowhere
else. Seeds and the EVM operator key are unwrapped from SecretStr only
at the point they are handed to their signer objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import SecretStr

from fth_reserves.compliance import ComplianceSync
from fth_reserves.config import Settings
from fth_reserves.evm.registry import RegistryClient, RegistryContract, RegistryName
from fth_reserves.evm.web3_contract import Web3RegistryContract
from fth_reserves.por.composer import PoRComposer
from fth_reserves.reconciliation import ReconciliationEngine
from fth_reserves.store import ReservesStore
from fth_reserves.treasury import (
    IssuedSupplyLiabilitySource,
    LiabilitySource,
    SnapshotBuilder,
    StaticAmountSource,
    StaticLiabilitySource,
)
from fth_reserves.xrpl.client import XRPLClient
from fth_reserves.xrpl.jsonrpc_client import JsonRpcClient
from fth_reserves.xrpl.ledger_client import LedgerClient, OpsSigners
from fth_reserves.xrpl.signer import WalletSigner, XRPLSigner
from fth_reserves.xrpl.transport import HttpxTransport

logger = logging.getLogger(__name__)


@dataclass
class Application:
    settings: Settings
    store: ReservesStore
    xrpl: XRPLClient
    ledger: LedgerClient
    registry: RegistryClient
    snapshots: SnapshotBuilder
    composer: PoRComposer
    reconciliation: ReconciliationEngine
    compliance: ComplianceSync

    async def aclose(self) -> None:
        await self.ledger.disconnect()
        self.store.close()


def _wallet(seed: SecretStr | None) -> XRPLSigner | None:
    if seed is None:
        return None
    return WalletSigner(seed.get_secret_value())


def build_signers(settings: Settings) -> OpsSigners:
    xrpl = settings.xrpl
    return OpsSigners(
        bonus=_wallet(xrpl.ops_bonus_seed),
        gold=_wallet(xrpl.ops_gold_seed),
        oracle=_wallet(xrpl.ops_oracle_seed),
        issuer=_wallet(xrpl.ops_issuer_seed),
    )


def build_registry_contract(settings: Settings) -> Web3RegistryContract:
    evm = settings.evm
    key = evm.operator_private_key
    return Web3RegistryContract(
        evm.rpc_url,
        chain_id=evm.chain_id,
        addresses={
            RegistryName.POR: evm.por_registry_address,
            RegistryName.COMPLIANCE: evm.compliance_registry_address,
        },
        private_key=key.get_secret_value() if key is not None else None,
        receipt_timeout_s=evm.receipt_timeout_s,
    )


def build_application(
    settings: Settings,
    *,
    store: ReservesStore | None = None,
    xrpl_client: XRPLClient | None = None,
    contract: RegistryContract | None = None,
    signers: OpsSigners | None = None,
) -> Application:
    """Wire the full graph. Keyword overrides replace the I/O boundaries."""
    store = store or ReservesStore(settings.database_path)
    xrpl_client = xrpl_client or JsonRpcClient(
        settings.xrpl.rpc_url,
        transport=HttpxTransport(timeout=settings.xrpl.request_timeout_s),
    )
    ledger = LedgerClient(
        xrpl_client,
        store,
        fthusd_issuer=settings.xrpl.fthusd_issuer,
        usdf_issuer=settings.xrpl.usdf_issuer,
        gold_vault=settings.xrpl.gold_vault,
        oracle_account=settings.xrpl.oracle_account,
        signers=signers if signers is not None else build_signers(settings),
        last_ledger_offset=settings.xrpl.last_ledger_offset,
        validation_timeout_s=settings.xrpl.validation_timeout_s,
        poll_interval_s=settings.xrpl.poll_interval_s,
        network_id=settings.xrpl.network_id,
    )
    registry = RegistryClient(contract or build_registry_contract(settings), store)

    treasury = settings.treasury
    liabilities: LiabilitySource
    if treasury.liabilities_from_ledger:
        liabilities = IssuedSupplyLiabilitySource(ledger)
    else:
        liabilities = StaticLiabilitySource(
            treasury.fthusd_liabilities_cents, treasury.usdf_off_balance_cents
        )
    snapshots = SnapshotBuilder(
        bank=StaticAmountSource(treasury.bank_usd_cents),
        gold=StaticAmountSource(treasury.gold_usd_cents),
        other=StaticAmountSource(treasury.other_assets_usd_cents),
        liabilities=liabilities,
        report_uri_base=treasury.report_uri_base,
    )

    logger.debug("application wired", extra={"environment": settings.environment})
    return Application(
        settings=settings,
        store=store,
        xrpl=xrpl_client,
        ledger=ledger,
        registry=registry,
        snapshots=snapshots,
        composer=PoRComposer(registry, ledger),
        reconciliation=ReconciliationEngine(
            ledger,
            registry,
            store,
            tolerance=settings.reconciliation_tolerance,
        ),
        compliance=ComplianceSync(registry, store),
    )
