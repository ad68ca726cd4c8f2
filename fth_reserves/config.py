"""
Runtime configuration.

Loaded from environment variables (prefix ``FTH_``) and an optional
``.env`` file. Nested groups use ``__`` as the delimiter, e.g.
``FTH_XRPL__RPC_URL`` or ``FTH_EVM__CHAIN_ID``.

Secrets (XRPL seeds, EVM operator key) are ``SecretStr`` so they never
render in reprs, logs or validation errors.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class XRPLSettings(BaseModel):
    rpc_url: str = "https://s.altnet.rippletest.net:51234"

    fthusd_issuer: str = ""
    usdf_issuer: str = ""
    gold_vault: str = ""
    oracle_account: str = ""

    # Ops wallets. Each is used by exactly one workflow.
    ops_bonus_seed: SecretStr | None = None
    ops_gold_seed: SecretStr | None = None
    ops_oracle_seed: SecretStr | None = None
    ops_issuer_seed: SecretStr | None = None

    request_timeout_s: float = 30.0
    # Bounded wait for validation; roughly several ledger closes.
    validation_timeout_s: float = 60.0
    poll_interval_s: float = 1.0
    last_ledger_offset: int = 20
    network_id: int | None = None


class EVMSettings(BaseModel):
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = 31337
    por_registry_address: str = ""
    compliance_registry_address: str = ""
    operator_private_key: SecretStr | None = None
    receipt_timeout_s: float = 120.0


class TreasurySettings(BaseModel):
    # Static custody figures in integer cents, used until live adapters exist.
    bank_usd_cents: int = 0
    gold_usd_cents: int = 0
    other_assets_usd_cents: int = 0
    report_uri_base: str = "https://example.com/por"
    # Read liabilities from the issuing ledger instead of static figures.
    liabilities_from_ledger: bool = True
    fthusd_liabilities_cents: int = 0
    usdf_off_balance_cents: int = 0


class SchedulerSettings(BaseModel):
    por_time_utc: str = "00:00"
    reconciliation_time_utc: str = "00:30"
    dex_scan_interval_minutes: int = 60
    lease_ttl_s: float = 3600.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FTH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "FTH Reserves"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── STORE ───────────
    database_path: str = "fth_reserves.db"

    # ─────────── RECONCILIATION ───────────
    # Absolute tolerance in token units. Issued-currency balances carry at
    # most 15 significant digits; 0.001 absorbs display rounding of
    # sub-cent amounts without hiding a one-cent divergence.
    reconciliation_tolerance: Decimal = Decimal("0.001")

    # ─────────── LEDGERS ───────────
    xrpl: XRPLSettings = Field(default_factory=XRPLSettings)
    evm: EVMSettings = Field(default_factory=EVMSettings)
    treasury: TreasurySettings = Field(default_factory=TreasurySettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
