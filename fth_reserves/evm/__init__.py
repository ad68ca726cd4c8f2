"""
EVM registries: PoR snapshots and member compliance.

``RegistryClient`` owns the audit records; ``RegistryContract`` is the
boundary it calls through. ``Web3RegistryContract`` is the web3.py
implementation used in production.
"""

from fth_reserves.evm.registry import (
    ComplianceStatus,
    PoRSnapshotRecord,
    RegistryClient,
    RegistryContract,
    RegistryName,
    RegistryReceipt,
    hash_to_bytes32,
)
from fth_reserves.evm.web3_contract import Web3RegistryContract

__all__ = [
    "ComplianceStatus",
    "PoRSnapshotRecord",
    "RegistryClient",
    "RegistryContract",
    "RegistryName",
    "RegistryReceipt",
    "Web3RegistryContract",
    "hash_to_bytes32",
]
