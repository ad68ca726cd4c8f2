"""
Minimal ABIs for the two registry contracts.

Only the functions the reserves core calls are listed.

FTHPoRRegistry:
    recordSnapshot(bytes32 hash, uint64 timestamp, uint32 coverageRatioBps,
                   uint256 totalAssets, uint256 totalLiabilities, string uri)
    latestSnapshot() -> (bytes32, uint64, uint32, uint256, uint256, string)

ComplianceRegistry:
    setKYCStatus(address wallet, bool approved, uint16 jurisdictionCode,
                 uint256 flags)
    setSanctioned(address wallet, bool sanctioned)
    getStatus(address wallet) -> (bool kycApproved, bool sanctioned,
                                  uint16 jurisdictionCode, uint256 flags)
"""

from __future__ import annotations

from typing import Any


def _inputs(*pairs: tuple[str, str]) -> list[dict[str, str]]:
    return [{"name": name, "type": typ, "internalType": typ} for name, typ in pairs]


_SNAPSHOT_FIELDS = (
    ("hash", "bytes32"),
    ("timestamp", "uint64"),
    ("coverageRatioBps", "uint32"),
    ("totalAssets", "uint256"),
    ("totalLiabilities", "uint256"),
    ("uri", "string"),
)

POR_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "recordSnapshot",
        "stateMutability": "nonpayable",
        "inputs": _inputs(*_SNAPSHOT_FIELDS),
        "outputs": [],
    },
    {
        "type": "function",
        "name": "latestSnapshot",
        "stateMutability": "view",
        "inputs": [],
        "outputs": _inputs(*_SNAPSHOT_FIELDS),
    },
]

COMPLIANCE_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "setKYCStatus",
        "stateMutability": "nonpayable",
        "inputs": _inputs(
            ("wallet", "address"),
            ("approved", "bool"),
            ("jurisdictionCode", "uint16"),
            ("flags", "uint256"),
        ),
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setSanctioned",
        "stateMutability": "nonpayable",
        "inputs": _inputs(("wallet", "address"), ("sanctioned", "bool")),
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getStatus",
        "stateMutability": "view",
        "inputs": _inputs(("wallet", "address")),
        "outputs": _inputs(
            ("kycApproved", "bool"),
            ("sanctioned", "bool"),
            ("jurisdictionCode", "uint16"),
            ("flags", "uint256"),
        ),
    },
]
