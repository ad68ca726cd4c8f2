"""
Integrity utilities for content hashing.
"""

from eth_utils import keccak


def keccak256_hex(data: bytes) -> str:
    """Compute Keccak-256 of bytes as a 0x-prefixed lowercase hex string.

    This is the EVM hash (not NIST SHA3-256), so the result can be stored
    directly in a bytes32 registry slot.
    """
    return "0x" + keccak(data).hex()
