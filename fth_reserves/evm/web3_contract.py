"""
web3.py implementation of the RegistryContract boundary.

Lazily imports web3 so modules that never touch the EVM (and the test
suite, which uses a fake contract) do not need a provider.

One operator account signs every registry write. Writes are serialized
behind an asyncio.Lock so nonces are taken from the pending count one
transaction at a time.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fth_reserves.errors import ConfigurationError, RegistryError, SubmissionTimeout
from fth_reserves.evm.abi import COMPLIANCE_REGISTRY_ABI, POR_REGISTRY_ABI
from fth_reserves.evm.registry import RegistryName, RegistryReceipt

if TYPE_CHECKING:
    from web3 import AsyncWeb3

_ABIS = {
    RegistryName.POR: POR_REGISTRY_ABI,
    RegistryName.COMPLIANCE: COMPLIANCE_REGISTRY_ABI,
}


def _hex(value: Any) -> str:
    if hasattr(value, "to_0x_hex"):
        return str(value.to_0x_hex())
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


class Web3RegistryContract:
    """AsyncWeb3-backed registry calls.

    Args:
        rpc_url: EVM JSON-RPC endpoint.
        chain_id: Chain id stamped on every transaction.
        addresses: Contract address per registry.
        private_key: Operator key. Held only inside this object. Without
            it the contract is read-only.
        receipt_timeout_s: Bound on waiting for a receipt.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        chain_id: int,
        addresses: dict[RegistryName, str],
        private_key: str | None = None,
        receipt_timeout_s: float = 120.0,
    ) -> None:
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._addresses = dict(addresses)
        self._private_key = private_key
        self._receipt_timeout_s = receipt_timeout_s
        self._w3: AsyncWeb3 | None = None
        self._account: Any = None
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Web3RegistryContract(rpc_url={self._rpc_url!r}, key=<redacted>)"

    def _web3(self) -> AsyncWeb3:
        if self._w3 is None:
            from web3 import AsyncWeb3

            self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self._rpc_url))
            if self._private_key:
                self._account = self._w3.eth.account.from_key(self._private_key)
        return self._w3

    def _contract(self, registry: RegistryName) -> Any:
        address = self._addresses.get(registry)
        if not address:
            raise RegistryError(f"no address configured for the {registry} registry")
        w3 = self._web3()
        return w3.eth.contract(
            address=w3.to_checksum_address(address),
            abi=_ABIS[registry],
        )

    async def transact(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> RegistryReceipt:
        w3 = self._web3()
        if self._account is None:
            raise ConfigurationError("EVM operator key is not configured")
        contract = self._contract(registry)
        fn = getattr(contract.functions, function)(*args)

        async with self._send_lock:
            sender = self._account.address
            nonce = await w3.eth.get_transaction_count(sender, "pending")
            tx = await fn.build_transaction(
                {"from": sender, "nonce": nonce, "chainId": self._chain_id}
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)

        from web3.exceptions import TimeExhausted

        # Broadcast from here on: a failed wait leaves the outcome unknown.
        try:
            receipt = await w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_s
            )
        except TimeExhausted as exc:
            raise SubmissionTimeout(
                f"{function} not mined within {self._receipt_timeout_s}s",
                tx_hash=_hex(tx_hash),
            ) from exc
        except Exception as exc:
            raise SubmissionTimeout(
                f"{function} receipt wait failed: {exc}",
                tx_hash=_hex(tx_hash),
            ) from exc

        return RegistryReceipt(
            tx_hash=_hex(receipt["transactionHash"]),
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

    async def call(
        self, registry: RegistryName, function: str, args: tuple[Any, ...]
    ) -> Any:
        contract = self._contract(registry)
        return await getattr(contract.functions, function)(*args).call()
