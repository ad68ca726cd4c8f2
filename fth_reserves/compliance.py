"""
ComplianceSync: propagates KYC and sanction changes.

The EVM compliance registry is the source of truth (on-ledger hooks
enforce it). The local member mirror is a cache. Every change writes the
registry first and the mirror second, so the registry is never behind
the cache. If the registry write fails, the mirror is not touched.

KYC vendor logic is upstream; it hands a MemberKYC to this class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from fth_reserves.evm.registry import RegistryClient
from fth_reserves.records import now_utc

logger = logging.getLogger(__name__)


class KYCStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    BLOCKED = "BLOCKED"
    RESUBMIT_REQUIRED = "RESUBMIT_REQUIRED"


@dataclass(frozen=True)
class MemberKYC:
    """KYC state of one member as handed over by the vendor workflow.

    ``flags`` is the product bitset mirrored to the registry.
    """

    member_id: str
    wallet_address: str
    status: KYCStatus
    jurisdiction_code: int = 0
    flags: int = 0


class MemberMirror(Protocol):
    """Local member store. ReservesStore implements it."""

    def upsert_member(
        self,
        member_id: str,
        wallet_address: str,
        *,
        kyc_status: str,
        jurisdiction_code: int,
        flags: int,
        sanctioned: bool,
        updated_at: str,
    ) -> None: ...

    def get_member(self, member_id: str) -> dict[str, Any] | None: ...


class ComplianceSync:
    def __init__(self, registry: RegistryClient, mirror: MemberMirror) -> None:
        self._registry = registry
        self._mirror = mirror

    def _require_member(self, member_id: str) -> dict[str, Any]:
        member = self._mirror.get_member(member_id)
        if member is None:
            raise LookupError(f"member {member_id} not found")
        return member

    def _mirror_status(
        self,
        record: MemberKYC,
        status: KYCStatus,
        *,
        sanctioned: bool,
    ) -> None:
        self._mirror.upsert_member(
            record.member_id,
            record.wallet_address,
            kyc_status=status.value,
            jurisdiction_code=record.jurisdiction_code,
            flags=record.flags,
            sanctioned=sanctioned,
            updated_at=now_utc(),
        )
        logger.info(
            "compliance status changed",
            extra={"member_id": record.member_id, "kyc_status": status.value, "sanctioned": sanctioned},
        )

    async def approve_member(self, record: MemberKYC, *, request_id: str | None = None) -> None:
        """Set KYC approved on the registry, then mirror APPROVED.

        A member not yet in the mirror is created by the mirror write.
        """
        existing = self._mirror.get_member(record.member_id)
        await self._registry.set_kyc_status(
            record.wallet_address,
            True,
            record.jurisdiction_code,
            record.flags,
            member_id=record.member_id,
            request_id=request_id,
        )
        sanctioned = bool(existing and existing["sanctioned"])
        self._mirror_status(record, KYCStatus.APPROVED, sanctioned=sanctioned)

    async def block_member(self, record: MemberKYC, *, request_id: str | None = None) -> None:
        """Sanction the wallet on the registry, then mirror BLOCKED.

        Raises:
            LookupError: If the member is unknown. Nothing is written.
        """
        self._require_member(record.member_id)
        await self._registry.set_sanctioned(
            record.wallet_address,
            True,
            member_id=record.member_id,
            request_id=request_id,
        )
        self._mirror_status(record, KYCStatus.BLOCKED, sanctioned=True)

    async def unblock_member(self, record: MemberKYC, *, request_id: str | None = None) -> None:
        """Lift the sanction on the registry, then mirror APPROVED.

        Raises:
            LookupError: If the member is unknown. Nothing is written.
        """
        self._require_member(record.member_id)
        await self._registry.set_sanctioned(
            record.wallet_address,
            False,
            member_id=record.member_id,
            request_id=request_id,
        )
        self._mirror_status(record, KYCStatus.APPROVED, sanctioned=False)
