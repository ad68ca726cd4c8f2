"""
SQLite storage for the reserves core.

Three tables, minimal:
    - ledger_transactions: audit records, append then update-by-id.
    - job_leases: per-job run-locks for the scheduler.
    - members: local compliance mirror (cache of the EVM registry).

Invariants:
    - Records are created once and updated by id. A terminal record
      (confirmed/failed) is never updated again.
    - Each logical operation owns a unique record id, so no in-process
      locking is needed; cross-process writers rely on SQLite's locking.
    - A lease row is held by exactly one owner until released or expired.

Storage patterns:
    - _get_conn() with persistent connection for :memory:
    - _transaction() context manager with commit/rollback
    - _init_schema() via executescript
    - sqlite3.Row row factory
    - WAL mode for file-backed databases
"""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from fth_reserves.records import (
    Flow,
    Ledger,
    LedgerTransactionRecord,
    TxStatus,
)


@runtime_checkable
class RecordStore(Protocol):
    """What ledger clients and the reconciliation engine need from storage."""

    def create(self, record: LedgerTransactionRecord) -> LedgerTransactionRecord: ...

    def update(self, record: LedgerTransactionRecord) -> LedgerTransactionRecord: ...

    def list_records(
        self,
        *,
        flow: Flow | None = None,
        status: TxStatus | None = None,
        ledger: Ledger | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[LedgerTransactionRecord]: ...


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS ledger_transactions (
    id TEXT PRIMARY KEY,
    ledger TEXT NOT NULL,
    flow TEXT NOT NULL,
    direction TEXT NOT NULL,
    status TEXT NOT NULL,
    member_id TEXT,
    wallet_address TEXT,
    tx_hash TEXT,
    error_code TEXT,
    error_message TEXT,
    request_id TEXT,
    payload_summary TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ledger_tx_flow_status
ON ledger_transactions(flow, status);

CREATE INDEX IF NOT EXISTS idx_ledger_tx_created
ON ledger_transactions(created_at);

CREATE TABLE IF NOT EXISTS job_leases (
    job_name TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    acquired_at REAL NOT NULL,
    expires_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS members (
    member_id TEXT PRIMARY KEY,
    wallet_address TEXT NOT NULL,
    kyc_status TEXT NOT NULL,
    jurisdiction_code INTEGER NOT NULL DEFAULT 0,
    flags TEXT NOT NULL DEFAULT '0',
    sanctioned INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
"""

_RECORD_COLUMNS = (
    "id",
    "ledger",
    "flow",
    "direction",
    "status",
    "member_id",
    "wallet_address",
    "tx_hash",
    "error_code",
    "error_message",
    "request_id",
    "payload_summary",
    "created_at",
    "updated_at",
)


def _record_row(record: LedgerTransactionRecord) -> tuple[Any, ...]:
    return (
        record.id,
        record.ledger.value,
        record.flow.value,
        record.direction.value,
        record.status.value,
        record.member_id,
        record.wallet_address,
        record.tx_hash,
        record.error_code,
        record.error_message,
        record.request_id,
        record.payload_summary,
        record.created_at,
        record.updated_at,
    )


class ReservesStore:
    """SQLite-backed store for ledger records, job leases and members.

    Thread-safe via SQLite's built-in locking.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.
        clock: Callable returning epoch seconds, used for lease expiry.
            Inject for deterministic tests.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._db_path = str(db_path)
        self._is_memory = self._db_path == ":memory:"
        self._clock = clock or time.time

        if self._is_memory:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._persistent_conn.row_factory = sqlite3.Row
        else:
            self._persistent_conn = None

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection with proper settings."""
        if self._persistent_conn is not None:
            return self._persistent_conn

        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a database transaction."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if self._persistent_conn is None:
                conn.close()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self._transaction() as conn:
            conn.executescript(_SCHEMA)

    def close(self) -> None:
        if self._persistent_conn is not None:
            self._persistent_conn.close()
            self._persistent_conn = None

    # -----------------------------------------------------------------
    # Ledger transaction records
    # -----------------------------------------------------------------

    def create(self, record: LedgerTransactionRecord) -> LedgerTransactionRecord:
        """Insert a new record.

        Raises:
            ValueError: If a record with the same id already exists.
        """
        placeholders = ", ".join("?" for _ in _RECORD_COLUMNS)
        with self._transaction() as conn:
            try:
                conn.execute(
                    f"INSERT INTO ledger_transactions ({', '.join(_RECORD_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    _record_row(record),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"record {record.id} already exists") from exc
        return record

    def update(self, record: LedgerTransactionRecord) -> LedgerTransactionRecord:
        """Replace a stored record by id.

        The status guard and the write happen in one transaction so two
        writers cannot both move the same pending record to a terminal
        state.

        Raises:
            KeyError: If no record with that id exists.
            ValueError: If the stored record is already terminal.
        """
        assignments = ", ".join(f"{col} = ?" for col in _RECORD_COLUMNS[1:])
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT status FROM ledger_transactions WHERE id = ?",
                (record.id,),
            ).fetchone()
            if row is None:
                raise KeyError(record.id)
            if TxStatus(row["status"]) != TxStatus.PENDING:
                raise ValueError(
                    f"record {record.id} is already {row['status']}; "
                    "terminal records cannot be updated"
                )
            conn.execute(
                f"UPDATE ledger_transactions SET {assignments} WHERE id = ?",
                (*_record_row(record)[1:], record.id),
            )
        return record

    def get(self, record_id: str) -> LedgerTransactionRecord | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM ledger_transactions WHERE id = ?",
                (record_id,),
            ).fetchone()
        if row is None:
            return None
        return LedgerTransactionRecord.from_dict(dict(row))

    def list_records(
        self,
        *,
        flow: Flow | None = None,
        status: TxStatus | None = None,
        ledger: Ledger | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[LedgerTransactionRecord]:
        """List records, oldest first unless ``newest_first``, optionally filtered.

        ``limit`` applies after ordering, so with ``newest_first`` it keeps
        the most recent records.
        """
        clauses: list[str] = []
        params: list[Any] = []
        if flow is not None:
            clauses.append("flow = ?")
            params.append(flow.value)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if ledger is not None:
            clauses.append("ledger = ?")
            params.append(ledger.value)

        sql = "SELECT * FROM ledger_transactions"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if newest_first:
            sql += " ORDER BY created_at DESC, rowid DESC"
        else:
            sql += " ORDER BY created_at, rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [LedgerTransactionRecord.from_dict(dict(row)) for row in rows]

    # -----------------------------------------------------------------
    # Job leases
    # -----------------------------------------------------------------

    def acquire_lease(self, job_name: str, owner: str, ttl_seconds: float) -> bool:
        """Try to take the run-lock for a job.

        Expired leases are reclaimed. Returns True if this owner now holds
        the lease, False if someone else holds an unexpired one.
        """
        now = self._clock()
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM job_leases WHERE job_name = ? AND expires_at <= ?",
                (job_name, now),
            )
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO job_leases (job_name, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (job_name, owner, now, now + ttl_seconds),
            )
            return cursor.rowcount == 1

    def release_lease(self, job_name: str, owner: str) -> None:
        """Release a lease. Only the holder can release it."""
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM job_leases WHERE job_name = ? AND owner = ?",
                (job_name, owner),
            )

    def lease_owner(self, job_name: str) -> str | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT owner, expires_at FROM job_leases WHERE job_name = ?",
                (job_name,),
            ).fetchone()
        if row is None or row["expires_at"] <= self._clock():
            return None
        return str(row["owner"])

    # -----------------------------------------------------------------
    # Member compliance mirror
    # -----------------------------------------------------------------

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
    ) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO members
                (member_id, wallet_address, kyc_status, jurisdiction_code, flags, sanctioned, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(member_id) DO UPDATE SET
                    wallet_address = excluded.wallet_address,
                    kyc_status = excluded.kyc_status,
                    jurisdiction_code = excluded.jurisdiction_code,
                    flags = excluded.flags,
                    sanctioned = excluded.sanctioned,
                    updated_at = excluded.updated_at
                """,
                (
                    member_id,
                    wallet_address,
                    kyc_status,
                    jurisdiction_code,
                    str(flags),
                    int(sanctioned),
                    updated_at,
                ),
            )

    def get_member(self, member_id: str) -> dict[str, Any] | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM members WHERE member_id = ?",
                (member_id,),
            ).fetchone()
        if row is None:
            return None
        member = dict(row)
        member["flags"] = int(member["flags"])
        member["sanctioned"] = bool(member["sanctioned"])
        return member
