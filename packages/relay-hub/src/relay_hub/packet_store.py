"""
Durable packet store for the relay hub.

Packets are kept in a single SQLite table. The store owns the global
sequence counter: it is recovered from the highest persisted hub_seq when the
store is opened and only ever advanced inside the submit critical section,
together with the uniqueness check and the insert.
"""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable

from .errors import DuplicateError, ValidationError
from .models import HubRecord, Packet

logger = logging.getLogger(__name__)

# Largest value an SQLite INTEGER column holds.
MAX_INTEGER = 2**63 - 1


SCHEMA = """
CREATE TABLE IF NOT EXISTS packets (
    hub_seq INTEGER PRIMARY KEY,
    src_chain_id TEXT NOT NULL,
    dst_chain_id TEXT NOT NULL,
    src_seq INTEGER NOT NULL,
    sender TEXT NOT NULL,
    receiver TEXT NOT NULL,
    payload_hex TEXT NOT NULL,
    commitment TEXT NOT NULL,
    proof_json TEXT NOT NULL,
    delivered INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_unique_src
    ON packets (src_chain_id, src_seq, dst_chain_id);
CREATE INDEX IF NOT EXISTS idx_pending
    ON packets (delivered, hub_seq);
"""

_COLUMNS = (
    "hub_seq, src_chain_id, dst_chain_id, src_seq, sender, receiver, "
    "payload_hex, commitment, proof_json, delivered, created_at"
)


class PacketStore:
    """
    SQLite-backed table of registered packets.

    One connection is shared by all callers; a lock serializes access to it so
    the store can be used from a web server's worker threads. Submissions run
    in an IMMEDIATE transaction, which also keeps other processes opening the
    same database file from interleaving their writes.
    """

    def __init__(self, db_path: str | Path, clock: Callable[[], float] = time.time):
        """
        Open (or create) the packet database.

        Args:
            db_path: Path of the SQLite file, or ":memory:"
            clock: Source of wall-clock seconds for createdAt
        """
        self.db_path = str(db_path)
        self._clock = clock
        self._lock = threading.Lock()

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)

        self._next_hub_seq = self._recover_next_hub_seq()
        logger.info(f"Packet store opened at {self.db_path}, next hubSeq={self._next_hub_seq}")

    def _recover_next_hub_seq(self) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(MAX(hub_seq), 0) + 1 AS n FROM packets"
        ).fetchone()
        return int(row["n"])

    @property
    def next_hub_seq(self) -> int:
        """The hubSeq the next successful submission will receive."""
        with self._lock:
            return self._next_hub_seq

    def submit(self, packet: Packet) -> int:
        """
        Register a packet and assign it the next global sequence number.

        Args:
            packet: Packet to register

        Returns:
            The assigned hubSeq

        Raises:
            DuplicateError: If the packet's key is already registered. Nothing
                is written and no sequence number is consumed.
            ValidationError: If srcSeq does not fit an SQLite integer
        """
        if not 0 <= packet.src_seq <= MAX_INTEGER:
            raise ValidationError(f"srcSeq out of range: {packet.src_seq}")
        proof_json = json.dumps(packet.proof)
        created_at = int(self._clock() * 1000)

        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                existing = self._conn.execute(
                    "SELECT hub_seq FROM packets "
                    "WHERE src_chain_id = ? AND src_seq = ? AND dst_chain_id = ?",
                    (packet.src_chain_id, packet.src_seq, packet.dst_chain_id),
                ).fetchone()
                if existing is not None:
                    raise DuplicateError(packet.src_chain_id, packet.dst_chain_id, packet.src_seq)

                # Another process may have written to the same file since we
                # recovered the counter.
                hub_seq = max(self._next_hub_seq, self._recover_next_hub_seq())

                self._conn.execute(
                    f"INSERT INTO packets ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)",
                    (
                        hub_seq,
                        packet.src_chain_id,
                        packet.dst_chain_id,
                        packet.src_seq,
                        packet.sender,
                        packet.receiver,
                        packet.payload_hex,
                        packet.commitment,
                        proof_json,
                        created_at,
                    ),
                )
                self._conn.execute("COMMIT")
            except sqlite3.IntegrityError:
                self._conn.execute("ROLLBACK")
                raise DuplicateError(packet.src_chain_id, packet.dst_chain_id, packet.src_seq) from None
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise

            self._next_hub_seq = hub_seq + 1

        logger.info(
            f"Registered packet {packet.src_chain_id}:{packet.src_seq} -> "
            f"{packet.dst_chain_id} as hubSeq={hub_seq}"
        )
        return hub_seq

    def list_pending(self, limit: int, after_hub_seq: int = 0) -> list[HubRecord]:
        """
        Return undelivered records in ascending hubSeq order.

        Args:
            limit: Maximum number of records to return (must be positive)
            after_hub_seq: Only return records with a greater hubSeq. Passing
                the last hubSeq of one page yields the next page.
        """
        if limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")
        if not 0 <= after_hub_seq <= MAX_INTEGER:
            raise ValidationError(f"afterHubSeq out of range: {after_hub_seq}")

        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM packets WHERE delivered = 0 AND hub_seq > ? "
                "ORDER BY hub_seq ASC LIMIT ?",
                (after_hub_seq, limit),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def mark_delivered(self, hub_seq: int) -> int:
        """
        Flag a record as delivered.

        Returns:
            1 if the record flipped from undelivered to delivered, 0 if it was
            already delivered or does not exist
        """
        if not 0 < hub_seq <= MAX_INTEGER:
            logger.debug(f"markDelivered({hub_seq}) is outside the hubSeq range")
            return 0

        with self._lock:
            cursor = self._conn.execute(
                "UPDATE packets SET delivered = 1 WHERE hub_seq = ? AND delivered = 0",
                (hub_seq,),
            )
            changes = cursor.rowcount

        if changes:
            logger.info(f"Marked hubSeq={hub_seq} delivered")
        else:
            logger.debug(f"markDelivered({hub_seq}) changed nothing")
        return changes

    def get(self, hub_seq: int) -> HubRecord | None:
        """Look up a single record by hubSeq."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM packets WHERE hub_seq = ?",
                (hub_seq,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM packets").fetchone()[0])

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> HubRecord:
        packet = Packet(
            src_chain_id=row["src_chain_id"],
            dst_chain_id=row["dst_chain_id"],
            src_seq=row["src_seq"],
            sender=row["sender"],
            receiver=row["receiver"],
            payload=bytes.fromhex(row["payload_hex"][2:]),
            commitment=row["commitment"],
            proof=json.loads(row["proof_json"]),
        )
        return HubRecord(
            packet=packet,
            hub_seq=row["hub_seq"],
            delivered=bool(row["delivered"]),
            created_at=row["created_at"],
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "PacketStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
