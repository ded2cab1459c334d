"""SQLite-based storage implementations."""

import asyncio
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import aiosqlite

from ..config.settings import Settings
from ..core.exceptions import DatabaseError
from ..models.rag import ContentType, EmbeddingRecord
from ..utils.date_utils import local_day_key
from .base import CounterStorage, EmbeddingStorage

COUNTER_RETENTION_DAYS = 2


async def _connect(db_path: Path) -> aiosqlite.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # Autocommit mode; transactions are opened explicitly with BEGIN
    connection = await aiosqlite.connect(db_path, isolation_level=None)
    await connection.execute("PRAGMA journal_mode=WAL")
    await connection.execute("PRAGMA busy_timeout=5000")
    return connection


class SQLiteEmbeddingStorage(EmbeddingStorage):
    """SQLite-based embedding storage. Vectors are stored as JSON arrays."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.db_path = settings.SQLITE_DATABASE_PATH
        self._connection: Optional[aiosqlite.Connection] = None
        # One shared connection; writers must not interleave their transactions
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize SQLite database."""
        try:
            self._connection = await _connect(self.db_path)
            await self._create_tables()

            self.logger.info("SQLite embedding storage initialized", db_path=str(self.db_path))

        except Exception as e:
            raise DatabaseError(f"Failed to initialize SQLite embedding storage: {e}", "initialize")

    async def close(self) -> None:
        """Close SQLite connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            self.logger.info("SQLite embedding storage closed")

    async def _create_tables(self) -> None:
        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS embeddings (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                document_id TEXT NOT NULL,
                embedding TEXT NOT NULL,
                text_snippet TEXT NOT NULL,
                metadata TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT,
                UNIQUE(user_id, document_id)
            );
            CREATE INDEX IF NOT EXISTS idx_embeddings_user ON embeddings(user_id);
            CREATE INDEX IF NOT EXISTS idx_embeddings_user_type ON embeddings(user_id, content_type);
            """
        )

    def _ensure_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise DatabaseError("Storage not initialized")
        return self._connection

    async def upsert(self, record: EmbeddingRecord) -> None:
        await self.upsert_many([record])

    async def upsert_many(self, records: Sequence[EmbeddingRecord]) -> None:
        """Delete-then-insert every record inside one transaction."""
        connection = self._ensure_connection()
        if not records:
            return

        async with self._write_lock:
            try:
                await connection.execute("BEGIN")
                for record in records:
                    await connection.execute(
                        "DELETE FROM embeddings WHERE user_id = ? AND document_id = ?",
                        (record.user_id, record.document_id),
                    )
                    await connection.execute(
                        """
                        INSERT INTO embeddings
                        (id, user_id, content_type, document_id, embedding, text_snippet,
                         metadata, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        self._record_to_row(record),
                    )
                await connection.execute("COMMIT")
            except Exception as e:
                if connection.in_transaction:
                    await connection.execute("ROLLBACK")
                raise DatabaseError(f"Failed to store embeddings: {e}", "upsert")

    async def delete_by_document(self, user_id: str, document_id: str) -> int:
        connection = self._ensure_connection()
        async with self._write_lock:
            try:
                cursor = await connection.execute(
                    "DELETE FROM embeddings WHERE user_id = ? AND document_id = ?",
                    (user_id, document_id),
                )
                return cursor.rowcount
            except Exception as e:
                raise DatabaseError(f"Failed to delete embedding: {e}", "delete")

    async def get_by_document(self, user_id: str, document_id: str) -> Optional[EmbeddingRecord]:
        connection = self._ensure_connection()
        try:
            cursor = await connection.execute(
                "SELECT * FROM embeddings WHERE user_id = ? AND document_id = ?",
                (user_id, document_id),
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None
        except Exception as e:
            raise DatabaseError(f"Failed to fetch embedding: {e}", "get")

    async def list_by_user(self, user_id: str) -> List[EmbeddingRecord]:
        connection = self._ensure_connection()
        try:
            cursor = await connection.execute(
                "SELECT * FROM embeddings WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]
        except Exception as e:
            raise DatabaseError(f"Failed to list embeddings: {e}", "list")

    async def list_document_ids(
        self,
        user_id: str,
        content_types: Optional[Sequence[ContentType]] = None,
    ) -> List[str]:
        connection = self._ensure_connection()
        sql = "SELECT document_id FROM embeddings WHERE user_id = ?"
        values: list = [user_id]
        if content_types:
            placeholders = ",".join("?" * len(content_types))
            sql += f" AND content_type IN ({placeholders})"
            values.extend(ct.value for ct in content_types)

        try:
            cursor = await connection.execute(sql, values)
            return [row[0] for row in await cursor.fetchall()]
        except Exception as e:
            raise DatabaseError(f"Failed to list document ids: {e}", "list")

    async def count_by_type(self) -> Tuple[int, int, Dict[str, int]]:
        connection = self._ensure_connection()
        try:
            cursor = await connection.execute("SELECT COUNT(*), COUNT(DISTINCT user_id) FROM embeddings")
            total, users = await cursor.fetchone()

            cursor = await connection.execute(
                "SELECT content_type, COUNT(*) FROM embeddings GROUP BY content_type"
            )
            type_counts = {row[0]: row[1] for row in await cursor.fetchall()}
            return total, users, type_counts
        except Exception as e:
            raise DatabaseError(f"Failed to get stats: {e}", "stats")

    @staticmethod
    def _record_to_row(record: EmbeddingRecord) -> tuple:
        return (
            record.id,
            record.user_id,
            record.content_type.value,
            record.document_id,
            json.dumps(record.embedding),
            record.text_snippet,
            json.dumps(record.metadata, default=str),
            record.created_at.isoformat(),
            record.updated_at.isoformat() if record.updated_at else None,
        )

    @staticmethod
    def _row_to_record(row) -> EmbeddingRecord:
        """Convert database row to EmbeddingRecord."""
        return EmbeddingRecord(
            id=row[0],
            user_id=row[1],
            content_type=ContentType(row[2]),
            document_id=row[3],
            embedding=json.loads(row[4]),
            text_snippet=row[5],
            metadata=json.loads(row[6]) if row[6] else {},
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]) if row[8] else None,
        )


def _retention_cutoff() -> str:
    """Oldest local day whose counters are kept (today and yesterday)."""
    return local_day_key(datetime.now().astimezone() - timedelta(days=COUNTER_RETENTION_DAYS - 1))


class SQLiteCounterStorage(CounterStorage):
    """Rate-limit counters in SQLite, incremented inside BEGIN IMMEDIATE transactions."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.db_path = settings.SQLITE_DATABASE_PATH
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        try:
            self._connection = await _connect(self.db_path)
            await self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS rate_limits (
                    user_id TEXT NOT NULL,
                    feature TEXT NOT NULL,
                    day TEXT NOT NULL,
                    count INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, feature, day)
                )
                """
            )
            purged = await self.purge_before(_retention_cutoff())
            self.logger.info(
                "SQLite counter storage initialized", db_path=str(self.db_path), purged_counters=purged
            )
        except Exception as e:
            raise DatabaseError(f"Failed to initialize SQLite counter storage: {e}", "initialize")

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            self.logger.info("SQLite counter storage closed")

    async def increment_if_below(
        self,
        user_id: str,
        feature: str,
        day: str,
        limit: int,
    ) -> Tuple[bool, int]:
        if not self._connection:
            raise DatabaseError("Storage not initialized")

        async with self._lock:
            try:
                await self._connection.execute("BEGIN IMMEDIATE")
                cursor = await self._connection.execute(
                    "SELECT count FROM rate_limits WHERE user_id = ? AND feature = ? AND day = ?",
                    (user_id, feature, day),
                )
                row = await cursor.fetchone()
                current = row[0] if row else 0

                if current >= limit:
                    await self._connection.execute("COMMIT")
                    return False, current

                await self._connection.execute(
                    """
                    INSERT INTO rate_limits (user_id, feature, day, count) VALUES (?, ?, ?, 1)
                    ON CONFLICT(user_id, feature, day) DO UPDATE SET count = count + 1
                    """,
                    (user_id, feature, day),
                )
                await self._connection.execute("COMMIT")
                return True, current + 1
            except Exception as e:
                if self._connection.in_transaction:
                    await self._connection.execute("ROLLBACK")
                raise DatabaseError(f"Failed to increment counter: {e}", "increment")

    async def get_count(self, user_id: str, feature: str, day: str) -> int:
        if not self._connection:
            raise DatabaseError("Storage not initialized")

        try:
            cursor = await self._connection.execute(
                "SELECT count FROM rate_limits WHERE user_id = ? AND feature = ? AND day = ?",
                (user_id, feature, day),
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
        except Exception as e:
            raise DatabaseError(f"Failed to read counter: {e}", "get")

    async def purge_before(self, day: str) -> int:
        """Drop counters for days before ``day``."""
        if not self._connection:
            raise DatabaseError("Storage not initialized")
        async with self._lock:
            cursor = await self._connection.execute("DELETE FROM rate_limits WHERE day < ?", (day,))
            return cursor.rowcount
