import sqlite3
import logging
import threading
from typing import Any, Iterable, List, Optional

from .config import StorageConfig
from .errors import StorageError
from .memory_storage import MemoryStorage
from .records import BundleRecord, MappingRecord, RecordKind, check_attribute
from .storage_api import StorageAPI

logger = logging.getLogger(__name__)

_TABLES = {
    RecordKind.BUNDLE: "bundles",
    RecordKind.MAPPING: "gist_mappings",
}


class SQLiteStorage(StorageAPI):
    """
    SQLite-backed durable storage for bundle and mapping records.

    All DB access is guarded by an RLock. Uniqueness of internal ids is
    NOT a table constraint; the mapping store checks before inserting.
    """

    def __init__(self, db_path: str = "padrelay.db"):
        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            with self._lock:
                self.conn.execute("PRAGMA journal_mode=WAL;")
                self.conn.execute("PRAGMA synchronous=NORMAL;")
                self.conn.execute("PRAGMA foreign_keys=ON;")
            self._init_tables()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {db_path}: {e}") from e

    def _init_tables(self) -> None:
        """Initialize database tables."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS bundles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT NOT NULL,
                    epoch_time INTEGER NOT NULL
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_bundles_uuid ON bundles(uuid)"
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS bundle_fields (
                    bundle_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    payload BLOB NOT NULL,
                    PRIMARY KEY (bundle_id, position),
                    FOREIGN KEY (bundle_id) REFERENCES bundles(id) ON DELETE CASCADE
                )
                """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS gist_mappings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    internal_id TEXT NOT NULL,
                    gist_id TEXT NOT NULL,
                    epoch_time INTEGER NOT NULL
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_gist_mappings_internal_id "
                "ON gist_mappings(internal_id)"
            )

            self.conn.commit()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, kind: RecordKind, attribute: str, value: Any) -> List[Any]:
        check_attribute(kind, attribute)
        # attribute is whitelisted above, so it is safe to splice into SQL
        sql = f"SELECT * FROM {_TABLES[kind]} WHERE {attribute} = ? ORDER BY id"
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(sql, (value,))
                rows = cursor.fetchall()
                if kind is RecordKind.BUNDLE:
                    return [self._load_bundle(cursor, row) for row in rows]
                return [
                    MappingRecord(
                        internal_id=row["internal_id"],
                        gist_id=row["gist_id"],
                        epoch_time=row["epoch_time"],
                        key=row["id"],
                    )
                    for row in rows
                ]
            except sqlite3.Error as e:
                logger.error("Query on %s failed: %s", _TABLES[kind], e)
                raise StorageError(f"Query failed: {e}") from e

    def _load_bundle(self, cursor: sqlite3.Cursor, row: sqlite3.Row) -> BundleRecord:
        cursor.execute(
            "SELECT name, payload FROM bundle_fields WHERE bundle_id = ? ORDER BY position",
            (row["id"],),
        )
        fields = {f["name"]: bytes(f["payload"]) for f in cursor.fetchall()}
        return BundleRecord(
            uuid=row["uuid"],
            fields=fields,
            epoch_time=row["epoch_time"],
            key=row["id"],
        )

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(
        self,
        inserts: Optional[Iterable[Any]] = None,
        deletes: Optional[Iterable[Any]] = None,
    ) -> None:
        """Apply inserts and deletes in a single transaction."""
        inserts = list(inserts or ())
        deletes = list(deletes or ())
        if not inserts and not deletes:
            return

        with self._lock:
            cursor = self.conn.cursor()
            try:
                cursor.execute("BEGIN TRANSACTION")
                new_keys = [self._insert(cursor, record) for record in inserts]
                for record in deletes:
                    if record.KIND is RecordKind.BUNDLE:
                        cursor.execute(
                            "DELETE FROM bundle_fields WHERE bundle_id = ?", (record.key,)
                        )
                    cursor.execute(
                        f"DELETE FROM {_TABLES[record.KIND]} WHERE id = ?", (record.key,)
                    )
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error("Commit failed: %s", e)
                raise StorageError(f"Commit failed: {e}") from e

        for record, key in zip(inserts, new_keys):
            record.key = key

    def _insert(self, cursor: sqlite3.Cursor, record: Any) -> int:
        if record.KIND is RecordKind.BUNDLE:
            cursor.execute(
                "INSERT INTO bundles (uuid, epoch_time) VALUES (?, ?)",
                (record.uuid, record.epoch_time),
            )
            key = cursor.lastrowid
            cursor.executemany(
                """
                INSERT INTO bundle_fields (bundle_id, position, name, payload)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (key, position, name, payload)
                    for position, (name, payload) in enumerate(record.fields.items())
                ],
            )
            return key

        cursor.execute(
            "INSERT INTO gist_mappings (internal_id, gist_id, epoch_time) VALUES (?, ?, ?)",
            (record.internal_id, record.gist_id, record.epoch_time),
        )
        return cursor.lastrowid

    def close(self) -> None:
        """Close the DB connection."""
        with self._lock:
            self.conn.close()


def create_storage(config: StorageConfig) -> StorageAPI:
    """Build the backend named by the config."""
    if config.backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryStorage()
    if config.backend == "sqlite":
        logger.info("Using SQLite database %s", config.db_path)
        return SQLiteStorage(config.db_path)
    raise ValueError(f"Unknown storage backend: {config.backend!r}")
