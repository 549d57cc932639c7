"""DuckDB-backed record storage for cached tide and weather readings.

Records are append-only. Every key keeps a history of rows; the row with the
greatest timestamp is the one served. Rows older than the retention horizon
are deleted by the eviction that follows each write.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import duckdb

from features.common.exceptions.engine_exceptions import PersistFailed, StorageReadFault
from features.common.models.record_types import CacheRecord, RecordKey

logger = logging.getLogger(__name__)

# Records older than this are purged after every write
RETENTION_HORIZON = timedelta(hours=24)

def to_db_time(moment: datetime) -> datetime:
    """Convert to the naive UTC form stored in TIMESTAMP columns."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)

def from_db_time(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc)

class RecordDatabase:
    """Owns the DuckDB connection shared by all record stores.

    Example:
        >>> db = RecordDatabase(Path("data/records.duckdb"))
        >>> tides = TideRecordStore(db)
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

class RecordStore:
    """Append-only keyed store over one DuckDB table.

    Subclasses name the table, its key columns and its payload columns, and
    provide the DDL. A key is a tuple of key column values.
    """

    table: str = ""
    key_columns: Tuple[str, ...] = ()
    payload_columns: Tuple[str, ...] = ()
    schema_sql: str = ""

    def __init__(self, database: RecordDatabase):
        self.database = database
        self._init_schema()

    def _init_schema(self) -> None:
        for statement in self.schema_sql.split(";"):
            statement = statement.strip()
            if statement:
                self.database.conn.execute(statement)
        logger.info(f"Record table {self.table} ready at {self.database.db_path}")

    @property
    def _columns(self) -> Tuple[str, ...]:
        return self.key_columns + self.payload_columns + ("timestamp",)

    def _select_list(self) -> str:
        return ", ".join(self._columns)

    def _key_filter(self) -> str:
        return " AND ".join(f"{column} = ?" for column in self.key_columns)

    def _to_record(self, row: Sequence[Any]) -> CacheRecord:
        n_keys = len(self.key_columns)
        n_payload = len(self.payload_columns)
        return CacheRecord(
            key=tuple(str(value) for value in row[:n_keys]),
            payload=dict(zip(self.payload_columns, row[n_keys:n_keys + n_payload])),
            timestamp=from_db_time(row[n_keys + n_payload])
        )

    def _query(self, sql: str, params: Optional[List[Any]] = None) -> List[Tuple]:
        try:
            return self.database.conn.execute(sql, params or []).fetchall()
        except duckdb.Error as e:
            raise StorageReadFault(f"Error reading {self.table}: {e}") from e

    def latest(self, key: RecordKey) -> Optional[CacheRecord]:
        """Most recent record for key, or None if absent or unreadable."""
        try:
            rows = self._query(
                f"""
                SELECT {self._select_list()}
                FROM {self.table}
                WHERE {self._key_filter()}
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """,
                list(key)
            )
        except StorageReadFault as e:
            logger.warning(f"⚠️ {e}")
            return None
        return self._to_record(rows[0]) if rows else None

    def latest_overall(self) -> Optional[CacheRecord]:
        """Most recent record across all keys."""
        try:
            rows = self._query(
                f"""
                SELECT {self._select_list()}
                FROM {self.table}
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """
            )
        except StorageReadFault as e:
            logger.warning(f"⚠️ {e}")
            return None
        return self._to_record(rows[0]) if rows else None

    def latest_per_key(self) -> List[CacheRecord]:
        """Most recent record for every stored key, ordered by key."""
        keys = ", ".join(self.key_columns)
        try:
            rows = self._query(
                f"""
                SELECT {self._select_list()}
                FROM (
                    SELECT *, row_number() OVER (
                        PARTITION BY {keys} ORDER BY timestamp DESC, id DESC
                    ) AS row_rank
                    FROM {self.table}
                )
                WHERE row_rank = 1
                ORDER BY {keys}
                """
            )
        except StorageReadFault as e:
            logger.warning(f"⚠️ {e}")
            return []
        return [self._to_record(row) for row in rows]

    def first_key(self) -> Optional[RecordKey]:
        """Smallest stored key in key column order."""
        keys = ", ".join(self.key_columns)
        try:
            rows = self._query(f"SELECT DISTINCT {keys} FROM {self.table} ORDER BY {keys} LIMIT 1")
        except StorageReadFault as e:
            logger.warning(f"⚠️ {e}")
            return None
        return tuple(str(value) for value in rows[0]) if rows else None

    def append(self, key: RecordKey, payload: Mapping[str, Any], timestamp: datetime) -> None:
        """Insert a new record. Existing rows are left untouched.

        Raises:
            PersistFailed: the row could not be written
        """
        if len(key) != len(self.key_columns):
            raise PersistFailed(f"Key {key!r} does not match columns {self.key_columns}")
        missing = [column for column in self.payload_columns if column not in payload]
        if missing:
            raise PersistFailed(f"Payload for {self.table} is missing {', '.join(missing)}")

        placeholders = ", ".join("?" for _ in self._columns)
        params = list(key) + [payload[column] for column in self.payload_columns] + [to_db_time(timestamp)]
        try:
            self.database.conn.execute(
                f"INSERT INTO {self.table} ({self._select_list()}) VALUES ({placeholders})",
                params
            )
        except duckdb.Error as e:
            logger.error(f"❌ Error writing to {self.table}: {e}")
            raise PersistFailed(f"Failed to write {self.table} record: {e}") from e

    def evict_older_than(
        self,
        horizon: timedelta = RETENTION_HORIZON,
        now: Optional[datetime] = None,
        key: Optional[RecordKey] = None
    ) -> int:
        """Delete records older than now - horizon, for one key or the whole table.

        Returns:
            Number of deleted rows
        """
        now = now or datetime.now(timezone.utc)
        cutoff = to_db_time(now - horizon)

        sql = f"DELETE FROM {self.table} WHERE timestamp < ?"
        params: List[Any] = [cutoff]
        if key is not None:
            sql += f" AND {self._key_filter()}"
            params.extend(key)

        try:
            row = self.database.conn.execute(sql, params).fetchone()
        except duckdb.Error as e:
            raise PersistFailed(f"Failed to evict {self.table} records: {e}") from e

        deleted = int(row[0]) if row else 0
        if deleted:
            logger.info(f"🧹 Evicted {deleted} {self.table} records older than {cutoff.isoformat()}")
        return deleted

class TideRecordStore(RecordStore):
    table = "tide_records"
    key_columns = ("station_id",)
    payload_columns = ("height", "status")
    schema_sql = """
    CREATE SEQUENCE IF NOT EXISTS seq_tide_records_id START 1;

    CREATE TABLE IF NOT EXISTS tide_records (
        id INTEGER DEFAULT nextval('seq_tide_records_id') PRIMARY KEY,
        station_id VARCHAR NOT NULL,
        height DOUBLE NOT NULL,
        status VARCHAR NOT NULL,
        timestamp TIMESTAMP NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_tide_time ON tide_records(timestamp);
    CREATE INDEX IF NOT EXISTS idx_tide_station ON tide_records(station_id)
    """

class WeatherRecordStore(RecordStore):
    table = "weather_records"
    key_columns = ("latitude", "longitude")
    payload_columns = ("wind_speed", "precipitation")
    schema_sql = """
    CREATE SEQUENCE IF NOT EXISTS seq_weather_records_id START 1;

    CREATE TABLE IF NOT EXISTS weather_records (
        id INTEGER DEFAULT nextval('seq_weather_records_id') PRIMARY KEY,
        latitude VARCHAR NOT NULL,
        longitude VARCHAR NOT NULL,
        wind_speed DOUBLE NOT NULL,
        precipitation DOUBLE NOT NULL,
        timestamp TIMESTAMP NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_weather_time ON weather_records(timestamp);
    CREATE INDEX IF NOT EXISTS idx_weather_location ON weather_records(latitude, longitude)
    """
