import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from curator.models.track import TrackRecord
from curator.models.track_meta_data import TrackMetaData
from curator.services.fingerprint import fingerprint_from_hex, fingerprint_to_hex
from curator.services.library_index import LibraryIndex

logger = logging.getLogger(__name__)

DEFAULT_INIT_SQL_PATH = Path(__file__).parent / "init.sql"

METADATA_COLUMNS = list(TrackMetaData.model_fields)

TRACK_COLUMNS = [
    "id",
    "file_path",
    "fingerprint",
    "canonical_id",
    "file_size",
    "file_mtime",
    "scanned_at",
    "indexed_generation",
]

GENERATION_KEY = "generation"
NEXT_ID_KEY = "next_id"


def _quoted(columns: list[str]) -> str:
    return ", ".join(f'"{column}"' for column in columns)


@dataclass(frozen=True)
class DatabaseContext:
    database_path: Path
    init_sql_path: Path = field(default=DEFAULT_INIT_SQL_PATH)


class Database:
    def __init__(self, context: DatabaseContext):
        self.context = context

    def connect_to_database(self, timeout: float = 5) -> sqlite3.Connection | None:
        database_path = self.context.database_path
        try:
            conn = sqlite3.connect(database_path, timeout=timeout)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.commit()
            return conn
        except Exception as e:
            logger.error(
                f"Error connecting to the sqlite database. database path: {database_path} Exception: {e}"
            )
            return None

    def initialize(self) -> bool:
        try:
            self.context.database_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Unable to create database directory: {e}")
            return False

        conn = self.connect_to_database()
        if not conn:
            logger.error("Unable to connect to the database, connect_to_database returned None")
            return False

        try:
            with open(self.context.init_sql_path, "r") as f:
                init_script = f.read()
            conn.executescript(init_script)
            conn.commit()
            return True
        except (OSError, sqlite3.Error) as e:
            logger.error(
                f"Error loading sqlite init script, found at path {self.context.init_sql_path} with exception {e}"
            )
            conn.rollback()
            return False
        finally:
            conn.close()

    def load_index(self, timeout: float = 5) -> LibraryIndex | None:
        conn = self.connect_to_database(timeout=timeout)
        if not conn:
            return None
        conn.row_factory = sqlite3.Row

        try:
            info_rows = conn.execute('SELECT "key", "value" FROM library_info').fetchall()
            track_rows = conn.execute(
                f"SELECT {_quoted(TRACK_COLUMNS)} FROM tracks ORDER BY id"
            ).fetchall()
            metadata_rows = conn.execute(
                f"SELECT track_id, source, {_quoted(METADATA_COLUMNS)} FROM trackmetadata"
            ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to load library index: {e}")
            return None
        finally:
            conn.close()

        metadata_by_track: dict[tuple[int, str], TrackMetaData] = {}
        for row in metadata_rows:
            values = {column: row[column] for column in METADATA_COLUMNS}
            metadata_by_track[(row["track_id"], row["source"])] = TrackMetaData(**values)

        records = []
        for row in track_rows:
            track_id = row["id"]
            records.append(
                TrackRecord(
                    id=track_id,
                    file_path=Path(row["file_path"]),
                    fingerprint=fingerprint_from_hex(row["fingerprint"]),
                    metadata=metadata_by_track.get((track_id, "file"), TrackMetaData()),
                    merged_metadata=metadata_by_track.get((track_id, "merged")),
                    canonical_id=row["canonical_id"],
                    file_size=row["file_size"],
                    file_mtime=row["file_mtime"],
                    scanned_at=row["scanned_at"],
                    indexed_generation=row["indexed_generation"],
                )
            )

        info = {row["key"]: row["value"] for row in info_rows}
        generation = int(info.get(GENERATION_KEY, 0))
        next_id = int(info[NEXT_ID_KEY]) if NEXT_ID_KEY in info else None
        return LibraryIndex(generation=generation, records=records, next_id=next_id)

    def commit(
        self,
        index: LibraryIndex,
        changed_ids: Iterable[int],
        removed_ids: Iterable[int],
        timeout: float = 5,
    ) -> bool:
        """
        Write one scan pass: drop removed records, rewrite changed ones and store
        the new generation, all in a single transaction.
        """
        changed_ids = sorted(set(changed_ids))
        removed_ids = sorted(set(removed_ids))

        conn = self.connect_to_database(timeout=timeout)
        if not conn:
            return False

        track_query = (
            f"INSERT INTO tracks ({_quoted(TRACK_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in TRACK_COLUMNS)})"
        )
        metadata_query = (
            f"INSERT INTO trackmetadata (track_id, source, {_quoted(METADATA_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in range(len(METADATA_COLUMNS) + 2))})"
        )

        try:
            with conn:
                # Rewritten rows are deleted first so path swaps never trip the UNIQUE constraint.
                conn.executemany(
                    "DELETE FROM tracks WHERE id = ?",
                    [(track_id,) for track_id in sorted(set(changed_ids) | set(removed_ids))],
                )
                for track_id in changed_ids:
                    record = index.get(track_id)
                    if record is None:
                        raise ValueError(f"changed track id {track_id} is not in the index")
                    conn.execute(track_query, self._track_row(record))
                    conn.execute(metadata_query, self._metadata_row(track_id, "file", record.metadata))
                    if record.merged_metadata is not None:
                        conn.execute(
                            metadata_query, self._metadata_row(track_id, "merged", record.merged_metadata)
                        )
                conn.executemany(
                    'INSERT INTO library_info ("key", "value") VALUES (?, ?) '
                    'ON CONFLICT("key") DO UPDATE SET "value" = excluded."value"',
                    [
                        (GENERATION_KEY, str(index.generation)),
                        (NEXT_ID_KEY, str(index.next_id)),
                    ],
                )
            return True
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"Failed to commit generation {index.generation}: {e}")
            return False
        finally:
            conn.close()

    def reset(self, timeout: float = 5) -> bool:
        conn = self.connect_to_database(timeout=timeout)
        if not conn:
            return False
        try:
            with conn:
                conn.execute("DELETE FROM trackmetadata")
                conn.execute("DELETE FROM tracks")
                conn.execute("DELETE FROM library_info")
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to reset library database: {e}")
            return False
        finally:
            conn.close()

    @staticmethod
    def _track_row(record: TrackRecord) -> tuple:
        return (
            record.id,
            str(record.file_path),
            fingerprint_to_hex(record.fingerprint),
            record.canonical_id,
            record.file_size,
            record.file_mtime,
            record.scanned_at,
            record.indexed_generation,
        )

    @staticmethod
    def _metadata_row(track_id: int, source: str, metadata: TrackMetaData) -> tuple:
        return (track_id, source) + tuple(getattr(metadata, column) for column in METADATA_COLUMNS)
