import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable

from psychprep.errors import StorageError, ValidationError
from psychprep.models import ContentKind, ImageSet, PromptRecord, UserAccount

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL COLLATE NOCASE,
        password TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        last_login TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS image_sets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_name TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS tat_content (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        image_url TEXT UNIQUE NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS wat_content (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        word TEXT UNIQUE NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS srt_content (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        scenario TEXT UNIQUE NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS student_sdt_questions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        question TEXT UNIQUE NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS professional_sdt_questions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        question TEXT UNIQUE NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );
"""


class ContentStore:
    """SQLite-backed store for prompt records, image sets and user accounts.

    One instance is created per application and handed to request handlers
    through a dependency. Every method opens its own connection. Operations
    that read a whole collection and then write to it run under a process-wide
    lock inside an immediate transaction so concurrent merges cannot lose
    updates.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._write_lock = threading.Lock()

    @contextmanager
    def connection(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.exception("Cannot open database %s", self.db_path)
            raise StorageError("Storage unavailable") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.exception("Database error")
            raise StorageError("Storage error") from e
        finally:
            conn.close()

    def init(self):
        """Create tables if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)
            self._run_migrations(conn)

    def _run_migrations(self, conn):
        cols = [row[1] for row in conn.execute("PRAGMA table_info(tat_content)").fetchall()]
        if "image_set_id" not in cols:
            conn.execute(
                "ALTER TABLE tat_content ADD COLUMN image_set_id INTEGER "
                "REFERENCES image_sets(id) ON DELETE SET NULL"
            )

        # Set for imported plaintext passwords until their first successful login
        cols = [row[1] for row in conn.execute("PRAGMA table_info(users)").fetchall()]
        if "legacy_password" not in cols:
            conn.execute(
                "ALTER TABLE users ADD COLUMN legacy_password INTEGER NOT NULL DEFAULT 0"
            )

    # Users

    def _user_from_row(self, row) -> UserAccount:
        return UserAccount(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password=row["password"],
            is_admin=bool(row["is_admin"]),
            last_login=row["last_login"],
            legacy_password=bool(row["legacy_password"]),
        )

    def get_user(self, user_id: int) -> UserAccount | None:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._user_from_row(row) if row else None

    def get_user_by_email(self, email: str) -> UserAccount | None:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._user_from_row(row) if row else None

    def get_user_by_username(self, username: str) -> UserAccount | None:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return self._user_from_row(row) if row else None

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        is_admin: bool = False,
        last_login: str | None = None,
        legacy_password: bool = False,
    ) -> UserAccount:
        """Insert an account. `password` is stored as given; callers hash it.

        `legacy_password` marks `password` as an imported plaintext value.
        """
        with self._write_lock, self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
                raise ValidationError("Email already in use")
            if conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone():
                raise ValidationError("Username already in use")
            cursor = conn.execute(
                "INSERT INTO users "
                "(username, email, password, is_admin, last_login, legacy_password) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (username, email, password, int(is_admin), last_login, int(legacy_password)),
            )
            user_id = cursor.lastrowid
        return UserAccount(
            user_id, username, email, password, is_admin, last_login, legacy_password
        )

    def update_last_login(self, user_id: int, when: str) -> UserAccount | None:
        with self.connection() as conn:
            conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (when, user_id))
        return self.get_user(user_id)

    def update_password(self, user_id: int, password_hash: str):
        """Store a bcrypt hash, clearing the legacy plaintext marker."""
        with self._write_lock, self.connection() as conn:
            conn.execute(
                "UPDATE users SET password = ?, legacy_password = 0 WHERE id = ?",
                (password_hash, user_id),
            )

    # Prompt content

    def _record_from_row(self, kind: ContentKind, row) -> PromptRecord:
        return PromptRecord(
            id=row["id"],
            kind=kind,
            payload=row[kind.payload_key],
            active=bool(row["active"]),
            image_set_id=row["image_set_id"] if kind is ContentKind.TAT else None,
        )

    def list_content(self, kind: ContentKind, active_only: bool = False) -> list[PromptRecord]:
        query = f"SELECT * FROM {kind.table}"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY id"
        with self.connection() as conn:
            rows = conn.execute(query).fetchall()
        return [self._record_from_row(kind, row) for row in rows]

    def get_content(self, kind: ContentKind, record_id: int) -> PromptRecord | None:
        with self.connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {kind.table} WHERE id = ?", (record_id,)
            ).fetchone()
        return self._record_from_row(kind, row) if row else None

    def count_content(self, kind: ContentKind) -> int:
        with self.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {kind.table}").fetchone()[0]

    def create_content(self, kind: ContentKind, payload: str, active: bool = True) -> PromptRecord:
        column = kind.payload_key
        with self._write_lock, self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            existing = conn.execute(
                f"SELECT id FROM {kind.table} WHERE {column} = ?", (payload,)
            ).fetchone()
            if existing:
                raise ValidationError(
                    f"{column} already exists", errors={column: payload, "id": existing["id"]}
                )
            cursor = conn.execute(
                f"INSERT INTO {kind.table} ({column}, active) VALUES (?, ?)",
                (payload, int(active)),
            )
            record_id = cursor.lastrowid
        return PromptRecord(record_id, kind, payload, active)

    def merge_content(self, kind: ContentKind, payloads: Iterable[str]) -> list[PromptRecord]:
        """Add every payload not already stored and return the records created.

        De-duplication is exact (case-sensitive), both within `payloads` and
        against the stored collection. Input order is preserved.
        """
        column = kind.payload_key
        unique = list(dict.fromkeys(payloads))
        added = []
        with self._write_lock, self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            existing = {row[0] for row in conn.execute(f"SELECT {column} FROM {kind.table}")}
            for payload in unique:
                if payload in existing:
                    continue
                cursor = conn.execute(
                    f"INSERT INTO {kind.table} ({column}, active) VALUES (?, 1)", (payload,)
                )
                added.append(PromptRecord(cursor.lastrowid, kind, payload))
        logger.info(f"Merged {len(added)} of {len(unique)} new {kind.value} entries")
        return added

    def set_active(self, kind: ContentKind, record_id: int, active: bool) -> PromptRecord | None:
        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE {kind.table} SET active = ? WHERE id = ?", (int(active), record_id)
            )
            if cursor.rowcount == 0:
                return None
        return self.get_content(kind, record_id)

    def delete_content(self, kind: ContentKind, record_id: int) -> bool:
        with self.connection() as conn:
            cursor = conn.execute(f"DELETE FROM {kind.table} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    # Image sets

    def create_image_set(self, source_name: str, image_urls: list[str]) -> ImageSet:
        """Commit an image set and its TAT records in a single transaction."""
        with self._write_lock, self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                "INSERT INTO image_sets (source_name) VALUES (?)", (source_name,)
            )
            set_id = cursor.lastrowid
            conn.executemany(
                "INSERT INTO tat_content (image_url, active, image_set_id) VALUES (?, 1, ?)",
                [(url, set_id) for url in image_urls],
            )
            created_at = conn.execute(
                "SELECT created_at FROM image_sets WHERE id = ?", (set_id,)
            ).fetchone()["created_at"]
        return ImageSet(set_id, source_name, created_at, list(image_urls))

    def list_image_sets(self) -> list[ImageSet]:
        """Image sets that still have at least one active image."""
        with self.connection() as conn:
            rows = conn.execute(
                """SELECT s.id, s.source_name, s.created_at, t.image_url
                FROM image_sets s
                JOIN tat_content t ON t.image_set_id = s.id
                WHERE t.active = 1
                ORDER BY s.id, t.id"""
            ).fetchall()

        sets: dict[int, ImageSet] = {}
        for row in rows:
            image_set = sets.get(row["id"])
            if image_set is None:
                image_set = sets[row["id"]] = ImageSet(
                    row["id"], row["source_name"], row["created_at"]
                )
            image_set.image_urls.append(row["image_url"])
        return list(sets.values())
