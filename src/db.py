import sqlite3
import time
from logging import Logger
from sqlite3 import Connection
from typing import override

from flask import Flask, g

from src.oauth2.kv import KV as BaseKV


class KV(BaseKV):
    db: Connection
    logger: Logger
    prefix: str

    def __init__(self, app: Connection | Flask, logger: Logger, prefix: str):
        self.db = app if isinstance(app, Connection) else get_db(app)
        self.logger = logger
        self.prefix = prefix

    @override
    def get(self, key: str) -> str | None:
        cursor = self.db.cursor()
        row: sqlite3.Row | None = cursor.execute(
            "select value from keyval where prefix = ? and key = ?",
            (self.prefix, key),
        ).fetchone()
        if row is not None:
            self.logger.debug(f"returning stored {self.prefix}({key})")
            return row["value"]
        return None

    @override
    def set(self, key: str, value: str, expires_at: float | None = None):
        # values may hold tokens, keep them out of the log
        self.logger.debug(f"storing {self.prefix}({key}) expires_at={expires_at}")
        cursor = self.db.cursor()
        _ = cursor.execute(
            "insert or replace into keyval (prefix, key, value, expires_at) values (?, ?, ?, ?)",
            (self.prefix, key, value, expires_at),
        )
        self.db.commit()

    @override
    def delete(self, key: str):
        self.logger.debug(f"deleting {self.prefix}({key})")
        cursor = self.db.cursor()
        _ = cursor.execute(
            "delete from keyval where prefix = ? and key = ?",
            (self.prefix, key),
        )
        self.db.commit()

    @override
    def pop(self, key: str) -> str | None:
        # begin immediate takes the write lock before reading, so two requests
        # popping the same key cannot both see the value
        cursor = self.db.cursor()
        _ = cursor.execute("begin immediate")
        try:
            row: sqlite3.Row | None = cursor.execute(
                "select value from keyval where prefix = ? and key = ?",
                (self.prefix, key),
            ).fetchone()
            _ = cursor.execute(
                "delete from keyval where prefix = ? and key = ?",
                (self.prefix, key),
            )
        except sqlite3.Error:
            self.db.rollback()
            raise
        self.db.commit()
        self.logger.debug(f"popped {self.prefix}({key}) found={row is not None}")
        return row["value"] if row is not None else None

    @override
    def purge_expired(self, now: float | None = None) -> int:
        if now is None:
            now = time.time()
        cursor = self.db.cursor()
        _ = cursor.execute(
            "delete from keyval where prefix = ? and expires_at is not null and expires_at < ?",
            (self.prefix, now),
        )
        self.db.commit()
        if cursor.rowcount > 0:
            self.logger.info(f"purged {cursor.rowcount} expired {self.prefix} entries")
        return cursor.rowcount


def get_db(app: Flask) -> sqlite3.Connection:
    db: sqlite3.Connection | None = g.get("db", None)
    if db is None:
        db_path: str = app.config.get("DATABASE_URL", "frontend.db")
        db = g.db = sqlite3.connect(db_path, check_same_thread=False)
        # return rows as dict-like objects
        db.row_factory = sqlite3.Row
    return db


def close_db_connection(_exception: BaseException | None):
    db: sqlite3.Connection | None = g.pop("db", None)
    if db is not None:
        db.close()


def init_db(app: Flask):
    with app.app_context():
        db = get_db(app)
        with app.open_resource("schema.sql", mode="r") as schema:
            _ = db.cursor().executescript(schema.read())
        # databases created before rows could expire lack the column
        columns = [row["name"] for row in db.execute("pragma table_info(keyval)")]
        if "expires_at" not in columns:
            _ = db.execute("alter table keyval add column expires_at real")
        db.commit()
