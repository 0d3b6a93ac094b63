import time

from flask import Flask

from src.auth import SESSION_AUTH_PREFIX, SessionAuthStore
from src.db import KV
from src.types import SessionAuthState


def store_state(
    app: Flask, session_id: str, state: SessionAuthState, now: float | None = None
) -> None:
    with app.app_context():
        _store(app).put(session_id, state, now=now)


def load_state(app: Flask, session_id: str) -> SessionAuthState:
    with app.app_context():
        return _store(app).get(session_id)


def authenticated_state(**overrides) -> SessionAuthState:
    values = {
        "access_token": "access-1",
        "token_type": "Bearer",
        "expires_in": 3600,
        "issued_at": time.time(),
        "username": "alice",
    }
    values.update(overrides)
    return SessionAuthState(**values)


def _store(app: Flask) -> SessionAuthStore:
    return SessionAuthStore(KV(app, app.logger, SESSION_AUTH_PREFIX))


def count_rows(app: Flask) -> int:
    with app.app_context():
        return _store(app).kv.db.execute("select count(*) from keyval").fetchone()[0]
