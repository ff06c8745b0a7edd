########## Database Utilities ##########
# Manages SQLite persistence for world documents, their flags, and event logs.

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import Engine, create_engine, text

from . import config
from .types import HostDocument

_ENGINE: Optional[Engine] = None

PAYLOAD_FIELDS: List[str] = ["system", "text", "description", "results", "pages", "ownership"]


def _db_path() -> Path:
    """Return the configured sqlite path and ensure its directory exists."""

    # 1 Resolve the configured path under the project workspace.               # steps
    # 2 Create parent directories when needed.                                 # steps
    path = Path(config.DB_FILE).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_engine() -> Engine:
    """Create or reuse the SQLAlchemy engine."""

    # 1 Cache the engine so future calls reuse the same connection pool.       # steps
    global _ENGINE
    if _ENGINE is None:
        path = _db_path()
        _ENGINE = create_engine(f"sqlite:///{path}", echo=config.DB_ECHO, future=True)
    return _ENGINE


def reset_engine() -> None:
    """Drop the cached engine so the next call honours a new DB_FILE."""

    global _ENGINE
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None


def ensure_schema() -> None:
    """Create tables when they do not exist."""

    # 1 Execute CREATE TABLE statements with IF NOT EXISTS.                    # steps
    engine = get_engine()
    with engine.begin() as connection:
        for statement in _schema_statements():
            connection.execute(text(statement))


def _schema_statements() -> List[str]:
    """Provide the schema definitions for idempotent creation."""

    documents = """
    CREATE TABLE IF NOT EXISTS documents (
        uuid TEXT PRIMARY KEY,
        kind TEXT NOT NULL,
        name TEXT,
        parent_uuid TEXT DEFAULT NULL,
        payload TEXT,
        flags TEXT,
        updated_at TEXT
    )
    """
    event_log = """
    CREATE TABLE IF NOT EXISTS event_log (
        event_id INTEGER PRIMARY KEY AUTOINCREMENT,
        document_uuid TEXT,
        target_uuid TEXT,
        type TEXT,
        data TEXT,
        ts TEXT
    )
    """
    return [documents, event_log]


def upsert_document(document: HostDocument, timestamp: Optional[datetime] = None) -> None:
    """Insert or update a document row, flags included."""

    # 1 Split the model into indexed columns and a JSON payload.              # steps
    ensure_schema()
    engine = get_engine()
    payload = document.model_dump(include=set(PAYLOAD_FIELDS), mode="json")
    parameters = {
        "uuid": document.uuid,
        "kind": document.kind.value,
        "name": document.name,
        "parent_uuid": document.parent_uuid,
        "payload": json.dumps(payload),
        "flags": json.dumps(document.flags),
        "updated_at": (timestamp or datetime.utcnow()).isoformat(),
    }
    statement = text(
        """
        INSERT INTO documents (uuid, kind, name, parent_uuid, payload, flags, updated_at)
        VALUES (:uuid, :kind, :name, :parent_uuid, :payload, :flags, :updated_at)
        ON CONFLICT(uuid)
        DO UPDATE SET kind = :kind, name = :name, parent_uuid = :parent_uuid,
            payload = :payload, flags = :flags, updated_at = :updated_at
        """
    )
    with engine.begin() as connection:
        connection.execute(statement, parameters)


def write_flags(uuid: str, flags: Dict[str, Dict[str, object]], timestamp: Optional[datetime] = None) -> None:
    """Overwrite only the flags column of a stored document."""

    ensure_schema()
    engine = get_engine()
    statement = text(
        """
        UPDATE documents
        SET flags = :flags, updated_at = :updated_at
        WHERE uuid = :uuid
        """
    )
    parameters = {
        "uuid": uuid,
        "flags": json.dumps(flags),
        "updated_at": (timestamp or datetime.utcnow()).isoformat(),
    }
    with engine.begin() as connection:
        connection.execute(statement, parameters)


def load_documents() -> List[HostDocument]:
    """Return every stored document in insertion order."""

    # 1 Read rows and rebuild models from columns plus payload.               # steps
    ensure_schema()
    engine = get_engine()
    statement = text("SELECT uuid, kind, name, parent_uuid, payload, flags FROM documents ORDER BY rowid")
    with engine.begin() as connection:
        rows = connection.execute(statement).mappings().all()
    documents: List[HostDocument] = []
    for row in rows:
        payload = json.loads(row["payload"] or "{}")
        documents.append(
            HostDocument(
                uuid=row["uuid"],
                kind=row["kind"],
                name=row["name"] or "",
                parent_uuid=row["parent_uuid"],
                flags=json.loads(row["flags"] or "{}"),
                **payload,
            )
        )
    return documents


def delete_document(uuid: str) -> None:
    """Remove a document row."""

    ensure_schema()
    engine = get_engine()
    with engine.begin() as connection:
        connection.execute(text("DELETE FROM documents WHERE uuid = :uuid"), {"uuid": uuid})


def log_event(
    document_uuid: str,
    target_uuid: Optional[str],
    event_type: str,
    data_json: str,
    timestamp: datetime,
) -> None:
    """Persist an event to the event_log table."""

    # 1 Insert a row with explicit parameters.                                # steps
    ensure_schema()
    engine = get_engine()
    statement = text(
        """
        INSERT INTO event_log (document_uuid, target_uuid, type, data, ts)
        VALUES (:document_uuid, :target_uuid, :type, :data, :ts)
        """
    )
    parameters = {
        "document_uuid": document_uuid,
        "target_uuid": target_uuid,
        "type": event_type,
        "data": data_json,
        "ts": timestamp.isoformat(),
    }
    with engine.begin() as connection:
        connection.execute(statement, parameters)


def fetch_events(limit: Optional[int] = None) -> List[Dict[str, str]]:
    """Return recent events, oldest first."""

    # 1 Query event table in descending id order then flip.                   # steps
    ensure_schema()
    engine = get_engine()
    query = "SELECT document_uuid, target_uuid, type, data, ts FROM event_log ORDER BY event_id DESC"
    if limit is not None:
        query += " LIMIT :limit"
    params = {"limit": limit} if limit is not None else {}
    with engine.begin() as connection:
        rows = connection.execute(text(query), params).mappings().all()
    payloads: List[Dict[str, str]] = []
    for row in rows:
        payloads.append(
            {
                "document_uuid": row["document_uuid"],
                "target_uuid": row["target_uuid"],
                "type": row["type"],
                "data": row["data"],
                "ts": row["ts"],
            }
        )
    payloads.reverse()
    return payloads


