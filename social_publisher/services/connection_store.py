"""SQLite-backed persistence for social media connections with sealed secrets."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from social_publisher.models.connection import Owner, Platform, SocialMediaConnection
from social_publisher.models.secret import EncryptedSecret
from social_publisher.services.token_cipher import TokenCipherService

_SECRET_FIELDS = ("access_token", "refresh_token", "token_secret")
_PLAIN_FIELDS = ("platform_user_id", "platform_username", "expires_at", "metadata", "is_active")
_ALLOWED_FIELDS = frozenset(_SECRET_FIELDS + _PLAIN_FIELDS)


def _to_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return datetime.fromisoformat(str(value)).isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ConnectionStore:
    """Durable record of owner grants, one row per owner/platform/type/account."""

    def __init__(self, db_path: str, *, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS social_media_connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    owner_type TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    connection_type TEXT NOT NULL DEFAULT 'profile',
                    platform_user_id TEXT,
                    platform_username TEXT,
                    access_token TEXT,
                    refresh_token TEXT,
                    token_secret TEXT,
                    expires_at TEXT,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS social_media_connections_unique
                ON social_media_connections (
                    owner_id, owner_type, platform, connection_type, platform_user_id
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS social_media_connections_lookup
                ON social_media_connections (owner_type, owner_id, platform, is_active)
                """
            )

    @property
    def cipher(self) -> TokenCipherService:
        return self._cipher

    def _seal(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return EncryptedSecret.seal(value, self._cipher).ciphertext

    def _row_to_connection(self, row: sqlite3.Row) -> SocialMediaConnection:
        secrets = {
            name: EncryptedSecret(row[name]) if row[name] else None
            for name in _SECRET_FIELDS
        }
        connection = SocialMediaConnection(
            id=row["id"],
            owner=Owner(type=row["owner_type"], id=row["owner_id"]),
            platform=Platform.parse(row["platform"]),
            connection_type=row["connection_type"],
            platform_user_id=row["platform_user_id"],
            platform_username=row["platform_username"],
            expires_at=_from_iso(row["expires_at"]),
            metadata=json.loads(row["metadata"] or "{}"),
            is_active=bool(row["is_active"]),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
            **secrets,
        )
        return connection.bind_cipher(self._cipher)

    def _serialize_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - _ALLOWED_FIELDS
        if unknown:
            raise ValueError(f"Unsupported connection fields: {', '.join(sorted(unknown))}")
        columns: Dict[str, Any] = {}
        for name, value in fields.items():
            if name in _SECRET_FIELDS:
                columns[name] = self._seal(value)
            elif name == "expires_at":
                columns[name] = _to_iso(value)
            elif name == "metadata":
                columns[name] = json.dumps(value or {})
            elif name == "is_active":
                columns[name] = int(bool(value))
            else:
                columns[name] = value
        return columns

    def upsert(
        self,
        owner: Owner,
        platform: "Platform | str",
        connection_type: str = "profile",
        fields: Optional[Mapping[str, Any]] = None,
    ) -> SocialMediaConnection:
        """Create or overwrite the connection keyed by owner, platform and type.

        Token fields are sealed before they reach the database. Keys absent
        from ``fields`` keep their stored value on update.
        """
        platform_value = Platform.parse(platform).value
        columns = self._serialize_fields(fields or {})
        columns.setdefault("is_active", 1)
        now = datetime.now(timezone.utc).isoformat()

        with self._connect() as conn:
            existing = conn.execute(
                """
                SELECT id FROM social_media_connections
                WHERE owner_type = ? AND owner_id = ? AND platform = ?
                  AND connection_type = ?
                ORDER BY id LIMIT 1
                """,
                (owner.type, owner.id, platform_value, connection_type),
            ).fetchone()

            if existing:
                assignments = ", ".join(f"{name} = ?" for name in columns)
                conn.execute(
                    f"UPDATE social_media_connections SET {assignments}, updated_at = ? "
                    "WHERE id = ?",
                    (*columns.values(), now, existing["id"]),
                )
                connection_id = existing["id"]
            else:
                record = {
                    "owner_id": owner.id,
                    "owner_type": owner.type,
                    "platform": platform_value,
                    "connection_type": connection_type,
                    **columns,
                    "created_at": now,
                    "updated_at": now,
                }
                placeholders = ", ".join("?" for _ in record)
                cursor = conn.execute(
                    f"INSERT INTO social_media_connections ({', '.join(record)}) "
                    f"VALUES ({placeholders})",
                    tuple(record.values()),
                )
                connection_id = cursor.lastrowid

        connection = self.get(connection_id)
        if connection is None:
            raise LookupError(f"Connection {connection_id} disappeared during upsert.")
        return connection

    def get(self, connection_id: int) -> Optional[SocialMediaConnection]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM social_media_connections WHERE id = ?",
                (connection_id,),
            ).fetchone()
        return self._row_to_connection(row) if row else None

    def find_active(
        self,
        owner: Owner,
        platform: "Platform | str",
        connection_type: str = "profile",
    ) -> Optional[SocialMediaConnection]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM social_media_connections
                WHERE owner_type = ? AND owner_id = ? AND platform = ?
                  AND connection_type = ? AND is_active = 1
                ORDER BY updated_at DESC, id DESC LIMIT 1
                """,
                (owner.type, owner.id, Platform.parse(platform).value, connection_type),
            ).fetchone()
        return self._row_to_connection(row) if row else None

    def list_for_owner(
        self,
        owner: Owner,
        platform: "Platform | str | None" = None,
        *,
        active_only: bool = True,
    ) -> List[SocialMediaConnection]:
        query = "SELECT * FROM social_media_connections WHERE owner_type = ? AND owner_id = ?"
        params: list[Any] = [owner.type, owner.id]
        if platform is not None:
            query += " AND platform = ?"
            params.append(Platform.parse(platform).value)
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY platform, connection_type, id"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_connection(row) for row in rows]

    def is_expired(self, connection: SocialMediaConnection) -> bool:
        return connection.is_expired()

    def update_tokens(
        self,
        connection: SocialMediaConnection,
        *,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> SocialMediaConnection:
        """Persist a refreshed or extended grant on an existing row."""
        fields: Dict[str, Any] = {"access_token": access_token, "expires_at": expires_at}
        if refresh_token:
            fields["refresh_token"] = refresh_token
        columns = self._serialize_fields(fields)
        assignments = ", ".join(f"{name} = ?" for name in columns)
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                f"UPDATE social_media_connections SET {assignments}, updated_at = ? "
                "WHERE id = ?",
                (*columns.values(), now, connection.id),
            )
        refreshed = self.get(connection.id) if connection.id is not None else None
        if refreshed is None:
            raise LookupError(f"Connection {connection.id} no longer exists.")
        return refreshed

    def deactivate(self, connection: SocialMediaConnection) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE social_media_connections SET is_active = 0, updated_at = ? "
                "WHERE id = ?",
                (datetime.now(timezone.utc).isoformat(), connection.id),
            )

    def delete(self, connection: SocialMediaConnection) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM social_media_connections WHERE id = ?",
                (connection.id,),
            )


__all__ = ["ConnectionStore"]
