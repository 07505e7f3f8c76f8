"""Admin role storage.

A user is an administrator when a row exists for (user_id, 'admin'). Rows
are managed from the command line with ``scripts/grant_admin.py``.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"

ADMIN_ROLES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.admin_roles (
    user_id UUID,
    role TEXT,
    granted_by TEXT,
    granted_at TIMESTAMP,
    PRIMARY KEY ((user_id), role)
)
"""

ADMIN_ROLES_TABLES_CQL = [ADMIN_ROLES_TABLE_CQL]


@dataclass
class AdminRole:
    user_id: UUID
    role: str
    granted_by: str | None
    granted_at: datetime | None

    @classmethod
    def from_row(cls, row: Any) -> "AdminRole":
        return cls(
            user_id=row.user_id,
            role=row.role,
            granted_by=row.granted_by,
            granted_at=row.granted_at,
        )


class AdminRoleService:
    """Admin-role lookups backed by Cassandra."""

    def __init__(self, session: "Session", keyspace: str, timeout: float = 5.0):
        self.session = session
        self.keyspace = keyspace
        self.timeout = timeout
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_role = self.session.prepare(f"""
            SELECT role FROM {self.keyspace}.admin_roles
            WHERE user_id = ? AND role = ?
        """)
        self._grant_role = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.admin_roles (user_id, role, granted_by, granted_at)
            VALUES (?, ?, ?, ?)
        """)
        self._revoke_role = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.admin_roles
            WHERE user_id = ? AND role = ?
        """)
        self._list_roles = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.admin_roles
        """)

    async def _execute(self, statement: Any, params: list[Any] | None = None) -> list[Any]:
        result = await asyncio.wait_for(
            self.session.aexecute(statement, params), timeout=self.timeout
        )
        return list(result or [])

    async def is_admin(self, user_id: UUID) -> bool:
        rows = await self._execute(self._get_role, [user_id, ADMIN_ROLE])
        return bool(rows)

    async def grant(self, user_id: UUID, granted_by: str | None = None) -> None:
        await self._execute(
            self._grant_role, [user_id, ADMIN_ROLE, granted_by, datetime.now(UTC)]
        )
        logger.info("admin_role_granted", target_user_id=str(user_id))

    async def revoke(self, user_id: UUID) -> None:
        await self._execute(self._revoke_role, [user_id, ADMIN_ROLE])
        logger.info("admin_role_revoked", target_user_id=str(user_id))

    async def list_admins(self) -> list[AdminRole]:
        rows = await self._execute(self._list_roles)
        return [AdminRole.from_row(row) for row in rows if row.role == ADMIN_ROLE]
