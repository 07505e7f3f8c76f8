"""Tests for admin role storage."""

from collections import namedtuple
from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from sitecomments.auth.admin_roles import ADMIN_ROLE, AdminRoleService


RoleRow = namedtuple("RoleRow", ["user_id", "role", "granted_by", "granted_at"])


@pytest.fixture
def mock_session():
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: cql)
    session.aexecute = AsyncMock(return_value=[])
    return session


@pytest.fixture
def service(mock_session) -> AdminRoleService:
    return AdminRoleService(session=mock_session, keyspace="test_keyspace")


class TestAdminRoleService:
    @pytest.mark.asyncio
    async def test_is_admin_false_without_row(self, service) -> None:
        assert await service.is_admin(uuid4()) is False

    @pytest.mark.asyncio
    async def test_is_admin_with_row(self, service, mock_session) -> None:
        user_id = uuid4()
        mock_session.aexecute.return_value = [RoleRow(user_id, ADMIN_ROLE, None, None)]

        assert await service.is_admin(user_id) is True
        statement, params = mock_session.aexecute.call_args.args
        assert "test_keyspace.admin_roles" in statement
        assert params == [user_id, ADMIN_ROLE]

    @pytest.mark.asyncio
    async def test_grant_records_granter(self, service, mock_session) -> None:
        user_id = uuid4()

        await service.grant(user_id, granted_by="ops")

        statement, params = mock_session.aexecute.call_args.args
        assert statement.strip().startswith("INSERT")
        assert params[:3] == [user_id, ADMIN_ROLE, "ops"]

    @pytest.mark.asyncio
    async def test_list_admins(self, service, mock_session) -> None:
        granted = datetime(2024, 1, 1, tzinfo=UTC)
        admin = uuid4()
        mock_session.aexecute.return_value = [
            RoleRow(admin, ADMIN_ROLE, "ops", granted),
            RoleRow(uuid4(), "editor", None, None),
        ]

        admins = await service.list_admins()

        assert [a.user_id for a in admins] == [admin]
        assert admins[0].granted_at == granted
