"""Tests for the admin role CLI."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from scripts.grant_admin import parse_args, run


class TestParseArgs:
    def test_grant_defaults(self) -> None:
        user_id = uuid4()
        args = parse_args(["grant", str(user_id)])
        assert args.command == "grant"
        assert args.user_id == user_id
        assert args.granted_by == "cli"

    def test_rejects_bad_uuid(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["revoke", "not-a-uuid"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestRun:
    @pytest.mark.asyncio
    async def test_grant(self) -> None:
        service = AsyncMock()
        user_id = uuid4()

        await run(parse_args(["grant", str(user_id), "--by", "ops"]), service)

        service.grant.assert_awaited_once_with(user_id, granted_by="ops")

    @pytest.mark.asyncio
    async def test_revoke(self) -> None:
        service = AsyncMock()
        user_id = uuid4()

        await run(parse_args(["revoke", str(user_id)]), service)

        service.revoke.assert_awaited_once_with(user_id)

    @pytest.mark.asyncio
    async def test_list_prints_admins(self, capsys) -> None:
        service = AsyncMock()
        service.list_admins.return_value = []

        await run(parse_args(["list"]), service)

        service.list_admins.assert_awaited_once()
        assert capsys.readouterr().out == ""
