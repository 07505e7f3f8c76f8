"""Manage comment administrators.

Admin rights are rows in the ``admin_roles`` table. This script grants,
revokes and lists them.

Usage:
    python -m scripts.grant_admin grant <user_id> [--by <name>]
    python -m scripts.grant_admin revoke <user_id>
    python -m scripts.grant_admin list
"""

import argparse
import asyncio
from uuid import UUID

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra_asyncio.cluster import Cluster

from sitecomments.auth.admin_roles import ADMIN_ROLES_TABLES_CQL, AdminRoleService
from sitecomments.config.settings import get_settings


logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage comment administrators")
    sub = parser.add_subparsers(dest="command", required=True)

    grant = sub.add_parser("grant", help="Give a user the admin role")
    grant.add_argument("user_id", type=UUID)
    grant.add_argument("--by", dest="granted_by", default="cli")

    revoke = sub.add_parser("revoke", help="Remove the admin role")
    revoke.add_argument("user_id", type=UUID)

    sub.add_parser("list", help="List administrators")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, service: AdminRoleService) -> None:
    if args.command == "grant":
        await service.grant(args.user_id, granted_by=args.granted_by)
    elif args.command == "revoke":
        await service.revoke(args.user_id)
    else:
        for role in await service.list_admins():
            print(f"{role.user_id}\t{role.granted_by or '-'}\t{role.granted_at or '-'}")


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    auth_provider = None
    if settings.cassandra_username and settings.cassandra_password:
        auth_provider = PlainTextAuthProvider(
            username=settings.cassandra_username,
            password=settings.cassandra_password,
        )

    cluster = Cluster(
        contact_points=settings.cassandra_hosts,
        port=settings.cassandra_port,
        auth_provider=auth_provider,
        protocol_version=settings.cassandra_protocol_version,
    )

    session = cluster.connect()
    session.set_keyspace(keyspace)

    try:
        for cql in ADMIN_ROLES_TABLES_CQL:
            await session.aexecute(cql.format(keyspace=keyspace))
        service = AdminRoleService(
            session=session,
            keyspace=keyspace,
            timeout=settings.cassandra_request_timeout,
        )
        await run(args, service)
        logger.info("admin_command_completed", command=args.command)
    finally:
        session.shutdown()
        cluster.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
