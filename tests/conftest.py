"""Shared fixtures.

The HTTP tests run against the real app with the comment services wired to
an in-memory repository, so no Cassandra or Redis is needed.
"""

import os
import tempfile
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="sitecomments-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402
from helpers import FakeAdminRoleService, FakeCommentRepository  # noqa: E402

from sitecomments.comments.moderation import ModerationGateway  # noqa: E402
from sitecomments.comments.rate_limit import InMemoryRateLimiter  # noqa: E402
from sitecomments.comments.reactions import ReactionLedger  # noqa: E402
from sitecomments.comments.reports import ReportService  # noqa: E402
from sitecomments.comments.service import CommentService  # noqa: E402
from sitecomments.main import create_app  # noqa: E402


@pytest.fixture
def repository() -> FakeCommentRepository:
    return FakeCommentRepository()


@pytest.fixture
def rate_limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter(window_seconds=60)


@pytest.fixture
def reactions(repository, rate_limiter) -> ReactionLedger:
    return ReactionLedger(repository, rate_limiter)


@pytest.fixture
def comment_service(repository, reactions, rate_limiter) -> CommentService:
    return CommentService(repository, reactions, rate_limiter)


@pytest.fixture
def report_service(repository, rate_limiter) -> ReportService:
    return ReportService(repository, rate_limiter)


@pytest.fixture
def gateway(repository) -> ModerationGateway:
    return ModerationGateway(repository)


@pytest.fixture
def admin_roles() -> FakeAdminRoleService:
    return FakeAdminRoleService()


@pytest.fixture
def app(comment_service, reactions, report_service, gateway, admin_roles):
    application = create_app()
    application.state.comment_service = comment_service
    application.state.reaction_ledger = reactions
    application.state.report_service = report_service
    application.state.moderation_gateway = gateway
    application.state.admin_role_service = admin_roles
    application.state.redis = None
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Client without lifespan, so no database connection is attempted."""
    return TestClient(app)


@pytest.fixture
def bare_client() -> TestClient:
    """App with no services wired, as after a failed database init."""
    return TestClient(create_app())


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_id(admin_roles) -> UUID:
    admin = uuid4()
    admin_roles.admins.add(admin)
    return admin
