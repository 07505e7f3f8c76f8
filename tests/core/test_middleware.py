"""Tests for the request context middleware."""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

from sitecomments.core.context import get_context
from sitecomments.core.middleware import RequestContextMiddleware, get_client_id


def _request(headers: dict[str, str], client=("203.0.113.9", 1234)) -> StarletteRequest:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return StarletteRequest(scope)


class TestGetClientId:
    def test_first_forwarded_hop(self) -> None:
        request = _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "x"})
        assert get_client_id(request) == "198.51.100.1"

    def test_real_ip(self) -> None:
        assert get_client_id(_request({"X-Real-IP": " 198.51.100.2 "})) == "198.51.100.2"

    def test_peer_address(self) -> None:
        assert get_client_id(_request({})) == "203.0.113.9"

    def test_unknown(self) -> None:
        assert get_client_id(_request({}, client=None)) == "unknown"


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware, log_requests=False)

    @app.get("/ctx")
    async def ctx(request: Request) -> dict:
        return {"context": get_context(), "client_id": request.state.client_id}

    return app


class TestRequestContextMiddleware:
    def test_generates_request_id(self) -> None:
        response = TestClient(_app()).get("/ctx")

        request_id = response.headers["X-Request-ID"]
        assert request_id
        assert response.json()["context"]["request_id"] == request_id

    def test_keeps_incoming_ids(self) -> None:
        response = TestClient(_app()).get(
            "/ctx",
            headers={
                "X-Request-ID": "req-1",
                "traceparent": "00-abc123-def456-01",
                "X-Forwarded-For": "198.51.100.7",
            },
        )

        data = response.json()
        assert response.headers["X-Request-ID"] == "req-1"
        assert data["context"]["trace_id"] == "abc123"
        assert data["client_id"] == "198.51.100.7"
        assert data["context"]["client_id"] == "198.51.100.7"
