"""
Session tokens, session middleware and the app surface
"""

import json

import httpx
import jwt
import pytest

from meadow_endpoints import create_app
from meadow_endpoints.config.settings import SessionJWTConfig
from meadow_endpoints.models.session import UserSession
from meadow_endpoints.utils.auth import SessionJWTService, generate_session_token, validate_session_token


class TestSessionTokens:

    def test_round_trip(self):
        token = generate_session_token(user_id=12, role_index=2, customer_id=7, session_id="abc")

        session = validate_session_token(token)

        assert session == UserSession(session_id="abc", logged_in=True, user_id=12, user_role_index=2, customer_id=7)

    def test_tampered_token_rejected(self):
        token = generate_session_token(user_id=1, role_index=1)
        forged = jwt.encode(
            dict(jwt.decode(token, options={"verify_signature": False}), role_index=5),
            "not-the-secret",
            algorithm="HS256"
        )

        with pytest.raises(jwt.InvalidTokenError):
            validate_session_token(forged)

    def test_expired_token_rejected(self):
        config = dict(SessionJWTConfig.get_config(), max_token_age=-60)
        token = SessionJWTService(config).generate_session_token(user_id=1, role_index=1)

        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            validate_session_token(token)

    def test_wrong_audience_rejected(self):
        config = dict(SessionJWTConfig.get_config(), audience="someone-else")
        token = SessionJWTService(config).generate_session_token(user_id=1, role_index=1)

        with pytest.raises(jwt.InvalidTokenError):
            validate_session_token(token)


class TestSessionMiddleware:

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, anonymous_client):
        response = await anonymous_client.get("/1.0/Books", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json()["ErrorCode"] == 401

    @pytest.mark.asyncio
    async def test_non_bearer_header_is_401(self, anonymous_client):
        response = await anonymous_client.get("/1.0/Books", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_custom_session_resolver(self, book_endpoints):
        def resolve(token):
            if token != "let-me-in":
                raise jwt.InvalidTokenError("unknown token")
            return UserSession(session_id="custom", logged_in=True, user_id=42, user_role_index=5)

        app = create_app(book_endpoints, session_resolver=resolve)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http_client:
            created = await http_client.post(
                "/1.0/Book",
                json={"Title": "Dawn"},
                headers={"Authorization": "Bearer let-me-in"}
            )
            rejected = await http_client.get("/1.0/Books", headers={"Authorization": "Bearer nope"})

        assert created.status_code == 200
        assert created.json()["CreatingIDUser"] == 42
        assert rejected.status_code == 401


class TestAppSurface:

    @pytest.mark.asyncio
    async def test_health(self, anonymous_client):
        response = await anonymous_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["scopes"] == ["Book"]

    @pytest.mark.asyncio
    async def test_trace_id_header(self, client):
        response = await client.get("/1.0/Books/Count")

        assert len(response.headers["X-Trace-ID"]) == 8

    @pytest.mark.asyncio
    async def test_invoke_without_http(self, book_endpoints, user_session):
        context = book_endpoints.create_context(user_session=user_session, params={"IDRecord": "2"})

        response = await book_endpoints.invoke("Read", context)

        assert response.status_code == 200
        assert b"The Left Hand of Darkness" in response.body

    @pytest.mark.asyncio
    async def test_invoke_unknown_operation(self, book_endpoints):
        with pytest.raises(KeyError):
            await book_endpoints.invoke("Upsert", book_endpoints.create_context())

    @pytest.mark.asyncio
    async def test_unknown_route_uses_meadow_error_shape(self, client):
        response = await client.get("/1.0/Shelves")

        assert response.status_code == 404
        body = response.json()
        assert body["ErrorCode"] == 404
        assert body["RequestID"] == response.headers["X-Trace-ID"]


class TestCommonServices:

    @pytest.mark.asyncio
    async def test_send_error(self, context):
        response = context.common.send_error("Shelf is being restocked", context, status_code=503)

        assert response.status_code == 503
        assert json.loads(response.body) == {
            "Error": "Shelf is being restocked",
            "ErrorCode": 503,
            "RequestID": "req-1"
        }

    @pytest.mark.asyncio
    async def test_send_coded_error_clamps_status(self, context):
        response = context.common.send_coded_error("Error retreiving a recordset.", {"Code": 42, "Message": "odd"}, context)

        assert response.status_code == 500
        assert json.loads(response.body)["ErrorCode"] == 42
