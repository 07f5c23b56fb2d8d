"""JWT-protected routes reached through the customization hook."""

import jwt
import pytest
from fastapi import Depends, FastAPI, Path
from pydantic import BaseModel

from graphql_bridge.auth import AuthContext, BearerAuth, JwtVerifier
from graphql_bridge.server import mount_graphql


SECRET = "testingsecret-for-the-bridge-test-suite"


class UserOut(BaseModel):
    name: str
    companyId: str
    caller: str


def customize(call, context):
    call.headers["authorization"] = context.request.headers.get("authorization")
    return call


@pytest.fixture
def jwt_app():
    app = FastAPI()
    bearer = BearerAuth(JwtVerifier(secret=SECRET))

    @app.get(
        "/user/{id}",
        response_model=UserOut,
        operation_id="user",
        description="get a user",
        openapi_extra={"security": [{"bearerAuth": []}]},
    )
    async def get_user(id: str = Path(description="user id"), auth: AuthContext = Depends(bearer)):
        return {"name": "foo", "companyId": id, "caller": auth.claims["name"]}

    definitions = {
        "info": {"title": "Test swagger", "version": "0.1.0"},
        "components": {"securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}},
    }
    mount_graphql(app, definitions=definitions, viewer=False, customizeHttpRequest=customize)
    return app


@pytest.mark.asyncio
async def test_token_is_forwarded(jwt_app, post_graphql):
    await jwt_app.state.graphql_bridge.ready()
    token = jwt.encode({"name": "foobar"}, SECRET, algorithm="HS256")

    response = await post_graphql(
        jwt_app,
        'query { user(id: "foo42") { name companyId caller } }',
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.json() == {"data": {"user": {"name": "foo", "companyId": "foo42", "caller": "foobar"}}}


@pytest.mark.asyncio
async def test_missing_token_is_a_field_error(jwt_app, post_graphql):
    await jwt_app.state.graphql_bridge.ready()

    response = await post_graphql(jwt_app, 'query { user(id: "foo42") { name } }')
    body = response.json()

    assert response.status_code == 200
    assert body["data"] == {"user": None}
    assert body["errors"][0]["extensions"]["code"] == "DISPATCH_ERROR"
    assert body["errors"][0]["extensions"]["statusCode"] == 401
    assert body["errors"][0]["extensions"]["responseBody"] == {"detail": "Unauthorized"}


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(jwt_app, post_graphql):
    await jwt_app.state.graphql_bridge.ready()
    token = jwt.encode({"name": "mallory"}, "another-secret-nobody-configured-here", algorithm="HS256")

    response = await post_graphql(
        jwt_app, 'query { user(id: "foo42") { name } }', headers={"Authorization": f"Bearer {token}"}
    )

    assert response.json()["errors"][0]["extensions"]["statusCode"] == 401


@pytest.mark.asyncio
async def test_security_schemes_are_listed_by_viewer(jwt_app):
    bridge = jwt_app.state.graphql_bridge
    bridge.coordinator.viewer = True
    await bridge.ready()

    result = await bridge.execute("{ viewer { operations { field security } } }")

    assert result.data == {"viewer": {"operations": [{"field": "user", "security": ["bearerAuth"]}]}}


@pytest.mark.asyncio
async def test_verifier_round_trip():
    verifier = JwtVerifier(secret=SECRET)
    auth = await verifier.verify(verifier.sign({"sub": "u1", "name": "foobar"}))

    assert auth.subject == "u1"
    assert auth.claims["name"] == "foobar"
    with pytest.raises(jwt.PyJWTError):
        await JwtVerifier(secret="another-secret-nobody-configured-here").verify(verifier.sign({"sub": "u1"}))


def test_verifier_requires_a_secret():
    with pytest.raises(ValueError):
        JwtVerifier(secret="")
