"""Demo REST application exposed through the GraphQL bridge."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Path
from pydantic import BaseModel

from .auth import AuthContext, BearerAuth, JwtVerifier
from .config import Settings, get_settings
from .dispatch import forward_authorization
from .server import mount_graphql


class Obj(BaseModel):
    some: Optional[str] = None


class SomeRouteBody(BaseModel):
    hello: Optional[str] = None
    obj: Optional[Obj] = None


class Greeting(BaseModel):
    hello: Optional[str] = None


class User(BaseModel):
    name: Optional[str] = None
    companyId: Optional[str] = None


class Company(BaseModel):
    name: Optional[str] = None


class Me(BaseModel):
    subject: Optional[str] = None
    name: Optional[str] = None


USERS: Dict[str, User] = {
    "foo42": User(name="foo", companyId="42"),
}
COMPANIES: Dict[str, Company] = {
    "42": Company(name="bar"),
}

COMPANY_LINK: Dict[str, Any] = {
    "responses": {
        "200": {
            "links": {
                "company": {
                    "operationId": "getCompany",
                    "parameters": {"id": "$response.body#/companyId"},
                }
            }
        }
    }
}

BEARER_SECURITY: List[Dict[str, List[str]]] = [{"bearerAuth": []}]


def build_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.service_name)

    definitions: Dict[str, Any] = {
        "info": {
            "title": "Test swagger",
            "description": "testing the fastapi openapi document",
            "version": "0.1.0",
        },
    }

    @app.put(
        "/some-route/{id}",
        response_model=Greeting,
        status_code=201,
        summary="qwerty",
        description="post some data",
        tags=["user", "code"],
    )
    async def put_some_route(
        id: str = Path(description="user id"), body: Optional[SomeRouteBody] = None
    ) -> Dict[str, Any]:
        hello = body.hello if body is not None and body.hello is not None else "undefined"
        return {"hello": f"Hello {hello}"}

    @app.get(
        "/user/{id}",
        response_model=User,
        description="get a user",
        openapi_extra=COMPANY_LINK,
    )
    async def get_user(id: str = Path(description="user id")) -> User:
        return USERS.get(id) or User(name=None, companyId=None)

    @app.get(
        "/company/{id}",
        response_model=Company,
        operation_id="getCompany",
        description="get a company",
    )
    async def get_company(id: str = Path(description="company id")) -> Company:
        return COMPANIES.get(id) or Company(name=None)

    if settings.bridge_jwt_secret:
        bearer = BearerAuth(JwtVerifier(secret=settings.bridge_jwt_secret))
        definitions["components"] = {
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}
        }

        @app.get(
            "/me",
            response_model=Me,
            operation_id="me",
            description="the authenticated caller",
            openapi_extra={"security": BEARER_SECURITY},
        )
        async def me(auth: AuthContext = Depends(bearer)) -> Me:
            return Me(subject=auth.subject, name=auth.claims.get("name"))

    hook = forward_authorization if settings.bridge_jwt_secret else None
    mount_graphql(app, settings.bridge_options(definitions=definitions, customize_http_request=hook))
    return app
