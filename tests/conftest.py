"""Shared fixtures for GraphQL bridge tests."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI, Path
from pydantic import BaseModel

from graphql_bridge.dispatch import RequestAdapter
from graphql_bridge.models import CallResult, CallSpecification
from graphql_bridge.server import mount_graphql


DEFINITIONS: Dict[str, Any] = {
    "info": {
        "title": "Test swagger",
        "description": "testing the fastapi openapi document",
        "version": "0.1.0",
    }
}


class StubAdapter(RequestAdapter):
    """Answers calls from a routing table and records every dispatched call."""

    def __init__(
        self,
        routes: Dict[Tuple[str, str], Tuple[int, Any]],
        customize_hook: Optional[Callable[..., Any]] = None,
    ) -> None:
        super().__init__(customize_hook)
        self.routes = routes
        self.calls: List[CallSpecification] = []

    async def dispatch(self, call: CallSpecification) -> CallResult:
        self.calls.append(call)
        status, payload = self.routes.get((call.method, call.path), (404, {"detail": "Not Found"}))
        return CallResult(
            status_code=status,
            status_text="OK" if status < 400 else "Error",
            headers={"content-type": "application/json"},
            body=json.dumps(payload).encode(),
        )


class UserOut(BaseModel):
    name: Optional[str] = None
    companyId: Optional[str] = None


class CompanyOut(BaseModel):
    name: Optional[str] = None


@pytest.fixture
def stub_adapter() -> Callable[..., StubAdapter]:
    def build(routes: Dict[Tuple[str, str], Tuple[int, Any]], customize_hook: Any = None) -> StubAdapter:
        return StubAdapter(routes, customize_hook)

    return build


@pytest.fixture
def received() -> List[Tuple[str, str]]:
    return []


@pytest.fixture
def nested_app(received: List[Tuple[str, str]]) -> FastAPI:
    app = FastAPI()

    @app.get(
        "/user/{id}",
        response_model=UserOut,
        description="get a user",
        openapi_extra={
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
        },
    )
    async def get_user(id: str = Path(description="user id")) -> Dict[str, Any]:
        received.append(("user", id))
        return {"name": "foo", "companyId": "42"}

    @app.get("/company/{id}", response_model=CompanyOut, operation_id="getCompany")
    async def get_company(id: str = Path(description="company id")) -> Dict[str, Any]:
        received.append(("company", id))
        return {"name": "bar"}

    mount_graphql(app, definitions=DEFINITIONS)
    return app


@pytest.fixture
def post_graphql() -> Callable[..., Any]:
    async def post(
        app: FastAPI,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        payload: Dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.post("/graphql", json=payload, headers=headers or {})

    return post
