"""FastAPI wiring: GraphQL endpoint, GraphiQL page, raw document route, lifespan hook."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI
from graphql import ExecutionResult, GraphQLSchema, graphql
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse

from .config import BridgeOptions
from .dispatch import InProcessRequestAdapter
from .errors import RegistrationIncompleteError
from .extractor import DocumentExtractor
from .lifecycle import LifecycleCoordinator

logger = logging.getLogger(__name__)


class GraphQLRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: Optional[Dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")


@dataclass
class GraphQLContext:
    """Passed to resolvers and to the request customization hook."""

    request: Optional[Request] = None

    @property
    def headers(self) -> Any:
        return self.request.headers if self.request is not None else {}


class GraphQLBridge:
    def __init__(self, app: FastAPI, options: BridgeOptions) -> None:
        self.app = app
        self.options = options
        self.extractor = DocumentExtractor(
            app,
            definitions=options.definitions,
            keep_generated_operation_ids=options.keep_generated_operation_ids,
        )
        self.request_adapter = InProcessRequestAdapter(
            app, customize_hook=options.customize_http_request
        )
        self.coordinator = LifecycleCoordinator(
            self.extractor, self.request_adapter, viewer=options.viewer
        )

    @property
    def schema(self) -> GraphQLSchema:
        return self.coordinator.schema

    async def ready(self) -> GraphQLSchema:
        return await self.coordinator.ready()

    async def reload(self) -> GraphQLSchema:
        return await self.coordinator.reload()

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
        context: Optional[GraphQLContext] = None,
    ) -> ExecutionResult:
        schema = self.coordinator.schema
        return await graphql(
            schema,
            query,
            variable_values=variables,
            operation_name=operation_name,
            context_value=context or GraphQLContext(),
        )


def mount_graphql(
    app: FastAPI, options: Optional[BridgeOptions] = None, **kwargs: Any
) -> GraphQLBridge:
    """Expose ``app``'s REST routes as a GraphQL API.

    Options can be a ``BridgeOptions`` instance or keyword arguments (the
    camelCase spellings are accepted too). The schema is synthesized when the
    application starts, after its own startup handlers have run.
    """
    if options is None:
        options = BridgeOptions(**kwargs)
    elif kwargs:
        options = BridgeOptions(**{**options.model_dump(), **kwargs})
    bridge = GraphQLBridge(app, options)
    app.state.graphql_bridge = bridge

    _attach_graphql_endpoint(app, bridge)
    if options.graphql.graphiql:
        _attach_graphiql(app, options.graphql.path)
    if options.expose_route:
        _attach_document_route(app, bridge)
    _attach_lifespan(app, bridge)
    logger.info("Mounted GraphQL endpoint at %s", options.graphql.path)
    return bridge


def _attach_graphql_endpoint(app: FastAPI, bridge: GraphQLBridge) -> None:
    async def graphql_endpoint(request: Request) -> JSONResponse:
        try:
            payload = GraphQLRequest.model_validate(await request.json())
        except ValidationError as exc:
            errors = [{"message": error["msg"], "path": list(error["loc"])} for error in exc.errors()]
            return JSONResponse({"errors": errors}, status_code=400)
        except ValueError:
            return JSONResponse({"errors": [{"message": "Request body is not valid JSON"}]}, status_code=400)

        result = await bridge.execute(
            payload.query,
            variables=payload.variables,
            operation_name=payload.operation_name,
            context=GraphQLContext(request),
        )
        return JSONResponse(result.formatted)

    app.add_route(bridge.options.graphql.path, graphql_endpoint, methods=["POST"], include_in_schema=False)


def _attach_graphiql(app: FastAPI, path: str) -> None:
    async def graphiql(_request: Request) -> HTMLResponse:
        return HTMLResponse(GRAPHIQL_HTML.replace("{{ endpoint }}", path))

    app.add_route(path, graphiql, methods=["GET"], include_in_schema=False)


def _attach_document_route(app: FastAPI, bridge: GraphQLBridge) -> None:
    async def document(_request: Request) -> JSONResponse:
        try:
            return JSONResponse(bridge.extractor.current_document())
        except RegistrationIncompleteError as exc:
            return JSONResponse({"error": exc.message}, status_code=503)

    app.add_route(bridge.options.document_path, document, methods=["GET"], include_in_schema=False)


def _attach_lifespan(app: FastAPI, bridge: GraphQLBridge) -> None:
    host_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(app_: Any) -> AsyncIterator[Any]:
        async with host_lifespan(app_) as state:
            await bridge.ready()
            yield state

    app.router.lifespan_context = lifespan


GRAPHIQL_HTML = """<!doctype html>
<html>
  <head>
    <title>GraphiQL</title>
    <link rel="stylesheet" href="https://unpkg.com/graphiql@3/graphiql.min.css" />
  </head>
  <body style="margin: 0">
    <div id="graphiql" style="height: 100vh"></div>
    <script crossorigin src="https://unpkg.com/react@18/umd/react.production.min.js"></script>
    <script crossorigin src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>
    <script crossorigin src="https://unpkg.com/graphiql@3/graphiql.min.js"></script>
    <script>
      const fetcher = GraphiQL.createFetcher({ url: "{{ endpoint }}" });
      ReactDOM.createRoot(document.getElementById("graphiql")).render(
        React.createElement(GraphiQL, { fetcher })
      );
    </script>
  </body>
</html>
"""
