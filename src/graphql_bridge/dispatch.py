"""Request adapter: turns call specifications into in-process HTTP responses."""

from __future__ import annotations

import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote, urlencode

import httpx

from .errors import AdapterMisuseError, DispatchError, InvalidArgumentsError, ResponseDecodeError
from .logging import redact_headers
from .models import CallResult, CallSpecification, OperationDescriptor


logger = logging.getLogger(__name__)

CustomizeHook = Callable[
    [CallSpecification, Any], Union[Optional[CallSpecification], Awaitable[Optional[CallSpecification]]]
]

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class RequestAdapter(ABC):
    """Abstract capability used by resolvers to reach the REST operations."""

    def __init__(self, customize_hook: Optional[CustomizeHook] = None) -> None:
        self.customize_hook = customize_hook

    async def customize(self, call: CallSpecification, context: Any) -> CallSpecification:
        if self.customize_hook is None:
            return call
        try:
            result = self.customize_hook(call, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise AdapterMisuseError(f"Request customization failed: {exc}") from exc

        customized = call if result is None else result
        if not isinstance(customized, CallSpecification):
            raise AdapterMisuseError(
                f"Request customization must return a CallSpecification, got {type(customized).__name__}"
            )
        if customized.target() != call.target():
            raise AdapterMisuseError("Request customization may only change headers")
        return customized

    @abstractmethod
    async def dispatch(self, call: CallSpecification) -> CallResult:
        raise NotImplementedError

    async def send(self, call: CallSpecification, context: Any) -> CallResult:
        customized = await self.customize(call, context)
        return await self.dispatch(customized)


class InProcessRequestAdapter(RequestAdapter):
    """Dispatches calls straight into an ASGI application, without sockets."""

    def __init__(
        self,
        app: Any,
        customize_hook: Optional[CustomizeHook] = None,
        base_url: str = "http://graphql-bridge.internal",
        timeout_seconds: float = 30,
    ) -> None:
        super().__init__(customize_hook)
        self.app = app
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, call: CallSpecification) -> CallResult:
        headers = call.final_headers()
        logger.debug("Dispatching %s %s headers=%s", call.method, call.url, redact_headers(headers))

        transport = httpx.ASGITransport(app=self.app, raise_app_exceptions=False)
        async with httpx.AsyncClient(
            transport=transport, base_url=self.base_url, timeout=self.timeout_seconds
        ) as client:
            response = await client.request(
                call.method,
                call.url,
                headers=headers,
                content=call.body,
            )

        return CallResult(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            body=response.content,
        )


def forward_headers(*names: str) -> CustomizeHook:
    """Build a hook copying inbound GraphQL request headers onto the call."""
    wanted = [name.lower() for name in names]

    def hook(call: CallSpecification, context: Any) -> CallSpecification:
        inbound = getattr(context, "headers", None) or {}
        for name in wanted:
            value = inbound.get(name)
            if value is not None:
                call.headers[name] = value
        return call

    return hook


forward_authorization = forward_headers("authorization")


def build_call(
    operation: OperationDescriptor,
    path_values: Mapping[str, Any],
    query_values: Mapping[str, Any],
    header_values: Mapping[str, Any],
    body: Any = None,
) -> CallSpecification:
    path = operation.path
    for parameter in operation.parameters:
        if parameter.location != "path":
            continue
        token = f"{{{parameter.name}}}"
        if token not in path:
            continue
        value = path_values.get(parameter.name)
        if value is None:
            raise InvalidArgumentsError(
                f"Missing path parameter '{parameter.name}' for {operation.describe()}"
            )
        path = path.replace(token, quote(_scalar_text(value), safe=""))

    headers: Dict[str, Optional[str]] = {"accept": "application/json"}
    for name, value in header_values.items():
        if value is not None:
            headers[name.lower()] = _scalar_text(value)

    content: Optional[bytes] = None
    if operation.has_body:
        payload = body if body is not None else {}
        if operation.body_content_type == _FORM_CONTENT_TYPE and isinstance(payload, Mapping):
            headers["content-type"] = _FORM_CONTENT_TYPE
            content = urlencode(_query_pairs(payload)).encode()
        else:
            headers["content-type"] = "application/json"
            content = json.dumps(payload).encode()

    return CallSpecification(
        method=operation.method,
        path=path,
        query=tuple(_query_pairs(query_values)),
        headers=headers,
        body=content,
    )


def decode_result(call: CallSpecification, result: CallResult) -> Any:
    if not result.ok:
        raise DispatchError(
            f"{call.method} {call.path} returned {result.status_code} {result.status_text}".strip(),
            status_code=result.status_code,
            status_text=result.status_text,
            body=_loose_body(result),
        )
    if not result.body:
        return None
    content_type = result.content_type
    if content_type and not (content_type.endswith("/json") or content_type.endswith("+json")):
        return result.body.decode("utf-8", errors="replace")
    try:
        return json.loads(result.body)
    except ValueError as exc:
        raise ResponseDecodeError(
            f"{call.method} {call.path} returned malformed JSON: {exc}",
            status_code=result.status_code,
            status_text=result.status_text,
        ) from exc


def _loose_body(result: CallResult) -> Any:
    if not result.body:
        return None
    try:
        return json.loads(result.body)
    except ValueError:
        return result.body.decode("utf-8", errors="replace")


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _query_pairs(values: Mapping[str, Any]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _scalar_text(item)) for item in value if item is not None)
        else:
            pairs.append((key, _scalar_text(value)))
    return pairs
