"""OpenAPI links exposed as nested GraphQL fields."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Tuple

from graphql import GraphQLField, GraphQLObjectType, get_named_type

from .errors import LinkResolutionError
from .models import LinkDescriptor
from .openapi import resolve_pointer

if TYPE_CHECKING:
    from .synthesizer import OperationField
    from .type_builder import TypeBuilder


logger = logging.getLogger(__name__)

_TEMPLATE = re.compile(r"\{(\$[^}]+)\}")
_REQUEST_LOCATIONS = ("path", "query", "header")


@dataclass(frozen=True)
class RequestRecord:
    """Arguments of the call that produced a response, by original parameter name."""

    path: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    header: Dict[str, Any] = field(default_factory=dict)
    body: Any = None


class LinkedBody(dict):
    """A decoded response object that remembers the request that produced it."""

    def __init__(self, body: Mapping[str, Any], request: RequestRecord) -> None:
        super().__init__(body)
        self.request = request


def wrap_response(decoded: Any, request: RequestRecord) -> Any:
    if isinstance(decoded, dict):
        return LinkedBody(decoded, request)
    if isinstance(decoded, list):
        return [LinkedBody(item, request) if isinstance(item, dict) else item for item in decoded]
    return decoded


def evaluate_expression(expression: Any, source: Any, link: Optional[str] = None) -> Any:
    """Evaluate an OpenAPI runtime expression against a linked response.

    Strings starting with ``$`` are expressions, strings containing ``{$...}``
    are templates, anything else is a constant.
    """
    if not isinstance(expression, str):
        return expression
    if expression.startswith("$"):
        return _runtime_value(expression, source, link)
    if "{$" in expression:
        return _TEMPLATE.sub(
            lambda match: _text(_runtime_value(match.group(1), source, link)), expression
        )
    return expression


def _runtime_value(expression: str, source: Any, link: Optional[str]) -> Any:
    if expression == "$response.body" or expression.startswith("$response.body#"):
        if not isinstance(source, Mapping):
            raise LinkResolutionError("Response body is not available", link)
        return _pointer(dict(source), expression, link)

    if not expression.startswith("$request."):
        raise LinkResolutionError(f"Unsupported link expression '{expression}'", link)

    request = getattr(source, "request", None)
    if not isinstance(request, RequestRecord):
        raise LinkResolutionError("Request data is not available for this value", link)

    remainder = expression[len("$request."):]
    if remainder == "body" or remainder.startswith("body#"):
        if request.body is None:
            raise LinkResolutionError("Request had no body", link)
        return _pointer(request.body, expression, link)

    location, _, name = remainder.partition(".")
    if location not in _REQUEST_LOCATIONS or not name:
        raise LinkResolutionError(f"Unsupported link expression '{expression}'", link)
    values: Dict[str, Any] = getattr(request, location)
    if location == "header":
        values = {key.lower(): value for key, value in values.items()}
        name = name.lower()
    if values.get(name) is None:
        raise LinkResolutionError(f"'{expression}' has no value", link)
    return values[name]


def _pointer(document: Any, expression: str, link: Optional[str]) -> Any:
    _, _, pointer = expression.partition("#")
    try:
        value = resolve_pointer(document, pointer)
    except KeyError:
        raise LinkResolutionError(f"'{expression}' does not resolve", link)
    if value is None:
        raise LinkResolutionError(f"'{expression}' resolved to null", link)
    return value


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class LinkResolver:
    """Wires link descriptors between already-synthesized operation fields."""

    def __init__(self, types: "TypeBuilder", fields: List["OperationField"]) -> None:
        self.types = types
        self.fields = fields
        self._by_operation_id = {f.operation.operation_id: f for f in fields if f.operation.operation_id}
        self._by_route = {(f.operation.path, f.operation.method): f for f in fields}
        self.diagnostics: List[str] = []
        self._attached: Set[Tuple[str, str]] = set()

    def attach_all(self) -> List[str]:
        for source in self.fields:
            for link in source.operation.success_links.values():
                self.attach(source, link)
        return self.diagnostics

    def attach(self, source: "OperationField", link: LinkDescriptor) -> bool:
        where = f"link '{link.name}' on {source.operation.describe()}"
        target = self._target(link)
        if target is None:
            self._diagnose(f"Dropping {where}: unknown target operation")
            return False

        owner = get_named_type(source.output_type)
        if not isinstance(owner, GraphQLObjectType):
            self._diagnose(f"Dropping {where}: response is not an object type")
            return False
        if (owner.name, link.name) in self._attached:
            # Shared with an operation declaring the same links.
            return True

        supplied: Dict[str, Any] = {}
        for parameter_name, expression in link.parameters.items():
            argument = target.argument_for(*self._split_parameter(parameter_name))
            if argument is None:
                self._diagnose(f"Ignoring parameter '{parameter_name}' of {where}: not accepted by target")
                continue
            supplied[argument] = expression
        if link.request_body is not None and target.body_argument:
            supplied[target.body_argument] = link.request_body

        field_name = link.name
        remaining = {name: arg for name, arg in target.args.items() if name not in supplied}
        graphql_field = GraphQLField(
            target.output_type,
            args=remaining,
            resolve=self._resolver(target, supplied, link.name),
            description=link.description or f"Follows link '{link.name}' to {target.name}.",
        )
        if not self.types.add_field(owner.name, field_name, graphql_field):
            self._diagnose(f"Dropping {where}: field '{field_name}' already exists on {owner.name}")
            return False
        self._attached.add((owner.name, field_name))
        return True

    def _resolver(
        self, target: "OperationField", supplied: Dict[str, Any], link_name: str
    ) -> Callable[..., Awaitable[Any]]:
        async def resolve(source: Any, info: Any, **arguments: Any) -> Any:
            for argument, expression in supplied.items():
                arguments[argument] = evaluate_expression(expression, source, link_name)
            return await target.resolve(None, info, **arguments)

        return resolve

    def _target(self, link: LinkDescriptor) -> Optional["OperationField"]:
        if link.operation_id:
            return self._by_operation_id.get(link.operation_id)
        if link.operation_ref and link.operation_ref.startswith("#/paths/"):
            path, _, method = link.operation_ref[len("#/paths/"):].rpartition("/")
            path = path.replace("~1", "/").replace("~0", "~")
            return self._by_route.get((path, method.upper()))
        return None

    def _split_parameter(self, parameter_name: str) -> Tuple[Optional[str], str]:
        location, _, name = parameter_name.partition(".")
        if name and location in _REQUEST_LOCATIONS:
            return location, name
        return None, parameter_name

    def _diagnose(self, message: str) -> None:
        logger.warning(message)
        self.diagnostics.append(message)
