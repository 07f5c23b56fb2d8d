"""Schema synthesizer: OpenAPI document in, executable GraphQL schema out."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLError,
    GraphQLField,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
    get_nullable_type,
    is_leaf_type,
    validate_schema,
)

from .dispatch import RequestAdapter, build_call, decode_result
from .errors import ResponseDecodeError, SynthesisError
from .links import LinkResolver, RequestRecord, wrap_response
from .logging import redact_payload
from .models import OperationDescriptor, SynthesisResult
from .naming import NameRegistry, field_name_for, safe_name
from .openapi import ApiDescription, parse_document
from .type_builder import TypeBuilder


logger = logging.getLogger(__name__)

PLACEHOLDER_FIELD = "_placeholder"
VIEWER_FIELD = "viewer"


@dataclass(frozen=True)
class ArgumentBinding:
    location: str
    name: str


class OperationField:
    """One synthesized root field and the resolver that calls its operation."""

    def __init__(
        self,
        operation: OperationDescriptor,
        name: str,
        output_type: Any,
        args: Dict[str, GraphQLArgument],
        bindings: Dict[str, ArgumentBinding],
        adapter: RequestAdapter,
    ) -> None:
        self.operation = operation
        self.name = name
        self.output_type = output_type
        self.args = args
        self.bindings = bindings
        self.adapter = adapter

    @property
    def body_argument(self) -> Optional[str]:
        for argument, binding in self.bindings.items():
            if binding.location == "body":
                return argument
        return None

    def argument_for(self, location: Optional[str], name: str) -> Optional[str]:
        for argument, binding in self.bindings.items():
            if binding.name == name and binding.location != "body":
                if location is None or binding.location == location:
                    return argument
        return None

    def graphql_field(self) -> GraphQLField:
        return GraphQLField(
            self.output_type,
            args=self.args,
            resolve=self.resolve,
            description=self.operation.description or self.operation.summary or None,
        )

    async def resolve(self, source: Any, info: Any, **arguments: Any) -> Any:
        values: Dict[str, Dict[str, Any]] = {"path": {}, "query": {}, "header": {}}
        body = None
        for argument, value in arguments.items():
            binding = self.bindings.get(argument)
            if binding is None:
                continue
            if binding.location == "body":
                body = value
            else:
                values[binding.location][binding.name] = value
        record = RequestRecord(body=body, **values)

        logger.debug("Resolving %s args=%s", self.name, redact_payload(arguments))
        call = build_call(self.operation, record.path, record.query, record.header, body)
        context = getattr(info, "context", None)
        result = await self.adapter.send(call, context)
        value = decode_result(call, result)
        if isinstance(value, str) and not is_leaf_type(get_nullable_type(self.output_type)):
            raise ResponseDecodeError(
                f"{call.method} {call.path} returned {result.content_type or 'text'}, "
                f"not JSON for {self.output_type}",
                status_code=result.status_code,
                status_text=result.status_text,
            )
        return wrap_response(value, record)


class SchemaSynthesizer:
    def __init__(
        self,
        document: Dict[str, Any],
        request_adapter: RequestAdapter,
        viewer: bool = True,
    ) -> None:
        self.document = document
        self.request_adapter = request_adapter
        self.viewer = viewer

    def synthesize(self) -> SynthesisResult:
        api = parse_document(self.document)
        if api.declared_operations and not api.operations:
            raise SynthesisError("OpenAPI document has no usable operations")
        self._check_operation_ids(api)

        types = TypeBuilder(api.resolver)
        field_names = NameRegistry()
        fields: List[OperationField] = []
        for operation in api.operations:
            name = field_names.claim(
                field_name_for(operation.operation_id, operation.method, operation.path)
            )
            fields.append(self._build_field(operation, name, types))

        diagnostics = LinkResolver(types, fields).attach_all()

        queries = {f.name: f.graphql_field() for f in fields if not f.operation.is_mutation}
        mutations = {f.name: f.graphql_field() for f in fields if f.operation.is_mutation}

        if self.viewer:
            if VIEWER_FIELD in field_names:
                message = f"Skipping '{VIEWER_FIELD}' field: an operation already uses that name"
                logger.warning(message)
                diagnostics.append(message)
            else:
                queries[VIEWER_FIELD] = self._viewer_field(api, fields, types)
        if not queries:
            queries[PLACEHOLDER_FIELD] = placeholder_field()

        schema = self._build_schema(queries, mutations)
        logger.info(
            "Synthesized GraphQL schema: %s queries, %s mutations, %s diagnostics",
            len(queries),
            len(mutations),
            len(diagnostics),
        )
        return SynthesisResult(
            schema=schema,
            diagnostics=diagnostics,
            field_names={f.operation.describe(): f.name for f in fields},
        )

    def _build_field(
        self, operation: OperationDescriptor, name: str, types: TypeBuilder
    ) -> OperationField:
        args: Dict[str, GraphQLArgument] = {}
        bindings: Dict[str, ArgumentBinding] = {}
        argument_names = NameRegistry()

        for parameter in operation.parameters:
            argument = argument_names.claim(safe_name(parameter.name))
            arg_type = types.input_type(parameter.schema, f"{name} {parameter.name}")
            if parameter.required:
                arg_type = GraphQLNonNull(arg_type)
            args[argument] = GraphQLArgument(arg_type, description=parameter.description)
            bindings[argument] = ArgumentBinding(parameter.location, parameter.name)

        if operation.has_body:
            argument = argument_names.claim(f"{name}Input")
            body_type = types.input_type(operation.body_schema, name)
            if operation.body_required:
                body_type = GraphQLNonNull(body_type)
            args[argument] = GraphQLArgument(body_type, description="Request body")
            bindings[argument] = ArgumentBinding("body", argument)

        output_type = types.output_type(operation.success_schema, name, _link_variant(operation))
        return OperationField(operation, name, output_type, args, bindings, self.request_adapter)

    def _viewer_field(
        self, api: ApiDescription, fields: List[OperationField], types: TypeBuilder
    ) -> GraphQLField:
        operation_type = GraphQLObjectType(
            types.type_names.claim("ApiOperation"),
            {
                "field": GraphQLField(GraphQLNonNull(GraphQLString)),
                "kind": GraphQLField(GraphQLNonNull(GraphQLString)),
                "operationId": GraphQLField(GraphQLString),
                "method": GraphQLField(GraphQLNonNull(GraphQLString)),
                "path": GraphQLField(GraphQLNonNull(GraphQLString)),
                "summary": GraphQLField(GraphQLString),
                "security": GraphQLField(GraphQLNonNull(GraphQLList(GraphQLNonNull(GraphQLString)))),
                "tags": GraphQLField(GraphQLNonNull(GraphQLList(GraphQLNonNull(GraphQLString)))),
            },
            description="A REST operation exposed as a GraphQL field.",
        )
        viewer_type = GraphQLObjectType(
            types.type_names.claim("ApiViewer"),
            {
                "title": GraphQLField(GraphQLString),
                "version": GraphQLField(GraphQLString),
                "description": GraphQLField(GraphQLString),
                "operations": GraphQLField(GraphQLNonNull(GraphQLList(GraphQLNonNull(operation_type)))),
            },
        )
        payload = {
            "title": api.title,
            "version": api.version,
            "description": api.description,
            "operations": [
                {
                    "field": f.name,
                    "kind": "mutation" if f.operation.is_mutation else "query",
                    "operationId": f.operation.operation_id,
                    "method": f.operation.method,
                    "path": f.operation.path,
                    "summary": f.operation.summary or f.operation.description or None,
                    "security": list(f.operation.security),
                    "tags": list(f.operation.tags),
                }
                for f in fields
            ],
        }
        return GraphQLField(
            viewer_type,
            resolve=lambda source, info: payload,
            description="Describes the REST operations behind this schema.",
        )

    def _check_operation_ids(self, api: ApiDescription) -> None:
        seen: Dict[str, str] = {}
        for operation in api.operations:
            if not operation.operation_id:
                continue
            if operation.operation_id in seen:
                raise SynthesisError(
                    f"Duplicate operationId '{operation.operation_id}' on "
                    f"{seen[operation.operation_id]} and {operation.describe()}"
                )
            seen[operation.operation_id] = operation.describe()

    def _build_schema(
        self, queries: Dict[str, GraphQLField], mutations: Dict[str, GraphQLField]
    ) -> GraphQLSchema:
        try:
            schema = GraphQLSchema(
                query=GraphQLObjectType("Query", queries),
                mutation=GraphQLObjectType("Mutation", mutations) if mutations else None,
            )
            errors = validate_schema(schema)
        except (TypeError, GraphQLError) as exc:
            raise SynthesisError(f"Generated schema is invalid: {exc}") from exc
        if errors:
            raise SynthesisError(
                "Generated schema is invalid: " + "; ".join(error.message for error in errors)
            )
        return schema


def _link_variant(operation: OperationDescriptor) -> str:
    # Types returned with different links must not share link fields.
    links = operation.success_links
    if not links:
        return ""
    return json.dumps(
        [
            [link.name, link.operation_id or link.operation_ref, link.parameters, link.request_body]
            for link in sorted(links.values(), key=lambda item: item.name)
        ],
        sort_keys=True,
        default=str,
    )


def placeholder_field() -> GraphQLField:
    return GraphQLField(
        GraphQLBoolean,
        resolve=lambda source, info: None,
        description="Present only because the API exposes no queries.",
    )


def placeholder_schema() -> GraphQLSchema:
    return GraphQLSchema(query=GraphQLObjectType("Query", {PLACEHOLDER_FIELD: placeholder_field()}))


def synthesize(
    document: Dict[str, Any], request_adapter: RequestAdapter, viewer: bool = True
) -> SynthesisResult:
    return SchemaSynthesizer(document, request_adapter, viewer=viewer).synthesize()
