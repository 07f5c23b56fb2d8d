"""JSON schema to GraphQL type conversion with structural deduplication."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from graphql import (
    GraphQLBoolean,
    GraphQLEnumType,
    GraphQLEnumValue,
    GraphQLField,
    GraphQLFloat,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLString,
)
from graphql.utilities import value_from_ast_untyped

from .errors import SynthesisError
from .naming import NameRegistry, enum_value_name, pascal_case, safe_name
from .openapi import RefResolver


logger = logging.getLogger(__name__)


def _identity(value: Any) -> Any:
    return value


JSONScalar = GraphQLScalarType(
    name="JSON",
    description="Arbitrary JSON value passed through unchanged.",
    serialize=_identity,
    parse_value=_identity,
    parse_literal=value_from_ast_untyped,
)

BUILTIN_TYPE_NAMES = ("Query", "Mutation", "Subscription", "JSON", "String", "Int", "Float", "Boolean", "ID")

_SCALARS = {
    "string": GraphQLString,
    "integer": GraphQLInt,
    "number": GraphQLFloat,
    "boolean": GraphQLBoolean,
}


def _is_null_schema(schema: Any) -> bool:
    return isinstance(schema, dict) and schema.get("type") == "null" and len(schema) <= 2


def _canonical(schema: Any) -> str:
    return json.dumps(schema, sort_keys=True, default=str)


def _property_resolver(key: str) -> Callable[..., Any]:
    def resolve(source: Any, info: Any, **_: Any) -> Any:
        if isinstance(source, Mapping):
            return source.get(key)
        return getattr(source, key, None)

    return resolve


class TypeBuilder:
    """Builds GraphQL output and input types from OpenAPI schemas.

    Object types are keyed by their ``$ref`` target or, for inline schemas, by
    the canonical JSON of the schema, so structurally identical schemas share a
    single GraphQL type. Field maps are thunks, which keeps recursive schemas
    finite and lets the link resolver add fields after the type exists.
    """

    def __init__(self, resolver: RefResolver, type_names: Optional[NameRegistry] = None) -> None:
        self.resolver = resolver
        self.type_names = type_names or NameRegistry(BUILTIN_TYPE_NAMES)
        self._objects: Dict[str, GraphQLObjectType] = {}
        self._inputs: Dict[str, GraphQLInputObjectType] = {}
        self._enums: Dict[str, GraphQLEnumType] = {}
        self._property_names: Dict[str, Set[str]] = {}
        self._extra_fields: Dict[str, Dict[str, GraphQLField]] = {}

    # -- public API -------------------------------------------------------

    def output_type(self, schema: Any, name_hint: str, variant: str = "") -> Any:
        ref, resolved = self.normalize(schema)
        kind = self._kind(resolved)
        if kind == "object":
            return self._object_type(ref, resolved, name_hint, variant)
        if kind == "array":
            return GraphQLList(self.output_type(resolved.get("items") or {}, name_hint, variant))
        if kind == "enum":
            return self._enum_type(ref, resolved, name_hint)
        if kind in _SCALARS:
            return _SCALARS[kind]
        return JSONScalar

    def input_type(self, schema: Any, name_hint: str) -> Any:
        ref, resolved = self.normalize(schema)
        kind = self._kind(resolved)
        if kind == "object":
            return self._input_object_type(ref, resolved, name_hint)
        if kind == "array":
            return GraphQLList(self.input_type(resolved.get("items") or {}, name_hint))
        if kind == "enum":
            return self._enum_type(ref, resolved, name_hint)
        if kind in _SCALARS:
            return _SCALARS[kind]
        return JSONScalar

    def field_names(self, type_name: str) -> Set[str]:
        return set(self._property_names.get(type_name, set())) | set(
            self._extra_fields.get(type_name, {})
        )

    def add_field(self, type_name: str, field_name: str, field: GraphQLField) -> bool:
        """Attach an extra field to a generated object type; refuses to overwrite."""
        if type_name not in self._property_names or field_name in self.field_names(type_name):
            return False
        self._extra_fields.setdefault(type_name, {})[field_name] = field
        return True

    def normalize(self, schema: Any) -> Tuple[Optional[str], Dict[str, Any]]:
        """Resolve refs and nullable unions down to one concrete schema."""
        ref: Optional[str] = None
        seen: Set[str] = set()
        while True:
            if not isinstance(schema, dict):
                return ref, {}
            if "$ref" in schema:
                ref = schema["$ref"]
                if ref in seen:
                    raise SynthesisError(f"Circular reference: {ref}")
                seen.add(ref)
                schema = self.resolver.resolve(ref)
                continue
            union = schema.get("anyOf") or schema.get("oneOf")
            if union:
                options = [option for option in union if not _is_null_schema(option)]
                if len(options) != 1:
                    return ref, {}
                ref = None
                schema = options[0]
                continue
            all_of = schema.get("allOf")
            if all_of:
                if len(all_of) == 1:
                    schema = all_of[0]
                    continue
                return ref, self._merge_all_of(schema, all_of)
            schema_type = schema.get("type")
            if isinstance(schema_type, list):
                types = [item for item in schema_type if item != "null"]
                if len(types) != 1:
                    return ref, {}
                schema = {**schema, "type": types[0]}
            return ref, schema

    # -- helpers ----------------------------------------------------------

    def _kind(self, schema: Dict[str, Any]) -> str:
        if schema.get("enum"):
            return "enum"
        schema_type = schema.get("type")
        if schema_type == "object" or (schema_type is None and "properties" in schema):
            return "object" if schema.get("properties") else "json"
        if schema_type == "array":
            return "array"
        if schema_type in _SCALARS:
            return schema_type
        return "json"

    def _merge_all_of(self, schema: Dict[str, Any], members: List[Any]) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for member in members:
            _, resolved = self.normalize(member)
            if self._kind(resolved) not in ("object", "json"):
                return {}
            properties.update(resolved.get("properties") or {})
            required.extend(name for name in resolved.get("required") or [] if name not in required)
        merged: Dict[str, Any] = {"type": "object", "properties": properties, "required": required}
        for key in ("title", "description"):
            if key in schema:
                merged[key] = schema[key]
        return merged

    def _base_name(self, ref: Optional[str], schema: Dict[str, Any], name_hint: str) -> str:
        if ref:
            return pascal_case(ref.rsplit("/", 1)[-1])
        if schema.get("title"):
            return pascal_case(str(schema["title"]))
        return pascal_case(name_hint)

    def _object_type(
        self, ref: Optional[str], schema: Dict[str, Any], name_hint: str, variant: str
    ) -> GraphQLObjectType:
        key = f"{ref or _canonical(schema)}|{variant}"
        if key in self._objects:
            return self._objects[key]

        name = self.type_names.claim(self._base_name(ref, schema, name_hint))
        logger.debug("Creating object type %s", name)
        properties = self._properties(schema)
        self._property_names[name] = {field_name for field_name, _, _ in properties}

        def fields() -> Dict[str, GraphQLField]:
            result: Dict[str, GraphQLField] = {}
            for field_name, key_name, prop in properties:
                result[field_name] = GraphQLField(
                    self.output_type(prop, f"{name} {key_name}"),
                    resolve=_property_resolver(key_name),
                    description=prop.get("description") if isinstance(prop, dict) else None,
                )
            result.update(self._extra_fields.get(name, {}))
            return result

        graphql_type = GraphQLObjectType(name, fields, description=schema.get("description"))
        self._objects[key] = graphql_type
        return graphql_type

    def _input_object_type(
        self, ref: Optional[str], schema: Dict[str, Any], name_hint: str
    ) -> GraphQLInputObjectType:
        key = ref or _canonical(schema)
        if key in self._inputs:
            return self._inputs[key]

        base = self._base_name(ref, schema, name_hint)
        name = self.type_names.claim(base if base.endswith("Input") else f"{base}Input")
        properties = self._properties(schema)
        required = set(schema.get("required") or [])

        def fields() -> Dict[str, GraphQLInputField]:
            result: Dict[str, GraphQLInputField] = {}
            for field_name, key_name, prop in properties:
                field_type = self.input_type(prop, f"{base} {key_name}")
                if key_name in required:
                    field_type = GraphQLNonNull(field_type)
                result[field_name] = GraphQLInputField(
                    field_type,
                    description=prop.get("description") if isinstance(prop, dict) else None,
                    out_name=key_name,
                )
            return result

        graphql_type = GraphQLInputObjectType(name, fields, description=schema.get("description"))
        self._inputs[key] = graphql_type
        return graphql_type

    def _enum_type(
        self, ref: Optional[str], schema: Dict[str, Any], name_hint: str
    ) -> GraphQLEnumType:
        key = ref or _canonical(schema["enum"])
        if key in self._enums:
            return self._enums[key]

        base = self._base_name(ref, schema, name_hint)
        name = self.type_names.claim(base if ref or schema.get("title") else f"{base}Enum")
        value_names = NameRegistry()
        values = {
            value_names.claim(enum_value_name(value)): GraphQLEnumValue(value)
            for value in schema["enum"]
            if value is not None
        }
        graphql_type = GraphQLEnumType(name, values, description=schema.get("description"))
        self._enums[key] = graphql_type
        return graphql_type

    def _properties(self, schema: Dict[str, Any]) -> List[Tuple[str, str, Any]]:
        names = NameRegistry()
        return [
            (names.claim(safe_name(key)), key, prop)
            for key, prop in (schema.get("properties") or {}).items()
        ]
