"""OpenAPI document parser producing operation descriptors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .errors import SynthesisError
from .models import LinkDescriptor, OperationDescriptor, ParameterDescriptor


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
PARAMETER_LOCATIONS = {"path", "query", "header"}
_JSON_CONTENT_TYPES = ("application/json", "*/*")


class RefResolver:
    """Resolves local ``$ref`` pointers against one document."""

    def __init__(self, document: Dict[str, Any]) -> None:
        self.document = document

    def resolve(self, ref: str) -> Any:
        if not ref.startswith("#"):
            raise SynthesisError(f"External reference is not supported: {ref}")
        return resolve_pointer(self.document, ref[1:], error=SynthesisError)

    def deref(self, obj: Any) -> Any:
        """Follow a chain of ``$ref`` objects until a concrete value is reached."""
        seen: Set[str] = set()
        while isinstance(obj, dict) and "$ref" in obj:
            ref = obj["$ref"]
            if ref in seen:
                raise SynthesisError(f"Circular reference: {ref}")
            seen.add(ref)
            obj = self.resolve(ref)
        return obj


def resolve_pointer(obj: Any, pointer: str, error: type = KeyError) -> Any:
    """Resolve an RFC 6901 JSON pointer (``/a/b~1c``) within ``obj``."""
    if pointer == "":
        return obj
    if not pointer.startswith("/"):
        raise error(f"Invalid JSON pointer: {pointer}")

    current = obj
    for part in pointer[1:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        try:
            if isinstance(current, list):
                current = current[int(part)]
            else:
                current = current[part]
        except (KeyError, TypeError, IndexError, ValueError):
            raise error(f"Could not resolve pointer {pointer}")
    return current


@dataclass(frozen=True)
class ApiDescription:
    title: str
    version: str
    operations: Tuple[OperationDescriptor, ...]
    resolver: RefResolver
    description: str = ""
    security_schemes: Dict[str, Any] = field(default_factory=dict)
    declared_operations: int = 0


class OpenAPIParser:
    def __init__(self, document: Dict[str, Any]) -> None:
        if not isinstance(document, dict):
            raise SynthesisError("OpenAPI document must be a mapping")
        self.document = document
        self.resolver = RefResolver(document)

    def parse(self) -> ApiDescription:
        info = self.document.get("info") or {}
        components = self.document.get("components") or {}
        operations, declared = self.extract_operations()
        return ApiDescription(
            title=str(info.get("title") or ""),
            version=str(info.get("version") or ""),
            description=str(info.get("description") or ""),
            operations=tuple(operations),
            resolver=self.resolver,
            security_schemes=dict(components.get("securitySchemes") or {}),
            declared_operations=declared,
        )

    def extract_operations(self) -> Tuple[List[OperationDescriptor], int]:
        operations: List[OperationDescriptor] = []
        declared = 0
        paths = self.document.get("paths") or {}
        if not isinstance(paths, dict):
            raise SynthesisError("OpenAPI 'paths' must be a mapping")

        for path, path_item in paths.items():
            path_item = self.resolver.deref(path_item)
            if not isinstance(path_item, dict):
                logger.warning("Skipping path with invalid item: %s", path)
                continue
            shared_parameters = path_item.get("parameters") or []
            for method in HTTP_METHODS:
                if method not in path_item:
                    continue
                declared += 1
                operation = path_item[method]
                if not isinstance(operation, dict):
                    logger.warning("Skipping invalid operation: %s %s", method.upper(), path)
                    continue
                operations.append(self._build_operation(method, path, operation, shared_parameters))

        return operations, declared

    def _build_operation(
        self,
        method: str,
        path: str,
        operation: Dict[str, Any],
        shared_parameters: List[Dict[str, Any]],
    ) -> OperationDescriptor:
        body_schema, body_required, body_content_type = self._request_body(operation)
        responses, links = self._responses(operation)
        return OperationDescriptor(
            operation_id=operation.get("operationId") or None,
            method=method.upper(),
            path=path,
            summary=operation.get("summary") or "",
            description=operation.get("description") or "",
            parameters=tuple(self._parameters(method, path, operation, shared_parameters)),
            body_schema=body_schema,
            body_required=body_required,
            body_content_type=body_content_type,
            responses=responses,
            links=links,
            security=self._security(operation),
            tags=tuple(operation.get("tags") or ()),
        )

    def _parameters(
        self,
        method: str,
        path: str,
        operation: Dict[str, Any],
        shared_parameters: List[Dict[str, Any]],
    ) -> List[ParameterDescriptor]:
        merged: Dict[Tuple[str, str], ParameterDescriptor] = {}
        for raw in [*shared_parameters, *(operation.get("parameters") or [])]:
            parameter = self.resolver.deref(raw)
            name = parameter.get("name") if isinstance(parameter, dict) else None
            if not name:
                continue
            location = parameter.get("in", "query")
            if location not in PARAMETER_LOCATIONS:
                logger.debug(
                    "Ignoring %s parameter %s on %s %s", location, name, method.upper(), path
                )
                continue
            schema = parameter.get("schema")
            if schema is None:
                schema = self._first_content_schema(parameter.get("content") or {}) or {}
            merged[(location, name)] = ParameterDescriptor(
                name=name,
                location=location,
                schema=schema,
                required=bool(parameter.get("required", location == "path")),
                description=parameter.get("description"),
            )
        return list(merged.values())

    def _request_body(
        self, operation: Dict[str, Any]
    ) -> Tuple[Optional[Dict[str, Any]], bool, str]:
        request_body = self.resolver.deref(operation.get("requestBody"))
        if not isinstance(request_body, dict):
            return None, False, "application/json"
        content = request_body.get("content") or {}
        content_type = self._pick_content_type(content)
        if content_type is None:
            return None, False, "application/json"
        schema = (content.get(content_type) or {}).get("schema") or {}
        return schema, bool(request_body.get("required", False)), content_type

    def _responses(
        self, operation: Dict[str, Any]
    ) -> Tuple[Dict[str, Optional[Dict[str, Any]]], Dict[str, Dict[str, LinkDescriptor]]]:
        responses: Dict[str, Optional[Dict[str, Any]]] = {}
        links: Dict[str, Dict[str, LinkDescriptor]] = {}
        for status, raw in (operation.get("responses") or {}).items():
            status = str(status)
            response = self.resolver.deref(raw)
            if not isinstance(response, dict):
                continue
            responses[status] = self._first_content_schema(response.get("content") or {})
            response_links = {
                name: self._link(name, link)
                for name, link in (response.get("links") or {}).items()
            }
            if response_links:
                links[status] = response_links
        return responses, links

    def _link(self, name: str, raw: Any) -> LinkDescriptor:
        link = self.resolver.deref(raw) or {}
        return LinkDescriptor(
            name=name,
            operation_id=link.get("operationId"),
            operation_ref=link.get("operationRef"),
            parameters=dict(link.get("parameters") or {}),
            request_body=link.get("requestBody"),
            description=link.get("description"),
        )

    def _security(self, operation: Dict[str, Any]) -> Tuple[str, ...]:
        requirements = operation.get("security", self.document.get("security")) or []
        names: List[str] = []
        for requirement in requirements:
            for name in requirement or {}:
                if name not in names:
                    names.append(name)
        return tuple(names)

    def _pick_content_type(self, content: Dict[str, Any]) -> Optional[str]:
        if not content:
            return None
        for preferred in _JSON_CONTENT_TYPES:
            if preferred in content:
                return preferred
        for content_type in content:
            if content_type.endswith("+json"):
                return content_type
        return next(iter(content))

    def _first_content_schema(self, content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        content_type = self._pick_content_type(content)
        if content_type is None:
            return None
        media = content.get(content_type) or {}
        return media.get("schema") if isinstance(media, dict) else None


def parse_document(document: Dict[str, Any]) -> ApiDescription:
    return OpenAPIParser(document).parse()
