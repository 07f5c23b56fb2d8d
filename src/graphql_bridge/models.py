"""Internal models for operation descriptors and synthesized calls."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from graphql import GraphQLSchema


MUTATING_METHODS = frozenset({"PUT", "POST", "PATCH", "DELETE"})


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    location: str
    schema: Dict[str, Any]
    required: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class LinkDescriptor:
    name: str
    operation_id: Optional[str] = None
    operation_ref: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    request_body: Any = None
    description: Optional[str] = None


@dataclass(frozen=True)
class OperationDescriptor:
    operation_id: Optional[str]
    method: str
    path: str
    summary: str = ""
    description: str = ""
    parameters: Tuple[ParameterDescriptor, ...] = ()
    body_schema: Optional[Dict[str, Any]] = None
    body_required: bool = False
    body_content_type: str = "application/json"
    responses: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    links: Dict[str, Dict[str, LinkDescriptor]] = field(default_factory=dict)
    security: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def is_mutation(self) -> bool:
        return self.method in MUTATING_METHODS

    @property
    def has_body(self) -> bool:
        return self.body_schema is not None

    @property
    def success_status(self) -> Optional[str]:
        codes = sorted(code for code in self.responses if code.isdigit() and code.startswith("2"))
        return codes[0] if codes else None

    @property
    def success_schema(self) -> Optional[Dict[str, Any]]:
        status = self.success_status
        return self.responses.get(status) if status else None

    @property
    def success_links(self) -> Dict[str, LinkDescriptor]:
        status = self.success_status
        return self.links.get(status, {}) if status else {}

    def describe(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class CallSpecification:
    """One synthesized HTTP call. Headers are a fresh dict per resolution."""

    method: str
    path: str
    query: Tuple[Tuple[str, str], ...] = ()
    headers: Dict[str, Optional[str]] = field(default_factory=dict)
    body: Optional[bytes] = None

    @property
    def url(self) -> str:
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query)}"

    def with_headers(self, **headers: Optional[str]) -> "CallSpecification":
        merged = dict(self.headers)
        merged.update({key.replace("_", "-"): value for key, value in headers.items()})
        return replace(self, headers=merged)

    def target(self) -> Tuple[str, str, Tuple[Tuple[str, str], ...], Optional[bytes]]:
        return self.method, self.path, self.query, self.body

    def final_headers(self) -> Dict[str, str]:
        return {key: str(value) for key, value in self.headers.items() if value is not None}


@dataclass(frozen=True)
class CallResult:
    status_code: int
    status_text: str
    headers: Dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value.split(";", 1)[0].strip().lower()
        return ""


@dataclass(frozen=True)
class SynthesisResult:
    schema: GraphQLSchema
    diagnostics: List[str] = field(default_factory=list)
    field_names: Dict[str, str] = field(default_factory=dict)
