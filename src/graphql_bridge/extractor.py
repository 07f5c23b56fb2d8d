"""Reads the host application's OpenAPI document once its routes are final."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional, Set, Tuple

from fastapi import FastAPI
from fastapi.routing import APIRoute

from .errors import RegistrationIncompleteError


logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class DocumentExtractor:
    def __init__(
        self,
        app: FastAPI,
        definitions: Optional[Dict[str, Any]] = None,
        keep_generated_operation_ids: bool = False,
    ) -> None:
        self.app = app
        self.definitions = definitions or {}
        self.keep_generated_operation_ids = keep_generated_operation_ids
        self._ready = False

    def mark_ready(self) -> None:
        # Routes added after an early openapi() call must show up.
        self.app.openapi_schema = None
        self._ready = True

    def current_document(self) -> Dict[str, Any]:
        if not self._ready:
            raise RegistrationIncompleteError(
                "OpenAPI document requested before route registration finished"
            )
        document = copy.deepcopy(self.app.openapi())
        if self.definitions:
            document = deep_merge(document, self.definitions)
        if not self.keep_generated_operation_ids:
            self._strip_generated_operation_ids(document)
        logger.debug("Extracted OpenAPI document with %s paths", len(document.get("paths") or {}))
        return document

    def _explicit_operations(self) -> Set[Tuple[str, str]]:
        explicit: Set[Tuple[str, str]] = set()
        for route in self.app.routes:
            if not isinstance(route, APIRoute) or not route.include_in_schema:
                continue
            declared = route.operation_id or (route.openapi_extra or {}).get("operationId")
            if declared:
                explicit.update((route.path_format, method.lower()) for method in route.methods)
        return explicit

    def _strip_generated_operation_ids(self, document: Dict[str, Any]) -> None:
        explicit = self._explicit_operations()
        for path, path_item in (document.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if not isinstance(operation, dict) or "operationId" not in operation:
                    continue
                if (path, method) not in explicit:
                    del operation["operationId"]
