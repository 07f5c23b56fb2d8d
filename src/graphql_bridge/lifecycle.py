"""Decides when the schema is synthesized and swaps it in exactly once."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from graphql import GraphQLSchema

from .dispatch import RequestAdapter
from .extractor import DocumentExtractor
from .models import SynthesisResult
from .synthesizer import placeholder_schema, synthesize


logger = logging.getLogger(__name__)


class LifecycleCoordinator:
    """Holds the live schema.

    Until ``ready()`` runs, ``schema`` is a placeholder whose only field is
    ``_placeholder``. Executions read ``schema`` once and keep that reference,
    so a swap never affects a query already in flight.
    """

    def __init__(
        self,
        extractor: DocumentExtractor,
        request_adapter: RequestAdapter,
        viewer: bool = True,
    ) -> None:
        self.extractor = extractor
        self.request_adapter = request_adapter
        self.viewer = viewer
        self.schema: GraphQLSchema = placeholder_schema()
        self.result: Optional[SynthesisResult] = None
        self._lock = asyncio.Lock()
        self.synthesis_count = 0

    @property
    def installed(self) -> bool:
        return self.result is not None

    @property
    def diagnostics(self) -> List[str]:
        return list(self.result.diagnostics) if self.result else []

    async def ready(self) -> GraphQLSchema:
        async with self._lock:
            if self.result is None:
                self._install()
            return self.schema

    async def reload(self) -> GraphQLSchema:
        async with self._lock:
            self._install()
            return self.schema

    def _install(self) -> None:
        self.extractor.mark_ready()
        document = self.extractor.current_document()
        self.synthesis_count += 1
        result = synthesize(document, self.request_adapter, viewer=self.viewer)
        self.result = result
        self.schema = result.schema
        logger.info(
            "Installed GraphQL schema (%s operations, %s diagnostics)",
            len(result.field_names),
            len(result.diagnostics),
        )
