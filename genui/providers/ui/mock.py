"""Scripted UI provider for testing."""

from collections.abc import AsyncIterator, Iterable
from typing import Any

from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.providers.ui.base import UIProvider


class MockUIProvider(UIProvider):
    """UIProvider that replays scripted chunks.

    Each call to generate_ui/update_ui consumes the next scripted run; the
    last run is repeated once the script is exhausted.
    """

    def __init__(
        self,
        name: str = "mock",
        runs: Iterable[list[UISchemaChunk]] | None = None,
        available: bool = True,
    ) -> None:
        """Initialize the mock provider.

        Args:
            name: Provider name
            runs: Chunk lists, one per call
            available: Value reported by is_available
        """
        self._name = name
        self._runs = list(runs or [[UISchemaChunk.complete({"type": "container", "children": []})]])
        self._available = available
        self.calls: list[dict[str, Any]] = []
        self.chunks_served = 0
        self.closed_runs = 0

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def generate_ui(self, context: GenerationContext) -> AsyncIterator[UISchemaChunk]:
        self.calls.append({"method": "generate_ui", "context": context})
        return self._replay()

    def update_ui(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
    ) -> AsyncIterator[UISchemaChunk]:
        self.calls.append({
            "method": "update_ui",
            "schema": schema,
            "interaction": interaction,
            "context": context,
        })
        return self._replay()

    async def _replay(self) -> AsyncIterator[UISchemaChunk]:
        run = self._runs.pop(0) if len(self._runs) > 1 else self._runs[0]
        try:
            for chunk in run:
                self.chunks_served += 1
                yield chunk
        finally:
            self.closed_runs += 1
