"""UIProvider abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext


class UIProvider(ABC):
    """Abstract interface for UI schema generation.

    A conforming provider streams zero or more `partial` chunks and then
    exactly one terminal chunk: `complete` with the schema, or `error` with a
    message and, when known, a machine code.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider can currently serve requests."""
        pass

    @abstractmethod
    def generate_ui(self, context: GenerationContext) -> AsyncIterator[UISchemaChunk]:
        """Stream a fresh UI schema for the context.

        Args:
            context: Enriched generation context

        Returns:
            Async iterator of chunks ending in one terminal chunk
        """
        pass

    @abstractmethod
    def update_ui(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
    ) -> AsyncIterator[UISchemaChunk]:
        """Stream an updated schema after a user interaction.

        Args:
            schema: Schema currently rendered
            interaction: The interaction event
            context: Enriched generation context

        Returns:
            Async iterator of chunks ending in one terminal chunk
        """
        pass
