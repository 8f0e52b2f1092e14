"""Mock vendor clients for testing."""

from collections.abc import AsyncIterator, Iterable
from typing import Any

from genui.providers.llm.base import LLMMessage, VendorReply

Scripted = str | VendorReply | Exception


class MockVendorClients:
    """VendorClients that return scripted replies without network calls.

    Replies are looked up in order:
    1. the next scripted reply queued for the vendor (str, VendorReply or an
       exception to raise)
    2. the first trigger whose text appears in any message
    3. the default response
    """

    def __init__(
        self,
        configured: Iterable[str] = ("gemini", "openrouter", "groq", "openai", "anthropic"),
        default_response: str = "Mock response",
        responses: dict[str, str] | None = None,
        stream_chunk_size: int = 10,
    ) -> None:
        """Initialize mock clients.

        Args:
            configured: Vendors that report credentials
            default_response: Reply when nothing else matches
            responses: Trigger substring to reply text
            stream_chunk_size: Characters per streamed delta
        """
        self._configured = set(configured)
        self._default_response = default_response
        self._responses = dict(responses or {})
        self._stream_chunk_size = stream_chunk_size
        self._scripts: dict[str, list[Scripted]] = {}
        self._call_history: list[dict[str, Any]] = []

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Return history of calls for testing assertions."""
        return self._call_history

    def clear_history(self) -> None:
        self._call_history.clear()

    def script(self, vendor: str, *replies: Scripted) -> None:
        """Queue replies for a vendor, consumed one per call."""
        self._scripts.setdefault(vendor, []).extend(replies)

    def set_response(self, trigger: str, response: str) -> None:
        """Reply with `response` whenever a message contains `trigger`."""
        self._responses[trigger] = response

    def is_configured(self, vendor: str) -> bool:
        return vendor in self._configured

    async def complete(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        structured: bool,
        temperature: float,
        max_tokens: int,
    ) -> VendorReply:
        self._call_history.append({
            "vendor": vendor,
            "model": model,
            "messages": messages,
            "structured": structured,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        })
        return self._next_reply(vendor, messages)

    async def stream(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        self._call_history.append({
            "vendor": vendor,
            "model": model,
            "messages": messages,
            "structured": False,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        })
        content = self._next_reply(vendor, messages).text
        for i in range(0, len(content), self._stream_chunk_size):
            yield content[i : i + self._stream_chunk_size]

    def _next_reply(self, vendor: str, messages: list[LLMMessage]) -> VendorReply:
        queue = self._scripts.get(vendor)
        if queue:
            scripted = queue.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            if isinstance(scripted, VendorReply):
                return scripted
            return VendorReply(text=scripted)

        for trigger, response in self._responses.items():
            if any(trigger in message.content for message in messages):
                return VendorReply(text=response)

        return VendorReply(text=self._default_response)
