"""LLM-backed remediation guidance for a single violation.

The client talks to an OpenAI-compatible chat completions endpoint (Groq by
default). A streamed request is tried first so callers can show text while
it arrives; if the stream breaks, the same messages are sent once more as a
plain request. The client keeps no state between calls.
"""
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from core.config import DEFAULT_GROQ_API_URL, DEFAULT_GROQ_MODEL, DEFAULT_REMEDIATION_TIMEOUT, Settings
from core.errors import RemediationFailed
from remediation.credentials import StaticCredentialProvider

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated"

SYSTEM_PROMPT = (
    "You are an accessibility expert. Provide direct solutions without showing your thinking process."
)

USER_PROMPT = """Provide a concise solution for this accessibility issue without any reasoning steps or thinking process. Just provide:

1. The specific fix (actionable solution)
2. Code examples if applicable
3. Why this fix is important
4. Who it helps most

Issue: {rule_id}
Description: {description}
HTML Element: {html}"""

TEMPERATURE = 0.6
MAX_TOKENS = 1024


def build_messages(rule_id: str, description: str, html_context: Optional[str]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT.format(rule_id=rule_id, description=description, html=html_context or ""),
        },
    ]


def _parse_sse_line(line: str) -> Optional[str]:
    """Return the text delta carried by one SSE line, or None for non-content lines.

    Raises ValueError on malformed payloads and error events.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data or data == "[DONE]":
        return None
    event = json.loads(data)
    if not isinstance(event, dict):
        raise ValueError(f"Unexpected stream event: {data[:100]}")
    if "error" in event:
        raise ValueError(f"Stream error event: {event['error']}")
    choices = event.get("choices") or []
    if not choices:
        return None
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise ValueError(f"Unexpected stream choices: {choices!r}")
    delta = choices[0].get("delta") or {}
    if not isinstance(delta, dict):
        raise ValueError(f"Unexpected stream delta: {delta!r}")
    return _text(delta.get("content"))


def _text(content: Any) -> Optional[str]:
    if content is not None and not isinstance(content, str):
        raise ValueError(f"Unexpected completion content: {content!r}")
    return content or None


class RemediationClient:
    def __init__(
        self,
        credentials=None,
        api_url: str = DEFAULT_GROQ_API_URL,
        model: str = DEFAULT_GROQ_MODEL,
        timeout: float = DEFAULT_REMEDIATION_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials or StaticCredentialProvider(None)
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, credentials=None, transport=None) -> "RemediationClient":
        return cls(
            credentials=credentials or StaticCredentialProvider(settings.groq_api_key),
            api_url=settings.groq_api_url,
            model=settings.groq_model,
            timeout=settings.remediation_timeout,
            transport=transport,
        )

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self.transport)

    def _payload(self, messages: List[Dict[str, str]], stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "stream": stream,
        }

    async def _stream_completion(self, api_key: str, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """Yield text deltas from a streamed chat completion."""
        headers = {"Authorization": f"Bearer {api_key}"}
        async with self._http_client() as client:
            async with client.stream("POST", self.api_url, headers=headers, json=self._payload(messages, True)) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    delta = _parse_sse_line(line)
                    if delta:
                        yield delta

    async def _complete(self, api_key: str, messages: List[Dict[str, str]]) -> str:
        headers = {"Authorization": f"Bearer {api_key}"}
        async with self._http_client() as client:
            response = await client.post(self.api_url, headers=headers, json=self._payload(messages, False))
            response.raise_for_status()
            body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected completion body: {body!r}")
        choices = body.get("choices") or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise ValueError(f"Unexpected completion choices: {choices!r}")
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise ValueError(f"Unexpected completion message: {message!r}")
        return _text(message.get("content")) or ""

    async def iter_remediation(
        self, rule_id: str, description: str, html_context: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Yield the accumulated remediation text after every streamed chunk.

        The last yielded value is the final text. If the stream fails, the
        complete non-streamed answer is yielded once instead, with no streamed
        text mixed in.
        """
        api_key = await self.credentials.get_api_key()
        messages = build_messages(rule_id, description, html_context)
        logger.info(f"Requesting remediation for {rule_id}")

        buffer = ""
        try:
            async for chunk in self._stream_completion(api_key, messages):
                buffer += chunk
                yield buffer
        except (httpx.HTTPError, ValueError) as stream_error:
            logger.warning(f"Streaming failed for {rule_id}, falling back to non-streaming: {stream_error}")
            try:
                content = await self._complete(api_key, messages)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Remediation request for {rule_id} failed: {e}")
                raise RemediationFailed(f"Failed to get AI solution: {e}") from e
            yield content or NO_RESPONSE
            return

        if not buffer:
            yield NO_RESPONSE

    async def get_remediation(
        self,
        rule_id: str,
        description: str,
        html_context: Optional[str] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Return the final remediation text; ``on_progress`` sees every intermediate state."""
        final = NO_RESPONSE
        async for state in self.iter_remediation(rule_id, description, html_context):
            final = state
            if on_progress is not None:
                on_progress(state)
        return final
