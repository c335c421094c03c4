"""
LLM oracle client for the interview engine.

Talks to an OpenAI-compatible chat completions endpoint over httpx and
returns parsed JSON. Every failure mode (transport error, timeout, HTTP
status, unparsable content) surfaces as ``OracleUnavailableError`` so the
callers can apply their fallback policy.

Integrated with Langfuse for observability and tracing when configured.
"""

import json
import logging
from typing import Any

import httpx
from langfuse import Langfuse

from interview_engine.config.settings import Settings, get_settings
from interview_engine.core.errors import OracleUnavailableError

logger = logging.getLogger(__name__)


def parse_json_payload(text: str) -> Any:
    """
    Parse a JSON object or array out of model output.

    Tolerates markdown code fences and leading/trailing prose.

    Raises:
        ValueError: If no JSON value can be recovered
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object or array in the text
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = cleaned.find(open_char)
        end = cleaned.rfind(close_char) + 1
        if start >= 0 and end > start:
            try:
                return json.loads(cleaned[start:end])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"No JSON found in model output: {cleaned[:80]!r}")


class LLMClient:
    """
    Thin async client for the LLM scoring and generation oracles.

    Every request is bounded by ``llm_timeout_seconds``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Settings override (defaults to the cached settings)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings or get_settings()
        self.model = self.settings.llm_model
        self.client = httpx.AsyncClient(
            base_url=self.settings.llm_base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {self.settings.llm_api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.settings.llm_timeout_seconds,
            transport=transport,
        )

        self.langfuse = None
        if self.settings.langfuse_enabled:
            if self.settings.langfuse_secret_key and self.settings.langfuse_public_key:
                try:
                    self.langfuse = Langfuse(
                        secret_key=self.settings.langfuse_secret_key,
                        public_key=self.settings.langfuse_public_key,
                        host=self.settings.langfuse_base_url,
                    )
                    logger.info("Langfuse initialized for LLM observability")
                except Exception as e:
                    logger.warning(f"Failed to initialize Langfuse: {e}")
            else:
                logger.info("Langfuse keys not configured, tracing disabled")

    async def close(self):
        """Close the HTTP client and flush Langfuse."""
        await self.client.aclose()
        if self.langfuse:
            try:
                self.langfuse.flush()
            except Exception as e:
                logger.warning(f"Failed to flush Langfuse: {e}")

    def _extract_content(self, result: dict) -> str:
        """Extract text content from API response, handling list/dict formats."""
        content = result.get("choices", [{}])[0].get("message", {}).get("content", "")

        # Handle case where content is a list (multi-part response)
        if isinstance(content, list):
            text_parts = []
            for part in content:
                if isinstance(part, str):
                    text_parts.append(part)
                elif isinstance(part, dict) and "text" in part:
                    text_parts.append(part["text"])
            content = "".join(text_parts)

        return content if isinstance(content, str) else str(content)

    def _start_span(self, name: str, metadata: dict[str, Any]):
        if not self.langfuse:
            return None
        try:
            return self.langfuse.start_span(name=name, metadata=metadata)
        except Exception as lf_err:
            logger.warning(f"Langfuse span start failed: {lf_err}")
            return None

    def _end_span(self, span, output: dict[str, Any]) -> None:
        if not span:
            return
        try:
            span.update(output=output)
            span.end()
        except Exception as lf_err:
            logger.warning(f"Langfuse span end failed: {lf_err}")

    async def complete_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        trace_name: str = "llm_call",
        trace_metadata: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a prompt and parse the JSON reply.

        Args:
            prompt: User prompt
            system_prompt: Optional system message
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            trace_name: Name for the Langfuse span
            trace_metadata: Extra metadata for the span

        Returns:
            Parsed JSON (dict or list)

        Raises:
            OracleUnavailableError: On transport, timeout, HTTP or parse failure
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }

        span = self._start_span(trace_name, trace_metadata or {})
        try:
            response = await self.client.post(self.settings.llm_chat_endpoint, json=payload)
            response.raise_for_status()
            content = self._extract_content(response.json())
            parsed = parse_json_payload(content)
        except httpx.HTTPError as e:
            logger.error(f"LLM oracle error during {trace_name}: {e!r}")
            self._end_span(span, {"error": str(e)})
            raise OracleUnavailableError(f"{trace_name}: {e!r}") from e
        except (ValueError, KeyError, IndexError, AttributeError) as e:
            logger.warning(f"Failed to parse LLM output during {trace_name}: {e}")
            self._end_span(span, {"error": str(e)})
            raise OracleUnavailableError(f"{trace_name}: unparsable output") from e

        self._end_span(span, {"ok": True})
        return parsed
