"""OpenAI-compatible chat completion client with strict JSON-schema output."""

from typing import Any, Dict, Optional

import httpx

from policy_intake.core.base_llm_client import BaseLLMClient
from policy_intake.core.exceptions import APIClientError, ConfigurationError
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class OpenAIChatClient:
    """Wrapper around an OpenAI-compatible ``/chat/completions`` endpoint.

    The caller supplies the model per call so one client serves both the
    primary and the secondary tier.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: float = 4.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: API key
            base_url: Full chat completions URL
            timeout: Default request timeout in seconds
            transport: Optional httpx transport for tests
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def complete(
        self,
        system_prompt: str,
        document_text: str,
        json_schema: Dict[str, Any],
        model: str,
        temperature: float = 0,
        timeout_ms: Optional[int] = None,
    ) -> str:
        """Run one structured completion and return the raw message content.

        Args:
            system_prompt: Extraction rules
            document_text: Text the model may read, wrapped in ``<pdf>`` tags
            json_schema: ``{"name", "schema", "strict"}`` block for ``response_format``
            model: Model identifier
            temperature: Sampling temperature, 0 for deterministic decoding
            timeout_ms: Hard request timeout in milliseconds

        Returns:
            The model's message content, possibly an empty string

        Raises:
            ConfigurationError: If no API key is configured
            APIClientError: If the call fails or the response has no choices
            APITimeoutError: If the call times out
        """
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        payload = {
            "model": model,
            "temperature": temperature,
            "response_format": {"type": "json_schema", "json_schema": json_schema},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": "pdfText follows between <pdf> tags"},
                {"role": "user", "content": f"<pdf>\n{document_text}\n</pdf>"},
                {
                    "role": "user",
                    "content": "Extract strictly per schema. If not explicitly found in <pdf>, return null.",
                },
            ],
        }

        timeout = timeout_ms / 1000 if timeout_ms is not None else self.timeout
        response = await self.client.call_api(payload=payload, timeout=timeout)

        try:
            content = response["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            LOGGER.error(
                "Unexpected completion response shape",
                extra={"model": model, "keys": list(response)[:10] if isinstance(response, dict) else None},
            )
            raise APIClientError("Completion response has no choices", original_error=e) from e

        return content or ""
