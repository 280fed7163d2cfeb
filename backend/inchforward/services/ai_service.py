import httpx
import json
import logging
from typing import Optional
from inchforward.core.config import settings

logger = logging.getLogger("ai_service")


class SuggestionServiceError(Exception):
    """Base for every failure talking to the suggestion service."""


class UnsuccessfulRequestError(SuggestionServiceError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"Suggestion service returned {status_code}")
        self.status_code = status_code
        self.body = body


class ServiceUnreachableError(SuggestionServiceError):
    pass


class EmptyResponseError(SuggestionServiceError):
    pass


def _schema_instruction(schema: dict) -> str:
    return (
        "Reply with raw JSON only, no prose and no markdown fences. "
        "The JSON must match this schema:\n" + json.dumps(schema, indent=2)
    )


class SuggestionClient:
    """Chat-completion client for the Groq OpenAI-compatible API."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.base_url = (base_url or settings.GROQ_BASE_URL).rstrip("/")
        self.model = model or settings.AI_MODEL
        self._transport = transport
        logger.info(f"🔧 [AI SERVICE] Initialized with model {self.model}.")

    def _get_headers(self):
        return {
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json"
        }

    def _payload(self, prompt, schema, max_output_tokens, temperature, system_instruction):
        system = _schema_instruction(schema)
        if system_instruction:
            system = f"{system_instruction}\n\n{system}"
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
            "response_format": {"type": "json_object"} if schema.get("type") == "object" else None,
        }

    async def send(self, prompt: str, schema: dict, max_output_tokens: int = 1024,
                   temperature: float = 0.7, timeout_seconds: Optional[float] = None,
                   system_instruction: Optional[str] = None) -> str:
        """Send one prompt and return the raw text of the first choice."""
        payload = self._payload(prompt, schema, max_output_tokens, temperature, system_instruction)
        if payload["response_format"] is None:
            # JSON mode only accepts objects; arrays are requested through the prompt instead
            del payload["response_format"]

        timeout = httpx.Timeout(timeout_seconds or settings.AI_TIMEOUT_SECONDS, connect=10.0)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/chat/completions", headers=self._get_headers(), json=payload)
        except httpx.TimeoutException as e:
            logger.warning(f"⏱️ [AI SERVICE] Request timed out after {timeout.read}s: {e!r}")
            raise ServiceUnreachableError(f"request timed out after {timeout.read:g}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"🔥 [AI SERVICE] Transport failure: {e!r}")
            raise ServiceUnreachableError(str(e) or e.__class__.__name__) from e

        if resp.status_code != 200:
            body = resp.text
            logger.error(f"❌ [AI SERVICE] Request failed. Status: {resp.status_code}, Body: {body}")
            raise UnsuccessfulRequestError(resp.status_code, body)

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(f"❌ [AI SERVICE] Reply was not JSON: {resp.text[:500]}")
            raise EmptyResponseError("reply body was not JSON") from e
        if not isinstance(data, dict):
            logger.error(f"❌ [AI SERVICE] Reply was not a JSON object: {resp.text[:500]}")
            raise EmptyResponseError("reply body was not a JSON object")

        usage = data.get("usage")
        if isinstance(usage, dict) and usage:
            logger.info(
                f"📊 [AI SERVICE] Usage: {usage.get('prompt_tokens', 0)} prompt, "
                f"{usage.get('completion_tokens', 0)} completion, {usage.get('total_tokens', 0)} total tokens."
            )

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            logger.error("❌ [AI SERVICE] No valid text in response. Choices array was empty or missing.")
            raise EmptyResponseError("choices array was empty or missing")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            logger.error(f"❌ [AI SERVICE] No valid text in response. First choice: {first}")
            raise EmptyResponseError("first choice had no text content")
        return content
