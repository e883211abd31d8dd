"""
LLM Service for the Nexus Grader
Chat completions against an ordered chain of OpenRouter models, first success wins
"""
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from ..utils.config import Settings, settings as default_settings
from ..utils.text_normalizer import normalize
from .credential_service import CredentialSource, SettingsCredentialSource


logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM-related errors"""
    pass


class TransportError(LLMError):
    """Network failure or timeout talking to a provider"""
    pass


class ProviderErrorKind(str, Enum):
    BAD_CREDENTIALS = "bad_credentials"
    ACCESS_DENIED = "access_denied"
    MODEL_UNAVAILABLE = "model_unavailable"
    RATE_LIMITED = "rate_limited"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    HTTP_ERROR = "http_error"


_KIND_MESSAGES = {
    ProviderErrorKind.BAD_CREDENTIALS: "Invalid or missing provider API key.",
    ProviderErrorKind.ACCESS_DENIED: "Access to this model is forbidden. Check your provider account.",
    ProviderErrorKind.RATE_LIMITED: "Rate limit reached for this model.",
    ProviderErrorKind.PROVIDER_UNAVAILABLE: "Provider is temporarily unavailable.",
}


def classify_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status code to a provider error kind"""
    if status_code == 401:
        return ProviderErrorKind.BAD_CREDENTIALS
    if status_code == 403:
        return ProviderErrorKind.ACCESS_DENIED
    if status_code in (404, 410):
        return ProviderErrorKind.MODEL_UNAVAILABLE
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ProviderErrorKind.PROVIDER_UNAVAILABLE
    return ProviderErrorKind.HTTP_ERROR


def default_status_message(status_code: int) -> str:
    if status_code == 404:
        return "Model not found on provider."
    if status_code == 410:
        return "Model has been deprecated or removed from provider."
    return _KIND_MESSAGES.get(classify_status(status_code), f"HTTP {status_code}")


class ProviderError(LLMError):
    """Non-success status from a provider, classified by code"""

    def __init__(self, model: str, status_code: int, message: Optional[str] = None):
        self.model = model
        self.status_code = status_code
        self.kind = classify_status(status_code)
        self.reason = message or default_status_message(status_code)
        super().__init__(f"{model}: {self.reason}")


class EmptyResponseError(LLMError):
    """Provider answered successfully but without usable content"""
    pass


class LLMResponseParsingError(LLMError):
    """Provider body was not the expected JSON shape"""
    pass


class AllProvidersExhaustedError(LLMError):
    """Every model in the fallback chain failed"""

    def __init__(self, errors: Sequence[LLMError]):
        self.errors = list(errors)
        self.last_error = self.errors[-1] if self.errors else None
        message = str(self.last_error) if self.last_error else "No provider models are configured."
        super().__init__(message)


def _error_message(body: Any) -> Optional[str]:
    """Structured ``error.message`` from an error body, if any"""
    if isinstance(body, dict):
        nested = body.get("error")
        if isinstance(nested, dict):
            body = nested
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def extract_content(data: Any) -> Optional[str]:
    """Completion text from ``choices[0].message.content`` (or a bare string message)"""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if isinstance(message, dict):
        content = message.get("content")
        return content if isinstance(content, str) else None
    if isinstance(message, str):
        return message
    return None


class LLMService:
    """Provider fallback client: tries each configured model in order, no same-model retries"""

    def __init__(
        self,
        models: Optional[Sequence[str]] = None,
        credentials: Optional[CredentialSource] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        self.models: List[str] = list(models if models is not None else self.settings.provider_models)
        self.credentials = credentials or SettingsCredentialSource(self.settings)
        self.base_url = self.settings.provider_base_url
        self.timeout = self.settings.request_timeout_seconds
        self.transport = transport

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        http_client = None
        if self.transport is not None:
            http_client = httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            default_headers={
                "HTTP-Referer": self.settings.app_url,
                "X-Title": self.settings.app_title,
            },
            http_client=http_client,
        )

    async def complete(
        self,
        system_message: str,
        user_message: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Return normalized completion text from the first model that succeeds.

        Raises:
            MissingCredentialsError: no API key is configured
            AllProvidersExhaustedError: every model failed; carries the last error
        """
        api_key = self.credentials.get_api_key()
        messages = [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user_message},
        ]
        temperature = self.settings.default_temperature if temperature is None else temperature
        max_tokens = self.settings.default_max_tokens if max_tokens is None else max_tokens

        errors: List[LLMError] = []
        async with self._build_client(api_key) as client:
            for model in self.models:
                try:
                    content = await self._complete_with_model(client, model, messages, temperature, max_tokens)
                except LLMError as e:
                    errors.append(e)
                    logger.warning(f"Provider model {model} failed: {e}")
                    continue

                logger.info(f"Provider model {model} answered after {len(errors)} failed attempt(s)")
                return content

        logger.error(f"All {len(self.models)} provider models failed")
        raise AllProvidersExhaustedError(errors)

    async def _complete_with_model(
        self,
        client: AsyncOpenAI,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            raw = await client.chat.completions.with_raw_response.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APIStatusError as e:
            raise ProviderError(model, e.status_code, _error_message(e.body)) from e
        except APIConnectionError as e:
            # APITimeoutError is a subclass; timeouts move on like any transport failure
            raise TransportError(f"{model}: {e}") from e
        except OpenAIError as e:
            raise LLMError(f"{model}: Unexpected provider client error: {e}") from e

        body = raw.http_response.text
        try:
            data = json.loads(body) if body else None
        except json.JSONDecodeError as e:
            raise LLMResponseParsingError(f"{model}: Provider returned a non-JSON body: {e}") from e

        # OpenRouter can report upstream failures inside a 200 body
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            code = data["error"].get("code")
            status_code = code if isinstance(code, int) else 502
            raise ProviderError(model, status_code, _error_message(data))

        content = extract_content(data)
        if not content or not content.strip():
            raise EmptyResponseError(f"{model}: Empty response from provider.")

        cleaned = normalize(content)
        if not cleaned:
            raise EmptyResponseError(f"{model}: Response held only reasoning or formatting.")
        return cleaned

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about the provider chain (no key material)"""
        return {
            "provider": "openrouter",
            "endpoint": self.base_url,
            "models": list(self.models),
            "timeout_seconds": self.timeout,
            "token_configured": self.credentials.is_configured(),
        }


# Global LLM service instance
llm_service = LLMService()
