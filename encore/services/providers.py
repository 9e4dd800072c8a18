"""
Provider gateway: one send()/test_connection() surface over two LLM backends.

  primary   → Groq, OpenAI-compatible chat completions (messages passed through)
  secondary → Google Gemini generateContent (system instruction + parts)

Both replies are normalized to NormalizedResponse(content). Nothing here
retries: network failures raise TransportError, non-2xx raises ProviderError,
an empty reply raises EmptyResponseError, a missing key raises
ConfigurationError. Retrying is the caller's decision.

Usage:
    gateway = ProviderGateway(settings, preferences)
    reply = await gateway.send([{"role": "user", "content": "Hi"}])
    result = await gateway.test_connection()
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from ..core.config import Settings
from ..core.errors import (
    AccountRestrictedError,
    ConfigurationError,
    EmptyResponseError,
    EncoreError,
    ProviderError,
    TransportError,
    ValidationError,
)
from ..core.storage import LocalStore

logger = logging.getLogger(__name__)

PRIMARY = "primary"
SECONDARY = "secondary"
PROVIDERS = (PRIMARY, SECONDARY)

# Older clients send the backend name instead of the slot
PROVIDER_ALIASES = {"groq": PRIMARY, "gemini": SECONDARY}

# Substrings in a failure body that point at the account/project, not the network.
# Observed empirically; revisit against real provider responses.
ACCOUNT_RESTRICTED_PHRASES = ("must contain", "empty", "quota")

PROBE_PROMPT = "Reply with just: OK"
PROBE_MAX_TOKENS = 10

VALID_ROLES = {"system", "user", "assistant"}


# ── Types ────────────────────────────────────────────────────────────

class ProviderConfig(BaseModel):
    provider_id: str
    display_name: str
    credential: str
    model: str
    base_url: str


class SendOptions(BaseModel):
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class NormalizedResponse(BaseModel):
    content: str
    provider_id: str = ""
    model: str = ""


class ConnectionResult(BaseModel):
    success: bool
    provider_name: Optional[str] = None
    model_name: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


def normalize_provider(provider: Optional[str]) -> str:
    p = (provider or PRIMARY).strip().lower()
    p = PROVIDER_ALIASES.get(p, p)
    if p not in PROVIDERS:
        raise ValidationError(f"Unknown provider '{provider}'. Use one of: {', '.join(PROVIDERS)}")
    return p


def classify_failure(error: EncoreError) -> EncoreError:
    """
    Re-label a failure as AccountRestrictedError when its raw response body
    contains one of ACCOUNT_RESTRICTED_PHRASES. Only ProviderError and
    EmptyResponseError carry a body. Anything else is returned unchanged.
    """
    text = getattr(error, "body", "")
    lowered = (text or "").lower()
    if any(phrase in lowered for phrase in ACCOUNT_RESTRICTED_PHRASES):
        return AccountRestrictedError(error.message)
    return error


def to_openai_format(response: NormalizedResponse) -> dict:
    """Wire shape returned by the chat proxy, whatever backend answered."""
    return {
        "choices": [{"message": {"role": "assistant", "content": response.content}}],
        "model": response.model,
        "provider": response.provider_id,
    }


# ── Persisted operator preferences ───────────────────────────────────

PREFERENCES_NAMESPACE = "settings"
PREFERENCES_KEY = "provider"


class ProviderPreferences(BaseModel):
    provider: str = PRIMARY
    manual_mode: bool = False
    # Client-held keys: local development only, server settings always win
    client_keys: dict[str, str] = Field(default_factory=dict)


class PreferenceStore:
    """Provider selection + manual mode, persisted in the local tier."""

    def __init__(self, local: LocalStore, default_provider: str = PRIMARY, default_manual: bool = False):
        self.local = local
        self._defaults = ProviderPreferences(
            provider=normalize_provider(default_provider),
            manual_mode=default_manual,
        )

    def load(self) -> ProviderPreferences:
        raw = self.local.read(PREFERENCES_NAMESPACE, PREFERENCES_KEY)
        if not raw:
            return self._defaults.model_copy(deep=True)
        try:
            return ProviderPreferences.model_validate(raw)
        except ValueError as e:
            logger.warning("Unreadable provider preferences, using defaults: %s", e)
            return self._defaults.model_copy(deep=True)

    def save(self, prefs: ProviderPreferences) -> None:
        self.local.write(PREFERENCES_NAMESPACE, PREFERENCES_KEY, prefs.model_dump(mode="json"))

    def set_provider(self, provider: str) -> ProviderPreferences:
        prefs = self.load()
        prefs.provider = normalize_provider(provider)
        self.save(prefs)
        logger.info("LLM provider set to %s", prefs.provider)
        return prefs

    def set_manual_mode(self, active: bool) -> ProviderPreferences:
        prefs = self.load()
        prefs.manual_mode = bool(active)
        self.save(prefs)
        logger.info("Manual mode %s", "on" if prefs.manual_mode else "off")
        return prefs

    def set_client_key(self, provider: str, key: str) -> ProviderPreferences:
        prefs = self.load()
        prefs.client_keys[normalize_provider(provider)] = (key or "").strip()
        self.save(prefs)
        return prefs


# ── Adapters ─────────────────────────────────────────────────────────

class ProviderAdapter(ABC):
    """Translates normalized messages to one backend's wire format and back."""

    @abstractmethod
    def build_request(
        self, config: ProviderConfig, messages: list[dict], temperature: float, max_tokens: int,
    ) -> dict[str, Any]:
        """Keyword arguments for httpx.AsyncClient.post()."""
        ...

    @abstractmethod
    def extract_content(self, data: dict) -> str:
        ...


class OpenAICompatibleAdapter(ProviderAdapter):
    def build_request(self, config, messages, temperature, max_tokens):
        return {
            "url": f"{config.base_url.rstrip('/')}/chat/completions",
            "headers": {
                "Authorization": f"Bearer {config.credential}",
                "Content-Type": "application/json",
            },
            "json": {
                "model": config.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        }

    def extract_content(self, data):
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


class GeminiAdapter(ProviderAdapter):
    """
    Gemini has no system role in `contents`: the first system message goes to
    `systemInstruction`, assistant turns become "model", text is wrapped in parts.
    """

    def build_request(self, config, messages, temperature, max_tokens):
        system_text = next((m["content"] for m in messages if m["role"] == "system"), None)
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        return {
            "url": f"{config.base_url.rstrip('/')}/models/{config.model}:generateContent",
            "params": {"key": config.credential},
            "headers": {"Content-Type": "application/json"},
            "json": body,
        }

    def extract_content(self, data):
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


ADAPTERS: dict[str, ProviderAdapter] = {
    PRIMARY: OpenAICompatibleAdapter(),
    SECONDARY: GeminiAdapter(),
}


# ── Gateway ──────────────────────────────────────────────────────────

class ProviderGateway:
    def __init__(
        self,
        settings: Settings,
        preferences: PreferenceStore,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.preferences = preferences
        self._owns_client = client is None
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.llm_timeout_seconds, connect=10),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if the gateway created it. Call on shutdown."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ── Configuration ────────────────────────────────────────────────

    @property
    def provider_id(self) -> str:
        return self.preferences.load().provider

    @property
    def manual_mode(self) -> bool:
        return self.preferences.load().manual_mode

    def config_for(self, provider: Optional[str] = None) -> ProviderConfig:
        """Server-side key first, then the client-held key (dev only)."""
        p = normalize_provider(provider or self.provider_id)
        s = self.settings
        client_keys = self.preferences.load().client_keys

        if p == SECONDARY:
            credential = s.gemini_api_key or client_keys.get(SECONDARY, "")
            config = ProviderConfig(
                provider_id=p, display_name="Gemini", credential=credential,
                model=s.gemini_model, base_url=s.gemini_base_url,
            )
        else:
            credential = s.groq_api_key or client_keys.get(PRIMARY, "")
            config = ProviderConfig(
                provider_id=p, display_name="Groq", credential=credential,
                model=s.groq_model, base_url=s.groq_base_url,
            )

        if not config.credential:
            raise ConfigurationError(
                f"No API key for {config.display_name}. "
                f"Set {'GEMINI_API_KEY' if p == SECONDARY else 'GROQ_API_KEY'}."
            )
        return config

    # ── Send ─────────────────────────────────────────────────────────

    async def send(
        self,
        messages: list[dict],
        options: Optional[SendOptions] = None,
        provider: Optional[str] = None,
    ) -> NormalizedResponse:
        if not messages:
            raise ValidationError("messages must be a non-empty list")
        for m in messages:
            if m.get("role") not in VALID_ROLES or not isinstance(m.get("content"), str):
                raise ValidationError("each message needs a role (system|user|assistant) and text content")

        options = options or SendOptions()
        config = self.config_for(provider)
        adapter = ADAPTERS[config.provider_id]
        temperature = options.temperature if options.temperature is not None else self.settings.default_llm_temperature
        max_tokens = options.max_tokens or self.settings.default_llm_max_tokens

        request = adapter.build_request(config, messages, temperature, max_tokens)
        url = request.pop("url")

        start = time.monotonic()
        try:
            resp = await self._get_client().post(url, **request)
        except httpx.HTTPError as e:
            logger.error("%s request failed after %.1fs: %s", config.display_name, time.monotonic() - start, e)
            raise TransportError(str(e) or e.__class__.__name__) from e

        if resp.status_code >= 400:
            body = resp.text
            logger.error("%s API error %d: %s", config.display_name, resp.status_code, body[:500])
            raise ProviderError(resp.status_code, body, provider=config.display_name)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        content = adapter.extract_content(data)
        if not content or not content.strip():
            raise EmptyResponseError(f"Empty response from {config.display_name}", body=resp.text)

        logger.info(
            "LLM %s: %dms | messages=%d | model=%s",
            config.provider_id, int((time.monotonic() - start) * 1000), len(messages), config.model,
        )
        return NormalizedResponse(content=content, provider_id=config.provider_id, model=config.model)

    # ── Connectivity probe ───────────────────────────────────────────

    async def test_connection(self, provider: Optional[str] = None) -> ConnectionResult:
        try:
            config = self.config_for(provider)
            await self.send(
                [{"role": "user", "content": PROBE_PROMPT}],
                SendOptions(max_tokens=PROBE_MAX_TOKENS),
                provider=config.provider_id,
            )
        except (ProviderError, EmptyResponseError) as e:
            failure = classify_failure(e)
            logger.warning("Connection test failed (%s): %s", failure.kind, e)
            return ConnectionResult(success=False, error=failure.message, error_kind=failure.kind)
        except EncoreError as e:
            logger.warning("Connection test failed (%s): %s", e.kind, e)
            return ConnectionResult(success=False, error=e.message, error_kind=e.kind)

        return ConnectionResult(success=True, provider_name=config.display_name, model_name=config.model)
