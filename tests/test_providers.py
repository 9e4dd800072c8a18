"""
Tests for the provider gateway: wire formats, normalization, error mapping,
connection probe and persisted preferences.
"""

import json

import httpx
import pytest

from conftest import RecordingHandler, gemini_reply, make_gateway, openai_reply
from encore.core.config import Settings
from encore.core.errors import (
    AccountRestrictedError,
    ConfigurationError,
    EmptyResponseError,
    ProviderError,
    TransportError,
    ValidationError,
)
from encore.services.providers import (
    PROBE_MAX_TOKENS,
    PROBE_PROMPT,
    NormalizedResponse,
    PreferenceStore,
    SendOptions,
    classify_failure,
    normalize_provider,
    to_openai_format,
)

CONVERSATION = [
    {"role": "system", "content": "You are a strategist."},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello! What are we launching?"},
    {"role": "user", "content": "A single"},
]


def body(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestPrimary:
    @pytest.mark.asyncio
    async def test_messages_pass_through(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=openai_reply("Great, tell me more")))
        gateway = make_gateway(settings, local, handler)

        reply = await gateway.send(CONVERSATION, SendOptions(temperature=0.2, max_tokens=50))

        request = handler.requests[0]
        assert str(request.url) == "https://api.groq.com/openai/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer groq-test-key"
        assert body(request) == {
            "model": "llama-3.3-70b-versatile",
            "messages": CONVERSATION,
            "temperature": 0.2,
            "max_tokens": 50,
        }
        assert reply.content == "Great, tell me more"
        assert reply.provider_id == "primary"

    @pytest.mark.asyncio
    async def test_defaults_come_from_settings(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=openai_reply("ok")))
        gateway = make_gateway(settings, local, handler)

        await gateway.send([{"role": "user", "content": "Hi"}])

        sent = body(handler.requests[0])
        assert sent["temperature"] == 0.7
        assert sent["max_tokens"] == 2000


class TestSecondary:
    @pytest.mark.asyncio
    async def test_request_is_translated(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=gemini_reply("Olá")))
        gateway = make_gateway(settings, local, handler)

        reply = await gateway.send(CONVERSATION, SendOptions(max_tokens=99), provider="secondary")

        request = handler.requests[0]
        assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.url.params["key"] == "gemini-test-key"
        sent = body(request)
        assert sent["systemInstruction"] == {"parts": [{"text": "You are a strategist."}]}
        assert sent["contents"] == [
            {"role": "user", "parts": [{"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello! What are we launching?"}]},
            {"role": "user", "parts": [{"text": "A single"}]},
        ]
        assert sent["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 99}
        assert reply.content == "Olá"

    @pytest.mark.asyncio
    async def test_no_system_message_means_no_instruction(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=gemini_reply("ok")))
        gateway = make_gateway(settings, local, handler)

        await gateway.send([{"role": "user", "content": "Hi"}], provider="gemini")

        assert "systemInstruction" not in body(handler.requests[0])

    @pytest.mark.asyncio
    async def test_persisted_selection_is_used(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=gemini_reply("ok")))
        gateway = make_gateway(settings, local, handler)
        gateway.preferences.set_provider("secondary")

        reply = await gateway.send([{"role": "user", "content": "Hi"}])

        assert reply.provider_id == "secondary"
        assert "generateContent" in handler.requests[0].url.path


class TestFailures:
    @pytest.mark.asyncio
    async def test_empty_content_raises(self, settings, local):
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200, json=openai_reply(""))))

        with pytest.raises(EmptyResponseError):
            await gateway.send([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_missing_candidates_raises(self, settings, local):
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200, json={"candidates": []})))

        with pytest.raises(EmptyResponseError):
            await gateway.send([{"role": "user", "content": "Hi"}], provider="secondary")

    @pytest.mark.asyncio
    async def test_non_2xx_keeps_status_and_body(self, settings, local):
        handler = RecordingHandler(httpx.Response(429, text='{"error": {"message": "rate limited"}}'))
        gateway = make_gateway(settings, local, handler)

        with pytest.raises(ProviderError) as excinfo:
            await gateway.send([{"role": "user", "content": "Hi"}])

        assert excinfo.value.status == 429
        assert "rate limited" in excinfo.value.body
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_not_retried(self, settings, local):
        handler = RecordingHandler(httpx.Response(503, text="unavailable"))
        gateway = make_gateway(settings, local, handler)

        with pytest.raises(ProviderError):
            await gateway.send([{"role": "user", "content": "Hi"}])
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, settings, local):
        handler = RecordingHandler(httpx.ConnectError("connection refused"))
        gateway = make_gateway(settings, local, handler)

        with pytest.raises(TransportError, match="connection refused"):
            await gateway.send([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_missing_credential(self, local):
        settings = Settings(LOCAL_STORAGE_PATH="unused", GROQ_API_KEY="", GEMINI_API_KEY="")
        handler = RecordingHandler(httpx.Response(200, json=openai_reply("never")))
        gateway = make_gateway(settings, local, handler)

        with pytest.raises(ConfigurationError):
            await gateway.send([{"role": "user", "content": "Hi"}])
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_bad_messages_are_rejected_before_io(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=openai_reply("never")))
        gateway = make_gateway(settings, local, handler)

        with pytest.raises(ValidationError):
            await gateway.send([])
        with pytest.raises(ValidationError):
            await gateway.send([{"role": "tool", "content": "x"}])
        assert handler.requests == []


class TestCredentials:
    def test_client_key_is_a_fallback(self, local):
        settings = Settings(LOCAL_STORAGE_PATH="unused", GROQ_API_KEY="", GEMINI_API_KEY="")
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200)))
        gateway.preferences.set_client_key("primary", " client-key ")

        assert gateway.config_for("primary").credential == "client-key"

    def test_server_key_wins(self, settings, local):
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200)))
        gateway.preferences.set_client_key("primary", "client-key")

        assert gateway.config_for("primary").credential == "groq-test-key"


class TestConnectionProbe:
    @pytest.mark.asyncio
    async def test_success(self, settings, local):
        handler = RecordingHandler(httpx.Response(200, json=openai_reply("OK")))
        gateway = make_gateway(settings, local, handler)

        result = await gateway.test_connection()

        assert result.success is True
        assert result.provider_name == "Groq"
        assert result.model_name == "llama-3.3-70b-versatile"
        sent = body(handler.requests[0])
        assert sent["messages"] == [{"role": "user", "content": PROBE_PROMPT}]
        assert sent["max_tokens"] == PROBE_MAX_TOKENS

    @pytest.mark.asyncio
    async def test_account_restriction_is_distinguished(self, settings, local):
        handler = RecordingHandler(
            httpx.Response(400, json={"error": "quota exceeded, must contain valid input"})
        )
        gateway = make_gateway(settings, local, handler)

        result = await gateway.test_connection("secondary")

        assert result.success is False
        assert result.error_kind == AccountRestrictedError.kind

    @pytest.mark.asyncio
    async def test_account_restriction_in_a_2xx_reply(self, settings, local):
        handler = RecordingHandler(
            httpx.Response(200, json={"error": "quota exceeded, must contain valid input"})
        )
        gateway = make_gateway(settings, local, handler)

        result = await gateway.test_connection()

        assert result.success is False
        assert result.error_kind == AccountRestrictedError.kind

    @pytest.mark.asyncio
    async def test_plain_empty_reply_stays_empty(self, settings, local):
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200, json={"choices": []})))

        result = await gateway.test_connection()

        assert result.success is False
        assert result.error_kind == EmptyResponseError.kind

    @pytest.mark.asyncio
    async def test_generic_failure(self, settings, local):
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(401, text="invalid api key")))

        result = await gateway.test_connection()

        assert result.success is False
        assert result.error_kind == ProviderError.kind

    @pytest.mark.asyncio
    async def test_missing_key_is_reported(self, local):
        settings = Settings(LOCAL_STORAGE_PATH="unused", GROQ_API_KEY="", GEMINI_API_KEY="")
        gateway = make_gateway(settings, local, RecordingHandler(httpx.Response(200)))

        result = await gateway.test_connection()

        assert result.success is False
        assert result.error_kind == ConfigurationError.kind


class TestClassifier:
    @pytest.mark.parametrize("text", [
        "Quota exceeded for project",
        "contents must contain at least one part",
        "Request body is EMPTY",
    ])
    def test_trigger_phrases(self, text):
        assert isinstance(classify_failure(ProviderError(400, text)), AccountRestrictedError)

    def test_other_errors_pass_through(self):
        error = ProviderError(500, "internal error")
        assert classify_failure(error) is error

    def test_empty_reply_body_is_classified(self):
        error = EmptyResponseError("Empty response from Groq", body='{"error": "quota exceeded"}')
        assert isinstance(classify_failure(error), AccountRestrictedError)

    def test_message_text_alone_does_not_trigger(self):
        error = EmptyResponseError("Empty response from Groq")
        assert classify_failure(error) is error


class TestHelpers:
    def test_normalize_provider_aliases(self):
        assert normalize_provider(None) == "primary"
        assert normalize_provider("groq") == "primary"
        assert normalize_provider("Gemini") == "secondary"
        with pytest.raises(ValidationError):
            normalize_provider("openai")

    def test_openai_format(self):
        shaped = to_openai_format(NormalizedResponse(content="hi", provider_id="secondary", model="m"))

        assert shaped["choices"][0]["message"] == {"role": "assistant", "content": "hi"}
        assert shaped["provider"] == "secondary"

    def test_preferences_persist(self, local):
        PreferenceStore(local).set_manual_mode(True)
        PreferenceStore(local).set_provider("secondary")

        prefs = PreferenceStore(local).load()
        assert prefs.manual_mode is True
        assert prefs.provider == "secondary"

    def test_preference_defaults_come_from_flags(self, local):
        prefs = PreferenceStore(local, default_provider="gemini", default_manual=True).load()

        assert prefs.provider == "secondary"
        assert prefs.manual_mode is True
