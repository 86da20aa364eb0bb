"""
Tests for the LLM translators using fake provider clients.

No network access: every provider client is replaced through ClientPool
factories.

Run with: pytest tests/test_llm.py -v
"""

from types import SimpleNamespace

import pytest

from jsontrans_llms.config import ConfigurationError
from jsontrans_llms.translate.base import (
    BatchMismatchError,
    DummyTranslator,
    TranslationError,
    create_translator,
)
from jsontrans_llms.translate.llm import (
    AnthropicTranslator,
    ClientPool,
    GoogleTranslator,
    LLMConfig,
    OpenAITranslator,
    check_health,
    create_llm_translator,
)


class FakeOpenAI:
    """Mimics client.chat.completions.create()."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )


class FakeAnthropic:
    """Mimics client.messages.create()."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=self.reply)],
            usage=SimpleNamespace(input_tokens=7, output_tokens=3),
        )


class FakeGemini:
    """Mimics client.models.generate_content()."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []
        self.models = SimpleNamespace(generate_content=self._generate)

    def _generate(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(
            text=self.reply,
            usage_metadata=SimpleNamespace(
                prompt_token_count=4, candidates_token_count=2, total_token_count=6
            ),
        )


def pool_with(provider, client):
    return ClientPool({provider: lambda api_key, base_url: client})


def openai_translator(client, **config):
    return OpenAITranslator(
        LLMConfig(model="gpt-4o-mini", api_key="sk-test", **config),
        pool_with("openai", client),
    )


class TestClientPool:
    """Tests for the shared client pool."""

    def test_client_is_created_once(self):
        created = []
        pool = ClientPool({"openai": lambda key, url: created.append(key) or object()})
        first = pool.get("openai", "sk-1")
        assert pool.get("openai", "sk-1") is first
        assert created == ["sk-1"]
        assert "openai" in pool

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            ClientPool().get("mistral", "key")

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            ClientPool({"openai": lambda key, url: object()}).get("openai", None)


class TestOpenAITranslator:
    """Tests for single and batch requests."""

    def test_translate(self):
        client = FakeOpenAI(['"Hola"'])
        result = openai_translator(client).translate("Hello", "es", "hero.title")

        assert result.text == "Hola"
        assert result.source_text == "Hello"
        assert result.usage.total_tokens == 15
        request = client.requests[0]
        assert request["model"] == "gpt-4o-mini"
        assert request["messages"][0]["role"] == "system"
        assert "marketing" in request["messages"][1]["content"]

    def test_custom_system_message(self):
        client = FakeOpenAI(["Hola"])
        openai_translator(client, custom_system_message="Use formal tone.").translate("Hello", "es")
        assert "Use formal tone." in client.requests[0]["messages"][0]["content"]

    def test_batch(self):
        client = FakeOpenAI(['1. "Inicio"\n2. "Contacto"'])
        results = openai_translator(client).translate_batch(
            ["Home", "Contact"], "es", ["nav.home", "nav.contact"]
        )
        assert [r.text for r in results] == ["Inicio", "Contacto"]
        assert results[0].usage.total_tokens == 15
        assert results[1].usage is None
        assert results[1].metadata["key"] == "nav.contact"

    def test_empty_batch_sends_nothing(self):
        client = FakeOpenAI([])
        assert openai_translator(client).translate_batch([], "es") == []
        assert client.requests == []

    def test_batch_mismatch(self):
        client = FakeOpenAI(['1. "Inicio"'])
        with pytest.raises(BatchMismatchError) as exc:
            openai_translator(client).translate_batch(["Home", "Contact"], "es")
        assert exc.value.expected == 2
        assert exc.value.received == 1

    def test_empty_response(self):
        client = FakeOpenAI(["   "])
        with pytest.raises(TranslationError):
            openai_translator(client).translate("Hello", "es")

    def test_client_errors_are_wrapped(self):
        cause = RuntimeError("connection refused")
        client = FakeOpenAI([cause])
        with pytest.raises(TranslationError) as exc:
            openai_translator(client).translate("Hello", "es")
        assert exc.value.__cause__ is cause

    def test_health(self):
        client = FakeOpenAI(["Hi"])
        assert check_health(openai_translator(client))
        assert client.requests[0]["max_tokens"] == 5

    def test_health_failure(self):
        client = FakeOpenAI([RuntimeError("unauthorized")])
        assert check_health(openai_translator(client)) is False


class TestOtherProviders:
    """Anthropic and Gemini map their responses to the same results."""

    def test_anthropic(self):
        client = FakeAnthropic("Bonjour")
        translator = AnthropicTranslator(
            LLMConfig(model="claude-3-haiku-20240307", api_key="key"),
            pool_with("anthropic", client),
        )
        result = translator.translate("Hello", "fr")
        assert result.text == "Bonjour"
        assert result.usage.total_tokens == 10
        assert "French" in client.requests[0]["system"]

    def test_gemini(self):
        client = FakeGemini("Hallo")
        translator = GoogleTranslator(
            LLMConfig(model="gemini-2.5-flash", api_key="key"),
            pool_with("google", client),
        )
        result = translator.translate("Hello", "de")
        assert result.text == "Hallo"
        assert result.usage.total_tokens == 6
        assert client.requests[0]["model"] == "gemini-2.5-flash"


class TestFactories:
    """Tests for create_translator and create_llm_translator."""

    def test_dummy(self):
        translator = create_translator("dummy")
        assert isinstance(translator, DummyTranslator)
        assert translator.translate("Hello", "es").text == "[es] Hello"
        assert create_translator("echo").translate("Hello", "es").text == "Hello"

    def test_dummy_modes(self):
        assert DummyTranslator("upper").translate("abc", "es").text == "ABC"
        assert DummyTranslator("reverse").translate("abc", "es").text == "cba"

    def test_unknown_model(self):
        with pytest.raises(ConfigurationError):
            create_llm_translator("not-a-model", api_key="key")

    def test_provider_selection(self):
        assert isinstance(create_llm_translator("gpt-4o", api_key="k"), OpenAITranslator)
        assert isinstance(
            create_llm_translator("claude-3-5-sonnet-20241022", api_key="k"), AnthropicTranslator
        )
        assert isinstance(create_llm_translator("gemini-2.5-flash", api_key="k"), GoogleTranslator)

    def test_key_and_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_KEY", "sk-env")
        monkeypatch.setenv("PROVIDER_PROXY_URL", "https://proxy.example/v1")
        monkeypatch.setenv("CUSTOM_SYSTEM_MESSAGE", "Keep brand names.")
        translator = create_llm_translator("gpt-4o-mini")
        assert translator.config.api_key == "sk-env"
        assert translator.config.base_url == "https://proxy.example/v1"
        assert translator.config.custom_system_message == "Keep brand names."

    def test_default_url(self, monkeypatch):
        monkeypatch.delenv("PROVIDER_PROXY_URL", raising=False)
        translator = create_llm_translator("gpt-4o-mini", api_key="k")
        assert translator.config.base_url == "https://api.openai.com/v1"
        assert translator.name == "openai-gpt-4o-mini"
