"""
Tests for prompt construction and response parsing.

Run with: pytest tests/test_prompts.py -v
"""

from jsontrans_llms.translate.prompts import (
    DEFAULT_CONTEXT_PROMPT,
    clean_response,
    create_batch_prompt,
    create_system_prompt,
    create_user_prompt,
    get_context_prompt,
    get_language_name,
    parse_batch_response,
    validate_language_code,
)


class TestLanguageNames:
    """Tests for language code lookup."""

    def test_known(self):
        assert get_language_name("es") == "Spanish"

    def test_regional(self):
        assert get_language_name("pt-BR") == "Portuguese (BR)"
        assert get_language_name("zh_TW") == "Chinese (TW)"

    def test_unknown_falls_back_to_code(self):
        assert get_language_name("xx") == "xx"

    def test_validate_warns(self, caplog):
        assert validate_language_code("xx") == "xx"
        assert "Unknown language code: xx" in caplog.text


class TestPrompts:
    """Tests for system, user and batch prompts."""

    def test_context_by_section(self):
        assert "navigation label" in get_context_prompt("navigation.home", "Spanish")
        assert "error message" in get_context_prompt("errors[0]", "Spanish")
        assert get_context_prompt("other.key", "Spanish") == DEFAULT_CONTEXT_PROMPT.format(lang="Spanish")
        assert get_context_prompt(None, "Spanish") == DEFAULT_CONTEXT_PROMPT.format(lang="Spanish")

    def test_system_prompt(self):
        prompt = create_system_prompt("de")
        assert prompt.startswith("You are a professional translator.")
        assert "to German" in prompt
        assert "Return only the translated text" in prompt

    def test_batch_system_prompt_with_custom_message(self):
        prompt = create_system_prompt("fr", batch=True, custom_message="Use informal tone.")
        assert prompt.startswith("You are a professional translator. Use informal tone.")
        assert "numbered exactly as provided" in prompt

    def test_user_prompt(self):
        prompt = create_user_prompt("Home", "es", "navigation.home")
        assert "Spanish" in prompt
        assert prompt.endswith('Text to translate: "Home"')

    def test_batch_prompt(self):
        prompt = create_batch_prompt(["Home", "About us"], "es")
        assert prompt == 'Translate these texts to Spanish:\n\n1. "Home"\n2. "About us"'


class TestResponseParsing:
    """Tests for cleaning model answers."""

    def test_clean_quotes_and_whitespace(self):
        assert clean_response('  "Hola"  ') == "Hola"
        assert clean_response("'Hola'") == "Hola"

    def test_clean_code_fence(self):
        assert clean_response("```\nHola\n```") == "Hola"
        assert clean_response("```text\nHola") == "Hola"

    def test_parse_numbered(self):
        response = 'Here you go:\n1. "Inicio"\n2. Sobre nosotros\n\n3. "Contacto"'
        assert parse_batch_response(response) == ["Inicio", "Sobre nosotros", "Contacto"]

    def test_parse_skips_empty_items(self):
        assert parse_batch_response('1. ""\n2. "B"') == ["B"]
