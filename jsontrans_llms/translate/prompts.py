"""
Prompt construction and response parsing for LLM translators.

Single-key requests send one string; batch requests send a numbered list

    1. "Home"
    2. "About us"

and expect the model to answer with the same numbering. The system prompt
can be extended with a project-specific message (``--system`` on the CLI or
``CUSTOM_SYSTEM_MESSAGE`` in the environment).
"""

from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


LANGUAGE_NAMES = {
    "es": "Spanish", "de": "German", "fr": "French", "it": "Italian",
    "pt": "Portuguese", "nl": "Dutch", "pl": "Polish", "ru": "Russian",
    "ja": "Japanese", "ko": "Korean", "zh": "Chinese", "ar": "Arabic",
    "tr": "Turkish", "sv": "Swedish", "no": "Norwegian", "da": "Danish",
    "fi": "Finnish", "cs": "Czech", "sk": "Slovak", "hu": "Hungarian",
    "ro": "Romanian", "bg": "Bulgarian", "hr": "Croatian", "sl": "Slovenian",
    "et": "Estonian", "lv": "Latvian", "lt": "Lithuanian", "uk": "Ukrainian",
    "sr": "Serbian", "el": "Greek", "he": "Hebrew", "th": "Thai",
    "vi": "Vietnamese", "id": "Indonesian", "ms": "Malay", "hi": "Hindi",
    "bn": "Bengali", "ur": "Urdu", "fa": "Persian", "ta": "Tamil",
    "te": "Telugu", "kn": "Kannada", "ml": "Malayalam", "gu": "Gujarati",
    "pa": "Punjabi", "mr": "Marathi", "ne": "Nepali", "si": "Sinhala",
    "my": "Burmese", "km": "Khmer", "lo": "Lao", "mn": "Mongolian",
    "ka": "Georgian", "am": "Amharic", "sw": "Swahili", "yo": "Yoruba",
    "ig": "Igbo", "ha": "Hausa", "zu": "Zulu", "af": "Afrikaans",
    "is": "Icelandic", "mt": "Maltese", "cy": "Welsh", "ga": "Irish",
    "sq": "Albanian", "mk": "Macedonian", "bs": "Bosnian", "me": "Montenegrin",
    "ky": "Kyrgyz", "kk": "Kazakh", "uz": "Uzbek", "tg": "Tajik",
    "tk": "Turkmen", "az": "Azerbaijani", "hy": "Armenian", "bo": "Tibetan",
    "dz": "Dzongkha", "tl": "Tagalog", "ceb": "Cebuano", "jv": "Javanese",
    "su": "Sundanese", "ps": "Pashto", "sd": "Sindhi",
}

# Tone hints keyed by the first component of the key path
CONTEXT_PROMPTS = {
    "navigation": "Translate this UI navigation label to {lang}. Keep it short and clear.",
    "hero": "Translate this marketing hero text to {lang}. Maintain the marketing tone and impact.",
    "services": "Translate this service description to {lang}. Keep it professional and clear.",
    "quote": "Translate this quote form text to {lang}. Keep it user-friendly and clear.",
    "contact": "Translate this contact form text to {lang}. Keep it professional and welcoming.",
    "footer": "Translate this footer text to {lang}. Keep it concise and professional.",
    "errors": "Translate this error message to {lang}. Keep it user-friendly and helpful.",
    "validation": "Translate this form validation message to {lang}. Keep it clear and helpful.",
    "common": "Translate this common UI text to {lang}. Keep it simple and clear.",
}
DEFAULT_CONTEXT_PROMPT = (
    "Translate this text to {lang}. Keep it natural and appropriate for the context."
)

_NUMBERED_LINE = re.compile(r"^\s*(\d+)\.\s*(.*)$")
_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")


def get_language_name(code: str) -> str:
    """Full English name of a language code; regional codes fall back to the base.

    >>> get_language_name("pt-BR")
    'Portuguese (BR)'
    """
    if code in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[code]
    base, _, region = code.replace("_", "-").partition("-")
    if region and base.lower() in LANGUAGE_NAMES:
        return f"{LANGUAGE_NAMES[base.lower()]} ({region})"
    return code


def validate_language_code(code: str) -> str:
    """Return the language name, logging a warning for unknown codes."""
    name = get_language_name(code)
    if name == code:
        logger.warning("Unknown language code: %s", code)
    return name


def get_context_prompt(key_path: Optional[str], language: str) -> str:
    """Tone instruction for a key, chosen by its top-level section."""
    section = ""
    if key_path:
        section = re.split(r"[.\[]", str(key_path), maxsplit=1)[0]
    template = CONTEXT_PROMPTS.get(section, DEFAULT_CONTEXT_PROMPT)
    return template.format(lang=language)


def create_system_prompt(
    language: str,
    batch: bool = False,
    custom_message: Optional[str] = None,
) -> str:
    """System prompt for one target language."""
    language_name = get_language_name(language)
    text_word = "texts" if batch else "text"
    return_instruction = (
        "Return only the translated texts, numbered exactly as provided"
        if batch
        else "Return only the translated text, no explanations"
    )

    intro = "You are a professional translator."
    if custom_message:
        intro = f"{intro} {custom_message}"

    return "\n".join([
        intro,
        "",
        f"Translate the given {text_word} to {language_name}.",
        "",
        "Important guidelines:",
        "- Keep technical terms in English when appropriate (React, Next.js, TypeScript, etc.)",
        "- Preserve any HTML tags or placeholders like {variable}",
        "- Keep the translation natural and fluent",
        f"- {return_instruction}",
        "- Do not include explanations or additional text",
    ])


def create_user_prompt(text: str, language: str, key_path: Optional[str] = None) -> str:
    context = get_context_prompt(key_path, get_language_name(language))
    return f'{context}\n\nText to translate: "{text}"'


def create_batch_prompt(texts: list[str], language: str) -> str:
    numbered = "\n".join(f'{i}. "{text}"' for i, text in enumerate(texts, start=1))
    return f"Translate these texts to {get_language_name(language)}:\n\n{numbered}"


def clean_response(response: str) -> str:
    """Strip whitespace, code fences and one pair of surrounding quotes."""
    cleaned = response.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[-1].strip() == "```":
            lines = lines[1:-1]
        else:
            lines = lines[1:]
        cleaned = "\n".join(lines).strip()
    return _SURROUNDING_QUOTES.sub("", cleaned)


def parse_batch_response(response: str) -> list[str]:
    """Extract translations from a numbered model answer, in order.

    Lines that do not start with ``N.`` are ignored, as are empty items.
    """
    translations = []
    for line in response.strip().split("\n"):
        match = _NUMBERED_LINE.match(line)
        if not match:
            continue
        text = _SURROUNDING_QUOTES.sub("", match.group(2)).strip()
        if text:
            translations.append(text)
    return translations
