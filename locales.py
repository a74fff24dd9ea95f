"""Language to recognizer locale mapping."""

from __future__ import annotations

import re
from typing import List, Optional

# ISO 639-1 codes to SFSpeechRecognizer locale identifiers.
LANGUAGE_TO_LOCALE = {
    "en": "en-US",
    "tr": "tr-TR",
    "es": "es-ES",
    "fr": "fr-FR",
    "de": "de-DE",
    "it": "it-IT",
    "pt": "pt-BR",
    "ru": "ru-RU",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "zh": "zh-CN",
    "ar": "ar-SA",
}

_LOCALE_TAG = re.compile(r"^[a-z]{2,3}[-_][A-Za-z]{2,4}$")


def resolve_locale(language: Optional[str]) -> Optional[str]:
    """Return the locale for ``language``, or None for the recognizer default."""
    if not language or language == "auto":
        return None
    if language in LANGUAGE_TO_LOCALE:
        return LANGUAGE_TO_LOCALE[language]
    if _LOCALE_TAG.match(language):
        return language.replace("_", "-")
    return None


def build_stream_args(language: Optional[str]) -> List[str]:
    args = ["--stream"]
    locale = resolve_locale(language)
    if locale:
        args.extend(["--language", locale])
    return args
