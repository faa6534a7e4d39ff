"""Locale to transcription-language mapping."""

from __future__ import annotations

from typing import Optional

AUTO_DETECT = "auto"

LANGUAGE_MAP = {
    "ko-KR": "ko",
    "en-US": "en",
    "en-GB": "en",
    "ja-JP": "ja",
    "zh-CN": "zh",
    "zh-TW": "zh",
    "es-ES": "es",
    "fr-FR": "fr",
    "de-DE": "de",
    "it-IT": "it",
    "pt-PT": "pt",
    "ru-RU": "ru",
}


def map_language_code(language: Optional[str]) -> str:
    """Return the two-letter code the vendor expects, or ``"auto"``."""
    if not language:
        return AUTO_DETECT
    mapped = LANGUAGE_MAP.get(language)
    if mapped:
        return mapped
    if "-" in language:
        return language.split("-", 1)[0] or AUTO_DETECT
    return language


__all__ = ["AUTO_DETECT", "LANGUAGE_MAP", "map_language_code"]
