"""
Character-range language detection for story input.

Counts characters falling in four script buckets and picks the first
language whose share of the whole text clears its threshold. Characters
outside every bucket (digits, punctuation, whitespace, emoji) still count
toward the total.
"""

from __future__ import annotations

from comicbook.pipeline.models import LanguageMode, LanguageTag

CJK_THRESHOLD = 0.2
LATIN_THRESHOLD = 0.3

LANGUAGE_NAMES: dict[LanguageTag, str] = {
    LanguageTag.ZH: "Chinese",
    LanguageTag.EN: "English",
    LanguageTag.JA: "Japanese",
    LanguageTag.KO: "Korean",
}


def _is_chinese(code: int) -> bool:
    # CJK Unified Ideographs and Extension A
    return 0x4E00 <= code <= 0x9FFF or 0x3400 <= code <= 0x4DBF


def _is_japanese_kana(code: int) -> bool:
    return 0x3040 <= code <= 0x309F or 0x30A0 <= code <= 0x30FF


def _is_hangul(code: int) -> bool:
    return 0xAC00 <= code <= 0xD7AF


def _is_latin(code: int) -> bool:
    return 0x41 <= code <= 0x5A or 0x61 <= code <= 0x7A


def detect_language(text: str) -> LanguageTag:
    """Return the dominant language of ``text``, defaulting to English."""
    total = len(text or "")
    if total == 0:
        return LanguageTag.EN

    chinese = japanese = korean = latin = 0
    for char in text:
        code = ord(char)
        if _is_chinese(code):
            chinese += 1
        elif _is_japanese_kana(code):
            japanese += 1
        elif _is_hangul(code):
            korean += 1
        elif _is_latin(code):
            latin += 1

    ordered = (
        (LanguageTag.ZH, chinese, CJK_THRESHOLD),
        (LanguageTag.JA, japanese, CJK_THRESHOLD),
        (LanguageTag.KO, korean, CJK_THRESHOLD),
        (LanguageTag.EN, latin, LATIN_THRESHOLD),
    )
    for tag, count, threshold in ordered:
        if count / total > threshold:
            return tag
    return LanguageTag.EN


def language_name(tag: LanguageTag | str) -> str:
    """Human-readable English name used inside generation instructions."""
    try:
        return LANGUAGE_NAMES[LanguageTag(tag)]
    except ValueError:
        return "English"


def resolve_language(
    text: str,
    mode: LanguageMode = LanguageMode.AUTO,
    explicit: LanguageTag | None = None,
) -> LanguageTag:
    if mode is LanguageMode.EXPLICIT and explicit is not None:
        return explicit
    return detect_language(text)
