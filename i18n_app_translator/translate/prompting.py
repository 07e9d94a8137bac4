"""Prompt construction and response parsing for translate/review calls."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from i18n_app_translator.models import SimilarTranslation

SYSTEM_PROMPT = "You are a professional translator with expertise in localization."

NO_CHANGES = "No changes needed"
NO_CHANGES_PROVIDED = "No changes provided"

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "hi": "Hindi",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "pt-br": "Brazilian Portuguese",
    "ru": "Russian",
    "sv": "Swedish",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "zh-cn": "Simplified Chinese",
    "zh-tw": "Traditional Chinese",
}

_IMPROVED_RE = re.compile(r"IMPROVED:\s*(.*?)(?=\n\s*CHANGES:|\Z)", re.DOTALL)
_CHANGES_RE = re.compile(r"CHANGES:\s*(.*)\Z", re.DOTALL)


@dataclass
class ReviewOutcome:
    """Parsed answer of a review call."""
    improved: str
    changes: str


def language_label(code: str) -> str:
    """'ja' -> 'Japanese (ja)'; unknown codes are returned unchanged."""
    name = LANGUAGE_NAMES.get(code.lower())
    return f"{name} ({code})" if name else code


def _glossary_lines(glossary: Optional[Mapping[str, str]]) -> list[str]:
    if not glossary:
        return []
    lines = ["Please use the following glossary for consistent terminology:"]
    for term, translation in glossary.items():
        lines.append(f'- "{term}" should be translated as "{translation}"')
    lines.append("")
    return lines


def build_translation_prompt(
    source_text: str,
    target_language: str,
    context: Optional[str] = None,
    similar: Optional[Sequence[SimilarTranslation]] = None,
    glossary: Optional[Mapping[str, str]] = None,
    source_language: str = "en",
) -> str:
    """Build the user prompt for a first-time translation.

    All retrieval context ends up here: usage context, few-shot similar
    translations and mandatory glossary terms.
    """
    parts = [
        f"Translate the following text from {language_label(source_language)} "
        f"to {language_label(target_language)}:",
        "",
        source_text,
        "",
    ]

    if context:
        parts += [f"Context: This text is used as a {context} in the application.", ""]

    if similar:
        parts.append("Here are some similar translations for reference:")
        for item in similar:
            parts.append(f'- "{item.source}" was translated as "{item.translation}"')
        parts.append("")

    parts += _glossary_lines(glossary)
    parts.append("Provide only the translation without any additional text or explanations.")
    return "\n".join(parts)


def build_review_prompt(
    source_text: str,
    existing_translation: str,
    target_language: str,
    context: Optional[str] = None,
    glossary: Optional[Mapping[str, str]] = None,
    source_language: str = "en",
) -> str:
    """Build the user prompt asking for a critique in IMPROVED/CHANGES form."""
    parts = [
        f"Review and improve the following translation from "
        f"{language_label(source_language)} to {language_label(target_language)}:",
        "",
        f"Original ({source_language}): {source_text}",
        f"Current translation ({target_language}): {existing_translation}",
        "",
    ]

    if context:
        parts += [f"Context: This text is used as a {context} in the application.", ""]

    parts += _glossary_lines(glossary)
    parts += [
        "If the translation is already good, return it unchanged. "
        "Otherwise, provide an improved version.",
        "Format your response as follows:",
        "IMPROVED: [your improved translation]",
        f'CHANGES: [brief explanation of changes made, or "{NO_CHANGES}" if unchanged]',
    ]
    return "\n".join(parts)


def clean_response(response: str) -> str:
    """Strip code fences and chatty prefixes from a model answer."""
    cleaned = response.strip()

    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[-1].strip() == "```":
            lines = lines[1:-1]
        else:
            lines = lines[1:]
        cleaned = "\n".join(lines).strip()

    for prefix in ("Translation:", "Translated text:", "Here is the translation:"):
        if cleaned.lower().startswith(prefix.lower()):
            cleaned = cleaned[len(prefix):].strip()

    return cleaned


def parse_review_response(content: str, existing_translation: str) -> ReviewOutcome:
    """Parse an ``IMPROVED: ... / CHANGES: ...`` answer.

    If either marker is missing the answer is not trusted: the existing
    translation is kept and the changes sentinel is returned.
    """
    content = content.strip()
    improved_match = _IMPROVED_RE.search(content)
    changes_match = _CHANGES_RE.search(content)

    if not improved_match or not changes_match:
        return ReviewOutcome(improved=existing_translation, changes=NO_CHANGES_PROVIDED)

    improved = improved_match.group(1).strip() or existing_translation
    changes = changes_match.group(1).strip() or NO_CHANGES_PROVIDED
    return ReviewOutcome(improved=improved, changes=changes)
