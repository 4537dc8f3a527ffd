"""
Language table mapping a language identifier to recognition/translation codes.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanguageEntry:
    """Locale codes used by the recognizer and the translator for one language."""
    recognition_code: str  # e.g. "en-US"
    translation_code: str  # e.g. "en"


DEFAULT_LANGUAGES: Dict[str, LanguageEntry] = {
    "en": LanguageEntry(recognition_code="en-US", translation_code="en"),
    "es": LanguageEntry(recognition_code="es-ES", translation_code="es"),
    "fr": LanguageEntry(recognition_code="fr-FR", translation_code="fr"),
    "it": LanguageEntry(recognition_code="it-IT", translation_code="it"),
}


class LanguageRegistry(Mapping):
    """Read-only mapping of language id -> LanguageEntry."""

    def __init__(self, entries: Optional[Mapping] = None):
        self._entries = MappingProxyType(dict(DEFAULT_LANGUAGES if entries is None else entries))

    @classmethod
    def from_file(cls, path: str) -> "LanguageRegistry":
        """Load a table of the form {"en": {"recognition_code": ..., "translation_code": ...}}."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        entries = {
            key: LanguageEntry(
                recognition_code=str(value["recognition_code"]),
                translation_code=str(value["translation_code"]),
            )
            for key, value in raw.items()
        }
        logger.info(f"Loaded {len(entries)} languages from {path}")
        return cls(entries)

    def resolve(self, language: Optional[str]) -> Optional[LanguageEntry]:
        if not language:
            return None
        return self._entries.get(language)

    def __getitem__(self, key: str) -> LanguageEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
