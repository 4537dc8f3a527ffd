"""
Helsinki-NLP opus-mt translation backend (transformers).

Only ever loaded inside the translation worker process.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> List[str]:
    """Split on sentence punctuation so each piece stays under the model's token limit."""
    return [s.strip() for s in _SENTENCE_END.split(text) if s.strip()]


class MarianTranslator:
    """Picklable translate callable: (text, source_code, target_code) -> text."""

    def __init__(self, model_template: str = "Helsinki-NLP/opus-mt-{source}-{target}", device: str = "cpu"):
        self.model_template = model_template
        self.device = device

    def model_name(self, source_code: str, target_code: str) -> str:
        return self.model_template.format(source=source_code, target=target_code)

    def __call__(self, text: str, source_code: str, target_code: str) -> str:
        # No opus-mt model exists for identical codes; the text is already in the target language.
        if source_code == target_code:
            return text

        try:
            from transformers import pipeline
        except ImportError as e:
            raise ImportError("transformers not installed. Install with: pip install transformers sentencepiece torch") from e

        model_name = self.model_name(source_code, target_code)
        logger.info(f"Loading translation model {model_name}")
        translator = pipeline("translation", model=model_name, device=self.device)
        outputs = translator(split_sentences(text) or [text])
        return " ".join(item["translation_text"].strip() for item in outputs)
