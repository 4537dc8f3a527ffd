"""
Translation module running an opus-mt model in an isolated worker process.
"""

__version__ = "1.0.0"

from .marian import MarianTranslator
from .worker import TranslationRequest, TranslationResponse, TranslationWorker

__all__ = [
    "MarianTranslator",
    "TranslationRequest",
    "TranslationResponse",
    "TranslationWorker",
]
