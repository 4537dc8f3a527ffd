"""
Synthesis module for chunked remote text-to-speech.
"""

__version__ = "1.0.0"

from .tts import SpeechChunk, SpeechSynthesizer, build_chunks, split_text

__all__ = [
    "SpeechChunk",
    "SpeechSynthesizer",
    "build_chunks",
    "split_text",
]
