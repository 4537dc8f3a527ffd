"""
Transcription module: HTTP client for the pipeline and the faster-whisper service behind it.
"""

__version__ = "1.0.0"

from .client import TranscriptionClient
from .whisper_client import WhisperClient

__all__ = [
    "TranscriptionClient",
    "WhisperClient",
]
