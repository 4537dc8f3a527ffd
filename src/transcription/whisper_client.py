"""
Faster-whisper backend used by the transcription service.
"""

import asyncio
import logging
import os
from typing import Optional, Dict, Any
from pathlib import Path

import numpy as np

try:
    from faster_whisper import WhisperModel
except ImportError:
    WhisperModel = None

logger = logging.getLogger(__name__)


class WhisperClient:
    """Client for faster-whisper transcription, one loaded model per size."""

    def __init__(self, default_model: str = "base", device: str = "cpu", compute_type: str = "int8"):
        """
        Initialize the whisper client.

        Args:
            default_model: Whisper model size used when a request names none
                (tiny, base, small, medium, large)
            device: Device to run on (cpu, cuda)
            compute_type: float16, float32, int8, etc. (depends on device support)
        """
        if WhisperModel is None:
            raise ImportError("faster-whisper not installed. Install with: pip install faster-whisper")

        self.default_model = default_model
        self.device = device
        self.compute_type = compute_type
        self.download_root = Path(os.environ.get("MODEL_DIR", "/models"))
        Path(self.download_root).mkdir(parents=True, exist_ok=True)
        self._models: Dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def _get_model(self, model_size: str):
        async with self._lock:
            if model_size not in self._models:
                logger.info(f"Loading whisper model: {model_size} on {self.device}")
                loop = asyncio.get_running_loop()
                self._models[model_size] = await loop.run_in_executor(
                    None,
                    lambda: WhisperModel(
                        model_size,
                        device=self.device,
                        compute_type=self.compute_type,
                        download_root=str(self.download_root)
                    ),
                )
                logger.info("Whisper model loaded successfully")
            return self._models[model_size]

    async def transcribe(self, samples: np.ndarray, language: str, model: Optional[str] = None) -> str:
        """
        Transcribe mono float32 samples at 16 kHz.

        Args:
            samples: Audio in [-1, 1]
            language: Two-letter language code
            model: Model size; falls back to default_model

        Returns:
            Transcribed text joined across segments
        """
        whisper = await self._get_model(model or self.default_model)
        loop = asyncio.get_running_loop()

        def _run() -> str:
            segments, _info = whisper.transcribe(samples, language=language, vad_filter=True)
            # segments is a lazy generator, consume it off the event loop
            return " ".join(segment.text.strip() for segment in segments)

        text = await loop.run_in_executor(None, _run)
        logger.debug(f"Transcribed {len(samples)} samples into {len(text)} characters")
        return text.strip()

