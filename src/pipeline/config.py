"""
Configuration management for the audio translation pipeline.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional


@dataclass
class PipelineConfig:
    """Configuration for the audio translation pipeline."""

    # Transcription service (must already be running)
    transcription_url: str = "http://127.0.0.1:3000/transcribe"
    transcription_connect_timeout: float = 10.0

    # Remote text-to-speech provider
    tts_url: str = "https://translate.google.com/translate_tts"
    tts_max_chunk_chars: int = 200  # provider request-size limit
    tts_concurrency: int = 4
    tts_slow: bool = False

    # Audio settings
    ffmpeg_binary: str = "ffmpeg"
    audio_sample_rate: int = 16000  # Hz, required by the recognizer
    audio_channels: int = 1
    tempo: float = 1.25
    output_extension: str = "mp3"  # native encoding of the TTS provider
    temp_dir: str = tempfile.gettempdir()

    # Models
    default_model: str = "base"  # whisper size: tiny, base, small, medium, large
    translation_model: str = "Helsinki-NLP/opus-mt-{source}-{target}"
    translation_memory_limit_mb: int = 8192  # 0 disables the ceiling
    worker_start_method: str = "spawn"

    # Optional JSON language table, replaces the built-in one
    languages_file: Optional[str] = None

    # Per-stage timeouts in seconds
    conversion_timeout: float = 300.0
    transcription_timeout: float = 600.0
    translation_timeout: float = 900.0
    synthesis_timeout: float = 300.0
    post_process_timeout: float = 300.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create configuration from environment variables."""
        return cls(
            transcription_url=os.getenv("TRANSCRIPTION_URL", cls.transcription_url),
            transcription_connect_timeout=float(os.getenv("TRANSCRIPTION_CONNECT_TIMEOUT", cls.transcription_connect_timeout)),
            tts_url=os.getenv("TTS_URL", cls.tts_url),
            tts_max_chunk_chars=int(os.getenv("TTS_MAX_CHUNK_CHARS", cls.tts_max_chunk_chars)),
            tts_concurrency=int(os.getenv("TTS_CONCURRENCY", cls.tts_concurrency)),
            tts_slow=os.getenv("TTS_SLOW", str(cls.tts_slow)).lower() in ("1", "true", "yes"),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", cls.ffmpeg_binary),
            audio_sample_rate=int(os.getenv("AUDIO_SAMPLE_RATE", cls.audio_sample_rate)),
            audio_channels=int(os.getenv("AUDIO_CHANNELS", cls.audio_channels)),
            tempo=float(os.getenv("TEMPO", cls.tempo)),
            output_extension=os.getenv("OUTPUT_EXTENSION", cls.output_extension),
            temp_dir=os.getenv("TEMP_DIR", cls.temp_dir),
            default_model=os.getenv("DEFAULT_MODEL", cls.default_model),
            translation_model=os.getenv("TRANSLATION_MODEL", cls.translation_model),
            translation_memory_limit_mb=int(os.getenv("TRANSLATION_MEMORY_LIMIT_MB", cls.translation_memory_limit_mb)),
            worker_start_method=os.getenv("WORKER_START_METHOD", cls.worker_start_method),
            languages_file=os.getenv("LANGUAGES_FILE", cls.languages_file),
            conversion_timeout=float(os.getenv("CONVERSION_TIMEOUT", cls.conversion_timeout)),
            transcription_timeout=float(os.getenv("TRANSCRIPTION_TIMEOUT", cls.transcription_timeout)),
            translation_timeout=float(os.getenv("TRANSLATION_TIMEOUT", cls.translation_timeout)),
            synthesis_timeout=float(os.getenv("SYNTHESIS_TIMEOUT", cls.synthesis_timeout)),
            post_process_timeout=float(os.getenv("POST_PROCESS_TIMEOUT", cls.post_process_timeout)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )
