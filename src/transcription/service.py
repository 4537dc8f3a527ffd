"""
Transcription HTTP service.

POST /transcribe
Content-Type: multipart/form-data
    audio: 16 kHz mono WAV file
    lang:  recognition code, e.g. "en-US"
    model: optional whisper size

200 {"transcription": "<text>"}
400 {"error": "<message>"}   missing/unsupported language, unreadable audio
500 {"error": "<message>"}   recognizer failure

Run with:
python -m transcription.service
"""

import io
import logging
import os
import wave
from typing import Iterable, Optional

import numpy as np
from aiohttp import web

from pipeline.languages import LanguageRegistry

logger = logging.getLogger(__name__)

TRANSCRIBER_KEY = web.AppKey("transcriber", object)
LANGUAGES_KEY = web.AppKey("languages", frozenset)

EXPECTED_SAMPLE_RATE = 16000


def read_wav_samples(data: bytes) -> np.ndarray:
    """Decode 16-bit PCM WAV bytes into mono float32 samples in [-1, 1]."""
    with wave.open(io.BytesIO(data), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"Expected 16-bit PCM, got {8 * wf.getsampwidth()}-bit")
        if wf.getframerate() != EXPECTED_SAMPLE_RATE:
            raise ValueError(f"Expected {EXPECTED_SAMPLE_RATE} Hz audio, got {wf.getframerate()} Hz")
        channels = wf.getnchannels()
        frames = wf.readframes(wf.getnframes())
    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1)
    return samples


def _json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def handle_transcribe(request: web.Request) -> web.Response:
    """Handle /transcribe - run the recognizer over an uploaded waveform."""
    fields = {}
    audio: Optional[bytes] = None
    if request.content_type.startswith("multipart/"):
        reader = await request.multipart()
        async for part in reader:
            if part.name == "audio":
                audio = await part.read()
            elif part.name:
                fields[part.name] = await part.text()
    else:
        logger.debug(f"Ignoring non-multipart body ({request.content_type})")

    lang = (fields.get("lang") or "").strip()
    if not lang:
        return _json_error("Language not specified.", 400)
    language = lang.split("-")[0].lower()
    if language not in request.app[LANGUAGES_KEY]:
        return _json_error(f"Unsupported language: {lang}", 400)
    if not audio:
        return _json_error("No audio file uploaded.", 400)

    try:
        samples = read_wav_samples(audio)
    except (wave.Error, ValueError, EOFError) as e:
        return _json_error(f"Unreadable audio: {e}", 400)

    transcriber = request.app[TRANSCRIBER_KEY]
    try:
        text = await transcriber.transcribe(samples, language=language, model=fields.get("model") or None)
    except Exception as e:
        logger.exception("Transcription failed")
        return _json_error(f"Error processing audio stream: {e}", 500)

    logger.info(f"Transcribed {len(samples) / EXPECTED_SAMPLE_RATE:.1f}s of {lang} audio")
    return web.json_response({"transcription": text.strip()})


def create_app(transcriber, languages: Optional[Iterable[str]] = None) -> web.Application:
    """Build the service around any object with an async transcribe(samples, language, model)."""
    if languages is None:
        languages = {entry.recognition_code.split("-")[0].lower() for entry in LanguageRegistry().values()}
    app = web.Application(client_max_size=512 * 1024 * 1024)
    app[TRANSCRIBER_KEY] = transcriber
    app[LANGUAGES_KEY] = frozenset(languages)
    app.router.add_post("/transcribe", handle_transcribe)
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    from transcription.whisper_client import WhisperClient

    client = WhisperClient(
        default_model=os.getenv("WHISPER_MODEL", "base"),
        device=os.getenv("WHISPER_DEVICE", "cpu"),
        compute_type=os.getenv("COMPUTE_TYPE", "int8"),
    )
    port = int(os.getenv("PORT", "3000"))
    logger.info("Starting transcription service on port %d", port)
    web.run_app(create_app(client), port=port)
