"""
HTTP client for the transcription service.
"""

import asyncio
import json
import logging
import os
from typing import Optional

import aiohttp

from pipeline.errors import TranscriptionError
from pipeline.jobs import Stage

logger = logging.getLogger(__name__)


class TranscriptionClient:
    """Posts a normalized waveform to POST /transcribe and returns the text."""

    def __init__(self, url: str = "http://127.0.0.1:3000/transcribe", connect_timeout: float = 10.0):
        self.url = url
        self.connect_timeout = connect_timeout

    async def transcribe(self, audio_path: str, recognition_code: str, model: Optional[str] = None) -> str:
        """
        Transcribe a waveform file.

        Args:
            audio_path: Path to the normalized WAV
            recognition_code: Recognition locale of the speech (e.g. "en-US")
            model: Optional model selector forwarded to the service

        Returns:
            Non-empty transcribed text

        Raises:
            TranscriptionError: cause is one of service_error, unreachable,
                invalid_response or empty_text
        """
        with open(audio_path, "rb") as f:
            audio_bytes = f.read()

        form = aiohttp.FormData()
        form.add_field("audio", audio_bytes, filename=os.path.basename(audio_path), content_type="audio/wav")
        form.add_field("lang", recognition_code)
        if model:
            form.add_field("model", model)

        # Total wait is bounded by the controller's stage timeout
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)
        logger.info(f"Sending {len(audio_bytes)} bytes to {self.url} (lang={recognition_code})")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, data=form) as response:
                    status = response.status
                    body = await response.text()
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            logger.error(f"Transcription service did not respond: {e}")
            raise TranscriptionError(
                "Transcription server did not respond. Is it running?",
                stage=Stage.TRANSCRIBING,
                cause="unreachable",
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Transcription service response failed: {e}")
            raise TranscriptionError(
                f"Transcription server error: {e}",
                stage=Stage.TRANSCRIBING,
                cause="service_error",
            ) from e

        payload = _parse_json(body)
        if status != 200:
            message = payload.get("error") if isinstance(payload, dict) else None
            logger.error(f"Transcription server error ({status}): {body[:500]}")
            raise TranscriptionError(
                f"Transcription server error: {message or 'Unknown error'}",
                stage=Stage.TRANSCRIBING,
                cause="service_error",
            )

        if not isinstance(payload, dict) or not isinstance(payload.get("transcription"), str):
            raise TranscriptionError(
                "Transcription failed: Invalid response from server.",
                stage=Stage.TRANSCRIBING,
                cause="invalid_response",
            )

        text = payload["transcription"].strip()
        if not text:
            raise TranscriptionError(
                "Transcription failed to produce any text.",
                stage=Stage.TRANSCRIBING,
                cause="empty_text",
            )
        logger.debug(f"Transcribed {len(text)} characters")
        return text


def _parse_json(body: str):
    try:
        return json.loads(body)
    except ValueError:
        return None
