"""
FFmpeg-based audio tool used for format normalization and tempo changes.
"""

import asyncio
import logging
import os
from typing import List, Protocol

logger = logging.getLogger(__name__)


class AudioToolError(Exception):
    """The tool ran but reported failure."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class AudioToolNotFoundError(AudioToolError):
    """The tool binary could not be executed."""


class AudioTool(Protocol):
    """Narrow interface over the external audio tool so tests can swap it out."""

    async def transcode(self, input_file: str, output_file: str, sample_rate: int, channels: int) -> None: ...

    async def change_tempo(self, input_file: str, output_file: str, factor: float) -> None: ...


class FFmpegTool:
    """AudioTool implementation running the ffmpeg binary."""

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary

    async def transcode(self, input_file: str, output_file: str, sample_rate: int = 16000, channels: int = 1) -> None:
        """Transcode any input to a PCM WAV with the given rate and channel count."""
        cmd = [
            self.binary, '-y',
            '-i', input_file,
            '-vn',  # No video
            '-ar', str(sample_rate),
            '-ac', str(channels),
            '-c:a', 'pcm_s16le',
            '-f', 'wav',
            output_file
        ]
        await self._run(cmd, output_file)

    async def change_tempo(self, input_file: str, output_file: str, factor: float) -> None:
        """Re-encode input_file with the atempo filter applied."""
        cmd = [
            self.binary, '-y',
            '-i', input_file,
            '-filter:a', _atempo_chain(factor),
            output_file
        ]
        await self._run(cmd, output_file)

    async def _run(self, cmd: List[str], output_file: str) -> None:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except (FileNotFoundError, PermissionError) as e:
            raise AudioToolNotFoundError(f"Cannot run {self.binary}: {e}") from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        diagnostics = stderr.decode(errors="replace").strip()
        if process.returncode != 0:
            logger.debug(f"{self.binary} failed with code {process.returncode}: {diagnostics}")
            raise AudioToolError(
                f"{self.binary} exited with code {process.returncode}: {_tail(diagnostics)}",
                diagnostics=diagnostics,
            )
        if not (os.path.exists(output_file) and os.path.getsize(output_file) > 0):
            raise AudioToolError(f"{self.binary} produced no output at {output_file}", diagnostics=diagnostics)


def _atempo_chain(factor: float) -> str:
    """atempo accepts 0.5..2.0 per instance; chain instances for anything outside."""
    if factor <= 0:
        raise ValueError("tempo factor must be positive")
    parts = []
    while factor > 2.0:
        parts.append("atempo=2.0")
        factor /= 2.0
    while factor < 0.5:
        parts.append("atempo=0.5")
        factor /= 0.5
    parts.append(f"atempo={factor:g}")
    return ",".join(parts)


def _tail(text: str, lines: int = 5) -> str:
    return "\n".join(text.splitlines()[-lines:])
